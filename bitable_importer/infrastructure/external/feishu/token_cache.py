"""
Cache de tenant_access_token por par de credenciales.

Caracteristicas:
- Compartida por todo el proceso (varias corridas concurrentes reutilizan
  el mismo token)
- Un lock por credencial: si el token vencio, un solo hilo lo refresca y
  el resto espera y reutiliza el resultado
- Refresco proactivo `margin_s` segundos antes del vencimiento
- Nunca se persiste a disco
"""

from __future__ import annotations

import threading
from typing import Callable, Dict, Optional

from loguru import logger

from bitable_importer.domain.entities import AccessToken


TokenFetcher = Callable[[], AccessToken]


class AccessTokenCache:
    """Tokens vigentes por clave de credencial, con refresco serializado."""

    def __init__(self) -> None:
        self._tokens: Dict[str, AccessToken] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._meta_lock = threading.Lock()

    def _get_or_create_lock(self, key: str) -> threading.Lock:
        with self._meta_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def _peek(self, key: str) -> Optional[AccessToken]:
        with self._meta_lock:
            return self._tokens.get(key)

    def get(
        self,
        key: str,
        fetch: TokenFetcher,
        *,
        margin_s: float,
        force_refresh: bool = False,
        stale_value: Optional[str] = None,
    ) -> AccessToken:
        """
        Retorna un token vigente para `key`, pidiendolo con `fetch` si hace falta.

        Args:
            key: Clave de la credencial (ver FeishuCredentials.cache_key)
            fetch: Funcion que obtiene un token nuevo de Feishu
            margin_s: Holgura antes del vencimiento para refrescar
            force_refresh: Ignora el token en cache
            stale_value: Token rechazado por Feishu. Si otro hilo ya lo
                reemplazo, se reutiliza el nuevo en lugar de refrescar otra vez.
        """
        if not force_refresh:
            cached = self._peek(key)
            if cached is not None and cached.is_fresh(margin_s):
                return cached

        lock = self._get_or_create_lock(key)
        with lock:
            cached = self._peek(key)
            if cached is not None and cached.is_fresh(margin_s):
                already_replaced = stale_value is not None and cached.value != stale_value
                if not force_refresh or already_replaced:
                    return cached

            token = fetch()
            with self._meta_lock:
                self._tokens[key] = token
            logger.debug(f"Token de acceso renovado para la credencial {key[:8]}...")
            return token

    def invalidate(self, key: str) -> None:
        with self._meta_lock:
            self._tokens.pop(key, None)

    def clear(self) -> None:
        with self._meta_lock:
            self._tokens.clear()

    def __len__(self) -> int:
        with self._meta_lock:
            return len(self._tokens)


# Instancia compartida por todos los clientes del proceso
token_cache = AccessTokenCache()
