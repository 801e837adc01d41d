"""
Cliente minimo de Feishu Bitable Open API (sin SDKs externos).

Requisitos cubiertos:
- requests
- tenant_access_token con cache compartida y refresco serializado
- paginacion por page_token / has_more
- cache de tablas y campos con TTL e invalidacion explicita
- reintentos con backoff lineal (rate limit, 5xx, timeouts) cancelables
- clasificacion de errores en una taxonomia cerrada
"""

from __future__ import annotations

import threading
import time
import uuid
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, TypeVar

import requests
from loguru import logger

from bitable_importer.core.config import settings
from bitable_importer.domain.entities import AccessToken, BitableTable, FieldKind, TargetField
from bitable_importer.shared.exceptions import (
    AuthenticationInvalidError,
    AuthenticationMissingError,
    FeishuError,
    FeishuTimeoutError,
    ParamInvalidError,
    ServiceUnavailableError,
    TokenExpiredError,
)
from bitable_importer.shared.exceptions.feishu import (
    classify_feishu_code,
    classify_http_status,
    is_known_feishu_code,
    is_retryable,
)

from .token_cache import AccessTokenCache, token_cache as shared_token_cache
from .types import BatchCreateOutcome, CancellationToken, FeishuCredentials

T = TypeVar("T")

# Limite de Feishu por llamada batch_create
MAX_BATCH_RECORDS = 500

# Limite de page_size para listados
MAX_PAGE_SIZE = 100

_TOKEN_PATH = "/auth/v3/tenant_access_token/internal"
_BITABLE_PREFIX = "/bitable/v1/apps"


class _TTLCache:
    """Cache en memoria con TTL fijo, segura entre hilos."""

    def __init__(self, ttl_s: float) -> None:
        self._ttl_s = ttl_s
        self._items: Dict[Tuple[str, ...], Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: Tuple[str, ...]) -> Optional[Any]:
        with self._lock:
            entry = self._items.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if time.monotonic() >= expires_at:
                del self._items[key]
                return None
            return value

    def set(self, key: Tuple[str, ...], value: Any) -> None:
        if self._ttl_s <= 0:
            return
        with self._lock:
            self._items[key] = (time.monotonic() + self._ttl_s, value)

    def invalidate(self, key: Tuple[str, ...]) -> None:
        with self._lock:
            self._items.pop(key, None)

    def invalidate_prefix(self, prefix: Tuple[str, ...]) -> None:
        with self._lock:
            for key in [k for k in self._items if k[: len(prefix)] == prefix]:
                del self._items[key]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


def _parse_json(resp: requests.Response) -> Optional[Dict[str, Any]]:
    try:
        payload = resp.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def _raise_for_payload(
    status_code: int,
    payload: Optional[Dict[str, Any]],
    body: str,
    context: str,
) -> Dict[str, Any]:
    """
    Clasifica una respuesta de Feishu y la retorna si fue exitosa.

    Orden: codigo de negocio conocido, estado HTTP, codigo distinto de 0.
    """
    ok_status = 200 <= status_code < 300
    if payload is None:
        if ok_status:
            raise ServiceUnavailableError(
                f"{context}: respuesta no JSON", details={"http_status": status_code}
            )
        raise classify_http_status(status_code, body, context)

    code = payload.get("code", 0)
    msg = str(payload.get("msg") or "")
    if code and is_known_feishu_code(code):
        raise classify_feishu_code(code, msg, context)
    if not ok_status:
        raise classify_http_status(status_code, body, context)
    if code:
        raise classify_feishu_code(code, msg, context)
    return payload


class FeishuClient:
    """
    Cliente HTTP de Feishu Bitable.

    Importante:
    - Las credenciales se pasan por llamada o al crear la instancia; nunca
      se leen de variables de entorno. Sin credenciales se lanza
      AuthenticationMissingError antes de cualquier I/O.
    - Los reintentos son internos: el llamador solo ve latencia adicional
      o la excepcion final de la taxonomia.
    """

    def __init__(
        self,
        credentials: Optional[FeishuCredentials] = None,
        *,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        max_attempts: Optional[int] = None,
        retry_delay_s: Optional[float] = None,
        cache_ttl_s: Optional[float] = None,
        token_refresh_margin_s: Optional[float] = None,
        token_cache: Optional[AccessTokenCache] = None,
    ) -> None:
        self._credentials = credentials
        self._session = session or requests.Session()
        self._base_url = (base_url or settings.FEISHU_BASE_URL).rstrip("/")
        self._timeout_s = timeout_s if timeout_s is not None else settings.FEISHU_TIMEOUT_S
        self._max_attempts = max(1, max_attempts if max_attempts is not None else settings.FEISHU_MAX_ATTEMPTS)
        self._retry_delay_s = retry_delay_s if retry_delay_s is not None else settings.FEISHU_RETRY_DELAY_S
        self._token_margin_s = (
            token_refresh_margin_s
            if token_refresh_margin_s is not None
            else settings.FEISHU_TOKEN_REFRESH_MARGIN_S
        )
        self._token_cache = token_cache or shared_token_cache
        ttl = cache_ttl_s if cache_ttl_s is not None else settings.FEISHU_CACHE_TTL_S
        self._tables_cache = _TTLCache(ttl)
        self._fields_cache = _TTLCache(ttl)

    # ------------------------------------------------------------------
    # Autenticacion
    # ------------------------------------------------------------------

    def _resolve_credentials(self, credentials: Optional[FeishuCredentials]) -> FeishuCredentials:
        creds = credentials or self._credentials
        if creds is None or not creds.is_complete:
            raise AuthenticationMissingError()
        return creds

    def get_access_token(
        self,
        credentials: Optional[FeishuCredentials] = None,
        *,
        force_refresh: bool = False,
        cancel: Optional[CancellationToken] = None,
        stale_value: Optional[str] = None,
    ) -> str:
        """
        Retorna un tenant_access_token vigente para las credenciales.

        Raises:
            AuthenticationMissingError: si no hay credenciales
            AuthenticationInvalidError: si Feishu rechaza App ID / App Secret
        """
        creds = self._resolve_credentials(credentials)
        token = self._token_cache.get(
            creds.cache_key,
            lambda: self._fetch_token(creds, cancel),
            margin_s=self._token_margin_s,
            force_refresh=force_refresh,
            stale_value=stale_value,
        )
        return token.value

    def _fetch_token(self, creds: FeishuCredentials, cancel: Optional[CancellationToken]) -> AccessToken:
        context = "Obtener tenant_access_token"

        def attempt() -> AccessToken:
            status, payload, body = self._send(
                "POST",
                f"{self._base_url}{_TOKEN_PATH}",
                json={"app_id": creds.app_id, "app_secret": creds.app_secret},
                cancel=cancel,
                context=context,
            )
            if status == 429 or status >= 500:
                raise classify_http_status(status, body, context)
            if payload is None:
                raise ServiceUnavailableError(f"{context}: respuesta no JSON", details={"http_status": status})

            code = payload.get("code")
            value = payload.get("tenant_access_token")
            if code != 0 or not value:
                raise AuthenticationInvalidError(
                    f"Credenciales de Feishu invalidas: {payload.get('msg') or 'sin token'}",
                    details={"app_id": creds.masked_app_id},
                    feishu_code=code if isinstance(code, int) else None,
                )
            expire_s = float(payload.get("expire") or 7200)
            logger.info(f"Token de Feishu obtenido para app {creds.masked_app_id} (expira en {expire_s:.0f}s)")
            return AccessToken(value=value, expires_at=time.monotonic() + expire_s)

        return self._with_retries(attempt, cancel=cancel, context=context)

    # ------------------------------------------------------------------
    # Transporte
    # ------------------------------------------------------------------

    def _send(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        cancel: Optional[CancellationToken] = None,
        context: str,
    ) -> Tuple[int, Optional[Dict[str, Any]], str]:
        """Un intento HTTP: retorna (status, payload JSON o None, texto)."""
        timeout = self._timeout_s
        if cancel is not None:
            cancel.raise_if_cancelled()
            remaining = cancel.remaining()
            if remaining is not None:
                timeout = min(timeout, remaining)

        all_headers = {"Content-Type": "application/json; charset=utf-8"}
        all_headers.update(headers or {})
        try:
            resp = self._session.request(
                method=method,
                url=url,
                params=params,
                json=json,
                headers=all_headers,
                timeout=timeout,
            )
        except requests.exceptions.InvalidJSONError as e:
            # Cuerpo no serializable (ej: inf o nan): reintentar no cambia nada
            raise ParamInvalidError(f"{context}: cuerpo no serializable a JSON ({e})") from e
        except requests.Timeout as e:
            raise FeishuTimeoutError(f"{context}: timeout tras {timeout:.1f}s") from e
        except requests.RequestException as e:
            raise ServiceUnavailableError(f"{context}: error de conexion ({e})") from e

        return resp.status_code, _parse_json(resp), resp.text or ""

    def _with_retries(
        self,
        operation: Callable[[], T],
        *,
        cancel: Optional[CancellationToken],
        context: str,
        on_token_expired: Optional[Callable[[], None]] = None,
    ) -> T:
        """
        Ejecuta `operation` con la politica de reintentos.

        Estrategia:
        - Errores reintentables: hasta `max_attempts` intentos con espera
          `retry_delay_s * numero_de_intento`, cancelable.
        - TokenExpired: un unico reintento tras forzar refresh del token
          (no consume intentos).
        - Resto: error inmediato.
        """
        attempt = 1
        token_refreshed = False
        while True:
            try:
                return operation()
            except TokenExpiredError:
                if on_token_expired is None or token_refreshed:
                    raise
                token_refreshed = True
                logger.warning(f"{context}: token vencido, se fuerza refresh y se reintenta")
                on_token_expired()
            except FeishuError as e:
                if not is_retryable(e) or attempt >= self._max_attempts:
                    raise
                delay = self._retry_delay_s * attempt
                logger.warning(
                    f"{context}: {e.error_code} (intento {attempt}/{self._max_attempts}), "
                    f"reintentando en {delay:.1f}s"
                )
                if cancel is not None:
                    cancel.wait(delay)
                elif delay > 0:
                    time.sleep(delay)
                attempt += 1

    def _request(
        self,
        method: str,
        path: str,
        *,
        credentials: Optional[FeishuCredentials] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        cancel: Optional[CancellationToken] = None,
        context: str,
    ) -> Dict[str, Any]:
        """Request autenticada contra la API de Bitable; retorna `data`."""
        creds = self._resolve_credentials(credentials)
        url = f"{self._base_url}{_BITABLE_PREFIX}{path}"
        # El token se obtiene una vez, con sus propios reintentos
        state = {"token": self.get_access_token(creds, cancel=cancel)}

        def attempt() -> Dict[str, Any]:
            token = state["token"]
            status, payload, body = self._send(
                method,
                url,
                headers={"Authorization": f"Bearer {token}"},
                params=params,
                json=json,
                cancel=cancel,
                context=context,
            )
            return _raise_for_payload(status, payload, body, context).get("data") or {}

        def refresh_token() -> None:
            state["token"] = self.get_access_token(
                creds, force_refresh=True, cancel=cancel, stale_value=state["token"]
            )

        return self._with_retries(attempt, cancel=cancel, context=context, on_token_expired=refresh_token)

    def _paginate(
        self,
        path: str,
        *,
        credentials: Optional[FeishuCredentials],
        cancel: Optional[CancellationToken],
        context: str,
        page_size: int = MAX_PAGE_SIZE,
    ) -> Iterator[Dict[str, Any]]:
        """Itera `items` de un listado paginado por page_token / has_more."""
        page_token: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"page_size": page_size}
            if page_token:
                params["page_token"] = page_token
            data = self._request(
                "GET", path, credentials=credentials, params=params, cancel=cancel, context=context
            )
            for item in data.get("items") or []:
                yield item

            page_token = data.get("page_token")
            if not data.get("has_more") or not page_token:
                break

    # ------------------------------------------------------------------
    # Esquema
    # ------------------------------------------------------------------

    def list_tables(
        self,
        app_token: str,
        *,
        credentials: Optional[FeishuCredentials] = None,
        skip_cache: bool = False,
        cancel: Optional[CancellationToken] = None,
    ) -> List[BitableTable]:
        """Tablas de la app, en el orden que reporta Feishu."""
        key = (app_token,)
        if not skip_cache:
            cached = self._tables_cache.get(key)
            if cached is not None:
                return list(cached)

        tables = [
            BitableTable.from_api(item)
            for item in self._paginate(
                f"/{app_token}/tables",
                credentials=credentials,
                cancel=cancel,
                context=f"Listar tablas de {app_token}",
            )
        ]
        self._tables_cache.set(key, tuple(tables))
        logger.info(f"Tablas obtenidas de {app_token}: {len(tables)}")
        return tables

    def list_fields(
        self,
        app_token: str,
        table_id: str,
        *,
        credentials: Optional[FeishuCredentials] = None,
        skip_cache: bool = False,
        cancel: Optional[CancellationToken] = None,
    ) -> List[TargetField]:
        """Campos de la tabla, en el orden que reporta Feishu."""
        key = (app_token, table_id)
        if not skip_cache:
            cached = self._fields_cache.get(key)
            if cached is not None:
                return list(cached)

        fields = [
            TargetField.from_api(item)
            for item in self._paginate(
                f"/{app_token}/tables/{table_id}/fields",
                credentials=credentials,
                cancel=cancel,
                context=f"Listar campos de {table_id}",
            )
        ]
        self._fields_cache.set(key, tuple(fields))
        logger.info(f"Campos obtenidos de {table_id}: {len(fields)}")
        return fields

    def invalidate_tables(self, app_token: str) -> None:
        self._tables_cache.invalidate((app_token,))

    def invalidate_fields(self, app_token: str, table_id: Optional[str] = None) -> None:
        """Invalida los campos de una tabla o, sin table_id, de toda la app."""
        if table_id is None:
            self._fields_cache.invalidate_prefix((app_token,))
        else:
            self._fields_cache.invalidate((app_token, table_id))

    def clear_cache(self) -> None:
        self._tables_cache.clear()
        self._fields_cache.clear()

    def create_table(
        self,
        app_token: str,
        name: str,
        *,
        credentials: Optional[FeishuCredentials] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> BitableTable:
        data = self._request(
            "POST",
            f"/{app_token}/tables",
            credentials=credentials,
            json={"table": {"name": name}},
            cancel=cancel,
            context=f"Crear tabla '{name}'",
        )
        self.invalidate_tables(app_token)
        table = BitableTable(
            table_id=str(data.get("table_id") or ""),
            name=name,
            revision=data.get("revision"),
        )
        logger.success(f"Tabla '{name}' creada en {app_token}: {table.table_id}")
        return table

    def create_field(
        self,
        app_token: str,
        table_id: str,
        field_name: str,
        kind: FieldKind,
        *,
        field_property: Optional[Dict[str, Any]] = None,
        credentials: Optional[FeishuCredentials] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> TargetField:
        body: Dict[str, Any] = {"field_name": field_name, "type": int(kind)}
        if field_property:
            body["property"] = field_property
        data = self._request(
            "POST",
            f"/{app_token}/tables/{table_id}/fields",
            credentials=credentials,
            json=body,
            cancel=cancel,
            context=f"Crear campo '{field_name}'",
        )
        self.invalidate_fields(app_token, table_id)
        created = data.get("field") or {}
        field = TargetField(
            id=str(created.get("field_id") or ""),
            name=str(created.get("field_name") or field_name),
            kind=FieldKind.from_type_code(created.get("type", int(kind))),
        )
        logger.success(f"Campo '{field.name}' ({field.kind.name}) creado en {table_id}")
        return field

    # ------------------------------------------------------------------
    # Registros
    # ------------------------------------------------------------------

    def batch_create_records(
        self,
        app_token: str,
        table_id: str,
        records: Sequence[Dict[str, Any]],
        *,
        credentials: Optional[FeishuCredentials] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> BatchCreateOutcome:
        """
        Crea hasta 500 registros en una sola llamada.

        Los fallos por registro se cuentan en el resultado; solo los fallos
        de la llamada completa se lanzan como excepcion.
        """
        if not records:
            raise ParamInvalidError("batch_create requiere al menos un registro")
        if len(records) > MAX_BATCH_RECORDS:
            raise ParamInvalidError(
                f"batch_create admite como maximo {MAX_BATCH_RECORDS} registros (recibidos {len(records)})",
                details={"record_count": len(records)},
            )

        # client_token hace idempotentes los reintentos de la misma llamada
        data = self._request(
            "POST",
            f"/{app_token}/tables/{table_id}/records/batch_create",
            credentials=credentials,
            params={"client_token": str(uuid.uuid4())},
            json={"records": [{"fields": dict(record)} for record in records]},
            cancel=cancel,
            context=f"Crear {len(records)} registros en {table_id}",
        )

        outcome = BatchCreateOutcome()
        created = data.get("records")
        if not isinstance(created, list):
            logger.warning(f"batch_create en {table_id} no devolvio el arreglo de registros")
            return outcome

        for item in created:
            error = item.get("error") if isinstance(item, dict) else None
            if error:
                outcome.failed += 1
                outcome.errors.append(str(error))
            else:
                outcome.succeeded += 1
        return outcome
