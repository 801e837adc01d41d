"""
Configuracion de fixtures para pytest.

Incluye una sesion HTTP falsa para probar el cliente de Feishu sin red.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest

from bitable_importer.infrastructure.external.feishu import (
    AccessTokenCache,
    FeishuClient,
    FeishuCredentials,
)


TOKEN_PATH = "/auth/v3/tenant_access_token/internal"


class FakeResponse:
    """Respuesta minima compatible con requests.Response."""

    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else str(payload))

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("sin JSON")
        return self._payload


Handler = Callable[[str, str, Optional[Dict[str, Any]], Optional[Dict[str, Any]]], FakeResponse]


class FakeSession:
    """
    Sesion falsa: registra cada llamada y delega la respuesta en `handler`.

    El endpoint de token responde OK por defecto; `token_handler` permite
    reemplazarlo.
    """

    def __init__(self, handler: Optional[Handler] = None, token_handler: Optional[Handler] = None) -> None:
        self.handler = handler
        self.token_handler = token_handler
        self.calls: List[Dict[str, Any]] = []
        self.token_count = 0

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        self.calls.append({
            "method": method,
            "url": url,
            "params": params,
            "json": json,
            "headers": headers,
            "timeout": timeout,
        })
        if url.endswith(TOKEN_PATH):
            self.token_count += 1
            if self.token_handler is not None:
                return self.token_handler(method, url, params, json)
            return ok_token_response(f"t-{self.token_count}")
        if self.handler is None:
            raise AssertionError(f"Llamada inesperada: {method} {url}")
        return self.handler(method, url, params, json)

    @property
    def api_calls(self) -> List[Dict[str, Any]]:
        """Llamadas a la API de Bitable (excluye el endpoint de token)."""
        return [c for c in self.calls if not c["url"].endswith(TOKEN_PATH)]


def ok_token_response(value: str = "t-1", expire: int = 7200) -> FakeResponse:
    return FakeResponse(200, {"code": 0, "msg": "ok", "tenant_access_token": value, "expire": expire})


def ok_response(data: Optional[Dict[str, Any]] = None) -> FakeResponse:
    return FakeResponse(200, {"code": 0, "msg": "success", "data": data or {}})


def error_response(code: int, msg: str = "error", status_code: int = 200) -> FakeResponse:
    return FakeResponse(status_code, {"code": code, "msg": msg})


@pytest.fixture
def credentials() -> FeishuCredentials:
    return FeishuCredentials(app_id="cli_test_app_0001", app_secret="secret-value")


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def make_client(credentials: FeishuCredentials):
    """Fabrica de FeishuClient sin esperas entre reintentos y con cache de tokens aislada."""

    def _make(session: FakeSession, **kwargs: Any) -> FeishuClient:
        options: Dict[str, Any] = {
            "session": session,
            "base_url": "https://feishu.test/open-apis",
            "timeout_s": 30.0,
            "max_attempts": 3,
            "retry_delay_s": 0.0,
            "cache_ttl_s": 300.0,
            "token_refresh_margin_s": 60.0,
            "token_cache": AccessTokenCache(),
        }
        options.update(kwargs)
        creds = options.pop("credentials", credentials)
        return FeishuClient(creds, **options)

    return _make
