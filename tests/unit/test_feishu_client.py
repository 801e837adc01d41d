"""
Tests unitarios para el cliente HTTP de Feishu Bitable.

Usa una sesión falsa (ver conftest) que registra las llamadas, por lo que
ningún test sale a la red.
"""
from __future__ import annotations

import pytest
import requests

from bitable_importer.domain.entities import FieldKind
from bitable_importer.infrastructure.external.feishu import (
    CancellationToken,
    FeishuCredentials,
    MAX_BATCH_RECORDS,
)
from bitable_importer.shared.exceptions import (
    AuthenticationInvalidError,
    AuthenticationMissingError,
    FeishuTimeoutError,
    OperationCancelledError,
    ParamInvalidError,
    RateLimitedError,
    ResourceNotFoundError,
    ServiceUnavailableError,
)
from tests.conftest import (
    FakeResponse,
    FakeSession,
    error_response,
    ok_response,
)


APP = "bascnApp"
TABLE = "tblA"


def _fields_page(items, has_more=False, page_token=None):
    data = {"items": items, "has_more": has_more}
    if page_token:
        data["page_token"] = page_token
    return ok_response(data)


def _tables_handler(method, url, params, json):
    return ok_response({"items": [{"table_id": "tbl1", "name": "Ventas", "revision": 3}], "has_more": False})


class TestAuthentication:
    """Tests para credenciales y tokens."""

    def test_missing_credentials_fail_before_io(self, make_client) -> None:
        """Verifica que sin credenciales no se hace ninguna llamada."""
        session = FakeSession(_tables_handler)
        client = make_client(session, credentials=None)

        with pytest.raises(AuthenticationMissingError):
            client.list_tables(APP)
        assert session.calls == []

    def test_incomplete_credentials_fail_before_io(self, make_client) -> None:
        """Verifica que un App Secret vacío cuenta como credencial faltante."""
        session = FakeSession(_tables_handler)
        client = make_client(session, credentials=FeishuCredentials("cli_x", ""))

        with pytest.raises(AuthenticationMissingError):
            client.list_tables(APP)
        assert session.calls == []

    def test_token_is_cached_between_calls(self, make_client) -> None:
        """Verifica que el token se pide una sola vez y viaja como Bearer."""
        session = FakeSession(_tables_handler)
        client = make_client(session)

        client.list_tables(APP, skip_cache=True)
        client.list_tables(APP, skip_cache=True)

        assert session.token_count == 1
        assert all(c["headers"]["Authorization"] == "Bearer t-1" for c in session.api_calls)
        token_call = session.calls[0]
        assert token_call["json"] == {"app_id": "cli_test_app_0001", "app_secret": "secret-value"}

    def test_invalid_credentials(self, make_client) -> None:
        """Verifica que un código distinto de 0 en el token es credencial inválida."""
        session = FakeSession(
            _tables_handler,
            token_handler=lambda *a: error_response(10014, "app secret invalid"),
        )
        client = make_client(session)

        with pytest.raises(AuthenticationInvalidError):
            client.list_tables(APP)
        assert session.api_calls == []

    def test_expired_token_is_refreshed_once(self, make_client) -> None:
        """Verifica que un token vencido fuerza un refresh y se reintenta."""
        responses = [error_response(99991677, "token expired"), _tables_handler(None, None, None, None)]
        session = FakeSession(lambda *a: responses.pop(0))
        client = make_client(session)

        tables = client.list_tables(APP)

        assert [t.table_id for t in tables] == ["tbl1"]
        assert session.token_count == 2
        assert session.api_calls[-1]["headers"]["Authorization"] == "Bearer t-2"

    def test_expired_token_twice_is_raised(self, make_client) -> None:
        """Verifica que el refresh por token vencido ocurre una sola vez."""
        from bitable_importer.shared.exceptions import TokenExpiredError

        session = FakeSession(lambda *a: error_response(99991677, "token expired"))
        client = make_client(session)

        with pytest.raises(TokenExpiredError):
            client.list_tables(APP)
        assert len(session.api_calls) == 2


class TestSchema:
    """Tests para listado de tablas y campos."""

    def test_list_fields_follows_pagination(self, make_client) -> None:
        """Verifica que se recorren todas las páginas con page_token."""
        pages = [
            _fields_page(
                [
                    {"field_id": "f1", "field_name": "名称", "type": 1},
                    {"field_id": "f2", "field_name": "价格", "type": 2},
                ],
                has_more=True,
                page_token="p2",
            ),
            _fields_page([
                {"field_id": "f3", "field_name": "关联", "type": 21},
                {"field_id": "f4", "field_name": "公式", "type": 20},
            ]),
        ]
        session = FakeSession(lambda *a: pages.pop(0))
        client = make_client(session)

        fields = client.list_fields(APP, TABLE)

        assert [f.name for f in fields] == ["名称", "价格", "关联", "公式"]
        assert [f.kind for f in fields] == [
            FieldKind.TEXT,
            FieldKind.NUMBER,
            FieldKind.DOUBLE_RELATION,
            FieldKind.UNSUPPORTED,
        ]
        assert session.api_calls[0]["params"] == {"page_size": 100}
        assert session.api_calls[1]["params"] == {"page_size": 100, "page_token": "p2"}
        assert session.api_calls[0]["url"].endswith(f"/bitable/v1/apps/{APP}/tables/{TABLE}/fields")

    def test_fields_are_cached_until_invalidated(self, make_client) -> None:
        """Verifica la cache de campos, skip_cache e invalidación."""
        session = FakeSession(lambda *a: _fields_page([{"field_id": "f1", "field_name": "名称", "type": 1}]))
        client = make_client(session)

        client.list_fields(APP, TABLE)
        client.list_fields(APP, TABLE)
        assert len(session.api_calls) == 1

        client.list_fields(APP, TABLE, skip_cache=True)
        assert len(session.api_calls) == 2

        client.invalidate_fields(APP)
        client.list_fields(APP, TABLE)
        assert len(session.api_calls) == 3

    def test_zero_ttl_disables_cache(self, make_client) -> None:
        """Verifica que un TTL de 0 desactiva la cache."""
        session = FakeSession(_tables_handler)
        client = make_client(session, cache_ttl_s=0)

        client.list_tables(APP)
        client.list_tables(APP)
        assert len(session.api_calls) == 2

    def test_create_field_sends_type_and_invalidates_cache(self, make_client) -> None:
        """Verifica el cuerpo de creación de campo y la invalidación."""
        def handler(method, url, params, json):
            if method == "POST":
                return ok_response({"field": {"field_id": "fNew", "field_name": "金额", "type": 2}})
            return _fields_page([{"field_id": "f1", "field_name": "名称", "type": 1}])

        session = FakeSession(handler)
        client = make_client(session)
        client.list_fields(APP, TABLE)

        created = client.create_field(
            APP, TABLE, "金额", FieldKind.NUMBER, field_property={"formatter": "0.00"}
        )
        client.list_fields(APP, TABLE)

        assert created.id == "fNew"
        assert created.kind == FieldKind.NUMBER
        post = [c for c in session.api_calls if c["method"] == "POST"][0]
        assert post["json"] == {"field_name": "金额", "type": 2, "property": {"formatter": "0.00"}}
        assert len([c for c in session.api_calls if c["method"] == "GET"]) == 2

    def test_create_table(self, make_client) -> None:
        """Verifica la creación de tablas."""
        session = FakeSession(lambda *a: ok_response({"table_id": "tblNew", "default_view_id": "v1"}))
        client = make_client(session)

        table = client.create_table(APP, "Importados")

        assert table.table_id == "tblNew"
        assert table.name == "Importados"
        assert session.api_calls[0]["json"] == {"table": {"name": "Importados"}}


class TestErrorsAndRetries:
    """Tests para clasificación de errores y reintentos."""

    def test_rate_limit_is_retried(self, make_client) -> None:
        """Verifica que un 429 se reintenta y luego tiene éxito."""
        responses = [FakeResponse(429, None, "too many requests"), _tables_handler(None, None, None, None)]
        session = FakeSession(lambda *a: responses.pop(0))
        client = make_client(session)

        tables = client.list_tables(APP)

        assert len(tables) == 1
        assert len(session.api_calls) == 2

    def test_retries_are_bounded(self, make_client) -> None:
        """Verifica que tras max_attempts se propaga el error."""
        session = FakeSession(lambda *a: FakeResponse(503, None, "unavailable"))
        client = make_client(session, max_attempts=3)

        with pytest.raises(ServiceUnavailableError):
            client.list_tables(APP)
        assert len(session.api_calls) == 3

    def test_token_endpoint_retries_are_bounded(self, make_client) -> None:
        """Verifica que un endpoint de token caído se llama max_attempts veces."""
        session = FakeSession(
            _tables_handler,
            token_handler=lambda *a: FakeResponse(503, None, "unavailable"),
        )
        client = make_client(session, max_attempts=3)

        with pytest.raises(ServiceUnavailableError):
            client.list_tables(APP)
        assert session.token_count == 3
        assert session.api_calls == []

    def test_token_is_not_refetched_on_api_retries(self, make_client) -> None:
        """Verifica que los reintentos de la API reutilizan el token obtenido."""
        session = FakeSession(lambda *a: FakeResponse(503, None, "unavailable"))
        client = make_client(session, max_attempts=3)

        with pytest.raises(ServiceUnavailableError):
            client.list_tables(APP)
        assert session.token_count == 1
        assert len(session.api_calls) == 3

    def test_business_rate_limit_code(self, make_client) -> None:
        """Verifica que un código de frecuencia con HTTP 200 se clasifica."""
        session = FakeSession(lambda *a: error_response(99991400, "request trigger frequency limit"))
        client = make_client(session, max_attempts=2)

        with pytest.raises(RateLimitedError):
            client.list_tables(APP)
        assert len(session.api_calls) == 2

    def test_timeouts_are_classified_and_retried(self, make_client) -> None:
        """Verifica que requests.Timeout se convierte en FeishuTimeoutError."""
        def handler(*args):
            raise requests.Timeout("read timed out")

        session = FakeSession(handler)
        client = make_client(session, max_attempts=2)

        with pytest.raises(FeishuTimeoutError):
            client.list_tables(APP)
        assert len(session.api_calls) == 2

    def test_connection_errors_are_unavailable(self, make_client) -> None:
        """Verifica que un error de conexión es transitorio."""
        def handler(*args):
            raise requests.ConnectionError("refused")

        session = FakeSession(handler)
        client = make_client(session, max_attempts=1)

        with pytest.raises(ServiceUnavailableError):
            client.list_tables(APP)

    def test_unknown_code_is_fatal_param_error(self, make_client) -> None:
        """Verifica que un código desconocido no se reintenta."""
        session = FakeSession(lambda *a: error_response(1254001, "WrongRequestBody"))
        client = make_client(session)

        with pytest.raises(ParamInvalidError) as exc_info:
            client.list_tables(APP)
        assert exc_info.value.feishu_code == 1254001
        assert len(session.api_calls) == 1

    def test_not_found_code(self, make_client) -> None:
        """Verifica la clasificación de recursos inexistentes."""
        session = FakeSession(lambda *a: error_response(1254040, "BaseTokenNotFound"))
        client = make_client(session)

        with pytest.raises(ResourceNotFoundError):
            client.list_tables(APP)

    def test_non_json_success_is_unavailable(self, make_client) -> None:
        """Verifica que un 200 sin JSON es un error transitorio."""
        session = FakeSession(lambda *a: FakeResponse(200, None, "<html>"))
        client = make_client(session, max_attempts=1)

        with pytest.raises(ServiceUnavailableError):
            client.list_tables(APP)


class TestBatchCreate:
    """Tests para batch_create_records."""

    def test_rejects_more_than_limit_before_io(self, make_client) -> None:
        """Verifica que más de 500 registros se rechazan sin llamar a la API."""
        session = FakeSession(lambda *a: ok_response({"records": []}))
        client = make_client(session)

        with pytest.raises(ParamInvalidError):
            client.batch_create_records(APP, TABLE, [{"a": 1}] * (MAX_BATCH_RECORDS + 1))
        assert session.calls == []

    def test_rejects_empty_batch(self, make_client) -> None:
        """Verifica que un lote vacío se rechaza."""
        client = make_client(FakeSession())
        with pytest.raises(ParamInvalidError):
            client.batch_create_records(APP, TABLE, [])

    def test_counts_per_record_failures(self, make_client) -> None:
        """Verifica el conteo de éxitos y fallos por registro."""
        session = FakeSession(lambda *a: ok_response({
            "records": [
                {"record_id": "r1", "fields": {"名称": "A"}},
                {"error": {"code": 1254060, "msg": "TextFieldConvFail"}},
            ]
        }))
        client = make_client(session)

        outcome = client.batch_create_records(APP, TABLE, [{"名称": "A"}, {"名称": "B"}])

        assert outcome.succeeded == 1
        assert outcome.failed == 1
        assert len(outcome.errors) == 1

    def test_request_body_and_client_token(self, make_client) -> None:
        """Verifica el cuerpo enviado y el client_token de idempotencia."""
        session = FakeSession(lambda *a: ok_response({"records": [{"record_id": "r1"}]}))
        client = make_client(session)

        client.batch_create_records(APP, TABLE, [{"名称": "A"}])

        call = session.api_calls[0]
        assert call["method"] == "POST"
        assert call["url"].endswith(f"/tables/{TABLE}/records/batch_create")
        assert call["json"] == {"records": [{"fields": {"名称": "A"}}]}
        assert call["params"]["client_token"]

    def test_retry_reuses_client_token(self, make_client) -> None:
        """Verifica que el reintento de un lote conserva el client_token."""
        responses = [FakeResponse(502, None, "bad gateway"), ok_response({"records": [{"record_id": "r1"}]})]
        session = FakeSession(lambda *a: responses.pop(0))
        client = make_client(session)

        outcome = client.batch_create_records(APP, TABLE, [{"名称": "A"}])

        assert outcome.succeeded == 1
        tokens = {c["params"]["client_token"] for c in session.api_calls}
        assert len(tokens) == 1

    def test_unserializable_body_is_not_retried(self, make_client) -> None:
        """Verifica que un cuerpo no serializable a JSON es un error de parámetros."""
        def handler(*args):
            raise requests.exceptions.InvalidJSONError("Out of range float values are not JSON compliant")

        session = FakeSession(handler)
        client = make_client(session, max_attempts=3)

        with pytest.raises(ParamInvalidError):
            client.batch_create_records(APP, TABLE, [{"价格": float("inf")}])
        assert len(session.api_calls) == 1


class TestCancellation:
    """Tests para cancelación y deadline."""

    def test_cancelled_token_prevents_io(self, make_client) -> None:
        """Verifica que una operación cancelada no llega a la red."""
        session = FakeSession(_tables_handler)
        client = make_client(session)
        cancel = CancellationToken()
        cancel.cancel()

        with pytest.raises(OperationCancelledError):
            client.list_tables(APP, cancel=cancel)
        assert session.calls == []

    def test_timeout_is_capped_by_deadline(self, make_client) -> None:
        """Verifica que el timeout HTTP no supera el tiempo restante."""
        session = FakeSession(_tables_handler)
        client = make_client(session, timeout_s=30.0)

        client.list_tables(APP, cancel=CancellationToken(deadline_s=5))

        assert all(c["timeout"] <= 5 for c in session.calls)

    def test_expired_deadline_during_backoff(self, make_client) -> None:
        """Verifica que la espera entre reintentos respeta el deadline."""
        session = FakeSession(lambda *a: FakeResponse(503, None, "unavailable"))
        client = make_client(session, retry_delay_s=10.0)

        with pytest.raises(OperationCancelledError):
            client.list_tables(APP, cancel=CancellationToken(deadline_s=0.2))
        assert len(session.api_calls) == 1
