"""
Taxonomia cerrada de errores del cliente Feishu Bitable.

Cada error remoto se clasifica en exactamente una de estas clases:

- AuthenticationMissingError: no se proporcionaron credenciales (fatal)
- AuthenticationInvalidError: credenciales invalidas o permisos insuficientes (fatal)
- TokenExpiredError: token vencido (se reintenta una vez tras forzar refresh)
- RateLimitedError: limite de frecuencia (reintento con backoff)
- ServiceUnavailableError / FeishuTimeoutError: transitorios (reintento)
- ParamInvalidError: error del llamador (fatal)
- ResourceNotFoundError: app/tabla/campo inexistente (fatal)

Los fallos parciales por registro NO son excepciones: se reportan como
contadores en SyncRunResult.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from bitable_importer.shared.exceptions.base import AppException


class FeishuError(AppException):
    """Excepcion base para errores de integracion con Feishu."""

    retryable: bool = False
    default_status_code: int = 502
    default_error_code: str = "FEISHU_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        feishu_code: Optional[int] = None,
    ):
        self.feishu_code = feishu_code
        merged = dict(details or {})
        if feishu_code is not None:
            merged.setdefault("feishu_code", feishu_code)
        super().__init__(
            message=message,
            status_code=self.default_status_code,
            error_code=self.default_error_code,
            details=merged,
        )


class AuthenticationMissingError(FeishuError):
    """No hay credenciales (App ID / App Secret) para operar."""

    default_status_code = 401
    default_error_code = "FEISHU_AUTH_MISSING"

    def __init__(self, message: str = "Faltan las credenciales de Feishu (App ID y App Secret)"):
        super().__init__(message)


class AuthenticationInvalidError(FeishuError):
    """Credenciales invalidas o permisos insuficientes de la app."""

    default_status_code = 401
    default_error_code = "FEISHU_AUTH_INVALID"


class TokenExpiredError(FeishuError):
    """El tenant_access_token expiro antes de lo previsto."""

    retryable = True
    default_status_code = 401
    default_error_code = "FEISHU_TOKEN_EXPIRED"


class RateLimitedError(FeishuError):
    """Feishu rechazo la llamada por limite de frecuencia."""

    retryable = True
    default_status_code = 429
    default_error_code = "FEISHU_RATE_LIMITED"


class ServiceUnavailableError(FeishuError):
    """Servicio no disponible (5xx o error de conexion)."""

    retryable = True
    default_status_code = 503
    default_error_code = "FEISHU_SERVICE_UNAVAILABLE"


class FeishuTimeoutError(FeishuError):
    """La llamada excedio su timeout."""

    retryable = True
    default_status_code = 504
    default_error_code = "FEISHU_TIMEOUT"


class ParamInvalidError(FeishuError):
    """Parametros invalidos enviados por el llamador."""

    default_status_code = 400
    default_error_code = "FEISHU_PARAM_INVALID"


class ResourceNotFoundError(FeishuError):
    """El recurso solicitado (app, tabla, campo) no existe."""

    default_status_code = 404
    default_error_code = "FEISHU_RESOURCE_NOT_FOUND"

    @classmethod
    def for_resource(cls, resource_type: str, resource_id: str) -> "ResourceNotFoundError":
        return cls(
            f"{resource_type} no encontrado: {resource_id}",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class OperationCancelledError(FeishuError):
    """La operacion fue cancelada o excedio el deadline del llamador."""

    default_status_code = 499
    default_error_code = "FEISHU_OPERATION_CANCELLED"


class SyncAbortedError(AppException):
    """
    Una corrida de sincronizacion se aborto por un fallo a nivel de lote.

    Conserva el resultado parcial acumulado hasta el momento; los lotes ya
    confirmados en Feishu permanecen (no hay rollback).
    """

    def __init__(self, result: Any, cause: FeishuError):
        self.result = result
        self.cause = cause
        super().__init__(
            message=result.message,
            status_code=502,
            error_code="SYNC_ABORTED",
            details={
                "cause": cause.error_code,
                "cause_message": cause.message,
                "api_call_count": result.api_call_count,
                "synced_row_count": result.synced_row_count,
                "failed_row_count": result.failed_row_count,
                "chunks_completed": result.chunks_completed,
                "remaining_row_count": result.remaining_row_count,
                "chunk_count": result.chunk_count,
            },
        )


# Codigos de error de negocio de Feishu -> clase de la taxonomia
_FEISHU_CODE_MAP: Dict[int, type] = {
    99991661: AuthenticationInvalidError,
    99991663: AuthenticationInvalidError,
    99991664: AuthenticationInvalidError,
    99991665: AuthenticationInvalidError,
    99991668: AuthenticationInvalidError,
    99991671: TokenExpiredError,
    99991677: TokenExpiredError,
    99991672: AuthenticationInvalidError,
    99991700: AuthenticationInvalidError,
    99991704: ResourceNotFoundError,
    1254040: ResourceNotFoundError,
    1254041: ResourceNotFoundError,
    1254045: ResourceNotFoundError,
    99991400: RateLimitedError,
    99991714: RateLimitedError,
    1254290: RateLimitedError,
    1254607: ServiceUnavailableError,
    1255040: ServiceUnavailableError,
}


def is_known_feishu_code(code: int) -> bool:
    return code in _FEISHU_CODE_MAP


def classify_feishu_code(code: int, msg: str, context: Optional[str] = None) -> FeishuError:
    """
    Convierte un `{code, msg}` de Feishu en la excepcion de la taxonomia.

    Codigos desconocidos se tratan como ParamInvalidError: la API respondio,
    pero rechazo la peticion.
    """
    error_cls = _FEISHU_CODE_MAP.get(code, ParamInvalidError)
    message = f"{context}: {msg}" if context else msg
    return error_cls(message, details={"feishu_msg": msg}, feishu_code=code)


def classify_http_status(status_code: int, body: str, context: Optional[str] = None) -> FeishuError:
    """Clasifica una respuesta HTTP no exitosa sin cuerpo Feishu valido."""
    snippet = (body or "")[:500]
    message = f"{context}: HTTP {status_code}" if context else f"HTTP {status_code}"
    details = {"http_status": status_code, "body": snippet}
    if status_code == 429:
        return RateLimitedError(message, details=details)
    if status_code >= 500:
        return ServiceUnavailableError(message, details=details)
    if status_code == 404:
        return ResourceNotFoundError(message, details=details)
    if status_code in (401, 403):
        return AuthenticationInvalidError(message, details=details)
    return ParamInvalidError(message, details=details)


def is_retryable(error: BaseException) -> bool:
    """Indica si un error es elegible para reintento."""
    return isinstance(error, FeishuError) and error.retryable
