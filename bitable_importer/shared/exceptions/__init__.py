"""
Excepciones de la aplicacion.
"""
from bitable_importer.shared.exceptions.base import AppException
from bitable_importer.shared.exceptions.feishu import (
    AuthenticationInvalidError,
    AuthenticationMissingError,
    FeishuError,
    FeishuTimeoutError,
    OperationCancelledError,
    ParamInvalidError,
    RateLimitedError,
    ResourceNotFoundError,
    ServiceUnavailableError,
    SyncAbortedError,
    TokenExpiredError,
    is_retryable,
)

__all__ = [
    "AppException",
    "FeishuError",
    "AuthenticationMissingError",
    "AuthenticationInvalidError",
    "TokenExpiredError",
    "RateLimitedError",
    "ServiceUnavailableError",
    "FeishuTimeoutError",
    "ParamInvalidError",
    "ResourceNotFoundError",
    "OperationCancelledError",
    "SyncAbortedError",
    "is_retryable",
]
