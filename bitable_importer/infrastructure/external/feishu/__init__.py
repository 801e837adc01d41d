"""
Integracion con Feishu Bitable Open API.
"""

from .batch_submitter import BatchSubmitter
from .client import MAX_BATCH_RECORDS, FeishuClient
from .token_cache import AccessTokenCache, token_cache
from .types import BatchCreateOutcome, CancellationToken, FeishuCredentials

__all__ = [
    "BatchSubmitter",
    "FeishuClient",
    "MAX_BATCH_RECORDS",
    "AccessTokenCache",
    "token_cache",
    "BatchCreateOutcome",
    "CancellationToken",
    "FeishuCredentials",
]
