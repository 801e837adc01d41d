"""
Credenciales de Feishu recibidas por request.

Nunca se usan credenciales por defecto del servidor: si faltan los headers
la request falla con 401 antes de tocar la red.
"""
from typing import Optional

from fastapi import Header

from bitable_importer.infrastructure.external.feishu import FeishuCredentials
from bitable_importer.shared.exceptions import AuthenticationMissingError


APP_ID_HEADER = "X-Feishu-App-Id"
APP_SECRET_HEADER = "X-Feishu-App-Secret"


async def get_feishu_credentials(
    app_id: Optional[str] = Header(None, alias=APP_ID_HEADER),
    app_secret: Optional[str] = Header(None, alias=APP_SECRET_HEADER),
) -> FeishuCredentials:
    """
    Lee App ID y App Secret de los headers.

    Raises:
        AuthenticationMissingError: si falta alguno de los dos
    """
    if not app_id or not app_id.strip() or not app_secret or not app_secret.strip():
        raise AuthenticationMissingError()
    return FeishuCredentials(app_id=app_id.strip(), app_secret=app_secret.strip())
