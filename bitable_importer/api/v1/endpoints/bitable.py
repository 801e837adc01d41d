"""
Endpoints del esquema de Bitable: tablas y campos.
"""
import asyncio
from typing import List

from fastapi import APIRouter, Depends, Query, status
from loguru import logger

from bitable_importer.api.v1.dependencies.client_deps import get_sync_use_cases
from bitable_importer.api.v1.dependencies.credentials_deps import get_feishu_credentials
from bitable_importer.application.dto import FieldCreateDTO, FieldDTO, TableCreateDTO, TableDTO
from bitable_importer.application.use_cases.sync_use_cases import SpreadsheetSyncUseCases
from bitable_importer.infrastructure.external.feishu import FeishuCredentials


router = APIRouter(prefix="/bitable", tags=["Bitable"])


@router.get(
    "/{app_token}/tables",
    response_model=List[TableDTO],
    summary="Listar tablas de una app"
)
async def list_tables(
    app_token: str,
    skip_cache: bool = Query(False, description="Ignorar la cache de tablas"),
    credentials: FeishuCredentials = Depends(get_feishu_credentials),
    use_cases: SpreadsheetSyncUseCases = Depends(get_sync_use_cases),
) -> List[TableDTO]:
    tables = await asyncio.to_thread(
        use_cases.list_tables, app_token, credentials=credentials, skip_cache=skip_cache
    )
    return [TableDTO.from_entity(t) for t in tables]


@router.post(
    "/{app_token}/tables",
    response_model=TableDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Crear una tabla"
)
async def create_table(
    app_token: str,
    body: TableCreateDTO,
    credentials: FeishuCredentials = Depends(get_feishu_credentials),
    use_cases: SpreadsheetSyncUseCases = Depends(get_sync_use_cases),
) -> TableDTO:
    logger.info(f"Creando tabla '{body.name}' en {app_token}")
    table = await asyncio.to_thread(
        use_cases.create_table, app_token, body.name, credentials=credentials
    )
    return TableDTO.from_entity(table)


@router.get(
    "/{app_token}/tables/{table_id}/fields",
    response_model=List[FieldDTO],
    summary="Listar campos de una tabla"
)
async def list_fields(
    app_token: str,
    table_id: str,
    skip_cache: bool = Query(False, description="Ignorar la cache de campos"),
    credentials: FeishuCredentials = Depends(get_feishu_credentials),
    use_cases: SpreadsheetSyncUseCases = Depends(get_sync_use_cases),
) -> List[FieldDTO]:
    fields = await asyncio.to_thread(
        use_cases.list_fields, app_token, table_id, credentials=credentials, skip_cache=skip_cache
    )
    return [FieldDTO.from_entity(f) for f in fields]


@router.post(
    "/{app_token}/tables/{table_id}/fields",
    response_model=FieldDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Agregar un campo a una tabla"
)
async def add_field(
    app_token: str,
    table_id: str,
    body: FieldCreateDTO,
    credentials: FeishuCredentials = Depends(get_feishu_credentials),
    use_cases: SpreadsheetSyncUseCases = Depends(get_sync_use_cases),
) -> FieldDTO:
    """
    Agrega un campo validando el nombre (1-64 caracteres, sin caracteres
    especiales ni espacios en los extremos) y rechazando duplicados.
    """
    kind = body.to_field_kind()
    created = await asyncio.to_thread(
        use_cases.add_field, app_token, table_id, body.field_name, kind, credentials=credentials
    )
    return FieldDTO.from_entity(created)
