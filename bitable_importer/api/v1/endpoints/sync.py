"""
Endpoints de asociacion de columnas y sincronizacion hacia Bitable.
"""
import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from loguru import logger

from bitable_importer.api.v1.dependencies.client_deps import get_sync_use_cases
from bitable_importer.api.v1.dependencies.credentials_deps import get_feishu_credentials
from bitable_importer.application.dto import (
    FieldMatchDTO,
    MatchRequestDTO,
    MatchResponseDTO,
    RecordsSyncRequestDTO,
    SheetListDTO,
    SyncResultDTO,
)
from bitable_importer.application.use_cases.sync_use_cases import SpreadsheetSyncUseCases
from bitable_importer.infrastructure.external.feishu import FeishuCredentials
from bitable_importer.infrastructure.readers import list_sheets
from bitable_importer.shared.exceptions import ParamInvalidError


router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post(
    "/{app_token}/match",
    response_model=MatchResponseDTO,
    summary="Previsualizar la asociacion columna -> campo"
)
async def preview_matches(
    app_token: str,
    body: MatchRequestDTO,
    credentials: FeishuCredentials = Depends(get_feishu_credentials),
    use_cases: SpreadsheetSyncUseCases = Depends(get_sync_use_cases),
) -> MatchResponseDTO:
    """No escribe en Feishu: solo lista los campos y calcula similitudes."""
    preview = await asyncio.to_thread(
        use_cases.preview_matches,
        app_token,
        body.table_id,
        body.columns,
        with_metadata=body.with_metadata,
        credentials=credentials,
    )
    matches = [FieldMatchDTO.from_entity(m) for m in preview.matches]
    return MatchResponseDTO(
        table_id=preview.table_id,
        matches=matches,
        matched_count=sum(1 for m in matches if m.matched),
        metadata_map=preview.metadata_map.to_dict() if preview.metadata_map else None,
    )


@router.post(
    "/{app_token}/records",
    response_model=SyncResultDTO,
    status_code=status.HTTP_200_OK,
    summary="Sincronizar filas ya leidas"
)
async def sync_records(
    app_token: str,
    body: RecordsSyncRequestDTO,
    credentials: FeishuCredentials = Depends(get_feishu_credentials),
    use_cases: SpreadsheetSyncUseCases = Depends(get_sync_use_cases),
) -> SyncResultDTO:
    """
    Sincroniza filas (columna -> valor) hacia una tabla.

    Si un lote falla por completo responde 502 con el resultado parcial en
    `details`; los lotes ya enviados permanecen en Feishu.
    """
    logger.info(f"Sincronizando {len(body.rows)} fila(s) hacia {app_token}")
    result = await asyncio.to_thread(
        use_cases.sync_table,
        app_token,
        body.table_id,
        body.columns,
        body.rows,
        file_metadata=body.file_metadata.to_entity() if body.file_metadata else None,
        chunk_size=body.chunk_size,
        credentials=credentials,
    )
    return SyncResultDTO.from_entity(result)


@router.post(
    "/{app_token}/upload",
    response_model=SyncResultDTO,
    status_code=status.HTTP_200_OK,
    summary="Subir un CSV / Excel y sincronizar sus filas"
)
async def sync_upload(
    app_token: str,
    file: UploadFile = File(..., description="Archivo .csv, .xlsx o .xlsm"),
    table_id: Optional[str] = Form(None),
    sheet_name: Optional[str] = Form(None),
    file_url: Optional[str] = Form(None, description="URL del archivo si ya fue subido"),
    credentials: FeishuCredentials = Depends(get_feishu_credentials),
    use_cases: SpreadsheetSyncUseCases = Depends(get_sync_use_cases),
) -> SyncResultDTO:
    content = await file.read()
    if not content:
        raise ParamInvalidError("El archivo esta vacio")

    filename = file.filename or "upload"
    logger.info(f"Archivo recibido: {filename} ({len(content)} bytes)")
    result = await asyncio.to_thread(
        use_cases.sync_file,
        app_token,
        content,
        filename,
        table_id=table_id or None,
        sheet_name=sheet_name or None,
        file_url=file_url or None,
        content_type=file.content_type,
        credentials=credentials,
    )
    return SyncResultDTO.from_entity(result)


@router.post(
    "/sheets",
    response_model=SheetListDTO,
    summary="Listar las hojas de un Excel antes de sincronizar"
)
async def upload_sheets(
    file: UploadFile = File(..., description="Archivo .csv, .xlsx o .xlsm"),
) -> SheetListDTO:
    """No requiere credenciales: solo lee el archivo."""
    content = await file.read()
    if not content:
        raise ParamInvalidError("El archivo esta vacio")

    filename = file.filename or "upload"
    sheets = await asyncio.to_thread(list_sheets, content, filename)
    return SheetListDTO(filename=filename, sheets=sheets)
