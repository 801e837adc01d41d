"""
Casos de uso de sincronizacion de hojas de calculo hacia Feishu Bitable.

Flujo de una corrida (una tabla destino):
    listar campos -> asociar columnas -> construir registros -> enviar lotes

Varias tablas destino pueden sincronizarse en paralelo; los lotes de una
misma tabla siempre se envian en secuencia.
"""
from __future__ import annotations

import os
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

from loguru import logger

from bitable_importer.application.interfaces.collaborators import ObjectStorageUploader, RowReader
from bitable_importer.application.services import (
    build_records,
    map_metadata_fields,
    match_columns,
)
from bitable_importer.core.config import settings
from bitable_importer.domain.entities import (
    CREATABLE_FIELD_KINDS,
    BitableTable,
    FieldKind,
    FieldMatch,
    FileMetadata,
    MetadataFieldMap,
    SyncRunResult,
    TargetField,
)
from bitable_importer.infrastructure.external.feishu import (
    BatchSubmitter,
    CancellationToken,
    FeishuClient,
    FeishuCredentials,
)
from bitable_importer.infrastructure.readers.spreadsheet_reader import read_rows
from bitable_importer.shared.exceptions import (
    AppException,
    ParamInvalidError,
    ResourceNotFoundError,
    SyncAbortedError,
)
from bitable_importer.shared.utils.date_utils import format_upload_time


FIELD_NAME_MAX_LENGTH = 64
TABLE_NAME_MAX_LENGTH = 100

_INVALID_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

# Formato numerico por defecto al crear campos Number
_NUMBER_FIELD_PROPERTY = {"formatter": "0.00"}


def validate_field_name(field_name: str) -> str:
    """
    Valida un nombre de campo segun las reglas de Feishu.

    Raises:
        ParamInvalidError: nombre vacio, demasiado largo, con caracteres
            no permitidos o con espacios al inicio/fin
    """
    if not field_name or not field_name.strip():
        raise ParamInvalidError("El nombre del campo no puede estar vacio")
    if len(field_name.strip()) > FIELD_NAME_MAX_LENGTH:
        raise ParamInvalidError(
            f"El nombre del campo no puede superar {FIELD_NAME_MAX_LENGTH} caracteres"
        )
    if _INVALID_NAME_CHARS.search(field_name):
        raise ParamInvalidError("El nombre del campo contiene caracteres no permitidos")
    if field_name != field_name.strip():
        raise ParamInvalidError("El nombre del campo no puede empezar ni terminar con espacios")
    return field_name


@dataclass
class MatchPreview:
    """Coincidencias calculadas sin enviar nada a Feishu."""
    table_id: str
    matches: List[FieldMatch] = field(default_factory=list)
    metadata_map: Optional[MetadataFieldMap] = None
    fields: List[TargetField] = field(default_factory=list)


@dataclass
class TableSyncOutcome:
    """Resultado de una tabla dentro de una sincronizacion multi-tabla."""
    table_id: str
    result: Optional[SyncRunResult] = None
    error: Optional[AppException] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class SpreadsheetSyncUseCases:
    """
    Orquestador de la sincronizacion hoja -> Bitable.

    Uso:
        use_cases = SpreadsheetSyncUseCases(client)
        result = use_cases.sync_table(app_token, None, columns, rows, credentials=creds)
    """

    def __init__(
        self,
        client: FeishuClient,
        submitter: Optional[BatchSubmitter] = None,
        *,
        row_reader: Optional[RowReader] = None,
        uploader: Optional[ObjectStorageUploader] = None,
        max_parallel_tables: Optional[int] = None,
    ) -> None:
        self._client = client
        self._submitter = submitter or BatchSubmitter(client)
        self._row_reader: RowReader = row_reader or read_rows
        self._uploader = uploader
        self._max_parallel_tables = max(1, max_parallel_tables or settings.SYNC_MAX_PARALLEL_TABLES)

    # ------------------------------------------------------------------
    # Esquema
    # ------------------------------------------------------------------

    def list_tables(
        self,
        app_token: str,
        *,
        credentials: Optional[FeishuCredentials] = None,
        skip_cache: bool = False,
    ) -> List[BitableTable]:
        return self._client.list_tables(app_token, credentials=credentials, skip_cache=skip_cache)

    def list_fields(
        self,
        app_token: str,
        table_id: str,
        *,
        credentials: Optional[FeishuCredentials] = None,
        skip_cache: bool = False,
    ) -> List[TargetField]:
        return self._client.list_fields(app_token, table_id, credentials=credentials, skip_cache=skip_cache)

    def resolve_table_id(
        self,
        app_token: str,
        table_id: Optional[str],
        *,
        credentials: Optional[FeishuCredentials] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> str:
        """Tabla indicada o, si falta, la primera tabla de la app."""
        if table_id:
            return table_id
        tables = self._client.list_tables(app_token, credentials=credentials, cancel=cancel)
        if not tables:
            raise ResourceNotFoundError(
                f"La app {app_token} no tiene tablas; cree al menos una",
                details={"app_token": app_token},
            )
        logger.info(f"No se indico tabla, se usa la primera: {tables[0].name} ({tables[0].table_id})")
        return tables[0].table_id

    def add_field(
        self,
        app_token: str,
        table_id: str,
        field_name: str,
        kind: FieldKind = FieldKind.TEXT,
        *,
        credentials: Optional[FeishuCredentials] = None,
    ) -> TargetField:
        """
        Agrega un campo a la tabla validando nombre y duplicados.

        Los campos Number se crean con formato "0.00". La cache de campos de
        la tabla queda invalidada.
        """
        validate_field_name(field_name)
        if kind not in CREATABLE_FIELD_KINDS:
            raise ParamInvalidError(f"No se pueden crear campos de tipo {kind.name}")

        existing = self._client.list_fields(app_token, table_id, credentials=credentials, skip_cache=True)
        lowered = field_name.lower()
        if any(f.name.lower() == lowered for f in existing):
            raise ParamInvalidError(
                f'El campo "{field_name}" ya existe',
                details={"table_id": table_id, "field_name": field_name},
            )

        field_property = dict(_NUMBER_FIELD_PROPERTY) if kind == FieldKind.NUMBER else None
        return self._client.create_field(
            app_token,
            table_id,
            field_name,
            kind,
            field_property=field_property,
            credentials=credentials,
        )

    def create_table(
        self,
        app_token: str,
        name: str,
        *,
        credentials: Optional[FeishuCredentials] = None,
    ) -> BitableTable:
        if not name or not name.strip():
            raise ParamInvalidError("El nombre de la tabla no puede estar vacio")
        if len(name.strip()) > TABLE_NAME_MAX_LENGTH:
            raise ParamInvalidError(
                f"El nombre de la tabla no puede superar {TABLE_NAME_MAX_LENGTH} caracteres"
            )
        return self._client.create_table(app_token, name.strip(), credentials=credentials)

    # ------------------------------------------------------------------
    # Asociacion
    # ------------------------------------------------------------------

    def preview_matches(
        self,
        app_token: str,
        table_id: Optional[str],
        columns: Sequence[str],
        *,
        with_metadata: bool = False,
        credentials: Optional[FeishuCredentials] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> MatchPreview:
        """Calcula las coincidencias columna -> campo sin escribir en Feishu."""
        resolved = self.resolve_table_id(app_token, table_id, credentials=credentials, cancel=cancel)
        fields = self._client.list_fields(app_token, resolved, credentials=credentials, cancel=cancel)
        return MatchPreview(
            table_id=resolved,
            matches=match_columns(columns, fields),
            metadata_map=map_metadata_fields(f.name for f in fields) if with_metadata else None,
            fields=fields,
        )

    # ------------------------------------------------------------------
    # Sincronizacion
    # ------------------------------------------------------------------

    def sync_table(
        self,
        app_token: str,
        table_id: Optional[str],
        columns: Sequence[str],
        rows: Sequence[Mapping[str, Any]],
        *,
        file_metadata: Optional[FileMetadata] = None,
        chunk_size: Optional[int] = None,
        credentials: Optional[FeishuCredentials] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> SyncRunResult:
        """
        Ejecuta una corrida completa hacia una tabla.

        Raises:
            SyncAbortedError: un lote fallo por completo (con resultado parcial)
            FeishuError: fallos al resolver la tabla o listar sus campos
        """
        resolved = self.resolve_table_id(app_token, table_id, credentials=credentials, cancel=cancel)
        fields = self._client.list_fields(app_token, resolved, credentials=credentials, cancel=cancel)

        matches = match_columns(columns, fields)
        built = build_records(rows, matches, fields, file_metadata=file_metadata)

        result = SyncRunResult(
            table_id=resolved,
            dropped_row_count=built.dropped_row_count,
            coercion_fallback_count=built.coercion_fallback_count,
        )
        logger.info(
            f"[{resolved}] Iniciando sincronizacion: {len(rows)} fila(s), "
            f"{len(built.records)} registro(s) a enviar"
        )
        return self._submitter.submit(
            app_token,
            resolved,
            built.records,
            chunk_size,
            credentials=credentials,
            cancel=cancel,
            result=result,
        )

    def sync_tables(
        self,
        app_token: str,
        table_ids: Sequence[str],
        columns: Sequence[str],
        rows: Sequence[Mapping[str, Any]],
        *,
        file_metadata: Optional[FileMetadata] = None,
        chunk_size: Optional[int] = None,
        credentials: Optional[FeishuCredentials] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> List[TableSyncOutcome]:
        """
        Sincroniza las mismas filas hacia varias tablas en paralelo.

        El fallo de una tabla no detiene las demas: cada una reporta su
        propio resultado o error, en el orden recibido.
        """
        if not table_ids:
            raise ParamInvalidError("Se requiere al menos una tabla destino")

        def run(target: str) -> TableSyncOutcome:
            try:
                result = self.sync_table(
                    app_token,
                    target,
                    columns,
                    rows,
                    file_metadata=file_metadata,
                    chunk_size=chunk_size,
                    credentials=credentials,
                    cancel=cancel,
                )
                return TableSyncOutcome(table_id=target, result=result)
            except SyncAbortedError as e:
                return TableSyncOutcome(table_id=target, result=e.result, error=e)
            except AppException as e:
                logger.error(f"[{target}] Sincronizacion fallida: {e.message}")
                return TableSyncOutcome(table_id=target, error=e)

        workers = min(self._max_parallel_tables, len(table_ids))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bitable-sync-") as executor:
            outcomes = list(executor.map(run, table_ids))

        ok = sum(1 for o in outcomes if o.succeeded)
        logger.info(f"Sincronizacion multi-tabla: {ok}/{len(outcomes)} tabla(s) completadas")
        return outcomes

    def sync_file(
        self,
        app_token: str,
        content: bytes,
        filename: str,
        *,
        table_id: Optional[str] = None,
        sheet_name: Optional[str] = None,
        file_url: Optional[str] = None,
        content_type: Optional[str] = None,
        chunk_size: Optional[int] = None,
        credentials: Optional[FeishuCredentials] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> SyncRunResult:
        """
        Lee un archivo de hoja de calculo y sincroniza sus filas junto con
        los metadatos del archivo (nombre, tamano, tipo, enlace, hora).
        """
        sheet = self._row_reader(content, filename, sheet_name)

        if not file_url and self._uploader is not None:
            # La subida es opcional: si falla se sincroniza sin enlace
            try:
                file_url = self._uploader.upload(content, filename)
            except Exception as e:
                logger.warning(f"No se pudo subir {filename} al almacenamiento: {e}")

        metadata = FileMetadata(
            file_name=filename,
            file_size=len(content),
            file_type=content_type or os.path.splitext(filename)[1].lstrip(".").lower(),
            file_url=file_url or "",
            upload_time=format_upload_time(),
        )
        return self.sync_table(
            app_token,
            table_id,
            sheet.columns,
            sheet.rows,
            file_metadata=metadata,
            chunk_size=chunk_size,
            credentials=credentials,
            cancel=cancel,
        )
