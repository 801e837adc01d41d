"""
Construccion de registros de Bitable a partir de filas de la hoja.

Combina las coincidencias de columnas, el mapeo de metadatos y la conversion
por tipo de campo. Los nombres de campo de cada registro son siempre un
subconjunto de los campos actuales de la tabla.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from bitable_importer.application.services.metadata_mapper import map_metadata_fields
from bitable_importer.application.services.value_coercer import coerce_with_report
from bitable_importer.domain.entities import (
    CoercionResult,
    FieldKind,
    FieldMatch,
    FileMetadata,
    MetadataFieldMap,
    TargetField,
)
from bitable_importer.shared.utils.date_utils import now_ms


SourceRow = Mapping[str, Any]
TargetRecord = Dict[str, Any]


@dataclass
class RecordBuildResult:
    """Registros listos para enviar y estadisticas de la construccion."""
    records: List[TargetRecord] = field(default_factory=list)
    dropped_row_count: int = 0
    coercion_fallback_count: int = 0


def format_file_size(size_bytes: int) -> str:
    """Tamano legible: "512 B", "12.50 KB", "3.00 MB"."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.2f} KB"
    return f"{size_bytes / (1024 * 1024):.2f} MB"


def _metadata_raw_values(metadata: FileMetadata) -> Dict[str, Any]:
    return {
        "file_name": metadata.file_name,
        "file_size": format_file_size(metadata.file_size),
        "file_type": metadata.file_type,
        "file_url": metadata.file_url,
        "upload_time": metadata.upload_time,
    }


def _build_metadata_fields(
    metadata: FileMetadata,
    metadata_map: MetadataFieldMap,
    kinds: Dict[str, FieldKind],
) -> Dict[str, CoercionResult]:
    """
    Valores convertidos de los roles de metadatos, por nombre de campo.

    La hora de subida sobre un campo Date usa siempre "ahora" en ms.
    """
    raw_values = _metadata_raw_values(metadata)
    converted: Dict[str, CoercionResult] = {}

    for role, target in metadata_map.items():
        if target is None:
            continue
        if target not in kinds:
            logger.warning(f"Campo de metadatos '{target}' no existe en la tabla, se omite")
            continue
        kind = kinds[target]
        if role == "upload_time" and kind == FieldKind.DATE:
            converted[target] = CoercionResult(now_ms())
        else:
            converted[target] = coerce_with_report(raw_values[role], kind)
    return converted


def build_records(
    rows: Sequence[SourceRow],
    field_matches: Sequence[FieldMatch],
    schema: Sequence[TargetField],
    *,
    file_metadata: Optional[FileMetadata] = None,
    metadata_map: Optional[MetadataFieldMap] = None,
) -> RecordBuildResult:
    """
    Convierte filas origen en registros de Bitable.

    Args:
        rows: Filas de la hoja (columna -> valor crudo)
        field_matches: Coincidencias columna -> campo (las no asociadas se ignoran)
        schema: Campos actuales de la tabla destino
        file_metadata: Metadatos del archivo subido (opcional)
        metadata_map: Asignacion de roles de metadatos; si falta y hay
            metadatos, se calcula a partir del esquema

    Returns:
        RecordBuildResult con los registros y los contadores de filas
        descartadas y valores por defecto usados.

    Sin filas pero con metadatos se genera un unico registro de metadatos.
    """
    kinds = {f.name: f.kind for f in schema}
    result = RecordBuildResult()

    active_matches = []
    for match in field_matches:
        if not match.matched or match.target_field is None:
            continue
        if match.target_field not in kinds:
            logger.warning(
                f"Campo '{match.target_field}' no existe en el esquema actual, "
                f"se ignora la columna '{match.source_column}'"
            )
            continue
        active_matches.append(match)

    metadata_fields: Dict[str, CoercionResult] = {}
    if file_metadata is not None:
        if metadata_map is None:
            metadata_map = map_metadata_fields(f.name for f in schema)
        metadata_fields = _build_metadata_fields(file_metadata, metadata_map, kinds)

    source_rows: Sequence[SourceRow] = rows
    if not rows and metadata_fields:
        source_rows = [{}]

    for index, row in enumerate(source_rows, start=1):
        record: TargetRecord = {}
        fallbacks = 0

        # Primero metadatos; las columnas asociadas los sobrescriben
        for target, converted in metadata_fields.items():
            if converted.value is not None:
                record[target] = converted.value
                fallbacks += int(converted.was_fallback)

        for match in active_matches:
            converted = coerce_with_report(row.get(match.source_column), kinds[match.target_field])
            if converted.value is None:
                continue
            record[match.target_field] = converted.value
            fallbacks += int(converted.was_fallback)

        if not record:
            logger.warning(f"Fila {index} sin campos asociados, se descarta")
            result.dropped_row_count += 1
            continue

        result.records.append(record)
        result.coercion_fallback_count += fallbacks

    logger.info(
        f"Registros construidos: {len(result.records)} "
        f"(descartados: {result.dropped_row_count}, "
        f"valores por defecto: {result.coercion_fallback_count})"
    )
    return result
