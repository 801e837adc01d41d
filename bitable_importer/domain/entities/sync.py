"""
Entidades de una corrida de sincronizacion: coincidencias de campos,
metadatos de archivo y resultado agregado.
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class CoercionResult:
    """
    Valor convertido y si se uso un valor por defecto.

    `was_fallback` permite reportar problemas de calidad de datos
    (Number -> 0, Date -> ahora, Checkbox -> False) sin lanzar excepciones.
    """

    value: Any
    was_fallback: bool = False


@dataclass(frozen=True)
class FieldMatch:
    """
    Coincidencia entre una columna origen y un campo destino.

    `matched` es True solo si `similarity` supera el umbral de 0.6; en ese
    caso `target_field` es el nombre del campo de Bitable.
    """

    source_column: str
    target_field: Optional[str]
    matched: bool
    similarity: float
    target_field_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FileMetadata:
    """Registro sintetico con los metadatos del archivo subido."""

    file_name: str
    file_size: int
    file_type: str = ""
    file_url: str = ""
    upload_time: str = ""


@dataclass(frozen=True)
class MetadataFieldMap:
    """Campo destino asignado a cada rol de metadatos (o None)."""

    file_name: Optional[str] = None
    file_size: Optional[str] = None
    file_type: Optional[str] = None
    file_url: Optional[str] = None
    upload_time: Optional[str] = None

    def items(self) -> List[tuple]:
        """Pares (rol, campo destino) en orden fijo."""
        return [
            ("file_name", self.file_name),
            ("file_size", self.file_size),
            ("file_type", self.file_type),
            ("file_url", self.file_url),
            ("upload_time", self.upload_time),
        ]

    def is_empty(self) -> bool:
        return all(target is None for _, target in self.items())

    def to_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)


@dataclass
class SyncRunResult:
    """
    Resultado acumulado de una corrida (una tabla destino).

    Se va completando lote a lote; si la corrida se aborta, lo acumulado
    hasta ese momento viaja dentro de SyncAbortedError.
    """

    api_call_count: int = 0
    synced_row_count: int = 0
    failed_row_count: int = 0
    message: str = ""

    dropped_row_count: int = 0
    coercion_fallback_count: int = 0
    chunk_count: int = 0
    chunks_completed: int = 0
    # Filas de lotes no intentados tras un aborto
    remaining_row_count: int = 0
    aborted: bool = False

    table_id: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
