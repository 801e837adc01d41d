"""
DTOs de asociacion de columnas y sincronizacion de registros.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from bitable_importer.domain.entities import FieldMatch, FileMetadata, SyncRunResult
from bitable_importer.shared.utils.date_utils import format_upload_time


class MatchRequestDTO(BaseModel):
    """DTO para previsualizar la asociacion columna -> campo."""
    table_id: Optional[str] = Field(None, description="Tabla destino (por defecto la primera)")
    columns: List[str] = Field(..., min_length=1, description="Columnas de la hoja, en orden")
    with_metadata: bool = Field(False, description="Incluir el mapeo de metadatos del archivo")


class FieldMatchDTO(BaseModel):
    """Coincidencia de una columna."""
    source_column: str
    target_field: Optional[str] = None
    target_field_id: Optional[str] = None
    matched: bool
    similarity: float = Field(..., ge=0.0, le=1.0)

    @classmethod
    def from_entity(cls, match: FieldMatch) -> "FieldMatchDTO":
        return cls(
            source_column=match.source_column,
            target_field=match.target_field,
            target_field_id=match.target_field_id,
            matched=match.matched,
            similarity=match.similarity,
        )


class MatchResponseDTO(BaseModel):
    """Resultado de la previsualizacion."""
    table_id: str
    matches: List[FieldMatchDTO]
    matched_count: int
    metadata_map: Optional[Dict[str, Optional[str]]] = None


class FileMetadataDTO(BaseModel):
    """Metadatos del archivo de origen."""
    file_name: str = Field(..., min_length=1)
    file_size: int = Field(..., ge=0, description="Tamano en bytes")
    file_type: str = Field("", description="Tipo MIME o extension")
    file_url: str = Field("", description="URL del archivo ya subido")
    upload_time: Optional[str] = Field(None, description="Hora de subida (por defecto ahora)")

    def to_entity(self) -> FileMetadata:
        return FileMetadata(
            file_name=self.file_name,
            file_size=self.file_size,
            file_type=self.file_type,
            file_url=self.file_url,
            upload_time=self.upload_time or format_upload_time(),
        )


class RecordsSyncRequestDTO(BaseModel):
    """DTO para sincronizar filas ya leidas."""
    table_id: Optional[str] = Field(None, description="Tabla destino (por defecto la primera)")
    columns: List[str] = Field(..., description="Columnas de la hoja, en orden")
    rows: List[Dict[str, Any]] = Field(default_factory=list, description="Filas columna -> valor")
    file_metadata: Optional[FileMetadataDTO] = None
    chunk_size: int = Field(500, ge=1, le=500, description="Registros por llamada batch_create")


class SyncResultDTO(BaseModel):
    """Resultado de una corrida de sincronizacion."""
    table_id: Optional[str] = None
    api_call_count: int
    synced_row_count: int
    failed_row_count: int
    dropped_row_count: int
    coercion_fallback_count: int
    chunk_count: int
    chunks_completed: int
    remaining_row_count: int = 0
    aborted: bool
    message: str
    errors: List[str] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, result: SyncRunResult) -> "SyncResultDTO":
        return cls(**result.to_dict())


class SheetListDTO(BaseModel):
    """Hojas disponibles en un archivo subido."""
    filename: str
    sheets: List[str] = Field(default_factory=list, description="Vacio para CSV (una sola hoja)")
