"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .bitable_dto import TableDTO, TableCreateDTO, FieldDTO, FieldCreateDTO
from .sync_dto import (
    MatchRequestDTO,
    FieldMatchDTO,
    MatchResponseDTO,
    FileMetadataDTO,
    RecordsSyncRequestDTO,
    SyncResultDTO,
    SheetListDTO,
)

__all__ = [
    "TableDTO",
    "TableCreateDTO",
    "FieldDTO",
    "FieldCreateDTO",
    "MatchRequestDTO",
    "FieldMatchDTO",
    "MatchResponseDTO",
    "FileMetadataDTO",
    "RecordsSyncRequestDTO",
    "SyncResultDTO",
    "SheetListDTO",
]
