"""
Entidades del dominio.
"""
from bitable_importer.domain.entities.field_kind import FieldKind, CREATABLE_FIELD_KINDS
from bitable_importer.domain.entities.bitable import AccessToken, BitableTable, TargetField
from bitable_importer.domain.entities.sheet import SheetData
from bitable_importer.domain.entities.sync import (
    CoercionResult,
    FieldMatch,
    FileMetadata,
    MetadataFieldMap,
    SyncRunResult,
)

__all__ = [
    "FieldKind",
    "CREATABLE_FIELD_KINDS",
    "AccessToken",
    "BitableTable",
    "TargetField",
    "CoercionResult",
    "FieldMatch",
    "FileMetadata",
    "MetadataFieldMap",
    "SyncRunResult",
    "SheetData",
]
