"""
DTOs del esquema de Bitable (tablas y campos).
"""
from typing import Optional
from pydantic import BaseModel, Field

from bitable_importer.domain.entities import BitableTable, FieldKind, TargetField
from bitable_importer.shared.exceptions import ParamInvalidError


class TableDTO(BaseModel):
    """Tabla de una app Bitable."""
    table_id: str = Field(..., description="ID de la tabla")
    name: str = Field(..., description="Nombre de la tabla")
    revision: Optional[int] = Field(None, description="Revision reportada por Feishu")

    @classmethod
    def from_entity(cls, table: BitableTable) -> "TableDTO":
        return cls(table_id=table.table_id, name=table.name, revision=table.revision)


class TableCreateDTO(BaseModel):
    """DTO para crear una tabla."""
    name: str = Field(..., min_length=1, max_length=100, description="Nombre de la nueva tabla")


class FieldDTO(BaseModel):
    """Campo de una tabla Bitable."""
    field_id: str = Field(..., description="ID del campo")
    field_name: str = Field(..., description="Nombre del campo")
    kind: str = Field(..., description="Tipo de campo (TEXT, NUMBER, DATE...)")
    type: int = Field(..., description="Codigo de tipo de Feishu")

    @classmethod
    def from_entity(cls, target: TargetField) -> "FieldDTO":
        return cls(
            field_id=target.id,
            field_name=target.name,
            kind=target.kind.name,
            type=int(target.kind),
        )


class FieldCreateDTO(BaseModel):
    """DTO para agregar un campo a una tabla."""
    field_name: str = Field(..., description="Nombre del campo (1-64 caracteres)")
    field_kind: str = Field("text", description="Tipo: text, number, single_select, date, checkbox...")

    def to_field_kind(self) -> FieldKind:
        """Convierte `field_kind` (nombre o codigo) en FieldKind."""
        raw = self.field_kind.strip()
        if raw.isdigit():
            kind = FieldKind.from_type_code(raw)
            if kind != FieldKind.UNSUPPORTED:
                return kind
        else:
            try:
                return FieldKind[raw.upper()]
            except KeyError:
                pass
        raise ParamInvalidError(f"Tipo de campo desconocido: {self.field_kind}")
