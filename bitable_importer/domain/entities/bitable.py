"""
Entidades del esquema remoto de Feishu Bitable.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from bitable_importer.domain.entities.field_kind import FieldKind


@dataclass(frozen=True)
class TargetField:
    """Campo de una tabla Bitable tal como lo reporta la API."""

    id: str
    name: str
    kind: FieldKind = FieldKind.UNSUPPORTED

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "TargetField":
        # Algunas respuestas antiguas usan `name` en vez de `field_name`
        name = item.get("field_name") or item.get("name") or ""
        return cls(
            id=str(item.get("field_id") or ""),
            name=str(name),
            kind=FieldKind.from_type_code(item.get("type")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field_id": self.id,
            "field_name": self.name,
            "kind": self.kind.name,
            "type": int(self.kind),
        }


@dataclass(frozen=True)
class BitableTable:
    """Tabla (hoja) dentro de una app Bitable."""

    table_id: str
    name: str
    revision: Optional[int] = None

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "BitableTable":
        return cls(
            table_id=str(item.get("table_id") or ""),
            name=str(item.get("name") or ""),
            revision=item.get("revision"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"table_id": self.table_id, "name": self.name, "revision": self.revision}


@dataclass(frozen=True)
class AccessToken:
    """
    tenant_access_token de corta duracion.

    Nunca se persiste: vive solo en la cache en memoria del proceso.
    `expires_at` es un instante de `time.monotonic()`.
    """

    value: str
    expires_at: float

    def is_fresh(self, margin_s: float, now: Optional[float] = None) -> bool:
        """True si el token sigue vigente con al menos `margin_s` de holgura."""
        current = time.monotonic() if now is None else now
        return current < self.expires_at - margin_s

    def __repr__(self) -> str:
        return f"AccessToken(value='***', expires_at={self.expires_at:.0f})"
