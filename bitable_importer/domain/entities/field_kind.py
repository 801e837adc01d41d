"""
Tipos de campo de Feishu Bitable.

El discriminante entero es el `type` que devuelve la API de campos.
"""
from __future__ import annotations

from enum import IntEnum
from typing import Any


class FieldKind(IntEnum):
    """Conjunto cerrado de tipos de campo soportados por el motor."""
    UNSUPPORTED = 0
    TEXT = 1
    NUMBER = 2
    SINGLE_SELECT = 3
    MULTI_SELECT = 4
    DATE = 5
    CHECKBOX = 7
    PERSON = 11
    GROUP = 12
    PHONE = 13
    URL = 15
    ATTACHMENT = 17
    SINGLE_RELATION = 18
    DOUBLE_RELATION = 19
    LOCATION = 22

    @classmethod
    def from_type_code(cls, code: Any) -> "FieldKind":
        """
        Convierte el `type` de Feishu en un FieldKind.

        Los codigos 21 (vinculo duplex) y 23 (grupo de chat) son alias de
        DOUBLE_RELATION y GROUP. Cualquier otro codigo desconocido es
        UNSUPPORTED.
        """
        try:
            value = int(code)
        except (TypeError, ValueError):
            return cls.UNSUPPORTED
        value = _TYPE_CODE_ALIASES.get(value, value)
        try:
            return cls(value)
        except ValueError:
            return cls.UNSUPPORTED

    @property
    def needs_remote_ids(self) -> bool:
        """Tipos que requieren identificadores remotos que el motor no tiene."""
        return self in _REMOTE_ID_KINDS


_TYPE_CODE_ALIASES = {
    21: FieldKind.DOUBLE_RELATION.value,
    23: FieldKind.GROUP.value,
}

_REMOTE_ID_KINDS = frozenset({
    FieldKind.PERSON,
    FieldKind.GROUP,
    FieldKind.ATTACHMENT,
    FieldKind.SINGLE_RELATION,
    FieldKind.DOUBLE_RELATION,
})

# Tipos que se pueden crear desde el importador (agregar campo)
CREATABLE_FIELD_KINDS = frozenset({
    FieldKind.TEXT,
    FieldKind.NUMBER,
    FieldKind.SINGLE_SELECT,
    FieldKind.MULTI_SELECT,
    FieldKind.DATE,
    FieldKind.CHECKBOX,
    FieldKind.PHONE,
    FieldKind.URL,
})
