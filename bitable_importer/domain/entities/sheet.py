"""
Datos de origen leidos de una hoja de calculo.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class SheetData:
    """Columnas (en orden) y filas de una hoja; las celdas vacias son None."""
    columns: List[str] = field(default_factory=list)
    rows: List[Dict[str, Any]] = field(default_factory=list)
    sheet_name: Optional[str] = None
