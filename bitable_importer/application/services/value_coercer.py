"""
Conversion de valores crudos de la hoja de calculo al formato que espera
cada tipo de campo de Feishu Bitable.

Ninguna rama lanza excepciones: una celda mal formada nunca debe abortar
el lote completo. Cuando se usa un valor por defecto (Number -> 0,
Date -> ahora, Checkbox -> False) el resultado lo indica con
`was_fallback` para poder reportarlo como problema de calidad de datos.
"""
from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from bitable_importer.domain.entities import CoercionResult, FieldKind
from bitable_importer.shared.utils.date_utils import now_ms, parse_date_to_ms


# Delimitadores de MultiSelect, en orden de prioridad
MULTI_SELECT_DELIMITERS = (",", "，", ";", "；", "|")

CHECKBOX_TRUE_VALUES = frozenset({"true", "是", "yes", "1", "✓", "✅", "check", "checked"})
CHECKBOX_FALSE_VALUES = frozenset({"false", "否", "no", "0", "✗", "❌", "uncheck", "unchecked"})

# Prefijo numerico al estilo parseFloat: "12.5kg" -> 12.5
_NUMBER_PREFIX_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")
_LOCATION_SPLIT_RE = re.compile(r"[,，]")
_WHITESPACE_RE = re.compile(r"\s+")

_TWO_PLACES = Decimal("0.01")

CoercedValue = Union[str, float, int, bool, List[str], Dict[str, str], None]


def _to_text(raw: Any) -> Optional[str]:
    """Cadena recortada o None si el valor esta vacio."""
    if raw is None:
        return None
    if isinstance(raw, float) and math.isnan(raw):
        return None
    text = str(raw).strip()
    return text or None


def _round_half_up(number_text: str) -> float:
    try:
        return float(Decimal(number_text).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        # Magnitudes fuera de la precision de Decimal
        return round(float(number_text), 2)


def _coerce_number(raw: Any, text: str) -> CoercionResult:
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        number_text = repr(raw)
    else:
        match = _NUMBER_PREFIX_RE.match(text)
        if match is None:
            logger.warning(f"Valor no numerico '{text}', se usa 0")
            return CoercionResult(0, was_fallback=True)
        number_text = match.group(0)
    try:
        number = _round_half_up(number_text)
    except (OverflowError, ValueError):
        number = math.inf
    if not math.isfinite(number):
        # JSON no admite inf ni nan
        logger.warning(f"Valor numerico fuera de rango '{text[:40]}', se usa 0")
        return CoercionResult(0, was_fallback=True)
    return CoercionResult(number)


def _coerce_multi_select(text: str) -> List[str]:
    for delimiter in MULTI_SELECT_DELIMITERS:
        if delimiter in text:
            return [part.strip() for part in text.split(delimiter) if part.strip()]
    return [text]


def _coerce_date(text: str) -> CoercionResult:
    millis = parse_date_to_ms(text)
    if millis is None:
        logger.warning(f"No se pudo interpretar la fecha '{text}', se usa la hora actual")
        return CoercionResult(now_ms(), was_fallback=True)
    return CoercionResult(millis)


def _coerce_checkbox(text: str) -> CoercionResult:
    lowered = text.lower()
    if lowered in CHECKBOX_TRUE_VALUES:
        return CoercionResult(True)
    if lowered in CHECKBOX_FALSE_VALUES:
        return CoercionResult(False)
    return CoercionResult(False, was_fallback=True)


def _coerce_url(text: str) -> Union[str, Dict[str, str]]:
    if text.startswith("http://") or text.startswith("https://"):
        return {"text": text, "link": text}
    return text


def _format_coordinate(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _coerce_location(text: str) -> str:
    parts = _LOCATION_SPLIT_RE.split(text)
    if len(parts) != 2:
        return text
    try:
        lon, lat = float(parts[0].strip()), float(parts[1].strip())
    except ValueError:
        return text
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return text
    return f"{_format_coordinate(lon)},{_format_coordinate(lat)}"


def coerce_with_report(raw: Any, kind: FieldKind) -> CoercionResult:
    """
    Convierte `raw` segun `kind` e indica si se uso un valor por defecto.

    None, cadena vacia o solo espacios producen siempre `CoercionResult(None)`.
    """
    text = _to_text(raw)
    if text is None:
        return CoercionResult(None)

    if kind == FieldKind.NUMBER:
        return _coerce_number(raw, text)
    if kind == FieldKind.MULTI_SELECT:
        return CoercionResult(_coerce_multi_select(text))
    if kind == FieldKind.DATE:
        return _coerce_date(text)
    if kind == FieldKind.CHECKBOX:
        return _coerce_checkbox(text)
    if kind == FieldKind.PHONE:
        return CoercionResult(_WHITESPACE_RE.sub("", text))
    if kind == FieldKind.URL:
        return CoercionResult(_coerce_url(text))
    if kind == FieldKind.LOCATION:
        return CoercionResult(_coerce_location(text))
    if kind.needs_remote_ids:
        # Requiere IDs de Feishu (usuarios, adjuntos, registros) que no tenemos
        logger.warning(f"El tipo {kind.name} requiere identificadores remotos; se envia como texto")
        return CoercionResult(text)

    # TEXT, SINGLE_SELECT y UNSUPPORTED
    return CoercionResult(text)


def coerce(raw: Any, kind: FieldKind) -> CoercedValue:
    """Convierte `raw` al valor que espera un campo de tipo `kind`."""
    return coerce_with_report(raw, kind).value
