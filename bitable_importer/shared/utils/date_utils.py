"""
Utilidades de fechas para la conversion a timestamps de Feishu.

Feishu espera los campos Date como milisegundos desde epoch. Las fechas sin
zona horaria se interpretan en la zona configurada (SYNC_TIMEZONE).
"""
from __future__ import annotations

import math
import re
import time
from datetime import datetime, tzinfo
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from dateutil import parser as dateparser

from bitable_importer.core.config import settings


# Formas compactas: YYYYMMDD, YYYYMMDDHHmm, YYYYMMDDHHmmss
_COMPACT_FORMATS = {
    8: "%Y%m%d",
    12: "%Y%m%d%H%M",
    14: "%Y%m%d%H%M%S",
}

_NUMERIC_RE = re.compile(r"^[+-]?\d+(\.\d+)?$")

# Por debajo de este valor un timestamp se interpreta en segundos
_SECONDS_THRESHOLD = 10 ** 10


@lru_cache(maxsize=16)
def get_timezone(name: Optional[str] = None) -> tzinfo:
    """Zona horaria configurada (cacheada por nombre)."""
    return ZoneInfo(name or settings.SYNC_TIMEZONE)


def now_ms() -> int:
    """Instante actual en milisegundos desde epoch."""
    return int(time.time() * 1000)


def to_epoch_ms(dt: datetime, tz: Optional[tzinfo] = None) -> int:
    """
    Convierte un datetime a milisegundos desde epoch.

    Si el datetime es naive se interpreta en `tz` (por defecto la zona
    configurada).
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz or get_timezone())
    return int(round(dt.timestamp() * 1000))


def is_numeric_string(value: str) -> bool:
    return bool(_NUMERIC_RE.match(value))


def parse_compact_date(value: str) -> Optional[datetime]:
    """
    Parsea fechas compactas de 8, 12 o 14 digitos.

    Retorna None si la cadena no tiene esa forma o no es una fecha valida
    (ej: "20261399").
    """
    if not value.isdigit():
        return None
    fmt = _COMPACT_FORMATS.get(len(value))
    if fmt is None:
        return None
    try:
        return datetime.strptime(value, fmt)
    except ValueError:
        return None


def parse_generic_date(value: str) -> Optional[datetime]:
    """Parseo generico con dateutil ("2026-02-03", "2026/2/3 10:00", ISO8601...)."""
    try:
        return dateparser.parse(value)
    except (ValueError, OverflowError):
        return None


def timestamp_to_ms(value: str) -> Optional[int]:
    """
    Interpreta una cadena numerica como timestamp Unix.

    Valores menores a 10^10 se consideran segundos; el resto milisegundos.
    """
    if not is_numeric_string(value):
        return None
    number = float(value)
    if not math.isfinite(number):
        return None
    if abs(number) < _SECONDS_THRESHOLD:
        return int(round(number * 1000))
    return int(round(number))


def parse_date_to_ms(value: str, tz: Optional[tzinfo] = None) -> Optional[int]:
    """
    Convierte una cadena de fecha a milisegundos, o None si no se reconoce.

    Orden de deteccion: forma compacta, parseo generico (solo cadenas no
    numericas), timestamp Unix.
    """
    text = value.strip()
    if not text:
        return None

    try:
        compact = parse_compact_date(text)
        if compact is not None:
            return to_epoch_ms(compact, tz)

        if not is_numeric_string(text):
            parsed = parse_generic_date(text)
            if parsed is not None:
                return to_epoch_ms(parsed, tz)

        return timestamp_to_ms(text)
    except (OverflowError, ValueError, OSError):
        # Fechas fuera del rango representable por la plataforma
        return None


def format_upload_time(dt: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> str:
    """Fecha de subida legible ("2026-02-03 10:15:00") en la zona configurada."""
    zone = tz or get_timezone()
    current = dt.astimezone(zone) if dt is not None else datetime.now(zone)
    return current.strftime("%Y-%m-%d %H:%M:%S")
