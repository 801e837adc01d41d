"""
Lectura de hojas de calculo a filas de texto.

Todas las celdas se leen como cadenas: la conversion de tipos la decide el
campo destino de Bitable, no pandas. Las celdas vacias se entregan como None.
"""
from __future__ import annotations

import io
import os
from typing import Dict, List, Optional
from zipfile import BadZipFile

import pandas as pd
from loguru import logger

from bitable_importer.domain.entities import SheetData
from bitable_importer.shared.exceptions import ParamInvalidError


CSV_EXTENSIONS = (".csv",)
EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
SUPPORTED_EXTENSIONS = CSV_EXTENSIONS + EXCEL_EXTENSIONS

# Codificaciones probadas en orden para CSV
_CSV_ENCODINGS = ("utf-8-sig", "gb18030")


def _extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def _read_csv(content: bytes) -> pd.DataFrame:
    last_error: Optional[Exception] = None
    for encoding in _CSV_ENCODINGS:
        try:
            return pd.read_csv(
                io.BytesIO(content),
                dtype=str,
                encoding=encoding,
                keep_default_na=False,
                na_values=[""],
            )
        except UnicodeDecodeError as e:
            last_error = e
    raise ParamInvalidError(f"No se pudo decodificar el CSV: {last_error}")


def _resolve_sheet(sheet_names: List[str], requested: Optional[str]) -> str:
    """Hoja pedida (sin distinguir mayusculas) o la primera."""
    if not sheet_names:
        raise ParamInvalidError("El archivo Excel no contiene hojas")
    if not requested:
        return sheet_names[0]
    wanted = requested.strip().lower()
    for name in sheet_names:
        if name.strip().lower() == wanted:
            return name
    raise ParamInvalidError(
        f"Hoja no encontrada: {requested}",
        details={"available_sheets": sheet_names},
    )


def list_sheets(content: bytes, filename: str) -> List[str]:
    """Nombres de hojas del archivo (un CSV tiene una sola hoja sin nombre)."""
    ext = _extension(filename)
    if ext in CSV_EXTENSIONS:
        return []
    if ext not in EXCEL_EXTENSIONS:
        raise ParamInvalidError(f"Formato de archivo no soportado: {ext or filename}")
    with pd.ExcelFile(io.BytesIO(content), engine="openpyxl") as workbook:
        return [str(name) for name in workbook.sheet_names]


def read_rows(content: bytes, filename: str, sheet_name: Optional[str] = None) -> SheetData:
    """
    Lee un CSV o Excel y retorna sus columnas y filas.

    Args:
        content: Bytes del archivo
        filename: Nombre original (se usa la extension para elegir el lector)
        sheet_name: Hoja a leer en Excel (por defecto la primera)

    Raises:
        ParamInvalidError: extension no soportada, hoja inexistente o
            archivo ilegible
    """
    ext = _extension(filename)
    if ext not in SUPPORTED_EXTENSIONS:
        raise ParamInvalidError(
            f"Formato de archivo no soportado: {ext or filename}",
            details={"supported": list(SUPPORTED_EXTENSIONS)},
        )

    resolved_sheet: Optional[str] = None
    try:
        if ext in CSV_EXTENSIONS:
            df = _read_csv(content)
        else:
            with pd.ExcelFile(io.BytesIO(content), engine="openpyxl") as workbook:
                resolved_sheet = _resolve_sheet([str(n) for n in workbook.sheet_names], sheet_name)
                df = pd.read_excel(workbook, sheet_name=resolved_sheet, dtype=str)
    except ParamInvalidError:
        raise
    except (ValueError, OSError, BadZipFile) as e:
        raise ParamInvalidError(f"No se pudo leer el archivo {filename}: {e}") from e

    df.columns = [str(column).strip() for column in df.columns]
    df = df.dropna(how="all")
    df = df.astype(object).where(pd.notna(df), None)

    rows: List[Dict[str, Optional[str]]] = []
    for record in df.to_dict(orient="records"):
        rows.append({
            column: (value.strip() or None) if isinstance(value, str) else value
            for column, value in record.items()
        })

    logger.info(
        f"Archivo {filename} leido: {len(rows)} fila(s), {len(df.columns)} columna(s)"
        + (f", hoja '{resolved_sheet}'" if resolved_sheet else "")
    )
    return SheetData(columns=list(df.columns), rows=rows, sheet_name=resolved_sheet)
