"""
Lectores de archivos de origen (CSV / Excel).
"""
from bitable_importer.infrastructure.readers.spreadsheet_reader import (
    SUPPORTED_EXTENSIONS,
    SheetData,
    list_sheets,
    read_rows,
)

__all__ = ["SUPPORTED_EXTENSIONS", "SheetData", "list_sheets", "read_rows"]
