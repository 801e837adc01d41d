"""
Tests unitarios para la lectura de CSV y Excel.
"""
from __future__ import annotations

import io

import pytest
from openpyxl import Workbook

from bitable_importer.infrastructure.readers import list_sheets, read_rows
from bitable_importer.shared.exceptions import ParamInvalidError


def _xlsx_bytes() -> bytes:
    workbook = Workbook()
    first = workbook.active
    first.title = "Resumen"
    first.append(["Total"])
    first.append(["1"])

    products = workbook.create_sheet("Productos")
    products.append([" 名称 ", "价格", "备注"])
    products.append(["A", 12.5, None])
    products.append([None, None, None])
    products.append(["B", "007", "  "])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestCsv:
    """Tests para archivos CSV."""

    def test_reads_cells_as_text(self) -> None:
        """Verifica que las celdas se leen como texto sin perder ceros."""
        content = "名称,编号,价格\nA,007,12.50\nB,,3\n".encode("utf-8")

        sheet = read_rows(content, "datos.csv")

        assert sheet.columns == ["名称", "编号", "价格"]
        assert sheet.rows == [
            {"名称": "A", "编号": "007", "价格": "12.50"},
            {"名称": "B", "编号": None, "价格": "3"},
        ]
        assert sheet.sheet_name is None

    def test_strips_headers_and_drops_empty_rows(self) -> None:
        """Verifica el recorte de encabezados y el descarte de filas vacías."""
        content = "﻿ 名称 , 价格\n  A  , 1\n,\n".encode("utf-8")

        sheet = read_rows(content, "datos.CSV")

        assert sheet.columns == ["名称", "价格"]
        assert sheet.rows == [{"名称": "A", "价格": "1"}]

    def test_gb18030_fallback(self) -> None:
        """Verifica la lectura de CSV exportados en GB18030."""
        content = "名称,价格\n苹果,5\n".encode("gb18030")

        sheet = read_rows(content, "datos.csv")

        assert sheet.rows == [{"名称": "苹果", "价格": "5"}]

    def test_na_strings_are_kept(self) -> None:
        """Verifica que 'NA' o 'null' no se convierten en vacío."""
        content = "名称\nNA\nnull\n".encode("utf-8")

        sheet = read_rows(content, "datos.csv")

        assert [r["名称"] for r in sheet.rows] == ["NA", "null"]


class TestExcel:
    """Tests para archivos Excel."""

    def test_reads_first_sheet_by_default(self) -> None:
        """Verifica que sin hoja se lee la primera."""
        sheet = read_rows(_xlsx_bytes(), "libro.xlsx")

        assert sheet.sheet_name == "Resumen"
        assert sheet.columns == ["Total"]

    def test_selects_sheet_case_insensitive(self) -> None:
        """Verifica la selección de hoja sin distinguir mayúsculas."""
        sheet = read_rows(_xlsx_bytes(), "libro.xlsx", sheet_name="productos")

        assert sheet.sheet_name == "Productos"
        assert sheet.columns == ["名称", "价格", "备注"]
        assert len(sheet.rows) == 2
        assert sheet.rows[0]["名称"] == "A"
        assert sheet.rows[0]["价格"] == "12.5"
        assert sheet.rows[0]["备注"] is None
        assert sheet.rows[1] == {"名称": "B", "价格": "007", "备注": None}

    def test_unknown_sheet(self) -> None:
        """Verifica el error con las hojas disponibles."""
        with pytest.raises(ParamInvalidError) as exc_info:
            read_rows(_xlsx_bytes(), "libro.xlsx", sheet_name="Inexistente")
        assert exc_info.value.details["available_sheets"] == ["Resumen", "Productos"]

    def test_list_sheets(self) -> None:
        """Verifica el listado de hojas."""
        assert list_sheets(_xlsx_bytes(), "libro.xlsx") == ["Resumen", "Productos"]
        assert list_sheets(b"a\n1\n", "datos.csv") == []


class TestUnsupported:
    """Tests para archivos no soportados o corruptos."""

    @pytest.mark.parametrize("filename", ["notas.txt", "libro.xls", "sin_extension"])
    def test_unsupported_extension(self, filename: str) -> None:
        """Verifica que solo se aceptan .csv, .xlsx y .xlsm."""
        with pytest.raises(ParamInvalidError):
            read_rows(b"data", filename)

    def test_corrupt_excel(self) -> None:
        """Verifica que un Excel ilegible es un error del llamador."""
        with pytest.raises(ParamInvalidError):
            read_rows(b"no es un zip", "libro.xlsx")
