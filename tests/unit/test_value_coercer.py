"""
Tests unitarios para la conversión de valores por tipo de campo.

Cubre:
- Valores vacíos (None, "", espacios) para todos los tipos
- Redondeo half-up de Number y prefijos numéricos
- Fechas compactas, ISO y timestamps
- Valores por defecto marcados con was_fallback
"""
from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo
from unittest.mock import patch

import pytest

from bitable_importer.application.services.value_coercer import coerce, coerce_with_report
from bitable_importer.domain.entities import FieldKind


SHANGHAI = ZoneInfo("Asia/Shanghai")


def _ms(dt: datetime) -> int:
    return int(round(dt.timestamp() * 1000))


class TestEmptyValues:
    """Tests para valores vacíos."""

    @pytest.mark.parametrize("kind", list(FieldKind))
    @pytest.mark.parametrize("raw", [None, "", "   ", float("nan")])
    def test_empty_values_are_omitted_for_every_kind(self, kind: FieldKind, raw) -> None:
        """Verifica que un valor vacío nunca produce valor ni fallback."""
        result = coerce_with_report(raw, kind)
        assert result.value is None
        assert result.was_fallback is False


class TestNumber:
    """Tests para campos Number."""

    def test_rounds_half_up_to_two_decimals(self) -> None:
        """Verifica que 12.345 se redondea a 12.35."""
        assert coerce("12.345", FieldKind.NUMBER) == 12.35

    def test_rounds_half_up_where_binary_float_rounds_down(self) -> None:
        """Verifica que 2.675 da 2.68 (no 2.67 como round())."""
        assert coerce("2.675", FieldKind.NUMBER) == 2.68
        assert coerce(2.675, FieldKind.NUMBER) == 2.68

    def test_negative_values_round_away_from_zero(self) -> None:
        """Verifica el redondeo de negativos."""
        assert coerce("-1.005", FieldKind.NUMBER) == -1.01

    def test_uses_numeric_prefix(self) -> None:
        """Verifica que '12.5kg' se interpreta como 12.5."""
        assert coerce("12.5kg", FieldKind.NUMBER) == 12.5

    def test_native_int_is_converted_to_float(self) -> None:
        """Verifica que un entero nativo se respeta."""
        assert coerce(3, FieldKind.NUMBER) == 3.0

    def test_non_numeric_text_falls_back_to_zero(self) -> None:
        """Verifica que un texto no numérico produce 0 marcado como fallback."""
        result = coerce_with_report("abc", FieldKind.NUMBER)
        assert result.value == 0
        assert result.was_fallback is True

    @pytest.mark.parametrize("raw", ["1e999", "9" * 400, "-1e400", float("inf"), 10 ** 400])
    def test_out_of_range_numbers_fall_back_to_zero(self, raw) -> None:
        """Verifica que un número no finito nunca llega al registro."""
        result = coerce_with_report(raw, FieldKind.NUMBER)
        assert result.value == 0
        assert result.was_fallback is True


class TestMultiSelect:
    """Tests para campos MultiSelect."""

    def test_splits_on_comma_and_trims(self) -> None:
        """Verifica la separación por coma con recorte de espacios."""
        assert coerce("a, b ,c", FieldKind.MULTI_SELECT) == ["a", "b", "c"]

    def test_splits_on_fullwidth_semicolon(self) -> None:
        """Verifica la separación por punto y coma de ancho completo."""
        assert coerce("红；蓝", FieldKind.MULTI_SELECT) == ["红", "蓝"]

    def test_first_delimiter_present_wins(self) -> None:
        """Verifica que solo se usa el delimitador de mayor prioridad presente."""
        assert coerce("a|b,c", FieldKind.MULTI_SELECT) == ["a|b", "c"]

    def test_single_value_and_empty_parts(self) -> None:
        """Verifica valor único y descarte de partes vacías."""
        assert coerce("solo", FieldKind.MULTI_SELECT) == ["solo"]
        assert coerce("a,,b", FieldKind.MULTI_SELECT) == ["a", "b"]


class TestDate:
    """Tests para campos Date (zona por defecto Asia/Shanghai)."""

    def test_compact_date_uses_configured_timezone(self) -> None:
        """Verifica que '20260203' es medianoche en Asia/Shanghai."""
        expected = _ms(datetime(2026, 2, 3, tzinfo=SHANGHAI))
        assert coerce("20260203", FieldKind.DATE) == expected

    def test_compact_date_with_minutes(self) -> None:
        """Verifica la forma compacta de 12 dígitos."""
        expected = _ms(datetime(2026, 2, 3, 12, 30, tzinfo=SHANGHAI))
        assert coerce("202602031230", FieldKind.DATE) == expected

    def test_generic_date_string(self) -> None:
        """Verifica una fecha con guiones y hora."""
        expected = _ms(datetime(2026, 2, 3, 10, 0, tzinfo=SHANGHAI))
        assert coerce("2026-02-03 10:00:00", FieldKind.DATE) == expected

    def test_aware_iso_string_keeps_its_offset(self) -> None:
        """Verifica que un ISO con zona no se reinterpreta."""
        expected = _ms(datetime(2026, 2, 3, 10, 0, tzinfo=ZoneInfo("UTC")))
        assert coerce("2026-02-03T10:00:00+00:00", FieldKind.DATE) == expected

    def test_unix_seconds_and_milliseconds(self) -> None:
        """Verifica timestamps en segundos y en milisegundos."""
        assert coerce("1704268800", FieldKind.DATE) == 1704268800000
        assert coerce("1704268800000", FieldKind.DATE) == 1704268800000

    def test_invalid_compact_date_is_read_as_timestamp(self) -> None:
        """Verifica que '20261399' no es fecha compacta y se trata como segundos."""
        result = coerce_with_report("20261399", FieldKind.DATE)
        assert result.value == 20261399000
        assert result.was_fallback is False

    def test_unparseable_date_falls_back_to_now(self) -> None:
        """Verifica que una fecha ilegible usa ahora y se marca como fallback."""
        with patch(
            "bitable_importer.application.services.value_coercer.now_ms",
            return_value=123456,
        ):
            result = coerce_with_report("xyz", FieldKind.DATE)
        assert result.value == 123456
        assert result.was_fallback is True

    @pytest.mark.parametrize("raw", ["9" * 400, "9" * 309 + ".5"])
    def test_huge_timestamp_falls_back_to_now(self, raw: str) -> None:
        """Verifica que un timestamp fuera de rango no lanza excepción."""
        with patch(
            "bitable_importer.application.services.value_coercer.now_ms",
            return_value=123456,
        ):
            result = coerce_with_report(raw, FieldKind.DATE)
        assert result.value == 123456
        assert result.was_fallback is True


class TestCheckbox:
    """Tests para campos Checkbox."""

    @pytest.mark.parametrize("raw", ["true", "是", "Yes", "1", "✓", "✅", "checked"])
    def test_truthy_values(self, raw: str) -> None:
        """Verifica los valores reconocidos como verdaderos."""
        assert coerce(raw, FieldKind.CHECKBOX) is True

    @pytest.mark.parametrize("raw", ["false", "否", "NO", "0", "❌"])
    def test_falsy_values_are_not_fallbacks(self, raw: str) -> None:
        """Verifica los valores reconocidos como falsos."""
        result = coerce_with_report(raw, FieldKind.CHECKBOX)
        assert result.value is False
        assert result.was_fallback is False

    def test_unknown_value_is_false_fallback(self) -> None:
        """Verifica que un valor desconocido produce False marcado."""
        result = coerce_with_report("maybe", FieldKind.CHECKBOX)
        assert result.value is False
        assert result.was_fallback is True


class TestOtherKinds:
    """Tests para Phone, Url, Location y tipos de texto."""

    def test_phone_removes_whitespace(self) -> None:
        """Verifica que se eliminan los espacios internos del teléfono."""
        assert coerce("138 0013 8000", FieldKind.PHONE) == "13800138000"

    def test_url_with_scheme_becomes_link_object(self) -> None:
        """Verifica el objeto {text, link} para URLs http(s)."""
        url = "https://example.com/a.xlsx"
        assert coerce(url, FieldKind.URL) == {"text": url, "link": url}

    def test_url_without_scheme_stays_text(self) -> None:
        """Verifica que un enlace sin esquema se envía como texto."""
        assert coerce("www.example.com", FieldKind.URL) == "www.example.com"

    def test_location_is_normalized(self) -> None:
        """Verifica la normalización 'lon,lat'."""
        assert coerce("116.397, 39.908", FieldKind.LOCATION) == "116.397,39.908"
        assert coerce("116，39", FieldKind.LOCATION) == "116,39"

    def test_invalid_location_stays_text(self) -> None:
        """Verifica que una ubicación inválida se conserva como texto."""
        assert coerce("abc", FieldKind.LOCATION) == "abc"
        assert coerce("1,2,3", FieldKind.LOCATION) == "1,2,3"

    def test_remote_id_kinds_are_sent_as_text(self) -> None:
        """Verifica que Person / Attachment se envían como texto recortado."""
        assert coerce(" ou_123 ", FieldKind.PERSON) == "ou_123"
        assert coerce("file.png", FieldKind.ATTACHMENT) == "file.png"

    def test_text_and_unsupported_are_trimmed(self) -> None:
        """Verifica Text y tipos no soportados."""
        assert coerce("  hola ", FieldKind.TEXT) == "hola"
        assert coerce(42, FieldKind.TEXT) == "42"
        assert coerce(" x ", FieldKind.UNSUPPORTED) == "x"
