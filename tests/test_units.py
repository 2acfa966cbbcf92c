"""Tests for dimensioned-literal parsing (layout_ingest.units)."""

from __future__ import annotations

import logging

import pytest
from pydantic import BaseModel, ValidationError

from layout_ingest.errors import UnparseableDimensionError
from layout_ingest.units import MIL_TO_MM, Dimension, mil_to_mm, parse_dimension, parse_dimension_strict


class TestParseDimensionStrict:
    """Unit normalization for well-formed literals."""

    def test_millimeters(self) -> None:
        assert parse_dimension_strict("10 mm") == 10.0
        assert parse_dimension_strict("3.104mm") == pytest.approx(3.104)
        assert parse_dimension_strict("5 MM") == 5.0

    def test_mil_is_converted(self) -> None:
        assert parse_dimension_strict("25.4 mil") == pytest.approx(0.64516)
        assert parse_dimension_strict("1000 mils") == pytest.approx(25.4)

    def test_micrometers(self) -> None:
        assert parse_dimension_strict("35 um") == pytest.approx(0.035)
        assert parse_dimension_strict("35 µm") == pytest.approx(0.035)
        assert parse_dimension_strict("35 μm") == pytest.approx(0.035)

    def test_impedance(self) -> None:
        assert parse_dimension_strict("50 Ohm") == 50.0
        assert parse_dimension_strict("75 Ω") == 75.0

    def test_frequency(self) -> None:
        assert parse_dimension_strict("1.5 GHz") == pytest.approx(1.5e9)
        assert parse_dimension_strict("100 MHz") == pytest.approx(1e8)
        assert parse_dimension_strict("10 kHz") == pytest.approx(1e4)
        assert parse_dimension_strict("60 Hz") == 60.0

    def test_scientific_notation(self) -> None:
        assert parse_dimension_strict("2e-4") == pytest.approx(2e-4)
        assert parse_dimension_strict("1.2E3 mm") == pytest.approx(1200.0)

    def test_bare_numbers_pass_through(self) -> None:
        assert parse_dimension_strict("50") == 50.0
        assert parse_dimension_strict("-70") == -70.0
        assert parse_dimension_strict(".5") == 0.5
        assert parse_dimension_strict(3) == 3.0
        assert parse_dimension_strict(0.25) == 0.25

    @pytest.mark.parametrize("literal", ["", "   ", "abc", "mm", "1 furlong", "1.2.3 mm"])
    def test_invalid_literals_raise(self, literal: str) -> None:
        with pytest.raises(UnparseableDimensionError):
            parse_dimension_strict(literal)

    def test_bool_rejected(self) -> None:
        with pytest.raises(UnparseableDimensionError):
            parse_dimension_strict(True)


class TestParseDimension:
    """The lenient parser never raises."""

    def test_valid_literal(self) -> None:
        assert parse_dimension("25.4 mil") == pytest.approx(0.64516)

    def test_unit_round_trip(self) -> None:
        assert abs(parse_dimension(f"{1 / MIL_TO_MM} mil") - parse_dimension("1 mm")) < 1e-6

    def test_bad_literal_defaults_to_zero_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="layout_ingest.units"):
            assert parse_dimension("wide") == 0.0
        assert any("using 0" in record.getMessage() for record in caplog.records)

    def test_none_defaults_to_zero(self) -> None:
        assert parse_dimension(None) == 0.0


def test_mil_to_mm() -> None:
    assert mil_to_mm(100) == pytest.approx(2.54)


class _DimensionModel(BaseModel):
    value: Dimension


class TestDimensionType:
    """The annotated Dimension type inside pydantic models."""

    def test_accepts_strings_and_numbers(self) -> None:
        assert _DimensionModel(value="62 mil").value == pytest.approx(1.5748)
        assert _DimensionModel(value=1.6).value == 1.6

    def test_rejects_bad_literal(self) -> None:
        with pytest.raises(ValidationError):
            _DimensionModel(value="thick")
