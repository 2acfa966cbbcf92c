"""Dimensioned-literal parsing for layout records.

Layout formats write values such as ``"3.104 mm"``, ``"35 µm"``, ``"50 Ω"``,
``"1 GHz"`` or ``"2e-4"``. Everything is normalized to a single canonical
unit per quantity:

- lengths to millimeters (``mil`` x 0.0254, micrometers / 1000)
- impedance to ohms
- frequency to hertz

Bare numbers pass through unchanged. :func:`parse_dimension` never raises; a
bad literal yields ``0.0`` and a logged warning so one broken field cannot
abort a parse. :func:`parse_dimension_strict` raises instead, for callers
that want to record the failure themselves.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Annotated

from pydantic import BeforeValidator, WithJsonSchema

from .errors import UnparseableDimensionError

logger = logging.getLogger(__name__)

MIL_TO_MM = 0.0254

_DIMENSION_RE = re.compile(
    r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)\s*([^\s\d.+-]\S*)?\s*$"
)

# unit -> scale to canonical unit (mm, ohm, Hz)
_UNIT_SCALES: dict[str, float] = {
    "mm": 1.0,
    "mil": MIL_TO_MM,
    "mils": MIL_TO_MM,
    "um": 1e-3,
    "µm": 1e-3,  # micro sign
    "μm": 1e-3,  # greek mu
    "ohm": 1.0,
    "ohms": 1.0,
    "ω": 1.0,  # lower-cased omega / ohm sign
    "hz": 1.0,
    "khz": 1e3,
    "mhz": 1e6,
    "ghz": 1e9,
}

_DIMENSION_JSON_SCHEMA = {
    "anyOf": [
        {"type": "number"},
        {
            "type": "string",
            "pattern": r"^\s*[+-]?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?\s*(mm|mil|um|µm|ohm|Ω|Hz|kHz|MHz|GHz)?\s*$",
        },
    ],
    "title": "Dimension",
    "description": "Number, or string with mm/mil/um/ohm/Hz/kHz/MHz/GHz units (lengths normalized to mm).",
}


def mil_to_mm(value: float) -> float:
    """Convert thousandths of an inch to millimeters."""
    return value * MIL_TO_MM


def parse_dimension_strict(value: str | int | float) -> float:
    """Parse a dimensioned literal to its canonical unit.

    Accepts:
      - int/float: returned as float
      - "10 mm", "10mm": 10.0
      - "25.4 mil": 0.64516
      - "35 µm", "35 um": 0.035
      - "50 Ω", "50 Ohm": 50.0
      - "1.5 GHz": 1.5e9, "100 MHz": 1e8
      - "2e-4": 0.0002

    Raises:
        UnparseableDimensionError: If the literal is empty, non-numeric or
            carries an unknown unit.
    """
    if isinstance(value, bool):
        raise UnparseableDimensionError("Dimension does not accept boolean values.")
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        raise UnparseableDimensionError(f"Unsupported dimension value: {value!r}")
    text = value.strip()
    if not text:
        raise UnparseableDimensionError("Dimension requires a numeric value.")
    match = _DIMENSION_RE.match(text)
    if not match:
        raise UnparseableDimensionError(f"Could not parse dimension {value!r}")
    number_text, unit = match.groups()
    number = float(_decimal_from_number(number_text))
    if not unit:
        return number
    scale = _UNIT_SCALES.get(unit.lower())
    if scale is None:
        raise UnparseableDimensionError(f"Unknown unit {unit!r} in dimension {value!r}")
    return number * scale


def parse_dimension(value: str | int | float | None) -> float:
    """Parse a dimensioned literal, defaulting to ``0.0`` on failure.

    See :func:`parse_dimension_strict` for the accepted grammar.
    """
    if value is None:
        logger.warning("Could not parse empty dimension, using 0")
        return 0.0
    try:
        return parse_dimension_strict(value)
    except UnparseableDimensionError as exc:
        logger.warning("%s, using 0", exc)
        return 0.0


def _decimal_from_number(text: str) -> Decimal:
    try:
        return Decimal(text)
    except InvalidOperation as exc:
        raise UnparseableDimensionError(f"Invalid numeric value: {text!r}") from exc


Dimension = Annotated[float, BeforeValidator(parse_dimension_strict), WithJsonSchema(_DIMENSION_JSON_SCHEMA)]
