"""Sonnet project (.son) parser.

The file has implicit sections. Geometry lives between ``GEO`` and
``END GEO``; metal polygons are only read inside a metal block opened by a
``TMET`` line and closed by a line containing ``BMET`` (or by ``END GEO``).
Dielectric and port records are accepted anywhere in the file.

Coordinates are converted to millimeters using the unit declared by the last
``DIM`` record. A simulation ``BOX`` seen before any ``DIM`` falls back to a
heuristic: an x span above ``IngestConfig.sonnet_mil_span_threshold`` raw
units means mils.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

from ..detect import LayoutFormat
from ..errors import MalformedRecordError
from ..geometry import DEFAULT_PORT_IMPEDANCE_OHM, PolygonConductor, Port
from ..units import MIL_TO_MM
from .base import LayoutParser, to_float

if TYPE_CHECKING:
    from ..config import IngestConfig
    from ..geometry import Geometry

logger = logging.getLogger(__name__)

BOX_MIN_TOKENS = 8
POLYGON_HEADER_TOKENS = 6
DIELECTRIC_MIN_TOKENS = 6
PORT_MIN_TOKENS = 4
DEFAULT_METAL_LEVEL = 1

POLYGON_KEYWORDS = frozenset({"POL", "POLY"})
DIELECTRIC_KEYWORDS = frozenset({"DI", "DIE"})
PORT_KEYWORDS = frozenset({"PORT", "TPORT"})


class SonnetParser(LayoutParser):
    layout_format: ClassVar[LayoutFormat] = LayoutFormat.SONNET
    log: ClassVar[logging.Logger] = logger

    def reset(self) -> None:
        self.in_geometry = False
        self.in_metal = False
        self.metal_level = 0
        self.length_scale = 1.0
        self.unit_declared = False

    def parse_line(self, line: str, lineno: int) -> None:
        if line == "GEO":
            self.in_geometry = True
            return
        if line == "END GEO":
            self.in_geometry = False
            self.in_metal = False
            return

        tokens = line.split()
        keyword = tokens[0]
        if self.in_geometry:
            self._parse_geometry_record(line, tokens, lineno)
        if keyword in DIELECTRIC_KEYWORDS:
            self._parse_dielectric(tokens)
        elif keyword in PORT_KEYWORDS:
            self._parse_port(tokens, lineno)

    def _parse_geometry_record(self, line: str, tokens: list[str], lineno: int) -> None:
        keyword = tokens[0]
        if keyword == "DIM":
            self._parse_units(line)
        elif keyword == "TMET":
            self.in_metal = True
            self.metal_level = self._metal_level(tokens, lineno)
        elif keyword == "BOX":
            self._parse_box(tokens, lineno)
        elif keyword in POLYGON_KEYWORDS:
            if self.in_metal:
                self._parse_polygon(tokens)
            else:
                self.log.debug("line %d: polygon outside a metal block ignored", lineno)
        elif keyword == "LORGN":
            self._parse_origin(tokens)
        elif "BMET" in line:
            self.in_metal = False

    def _parse_units(self, line: str) -> None:
        self.unit_declared = True
        if "MM" in line:
            self.length_scale = 1.0
        else:
            self.length_scale = MIL_TO_MM
        self.log.debug("Sonnet length unit: %s", "MM" if self.length_scale == 1.0 else "MIL")

    def _metal_level(self, tokens: list[str], lineno: int) -> int:
        if len(tokens) < 3:
            return DEFAULT_METAL_LEVEL
        try:
            return int(float(tokens[2]))
        except ValueError:
            self.builder.warn(f"TMET level {tokens[2]!r} is not a number, using {DEFAULT_METAL_LEVEL}", line=lineno)
            return DEFAULT_METAL_LEVEL

    def _parse_box(self, tokens: list[str], lineno: int) -> None:
        if len(tokens) < BOX_MIN_TOKENS:
            self.builder.warn(f"BOX record has {len(tokens)} tokens, expected at least {BOX_MIN_TOKENS}", line=lineno)
            return
        xmin, ymin, xmax, ymax = (to_float(token, "BOX coordinate") for token in tokens[1:5])
        if self.unit_declared:
            scale = self.length_scale
        elif abs(xmax - xmin) > self.config.sonnet_mil_span_threshold:
            scale = MIL_TO_MM
        else:
            scale = 1.0
        xmin, ymin, xmax, ymax = (value * scale for value in (xmin, ymin, xmax, ymax))
        self.builder.bounds.include_rect(min(xmin, xmax), max(xmin, xmax), min(ymin, ymax), max(ymin, ymax))

    def _parse_polygon(self, tokens: list[str]) -> None:
        if len(tokens) < POLYGON_HEADER_TOKENS:
            raise MalformedRecordError(f"{tokens[0]} record has {len(tokens)} tokens")
        count = to_float(tokens[3], f"{tokens[0]} vertex count")
        if count < 1 or count != int(count):
            raise MalformedRecordError(f"{tokens[0]} vertex count {tokens[3]!r} is invalid")
        count = int(count)
        needed = POLYGON_HEADER_TOKENS + 2 * count
        if len(tokens) < needed:
            raise MalformedRecordError(f"{tokens[0]} declares {count} vertices but has {len(tokens)} of {needed} tokens")

        coords = [to_float(token, "vertex coordinate") * self.length_scale for token in tokens[6:needed]]
        vertices = tuple(zip(coords[0::2], coords[1::2]))
        self.builder.add_conductor(
            PolygonConductor(id=self.builder.next_conductor_id, vertices=vertices, metal_level=self.metal_level)
        )

    def _parse_origin(self, tokens: list[str]) -> None:
        if len(tokens) < 3:
            raise MalformedRecordError("LORGN record requires x and y")
        x = to_float(tokens[1], "LORGN x")
        y = to_float(tokens[2], "LORGN y")
        self.builder.origin = (x * self.length_scale, y * self.length_scale)

    def _parse_dielectric(self, tokens: list[str]) -> None:
        if len(tokens) < DIELECTRIC_MIN_TOKENS:
            raise MalformedRecordError(f"{tokens[0]} record has {len(tokens)} tokens, expected {DIELECTRIC_MIN_TOKENS}")
        er = to_float(tokens[2], "dielectric er")
        tand = to_float(tokens[5], "dielectric tand")
        defaults = self.config.substrate  # record carries no height or thickness
        self.builder.set_substrate(er=er, h=defaults.h, t=defaults.t, tand=tand)

    def _parse_port(self, tokens: list[str], lineno: int) -> None:
        if len(tokens) < PORT_MIN_TOKENS:
            raise MalformedRecordError(f"{tokens[0]} record requires number, x and y")
        number = int(to_float(tokens[1], f"{tokens[0]} number"))
        x = to_float(tokens[2], f"{tokens[0]} x") * self.length_scale
        y = to_float(tokens[3], f"{tokens[0]} y") * self.length_scale
        impedance = DEFAULT_PORT_IMPEDANCE_OHM
        if len(tokens) > PORT_MIN_TOKENS:
            impedance = self.builder.dimension(tokens[4], what=f"{tokens[0]} {number} impedance", line=lineno)
            if impedance <= 0:
                impedance = DEFAULT_PORT_IMPEDANCE_OHM

        self.builder.add_port(
            Port(
                id=self.builder.next_port_id,
                name=f"P{number}",
                position=(x, y),
                impedance=impedance,
                type="lumped",
                number=number,
            )
        )


def parse_sonnet_layout(path: Path | str, config: IngestConfig | None = None) -> Geometry:
    """Parse a Sonnet project file into a Geometry.

    Raises:
        LayoutFileNotFoundError: If the file does not exist.
        LayoutFileUnreadableError: If the file cannot be opened.
    """
    return SonnetParser(config).parse(Path(path))
