"""KiCad board (.kicad_pcb) parser.

The board is an S-expression tree, but only a handful of constructs matter
for conductor, port and substrate extraction, and KiCad writes each of them
on a predictable line. The file is therefore read whole, split into lines and
pattern-matched per keyword rather than parsed recursively:

- ``(segment (start x y) (end x y) (width w) (layer "L") ...)`` -> trace
- ``(via (at x y) (size d) (drill d) ...)`` -> via
- ``(stackup ...)`` block -> substrate (er, h, t, tand)
- ``(footprint "Name" ... (at x y))`` with a connector keyword -> port

Polygons and zones span many lines with irregular nesting; they are counted
and reported but never converted to conductors.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import IO, TYPE_CHECKING, ClassVar

from ..detect import LayoutFormat
from ..errors import MalformedRecordError
from ..geometry import DEFAULT_PORT_IMPEDANCE_OHM, Port, TraceConductor, ViaConductor
from .base import LayoutParser

if TYPE_CHECKING:
    from ..config import IngestConfig
    from ..geometry import Geometry

logger = logging.getLogger(__name__)

DEFAULT_LAYER = "F.Cu"
DEFAULT_PORT_NAME = "Port"

_NUM = r"([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)"

_SEGMENT_RE = re.compile(r"\(segment\b")
_VIA_RE = re.compile(r"\(via\s")
_ZONE_RE = re.compile(r"\(zone\b")
_POLYGON_RE = re.compile(r"\(polygon\b")
_STACKUP_RE = re.compile(r"\(stackup\b")
_FOOTPRINT_RE = re.compile(r"\(footprint\b")

_START_RE = re.compile(rf"\(start\s+{_NUM}\s+{_NUM}\)")
_END_RE = re.compile(rf"\(end\s+{_NUM}\s+{_NUM}\)")
_WIDTH_RE = re.compile(rf"\(width\s+{_NUM}\)")
_LAYER_RE = re.compile(r'\(layer\s+"([^"]+)"\)')
_AT_RE = re.compile(rf"\(at\s+{_NUM}\s+{_NUM}")
_SIZE_RE = re.compile(rf"\(size\s+{_NUM}")
_DRILL_RE = re.compile(rf"\(drill\s+{_NUM}")
_FOOTPRINT_NAME_RE = re.compile(r'\(footprint\s+"([^"]+)"')

_STACKUP_LAYER_RE = re.compile(r'\(layer\s+"([^"]+)"')
_STACKUP_TYPE_RE = re.compile(r'\(type\s+"([^"]+)"\)')
_THICKNESS_RE = re.compile(rf"\(thickness\s+{_NUM}")
_EPSILON_R_RE = re.compile(rf"\(epsilon_r\s+{_NUM}\)")
_LOSS_TANGENT_RE = re.compile(rf"\(loss_tangent\s+{_NUM}\)")
_LEGACY_DIELECTRIC_RE = re.compile(rf"\bdielectric\s+{_NUM}")
_QUOTED_RE = re.compile(r'"[^"]*"')

COPPER = "copper"
DIELECTRIC = "dielectric"
OTHER = "other"
_DIELECTRIC_TYPES = frozenset({"core", "prepreg"})


def _strip_quoted(text: str) -> str:
    return _QUOTED_RE.sub('""', text)


def paren_delta(text: str) -> int:
    """Net parenthesis depth change of ``text``, ignoring quoted strings."""
    bare = _strip_quoted(text)
    return bare.count("(") - bare.count(")")


def stackup_layer_kind(name: str | None = None, layer_type: str | None = None) -> str:
    """Classify a stackup layer as copper, dielectric or other."""
    if layer_type is not None:
        if layer_type == COPPER:
            return COPPER
        if layer_type in _DIELECTRIC_TYPES:
            return DIELECTRIC
        return OTHER
    if name is not None:
        if name.endswith(".Cu"):
            return COPPER
        if name.startswith(DIELECTRIC):
            return DIELECTRIC
    return OTHER


class KicadPcbParser(LayoutParser):
    layout_format: ClassVar[LayoutFormat] = LayoutFormat.KICAD
    log: ClassVar[logging.Logger] = logger

    def reset(self) -> None:
        self.lines: list[str] = []
        self.stackup_depth = 0
        self.stackup_layer = OTHER
        self.area_count = 0
        self.zone_depth = 0

    def iter_lines(self, handle: IO[str]) -> list[str]:
        self.lines = handle.read().splitlines()
        return self.lines

    def parse_line(self, line: str, lineno: int) -> None:
        if self.stackup_depth > 0:
            self._parse_stackup_line(line)
            self.stackup_depth += paren_delta(line)
            return
        match = _STACKUP_RE.search(line)
        if match:
            self.stackup_layer = OTHER
            tail = line[match.start() :]
            self._parse_stackup_line(tail)
            self.stackup_depth = paren_delta(tail)
            return

        # A zone's nested (polygon ...) belongs to the zone already counted.
        if self.zone_depth > 0:
            self.zone_depth += paren_delta(line)
            return
        match = _ZONE_RE.search(line)
        if match:
            self.area_count += 1
            self.zone_depth = paren_delta(line[match.start() :])
            return

        if _SEGMENT_RE.search(line):
            self._parse_segment(line)
        elif _VIA_RE.search(line):
            self._parse_via(line)
        elif _POLYGON_RE.search(line):
            self.area_count += 1
        elif _FOOTPRINT_RE.search(line) and any(keyword in line for keyword in self.config.connector_keywords):
            self._parse_connector(line, lineno)

    def finish(self) -> None:
        if self.area_count:
            self.builder.warn(f"{self.area_count} polygon/zone block(s) not imported (multi-line areas are unsupported)")

    def _parse_stackup_line(self, line: str) -> None:
        layer = _STACKUP_LAYER_RE.search(line)
        if layer:
            self.stackup_layer = stackup_layer_kind(name=layer.group(1))
        layer_type = _STACKUP_TYPE_RE.search(line)
        if layer_type:
            self.stackup_layer = stackup_layer_kind(layer_type=layer_type.group(1))

        thickness = _THICKNESS_RE.search(line)
        if thickness:
            value = float(thickness.group(1))
            if self.stackup_layer == DIELECTRIC:
                self.builder.update_substrate(h=value)
            elif self.stackup_layer == COPPER:
                self.builder.update_substrate(t=value)

        if self.stackup_layer == DIELECTRIC:
            epsilon = _EPSILON_R_RE.search(line)
            if epsilon:
                self.builder.update_substrate(er=float(epsilon.group(1)))
            loss = _LOSS_TANGENT_RE.search(line)
            if loss:
                self.builder.update_substrate(tand=float(loss.group(1)))

        legacy = _LEGACY_DIELECTRIC_RE.search(_strip_quoted(line))
        if legacy:
            self.builder.update_substrate(er=float(legacy.group(1)))

    def _parse_segment(self, line: str) -> None:
        start = _START_RE.search(line)
        end = _END_RE.search(line)
        width = _WIDTH_RE.search(line)
        if not (start and end and width):
            raise MalformedRecordError("segment requires start, end and width")
        layer = _LAYER_RE.search(line)

        self.builder.add_conductor(
            TraceConductor(
                id=self.builder.next_conductor_id,
                kind="segment",
                start=(float(start.group(1)), float(start.group(2))),
                end=(float(end.group(1)), float(end.group(2))),
                width=float(width.group(1)),
                layer=layer.group(1) if layer else DEFAULT_LAYER,
            )
        )

    def _parse_via(self, line: str) -> None:
        at = _AT_RE.search(line)
        size = _SIZE_RE.search(line)
        if not (at and size):
            raise MalformedRecordError("via requires at and size")
        drill = _DRILL_RE.search(line)

        self.builder.add_conductor(
            ViaConductor(
                id=self.builder.next_conductor_id,
                position=(float(at.group(1)), float(at.group(2))),
                diameter=float(size.group(1)),
                drill=float(drill.group(1)) if drill else None,
            )
        )

    def _parse_connector(self, line: str, lineno: int) -> None:
        at = _AT_RE.search(line)
        if at is None:
            # Multi-line footprint headers carry (at ...) on a following line.
            lookahead = self.lines[lineno : lineno + self.config.footprint_lookahead_lines]
            at = next(filter(None, (_AT_RE.search(text) for text in lookahead)), None)
        if at is None:
            raise MalformedRecordError("connector footprint has no (at x y) position")
        name = _FOOTPRINT_NAME_RE.search(line)

        self.builder.add_port(
            Port(
                id=self.builder.next_port_id,
                name=name.group(1) if name else DEFAULT_PORT_NAME,
                position=(float(at.group(1)), float(at.group(2))),
                impedance=DEFAULT_PORT_IMPEDANCE_OHM,
                type="connector",
            )
        )


def parse_kicad_layout(path: Path | str, config: IngestConfig | None = None) -> Geometry:
    """Parse a KiCad board file into a Geometry.

    Raises:
        LayoutFileNotFoundError: If the file does not exist.
        LayoutFileUnreadableError: If the file cannot be opened.
    """
    return KicadPcbParser(config).parse(Path(path))
