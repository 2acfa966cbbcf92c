"""Qucs / QucsStudio schematic parser.

Each non-empty, non-comment line is one component record. The leading bare
fields are positional::

    keyword name active x y text_x text_y rotation

and the quoted fields that follow are the component's parameters in order.
Supported components:

- ``MLIN``: microstrip line, parameters ``substrate, width, length``
- ``MCOUPLED``: coupled lines, ``substrate, width, length, spacing``
- ``MSTUB``: stub, ``substrate, width, length`` (optional)
- ``Pac``: lumped port, ``number, impedance``
- ``SUBST``: substrate, ``er, h, t, tand`` (the last one in the file wins)

Positions keep the schematic's own coordinates; dimensioned parameters are
normalized by :mod:`layout_ingest.units`.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

from ..detect import LayoutFormat
from ..errors import MalformedRecordError, UnparseableDimensionError
from ..geometry import DEFAULT_PORT_IMPEDANCE_OHM, CoupledTraceConductor, Point, Port, TraceConductor
from ..units import parse_dimension_strict
from .base import LayoutParser, to_float
from .lexer import Record, parse_record

if TYPE_CHECKING:
    from ..config import IngestConfig
    from ..geometry import Geometry

logger = logging.getLogger(__name__)

POSITIONAL_FIELDS = 8
COMMENT_PREFIXES = ("%", "#")

DEFAULT_SUBSTRATE_REF = "Subst1"
DEFAULT_LINE_WIDTH = 1.0
DEFAULT_LINE_LENGTH = 5.0
DEFAULT_STUB_WIDTH = 1.0
DEFAULT_STUB_LENGTH = 2.0


def advance(origin: Point, length: float, rotation_deg: float) -> Point:
    """Point reached from ``origin`` after ``length`` along ``rotation_deg``."""
    angle = math.radians(rotation_deg)
    return (origin[0] + length * math.cos(angle), origin[1] + length * math.sin(angle))


class QucsParser(LayoutParser):
    layout_format: ClassVar[LayoutFormat] = LayoutFormat.QUCS
    log: ClassVar[logging.Logger] = logger

    def parse_line(self, line: str, lineno: int) -> None:
        if line.startswith(COMMENT_PREFIXES):
            return
        record = parse_record(line)
        handler = self._handlers.get(record.keyword)
        if handler is None:
            return
        if len(record.fields) < POSITIONAL_FIELDS:
            raise MalformedRecordError(
                f"{record.keyword} has {len(record.fields)} positional fields, expected {POSITIONAL_FIELDS}"
            )
        handler(self, record, lineno)

    def _anchor(self, record: Record) -> tuple[str, Point, float]:
        name = record.fields[1]
        x = to_float(record.fields[3], f"{record.keyword} {name} x")
        y = to_float(record.fields[4], f"{record.keyword} {name} y")
        rotation = to_float(record.fields[7], f"{record.keyword} {name} rotation")
        return name, (x, y), rotation

    def _line_params(self, record: Record, lineno: int) -> tuple[str, float, float]:
        name = record.fields[1]
        substrate_ref = record.params[0]
        width = self.builder.dimension(record.params[1], what=f"{name} width", line=lineno)
        length = self.builder.dimension(record.params[2], what=f"{name} length", line=lineno)
        if width < 0:
            raise MalformedRecordError(f"{name} has negative width {width}")
        return substrate_ref, width, length

    def _parse_mlin(self, record: Record, lineno: int) -> None:
        name, start, rotation = self._anchor(record)
        if len(record.params) >= 3:
            substrate_ref, width, length = self._line_params(record, lineno)
        else:
            self.builder.warn(f"MLIN {name}: missing substrate/width/length parameters, using defaults", line=lineno)
            substrate_ref, width, length = DEFAULT_SUBSTRATE_REF, DEFAULT_LINE_WIDTH, DEFAULT_LINE_LENGTH

        self.builder.add_conductor(
            TraceConductor(
                id=self.builder.next_conductor_id,
                name=name,
                kind="line",
                start=start,
                end=advance(start, length, rotation),
                width=width,
                rotation=rotation,
                substrate_ref=substrate_ref,
            )
        )

    def _parse_mcoupled(self, record: Record, lineno: int) -> None:
        name, anchor, rotation = self._anchor(record)
        if len(record.params) < 4:
            raise MalformedRecordError(f"MCOUPLED {name} requires substrate, width, length and spacing")
        substrate_ref, width, length = self._line_params(record, lineno)
        spacing = self.builder.dimension(record.params[3], what=f"{name} spacing", line=lineno)

        angle = math.radians(rotation)
        half = spacing / 2
        # Sibling 1 sits on the +normal side of the nominal line, sibling 2 on the -normal side.
        offsets = ((-half * math.sin(angle), half * math.cos(angle)), (half * math.sin(angle), -half * math.cos(angle)))
        for index, (dx, dy) in enumerate(offsets, start=1):
            start = (anchor[0] + dx, anchor[1] + dy)
            self.builder.add_conductor(
                CoupledTraceConductor(
                    id=self.builder.next_conductor_id,
                    name=f"{name}_{index}",
                    pair_name=name,
                    start=start,
                    end=advance(start, length, rotation),
                    width=width,
                    rotation=rotation,
                    substrate_ref=substrate_ref,
                    coupling_spacing=spacing,
                )
            )

    def _parse_mstub(self, record: Record, lineno: int) -> None:
        name, start, rotation = self._anchor(record)
        if len(record.params) >= 3:
            substrate_ref, width, length = self._line_params(record, lineno)
        else:
            substrate_ref, width, length = None, DEFAULT_STUB_WIDTH, DEFAULT_STUB_LENGTH

        self.builder.add_conductor(
            TraceConductor(
                id=self.builder.next_conductor_id,
                name=name,
                kind="stub",
                start=start,
                end=advance(start, length, rotation),
                width=width,
                rotation=rotation,
                substrate_ref=substrate_ref,
            )
        )

    def _parse_port(self, record: Record, lineno: int) -> None:
        name, position, _ = self._anchor(record)
        port_id = self.builder.next_port_id
        number = port_id
        impedance = DEFAULT_PORT_IMPEDANCE_OHM
        if record.params:
            try:
                number = int(float(record.params[0]))
            except (ValueError, OverflowError):
                self.builder.warn(f"Port {name}: invalid port number {record.params[0]!r}", line=lineno)
        if len(record.params) >= 2:
            try:
                impedance = parse_dimension_strict(record.params[1])
            except UnparseableDimensionError as exc:
                self.builder.warn(f"Port {name}: {exc}, using {DEFAULT_PORT_IMPEDANCE_OHM:g} ohm", line=lineno)
                impedance = DEFAULT_PORT_IMPEDANCE_OHM
            if impedance <= 0:
                self.builder.warn(f"Port {name}: non-positive impedance, using {DEFAULT_PORT_IMPEDANCE_OHM:g} ohm", line=lineno)
                impedance = DEFAULT_PORT_IMPEDANCE_OHM

        self.builder.add_port(
            Port(id=port_id, name=name, position=position, impedance=impedance, type="lumped", number=number)
        )

    def _parse_substrate(self, record: Record, lineno: int) -> None:
        name = record.fields[1]
        if len(record.params) < 4:
            self.builder.warn(f"SUBST {name}: expected er, h, t, tand parameters, using defaults", line=lineno)
            self.builder.set_substrate()
            return
        er, h, t, tand = (
            self.builder.dimension(value, what=f"{name} {field}", line=lineno)
            for field, value in zip(("er", "h", "t", "tand"), record.params)
        )
        self.builder.set_substrate(er=er, h=h, t=t, tand=tand)

    _handlers: ClassVar[dict] = {
        "MLIN": _parse_mlin,
        "MCOUPLED": _parse_mcoupled,
        "MSTUB": _parse_mstub,
        "Pac": _parse_port,
        "SUBST": _parse_substrate,
    }


def parse_qucs_layout(path: Path | str, config: IngestConfig | None = None) -> Geometry:
    """Parse a Qucs schematic file into a Geometry.

    Raises:
        LayoutFileNotFoundError: If the file does not exist.
        LayoutFileUnreadableError: If the file cannot be opened.
    """
    return QucsParser(config).parse(Path(path))
