"""Shared machinery for the line-oriented layout parsers.

Each parser makes one sequential pass over its input. Per-record failures
(:class:`MalformedRecordError`) are caught at the record boundary so that a
single bad line drops only itself; file-level failures propagate unchanged.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, ClassVar

from pydantic import ValidationError

from ..config import DEFAULT_INGEST_CONFIG, IngestConfig
from ..detect import LayoutFormat
from ..errors import LayoutFileNotFoundError, LayoutFileUnreadableError, MalformedRecordError, UnparseableDimensionError
from ..geometry import (
    BoundsAccumulator,
    CoupledTraceConductor,
    Geometry,
    Point,
    PolygonConductor,
    Port,
    Substrate,
    TraceConductor,
    ViaConductor,
)
from ..units import parse_dimension_strict

logger = logging.getLogger(__name__)

AnyConductor = TraceConductor | CoupledTraceConductor | ViaConductor | PolygonConductor


@contextmanager
def open_layout(path: Path) -> Iterator[IO[str]]:
    """Open a layout file for text reading, mapping failures to ingest errors."""
    if not path.exists():
        raise LayoutFileNotFoundError(f"Layout file not found: {path}")
    try:
        handle = path.open("r", encoding="utf-8", errors="replace")
    except OSError as exc:
        raise LayoutFileUnreadableError(f"Cannot open layout file: {path}: {exc}") from exc
    with handle:
        yield handle


def to_float(text: str, what: str) -> float:
    """Convert a numeric field, raising MalformedRecordError on failure.

    Non-finite values (``nan``, ``inf``) are rejected as well.
    """
    try:
        value = float(text)
    except ValueError as exc:
        raise MalformedRecordError(f"{what} is not a number: {text!r}") from exc
    if not math.isfinite(value):
        raise MalformedRecordError(f"{what} is not finite: {text!r}")
    return value


class GeometryBuilder:
    """Mutable accumulator for one parse; :meth:`build` freezes it into a Geometry."""

    def __init__(
        self,
        layout_format: LayoutFormat,
        source_path: Path,
        config: IngestConfig = DEFAULT_INGEST_CONFIG,
        log: logging.Logger = logger,
    ) -> None:
        self.layout_format = layout_format
        self.source_path = source_path
        self.config = config
        self.log = log
        self.conductors: list[AnyConductor] = []
        self.ports: list[Port] = []
        self.substrate_fields: dict[str, float] | None = None
        self.bounds = BoundsAccumulator()
        self.origin: Point = (0.0, 0.0)
        self.warnings: list[str] = []

    @property
    def next_conductor_id(self) -> int:
        return len(self.conductors) + 1

    @property
    def next_port_id(self) -> int:
        return len(self.ports) + 1

    def add_conductor(self, conductor: AnyConductor) -> None:
        self.conductors.append(conductor)
        self.bounds.include(conductor)

    def add_port(self, port: Port) -> None:
        self.ports.append(port)

    def set_substrate(self, **fields: float | None) -> None:
        """Replace the running substrate record (last declaration wins)."""
        self.substrate_fields = {name: value for name, value in fields.items() if value is not None}

    def update_substrate(self, **fields: float | None) -> None:
        """Merge fields into the running substrate record."""
        if self.substrate_fields is None:
            self.substrate_fields = {}
        self.substrate_fields.update({name: value for name, value in fields.items() if value is not None})

    def warn(self, message: str, *, line: int | None = None) -> None:
        text = message if line is None else f"line {line}: {message}"
        self.log.warning("%s: %s", self.source_path.name, text)
        self.warnings.append(text)

    def dimension(self, text: str | None, *, what: str, line: int | None = None) -> float:
        """Parse a dimensioned field, defaulting to 0 with a warning."""
        try:
            return parse_dimension_strict(text if text is not None else "")
        except UnparseableDimensionError as exc:
            self.warn(f"{what}: {exc}, using 0", line=line)
            return 0.0

    def build(self) -> Geometry:
        defaults = self.config.substrate
        if self.substrate_fields is None:
            self.warn("No substrate definition found, using FR4 defaults")
            substrate = defaults
        else:
            substrate, backfilled = Substrate.from_partial(**self.substrate_fields, defaults=defaults)
            if backfilled:
                self.warn(f"Substrate field(s) {', '.join(backfilled)} missing or out of range, using defaults")

        bounds, used_default = self.bounds.finalize(self.config.default_bounds)
        if used_default:
            self.warn("Could not determine geometry bounds, using defaults")

        geometry = Geometry(
            source_format=self.layout_format,
            source_path=str(self.source_path),
            conductors=tuple(self.conductors),
            ports=tuple(self.ports),
            substrate=substrate,
            bounds=bounds,
            origin=self.origin,
            warnings=tuple(self.warnings),
        )
        self.log.info(
            "%s parsing complete: %d conductors, %d ports, bounds [%.2f %.2f %.2f %.2f] mm",
            self.layout_format.value,
            len(geometry.conductors),
            len(geometry.ports),
            *geometry.bounds.as_tuple(),
        )
        return geometry


class LayoutParser(ABC):
    """Single-pass, line-oriented parser producing a Geometry.

    Subclasses implement :meth:`parse_line` and may override
    :meth:`iter_lines` (to read the file differently) and :meth:`finish`.
    """

    layout_format: ClassVar[LayoutFormat]
    log: ClassVar[logging.Logger] = logger

    def __init__(self, config: IngestConfig | None = None) -> None:
        self.config = config or DEFAULT_INGEST_CONFIG

    def parse(self, path: Path | str) -> Geometry:
        path = Path(path)
        self.log.info("Parsing %s layout: %s", self.layout_format.value, path)
        self.builder = GeometryBuilder(self.layout_format, path, self.config, self.log)
        self.reset()
        with open_layout(path) as handle:
            for lineno, raw in enumerate(self.iter_lines(handle), start=1):
                line = raw.strip()
                if not line:
                    continue
                try:
                    self.parse_line(line, lineno)
                except MalformedRecordError as exc:
                    self.builder.warn(f"Dropped record: {exc.message}", line=lineno)
                except ValidationError as exc:
                    reason = exc.errors()[0]["msg"] if exc.errors() else str(exc)
                    self.builder.warn(f"Dropped record: {reason}", line=lineno)
        self.finish()
        return self.builder.build()

    def iter_lines(self, handle: IO[str]) -> Iterable[str]:
        return handle

    def reset(self) -> None:
        """Initialize per-parse state."""

    @abstractmethod
    def parse_line(self, line: str, lineno: int) -> None:
        """Handle one stripped, non-empty line."""

    def finish(self) -> None:
        """Hook run after the last line, before the geometry is built."""
