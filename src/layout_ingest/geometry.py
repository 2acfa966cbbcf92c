"""Canonical geometry model shared by all layout parsers.

Every parser produces the same frozen :class:`Geometry` aggregate:

- an ordered tuple of conductors (a discriminated union on ``type``)
- an ordered tuple of ports
- one :class:`Substrate`
- one :class:`Bounds` rectangle in millimeters

The models follow the strict ``extra="forbid"`` pattern used for the solver
specs; they are additionally frozen because a geometry is only mutated
through :class:`layout_ingest.parsers.base.GeometryBuilder` during its single
parse pass.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, Literal, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, computed_field

from .detect import LayoutFormat

Point = tuple[float, float]
Rect = tuple[float, float, float, float]

DEFAULT_PORT_IMPEDANCE_OHM = 50.0
DEFAULT_BOUNDS_HALF_SIZE_MM = 10.0


class _GeometryBase(BaseModel):
    """Base model with strict validation and immutability."""

    model_config = ConfigDict(extra="forbid", frozen=True)


# =============================================================================
# Bounds
# =============================================================================


class Bounds(_GeometryBase):
    """Axis-aligned rectangle (xmin, xmax, ymin, ymax) in millimeters."""

    xmin: float
    xmax: float
    ymin: float
    ymax: float

    @classmethod
    def from_tuple(cls, rect: Rect) -> Bounds:
        xmin, xmax, ymin, ymax = rect
        return cls(xmin=xmin, xmax=xmax, ymin=ymin, ymax=ymax)

    def as_tuple(self) -> Rect:
        return (self.xmin, self.xmax, self.ymin, self.ymax)

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    def contains(self, other: Bounds, *, tol: float = 0.0) -> bool:
        """Whether ``other`` lies entirely inside this rectangle."""
        return (
            self.xmin <= other.xmin + tol
            and self.xmax >= other.xmax - tol
            and self.ymin <= other.ymin + tol
            and self.ymax >= other.ymax - tol
        )


DEFAULT_BOUNDS = Bounds(
    xmin=-DEFAULT_BOUNDS_HALF_SIZE_MM,
    xmax=DEFAULT_BOUNDS_HALF_SIZE_MM,
    ymin=-DEFAULT_BOUNDS_HALF_SIZE_MM,
    ymax=DEFAULT_BOUNDS_HALF_SIZE_MM,
)


# =============================================================================
# Substrate
# =============================================================================


class Substrate(_GeometryBase):
    """Dielectric stack description.

    Attributes:
        er: Relative permittivity.
        h: Dielectric height in mm.
        t: Conductor thickness in mm.
        tand: Loss tangent.
    """

    er: float = 4.3
    h: float = 1.6
    t: float = 0.035
    tand: float = 0.02

    @classmethod
    def from_partial(
        cls,
        *,
        er: float | None = None,
        h: float | None = None,
        t: float | None = None,
        tand: float | None = None,
        defaults: Substrate | None = None,
    ) -> tuple[Substrate, list[str]]:
        """Build a substrate, replacing absent or out-of-range fields with defaults.

        ``defaults`` supplies the replacement values (FR4 when omitted).

        Returns:
            Tuple of (substrate, names of the fields that were backfilled).
        """
        fallback = defaults or DEFAULT_SUBSTRATE
        values = {"er": er, "h": h, "t": t, "tand": tand}
        resolved: dict[str, float] = {}
        backfilled: list[str] = []
        for name, value in values.items():
            if value is None or not math.isfinite(value) or not _SUBSTRATE_RANGES[name](value):
                resolved[name] = getattr(fallback, name)
                backfilled.append(name)
            else:
                resolved[name] = float(value)
        return cls(**resolved), backfilled


_SUBSTRATE_RANGES = {
    "er": lambda v: 1.0 <= v <= 100.0,
    "h": lambda v: v > 0.0,
    "t": lambda v: v > 0.0,
    "tand": lambda v: 0.0 <= v <= 1.0,
}

DEFAULT_SUBSTRATE = Substrate()


# =============================================================================
# Conductors
# =============================================================================


class _ConductorBase(_GeometryBase):
    id: int = Field(..., ge=1, description="Sequential 1-based id in parse order")
    name: str = ""


class _TraceBase(_ConductorBase):
    start: Point
    end: Point
    width: float = Field(..., ge=0)
    rotation: float = 0.0
    substrate_ref: str | None = None
    layer: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def length(self) -> float:
        return math.dist(self.start, self.end)

    @property
    def position(self) -> Point:
        return self.start

    @property
    def center(self) -> Point:
        return ((self.start[0] + self.end[0]) / 2, (self.start[1] + self.end[1]) / 2)

    def footprint(self) -> Rect:
        margin = self.width / 2
        xs = (self.start[0], self.end[0])
        ys = (self.start[1], self.end[1])
        return (min(xs) - margin, max(xs) + margin, min(ys) - margin, max(ys) + margin)


class TraceConductor(_TraceBase):
    """Straight conductor between two endpoints (lines, segments and stubs)."""

    type: Literal["trace"] = "trace"
    kind: Literal["line", "segment", "stub"] = "line"


class CoupledTraceConductor(_TraceBase):
    """One sibling of a coupled-line pair."""

    type: Literal["coupled_trace"] = "coupled_trace"
    coupling_spacing: float = Field(..., ge=0)
    pair_name: str = ""


class ViaConductor(_ConductorBase):
    """Cylindrical conductor at a single position."""

    type: Literal["via"] = "via"
    position: Point
    diameter: float = Field(..., ge=0)
    drill: float | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def length(self) -> float:
        return 0.0

    @property
    def width(self) -> float:
        return self.diameter

    def footprint(self) -> Rect:
        x, y = self.position
        margin = self.diameter / 2
        return (x - margin, x + margin, y - margin, y + margin)


class PolygonConductor(_ConductorBase):
    """Closed metal polygon; width and length estimate its bounding box sides."""

    type: Literal["polygon"] = "polygon"
    vertices: tuple[Point, ...] = Field(..., min_length=1)
    metal_level: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def bbox(self) -> Bounds:
        arr = np.asarray(self.vertices, dtype=float)
        mins = arr.min(axis=0)
        maxs = arr.max(axis=0)
        return Bounds(xmin=float(mins[0]), xmax=float(maxs[0]), ymin=float(mins[1]), ymax=float(maxs[1]))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def width(self) -> float:
        box = self.bbox
        return min(box.width, box.height)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def length(self) -> float:
        box = self.bbox
        return max(box.width, box.height)

    @property
    def position(self) -> Point:
        box = self.bbox
        return ((box.xmin + box.xmax) / 2, (box.ymin + box.ymax) / 2)

    def footprint(self) -> Rect:
        return self.bbox.as_tuple()


Conductor = Annotated[
    Union[TraceConductor, CoupledTraceConductor, ViaConductor, PolygonConductor],
    Field(discriminator="type"),
]


# =============================================================================
# Ports and aggregate
# =============================================================================


class Port(_GeometryBase):
    """Excitation/measurement reference point."""

    id: int = Field(..., ge=1)
    name: str = ""
    position: Point
    impedance: float = Field(DEFAULT_PORT_IMPEDANCE_OHM, gt=0, description="Reference impedance in ohms")
    type: Literal["lumped", "connector"] = "lumped"
    number: int | None = None


class Geometry(_GeometryBase):
    """Canonical layout geometry produced by one parse."""

    source_format: LayoutFormat
    source_path: str = ""
    units: Literal["mm"] = "mm"
    conductors: tuple[Conductor, ...] = ()
    ports: tuple[Port, ...] = ()
    substrate: Substrate = DEFAULT_SUBSTRATE
    bounds: Bounds = DEFAULT_BOUNDS
    origin: Point = (0.0, 0.0)
    warnings: tuple[str, ...] = ()


# =============================================================================
# Bounds accumulation
# =============================================================================


@dataclass
class BoundsAccumulator:
    """Running bounding box that only ever widens.

    Starts at the (+inf, -inf, +inf, -inf) sentinel; :meth:`finalize` falls
    back to :data:`DEFAULT_BOUNDS` if any side was never reached.
    """

    xmin: float = math.inf
    xmax: float = -math.inf
    ymin: float = math.inf
    ymax: float = -math.inf

    def include(self, conductor: TraceConductor | CoupledTraceConductor | ViaConductor | PolygonConductor) -> None:
        self.include_rect(*conductor.footprint())

    def include_rect(self, xmin: float, xmax: float, ymin: float, ymax: float) -> None:
        self.xmin = min(self.xmin, xmin)
        self.xmax = max(self.xmax, xmax)
        self.ymin = min(self.ymin, ymin)
        self.ymax = max(self.ymax, ymax)

    def snapshot(self) -> Rect:
        return (self.xmin, self.xmax, self.ymin, self.ymax)

    @property
    def is_finite(self) -> bool:
        return all(math.isfinite(value) for value in self.snapshot())

    def finalize(self, default: Bounds = DEFAULT_BOUNDS) -> tuple[Bounds, bool]:
        """Return (bounds, used_default)."""
        if not self.is_finite:
            return default, True
        return Bounds.from_tuple(self.snapshot()), False


# =============================================================================
# Serialization
# =============================================================================


def canonical_json_dumps(data: Any) -> str:
    """Serialize JSON with sorted keys and stable separators."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def geometry_canonical_json(geometry: Geometry) -> str:
    payload = geometry.model_dump(mode="json")
    return canonical_json_dumps(payload)


def write_geometry_json(path: Path, geometry: Geometry) -> None:
    text = geometry_canonical_json(geometry)
    path.write_text(f"{text}\n", encoding="utf-8")


GEOMETRY_SCHEMA = Geometry.model_json_schema(mode="serialization")


def validate_geometry_payload(data: dict[str, Any]) -> list[str]:
    """Validate exported geometry JSON against :data:`GEOMETRY_SCHEMA`.

    Uses the jsonschema library (Draft 2020-12) so consumers that never
    import the pydantic models can check a payload the same way.

    Returns:
        List of validation error messages (empty if valid).
    """
    try:
        from jsonschema import Draft202012Validator
    except ImportError as exc:
        raise ImportError("jsonschema is required for JSON Schema validation: pip install jsonschema") from exc

    validator = Draft202012Validator(GEOMETRY_SCHEMA)
    errors = []
    for error in validator.iter_errors(data):
        path = ".".join(str(p) for p in error.absolute_path) or "(root)"
        errors.append(f"{path}: {error.message}")
    return errors
