"""layout-ingest: read EDA layout files into one canonical geometry model.

Three line-oriented formats are supported:

- Qucs / QucsStudio schematics (``.sch``)
- Sonnet projects (``.son``)
- KiCad boards (``.kicad_pcb``)

Example
-------
>>> from layout_ingest import load_layout
>>> geometry = load_layout("filter.sch")
>>> geometry.bounds.as_tuple()
"""

from __future__ import annotations

from .config import DEFAULT_INGEST_CONFIG, IngestConfig, load_ingest_config
from .detect import LayoutFormat, detect_layout_format
from .errors import (
    ConfigError,
    LayoutFileNotFoundError,
    LayoutFileUnreadableError,
    LayoutIngestError,
    MalformedRecordError,
    UnknownFormatError,
    UnparseableDimensionError,
)
from .geometry import (
    DEFAULT_BOUNDS,
    DEFAULT_SUBSTRATE,
    GEOMETRY_SCHEMA,
    Bounds,
    BoundsAccumulator,
    Conductor,
    CoupledTraceConductor,
    Geometry,
    PolygonConductor,
    Port,
    Substrate,
    TraceConductor,
    ViaConductor,
    geometry_canonical_json,
    validate_geometry_payload,
    write_geometry_json,
)
from .ingest import load_layout
from .parsers import parse_kicad_layout, parse_qucs_layout, parse_sonnet_layout
from .units import parse_dimension, parse_dimension_strict

__version__ = "0.1.0"

__all__ = [
    # Entry points
    "load_layout",
    "detect_layout_format",
    "parse_qucs_layout",
    "parse_sonnet_layout",
    "parse_kicad_layout",
    # Geometry model
    "DEFAULT_BOUNDS",
    "DEFAULT_SUBSTRATE",
    "GEOMETRY_SCHEMA",
    "Bounds",
    "BoundsAccumulator",
    "Conductor",
    "CoupledTraceConductor",
    "Geometry",
    "LayoutFormat",
    "PolygonConductor",
    "Port",
    "Substrate",
    "TraceConductor",
    "ViaConductor",
    "geometry_canonical_json",
    "validate_geometry_payload",
    "write_geometry_json",
    # Units
    "parse_dimension",
    "parse_dimension_strict",
    # Configuration
    "DEFAULT_INGEST_CONFIG",
    "IngestConfig",
    "load_ingest_config",
    # Errors
    "ConfigError",
    "LayoutFileNotFoundError",
    "LayoutFileUnreadableError",
    "LayoutIngestError",
    "MalformedRecordError",
    "UnknownFormatError",
    "UnparseableDimensionError",
]
