"""Ingest configuration loader.

The tunable constants of the parsers (default substrate, default bounds, the
Sonnet mil heuristic threshold, connector keywords, sniffing window) live in
one frozen :class:`IngestConfig`. A YAML file may override any of them; when
no file exists the built-in defaults are used.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .detect import DEFAULT_PREFIX_LINES
from .errors import ConfigError
from .geometry import DEFAULT_BOUNDS_HALF_SIZE_MM, DEFAULT_SUBSTRATE, Bounds, Substrate
from .units import Dimension

DEFAULT_CONFIG_PATH = Path("config/layout_ingest.yaml")


class _ConfigBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class SubstrateDefaults(_ConfigBase):
    """Substrate used to backfill absent or out-of-range fields."""

    er: float = Field(DEFAULT_SUBSTRATE.er, ge=1, le=100)
    h: Dimension = Field(DEFAULT_SUBSTRATE.h, gt=0)
    t: Dimension = Field(DEFAULT_SUBSTRATE.t, gt=0)
    tand: float = Field(DEFAULT_SUBSTRATE.tand, ge=0, le=1)

    def to_substrate(self) -> Substrate:
        return Substrate(er=self.er, h=self.h, t=self.t, tand=self.tand)


class IngestConfig(_ConfigBase):
    """Tunable constants shared by the detector and the parsers."""

    default_substrate: SubstrateDefaults = Field(default_factory=SubstrateDefaults)
    default_bounds_half_size: Dimension = Field(DEFAULT_BOUNDS_HALF_SIZE_MM, gt=0)
    sonnet_mil_span_threshold: float = Field(1000.0, gt=0, description="BOX x-span above which raw units are mils")
    connector_keywords: tuple[str, ...] = Field(("Connector", "SMA"), min_length=1)
    prefix_lines: int = Field(DEFAULT_PREFIX_LINES, ge=1)
    footprint_lookahead_lines: int = Field(4, ge=0)

    @property
    def substrate(self) -> Substrate:
        return self.default_substrate.to_substrate()

    @property
    def default_bounds(self) -> Bounds:
        half = self.default_bounds_half_size
        return Bounds(xmin=-half, xmax=half, ymin=-half, ymax=half)


DEFAULT_INGEST_CONFIG = IngestConfig()


def load_ingest_config(config_path: Path | None = None, project_root: Path | None = None) -> IngestConfig:
    """Load the ingest configuration.

    Args:
        config_path: Explicit YAML file. Must exist when given.
        project_root: Root used to resolve the default config path. Defaults
            to the current working directory.

    Returns:
        IngestConfig; the built-in defaults when no config file is present.

    Raises:
        ConfigError: If the file is missing (explicit path only), is not
            valid YAML, is not a mapping, or fails validation.
    """
    if config_path is None:
        root = project_root or Path.cwd()
        path = root / DEFAULT_CONFIG_PATH
        if not path.exists():
            return DEFAULT_INGEST_CONFIG
    else:
        path = config_path
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return DEFAULT_INGEST_CONFIG
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping, got {type(data).__name__}")

    return _parse_config(data, path)


def _parse_config(data: dict[str, Any], path: Path) -> IngestConfig:
    try:
        return IngestConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid ingest config in {path}: {e}") from e
