"""Ingestion entry point: detect the format of a layout file and parse it."""

from __future__ import annotations

import logging
from pathlib import Path

from .config import DEFAULT_INGEST_CONFIG, IngestConfig
from .detect import LayoutFormat, detect_layout_format
from .errors import UnknownFormatError
from .geometry import Geometry
from .parsers import KicadPcbParser, LayoutParser, QucsParser, SonnetParser

logger = logging.getLogger(__name__)

PARSERS: dict[LayoutFormat, type[LayoutParser]] = {
    LayoutFormat.QUCS: QucsParser,
    LayoutFormat.SONNET: SonnetParser,
    LayoutFormat.KICAD: KicadPcbParser,
}


def load_layout(
    path: Path | str,
    *,
    config: IngestConfig | None = None,
    layout_format: LayoutFormat | str | None = None,
) -> Geometry:
    """Load a layout file into a Geometry.

    Args:
        path: Layout file (.sch, .son, .kicad_pcb, or any file whose first
            lines carry a known format signature).
        config: Parser tunables; built-in defaults when omitted.
        layout_format: Skip detection and parse as this format.

    Returns:
        Frozen Geometry in millimeters with defaults backfilled.

    Raises:
        LayoutFileNotFoundError: If the file does not exist.
        LayoutFileUnreadableError: If the file cannot be read.
        UnknownFormatError: If the format cannot be detected or ``layout_format``
            is not a supported format.
    """
    path = Path(path)
    config = config or DEFAULT_INGEST_CONFIG
    if layout_format is None:
        fmt = detect_layout_format(path, prefix_lines=config.prefix_lines)
    else:
        try:
            fmt = LayoutFormat(layout_format)
        except ValueError as exc:
            raise UnknownFormatError(f"Unknown layout format: {layout_format!r}") from exc
        logger.debug("Format forced to %s for %s", fmt.value, path)
    return PARSERS[fmt](config).parse(path)
