"""Layout file format detection.

Classification is by extension first, confirmed by a signature string near
the start of the file. A signature mismatch on a recognized extension is only
a warning: the extension-based guess is still returned. Files with an
unrecognized extension are classified purely by content and raise
:class:`UnknownFormatError` if no signature matches.
"""

from __future__ import annotations

import logging
from enum import Enum
from itertools import islice
from pathlib import Path

from .errors import LayoutFileNotFoundError, LayoutFileUnreadableError, UnknownFormatError

logger = logging.getLogger(__name__)

DEFAULT_PREFIX_LINES = 5


class LayoutFormat(str, Enum):
    """Supported layout file formats."""

    QUCS = "qucs"
    SONNET = "sonnet"
    KICAD = "kicad"


EXTENSION_FORMATS: dict[str, LayoutFormat] = {
    ".sch": LayoutFormat.QUCS,
    ".son": LayoutFormat.SONNET,
    ".kicad_pcb": LayoutFormat.KICAD,
}

# Checked in this order when sniffing content.
FORMAT_SIGNATURES: dict[LayoutFormat, tuple[str, ...]] = {
    LayoutFormat.QUCS: ("QucsStudio", "Qucs Schematic"),
    LayoutFormat.SONNET: ("FTYP SONPROJ", "SONNET"),
    LayoutFormat.KICAD: ("kicad_pcb",),
}


def detect_layout_format(path: Path | str, *, prefix_lines: int = DEFAULT_PREFIX_LINES) -> LayoutFormat:
    """Classify a layout file as one of the supported formats.

    Args:
        path: Path to the layout file.
        prefix_lines: Number of leading lines sniffed when the extension is
            not recognized.

    Returns:
        The detected LayoutFormat.

    Raises:
        LayoutFileNotFoundError: If the file does not exist.
        LayoutFileUnreadableError: If content sniffing is required but the
            file cannot be read.
        UnknownFormatError: If the extension is unrecognized and no signature
            matches.
    """
    path = Path(path)
    if not path.is_file():
        raise LayoutFileNotFoundError(f"Layout file not found: {path}")

    presumed = EXTENSION_FORMATS.get(path.suffix.lower())
    if presumed is not None:
        try:
            first_line = read_prefix(path, 1)
        except LayoutFileUnreadableError as exc:
            logger.warning("Could not verify %s format: %s", presumed.value, exc)
            first_line = None
        if first_line is not None and not has_signature(first_line, presumed):
            logger.warning(
                "File extension %s suggests %s but content signature not found: %s",
                path.suffix,
                presumed.value,
                path,
            )
        logger.info("Format detection: %s -> %s", path.suffix, presumed.value)
        return presumed

    content = read_prefix(path, prefix_lines)
    for layout_format in FORMAT_SIGNATURES:
        if has_signature(content, layout_format):
            logger.info("Format detection: %s -> %s (by content)", path.suffix or "<none>", layout_format.value)
            return layout_format
    raise UnknownFormatError(f"Unknown file format: {path}")


def has_signature(text: str, layout_format: LayoutFormat) -> bool:
    return any(signature in text for signature in FORMAT_SIGNATURES[layout_format])


def read_prefix(path: Path, max_lines: int) -> str:
    """Read at most ``max_lines`` lines from the start of ``path``, space-joined."""
    try:
        with path.open("r", encoding="utf-8", errors="replace") as handle:
            lines = [line.rstrip("\r\n") for line in islice(handle, max_lines)]
    except OSError as exc:
        raise LayoutFileUnreadableError(f"Cannot open layout file: {path}: {exc}") from exc
    return " ".join(lines)
