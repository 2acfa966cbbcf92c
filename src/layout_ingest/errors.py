"""Exception taxonomy for layout ingestion.

Fatal errors (missing or unreadable files, unknown formats) propagate to the
caller. Record- and field-level errors are raised inside a single record
handler and caught at the record boundary by the parsers, which drop the
record (or default the field) and record a warning on the geometry.
"""

from __future__ import annotations


class LayoutIngestError(Exception):
    """Base class for all layout ingestion errors."""


class LayoutFileNotFoundError(LayoutIngestError, FileNotFoundError):
    """Raised when the layout file does not exist."""


class LayoutFileUnreadableError(LayoutIngestError, OSError):
    """Raised when the layout file exists but cannot be opened or decoded."""


class UnknownFormatError(LayoutIngestError, ValueError):
    """Raised when a file cannot be classified as any supported format."""


class MalformedRecordError(LayoutIngestError, ValueError):
    """Raised for a single record that cannot be interpreted."""

    def __init__(self, message: str, *, line: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"line {self.line}: {self.message}"


class UnparseableDimensionError(LayoutIngestError, ValueError):
    """Raised when a dimensioned literal cannot be converted."""


class ConfigError(LayoutIngestError, ValueError):
    """Raised when an ingest configuration file is invalid."""
