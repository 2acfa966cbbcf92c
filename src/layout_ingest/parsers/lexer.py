"""Lexer for line records with embedded quoted fields.

Schematic records mix bare whitespace-separated fields with quoted,
possibly multi-word parameters, and QucsStudio writes the quoted parameters
glued to their visibility flags::

    MLIN MS25 1 -70 350 -44 -102 0 "Subst1"1"3.104 mm"1"5 mm"1"26.85"0

The lexer emits one :class:`RecordToken` per bare word or quoted string, so
callers never re-assemble quoted values from whitespace-split pieces.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..errors import MalformedRecordError

if TYPE_CHECKING:
    from collections.abc import Iterator

BARE = "BARE"
QUOTED = "QUOTED"


@dataclass(frozen=True)
class RecordToken:
    """Token from a record line."""

    type: str  # 'BARE' or 'QUOTED'
    value: str
    column: int


@dataclass(frozen=True)
class Record:
    """A record split into its positional fields and quoted parameters."""

    fields: tuple[str, ...]
    params: tuple[str, ...]

    @property
    def keyword(self) -> str:
        return self.fields[0] if self.fields else ""


class RecordTokenizer:
    """Tokenizer for a single record line."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def tokenize(self) -> Iterator[RecordToken]:
        """Generate tokens from the line."""
        while self.pos < len(self.text):
            self._skip_whitespace()
            if self.pos >= len(self.text):
                break

            start = self.pos
            if self.text[self.pos] == '"':
                yield RecordToken(QUOTED, self._read_quoted(), start + 1)
            else:
                yield RecordToken(BARE, self._read_bare(), start + 1)

    def _skip_whitespace(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _read_quoted(self) -> str:
        start = self.pos
        self.pos += 1  # opening quote
        end = self.text.find('"', self.pos)
        if end == -1:
            raise MalformedRecordError(f"Unterminated quoted field at column {start + 1}")
        value = self.text[self.pos : end]
        self.pos = end + 1
        return value

    def _read_bare(self) -> str:
        start = self.pos
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char.isspace() or char == '"':
                break
            self.pos += 1
        return self.text[start : self.pos]


def tokenize_record(line: str) -> list[RecordToken]:
    """Tokenize one record line, dropping an enclosing ``<...>`` pair.

    Raises:
        MalformedRecordError: If a quoted field is not terminated.
    """
    text = line.strip()
    if text.startswith("<"):
        text = text[1:]
    if text.endswith(">"):
        text = text[:-1]
    return list(RecordTokenizer(text).tokenize())


def split_record(tokens: list[RecordToken]) -> Record:
    """Split tokens into leading bare fields and the ordered quoted parameters.

    Bare tokens after the first quoted parameter (display flags) are ignored.
    """
    fields: list[str] = []
    params: list[str] = []
    for token in tokens:
        if token.type == QUOTED:
            params.append(token.value)
        elif not params:
            fields.append(token.value)
    return Record(fields=tuple(fields), params=tuple(params))


def parse_record(line: str) -> Record:
    """Tokenize and split a record line."""
    return split_record(tokenize_record(line))
