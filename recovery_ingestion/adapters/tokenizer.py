"""
Row tokenizer: raw delimited text to ordered header->value maps.

Contract:
    - The first non-blank line is the header and is never yielded.
    - One physical line is one logical row; quoted fields may contain the
      delimiter but never a newline.
    - A doubled quote inside a quoted field is a literal quote.
    - Short rows are padded with "" up to the header width; surplus
      trailing fields are dropped.
    - Blank lines are skipped.  Empty input yields no header and no rows.
    - Field values are whitespace-trimmed.
    - Forward-only and not restartable: create a fresh tokenizer to re-read.

Architecture: recovery_ingestion/adapters. Pure text handling, no DB.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Iterator

_BOM = "\ufeff"


def tokenize_line(line: str, delimiter: str = ",") -> list[str]:
    """Split one physical line into trimmed field values."""
    reader = csv.reader(
        [line],
        delimiter=delimiter,
        quotechar='"',
        doublequote=True,
        skipinitialspace=True,
        strict=False,
    )
    return [field.strip() for field in next(reader, [])]


class RowTokenizer:
    """Lazy, pull-based iterator of ``{header: value}`` rows.

    ``lines_consumed`` counts physical lines read so far, header and blank
    lines included, so callers can report progress against a line count.
    """

    def __init__(self, lines: Iterable[str], delimiter: str = ","):
        self.delimiter = delimiter
        self.lines_consumed = 0
        self.rows_yielded = 0
        self._lines: Iterator[str] = iter(lines)
        header = self._next_fields()
        if header and header[0].startswith(_BOM):
            header[0] = header[0][len(_BOM):].strip()
        self.header: tuple[str, ...] = tuple(header or ())

    @classmethod
    def from_text(cls, text: str, delimiter: str = ",") -> RowTokenizer:
        return cls(io.StringIO(text), delimiter=delimiter)

    def _next_fields(self) -> list[str] | None:
        for raw in self._lines:
            self.lines_consumed += 1
            line = raw.rstrip("\r\n")
            if not line.strip():
                continue
            return tokenize_line(line, self.delimiter)
        return None

    def __iter__(self) -> RowTokenizer:
        return self

    def __next__(self) -> dict[str, str]:
        if not self.header:
            raise StopIteration
        fields = self._next_fields()
        if fields is None:
            raise StopIteration
        width = len(self.header)
        if len(fields) < width:
            fields.extend([""] * (width - len(fields)))
        self.rows_yielded += 1
        return dict(zip(self.header, fields))
