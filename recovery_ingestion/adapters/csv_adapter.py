"""
CSV source adapter.

Reads comma-delimited exports through RowTokenizer. Handles BOM via
utf-8-sig when encoding is utf-8. Streams rows; the only full pass over a
file is the line count used for progress percentages.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from recovery_ingestion.adapters.base import SourceProbe
from recovery_ingestion.adapters.tokenizer import RowTokenizer
from recovery_kernel.exceptions import SourceReadError


def _get_encoding(options: dict[str, Any]) -> str:
    enc = options.get("encoding", "utf-8")
    if enc.lower() in ("utf-8", "utf8"):
        return "utf-8-sig"  # Strip BOM if present
    return enc


def count_lines(source_path: Path, options: dict[str, Any] | None = None) -> int:
    """Physical line count, streaming."""
    options = options or {}
    with source_path.open("r", encoding=_get_encoding(options), newline="") as f:
        return sum(1 for _ in f)


class CsvSourceAdapter:
    """Read delimited files as one header->value dict per row."""

    sample_size = 5

    @contextmanager
    def open(self, source_path: Path, options: dict[str, Any]) -> Iterator[RowTokenizer]:
        if not source_path.is_file():
            raise SourceReadError(str(source_path), "file not found")
        delimiter = options.get("delimiter", ",")
        with source_path.open("r", encoding=_get_encoding(options), newline="") as f:
            yield RowTokenizer(f, delimiter=delimiter)

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        encoding = _get_encoding(options)
        delimiter = options.get("delimiter", ",")
        with self.open(source_path, options) as tokenizer:
            sample: list[dict[str, Any]] = []
            for row in tokenizer:
                sample.append(row)
                if len(sample) >= self.sample_size:
                    break
            for _ in tokenizer:
                pass
            return SourceProbe(
                row_count=tokenizer.rows_yielded,
                columns=tokenizer.header,
                sample_rows=tuple(sample),
                line_count=tokenizer.lines_consumed,
                encoding=encoding,
                detected_delimiter=delimiter,
            )
