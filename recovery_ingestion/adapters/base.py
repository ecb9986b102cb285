"""
Source adapter protocol and probe DTO.

Contract:
    SourceAdapter.open() yields a RowTokenizer over the source (streaming).
    SourceAdapter.probe() returns a quick snapshot: row count, columns,
    sample rows, physical line count.

Architecture: recovery_ingestion/adapters. File I/O only, no DB.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from recovery_ingestion.adapters.tokenizer import RowTokenizer


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for reading delimited exports as tokenized rows."""

    def open(self, source_path: Path, options: dict[str, Any]) -> AbstractContextManager[RowTokenizer]:
        """Context manager yielding a tokenizer. Streams; does not load the file."""
        ...

    def probe(self, source_path: Path, options: dict[str, Any]) -> "SourceProbe":
        """Quick probe: row count, detected columns, sample rows."""
        ...


@dataclass(frozen=True)
class SourceProbe:
    """Result of probing a source file (row count, columns, first N rows)."""

    row_count: int
    columns: tuple[str, ...]
    sample_rows: tuple[dict[str, Any], ...]
    line_count: int = 0
    encoding: str | None = None
    detected_delimiter: str | None = None
