"""Source adapters for delimited exports (file I/O only, no DB)."""

from recovery_ingestion.adapters.base import SourceAdapter, SourceProbe
from recovery_ingestion.adapters.csv_adapter import CsvSourceAdapter, count_lines
from recovery_ingestion.adapters.tokenizer import RowTokenizer, tokenize_line

__all__ = [
    "CsvSourceAdapter",
    "RowTokenizer",
    "SourceAdapter",
    "SourceProbe",
    "count_lines",
    "tokenize_line",
]
