"""
Expected-fee reference: externally audited fee amounts keyed by trgid.

Layout (header row skipped, 12 columns):
    trgid, 3PMP, checkIn, marketing, merchant, overbox, packaging, pps,
    refund, refurb, revshare, shipping

Fee columns follow FeeType declaration order.  Cells may carry ``$``,
``,`` or ``%``; unparsable cells read as 0.  Rows with fewer than 12
fields or a blank trgid are skipped.  Used only by the variance report.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from decimal import Decimal, InvalidOperation
from pathlib import Path

from recovery_ingestion.adapters.tokenizer import tokenize_line
from recovery_kernel.domain.types import FeeType
from recovery_kernel.exceptions import SourceReadError
from recovery_kernel.logging_config import get_logger

logger = get_logger("services.expected_fees")

ZERO = Decimal("0")
COLUMN_COUNT = 1 + len(FeeType)


def parse_fee_cell(raw: str) -> Decimal:
    cleaned = raw.strip().replace("$", "").replace(",", "").replace("%", "")
    if not cleaned:
        return ZERO
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return ZERO
    return value if value.is_finite() else ZERO


class ExpectedFeeReference(Mapping[str, dict[FeeType, Decimal]]):
    """Read-only ``trgid -> {FeeType: expected amount}`` lookup."""

    def __init__(self, rows: Mapping[str, dict[FeeType, Decimal]] | None = None):
        self._rows: dict[str, dict[FeeType, Decimal]] = dict(rows or {})

    @classmethod
    def from_lines(cls, lines: Iterable[str], delimiter: str = ",") -> ExpectedFeeReference:
        rows: dict[str, dict[FeeType, Decimal]] = {}
        skipped = 0
        header_seen = False
        for line in lines:
            if not line.strip():
                continue
            if not header_seen:
                header_seen = True
                continue
            fields = tokenize_line(line.rstrip("\r\n"), delimiter)
            if len(fields) < COLUMN_COUNT or not fields[0]:
                skipped += 1
                continue
            rows[fields[0]] = {
                fee_type: parse_fee_cell(cell)
                for fee_type, cell in zip(FeeType, fields[1:COLUMN_COUNT])
            }
        logger.info(
            "expected_fee_reference_loaded",
            extra={"rows": len(rows), "rows_skipped": skipped},
        )
        return cls(rows)

    @classmethod
    def from_text(cls, text: str, delimiter: str = ",") -> ExpectedFeeReference:
        return cls.from_lines(text.splitlines(), delimiter)

    @classmethod
    def from_path(cls, path: Path, encoding: str = "utf-8-sig") -> ExpectedFeeReference:
        if not path.is_file():
            raise SourceReadError(str(path), "file not found")
        with path.open("r", encoding=encoding, newline="") as f:
            return cls.from_lines(f)

    def __getitem__(self, trgid: str) -> dict[FeeType, Decimal]:
        return self._rows[trgid]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)
