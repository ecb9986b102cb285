"""
Mapping engine: pure transformation from a raw ``{header: value}`` row to a
typed UnitRow.

ZERO I/O.  Unparsable cells never fail the row: the attribute becomes None
and a DataQualityWarning is attached.  A blank trgid skips the row.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from recovery_kernel.exceptions import MissingRequiredColumnError

from recovery_ingestion.domain.types import DataQualityWarning, MappedRow, UnitRow
from recovery_ingestion.mapping.columns import COLUMN_SPECS, ColumnKind, ColumnMap


# -----------------------------------------------------------------------------
# Result types
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class CoercionResult:
    """Result of coercing a string cell.  ``value`` is None on failure."""

    success: bool
    value: Any = None
    code: str | None = None
    message: str | None = None


_OK_EMPTY = CoercionResult(success=True, value=None)

_US_DATE = re.compile(
    r"^(\d{1,2})/(\d{1,2})/(\d{4})"
    r"(?:\s+(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([AaPp][Mm])?)?$"
)
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$")

_TRUE_VALUES = frozenset({"true", "yes", "1"})


# -----------------------------------------------------------------------------
# Coercion: string -> typed
# -----------------------------------------------------------------------------


def coerce_text(value: str) -> CoercionResult:
    s = value.strip()
    return CoercionResult(success=True, value=s or None)


def coerce_upc(value: str) -> CoercionResult:
    s = value.strip()
    if s.startswith("'"):
        s = s[1:]
    return CoercionResult(success=True, value=s or None)


def coerce_amount(value: str) -> CoercionResult:
    """Decimal after stripping ``$`` and thousands separators."""
    s = value.strip().replace("$", "").replace(",", "")
    if not s:
        return _OK_EMPTY
    try:
        parsed = Decimal(s)
    except InvalidOperation:
        parsed = None
    if parsed is None or not parsed.is_finite():
        return CoercionResult(
            success=False, code="INVALID_NUMBER", message=f"Cannot parse number: {value!r}"
        )
    return CoercionResult(success=True, value=parsed)


def coerce_flag(value: str) -> CoercionResult:
    s = value.strip().lower()
    if not s:
        return _OK_EMPTY
    return CoercionResult(success=True, value=s in _TRUE_VALUES)


def coerce_date(value: str) -> CoercionResult:
    """``MM/DD/YYYY [HH:MM[:SS] [AM|PM]]`` or ISO ``YYYY-MM-DD[...]``.  Time is dropped."""
    s = value.strip()
    if not s:
        return _OK_EMPTY
    try:
        m = _US_DATE.match(s)
        if m:
            return CoercionResult(success=True, value=date(int(m[3]), int(m[1]), int(m[2])))
        m = _ISO_DATE.match(s)
        if m:
            return CoercionResult(success=True, value=date(int(m[1]), int(m[2]), int(m[3])))
    except ValueError:
        pass
    return CoercionResult(success=False, code="INVALID_DATE", message=f"Cannot parse date: {value!r}")


_COERCERS = {
    ColumnKind.TEXT: coerce_text,
    ColumnKind.UPC: coerce_upc,
    ColumnKind.AMOUNT: coerce_amount,
    ColumnKind.FLAG: coerce_flag,
    ColumnKind.DATE: coerce_date,
}


# -----------------------------------------------------------------------------
# Row mapping
# -----------------------------------------------------------------------------


class RowMapper:
    """
    Maps raw rows from one file to UnitRows.

    Built once per file from the header.  ``validate_header`` raises
    MissingRequiredColumnError; call it before anything is written.
    """

    def __init__(self, headers: Iterable[str]):
        self.column_map = ColumnMap(headers, COLUMN_SPECS)

    def validate_header(self, required: Iterable[str]) -> None:
        missing = self.column_map.missing(required)
        if missing:
            raise MissingRequiredColumnError(missing[0], self.column_map.headers)

    def map_row(self, raw: Mapping[str, str], row_number: int) -> MappedRow:
        trgid = self.column_map.value(raw, "trgid").strip()
        if not trgid:
            return MappedRow(row_number=row_number, unit=None)

        values: dict[str, Any] = {}
        warnings: list[DataQualityWarning] = []
        for spec in self.column_map.specs:
            if spec.target == "trgid":
                continue
            header = self.column_map.source_for(spec.target)
            if header is None:
                continue
            result = _COERCERS[spec.kind](raw.get(header, "") or "")
            if not result.success:
                warnings.append(
                    DataQualityWarning(
                        row_number=row_number,
                        column=header,
                        code=result.code or "INVALID_VALUE",
                        message=result.message or "",
                        trgid=trgid,
                    )
                )
            values[spec.target] = result.value

        return MappedRow(
            row_number=row_number,
            unit=UnitRow(trgid=trgid, **values),
            warnings=tuple(warnings),
        )

