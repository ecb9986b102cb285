"""Column aliasing and string-to-typed coercion for export rows. ZERO I/O."""

from recovery_ingestion.mapping.columns import COLUMN_SPECS, ColumnKind, ColumnMap, ColumnSpec
from recovery_ingestion.mapping.engine import (
    CoercionResult,
    RowMapper,
    coerce_amount,
    coerce_date,
    coerce_flag,
    coerce_text,
    coerce_upc,
)

__all__ = [
    "COLUMN_SPECS",
    "CoercionResult",
    "ColumnKind",
    "ColumnMap",
    "ColumnSpec",
    "RowMapper",
    "coerce_amount",
    "coerce_date",
    "coerce_flag",
    "coerce_text",
    "coerce_upc",
]
