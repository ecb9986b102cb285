"""Pure ingestion types and file-name heuristics. ZERO I/O."""

from recovery_ingestion.domain.filenames import classify_file_type, parse_business_date
from recovery_ingestion.domain.types import (
    DataQualityWarning,
    IngestionResult,
    IngestionStatus,
    MappedRow,
    ScheduleResult,
    UnitRow,
)

__all__ = [
    "DataQualityWarning",
    "IngestionResult",
    "IngestionStatus",
    "MappedRow",
    "ScheduleResult",
    "UnitRow",
    "classify_file_type",
    "parse_business_date",
]
