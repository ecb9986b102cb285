"""Filter predicates shared by the reporting selectors."""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from recovery_kernel.domain.types import LifecycleStage


@dataclass(frozen=True)
class UnitFilter:
    """
    Reporting filter.  Empty tuples and None mean "no restriction".

    ``date_from``/``date_to`` are inclusive.  For units they match any
    lifecycle date; for sales metrics they match the order-closed date.
    ``fiscal_weeks``/``fiscal_days`` are matched against each stage's own
    date by the aggregator, and against the stored fiscal week/day for
    sales metrics.
    """

    stages: tuple[LifecycleStage, ...] = ()
    fiscal_weeks: tuple[int, ...] = ()
    fiscal_days: tuple[int, ...] = ()
    fiscal_year: int | None = None
    date_from: date | None = None
    date_to: date | None = None
    client_sources: tuple[str, ...] = ()
    program_names: tuple[str, ...] = ()
    facilities: tuple[str, ...] = ()
    file_upload_ids: tuple[UUID, ...] = ()
    excluded_file_upload_ids: tuple[UUID, ...] = ()
