"""
Module: recovery_kernel.selectors.unit_selector
Responsibility: Read-only access to canonical units and their lifecycle
    event history.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only.
    - Event history is ordered by stage progression, then insertion time,
      so a monotonic history reads in order.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from recovery_kernel.domain.types import STAGE_DATE_FIELDS, LifecycleStage
from recovery_kernel.models.lifecycle_event import LifecycleEvent
from recovery_kernel.models.unit import DATE_ATTRIBUTES, UnitCanonical
from recovery_kernel.selectors.base import BaseSelector
from recovery_kernel.selectors.filters import UnitFilter


@dataclass(frozen=True)
class UnitDTO:
    """Reporting view of one canonical unit."""

    trgid: str
    current_stage: LifecycleStage | None
    received_on: date | None
    checked_in_on: date | None
    tested_on: date | None
    first_listed_date: date | None
    order_closed_date: date | None
    tag_client_source: str | None
    master_program_name: str | None
    program_name: str | None
    facility: str | None
    category_name: str | None
    marketplace_profile_sold_on: str | None
    sale_price: Decimal | None
    effective_retail: Decimal | None
    sales_channel: str | None
    walmart_channel: str | None
    fiscal_week: int | None
    fiscal_day: int | None
    fiscal_year: int | None
    field_dates: dict[str, str]

    def stage_date(self, stage: LifecycleStage) -> date | None:
        return getattr(self, STAGE_DATE_FIELDS[stage])


@dataclass(frozen=True)
class LifecycleEventDTO:
    """Reporting view of one lifecycle event."""

    id: UUID
    trgid: str
    stage: LifecycleStage
    event_date: date | None
    file_business_date: date
    fiscal_week: int | None
    fiscal_day: int | None
    file_upload_id: UUID


def _unit_to_dto(unit: UnitCanonical) -> UnitDTO:
    return UnitDTO(
        trgid=unit.trgid,
        current_stage=unit.stage,
        received_on=unit.received_on,
        checked_in_on=unit.checked_in_on,
        tested_on=unit.tested_on,
        first_listed_date=unit.first_listed_date,
        order_closed_date=unit.order_closed_date,
        tag_client_source=unit.tag_client_source,
        master_program_name=unit.master_program_name,
        program_name=unit.program_name,
        facility=unit.facility,
        category_name=unit.category_name,
        marketplace_profile_sold_on=unit.marketplace_profile_sold_on,
        sale_price=unit.sale_price,
        effective_retail=unit.effective_retail,
        sales_channel=unit.sales_channel,
        walmart_channel=unit.walmart_channel,
        fiscal_week=unit.fiscal_week,
        fiscal_day=unit.fiscal_day,
        fiscal_year=unit.fiscal_year,
        field_dates=dict(unit.field_dates or {}),
    )


def _event_to_dto(event: LifecycleEvent) -> LifecycleEventDTO:
    return LifecycleEventDTO(
        id=event.id,
        trgid=event.trgid,
        stage=LifecycleStage(event.stage),
        event_date=event.event_date,
        file_business_date=event.file_business_date,
        fiscal_week=event.fiscal_week,
        fiscal_day=event.fiscal_day,
        file_upload_id=event.file_upload_id,
    )


class UnitSelector(BaseSelector[UnitCanonical]):
    """
    Selector for canonical unit queries.

    Guarantees:
        - Results are ordered by trgid.
        - Date-range filtering matches a unit if ANY lifecycle date falls
          in range; per-stage matching is the caller's job.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, trgid: str) -> UnitDTO | None:
        unit = self.session.scalar(
            select(UnitCanonical).where(UnitCanonical.trgid == trgid)
        )
        return _unit_to_dto(unit) if unit is not None else None

    def find(self, filters: UnitFilter | None = None) -> list[UnitDTO]:
        stmt = select(UnitCanonical).order_by(UnitCanonical.trgid)
        for clause in self._where(filters or UnitFilter()):
            stmt = stmt.where(clause)
        return [_unit_to_dto(u) for u in self.session.scalars(stmt)]

    def count(self, filters: UnitFilter | None = None) -> int:
        stmt = select(func.count(UnitCanonical.id))
        for clause in self._where(filters or UnitFilter()):
            stmt = stmt.where(clause)
        return self.session.scalar(stmt) or 0

    def count_by_stage(self, filters: UnitFilter | None = None) -> dict[LifecycleStage, int]:
        """Number of units whose *current* stage is each stage."""
        stmt = select(UnitCanonical.current_stage, func.count(UnitCanonical.id)).group_by(
            UnitCanonical.current_stage
        )
        for clause in self._where(filters or UnitFilter()):
            stmt = stmt.where(clause)
        counts = {stage: 0 for stage in LifecycleStage}
        for stage, n in self.session.execute(stmt):
            if stage is not None:
                counts[LifecycleStage(stage)] = n
        return counts

    def history(self, trgid: str) -> list[LifecycleEventDTO]:
        events = self.session.scalars(
            select(LifecycleEvent).where(LifecycleEvent.trgid == trgid)
        ).all()
        ordered = sorted(
            events,
            key=lambda e: (LifecycleStage(e.stage).rank, e.file_business_date, e.created_at),
        )
        return [_event_to_dto(e) for e in ordered]

    def events_for_file(self, file_upload_id: UUID) -> list[LifecycleEventDTO]:
        stmt = (
            select(LifecycleEvent)
            .where(LifecycleEvent.file_upload_id == file_upload_id)
            .order_by(LifecycleEvent.trgid, LifecycleEvent.stage)
        )
        return [_event_to_dto(e) for e in self.session.scalars(stmt)]

    def count_events(self, file_upload_id: UUID | None = None) -> int:
        stmt = select(func.count(LifecycleEvent.id))
        if file_upload_id is not None:
            stmt = stmt.where(LifecycleEvent.file_upload_id == file_upload_id)
        return self.session.scalar(stmt) or 0

    def _where(self, f: UnitFilter) -> list:
        clauses = []
        if f.stages:
            clauses.append(UnitCanonical.current_stage.in_([s.value for s in f.stages]))
        if f.client_sources:
            clauses.append(UnitCanonical.tag_client_source.in_(f.client_sources))
        if f.program_names:
            clauses.append(UnitCanonical.program_name.in_(f.program_names))
        if f.facilities:
            clauses.append(UnitCanonical.facility.in_(f.facilities))
        if f.date_from is not None or f.date_to is not None:
            per_date = []
            for attr in DATE_ATTRIBUTES:
                col = getattr(UnitCanonical, attr)
                bounds = [col.is_not(None)]
                if f.date_from is not None:
                    bounds.append(col >= f.date_from)
                if f.date_to is not None:
                    bounds.append(col <= f.date_to)
                per_date.append(and_(*bounds))
            clauses.append(or_(*per_date))
        return clauses


class LifecycleEventSelector(BaseSelector[LifecycleEvent]):
    """
    Selector for lifecycle event queries.

    Filters apply to the event's own date and fiscal position, so a unit
    received in one week and sold in another counts in each week once.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def find(
        self,
        stages: tuple[LifecycleStage, ...] = (),
        filters: UnitFilter | None = None,
    ) -> list[LifecycleEventDTO]:
        f = filters or UnitFilter()
        stmt = select(LifecycleEvent).order_by(
            LifecycleEvent.event_date, LifecycleEvent.trgid, LifecycleEvent.stage
        )
        if stages:
            stmt = stmt.where(LifecycleEvent.stage.in_([s.value for s in stages]))
        if f.fiscal_weeks:
            stmt = stmt.where(LifecycleEvent.fiscal_week.in_(f.fiscal_weeks))
        if f.fiscal_days:
            stmt = stmt.where(LifecycleEvent.fiscal_day.in_(f.fiscal_days))
        if f.fiscal_year is not None:
            stmt = stmt.where(LifecycleEvent.fiscal_year == f.fiscal_year)
        if f.date_from is not None:
            stmt = stmt.where(LifecycleEvent.event_date >= f.date_from)
        if f.date_to is not None:
            stmt = stmt.where(LifecycleEvent.event_date <= f.date_to)
        if f.file_upload_ids:
            stmt = stmt.where(LifecycleEvent.file_upload_id.in_(f.file_upload_ids))
        if f.excluded_file_upload_ids:
            stmt = stmt.where(LifecycleEvent.file_upload_id.not_in(f.excluded_file_upload_ids))
        return [_event_to_dto(e) for e in self.session.scalars(stmt)]

    def count_by_stage(self, filters: UnitFilter | None = None) -> dict[LifecycleStage, int]:
        counts = {stage: 0 for stage in LifecycleStage}
        for event in self.find(filters=filters):
            counts[event.stage] += 1
        return counts
