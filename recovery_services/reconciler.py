"""
recovery_services.reconciler -- Canonical merge of mapped rows.

Responsibility:
    Turn a batch of UnitRows from one file into canonical unit upserts,
    lifecycle event appends, and cached SalesMetric rows.

Architecture position:
    Services -- the only writer of UnitCanonical, LifecycleEvent and
    SalesMetric.  Composes the pure dimension and fee engines with a
    SQLAlchemy session supplied by the caller; the caller owns the
    transaction (one per batch).

Invariants enforced:
    - One canonical row per trgid; trgid never changes.
    - Per-field last-writer-by-business-date-wins via FieldClock.  Null
      incoming values never overwrite.  Within one file the later row wins.
    - Stage only progresses.  An event is appended when the row's implied
      stage progresses beyond the unit's stage before this row was applied.
    - At most one event per (trgid, stage, file_upload_id): pre-checked
      here and backed by a UNIQUE constraint.
    - Derived attributes are recomputed from merged state after every merge.

Concurrency:
    Rows touching the same trgid from concurrent ingestions are serialized
    by the KeyedLockRegistry, held by the caller for the whole batch
    transaction.  On PostgreSQL the canonical rows are also read FOR UPDATE.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from recovery_engines.dimensions import effective_retail, sales_channel, walmart_channel
from recovery_engines.fees import FeeResult, FeeRuleEngine, SaleRecord
from recovery_engines.fiscal_calendar import fiscal_position
from recovery_kernel.domain.types import FeeType, LifecycleStage, implied_stage
from recovery_kernel.logging_config import get_logger
from recovery_kernel.models.lifecycle_event import LifecycleEvent
from recovery_kernel.models.sales_metric import SalesMetric
from recovery_kernel.models.unit import DATE_ATTRIBUTES, MERGED_ATTRIBUTES, UnitCanonical
from recovery_config.schema import RecoveryConfig

logger = get_logger("services.reconciler")

ZERO = Decimal("0")

# Keep IN lists under SQLite's host-parameter limit.
_IN_CHUNK = 500


class MergeableRow(Protocol):
    """What the reconciler needs from an ingested row."""

    trgid: str

    @property
    def stage(self) -> LifecycleStage | None: ...

    def attributes(self) -> dict: ...


@dataclass(frozen=True)
class UploadContext:
    """The file a batch came from."""

    file_upload_id: UUID
    business_date: date


@dataclass(frozen=True)
class BatchStats:
    rows: int
    units_created: int
    units_updated: int
    events_appended: int
    metrics_upserted: int


def _chunks(items: Sequence[str], size: int = _IN_CHUNK) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class CanonicalReconciler:
    """
    Applies batches of rows to the canonical store.

    Contract:
        ``apply_batch`` flushes but never commits.  Any exception leaves the
        session for the caller to roll back, so a batch is all or nothing.
    """

    def __init__(self, config: RecoveryConfig, fee_engine: FeeRuleEngine | None = None):
        self.config = config
        self.fee_engine = fee_engine or FeeRuleEngine(config.fee_schedule)

    # ------------------------------------------------------------------
    # Batch entry point
    # ------------------------------------------------------------------

    def apply_batch(
        self,
        session: Session,
        rows: Sequence[MergeableRow],
        upload: UploadContext,
    ) -> BatchStats:
        trgids = list(dict.fromkeys(r.trgid for r in rows))
        units = self._load_units(session, trgids)
        metrics = self._load_metrics(session, trgids)
        recorded = self._load_event_keys(session, trgids, upload.file_upload_id)

        created: set[str] = set()
        updated: set[str] = set()
        touched_sales: set[str] = set()
        events = 0

        for row in rows:
            unit = units.get(row.trgid)
            prior_stage = unit.stage if unit is not None else None
            if unit is None:
                unit = UnitCanonical(trgid=row.trgid, field_dates={})
                session.add(unit)
                units[row.trgid] = unit
                created.add(row.trgid)
            elif row.trgid not in created:
                updated.add(row.trgid)

            self._merge(unit, row, upload)
            self._derive(unit)

            if self._append_event(session, unit, row, prior_stage, upload, recorded):
                events += 1
            if self._is_sales_bearing(unit):
                touched_sales.add(row.trgid)

        for trgid in touched_sales:
            self._upsert_metric(session, units[trgid], metrics, upload)

        session.flush()
        stats = BatchStats(
            rows=len(rows),
            units_created=len(created),
            units_updated=len(updated),
            events_appended=events,
            metrics_upserted=len(touched_sales),
        )
        logger.debug(
            "reconcile_batch_applied",
            extra={
                "rows": stats.rows,
                "units_created": stats.units_created,
                "units_updated": stats.units_updated,
                "events_appended": stats.events_appended,
                "metrics_upserted": stats.metrics_upserted,
            },
        )
        return stats

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load_units(self, session: Session, trgids: list[str]) -> dict[str, UnitCanonical]:
        lock_rows = session.get_bind().dialect.name == "postgresql"
        units: dict[str, UnitCanonical] = {}
        for chunk in _chunks(trgids):
            stmt = select(UnitCanonical).where(UnitCanonical.trgid.in_(chunk))
            if lock_rows:
                stmt = stmt.with_for_update()
            for unit in session.scalars(stmt):
                units[unit.trgid] = unit
        return units

    def _load_metrics(self, session: Session, trgids: list[str]) -> dict[str, SalesMetric]:
        metrics: dict[str, SalesMetric] = {}
        for chunk in _chunks(trgids):
            for metric in session.scalars(select(SalesMetric).where(SalesMetric.trgid.in_(chunk))):
                metrics[metric.trgid] = metric
        return metrics

    def _load_event_keys(
        self, session: Session, trgids: list[str], file_upload_id: UUID
    ) -> set[tuple[str, str]]:
        keys: set[tuple[str, str]] = set()
        for chunk in _chunks(trgids):
            stmt = select(LifecycleEvent.trgid, LifecycleEvent.stage).where(
                LifecycleEvent.file_upload_id == file_upload_id,
                LifecycleEvent.trgid.in_(chunk),
            )
            keys.update((trgid, stage) for trgid, stage in session.execute(stmt))
        return keys

    # ------------------------------------------------------------------
    # Merge and derive
    # ------------------------------------------------------------------

    def _merge(self, unit: UnitCanonical, row: MergeableRow, upload: UploadContext) -> None:
        field_dates = dict(unit.field_dates or {})
        stamp = upload.business_date.isoformat()
        for attr, value in row.attributes().items():
            if attr not in MERGED_ATTRIBUTES:
                continue
            clock = unit.clock(attr)
            merged = clock.merge(value, upload.business_date)
            if merged is clock:
                continue
            setattr(unit, attr, merged.value)
            field_dates[attr] = stamp
        # Reassign so the JSON column is flagged dirty.
        unit.field_dates = field_dates

        if unit.last_business_date is None or upload.business_date >= unit.last_business_date:
            unit.last_business_date = upload.business_date
            unit.last_file_upload_id = upload.file_upload_id

    def _derive(self, unit: UnitCanonical) -> None:
        rules = self.config.channel_rules
        unit.effective_retail = effective_retail(unit.upc_retail, unit.category_avg_retail)
        unit.is_refunded = unit.refund_amount is not None and unit.refund_amount > ZERO
        unit.sales_channel = sales_channel(
            rules,
            unit.marketplace_profile_sold_on,
            ebay_auction_sale=unit.tag_ebay_auction_sale,
            b2c_auction=unit.b2c_auction,
        )
        unit.walmart_channel = walmart_channel(
            rules, unit.marketplace_profile_sold_on, unit.order_type_sold_on, unit.sorting_index
        )

        merged_stage = implied_stage({attr: getattr(unit, attr) for attr in DATE_ATTRIBUTES})
        if merged_stage is not None and merged_stage.progresses_beyond(unit.stage):
            unit.current_stage = merged_stage.value

        # Sold units sit in their sale week; others in the week of their current stage.
        anchor = unit.order_closed_date
        if anchor is None and unit.stage is not None:
            anchor = getattr(unit, unit.stage.date_field)
        position = fiscal_position(anchor)
        unit.fiscal_week = position.week if position else None
        unit.fiscal_day = position.day if position else None
        unit.fiscal_year = position.fiscal_year if position else None

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _append_event(
        self,
        session: Session,
        unit: UnitCanonical,
        row: MergeableRow,
        prior_stage: LifecycleStage | None,
        upload: UploadContext,
        recorded: set[tuple[str, str]],
    ) -> bool:
        row_stage = row.stage
        if row_stage is None or not row_stage.progresses_beyond(prior_stage):
            return False
        key = (unit.trgid, row_stage.value)
        if key in recorded:
            return False

        event_date = row.attributes().get(row_stage.date_field)
        position = fiscal_position(event_date)
        session.add(
            LifecycleEvent(
                trgid=unit.trgid,
                stage=row_stage.value,
                event_date=event_date,
                file_business_date=upload.business_date,
                fiscal_week=position.week if position else None,
                fiscal_day=position.day if position else None,
                fiscal_year=position.fiscal_year if position else None,
                file_upload_id=upload.file_upload_id,
            )
        )
        recorded.add(key)
        return True

    # ------------------------------------------------------------------
    # Sales metrics
    # ------------------------------------------------------------------

    @staticmethod
    def _is_sales_bearing(unit: UnitCanonical) -> bool:
        return unit.sale_price is not None or unit.order_closed_date is not None

    def sale_record(self, unit: UnitCanonical) -> SaleRecord:
        """Fee-engine input built from merged canonical state."""
        calculated = {ft: getattr(unit, f"calculated_{ft.column}") for ft in FeeType}
        if calculated[FeeType.REFUND] is None:
            calculated[FeeType.REFUND] = unit.refund_amount
        return SaleRecord(
            trgid=unit.trgid,
            sale_price=unit.sale_price,
            category_name=unit.category_name,
            marketplace=unit.marketplace_profile_sold_on,
            client_source=unit.tag_client_source,
            b2c_auction=unit.b2c_auction,
            invoiced={ft: getattr(unit, f"invoiced_{ft.column}") for ft in FeeType},
            calculated=calculated,
            vendor_invoice_total=unit.vendor_invoice_total,
            service_invoice_total=unit.service_invoice_total,
        )

    def compute_fees(self, unit: UnitCanonical) -> FeeResult:
        return self.fee_engine.compute(record=self.sale_record(unit))

    def _upsert_metric(
        self,
        session: Session,
        unit: UnitCanonical,
        metrics: dict[str, SalesMetric],
        upload: UploadContext,
    ) -> None:
        metric = metrics.get(unit.trgid)
        if metric is None:
            metric = SalesMetric(
                trgid=unit.trgid,
                file_upload_id=upload.file_upload_id,
                file_business_date=upload.business_date,
            )
            session.add(metric)
            metrics[unit.trgid] = metric
        elif upload.business_date >= metric.file_business_date:
            metric.file_upload_id = upload.file_upload_id
            metric.file_business_date = upload.business_date

        fees = self.compute_fees(unit)
        position = fiscal_position(unit.order_closed_date)

        metric.order_closed_date = unit.order_closed_date
        metric.fiscal_week = position.week if position else None
        metric.fiscal_day = position.day if position else None
        metric.fiscal_quarter = position.quarter if position else None
        metric.fiscal_year = position.fiscal_year if position else None
        metric.marketplace_profile_sold_on = unit.marketplace_profile_sold_on
        metric.sales_channel = unit.sales_channel
        metric.walmart_channel = unit.walmart_channel
        metric.tag_client_source = unit.tag_client_source
        metric.master_program_name = unit.master_program_name
        metric.program_name = unit.program_name
        metric.facility = unit.facility
        metric.category_name = unit.category_name
        metric.sale_price = unit.sale_price
        metric.effective_retail = unit.effective_retail
        metric.refund_amount = unit.refund_amount
        for fee_type, amount in fees.amounts.items():
            setattr(metric, fee_type.column, amount)
        metric.total_fees = fees.total
        metric.net_proceeds = fees.net_proceeds
