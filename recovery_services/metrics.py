"""
recovery_services.metrics -- Read-only reporting views.

Responsibility:
    Fold canonical units and cached sales summaries into the lifecycle
    funnel, weekly and quarterly trend series, the inbound summary, fee and
    channel breakdowns, and the expected-vs-computed fee variance report.

Architecture position:
    Services -- reads only through recovery_kernel selectors.  Never writes.

Invariants enforced:
    - Funnel counts are per stage: a unit counts for a stage when its own
      date for that stage matches the filter.
    - Trend series exclude transfers, non-positive sale prices and programs
      whose master program name contains the owned-program keyword.
    - Recovery rate = gross sales / effective retail * 100, or 0 when there
      is no retail.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from recovery_engines.fiscal_calendar import fiscal_position, week_label
from recovery_engines.variance import FeeVariance, FeeVarianceCalculator, FeeVarianceStatus
from recovery_kernel.domain.types import FeeType, LifecycleStage
from recovery_kernel.logging_config import get_logger
from recovery_kernel.selectors import (
    SalesMetricDTO,
    SalesMetricSelector,
    UnitFilter,
    UnitSelector,
)
from recovery_config.schema import RecoveryConfig
from recovery_services.expected_fees import ExpectedFeeReference

logger = get_logger("services.metrics")

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def _pct(part: Decimal, whole: Decimal) -> Decimal:
    if whole == ZERO:
        return ZERO
    return (part / whole * HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


# -----------------------------------------------------------------------------
# Report types
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class FunnelStage:
    stage: LifecycleStage
    count: int
    percentage: Decimal


@dataclass(frozen=True)
class TrendPoint:
    """One period of a trend series."""

    label: str
    year: int
    period: int
    gross_sales: Decimal
    effective_retail: Decimal
    recovery_rate: Decimal
    units: int
    refund_units: int
    refund_total: Decimal


@dataclass(frozen=True)
class InboundSummary:
    received: int
    checked_in: int
    pending_check_in: int
    check_in_rate: Decimal
    avg_days_to_check_in: Decimal | None  # gated client source only


@dataclass(frozen=True)
class UnitVariance:
    trgid: str
    fees: dict[FeeType, FeeVariance]


@dataclass(frozen=True)
class VarianceReport:
    units: tuple[UnitVariance, ...]
    by_status: dict[FeeVarianceStatus, int] = field(default_factory=dict)
    by_fee_type: dict[FeeType, dict[FeeVarianceStatus, int]] = field(default_factory=dict)

    @property
    def unit_count(self) -> int:
        return len(self.units)


@dataclass(frozen=True)
class FeeBreakdown:
    """Summed cached fees over reportable sales."""

    units: int
    gross_sales: Decimal
    fees: dict[FeeType, Decimal]
    total_fees: Decimal
    net_proceeds: Decimal

    @property
    def fee_rate(self) -> Decimal:
        """Total fees as a percentage of gross sales."""
        return _pct(self.total_fees, self.gross_sales)


@dataclass(frozen=True)
class ChannelTotals:
    channel: str
    units: int
    gross_sales: Decimal
    effective_retail: Decimal
    total_fees: Decimal
    net_proceeds: Decimal

    @property
    def recovery_rate(self) -> Decimal:
        return _pct(self.gross_sales, self.effective_retail)


@dataclass(frozen=True)
class ChannelBreakdown:
    """Reportable sales grouped by sales channel and by Walmart channel.

    Each grouping is ordered by gross sales, largest first, then by name.
    """

    by_sales_channel: tuple[ChannelTotals, ...]
    by_walmart_channel: tuple[ChannelTotals, ...]


@dataclass
class _ChannelBucket:
    units: int = 0
    gross_sales: Decimal = ZERO
    effective_retail: Decimal = ZERO
    total_fees: Decimal = ZERO
    net_proceeds: Decimal = ZERO

    def add(self, metric: SalesMetricDTO) -> None:
        self.units += 1
        self.gross_sales += metric.sale_price or ZERO
        self.effective_retail += metric.effective_retail or ZERO
        self.total_fees += metric.total_fees
        self.net_proceeds += metric.net_proceeds


@dataclass
class _Bucket:
    gross_sales: Decimal = ZERO
    effective_retail: Decimal = ZERO
    units: int = 0
    refund_units: int = 0
    refund_total: Decimal = ZERO

    def add(self, metric: SalesMetricDTO) -> None:
        self.gross_sales += metric.sale_price or ZERO
        self.effective_retail += metric.effective_retail or ZERO
        self.units += 1
        if metric.refund_amount is not None and metric.refund_amount > ZERO:
            self.refund_units += 1
            self.refund_total += metric.refund_amount


# -----------------------------------------------------------------------------
# Aggregator
# -----------------------------------------------------------------------------


class MetricsAggregator:
    """
    Read-only reporting over the canonical store.

    Contract:
        Every method takes an optional UnitFilter and returns frozen report
        objects.  Nothing is cached between calls.
    """

    def __init__(
        self,
        session: Session,
        config: RecoveryConfig,
        variance_calculator: FeeVarianceCalculator | None = None,
    ):
        self.config = config
        self._units = UnitSelector(session)
        self._sales = SalesMetricSelector(session)
        self._variance = variance_calculator or FeeVarianceCalculator()

    # ------------------------------------------------------------------
    # Funnel
    # ------------------------------------------------------------------

    def funnel(self, filters: UnitFilter | None = None) -> list[FunnelStage]:
        f = filters or UnitFilter()
        # Narrow in SQL by attributes; fiscal filters are per stage date.
        candidates = self._units.find(replace(f, stages=(), fiscal_weeks=(), fiscal_days=()))
        counts = {stage: 0 for stage in LifecycleStage}
        for unit in candidates:
            for stage in LifecycleStage:
                if self._date_matches(unit.stage_date(stage), f):
                    counts[stage] += 1

        total = Decimal(sum(counts.values()))
        return [
            FunnelStage(stage=stage, count=n, percentage=_pct(Decimal(n), total))
            for stage, n in counts.items()
        ]

    @staticmethod
    def _date_matches(d: date | None, f: UnitFilter) -> bool:
        if d is None:
            return False
        if f.date_from is not None and d < f.date_from:
            return False
        if f.date_to is not None and d > f.date_to:
            return False
        if f.fiscal_weeks or f.fiscal_days or f.fiscal_year is not None:
            pos = fiscal_position(d)
            if f.fiscal_weeks and pos.week not in f.fiscal_weeks:
                return False
            if f.fiscal_days and pos.day not in f.fiscal_days:
                return False
            if f.fiscal_year is not None and pos.fiscal_year != f.fiscal_year:
                return False
        return True

    # ------------------------------------------------------------------
    # Trends
    # ------------------------------------------------------------------

    def _trend_metrics(self, filters: UnitFilter | None) -> list[SalesMetricDTO]:
        keyword = self.config.reporting.owned_program_keyword.lower()
        excluded = self.config.reporting.excluded_marketplace
        return [
            m
            for m in self._sales.find(filters, reportable_only=True)
            if m.order_closed_date is not None
            and m.marketplace_profile_sold_on != excluded
            and keyword not in (m.master_program_name or "").lower()
        ]

    def weekly_trend(
        self, filters: UnitFilter | None = None, weeks: int | None = None
    ) -> list[TrendPoint]:
        """Most recent ``weeks`` retail weeks (config default), oldest first."""
        buckets: dict[tuple[int, int], _Bucket] = defaultdict(_Bucket)
        for metric in self._trend_metrics(filters):
            pos = fiscal_position(metric.order_closed_date)
            buckets[(pos.calendar_year, pos.week)].add(metric)

        limit = weeks if weeks is not None else self.config.reporting.trend_weeks
        keys = sorted(buckets)[-limit:] if limit > 0 else []
        return [
            self._point(week_label(week, year), year, week, buckets[(year, week)])
            for year, week in keys
        ]

    def quarterly_trend(self, filters: UnitFilter | None = None) -> list[TrendPoint]:
        buckets: dict[tuple[int, int], _Bucket] = defaultdict(_Bucket)
        for metric in self._trend_metrics(filters):
            pos = fiscal_position(metric.order_closed_date)
            buckets[(pos.fiscal_year, pos.quarter)].add(metric)
        return [
            self._point(f"FY{year} Q{quarter}", year, quarter, buckets[(year, quarter)])
            for year, quarter in sorted(buckets)
        ]

    @staticmethod
    def _point(label: str, year: int, period: int, bucket: _Bucket) -> TrendPoint:
        return TrendPoint(
            label=label,
            year=year,
            period=period,
            gross_sales=bucket.gross_sales,
            effective_retail=bucket.effective_retail,
            recovery_rate=_pct(bucket.gross_sales, bucket.effective_retail),
            units=bucket.units,
            refund_units=bucket.refund_units,
            refund_total=bucket.refund_total,
        )

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def inbound_summary(self, filters: UnitFilter | None = None) -> InboundSummary:
        """Units received and checked in per their own dates, plus days-to-check-in for gated units.

        A unit counts as received when its received date matches the filter
        and as checked in when its check-in date does, whichever file or
        event recorded the date.  Pending units were received in range and
        have no check-in date yet.
        """
        f = filters or UnitFilter()
        gate = self.config.fee_schedule.gated_client_source.upper()
        received = checked_in = pending = 0
        gaps: list[int] = []
        for u in self._units.find(replace(f, stages=(), fiscal_weeks=(), fiscal_days=())):
            if self._date_matches(u.received_on, f):
                received += 1
                if u.checked_in_on is None:
                    pending += 1
            if not self._date_matches(u.checked_in_on, f):
                continue
            checked_in += 1
            if (
                (u.tag_client_source or "").strip().upper() == gate
                and u.received_on is not None
                and u.checked_in_on >= u.received_on
            ):
                gaps.append((u.checked_in_on - u.received_on).days)

        avg_days = (
            (Decimal(sum(gaps)) / Decimal(len(gaps))).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
            if gaps
            else None
        )
        return InboundSummary(
            received=received,
            checked_in=checked_in,
            pending_check_in=pending,
            check_in_rate=_pct(Decimal(checked_in), Decimal(received)),
            avg_days_to_check_in=avg_days,
        )

    # ------------------------------------------------------------------
    # Fees and channels
    # ------------------------------------------------------------------

    def fee_breakdown(self, filters: UnitFilter | None = None) -> FeeBreakdown:
        """Per-fee-type sums, total fees and net proceeds over reportable sales."""
        fees = {ft: ZERO for ft in FeeType}
        units = 0
        gross = total = net = ZERO
        for metric in self._sales.find(filters, reportable_only=True):
            units += 1
            gross += metric.sale_price or ZERO
            for fee_type, amount in metric.fees.items():
                fees[fee_type] += amount
            total += metric.total_fees
            net += metric.net_proceeds
        return FeeBreakdown(
            units=units, gross_sales=gross, fees=fees, total_fees=total, net_proceeds=net
        )

    def channel_breakdown(self, filters: UnitFilter | None = None) -> ChannelBreakdown:
        by_sales: dict[str, _ChannelBucket] = defaultdict(_ChannelBucket)
        by_walmart: dict[str, _ChannelBucket] = defaultdict(_ChannelBucket)
        for metric in self._sales.find(filters, reportable_only=True):
            by_sales[metric.sales_channel or ""].add(metric)
            by_walmart[metric.walmart_channel or ""].add(metric)
        return ChannelBreakdown(
            by_sales_channel=self._channel_totals(by_sales),
            by_walmart_channel=self._channel_totals(by_walmart),
        )

    @staticmethod
    def _channel_totals(buckets: dict[str, _ChannelBucket]) -> tuple[ChannelTotals, ...]:
        ordered = sorted(buckets.items(), key=lambda item: (-item[1].gross_sales, item[0]))
        return tuple(
            ChannelTotals(
                channel=channel,
                units=b.units,
                gross_sales=b.gross_sales,
                effective_retail=b.effective_retail,
                total_fees=b.total_fees,
                net_proceeds=b.net_proceeds,
            )
            for channel, b in ordered
        )

    # ------------------------------------------------------------------
    # Variance
    # ------------------------------------------------------------------

    def variance_report(
        self,
        reference: ExpectedFeeReference,
        filters: UnitFilter | None = None,
    ) -> VarianceReport:
        """Compare each unit's cached computed fees against the reference."""
        units: list[UnitVariance] = []
        by_status: dict[FeeVarianceStatus, int] = {s: 0 for s in FeeVarianceStatus}
        by_fee_type: dict[FeeType, dict[FeeVarianceStatus, int]] = {
            ft: {s: 0 for s in FeeVarianceStatus} for ft in FeeType
        }

        for metric in self._sales.find(filters, reportable_only=False):
            variances = self._variance.classify_unit(reference.get(metric.trgid), metric.fees)
            for fee_type, variance in variances.items():
                by_status[variance.status] += 1
                by_fee_type[fee_type][variance.status] += 1
            units.append(UnitVariance(trgid=metric.trgid, fees=variances))

        logger.info(
            "variance_report_built",
            extra={
                "units": len(units),
                "by_status": {s.value: n for s, n in by_status.items()},
            },
        )
        return VarianceReport(units=tuple(units), by_status=by_status, by_fee_type=by_fee_type)
