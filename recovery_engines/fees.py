"""
recovery_engines.fees -- Fee rule engine.

Responsibility:
    Resolve each of the eleven fee types for one sale through a strict
    precedence hierarchy, then total them and derive net proceeds.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Rates and keyword tables arrive as a frozen FeeSchedule built by
    recovery_config.  Consumed by the reconciler (SalesMetric rows) and the
    metrics aggregator (variance report).

Invariants enforced:
    - Passthrough precedence for every fee except the marketplace fee:
      abs(invoiced) if present and non-zero, else pre-calculated if present
      and non-zero, else zero.
    - Check-in fee is zero unless the client source is the gated source
      (case-insensitive, trimmed).
    - Marketplace fee precedence: client-source gate, then abs(invoiced),
      then pre-calculated, then formula, then zero.
    - Formula amounts are rounded to cents, ROUND_HALF_UP.
    - Total is the sum of all eleven amounts.
    - Decimal-only arithmetic.  Floats never enter.

Failure modes:
    - None on data.  Unknown marketplaces and categories take the default
      branches.

Usage:
    engine = FeeRuleEngine(config.fee_schedule)
    result = engine.compute(record=SaleRecord(trgid="T1", sale_price=Decimal("50"),
                                              marketplace="eBay", client_source="WMUS"))
    result.amounts[FeeType.THIRD_PARTY_MARKETPLACE]   # Decimal("6.00")
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from recovery_kernel.domain.types import FeeType
from recovery_engines.tracer import traced_engine

ZERO = Decimal("0")


class FeeSource(str, Enum):
    """Which rule produced a fee amount."""

    INVOICED = "invoiced"
    CALCULATED = "calculated"
    FORMULA = "formula"
    GATED = "gated"
    ZERO = "zero"


@dataclass(frozen=True)
class EligibilityRules:
    """B2C eligibility keyword tables (all lower-case)."""

    always_eligible_auction_flags: tuple[str, ...]
    excluded_keywords: tuple[str, ...]
    eligible_keywords: tuple[str, ...]
    eligible_keyword_pairs: tuple[tuple[str, ...], ...] = ()


@dataclass(frozen=True)
class MarketplaceRate:
    """Formula rate applied when every keyword appears in the marketplace."""

    keywords: tuple[str, ...]
    rate: Decimal
    electronics_rate: Decimal | None = None

    def matches(self, marketplace_lower: str) -> bool:
        return all(k in marketplace_lower for k in self.keywords)


@dataclass(frozen=True)
class FeeSchedule:
    """Immutable rate and keyword configuration for the fee rule engine."""

    gated_client_source: str
    formula_exempt_keywords: tuple[str, ...]
    marketplace_rates: tuple[MarketplaceRate, ...]
    fallback_rate: Decimal
    electronics_keywords: tuple[str, ...]
    eligibility: EligibilityRules
    rounding_quantum: Decimal = Decimal("0.01")


@dataclass(frozen=True)
class SaleRecord:
    """Fee-engine input for one unit.

    ``None`` means the value was absent in the source; it is distinct from
    an explicit zero.
    """

    trgid: str
    sale_price: Decimal | None = None
    category_name: str | None = None
    marketplace: str | None = None
    client_source: str | None = None
    b2c_auction: str | None = None
    invoiced: Mapping[FeeType, Decimal | None] = field(default_factory=dict)
    calculated: Mapping[FeeType, Decimal | None] = field(default_factory=dict)
    vendor_invoice_total: Decimal | None = None
    service_invoice_total: Decimal | None = None


@dataclass(frozen=True)
class FeeResult:
    """Resolved amount and provenance for every fee type."""

    trgid: str
    amounts: Mapping[FeeType, Decimal]
    sources: Mapping[FeeType, FeeSource]
    total: Decimal
    net_proceeds: Decimal

    def amount(self, fee_type: FeeType) -> Decimal:
        return self.amounts[fee_type]


def _present(value: Decimal | None) -> bool:
    return value is not None and value != ZERO


def is_gated_client(schedule: FeeSchedule, client_source: str | None) -> bool:
    return (client_source or "").strip().upper() == schedule.gated_client_source.upper()


def is_b2c_eligible(
    rules: EligibilityRules,
    marketplace: str | None,
    b2c_auction: str | None = None,
) -> bool:
    """Whether a sale counts as consumer-facing for marketplace-fee formulas."""
    if (b2c_auction or "").strip().lower() in rules.always_eligible_auction_flags:
        return True

    lower = (marketplace or "").strip().lower()
    if not lower:
        return False
    if any(k in lower for k in rules.excluded_keywords):
        return False
    if any(k in lower for k in rules.eligible_keywords):
        return True
    if any(all(k in lower for k in pair) for pair in rules.eligible_keyword_pairs):
        return True
    return True


def is_electronics(schedule: FeeSchedule, category_name: str | None) -> bool:
    """True if any word in the category starts with an electronics keyword."""
    lower = (category_name or "").lower()
    return any(
        re.search(rf"\b{re.escape(keyword)}", lower) for keyword in schedule.electronics_keywords
    )


class FeeRuleEngine:
    """
    Pure fee calculator.

    Contract:
        No I/O, no database access, fully deterministic.  The schedule is
        fixed at construction.
    Guarantees:
        - ``compute`` returns an amount and a FeeSource for all eleven
          fee types.
        - Amounts are never negative for invoiced values (absolute value is
          taken); pre-calculated values pass through with their sign.
    Non-goals:
        - Does not persist results; the reconciler caches them in
          SalesMetric rows.
    """

    def __init__(self, schedule: FeeSchedule):
        self.schedule = schedule

    @traced_engine("fees", "1.0", fingerprint_fields=("record",))
    def compute(self, record: SaleRecord) -> FeeResult:
        amounts: dict[FeeType, Decimal] = {}
        sources: dict[FeeType, FeeSource] = {}

        for fee_type in FeeType:
            if fee_type is FeeType.THIRD_PARTY_MARKETPLACE:
                amount, source = self._marketplace_fee(record)
            elif fee_type is FeeType.CHECK_IN and not is_gated_client(
                self.schedule, record.client_source
            ):
                amount, source = ZERO, FeeSource.GATED
            else:
                amount, source = self._passthrough(record, fee_type)
            amounts[fee_type] = amount
            sources[fee_type] = source

        total = sum(amounts.values(), ZERO)
        return FeeResult(
            trgid=record.trgid,
            amounts=amounts,
            sources=sources,
            total=total,
            net_proceeds=net_proceeds(record, total),
        )

    def _passthrough(self, record: SaleRecord, fee_type: FeeType) -> tuple[Decimal, FeeSource]:
        invoiced = record.invoiced.get(fee_type)
        if _present(invoiced):
            return abs(invoiced), FeeSource.INVOICED
        calculated = record.calculated.get(fee_type)
        if _present(calculated):
            return calculated, FeeSource.CALCULATED
        return ZERO, FeeSource.ZERO

    def _marketplace_fee(self, record: SaleRecord) -> tuple[Decimal, FeeSource]:
        if not is_gated_client(self.schedule, record.client_source):
            return ZERO, FeeSource.GATED

        amount, source = self._passthrough(record, FeeType.THIRD_PARTY_MARKETPLACE)
        if source is not FeeSource.ZERO:
            return amount, source

        formula = self.formula_marketplace_fee(record)
        if formula == ZERO:
            return ZERO, FeeSource.ZERO
        return formula, FeeSource.FORMULA

    def formula_marketplace_fee(self, record: SaleRecord) -> Decimal:
        """Rate-table marketplace fee against the sale price."""
        price = record.sale_price
        if price is None or price <= ZERO:
            return ZERO

        schedule = self.schedule
        lower = (record.marketplace or "").lower()
        if any(k in lower for k in schedule.formula_exempt_keywords):
            return ZERO
        if not is_b2c_eligible(schedule.eligibility, record.marketplace, record.b2c_auction):
            return ZERO

        rate = schedule.fallback_rate
        for entry in schedule.marketplace_rates:
            if entry.matches(lower):
                rate = entry.rate
                if entry.electronics_rate is not None and is_electronics(
                    schedule, record.category_name
                ):
                    rate = entry.electronics_rate
                break

        return (price * rate).quantize(schedule.rounding_quantum, rounding=ROUND_HALF_UP)


def net_proceeds(record: SaleRecord, total_fees: Decimal) -> Decimal:
    """Vendor + service invoice totals when a vendor total exists, else sale price less fees."""
    if _present(record.vendor_invoice_total):
        return record.vendor_invoice_total + (record.service_invoice_total or ZERO)
    return (record.sale_price or ZERO) - total_fees
