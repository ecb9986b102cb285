"""
recovery_engines.variance -- Expected-vs-computed fee variance classification.

Responsibility:
    Compare a computed fee amount against an externally audited expected
    amount and classify the difference.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by the metrics aggregator's variance report.

Invariants enforced:
    - "match": both amounts are zero, or |difference| < 0.01.
    - "close": expected is non-zero and |percent difference| <= 5.
    - "mismatch": everything else with an expected value.
    - "missing_expected": no reference row exists for the unit.
    - Percent difference = (computed - expected) / expected * 100, and is
      defined as 100 when expected is zero and computed is not.
    - Decimal-only arithmetic.

Usage:
    calc = FeeVarianceCalculator()
    calc.classify(expected=Decimal("100.00"), computed=Decimal("104.00")).status
    # FeeVarianceStatus.CLOSE
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from recovery_kernel.domain.types import FeeType

ZERO = Decimal("0")
MATCH_TOLERANCE = Decimal("0.01")
CLOSE_PERCENT = Decimal("5")
HUNDRED = Decimal("100")


class FeeVarianceStatus(str, Enum):
    MATCH = "match"
    CLOSE = "close"
    MISMATCH = "mismatch"
    MISSING_EXPECTED = "missing_expected"


@dataclass(frozen=True)
class FeeVariance:
    """
    Result of comparing one fee type for one unit.

    ``expected``, ``difference`` and ``percent_difference`` are None when no
    reference row exists.
    """

    fee_type: FeeType | None
    expected: Decimal | None
    computed: Decimal
    difference: Decimal | None
    percent_difference: Decimal | None
    status: FeeVarianceStatus


def percent_difference(expected: Decimal, computed: Decimal) -> Decimal:
    if expected == ZERO:
        return HUNDRED if computed != ZERO else ZERO
    return (computed - expected) / expected * HUNDRED


class FeeVarianceCalculator:
    """
    Pure variance classifier.

    Contract:
        No I/O, fully deterministic.  Thresholds are fixed at construction.
    """

    def __init__(
        self,
        match_tolerance: Decimal = MATCH_TOLERANCE,
        close_percent: Decimal = CLOSE_PERCENT,
    ):
        self.match_tolerance = match_tolerance
        self.close_percent = close_percent

    def classify(
        self,
        expected: Decimal | None,
        computed: Decimal,
        fee_type: FeeType | None = None,
    ) -> FeeVariance:
        if expected is None:
            return FeeVariance(
                fee_type=fee_type,
                expected=None,
                computed=computed,
                difference=None,
                percent_difference=None,
                status=FeeVarianceStatus.MISSING_EXPECTED,
            )

        difference = computed - expected
        pct = percent_difference(expected, computed)

        if (expected == ZERO and computed == ZERO) or abs(difference) < self.match_tolerance:
            status = FeeVarianceStatus.MATCH
        elif expected != ZERO and abs(pct) <= self.close_percent:
            status = FeeVarianceStatus.CLOSE
        else:
            status = FeeVarianceStatus.MISMATCH

        return FeeVariance(
            fee_type=fee_type,
            expected=expected,
            computed=computed,
            difference=difference,
            percent_difference=pct,
            status=status,
        )

    def classify_unit(
        self,
        expected: Mapping[FeeType, Decimal] | None,
        computed: Mapping[FeeType, Decimal],
    ) -> dict[FeeType, FeeVariance]:
        """Classify every fee type for one unit.

        ``expected`` is None when the unit has no reference row, which
        makes every fee type "missing_expected".
        """
        return {
            fee_type: self.classify(
                None if expected is None else expected.get(fee_type, ZERO),
                computed.get(fee_type, ZERO),
                fee_type=fee_type,
            )
            for fee_type in FeeType
        }
