"""
Tests for expected-vs-computed fee variance classification.
"""

from decimal import Decimal

import pytest

from recovery_engines.variance import (
    FeeVarianceCalculator,
    FeeVarianceStatus,
    percent_difference,
)
from recovery_kernel.domain.types import FeeType


class TestClassify:
    """match / close / mismatch / missing_expected boundaries."""

    def setup_method(self):
        self.calculator = FeeVarianceCalculator()

    @pytest.mark.parametrize(
        "expected,computed,status",
        [
            ("0", "0", FeeVarianceStatus.MATCH),
            ("10.00", "10.00", FeeVarianceStatus.MATCH),
            ("10.00", "10.009", FeeVarianceStatus.MATCH),
            ("100.00", "104.00", FeeVarianceStatus.CLOSE),
            ("100.00", "95.00", FeeVarianceStatus.CLOSE),
            ("100.00", "105.01", FeeVarianceStatus.MISMATCH),
            ("0", "1.00", FeeVarianceStatus.MISMATCH),
            ("10.00", "0", FeeVarianceStatus.MISMATCH),
        ],
    )
    def test_status_table(self, expected, computed, status):
        result = self.calculator.classify(Decimal(expected), Decimal(computed))
        assert result.status is status

    def test_missing_expected(self):
        result = self.calculator.classify(None, Decimal("3.00"), fee_type=FeeType.SHIPPING)
        assert result.status is FeeVarianceStatus.MISSING_EXPECTED
        assert result.expected is None
        assert result.difference is None
        assert result.percent_difference is None
        assert result.fee_type is FeeType.SHIPPING

    def test_difference_and_percent(self):
        result = self.calculator.classify(Decimal("100.00"), Decimal("104.00"))
        assert result.difference == Decimal("4.00")
        assert result.percent_difference == Decimal("4")


class TestPercentDifference:

    def test_zero_expected(self):
        assert percent_difference(Decimal("0"), Decimal("5")) == Decimal("100")
        assert percent_difference(Decimal("0"), Decimal("0")) == Decimal("0")

    def test_negative(self):
        assert percent_difference(Decimal("50"), Decimal("25")) == Decimal("-50")


class TestClassifyUnit:

    def test_covers_every_fee_type(self):
        calc = FeeVarianceCalculator()
        result = calc.classify_unit(
            {FeeType.SHIPPING: Decimal("5.00")},
            {FeeType.SHIPPING: Decimal("5.00"), FeeType.REFUND: Decimal("2.00")},
        )
        assert set(result) == set(FeeType)
        assert result[FeeType.SHIPPING].status is FeeVarianceStatus.MATCH
        assert result[FeeType.REFUND].status is FeeVarianceStatus.MISMATCH
        assert result[FeeType.MARKETING].status is FeeVarianceStatus.MATCH

    def test_no_reference_row(self):
        result = FeeVarianceCalculator().classify_unit(None, {})
        assert all(v.status is FeeVarianceStatus.MISSING_EXPECTED for v in result.values())
