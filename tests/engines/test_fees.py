"""
Tests for the fee rule engine.

Covers:
- Passthrough precedence (invoiced, pre-calculated, zero)
- Client-source gate on check-in and marketplace fees
- Marketplace formula rates, electronics rates and exempt keywords
- B2C eligibility and electronics keyword matching
- Totals and net proceeds
"""

from decimal import Decimal

import pytest

from recovery_engines.fees import (
    FeeRuleEngine,
    FeeSource,
    SaleRecord,
    is_b2c_eligible,
    is_electronics,
    net_proceeds,
)
from recovery_kernel.domain.types import FeeType


@pytest.fixture
def engine(recovery_config):
    return FeeRuleEngine(recovery_config.fee_schedule)


def _sale(**overrides) -> SaleRecord:
    values = dict(
        trgid="T1",
        sale_price=Decimal("50.00"),
        marketplace="eBay",
        client_source="WMUS",
    )
    values.update(overrides)
    return SaleRecord(**values)


class TestPassthroughPrecedence:
    """Invoiced beats pre-calculated beats zero."""

    def test_invoiced_absolute_value_wins(self, engine):
        record = _sale(
            invoiced={FeeType.SHIPPING: Decimal("-7.25")},
            calculated={FeeType.SHIPPING: Decimal("5.00")},
        )
        result = engine.compute(record=record)
        assert result.amount(FeeType.SHIPPING) == Decimal("7.25")
        assert result.sources[FeeType.SHIPPING] is FeeSource.INVOICED

    def test_zero_invoiced_falls_through_to_calculated(self, engine):
        record = _sale(
            invoiced={FeeType.REFURB: Decimal("0")},
            calculated={FeeType.REFURB: Decimal("3.10")},
        )
        result = engine.compute(record=record)
        assert result.amount(FeeType.REFURB) == Decimal("3.10")
        assert result.sources[FeeType.REFURB] is FeeSource.CALCULATED

    def test_nothing_present_is_zero(self, engine):
        result = engine.compute(record=_sale())
        assert result.amount(FeeType.PACKAGING) == Decimal("0")
        assert result.sources[FeeType.PACKAGING] is FeeSource.ZERO

    def test_every_fee_type_resolved(self, engine):
        result = engine.compute(record=_sale())
        assert set(result.amounts) == set(FeeType)
        assert set(result.sources) == set(FeeType)


class TestClientSourceGate:
    """Check-in and marketplace fees apply only to the gated client source."""

    def test_check_in_gated_for_other_sources(self, engine):
        record = _sale(
            client_source="TGT",
            invoiced={FeeType.CHECK_IN: Decimal("2.00")},
        )
        result = engine.compute(record=record)
        assert result.amount(FeeType.CHECK_IN) == Decimal("0")
        assert result.sources[FeeType.CHECK_IN] is FeeSource.GATED

    def test_check_in_for_gated_source(self, engine):
        record = _sale(
            client_source=" wmus ",
            invoiced={FeeType.CHECK_IN: Decimal("2.00")},
        )
        result = engine.compute(record=record)
        assert result.amount(FeeType.CHECK_IN) == Decimal("2.00")

    def test_marketplace_fee_gated(self, engine):
        result = engine.compute(record=_sale(client_source=None))
        assert result.amount(FeeType.THIRD_PARTY_MARKETPLACE) == Decimal("0")
        assert result.sources[FeeType.THIRD_PARTY_MARKETPLACE] is FeeSource.GATED

    def test_marketplace_invoiced_beats_formula(self, engine):
        record = _sale(invoiced={FeeType.THIRD_PARTY_MARKETPLACE: Decimal("-4.40")})
        result = engine.compute(record=record)
        assert result.amount(FeeType.THIRD_PARTY_MARKETPLACE) == Decimal("4.40")
        assert result.sources[FeeType.THIRD_PARTY_MARKETPLACE] is FeeSource.INVOICED

    def test_marketplace_calculated_beats_formula(self, engine):
        record = _sale(calculated={FeeType.THIRD_PARTY_MARKETPLACE: Decimal("3.30")})
        result = engine.compute(record=record)
        assert result.amount(FeeType.THIRD_PARTY_MARKETPLACE) == Decimal("3.30")
        assert result.sources[FeeType.THIRD_PARTY_MARKETPLACE] is FeeSource.CALCULATED


class TestMarketplaceFormula:

    @pytest.mark.parametrize(
        "marketplace,category,expected",
        [
            ("eBay", "Home Goods", Decimal("6.00")),
            ("eBay", "Consumer Electronics", Decimal("4.00")),
            ("WhatNot", "Toys", Decimal("8.50")),
            ("Wish", "Toys", Decimal("10.00")),
            ("Walmart Marketplace", "TVs", Decimal("4.00")),
            ("Amazon", "Toys", Decimal("6.00")),
        ],
    )
    def test_rates(self, engine, marketplace, category, expected):
        record = _sale(marketplace=marketplace, category_name=category)
        result = engine.compute(record=record)
        assert result.amount(FeeType.THIRD_PARTY_MARKETPLACE) == expected
        assert result.sources[FeeType.THIRD_PARTY_MARKETPLACE] is FeeSource.FORMULA

    @pytest.mark.parametrize("marketplace", ["Walmart DSV", "Walmart In Store"])
    def test_exempt_marketplaces(self, engine, marketplace):
        assert engine.formula_marketplace_fee(_sale(marketplace=marketplace)) == Decimal("0")

    def test_b2b_marketplace_is_ineligible(self, engine):
        assert engine.formula_marketplace_fee(_sale(marketplace="DirectLiquidation")) == Decimal("0")

    def test_auction_flag_overrides_exclusion(self, engine):
        record = _sale(marketplace="B2B Pallet", b2c_auction="B2C")
        assert engine.formula_marketplace_fee(record) == Decimal("6.00")

    @pytest.mark.parametrize("price", [None, Decimal("0"), Decimal("-3")])
    def test_no_positive_price(self, engine, price):
        result = engine.compute(record=_sale(sale_price=price))
        assert result.amount(FeeType.THIRD_PARTY_MARKETPLACE) == Decimal("0")
        assert result.sources[FeeType.THIRD_PARTY_MARKETPLACE] is FeeSource.ZERO

    def test_rounds_half_up_to_cents(self, engine):
        # 20.875 * 0.12 = 2.505
        record = _sale(sale_price=Decimal("20.875"))
        assert engine.formula_marketplace_fee(record) == Decimal("2.51")


class TestClassifiers:

    def test_electronics_word_prefix(self, recovery_config):
        schedule = recovery_config.fee_schedule
        assert is_electronics(schedule, "Cell Phones")
        assert is_electronics(schedule, "TVs & Video")
        assert not is_electronics(schedule, "Microphones")
        assert not is_electronics(schedule, None)

    def test_blank_marketplace_ineligible(self, recovery_config):
        assert not is_b2c_eligible(recovery_config.fee_schedule.eligibility, "  ")

    def test_excluded_keyword_ineligible(self, recovery_config):
        rules = recovery_config.fee_schedule.eligibility
        assert not is_b2c_eligible(rules, "GoWholesale")
        assert is_b2c_eligible(rules, "GoWholesale", b2c_auction="b2cmarketplace")

    def test_unknown_marketplace_defaults_eligible(self, recovery_config):
        assert is_b2c_eligible(recovery_config.fee_schedule.eligibility, "Mercari")


class TestTotalsAndNetProceeds:

    def test_total_sums_all_fees(self, engine):
        record = _sale(
            invoiced={FeeType.SHIPPING: Decimal("5.00"), FeeType.CHECK_IN: Decimal("1.00")},
            calculated={FeeType.PICK_PACK_SHIP: Decimal("2.50")},
        )
        result = engine.compute(record=record)
        # 6.00 marketplace formula + 5.00 + 1.00 + 2.50
        assert result.total == Decimal("14.50")
        assert result.net_proceeds == Decimal("35.50")

    def test_vendor_invoice_total_takes_precedence(self):
        record = _sale(
            vendor_invoice_total=Decimal("30.00"),
            service_invoice_total=Decimal("-5.00"),
        )
        assert net_proceeds(record, Decimal("99")) == Decimal("25.00")

    def test_missing_price_is_negative_fees(self):
        record = _sale(sale_price=None)
        assert net_proceeds(record, Decimal("2.00")) == Decimal("-2.00")

    def test_deterministic(self, engine):
        record = _sale(category_name="Electronics")
        assert engine.compute(record=record) == engine.compute(record=record)
