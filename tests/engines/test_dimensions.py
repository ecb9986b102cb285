"""
Tests for sales-channel and Walmart-channel classification.
"""

from decimal import Decimal

import pytest

from recovery_engines.dimensions import effective_retail, sales_channel, walmart_channel


class TestSalesChannel:
    """First match wins; every input maps to a channel."""

    @pytest.fixture(autouse=True)
    def _rules(self, recovery_config):
        self.rules = recovery_config.channel_rules

    @pytest.mark.parametrize("marketplace", [None, "", "   "])
    def test_blank_is_manual_sales(self, marketplace):
        assert sales_channel(self.rules, marketplace) == "Manual Sales"

    @pytest.mark.parametrize(
        "marketplace,expected",
        [
            ("DL Marketplace", "DirectLiquidation"),
            ("WhatNot Live", "WhatNot"),
            ("FlashFindz", "WhatNot"),
            ("Shopify Store", "VIPOutlet"),
            ("Manual", "Local Pickup"),
            ("Daily Deals", "eBay"),
        ],
    )
    def test_keyword_channels(self, marketplace, expected):
        assert sales_channel(self.rules, marketplace) == expected

    def test_keyword_order_dl_before_whatnot(self):
        # "dl" matches first even though "whatnot" also appears
        assert sales_channel(self.rules, "whatnot dl") == "DirectLiquidation"

    def test_explicit_auction_flag(self):
        assert sales_channel(self.rules, "eBay", ebay_auction_sale=True) == "eBay Auction"

    def test_b2c_auction_true_on_exact_ebay(self):
        assert sales_channel(self.rules, "eBay", b2c_auction="TRUE") == "eBay Auction"

    def test_b2c_auction_requires_exact_marketplace(self):
        assert sales_channel(self.rules, "eBay Motors", b2c_auction="TRUE") == "eBay Motors"

    def test_unknown_marketplace_passes_through(self):
        assert sales_channel(self.rules, "Amazon") == "Amazon"


class TestWalmartChannel:

    @pytest.fixture(autouse=True)
    def _rules(self, recovery_config):
        self.rules = recovery_config.channel_rules

    def test_restock_keywords(self):
        assert walmart_channel(self.rules, "Walmart Marketplace", None, "A1") == "B2C Restock"
        assert walmart_channel(self.rules, "walmart in store", None, None) == "B2C Restock"
        assert walmart_channel(self.rules, "Walmart DSV", "B2CMarketplace", None) == "B2C Restock"

    def test_b2c_resale_order_type(self):
        assert walmart_channel(self.rules, "eBay", "B2CMarketplace", "A1") == "B2C Resale"

    def test_blank_sorting_index_is_finished_goods(self):
        assert walmart_channel(self.rules, "eBay", "Other", "  ") == "B2B Finished Goods"
        assert walmart_channel(self.rules, None, None, None) == "B2B Finished Goods"

    def test_sorting_index_is_pallet(self):
        assert walmart_channel(self.rules, "eBay", "Other", "P-17") == "B2B Pallet"


class TestEffectiveRetail:

    def test_smaller_of_both(self):
        assert effective_retail(Decimal("50"), Decimal("40")) == Decimal("40")

    def test_whichever_present(self):
        assert effective_retail(None, Decimal("40")) == Decimal("40")
        assert effective_retail(Decimal("50"), None) == Decimal("50")

    def test_neither(self):
        assert effective_retail(None, None) is None
