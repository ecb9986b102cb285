"""
recovery_engines.dimensions -- Sales channel and Walmart channel classification.

Responsibility:
    Map raw marketplace / order-type / sorting-index fields to the business
    dimensions used by sales reporting.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Keyword tables arrive as
    a frozen ChannelRules built by recovery_config; nothing here holds
    module-level mutable state.

Invariants enforced:
    - Total functions: every input, including None and unrecognized values,
      maps to a channel.  Nothing raises.
    - Rules are evaluated top-down; the first match wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class ChannelRules:
    """Keyword tables for channel classification.

    ``sales_channel_keywords`` is an ordered tuple of
    (lower-case substring, channel) pairs checked after the blank check and
    before the auction check.
    """

    blank_marketplace_channel: str
    sales_channel_keywords: tuple[tuple[str, str], ...]
    auction_channel: str
    auction_flag_value: str
    auction_marketplace: str
    walmart_restock_keywords: tuple[str, ...]
    b2c_resale_order_type: str
    b2c_restock_channel: str = "B2C Restock"
    b2c_resale_channel: str = "B2C Resale"
    b2b_finished_goods_channel: str = "B2B Finished Goods"
    b2b_pallet_channel: str = "B2B Pallet"


def sales_channel(
    rules: ChannelRules,
    marketplace: str | None,
    ebay_auction_sale: bool | None = None,
    b2c_auction: str | None = None,
) -> str:
    """Sales channel for a marketplace value.

    Blank -> blank channel; keyword substrings in order; then the explicit
    auction flag or (auction flag value on the exact auction marketplace);
    otherwise the marketplace value unmodified.
    """
    if marketplace is None or not marketplace.strip():
        return rules.blank_marketplace_channel

    lower = marketplace.lower()
    for keyword, channel in rules.sales_channel_keywords:
        if keyword in lower:
            return channel

    if ebay_auction_sale is True or (
        b2c_auction == rules.auction_flag_value
        and marketplace == rules.auction_marketplace
    ):
        return rules.auction_channel

    return marketplace


def walmart_channel(
    rules: ChannelRules,
    marketplace: str | None,
    order_type: str | None,
    sorting_index: str | None,
) -> str:
    """B2C Restock / B2C Resale / B2B Finished Goods / B2B Pallet."""
    lower = (marketplace or "").lower()
    if any(keyword in lower for keyword in rules.walmart_restock_keywords):
        return rules.b2c_restock_channel
    if order_type == rules.b2c_resale_order_type:
        return rules.b2c_resale_channel
    if not (sorting_index or "").strip():
        return rules.b2b_finished_goods_channel
    return rules.b2b_pallet_channel


def effective_retail(
    upc_retail: Decimal | None, category_avg_retail: Decimal | None
) -> Decimal | None:
    """The smaller of UPC retail and category-average retail, else whichever exists."""
    present = [v for v in (upc_retail, category_avg_retail) if v is not None]
    return min(present) if present else None
