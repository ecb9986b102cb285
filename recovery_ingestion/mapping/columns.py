"""
Column aliases: canonical attribute -> accepted export header names.

Exports from different report builders spell the same column several ways
(``Invoiced_CheckInFee``, ``InvoicedCheckInFee``, ``Invoiced Check In Fee``).
Lookup tries every alias exactly first, then every alias normalized
(lower-case with spaces, underscores and hyphens removed).
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from recovery_kernel.domain.types import FeeType


class ColumnKind(str, Enum):
    TEXT = "text"
    DATE = "date"
    AMOUNT = "amount"
    FLAG = "flag"
    UPC = "upc"


@dataclass(frozen=True)
class ColumnSpec:
    """One canonical attribute and the headers it may arrive under."""

    target: str
    kind: ColumnKind
    aliases: tuple[str, ...]


# Short header token used by invoiced-fee columns, per fee type.
_FEE_HEADER_TOKENS: dict[FeeType, str] = {
    FeeType.THIRD_PARTY_MARKETPLACE: "3PMP",
    FeeType.CHECK_IN: "CheckIn",
    FeeType.MARKETING: "Marketing",
    FeeType.MERCHANT: "Merchant",
    FeeType.OVERBOX: "Overbox",
    FeeType.PACKAGING: "Packaging",
    FeeType.PICK_PACK_SHIP: "PPS",
    FeeType.REFUND: "Refund",
    FeeType.REFURB: "Refurb",
    FeeType.REVSHARE: "Revshare",
    FeeType.SHIPPING: "Shipping",
}

_CALCULATED_FEE_HEADERS: dict[FeeType, tuple[str, ...]] = {
    FeeType.THIRD_PARTY_MARKETPLACE: (
        "ServiceThirdPartyMarketplaceFeeCalculated",
        "ThirdPartyMarketplaceFeeCalculated",
    ),
    FeeType.CHECK_IN: ("CheckInFeeCalculated",),
    FeeType.MARKETING: ("MarketingFeeCalculated",),
    FeeType.MERCHANT: ("MerchantFeeCalculated",),
    FeeType.OVERBOX: ("OverboxFeeCalculated",),
    FeeType.PACKAGING: ("PackagingFeeCalculated",),
    FeeType.PICK_PACK_SHIP: ("ServicePickPackShipFeeCalculated", "PickPackShipFeeCalculated"),
    FeeType.REFUND: ("RefundFeeCalculated",),
    FeeType.REFURB: ("ServiceRefurbishingFeeCalculated", "RefurbFeeCalculated"),
    FeeType.REVSHARE: ("RevshareFeeCalculated",),
    FeeType.SHIPPING: ("ShippingFeeCalculated",),
}


def _split_camel(token: str) -> str:
    if token.isupper() or token[0].isdigit():
        return token
    return re.sub(r"(?<=[a-z])(?=[A-Z])", " ", token)


def _invoiced_aliases(token: str) -> tuple[str, ...]:
    return (
        f"Invoiced_{token}Fee",
        f"Invoiced{token}Fee",
        f"Invoiced {_split_camel(token)} Fee",
    )


_BASE_COLUMNS: tuple[ColumnSpec, ...] = (
    ColumnSpec("trgid", ColumnKind.TEXT, ("TRGID", "trgid", "TrgId", "Trgid", "TRG ID", "TRG_ID")),
    # Lifecycle dates
    ColumnSpec("received_on", ColumnKind.DATE, ("ReceivedOn", "Received On")),
    ColumnSpec("checked_in_on", ColumnKind.DATE, ("CheckedInOn", "Checked In On", "Checked In")),
    ColumnSpec("tested_on", ColumnKind.DATE, ("TestedOn", "Tested On")),
    ColumnSpec(
        "first_listed_date",
        ColumnKind.DATE,
        ("FirstListedOnMarketplaceOn", "FirstListedDate", "First Listed Date"),
    ),
    ColumnSpec("order_closed_date", ColumnKind.DATE, ("OrderClosedDate", "Order Closed Date")),
    # Descriptive
    ColumnSpec("program_name", ColumnKind.TEXT, ("ProgramName", "Program Name")),
    ColumnSpec("master_program_name", ColumnKind.TEXT, ("Master Program Name", "MasterProgramName")),
    ColumnSpec("upc", ColumnKind.UPC, ("UPC",)),
    ColumnSpec("category_name", ColumnKind.TEXT, ("CategoryName", "Category Name")),
    ColumnSpec("title", ColumnKind.TEXT, ("Title",)),
    ColumnSpec("product_status", ColumnKind.TEXT, ("ProductStatus", "Product Status")),
    ColumnSpec("facility", ColumnKind.TEXT, ("Tag_Facility", "Facility")),
    ColumnSpec("location_id", ColumnKind.TEXT, ("LocationID", "Location ID")),
    ColumnSpec("tag_client_ownership", ColumnKind.TEXT, ("Tag_Ownership", "Tag_ClientOwnership")),
    ColumnSpec(
        "tag_client_source",
        ColumnKind.TEXT,
        ("Tag_ClientSource", "ClientSource_Tag", "Tag_Client_Source"),
    ),
    ColumnSpec("tag_pricing_condition", ColumnKind.TEXT, ("Tag_PricingCondition",)),
    ColumnSpec("marketplace_profile_sold_on", ColumnKind.TEXT, ("Marketplace Profile Sold On",)),
    ColumnSpec(
        "order_type_sold_on",
        ColumnKind.TEXT,
        ("Order Type Sold On", "OrderTypeSoldOn", "Order_Type_Sold_On"),
    ),
    ColumnSpec("sorting_index", ColumnKind.TEXT, ("SortingIndex", "Sorting Index", "sorting_index")),
    ColumnSpec("b2c_auction", ColumnKind.TEXT, ("B2C_Auction", "B2CAuction", "B2C Auction")),
    ColumnSpec(
        "tag_ebay_auction_sale",
        ColumnKind.FLAG,
        ("Tag_EbayAuctionSale", "TagEbayAuctionSale", "Tag Ebay Auction Sale"),
    ),
    # Amounts
    ColumnSpec("upc_retail", ColumnKind.AMOUNT, ("UPCRetail", "UPC Retail")),
    ColumnSpec(
        "category_avg_retail",
        ColumnKind.AMOUNT,
        ("MR_LMR_UPC_AverageCategoryRetail", "AverageCategoryRetail"),
    ),
    ColumnSpec("sale_price", ColumnKind.AMOUNT, ("Sale Price (Discount applied)", "SalePrice", "Sale Price")),
    ColumnSpec("discount_amount", ColumnKind.AMOUNT, ("DiscountAmount", "Discount Amount")),
    ColumnSpec("refund_amount", ColumnKind.AMOUNT, ("RefundedSalePriceCalculated", "RefundAmount")),
    ColumnSpec("vendor_invoice_total", ColumnKind.AMOUNT, ("VendorInvoiceTotal", "Vendor Invoice Total")),
    ColumnSpec("service_invoice_total", ColumnKind.AMOUNT, ("ServiceInvoiceTotal", "Service Invoice Total")),
)

COLUMN_SPECS: tuple[ColumnSpec, ...] = (
    _BASE_COLUMNS
    + tuple(
        ColumnSpec(f"invoiced_{ft.column}", ColumnKind.AMOUNT, _invoiced_aliases(_FEE_HEADER_TOKENS[ft]))
        for ft in FeeType
    )
    + tuple(
        ColumnSpec(f"calculated_{ft.column}", ColumnKind.AMOUNT, _CALCULATED_FEE_HEADERS[ft])
        for ft in FeeType
    )
)


def normalize_header(name: str) -> str:
    return re.sub(r"[\s_\-]", "", name.lower())


class ColumnMap:
    """Resolved ``target -> source header`` for one file's header row."""

    def __init__(self, headers: Iterable[str], specs: tuple[ColumnSpec, ...] = COLUMN_SPECS):
        self.headers: tuple[str, ...] = tuple(headers)
        self.specs = specs
        exact = set(self.headers)
        normalized: dict[str, str] = {}
        for header in self.headers:
            normalized.setdefault(normalize_header(header), header)

        self.resolved: dict[str, str] = {}
        for spec in specs:
            found = next((a for a in spec.aliases if a in exact), None)
            if found is None:
                found = next(
                    (normalized[normalize_header(a)] for a in spec.aliases if normalize_header(a) in normalized),
                    None,
                )
            if found is not None:
                self.resolved[spec.target] = found

    def source_for(self, target: str) -> str | None:
        return self.resolved.get(target)

    def missing(self, required: Iterable[str]) -> list[str]:
        return [target for target in required if target not in self.resolved]

    def value(self, raw: Mapping[str, str], target: str) -> str:
        header = self.resolved.get(target)
        if header is None:
            return ""
        return raw.get(header, "") or ""
