"""
Module: recovery_kernel.models.unit
Responsibility: ORM persistence for the canonical, current-state record of one
    physical inventory unit.
Architecture position: Kernel > Models.

Invariants enforced:
    - Exactly one row per trgid (UNIQUE constraint).
    - trgid never changes after INSERT (before_update listener raises
      TrgidMutationError).
    - Every attribute in MERGED_ATTRIBUTES carries a per-field clock in
      ``field_dates``; the reconciler only overwrites an attribute when the
      incoming file's business date is the same or newer than that clock.
    - Derived attributes (effective_retail, is_refunded, channels, fiscal
      week/day/year, current_stage) are recomputed from merged state and
      carry no clock of their own.

Failure modes:
    - IntegrityError on a concurrent INSERT of the same trgid from another
      process; the batch rolls back and the ingestion is retried.
"""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from recovery_kernel.db.base import TimestampedBase, UUIDString
from recovery_kernel.domain.types import FeeType, FieldClock, LifecycleStage

DATE_ATTRIBUTES: tuple[str, ...] = (
    "received_on",
    "checked_in_on",
    "tested_on",
    "first_listed_date",
    "order_closed_date",
)

TEXT_ATTRIBUTES: tuple[str, ...] = (
    "program_name",
    "master_program_name",
    "upc",
    "category_name",
    "title",
    "product_status",
    "facility",
    "location_id",
    "tag_client_ownership",
    "tag_client_source",
    "tag_pricing_condition",
    "marketplace_profile_sold_on",
    "order_type_sold_on",
    "sorting_index",
    "b2c_auction",
)

FLAG_ATTRIBUTES: tuple[str, ...] = ("tag_ebay_auction_sale",)

AMOUNT_ATTRIBUTES: tuple[str, ...] = (
    "upc_retail",
    "category_avg_retail",
    "sale_price",
    "discount_amount",
    "refund_amount",
    "vendor_invoice_total",
    "service_invoice_total",
) + tuple(f"invoiced_{ft.column}" for ft in FeeType) + tuple(
    f"calculated_{ft.column}" for ft in FeeType
)

MERGED_ATTRIBUTES: tuple[str, ...] = (
    DATE_ATTRIBUTES + TEXT_ATTRIBUTES + FLAG_ATTRIBUTES + AMOUNT_ATTRIBUTES
)


class UnitCanonical(TimestampedBase):
    """
    Canonical per-unit state.

    Contract:
        Written only by the reconciler.  The aggregator reads it through
        UnitSelector.

    Guarantees:
        - ``clock(attr)`` returns the FieldClock for any merged attribute.
        - ``field_dates`` holds ISO business dates keyed by attribute name.
    """

    __tablename__ = "units_canonical"

    __table_args__ = (
        Index("idx_unit_stage", "current_stage"),
        Index("idx_unit_fiscal_week", "fiscal_year", "fiscal_week"),
        Index("idx_unit_client_source", "tag_client_source"),
    )

    trgid: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    # Lifecycle dates
    received_on: Mapped[date | None]
    checked_in_on: Mapped[date | None]
    tested_on: Mapped[date | None]
    first_listed_date: Mapped[date | None]
    order_closed_date: Mapped[date | None]

    # Descriptive attributes
    program_name: Mapped[str | None] = mapped_column(String(255))
    master_program_name: Mapped[str | None] = mapped_column(String(255))
    upc: Mapped[str | None] = mapped_column(String(64))
    category_name: Mapped[str | None] = mapped_column(String(255))
    title: Mapped[str | None] = mapped_column(String(1000))
    product_status: Mapped[str | None] = mapped_column(String(100))
    facility: Mapped[str | None] = mapped_column(String(100))
    location_id: Mapped[str | None] = mapped_column(String(100))
    tag_client_ownership: Mapped[str | None] = mapped_column(String(100))
    tag_client_source: Mapped[str | None] = mapped_column(String(100))
    tag_pricing_condition: Mapped[str | None] = mapped_column(String(100))
    marketplace_profile_sold_on: Mapped[str | None] = mapped_column(String(255))
    order_type_sold_on: Mapped[str | None] = mapped_column(String(100))
    sorting_index: Mapped[str | None] = mapped_column(String(100))
    b2c_auction: Mapped[str | None] = mapped_column(String(50))
    tag_ebay_auction_sale: Mapped[bool | None] = mapped_column(Boolean)

    # Retail and sale amounts
    upc_retail: Mapped[Decimal | None]
    category_avg_retail: Mapped[Decimal | None]
    sale_price: Mapped[Decimal | None]
    discount_amount: Mapped[Decimal | None]
    refund_amount: Mapped[Decimal | None]
    vendor_invoice_total: Mapped[Decimal | None]
    service_invoice_total: Mapped[Decimal | None]

    # Invoiced fee inputs
    invoiced_third_party_marketplace_fee: Mapped[Decimal | None]
    invoiced_check_in_fee: Mapped[Decimal | None]
    invoiced_marketing_fee: Mapped[Decimal | None]
    invoiced_merchant_fee: Mapped[Decimal | None]
    invoiced_overbox_fee: Mapped[Decimal | None]
    invoiced_packaging_fee: Mapped[Decimal | None]
    invoiced_pick_pack_ship_fee: Mapped[Decimal | None]
    invoiced_refund_fee: Mapped[Decimal | None]
    invoiced_refurb_fee: Mapped[Decimal | None]
    invoiced_revshare_fee: Mapped[Decimal | None]
    invoiced_shipping_fee: Mapped[Decimal | None]

    # Pre-calculated fee inputs
    calculated_third_party_marketplace_fee: Mapped[Decimal | None]
    calculated_check_in_fee: Mapped[Decimal | None]
    calculated_marketing_fee: Mapped[Decimal | None]
    calculated_merchant_fee: Mapped[Decimal | None]
    calculated_overbox_fee: Mapped[Decimal | None]
    calculated_packaging_fee: Mapped[Decimal | None]
    calculated_pick_pack_ship_fee: Mapped[Decimal | None]
    calculated_refund_fee: Mapped[Decimal | None]
    calculated_refurb_fee: Mapped[Decimal | None]
    calculated_revshare_fee: Mapped[Decimal | None]
    calculated_shipping_fee: Mapped[Decimal | None]

    # Derived
    effective_retail: Mapped[Decimal | None]
    is_refunded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sales_channel: Mapped[str | None] = mapped_column(String(100))
    walmart_channel: Mapped[str | None] = mapped_column(String(50))
    current_stage: Mapped[str | None] = mapped_column(String(20))
    fiscal_week: Mapped[int | None] = mapped_column(Integer)
    fiscal_day: Mapped[int | None] = mapped_column(Integer)
    fiscal_year: Mapped[int | None] = mapped_column(Integer)

    # Merge bookkeeping
    field_dates: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)
    last_business_date: Mapped[date | None]
    last_file_upload_id: Mapped[UUID | None] = mapped_column(UUIDString())

    @property
    def stage(self) -> LifecycleStage | None:
        return LifecycleStage(self.current_stage) if self.current_stage else None

    def clock(self, attr: str) -> FieldClock:
        raw = (self.field_dates or {}).get(attr)
        return FieldClock(
            getattr(self, attr), date.fromisoformat(raw) if raw else None
        )

    def __repr__(self) -> str:
        return f"<UnitCanonical {self.trgid} stage={self.current_stage}>"
