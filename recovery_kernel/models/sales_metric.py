"""
Module: recovery_kernel.models.sales_metric
Responsibility: Cached per-unit sales summary used by the trend series.
Architecture position: Kernel > Models.

Invariants enforced:
    - One row per trgid (UNIQUE).  The row is rebuilt from the merged
      canonical unit every time a sales-bearing row for that trgid is
      reconciled.
    - file_upload_id names the file that currently owns the row: ownership
      moves to a contributing file whose business date is the same or
      newer.  Deleting that FileUpload deletes the row.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from recovery_kernel.db.base import TimestampedBase, UUIDString


class SalesMetric(TimestampedBase):
    """Sale inputs, derived dimensions, and resolved fees for one unit."""

    __tablename__ = "sales_metrics"

    __table_args__ = (
        Index("idx_sales_metric_week", "fiscal_year", "fiscal_week"),
        Index("idx_sales_metric_file_upload", "file_upload_id"),
    )

    trgid: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    file_upload_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    file_business_date: Mapped[date] = mapped_column(nullable=False)

    order_closed_date: Mapped[date | None]
    fiscal_week: Mapped[int | None] = mapped_column(Integer)
    fiscal_day: Mapped[int | None] = mapped_column(Integer)
    fiscal_quarter: Mapped[int | None] = mapped_column(Integer)
    fiscal_year: Mapped[int | None] = mapped_column(Integer)

    marketplace_profile_sold_on: Mapped[str | None] = mapped_column(String(255))
    sales_channel: Mapped[str | None] = mapped_column(String(100))
    walmart_channel: Mapped[str | None] = mapped_column(String(50))
    tag_client_source: Mapped[str | None] = mapped_column(String(100))
    master_program_name: Mapped[str | None] = mapped_column(String(255))
    program_name: Mapped[str | None] = mapped_column(String(255))
    facility: Mapped[str | None] = mapped_column(String(100))
    category_name: Mapped[str | None] = mapped_column(String(255))

    sale_price: Mapped[Decimal | None]
    effective_retail: Mapped[Decimal | None]
    refund_amount: Mapped[Decimal | None]

    third_party_marketplace_fee: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    check_in_fee: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    marketing_fee: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    merchant_fee: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    overbox_fee: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    packaging_fee: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    pick_pack_ship_fee: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    refund_fee: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    refurb_fee: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    revshare_fee: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    shipping_fee: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_fees: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    net_proceeds: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    def __repr__(self) -> str:
        return f"<SalesMetric {self.trgid} {self.sale_price} fees={self.total_fees}>"
