"""
recovery_ingestion.domain.types -- Pure frozen dataclasses for ingestion.

ZERO I/O. Imports only from recovery_kernel.domain.

Contents:
    IngestionStatus     -- outcome of one file ingestion.
    DataQualityWarning  -- a defaulted cell (unparsable date/number).
    UnitRow             -- one typed export row, every merged attribute named.
    MappedRow           -- UnitRow plus the warnings raised while mapping it.
    ScheduleResult      -- what the batch scheduler drove.
    IngestionResult     -- user-visible ingestion report.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from recovery_kernel.domain.types import FileType, LifecycleStage, implied_stage


class IngestionStatus(str, Enum):
    """File-level ingestion outcome."""

    COMPLETED = "completed"  # Every batch committed, file marked processed
    PARTIAL = "partial"  # Some batches committed before a failure
    FAILED = "failed"  # Nothing committed


@dataclass(frozen=True)
class DataQualityWarning:
    """A cell that could not be parsed and was defaulted to null."""

    row_number: int  # 1-indexed data row (header excluded)
    column: str
    code: str
    message: str
    trgid: str | None = None


@dataclass(frozen=True)
class UnitRow:
    """
    One export row after column mapping and type coercion.

    None means the column was absent or blank in the source; it is distinct
    from an explicit zero.
    """

    trgid: str

    # Lifecycle dates
    received_on: date | None = None
    checked_in_on: date | None = None
    tested_on: date | None = None
    first_listed_date: date | None = None
    order_closed_date: date | None = None

    # Descriptive attributes
    program_name: str | None = None
    master_program_name: str | None = None
    upc: str | None = None
    category_name: str | None = None
    title: str | None = None
    product_status: str | None = None
    facility: str | None = None
    location_id: str | None = None
    tag_client_ownership: str | None = None
    tag_client_source: str | None = None
    tag_pricing_condition: str | None = None
    marketplace_profile_sold_on: str | None = None
    order_type_sold_on: str | None = None
    sorting_index: str | None = None
    b2c_auction: str | None = None
    tag_ebay_auction_sale: bool | None = None

    # Retail and sale amounts
    upc_retail: Decimal | None = None
    category_avg_retail: Decimal | None = None
    sale_price: Decimal | None = None
    discount_amount: Decimal | None = None
    refund_amount: Decimal | None = None
    vendor_invoice_total: Decimal | None = None
    service_invoice_total: Decimal | None = None

    # Invoiced fee inputs
    invoiced_third_party_marketplace_fee: Decimal | None = None
    invoiced_check_in_fee: Decimal | None = None
    invoiced_marketing_fee: Decimal | None = None
    invoiced_merchant_fee: Decimal | None = None
    invoiced_overbox_fee: Decimal | None = None
    invoiced_packaging_fee: Decimal | None = None
    invoiced_pick_pack_ship_fee: Decimal | None = None
    invoiced_refund_fee: Decimal | None = None
    invoiced_refurb_fee: Decimal | None = None
    invoiced_revshare_fee: Decimal | None = None
    invoiced_shipping_fee: Decimal | None = None

    # Pre-calculated fee inputs
    calculated_third_party_marketplace_fee: Decimal | None = None
    calculated_check_in_fee: Decimal | None = None
    calculated_marketing_fee: Decimal | None = None
    calculated_merchant_fee: Decimal | None = None
    calculated_overbox_fee: Decimal | None = None
    calculated_packaging_fee: Decimal | None = None
    calculated_pick_pack_ship_fee: Decimal | None = None
    calculated_refund_fee: Decimal | None = None
    calculated_refurb_fee: Decimal | None = None
    calculated_revshare_fee: Decimal | None = None
    calculated_shipping_fee: Decimal | None = None

    @property
    def stage(self) -> LifecycleStage | None:
        """Furthest lifecycle stage whose date this row carries."""
        return implied_stage(self.attributes())

    @property
    def is_sales_bearing(self) -> bool:
        return self.sale_price is not None or self.order_closed_date is not None

    def attributes(self) -> dict[str, Any]:
        """Every attribute except trgid, by name."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "trgid"}


@dataclass(frozen=True)
class MappedRow:
    """Result of mapping one raw row."""

    row_number: int
    unit: UnitRow | None  # None when the row was skipped (blank trgid)
    warnings: tuple[DataQualityWarning, ...] = ()

    @property
    def skipped(self) -> bool:
        return self.unit is None

    @property
    def defaulted(self) -> bool:
        return bool(self.warnings)


@dataclass(frozen=True)
class ScheduleResult:
    """Totals from one scheduler run.  Every counted batch was handled."""

    rows_processed: int
    batches: int
    lines_consumed: int


@dataclass(frozen=True)
class IngestionResult:
    """
    Outcome of ingesting one file.

    Ingestion is durable per batch, not per file: a PARTIAL result means
    ``batches_committed`` batches are in the store and the file upload is
    left unprocessed.  Re-running the same file is safe.
    """

    file_upload_id: UUID | None
    file_name: str
    file_type: FileType
    business_date: date
    status: IngestionStatus
    rows_processed: int = 0
    rows_skipped: int = 0
    rows_defaulted: int = 0
    batches_committed: int = 0
    events_appended: int = 0
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: float = 0.0
    warnings: tuple[DataQualityWarning, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> bool:
        return self.status is IngestionStatus.COMPLETED
