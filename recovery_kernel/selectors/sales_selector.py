"""
Module: recovery_kernel.selectors.sales_selector
Responsibility: Read-only access to cached sales summaries and file uploads.
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from recovery_kernel.domain.types import FeeType, FileType
from recovery_kernel.models.file_upload import FileUpload
from recovery_kernel.models.sales_metric import SalesMetric
from recovery_kernel.selectors.base import BaseSelector
from recovery_kernel.selectors.filters import UnitFilter


@dataclass(frozen=True)
class SalesMetricDTO:
    """Reporting view of one cached sales summary."""

    trgid: str
    file_upload_id: UUID
    order_closed_date: date | None
    fiscal_week: int | None
    fiscal_day: int | None
    fiscal_quarter: int | None
    fiscal_year: int | None
    marketplace_profile_sold_on: str | None
    sales_channel: str | None
    walmart_channel: str | None
    tag_client_source: str | None
    master_program_name: str | None
    program_name: str | None
    facility: str | None
    sale_price: Decimal | None
    effective_retail: Decimal | None
    refund_amount: Decimal | None
    fees: dict[FeeType, Decimal]
    total_fees: Decimal
    net_proceeds: Decimal


@dataclass(frozen=True)
class FileUploadDTO:
    """Reporting view of one file upload."""

    id: UUID
    file_name: str
    file_type: FileType
    file_business_date: date
    upload_timestamp: datetime
    row_count: int
    processed: bool


def _metric_to_dto(m: SalesMetric) -> SalesMetricDTO:
    return SalesMetricDTO(
        trgid=m.trgid,
        file_upload_id=m.file_upload_id,
        order_closed_date=m.order_closed_date,
        fiscal_week=m.fiscal_week,
        fiscal_day=m.fiscal_day,
        fiscal_quarter=m.fiscal_quarter,
        fiscal_year=m.fiscal_year,
        marketplace_profile_sold_on=m.marketplace_profile_sold_on,
        sales_channel=m.sales_channel,
        walmart_channel=m.walmart_channel,
        tag_client_source=m.tag_client_source,
        master_program_name=m.master_program_name,
        program_name=m.program_name,
        facility=m.facility,
        sale_price=m.sale_price,
        effective_retail=m.effective_retail,
        refund_amount=m.refund_amount,
        fees={ft: getattr(m, ft.column) for ft in FeeType},
        total_fees=m.total_fees,
        net_proceeds=m.net_proceeds,
    )


class SalesMetricSelector(BaseSelector[SalesMetric]):
    """
    Selector for cached sales summaries.

    Guarantees:
        - ``reportable_only`` drops transfers and non-positive sale prices,
          matching what every sales KPI counts.
        - Results are ordered by (fiscal_year, fiscal_week, trgid).
    """

    TRANSFER_MARKETPLACE = "Transfer"

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, trgid: str) -> SalesMetricDTO | None:
        m = self.session.scalar(select(SalesMetric).where(SalesMetric.trgid == trgid))
        return _metric_to_dto(m) if m is not None else None

    def find(
        self,
        filters: UnitFilter | None = None,
        reportable_only: bool = True,
    ) -> list[SalesMetricDTO]:
        f = filters or UnitFilter()
        stmt = select(SalesMetric).order_by(
            SalesMetric.fiscal_year, SalesMetric.fiscal_week, SalesMetric.trgid
        )
        if reportable_only:
            stmt = stmt.where(
                or_(
                    SalesMetric.marketplace_profile_sold_on.is_(None),
                    SalesMetric.marketplace_profile_sold_on != self.TRANSFER_MARKETPLACE,
                ),
                SalesMetric.sale_price > 0,
            )
        if f.fiscal_weeks:
            stmt = stmt.where(SalesMetric.fiscal_week.in_(f.fiscal_weeks))
        if f.fiscal_days:
            stmt = stmt.where(SalesMetric.fiscal_day.in_(f.fiscal_days))
        if f.fiscal_year is not None:
            stmt = stmt.where(SalesMetric.fiscal_year == f.fiscal_year)
        if f.date_from is not None:
            stmt = stmt.where(SalesMetric.order_closed_date >= f.date_from)
        if f.date_to is not None:
            stmt = stmt.where(SalesMetric.order_closed_date <= f.date_to)
        if f.client_sources:
            stmt = stmt.where(SalesMetric.tag_client_source.in_(f.client_sources))
        if f.program_names:
            stmt = stmt.where(SalesMetric.program_name.in_(f.program_names))
        if f.facilities:
            stmt = stmt.where(SalesMetric.facility.in_(f.facilities))
        if f.file_upload_ids:
            stmt = stmt.where(SalesMetric.file_upload_id.in_(f.file_upload_ids))
        if f.excluded_file_upload_ids:
            stmt = stmt.where(SalesMetric.file_upload_id.not_in(f.excluded_file_upload_ids))
        return [_metric_to_dto(m) for m in self.session.scalars(stmt)]

    def count(self) -> int:
        return self.session.scalar(select(func.count(SalesMetric.id))) or 0


class FileUploadSelector(BaseSelector[FileUpload]):
    """Selector for file upload queries."""

    def get(self, file_upload_id: UUID) -> FileUploadDTO | None:
        upload = self.session.get(FileUpload, file_upload_id)
        return self._to_dto(upload) if upload is not None else None

    def list_recent(self, limit: int = 50) -> list[FileUploadDTO]:
        stmt = (
            select(FileUpload)
            .order_by(FileUpload.file_business_date.desc(), FileUpload.upload_timestamp.desc())
            .limit(limit)
        )
        return [self._to_dto(u) for u in self.session.scalars(stmt)]

    @staticmethod
    def _to_dto(upload: FileUpload) -> FileUploadDTO:
        return FileUploadDTO(
            id=upload.id,
            file_name=upload.file_name,
            file_type=upload.declared_type,
            file_business_date=upload.file_business_date,
            upload_timestamp=upload.upload_timestamp,
            row_count=upload.row_count,
            processed=upload.processed,
        )
