"""
Module: recovery_kernel.models.file_upload
Responsibility: ORM persistence for one ingestion run of one file.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - Created at ingestion start, updated once when ingestion completes.
      The reconciler never writes to it.
    - Deleting a FileUpload is done through delete_file_upload(), which
      removes its lifecycle events and sales metrics but never canonical
      units.
"""

from datetime import date, datetime

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from recovery_kernel.db.base import TimestampedBase
from recovery_kernel.domain.types import FileType


class FileUpload(TimestampedBase):
    """
    Identity of one ingestion run.

    Guarantees:
        - business_date is always set (from the file name or the clock).
        - processed is True only after every batch has committed.
    """

    __tablename__ = "file_uploads"

    __table_args__ = (
        Index("idx_file_upload_business_date", "file_business_date"),
    )

    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=FileType.UNKNOWN.value
    )
    file_business_date: Mapped[date] = mapped_column(nullable=False)
    upload_timestamp: Mapped[datetime] = mapped_column(nullable=False)
    row_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def declared_type(self) -> FileType:
        return FileType(self.file_type)

    def __repr__(self) -> str:
        return (
            f"<FileUpload {self.file_name} {self.file_type} "
            f"{self.file_business_date} processed={self.processed}>"
        )
