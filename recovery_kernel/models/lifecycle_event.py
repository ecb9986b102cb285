"""
Module: recovery_kernel.models.lifecycle_event
Responsibility: Append-only record of a unit reaching a lifecycle stage.
Architecture position: Kernel > Models.

Invariants enforced:
    - Append-only: ORM before_update/before_delete listeners raise
      ImmutabilityViolationError (db/immutability.py).
    - Idempotent append: UNIQUE(trgid, stage, file_upload_id).  Re-ingesting
      the same file never duplicates an event.

Failure modes:
    - IntegrityError on a duplicate (trgid, stage, file_upload_id) triple
      that slipped past the reconciler's pre-check.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from recovery_kernel.db.base import TimestampedBase, UUIDString
from recovery_kernel.domain.types import LifecycleStage


class LifecycleEvent(TimestampedBase):
    """
    A unit reached ``stage`` on ``event_date``, as reported by one file.

    Contract:
        Once INSERTed, no column changes.  Rows disappear only through the
        FileUpload cascade.
    """

    __tablename__ = "lifecycle_events"

    __table_args__ = (
        UniqueConstraint(
            "trgid", "stage", "file_upload_id", name="uq_lifecycle_event_triple"
        ),
        Index("idx_lifecycle_trgid", "trgid"),
        Index("idx_lifecycle_stage_week", "stage", "fiscal_week"),
        Index("idx_lifecycle_file_upload", "file_upload_id"),
    )

    trgid: Mapped[str] = mapped_column(String(100), nullable=False)
    stage: Mapped[str] = mapped_column(String(20), nullable=False)
    event_date: Mapped[date | None] = mapped_column(nullable=True)
    file_business_date: Mapped[date] = mapped_column(nullable=False)
    fiscal_week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fiscal_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fiscal_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    file_upload_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    @property
    def lifecycle_stage(self) -> LifecycleStage:
        return LifecycleStage(self.stage)

    def __repr__(self) -> str:
        return f"<LifecycleEvent {self.trgid} {self.stage} {self.event_date}>"
