"""
Ingestion service: probe -> stream -> map -> reconcile, one batch at a time.

Orchestrates the source adapter, batch scheduler, row mapper and canonical
reconciler.  Uses structured logging (LogContext, get_logger("ingestion.*")).

Durability:
    Ingestion is durable per batch, not per file.  Each batch is mapped,
    locked by trgid, reconciled and committed in its own transaction.  If a
    batch fails, earlier batches stay committed, the FileUpload stays
    unprocessed and the result is PARTIAL (or FAILED when nothing
    committed).  Re-running the same file is safe: the merge and the event
    append are idempotent.

Fatal before any write:
    A header missing a required column rejects the file before the
    FileUpload row is created.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete
from sqlalchemy.orm import Session

from recovery_config import get_active_config
from recovery_config.schema import RecoveryConfig
from recovery_kernel.domain.clock import Clock, SystemClock
from recovery_kernel.domain.types import FileType
from recovery_kernel.exceptions import (
    BatchHandlerError,
    FileUploadNotFoundError,
    MissingRequiredColumnError,
    RecoveryKernelError,
    SourceReadError,
)
from recovery_kernel.logging_config import LogContext, get_logger
from recovery_kernel.models.file_upload import FileUpload
from recovery_kernel.models.lifecycle_event import LifecycleEvent
from recovery_kernel.models.sales_metric import SalesMetric
from recovery_services.locks import KeyedLockRegistry, default_lock_registry
from recovery_services.reconciler import CanonicalReconciler, UploadContext

from recovery_ingestion.adapters.base import SourceProbe
from recovery_ingestion.adapters.csv_adapter import CsvSourceAdapter, count_lines
from recovery_ingestion.adapters.tokenizer import RowTokenizer
from recovery_ingestion.domain.filenames import classify_file_type, parse_business_date
from recovery_ingestion.domain.types import (
    DataQualityWarning,
    IngestionResult,
    IngestionStatus,
    UnitRow,
)
from recovery_ingestion.mapping.engine import RowMapper
from recovery_ingestion.services.scheduler import BatchScheduler, ProgressCallback

logger = get_logger("ingestion.ingestion_service")

# Warnings kept on the result; every warning is still logged.
MAX_REPORTED_WARNINGS = 100


@dataclass(frozen=True)
class DeleteResult:
    file_upload_id: UUID
    events_deleted: int
    metrics_deleted: int


@dataclass
class _RunCounters:
    rows_seen: int = 0
    rows_skipped: int = 0
    rows_defaulted: int = 0
    batches_committed: int = 0
    events_appended: int = 0
    warnings: list[DataQualityWarning] = field(default_factory=list)


class IngestionService:
    """Streams export files into the canonical store. Uses a session factory, clock and rule config."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        config: RecoveryConfig | None = None,
        reconciler: CanonicalReconciler | None = None,
        lock_registry: KeyedLockRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._reconciler = reconciler or CanonicalReconciler(self._config)
        self._locks = lock_registry or default_lock_registry()
        self._adapter = CsvSourceAdapter()

    @property
    def _options(self) -> dict[str, Any]:
        settings = self._config.ingestion
        return {"delimiter": settings.delimiter, "encoding": settings.encoding}

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Probe
    # ------------------------------------------------------------------

    def probe(self, source_path: Path | str) -> SourceProbe:
        """Row count, header and sample rows. Writes nothing."""
        return self._adapter.probe(Path(source_path), self._options)

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------

    async def ingest_path(
        self,
        source_path: Path | str,
        file_type: FileType | None = None,
        business_date: date | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> IngestionResult:
        path = Path(source_path)
        try:
            total_lines = count_lines(path, self._options)
        except (OSError, UnicodeDecodeError) as exc:
            error = SourceReadError(str(path), str(exc))
            return self._rejected(path.name, file_type, business_date, error, time.monotonic())

        with self._adapter.open(path, self._options) as tokenizer:
            return await self._ingest(
                tokenizer, path.name, file_type, business_date, on_progress, total_lines
            )

    async def ingest_text(
        self,
        text: str,
        file_name: str,
        file_type: FileType | None = None,
        business_date: date | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> IngestionResult:
        tokenizer = RowTokenizer.from_text(text, delimiter=self._config.ingestion.delimiter)
        return await self._ingest(
            tokenizer, file_name, file_type, business_date, on_progress, len(text.splitlines())
        )

    def ingest_path_sync(self, source_path: Path | str, **kwargs: Any) -> IngestionResult:
        return asyncio.run(self.ingest_path(source_path, **kwargs))

    def ingest_text_sync(self, text: str, file_name: str, **kwargs: Any) -> IngestionResult:
        return asyncio.run(self.ingest_text(text, file_name, **kwargs))

    def _resolve_identity(
        self, file_name: str, file_type: FileType | None, business_date: date | None
    ) -> tuple[FileType, date]:
        return (
            file_type or classify_file_type(file_name),
            business_date or parse_business_date(file_name) or self._clock.today(),
        )

    def _rejected(
        self,
        file_name: str,
        file_type: FileType | None,
        business_date: date | None,
        error: RecoveryKernelError,
        t0: float,
    ) -> IngestionResult:
        resolved_type, resolved_date = self._resolve_identity(file_name, file_type, business_date)
        logger.error(
            "ingestion_rejected",
            extra={"file_name": file_name, "error_code": error.code, "error": str(error)},
        )
        return IngestionResult(
            file_upload_id=None,
            file_name=file_name,
            file_type=resolved_type,
            business_date=resolved_date,
            status=IngestionStatus.FAILED,
            error_code=error.code,
            error_message=str(error),
            duration_ms=round((time.monotonic() - t0) * 1000, 2),
        )

    async def _ingest(
        self,
        tokenizer: RowTokenizer,
        file_name: str,
        file_type: FileType | None,
        business_date: date | None,
        on_progress: ProgressCallback | None,
        total_lines: int | None,
    ) -> IngestionResult:
        t0 = time.monotonic()
        file_type, business_date = self._resolve_identity(file_name, file_type, business_date)

        mapper = RowMapper(tokenizer.header)
        try:
            mapper.validate_header(self._config.ingestion.required_columns)
        except MissingRequiredColumnError as exc:
            return self._rejected(file_name, file_type, business_date, exc, t0)

        with self._transaction() as session:
            upload = FileUpload(
                file_name=file_name,
                file_type=file_type.value,
                file_business_date=business_date,
                upload_timestamp=self._clock.now(),
                row_count=0,
                processed=False,
            )
            session.add(upload)
            session.flush()
            file_upload_id = upload.id

        context = UploadContext(file_upload_id=file_upload_id, business_date=business_date)
        counters = _RunCounters()

        def handle_batch(raw_rows: list[dict[str, str]], batch_index: int) -> None:
            with LogContext.bind(batch_index=batch_index):
                self._handle_batch(mapper, raw_rows, batch_index, context, counters)

        with LogContext.bind(
            correlation_id=str(uuid4()),
            file_upload_id=file_upload_id,
            producer="ingestion",
        ):
            logger.info(
                "ingestion_started",
                extra={
                    "file_name": file_name,
                    "file_type": file_type.value,
                    "business_date": business_date,
                    "total_lines": total_lines,
                },
            )
            scheduler = BatchScheduler(self._config.ingestion.batch_size)
            error: RecoveryKernelError | None = None
            try:
                schedule = await scheduler.run(tokenizer, handle_batch, on_progress, total_lines)
            except BatchHandlerError as exc:
                cause = exc.__cause__
                error = cause if isinstance(cause, RecoveryKernelError) else exc
            except UnicodeDecodeError as exc:
                error = SourceReadError(file_name, str(exc))

            if error is not None:
                status = (
                    IngestionStatus.PARTIAL if counters.batches_committed else IngestionStatus.FAILED
                )
                logger.error(
                    "ingestion_failed",
                    extra={
                        "status": status.value,
                        "batches_committed": counters.batches_committed,
                        "error_code": error.code,
                        "error": str(error),
                    },
                )
                return self._result(
                    file_upload_id, file_name, file_type, business_date, status, counters, t0,
                    error=error,
                )

            with self._transaction() as session:
                stored = session.get(FileUpload, file_upload_id)
                stored.row_count = schedule.rows_processed
                stored.processed = True

            result = self._result(
                file_upload_id, file_name, file_type, business_date,
                IngestionStatus.COMPLETED, counters, t0,
            )
            logger.info(
                "ingestion_completed",
                extra={
                    "rows_processed": result.rows_processed,
                    "rows_skipped": result.rows_skipped,
                    "rows_defaulted": result.rows_defaulted,
                    "batches_committed": result.batches_committed,
                    "events_appended": result.events_appended,
                    "duration_ms": result.duration_ms,
                },
            )
            return result

    def _handle_batch(
        self,
        mapper: RowMapper,
        raw_rows: list[dict[str, str]],
        batch_index: int,
        context: UploadContext,
        counters: _RunCounters,
    ) -> None:
        units: list[UnitRow] = []
        skipped = 0
        defaulted: list[DataQualityWarning] = []
        defaulted_rows = 0
        for offset, raw in enumerate(raw_rows, start=1):
            mapped = mapper.map_row(raw, counters.rows_seen + offset)
            if mapped.skipped:
                skipped += 1
                continue
            if mapped.defaulted:
                defaulted_rows += 1
                defaulted.extend(mapped.warnings)
            units.append(mapped.unit)

        for warning in defaulted:
            logger.warning(
                "data_quality_warning",
                extra={
                    "row_number": warning.row_number,
                    "column": warning.column,
                    "code": warning.code,
                    "trgid": warning.trgid,
                },
            )

        with self._locks.hold(u.trgid for u in units):
            with self._transaction() as session:
                stats = self._reconciler.apply_batch(session, units, context)

        counters.rows_seen += len(raw_rows)
        counters.rows_skipped += skipped
        counters.rows_defaulted += defaulted_rows
        counters.batches_committed += 1
        counters.events_appended += stats.events_appended
        room = MAX_REPORTED_WARNINGS - len(counters.warnings)
        if room > 0:
            counters.warnings.extend(defaulted[:room])

        logger.info(
            "batch_committed",
            extra={
                "rows": len(raw_rows),
                "rows_skipped": skipped,
                "units_created": stats.units_created,
                "units_updated": stats.units_updated,
                "events_appended": stats.events_appended,
            },
        )

    def _result(
        self,
        file_upload_id: UUID,
        file_name: str,
        file_type: FileType,
        business_date: date,
        status: IngestionStatus,
        counters: _RunCounters,
        t0: float,
        error: RecoveryKernelError | None = None,
    ) -> IngestionResult:
        return IngestionResult(
            file_upload_id=file_upload_id,
            file_name=file_name,
            file_type=file_type,
            business_date=business_date,
            status=status,
            rows_processed=counters.rows_seen,
            rows_skipped=counters.rows_skipped,
            rows_defaulted=counters.rows_defaulted,
            batches_committed=counters.batches_committed,
            events_appended=counters.events_appended,
            error_code=error.code if error is not None else None,
            error_message=str(error) if error is not None else None,
            duration_ms=round((time.monotonic() - t0) * 1000, 2),
            warnings=tuple(counters.warnings),
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_file_upload(self, file_upload_id: UUID) -> DeleteResult:
        """
        Remove a file upload with its lifecycle events and sales summaries.

        Canonical units are kept: other files may still back them.
        """
        with self._transaction() as session:
            upload = session.get(FileUpload, file_upload_id)
            if upload is None:
                raise FileUploadNotFoundError(str(file_upload_id))
            events = session.execute(
                delete(LifecycleEvent).where(LifecycleEvent.file_upload_id == file_upload_id)
            ).rowcount
            metrics = session.execute(
                delete(SalesMetric).where(SalesMetric.file_upload_id == file_upload_id)
            ).rowcount
            session.delete(upload)

        logger.info(
            "file_upload_deleted",
            extra={
                "file_upload_id": str(file_upload_id),
                "events_deleted": events,
                "metrics_deleted": metrics,
            },
        )
        return DeleteResult(
            file_upload_id=file_upload_id, events_deleted=events, metrics_deleted=metrics
        )
