"""Ingestion services (batch scheduling, streaming ingestion)."""

from recovery_ingestion.services.ingestion_service import DeleteResult, IngestionService
from recovery_ingestion.services.scheduler import DEFAULT_BATCH_SIZE, BatchScheduler

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "BatchScheduler",
    "DeleteResult",
    "IngestionService",
]
