"""
Batch scheduler: drive a RowTokenizer in bounded batches.

Contract:
    - Rows are grouped into batches of ``batch_size``; the final partial
      batch is flushed exactly once.
    - The handler is awaited before the next batch is pulled, so at most
      one batch is live and handlers never overlap.  Indices are 0, 1, 2...
    - After every batch: progress is reported as
      ``(rows_processed, percent_of_lines_consumed)`` and the scheduler
      yields to the event loop (``await asyncio.sleep(0)``).
    - A handler failure stops the run after that batch and raises
      BatchHandlerError.  Earlier batches stay committed: ingestion is
      durable per batch, not per file.
    - Cancellation propagates unchanged at the suspension point.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Any

from recovery_kernel.exceptions import BatchHandlerError
from recovery_kernel.logging_config import get_logger

from recovery_ingestion.adapters.tokenizer import RowTokenizer
from recovery_ingestion.domain.types import ScheduleResult

logger = get_logger("ingestion.scheduler")

DEFAULT_BATCH_SIZE = 500

Row = dict[str, str]
BatchHandler = Callable[[list[Row], int], "Awaitable[Any] | Any"]
ProgressCallback = Callable[[int, float], Any]


class BatchScheduler:
    """Single-producer, in-order, one-batch-in-flight scheduler."""

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.batch_size = batch_size

    async def run(
        self,
        tokenizer: RowTokenizer,
        on_batch: BatchHandler,
        on_progress: ProgressCallback | None = None,
        total_lines: int | None = None,
    ) -> ScheduleResult:
        t0 = time.monotonic()
        rows_processed = 0
        batch_index = 0
        batch: list[Row] = []

        async def flush(rows: list[Row]) -> None:
            nonlocal rows_processed, batch_index
            try:
                outcome = on_batch(rows, batch_index)
                if inspect.isawaitable(outcome):
                    await outcome
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error(
                    "batch_handler_failed",
                    extra={
                        "batch_index": batch_index,
                        "rows_committed": rows_processed,
                        "error": str(exc),
                    },
                )
                raise BatchHandlerError(batch_index, rows_processed, str(exc)) from exc

            rows_processed += len(rows)
            batch_index += 1
            if on_progress is not None:
                on_progress(rows_processed, _percent(tokenizer.lines_consumed, total_lines))
            await asyncio.sleep(0)

        for row in tokenizer:
            batch.append(row)
            if len(batch) >= self.batch_size:
                await flush(batch)
                batch = []

        if batch:
            await flush(batch)

        logger.info(
            "schedule_completed",
            extra={
                "rows_processed": rows_processed,
                "batches": batch_index,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return ScheduleResult(
            rows_processed=rows_processed,
            batches=batch_index,
            lines_consumed=tokenizer.lines_consumed,
        )

    def run_sync(
        self,
        tokenizer: RowTokenizer,
        on_batch: BatchHandler,
        on_progress: ProgressCallback | None = None,
        total_lines: int | None = None,
    ) -> ScheduleResult:
        """Drive ``run`` on a fresh event loop.  Not for use inside a running loop."""
        return asyncio.run(self.run(tokenizer, on_batch, on_progress, total_lines))


def _percent(lines_consumed: int, total_lines: int | None) -> float:
    if not total_lines:
        return 0.0
    return round(min(100.0, lines_consumed * 100.0 / total_lines), 2)
