"""
Tests for the batch scheduler.

Covers:
- Batch sizing and the final partial batch
- Sequential, non-overlapping handler invocation
- Progress reporting
- Handler failure and partial durability
- Sync and async handlers
"""

import asyncio

import pytest

from recovery_ingestion.adapters.tokenizer import RowTokenizer
from recovery_ingestion.services.scheduler import BatchScheduler, _percent
from recovery_kernel.exceptions import BatchHandlerError


def _tokenizer(rows: int) -> RowTokenizer:
    lines = ["TRGID"] + [f"T{i}" for i in range(rows)]
    return RowTokenizer(lines)


class TestBatching:
    """Rows are delivered in fixed-size batches, in order."""

    def test_sizes_and_indices(self):
        seen = []

        def handler(rows, index):
            seen.append((index, len(rows)))

        result = BatchScheduler(batch_size=500).run_sync(_tokenizer(1203), handler)

        assert seen == [(0, 500), (1, 500), (2, 203)]
        assert result.rows_processed == 1203
        assert result.batches == 3
        assert result.lines_consumed == 1204

    def test_exact_multiple_has_no_empty_batch(self):
        seen = []
        BatchScheduler(batch_size=5).run_sync(_tokenizer(10), lambda rows, i: seen.append(len(rows)))
        assert seen == [5, 5]

    def test_no_rows_no_batches(self):
        calls = []
        result = BatchScheduler(batch_size=5).run_sync(_tokenizer(0), lambda r, i: calls.append(i))
        assert calls == []
        assert result.batches == 0
        assert result.rows_processed == 0

    def test_rows_arrive_in_source_order(self):
        collected = []
        BatchScheduler(batch_size=3).run_sync(
            _tokenizer(7), lambda rows, i: collected.extend(r["TRGID"] for r in rows)
        )
        assert collected == [f"T{i}" for i in range(7)]

    @pytest.mark.parametrize("size", [0, -1])
    def test_invalid_batch_size(self, size):
        with pytest.raises(ValueError):
            BatchScheduler(batch_size=size)


class TestAsyncHandlers:

    def test_handlers_never_overlap(self):
        active = 0
        peak = 0
        order = []

        async def handler(rows, index):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0)
            order.append(index)
            active -= 1

        BatchScheduler(batch_size=2).run_sync(_tokenizer(9), handler)
        assert peak == 1
        assert order == [0, 1, 2, 3, 4]

    def test_run_inside_event_loop(self):
        seen = []

        async def main():
            return await BatchScheduler(batch_size=4).run(
                _tokenizer(6), lambda rows, i: seen.append(len(rows))
            )

        result = asyncio.run(main())
        assert seen == [4, 2]
        assert result.batches == 2


class TestProgress:

    def test_progress_after_every_batch(self):
        progress = []
        BatchScheduler(batch_size=2).run_sync(
            _tokenizer(4),
            lambda rows, i: None,
            on_progress=lambda rows, pct: progress.append((rows, pct)),
            total_lines=5,
        )
        assert progress == [(2, 60.0), (4, 100.0)]

    def test_percent_without_total(self):
        assert _percent(10, None) == 0.0
        assert _percent(10, 0) == 0.0

    def test_percent_capped(self):
        assert _percent(12, 10) == 100.0
        assert _percent(1, 3) == 33.33


class TestHandlerFailure:
    """A failing batch stops the run; earlier batches stay committed."""

    def test_error_carries_position(self):
        committed = []

        def handler(rows, index):
            if index == 1:
                raise RuntimeError("disk full")
            committed.append(index)

        with pytest.raises(BatchHandlerError) as exc_info:
            BatchScheduler(batch_size=3).run_sync(_tokenizer(10), handler)

        err = exc_info.value
        assert err.batch_index == 1
        assert err.rows_committed == 3
        assert "disk full" in err.reason
        assert isinstance(err.__cause__, RuntimeError)
        assert committed == [0]

    def test_no_batches_after_failure(self):
        calls = []

        async def handler(rows, index):
            calls.append(index)
            raise ValueError("bad batch")

        with pytest.raises(BatchHandlerError):
            BatchScheduler(batch_size=2).run_sync(_tokenizer(6), handler)
        assert calls == [0]

    def test_failure_logged(self, captured_logs):
        def handler(rows, index):
            raise RuntimeError("boom")

        with pytest.raises(BatchHandlerError):
            BatchScheduler(batch_size=2).run_sync(_tokenizer(2), handler)

        failures = [r for r in captured_logs() if r["message"] == "batch_handler_failed"]
        assert len(failures) == 1
        assert failures[0]["batch_index"] == 0
        assert failures[0]["rows_committed"] == 0
