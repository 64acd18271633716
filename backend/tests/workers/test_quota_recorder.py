from unittest.mock import AsyncMock, patch

from core.errors import LedgerWriteError
from models.types import QuotaOperation
from services.quota_ledger import InMemoryQuotaLedger
from workers.quota_recorder import QuotaRecorder


class TestQuotaRecorder:
    async def test_record_returns_before_write_is_applied(self):
        ledger = InMemoryQuotaLedger(hard_limit=100, warning_threshold=90)
        recorder = QuotaRecorder(ledger)

        recorder.record(QuotaOperation.GEOCODING, 3)

        assert recorder.pending == 1
        assert (await ledger.get_current_period()).total_count == 0

        recorder.start()
        await recorder.flush()
        await recorder.stop()

        assert (await ledger.get_current_period()).total_count == 3

    async def test_applies_writes_in_order(self, ledger, recorder):
        recorder.record(QuotaOperation.GEOCODING, 2)
        recorder.record(QuotaOperation.DISTANCE, 25)
        recorder.record_exceeded()
        await recorder.flush()

        period = await ledger.get_current_period()
        assert period.counters == {QuotaOperation.GEOCODING: 2, QuotaOperation.DISTANCE: 25}
        assert period.exceeded is True

    async def test_tracks_usage_until_applied(self, ledger):
        recorder = QuotaRecorder(ledger)

        recorder.record(QuotaOperation.DISTANCE, 25)
        recorder.record(QuotaOperation.GEOCODING)
        recorder.record_exceeded()

        assert recorder.unapplied_count == 26
        assert recorder.exceeded_pending is True

        recorder.start()
        await recorder.flush()
        await recorder.stop()

        assert recorder.unapplied_count == 0
        assert recorder.exceeded_pending is False

    async def test_retries_then_succeeds(self):
        ledger = AsyncMock()
        ledger.increment.side_effect = [LedgerWriteError("timeout"), AsyncMock()]
        recorder = QuotaRecorder(ledger, max_attempts=3, retry_delay=0)
        recorder.start()

        recorder.record(QuotaOperation.DISTANCE)
        await recorder.flush()
        await recorder.stop()

        assert ledger.increment.await_count == 2

    async def test_discards_after_max_attempts_and_reports_to_sentry(self):
        ledger = AsyncMock()
        ledger.increment.side_effect = LedgerWriteError("database unavailable")
        recorder = QuotaRecorder(ledger, max_attempts=3, retry_delay=0)

        with patch("workers.quota_recorder.sentry_sdk") as mock_sentry:
            recorder.start()
            recorder.record(QuotaOperation.GEOCODING)
            recorder.record(QuotaOperation.GEOCODING)
            await recorder.flush()
            await recorder.stop()

        assert ledger.increment.await_count == 6
        assert mock_sentry.capture_exception.call_count == 2
        assert recorder.pending == 0
        assert recorder.unapplied_count == 0

    async def test_failure_does_not_stop_later_writes(self):
        ledger = AsyncMock()
        ledger.increment.side_effect = [LedgerWriteError("boom"), AsyncMock()]
        recorder = QuotaRecorder(ledger, max_attempts=1, retry_delay=0)

        with patch("workers.quota_recorder.sentry_sdk"):
            recorder.start()
            recorder.record(QuotaOperation.GEOCODING)
            recorder.record(QuotaOperation.DISTANCE)
            await recorder.flush()
            await recorder.stop()

        assert ledger.increment.await_count == 2
        assert ledger.increment.await_args.args == (QuotaOperation.DISTANCE, 1)

    async def test_backoff_grows_exponentially(self):
        ledger = AsyncMock()
        ledger.mark_exceeded.side_effect = LedgerWriteError("boom")
        recorder = QuotaRecorder(ledger, max_attempts=3, retry_delay=0.5)

        with (
            patch("workers.quota_recorder.sentry_sdk"),
            patch("workers.quota_recorder.asyncio.sleep", new=AsyncMock()) as sleep,
        ):
            recorder.record_exceeded()
            write = recorder._queue.get_nowait()
            await recorder._apply(write)

        assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0]

    async def test_stop_without_start_is_a_no_op(self):
        recorder = QuotaRecorder(AsyncMock())
        await recorder.stop()
