import asyncio
import contextlib
from dataclasses import dataclass

import sentry_sdk
import structlog

from models.types import QuotaOperation
from services.quota_ledger import QuotaLedger

logger = structlog.get_logger()


@dataclass(frozen=True)
class _QuotaWrite:
    operation: QuotaOperation | None
    count: int = 0

    @property
    def marks_exceeded(self) -> bool:
        return self.operation is None


class QuotaRecorder:
    """Applies quota ledger writes off the request path.

    Callers enqueue and return immediately. A single background task applies
    writes in order, retrying with exponential backoff; a write that still
    fails after ``max_attempts`` is logged, reported to Sentry and dropped.
    """

    def __init__(self, ledger: QuotaLedger, max_attempts: int = 3, retry_delay: float = 0.5):
        self._ledger = ledger
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._queue: asyncio.Queue[_QuotaWrite] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._unapplied_count = 0
        self._unapplied_exceeded = 0

    def record(self, operation: QuotaOperation, count: int = 1) -> None:
        self._unapplied_count += count
        self._queue.put_nowait(_QuotaWrite(operation=operation, count=count))

    def record_exceeded(self) -> None:
        self._unapplied_exceeded += 1
        self._queue.put_nowait(_QuotaWrite(operation=None))

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def unapplied_count(self) -> int:
        """Usage units recorded but not yet written to the ledger."""
        return self._unapplied_count

    @property
    def exceeded_pending(self) -> bool:
        return self._unapplied_exceeded > 0

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="quota-recorder")

    async def flush(self) -> None:
        """Wait until every queued write has been applied or discarded."""
        await self._queue.join()

    async def stop(self, timeout: float = 5.0) -> None:
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self.flush(), timeout)
        except TimeoutError:
            logger.warning("Quota recorder stopped with pending writes", pending=self.pending)
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            write = await self._queue.get()
            try:
                await self._apply(write)
            finally:
                if write.marks_exceeded:
                    self._unapplied_exceeded -= 1
                else:
                    self._unapplied_count -= write.count
                self._queue.task_done()

    async def _apply(self, write: _QuotaWrite) -> None:
        for attempt in range(1, self._max_attempts + 1):
            try:
                if write.marks_exceeded:
                    await self._ledger.mark_exceeded()
                    logger.info("Quota marked exceeded")
                else:
                    period = await self._ledger.increment(write.operation, write.count)
                    logger.debug(
                        "Quota updated",
                        operation=write.operation,
                        count=write.count,
                        total=period.total_count,
                    )
                return
            except Exception as e:
                if attempt < self._max_attempts:
                    logger.warning("Quota write failed, retrying", attempt=attempt, error=str(e))
                    await asyncio.sleep(self._retry_delay * 2 ** (attempt - 1))
                    continue
                logger.error(
                    "Quota write discarded",
                    operation=write.operation,
                    count=write.count,
                    attempts=attempt,
                    error=str(e),
                )
                sentry_sdk.capture_exception(e)
