from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol, cast
from zoneinfo import ZoneInfo

from supabase import Client

from core.errors import InvalidInputError, LedgerWriteError
from models.types import QuotaOperation, QuotaPeriod

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class QuotaLedger(Protocol):
    async def get_current_period(self) -> QuotaPeriod: ...

    async def increment(self, operation: QuotaOperation, count: int = 1) -> QuotaPeriod: ...

    async def is_exceeded(self) -> bool: ...

    async def mark_exceeded(self) -> None: ...

    async def reset(self) -> QuotaPeriod: ...


class _PeriodClock:
    def __init__(self, timezone: str, clock: Clock | None):
        self._tz = ZoneInfo(timezone)
        self._clock = clock or _utc_now

    def period_key(self) -> str:
        return self._clock().astimezone(self._tz).strftime("%Y-%m")


def _validate_count(count: int) -> None:
    if count < 1:
        raise InvalidInputError(f"Quota increment must be positive, got {count}")


class SupabaseQuotaLedger:
    """One `quota_usage` row per month. Increments are a single atomic RPC.

    The `increment_quota_usage` function (see supabase/migrations) runs:

        INSERT INTO quota_usage (period, hard_limit, warning_threshold)
        VALUES (p_period, p_hard_limit, p_warning_threshold)
        ON CONFLICT (period) DO NOTHING;

        UPDATE quota_usage
        SET geocoding_count = geocoding_count + CASE WHEN p_operation = 'geocoding' THEN p_count ELSE 0 END,
            distance_count = distance_count + CASE WHEN p_operation = 'distance' THEN p_count ELSE 0 END,
            total_count = total_count + p_count,
            is_exceeded = is_exceeded OR total_count + p_count >= hard_limit,
            updated_at = now()
        WHERE period = p_period
        RETURNING *;
    """

    TABLE = "quota_usage"

    def __init__(
        self,
        db: Client,
        hard_limit: int,
        warning_threshold: int,
        timezone: str = "UTC",
        clock: Clock | None = None,
    ):
        self._db = db
        self._hard_limit = hard_limit
        self._warning_threshold = warning_threshold
        self._clock = _PeriodClock(timezone, clock)

    async def get_current_period(self) -> QuotaPeriod:
        key = self._clock.period_key()
        row = self._fetch(key)
        if row is None:
            self._db.table(self.TABLE).upsert(
                {
                    "period": key,
                    "geocoding_count": 0,
                    "distance_count": 0,
                    "total_count": 0,
                    "hard_limit": self._hard_limit,
                    "warning_threshold": self._warning_threshold,
                    "is_exceeded": False,
                },
                on_conflict="period",
                ignore_duplicates=True,
            ).execute()
            row = self._fetch(key)
        if row is None:
            raise LedgerWriteError(f"Could not create quota period {key}")
        return self._to_period(row)

    async def increment(self, operation: QuotaOperation, count: int = 1) -> QuotaPeriod:
        _validate_count(count)
        try:
            response = self._db.rpc(
                "increment_quota_usage",
                {
                    "p_period": self._clock.period_key(),
                    "p_operation": operation.value,
                    "p_count": count,
                    "p_hard_limit": self._hard_limit,
                    "p_warning_threshold": self._warning_threshold,
                },
            ).execute()
        except Exception as e:
            raise LedgerWriteError(f"increment_quota_usage failed: {e}") from e
        rows = cast("list[dict[str, Any]]", response.data)
        if not rows:
            raise LedgerWriteError("increment_quota_usage returned no row")
        return self._to_period(rows[0])

    async def is_exceeded(self) -> bool:
        period = await self.get_current_period()
        return period.is_exceeded

    async def mark_exceeded(self) -> None:
        period = await self.get_current_period()
        self._db.table(self.TABLE).update({"is_exceeded": True}).eq(
            "period", period.period_key
        ).execute()

    async def reset(self) -> QuotaPeriod:
        period = await self.get_current_period()
        self._db.table(self.TABLE).update(
            {
                "geocoding_count": 0,
                "distance_count": 0,
                "total_count": 0,
                "is_exceeded": False,
                "last_reset_at": datetime.now(UTC).isoformat(),
            }
        ).eq("period", period.period_key).execute()
        return await self.get_current_period()

    def _fetch(self, key: str) -> dict[str, Any] | None:
        response = self._db.table(self.TABLE).select("*").eq("period", key).limit(1).execute()
        rows = cast("list[dict[str, Any]]", response.data)
        return rows[0] if rows else None

    @staticmethod
    def _to_period(row: dict[str, Any]) -> QuotaPeriod:
        return QuotaPeriod(
            period_key=row["period"],
            counters={op: int(row.get(f"{op.value}_count") or 0) for op in QuotaOperation},
            total_count=int(row.get("total_count") or 0),
            hard_limit=int(row["hard_limit"]),
            warning_threshold=int(row["warning_threshold"]),
            exceeded=bool(row.get("is_exceeded")),
        )


class InMemoryQuotaLedger:
    """Process-local ledger for tests and database-less runs.

    Mutations never await between read and write, so increments from
    concurrent tasks on one event loop are additive.
    """

    def __init__(
        self,
        hard_limit: int,
        warning_threshold: int,
        timezone: str = "UTC",
        clock: Clock | None = None,
    ):
        self._hard_limit = hard_limit
        self._warning_threshold = warning_threshold
        self._clock = _PeriodClock(timezone, clock)
        self._periods: dict[str, QuotaPeriod] = {}

    async def get_current_period(self) -> QuotaPeriod:
        return self._current().model_copy(deep=True)

    async def increment(self, operation: QuotaOperation, count: int = 1) -> QuotaPeriod:
        _validate_count(count)
        period = self._current()
        period.counters[operation] = period.counters.get(operation, 0) + count
        period.total_count += count
        if period.total_count >= period.hard_limit:
            period.exceeded = True
        return period.model_copy(deep=True)

    async def is_exceeded(self) -> bool:
        return self._current().is_exceeded

    async def mark_exceeded(self) -> None:
        self._current().exceeded = True

    async def reset(self) -> QuotaPeriod:
        key = self._clock.period_key()
        self._periods[key] = self._new_period(key)
        return self._periods[key].model_copy(deep=True)

    def _current(self) -> QuotaPeriod:
        key = self._clock.period_key()
        if key not in self._periods:
            self._periods[key] = self._new_period(key)
        return self._periods[key]

    def _new_period(self, key: str) -> QuotaPeriod:
        return QuotaPeriod(
            period_key=key,
            hard_limit=self._hard_limit,
            warning_threshold=self._warning_threshold,
        )
