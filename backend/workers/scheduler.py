import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from core.config import settings
from services.quota_ledger import QuotaLedger

logger = structlog.get_logger()


async def ensure_quota_period(ledger: QuotaLedger) -> None:
    """Cron: create the new month's quota row before the first metered call needs it."""
    period = await ledger.get_current_period()
    logger.info("Quota period ready", period=period.period_key, total=period.total_count)


async def check_quota_usage(ledger: QuotaLedger) -> None:
    """Cron: surface the month's usage in the logs once it nears the hard limit."""
    period = await ledger.get_current_period()
    if period.is_exceeded:
        logger.error(
            "Monthly quota exceeded",
            period=period.period_key,
            total=period.total_count,
            hard_limit=period.hard_limit,
        )
    elif period.near_limit:
        logger.warning(
            "Monthly quota near limit",
            period=period.period_key,
            total=period.total_count,
            remaining=period.remaining,
        )


def create_scheduler(ledger: QuotaLedger) -> AsyncIOScheduler:
    """Create and configure the APScheduler instance."""
    scheduler = AsyncIOScheduler(timezone=settings.quota_timezone)

    # New month's row shortly after midnight on the 1st
    scheduler.add_job(
        ensure_quota_period,
        "cron",
        day=1,
        hour=0,
        minute=5,
        args=[ledger],
        id="ensure_quota_period",
    )
    scheduler.add_job(
        check_quota_usage,
        "interval",
        hours=1,
        args=[ledger],
        id="check_quota_usage",
    )

    return scheduler
