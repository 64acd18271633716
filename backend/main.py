import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import sentry_sdk
import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from api.batch import router as batch_router
from api.deps import get_ledger
from api.distance import router as distance_router
from api.geocoding import router as geocoding_router
from api.quota import router as quota_router
from core.config import settings
from core.errors import InvalidInputError, UnresolvableError
from db.supabase_client import get_service_role_client
from middleware.request_id import RequestIDMiddleware
from providers.geocoding import get_geocoding_providers
from providers.routing import get_routing_providers
from services.location_service import LocationResolver
from services.quota_ledger import InMemoryQuotaLedger, QuotaLedger, SupabaseQuotaLedger
from workers.quota_recorder import QuotaRecorder
from workers.scheduler import create_scheduler

logger = structlog.get_logger()

HEALTH_CHECK_TIMEOUT = 5.0


def _configure_logging() -> None:
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level)
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


def _init_sentry() -> None:
    """Initialize Sentry error tracking if DSN is configured."""
    if not settings.sentry_dsn:
        return
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logger.info("Sentry initialized", environment=settings.environment)


def create_quota_ledger() -> QuotaLedger:
    match settings.quota_ledger_backend:
        case "supabase":
            return SupabaseQuotaLedger(
                db=get_service_role_client(),
                hard_limit=settings.quota_hard_limit,
                warning_threshold=settings.quota_warning_threshold,
                timezone=settings.quota_timezone,
            )
        case "memory":
            return InMemoryQuotaLedger(
                hard_limit=settings.quota_hard_limit,
                warning_threshold=settings.quota_warning_threshold,
                timezone=settings.quota_timezone,
            )
        case _:
            raise ValueError(f"Unknown quota ledger backend: {settings.quota_ledger_backend}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup and shutdown events."""
    _configure_logging()
    _init_sentry()
    logger.info("Starting location API", environment=settings.environment)

    ledger = create_quota_ledger()
    recorder = QuotaRecorder(ledger)
    resolver = LocationResolver(
        geocoders=get_geocoding_providers(),
        routers=get_routing_providers(),
        ledger=ledger,
        recorder=recorder,
    )
    app.state.ledger = ledger
    app.state.recorder = recorder
    app.state.resolver = resolver

    recorder.start()
    scheduler = create_scheduler(ledger)
    if settings.environment != "test":
        scheduler.start()
        logger.info("Scheduler started")
    yield
    if settings.environment != "test":
        scheduler.shutdown()
    await recorder.stop()
    await resolver.aclose()
    logger.info("Shutting down location API")


app = FastAPI(
    title="HaulDesk Location API",
    description="Geocoding, road distance and quota tracking for the HaulDesk back-office",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(RequestIDMiddleware)


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(UnresolvableError)
async def unresolvable_handler(request: Request, exc: UnresolvableError) -> JSONResponse:
    logger.error("Location unresolvable", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/health/deep")
async def deep_health_check(ledger: QuotaLedger = Depends(get_ledger)) -> JSONResponse:  # noqa: B008
    """Round-trip the current quota period through the configured ledger."""
    checks: dict = {}
    all_healthy = True

    start = time.monotonic()
    try:
        period = await asyncio.wait_for(ledger.get_current_period(), timeout=HEALTH_CHECK_TIMEOUT)
        latency_ms = round((time.monotonic() - start) * 1000, 1)
        checks["quota_ledger"] = {
            "status": "healthy",
            "latency_ms": latency_ms,
            "period": period.period_key,
        }
    except TimeoutError:
        latency_ms = round((time.monotonic() - start) * 1000, 1)
        checks["quota_ledger"] = {"status": "unhealthy", "latency_ms": latency_ms, "error": "timeout"}
        all_healthy = False
    except Exception as e:
        latency_ms = round((time.monotonic() - start) * 1000, 1)
        logger.warning("Quota ledger health check failed", error=str(e))
        checks["quota_ledger"] = {
            "status": "unhealthy",
            "latency_ms": latency_ms,
            "error": "unavailable",
        }
        all_healthy = False

    status = "healthy" if all_healthy else "unhealthy"
    status_code = 200 if all_healthy else 503
    return JSONResponse(content={"status": status, "checks": checks}, status_code=status_code)


app.include_router(geocoding_router)
app.include_router(distance_router)
app.include_router(batch_router)
app.include_router(quota_router)
