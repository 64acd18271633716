from typing import Any

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from api.deps import get_current_user, get_ledger, get_resolver, require_admin
from models.types import QuotaOperation, QuotaStatus
from services.location_service import LocationResolver
from services.quota_ledger import QuotaLedger

logger = structlog.get_logger()

router = APIRouter(prefix="/quota", tags=["quota"])


class QuotaIncrementRequest(BaseModel):
    operation: QuotaOperation
    count: int = Field(default=1, ge=1)


@router.get("")
async def quota_status(
    user: dict[str, Any] = Depends(get_current_user),  # noqa: B008
    resolver: LocationResolver = Depends(get_resolver),  # noqa: B008
) -> dict[str, Any]:
    status = await resolver.quota_status()
    return status.model_dump(mode="json")


@router.post("/increment", status_code=202)
async def quota_increment(
    body: QuotaIncrementRequest,
    user: dict[str, Any] = Depends(get_current_user),  # noqa: B008
    resolver: LocationResolver = Depends(get_resolver),  # noqa: B008
) -> JSONResponse:
    """Queue a usage increment. Accepted, not applied: the write happens in the background."""
    resolver.quota_increment(body.operation, body.count)
    return JSONResponse(status_code=202, content={"accepted": True})


@router.post("/reset")
async def quota_reset(
    user: dict[str, Any] = Depends(require_admin),  # noqa: B008
    ledger: QuotaLedger = Depends(get_ledger),  # noqa: B008
) -> dict[str, Any]:
    """Zero the current month's counters and clear the exceeded flag. Admin only."""
    period = await ledger.reset()
    logger.info("Quota reset", period=period.period_key, user_id=user["id"])
    return QuotaStatus.from_period(period).model_dump(mode="json")
