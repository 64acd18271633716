from typing import Any

from fastapi import Depends, HTTPException, Request, status

from core.config import settings
from db.supabase_client import get_auth_client, get_service_role_client
from services.batch_service import BatchService
from services.customer_distance_service import CustomerDistanceService
from services.location_service import LocationResolver
from services.quota_ledger import QuotaLedger


def _get_bearer_token(request: Request) -> str:
    """Extract Bearer token from Authorization header. Raises 401 if missing or malformed."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
        )
    return auth_header.removeprefix("Bearer ")


async def get_current_user(token: str = Depends(_get_bearer_token)) -> dict[str, Any]:  # noqa: B008
    """Validate JWT and return the authenticated user. Raises 401 if invalid."""
    try:
        response = get_auth_client().auth.get_user(token)
        if response is None or response.user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
            )
        return {"id": response.user.id}
    except HTTPException:
        raise
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from None


def require_admin(user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:  # noqa: B008
    if user["id"] not in settings.admin_user_ids:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def get_resolver(request: Request) -> LocationResolver:
    """The process-wide resolver built in the app lifespan."""
    return request.app.state.resolver


def get_ledger(request: Request) -> QuotaLedger:
    return request.app.state.ledger


def get_batch_service(
    resolver: LocationResolver = Depends(get_resolver),  # noqa: B008
) -> BatchService:
    return BatchService(resolver)


def get_customer_distance_service(
    batch: BatchService = Depends(get_batch_service),  # noqa: B008
) -> CustomerDistanceService:
    return CustomerDistanceService(db=get_service_role_client(), batch=batch)
