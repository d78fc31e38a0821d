"""Daily usage counters as shown in the client."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from vid0.api.deps import get_db, get_usage_backend
from vid0.auth.middleware import Viewer, get_anonymous_id, get_optional_viewer
from vid0.responses import success_response
from vid0.services.usage import UsageBackend, UsageIdentity, get_rate_limits

router = APIRouter(tags=["usage"])


@router.get("/api/rate-limits")
def rate_limits(
    viewer: Annotated[Viewer | None, Depends(get_optional_viewer)],
    anonymous_header: Annotated[str | None, Depends(get_anonymous_id)],
    db: Annotated[Session, Depends(get_db)],
    backend: Annotated[UsageBackend, Depends(get_usage_backend)],
    user_id: Annotated[str | None, Query(alias="userId")] = None,
) -> dict:
    """Today's counts and remaining allowance.

    Anonymous callers pass their client id as ``userId`` or in X-Anonymous-Id.

    Returns:
        {"data": {"dailyCount", "dailyProCount", "dailyLimit", "remaining", "remainingPro"}}
    """
    if viewer is not None:
        identity = UsageIdentity(user_id=viewer.user_id)
    else:
        anonymous_id = (user_id or "").strip() or anonymous_header
        identity = UsageIdentity(anonymous_id=anonymous_id)

    limits = get_rate_limits(db, backend, identity)
    return success_response(limits.model_dump(mode="json", by_alias=True))
