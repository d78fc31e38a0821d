"""Health check endpoints."""

from fastapi import APIRouter

from vid0.responses import success_response

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Liveness check.

    Returns 200 if the process is running; does not touch the database.
    """
    return success_response({"status": "ok"})
