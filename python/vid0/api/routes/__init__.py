"""API route definitions.

Uses a factory so importing route modules never loads settings.
"""

from fastapi import APIRouter

from vid0.api.routes.attachments import router as attachments_router
from vid0.api.routes.chat import router as chat_router
from vid0.api.routes.chats import router as chats_router
from vid0.api.routes.feedback import router as feedback_router
from vid0.api.routes.health import router as health_router
from vid0.api.routes.keys import router as keys_router
from vid0.api.routes.models import router as models_router
from vid0.api.routes.projects import router as projects_router
from vid0.api.routes.usage import router as usage_router
from vid0.api.routes.users import router as users_router


def create_api_router() -> APIRouter:
    """Create the API router with every route module registered."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(chat_router)
    api_router.include_router(chats_router)
    api_router.include_router(projects_router)
    api_router.include_router(usage_router)
    api_router.include_router(keys_router)
    api_router.include_router(models_router)
    api_router.include_router(users_router)
    api_router.include_router(attachments_router)
    api_router.include_router(feedback_router)
    return api_router


__all__ = ["create_api_router"]
