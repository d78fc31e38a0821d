"""FastAPI dependencies for route handlers.

Shared clients are built once in the app lifespan and stored on
``app.state``; these dependencies hand them to routes.
"""

from fastapi import Request

from vid0.config import Settings, get_settings
from vid0.db.session import get_db, get_session_factory
from vid0.services.llm import LLMRouter
from vid0.services.models import ModelCatalog
from vid0.services.usage import UsageBackend
from vid0.storage import StorageClientBase

__all__ = [
    "get_app_settings",
    "get_db",
    "get_llm_router",
    "get_model_catalog",
    "get_session_factory",
    "get_storage",
    "get_usage_backend",
]


def get_app_settings() -> Settings:
    return get_settings()


def get_llm_router(request: Request) -> LLMRouter:
    """The shared LLMRouter (wraps the app's httpx.AsyncClient)."""
    return request.app.state.llm_router


def get_usage_backend(request: Request) -> UsageBackend:
    """The usage counter strategy chosen by USAGE_BACKEND."""
    return request.app.state.usage_backend


def get_storage(request: Request) -> StorageClientBase:
    return request.app.state.storage


def get_model_catalog(request: Request) -> ModelCatalog:
    return request.app.state.model_catalog
