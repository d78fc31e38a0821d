"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth middleware, request-id middleware, and routes.

Token Verification:
- All environments verify Clerk session JWTs against the Clerk JWKS endpoint
- Only env values change between environments

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including auth failures) get X-Request-ID

Actual execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. AuthMiddleware (verifies auth, sets viewer or anonymous id)
3. Route handler
4. AuthMiddleware (returns response)
5. RequestIDMiddleware (logs, sets response header)

Shared resources (created in lifespan, stored in app.state):
- httpx.AsyncClient, wrapped by LLMRouter for connection pooling
- Redis client (when REDIS_URL is set) and the usage backend
- Attachment storage client and model catalog
"""

import json
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

import httpx
import redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vid0.api.routes import create_api_router
from vid0.auth.middleware import AuthMiddleware
from vid0.auth.verifier import ClerkJwksVerifier
from vid0.config import get_settings
from vid0.constants import PROVIDERS
from vid0.db.session import get_session_factory
from vid0.errors import ApiError, ApiErrorCode
from vid0.logging import configure_logging, get_logger
from vid0.middleware.request_id import RequestIDMiddleware
from vid0.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    llm_error_handler,
    unhandled_exception_handler,
    validation_error_message,
)
from vid0.services.bootstrap import ensure_user
from vid0.services.llm import LLMError, LLMRouter
from vid0.services.models import ModelCatalog
from vid0.services.usage import create_usage_backend
from vid0.storage import build_storage_client

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


def create_bootstrap_callback():
    """Create a bootstrap callback that creates its own database session.

    The callback is called by the auth middleware for each authenticated request.
    It creates a fresh database session, runs the bootstrap, and closes it.
    """
    session_factory = get_session_factory()

    def bootstrap(subject: str, claims: dict[str, Any]) -> UUID:
        db = session_factory()
        try:
            return ensure_user(db, subject, claims)
        finally:
            db.close()

    return bootstrap


def create_token_verifier():
    """Create the token verifier using the Clerk JWKS endpoint."""
    settings = get_settings()

    return ClerkJwksVerifier(
        jwks_url=settings.clerk_jwks_url,  # type: ignore
        issuer=settings.normalized_issuer,  # type: ignore
        authorized_parties=settings.authorized_party_list,
    )


def create_redis_client(redis_url: str | None):
    """Connect to Redis, or return None when unset or unreachable."""
    if not redis_url:
        return None
    try:
        client = redis.Redis.from_url(redis_url, decode_responses=True, socket_timeout=5)
        client.ping()
    except redis.RedisError as e:
        logger.warning("redis_client_init_failed", error=str(e))
        return None
    logger.info("redis_client_initialized", redis_url=redis_url[:30] + "...")
    return client


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle resources."""
    settings = get_settings()

    # Shared HTTP client for LLM calls
    app.state.httpx_client = httpx.AsyncClient(
        timeout=httpx.Timeout(float(settings.chat_max_duration_s), connect=10.0),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )
    app.state.llm_router = LLMRouter.from_settings(app.state.httpx_client, settings)
    logger.info(
        "llm_router_initialized",
        providers=[p for p in PROVIDERS if app.state.llm_router.is_provider_available(p)],
    )

    redis_client = create_redis_client(settings.redis_url)
    app.state.redis_client = redis_client
    app.state.usage_backend = create_usage_backend(settings.usage_backend.value, redis_client)

    app.state.storage = build_storage_client(settings)
    app.state.model_catalog = ModelCatalog(settings.provider_enabled)

    yield

    # Shutdown: close HTTP client and Redis
    await app.state.httpx_client.aclose()
    if redis_client is not None:
        try:
            redis_client.close()
        except redis.RedisError as e:
            logger.warning("redis_client_close_failed", error=str(e))
    logger.info("httpx_client_closed")


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier=None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="vid0 API",
        description="Backend API for vid0 - AI chat for YouTube creators",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(LLMError, llm_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (including malformed JSON)."""
        return JSONResponse(
            status_code=400,
            content=error_response(
                ApiErrorCode.E_INVALID_REQUEST, validation_error_message(exc.errors())
            ),
        )

    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Catch JSON decode errors before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    # Use router factory to avoid import-time settings loading
    app.include_router(create_api_router())

    if not skip_auth_middleware:
        verifier = token_verifier or create_token_verifier()

        app.add_middleware(
            AuthMiddleware,
            verifier=verifier,
            requires_internal_header=settings.requires_internal_header,
            internal_secret=settings.vid0_internal_secret,
            bootstrap_callback=create_bootstrap_callback(),
        )

        logger.info(
            "auth_middleware_enabled",
            env=settings.vid0_env.value,
            internal_header_required=settings.requires_internal_header,
        )

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    This ensures every response includes X-Request-ID, including auth failures.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
