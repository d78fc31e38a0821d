"""Authentication middleware for FastAPI.

Provides:
- AuthMiddleware: Global middleware for bearer token + internal header verification
- get_viewer: Dependency for routes that require a signed-in user
- get_optional_viewer: Dependency for routes that also serve anonymous callers
"""

import hmac
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from vid0.auth.verifier import TokenVerifier
from vid0.errors import ApiError, ApiErrorCode
from vid0.responses import error_response

logger = logging.getLogger(__name__)

# Header names
AUTHORIZATION_HEADER = "authorization"
INTERNAL_HEADER = "x-vid0-internal"
ANONYMOUS_ID_HEADER = "x-anonymous-id"

# Paths that don't require authentication
PUBLIC_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

# Paths served to anonymous callers too; a bearer token, if sent, must still verify
OPTIONAL_AUTH_PATHS = {
    "/api/chat",
    "/api/rate-limits",
    "/api/models",
    "/api/providers",
    "/api/create-guest",
}
OPTIONAL_AUTH_PREFIXES = ("/api/public/",)

BootstrapCallback = Callable[[str, dict[str, Any]], UUID]


@dataclass
class Viewer:
    """Authenticated viewer identity.

    Attributes:
        user_id: The local user id.
        subject: The identity subject from the token (Clerk user id).
    """

    user_id: UUID
    subject: str


def is_optional_auth_path(path: str) -> bool:
    return path in OPTIONAL_AUTH_PATHS or path.startswith(OPTIONAL_AUTH_PREFIXES)


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for FastAPI.

    Enforces:
    - Bearer token authentication on all non-public paths
    - Internal header verification in staging/prod environments
    - User bootstrap via callback

    Order of checks:
    1. Skip if public path
    2. Verify internal header (if required)
    3. Extract bearer token (optional-auth paths continue anonymously without one)
    4. Verify token via TokenVerifier
    5. Call bootstrap callback to ensure the user row exists
    6. Attach Viewer to request state
    """

    def __init__(
        self,
        app: ASGIApp,
        verifier: TokenVerifier,
        requires_internal_header: bool = False,
        internal_secret: str | None = None,
        bootstrap_callback: BootstrapCallback | None = None,
    ):
        """Initialize the auth middleware.

        Args:
            app: The ASGI application.
            verifier: TokenVerifier implementation for JWT verification.
            requires_internal_header: Whether to enforce the X-Vid0-Internal header.
            internal_secret: The expected internal secret value.
            bootstrap_callback: Function(subject, claims) -> user_id.
                              Called after successful auth to ensure the user exists.
        """
        super().__init__(app)
        self.verifier = verifier
        self.requires_internal_header = requires_internal_header
        self.internal_secret = internal_secret
        self.bootstrap_callback = bootstrap_callback

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        """Process the request through auth checks."""
        path = request.url.path
        if path in PUBLIC_PATHS:
            return await call_next(request)

        if self.requires_internal_header:
            error_response_obj = self._verify_internal_header(request)
            if error_response_obj:
                return error_response_obj

        request.state.viewer = None
        if is_optional_auth_path(path) and not request.headers.get(AUTHORIZATION_HEADER):
            return await call_next(request)

        token, error_response_obj = self._extract_bearer_token(request)
        if error_response_obj:
            return error_response_obj

        try:
            payload = self.verifier.verify(token)
        except ApiError as e:
            return self._error_json_response(e.code, e.message, e.status_code)

        subject = payload["sub"]

        if self.bootstrap_callback:
            try:
                user_id = self.bootstrap_callback(subject, payload)
            except Exception as e:
                logger.exception("Bootstrap failed for subject: %s", e)
                return self._error_json_response(
                    ApiErrorCode.E_INTERNAL,
                    "Internal server error",
                    500,
                )
        else:
            # Without a bootstrap callback the subject must already be a user id
            try:
                user_id = UUID(subject)
            except ValueError:
                return self._error_json_response(
                    ApiErrorCode.E_UNAUTHENTICATED, "Invalid token: unknown subject", 401
                )

        request.state.viewer = Viewer(user_id=user_id, subject=subject)

        return await call_next(request)

    def _verify_internal_header(self, request: Request) -> JSONResponse | None:
        """Verify the internal header using constant-time comparison."""
        header_value = request.headers.get(INTERNAL_HEADER)

        if header_value is None:
            logger.warning(
                "auth_failure",
                extra={"reason": "internal_header_missing", "request_path": request.url.path},
            )
            return self._error_json_response(
                ApiErrorCode.E_INTERNAL_ONLY,
                "Internal API access required",
                403,
            )

        if not self.internal_secret:
            logger.error("Internal secret not configured but header required")
            return self._error_json_response(
                ApiErrorCode.E_INTERNAL,
                "Internal server error",
                500,
            )

        if not hmac.compare_digest(header_value.encode(), self.internal_secret.encode()):
            logger.warning(
                "auth_failure",
                extra={"reason": "internal_header_mismatch", "request_path": request.url.path},
            )
            return self._error_json_response(
                ApiErrorCode.E_INTERNAL_ONLY,
                "Internal API access required",
                403,
            )

        return None

    def _extract_bearer_token(self, request: Request) -> tuple[str, JSONResponse | None]:
        """Extract bearer token from Authorization header.

        Returns:
            Tuple of (token, error_response). Token is empty string if error.
        """
        auth_header = request.headers.get(AUTHORIZATION_HEADER)

        if not auth_header:
            logger.warning(
                "auth_failure",
                extra={"reason": "missing_header", "request_path": request.url.path},
            )
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Authentication required",
                401,
            )

        token = ""
        if auth_header.lower().startswith("bearer "):
            token = auth_header[7:].strip()

        if not token:
            logger.warning(
                "auth_failure",
                extra={"reason": "invalid_header_format", "request_path": request.url.path},
            )
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Invalid authorization header format",
                401,
            )

        return token, None

    def _error_json_response(
        self, code: ApiErrorCode, message: str, status_code: int
    ) -> JSONResponse:
        """Create a JSON error response."""
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, message),
        )


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        ApiError: If no viewer is attached (anonymous caller or middleware skipped).
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer


def get_optional_viewer(request: Request) -> Viewer | None:
    """FastAPI dependency returning the viewer, or None for anonymous callers."""
    return getattr(request.state, "viewer", None)


def get_anonymous_id(request: Request) -> str | None:
    """Client-generated id identifying an anonymous caller, if sent."""
    value = request.headers.get(ANONYMOUS_ID_HEADER)
    if value is None:
        return None
    value = value.strip()
    return value or None


# Type alias for dependency injection
ViewerDep = Depends(get_viewer)
