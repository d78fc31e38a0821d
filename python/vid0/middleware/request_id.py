"""X-Request-ID middleware for request correlation and access logging.

Must be registered LAST so it runs FIRST (Starlette middleware runs in
reverse registration order); auth failures then still carry X-Request-ID.
"""

import re
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from vid0.logging import (
    clear_request_context,
    get_logger,
    set_anonymous_id,
    set_request_context,
)

REQUEST_ID_HEADER = "X-Request-ID"
ANONYMOUS_ID_HEADER = "X-Anonymous-Id"
MAX_REQUEST_ID_LENGTH = 128

# Client-supplied ids: UUIDs, or short tokens of [A-Za-z0-9._-]
VALID_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

logger = get_logger(__name__)


def resolve_request_id(incoming: str | None) -> str:
    """Return a normalized client id, or a fresh UUID4 if it is missing or invalid.

    UUIDs are lower-cased; other valid ids are kept as-is.
    """
    if incoming and len(incoming.encode("utf-8")) <= MAX_REQUEST_ID_LENGTH:
        if UUID_PATTERN.match(incoming):
            return incoming.lower()
        if VALID_REQUEST_ID_PATTERN.match(incoming):
            return incoming
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a request id, binds logging context and writes one access log per request.

    Args:
        app: The ASGI application.
        log_requests: If True, log access entries for each request.
    """

    def __init__(self, app, log_requests: bool = True):
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.monotonic()

        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        set_request_context(request_id, path=request.url.path, method=request.method)
        anonymous_id = request.headers.get(ANONYMOUS_ID_HEADER)
        if anonymous_id:
            set_anonymous_id(anonymous_id.strip()[:128])

        try:
            response = await call_next(request)

            viewer = getattr(request.state, "viewer", None)
            if viewer is not None:
                set_request_context(request_id, user_id=str(viewer.user_id))

            response.headers[REQUEST_ID_HEADER] = request_id

            if self.log_requests:
                duration_ms = (time.monotonic() - start_time) * 1000
                logger.info(
                    "request_completed",
                    status_code=response.status_code,
                    duration_ms=round(duration_ms, 2),
                    authenticated=viewer is not None,
                )

            return response

        except Exception:
            logger.exception("request_failed")
            raise

        finally:
            clear_request_context()


def get_request_id_from_request(request: Request) -> str | None:
    """Get the request ID from request state, if the middleware ran."""
    return getattr(request.state, "request_id", None)
