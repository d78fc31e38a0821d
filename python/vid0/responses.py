"""API response envelope helpers and exception handlers.

All API responses use a consistent envelope:
- Success: { "data": ... }
- Error: { "error": { "code": "E_...", "message": "...", "request_id": "..." } }

The request_id is included in error responses for debugging and support.
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from vid0.errors import ApiError, ApiErrorCode, GoneError
from vid0.logging import get_logger, get_request_id
from vid0.services.llm.errors import LLMError

logger = get_logger(__name__)


def success_response(data: Any) -> dict[str, Any]:
    """Create a success response envelope.

    Args:
        data: The response data to wrap.

    Returns:
        Dict with "data" key containing the response.
    """
    return {"data": data}


def error_response(
    code: ApiErrorCode,
    message: str,
    request_id: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Create an error response envelope.

    Args:
        code: The error code enum value.
        message: Human-readable error message.
        request_id: Optional request ID for correlation (auto-populated from context if None).
        **extra: Additional fields placed inside the error object (e.g. ``hint``).

    Returns:
        Dict with "error" key containing code, message, and request_id.
    """
    if request_id is None:
        request_id = get_request_id()

    error: dict[str, Any] = {"code": code.value, "message": message}
    if request_id:
        error["request_id"] = request_id
    error.update({k: v for k, v in extra.items() if v is not None})

    return {"error": error}


def validation_error_message(errors: list[dict[str, Any]]) -> str:
    """Message for a failed request body.

    A ``ValueError`` raised by a schema validator carries a client-facing
    message; anything else (wrong shape, malformed JSON) gets a generic one.
    """
    for error in errors:
        if error.get("type") == "value_error":
            cause = error.get("ctx", {}).get("error")
            if cause is not None:
                return str(cause)
    return "Invalid request body"


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Handle ApiError exceptions and return proper JSON response."""
    extra = {}
    if isinstance(exc, GoneError):
        extra["hint"] = exc.hint
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, **extra),
    )


async def http_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle FastAPI HTTPException and return proper JSON response."""
    status_to_code = {
        400: ApiErrorCode.E_INVALID_REQUEST,
        401: ApiErrorCode.E_UNAUTHENTICATED,
        403: ApiErrorCode.E_FORBIDDEN,
        404: ApiErrorCode.E_NOT_FOUND,
        405: ApiErrorCode.E_INVALID_REQUEST,
        410: ApiErrorCode.E_GONE,
        422: ApiErrorCode.E_INVALID_REQUEST,
    }
    code = status_to_code.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    message = str(exc.detail) if exc.detail else "An error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions and return 500 with E_INTERNAL.

    Logs the exception server-side but never leaks details to client.
    """
    logger.exception("unhandled_exception", error_type=type(exc).__name__)

    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
    )


async def llm_error_handler(request: Request, exc: LLMError) -> JSONResponse:
    """Handle LLMError raised before a stream starts; provider details stay server-side."""
    api_error = exc.to_api_error()
    logger.warning("llm_error", error_class=exc.error_class.value, provider=exc.provider)
    return JSONResponse(
        status_code=api_error.status_code,
        content=error_response(api_error.code, api_error.message),
    )
