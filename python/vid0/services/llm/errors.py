"""LLM error classification and normalization.

Provider failures are mapped to one of a few error classes by the router;
adapters let raw httpx errors bubble up. OpenAI-compatible providers
(openai, mistral, xai, perplexity, openrouter) share one classifier.
"""

from enum import Enum

from vid0.errors import ApiError, ApiErrorCode
from vid0.logging import get_logger

logger = get_logger(__name__)

OPENAI_COMPATIBLE_PROVIDERS = frozenset({"openai", "mistral", "xai", "perplexity", "openrouter"})


class LLMErrorClass(str, Enum):
    """Normalized LLM error classes; values are API error codes."""

    INVALID_KEY = "E_LLM_INVALID_KEY"
    RATE_LIMIT = "E_LLM_RATE_LIMIT"
    CONTEXT_TOO_LARGE = "E_LLM_CONTEXT_TOO_LARGE"
    TIMEOUT = "E_LLM_TIMEOUT"
    PROVIDER_DOWN = "E_LLM_PROVIDER_DOWN"
    MODEL_NOT_AVAILABLE = "E_MODEL_NOT_AVAILABLE"


# Client-facing messages; provider error bodies are never forwarded
PUBLIC_MESSAGES: dict[LLMErrorClass, str] = {
    LLMErrorClass.INVALID_KEY: "The API key for this provider is missing or invalid",
    LLMErrorClass.RATE_LIMIT: "The provider is rate limiting requests. Please try again shortly",
    LLMErrorClass.CONTEXT_TOO_LARGE: "The conversation is too long for this model",
    LLMErrorClass.TIMEOUT: "The model took too long to respond",
    LLMErrorClass.PROVIDER_DOWN: "The model provider is unavailable",
    LLMErrorClass.MODEL_NOT_AVAILABLE: "This model is not available",
}


class LLMError(Exception):
    """LLM call failure with a normalized class."""

    def __init__(
        self,
        error_class: LLMErrorClass,
        message: str,
        provider: str | None = None,
    ):
        self.error_class = error_class
        self.message = message
        self.provider = provider
        super().__init__(message)

    def to_api_error(self) -> ApiError:
        """API error with a generic message for the error class."""
        return ApiError(ApiErrorCode(self.error_class.value), PUBLIC_MESSAGES[self.error_class])


def classify_provider_error(
    provider: str,
    status_code: int | None,
    json_body: dict | None,
    exception: Exception | None,
) -> LLMErrorClass:
    """Map a provider failure to an error class."""
    if exception is not None:
        exception_type = type(exception).__name__
        if "Timeout" in exception_type or "timeout" in str(exception).lower():
            return LLMErrorClass.TIMEOUT
        if "Network" in exception_type or "Connection" in exception_type:
            return LLMErrorClass.PROVIDER_DOWN

    if status_code is None:
        return LLMErrorClass.PROVIDER_DOWN

    if provider in OPENAI_COMPATIBLE_PROVIDERS:
        return _classify_openai_error(status_code, json_body)
    if provider == "anthropic":
        return _classify_anthropic_error(status_code, json_body)
    if provider == "google":
        return _classify_gemini_error(status_code, json_body)

    logger.warning("unknown_provider_for_error_classification", provider=provider)
    return LLMErrorClass.PROVIDER_DOWN


def _classify_openai_error(status_code: int, json_body: dict | None) -> LLMErrorClass:
    if status_code in (401, 403):
        return LLMErrorClass.INVALID_KEY
    if status_code == 429:
        return LLMErrorClass.RATE_LIMIT
    if status_code == 404:
        return LLMErrorClass.MODEL_NOT_AVAILABLE
    if status_code >= 500:
        return LLMErrorClass.PROVIDER_DOWN

    if status_code == 400 and json_body:
        error = json_body.get("error") or {}
        if not isinstance(error, dict):
            error = {"message": str(error)}
        error_code = error.get("code") or ""
        error_message = str(error.get("message") or "").lower()

        if error_code == "context_length_exceeded" or "maximum context length" in error_message:
            return LLMErrorClass.CONTEXT_TOO_LARGE
        if "model" in error_message and ("not found" in error_message or "invalid" in error_message):
            return LLMErrorClass.MODEL_NOT_AVAILABLE

    return LLMErrorClass.PROVIDER_DOWN


def _classify_anthropic_error(status_code: int, json_body: dict | None) -> LLMErrorClass:
    if status_code in (401, 403):
        return LLMErrorClass.INVALID_KEY
    if status_code == 429:
        return LLMErrorClass.RATE_LIMIT
    if status_code == 404:
        return LLMErrorClass.MODEL_NOT_AVAILABLE
    if status_code >= 500:
        return LLMErrorClass.PROVIDER_DOWN

    if status_code == 400 and json_body:
        error = json_body.get("error", {})
        if error.get("type") == "invalid_request_error" and "too long" in str(
            error.get("message", "")
        ).lower():
            return LLMErrorClass.CONTEXT_TOO_LARGE

    return LLMErrorClass.PROVIDER_DOWN


def _classify_gemini_error(status_code: int, json_body: dict | None) -> LLMErrorClass:
    body_str = str(json_body).lower() if json_body else ""

    if "api_key_invalid" in body_str or status_code in (401, 403):
        return LLMErrorClass.INVALID_KEY
    if status_code == 429 or "resource_exhausted" in body_str:
        return LLMErrorClass.RATE_LIMIT
    if "exceeds the maximum" in body_str:
        return LLMErrorClass.CONTEXT_TOO_LARGE
    if status_code == 404 or "model not found" in body_str:
        return LLMErrorClass.MODEL_NOT_AVAILABLE
    return LLMErrorClass.PROVIDER_DOWN
