"""LLM router: adapter selection and error normalization.

- Resolves the adapter for a provider and enforces the enable flags
- Classifies provider failures in one place, not per adapter
- Emits llm.request.started / llm.request.finished / llm.request.failed,
  all through safe_kv()

Error mapping:
- Provider 401/403 -> E_LLM_INVALID_KEY
- Provider 429 -> E_LLM_RATE_LIMIT
- Timeout -> E_LLM_TIMEOUT
- Context too large -> E_LLM_CONTEXT_TOO_LARGE
- Other -> E_LLM_PROVIDER_DOWN
"""

import time
from collections.abc import AsyncIterator, Mapping

import httpx

from vid0.constants import PROVIDERS
from vid0.logging import get_logger
from vid0.services.llm.adapter import LLMAdapter
from vid0.services.llm.anthropic_adapter import AnthropicAdapter
from vid0.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from vid0.services.llm.gemini_adapter import GeminiAdapter
from vid0.services.llm.openai_adapter import OPENAI_COMPATIBLE_BASE_URLS, OpenAICompatibleAdapter
from vid0.services.llm.types import (
    LLMCallContext,
    LLMChunk,
    LLMOperation,
    LLMRequest,
    LLMResponse,
)
from vid0.services.redact import safe_kv

logger = get_logger(__name__)

DEFAULT_TIMEOUT_S = 60


def _base_log_fields(
    provider: str,
    req: LLMRequest,
    key_mode: str,
    streaming: bool,
    call_ctx: LLMCallContext | None,
) -> dict:
    fields: dict = {
        "provider": provider,
        "model_name": req.model_name,
        "key_mode": key_mode,
        "streaming": streaming,
        "llm_operation": call_ctx.operation.value if call_ctx else LLMOperation.OTHER.value,
        "message_chars": sum(len(m.content) for m in req.messages),
    }
    if call_ctx and call_ctx.chat_id:
        fields["chat_id"] = call_ctx.chat_id
    return fields


def _safe_parse_json(response: httpx.Response) -> dict | None:
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


class LLMRouter:
    """Routes LLM requests to provider adapters.

    Args:
        client: Shared httpx.AsyncClient for connection pooling.
        enabled: Provider name -> enabled flag. Providers missing from the
            mapping are enabled.
    """

    def __init__(self, client: httpx.AsyncClient, enabled: Mapping[str, bool] | None = None):
        self._client = client
        self._feature_flags = {provider: True for provider in PROVIDERS}
        self._feature_flags.update(enabled or {})
        self._adapters: dict[str, LLMAdapter] = {
            provider: OpenAICompatibleAdapter(client, provider=provider)
            for provider in OPENAI_COMPATIBLE_BASE_URLS
        }
        self._adapters["anthropic"] = AnthropicAdapter(client)
        self._adapters["google"] = GeminiAdapter(client)

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings) -> "LLMRouter":
        return cls(client, {provider: settings.provider_enabled(provider) for provider in PROVIDERS})

    def resolve_adapter(self, provider: str) -> LLMAdapter:
        """Get the adapter for a provider.

        Raises:
            LLMError: MODEL_NOT_AVAILABLE if the provider is unknown or disabled.
        """
        if provider not in self._adapters:
            raise LLMError(
                LLMErrorClass.MODEL_NOT_AVAILABLE, f"Unknown provider: {provider}", provider=provider
            )
        if not self._feature_flags.get(provider, False):
            raise LLMError(
                LLMErrorClass.MODEL_NOT_AVAILABLE, f"Provider {provider} is disabled", provider=provider
            )
        return self._adapters[provider]

    def is_provider_available(self, provider: str) -> bool:
        return provider in self._adapters and self._feature_flags.get(provider, False)

    def _normalize(self, provider: str, exc: Exception, base: dict, start: float) -> LLMError:
        """Map an adapter failure to an LLMError and log it."""
        latency_ms = int((time.monotonic() - start) * 1000)
        provider_request_id = None

        if isinstance(exc, LLMError):
            error = exc
        elif isinstance(exc, httpx.TimeoutException):
            error = LLMError(LLMErrorClass.TIMEOUT, "Request timed out", provider=provider)
        elif isinstance(exc, httpx.HTTPStatusError):
            status_code = exc.response.status_code
            error_class = classify_provider_error(
                provider, status_code, _safe_parse_json(exc.response), None
            )
            provider_request_id = exc.response.headers.get("x-request-id") or exc.response.headers.get(
                "request-id"
            )
            error = LLMError(error_class, f"Provider returned HTTP {status_code}", provider=provider)
        elif isinstance(exc, httpx.NetworkError):
            error = LLMError(LLMErrorClass.PROVIDER_DOWN, "Network error", provider=provider)
        else:
            error = LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                f"Unexpected error: {type(exc).__name__}",
                provider=provider,
            )

        logger.error(
            "llm.request.failed",
            **safe_kv(
                **base,
                outcome="error",
                error_class=error.error_class.value,
                latency_ms=latency_ms,
                provider_request_id=provider_request_id,
            ),
        )
        return error

    def _log_finished(self, base: dict, start: float, usage, provider_request_id) -> None:
        logger.info(
            "llm.request.finished",
            **safe_kv(
                **base,
                outcome="success",
                latency_ms=int((time.monotonic() - start) * 1000),
                tokens_input=usage.prompt_tokens if usage else None,
                tokens_output=usage.completion_tokens if usage else None,
                tokens_total=usage.total_tokens if usage else None,
                provider_request_id=provider_request_id,
            ),
        )

    async def generate(
        self,
        provider: str,
        req: LLMRequest,
        api_key: str,
        *,
        timeout_s: int = DEFAULT_TIMEOUT_S,
        key_mode: str = "unknown",
        call_context: LLMCallContext | None = None,
    ) -> LLMResponse:
        """Non-streaming generation.

        Raises:
            LLMError: With a normalized error class on failure.
        """
        adapter = self.resolve_adapter(provider)
        base = _base_log_fields(provider, req, key_mode, streaming=False, call_ctx=call_context)
        logger.info("llm.request.started", **safe_kv(**base))

        start = time.monotonic()
        try:
            response = await adapter.generate(req, api_key=api_key, timeout_s=timeout_s)
        except Exception as e:
            error = self._normalize(provider, e, base, start)
            if error is e:
                raise
            raise error from e

        self._log_finished(base, start, response.usage, response.provider_request_id)
        return response

    async def generate_stream(
        self,
        provider: str,
        req: LLMRequest,
        api_key: str,
        *,
        timeout_s: int = DEFAULT_TIMEOUT_S,
        key_mode: str = "unknown",
        call_context: LLMCallContext | None = None,
    ) -> AsyncIterator[LLMChunk]:
        """Streaming generation; yields chunks until the terminal one.

        Raises:
            LLMError: With a normalized error class on failure.
        """
        adapter = self.resolve_adapter(provider)
        base = _base_log_fields(provider, req, key_mode, streaming=True, call_ctx=call_context)
        logger.info("llm.request.started", **safe_kv(**base))

        start = time.monotonic()
        try:
            async for chunk in adapter.generate_stream(req, api_key=api_key, timeout_s=timeout_s):
                if chunk.done:
                    self._log_finished(base, start, chunk.usage, chunk.provider_request_id)
                yield chunk
        except Exception as e:
            error = self._normalize(provider, e, base, start)
            if error is e:
                raise
            raise error from e
