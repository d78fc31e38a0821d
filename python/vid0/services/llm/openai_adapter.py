"""OpenAI-compatible chat completions adapter.

Serves openai, mistral, xai, perplexity and openrouter; they differ only in
base URL.

- Endpoint: POST {base_url}/chat/completions
- Headers: Authorization: Bearer <key>
- Streaming: SSE lines ``data: {...}``, terminated by ``data: [DONE]``
- Usage arrives in the last content chunk when the provider reports it
"""

import json
from collections.abc import AsyncIterator

import httpx

from vid0.services.llm.adapter import LLMAdapter
from vid0.services.llm.errors import LLMError, LLMErrorClass
from vid0.services.llm.types import LLMChunk, LLMRequest, LLMResponse, LLMUsage, Turn

OPENAI_COMPATIBLE_BASE_URLS: dict[str, str] = {
    "openai": "https://api.openai.com/v1",
    "mistral": "https://api.mistral.ai/v1",
    "xai": "https://api.x.ai/v1",
    "perplexity": "https://api.perplexity.ai",
    "openrouter": "https://openrouter.ai/api/v1",
}


def _usage_from(data: dict | None) -> LLMUsage | None:
    if not data:
        return None
    return LLMUsage(
        prompt_tokens=data.get("prompt_tokens"),
        completion_tokens=data.get("completion_tokens"),
        total_tokens=data.get("total_tokens"),
    )


class OpenAICompatibleAdapter(LLMAdapter):
    """Adapter for any provider speaking the OpenAI chat completions API."""

    def __init__(self, client: httpx.AsyncClient, provider: str = "openai", base_url: str | None = None):
        super().__init__(client)
        self.provider = provider
        self.base_url = (base_url or OPENAI_COMPATIBLE_BASE_URLS[provider]).rstrip("/")

    @property
    def chat_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    async def generate(self, req: LLMRequest, *, api_key: str, timeout_s: int) -> LLMResponse:
        response = await self._client.post(
            self.chat_url,
            headers=self._build_headers(api_key, req),
            json=self._build_request_body(req, stream=False),
            timeout=self._timeout(timeout_s),
        )
        response.raise_for_status()
        return self._parse_response(response.json(), response.headers)

    async def generate_stream(
        self, req: LLMRequest, *, api_key: str, timeout_s: int
    ) -> AsyncIterator[LLMChunk]:
        async with self._client.stream(
            "POST",
            self.chat_url,
            headers=self._build_headers(api_key, req),
            json=self._build_request_body(req, stream=True),
            timeout=self._timeout(timeout_s),
        ) as response:
            response.raise_for_status()

            provider_request_id = response.headers.get("x-request-id")
            usage: LLMUsage | None = None
            received_done = False

            async for line in response.aiter_lines():
                if not line.startswith("data: "):
                    continue
                data_str = line[6:]

                if data_str == "[DONE]":
                    received_done = True
                    yield LLMChunk(
                        delta_text="",
                        done=True,
                        usage=usage,
                        provider_request_id=provider_request_id,
                    )
                    break

                try:
                    data = json.loads(data_str)
                except json.JSONDecodeError:
                    continue

                if data.get("usage"):
                    usage = _usage_from(data["usage"])
                if not provider_request_id:
                    provider_request_id = data.get("id")

                choices = data.get("choices") or []
                if not choices:
                    continue
                delta_text = (choices[0].get("delta") or {}).get("content") or ""
                if delta_text:
                    yield LLMChunk(delta_text=delta_text, done=False)

            if not received_done:
                raise LLMError(
                    LLMErrorClass.PROVIDER_DOWN,
                    f"{self.provider} stream ended without [DONE] marker",
                    provider=self.provider,
                )

    def _build_headers(self, api_key: str, req: LLMRequest) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            **req.extra_headers,
        }

    def _build_request_body(self, req: LLMRequest, stream: bool) -> dict:
        body: dict = {
            "model": req.model_name,
            "messages": [self._turn_to_message(turn) for turn in req.messages],
            "max_tokens": req.max_tokens,
            "stream": stream,
        }
        if stream and self.provider == "openai":
            body["stream_options"] = {"include_usage": True}
        if req.temperature is not None:
            body["temperature"] = req.temperature
        return body

    def _turn_to_message(self, turn: Turn) -> dict[str, str]:
        return {"role": turn.role, "content": turn.content}

    def _parse_response(self, data: dict, headers: httpx.Headers) -> LLMResponse:
        choices = data.get("choices", [])
        if not choices:
            raise LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                f"{self.provider} response missing choices",
                provider=self.provider,
            )
        text = (choices[0].get("message") or {}).get("content") or ""
        return LLMResponse(
            text=text,
            usage=_usage_from(data.get("usage")),
            provider_request_id=headers.get("x-request-id") or data.get("id"),
        )
