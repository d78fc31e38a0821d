"""Anthropic messages adapter.

- Endpoint: POST https://api.anthropic.com/v1/messages
- Headers: x-api-key, anthropic-version: 2023-06-01, optional anthropic-beta
- The system turn goes into the top-level ``system`` field
- Streaming: ``content_block_delta`` events carry text; ``message_stop`` ends the stream
- Input tokens arrive in ``message_start``, output tokens in ``message_delta``
"""

import json
from collections.abc import AsyncIterator

from vid0.services.llm.adapter import LLMAdapter
from vid0.services.llm.errors import LLMError, LLMErrorClass
from vid0.services.llm.types import LLMChunk, LLMRequest, LLMResponse, LLMUsage

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"


def _usage(input_tokens: int | None, output_tokens: int | None) -> LLMUsage:
    total = None
    if input_tokens is not None and output_tokens is not None:
        total = input_tokens + output_tokens
    return LLMUsage(prompt_tokens=input_tokens, completion_tokens=output_tokens, total_tokens=total)


class AnthropicAdapter(LLMAdapter):
    provider = "anthropic"

    async def generate(self, req: LLMRequest, *, api_key: str, timeout_s: int) -> LLMResponse:
        response = await self._client.post(
            ANTHROPIC_MESSAGES_URL,
            headers=self._build_headers(api_key, req),
            json=self._build_request_body(req, stream=False),
            timeout=self._timeout(timeout_s),
        )
        response.raise_for_status()
        return self._parse_response(response.json())

    async def generate_stream(
        self, req: LLMRequest, *, api_key: str, timeout_s: int
    ) -> AsyncIterator[LLMChunk]:
        async with self._client.stream(
            "POST",
            ANTHROPIC_MESSAGES_URL,
            headers=self._build_headers(api_key, req),
            json=self._build_request_body(req, stream=True),
            timeout=self._timeout(timeout_s),
        ) as response:
            response.raise_for_status()

            provider_request_id: str | None = None
            input_tokens: int | None = None
            output_tokens: int | None = None
            received_stop = False

            async for line in response.aiter_lines():
                if not line.startswith("data: "):
                    continue
                try:
                    data = json.loads(line[6:])
                except json.JSONDecodeError:
                    continue

                event_type = data.get("type", "")
                if event_type == "message_start":
                    message = data.get("message", {})
                    provider_request_id = message.get("id")
                    input_tokens = (message.get("usage") or {}).get("input_tokens")
                elif event_type == "content_block_delta":
                    delta = data.get("delta", {})
                    if delta.get("type") == "text_delta" and delta.get("text"):
                        yield LLMChunk(delta_text=delta["text"], done=False)
                elif event_type == "message_delta":
                    output_tokens = (data.get("usage") or {}).get("output_tokens", output_tokens)
                elif event_type == "message_stop":
                    received_stop = True
                    yield LLMChunk(
                        delta_text="",
                        done=True,
                        usage=_usage(input_tokens, output_tokens),
                        provider_request_id=provider_request_id,
                    )
                    break

            if not received_stop:
                raise LLMError(
                    LLMErrorClass.PROVIDER_DOWN,
                    "Anthropic stream ended without message_stop event",
                    provider=self.provider,
                )

    def _build_headers(self, api_key: str, req: LLMRequest) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "Content-Type": "application/json",
            **req.extra_headers,
        }

    def _build_request_body(self, req: LLMRequest, stream: bool) -> dict:
        system_parts = [turn.content for turn in req.messages if turn.role == "system"]
        body: dict = {
            "model": req.model_name,
            "max_tokens": req.max_tokens,
            "messages": [
                {"role": turn.role, "content": turn.content}
                for turn in req.messages
                if turn.role != "system"
            ],
            "stream": stream,
        }
        if system_parts:
            body["system"] = "\n\n".join(system_parts)
        if req.temperature is not None:
            body["temperature"] = req.temperature
        return body

    def _parse_response(self, data: dict) -> LLMResponse:
        text = "".join(
            block.get("text", "") for block in data.get("content", []) if block.get("type") == "text"
        )
        usage_data = data.get("usage")
        usage = None
        if usage_data:
            usage = _usage(usage_data.get("input_tokens"), usage_data.get("output_tokens"))
        return LLMResponse(text=text, usage=usage, provider_request_id=data.get("id"))
