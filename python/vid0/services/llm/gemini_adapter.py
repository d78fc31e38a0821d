"""Google Gemini adapter.

- Non-streaming: POST {base}/{model}:generateContent
- Streaming: POST {base}/{model}:streamGenerateContent?alt=sse
- Auth via the x-goog-api-key header, never a query param
- System turn maps to systemInstruction; "assistant" maps to role "model"
- The final streamed event carries a finishReason and usageMetadata
"""

import json
from collections.abc import AsyncIterator

from vid0.services.llm.adapter import LLMAdapter
from vid0.services.llm.errors import LLMError, LLMErrorClass
from vid0.services.llm.types import LLMChunk, LLMRequest, LLMResponse, LLMUsage, Turn

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

# finishReason values that end a stream normally
TERMINAL_FINISH_REASONS = frozenset({"STOP", "MAX_TOKENS"})


def _usage_from(metadata: dict | None) -> LLMUsage | None:
    if not metadata:
        return None
    return LLMUsage(
        prompt_tokens=metadata.get("promptTokenCount"),
        completion_tokens=metadata.get("candidatesTokenCount"),
        total_tokens=metadata.get("totalTokenCount"),
    )


def _candidate_text(candidate: dict) -> str:
    parts = (candidate.get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if "text" in part)


class GeminiAdapter(LLMAdapter):
    provider = "google"

    async def generate(self, req: LLMRequest, *, api_key: str, timeout_s: int) -> LLMResponse:
        response = await self._client.post(
            f"{GEMINI_BASE_URL}/{req.model_name}:generateContent",
            headers=self._build_headers(api_key, req),
            json=self._build_request_body(req),
            timeout=self._timeout(timeout_s),
        )
        response.raise_for_status()
        return self._parse_response(response.json())

    async def generate_stream(
        self, req: LLMRequest, *, api_key: str, timeout_s: int
    ) -> AsyncIterator[LLMChunk]:
        async with self._client.stream(
            "POST",
            f"{GEMINI_BASE_URL}/{req.model_name}:streamGenerateContent?alt=sse",
            headers=self._build_headers(api_key, req),
            json=self._build_request_body(req),
            timeout=self._timeout(timeout_s),
        ) as response:
            response.raise_for_status()

            usage: LLMUsage | None = None
            received_stop = False

            async for line in response.aiter_lines():
                if not line.startswith("data: "):
                    continue
                try:
                    data = json.loads(line[6:])
                except json.JSONDecodeError:
                    continue

                usage = _usage_from(data.get("usageMetadata")) or usage
                candidates = data.get("candidates") or []
                if not candidates:
                    continue

                delta_text = _candidate_text(candidates[0])
                if delta_text:
                    yield LLMChunk(delta_text=delta_text, done=False)

                if candidates[0].get("finishReason") in TERMINAL_FINISH_REASONS:
                    received_stop = True
                    yield LLMChunk(delta_text="", done=True, usage=usage)
                    break

            if not received_stop:
                raise LLMError(
                    LLMErrorClass.PROVIDER_DOWN,
                    "Gemini stream ended without a finish reason",
                    provider=self.provider,
                )

    def _build_headers(self, api_key: str, req: LLMRequest) -> dict[str, str]:
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
            **req.extra_headers,
        }

    def _build_request_body(self, req: LLMRequest) -> dict:
        system_parts = [turn.content for turn in req.messages if turn.role == "system"]
        body: dict = {
            "contents": [self._turn_to_content(turn) for turn in req.messages if turn.role != "system"],
            "generationConfig": {"maxOutputTokens": req.max_tokens},
        }
        if system_parts:
            body["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_parts)}]}
        if req.temperature is not None:
            body["generationConfig"]["temperature"] = req.temperature
        return body

    def _turn_to_content(self, turn: Turn) -> dict:
        role = "model" if turn.role == "assistant" else turn.role
        return {"role": role, "parts": [{"text": turn.content}]}

    def _parse_response(self, data: dict) -> LLMResponse:
        candidates = data.get("candidates", [])
        if not candidates:
            raise LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                "Gemini response missing candidates",
                provider=self.provider,
            )
        return LLMResponse(
            text=_candidate_text(candidates[0]),
            usage=_usage_from(data.get("usageMetadata")),
            provider_request_id=None,
        )
