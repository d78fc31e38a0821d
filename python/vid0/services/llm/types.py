"""Shared type definitions for the LLM adapter layer.

Streaming invariants:
- Chunks with done=False MUST have usage=None
- Exactly ONE terminal chunk with done=True
- Terminal chunk MAY carry usage and provider_request_id
- A provider stream that ends without its terminal marker raises
  E_LLM_PROVIDER_DOWN
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal


@dataclass(frozen=True)
class Turn:
    """Provider-agnostic conversation turn."""

    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class LLMUsage:
    """Token usage; any field may be missing depending on the provider."""

    prompt_tokens: int | None
    completion_tokens: int | None
    total_tokens: int | None


@dataclass(frozen=True)
class LLMRequest:
    """Request to an LLM adapter.

    Attributes:
        model_name: Provider-side model id (e.g. "gpt-4.1-nano").
        messages: Turns, system turn first if present.
        max_tokens: Completion token cap.
        temperature: Sampling temperature; None uses the provider default.
        extra_headers: Provider-specific headers (e.g. anthropic-beta).
    """

    model_name: str
    messages: list[Turn]
    max_tokens: int
    temperature: float | None = None
    extra_headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class LLMResponse:
    text: str
    usage: LLMUsage | None
    provider_request_id: str | None


@dataclass(frozen=True)
class LLMChunk:
    """Single chunk from a streaming response."""

    delta_text: str
    done: bool
    usage: LLMUsage | None = None
    provider_request_id: str | None = None

    def __post_init__(self):
        if not self.done and self.usage is not None:
            raise ValueError("Non-terminal chunks (done=False) must have usage=None")


class LLMOperation(str, Enum):
    """Why a provider is being called; shapes the log fields."""

    CHAT_SEND = "chat_send"
    SUB_AGENT = "sub_agent"
    OTHER = "other"


@dataclass(frozen=True)
class LLMCallContext:
    """Correlation metadata attached to provider call logs."""

    operation: LLMOperation = LLMOperation.OTHER
    chat_id: str | None = None
    model_id: str | None = None
