"""Provider-agnostic LLM calls.

Adapters speak one provider's HTTP API each; the router picks the adapter,
enforces enable flags and normalizes failures into LLMError.
"""

from vid0.services.llm.errors import LLMError, LLMErrorClass
from vid0.services.llm.router import LLMRouter
from vid0.services.llm.types import (
    LLMCallContext,
    LLMChunk,
    LLMOperation,
    LLMRequest,
    LLMResponse,
    LLMUsage,
    Turn,
)

__all__ = [
    "LLMCallContext",
    "LLMChunk",
    "LLMError",
    "LLMErrorClass",
    "LLMOperation",
    "LLMRequest",
    "LLMResponse",
    "LLMRouter",
    "LLMUsage",
    "Turn",
]
