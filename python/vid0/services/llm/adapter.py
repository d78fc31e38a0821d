"""Abstract base class for LLM adapters.

Adapter rules:
- async over a shared httpx.AsyncClient
- no retries, no DB access, no logging of request or response bodies
- raw provider errors bubble up to the router for classification
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

import httpx

from vid0.services.llm.types import LLMChunk, LLMRequest, LLMResponse


class LLMAdapter(ABC):
    """Provider-specific HTTP calls and Turn conversion."""

    provider: str = "abstract"

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    @abstractmethod
    async def generate(self, req: LLMRequest, *, api_key: str, timeout_s: int) -> LLMResponse:
        """Non-streaming generation.

        Raises:
            httpx.HTTPStatusError: On non-2xx HTTP response.
            httpx.TimeoutException: On request timeout.
            httpx.NetworkError: On network failure.
        """

    @abstractmethod
    def generate_stream(
        self, req: LLMRequest, *, api_key: str, timeout_s: int
    ) -> AsyncIterator[LLMChunk]:
        """Streaming generation; yields chunks up to and including one with done=True.

        Raises:
            LLMError: If the stream ends without the provider's terminal marker.
        """

    def _timeout(self, timeout_s: int) -> httpx.Timeout:
        return httpx.Timeout(timeout_s, connect=10.0)
