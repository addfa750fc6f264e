"""Abstract base class for providers."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from aibitat.errors import APIError, RateLimitError

from .functions import FunctionDefinition
from .types import Completion, Message

logger = logging.getLogger(__name__)

# Backoff for transport retries when the provider sends no retry-after hint
RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 60.0


class Provider(ABC):
    """Abstract base class for language-model providers.

    Subclasses implement ``_request``, a single call to the backing API that
    raises one of the ``APIError`` subclasses from ``aibitat.errors`` on
    transport, authorization, rate-limit or server failures. Anything else
    propagates uncaught through the engine.
    """

    # Class attributes - must be set by subclasses
    name: str  # 'openai', 'anthropic'

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: Optional[float] = None,
        max_retries: int = 0,
    ):
        """Initialize the provider.

        Args:
            api_key: API key for the provider (falls back to env var)
            model_id: Model identifier to use
            max_tokens: Maximum tokens in a completion
            temperature: Sampling temperature, provider default when None
            max_retries: Transport-level retries for rate-limit/server errors
        """
        self.api_key = api_key
        self.model_id = model_id or self._default_model_id()
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_retries = max_retries

    @abstractmethod
    def _default_model_id(self) -> str:
        """Return the default model ID for this provider."""
        ...

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is usable (API key configured, etc.)."""
        ...

    @abstractmethod
    async def _request(
        self,
        messages: list[Message],
        functions: Optional[list[FunctionDefinition]],
    ) -> Completion:
        """Make one completion request without retrying."""
        ...

    def retry_delay(self, error: APIError, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (1-based).

        A rate limit's retry-after hint wins; otherwise the delay doubles per
        attempt up to ``RETRY_MAX_DELAY``.
        """
        if isinstance(error, RateLimitError) and error.retry_after:
            return error.retry_after
        return min(RETRY_BASE_DELAY * 2 ** (attempt - 1), RETRY_MAX_DELAY)

    async def complete(
        self,
        messages: list[Message],
        functions: Optional[list[FunctionDefinition]] = None,
    ) -> Completion:
        """Create a completion for the given messages.

        Retryable errors are retried up to ``max_retries`` times before the
        last one is raised.

        Args:
            messages: Conversation, system message first
            functions: Functions the model may call

        Returns:
            Completion holding either text or a function call
        """
        attempt = 0
        while True:
            try:
                return await self._request(messages, functions)
            except APIError as e:
                attempt += 1
                if not e.retryable or attempt > self.max_retries:
                    raise
                wait_time = self.retry_delay(e, attempt)
                logger.warning(
                    f"{self.name} request failed ({e.message}); "
                    f"retry {attempt}/{self.max_retries} in {wait_time:.1f}s"
                )
                await asyncio.sleep(wait_time)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model_id={self.model_id!r})"


def retry_after_seconds(error: Exception) -> Optional[float]:
    """Read the retry-after header from an SDK status error, if any."""
    response = getattr(error, "response", None)
    if response is None:
        return None
    header = response.headers.get("retry-after")
    if not header:
        return None
    try:
        return float(header)
    except ValueError:
        return None
