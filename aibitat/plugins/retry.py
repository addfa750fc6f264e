"""Automatic retries after transient provider errors."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from aibitat.errors import APIError, RateLimitError, ServerError

from .base import Plugin

if TYPE_CHECKING:
    from aibitat.engine import AIbitat, ChatRecord

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY = 60.0


class RetryPlugin(Plugin):
    """Retries turns that failed on rate limits or server errors.

    Other provider errors are left for the caller. After ``max_attempts``
    consecutive failures the chat stays paused on its error record.
    """

    name = "retry"

    def __init__(
        self,
        delay: float = DEFAULT_RETRY_DELAY,
        max_attempts: int = 3,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the plugin.

        Args:
            delay: Seconds to wait before retrying
            max_attempts: Consecutive retries before giving up
            sleep: Coroutine used to wait
        """
        self.delay = delay
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._aibitat: Optional["AIbitat"] = None
        self.attempts = 0

    def setup(self, aibitat: "AIbitat") -> None:
        self._aibitat = aibitat
        aibitat.on_error(self._on_error)
        aibitat.on_message(self._on_message)

    def _on_message(self, record: "ChatRecord") -> None:
        self.attempts = 0

    async def _on_error(self, error: APIError, record: "ChatRecord") -> None:
        if not isinstance(error, (RateLimitError, ServerError)):
            return

        if self.attempts >= self.max_attempts:
            logger.error(f"Giving up on {record.route} after {self.attempts} retries")
            return

        self.attempts += 1
        wait_time = self.delay
        if isinstance(error, RateLimitError) and error.retry_after:
            wait_time = max(wait_time, error.retry_after)

        logger.warning(
            f"Retrying {record.route} in {wait_time:.0f}s "
            f"(attempt {self.attempts}/{self.max_attempts})"
        )
        await self._sleep(wait_time)
        await self._aibitat.retry()
