"""Terminal plugin: prints the chat and asks for feedback on interrupts."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from prompt_toolkit import PromptSession
from rich.console import Console
from rich.text import Text

from aibitat.errors import APIError

from .base import Plugin

if TYPE_CHECKING:
    from aibitat.engine import AIbitat, ChatRecord, Route

logger = logging.getLogger(__name__)

EXIT_COMMAND = "exit"

# Delay range between words when simulating a stream, in seconds
STREAM_DELAY = (0.01, 0.05)

FeedbackSource = Callable[[str], Awaitable[str]]


class TerminalPlugin(Plugin):
    """Prints each message and collects human feedback.

    When the chat pauses on an interrupt the user is asked for feedback on
    behalf of the interrupted participant. Typing ``exit`` leaves the chat
    paused and returns control to the caller; empty input lets the
    participant reply on its own.
    """

    name = "terminal"

    def __init__(
        self,
        simulate_stream: bool = True,
        console: Optional[Console] = None,
        ask: Optional[FeedbackSource] = None,
    ):
        """Initialize the plugin.

        Args:
            simulate_stream: Print replies word by word
            console: Rich console to print to
            ask: Coroutine returning the user's answer to a prompt
        """
        self.simulate_stream = simulate_stream
        self.console = console or Console()
        self._ask = ask
        self._session: Optional[PromptSession] = None
        self._aibitat: Optional["AIbitat"] = None
        self._started_at: Optional[float] = None
        self.exited = False

    def setup(self, aibitat: "AIbitat") -> None:
        self._aibitat = aibitat
        aibitat.on_start(self._on_start)
        aibitat.on_message(self._on_message)
        aibitat.on_interrupt(self._on_interrupt)
        aibitat.on_terminate(self._on_terminate)
        aibitat.on_error(self._on_error)

    async def _on_start(self, record: "ChatRecord") -> None:
        self._started_at = time.monotonic()
        self.console.print()
        self.console.print("🚀 starting chat ...\n")

    async def _on_message(self, record: "ChatRecord") -> None:
        await self.print_message(record)

    async def _on_terminate(self, route: "Route") -> None:
        self._print_finished()

    async def _on_error(self, error: APIError, record: "ChatRecord") -> None:
        self.console.print(f"   error: {error.message}", style="red", markup=False)

    async def _on_interrupt(self, record: "ChatRecord") -> None:
        feedback = await self.ask_for_feedback(record)
        self.console.print()

        if feedback.strip().lower() == EXIT_COMMAND:
            self.exited = True
            self._print_finished()
            return

        if self._aibitat.participants.is_channel(record.sender):
            await self._aibitat.continue_()
            return
        await self._aibitat.continue_(feedback.strip() or None)

    async def print_message(self, record: "ChatRecord") -> None:
        """Print one message, optionally word by word."""
        header = Text()
        header.append("✎ ", style="magenta")
        header.append(record.sender, style="bold")
        header.append(f" (to {record.recipient}):", style="dim")
        self.console.print(header)

        content = record.content or ""
        if not self.simulate_stream:
            self.console.print(content, markup=False, highlight=False)
            self.console.print()
            return

        for word in content.split(" "):
            self.console.print(word, end=" ", markup=False, highlight=False)
            await asyncio.sleep(random.uniform(*STREAM_DELAY))
        self.console.print()
        self.console.print()

    async def ask_for_feedback(self, record: "ChatRecord") -> str:
        """Ask the user to answer on behalf of the interrupted participant.

        Channels cannot be answered for; their prompt only offers to go on.
        """
        if self._aibitat is not None and self._aibitat.participants.is_channel(record.sender):
            prompt = (
                f"{record.recipient} paused {record.sender}. Press enter to let the channel "
                f"pick the next speaker, or type '{EXIT_COMMAND}' to end the conversation: "
            )
        else:
            prompt = (
                f"Provide feedback to {record.recipient} as {record.sender}. "
                f"Press enter to skip and use auto-reply, or type '{EXIT_COMMAND}' "
                "to end the conversation: "
            )

        if self._ask is not None:
            return await self._ask(prompt)

        if self._session is None:
            self._session = PromptSession()
        return await self._session.prompt_async(prompt)

    def _print_finished(self) -> None:
        if self._started_at is None:
            self.console.print("🚀 chat finished!")
            return
        elapsed = time.monotonic() - self._started_at
        self.console.print(f"🚀 chat finished! ({elapsed:.2f}s)")
