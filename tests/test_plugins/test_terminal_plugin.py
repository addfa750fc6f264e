"""Tests for the terminal plugin."""

from io import StringIO
from unittest.mock import AsyncMock, patch

import pytest
from rich.console import Console

from aibitat.engine import AIbitat, ChatRecord, ChatState
from aibitat.errors import RateLimitError
from aibitat.plugins import TerminalPlugin

HUMAN = "🧑"
BOT = "🤖"


def make_console() -> Console:
    return Console(file=StringIO(), force_terminal=False, width=120)


def output(plugin: TerminalPlugin) -> str:
    return plugin.console.file.getvalue()


def build(provider, ask=None, simulate_stream=False) -> tuple[AIbitat, TerminalPlugin]:
    plugin = TerminalPlugin(simulate_stream=simulate_stream, console=make_console(), ask=ask)
    aibitat = AIbitat(provider=provider).agent(HUMAN, interrupt="ALWAYS").agent(BOT).use(plugin)
    return aibitat, plugin


class TestTerminalPlugin:
    """Tests for TerminalPlugin."""

    @pytest.mark.asyncio
    async def test_prints_chat(self, provider) -> None:
        """Test the start banner, messages and finish line."""
        aibitat, plugin = build(provider)

        await aibitat.start(HUMAN, BOT, "2 + 2 = 4?")

        text = output(plugin)
        assert "🚀 starting chat ..." in text
        assert f"✎ {HUMAN} (to {BOT}):" in text
        assert "2 + 2 = 4?" in text
        assert f"✎ {BOT} (to {HUMAN}):" in text
        assert "🚀 chat finished!" in text

    @pytest.mark.asyncio
    async def test_feedback_continues_chat(self, make_provider) -> None:
        """Test that typed feedback is sent on behalf of the interrupted agent."""
        ask = AsyncMock(return_value="  my feedback ")
        aibitat, plugin = build(make_provider(["...", "TERMINATE"]), ask=ask)

        await aibitat.start(HUMAN, BOT, "hi")

        prompt = ask.await_args.args[0]
        assert f"Provide feedback to {BOT} as {HUMAN}" in prompt
        assert aibitat.chats[2] == ChatRecord(HUMAN, BOT, "my feedback", ChatState.SUCCESS)
        assert aibitat.chats[-1].content == "TERMINATE"
        assert "my feedback" in output(plugin)

    @pytest.mark.asyncio
    async def test_empty_feedback_auto_replies(self, make_provider) -> None:
        """Test that pressing enter lets the agent reply itself."""
        ask = AsyncMock(return_value="")
        provider = make_provider(["...", "auto reply", "TERMINATE"])
        aibitat, _ = build(provider, ask=ask)

        await aibitat.start(HUMAN, BOT, "hi")

        assert aibitat.chats[2] == ChatRecord(HUMAN, BOT, "auto reply", ChatState.SUCCESS)
        assert provider.call_count == 3

    @pytest.mark.asyncio
    async def test_exit_leaves_chat_paused(self, make_provider) -> None:
        """Test that typing exit stops asking and keeps the interrupt."""
        ask = AsyncMock(return_value="EXIT")
        aibitat, plugin = build(make_provider(["..."]), ask=ask)

        await aibitat.start(HUMAN, BOT, "hi")

        assert plugin.exited is True
        assert ask.await_count == 1
        assert aibitat.chats[-1].state is ChatState.INTERRUPT
        assert "🚀 chat finished!" in output(plugin)

    @pytest.mark.asyncio
    async def test_long_interrupted_chat(self, make_provider) -> None:
        """Test hundreds of interrupts answered with enter in one run."""
        ask = AsyncMock(return_value="")
        plugin = TerminalPlugin(simulate_stream=False, console=make_console(), ask=ask)
        aibitat = AIbitat(provider=make_provider(["..."]), max_rounds=400)
        aibitat.agent(HUMAN, interrupt="ALWAYS").agent(BOT).use(plugin)

        await aibitat.start(HUMAN, BOT, "hi")

        assert len(aibitat.chats) == 400
        assert ask.await_count == 199
        assert "🚀 chat finished!" in output(plugin)

    @pytest.mark.asyncio
    async def test_channel_pause_continues_without_feedback(self, make_provider) -> None:
        """Test that input typed at a channel pause is not sent as a message."""
        replies = iter(["INTERRUPT", "TERMINATE"])

        def script(messages):
            if "next role" in messages[-1].content:
                return "🐶" if provider.call_count == 1 else "😸"
            return next(replies)

        provider = make_provider(script)
        ask = AsyncMock(return_value="typed anyway")
        plugin = TerminalPlugin(simulate_stream=False, console=make_console(), ask=ask)
        aibitat = AIbitat(provider=provider, selector_provider=provider).use(plugin)
        aibitat.agent(HUMAN).agent("🐶").agent("😸").agent("🐭")
        aibitat.channel("#team", ["🐶", "😸", "🐭"])

        await aibitat.start(HUMAN, "#team", "hello team")

        assert "pick the next speaker" in ask.await_args.args[0]
        assert aibitat.chats[-1] == ChatRecord("😸", "#team", "TERMINATE", ChatState.SUCCESS)
        assert all(r.content != "typed anyway" for r in aibitat.chats)

    @pytest.mark.asyncio
    async def test_prints_errors(self, make_provider) -> None:
        """Test that provider errors are shown."""
        aibitat, plugin = build(make_provider([RateLimitError("401: Rate limit")]))

        await aibitat.start(HUMAN, BOT, "hi")

        assert "error: 401: Rate limit" in output(plugin)

    @pytest.mark.asyncio
    async def test_simulated_stream(self, provider) -> None:
        """Test printing a reply word by word."""
        plugin = TerminalPlugin(simulate_stream=True, console=make_console())

        with patch("aibitat.plugins.terminal.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await plugin.print_message(ChatRecord(BOT, HUMAN, "one two three"))

        assert sleep.await_count == 3
        assert "one two three" in output(plugin)

    @pytest.mark.asyncio
    async def test_markup_is_printed_verbatim(self, provider) -> None:
        """Test that model output is not read as rich markup."""
        plugin = TerminalPlugin(simulate_stream=False, console=make_console())

        await plugin.print_message(ChatRecord(BOT, HUMAN, "[bold]not bold[/bold]"))

        assert "[bold]not bold[/bold]" in output(plugin)
