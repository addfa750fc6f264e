"""Tests for the file history plugin."""

import json
from pathlib import Path

import pytest

from aibitat.engine import AIbitat, ChatState
from aibitat.errors import ServerError
from aibitat.plugins import FileHistoryPlugin, default_history_path, load_history

HUMAN = "🧑"
BOT = "🤖"


class TestFileHistoryPlugin:
    """Tests for FileHistoryPlugin."""

    @pytest.mark.asyncio
    async def test_writes_ledger_after_each_message(self, make_provider, temp_dir: Path) -> None:
        """Test that the file holds the whole ledger."""
        path = temp_dir / "nested" / "chat.json"
        provider = make_provider(["...", "TERMINATE"])
        aibitat = AIbitat(provider=provider).agent(HUMAN).agent(BOT).use(FileHistoryPlugin(path))

        await aibitat.start(HUMAN, BOT, "2 + 2 = 4?")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == [r.to_dict() for r in aibitat.chats]
        assert data[0] == {"from": HUMAN, "to": BOT, "content": "2 + 2 = 4?", "state": "success"}
        # Emoji names are written as-is
        assert HUMAN in path.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_errors_are_not_written(self, make_provider, temp_dir: Path) -> None:
        """Test that the file is only rewritten on successful messages."""
        path = temp_dir / "chat.json"
        provider = make_provider([ServerError("down")])
        aibitat = AIbitat(provider=provider).agent(HUMAN).agent(BOT).use(FileHistoryPlugin(path))

        await aibitat.start(HUMAN, BOT, "hi")

        assert len(json.loads(path.read_text(encoding="utf-8"))) == 1
        assert aibitat.chats[-1].state is ChatState.ERROR

    @pytest.mark.asyncio
    async def test_history_seeds_new_engine(self, make_provider, temp_dir: Path) -> None:
        """Test resuming a chat from its history file."""
        path = temp_dir / "chat.json"
        first = AIbitat(provider=make_provider(["...", "TERMINATE"])).agent(HUMAN).agent(BOT)
        first.use(FileHistoryPlugin(path))
        await first.start(HUMAN, BOT, "hi")

        records = load_history(path)
        second = AIbitat(provider=make_provider(["TERMINATE"]), chats=records)

        assert second.chats == first.chats

    def test_default_path(self, temp_dir: Path) -> None:
        """Test the timestamped default file name."""
        path = default_history_path(temp_dir)

        assert path.parent == temp_dir
        assert path.name.startswith("chat-history-")
        assert path.suffix == ".json"

    def test_setup_creates_directory(self, provider, temp_dir: Path) -> None:
        """Test that the history directory is created on install."""
        path = temp_dir / "a" / "b" / "chat.json"

        AIbitat(provider=provider).use(FileHistoryPlugin(path))

        assert path.parent.is_dir()
