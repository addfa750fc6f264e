"""Chat history files."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from aibitat.engine.ledger import ChatRecord

from .base import Plugin

if TYPE_CHECKING:
    from aibitat.engine import AIbitat

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_DIR = Path("history")


def default_history_path(directory: Optional[Path] = None) -> Path:
    """Timestamped history file name inside ``directory``."""
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    return (directory or DEFAULT_HISTORY_DIR) / f"chat-history-{stamp}.json"


def load_history(path: Path) -> list[ChatRecord]:
    """Read a history file written by ``FileHistoryPlugin``.

    The records can seed a new engine through its ``chats`` argument.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return [ChatRecord.from_dict(item) for item in data]


class FileHistoryPlugin(Plugin):
    """Rewrites a JSON file with the whole ledger after every message."""

    name = "file-history"

    def __init__(self, path: Optional[Path] = None):
        """Initialize the plugin.

        Args:
            path: File to write, a timestamped file under ./history by default
        """
        self.path = Path(path).expanduser() if path else default_history_path()
        self._aibitat: Optional["AIbitat"] = None

    def setup(self, aibitat: "AIbitat") -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._aibitat = aibitat
        aibitat.on_message(self._on_message)
        logger.debug(f"Writing chat history to {self.path}")

    def _on_message(self, record: ChatRecord) -> None:
        self.save()

    def save(self) -> None:
        """Write the current ledger to the history file."""
        records = [r.to_dict() for r in self._aibitat.chats]
        self.path.write_text(
            json.dumps(records, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
