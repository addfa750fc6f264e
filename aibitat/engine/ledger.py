"""Conversation ledger: the ordered log of chat records.

The ledger is the single source of truth for history and round counting.
Records are appended already finalized and never mutated. Only the tail may
be popped, and only while it is a pending ``error`` or ``interrupt`` record.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator, Optional, Union

from aibitat.errors import ConversationStateError


class ChatState(str, Enum):
    """State of a chat record."""

    SUCCESS = "success"
    ERROR = "error"
    INTERRUPT = "interrupt"

    @property
    def is_pending(self) -> bool:
        """Pending records pause the conversation until continued or retried."""
        return self is not ChatState.SUCCESS


@dataclass(frozen=True)
class Route:
    """The two parties of a dispatch step, ``sender`` speaking next."""

    sender: str
    recipient: str

    def reversed(self) -> "Route":
        """Swap sender and recipient."""
        return Route(sender=self.recipient, recipient=self.sender)

    def involves(self, a: str, b: str) -> bool:
        """Check if the route connects ``a`` and ``b`` in either direction."""
        return {self.sender, self.recipient} == {a, b}

    def __str__(self) -> str:
        return f"{self.sender} -> {self.recipient}"


@dataclass(frozen=True)
class ChatRecord:
    """One ledger entry."""

    sender: str
    recipient: str
    content: Optional[str]
    state: ChatState = ChatState.SUCCESS

    @property
    def route(self) -> Route:
        """Get the route this record was written for."""
        return Route(self.sender, self.recipient)

    @classmethod
    def success(cls, route: Route, content: str) -> "ChatRecord":
        """Create a successful message record."""
        return cls(route.sender, route.recipient, content, ChatState.SUCCESS)

    @classmethod
    def error(cls, route: Route, content: str) -> "ChatRecord":
        """Create a record for a failed turn."""
        return cls(route.sender, route.recipient, content, ChatState.ERROR)

    @classmethod
    def interrupt(cls, route: Route) -> "ChatRecord":
        """Create a record for a turn waiting on feedback."""
        return cls(route.sender, route.recipient, None, ChatState.INTERRUPT)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the ``{from, to, content, state}`` form used in history files."""
        data: dict[str, Any] = {"from": self.sender, "to": self.recipient}
        if self.content is not None:
            data["content"] = self.content
        data["state"] = self.state.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatRecord":
        """Create a record from its dictionary form."""
        return cls(
            sender=data["from"],
            recipient=data["to"],
            content=data.get("content"),
            state=ChatState(data.get("state", ChatState.SUCCESS.value)),
        )


RecordLike = Union[ChatRecord, dict[str, Any]]


class Ledger:
    """Append-only log of chat records owned by one engine."""

    def __init__(self, records: Optional[Iterable[RecordLike]] = None):
        self._records: list[ChatRecord] = []
        for record in records or ():
            if isinstance(record, dict):
                record = ChatRecord.from_dict(record)
            self.append(record)

    def append(self, record: ChatRecord) -> None:
        """Append a finalized record.

        Raises:
            ConversationStateError: If a pending record already sits at the tail.
        """
        tail = self.tail
        if tail is not None and tail.state.is_pending:
            raise ConversationStateError(
                f"Conversation is paused on a '{tail.state.value}' record; "
                "continue or retry it first",
            )
        self._records.append(record)

    @property
    def tail(self) -> Optional[ChatRecord]:
        """Get the most recent record, if any."""
        return self._records[-1] if self._records else None

    def pop_pending(self, state: ChatState) -> ChatRecord:
        """Remove and return the tail record if it is in ``state``.

        Raises:
            ConversationStateError: If the tail is missing or in another state.
        """
        tail = self.tail
        if tail is None or tail.state is not state:
            raise ConversationStateError(
                f"No '{state.value}' record to resume from",
                expected_state=state.value,
            )
        return self._records.pop()

    def history(
        self,
        sender: Optional[str] = None,
        recipient: Optional[str] = None,
    ) -> list[ChatRecord]:
        """Get successful records.

        With only ``recipient``, every record addressed to it. With only
        ``sender``, every record it wrote. With both, the records exchanged
        between the two in either direction.
        """
        records = [r for r in self._records if r.state is ChatState.SUCCESS]
        if sender is None and recipient is None:
            return records
        if sender is None:
            return [r for r in records if r.recipient == recipient]
        if recipient is None:
            return [r for r in records if r.sender == sender]
        return [r for r in records if r.route.involves(sender, recipient)]

    def pairwise_rounds(self, a: str, b: str) -> int:
        """Count successful records between two parties."""
        return len(self.history(a, b))

    def channel_rounds(self, channel: str, members: Iterable[str]) -> int:
        """Count successful records members addressed to a channel."""
        members = set(members)
        return sum(1 for r in self.history(recipient=channel) if r.sender in members)

    def last_addressed(self, recipient: str) -> Optional[ChatRecord]:
        """Get the most recent successful record addressed to ``recipient``."""
        history = self.history(recipient=recipient)
        return history[-1] if history else None

    def snapshot(self) -> tuple[ChatRecord, ...]:
        """Get an immutable view of the records."""
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ChatRecord]:
        return iter(tuple(self._records))
