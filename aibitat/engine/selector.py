"""Next-speaker selection for channels."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from aibitat.providers.types import Message

from .ledger import Ledger
from .prompts import format_select_speaker_prompt
from .registry import ChannelConfig, ParticipantRegistry

if TYPE_CHECKING:
    from aibitat.providers import Completion, Provider

logger = logging.getLogger(__name__)

# Channels smaller than this would be better served by direct chats
MIN_EFFICIENT_MEMBERS = 3

# Characters models like to wrap names in
DECORATION_CHARS = " \t\r\n[]\"'`@"

Completer = Callable[["Provider", list[Message]], Awaitable["Completion"]]


def clean_speaker_name(answer: Optional[str]) -> str:
    """Strip brackets, quotes, mention marks and whitespace from a model answer."""
    if not answer:
        return ""
    return answer.strip(DECORATION_CHARS)


class SpeakerSelector:
    """Chooses which member of a channel speaks next.

    The model's pick is only a suggestion. It is used when it names an
    eligible member, otherwise a member is drawn at random from ``rng``.
    """

    def __init__(
        self,
        participants: ParticipantRegistry,
        ledger: Ledger,
        is_exhausted: Callable[[str, str], bool],
        rng: Optional[random.Random] = None,
    ):
        """Initialize the selector.

        Args:
            participants: Registry of agents and channels
            ledger: Conversation ledger
            is_exhausted: Round-budget check taking two participant names
            rng: Random source for the fallback pick
        """
        self.participants = participants
        self.ledger = ledger
        self.is_exhausted = is_exhausted
        self.rng = rng or random.Random()
        self._warned: set[str] = set()

    def candidates(self, channel: ChannelConfig) -> list[str]:
        """Members allowed to speak next, in channel order.

        Members whose budget with the channel is spent are left out. The
        member who most recently addressed the channel is left out too,
        unless nobody else remains.
        """
        for member in channel.members:
            # Raises on members that were never registered as agents
            self.participants.get_agent(member)

        available = [m for m in channel.members if not self.is_exhausted(channel.name, m)]

        last = self.ledger.last_addressed(channel.name)
        if last is not None and last.sender in available and len(available) > 1:
            available.remove(last.sender)

        return available

    async def select(
        self,
        channel: ChannelConfig,
        provider: "Provider",
        complete: Completer,
    ) -> Optional[str]:
        """Pick the next speaker of a channel.

        Args:
            channel: The channel relaying the turn
            provider: Provider asked for a suggestion
            complete: Coroutine running one provider completion

        Returns:
            Member name, or None when no member may speak
        """
        if len(channel.members) < MIN_EFFICIENT_MEMBERS and channel.name not in self._warned:
            self._warned.add(channel.name)
            logger.warning(
                f"Channel {channel.name} is underpopulated with {len(channel.members)} "
                "members. Direct communication would be more efficient."
            )

        available = self.candidates(channel)
        if not available:
            logger.debug(f"No eligible speaker left in {channel.name}")
            return None

        prompt = format_select_speaker_prompt(
            [(name, self.participants.role_of(name)) for name in available],
            self.ledger.history(recipient=channel.name),
        )
        messages = [Message.system(channel.resolved_role), Message.user(prompt)]

        completion = await complete(provider, messages)
        name = clean_speaker_name(completion.result)

        if name in self.participants and name in available:
            logger.debug(f"{channel.name} selected {name}")
            return name

        choice = self.rng.choice(available)
        logger.debug(
            f"{channel.name} got unusable speaker {name!r}, picked {choice} at random"
        )
        return choice
