"""Participant registry: the agents and channels of one conversation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional, Union

from aibitat.errors import RegistrationError, UnknownParticipantError

from .prompts import DEFAULT_AGENT_ROLE, DEFAULT_ASSISTANT_ROLE, DEFAULT_CHANNEL_ROLE

if TYPE_CHECKING:
    from aibitat.providers import Provider

logger = logging.getLogger(__name__)

# A provider instance, or a provider name built through the provider factory
ProviderOverride = Union["Provider", str, None]


class InterruptPolicy(str, Enum):
    """Whether the chat pauses for feedback before a participant speaks."""

    NEVER = "NEVER"
    ALWAYS = "ALWAYS"

    @classmethod
    def coerce(
        cls, value: Union["InterruptPolicy", str, None]
    ) -> Optional["InterruptPolicy"]:
        """Accept a policy, its name, or None."""
        if value is None or isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError as e:
            raise RegistrationError(str(value), "interrupt must be NEVER or ALWAYS") from e


class ParticipantKind(str, Enum):
    """Kind of agent, deciding its default role and interrupt policy."""

    AGENT = "agent"
    ASSISTANT = "assistant"


@dataclass
class AgentConfig:
    """Configuration of a named participant."""

    name: str
    role: Optional[str] = None
    interrupt: Optional[InterruptPolicy] = None
    functions: list[str] = field(default_factory=list)
    kind: ParticipantKind = ParticipantKind.AGENT
    provider: ProviderOverride = None
    model: Optional[str] = None

    @property
    def resolved_role(self) -> str:
        """Get the role text, falling back to the kind's default."""
        if self.role:
            return self.role
        if self.kind is ParticipantKind.ASSISTANT:
            return DEFAULT_ASSISTANT_ROLE
        return DEFAULT_AGENT_ROLE

    @property
    def default_interrupt(self) -> InterruptPolicy:
        """Interrupt policy used when neither agent nor engine sets one."""
        if self.kind is ParticipantKind.ASSISTANT:
            return InterruptPolicy.ALWAYS
        return InterruptPolicy.NEVER


@dataclass
class ChannelConfig:
    """Configuration of a group of participants.

    A channel never replies itself. Turns addressed to it are relayed to a
    member picked by the speaker selector.
    """

    name: str
    members: list[str]
    max_rounds: int = 10
    role: Optional[str] = None
    provider: ProviderOverride = None
    model: Optional[str] = None

    @property
    def resolved_role(self) -> str:
        return self.role or DEFAULT_CHANNEL_ROLE


Participant = Union[AgentConfig, ChannelConfig]


def _dedupe(members: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for member in members:
        seen.setdefault(member, None)
    return list(seen)


@dataclass
class ParticipantRegistry:
    """Agents and channels of one engine, keyed by name.

    Agent and channel names share one namespace. Registering an agent again
    under the same name replaces its configuration.
    """

    _agents: dict[str, AgentConfig] = field(default_factory=dict)
    _channels: dict[str, ChannelConfig] = field(default_factory=dict)

    def add_agent(self, config: AgentConfig) -> None:
        """Register or replace an agent.

        Raises:
            RegistrationError: If the name is empty or used by a channel.
        """
        if not config.name:
            raise RegistrationError(config.name, "agent names cannot be empty")
        if config.name in self._channels:
            raise RegistrationError(config.name, "name is already used by a channel")
        if config.name in self._agents:
            logger.debug(f"Replacing agent: {config.name}")
        self._agents[config.name] = config

    def add_channel(self, config: ChannelConfig) -> None:
        """Register or replace a channel.

        Members are deduplicated, keeping their first position.

        Raises:
            RegistrationError: If the name is used by an agent, the member list
                is empty, or the round limit is not positive.
        """
        if not config.name:
            raise RegistrationError(config.name, "channel names cannot be empty")
        if config.name in self._agents:
            raise RegistrationError(config.name, "name is already used by an agent")
        config.members = _dedupe(config.members)
        if not config.members:
            raise RegistrationError(config.name, "channels need at least one member")
        if config.name in config.members:
            raise RegistrationError(config.name, "a channel cannot be its own member")
        if config.max_rounds < 1:
            raise RegistrationError(config.name, "max_rounds must be at least 1")
        self._channels[config.name] = config

    def get(self, name: str) -> Participant:
        """Get an agent or channel by name.

        Raises:
            UnknownParticipantError: If nothing is registered under ``name``.
        """
        participant = self._agents.get(name) or self._channels.get(name)
        if participant is None:
            raise UnknownParticipantError(name)
        return participant

    def get_agent(self, name: str) -> AgentConfig:
        """Get an agent by name.

        Raises:
            UnknownParticipantError: If no agent is registered under ``name``.
        """
        agent = self._agents.get(name)
        if agent is None:
            raise UnknownParticipantError(name)
        return agent

    def get_channel(self, name: str) -> Optional[ChannelConfig]:
        """Get a channel by name, or None if ``name`` is not a channel."""
        return self._channels.get(name)

    def is_channel(self, name: str) -> bool:
        return name in self._channels

    def role_of(self, name: str) -> str:
        """Get the resolved role text of a participant."""
        return self.get(name).resolved_role

    @property
    def agents(self) -> dict[str, AgentConfig]:
        return dict(self._agents)

    @property
    def channels(self) -> dict[str, ChannelConfig]:
        return dict(self._channels)

    def __contains__(self, name: str) -> bool:
        return name in self._agents or name in self._channels
