"""Dispatch engine for multi-agent conversations.

Main components:
- AIbitat: Routes turns between agents and channels
- Ledger: Ordered log of chat records
- ParticipantRegistry: Agents and channels of one conversation
- SpeakerSelector: Picks the next member of a channel
- FunctionCallLoop: Runs function calls until a turn has its text
- EventNotifier: Lifecycle callbacks for plugins and callers
"""

from .engine import AIbitat, create_aibitat
from .events import ConversationListener, EventNotifier, EventType
from .ledger import ChatRecord, ChatState, Ledger, Route
from .prompts import (
    DEFAULT_AGENT_ROLE,
    DEFAULT_ASSISTANT_ROLE,
    DEFAULT_CHANNEL_ROLE,
    FUNCTION_NOT_FOUND,
    INTERRUPT,
    TERMINATE,
    format_group_reply_prompt,
    format_select_speaker_prompt,
)
from .registry import (
    AgentConfig,
    ChannelConfig,
    InterruptPolicy,
    ParticipantKind,
    ParticipantRegistry,
)
from .replies import FunctionCallLoop, Reply
from .selector import SpeakerSelector, clean_speaker_name

__all__ = [
    # Engine
    "AIbitat",
    "create_aibitat",
    # Ledger
    "ChatRecord",
    "ChatState",
    "Ledger",
    "Route",
    # Participants
    "AgentConfig",
    "ChannelConfig",
    "InterruptPolicy",
    "ParticipantKind",
    "ParticipantRegistry",
    # Events
    "ConversationListener",
    "EventNotifier",
    "EventType",
    # Turns
    "FunctionCallLoop",
    "Reply",
    "SpeakerSelector",
    "clean_speaker_name",
    # Prompts
    "DEFAULT_AGENT_ROLE",
    "DEFAULT_ASSISTANT_ROLE",
    "DEFAULT_CHANNEL_ROLE",
    "FUNCTION_NOT_FOUND",
    "INTERRUPT",
    "TERMINATE",
    "format_group_reply_prompt",
    "format_select_speaker_prompt",
]
