"""AIbitat - multi-agent conversations between language models."""

__version__ = "0.1.0"

from aibitat.engine import (
    AIbitat,
    ChatRecord,
    ChatState,
    ConversationListener,
    InterruptPolicy,
    ParticipantKind,
    Route,
    create_aibitat,
)
from aibitat.functions import Function, create_function

__all__ = [
    "__version__",
    "AIbitat",
    "ChatRecord",
    "ChatState",
    "ConversationListener",
    "Function",
    "InterruptPolicy",
    "ParticipantKind",
    "Route",
    "create_aibitat",
    "create_function",
]
