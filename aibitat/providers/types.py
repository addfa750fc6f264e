"""Unified message and completion types for all providers."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MessageRole(str, Enum):
    """Role of a message sender."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    FUNCTION = "function"


@dataclass
class FunctionCall:
    """A function call requested by a model.

    ``arguments`` is the raw JSON text produced by the model; it is parsed
    by the function loop so that malformed output can be fed back.
    """

    name: str
    arguments: str = "{}"
    id: Optional[str] = None


@dataclass
class Message:
    """A message sent to a provider."""

    role: MessageRole
    content: Optional[str]
    name: Optional[str] = None  # Function name for function-role messages
    function_call: Optional[FunctionCall] = None  # Assistant requesting a call
    call_id: Optional[str] = None  # Links a function result to its call

    @classmethod
    def system(cls, content: str) -> "Message":
        """Create a system message."""
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        """Create a user message."""
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(
        cls,
        content: Optional[str],
        function_call: Optional[FunctionCall] = None,
    ) -> "Message":
        """Create an assistant message, optionally carrying a function call."""
        return cls(role=MessageRole.ASSISTANT, content=content, function_call=function_call)

    @classmethod
    def function(
        cls,
        name: str,
        content: str,
        call_id: Optional[str] = None,
    ) -> "Message":
        """Create a function result message."""
        return cls(role=MessageRole.FUNCTION, content=content, name=name, call_id=call_id)


@dataclass
class Completion:
    """Result of one provider completion.

    Exactly one of ``result`` and ``function_call`` is expected to be set.
    """

    result: Optional[str] = None
    function_call: Optional[FunctionCall] = None
    cost: float = 0.0

    @property
    def is_function_call(self) -> bool:
        """Check if the model asked for a function call."""
        return self.function_call is not None


# Cost per million tokens (input, output), approximate
MODEL_COSTS = {
    # OpenAI
    "gpt-4": (30.0, 60.0),
    "gpt-4-32k": (60.0, 120.0),
    "gpt-4-turbo": (10.0, 30.0),
    "gpt-4o": (2.5, 10.0),
    "gpt-4o-mini": (0.15, 0.6),
    "gpt-3.5-turbo": (0.5, 1.5),
    "gpt-3.5-turbo-16k": (3.0, 4.0),
    # Anthropic
    "claude-3-5-haiku-latest": (0.8, 4.0),
    "claude-3-5-sonnet-latest": (3.0, 15.0),
    "claude-sonnet-4-20250514": (3.0, 15.0),
    "claude-opus-4-20250514": (15.0, 75.0),
}


def estimate_cost(model_id: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Estimate cost in USD based on model and token usage.

    Dated snapshots such as ``gpt-4-0613`` are priced as their base model.
    """
    model = model_id
    if model not in MODEL_COSTS:
        model = model_id.rsplit("-", 1)[0]
    if model not in MODEL_COSTS:
        return 0.0

    input_cost, output_cost = MODEL_COSTS[model]
    cost = (prompt_tokens / 1_000_000 * input_cost) + (
        completion_tokens / 1_000_000 * output_cost
    )
    return round(cost, 6)
