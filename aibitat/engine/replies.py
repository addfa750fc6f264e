"""Reply generation and the function-call loop of a single turn."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Iterable, Optional

from aibitat.errors import FunctionCallLimitError
from aibitat.functions import FunctionExecutor, FunctionRegistry
from aibitat.providers.functions import FunctionDefinition
from aibitat.providers.types import Completion, Message

from .prompts import FUNCTION_NOT_FOUND

if TYPE_CHECKING:
    from aibitat.providers import Provider

logger = logging.getLogger(__name__)

FunctionCompleter = Callable[
    ["Provider", list[Message], Optional[list[FunctionDefinition]]],
    Awaitable[Completion],
]


@dataclass
class Reply:
    """Final text of a turn and how many function calls it took."""

    content: str
    function_calls: int = 0


class FunctionCallLoop:
    """Drives a completion until the model answers with plain text.

    Each function call the model makes is answered with a function-role
    message and the model is asked again. Unknown function names and
    malformed arguments are reported back the same way, so the model can
    correct itself within the turn.
    """

    def __init__(
        self,
        functions: FunctionRegistry,
        executor: Optional[FunctionExecutor] = None,
        max_function_calls: int = 10,
    ):
        """Initialize the loop.

        Args:
            functions: Registry the participant's function names resolve against
            executor: Runs function handlers
            max_function_calls: Function calls allowed in one turn
        """
        self.functions = functions
        self.executor = executor or FunctionExecutor()
        self.max_function_calls = max_function_calls

    async def run(
        self,
        participant: str,
        provider: "Provider",
        messages: list[Message],
        function_names: Iterable[str],
        complete: FunctionCompleter,
    ) -> Reply:
        """Produce the text of one turn.

        Args:
            participant: Name of the speaking participant
            provider: Provider generating the turn
            messages: Prompt; function exchanges are appended to a copy
            function_names: Functions the participant declared
            complete: Coroutine running one provider completion

        Returns:
            The turn's final text

        Raises:
            FunctionCallLimitError: If the model keeps calling functions past the limit
        """
        messages = list(messages)
        offered = self.functions.resolve(function_names)
        definitions = [f.definition for f in offered.values()] or None
        calls = 0

        while True:
            completion = await complete(provider, messages, definitions)
            if not completion.is_function_call:
                return Reply(content=completion.result or "", function_calls=calls)

            calls += 1
            if calls > self.max_function_calls:
                raise FunctionCallLimitError(participant, self.max_function_calls)

            call = completion.function_call
            if call.id is None:
                call.id = f"call_{uuid.uuid4().hex[:24]}"
            messages.append(Message.assistant(None, function_call=call))

            function = offered.get(call.name)
            if function is None:
                logger.debug(f"{participant} called unknown function {call.name!r}")
                messages.append(Message.function(call.name, FUNCTION_NOT_FOUND, call.id))
                continue

            logger.debug(f"{participant} calls {call.name}({call.arguments})")
            result = await self.executor.execute(function, call)
            messages.append(Message.function(call.name, result.content, call.id))
