"""Function executor for running participant function calls.

The executor parses the model's raw arguments, runs the handler with an
optional timeout and turns the outcome into text the model can read. Failures
are reported back to the model instead of being raised, so it can correct
itself within the same turn.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from aibitat.errors import (
    FunctionArgumentsError,
    FunctionError,
    FunctionExecutionError,
    FunctionTimeoutError,
)
from aibitat.providers.types import FunctionCall

from .registry import Function, FunctionHandler

logger = logging.getLogger(__name__)


@dataclass
class FunctionResult:
    """Result of one function call.

    Attributes:
        name: Name of the function that was called.
        call_id: ID of the function call, when the provider assigned one.
        success: Whether the handler ran and returned.
        content: Handler output or error text, as sent back to the model.
    """

    name: str
    call_id: Optional[str]
    success: bool
    content: str


def parse_arguments(function_name: str, raw: Optional[str]) -> dict[str, Any]:
    """Parse the JSON arguments a model produced for a function call.

    Args:
        function_name: Name of the called function, for error context.
        raw: Raw JSON text. Empty text means no arguments.

    Returns:
        The arguments as a dict.

    Raises:
        FunctionArgumentsError: If the text is not a JSON object.
    """
    if raw is None or not raw.strip():
        return {}
    try:
        arguments = json.loads(raw)
    except json.JSONDecodeError as e:
        raise FunctionArgumentsError(function_name, f"not valid JSON ({e.msg})") from e
    if not isinstance(arguments, dict):
        raise FunctionArgumentsError(
            function_name, f"expected a JSON object, got {type(arguments).__name__}"
        )
    return arguments


def format_result(result: Any) -> str:
    """Format a handler's return value for model consumption."""
    if result is None:
        return "Success (no output)"

    if isinstance(result, str):
        return result

    if isinstance(result, (list, dict)):
        try:
            return json.dumps(result, indent=2, default=str)
        except (TypeError, ValueError):
            return str(result)

    return str(result)


@dataclass
class FunctionExecutor:
    """Runs function calls against registered functions.

    Example:
        >>> executor = FunctionExecutor()
        >>> result = await executor.execute(function, call)
        >>> print(result.content)
    """

    default_timeout: Optional[float] = None

    async def execute(self, function: Function, call: FunctionCall) -> FunctionResult:
        """Execute one function call.

        Args:
            function: The resolved function to run.
            call: The call requested by the model.

        Returns:
            FunctionResult whose content is the output or an error message.
        """
        try:
            arguments = parse_arguments(function.name, call.arguments)
            timeout = function.timeout or self.default_timeout
            result = await self._run_handler(function, arguments, timeout)
        except FunctionError as e:
            logger.warning(f"Function call failed: {e}")
            return FunctionResult(
                name=function.name,
                call_id=call.id,
                success=False,
                content=f"Error: {e.message}",
            )

        logger.debug(f"Function executed successfully: {function.name}")
        return FunctionResult(
            name=function.name,
            call_id=call.id,
            success=True,
            content=format_result(result),
        )

    async def _run_handler(
        self,
        function: Function,
        arguments: dict[str, Any],
        timeout: Optional[float],
    ) -> Any:
        """Run a sync or async handler, bounded by ``timeout`` when set.

        Raises:
            FunctionTimeoutError: If the handler exceeds the timeout.
            FunctionExecutionError: If the handler raises.
        """
        try:
            call = _call_handler(function.handler, arguments)
            if timeout:
                return await asyncio.wait_for(call, timeout=timeout)
            return await call
        except asyncio.TimeoutError as e:
            raise FunctionTimeoutError(function.name, timeout or 0.0) from e
        except Exception as e:
            raise FunctionExecutionError(
                function.name, f"{type(e).__name__}: {e}", original_error=e
            ) from e


async def _call_handler(handler: FunctionHandler, arguments: dict[str, Any]) -> Any:
    """Call a handler, awaiting whatever awaitable it hands back.

    Coroutine functions run on the event loop. Other callables run in the
    default thread pool, and may still return an awaitable (a lambda or
    ``functools.partial`` wrapping a coroutine, an object with an async
    ``__call__``), which is then awaited here.
    """
    if inspect.iscoroutinefunction(handler):
        result = handler(arguments)
    else:
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, handler, arguments)

    if inspect.isawaitable(result):
        result = await result
    return result
