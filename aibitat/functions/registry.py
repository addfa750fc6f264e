"""Function registry for the callables participants may invoke mid-turn.

Functions are registered independently of participants. An agent only sees
the functions whose names it lists, resolved through this registry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Iterable, Optional, Union

from aibitat.errors import RegistrationError
from aibitat.providers.functions import FunctionDefinition

logger = logging.getLogger(__name__)

# Handlers can be sync or async, taking a dict of arguments and returning any result
FunctionHandler = Union[
    Callable[[dict[str, Any]], Any],
    Callable[[dict[str, Any]], Coroutine[Any, Any, Any]],
]


@dataclass
class Function:
    """A registered function with its definition and handler.

    Attributes:
        definition: The function's schema definition for model consumption.
        handler: The callable that runs the function.
        timeout: Maximum execution time in seconds (None = no timeout).
    """

    definition: FunctionDefinition
    handler: FunctionHandler
    timeout: Optional[float] = None

    @property
    def name(self) -> str:
        """Get the function name from its definition."""
        return self.definition.name

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Function":
        """Build a function from ``{name, description, parameters, handler}``.

        Raises:
            RegistrationError: If the name or handler is missing.
        """
        name = data.get("name")
        if not name:
            raise RegistrationError(str(name), "function definitions need a name")
        handler = data.get("handler")
        if not callable(handler):
            raise RegistrationError(name, "function definitions need a callable handler")

        definition = FunctionDefinition(
            name=name,
            description=data.get("description", ""),
        )
        if data.get("parameters") is not None:
            definition.parameters = data["parameters"]
        return cls(definition=definition, handler=handler, timeout=data.get("timeout"))


@dataclass
class FunctionRegistry:
    """Registry of the functions known to one engine.

    Example:
        >>> registry = FunctionRegistry()
        >>> registry.register(create_function(
        ...     name="greet",
        ...     description="Say hello",
        ...     handler=lambda args: f"Hello, {args.get('name', 'World')}!",
        ... ))
        >>> definitions = registry.get_definitions(["greet"])
    """

    _functions: dict[str, Function] = field(default_factory=dict)

    def register(self, function: Function) -> None:
        """Register a function, replacing any previous one with the same name."""
        if function.name in self._functions:
            logger.debug(f"Replacing function: {function.name}")
        self._functions[function.name] = function
        logger.debug(f"Registered function: {function.name}")

    def get(self, name: str) -> Optional[Function]:
        """Get a function by name, or None if it isn't registered."""
        return self._functions.get(name)

    def resolve(self, names: Iterable[str]) -> dict[str, Function]:
        """Look up a participant's declared function names.

        Unknown names are dropped so a dangling reference does not break an
        otherwise working conversation.

        Args:
            names: Function names in declaration order.

        Returns:
            Mapping of name to function for the names that are registered.
        """
        resolved: dict[str, Function] = {}
        for name in names:
            function = self._functions.get(name)
            if function is None:
                logger.debug(f"Dropping unknown function reference: {name}")
                continue
            resolved[name] = function
        return resolved

    def get_definitions(self, names: Iterable[str]) -> list[FunctionDefinition]:
        """Get definitions of the registered functions among ``names``."""
        return [function.definition for function in self.resolve(names).values()]

    def list_functions(self) -> list[str]:
        """List all registered function names."""
        return list(self._functions.keys())

    def __len__(self) -> int:
        return len(self._functions)

    def __contains__(self, name: str) -> bool:
        return name in self._functions


def create_function(
    name: str,
    description: str,
    handler: FunctionHandler,
    parameters: Optional[dict[str, Any]] = None,
    timeout: Optional[float] = None,
) -> Function:
    """Factory function to create a Function with a FunctionDefinition.

    Args:
        name: Function name.
        description: Function description shown to the model.
        handler: Callable that runs the function.
        parameters: JSON Schema for the arguments.
        timeout: Execution timeout in seconds.

    Returns:
        A configured Function instance.
    """
    definition = FunctionDefinition(name=name, description=description)
    if parameters is not None:
        definition.parameters = parameters
    return Function(definition=definition, handler=handler, timeout=timeout)
