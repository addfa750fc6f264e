"""Function definitions with provider-specific translations."""

from dataclasses import dataclass, field
from typing import Any


def _empty_schema() -> dict[str, Any]:
    return {"type": "object", "properties": {}}


@dataclass
class FunctionDefinition:
    """Definition of a function that can be offered to models.

    ``parameters`` is a JSON Schema object describing the arguments.
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=_empty_schema)

    def to_openai(self) -> dict[str, Any]:
        """Convert to OpenAI tool format.

        OpenAI format:
        {
            "type": "function",
            "function": {
                "name": "function_name",
                "description": "function description",
                "parameters": {...}
            }
        }
        """
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_anthropic(self) -> dict[str, Any]:
        """Convert to Anthropic tool format.

        Anthropic format:
        {
            "name": "function_name",
            "description": "function description",
            "input_schema": {...}
        }
        """
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


def functions_to_openai(functions: list[FunctionDefinition]) -> list[dict[str, Any]]:
    """Convert a list of functions to OpenAI format."""
    return [function.to_openai() for function in functions]


def functions_to_anthropic(functions: list[FunctionDefinition]) -> list[dict[str, Any]]:
    """Convert a list of functions to Anthropic format."""
    return [function.to_anthropic() for function in functions]
