"""Functions that participants can call during a turn."""

from .executor import FunctionExecutor, FunctionResult, format_result, parse_arguments
from .registry import Function, FunctionHandler, FunctionRegistry, create_function

__all__ = [
    "Function",
    "FunctionExecutor",
    "FunctionHandler",
    "FunctionRegistry",
    "FunctionResult",
    "create_function",
    "format_result",
    "parse_arguments",
]
