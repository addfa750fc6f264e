"""Centralized exception hierarchy for AIbitat.

This module defines all custom exceptions used throughout AIbitat,
organized in a hierarchy for easy handling and specificity.

The dispatch engine only ever catches the ``APIError`` family. Everything
else raised while a conversation is running propagates to the caller.
"""

from __future__ import annotations

from typing import Any, Optional


class AIbitatError(Exception):
    """Base exception for all AIbitat errors.

    Attributes:
        message: Human-readable error message.
        code: Optional error code for programmatic handling.
        details: Optional dictionary with additional error context.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(AIbitatError):
    """Raised when there's a configuration problem."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when configuration values are invalid."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for '{field}': {reason}",
            code="INVALID_CONFIG",
            details={"field": field, "value": str(value)[:100], "reason": reason},
        )


# =============================================================================
# Provider (API) Errors
# =============================================================================

class APIError(AIbitatError):
    """Base exception for classified provider failures.

    The dispatch engine turns these into ``error`` chat records instead of
    letting them escape. ``message`` is kept verbatim since it becomes the
    record content.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        code: Optional[str] = "API_ERROR",
        details: Optional[dict[str, Any]] = None,
    ):
        details = details or {}
        if provider:
            details["provider"] = provider
        self.provider = provider
        super().__init__(message, code, details)


class AuthorizationError(APIError):
    """Raised when credentials are invalid or forbidden."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message, provider, "AUTHORIZATION_ERROR")


class RateLimitError(APIError):
    """Raised when the provider throttles requests."""

    retryable = True

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        details = {}
        if retry_after:
            details["retry_after_seconds"] = retry_after
        super().__init__(message, provider, "RATE_LIMIT", details)
        self.retry_after = retry_after


class ServerError(APIError):
    """Raised on provider-side failures, including timeouts."""

    retryable = True

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message, provider, "SERVER_ERROR")


class UnknownError(APIError):
    """Raised for provider errors that fit no other category."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message, provider, "UNKNOWN_API_ERROR")


class FunctionCallLimitError(APIError):
    """Raised when a single turn nests too many function calls."""

    def __init__(self, participant: str, limit: int):
        super().__init__(
            message=f"{participant} exceeded the limit of {limit} function calls in one turn",
            code="FUNCTION_CALL_LIMIT",
            details={"participant": participant, "limit": limit},
        )


# =============================================================================
# Conversation Errors
# =============================================================================

class ConversationError(AIbitatError):
    """Base exception for conversation-related errors."""
    pass


class UnknownParticipantError(ConversationError):
    """Raised when a route names an agent or channel that was never registered."""

    def __init__(self, name: str):
        super().__init__(
            message=f"Participant '{name}' is not registered",
            code="UNKNOWN_PARTICIPANT",
            details={"name": name},
        )


class RegistrationError(ConversationError):
    """Raised when an agent, channel or function cannot be registered."""

    def __init__(self, name: str, reason: str):
        super().__init__(
            message=f"Cannot register '{name}': {reason}",
            code="REGISTRATION_ERROR",
            details={"name": name, "reason": reason},
        )


class ConversationStateError(ConversationError):
    """Raised when the ledger tail does not allow the requested operation."""

    def __init__(self, message: str, expected_state: Optional[str] = None):
        details = {}
        if expected_state:
            details["expected_state"] = expected_state
        super().__init__(message, "CONVERSATION_STATE", details)


class MaximumRoundsError(ConversationError):
    """Raised when resuming a route whose round budget is exhausted."""

    def __init__(self, sender: str, recipient: str):
        super().__init__(
            message="Maximum rounds reached",
            code="MAXIMUM_ROUNDS",
            details={"from": sender, "to": recipient},
        )


# =============================================================================
# Function Errors
# =============================================================================

class FunctionError(AIbitatError):
    """Base exception for callable-function errors."""

    def __init__(
        self,
        message: str,
        function_name: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = details or {}
        if function_name:
            details["function_name"] = function_name
        self.function_name = function_name
        super().__init__(message, code, details)


class FunctionArgumentsError(FunctionError):
    """Raised when function-call arguments cannot be parsed."""

    def __init__(self, function_name: str, reason: str):
        super().__init__(
            message=f"Invalid arguments for function '{function_name}': {reason}",
            function_name=function_name,
            code="FUNCTION_ARGUMENTS",
            details={"reason": reason},
        )


class FunctionExecutionError(FunctionError):
    """Raised when a function handler fails."""

    def __init__(
        self,
        function_name: str,
        reason: str,
        original_error: Optional[Exception] = None,
    ):
        details = {"reason": reason}
        if original_error:
            details["original_error"] = str(original_error)
            details["original_type"] = type(original_error).__name__
        super().__init__(
            message=f"Function '{function_name}' failed: {reason}",
            function_name=function_name,
            code="FUNCTION_EXECUTION_ERROR",
            details=details,
        )


class FunctionTimeoutError(FunctionError):
    """Raised when a function handler times out."""

    def __init__(self, function_name: str, timeout: float):
        super().__init__(
            message=f"Function '{function_name}' timed out after {timeout}s",
            function_name=function_name,
            code="FUNCTION_TIMEOUT",
            details={"timeout_seconds": timeout},
        )
