"""Tests for the exception hierarchy."""

from aibitat.errors import (
    AIbitatError,
    APIError,
    AuthorizationError,
    FunctionCallLimitError,
    InvalidConfigError,
    MaximumRoundsError,
    RateLimitError,
    ServerError,
    UnknownError,
)


class TestErrors:
    """Tests for AIbitat errors."""

    def test_str_includes_code(self) -> None:
        """Test the string form."""
        assert str(AIbitatError("plain")) == "plain"
        assert str(ServerError("down", "openai")) == "[SERVER_ERROR] down"

    def test_message_is_kept_verbatim(self) -> None:
        """Test that record content can use the message as-is."""
        error = RateLimitError("401: Rate limit", "openai", retry_after=3)

        assert error.message == "401: Rate limit"
        assert error.provider == "openai"
        assert error.details == {"retry_after_seconds": 3, "provider": "openai"}

    def test_retryable(self) -> None:
        """Test which provider errors are worth retrying."""
        assert RateLimitError("x").retryable
        assert ServerError("x").retryable
        assert not AuthorizationError("x").retryable
        assert not UnknownError("x").retryable
        assert not FunctionCallLimitError("bot", 3).retryable

    def test_function_call_limit_is_an_api_error(self) -> None:
        """Test that exceeding the call limit is recorded like a provider error."""
        error = FunctionCallLimitError("bot", 3)

        assert isinstance(error, APIError)
        assert error.details == {"participant": "bot", "limit": 3}

    def test_to_dict(self) -> None:
        """Test serialization for logging."""
        data = MaximumRoundsError("a", "b").to_dict()

        assert data == {
            "error_type": "MaximumRoundsError",
            "message": "Maximum rounds reached",
            "code": "MAXIMUM_ROUNDS",
            "details": {"from": "a", "to": "b"},
        }

    def test_invalid_config_truncates_value(self) -> None:
        """Test that long values are shortened in details."""
        error = InvalidConfigError("scenario", "x" * 500, "bad")

        assert len(error.details["value"]) == 100
        assert error.message == "Invalid configuration for 'scenario': bad"
