"""Anthropic provider implementation."""

import json
import logging
import os
from typing import Any, Optional

from aibitat.errors import (
    APIError,
    AuthorizationError,
    RateLimitError,
    ServerError,
    UnknownError,
)

from .base import Provider, retry_after_seconds
from .functions import FunctionDefinition, functions_to_anthropic
from .types import Completion, FunctionCall, Message, MessageRole, estimate_cost

logger = logging.getLogger(__name__)

# Anthropic rejects conversations that do not open with a user turn
CONVERSATION_OPENER = "(conversation start)"


class AnthropicProvider(Provider):
    """Provider for Anthropic's Claude models."""

    name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: Optional[float] = None,
        max_retries: int = 0,
    ):
        super().__init__(api_key, model_id, max_tokens, temperature, max_retries)

        # Get API key from parameter or environment
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")

        # Lazy import to avoid import cost when anthropic is never used
        self._client = None

    def _get_client(self) -> Any:
        """Get or create the Anthropic client."""
        if self._client is None:
            import anthropic

            self._client = anthropic.AsyncAnthropic(api_key=self.api_key, max_retries=0)
        return self._client

    def _default_model_id(self) -> str:
        return "claude-3-5-haiku-latest"

    @property
    def is_available(self) -> bool:
        return self.api_key is not None

    def _convert_messages(
        self, messages: list[Message]
    ) -> tuple[Optional[str], list[dict[str, Any]]]:
        """Convert unified messages to Anthropic format.

        Returns:
            Tuple of (system_prompt, messages_list)
        """
        system_parts: list[str] = []
        anthropic_messages: list[dict[str, Any]] = []

        def append(role: str, blocks: list[dict[str, Any]]) -> None:
            # Consecutive turns of the same role are merged into one
            if anthropic_messages and anthropic_messages[-1]["role"] == role:
                anthropic_messages[-1]["content"].extend(blocks)
            else:
                anthropic_messages.append({"role": role, "content": blocks})

        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                if msg.content:
                    system_parts.append(msg.content)

            elif msg.role == MessageRole.USER:
                append("user", [{"type": "text", "text": msg.content or ""}])

            elif msg.role == MessageRole.ASSISTANT:
                blocks: list[dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                if msg.function_call:
                    try:
                        arguments = json.loads(msg.function_call.arguments)
                    except json.JSONDecodeError:
                        arguments = {}
                    blocks.append({
                        "type": "tool_use",
                        "id": msg.function_call.id,
                        "name": msg.function_call.name,
                        "input": arguments if isinstance(arguments, dict) else {},
                    })
                if blocks:
                    append("assistant", blocks)

            elif msg.role == MessageRole.FUNCTION:
                append("user", [{
                    "type": "tool_result",
                    "tool_use_id": msg.call_id,
                    "content": msg.content or "",
                }])

        if not anthropic_messages or anthropic_messages[0]["role"] != "user":
            anthropic_messages.insert(
                0, {"role": "user", "content": [{"type": "text", "text": CONVERSATION_OPENER}]}
            )

        system = "\n\n".join(system_parts) if system_parts else None
        return system, anthropic_messages

    def _parse_response(self, response: Any) -> Completion:
        """Parse Anthropic response to unified format."""
        content_parts = []
        function_call = None

        for block in response.content:
            if block.type == "text":
                content_parts.append(block.text)
            elif block.type == "tool_use" and function_call is None:
                function_call = FunctionCall(
                    name=block.name,
                    arguments=json.dumps(block.input),
                    id=block.id,
                )

        cost = estimate_cost(
            self.model_id,
            response.usage.input_tokens,
            response.usage.output_tokens,
        )
        logger.debug(f"{self.model_id} cost: ${cost:.6f}")

        return Completion(
            result=None if function_call else "\n".join(content_parts).strip(),
            function_call=function_call,
            cost=cost,
        )

    def _handle_api_error(self, e: Exception) -> None:
        """Convert Anthropic exceptions to our error types."""
        import anthropic

        message = getattr(e, "message", None) or str(e)

        if isinstance(e, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
            raise AuthorizationError(message, self.name) from e
        if isinstance(e, anthropic.RateLimitError):
            raise RateLimitError(message, self.name, retry_after_seconds(e)) from e
        if isinstance(
            e,
            (
                anthropic.InternalServerError,
                anthropic.APITimeoutError,
                anthropic.APIConnectionError,
            ),
        ):
            raise ServerError(message, self.name) from e
        if isinstance(e, anthropic.APIError):
            raise UnknownError(message, self.name) from e

    async def _request(
        self,
        messages: list[Message],
        functions: Optional[list[FunctionDefinition]],
    ) -> Completion:
        """Make one messages.create call."""
        if not self.is_available:
            raise AuthorizationError("Anthropic API key not configured", self.name)

        client = self._get_client()
        system, anthropic_messages = self._convert_messages(messages)
        logger.debug(
            f"calling 'messages.create' with model '{self.model_id}' "
            f"({len(anthropic_messages)} messages)"
        )

        kwargs: dict[str, Any] = {
            "model": self.model_id,
            "max_tokens": self.max_tokens,
            "messages": anthropic_messages,
        }

        if system:
            kwargs["system"] = system

        if self.temperature is not None:
            kwargs["temperature"] = self.temperature

        if functions:
            kwargs["tools"] = functions_to_anthropic(functions)

        try:
            response = await client.messages.create(**kwargs)
        except APIError:
            raise
        except Exception as e:
            self._handle_api_error(e)
            raise
        return self._parse_response(response)
