"""OpenAI provider implementation."""

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
from .functions import FunctionDefinition, functions_to_openai
from .types import Completion, FunctionCall, Message, MessageRole, estimate_cost

logger = logging.getLogger(__name__)


class OpenAIProvider(Provider):
    """Provider for OpenAI chat completion models."""

    name = "openai"

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
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")

        # Lazy import
        self._client = None

    def _get_client(self) -> Any:
        """Get or create the OpenAI client."""
        if self._client is None:
            import openai

            # Retries are handled by Provider.complete so they show up in our logs
            self._client = openai.AsyncOpenAI(api_key=self.api_key, max_retries=0)
        return self._client

    def _default_model_id(self) -> str:
        return "gpt-3.5-turbo"

    @property
    def is_available(self) -> bool:
        return self.api_key is not None

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert unified messages to OpenAI format."""
        openai_messages = []

        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                openai_messages.append({"role": "system", "content": msg.content})

            elif msg.role == MessageRole.USER:
                openai_messages.append({"role": "user", "content": msg.content})

            elif msg.role == MessageRole.ASSISTANT:
                message: dict[str, Any] = {
                    "role": "assistant",
                    "content": msg.content or None,
                }

                if msg.function_call:
                    message["tool_calls"] = [
                        {
                            "id": msg.function_call.id,
                            "type": "function",
                            "function": {
                                "name": msg.function_call.name,
                                "arguments": msg.function_call.arguments,
                            },
                        }
                    ]

                openai_messages.append(message)

            elif msg.role == MessageRole.FUNCTION:
                openai_messages.append({
                    "role": "tool",
                    "tool_call_id": msg.call_id,
                    "content": msg.content or "",
                })

        return openai_messages

    def _parse_response(self, response: Any) -> Completion:
        """Parse OpenAI response to unified format."""
        message = response.choices[0].message

        function_call = None
        if message.tool_calls:
            # Only the first call is honoured; the loop asks again afterwards
            tc = message.tool_calls[0]
            function_call = FunctionCall(
                name=tc.function.name,
                arguments=tc.function.arguments or "{}",
                id=tc.id,
            )

        cost = 0.0
        if response.usage:
            cost = estimate_cost(
                self.model_id,
                response.usage.prompt_tokens,
                response.usage.completion_tokens,
            )
            logger.debug(f"{self.model_id} cost: ${cost:.6f}")

        return Completion(
            result=None if function_call else (message.content or ""),
            function_call=function_call,
            cost=cost,
        )

    def _handle_api_error(self, e: Exception) -> None:
        """Convert OpenAI exceptions to our error types."""
        import openai

        message = getattr(e, "message", None) or str(e)

        if isinstance(e, (openai.AuthenticationError, openai.PermissionDeniedError)):
            raise AuthorizationError(message, self.name) from e
        if isinstance(e, openai.RateLimitError):
            raise RateLimitError(message, self.name, retry_after_seconds(e)) from e
        if isinstance(
            e,
            (openai.InternalServerError, openai.APITimeoutError, openai.APIConnectionError),
        ):
            raise ServerError(message, self.name) from e
        if isinstance(e, openai.APIError):
            raise UnknownError(message, self.name) from e

    async def _request(
        self,
        messages: list[Message],
        functions: Optional[list[FunctionDefinition]],
    ) -> Completion:
        """Make one chat.completions call."""
        if not self.is_available:
            raise AuthorizationError("OpenAI API key not configured", self.name)

        client = self._get_client()
        logger.debug(
            f"calling 'chat.completions.create' with model '{self.model_id}' "
            f"({len(messages)} messages)"
        )

        kwargs: dict[str, Any] = {
            "model": self.model_id,
            "messages": self._convert_messages(messages),
            "max_tokens": self.max_tokens,
        }

        if self.temperature is not None:
            kwargs["temperature"] = self.temperature

        if functions:
            kwargs["tools"] = functions_to_openai(functions)

        try:
            response = await client.chat.completions.create(**kwargs)
        except APIError:
            raise
        except Exception as e:
            self._handle_api_error(e)
            raise
        return self._parse_response(response)
