"""Pytest configuration and fixtures for AIbitat tests."""

import os
import tempfile
from pathlib import Path
from typing import Callable, Generator, Optional, Union

import pytest

from aibitat.config import Settings, reset_settings
from aibitat.providers import Completion, Message, Provider
from aibitat.providers.functions import FunctionDefinition

Reply = Union[str, Completion, Exception]


class ScriptedProvider(Provider):
    """Provider answering from a script instead of a model.

    ``script`` is either a list of replies consumed in order (the last one
    repeats) or a callable receiving the messages. A reply may be a string,
    a ``Completion`` or an exception to raise.
    """

    name = "scripted"

    def __init__(
        self,
        script: Union[list[Reply], Callable[[list[Message]], Reply], None] = None,
        cost: float = 0.0,
    ):
        super().__init__(api_key="test-key", model_id="scripted-model")
        self.script = script if script is not None else ["TERMINATE"]
        self.cost = cost
        self.calls: list[list[Message]] = []
        self.function_sets: list[Optional[list[FunctionDefinition]]] = []

    def _default_model_id(self) -> str:
        return "scripted-model"

    @property
    def is_available(self) -> bool:
        return True

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def _request(
        self,
        messages: list[Message],
        functions: Optional[list[FunctionDefinition]],
    ) -> Completion:
        self.calls.append(list(messages))
        self.function_sets.append(functions)

        if callable(self.script):
            reply = self.script(messages)
        else:
            index = min(len(self.calls) - 1, len(self.script) - 1)
            reply = self.script[index]

        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, Completion):
            return reply
        return Completion(result=reply, cost=self.cost)


@pytest.fixture
def make_provider() -> type[ScriptedProvider]:
    """Factory for scripted providers."""
    return ScriptedProvider


@pytest.fixture
def provider() -> ScriptedProvider:
    """A provider that always answers TERMINATE."""
    return ScriptedProvider()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_config_file(temp_dir: Path) -> Path:
    """Create a temporary config file."""
    config_path = temp_dir / "config.yaml"
    config_path.write_text(
        """
api_keys:
  openai: test-openai-key
  anthropic: test-anthropic-key

provider:
  name: anthropic
  model: claude-3-5-sonnet-latest

engine:
  max_rounds: 20
  interrupt: ALWAYS
  seed: 7

retry:
  delay: 5

history:
  enabled: true
  directory: "{history_dir}"
""".format(history_dir=str(temp_dir / "history").replace("\\", "/"))
    )
    return config_path


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Create test settings with temporary paths."""
    reset_settings()
    return Settings(
        openai_api_key="test-openai-key",
        anthropic_api_key="test-anthropic-key",
        history={"directory": str(temp_dir / "history")},
    )


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Clean environment variables for testing."""
    original = {}
    env_vars = [
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "AIBITAT_OPENAI_API_KEY",
        "AIBITAT_ANTHROPIC_API_KEY",
        "AIBITAT_CONFIG",
        "SERPER_API_KEY",
        "AIBITAT_SERPER_API_KEY",
    ]
    for var in env_vars:
        original[var] = os.environ.pop(var, None)

    reset_settings()

    yield

    for var, value in original.items():
        if value is not None:
            os.environ[var] = value
        elif var in os.environ:
            del os.environ[var]

    reset_settings()
