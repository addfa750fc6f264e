"""Scenario files describing a conversation to run from the command line.

A scenario lists the agents, the channels grouping them, the plugins providing
functions and the message that starts the chat:

    plugins: [web-browsing]
    agents:
      client:
        interrupt: ALWAYS
        role: You are a human assistant.
      writer:
        role: You write blog posts.
        functions: [web-browsing]
    channels:
      team:
        members: [writer, client]
    start:
      from: client
      to: team
      content: Write a blog post about bees
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from aibitat.errors import InvalidConfigError

from .settings import InterruptSetting

PluginName = Literal["web-browsing"]

# Functions each scenario plugin registers
PLUGIN_FUNCTIONS: dict[str, tuple[str, ...]] = {
    "web-browsing": ("web-browsing",),
}


class AgentSpec(BaseModel):
    """One agent entry of a scenario."""

    role: Optional[str] = None
    kind: Literal["agent", "assistant"] = "agent"
    interrupt: Optional[InterruptSetting] = None
    functions: list[str] = Field(default_factory=list)
    provider: Optional[Literal["openai", "anthropic"]] = None
    model: Optional[str] = None


class ChannelSpec(BaseModel):
    """One channel entry of a scenario."""

    members: list[str] = Field(min_length=1)
    max_rounds: int = Field(default=10, ge=1)
    role: Optional[str] = None
    provider: Optional[Literal["openai", "anthropic"]] = None
    model: Optional[str] = None


class StartSpec(BaseModel):
    """The seed message of a scenario."""

    model_config = ConfigDict(populate_by_name=True)

    sender: str = Field(alias="from")
    recipient: str = Field(alias="to")
    content: str = Field(min_length=1)


class ScenarioConfig(BaseModel):
    """A complete conversation setup."""

    agents: dict[str, AgentSpec] = Field(min_length=1)
    channels: dict[str, ChannelSpec] = Field(default_factory=dict)
    start: StartSpec
    max_rounds: Optional[int] = Field(default=None, ge=1)
    interrupt: Optional[InterruptSetting] = None
    plugins: list[PluginName] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_references(self) -> "ScenarioConfig":
        clashes = set(self.agents) & set(self.channels)
        if clashes:
            raise ValueError(f"names used by both agents and channels: {sorted(clashes)}")

        for name, channel in self.channels.items():
            unknown = [m for m in channel.members if m not in self.agents]
            if unknown:
                raise ValueError(f"channel '{name}' has unknown members: {unknown}")

        known = set(self.agents) | set(self.channels)
        for endpoint in (self.start.sender, self.start.recipient):
            if endpoint not in known:
                raise ValueError(f"start message references unknown participant '{endpoint}'")

        provided = {name for plugin in self.plugins for name in PLUGIN_FUNCTIONS[plugin]}
        for name, agent in self.agents.items():
            missing = [f for f in agent.functions if f not in provided]
            if missing:
                raise ValueError(
                    f"agent '{name}' lists functions no plugin provides: {missing}; "
                    f"enable one of {sorted(PLUGIN_FUNCTIONS)} under 'plugins'"
                )
        return self


def load_scenario(path: Path, plugins: Iterable[str] = ()) -> ScenarioConfig:
    """Load and validate a YAML scenario file.

    Args:
        path: Path to the YAML file.
        plugins: Plugins to enable on top of those the file lists.

    Returns:
        Validated ScenarioConfig.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        InvalidConfigError: If the YAML is malformed or fails validation.
    """
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise InvalidConfigError("scenario", path, f"invalid YAML: {e}") from e

    raw = raw or {}
    plugins = list(plugins)
    if plugins and isinstance(raw, dict):
        raw["plugins"] = list(dict.fromkeys([*(raw.get("plugins") or []), *plugins]))

    try:
        return ScenarioConfig.model_validate(raw)
    except ValidationError as e:
        raise InvalidConfigError("scenario", path, str(e)) from e
