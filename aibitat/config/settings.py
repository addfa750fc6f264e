"""Configuration settings models using Pydantic."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

InterruptSetting = Literal["NEVER", "ALWAYS"]


class ProviderConfig(BaseModel):
    """Configuration for a provider used by the engine."""

    name: Literal["openai", "anthropic"] = "openai"
    model: Optional[str] = None
    max_tokens: int = Field(default=1024, ge=1, le=200000)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_retries: int = Field(default=2, ge=0, le=10)

    @field_validator("model")
    @classmethod
    def validate_model(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v


class EngineConfig(BaseModel):
    """Configuration for the dispatch engine."""

    max_rounds: int = Field(default=100, ge=1)
    interrupt: Optional[InterruptSetting] = None
    max_function_calls: int = Field(default=10, ge=1)
    provider_timeout: Optional[float] = Field(default=None, gt=0)
    seed: Optional[int] = None


class RetryConfig(BaseModel):
    """Configuration for automatic retries after provider errors."""

    enabled: bool = True
    delay: float = Field(default=60.0, ge=0.0)
    max_attempts: int = Field(default=3, ge=1)


class HistoryConfig(BaseModel):
    """Configuration for writing chat history files."""

    enabled: bool = False
    directory: str = "~/.aibitat/history"

    @property
    def resolved_directory(self) -> Path:
        """Get the resolved history directory with ~ expanded."""
        return Path(self.directory).expanduser()


class TerminalConfig(BaseModel):
    """Configuration for the terminal plugin."""

    simulate_stream: bool = True


class BrowsingConfig(BaseModel):
    """Configuration for the web-browsing plugin."""

    timeout: float = Field(default=20.0, gt=0)
    max_results: int = Field(default=5, ge=1, le=20)
    # Pages longer than this are summarized before the model sees them
    max_length: int = Field(default=8000, ge=500)
    chunk_size: int = Field(default=10000, ge=1000)
    chunk_overlap: int = Field(default=500, ge=0)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="AIBITAT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # API Keys - AliasChoices allows reading from either the field name or PROVIDER_API_KEY
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("openai_api_key", "OPENAI_API_KEY"),
    )
    anthropic_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("anthropic_api_key", "ANTHROPIC_API_KEY"),
    )
    serper_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("serper_api_key", "SERPER_API_KEY"),
    )

    # Nested configurations
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    # Speaker selection defaults to a more capable model
    selector: ProviderConfig = Field(
        default_factory=lambda: ProviderConfig(name="openai", model="gpt-4")
    )
    engine: EngineConfig = Field(default_factory=EngineConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    terminal: TerminalConfig = Field(default_factory=TerminalConfig)
    browsing: BrowsingConfig = Field(default_factory=BrowsingConfig)

    @field_validator("openai_api_key", "anthropic_api_key", "serper_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Validate API keys are not empty strings."""
        if v is not None and not v.strip():
            return None
        return v

    def get_api_key(self, provider: str) -> Optional[str]:
        """Get the API key configured for a provider or service name."""
        key_map = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "serper": self.serper_api_key,
        }
        return key_map.get(provider)

    def has_api_key(self, provider: str) -> bool:
        """Check if an API key exists for the given provider."""
        return self.get_api_key(provider) is not None
