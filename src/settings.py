"""
Central application configuration using pydantic-settings.

This module provides typed access to environment-based configuration for:
- LLM providers backing the move suggestion service (Anthropic, OpenAI-compatible endpoints)
- The session server (clock pacing, bot pacing, logging, event log)
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMProvider(str, Enum):
    """Supported LLM backends."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    OLLAMA = "ollama"
    VLLM = "vllm"
    CUSTOM = "custom"


class LLMSettings(BaseSettings):
    """
    Configuration for the move suggestion service.

    Environment variables (prefix: LLM_):
        LLM_PROVIDER       - anthropic | openai | ollama | vllm | custom (default: anthropic)
        LLM_BASE_URL       - Base URL for the provider API
        LLM_MODEL          - Model name or identifier
        LLM_API_KEY        - Credential; without it bots only use the local heuristic
        LLM_TIMEOUT_SECONDS- Request timeout in seconds (default: 10)
        LLM_MAX_TOKENS     - Max response tokens (default: 100)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="LLM_",
    )

    provider: LLMProvider = Field(
        default=LLMProvider.ANTHROPIC,
        description="LLM backend to use (anthropic | openai | ollama | vllm | custom).",
    )
    base_url: Optional[str] = Field(
        default=None,
        validate_default=True,
        description="Base URL for the provider API, e.g. https://api.anthropic.com/v1.",
    )
    model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model name or identifier.",
    )
    api_key: Optional[SecretStr] = Field(
        default=None,
        description="API key enabling the suggestion service.",
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="HTTP request timeout in seconds.",
    )
    max_tokens: int = Field(
        default=100,
        gt=0,
        description="Maximum number of tokens to generate.",
    )

    @field_validator("base_url", mode="before")
    @classmethod
    def default_base_url(cls, value: Optional[str], info):
        """
        Provide sensible defaults for base_url depending on the provider.

        - anthropic -> https://api.anthropic.com/v1
        - openai    -> https://api.openai.com/v1
        - ollama    -> http://localhost:11434/v1
        - vllm      -> http://localhost:8000/v1
        - custom    -> must be provided explicitly
        """
        if value:
            return value

        provider = info.data.get("provider", LLMProvider.ANTHROPIC)
        if isinstance(provider, str):
            try:
                provider = LLMProvider(provider)
            except ValueError:
                provider = LLMProvider.ANTHROPIC

        defaults = {
            LLMProvider.ANTHROPIC: "https://api.anthropic.com/v1",
            LLMProvider.OPENAI: "https://api.openai.com/v1",
            LLMProvider.OLLAMA: "http://localhost:11434/v1",
            LLMProvider.VLLM: "http://localhost:8000/v1",
        }
        return defaults.get(provider, value)

    @property
    def enabled(self) -> bool:
        return self.api_key is not None and bool(self.api_key.get_secret_value())


class ServerSettings(BaseSettings):
    """
    Configuration for the session server.

    Environment variables (prefix: CHESS_):
        CHESS_HOST               - Bind host (default: 0.0.0.0)
        CHESS_PORT               - Bind port (default: 3000)
        CHESS_LOG_LEVEL          - Root log level (default: INFO)
        CHESS_CLOCK_TICK_SECONDS - Seconds between clock ticks (default: 1.0)
        CHESS_HEARTBEAT_SECONDS  - Seconds between WebSocket heartbeats (default: 5.0)
        CHESS_BOT_DELAY_SCALE    - Multiplier on the bot thinking delay (default: 1.0)
        CHESS_EVENT_LOG_PATH     - Optional JSONL file receiving room events
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="CHESS_",
    )

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)
    log_level: str = Field(default="INFO")
    clock_tick_seconds: float = Field(default=1.0, gt=0)
    heartbeat_seconds: float = Field(default=5.0, gt=0)
    bot_delay_scale: float = Field(default=1.0, ge=0)
    event_log_path: Optional[str] = Field(default=None)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Optional[str]) -> str:
        return (value or "INFO").upper()


@lru_cache
def get_llm_settings() -> LLMSettings:
    """Return cached LLM settings instance."""
    return LLMSettings()


@lru_cache
def get_server_settings() -> ServerSettings:
    """Return cached server settings instance."""
    return ServerSettings()
