"""Environment-based configuration using pydantic-settings.

All values can be overridden with ``SPORTS_PROXY_``-prefixed environment
variables (nested groups use ``__``), or from a ``.env`` file::

    SPORTS_PROXY_MODEL__NAME=gpt-4.1-mini
    SPORTS_PROXY_DISPATCH__BACKEND_TIMEOUT=3
    SPORTS_PROXY_CACHE__TTL_OVERRIDES='{"baseball_stats:game": 10}'

``OPENAI_API_KEY`` and ``OPENAI_MODEL`` are honoured as fallbacks.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, NonNegativeFloat, PositiveFloat, PositiveInt, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ModelSettings(BaseModel):
    name: str = Field(default_factory=lambda: os.environ.get("OPENAI_MODEL", "gpt-4.1-mini"))
    api_key: SecretStr | None = Field(
        default_factory=lambda: SecretStr(os.environ["OPENAI_API_KEY"]) if os.environ.get("OPENAI_API_KEY") else None,
    )
    temperature: float = 0.7
    max_output_tokens: PositiveInt = 1000
    call_timeout: PositiveFloat = Field(default=30.0, description="Seconds allowed for one model call")
    use_mock: bool = Field(default_factory=lambda: os.environ.get("USE_MOCK_LLM") == "1")


class DispatchSettings(BaseModel):
    backend_timeout: PositiveFloat = Field(default=5.0, description="Seconds allowed for one backend call")
    retry_backoff: NonNegativeFloat = Field(default=0.25, description="Fixed delay before the single retry")
    max_tool_rounds: PositiveInt = Field(default=4, description="Dispatch rounds allowed per Turn")
    turn_budget: PositiveFloat = Field(default=60.0, description="Wall-clock seconds allowed per Turn")
    store_timeout: PositiveFloat = Field(
        default=2.0, description="Seconds allowed for one preference or conversation store call"
    )


class CacheSettings(BaseModel):
    max_entries: PositiveInt = 5000
    default_ttl: PositiveFloat = 300.0
    live_ttl: PositiveFloat = 15.0
    instruction_ttl: PositiveFloat = Field(default=300.0, description="Assembled-instruction cache window")
    ttl_overrides: dict[str, float] = Field(default_factory=dict)


class PromptSettings(BaseModel):
    max_instruction_chars: PositiveInt = 12000
    max_preference_chars: PositiveInt = 5000


class ConversationSettings(BaseModel):
    turn_retention: PositiveFloat = Field(
        default=30 * 24 * 3600.0,
        description="How long a recorded turn id remains continuable",
    )


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


class Settings(BaseSettings):
    """Root settings for the sports proxy."""

    model_config = SettingsConfigDict(
        env_prefix="SPORTS_PROXY_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    max_input_chars: PositiveInt = 4000
    trace_dir: str | None = None

    model: ModelSettings = Field(default_factory=ModelSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    prompts: PromptSettings = Field(default_factory=PromptSettings)
    conversation: ConversationSettings = Field(default_factory=ConversationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def setup_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.logging.level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
