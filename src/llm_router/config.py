"""LLM Router — configuration."""

from __future__ import annotations

from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def split_csv(value: str) -> list[str]:
    """Parse a comma-separated list, dropping blanks."""
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_ROUTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Logging ──────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = False

    # ── HTTP ─────────────────────────────────────────────────
    http_timeout_seconds: float = 60.0
    user_agent: str = "llm-router/0.1"

    # ── Router ───────────────────────────────────────────────
    # Empty successful answers fall through to the next provider
    empty_response_is_error: bool = True

    # ── Gemini ───────────────────────────────────────────────
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_models: str = "gemini-2.0-flash"
    gemini_max_daily: int = 0  # 0 = unlimited
    gemini_max_per_minute: int = 0
    gemini_max_tokens_per_minute: int = 0
    gemini_rank: int = 3

    # ── OpenRouter ───────────────────────────────────────────
    openrouter_api_key: str = ""
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"
    openrouter_models: str = "openai/gpt-4o-mini"
    openrouter_max_daily: int = 0
    openrouter_max_per_minute: int = 0
    openrouter_max_tokens_per_minute: int = 0
    openrouter_rank: int = 1
    openrouter_referer: str = ""
    openrouter_x_title: str = ""

    # ── Function-calling (OpenAI-compatible) ─────────────────
    function_calling_api_key: str = ""
    function_calling_url: str = "https://api.openai.com/v1/chat/completions"
    function_calling_models: str = "gpt-4o-mini"
    function_calling_max_daily: int = 0
    function_calling_max_per_minute: int = 0
    function_calling_max_tokens_per_minute: int = 0
    function_calling_rank: int = 2

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator(
        "gemini_max_daily",
        "gemini_max_per_minute",
        "gemini_max_tokens_per_minute",
        "openrouter_max_daily",
        "openrouter_max_per_minute",
        "openrouter_max_tokens_per_minute",
        "function_calling_max_daily",
        "function_calling_max_per_minute",
        "function_calling_max_tokens_per_minute",
    )
    @classmethod
    def _non_negative_limit(cls, v: int) -> int:
        if v < 0:
            raise ValueError("quota limits must be >= 0 (0 = unlimited)")
        return v

    @field_validator("http_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be positive")
        return v


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)
