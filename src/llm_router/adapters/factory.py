"""Build backend adapters and routers from ``Settings``."""

from __future__ import annotations

import structlog

from llm_router.adapters.gemini import GeminiProvider
from llm_router.adapters.openai_compat import OpenAICompatibleProvider, OpenRouterProvider
from llm_router.config import Settings, get_settings, split_csv
from llm_router.exceptions import ConfigError
from llm_router.observability import configure_logging
from llm_router.ports import Provider, ToolExecutor
from llm_router.router import Router

logger = structlog.get_logger(__name__)


def build_providers(settings: Settings) -> list[Provider]:
    """Create one adapter per backend whose API key is set."""
    providers: list[Provider] = []

    if settings.gemini_api_key:
        providers.append(GeminiProvider(
            api_key=settings.gemini_api_key,
            models=split_csv(settings.gemini_models),
            base_url=settings.gemini_base_url,
            rank=settings.gemini_rank,
            max_daily=settings.gemini_max_daily,
            max_per_minute=settings.gemini_max_per_minute,
            max_tokens_per_minute=settings.gemini_max_tokens_per_minute,
            timeout=settings.http_timeout_seconds,
            user_agent=settings.user_agent,
        ))

    if settings.openrouter_api_key:
        providers.append(OpenRouterProvider(
            api_key=settings.openrouter_api_key,
            models=split_csv(settings.openrouter_models),
            url=settings.openrouter_url,
            referer=settings.openrouter_referer,
            x_title=settings.openrouter_x_title,
            rank=settings.openrouter_rank,
            max_daily=settings.openrouter_max_daily,
            max_per_minute=settings.openrouter_max_per_minute,
            max_tokens_per_minute=settings.openrouter_max_tokens_per_minute,
            timeout=settings.http_timeout_seconds,
            user_agent=settings.user_agent,
        ))

    if settings.function_calling_api_key:
        providers.append(OpenAICompatibleProvider(
            api_key=settings.function_calling_api_key,
            url=settings.function_calling_url,
            models=split_csv(settings.function_calling_models),
            rank=settings.function_calling_rank,
            max_daily=settings.function_calling_max_daily,
            max_per_minute=settings.function_calling_max_per_minute,
            max_tokens_per_minute=settings.function_calling_max_tokens_per_minute,
            timeout=settings.http_timeout_seconds,
            user_agent=settings.user_agent,
        ))

    logger.info("providers_built", providers=[p.name for p in providers])
    return providers


def build_router(
    settings: Settings, *, tool_executor: ToolExecutor | None = None
) -> Router:
    """Router over every configured backend."""
    providers = build_providers(settings)
    if not providers:
        raise ConfigError(
            "no providers configured: set at least one of LLM_ROUTER_GEMINI_API_KEY, "
            "LLM_ROUTER_OPENROUTER_API_KEY, LLM_ROUTER_FUNCTION_CALLING_API_KEY"
        )
    return Router(
        providers,
        tool_executor=tool_executor,
        empty_response_is_error=settings.empty_response_is_error,
    )


def create_router(
    settings: Settings | None = None, *, tool_executor: ToolExecutor | None = None
) -> Router:
    """Application entry-point: configure logging from settings, then build the router."""
    settings = settings or get_settings()
    configure_logging(log_level=settings.log_level, json_logs=settings.log_json)
    logger.info("router_starting", log_level=settings.log_level, json_logs=settings.log_json)
    return build_router(settings, tool_executor=tool_executor)
