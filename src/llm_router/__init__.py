"""Rank- and quota-aware request router for interchangeable LLM backends.

Tries providers in rank order, skips the ones out of quota, falls back on
failure, and reports every provider's cause when nothing answers.
"""

from llm_router.exceptions import (
    ConfigError,
    EmptyResponseError,
    LLMRouterError,
    ProviderError,
    ProviderFailure,
    QueryCancelledError,
    QuotaExceededError,
    RouterClosedError,
    RouterError,
    ToolExecutionError,
)
from llm_router.ports import Provider, ToolExecutor
from llm_router.quota import QuotaSnapshot, QuotaTracker
from llm_router.relay import ToolCallRelay
from llm_router.router import Router
from llm_router.types import (
    FileAttachment,
    FileKind,
    Message,
    QueryOptions,
    QueryResult,
    Role,
    ToolCall,
    ToolCallResult,
    ToolChoice,
    ToolDefinition,
)

__all__ = [
    "ConfigError",
    "EmptyResponseError",
    "FileAttachment",
    "FileKind",
    "LLMRouterError",
    "Message",
    "Provider",
    "ProviderError",
    "ProviderFailure",
    "QueryCancelledError",
    "QueryOptions",
    "QueryResult",
    "QuotaExceededError",
    "QuotaSnapshot",
    "QuotaTracker",
    "Role",
    "Router",
    "RouterClosedError",
    "RouterError",
    "ToolCall",
    "ToolCallRelay",
    "ToolCallResult",
    "ToolChoice",
    "ToolDefinition",
    "ToolExecutionError",
    "ToolExecutor",
]
