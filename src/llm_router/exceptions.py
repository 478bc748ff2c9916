"""Router exception hierarchy.

All exceptions inherit from ``LLMRouterError`` so callers can catch the entire
family in one clause while still discriminating on subclass.
"""

from __future__ import annotations

from dataclasses import dataclass


class LLMRouterError(Exception):
    """Base class for all router errors."""

    def __init__(self, message: str, *, code: str = "LLM_ROUTER_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Construction ─────────────────────────────────────────────
class ConfigError(LLMRouterError):
    """Router or provider configured with unusable values."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFIG_ERROR")


class RouterClosedError(LLMRouterError):
    def __init__(self) -> None:
        super().__init__("Router has been closed", code="ROUTER_CLOSED")


# ── Per-provider causes ──────────────────────────────────────
class QuotaExceededError(LLMRouterError):
    """Synthetic cause recorded when a provider is skipped for quota."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__("no remaining requests", code="QUOTA_EXCEEDED")


class ProviderError(LLMRouterError):
    """A backend call failed (transport, HTTP status, or response shape)."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        status_code: int | None = None,
        code: str = "PROVIDER_ERROR",
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"[{provider}] {message}", code=code)


class EmptyResponseError(ProviderError):
    def __init__(self, provider: str, model: str) -> None:
        self.model = model
        super().__init__(
            provider,
            f"model {model!r} returned an empty response",
            code="EMPTY_RESPONSE",
        )


class ToolExecutionError(LLMRouterError):
    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"{tool_name}: {message}", code="TOOL_EXECUTION_ERROR")


# ── Aggregated ───────────────────────────────────────────────
@dataclass(frozen=True)
class ProviderFailure:
    """Why one provider did not answer a query."""

    provider_name: str
    cause: BaseException

    def __str__(self) -> str:
        return f"{self.provider_name}: {type(self.cause).__name__}: {self.cause}"


def _summarise(failures: tuple[ProviderFailure, ...]) -> str:
    if not failures:
        return "no provider attempted"
    return "\n".join(f"  - {failure}" for failure in failures)


class RouterError(LLMRouterError):
    """Raised when every provider was either skipped or failed.

    ``failures`` holds one ``ProviderFailure`` per provider, in the order the
    router tried them.
    """

    def __init__(
        self,
        failures: tuple[ProviderFailure, ...] | list[ProviderFailure],
        *,
        message: str = "all providers failed",
        code: str = "ALL_PROVIDERS_FAILED",
    ) -> None:
        self.failures = tuple(failures)
        super().__init__(f"{message}:\n{_summarise(self.failures)}", code=code)

    @property
    def provider_names(self) -> list[str]:
        return [f.provider_name for f in self.failures]

    @property
    def causes(self) -> list[BaseException]:
        return [f.cause for f in self.failures]


class QueryCancelledError(RouterError):
    """The query deadline expired before any provider answered."""

    def __init__(self, failures: tuple[ProviderFailure, ...] | list[ProviderFailure]) -> None:
        super().__init__(failures, message="query cancelled", code="QUERY_CANCELLED")
