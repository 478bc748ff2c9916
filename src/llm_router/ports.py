"""Ports — the interfaces the router consumes.

Backend adapters implement ``Provider``; callers that want tool calls resolved
supply a ``ToolExecutor``. The router depends only on these abstractions,
never on a concrete backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from llm_router.quota import QuotaReservation
from llm_router.types import Message, QueryOptions, QueryResult, ToolCall, ToolCallResult, ToolDefinition


# ═══════════════════════════════════════════════════════════════
#  Provider port
# ═══════════════════════════════════════════════════════════════
class Provider(ABC):
    """A remote text-generation backend.

    ``send`` raises on any failure; the router treats every exception the
    same way ("try the next provider"). Quota checks must be cheap and
    non-blocking.
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def rank(self) -> int:
        """Priority; higher is tried earlier."""

    @abstractmethod
    async def send(
        self, messages: Sequence[Message], options: QueryOptions
    ) -> QueryResult: ...

    @abstractmethod
    def can_serve_daily(self) -> bool: ...

    @abstractmethod
    def can_serve_per_minute(self) -> bool: ...

    @abstractmethod
    def can_serve_tokens(self, estimated: int) -> bool: ...

    @abstractmethod
    def record_usage(self, tokens_used: int) -> None:
        """Account for one successful ``send``."""

    @abstractmethod
    async def close(self) -> None: ...

    # ── Admission ────────────────────────────────────────────
    # The router admits a request through these three calls. The defaults
    # compose the checks above and are not atomic; quota-backed providers
    # override them with a single locked reserve step.
    def try_acquire(self) -> QuotaReservation | None:
        if self.can_serve_daily() and self.can_serve_per_minute():
            return QuotaReservation(self.name)
        return None

    def release(self, reservation: QuotaReservation) -> None:
        return None

    def commit(self, reservation: QuotaReservation, tokens_used: int) -> None:
        self.record_usage(tokens_used)


# ═══════════════════════════════════════════════════════════════
#  Tool executor port
# ═══════════════════════════════════════════════════════════════
class ToolExecutor(ABC):
    """Runs the functions a backend asks for."""

    @abstractmethod
    async def execute_tool(self, call: ToolCall) -> ToolCallResult: ...

    @abstractmethod
    def get_available_tools(self) -> Sequence[ToolDefinition]: ...
