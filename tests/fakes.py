"""In-memory providers, executors and clocks used across the unit tests."""

from __future__ import annotations

import asyncio
from typing import Any, Sequence

from llm_router.adapters.base import QuotaBackedProvider
from llm_router.ports import ToolExecutor
from llm_router.types import (
    Message,
    QueryOptions,
    QueryResult,
    ToolCall,
    ToolCallResult,
    ToolDefinition,
)

# 2023-11-15 01:00:00 UTC: one hour past a day boundary, on a minute boundary
T0 = 1_700_006_400.0 + 3600.0


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = T0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(QuotaBackedProvider):
    """In-memory provider with scripted outcomes.

    ``responses`` is consumed in order (a ``QueryResult`` is returned, an
    exception is raised); once empty, ``error`` is raised if set, otherwise a
    default ``ok:<name>`` answer is returned.
    """

    def __init__(
        self,
        name: str,
        *,
        rank: int = 0,
        responses: Sequence[QueryResult | BaseException] = (),
        error: BaseException | None = None,
        delay: float = 0.0,
        call_log: list[str] | None = None,
        close_error: BaseException | None = None,
        **quota: Any,
    ) -> None:
        super().__init__(name=name, rank=rank, **quota)
        self.responses = list(responses)
        self.error = error
        self.delay = delay
        self.call_log = call_log
        self.close_error = close_error
        self.calls: list[tuple[tuple[Message, ...], QueryOptions]] = []
        self.close_count = 0

    async def send(self, messages: Sequence[Message], options: QueryOptions) -> QueryResult:
        self.calls.append((tuple(messages), options))
        if self.call_log is not None:
            self.call_log.append(self.name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.responses:
            outcome = self.responses.pop(0)
        elif self.error is not None:
            outcome = self.error
        else:
            outcome = QueryResult(content=f"ok:{self.name}", model=f"{self.name}-model")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.close_count += 1
        if self.close_error is not None:
            raise self.close_error


class FakeToolExecutor(ToolExecutor):
    """Executor whose outcome per tool name is scripted."""

    def __init__(
        self,
        outcomes: dict[str, Any] | None = None,
        tools: Sequence[ToolDefinition] = (),
    ) -> None:
        self.outcomes = outcomes or {}
        self.tools = tuple(tools)
        self.executed: list[ToolCall] = []

    async def execute_tool(self, call: ToolCall) -> ToolCallResult:
        self.executed.append(call)
        outcome = self.outcomes.get(call.function_name)
        if isinstance(outcome, BaseException):
            raise outcome
        return ToolCallResult(id=call.id, content=outcome)

    def get_available_tools(self) -> Sequence[ToolDefinition]:
        return self.tools


