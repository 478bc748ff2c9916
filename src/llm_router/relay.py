"""Tool-call relay — resolves a provider's tool calls with one extra round-trip.

When a provider answers with tool calls, each call is run through the
caller's ``ToolExecutor``. Failed calls are logged and dropped. If anything
succeeded, the results go back to the *same* provider, pinned to the model
that asked, as one ``tool`` message; that second answer is final even if it
asks for more tools. If nothing succeeded, the original answer is returned.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Awaitable, Callable, Sequence

import structlog

from llm_router.observability.metrics import TOOL_CALLS_TOTAL
from llm_router.ports import ToolExecutor
from llm_router.types import Message, QueryOptions, QueryResult, ToolCall, ToolCallResult

logger = structlog.get_logger(__name__)

SendFn = Callable[[Sequence[Message], QueryOptions], Awaitable[QueryResult]]


class ToolCallRelay:
    """Runs one tool-call round-trip per provider attempt."""

    def __init__(self, executor: ToolExecutor) -> None:
        self._executor = executor

    @property
    def executor(self) -> ToolExecutor:
        return self._executor

    def prepare_options(self, options: QueryOptions) -> QueryOptions:
        """Default the request's tools to the executor's when none were given."""
        if options.tools:
            return options
        tools = tuple(self._executor.get_available_tools())
        return options.with_tools(tools) if tools else options

    async def execute_all(self, calls: Sequence[ToolCall]) -> list[ToolCallResult]:
        """Execute calls in order, keeping only the ones that succeeded."""
        results: list[ToolCallResult] = []
        for call in calls:
            try:
                result = await self._executor.execute_tool(call)
            except Exception as exc:
                TOOL_CALLS_TOTAL.labels(outcome="failure").inc()
                logger.warning(
                    "tool_execution_failed",
                    tool=call.function_name,
                    call_id=call.id,
                    error=f"{type(exc).__name__}: {exc}",
                )
                continue
            TOOL_CALLS_TOTAL.labels(outcome="success").inc()
            if not result.name:
                result = replace(result, name=call.function_name)
            results.append(result)
        return results

    async def resolve(
        self,
        send: SendFn,
        messages: Sequence[Message],
        options: QueryOptions,
        result: QueryResult,
    ) -> QueryResult:
        if not result.tool_calls:
            return result

        tool_results = await self.execute_all(result.tool_calls)
        if not tool_results:
            logger.info(
                "tool_relay_no_results",
                provider=result.provider,
                requested=len(result.tool_calls),
            )
            return result

        answered = {r.id for r in tool_results}
        calls = [c for c in result.tool_calls if c.id in answered]
        follow_up = [*messages, Message.tool(tool_results, calls)]
        follow_options = options.with_model(result.model) if result.model else options
        logger.debug(
            "tool_relay_follow_up",
            provider=result.provider,
            model=result.model,
            results=len(tool_results),
            requested=len(result.tool_calls),
        )
        return await send(follow_up, follow_options)
