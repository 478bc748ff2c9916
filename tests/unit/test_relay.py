"""Tests for the tool-call relay, standalone and wired into the Router."""

from __future__ import annotations

from typing import Callable
from unittest.mock import AsyncMock

import pytest

from fakes import FakeProvider, FakeToolExecutor
from llm_router.exceptions import QuotaExceededError, RouterError, ToolExecutionError
from llm_router.relay import ToolCallRelay
from llm_router.router import Router
from llm_router.types import (
    Message,
    QueryOptions,
    QueryResult,
    Role,
    ToolCall,
    ToolCallResult,
    ToolDefinition,
)

MakeProvider = Callable[..., FakeProvider]

WEATHER = ToolDefinition(name="get_weather", description="Weather for a city")


def _tool_request(*calls: ToolCall, model: str = "m-1") -> QueryResult:
    return QueryResult(content="", model=model, tool_calls=calls, finish_reason="tool_calls")


# ═══════════════════════════════════════════════════════════════
#  Relay in isolation
# ═══════════════════════════════════════════════════════════════
class TestToolCallRelay:
    @pytest.mark.asyncio
    async def test_no_tool_calls_returns_result_unchanged(self) -> None:
        relay = ToolCallRelay(FakeToolExecutor())
        send = AsyncMock()
        result = QueryResult(content="plain", model="m")

        out = await relay.resolve(send, [Message.user("hi")], QueryOptions(), result)
        assert out is result
        send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_follow_up_carries_results_and_pins_model(self) -> None:
        executor = FakeToolExecutor({"get_weather": "sunny"})
        relay = ToolCallRelay(executor)
        final = QueryResult(content="It is sunny", model="m-1")
        send = AsyncMock(return_value=final)
        history = [Message.user("Weather in Paris?")]
        call = ToolCall(id="c1", function_name="get_weather", arguments={"city": "Paris"})

        out = await relay.resolve(send, history, QueryOptions(), _tool_request(call))

        assert out is final
        send.assert_awaited_once()
        messages, options = send.await_args.args
        assert messages[0] == history[0]
        assert messages[-1].role == Role.TOOL
        assert messages[-1].tool_calls == (call,)
        assert messages[-1].tool_results == (
            ToolCallResult(id="c1", content="sunny", name="get_weather"),
        )
        assert options.force_model == "m-1"
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_failed_tools_are_dropped(self) -> None:
        executor = FakeToolExecutor({
            "get_weather": "sunny",
            "broken": ToolExecutionError("broken", "exploded"),
        })
        relay = ToolCallRelay(executor)
        send = AsyncMock(return_value=QueryResult(content="done", model="m-1"))
        calls = (
            ToolCall(id="c1", function_name="broken"),
            ToolCall(id="c2", function_name="get_weather", arguments='{"city": "Oslo"}'),
        )

        await relay.resolve(send, [Message.user("q")], QueryOptions(), _tool_request(*calls))

        messages, _ = send.await_args.args
        tool_message = messages[-1]
        assert [r.id for r in tool_message.tool_results] == ["c2"]
        assert [c.id for c in tool_message.tool_calls] == ["c2"]
        assert len(executor.executed) == 2

    @pytest.mark.asyncio
    async def test_all_tools_failing_skips_follow_up(self) -> None:
        relay = ToolCallRelay(FakeToolExecutor({"broken": RuntimeError("nope")}))
        send = AsyncMock()
        result = _tool_request(ToolCall(id="c1", function_name="broken"))

        out = await relay.resolve(send, [Message.user("q")], QueryOptions(), result)
        assert out is result
        send.assert_not_awaited()

    def test_prepare_options_defaults_to_executor_tools(self) -> None:
        relay = ToolCallRelay(FakeToolExecutor(tools=[WEATHER]))
        assert relay.prepare_options(QueryOptions()).tools == (WEATHER,)

    def test_prepare_options_keeps_caller_tools(self) -> None:
        relay = ToolCallRelay(FakeToolExecutor(tools=[WEATHER]))
        own = ToolDefinition(name="lookup")
        options = QueryOptions(tools=(own,))
        assert relay.prepare_options(options) is options


# ═══════════════════════════════════════════════════════════════
#  Relay through the router
# ═══════════════════════════════════════════════════════════════
class TestRouterToolRoundTrip:
    @pytest.mark.asyncio
    async def test_one_extra_round_trip_to_same_provider(
        self, make_provider: MakeProvider, user_messages: list[Message]
    ) -> None:
        calls = (
            ToolCall(id="c1", function_name="get_weather", arguments={"city": "Paris"}),
            ToolCall(id="c2", function_name="broken"),
        )
        alpha = make_provider(
            "alpha",
            rank=2,
            responses=[_tool_request(*calls), QueryResult(content="sunny", model="m-1")],
        )
        beta = make_provider("beta", rank=1)
        executor = FakeToolExecutor({"get_weather": "sunny", "broken": RuntimeError("x")})
        router = Router([alpha, beta], tool_executor=executor)

        result = await router.query(user_messages)

        assert result.content == "sunny"
        assert result.provider == "alpha"
        assert len(alpha.calls) == 2
        assert beta.calls == []
        follow_messages, follow_options = alpha.calls[1]
        assert follow_messages[-1].role == Role.TOOL
        assert len(follow_messages[-1].tool_results) == 1
        assert follow_options.force_model == "m-1"

    @pytest.mark.asyncio
    async def test_second_answer_is_final(
        self, make_provider: MakeProvider, user_messages: list[Message]
    ) -> None:
        call = ToolCall(id="c1", function_name="get_weather")
        again = _tool_request(ToolCall(id="c2", function_name="get_weather"))
        alpha = make_provider("alpha", responses=[_tool_request(call), again])
        executor = FakeToolExecutor({"get_weather": "sunny"})

        result = await Router([alpha], tool_executor=executor).query(user_messages)

        assert result.tool_calls == again.tool_calls
        assert len(alpha.calls) == 2
        assert len(executor.executed) == 1

    @pytest.mark.asyncio
    async def test_tool_calls_returned_when_no_results(
        self, make_provider: MakeProvider, user_messages: list[Message]
    ) -> None:
        first = _tool_request(ToolCall(id="c1", function_name="broken"))
        alpha = make_provider("alpha", responses=[first])
        executor = FakeToolExecutor({"broken": RuntimeError("nope")})

        result = await Router([alpha], tool_executor=executor).query(user_messages)

        assert result.has_tool_calls
        assert len(alpha.calls) == 1

    @pytest.mark.asyncio
    async def test_failed_follow_up_falls_through(
        self, make_provider: MakeProvider, user_messages: list[Message]
    ) -> None:
        call = ToolCall(id="c1", function_name="get_weather")
        alpha = make_provider(
            "alpha", rank=2, responses=[_tool_request(call), RuntimeError("second send failed")]
        )
        beta = make_provider("beta", rank=1)
        executor = FakeToolExecutor({"get_weather": "sunny"})

        result = await Router([alpha, beta], tool_executor=executor).query(user_messages)

        assert result.content == "ok:beta"
        assert len(alpha.calls) == 2

    @pytest.mark.asyncio
    async def test_each_send_counts_against_quota(
        self, make_provider: MakeProvider, user_messages: list[Message]
    ) -> None:
        call = ToolCall(id="c1", function_name="get_weather")
        alpha = make_provider("alpha", max_daily=2, responses=[_tool_request(call)])
        executor = FakeToolExecutor({"get_weather": "sunny"})
        router = Router([alpha], tool_executor=executor)

        await router.query(user_messages)
        assert alpha.quota.requests_today == 2
        with pytest.raises(RouterError):
            await router.query(user_messages)

    @pytest.mark.asyncio
    async def test_follow_up_respects_quota(
        self, make_provider: MakeProvider, user_messages: list[Message]
    ) -> None:
        call = ToolCall(id="c1", function_name="get_weather")
        alpha = make_provider("alpha", rank=2, max_daily=1, responses=[_tool_request(call)])
        beta = make_provider("beta", rank=1)
        executor = FakeToolExecutor({"get_weather": "sunny"})

        result = await Router([alpha, beta], tool_executor=executor).query(user_messages)

        assert result.content == "ok:beta"
        assert len(alpha.calls) == 1
        assert alpha.quota.requests_today == 1

    @pytest.mark.asyncio
    async def test_follow_up_quota_refusal_recorded(
        self, make_provider: MakeProvider, user_messages: list[Message]
    ) -> None:
        call = ToolCall(id="c1", function_name="get_weather")
        alpha = make_provider("alpha", max_per_minute=1, responses=[_tool_request(call)])
        executor = FakeToolExecutor({"get_weather": "sunny"})

        with pytest.raises(RouterError) as exc_info:
            await Router([alpha], tool_executor=executor).query(user_messages)

        assert isinstance(exc_info.value.causes[0], QuotaExceededError)
        assert alpha.quota.requests_this_minute == 1

    @pytest.mark.asyncio
    async def test_executor_tools_offered_to_provider(
        self, make_provider: MakeProvider, user_messages: list[Message]
    ) -> None:
        alpha = make_provider("alpha")
        executor = FakeToolExecutor(tools=[WEATHER])

        await Router([alpha], tool_executor=executor).query(user_messages)

        _, options = alpha.calls[0]
        assert options.tools == (WEATHER,)

    @pytest.mark.asyncio
    async def test_without_executor_tool_calls_pass_through(
        self, make_provider: MakeProvider, user_messages: list[Message]
    ) -> None:
        first = _tool_request(ToolCall(id="c1", function_name="get_weather"))
        alpha = make_provider("alpha", responses=[first])

        result = await Router([alpha]).query(user_messages)

        assert result.tool_calls == first.tool_calls
        assert len(alpha.calls) == 1
