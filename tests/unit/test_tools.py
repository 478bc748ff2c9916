"""Tests for the built-in SimpleToolExecutor."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from llm_router.exceptions import ToolExecutionError
from llm_router.tools import SimpleToolExecutor, evaluate_expression
from llm_router.types import ToolCall

FIXED_NOW = datetime(2024, 3, 1, 12, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def executor() -> SimpleToolExecutor:
    return SimpleToolExecutor(now=lambda: FIXED_NOW)


# ═══════════════════════════════════════════════════════════════
#  Expression evaluation
# ═══════════════════════════════════════════════════════════════
class TestEvaluateExpression:
    @pytest.mark.parametrize(
        ("expr", "expected"),
        [
            ("2 + 2", "4.00"),
            ("10 - 2.5", "7.50"),
            ("3 * 4", "12.00"),
            ("7 / 2", "3.50"),
            ("sqrt(16)", "4.00"),
            ("  sqrt(2)  ", "1.41"),
        ],
    )
    def test_valid(self, expr: str, expected: str) -> None:
        assert evaluate_expression(expr) == expected

    @pytest.mark.parametrize(
        ("expr", "message"),
        [
            ("1 / 0", "division by zero"),
            ("sqrt(-4)", "negative number"),
            ("sqrt(abc)", "invalid number in sqrt"),
            ("2 +", "format"),
            ("x + 1", "invalid first number"),
            ("1 + y", "invalid second number"),
            ("2 ^ 3", "unknown operator"),
        ],
    )
    def test_invalid(self, expr: str, message: str) -> None:
        with pytest.raises(ToolExecutionError, match=message):
            evaluate_expression(expr)


# ═══════════════════════════════════════════════════════════════
#  Executor
# ═══════════════════════════════════════════════════════════════
class TestSimpleToolExecutor:
    def test_advertises_three_tools(self, executor: SimpleToolExecutor) -> None:
        names = [t.name for t in executor.get_available_tools()]
        assert names == ["get_current_time", "calculate", "string_operations"]

    @pytest.mark.asyncio
    async def test_calculate(self, executor: SimpleToolExecutor) -> None:
        call = ToolCall(id="c1", function_name="calculate", arguments={"expression": "6 * 7"})
        result = await executor.execute_tool(call)
        assert result.id == "c1"
        assert result.name == "calculate"
        assert result.content == "42.00"

    @pytest.mark.asyncio
    async def test_calculate_requires_expression(self, executor: SimpleToolExecutor) -> None:
        with pytest.raises(ToolExecutionError, match="expression"):
            await executor.execute_tool(ToolCall(id="c1", function_name="calculate"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("operation", "expected"),
        [
            ("length", "5"),
            ("uppercase", "HELLO"),
            ("lowercase", "hello"),
            ("reverse", "olleh"),
        ],
    )
    async def test_string_operations(
        self, executor: SimpleToolExecutor, operation: str, expected: str
    ) -> None:
        call = ToolCall(
            id="c1",
            function_name="string_operations",
            arguments={"text": "hello", "operation": operation},
        )
        assert (await executor.execute_tool(call)).content == expected

    @pytest.mark.asyncio
    async def test_unknown_string_operation(self, executor: SimpleToolExecutor) -> None:
        call = ToolCall(
            id="c1",
            function_name="string_operations",
            arguments={"text": "hello", "operation": "rot13"},
        )
        with pytest.raises(ToolExecutionError, match="unknown operation"):
            await executor.execute_tool(call)

    @pytest.mark.asyncio
    async def test_current_time_rfc3339(self, executor: SimpleToolExecutor) -> None:
        result = await executor.execute_tool(ToolCall(id="c1", function_name="get_current_time"))
        assert result.content == "2024-03-01T12:30:00+00:00"

    @pytest.mark.asyncio
    async def test_current_time_unix(self, executor: SimpleToolExecutor) -> None:
        call = ToolCall(id="c1", function_name="get_current_time", arguments={"format": "Unix"})
        result = await executor.execute_tool(call)
        assert result.content == str(int(FIXED_NOW.timestamp()))

    @pytest.mark.asyncio
    async def test_unknown_tool(self, executor: SimpleToolExecutor) -> None:
        with pytest.raises(ToolExecutionError, match="unknown tool"):
            await executor.execute_tool(ToolCall(id="c1", function_name="launch_rocket"))
