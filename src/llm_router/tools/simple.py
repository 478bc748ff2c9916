"""Small built-in tool executor.

Tools:
- ``get_current_time``: current time as RFC 3339 or Unix seconds.
- ``calculate``: ``"a <op> b"`` arithmetic or ``sqrt(x)``.
- ``string_operations``: length / uppercase / lowercase / reverse.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Sequence

from llm_router.exceptions import ToolExecutionError
from llm_router.ports import ToolExecutor
from llm_router.types import ToolCall, ToolCallResult, ToolDefinition

_OPERATORS: dict[str, Callable[[float, float], float]] = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": lambda a, b: a / b,
}


class SimpleToolExecutor(ToolExecutor):
    def __init__(self, *, now: Callable[[], datetime] | None = None) -> None:
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._handlers: dict[str, Callable[[ToolCall], Awaitable[Any]]] = {
            "get_current_time": self._get_current_time,
            "calculate": self._calculate,
            "string_operations": self._string_operations,
        }
        self._tools = (
            ToolDefinition(
                name="get_current_time",
                description="Get the current date and time",
                parameters={
                    "type": "object",
                    "properties": {
                        "format": {
                            "type": "string",
                            "description": "Time format (e.g., 'RFC3339', 'Unix')",
                            "enum": ["RFC3339", "Unix"],
                        },
                    },
                    "required": [],
                },
            ),
            ToolDefinition(
                name="calculate",
                description="Perform mathematical calculations",
                parameters={
                    "type": "object",
                    "properties": {
                        "expression": {
                            "type": "string",
                            "description": "Mathematical expression to evaluate (e.g., '2 + 2', 'sqrt(16)')",
                        },
                    },
                    "required": ["expression"],
                },
            ),
            ToolDefinition(
                name="string_operations",
                description="Perform string operations like length, uppercase, lowercase",
                parameters={
                    "type": "object",
                    "properties": {
                        "text": {"type": "string", "description": "Text to operate on"},
                        "operation": {
                            "type": "string",
                            "description": "Operation to perform",
                            "enum": ["length", "uppercase", "lowercase", "reverse"],
                        },
                    },
                    "required": ["text", "operation"],
                },
            ),
        )

    def get_available_tools(self) -> Sequence[ToolDefinition]:
        return self._tools

    async def execute_tool(self, call: ToolCall) -> ToolCallResult:
        handler = self._handlers.get(call.function_name)
        if handler is None:
            raise ToolExecutionError(call.function_name, "unknown tool")
        content = await handler(call)
        return ToolCallResult(id=call.id, content=content, name=call.function_name)

    # ── Handlers ─────────────────────────────────────────────
    async def _get_current_time(self, call: ToolCall) -> str:
        fmt = call.arguments.get("format", "RFC3339")
        now = self._now()
        if fmt == "Unix":
            return str(int(now.timestamp()))
        return now.isoformat(timespec="seconds")

    async def _calculate(self, call: ToolCall) -> str:
        expression = call.arguments.get("expression")
        if not isinstance(expression, str):
            raise ToolExecutionError(call.function_name, "expression argument is required")
        return evaluate_expression(expression)

    async def _string_operations(self, call: ToolCall) -> str:
        text = call.arguments.get("text")
        operation = call.arguments.get("operation")
        if not isinstance(text, str):
            raise ToolExecutionError(call.function_name, "text argument is required")
        if not isinstance(operation, str):
            raise ToolExecutionError(call.function_name, "operation argument is required")

        if operation == "length":
            return str(len(text))
        if operation == "uppercase":
            return text.upper()
        if operation == "lowercase":
            return text.lower()
        if operation == "reverse":
            return text[::-1]
        raise ToolExecutionError(call.function_name, f"unknown operation: {operation}")


def evaluate_expression(expr: str) -> str:
    """Evaluate ``"a <op> b"`` or ``"sqrt(x)"``, formatted to two decimals."""
    expr = expr.strip()

    if expr.startswith("sqrt(") and expr.endswith(")"):
        inner = expr[len("sqrt("):-1]
        try:
            value = float(inner)
        except ValueError:
            raise ToolExecutionError("calculate", f"invalid number in sqrt: {inner}") from None
        if value < 0:
            raise ToolExecutionError("calculate", "cannot take square root of negative number")
        return f"{math.sqrt(value):.2f}"

    parts = expr.split()
    if len(parts) != 3:
        raise ToolExecutionError("calculate", "expression must be in format 'number operator number'")

    left, op, right = parts
    try:
        a = float(left)
    except ValueError:
        raise ToolExecutionError("calculate", f"invalid first number: {left}") from None
    try:
        b = float(right)
    except ValueError:
        raise ToolExecutionError("calculate", f"invalid second number: {right}") from None

    func = _OPERATORS.get(op)
    if func is None:
        raise ToolExecutionError("calculate", f"unknown operator: {op}")
    if op == "/" and b == 0:
        raise ToolExecutionError("calculate", "division by zero")
    return f"{func(a, b):.2f}"
