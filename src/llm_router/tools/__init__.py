"""Built-in tool executors."""

from llm_router.tools.simple import SimpleToolExecutor, evaluate_expression

__all__ = ["SimpleToolExecutor", "evaluate_expression"]
