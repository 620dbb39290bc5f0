# src/tools/function_executor.py — v2
"""In-process tool executor backed by registered Python callables.

Handlers take the resolved args dict (and the execution context as a
keyword) and return either a ToolExecutionResult, a string, or any
JSON-serializable value which is dumped as the tool output. Coroutine
handlers are awaited on the event loop; plain callables run in a worker
thread via asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any, Callable

from controlroom.tools.base_executor import BaseToolExecutor
from controlroom.tools.models import ToolCall, ToolExecutionContext, ToolExecutionResult

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Any]


class FunctionToolExecutor(BaseToolExecutor):
    """Dispatch tool calls by name to plain (sync or async) callables."""

    def __init__(self, handlers: dict[str, ToolHandler] | None = None) -> None:
        self._handlers: dict[str, ToolHandler] = dict(handlers or {})

    @property
    def tool_names(self) -> list[str]:
        return sorted(self._handlers)

    def register(self, name: str, handler: ToolHandler) -> None:
        """Register (or replace) the handler for a tool name."""
        if name in self._handlers:
            logger.warning("Overwriting existing tool handler: %s", name)
        self._handlers[name] = handler

    async def execute(
        self, call: ToolCall, context: ToolExecutionContext
    ) -> ToolExecutionResult:
        handler = self._handlers.get(call.name)
        if handler is None:
            return ToolExecutionResult.failure("unknown_tool", f"No handler for tool '{call.name}'")

        if inspect.iscoroutinefunction(handler):
            value = await handler(call.args, context=context)
        else:
            # Off the event loop; asyncio.to_thread carries the contextvars
            value = await asyncio.to_thread(handler, call.args, context=context)
            if inspect.isawaitable(value):
                value = await value
        return _to_result(value)


def _to_result(value: Any) -> ToolExecutionResult:
    if isinstance(value, ToolExecutionResult):
        return value
    if isinstance(value, str):
        return ToolExecutionResult.success(value)
    return ToolExecutionResult.success(json.dumps(value))
