# src/tools/base_executor.py — v1
"""Abstract tool execution interface.

The pipeline engine never implements tools itself; it hands each resolved
step to a BaseToolExecutor and consumes the result.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from controlroom.tools.models import ToolCall, ToolExecutionContext, ToolExecutionResult


class BaseToolExecutor(ABC):
    """Unified interface for tool execution backends."""

    @abstractmethod
    async def execute(
        self, call: ToolCall, context: ToolExecutionContext
    ) -> ToolExecutionResult:
        """Run one tool call to completion.

        Expected failures come back as a result with ok=False rather than
        an exception.
        """
