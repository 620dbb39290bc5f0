# src/logging/context.py — v2
"""Contextual logging support — attach run_id, recipe_id, step and tool to log records.

Each run executes in its own asyncio task, which owns a copy of the
context, so values set by one run never leak into another.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_recipe_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "recipe_id", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)
_tool: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "tool", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    recipe_id: str | None = None
    step: str | None = None
    tool: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        recipe_id=_recipe_id.get(),
        step=_step.get(),
        tool=_tool.get(),
    )


def set_run_context(run_id: str, recipe_id: str) -> None:
    """Set run-level context (called once at the top of a run's task)."""
    _run_id.set(run_id)
    _recipe_id.set(recipe_id)


def set_step_context(step: str | None, tool: str | None = None) -> None:
    """Set step-level context (called per step)."""
    _step.set(step)
    _tool.set(tool)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _recipe_id.set(None)
    _step.set(None)
    _tool.set(None)
