# src/tools/models.py — v1
"""Tool call types: ToolCall, ToolExecutionContext, ToolExecutionResult."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ToolCall(BaseModel):
    """A named tool invocation with resolved arguments."""

    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ToolExecutionContext(BaseModel):
    """Who is calling: session, run (task_id) and step (turn_id)."""

    session_id: str
    task_id: str
    turn_id: str
    agent_id: str | None = None


class ToolExecutionResult(BaseModel):
    """Outcome of a tool call.

    On failure, error carries a short code/message and output may hold
    extra detail.
    """

    output: str = ""
    ok: bool = True
    error: str | None = None
    receipt_id: str | None = None

    @classmethod
    def success(cls, output: str, receipt_id: str | None = None) -> ToolExecutionResult:
        return cls(output=output, ok=True, receipt_id=receipt_id)

    @classmethod
    def failure(cls, error: str, output: str = "") -> ToolExecutionResult:
        return cls(output=output, ok=False, error=error)
