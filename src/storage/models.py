# src/storage/models.py — v3
"""Storage domain models: RunManifest, StepRecord, CacheSlot, read-side views.

RunManifest is written to run.json, StepRecord is one line of steps.jsonl,
CacheSlot is one entry of cache.json.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

RunStatus = Literal["running", "done", "failed", "cancelled"]
RunPhase = Literal["a", "a_complete"]
StepStatus = Literal["done", "failed"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"done", "failed", "cancelled"})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TaskMetadata(BaseModel):
    """Task description plus the caller's initial args.

    initial_args and args hold the same map so references spelled
    task.initial_args.x and task.args.x resolve identically.
    """

    description: str = ""
    initial_args: dict[str, Any] = Field(default_factory=dict)
    args: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def build(cls, description: str | None, args: dict[str, Any] | None) -> TaskMetadata:
        initial = dict(args or {})
        return cls(description=description or "", initial_args=initial, args=dict(initial))


class RunManifest(BaseModel):
    """Status and progress of one run, written to run.json."""

    run_id: str
    recipe_id: str
    session_id: str
    status: RunStatus = "running"
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    task: TaskMetadata = Field(default_factory=TaskMetadata)
    current_step_index: int = 0
    total_steps: int = 0
    phase: RunPhase = "a"
    error: str | None = None

    @field_validator("created_at", "updated_at", "completed_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Timestamps without an offset are read as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class StepRecord(BaseModel):
    """One immutable entry of the append-only step log."""

    step_index: int
    step_id: str
    phase: Literal["a", "b"] = "a"
    tool: str | None = None
    agent_archetype: str | None = None
    agent_id: str | None = None
    status: StepStatus
    output_slot: str
    receipt_id: str | None = None
    output_hash: str | None = None
    output_preview: str | None = None
    started_at: datetime
    completed_at: datetime
    error: str | None = None


class CacheSlot(BaseModel):
    """Persisted result of one successful step.

    data holds the tool output parsed as JSON when possible, else the raw
    text. Raw-text slots are referenceable by hash/receipt/summary only.
    """

    type: Literal["pointer"] = "pointer"
    receipt_id: str | None = None
    sha256: str
    summary: str
    data: Any = None


# === Read-side views ===


class StepSummary(BaseModel):
    """Condensed step record for polling views."""

    step_id: str
    phase: str
    status: str
    tool: str | None = None
    agent_archetype: str | None = None
    output_slot: str
    output_preview: str | None = None
    error: str | None = None


class CacheSlotSummary(BaseModel):
    type: str = "unknown"
    preview: str | None = None


class RunSummary(BaseModel):
    """One row of a run listing."""

    run_id: str
    recipe_id: str
    status: str
    created_at: datetime
    task: TaskMetadata


class RunDetail(BaseModel):
    """Consolidated polling view: manifest + steps + cache summary."""

    run_id: str
    recipe_id: str
    status: str
    phase: str
    current_step_index: int
    total_steps: int
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
    task: TaskMetadata
    steps: list[StepSummary] = Field(default_factory=list)
    cache_summary: dict[str, CacheSlotSummary] = Field(default_factory=dict)
    error: str | None = None


class CacheSlotView(BaseModel):
    """Drill-down view of a single cache slot."""

    slot: str
    type: str = "unknown"
    receipt_id: str | None = None
    sha256: str | None = None
    summary: str | None = None
    data: Any = None
