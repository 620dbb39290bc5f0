# src/storage/reader.py — v2
"""Read run state for polling, audit or post-crash consultation.

Builds the condensed views a UI polls (run listing, run detail, single
cache slot) from what RunStore has persisted. Nothing here writes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from controlroom.storage.models import (
    CacheSlotSummary,
    CacheSlotView,
    RunDetail,
    RunSummary,
    StepSummary,
)

if TYPE_CHECKING:
    from controlroom.storage.run_store import RunStore


def summarize_runs(
    store: RunStore, status: str | None = None, recipe_id: str | None = None
) -> list[RunSummary]:
    """One summary row per run, newest first."""
    return [
        RunSummary(
            run_id=m.run_id,
            recipe_id=m.recipe_id,
            status=m.status,
            created_at=m.created_at,
            task=m.task,
        )
        for m in store.list_runs(status=status, recipe_id=recipe_id)
    ]


def load_run_detail(store: RunStore, run_id: str) -> RunDetail | None:
    """Manifest + step summaries + cache summary in one view.

    Returns None if the run has no manifest.
    """
    manifest = store.read_manifest(run_id)
    if manifest is None:
        return None

    steps = [
        StepSummary(
            step_id=record.step_id,
            phase=record.phase,
            status=record.status,
            tool=record.tool,
            agent_archetype=record.agent_archetype,
            output_slot=record.output_slot,
            output_preview=record.output_preview,
            error=record.error,
        )
        for record in store.read_steps(run_id)
    ]

    cache_summary = {
        name: CacheSlotSummary(
            type=_field(slot, "type") or "unknown",
            preview=_field(slot, "summary"),
        )
        for name, slot in store.read_cache(run_id).items()
    }

    return RunDetail(
        run_id=manifest.run_id,
        recipe_id=manifest.recipe_id,
        status=manifest.status,
        phase=manifest.phase,
        current_step_index=manifest.current_step_index,
        total_steps=manifest.total_steps,
        created_at=manifest.created_at,
        updated_at=manifest.updated_at,
        completed_at=manifest.completed_at,
        task=manifest.task,
        steps=steps,
        cache_summary=cache_summary,
        error=manifest.error,
    )


def load_cache_slot(store: RunStore, run_id: str, slot_name: str) -> CacheSlotView | None:
    """Drill-down into one cache slot, data included.

    Returns None if the run or the slot does not exist.
    """
    if store.read_manifest(run_id) is None:
        return None

    slot = store.read_cache(run_id).get(slot_name)
    if slot is None:
        return None

    return CacheSlotView(
        slot=slot_name,
        type=_field(slot, "type") or "unknown",
        receipt_id=_field(slot, "receipt_id"),
        sha256=_field(slot, "sha256"),
        summary=_field(slot, "summary"),
        data=slot.get("data") if isinstance(slot, dict) else None,
    )


def _field(slot: Any, key: str) -> str | None:
    if not isinstance(slot, dict):
        return None
    value = slot.get(key)
    return str(value) if value is not None else None
