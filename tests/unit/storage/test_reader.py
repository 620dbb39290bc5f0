# tests/unit/storage/test_reader.py — v2
"""Tests for storage/reader.py — polling views over persisted runs."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from controlroom.storage.models import RunManifest, StepRecord, TaskMetadata
from controlroom.storage.reader import load_cache_slot, load_run_detail, summarize_runs
from controlroom.storage.run_store import RunStore

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path: Path) -> RunStore:
    store = RunStore(tmp_path / "runs")
    store.create_run(RunManifest(
        run_id="run_a",
        recipe_id="draft",
        session_id="pipeline-run_a",
        status="failed",
        created_at=T0,
        updated_at=T0,
        task=TaskMetadata.build("scene 3", {"scene_path": "s.md"}),
        current_step_index=1,
        total_steps=3,
        error="Tool 'reader' failed at step 'read': io_error",
    ))
    store.append_step("run_a", StepRecord(
        step_index=0, step_id="locate", tool="locator", status="done",
        output_slot="found", output_preview='{"matches": []}',
        started_at=T0, completed_at=T0,
    ))
    store.append_step("run_a", StepRecord(
        step_index=1, step_id="read", tool="reader", status="failed",
        output_slot="text", error="io_error: gone",
        started_at=T0, completed_at=T0,
    ))
    store.write_cache("run_a", {
        "found": {
            "type": "pointer", "receipt_id": "rc1", "sha256": "sha256:ab",
            "summary": '{"matches": []}', "data": {"matches": []},
        },
        "odd": "not-a-slot",
    })
    return store


class TestSummarizeRuns:
    def test_rows(self, store: RunStore):
        rows = summarize_runs(store)
        assert len(rows) == 1
        assert rows[0].run_id == "run_a"
        assert rows[0].status == "failed"
        assert rows[0].task.description == "scene 3"

    def test_filter(self, store: RunStore):
        assert summarize_runs(store, status="done") == []
        assert len(summarize_runs(store, recipe_id="DRAFT")) == 1


class TestLoadRunDetail:
    def test_detail(self, store: RunStore):
        detail = load_run_detail(store, "run_a")
        assert detail is not None
        assert detail.total_steps == 3
        assert detail.current_step_index == 1
        assert detail.error.startswith("Tool 'reader' failed")
        assert [s.status for s in detail.steps] == ["done", "failed"]
        assert detail.steps[1].error == "io_error: gone"

    def test_cache_summary_tolerates_odd_slots(self, store: RunStore):
        detail = load_run_detail(store, "run_a")
        assert detail.cache_summary["found"].type == "pointer"
        assert detail.cache_summary["found"].preview == '{"matches": []}'
        assert detail.cache_summary["odd"].type == "unknown"
        assert detail.cache_summary["odd"].preview is None

    def test_missing_run(self, store: RunStore):
        assert load_run_detail(store, "run_nope") is None


class TestLoadCacheSlot:
    def test_slot(self, store: RunStore):
        view = load_cache_slot(store, "run_a", "found")
        assert view.slot == "found"
        assert view.receipt_id == "rc1"
        assert view.sha256 == "sha256:ab"
        assert view.data == {"matches": []}

    def test_missing_slot(self, store: RunStore):
        assert load_cache_slot(store, "run_a", "text") is None

    def test_missing_run(self, store: RunStore):
        assert load_cache_slot(store, "run_nope", "found") is None
