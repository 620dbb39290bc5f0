# tests/unit/api/test_unit_facade.py — v2
"""Tests for api/facade.py — PipelineEngine wiring and read-side calls."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from controlroom.api.facade import PipelineEngine
from controlroom.api.models import StartRunRequest
from controlroom.config.settings import Settings
from controlroom.pipeline.runner import UnknownRecipeError


def _write_recipe(recipes_dir: Path, recipe_id: str, tools: list[str]) -> None:
    recipe = {
        "recipe_id": recipe_id,
        "phase_a": [
            {"step_id": f"s{i}", "tool": tool, "output_slot": f"slot{i}", "args": {}}
            for i, tool in enumerate(tools)
        ],
        "phase_b": [],
    }
    (recipes_dir / f"{recipe_id}.json").write_text(json.dumps(recipe))


@pytest.fixture
def engine(workspace: Path, recipes_dir: Path, executor) -> PipelineEngine:
    _write_recipe(recipes_dir, "two_steps", ["a", "b"])
    settings = Settings(_env_file=None, workspace_root=workspace, pipeline_preview_chars=20)
    return PipelineEngine.from_settings(settings, executor)


class TestRecipes:
    def test_bundled_and_project_recipes(self, engine: PipelineEngine):
        recipes = engine.list_recipes()
        assert "two_steps" in recipes
        assert "creative_draft_scene" in recipes

    def test_reload_picks_up_new_recipe(self, engine: PipelineEngine, recipes_dir: Path):
        _write_recipe(recipes_dir, "late", ["a"])
        assert "late" in engine.reload_recipes()


class TestRuns:
    @pytest.mark.asyncio
    async def test_start_and_inspect(self, engine: PipelineEngine):
        resp = await engine.start_run(
            StartRunRequest(recipe_id="two_steps", args={"x": 1}, description="go")
        )
        assert resp.status == "running"

        detail = await engine.wait(resp.run_id)
        assert detail.status == "done"
        assert detail.total_steps == 2
        assert [s.step_id for s in detail.steps] == ["s0", "s1"]
        assert set(detail.cache_summary) == {"slot0", "slot1"}

        slot = engine.get_cache_slot(resp.run_id, "slot1")
        assert slot.data == {"tool": "b"}
        assert len(engine.get_steps(resp.run_id)) == 2
        assert [r.run_id for r in engine.list_runs(status="done")] == [resp.run_id]

    @pytest.mark.asyncio
    async def test_session_prefix_from_settings(self, workspace, recipes_dir, executor):
        _write_recipe(recipes_dir, "one", ["a"])
        settings = Settings(_env_file=None, workspace_root=workspace,
                            pipeline_session_prefix="job-")
        engine = PipelineEngine.from_settings(settings, executor)
        resp = await engine.start_run(StartRunRequest(recipe_id="one"))
        await engine.wait(resp.run_id)
        assert engine.store.read_manifest(resp.run_id).session_id == f"job-{resp.run_id}"

    @pytest.mark.asyncio
    async def test_unknown_recipe(self, engine: PipelineEngine):
        with pytest.raises(UnknownRecipeError):
            await engine.start_run(StartRunRequest(recipe_id="ghost"))
        assert engine.list_runs() == []

    def test_missing_run_lookups(self, engine: PipelineEngine):
        assert engine.get_run("run_nope") is None
        assert engine.get_steps("run_nope") is None
        assert engine.get_cache_slot("run_nope", "x") is None


class TestCancel:
    def test_unknown_run(self, engine: PipelineEngine):
        resp = engine.cancel_run("run_nope")
        assert resp.cancelled is False
        assert resp.status is None

    @pytest.mark.asyncio
    async def test_cancel_live_run(self, engine: PipelineEngine, executor):
        executor.gates["a"] = asyncio.Event()
        resp = await engine.start_run(StartRunRequest(recipe_id="two_steps"))
        await executor.entered.wait()

        cancel = engine.cancel_run(resp.run_id)
        assert cancel.cancelled is True

        executor.gates["a"].set()
        detail = await engine.wait(resp.run_id)
        assert detail.status == "cancelled"
        assert len(detail.steps) == 1

    @pytest.mark.asyncio
    async def test_cancel_finished_run(self, engine: PipelineEngine):
        resp = await engine.start_run(StartRunRequest(recipe_id="two_steps"))
        await engine.wait(resp.run_id)
        cancel = engine.cancel_run(resp.run_id)
        assert cancel.cancelled is False
        assert cancel.status == "done"
