# tests/conftest.py — v2
"""Shared test fixtures for unit and integration tests.

Provides a temp workspace, recipe builders, a scripted tool executor and
a fully wired StepRunner. No external services; all I/O is under tmp_path.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from controlroom.pipeline.ref_resolver import RefResolver
from controlroom.pipeline.registry import RecipeRegistry
from controlroom.pipeline.runner import StepRunner
from controlroom.storage.run_store import RunStore
from controlroom.tools.base_executor import BaseToolExecutor
from controlroom.tools.models import ToolCall, ToolExecutionContext, ToolExecutionResult


# === HELPERS ===


def make_step(
    step_id: str,
    tool: str,
    output_slot: str,
    args: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {"step_id": step_id, "tool": tool, "output_slot": output_slot, "args": args or {}}


def make_recipe(
    recipe_id: str,
    phase_a: list[dict[str, Any]],
    phase_b: list[dict[str, Any]] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    recipe = {"recipe_id": recipe_id, "phase_a": phase_a, "phase_b": phase_b or []}
    recipe.update(extra)
    return recipe


def write_recipe(directory: Path, filename: str, recipe: dict[str, Any]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_text(json.dumps(recipe), encoding="utf-8")
    return path


class ScriptedToolExecutor(BaseToolExecutor):
    """Tool executor returning canned results per tool name.

    Every call is recorded in .calls as (ToolCall, ToolExecutionContext).
    A tool mapped to an asyncio.Event blocks until the event is set;
    .entered is set when any blocking tool starts.
    """

    def __init__(self, results: dict[str, ToolExecutionResult | str] | None = None) -> None:
        self.results: dict[str, ToolExecutionResult | str] = dict(results or {})
        self.gates: dict[str, asyncio.Event] = {}
        self.entered = asyncio.Event()
        self.calls: list[tuple[ToolCall, ToolExecutionContext]] = []

    async def execute(
        self, call: ToolCall, context: ToolExecutionContext
    ) -> ToolExecutionResult:
        self.calls.append((call, context))
        gate = self.gates.get(call.name)
        if gate is not None:
            self.entered.set()
            await gate.wait()
        result = self.results.get(call.name, json.dumps({"tool": call.name}))
        if isinstance(result, str):
            return ToolExecutionResult.success(result, receipt_id=f"rcpt-{call.name}")
        return result


# === FIXTURES ===


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Temporary workspace root with empty recipes/ and runs/."""
    ws = tmp_path / "workspace"
    (ws / "recipes").mkdir(parents=True)
    (ws / "runs").mkdir()
    return ws


@pytest.fixture
def recipes_dir(workspace: Path) -> Path:
    return workspace / "recipes"


@pytest.fixture
def run_store(workspace: Path) -> RunStore:
    return RunStore(workspace / "runs")


@pytest.fixture
def executor() -> ScriptedToolExecutor:
    return ScriptedToolExecutor()


@pytest.fixture
def three_step_recipe() -> dict[str, Any]:
    """locate -> read (uses locate output) -> summarize (uses task args)."""
    return make_recipe(
        "three_steps",
        [
            make_step("locate", "file_locator", "discovery", {
                "search_criteria": {"$ref": "task.description"},
            }),
            make_step("read", "file_reader", "scene", {
                "file_path": {"$ref": "discovery.matches[0].path"},
            }),
            make_step("summarize", "summarizer", "summary", {
                "text": {"$ref": "scene.text"},
                "focus": {"$ref": "task.args.focus"},
            }),
        ],
    )


@pytest.fixture
def make_runner(recipes_dir: Path, run_store: RunStore, executor: ScriptedToolExecutor):
    """Factory: write recipes into the workspace, return a wired StepRunner."""

    def _make(*recipes: dict[str, Any], preview_chars: int = 200) -> StepRunner:
        for recipe in recipes:
            write_recipe(recipes_dir, f"{recipe['recipe_id']}.json", recipe)
        registry = RecipeRegistry(project_dir=recipes_dir, bundled_files=[])
        return StepRunner(
            tool_executor=executor,
            run_store=run_store,
            ref_resolver=RefResolver(),
            recipe_registry=registry,
            preview_chars=preview_chars,
        )

    return _make
