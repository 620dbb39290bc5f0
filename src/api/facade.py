# src/api/facade.py — v2
"""Public API facade — single entry point for the pipeline engine.

Usage:
    from controlroom.api.facade import PipelineEngine
    engine = PipelineEngine.from_settings(settings, tool_executor)
    response = await engine.start_run(StartRunRequest(recipe_id="..."))

Wires Settings, RecipeRegistry, RefResolver, RunStore and StepRunner
together; an HTTP layer sits on top of this object.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from controlroom.api.models import CancelRunResponse, StartRunRequest, StartRunResponse
from controlroom.config.settings import Settings
from controlroom.pipeline.ref_resolver import RefResolver
from controlroom.pipeline.registry import RecipeRegistry
from controlroom.pipeline.runner import StepRunner
from controlroom.storage import reader
from controlroom.storage.run_store import RunStore

if TYPE_CHECKING:
    from controlroom.pipeline.models import Recipe
    from controlroom.storage.models import (
        CacheSlotView,
        RunDetail,
        RunSummary,
        StepRecord,
    )
    from controlroom.tools.base_executor import BaseToolExecutor

logger = logging.getLogger(__name__)


class PipelineEngine:
    """Facade over the four pipeline components.

    Args:
        registry: Recipe registry.
        store: Run store.
        runner: Step runner bound to the same registry and store.
    """

    def __init__(
        self,
        registry: RecipeRegistry,
        store: RunStore,
        runner: StepRunner,
    ) -> None:
        self.registry = registry
        self.store = store
        self.runner = runner

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None,
        tool_executor: BaseToolExecutor,
    ) -> PipelineEngine:
        """Build an engine rooted at settings.workspace_root.

        Args:
            settings: Global settings. Loaded from .env if None.
            tool_executor: Collaborator that runs the tools.
        """
        settings = settings or Settings()
        registry = RecipeRegistry(project_dir=settings.recipes_dir)
        store = RunStore(settings.runs_dir)
        runner = StepRunner(
            tool_executor=tool_executor,
            run_store=store,
            ref_resolver=RefResolver(),
            recipe_registry=registry,
            preview_chars=settings.pipeline_preview_chars,
            session_prefix=settings.pipeline_session_prefix,
        )
        logger.debug("Pipeline engine rooted at %s", settings.workspace_path)
        return cls(registry=registry, store=store, runner=runner)

    # --- Recipes ---

    def list_recipes(self) -> dict[str, Recipe]:
        return self.registry.all()

    def reload_recipes(self) -> list[str]:
        """Reload recipes and return the merged ids."""
        self.registry.reload()
        return self.registry.recipe_ids

    # --- Runs ---

    async def start_run(self, request: StartRunRequest) -> StartRunResponse:
        """Start a run; raises UnknownRecipeError for unregistered recipes."""
        run_id = await self.runner.start_run(
            request.recipe_id, request.args, request.description
        )
        return StartRunResponse(run_id=run_id, status="running")

    def cancel_run(self, run_id: str) -> CancelRunResponse:
        """Flag a running run for cancellation.

        A run that is unknown, already terminal, or finishing as the flag
        is set reports cancelled=False.
        """
        manifest = self.store.read_manifest(run_id)
        if manifest is None or manifest.status != "running":
            return CancelRunResponse(
                run_id=run_id,
                cancelled=False,
                status=manifest.status if manifest else None,
            )
        cancelled = self.runner.cancel_run(run_id)
        return CancelRunResponse(
            run_id=run_id,
            cancelled=cancelled,
            status="cancelled" if cancelled else manifest.status,
        )

    async def wait(self, run_id: str) -> RunDetail | None:
        """Wait for a live run to finish and return its final detail."""
        await self.runner.wait(run_id)
        return self.get_run(run_id)

    def get_run(self, run_id: str) -> RunDetail | None:
        return reader.load_run_detail(self.store, run_id)

    def list_runs(
        self, status: str | None = None, recipe_id: str | None = None
    ) -> list[RunSummary]:
        return reader.summarize_runs(self.store, status=status, recipe_id=recipe_id)

    def get_steps(self, run_id: str) -> list[StepRecord] | None:
        """Full step log, or None if the run does not exist."""
        if self.store.read_manifest(run_id) is None:
            return None
        return self.store.read_steps(run_id)

    def get_cache_slot(self, run_id: str, slot: str) -> CacheSlotView | None:
        return reader.load_cache_slot(self.store, run_id, slot)
