# src/pipeline/runner.py — v3
"""Step runner — execute recipe Phase A steps with persistence after each step.

Phase A = tool steps executed by the system, no model involved. Each
step: resolve args via $ref, call the tool executor, cache the result,
append a step record, update the manifest. Halt on the first failure.

Phase B (agent-driven steps) is recognized in recipes but never run; a
recipe that declares one finishes with phase "a_complete".

State machine per run:
    running -> done | failed | cancelled   (terminal, frozen)
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import threading
from datetime import datetime
from typing import TYPE_CHECKING, Any

from controlroom.logging.context import set_run_context, set_step_context
from controlroom.pipeline.ref_resolver import RefResolutionError, RefResolver
from controlroom.storage.models import (
    CacheSlot,
    RunManifest,
    RunStatus,
    StepRecord,
    TaskMetadata,
    utc_now,
)
from controlroom.storage.run_store import RunStoreError
from controlroom.tools.models import ToolCall, ToolExecutionContext, ToolExecutionResult

if TYPE_CHECKING:
    from controlroom.pipeline.models import Recipe, RecipeStep
    from controlroom.pipeline.registry import RecipeRegistry
    from controlroom.storage.run_store import RunStore
    from controlroom.tools.base_executor import BaseToolExecutor

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_CHARS = 200
DEFAULT_SESSION_PREFIX = "pipeline-"

# Persistence failures after a run is created are logged, never fatal
_PERSIST_ERRORS = (OSError, RunStoreError)


class UnknownRecipeError(ValueError):
    """Raised by start_run when the recipe id is not registered."""

    def __init__(self, recipe_id: str) -> None:
        super().__init__(f"Unknown recipe: {recipe_id}")
        self.recipe_id = recipe_id


class StepRunner:
    """Start, run and cancel recipe runs.

    Each run executes as its own asyncio task; steps inside a run are
    strictly sequential. Cancellation flags are threading.Event objects in
    a lock-guarded map, so cancel_run() is safe from any thread.

    Args:
        tool_executor: Collaborator that actually runs tools.
        run_store: Durable per-run state.
        ref_resolver: Resolves $ref markers in step args.
        recipe_registry: Source of recipe definitions.
        preview_chars: Max characters kept in output previews.
        session_prefix: Prefix for the per-run session id.
    """

    def __init__(
        self,
        tool_executor: BaseToolExecutor,
        run_store: RunStore,
        ref_resolver: RefResolver,
        recipe_registry: RecipeRegistry,
        preview_chars: int = DEFAULT_PREVIEW_CHARS,
        session_prefix: str = DEFAULT_SESSION_PREFIX,
    ) -> None:
        self._tool_executor = tool_executor
        self._run_store = run_store
        self._ref_resolver = ref_resolver
        self._recipe_registry = recipe_registry
        self._preview_chars = preview_chars
        self._session_prefix = session_prefix

        self._lock = threading.Lock()
        self._cancel_flags: dict[str, threading.Event] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}

    @property
    def active_runs(self) -> list[str]:
        """Run ids that still hold a cancellation flag."""
        with self._lock:
            return sorted(self._cancel_flags)

    async def start_run(
        self,
        recipe_id: str,
        args: dict[str, Any] | None = None,
        description: str | None = None,
    ) -> str:
        """Create a run and launch its Phase A loop in the background.

        Returns as soon as the manifest is persisted; never waits on steps.

        Args:
            recipe_id: The recipe to execute.
            args: Initial task args (scene_path, canon_paths, ...).
            description: Task description for the manifest.

        Returns:
            The new run_id.

        Raises:
            UnknownRecipeError: If the recipe is not registered (no run is
                created).
            RunStoreError: If the initial run state cannot be persisted.
        """
        recipe = self._recipe_registry.get(recipe_id)
        if recipe is None:
            raise UnknownRecipeError(recipe_id)

        run_id = self._run_store.generate_run_id()
        now = utc_now()
        manifest = RunManifest(
            run_id=run_id,
            recipe_id=recipe_id,
            session_id=f"{self._session_prefix}{run_id}",
            status="running",
            created_at=now,
            updated_at=now,
            task=TaskMetadata.build(description, args),
            current_step_index=0,
            total_steps=recipe.total_steps,
            phase="a",
        )

        self._run_store.create_run(manifest)

        cancelled = threading.Event()
        with self._lock:
            self._cancel_flags[run_id] = cancelled

        task = asyncio.create_task(
            self._execute_phase_a(recipe, manifest, cancelled),
            name=f"{self._session_prefix}{run_id}",
        )
        with self._lock:
            self._tasks[run_id] = task
        task.add_done_callback(lambda _t, rid=run_id: self._forget_task(rid))

        logger.info("Run %s started for recipe '%s'", run_id, recipe_id)
        return run_id

    def cancel_run(self, run_id: str) -> bool:
        """Request cancellation of a live run.

        Observed at the next step boundary; an in-flight tool call always
        finishes first.

        Returns:
            True if a live run was found and flagged.
        """
        with self._lock:
            flag = self._cancel_flags.get(run_id)
        if flag is None:
            return False
        flag.set()
        logger.info("Cancellation requested for run %s", run_id)
        return True

    async def wait(self, run_id: str) -> None:
        """Wait for a live run's background task to finish (no-op otherwise)."""
        with self._lock:
            task = self._tasks.get(run_id)
        if task is not None:
            await asyncio.shield(task)

    async def _execute_phase_a(
        self, recipe: Recipe, manifest: RunManifest, cancelled: threading.Event
    ) -> None:
        run_id = manifest.run_id
        set_run_context(run_id, recipe.recipe_id)
        try:
            await self._run_steps(recipe, manifest, cancelled)
        except Exception as exc:
            logger.exception("Run %s crashed", run_id)
            if not manifest.is_terminal:
                self._complete_run(manifest, "failed", f"Internal error: {exc}")
        except asyncio.CancelledError:
            # Task torn down (loop shutdown); the manifest must not stay running
            if not manifest.is_terminal:
                self._complete_run(manifest, "cancelled")
            raise
        finally:
            self._release(run_id)

    async def _run_steps(
        self, recipe: Recipe, manifest: RunManifest, cancelled: threading.Event
    ) -> None:
        run_id = manifest.run_id
        task_node = manifest.task.model_dump(mode="json")

        # Empty for a fresh run; holds prior slots when picked up after a restart
        try:
            cache = self._run_store.read_cache(run_id)
        except (OSError, ValueError, RunStoreError) as exc:
            self._complete_run(manifest, "failed", f"Failed to read cache: {exc}")
            return

        for index, step in enumerate(recipe.phase_a):
            if cancelled.is_set():
                self._complete_run(manifest, "cancelled")
                return

            set_step_context(step.step_id, step.tool)
            started_at = utc_now()

            manifest.current_step_index = index
            manifest.updated_at = utc_now()
            self._persist_manifest(manifest)

            try:
                resolved_args = self._ref_resolver.resolve_args(step.args, task_node, cache)
            except RefResolutionError as exc:
                self._record_failed_step(run_id, index, step, started_at, str(exc))
                self._complete_run(
                    manifest,
                    "failed",
                    f"Ref resolution failed at step '{step.step_id}': {exc}",
                )
                return

            result = await self._call_tool(manifest, index, step, resolved_args)
            if not result.ok:
                self._record_failed_step(
                    run_id, index, step, started_at, f"{result.error}: {result.output}"
                )
                self._complete_run(
                    manifest,
                    "failed",
                    f"Tool '{step.tool}' failed at step '{step.step_id}': {result.error}",
                )
                return

            slot = self._build_slot(result)
            cache[step.output_slot] = slot.model_dump(mode="json")
            try:
                self._run_store.write_cache(run_id, cache)
            except _PERSIST_ERRORS as exc:
                logger.warning("Failed to write cache after step %s: %s", step.step_id, exc)

            self._append_step(
                run_id,
                StepRecord(
                    step_index=index,
                    step_id=step.step_id,
                    phase="a",
                    tool=step.tool,
                    status="done",
                    output_slot=step.output_slot,
                    receipt_id=result.receipt_id,
                    output_hash=slot.sha256,
                    output_preview=slot.summary,
                    started_at=started_at,
                    completed_at=utc_now(),
                ),
            )
            logger.info("Run %s step %s (%s) completed", run_id, step.step_id, step.tool)

        set_step_context(None)
        if recipe.has_phase_b:
            # Phase B is declared but intentionally not executed
            manifest.phase = "a_complete"
        self._complete_run(manifest, "done")

    async def _call_tool(
        self,
        manifest: RunManifest,
        index: int,
        step: RecipeStep,
        resolved_args: dict[str, Any],
    ) -> ToolExecutionResult:
        if not step.tool:
            return ToolExecutionResult.failure("missing_tool", "Step declares no tool")

        call = ToolCall(name=step.tool, args=resolved_args)
        context = ToolExecutionContext(
            session_id=manifest.session_id,
            task_id=manifest.run_id,
            turn_id=f"step-{index}",
        )
        try:
            return await self._tool_executor.execute(call, context)
        except Exception as exc:
            logger.error("Tool '%s' raised at step %s: %s", step.tool, step.step_id, exc)
            return ToolExecutionResult.failure(type(exc).__name__, str(exc))

    def _build_slot(self, result: ToolExecutionResult) -> CacheSlot:
        output = result.output or ""
        try:
            data: Any = json.loads(output)
        except ValueError:
            # Not JSON: keep raw text, reachable by hash/summary only
            data = output
        return CacheSlot(
            receipt_id=result.receipt_id,
            sha256=content_hash(output),
            summary=truncate(output, self._preview_chars),
            data=data,
        )

    def _record_failed_step(
        self,
        run_id: str,
        index: int,
        step: RecipeStep,
        started_at: datetime,
        error: str,
    ) -> None:
        self._append_step(
            run_id,
            StepRecord(
                step_index=index,
                step_id=step.step_id,
                phase="a",
                tool=step.tool,
                status="failed",
                output_slot=step.output_slot,
                started_at=started_at,
                completed_at=utc_now(),
                error=error,
            ),
        )

    def _append_step(self, run_id: str, record: StepRecord) -> None:
        try:
            self._run_store.append_step(run_id, record)
        except _PERSIST_ERRORS as exc:
            logger.warning("Failed to append step record for %s: %s", record.step_id, exc)

    def _persist_manifest(self, manifest: RunManifest) -> None:
        try:
            self._run_store.update_manifest(manifest.run_id, manifest)
        except _PERSIST_ERRORS as exc:
            logger.warning("Failed to update manifest for %s: %s", manifest.run_id, exc)

    def _complete_run(
        self, manifest: RunManifest, status: RunStatus, error: str | None = None
    ) -> None:
        now = utc_now()
        manifest.status = status
        manifest.updated_at = now
        manifest.completed_at = now
        if error is not None:
            manifest.error = error
        self._persist_manifest(manifest)
        self._release(manifest.run_id)

        if status == "failed":
            logger.error("Run %s failed: %s", manifest.run_id, error)
        else:
            logger.info("Run %s finished: %s (phase %s)", manifest.run_id, status, manifest.phase)

    def _release(self, run_id: str) -> None:
        with self._lock:
            self._cancel_flags.pop(run_id, None)

    def _forget_task(self, run_id: str) -> None:
        with self._lock:
            self._tasks.pop(run_id, None)


def content_hash(text: str) -> str:
    """Return "sha256:<hex>" of the UTF-8 text."""
    return "sha256:" + hashlib.sha256(text.encode("utf-8")).hexdigest()


def truncate(text: str, max_len: int) -> str:
    """Cut text to max_len characters, marking the cut with '...'."""
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."
