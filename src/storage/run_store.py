# src/storage/run_store.py — v2
"""Crash-safe persistence for pipeline runs.

Each run owns {runs_root}/{run_id}/ holding run.json, steps.jsonl and
cache.json (see storage/layout.py). run.json and cache.json are always
written to a sibling .tmp file and renamed over the target, so a reader
sees either the old or the new file, never a torn one. steps.jsonl is
only ever appended to.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from controlroom.storage import layout
from controlroom.storage.models import RunManifest, StepRecord

logger = logging.getLogger(__name__)


class RunStoreError(Exception):
    """Raised when run state cannot be created or located."""


def generate_run_id() -> str:
    """Generate a run_id: run_{12 hex chars of a uuid4}."""
    return f"run_{uuid.uuid4().hex[:12]}"


class RunStore:
    """Per-run durable state, isolated by run_id.

    Args:
        runs_root: Directory holding one sub-directory per run.
    """

    def __init__(self, runs_root: Path) -> None:
        self._root = Path(runs_root).expanduser()

    @property
    def runs_root(self) -> Path:
        return self._root

    def generate_run_id(self) -> str:
        return generate_run_id()

    def create_run(self, manifest: RunManifest) -> Path:
        """Create the run directory, initial manifest and empty cache.

        Raises:
            RunStoreError: If the run already exists or anything fails to
                write. No partially created run is left behind silently.
        """
        run_path = self._run_path(manifest.run_id)
        try:
            run_path.mkdir(parents=True, exist_ok=False)
        except FileExistsError as exc:
            raise RunStoreError(f"Run already exists: {manifest.run_id}") from exc
        except OSError as exc:
            raise RunStoreError(f"Cannot create run {manifest.run_id}: {exc}") from exc

        try:
            _write_json_atomic(layout.manifest_path(run_path), _dump_manifest(manifest))
            _write_json_atomic(layout.cache_path(run_path), "{}")
        except OSError as exc:
            raise RunStoreError(f"Cannot initialize run {manifest.run_id}: {exc}") from exc

        logger.info("Run created: %s", manifest.run_id)
        return run_path

    def update_manifest(self, run_id: str, manifest: RunManifest) -> None:
        """Replace run.json atomically.

        Raises:
            RunStoreError: If the run directory does not exist.
            OSError: If the write itself fails.
        """
        run_path = self._existing_run_path(run_id)
        _write_json_atomic(layout.manifest_path(run_path), _dump_manifest(manifest))

    def read_manifest(self, run_id: str) -> RunManifest | None:
        """Read run.json, or None if the run has no manifest."""
        path = layout.manifest_path(self._run_path(run_id))
        if not path.exists():
            return None
        return RunManifest.model_validate_json(path.read_text(encoding="utf-8"))

    def append_step(self, run_id: str, record: StepRecord) -> None:
        """Append one record to steps.jsonl."""
        run_path = self._existing_run_path(run_id)
        line = record.model_dump_json()
        with layout.steps_path(run_path).open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
            fh.flush()
            os.fsync(fh.fileno())

    def read_steps(self, run_id: str) -> list[StepRecord]:
        """Read all step records in append order.

        A malformed line (e.g. a torn tail left by a crash mid-append) is
        logged and skipped.
        """
        path = layout.steps_path(self._run_path(run_id))
        if not path.exists():
            return []

        records: list[StepRecord] = []
        for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
            if not line.strip():
                continue
            try:
                records.append(StepRecord.model_validate_json(line))
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed step record %s:%d (%s)", run_id, lineno, exc
                )
        return records

    def write_cache(self, run_id: str, cache: dict[str, Any]) -> None:
        """Replace cache.json atomically."""
        run_path = self._existing_run_path(run_id)
        _write_json_atomic(layout.cache_path(run_path), json.dumps(cache, indent=2))

    def read_cache(self, run_id: str) -> dict[str, Any]:
        """Read cache.json, or an empty cache if none was written."""
        path = layout.cache_path(self._run_path(run_id))
        if not path.exists():
            return {}
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise RunStoreError(f"Cache for {run_id} is not an object")
        return data

    def list_runs(
        self, status: str | None = None, recipe_id: str | None = None
    ) -> list[RunManifest]:
        """List run manifests, newest first.

        Args:
            status: Optional case-insensitive status filter.
            recipe_id: Optional case-insensitive recipe filter.
        """
        manifests: list[RunManifest] = []
        if not self._root.is_dir():
            return manifests

        for run_path in self._root.iterdir():
            path = layout.manifest_path(run_path)
            if not run_path.is_dir() or not path.exists():
                continue
            # ValueError covers ValidationError and UnicodeDecodeError
            try:
                manifest = RunManifest.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("Failed to read run manifest: %s (%s)", run_path.name, exc)
                continue
            if status and manifest.status.lower() != status.lower():
                continue
            if recipe_id and manifest.recipe_id.lower() != recipe_id.lower():
                continue
            manifests.append(manifest)

        manifests.sort(key=lambda m: m.created_at, reverse=True)
        return manifests

    def _run_path(self, run_id: str) -> Path:
        if not run_id or "/" in run_id or "\\" in run_id or run_id in (".", ".."):
            raise RunStoreError(f"Invalid run_id: {run_id!r}")
        return layout.run_dir(self._root, run_id)

    def _existing_run_path(self, run_id: str) -> Path:
        run_path = self._run_path(run_id)
        if not run_path.is_dir():
            raise RunStoreError(f"Run directory not found: {run_id}")
        return run_path


def _dump_manifest(manifest: RunManifest) -> str:
    return manifest.model_dump_json(indent=2)


def _write_json_atomic(target: Path, content: str) -> None:
    """Write to {target}.tmp, fsync, then rename over target."""
    tmp = layout.tmp_path_for(target)
    with tmp.open("w", encoding="utf-8") as fh:
        fh.write(content)
        fh.flush()
        os.fsync(fh.fileno())
    os.replace(tmp, target)
