# src/storage/layout.py — v2
"""Workspace directory structure definition.

    {workspace}/
    ├── recipes/            project recipe overrides (*.json)
    └── runs/{run_id}/
        ├── run.json        manifest (status, timing, progress)
        ├── steps.jsonl     append-only step log
        └── cache.json      slot store, replaced atomically after each step
"""

from __future__ import annotations

from pathlib import Path

RECIPES_DIR = "recipes"
RUNS_DIR = "runs"

MANIFEST_FILE = "run.json"
STEPS_FILE = "steps.jsonl"
CACHE_FILE = "cache.json"

TMP_SUFFIX = ".tmp"


def recipes_dir(workspace: Path) -> Path:
    """Return the project recipes directory."""
    return workspace / RECIPES_DIR


def runs_dir(workspace: Path) -> Path:
    """Return the directory holding all runs."""
    return workspace / RUNS_DIR


# --- Run-level paths (relative to {workspace}/runs) ---

def run_dir(runs_root: Path, run_id: str) -> Path:
    return runs_root / run_id


def manifest_path(run_path: Path) -> Path:
    return run_path / MANIFEST_FILE


def steps_path(run_path: Path) -> Path:
    return run_path / STEPS_FILE


def cache_path(run_path: Path) -> Path:
    return run_path / CACHE_FILE


def tmp_path_for(target: Path) -> Path:
    """Sibling temp file used for write-then-rename."""
    return target.with_name(target.name + TMP_SUFFIX)
