# src/main.py — v2
"""CLI entry point — inspect recipes and runs in a workspace.

Usage:
    controlroom recipes
    controlroom runs [--status STATUS] [--recipe RECIPE_ID]
    controlroom show <run_id>
    controlroom steps <run_id>
    controlroom slot <run_id> <slot>

All commands print JSON on stdout; logs go to stderr. Starting runs needs
a tool executor and is done through api/facade.py by the host service.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from controlroom.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from controlroom.config.settings import ConfigurationError, load_settings
    from controlroom.logging.logger import setup_logging_from_settings

    overrides: dict[str, Any] = {}
    if args.workspace is not None:
        overrides["workspace_root"] = args.workspace
    try:
        settings = load_settings(**overrides)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    setup_logging_from_settings(settings, level="DEBUG" if args.verbose else None)

    try:
        return args.func(args, settings)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="controlroom",
        description=f"Control Room pipeline v{__version__}: recipe and run inspection",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "-w", "--workspace", type=Path, default=None,
        help="Workspace root (default: WORKSPACE_ROOT from settings)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- recipes ---
    p_recipes = subparsers.add_parser(
        "recipes", help="List merged bundled + project recipes",
    )
    p_recipes.set_defaults(func=_cmd_recipes)

    # --- runs ---
    p_runs = subparsers.add_parser("runs", help="List runs, newest first")
    p_runs.add_argument("--status", default=None, help="Filter by status")
    p_runs.add_argument("--recipe", default=None, help="Filter by recipe_id")
    p_runs.set_defaults(func=_cmd_runs)

    # --- show ---
    p_show = subparsers.add_parser(
        "show", help="Show manifest, steps and cache summary of a run",
    )
    p_show.add_argument("run_id")
    p_show.set_defaults(func=_cmd_show)

    # --- steps ---
    p_steps = subparsers.add_parser("steps", help="Print the full step log of a run")
    p_steps.add_argument("run_id")
    p_steps.set_defaults(func=_cmd_steps)

    # --- slot ---
    p_slot = subparsers.add_parser("slot", help="Print one cache slot of a run")
    p_slot.add_argument("run_id")
    p_slot.add_argument("slot")
    p_slot.set_defaults(func=_cmd_slot)

    return parser


def _cmd_recipes(args: argparse.Namespace, settings: Any) -> int:
    from controlroom.pipeline.registry import RecipeRegistry

    registry = RecipeRegistry(project_dir=settings.recipes_dir)
    rows = [
        {
            "recipe_id": recipe_id,
            "phase_a_steps": len(recipe.phase_a),
            "phase_b_steps": len(recipe.phase_b),
        }
        for recipe_id, recipe in sorted(registry.all().items())
    ]
    _print_json(rows)
    return 0


def _cmd_runs(args: argparse.Namespace, settings: Any) -> int:
    from controlroom.storage.reader import summarize_runs
    from controlroom.storage.run_store import RunStore

    store = RunStore(settings.runs_dir)
    runs = summarize_runs(store, status=args.status, recipe_id=args.recipe)
    _print_json([r.model_dump(mode="json") for r in runs])
    return 0


def _cmd_show(args: argparse.Namespace, settings: Any) -> int:
    from controlroom.storage.reader import load_run_detail
    from controlroom.storage.run_store import RunStore

    detail = load_run_detail(RunStore(settings.runs_dir), args.run_id)
    if detail is None:
        logger.error("Run not found: %s", args.run_id)
        return 1
    _print_json(detail.model_dump(mode="json"))
    return 0


def _cmd_steps(args: argparse.Namespace, settings: Any) -> int:
    from controlroom.storage.run_store import RunStore

    store = RunStore(settings.runs_dir)
    if store.read_manifest(args.run_id) is None:
        logger.error("Run not found: %s", args.run_id)
        return 1
    _print_json([s.model_dump(mode="json") for s in store.read_steps(args.run_id)])
    return 0


def _cmd_slot(args: argparse.Namespace, settings: Any) -> int:
    from controlroom.storage.reader import load_cache_slot
    from controlroom.storage.run_store import RunStore

    view = load_cache_slot(RunStore(settings.runs_dir), args.run_id, args.slot)
    if view is None:
        logger.error("Cache slot not found: %s/%s", args.run_id, args.slot)
        return 1
    _print_json(view.model_dump(mode="json"))
    return 0


def _print_json(value: Any) -> None:
    print(json.dumps(value, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    sys.exit(main())
