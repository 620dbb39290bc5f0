# src/pipeline/registry.py — v2
"""Recipe registry — two-layer loading of recipe definitions.

Bundled recipes ship as package data (config/recipes.py lists them);
project recipes live under {workspace}/recipes/*.json and shadow bundled
ones sharing the same recipe_id. A bad file is logged and skipped, it
never aborts a reload.
"""

from __future__ import annotations

import json
import logging
import threading
from importlib import resources
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from controlroom.config.recipes import BUNDLED_RECIPE_FILES, BUNDLED_RECIPES_PACKAGE
from controlroom.pipeline.models import Recipe

logger = logging.getLogger(__name__)


class RecipeRegistryError(Exception):
    """Raised when a single recipe file cannot be turned into a Recipe."""


class RecipeRegistry:
    """Authoritative recipe_id -> Recipe map.

    A single lock guards the map. reload() builds the new map off to the
    side and swaps it in at the end, so readers never see a half-loaded
    registry.

    Args:
        project_dir: Directory of project recipe overrides (may not exist).
        bundled_files: Bundled recipe file names; defaults to
            BUNDLED_RECIPE_FILES.
        bundled_package: Package holding the bundled files.
        autoload: Run reload() on construction.
    """

    def __init__(
        self,
        project_dir: Path | None = None,
        bundled_files: list[str] | None = None,
        bundled_package: str = BUNDLED_RECIPES_PACKAGE,
        autoload: bool = True,
    ) -> None:
        self._project_dir = Path(project_dir) if project_dir is not None else None
        self._bundled_files = (
            list(bundled_files) if bundled_files is not None else list(BUNDLED_RECIPE_FILES)
        )
        self._bundled_package = bundled_package
        self._lock = threading.Lock()
        self._recipes: dict[str, Recipe] = {}
        if autoload:
            self.reload()

    @property
    def recipe_ids(self) -> list[str]:
        """Return sorted list of registered recipe ids."""
        with self._lock:
            return sorted(self._recipes)

    def reload(self) -> None:
        """Rebuild the map from bundled recipes, then project overrides."""
        recipes: dict[str, Recipe] = {}
        self._load_bundled(recipes)
        self._load_project(recipes)

        with self._lock:
            self._recipes = recipes

        logger.info("RecipeRegistry loaded %d recipes", len(recipes))

    def get(self, recipe_id: str) -> Recipe | None:
        """Get recipe by id, or None if not registered."""
        with self._lock:
            return self._recipes.get(recipe_id)

    def has(self, recipe_id: str) -> bool:
        with self._lock:
            return recipe_id in self._recipes

    def all(self) -> dict[str, Recipe]:
        """Return a snapshot copy of the merged map."""
        with self._lock:
            return {rid: r.model_copy(deep=True) for rid, r in self._recipes.items()}

    def _load_bundled(self, recipes: dict[str, Recipe]) -> None:
        package = resources.files(self._bundled_package)
        for filename in self._bundled_files:
            resource = package / filename
            try:
                text = resource.read_text(encoding="utf-8")
            except (FileNotFoundError, OSError) as exc:
                logger.warning("Bundled recipe not found: %s (%s)", filename, exc)
                continue
            try:
                recipe = parse_recipe(text)
            except RecipeRegistryError as exc:
                logger.warning("Failed to load bundled recipe %s: %s", filename, exc)
                continue
            recipes[recipe.recipe_id] = recipe
            logger.debug("Loaded bundled recipe: %s", recipe.recipe_id)

    def _load_project(self, recipes: dict[str, Recipe]) -> None:
        if self._project_dir is None or not self._project_dir.is_dir():
            return

        try:
            files = sorted(self._project_dir.glob("*.json"))
        except OSError as exc:
            logger.warning("Failed to scan project recipes dir: %s", exc)
            return

        for path in files:
            try:
                recipe = parse_recipe(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, RecipeRegistryError) as exc:
                logger.warning("Failed to load project recipe %s: %s", path.name, exc)
                continue
            if recipe.recipe_id in recipes:
                logger.info("Project recipe shadows bundled: %s", recipe.recipe_id)
            recipes[recipe.recipe_id] = recipe


def parse_recipe(text: str) -> Recipe:
    """Parse recipe JSON text into a Recipe.

    Raises:
        RecipeRegistryError: If the text is not JSON, lacks a recipe_id,
            or does not match the recipe shape.
    """
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RecipeRegistryError(f"invalid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise RecipeRegistryError("recipe must be a JSON object")
    recipe_id = data.get("recipe_id")
    if not isinstance(recipe_id, str) or not recipe_id.strip():
        raise RecipeRegistryError("missing recipe_id")

    try:
        return Recipe.model_validate(data)
    except ValidationError as exc:
        raise RecipeRegistryError(f"invalid recipe {recipe_id}: {exc}") from exc
