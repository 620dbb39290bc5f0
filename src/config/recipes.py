# src/config/recipes.py — v1
"""Declarative list of recipes bundled with the package.

Files are loaded from the controlroom.recipes package data by
pipeline/registry.py. Project recipes under {workspace}/recipes/ shadow
these by recipe_id.
"""

from __future__ import annotations

# Package holding the bundled recipe JSON files.
BUNDLED_RECIPES_PACKAGE = "controlroom.recipes"

# File names under BUNDLED_RECIPES_PACKAGE, loaded in this order.
BUNDLED_RECIPE_FILES: list[str] = [
    "creative_draft_scene.json",
]
