# src/pipeline/models.py — v1
"""Recipe domain models: Recipe, RecipeStep.

Recipes are user-authored JSON. Step argument templates stay as plain
JSON trees (dict/list/scalars) because their shape is only known at load
time; pipeline/ref_resolver.py walks them.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RecipeStep(BaseModel):
    """One declared unit of work inside a recipe phase."""

    model_config = ConfigDict(extra="allow")

    step_id: str = ""
    tool: str | None = None
    output_slot: str = ""
    args: dict[str, Any] | None = None


class Recipe(BaseModel):
    """A named sequence of Phase A tool steps plus an unexecuted Phase B."""

    model_config = ConfigDict(extra="allow")

    recipe_id: str
    phase_a: list[RecipeStep] = Field(default_factory=list)
    phase_b: list[RecipeStep] = Field(default_factory=list)

    @field_validator("recipe_id")
    @classmethod
    def validate_recipe_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("recipe_id must not be blank")
        return v

    @model_validator(mode="after")
    def default_step_ids(self) -> Recipe:
        """Give unnamed steps a positional id (step_<index>)."""
        for phase in (self.phase_a, self.phase_b):
            for i, step in enumerate(phase):
                if not step.step_id:
                    step.step_id = f"step_{i}"
        return self

    @property
    def total_steps(self) -> int:
        """Number of declared steps across both phases."""
        return len(self.phase_a) + len(self.phase_b)

    @property
    def has_phase_b(self) -> bool:
        return bool(self.phase_b)
