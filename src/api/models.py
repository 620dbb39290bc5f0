# src/api/models.py — v2
"""API-level models: StartRunRequest, StartRunResponse, CancelRunResponse."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class StartRunRequest(BaseModel):
    """Body of a start-run request."""

    recipe_id: str
    args: dict[str, Any] = Field(default_factory=dict)
    description: str = ""

    @field_validator("recipe_id")
    @classmethod
    def validate_recipe_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("recipe_id is required")
        return v


class StartRunResponse(BaseModel):
    run_id: str
    status: str = "running"


class CancelRunResponse(BaseModel):
    """Outcome of a cancel request.

    cancelled is False when the run is unknown or already terminal.
    """

    run_id: str
    cancelled: bool
    status: str | None = None
