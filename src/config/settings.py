# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings: where the
workspace lives, how step previews are bounded, and how logging is wired.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from controlroom.logging.handlers import parse_size
from controlroom.storage import layout


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Workspace ===
    # Project recipes live under {workspace_root}/recipes/*.json,
    # run state under {workspace_root}/runs/{run_id}/.
    workspace_root: Path = Path("~/.controlroom/workspace")

    # === Pipeline ===
    pipeline_preview_chars: int = 200
    pipeline_session_prefix: str = "pipeline-"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("pipeline_preview_chars")
    @classmethod
    def validate_preview_chars(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("pipeline_preview_chars must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if not self.pipeline_session_prefix.strip():
            errors.append("PIPELINE_SESSION_PREFIX must not be blank")

        if self.log_file is not None:
            try:
                parse_size(self.log_rotation)
            except ValueError as exc:
                errors.append(f"LOG_ROTATION invalid: {exc}")
            if self.log_retention < 0:
                errors.append("LOG_RETENTION must be >= 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def workspace_path(self) -> Path:
        """Workspace root with ~ expanded."""
        return self.workspace_root.expanduser()

    @property
    def recipes_dir(self) -> Path:
        """Directory holding project recipe overrides."""
        return layout.recipes_dir(self.workspace_path)

    @property
    def runs_dir(self) -> Path:
        """Directory holding one sub-directory per run."""
        return layout.runs_dir(self.workspace_path)


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
