# tests/unit/config/test_settings.py — v2
"""Tests for config/settings.py — typed Settings and validation rules."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from controlroom.config.settings import ConfigurationError, Settings, load_settings


class TestSettingsDefaults:
    def test_default_workspace(self):
        s = Settings(_env_file=None)
        assert s.workspace_root == Path("~/.controlroom/workspace")
        assert s.workspace_path == Path("~/.controlroom/workspace").expanduser()

    def test_default_pipeline(self):
        s = Settings(_env_file=None)
        assert s.pipeline_preview_chars == 200
        assert s.pipeline_session_prefix == "pipeline-"

    def test_default_logging(self):
        s = Settings(_env_file=None)
        assert s.log_level == "INFO"
        assert s.log_format == "json"
        assert s.log_file is None


class TestSettingsPaths:
    def test_derived_dirs(self, tmp_path: Path):
        s = Settings(_env_file=None, workspace_root=tmp_path)
        assert s.recipes_dir == tmp_path / "recipes"
        assert s.runs_dir == tmp_path / "runs"


class TestSettingsValidation:
    def test_preview_chars_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, pipeline_preview_chars=0)

    def test_blank_session_prefix(self):
        with pytest.raises(ConfigurationError, match="PIPELINE_SESSION_PREFIX"):
            Settings(_env_file=None, pipeline_session_prefix="  ")

    def test_bad_rotation_with_log_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="LOG_ROTATION"):
            Settings(_env_file=None, log_file=tmp_path / "x.log", log_rotation="lots")

    def test_bad_rotation_ignored_without_log_file(self):
        s = Settings(_env_file=None, log_rotation="lots")
        assert s.log_rotation == "lots"

    def test_negative_retention(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="LOG_RETENTION"):
            Settings(_env_file=None, log_file=tmp_path / "x.log", log_retention=-1)

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_format="xml")


class TestEnvironment:
    def test_reads_env_vars(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("WORKSPACE_ROOT", str(tmp_path))
        monkeypatch.setenv("PIPELINE_PREVIEW_CHARS", "50")
        s = Settings(_env_file=None)
        assert s.workspace_root == tmp_path
        assert s.pipeline_preview_chars == 50

    def test_reads_env_file(self, tmp_path: Path):
        env = tmp_path / ".env"
        env.write_text("LOG_FORMAT=text\nPIPELINE_SESSION_PREFIX=job-\n")
        s = Settings(_env_file=env)
        assert s.log_format == "text"
        assert s.pipeline_session_prefix == "job-"


class TestLoadSettings:
    def test_overrides(self, tmp_path: Path):
        s = load_settings(_env_file=None, workspace_root=tmp_path, log_level="DEBUG")
        assert s.workspace_root == tmp_path
        assert s.log_level == "DEBUG"
