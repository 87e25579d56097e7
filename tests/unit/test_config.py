"""Unit tests for Settings validation and the YAML-aware loader."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from mindmesh.config.loader import _flatten, load_config, load_settings
from mindmesh.config.settings import Settings


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        "chunking:\n"
        "  min_size: 100\n"
        "  target_size: 400\n"
        "  max_size: 500\n"
        "retrieval:\n"
        "  default_limit: 3\n"
        "storage:\n"
        "  backend: memory\n"
        "database_path: custom.db\n"
        "unknown_section:\n"
        "  anything: 1\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    # Keep a developer's .env and shell exports out of these tests.
    monkeypatch.chdir(tmp_path)
    for name in ("CHUNK_MIN_SIZE", "STORAGE_BACKEND", "RETRIEVAL_DEFAULT_LIMIT", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)


class TestLoader:
    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert load_config(str(tmp_path / "absent.yaml")) == {}

    def test_sections_flattened_with_prefixes(self) -> None:
        flat = _flatten({"chunking": {"min_size": 1}, "log": {"level": "DEBUG"}, "database_path": "x"})
        assert flat == {"chunk_min_size": 1, "log_level": "DEBUG", "database_path": "x"}

    def test_yaml_values_applied(self, config_file: Path) -> None:
        settings = load_settings(str(config_file))

        assert settings.chunk_min_size == 100
        assert settings.chunk_max_size == 500
        assert settings.retrieval_default_limit == 3
        assert settings.storage_backend == "memory"
        assert settings.database_path == "custom.db"

    def test_environment_beats_yaml(self, config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHUNK_MIN_SIZE", "150")

        assert load_settings(str(config_file)).chunk_min_size == 150

    def test_overrides_beat_everything(self, config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RETRIEVAL_DEFAULT_LIMIT", "4")

        settings = load_settings(str(config_file), retrieval_default_limit=7)

        assert settings.retrieval_default_limit == 7

    def test_repository_config_loads(self, project_root: Path) -> None:
        settings = load_settings(str(project_root / "config" / "config.yaml"))
        assert settings.chunk_target_size == 800
        assert settings.retrieval_max_limit == 20


class TestSettingsValidation:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)

        assert (settings.chunk_min_size, settings.chunk_target_size, settings.chunk_max_size) == (200, 800, 1000)
        assert settings.retrieval_default_limit == 5
        assert settings.circuit_breaker_enabled is False
        assert settings.get_available_llm_providers() == []

    @pytest.mark.parametrize(
        "overrides",
        [
            {"chunk_min_size": 900},
            {"chunk_max_size": 500},
            {"enrichment_strategy": "fancy"},
            {"storage_backend": "postgres"},
            {"retrieval_default_limit": 50},
        ],
    )
    def test_invalid_combinations_rejected(self, overrides: dict) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)

    def test_available_providers_follow_credentials(self) -> None:
        settings = Settings(_env_file=None, anthropic_api_key="a", openai_api_key="o")
        assert settings.get_available_llm_providers() == ["anthropic", "openai"]
