"""Tests for pnpm_changelog.config."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pnpm_changelog.config import (
    ChangelogConfig,
    config_path,
    create_config_file,
    load_config,
    reset_config,
    save_config,
)
from pnpm_changelog.errors import ConfigValidationError


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults_when_missing(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)

        assert config.output_dir == "."
        assert config.cache_dir == ".changelog"
        assert config.commit_types == ["feat", "fix", "docs", "style", "refactor", "test", "chore"]
        assert config.include_all_commits is False
        assert config.conventional_commits is True
        assert config.dependency_update is True
        assert "node_modules/**" in config.exclude_patterns

    def test_camel_case_keys(self, tmp_path: Path) -> None:
        config_path(tmp_path).write_text(
            json.dumps({"outputDir": "docs", "includeAllCommits": True, "commitTypes": ["feat"]})
        )

        config = load_config(tmp_path)

        assert config.output_dir == "docs"
        assert config.include_all_commits is True
        assert config.commit_types == ["feat"]
        assert config.cache_dir == ".changelog"

    def test_unknown_keys_ignored(self, tmp_path: Path) -> None:
        config_path(tmp_path).write_text(json.dumps({"somethingElse": 1}))
        assert load_config(tmp_path) == ChangelogConfig()

    @pytest.mark.parametrize(
        "data",
        [
            {"commitTypes": "feat"},
            {"includeAllCommits": "yes"},
            {"outputDir": 3},
            {"excludePatterns": [1, 2]},
        ],
    )
    def test_wrong_types_rejected(self, tmp_path: Path, data: dict) -> None:
        config_path(tmp_path).write_text(json.dumps(data))
        with pytest.raises(ConfigValidationError):
            load_config(tmp_path)

    def test_invalid_json_rejected(self, tmp_path: Path) -> None:
        config_path(tmp_path).write_text("{nope")
        with pytest.raises(ConfigValidationError, match="Invalid JSON"):
            load_config(tmp_path)

    def test_non_object_rejected(self, tmp_path: Path) -> None:
        config_path(tmp_path).write_text("[]")
        with pytest.raises(ConfigValidationError):
            load_config(tmp_path)


class TestConfigFile:
    """Tests for writing changelog.config.json."""

    def test_create_does_not_overwrite(self, tmp_path: Path) -> None:
        assert create_config_file(tmp_path) is True
        config_path(tmp_path).write_text(json.dumps({"outputDir": "docs"}))

        assert create_config_file(tmp_path) is False
        assert load_config(tmp_path).output_dir == "docs"

    def test_written_with_camel_case(self, tmp_path: Path) -> None:
        save_config(tmp_path, ChangelogConfig(cache_dir=".cache"))

        data = json.loads(config_path(tmp_path).read_text())

        assert data["cacheDir"] == ".cache"
        assert "customTemplate" not in data

    def test_reset(self, tmp_path: Path) -> None:
        save_config(tmp_path, ChangelogConfig(output_dir="docs"))

        reset_config(tmp_path)

        assert load_config(tmp_path) == ChangelogConfig()
