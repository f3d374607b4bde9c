"""Configuration for pnpm-changelog.

The configuration lives in `changelog.config.json` at the workspace root and
uses camelCase keys so existing config files keep working. Missing keys take
their defaults; keys with the wrong type are rejected.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigValidationError

CONFIG_FILE_NAME = "changelog.config.json"

DEFAULT_COMMIT_TYPES = ["feat", "fix", "docs", "style", "refactor", "test", "chore"]
DEFAULT_EXCLUDE_PATTERNS = ["node_modules/**", "dist/**", "*.lock", ".git/**"]


class ChangelogConfig(BaseModel):
    """Settings read from changelog.config.json.

    Attributes:
        output_dir: Directory, relative to each package, holding CHANGELOG.md.
        cache_dir: Directory, relative to the workspace root, holding cache.json.
        commit_types: Conventional commit types included in changelogs.
        include_all_commits: If True, ignore `commit_types` and include everything.
        conventional_commits: If False, commit types are not parsed.
        dependency_update: If True, dependents' specifiers are rewritten on bump.
        exclude_patterns: Changed files matching these globs do not attribute
                          a commit to a package.
        custom_template: Reserved for a user-supplied entry template.
    """

    model_config = ConfigDict(strict=True, populate_by_name=True, extra="ignore")

    output_dir: str = Field(default=".", alias="outputDir", min_length=1)
    cache_dir: str = Field(default=".changelog", alias="cacheDir", min_length=1)
    commit_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_COMMIT_TYPES), alias="commitTypes"
    )
    include_all_commits: bool = Field(default=False, alias="includeAllCommits")
    conventional_commits: bool = Field(default=True, alias="conventionalCommits")
    dependency_update: bool = Field(default=True, alias="dependencyUpdate")
    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS), alias="excludePatterns"
    )
    custom_template: str | None = Field(default=None, alias="customTemplate")

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True, exclude_none=True), indent=2)


def config_path(root: Path) -> Path:
    return root / CONFIG_FILE_NAME


def has_config_file(root: Path) -> bool:
    return config_path(root).is_file()


def load_config(root: Path) -> ChangelogConfig:
    """Load changelog.config.json, falling back to defaults if it is absent.

    Raises:
        ConfigValidationError: If the file is not valid JSON or a field has
            the wrong type.
    """
    path = config_path(root)
    if not path.is_file():
        return ChangelogConfig()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigValidationError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigValidationError(f"{path} must contain a JSON object")

    try:
        return ChangelogConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigValidationError(f"Invalid configuration in {path}:\n{exc}") from exc


def save_config(root: Path, config: ChangelogConfig) -> Path:
    """Write a configuration to changelog.config.json and return its path."""
    path = config_path(root)
    path.write_text(config.to_json(), encoding="utf-8")
    return path


def create_config_file(root: Path) -> bool:
    """Write the default configuration unless a config file already exists.

    Returns:
        True if a file was created.
    """
    if has_config_file(root):
        return False
    save_config(root, ChangelogConfig())
    return True


def reset_config(root: Path) -> ChangelogConfig:
    """Overwrite changelog.config.json with the defaults."""
    config = ChangelogConfig()
    save_config(root, config)
    return config
