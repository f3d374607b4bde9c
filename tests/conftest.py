"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from pnpm_changelog.models import Commit, PackageInfo
from pnpm_changelog.workspace import discover_packages

WorkspaceFactory = Callable[[dict[str, dict[str, Any]]], Path]


def write_manifest(package_dir: Path, manifest: dict[str, Any]) -> Path:
    package_dir.mkdir(parents=True, exist_ok=True)
    path = package_dir / "package.json"
    path.write_text(json.dumps(manifest, indent=2) + "\n")
    return path


def read_manifest(root: Path, rel: str) -> dict[str, Any]:
    return json.loads((root / rel / "package.json").read_text())


def make_commit(
    hash: str,
    message: str,
    files: tuple[str, ...] = (),
    type: str | None = None,
) -> Commit:
    return Commit(
        hash=hash,
        message=message,
        author="Dev <dev@example.com>",
        date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        files=files,
        type=type,
    )


@pytest.fixture
def make_workspace(tmp_path: Path) -> WorkspaceFactory:
    """Return a factory that lays out a pnpm workspace under tmp_path.

    Keys are package directories relative to the root, values are the
    package.json contents.
    """

    def factory(manifests: dict[str, dict[str, Any]]) -> Path:
        (tmp_path / "pnpm-workspace.yaml").write_text(
            "packages:\n  - 'packages/*'\n"
        )
        for rel, manifest in manifests.items():
            write_manifest(tmp_path / rel, manifest)
        return tmp_path

    return factory


@pytest.fixture
def abc_workspace(make_workspace: WorkspaceFactory) -> Path:
    """a depends on b@1.0.0, c depends on b@workspace:*."""
    return make_workspace(
        {
            "packages/a": {
                "name": "a",
                "version": "1.0.0",
                "dependencies": {"b": "1.0.0"},
            },
            "packages/b": {"name": "b", "version": "1.0.0"},
            "packages/c": {
                "name": "c",
                "version": "1.0.0",
                "dependencies": {"b": "workspace:*"},
            },
        }
    )


@pytest.fixture
def abc_packages(abc_workspace: Path) -> dict[str, PackageInfo]:
    return discover_packages(abc_workspace)
