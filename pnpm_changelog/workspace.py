"""pnpm workspace discovery and package.json reading/writing.

Member directories come from the `packages:` globs in pnpm-workspace.yaml.
Manifests are rewritten with the original key order and two-space
indentation so version bumps produce minimal, diff-friendly changes.
"""

from __future__ import annotations

import glob
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .errors import ManifestError, WorkspaceEnvironmentError
from .models import PackageInfo
from .shell import warn
from .specifiers import parse_specifier, rewrite_specifier

WORKSPACE_FILE = "pnpm-workspace.yaml"
MANIFEST_FILE = "package.json"

# package.json key → PackageInfo attribute
DEPENDENCY_FIELDS = {
    "dependencies": "dependencies",
    "devDependencies": "dev_dependencies",
    "peerDependencies": "peer_dependencies",
}


def is_pnpm_workspace(root: Path) -> bool:
    return (root / WORKSPACE_FILE).is_file()


def load_workspace_globs(root: Path) -> list[str]:
    """Read member glob patterns from pnpm-workspace.yaml.

    Raises:
        WorkspaceEnvironmentError: If the file is missing or malformed.
    """
    workspace_file = root / WORKSPACE_FILE
    if not workspace_file.is_file():
        raise WorkspaceEnvironmentError(
            f"{WORKSPACE_FILE} not found in {root}. Run from a pnpm workspace root."
        )
    try:
        doc = yaml.safe_load(workspace_file.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise WorkspaceEnvironmentError(f"Failed to parse {WORKSPACE_FILE}: {exc}") from exc

    patterns = doc.get("packages", []) if isinstance(doc, dict) else []
    if not isinstance(patterns, list):
        raise WorkspaceEnvironmentError(
            f"'packages' in {WORKSPACE_FILE} must be a list of glob patterns"
        )
    return [str(p) for p in patterns]


def load_manifest(path: Path) -> dict[str, Any]:
    """Load a package.json file, preserving key order."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ManifestError(f"Failed to read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"{path} does not contain a JSON object")
    return data


def save_manifest(path: Path, data: Mapping[str, Any]) -> None:
    """Write a package.json file with two-space indentation and a final newline."""
    try:
        path.write_text(
            json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )
    except OSError as exc:
        raise ManifestError(f"Failed to write {path}: {exc}") from exc


def manifest_path(root: Path, package: PackageInfo) -> Path:
    return root / package.path / MANIFEST_FILE


def read_package_info(root: Path, package_dir: Path) -> PackageInfo | None:
    """Build a PackageInfo from a member directory.

    Returns None (with a warning) if the manifest is missing, unreadable or
    has no name, so one broken member does not abort discovery.
    """
    path = package_dir / MANIFEST_FILE
    if not path.is_file():
        return None
    try:
        data = load_manifest(path)
    except ManifestError as exc:
        warn(str(exc))
        return None

    name = data.get("name")
    if not isinstance(name, str) or not name:
        warn(f"{path} has no package name, skipping")
        return None

    deps = {
        attr: {str(k): str(v) for k, v in (data.get(field) or {}).items()}
        for field, attr in DEPENDENCY_FIELDS.items()
    }
    return PackageInfo(
        name=name,
        version=str(data.get("version") or "0.0.0"),
        path=package_dir.relative_to(root).as_posix(),
        **deps,
    )


def _expand_members(root: Path, patterns: list[str]) -> list[Path]:
    """Expand workspace globs to member directories, honouring `!` exclusions."""
    included: dict[Path, None] = {}
    excluded: set[Path] = set()
    for pattern in patterns:
        negated = pattern.startswith("!")
        pattern = pattern[1:] if negated else pattern
        for match in sorted(glob.glob(pattern, root_dir=root, recursive=True)):
            p = (root / match).resolve()
            if not p.is_dir() or "node_modules" in p.relative_to(root.resolve()).parts:
                continue
            if negated:
                excluded.add(p)
            else:
                included[p] = None
    return [p for p in included if p not in excluded]


def discover_packages(root: Path) -> dict[str, PackageInfo]:
    """Scan the workspace and discover all packages.

    Reads the `packages:` globs from pnpm-workspace.yaml to find package
    directories, then extracts name, version and the three dependency maps
    from each member's package.json. A pattern that matches nothing simply
    contributes no packages.

    Returns:
        Map of package name to PackageInfo.
    """
    root = root.resolve()
    packages: dict[str, PackageInfo] = {}
    for member in _expand_members(root, load_workspace_globs(root)):
        info = read_package_info(root, member)
        if info is None:
            continue
        if info.name in packages:
            warn(
                f"Duplicate package name {info.name!r} in {info.path}, "
                f"keeping {packages[info.name].path}"
            )
            continue
        packages[info.name] = info
    return packages


def write_package_version(root: Path, package: PackageInfo, new_version: str) -> None:
    """Persist a new version into package.json and the in-memory record."""
    path = manifest_path(root, package)
    data = load_manifest(path)
    data["version"] = new_version
    save_manifest(path, data)
    package.version = new_version


def _rewrite_map(deps: dict[str, str], new_versions: Mapping[str, str]) -> list[str]:
    """Rewrite specifiers in one dependency map in place.

    Returns the names that were changed.
    """
    changed: list[str] = []
    for dep, new_version in new_versions.items():
        current = deps.get(dep)
        if current is None:
            continue
        rewritten = rewrite_specifier(parse_specifier(current), new_version)
        if rewritten is not None and rewritten != current:
            deps[dep] = rewritten
            changed.append(dep)
    return changed


def rewrite_dependency_versions(
    root: Path, package: PackageInfo, new_versions: Mapping[str, str]
) -> list[str]:
    """Point a package's internal dependency specifiers at new versions.

    Updates package.json and the in-memory record. Each declared specifier
    is rewritten according to its kind: workspace wildcards and protocol
    specifiers stay byte-identical, `workspace:<version>` keeps its prefix,
    plain ranges become the bare new version. Names not declared in a map
    are never added to it.

    Args:
        root: Workspace root.
        package: Package whose manifest is rewritten.
        new_versions: Map of dependency name → new version.

    Returns:
        Names of dependencies whose specifier changed in package.json.
    """
    relevant = {dep: v for dep, v in new_versions.items() if dep in package.dependency_names()}
    if not relevant:
        return []

    path = manifest_path(root, package)
    data = load_manifest(path)
    changed: dict[str, None] = {}
    for field, attr in DEPENDENCY_FIELDS.items():
        on_disk = data.get(field)
        if isinstance(on_disk, dict):
            changed.update(dict.fromkeys(_rewrite_map(on_disk, relevant)))
        _rewrite_map(getattr(package, attr), relevant)

    if changed:
        save_manifest(path, data)
    return list(changed)
