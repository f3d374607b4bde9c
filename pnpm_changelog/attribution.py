"""Map commits to the workspace packages they touch."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from fnmatch import fnmatch
from pathlib import PurePosixPath

from .models import Commit, PackageInfo


def file_belongs_to(file_path: str, package_path: str) -> bool:
    """True if a repo-relative file lives inside a package directory.

    Matches whole path segments, so "packages/a" owns "packages/a/index.js"
    but not "packages/ab/index.js". A package at "." owns every file.
    """
    prefix = PurePosixPath(package_path).as_posix().rstrip("/")
    if prefix in ("", "."):
        return True
    return file_path == prefix or file_path.startswith(prefix + "/")


def is_excluded(file_path: str, patterns: Iterable[str]) -> bool:
    """True if the file path or its basename matches an exclude glob."""
    name = PurePosixPath(file_path).name
    return any(fnmatch(file_path, p) or fnmatch(name, p) for p in patterns)


def _package_relative(file_path: str, package_path: str) -> str:
    prefix = PurePosixPath(package_path).as_posix().rstrip("/")
    if prefix in ("", "."):
        return file_path
    return file_path[len(prefix) + 1 :]


def attribute_commit(
    commit: Commit,
    packages: Mapping[str, PackageInfo],
    exclude_patterns: Iterable[str] = (),
) -> list[str]:
    """Names of packages containing at least one file changed by `commit`.

    Exclude patterns are matched against the repo-relative path, the path
    relative to the package and the basename, so "dist/**" skips build
    output inside any package.
    """
    patterns = list(exclude_patterns)
    affected: list[str] = []
    for name, info in packages.items():
        for f in commit.files:
            if not file_belongs_to(f, info.path):
                continue
            if is_excluded(f, patterns) or is_excluded(
                _package_relative(f, info.path), patterns
            ):
                continue
            affected.append(name)
            break
    return affected


def group_commits_by_package(
    commits: Iterable[Commit],
    packages: Mapping[str, PackageInfo],
    exclude_patterns: Iterable[str] = (),
) -> dict[str, list[Commit]]:
    """Bucket commits by the packages they touch, preserving commit order.

    Every package gets an entry, possibly empty. A commit touching several
    packages appears in each of their lists.
    """
    patterns = list(exclude_patterns)
    grouped: dict[str, list[Commit]] = {name: [] for name in packages}
    for commit in commits:
        for name in attribute_commit(commit, packages, patterns):
            grouped[name].append(commit)
    return grouped
