"""Apply a validated update plan to the workspace.

The order of operations matters:
1. Compute every old → new version before touching any file, so dependent
   specifier rewrites see the complete table regardless of write order.
2. Validate every new version (valid semver, strictly greater than the old
   one). A failure here aborts before anything is written.
3. Write each bumped package's new version into its package.json.
4. Rewrite the specifiers of every package that depends on a bumped one.

There is no rollback across packages: if writing package Q fails after
package P was written, P keeps its new version. Re-running the update
recovers, since package.json versions and changelog metadata are the
durable state.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path

from .errors import VersionValidationError
from .models import DependencyUpdate, PackageInfo, UpdateStrategy, VersionChange
from .planning import compute_version_changes
from .versions import is_valid_version, parse_version
from .workspace import rewrite_dependency_versions, write_package_version


def validate_version_change(change: VersionChange) -> None:
    """Ensure a computed version is valid semver and higher than the old one.

    Raises:
        VersionValidationError: Naming the package and attempted transition.
    """
    transition = f"{change.package}: {change.old} → {change.new}"
    if not is_valid_version(change.new):
        raise VersionValidationError(
            f"Invalid new version for {transition}",
            package=change.package,
            old=change.old,
            new=change.new,
        )
    if parse_version(change.new) <= parse_version(change.old):
        raise VersionValidationError(
            f"New version is not greater than the current one for {transition}",
            package=change.package,
            old=change.old,
            new=change.new,
        )


def write_version_changes(
    root: Path,
    packages: Mapping[str, PackageInfo],
    changes: Mapping[str, VersionChange],
    *,
    rewrite_dependents: bool = True,
) -> None:
    """Validate, then write a precomputed table of version changes.

    Every change is validated before the first write, so an invalid or
    non-increasing version leaves all manifests untouched.

    Raises:
        VersionValidationError: Before any write, if a change is invalid.
        ManifestError: If a package.json cannot be read or written.
    """
    for change in changes.values():
        validate_version_change(change)

    for name, change in changes.items():
        write_package_version(root, packages[name], change.new)
        print(f"  {name}: {change.old} → {change.new}")

    if not rewrite_dependents:
        return
    new_versions = {name: change.new for name, change in changes.items()}
    for name, info in packages.items():
        for dep in rewrite_dependency_versions(root, info, new_versions):
            print(f"  {name}: {dep} → {info.dependency_specifier(dep)}")


def apply_version_changes(
    root: Path,
    packages: Mapping[str, PackageInfo],
    strategies: Iterable[UpdateStrategy],
    *,
    rewrite_dependents: bool = True,
) -> list[VersionChange]:
    """Bump package versions and point dependents at them.

    Mutates both the package.json files under `root` and the PackageInfo
    records in `packages`.

    Args:
        root: Workspace root.
        packages: Map of package name → PackageInfo (updated in place).
        strategies: The update plan, already conflict-checked by the caller.
        rewrite_dependents: If False, only versions are written and
            dependency specifiers are left untouched.

    Returns:
        The applied version changes, in plan order.

    Raises:
        VersionValidationError: Before any write, if a change is invalid.
        ManifestError: If a package.json cannot be read or written.
    """
    changes = compute_version_changes(packages, strategies)
    write_version_changes(
        root, packages, changes, rewrite_dependents=rewrite_dependents
    )
    return list(changes.values())


def dependency_updates_for(
    package: PackageInfo, changes: Mapping[str, VersionChange]
) -> list[DependencyUpdate]:
    """Bumped in-repo dependencies of `package`, for its changelog entry."""
    return [
        DependencyUpdate(
            package=dep,
            old_version=changes[dep].old,
            new_version=changes[dep].new,
            bump=changes[dep].bump,
        )
        for dep in package.dependency_names()
        if dep in changes and dep != package.name
    ]
