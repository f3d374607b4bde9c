"""Update planning: which packages to bump, and by how much.

A plan is a list of UpdateStrategy records, one per package. Direct targets
are bumped according to their own commits; every package that transitively
depends on a direct target is bumped with them.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .errors import VersionValidationError
from .graph import expand_targets
from .models import (
    BumpType,
    Commit,
    PackageInfo,
    UpdateReason,
    UpdateStrategy,
    VersionChange,
)
from .shell import warn
from .versions import calculate_bump, next_version


def resolve_targets(
    packages: Mapping[str, PackageInfo],
    names: Iterable[str] = (),
    all_packages: bool = False,
) -> list[str]:
    """Validate the package names a caller asked to update.

    Unknown names are reported and dropped rather than aborting the run.

    Returns:
        Known target names, without duplicates, in the order given.
    """
    if all_packages:
        return list(packages)

    targets: dict[str, None] = {}
    for name in names:
        if name in packages:
            targets[name] = None
        else:
            warn(f"Package {name!r} does not exist in the workspace, skipping")
    return list(targets)


def create_update_plan(
    packages: Mapping[str, PackageInfo],
    graph: Mapping[str, list[str]],
    targets: Iterable[str],
    commits_by_package: Mapping[str, list[Commit]],
    override: BumpType | None = None,
) -> list[UpdateStrategy]:
    """Build the version update plan for a set of direct targets.

    - A direct target is bumped by `calculate_bump` over its commit messages,
      or by `override` when given. A direct target with no new commits and
      no override has nothing to release and is dropped, so it does not
      drag its dependents along either.
    - Every transitive dependent of a remaining target that is not itself a
      direct target gets a DEPENDENCY strategy, bumped by `override` or
      PATCH.

    Args:
        packages: Map of package name → PackageInfo.
        graph: Dependency graph from build_dependency_graph().
        targets: Direct target names.
        commits_by_package: New commits per package, newest first.
        override: Explicit bump type from the caller.

    Returns:
        One UpdateStrategy per package to bump, in propagation order.
    """
    direct: dict[str, BumpType] = {}
    for name in targets:
        if name not in packages or name in direct:
            continue
        commits = commits_by_package.get(name, [])
        if override is None and not commits:
            print(f"  {name}: no new commits, skipping")
            continue
        direct[name] = calculate_bump(
            packages[name].version, [c.message for c in commits], override
        )

    strategies: list[UpdateStrategy] = []
    for name in expand_targets(graph, direct):
        if name in direct:
            strategies.append(
                UpdateStrategy(package=name, bump=direct[name], reason=UpdateReason.DIRECT)
            )
        else:
            strategies.append(
                UpdateStrategy(
                    package=name,
                    bump=override or BumpType.PATCH,
                    reason=UpdateReason.DEPENDENCY,
                )
            )
    return strategies


def compute_version_changes(
    packages: Mapping[str, PackageInfo], strategies: Iterable[UpdateStrategy]
) -> dict[str, VersionChange]:
    """Compute old → new versions for every strategy without touching disk.

    Strategies naming unknown packages are skipped with a warning.

    Raises:
        VersionValidationError: If a current version is not valid semver.
    """
    changes: dict[str, VersionChange] = {}
    for strategy in strategies:
        info = packages.get(strategy.package)
        if info is None:
            warn(f"Package {strategy.package!r} not found, skipping")
            continue
        try:
            new = next_version(info.version, strategy.bump)
        except VersionValidationError as exc:
            raise VersionValidationError(
                f"Cannot compute {strategy.bump} bump for {info.name}: {exc}",
                package=info.name,
                old=info.version,
            ) from exc
        changes[strategy.package] = VersionChange(
            package=strategy.package, old=info.version, new=new, bump=strategy.bump
        )
    return changes
