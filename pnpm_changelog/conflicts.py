"""Version conflict detection for an update plan.

Bumping everything downstream is optimistic: a dependent may declare a
range on a bumped package that the new version falls outside of (for
example `^1.0.0` against a major bump to 2.0.0). This module reports those
cases before anything is written. It never mutates packages; the caller
decides whether a conflict aborts the run.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from nodesemver import satisfies

from .graph import reverse_dependencies
from .models import Conflict, PackageInfo, UpdateStrategy
from .planning import compute_version_changes
from .specifiers import parse_specifier, range_to_check


def range_satisfied(version: str, version_range: str) -> bool:
    """True if `version` satisfies an npm-style range (`^1.2.0`, `>=1 <2`, ...)."""
    return bool(satisfies(version, version_range, loose=True))


def check_conflicts(
    packages: Mapping[str, PackageInfo],
    graph: Mapping[str, list[str]],
    strategies: Iterable[UpdateStrategy],
) -> list[Conflict]:
    """Find dependents whose declared range rejects a planned version.

    For each strategy the candidate version is computed, then every package
    depending on the bumped one is checked. The specifier is looked up in
    dependencies, devDependencies, then peerDependencies. Workspace
    wildcards (`workspace:*`, `workspace:^`, `workspace:~`) and protocol
    specifiers never conflict.

    Args:
        packages: Map of package name → PackageInfo.
        graph: Dependency graph from build_dependency_graph().
        strategies: The update plan.

    Returns:
        Conflicts in plan order; empty if the plan is consistent.

    Raises:
        VersionValidationError: If a candidate version cannot be computed.
    """
    changes = compute_version_changes(packages, strategies)
    reverse = reverse_dependencies(graph)

    conflicts: list[Conflict] = []
    for name, change in changes.items():
        for dependent in reverse.get(name, []):
            if dependent == name or dependent not in packages:
                continue
            raw = packages[dependent].dependency_specifier(name)
            if raw is None:
                continue
            required = range_to_check(parse_specifier(raw))
            if required is None or range_satisfied(change.new, required):
                continue
            conflicts.append(
                Conflict(
                    dependent=dependent,
                    dependency=name,
                    required=raw,
                    candidate=change.new,
                )
            )
    return conflicts
