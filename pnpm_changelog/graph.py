"""Dependency graph utilities.

Builds the in-repo dependency graph of a pnpm workspace and expands a set
of directly targeted packages to everything that must be bumped with them.
When package A depends on B and B is bumped, A must be bumped too.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .models import PackageInfo

DependencyGraph = dict[str, list[str]]


def build_dependency_graph(packages: Mapping[str, PackageInfo]) -> DependencyGraph:
    """Map each package to the in-repo packages it depends on.

    Dependencies, devDependencies and peerDependencies all count. Only names
    that resolve to a package in `packages` become edges; a `workspace:`
    specifier naming an unknown package is ignored.

    Args:
        packages: Map of package name → PackageInfo.

    Returns:
        Map of package name → list of dependency names, in declaration order.
    """
    graph: DependencyGraph = {}
    for name, info in packages.items():
        graph[name] = [dep for dep in info.dependency_names() if dep in packages]
    return graph


def reverse_dependencies(graph: Mapping[str, list[str]]) -> DependencyGraph:
    """Invert a dependency graph: package name → packages that depend on it."""
    reverse: DependencyGraph = {name: [] for name in graph}
    for name, deps in graph.items():
        for dep in deps:
            reverse.setdefault(dep, [])
            if name not in reverse[dep]:
                reverse[dep].append(name)
    return reverse


def get_dependents(graph: Mapping[str, list[str]], package: str) -> list[str]:
    """Packages that directly declare a dependency on `package`."""
    return [name for name, deps in graph.items() if package in deps]


def expand_targets(
    graph: Mapping[str, list[str]], targets: Iterable[str]
) -> list[str]:
    """Expand direct targets to the transitive closure of their dependents.

    Depth-first walk over the reverse dependency relation. Each package is
    visited at most once, so cycles terminate and diamonds are not
    duplicated. Names not in the graph are ignored.

    Args:
        graph: Map of package name → in-repo dependency names.
        targets: Directly targeted package names.

    Returns:
        Targets plus all transitive dependents, in discovery order.

    Example:
        If A depends on B, and B depends on C:
        expand_targets(graph, ["C"]) → ["C", "B", "A"]
    """
    reverse = reverse_dependencies(graph)
    visited: dict[str, None] = {}

    for target in targets:
        if target not in graph or target in visited:
            continue
        stack = [target]
        while stack:
            node = stack.pop()
            if node in visited:
                continue
            visited[node] = None
            # Reverse so dependents are visited in declaration order
            stack.extend(
                dep for dep in reversed(reverse.get(node, [])) if dep not in visited
            )

    return list(visited)
