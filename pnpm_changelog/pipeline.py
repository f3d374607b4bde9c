"""Command pipelines: init → update → status.

`run_init` seeds every package's changelog from the whole history.
`run_update` is the release flow:
1. Check the environment and load configuration
2. Discover packages and build the dependency graph
3. Collect each target's commits since its last changelog update
4. Plan bumps for the targets and everything that depends on them
5. Check the plan for version conflicts
6. Write versions and dependent specifiers
7. Write changelog entries
8. Record the new commit hashes in the cache

The cache is written last, so an interrupted run leaves it pointing at the
previous state and a re-run picks the same commits up again.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from .applier import apply_version_changes, dependency_updates_for
from .attribution import group_commits_by_package
from .cache import CacheData, CacheManager, CacheStatus
from .changelog import ChangelogMetadata, changelog_path, create_entry, update_changelog
from .commits import filter_commits, get_all_commits, get_latest_commit_hash, is_git_repository
from .config import ChangelogConfig, create_config_file, has_config_file, load_config
from .conflicts import check_conflicts
from .errors import ConfigValidationError, ConflictError, WorkspaceEnvironmentError
from .graph import build_dependency_graph
from .models import (
    BumpType,
    Commit,
    Conflict,
    DependencyUpdate,
    PackageInfo,
    UpdateStrategy,
    VersionChange,
    utc_now,
)
from .planning import compute_version_changes, create_update_plan, resolve_targets
from .shell import step, warn
from .workspace import discover_packages, is_pnpm_workspace


class InitResult(BaseModel):
    """Outcome of run_init.

    Attributes:
        commit_count: Commits read from history.
        changelogs: Changelog paths (relative to the root) written, or that
                    would be written in a dry run.
        dry_run: True if nothing was written.
    """

    commit_count: int = 0
    changelogs: list[str] = Field(default_factory=list)
    dry_run: bool = False


class UpdateResult(BaseModel):
    """Outcome of run_update.

    Attributes:
        strategies: The update plan, in propagation order.
        changes: Version changes applied, or previewed in a dry run.
        conflicts: Conflicts found in the plan. Non-empty only when the run
                   was forced or was a dry run.
        changelogs: Changelog paths (relative to the root) written, or that
                    would be written in a dry run.
        dry_run: True if nothing was written.
    """

    strategies: list[UpdateStrategy] = Field(default_factory=list)
    changes: list[VersionChange] = Field(default_factory=list)
    conflicts: list[Conflict] = Field(default_factory=list)
    changelogs: list[str] = Field(default_factory=list)
    dry_run: bool = False


class StatusReport(BaseModel):
    is_git_repository: bool
    is_pnpm_workspace: bool
    latest_commit: str = ""
    has_config: bool = False
    config: ChangelogConfig | None = None
    cache: CacheStatus
    packages: list[PackageInfo] = Field(default_factory=list)
    internal_dependency_count: int = 0


def check_environment(root: Path) -> None:
    """Raise WorkspaceEnvironmentError unless `root` is a git-managed pnpm workspace."""
    if not is_git_repository(root):
        raise WorkspaceEnvironmentError(
            f"{root} is not a git repository. Run from the repo root."
        )
    if not is_pnpm_workspace(root):
        raise WorkspaceEnvironmentError(
            f"No pnpm-workspace.yaml found in {root}. Run from the workspace root."
        )


def _discover(root: Path, verbose: bool) -> dict[str, PackageInfo]:
    step("Discovering workspace packages")
    packages = discover_packages(root)
    for name, info in packages.items():
        print(f"  {name} {info.version} ({info.path})")
        if verbose:
            for dep in info.dependency_names():
                print(f"    → {dep} {info.dependency_specifier(dep)}")
    if not packages:
        warn("No packages found matching the workspace globs")
    return packages


def _changelog_file(root: Path, info: PackageInfo, config: ChangelogConfig) -> Path:
    return changelog_path(root / info.path, config.output_dir)


def _relative(root: Path, path: Path) -> str:
    return path.relative_to(root).as_posix()


def _write_changelog(
    root: Path,
    info: PackageInfo,
    config: ChangelogConfig,
    commits: list[Commit],
    last_commit: str,
    now: datetime,
    dependency_updates: Iterable[DependencyUpdate] = (),
) -> str:
    path = _changelog_file(root, info, config)
    metadata = ChangelogMetadata(
        last_commit_hash=last_commit,
        last_update_time=now,
        package_name=info.name,
        package_path=info.path,
    )
    entry = create_entry(info.version, commits, dependency_updates, date=now)
    update_changelog(path, info.name, entry, metadata)
    return _relative(root, path)


def run_init(root: Path, dry_run: bool = False, verbose: bool = False) -> InitResult:
    """Create the config file and a changelog for every package from full history.

    Each package gets one entry labelled with its current version, listing
    every commit that touched it. Packages with no matching commits get no
    changelog. The cache is populated last.

    Raises:
        WorkspaceEnvironmentError: If `root` is not a git-managed pnpm workspace.
        ConfigValidationError: If an existing config file is malformed.
    """
    root = Path(root).resolve()
    check_environment(root)

    step("Configuration")
    if dry_run:
        print("  (dry run) config file left untouched")
    elif create_config_file(root):
        print("  Created changelog.config.json with defaults")
    else:
        print("  Using existing changelog.config.json")
    config = load_config(root)

    packages = _discover(root, verbose)

    step("Reading commit history")
    commits = get_all_commits(root, conventional=config.conventional_commits)
    print(f"  {len(commits)} commit(s)")
    grouped = group_commits_by_package(commits, packages, config.exclude_patterns)

    step("Writing changelogs" if not dry_run else "Changelogs to write (dry run)")
    result = InitResult(commit_count=len(commits), dry_run=dry_run)
    now = utc_now()
    for name, info in packages.items():
        included = filter_commits(grouped[name], config)
        if verbose:
            print(f"  {name}: {len(grouped[name])} commit(s), {len(included)} included")
        if not included:
            continue
        if dry_run:
            path = _relative(root, _changelog_file(root, info, config))
        else:
            path = _write_changelog(root, info, config, included, grouped[name][0].hash, now)
        result.changelogs.append(path)
        print(f"  {path} ({len(included)} commit(s))")

    if not dry_run:
        step("Updating cache")
        cache = CacheManager(root, config.cache_dir)
        cache.record_last_commits(
            {name: found[0].hash for name, found in grouped.items() if found}
        )
        if commits:
            cache.set_global_last_commit(commits[0].hash)
        print(f"  Wrote {_relative(root, cache.cache_file)}")

    return result


def _load_cache(
    root: Path,
    cache: CacheManager,
    packages: Mapping[str, PackageInfo],
    config: ChangelogConfig,
) -> tuple[CacheData, bool]:
    """Read the cache, or rebuild it in memory from changelog metadata if absent.

    Returns the data and whether it was rebuilt. A rebuilt cache is not
    written here.
    """
    if cache.get_cache_status().exists:
        return cache.read_cache(), False
    print("  No cache found, rebuilding from changelog metadata")
    paths = [_changelog_file(root, info, config) for info in packages.values()]
    return cache.rebuild_cache(paths, persist=False), True


def collect_new_commits(
    root: Path,
    packages: Mapping[str, PackageInfo],
    targets: Iterable[str],
    last_commits: Mapping[str, str],
    config: ChangelogConfig,
) -> dict[str, list[Commit]]:
    """Commits touching each target since its last incorporated commit, newest first.

    Targets sharing a starting point share one `git log` call.
    """
    logs: dict[str | None, list[Commit]] = {}
    new_commits: dict[str, list[Commit]] = {}
    for name in targets:
        since = last_commits.get(name) or None
        if since not in logs:
            logs[since] = get_all_commits(
                root, since, conventional=config.conventional_commits
            )
        grouped = group_commits_by_package(
            logs[since], {name: packages[name]}, config.exclude_patterns
        )
        new_commits[name] = grouped[name]
    return new_commits


def _print_plan(
    strategies: list[UpdateStrategy], changes: Mapping[str, VersionChange]
) -> None:
    for s in strategies:
        change = changes.get(s.package)
        if change is None:
            continue
        print(f"  {s.package}: {change.old} → {change.new} ({s.bump}, {s.reason})")


def run_update(
    root: Path,
    packages: Iterable[str] = (),
    all_packages: bool = False,
    bump: BumpType | None = None,
    dry_run: bool = False,
    force: bool = False,
    verbose: bool = False,
) -> UpdateResult:
    """Bump the requested packages and their dependents, then update changelogs.

    Args:
        root: Workspace root.
        packages: Direct target names. Unknown names are warned about and skipped.
        all_packages: Target every package in the workspace.
        bump: Explicit bump type, overriding commit analysis.
        dry_run: Plan and report without writing anything.
        force: Apply the plan even if it has version conflicts.
        verbose: Print per-commit detail.

    Returns:
        What was (or in a dry run, would be) changed.

    Raises:
        WorkspaceEnvironmentError: If `root` is not a git-managed pnpm workspace.
        ConfigValidationError: If the config file is malformed.
        ConflictError: If the plan has conflicts and neither `force` nor
            `dry_run` is set. Nothing has been written at that point.
        VersionValidationError: If a version is invalid or would not
            increase. Nothing has been written at that point.
        ManifestError: If a package.json cannot be read or written.
    """
    root = Path(root).resolve()
    check_environment(root)
    config = load_config(root)
    infos = _discover(root, verbose)
    graph = build_dependency_graph(infos)

    targets = resolve_targets(infos, packages, all_packages)
    result = UpdateResult(dry_run=dry_run)
    if not targets:
        warn("No packages selected for update")
        return result

    step("Collecting new commits")
    cache = CacheManager(root, config.cache_dir)
    cached, rebuilt = _load_cache(root, cache, infos, config)
    last_commits = cached.package_commits
    new_commits = collect_new_commits(root, infos, targets, last_commits, config)
    for name in targets:
        print(f"  {name}: {len(new_commits[name])} new commit(s)")
        if verbose:
            for c in new_commits[name]:
                print(f"    {c.short_hash} {c.subject}")

    step("Planning version updates")
    strategies = create_update_plan(infos, graph, targets, new_commits, bump)
    result.strategies = strategies
    if not strategies:
        print("  Nothing to update")
        return result
    planned = compute_version_changes(infos, strategies)
    _print_plan(strategies, planned)

    step("Checking version constraints")
    result.conflicts = check_conflicts(infos, graph, strategies)
    if not result.conflicts:
        print("  No conflicts")
    for conflict in result.conflicts:
        warn(conflict.describe())
    if result.conflicts and not (force or dry_run):
        raise ConflictError(result.conflicts)

    if dry_run:
        result.changes = list(planned.values())
        result.changelogs = [
            _relative(root, _changelog_file(root, infos[s.package], config))
            for s in strategies
        ]
        step("Dry run: no files written")
        return result

    step("Writing versions")
    changes = apply_version_changes(
        root, infos, strategies, rewrite_dependents=config.dependency_update
    )
    result.changes = changes
    by_package = {c.package: c for c in changes}

    step("Writing changelogs")
    head = get_latest_commit_hash(root)
    now = utc_now()
    for s in strategies:
        info = infos[s.package]
        found = new_commits.get(s.package, [])
        # Empty when nothing is known, so a later run reads the package's full history.
        last_commit = found[0].hash if found else last_commits.get(s.package, "")
        path = _write_changelog(
            root,
            info,
            config,
            filter_commits(found, config),
            last_commit,
            now,
            dependency_updates_for(info, by_package),
        )
        result.changelogs.append(path)
        print(f"  {path}")

    step("Updating cache")
    if rebuilt:
        cache.write_cache(cached)
    cache.record_last_commits(
        {name: found[0].hash for name, found in new_commits.items() if found}
    )
    if head:
        cache.set_global_last_commit(head)
    print(f"  Wrote {_relative(root, cache.cache_file)}")

    return result


def collect_status(root: Path) -> StatusReport:
    """Gather environment, config, cache and package information.

    Never raises for a broken environment: each part reports what it can.
    """
    root = Path(root).resolve()
    git_ok = is_git_repository(root)
    workspace_ok = is_pnpm_workspace(root)

    config: ChangelogConfig | None = None
    try:
        config = load_config(root)
    except ConfigValidationError as exc:
        warn(str(exc))

    cache_dir = config.cache_dir if config else ChangelogConfig().cache_dir
    report = StatusReport(
        is_git_repository=git_ok,
        is_pnpm_workspace=workspace_ok,
        latest_commit=get_latest_commit_hash(root) if git_ok else "",
        has_config=has_config_file(root),
        config=config,
        cache=CacheManager(root, cache_dir).get_cache_status(),
    )
    if not workspace_ok:
        return report
    try:
        infos = discover_packages(root)
    except WorkspaceEnvironmentError as exc:
        warn(str(exc))
        return report
    graph = build_dependency_graph(infos)
    report.packages = list(infos.values())
    report.internal_dependency_count = sum(len(deps) for deps in graph.values())
    return report
