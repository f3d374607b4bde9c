"""CLI entry point for pnpm-changelog."""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any

import click

from pnpm_changelog.config import (
    config_path,
    create_config_file,
    has_config_file,
    load_config,
    reset_config,
)
from pnpm_changelog.errors import ChangelogToolError
from pnpm_changelog.models import BumpType
from pnpm_changelog.pipeline import collect_status, run_init, run_update


def _handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Report library errors as click errors (exit code 1)."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ChangelogToolError as exc:
            raise click.ClickException(str(exc)) from exc

    return wrapper


def _split_names(values: tuple[str, ...] | str) -> list[str]:
    """Flatten repeated and comma-separated package names."""
    if isinstance(values, str):
        values = (values,)
    return [n.strip() for v in values for n in v.split(",") if n.strip()]


@click.group()
@click.version_option(package_name="pnpm-changelog")
def cli() -> None:
    """Per-package changelogs and dependency-aware version bumps for pnpm workspaces."""


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would be written without writing.")
@click.option("--verbose", is_flag=True, help="Print per-package detail.")
@_handle_errors
def init(dry_run: bool, verbose: bool) -> None:
    """Create the config file and seed every package's CHANGELOG.md from history."""
    result = run_init(Path.cwd(), dry_run=dry_run, verbose=verbose)

    click.echo()
    if dry_run:
        click.echo(f"Dry run: {len(result.changelogs)} changelog(s) would be written")
    else:
        click.echo(
            f"✓ Wrote {len(result.changelogs)} changelog(s) from {result.commit_count} commit(s)"
        )


@cli.command()
@click.option(
    "-p",
    "--packages",
    "names",
    multiple=True,
    metavar="NAME",
    help="Package to update (repeatable, or comma-separated).",
)
@click.option("-a", "--all", "all_packages", is_flag=True, help="Update every package.")
@click.option(
    "-t",
    "--type",
    "bump",
    type=click.Choice([b.value for b in BumpType]),
    default=None,
    help="Bump type to use instead of analysing commits.",
)
@click.option("--dry-run", is_flag=True, help="Show the plan without writing anything.")
@click.option("--force", is_flag=True, help="Apply the plan even if it has version conflicts.")
@click.option("--verbose", is_flag=True, help="Print per-commit detail.")
@_handle_errors
def update(
    names: tuple[str, ...],
    all_packages: bool,
    bump: str | None,
    dry_run: bool,
    force: bool,
    verbose: bool,
) -> None:
    """Bump versions and update changelogs for packages and their dependents."""
    targets = _split_names(names)
    if not targets and not all_packages:
        answer = click.prompt("Packages to update (comma-separated)", default="", show_default=False)
        targets = _split_names(answer)
        if not targets:
            raise click.UsageError("No packages given. Use --packages NAME or --all.")

    result = run_update(
        Path.cwd(),
        packages=targets,
        all_packages=all_packages,
        bump=BumpType(bump) if bump else None,
        dry_run=dry_run,
        force=force,
        verbose=verbose,
    )

    click.echo()
    if not result.changes:
        click.echo("No packages updated.")
        return
    verb = "Would update" if dry_run else "✓ Updated"
    click.echo(f"{verb} {len(result.changes)} package(s):")
    for change in result.changes:
        click.echo(f"  {change.package}: {change.old} → {change.new}")
    if result.conflicts:
        click.echo(f"{len(result.conflicts)} conflict(s) reported above.")


@cli.command("config")
@click.option("--init", "action", flag_value="init", help="Create the config file with defaults.")
@click.option("--reset", "action", flag_value="reset", help="Overwrite the config file with defaults.")
@click.option("--show", "action", flag_value="show", help="Print the effective configuration.")
@_handle_errors
def config_cmd(action: str | None) -> None:
    """Manage changelog.config.json."""
    root = Path.cwd()
    path = config_path(root)

    if action == "init":
        if create_config_file(root):
            click.echo(f"✓ Created {path.name}")
        else:
            click.echo(f"{path.name} already exists")
    elif action == "reset":
        reset_config(root)
        click.echo(f"✓ Reset {path.name} to defaults")
    else:
        source = path.name if has_config_file(root) else "defaults, no config file"
        click.echo(f"# {source}")
        click.echo(load_config(root).to_json())


@cli.command()
@click.option("--verbose", is_flag=True, help="List every package.")
def status(verbose: bool) -> None:
    """Show environment, configuration, cache and package status."""
    report = collect_status(Path.cwd())

    def mark(ok: bool) -> str:
        return "✓" if ok else "✗"

    click.echo("Environment")
    click.echo(f"  git repository:  {mark(report.is_git_repository)}")
    click.echo(f"  pnpm workspace:  {mark(report.is_pnpm_workspace)}")
    if report.latest_commit:
        click.echo(f"  latest commit:   {report.latest_commit[:7]}")

    click.echo("Configuration")
    click.echo(f"  config file:     {mark(report.has_config)}")
    if report.config is not None:
        click.echo(f"  commit types:    {', '.join(report.config.commit_types)}")
        click.echo(f"  all commits:     {'yes' if report.config.include_all_commits else 'no'}")
        click.echo(f"  conventional:    {'yes' if report.config.conventional_commits else 'no'}")

    click.echo("Cache")
    click.echo(f"  cache file:      {mark(report.cache.exists)}")
    if report.cache.exists:
        click.echo(f"  fresh:           {mark(report.cache.valid)}")
        updated = report.cache.last_update_time
        click.echo(f"  last update:     {updated.isoformat() if updated else 'n/a'}")
        click.echo(f"  packages:        {report.cache.package_count}")

    click.echo("Packages")
    click.echo(f"  total:           {len(report.packages)}")
    click.echo(f"  internal deps:   {report.internal_dependency_count}")
    if verbose:
        for info in report.packages:
            click.echo(f"  - {info.name}@{info.version} ({info.path})")
            click.echo(f"      dependencies: {len(info.dependencies)}")
            click.echo(f"      devDependencies: {len(info.dev_dependencies)}")
            click.echo(f"      peerDependencies: {len(info.peer_dependencies)}")
