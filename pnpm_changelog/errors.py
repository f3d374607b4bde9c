"""Exception types raised by pnpm-changelog.

Library code raises these and never exits the process; the CLI turns them
into a diagnostic and a non-zero exit code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Conflict


class ChangelogToolError(Exception):
    """Base class for all errors raised by pnpm-changelog."""


class WorkspaceEnvironmentError(ChangelogToolError):
    """The current directory is not a git repository or not a pnpm workspace."""


class ConfigValidationError(ChangelogToolError):
    """changelog.config.json is unreadable or has fields of the wrong type."""


class ManifestError(ChangelogToolError):
    """A package.json could not be read or written."""


class VersionValidationError(ChangelogToolError):
    """A version string is not valid semver, or a bump does not increase it.

    Attributes:
        package: Package the version belongs to, when known.
        old: Version before the attempted change, when known.
        new: Version after the attempted change, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        package: str | None = None,
        old: str | None = None,
        new: str | None = None,
    ) -> None:
        super().__init__(message)
        self.package = package
        self.old = old
        self.new = new


class ConflictError(ChangelogToolError):
    """The update plan leaves dependents with unsatisfiable version ranges."""

    def __init__(self, conflicts: list[Conflict]) -> None:
        self.conflicts = conflicts
        lines = "\n".join(f"  - {c.describe()}" for c in conflicts)
        super().__init__(
            f"{len(conflicts)} version conflict(s) detected:\n{lines}\n\n"
            "Re-run with --force to apply the update anyway."
        )
