"""Data models for pnpm-changelog.

These Pydantic models represent the core data structures passed between the
workspace scanner, the update planner and the changelog writer.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return normalize_timestamp(datetime.now(timezone.utc))


def normalize_timestamp(value: datetime) -> datetime:
    """Convert to UTC and truncate to whole milliseconds.

    Naive datetimes are taken to be UTC. Millisecond precision is what the
    persisted ISO-8601 form can represent, so normalizing up front makes
    timestamps survive a write/read cycle unchanged.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with milliseconds, e.g. 2024-01-31T09:15:00.000Z."""
    value = normalize_timestamp(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class BumpType(str, Enum):
    """Semantic version component to increment."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"

    def __str__(self) -> str:
        return self.value


class UpdateReason(str, Enum):
    """Why a package is part of an update plan."""

    DIRECT = "direct"
    DEPENDENCY = "dependency"

    def __str__(self) -> str:
        return self.value


class PackageInfo(BaseModel):
    """Metadata for a single package in the pnpm workspace.

    Attributes:
        name: Package name from package.json.
        version: Current version string from package.json.
        path: Relative POSIX path from the workspace root to the package
              directory.
        dependencies: Runtime dependencies (name → specifier).
        dev_dependencies: devDependencies (name → specifier).
        peer_dependencies: peerDependencies (name → specifier).
    """

    name: str
    version: str
    path: str
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict)
    peer_dependencies: dict[str, str] = Field(default_factory=dict)

    def dependency_maps(self) -> list[dict[str, str]]:
        """Return the three dependency maps in lookup order."""
        return [self.dependencies, self.dev_dependencies, self.peer_dependencies]

    def dependency_specifier(self, name: str) -> str | None:
        """Return the declared specifier for `name`, runtime first, then dev, then peer."""
        for deps in self.dependency_maps():
            if name in deps:
                return deps[name]
        return None

    def dependency_names(self) -> list[str]:
        """All dependency names across the three maps, without duplicates."""
        names: dict[str, None] = {}
        for deps in self.dependency_maps():
            names.update(dict.fromkeys(deps))
        return list(names)


class Commit(BaseModel):
    """A single commit from the repository history."""

    model_config = ConfigDict(frozen=True)

    hash: str
    message: str
    author: str = ""
    date: datetime
    files: tuple[str, ...] = ()
    type: str | None = None

    @property
    def short_hash(self) -> str:
        return self.hash[:7]

    @property
    def subject(self) -> str:
        return self.message.split("\n", 1)[0].strip()


class UpdateStrategy(BaseModel):
    """One package's role in an update plan.

    Attributes:
        package: Package name.
        bump: Version component to increment.
        reason: DIRECT when the caller targeted the package, DEPENDENCY when
                it is bumped because something it depends on is bumped.
    """

    package: str
    bump: BumpType
    reason: UpdateReason


class VersionChange(BaseModel):
    """Records a version change for a package.

    Attributes:
        package: Package name.
        old: The version before bumping.
        new: The version after bumping.
        bump: The bump that produced `new`.
    """

    package: str
    old: str
    new: str
    bump: BumpType


class DependencyUpdate(BaseModel):
    """A bumped in-repo dependency, listed in the dependent's changelog entry."""

    package: str
    old_version: str
    new_version: str
    bump: BumpType


class Conflict(BaseModel):
    """A dependent whose declared range rejects a dependency's next version."""

    dependent: str
    dependency: str
    required: str
    candidate: str

    def describe(self) -> str:
        return (
            f"{self.dependent} requires {self.dependency}@{self.required}, "
            f"but {self.dependency} would be bumped to {self.candidate}"
        )
