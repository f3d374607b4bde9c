"""Version parsing and bumping utilities.

Handles conversion between version strings and semver objects, and decides
which version component a set of commits should bump.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import semver

from .errors import VersionValidationError
from .models import BumpType

# `type!:` or `type(scope)!:` at the start of a message
_BREAKING_HEADER_RE = re.compile(r"^(\w+)(\(.+\))?!:")


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Unlike npm's loose mode, incomplete versions like "1.2" are rejected.

    Raises:
        VersionValidationError: If the string is not valid semver.
    """
    try:
        return semver.Version.parse(version_str.strip())
    except (ValueError, TypeError) as exc:
        raise VersionValidationError(
            f"Invalid semver version: {version_str!r}"
        ) from exc


def is_valid_version(version_str: str) -> bool:
    return semver.Version.is_valid(version_str.strip())


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as `a` is lower than, equal to or greater than `b`."""
    return parse_version(a).compare(parse_version(b))


def next_version(version_str: str, bump: BumpType) -> str:
    """Increment a version by one bump type.

    Follows npm `semver.inc` semantics, so a prerelease is released rather
    than skipped over.

    Examples:
        next_version("1.2.3", BumpType.PATCH) → "1.2.4"
        next_version("1.2.3", BumpType.MINOR) → "1.3.0"
        next_version("1.2.3", BumpType.MAJOR) → "2.0.0"
        next_version("1.0.0-rc.1", BumpType.PATCH) → "1.0.0"

    Raises:
        VersionValidationError: If `version_str` is not valid semver.
    """
    return str(parse_version(version_str).next_version(BumpType(bump).value))


def is_breaking_message(message: str) -> bool:
    """True if a commit message announces a breaking change."""
    return (
        "BREAKING CHANGE" in message
        or "!:" in message
        or _BREAKING_HEADER_RE.match(message) is not None
    )


def is_feature_message(message: str) -> bool:
    return message.startswith("feat:") or message.startswith("feat(")


def calculate_bump(
    current_version: str,
    commit_messages: Iterable[str],
    override: BumpType | None = None,
) -> BumpType:
    """Decide the bump type for a package from its commit messages.

    Rules, first match wins:
    1. An explicit override is returned as-is.
    2. Any breaking-change marker → MAJOR.
    3. Any `feat:` / `feat(scope):` commit → MINOR.
    4. Otherwise → PATCH.

    `current_version` is accepted for interface symmetry with
    `next_version`; the result depends only on the messages and override.
    """
    if override is not None:
        return BumpType(override)

    messages = list(commit_messages)
    if any(is_breaking_message(m) for m in messages):
        return BumpType.MAJOR
    if any(is_feature_message(m) for m in messages):
        return BumpType.MINOR
    return BumpType.PATCH
