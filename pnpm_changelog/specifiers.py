"""Dependency specifier classification and rewriting.

Every specifier string from package.json is classified once into one of a
small closed set of variants:

- WorkspaceWildcard: `workspace:*`, `workspace:^`, `workspace:~`. Always
  resolves to the sibling's current version, so it is never rewritten or
  range-checked.
- WorkspaceExact: any other `workspace:<version>` form. Rewritten with the
  `workspace:` prefix kept.
- ProtocolSpecifier: `link:`, `file:`, `npm:`, git and URL forms. Left alone.
- Concrete: a plain semver version or npm range. Rewritten to the bare new
  version.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

WORKSPACE_PREFIX = "workspace:"
WORKSPACE_WILDCARDS = frozenset({"*", "^", "~"})

# Leading comparator kept when rewriting `workspace:^1.2.3` style specifiers
_OPERATOR_RE = re.compile(r"^(\^|~|>=|<=|>|<|=)?\s*v?(\d.*)$")
# "name:" protocol prefixes (link:, file:, npm:, git+ssh:, https:, ...)
_PROTOCOL_RE = re.compile(r"^[a-z][a-z0-9+.-]*:", re.IGNORECASE)


@dataclass(frozen=True)
class Concrete:
    range: str


@dataclass(frozen=True)
class WorkspaceWildcard:
    symbol: str

    @property
    def raw(self) -> str:
        return f"{WORKSPACE_PREFIX}{self.symbol}"


@dataclass(frozen=True)
class WorkspaceExact:
    version: str

    @property
    def raw(self) -> str:
        return f"{WORKSPACE_PREFIX}{self.version}"


@dataclass(frozen=True)
class ProtocolSpecifier:
    raw: str


Specifier = Concrete | WorkspaceWildcard | WorkspaceExact | ProtocolSpecifier


def parse_specifier(raw: str) -> Specifier:
    """Classify a package.json dependency specifier.

    Examples:
        "workspace:*" → WorkspaceWildcard("*")
        "workspace:1.2.0" → WorkspaceExact("1.2.0")
        "^1.0.0" → Concrete("^1.0.0")
        "link:../b" → ProtocolSpecifier("link:../b")
    """
    text = raw.strip()
    if text.startswith(WORKSPACE_PREFIX):
        rest = text[len(WORKSPACE_PREFIX) :]
        if rest in WORKSPACE_WILDCARDS:
            return WorkspaceWildcard(rest)
        return WorkspaceExact(rest)
    if _PROTOCOL_RE.match(text):
        return ProtocolSpecifier(text)
    return Concrete(text)


def is_workspace_wildcard(raw: str) -> bool:
    return isinstance(parse_specifier(raw), WorkspaceWildcard)


def _substitute_version(text: str, new_version: str) -> str:
    """Replace the version in `text`, keeping a single leading comparator."""
    match = _OPERATOR_RE.match(text.strip())
    if match is None:
        return new_version
    return f"{match.group(1) or ''}{new_version}"


def rewrite_specifier(spec: Specifier, new_version: str) -> str | None:
    """Compute the specifier a dependent should declare after a bump.

    Returns:
        The new specifier string, or None when the specifier must be left
        byte-identical (workspace wildcards and protocol specifiers).

    Examples:
        rewrite_specifier(Concrete("^1.0.0"), "1.1.0") → "1.1.0"
        rewrite_specifier(WorkspaceExact("1.0.0"), "1.0.1") → "workspace:1.0.1"
        rewrite_specifier(WorkspaceExact("^1.0.0"), "2.0.0") → "workspace:^2.0.0"
        rewrite_specifier(WorkspaceWildcard("*"), "2.0.0") → None
    """
    if isinstance(spec, (WorkspaceWildcard, ProtocolSpecifier)):
        return None
    if isinstance(spec, WorkspaceExact):
        return f"{WORKSPACE_PREFIX}{_substitute_version(spec.version, new_version)}"
    return new_version


def range_to_check(spec: Specifier) -> str | None:
    """Return the npm range a bumped dependency must satisfy, if any."""
    if isinstance(spec, Concrete):
        return spec.range
    if isinstance(spec, WorkspaceExact):
        return spec.version
    return None
