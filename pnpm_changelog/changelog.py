"""CHANGELOG.md rendering and merging.

A changelog file is a document with two parts:

    # my-pkg Changelog

    <!-- CHANGELOG_METADATA:
    {
      "lastCommitHash": "...",
      "lastUpdateTime": "2024-01-01T00:00:00.000Z",
      "packageName": "my-pkg",
      "packagePath": "packages/my-pkg"
    }
    -->

    All notable changes to this package will be documented in this file.

    ## [1.1.0] - 2024-01-01
    ...

The metadata record says which commit the file is up to date with. The
entries are the rendered version sections, newest first. Files are never
edited in place: they are parsed into a ChangelogDocument, changed, and
rendered back.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .commits import parse_commit_type
from .models import Commit, DependencyUpdate, format_timestamp, normalize_timestamp, utc_now
from .shell import warn
from .versions import is_breaking_message

CHANGELOG_FILE_NAME = "CHANGELOG.md"
METADATA_MARKER = "<!-- CHANGELOG_METADATA:"
METADATA_END = "-->"
DEFAULT_PREAMBLE = "All notable changes to this package will be documented in this file."

BREAKING_LABEL = "⚠️ Breaking Changes"
DEPENDENCY_LABEL = "🔗 Dependency Updates"
OTHER_TYPE = "other"

# Section order in a rendered entry. Types not listed here follow, then OTHER_TYPE.
COMMIT_TYPE_LABELS = {
    "feat": "✨ Features",
    "fix": "🐛 Bug Fixes",
    "perf": "⚡ Performance",
    "docs": "📚 Documentation",
    "refactor": "♻️ Refactoring",
    "test": "✅ Tests",
    "build": "📦 Build",
    "ci": "👷 CI/CD",
    "style": "💄 Styles",
    "chore": "🔧 Chores",
    "revert": "⏪ Reverts",
}
OTHER_LABEL = "📝 Other"

_METADATA_RE = re.compile(re.escape(METADATA_MARKER) + r"\s*(.*?)\s*" + re.escape(METADATA_END), re.DOTALL)
_ENTRY_HEADER_RE = re.compile(r"^## \[([^\]]+)\]")
_PREFIX_RE = re.compile(r"^(\w+)(\(.+?\))?!?:\s*")


class ChangelogMetadata(BaseModel):
    """The JSON record embedded after the changelog title."""

    model_config = ConfigDict(populate_by_name=True)

    last_commit_hash: str = Field(alias="lastCommitHash")
    last_update_time: datetime = Field(alias="lastUpdateTime")
    package_name: str = Field(alias="packageName")
    package_path: str = Field(alias="packagePath")

    @field_validator("last_update_time")
    @classmethod
    def _normalize_time(cls, value: datetime) -> datetime:
        return normalize_timestamp(value)

    @field_serializer("last_update_time")
    def _serialize_time(self, value: datetime) -> str:
        return format_timestamp(value)


class ChangelogEntry(BaseModel):
    """One version section, before rendering."""

    version: str
    date: datetime
    commits: list[Commit] = Field(default_factory=list)
    dependency_updates: list[DependencyUpdate] = Field(default_factory=list)
    breaking: bool = False


class ChangelogDocument(BaseModel):
    """A parsed CHANGELOG.md.

    Attributes:
        title: Heading text without the leading "# ".
        metadata: The embedded metadata record, if present and readable.
        preamble: Free text between the metadata and the first entry.
        entries: Rendered version sections, newest first, each starting
                 with its "## [version]" line and without trailing blank
                 lines.
    """

    title: str = ""
    metadata: ChangelogMetadata | None = None
    preamble: str = ""
    entries: list[str] = Field(default_factory=list)


def changelog_path(package_dir: Path, output_dir: str = ".") -> Path:
    return package_dir / output_dir / CHANGELOG_FILE_NAME


def default_title(package_name: str) -> str:
    return f"{package_name} Changelog"


def create_entry(
    version: str,
    commits: Iterable[Commit],
    dependency_updates: Iterable[DependencyUpdate] = (),
    date: datetime | None = None,
) -> ChangelogEntry:
    commits = list(commits)
    return ChangelogEntry(
        version=version,
        date=date or utc_now(),
        commits=commits,
        dependency_updates=list(dependency_updates),
        breaking=any(is_breaking_message(c.message) for c in commits),
    )


def format_commit_message(message: str) -> str:
    """Strip the conventional-commit prefix from the subject and capitalise it.

    Example:
        "fix(api): handle empty body" → "Handle empty body"
    """
    subject = message.split("\n", 1)[0].strip()
    subject = _PREFIX_RE.sub("", subject, count=1)
    return subject[:1].upper() + subject[1:]


def format_commit_line(commit: Commit) -> str:
    message = format_commit_message(commit.message)
    return f"- {message} ([{commit.short_hash}](../../commit/{commit.hash}))"


def _commit_type(commit: Commit) -> str:
    return commit.type or parse_commit_type(commit.message) or OTHER_TYPE


def _type_order(commit_type: str) -> tuple[int, int, str]:
    if commit_type in COMMIT_TYPE_LABELS:
        return (0, list(COMMIT_TYPE_LABELS).index(commit_type), "")
    if commit_type == OTHER_TYPE:
        return (2, 0, "")
    return (1, 0, commit_type)


def _type_label(commit_type: str) -> str:
    if commit_type == OTHER_TYPE:
        return OTHER_LABEL
    return COMMIT_TYPE_LABELS.get(commit_type, f"🔧 {commit_type}")


def group_commits_by_type(commits: Iterable[Commit]) -> dict[str, list[Commit]]:
    """Group commits by conventional type, in rendering order."""
    groups: dict[str, list[Commit]] = {}
    for commit in commits:
        groups.setdefault(_commit_type(commit), []).append(commit)
    return {t: groups[t] for t in sorted(groups, key=_type_order)}


def render_entry(entry: ChangelogEntry) -> str:
    """Render one version section as Markdown, without a trailing newline."""
    date = normalize_timestamp(entry.date).strftime("%Y-%m-%d")
    lines = [f"## [{entry.version}] - {date}"]

    breaking = [c for c in entry.commits if is_breaking_message(c.message)]
    if breaking:
        lines += ["", f"### {BREAKING_LABEL}", ""]
        lines += [format_commit_line(c) for c in breaking]

    regular = [c for c in entry.commits if not is_breaking_message(c.message)]
    for commit_type, commits in group_commits_by_type(regular).items():
        lines += ["", f"### {_type_label(commit_type)}", ""]
        lines += [format_commit_line(c) for c in commits]

    if entry.dependency_updates:
        lines += ["", f"### {DEPENDENCY_LABEL}", ""]
        lines += [
            f"- Updated `{u.package}` from {u.old_version} to {u.new_version} ({u.bump.value})"
            for u in entry.dependency_updates
        ]
    return "\n".join(lines)


def entry_version(rendered: str) -> str | None:
    """The version label of a rendered entry, from its "## [x.y.z]" header."""
    m = _ENTRY_HEADER_RE.match(rendered)
    return m.group(1) if m else None


def render_metadata(metadata: ChangelogMetadata) -> str:
    body = json.dumps(metadata.model_dump(by_alias=True), indent=2, ensure_ascii=False)
    return f"{METADATA_MARKER}\n{body}\n{METADATA_END}"


def render_changelog(doc: ChangelogDocument) -> str:
    blocks: list[str] = []
    if doc.title:
        blocks.append(f"# {doc.title}")
    if doc.metadata is not None:
        blocks.append(render_metadata(doc.metadata))
    if doc.preamble:
        blocks.append(doc.preamble)
    blocks.extend(doc.entries)
    return "\n\n".join(blocks) + "\n"


def _parse_metadata(raw: str) -> ChangelogMetadata | None:
    try:
        return ChangelogMetadata.model_validate(json.loads(raw))
    except ValueError as exc:
        warn(f"Ignoring unparsable changelog metadata: {exc}")
        return None


def parse_changelog(text: str) -> ChangelogDocument:
    """Split a changelog into title, metadata, preamble and entries.

    Never raises: a file without a title, metadata or entries simply parses
    to a document with those parts empty.
    """
    body = text.replace("\r\n", "\n").lstrip("\n")

    title = ""
    first, _, rest = body.partition("\n")
    if first.startswith("# "):
        title = first[2:].strip()
        body = rest

    metadata = None
    m = _METADATA_RE.search(body)
    if m:
        metadata = _parse_metadata(m.group(1))
        body = body[: m.start()] + body[m.end() :]

    preamble: list[str] = []
    entries: list[str] = []
    current: list[str] | None = None
    for line in body.split("\n"):
        if _ENTRY_HEADER_RE.match(line):
            if current is not None:
                entries.append("\n".join(current).rstrip())
            current = [line]
        elif current is None:
            preamble.append(line)
        else:
            current.append(line)
    if current is not None:
        entries.append("\n".join(current).rstrip())

    return ChangelogDocument(
        title=title,
        metadata=metadata,
        preamble="\n".join(preamble).strip(),
        entries=entries,
    )


def read_changelog(path: Path) -> ChangelogDocument | None:
    """Parse the changelog at `path`, or None if there is no file."""
    if not path.is_file():
        return None
    return parse_changelog(path.read_text(encoding="utf-8"))


def read_metadata(path: Path) -> ChangelogMetadata | None:
    """Metadata from the changelog at `path`; None if absent or unreadable."""
    try:
        doc = read_changelog(path)
    except OSError as exc:
        warn(f"Could not read {path}: {exc}")
        return None
    return doc.metadata if doc else None


def merge_entry(doc: ChangelogDocument, rendered: str) -> ChangelogDocument:
    """Put a rendered entry at the top, replacing any entry for the same version."""
    version = entry_version(rendered)
    kept = [e for e in doc.entries if entry_version(e) != version]
    return doc.model_copy(update={"entries": [rendered, *kept]})


def update_changelog(
    path: Path,
    package_name: str,
    entry: ChangelogEntry,
    metadata: ChangelogMetadata,
) -> ChangelogDocument:
    """Merge `entry` into the changelog at `path`, creating the file if needed.

    The metadata record is replaced. Re-running for a version that already
    has an entry replaces that entry.

    Returns:
        The document as written.
    """
    doc = read_changelog(path) or ChangelogDocument(preamble=DEFAULT_PREAMBLE)
    if not doc.title:
        doc = doc.model_copy(update={"title": default_title(package_name)})
    doc = merge_entry(doc.model_copy(update={"metadata": metadata}), render_entry(entry))

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_changelog(doc), encoding="utf-8")
    return doc
