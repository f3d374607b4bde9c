"""Commit history retrieval.

Reads commits and their changed files from git. Commits are returned newest
first, matching `git log` order.
"""

from __future__ import annotations

import re
import subprocess
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from .config import ChangelogConfig
from .models import Commit
from .shell import git, warn

# ASCII unit/record separators delimit fields and commits in `git log` output.
# Each record ends with a field separator so the --name-only file list that
# git prints after the message lands in a final field of its own.
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = (
    f"--format={_RECORD_SEP}%H{_FIELD_SEP}%an <%ae>{_FIELD_SEP}%aI{_FIELD_SEP}%B{_FIELD_SEP}"
)
_LOG_ARGS = ("log", "--name-only", "--no-renames", _LOG_FORMAT)

_TYPE_RE = re.compile(r"^(\w+)(\(.+\))?!?:")


def parse_commit_type(message: str) -> str | None:
    """Extract the conventional commit type from a message.

    Examples:
        "feat(api): add endpoint" → "feat"
        "fix!: drop node 16" → "fix"
        "Update readme" → None
    """
    match = _TYPE_RE.match(message)
    return match.group(1) if match else None


def is_git_repository(root: Path) -> bool:
    try:
        output = git("rev-parse", "--is-inside-work-tree", cwd=root, check=False)
    except OSError:
        return False
    return output == "true"


def get_latest_commit_hash(root: Path) -> str:
    """Return the HEAD commit hash, or "" for a repository without commits."""
    return git("rev-parse", "--verify", "--quiet", "HEAD", cwd=root, check=False)


def get_commit_files(root: Path, commit_hash: str) -> list[str]:
    """List repo-relative paths changed by a commit.

    Best effort: if git fails the commit is treated as touching no files.
    """
    try:
        output = git(
            "show", commit_hash, "--name-only", "--format=", "--no-renames", cwd=root
        )
    except subprocess.CalledProcessError as exc:
        warn(f"Could not list files for commit {commit_hash[:7]}: {exc.stderr or exc}")
        return []
    return [line.strip() for line in output.splitlines() if line.strip()]


def _parse_log(output: str) -> list[dict[str, Any]]:
    """Split `git log` output in _LOG_FORMAT into raw field dicts."""
    records: list[dict[str, Any]] = []
    for record in output.split(_RECORD_SEP):
        if not record.strip():
            continue
        # stripped output drops the final separator of a last commit without files
        commit_hash, author, date, message, *rest = record.split(_FIELD_SEP, 4)
        files = rest[0] if rest else ""
        records.append(
            {
                "hash": commit_hash.strip(),
                "author": author,
                "date": date.strip(),
                "message": message.strip(),
                "files": [line.strip() for line in files.splitlines() if line.strip()],
            }
        )
    return records


def get_all_commits(
    root: Path, since: str | None = None, *, conventional: bool = True
) -> list[Commit]:
    """Read repository commits with their changed files, newest first.

    The whole history (or range) is read with a single `git log` call.

    Args:
        root: Repository root.
        since: If given, only commits after this hash are returned. An
               unknown hash falls back to the full history.
        conventional: If False, commit types are not parsed.

    Returns:
        List of Commit records, each with its changed files.
    """
    if not get_latest_commit_hash(root):
        return []

    if since:
        try:
            output = git(*_LOG_ARGS, f"{since}..HEAD", cwd=root)
        except subprocess.CalledProcessError:
            warn(f"Cached commit {since[:7]} not found in history, reading all commits")
            output = git(*_LOG_ARGS, cwd=root)
    else:
        output = git(*_LOG_ARGS, cwd=root)

    return [
        Commit(
            hash=raw["hash"],
            message=raw["message"],
            author=raw["author"],
            date=datetime.fromisoformat(raw["date"]),
            files=raw["files"],
            type=parse_commit_type(raw["message"]) if conventional else None,
        )
        for raw in _parse_log(output)
    ]


def filter_commits(commits: Iterable[Commit], config: ChangelogConfig) -> list[Commit]:
    """Drop commits whose conventional type is not in the configured allow-list.

    Commits without a recognised type are kept. With include_all_commits set
    nothing is dropped.
    """
    if config.include_all_commits:
        return list(commits)
    allowed = set(config.commit_types)
    return [c for c in commits if c.type is None or c.type in allowed]
