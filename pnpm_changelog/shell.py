"""Shell and git utilities.

Provides a simple wrapper around subprocess calls for running git, plus
output formatting helpers.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path


def git(*args: str, cwd: Path | None = None, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "log", "--format=%H").
        cwd: Directory to run git in. Defaults to the process cwd.
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., an empty repo).

    Returns:
        Stripped stdout from the git command.

    Raises:
        subprocess.CalledProcessError: If check is True and git fails.
    """
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=check
    )
    return result.stdout.strip()


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of a command in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def warn(msg: str) -> None:
    """Print a warning to stderr.

    Use for recoverable problems where the command continues with a safe
    default.
    """
    print(f"Warning: {msg}", file=sys.stderr)
