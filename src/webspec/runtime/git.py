"""Thin git subprocess wrapper used by ``git.trackedOnly`` checks and ``webspec run``."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class GitError(RuntimeError):
    """Base error for git wrapper failures."""


class GitCommandError(GitError):
    """Raised when a git subprocess command exits non-zero."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        message = f"git command failed ({returncode}): {' '.join(command)}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Normalized subprocess result."""

    command: tuple[str, ...]
    cwd: str
    returncode: int
    stdout: str
    stderr: str


def run_git(args: Sequence[str], *, cwd: Path | str, check: bool = True) -> CommandResult:
    command = ("git", *args)
    run_cwd = Path(cwd).resolve()
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env.setdefault("GIT_CONFIG_NOSYSTEM", "1")

    try:
        completed = subprocess.run(
            command,
            cwd=run_cwd,
            env=env,
            text=True,
            capture_output=True,
            check=False,
        )
    except FileNotFoundError as exc:
        raise GitError("git executable not found on PATH") from exc

    result = CommandResult(
        command=command,
        cwd=run_cwd.as_posix(),
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )

    if check and result.returncode != 0:
        raise GitCommandError(
            command=result.command,
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    return result


def is_work_tree(cwd: Path | str) -> bool:
    result = run_git(["rev-parse", "--is-inside-work-tree"], cwd=cwd, check=False)
    return result.returncode == 0 and result.stdout.strip() == "true"


def tracked_files(cwd: Path | str, pathspec: str) -> tuple[str, ...]:
    """Tracked paths under ``pathspec``, relative to ``cwd``, sorted."""

    result = run_git(["ls-files", "-z", "--", pathspec], cwd=cwd)
    return tuple(sorted(entry for entry in result.stdout.split("\0") if entry))


def init_repository(cwd: Path | str, *, main_branch: str = "main") -> bool:
    """Initialise a repository in ``cwd`` unless one exists; return ``True`` if created."""

    root = Path(cwd)
    root.mkdir(parents=True, exist_ok=True)
    if (root / ".git").exists():
        return False
    run_git(["init", "--initial-branch", main_branch], cwd=root)
    return True


__all__ = [
    "CommandResult",
    "GitCommandError",
    "GitError",
    "init_repository",
    "is_work_tree",
    "run_git",
    "tracked_files",
]
