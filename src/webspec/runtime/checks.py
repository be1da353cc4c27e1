"""Evaluation of plan proof obligations against a working tree."""

from __future__ import annotations

import re
import shlex
import subprocess
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from webspec.constants import LEGACY_APP_DIR, ROUTING_NEXT_APP_ROUTER, ROUTING_VITE_REACT_ROUTER
from webspec.domain.manifest import StackManifest
from webspec.domain.plan import (
    ArtifactExistsCheck,
    Check,
    CmdOkCheck,
    DocContainsCheck,
    DocContainsFuzzyCheck,
    DocSectionCheck,
    FileContainsCheck,
    FileExistsCheck,
    GitTrackedOnlyCheck,
    RouteExistsCheck,
)
from webspec.observability.logging import get_logger
from webspec.policy.globs import glob_matches
from webspec.runtime.errors import CheckFailedError
from webspec.runtime.git import GitError, is_work_tree, tracked_files
from webspec.runtime.similarity import fuzzy_score
from webspec.utils.fs import resolve_within

logger = get_logger(__name__)

CommandRunner = Callable[[Sequence[str], Path], int]
WarningSink = Callable[[str], None]

_HEADING_RE: Final[re.Pattern[str]] = re.compile(r"^#{1,6}\s+(.+)$")


def default_command_runner(argv: Sequence[str], cwd: Path) -> int:
    """Run ``argv`` in ``cwd`` with inherited standard streams; return the exit status."""

    completed = subprocess.run(list(argv), cwd=cwd, check=False)
    return completed.returncode


def stderr_warning(message: str) -> None:
    print(f"[webspec] WARN {message}", file=sys.stderr)


def split_command(cmd: str) -> list[str]:
    argv = shlex.split(cmd)
    if not argv:
        raise ValueError("empty command")
    return argv


@dataclass(frozen=True, slots=True)
class CheckContext:
    cwd: Path
    manifest: StackManifest
    run_command: CommandRunner = default_command_runner
    on_warning: WarningSink = field(default=stderr_warning)
    step_id: str | None = None


def evaluate_check(check: Check, ctx: CheckContext) -> None:
    """Raise ``CheckFailedError`` unless ``check`` holds in ``ctx.cwd``."""

    if isinstance(check, (FileExistsCheck, ArtifactExistsCheck)):
        _require_exists(ctx, check.path)
    elif isinstance(check, (FileContainsCheck, DocContainsCheck)):
        _require_contains(ctx, check.path, check.text)
    elif isinstance(check, CmdOkCheck):
        _require_command_ok(ctx, check.cmd)
    elif isinstance(check, GitTrackedOnlyCheck):
        _require_tracked_only(ctx, check.glob, check.allow)
    elif isinstance(check, RouteExistsCheck):
        _require_route(ctx, check.route)
    elif isinstance(check, DocSectionCheck):
        _require_section(ctx, check.path, check.heading)
    elif isinstance(check, DocContainsFuzzyCheck):
        _require_fuzzy(ctx, check)
    else:
        raise CheckFailedError(f"Unknown check kind: {check.kind}", step_id=ctx.step_id)


def route_file(route: str) -> str:
    """Page file for ``route`` under the path-based (app router) style."""

    if route == "/":
        return f"{LEGACY_APP_DIR}/app/page.tsx"
    return f"{LEGACY_APP_DIR}/app{route}/page.tsx"


def has_heading(content: str, heading: str) -> bool:
    target = heading.strip().lower()
    for line in content.splitlines():
        match = _HEADING_RE.match(line)
        if match is not None and match.group(1).strip().lower() == target:
            return True
    return False


def _resolve(ctx: CheckContext, relative: str) -> Path:
    try:
        return resolve_within(ctx.cwd, relative)
    except ValueError as exc:
        raise CheckFailedError(str(exc), step_id=ctx.step_id) from exc


def _read(ctx: CheckContext, relative: str) -> str:
    path = _resolve(ctx, relative)
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise CheckFailedError(f"Expected file to exist: {relative}", step_id=ctx.step_id) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise CheckFailedError(f"Cannot read {relative}: {exc}", step_id=ctx.step_id) from exc


def _require_exists(ctx: CheckContext, relative: str) -> None:
    if not _resolve(ctx, relative).exists():
        raise CheckFailedError(f"Expected file to exist: {relative}", step_id=ctx.step_id)


def _require_contains(ctx: CheckContext, relative: str, text: str) -> None:
    if text not in _read(ctx, relative):
        raise CheckFailedError(f'Expected "{relative}" to contain "{text}"', step_id=ctx.step_id)


def _require_command_ok(ctx: CheckContext, cmd: str) -> None:
    try:
        argv = split_command(cmd)
        returncode = ctx.run_command(argv, ctx.cwd)
    except (ValueError, OSError) as exc:
        raise CheckFailedError(f"Command failed: {cmd}: {exc}", step_id=ctx.step_id) from exc
    if returncode != 0:
        raise CheckFailedError(f"Command failed ({returncode}): {cmd}", step_id=ctx.step_id)


def _require_tracked_only(ctx: CheckContext, glob: str, allow: Sequence[str]) -> None:
    pathspec = glob[: -len("/**")] if glob.endswith("/**") else glob
    try:
        if not is_work_tree(ctx.cwd):
            raise CheckFailedError(
                "Not a git repo; cannot enforce git.trackedOnly", step_id=ctx.step_id
            )
        found = [path for path in tracked_files(ctx.cwd, pathspec) if glob_matches(path, glob)]
    except GitError as exc:
        raise CheckFailedError(f"git.trackedOnly failed for {glob}: {exc}", step_id=ctx.step_id) from exc
    expected = sorted(allow)
    if sorted(found) != expected:
        raise CheckFailedError(
            f"git.trackedOnly failed for {glob}. Found: {sorted(found)} expected: {expected}",
            step_id=ctx.step_id,
        )


def _require_route(ctx: CheckContext, route: str) -> None:
    routing = ctx.manifest.routing
    if routing.kind == ROUTING_NEXT_APP_ROUTER:
        _require_exists(ctx, route_file(route))
        return
    if routing.kind == ROUTING_VITE_REACT_ROUTER:
        _require_exists(ctx, routing.routes_file)
        _require_contains(ctx, routing.routes_file, f'"{route}"')
        return
    raise CheckFailedError(
        f"route.exists not supported for this target: {ctx.manifest.id}", step_id=ctx.step_id
    )


def _require_section(ctx: CheckContext, relative: str, heading: str) -> None:
    if not has_heading(_read(ctx, relative), heading):
        raise CheckFailedError(
            f'Expected "{relative}" to include heading "{heading}"', step_id=ctx.step_id
        )


def _require_fuzzy(ctx: CheckContext, check: DocContainsFuzzyCheck) -> None:
    score = fuzzy_score(_read(ctx, check.path), check.text)
    if score >= check.threshold:
        return
    message = (
        f'Fuzzy doc check failed for "{check.path}" (score {score:.3f} < {check.threshold}). '
        f'Expected close to: "{check.text}"'
    )
    if not check.is_gating:
        logger.warning(
            "fuzzy_doc_check_warning",
            step_id=ctx.step_id,
            doc_path=check.path,
            score=round(score, 3),
            threshold=check.threshold,
        )
        ctx.on_warning(message)
        return
    raise CheckFailedError(message, step_id=ctx.step_id)


__all__ = [
    "CheckContext",
    "CommandRunner",
    "WarningSink",
    "default_command_runner",
    "evaluate_check",
    "has_heading",
    "route_file",
    "split_command",
    "stderr_warning",
]
