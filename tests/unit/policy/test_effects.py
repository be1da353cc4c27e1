"""
webspec — unit tests for effect and command policy

File: tests/unit/policy/test_effects.py

Purpose
- Validate write-path and command rules shared by compile-time and run-time checks.
"""

from __future__ import annotations

from typing import Any

import pytest

from webspec.domain.diagnostics import DiagnosticCode
from webspec.domain.manifest import parse_manifest
from webspec.policy.effects import EffectPolicy, command_prefix


@pytest.fixture
def policy(vite_manifest: dict[str, Any]) -> EffectPolicy:
    return EffectPolicy.from_manifest(parse_manifest(vite_manifest))


def test_allowed_write_passes(policy: EffectPolicy) -> None:
    assert policy.path_violation("apps/web/src/main.tsx") is None
    assert policy.path_violation(".gitignore") is None


def test_denied_glob_is_checked_before_allowed(policy: EffectPolicy) -> None:
    violation = policy.path_violation("apps/web/.env.production")

    assert violation is not None
    assert violation.code is DiagnosticCode.DENIED_PATH


def test_write_outside_allowed_globs(policy: EffectPolicy) -> None:
    violation = policy.path_violation("package.json")

    assert violation is not None
    assert violation.code is DiagnosticCode.WRITE_OUTSIDE
    assert violation.message == "Write outside allowed globs: package.json"
    assert violation.hint is not None and "apps/web/**" in violation.hint


@pytest.mark.parametrize(
    ("path", "reason"),
    [
        ("apps/web/../../package.json", "path traversal segment"),
        ("docs/../../outside.md", "path traversal segment"),
        ("/etc/passwd", "absolute path"),
    ],
)
def test_paths_leaving_the_workspace_are_rejected(
    policy: EffectPolicy, path: str, reason: str
) -> None:
    violation = policy.path_violation(path)

    assert violation is not None
    assert violation.code is DiagnosticCode.WRITE_OUTSIDE
    assert violation.message == f"Write path must stay inside the workspace: {path} ({reason})"


def test_globs_see_the_normalized_path(policy: EffectPolicy) -> None:
    assert policy.path_violation("./docs/a.md") is None
    assert policy.path_violation("docs/./guides/a.md") is None

    violation = policy.path_violation("./apps/web/.env")
    assert violation is not None
    assert violation.code is DiagnosticCode.DENIED_PATH


def test_write_scopes_narrow_allowed_set(vite_manifest: dict[str, Any]) -> None:
    scoped = EffectPolicy.from_manifest(parse_manifest(vite_manifest), write_scopes=["docs/**"])

    assert scoped.path_violation("docs/a.md") is None
    violation = scoped.path_violation("apps/web/index.html")
    assert violation is not None
    assert violation.code is DiagnosticCode.SCOPE_VIOLATION


def test_empty_write_scopes_reject_every_write(vite_manifest: dict[str, Any]) -> None:
    scoped = EffectPolicy.from_manifest(parse_manifest(vite_manifest), write_scopes=[])

    violation = scoped.path_violation("docs/a.md")
    assert violation is not None
    assert violation.code is DiagnosticCode.SCOPE_VIOLATION


@pytest.mark.parametrize(
    ("cmd", "code"),
    [
        ("pnpm install", None),
        ("  npx tsc --noEmit", None),
        ("pnpmx install", DiagnosticCode.CMD_NOT_ALLOWED),
        ("", DiagnosticCode.CMD_NOT_ALLOWED),
        ("bash -c 'pnpm i'", DiagnosticCode.CMD_NOT_ALLOWED),
        ("pnpm exec rm -rf dist", DiagnosticCode.CMD_DENIED_SUBSTRING),
        ("echo x && curl http://x", DiagnosticCode.CMD_DENIED_SUBSTRING),
    ],
)
def test_command_policy(policy: EffectPolicy, cmd: str, code: DiagnosticCode | None) -> None:
    violation = policy.command_violation(cmd)

    if code is None:
        assert violation is None
    else:
        assert violation is not None
        assert violation.code is code


def test_command_prefix() -> None:
    assert command_prefix("  pnpm -C apps/web build") == "pnpm"
    assert command_prefix("") == ""
