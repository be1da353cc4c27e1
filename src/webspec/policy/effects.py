"""Effect and command policy shared by the compile-time guardrails and the runtime.

Both sides evaluate the same rules so that a plan is re-checked at execution time
exactly as it was checked at compile time.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from webspec.domain.diagnostics import DiagnosticCode
from webspec.domain.manifest import StackManifest
from webspec.policy.globs import first_match, matches_any, normalize_relative_path


@dataclass(frozen=True, slots=True)
class PolicyViolation:
    """One rejected effect; ``code`` doubles as the compile diagnostic code."""

    code: DiagnosticCode
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class EffectPolicy:
    allowed_write_globs: tuple[str, ...]
    denied_write_globs: tuple[str, ...] = ()
    allow_prefixes: tuple[str, ...] = ()
    deny_substrings: tuple[str, ...] = ()
    write_scopes: tuple[str, ...] | None = None

    @classmethod
    def from_manifest(
        cls,
        manifest: StackManifest,
        *,
        write_scopes: Sequence[str] | None = None,
    ) -> EffectPolicy:
        return cls(
            allowed_write_globs=manifest.allowed_write_globs,
            denied_write_globs=manifest.denied_write_globs,
            allow_prefixes=manifest.allow_prefixes,
            deny_substrings=manifest.deny_substrings,
            write_scopes=tuple(write_scopes) if write_scopes is not None else None,
        )

    def path_violation(self, path: str) -> PolicyViolation | None:
        """
        Check a write destination: workspace-relative form, then denied globs, then
        allowed globs, then spec scopes.

        Globs are matched against the normalized path, so ``..`` segments and absolute
        paths are rejected before any glob can match them.
        """

        normalized, reason = normalize_relative_path(path)
        if normalized is None:
            return PolicyViolation(
                code=DiagnosticCode.WRITE_OUTSIDE,
                message=f"Write path must stay inside the workspace: {path} ({reason})",
                hint="Use a relative path without '..' segments.",
            )
        path = normalized

        denied = first_match(path, self.denied_write_globs)
        if denied is not None:
            return PolicyViolation(
                code=DiagnosticCode.DENIED_PATH,
                message=f"Write denied for path: {path}",
                hint="Do not write .env files or denied globs.",
            )
        if not matches_any(path, self.allowed_write_globs):
            return PolicyViolation(
                code=DiagnosticCode.WRITE_OUTSIDE,
                message=f"Write outside allowed globs: {path}",
                hint=f"Allowed globs: {', '.join(self.allowed_write_globs)}",
            )
        if self.write_scopes is not None and not matches_any(path, self.write_scopes):
            return PolicyViolation(
                code=DiagnosticCode.SCOPE_VIOLATION,
                message=f"Write outside spec.writeScopes: {path}",
                hint=f"Spec writeScopes: {', '.join(self.write_scopes)}",
            )
        return None

    def command_violation(self, cmd: str) -> PolicyViolation | None:
        """Check a command: leading token must be allowed, no denied substring."""

        prefix = command_prefix(cmd)
        if prefix not in self.allow_prefixes:
            return PolicyViolation(
                code=DiagnosticCode.CMD_NOT_ALLOWED,
                message=f"Command prefix not allowed: {prefix}",
                hint=f"Allowed: {', '.join(self.allow_prefixes)}",
            )
        for needle in self.deny_substrings:
            if needle in cmd:
                return PolicyViolation(
                    code=DiagnosticCode.CMD_DENIED_SUBSTRING,
                    message=f'Command contains denied substring: "{needle}"',
                    hint="Edit the plan.",
                )
        return None


def command_prefix(cmd: str) -> str:
    parts = cmd.split()
    return parts[0] if parts else ""


__all__ = ["EffectPolicy", "PolicyViolation", "command_prefix"]
