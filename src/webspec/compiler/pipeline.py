"""Compile entry point: spec text + registry → diagnostics and, when clean, a Plan IR."""

from __future__ import annotations

from dataclasses import dataclass

from webspec.compiler.guardrails import (
    resolve_decisions,
    validate_assumptions,
    validate_claims,
    validate_effects,
    validate_effects_declaration,
    validate_proof_obligations,
    validate_required_artifacts,
    validate_requires_order,
    validate_step_decisions,
)
from webspec.compiler.plan_builder import build_steps, with_verification_step
from webspec.compiler.schema import Registry, parse_spec_text, resolve_manifest
from webspec.domain.diagnostics import Diagnostic, has_errors
from webspec.domain.plan import Plan
from webspec.observability.logging import get_logger
from webspec.policy.effects import EffectPolicy
from webspec.utils.hashing import sha256_text

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CompileResult:
    """Outcome of one compile; ``plan`` is set iff ``ok``."""

    ok: bool
    diagnostics: tuple[Diagnostic, ...]
    plan: Plan | None = None

    @property
    def errors(self) -> tuple[Diagnostic, ...]:
        return tuple(item for item in self.diagnostics if item.is_error)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "ok": self.ok,
            "diagnostics": [item.to_dict() for item in self.diagnostics],
        }
        if self.plan is not None:
            payload["plan"] = self.plan.to_dict()
        return payload


def compile_webspec(source_text: str, registry: Registry) -> CompileResult:
    """
    Compile ``source_text`` against ``registry``.

    Parse, target, and manifest failures abort with a single diagnostic. Every later
    stage accumulates, and the plan is emitted only when no error-severity
    diagnostic was produced.
    """

    parsed = parse_spec_text(source_text)
    if isinstance(parsed, Diagnostic):
        return _finish((parsed,), None)
    spec = parsed

    manifest = resolve_manifest(spec.target, registry)
    if isinstance(manifest, Diagnostic):
        return _finish((manifest,), None)

    diagnostics: list[Diagnostic] = []
    diagnostics.extend(validate_effects_declaration(spec))

    decisions = resolve_decisions(spec)
    diagnostics.extend(decisions.diagnostics)
    diagnostics.extend(validate_assumptions(spec, decisions))

    built = build_steps(spec, manifest)
    diagnostics.extend(built.diagnostics)
    steps = built.steps

    if built.user_step_ids:
        diagnostics.extend(validate_claims(spec, steps, built.user_step_ids))
        diagnostics.extend(validate_step_decisions(steps, built.user_step_ids, decisions))

    steps = with_verification_step(spec, steps)
    diagnostics.extend(validate_required_artifacts(spec, steps))

    policy = EffectPolicy.from_manifest(manifest, write_scopes=spec.write_scopes)
    diagnostics.extend(validate_effects(steps, policy))
    diagnostics.extend(validate_proof_obligations(steps))
    diagnostics.extend(validate_requires_order(steps))

    if has_errors(diagnostics):
        return _finish(tuple(diagnostics), None, target=spec.target)

    plan = Plan(
        target=manifest.id,
        preset_version=manifest.preset_version,
        spec_hash=sha256_text(source_text),
        steps=steps,
    )
    return _finish(tuple(diagnostics), plan, target=spec.target)


def _finish(
    diagnostics: tuple[Diagnostic, ...],
    plan: Plan | None,
    *,
    target: str | None = None,
) -> CompileResult:
    result = CompileResult(ok=plan is not None, diagnostics=diagnostics, plan=plan)
    logger.info(
        "compile_finished",
        ok=result.ok,
        target=target,
        error_count=len(result.errors),
        diagnostic_count=len(diagnostics),
        step_count=len(plan.steps) if plan is not None else 0,
    )
    return result


__all__ = ["CompileResult", "compile_webspec"]
