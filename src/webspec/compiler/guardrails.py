"""Static guardrail passes over a built step list.

Each validator is independent, never mutates the steps, and returns its own list of
diagnostics; the pipeline concatenates them so one compile surfaces every defect.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass

from webspec.compiler.decisions import (
    DecisionCycleError,
    DecisionTree,
    MissingParentError,
    build_decision_tree,
)
from webspec.domain.diagnostics import Diagnostic, DiagnosticCode, error, warning
from webspec.domain.plan import PlanStep, RunOp, write_target
from webspec.domain.spec import DecisionRecord, WebSpec
from webspec.policy.effects import EffectPolicy


@dataclass(frozen=True, slots=True)
class DecisionResolution:
    """Decision lookup used for cross references, plus the tree when it could be built."""

    records: Mapping[str, DecisionRecord]
    tree: DecisionTree | None
    diagnostics: tuple[Diagnostic, ...]

    def get(self, decision_id: str) -> DecisionRecord | None:
        if self.tree is not None:
            return self.tree.get(decision_id)
        return self.records.get(decision_id)

    def open_ancestor(self, decision_id: str) -> DecisionRecord | None:
        """
        Nearest non-final ancestor of ``decision_id``, if any.

        A final decision under an open parent is still unsettled. Without a tree
        there are no trustworthy parent links, so nothing is inherited.
        """

        if self.tree is None:
            return None
        for ancestor_id in self.tree.lineage(decision_id)[1:]:
            ancestor = self.tree.get(ancestor_id)
            if ancestor is not None and not ancestor.is_final:
                return ancestor
        return None


def validate_effects_declaration(spec: WebSpec) -> list[Diagnostic]:
    effects = spec.effects
    if effects is None or effects.expansion_policy != "explicit":
        return []
    if effects.write_scopes:
        return []
    return [
        error(
            DiagnosticCode.EFFECTS_SCOPE_REQUIRED,
            "effects.expansionPolicy is explicit but no writeScopes provided.",
            hint="Provide effects.writeScopes or change expansionPolicy.",
            path="effects.writeScopes",
        )
    ]


def resolve_decisions(spec: WebSpec) -> DecisionResolution:
    """
    Check decision ids and the decision graph.

    Duplicate ids yield ``E413`` and a last-wins lookup. With unique ids the tree is
    built, and a missing parent or a cycle yields ``E414`` / ``E415``.
    """

    diagnostics: list[Diagnostic] = []
    last_wins: dict[str, DecisionRecord] = {}
    for record in spec.decisions:
        if record.id in last_wins:
            diagnostics.append(
                error(
                    DiagnosticCode.DECISION_DUPLICATE,
                    f"Duplicate decision id: {record.id}",
                    hint="Decision ids must be unique.",
                    path="decisions",
                )
            )
        last_wins[record.id] = record
    if diagnostics:
        return DecisionResolution(records=last_wins, tree=None, diagnostics=tuple(diagnostics))

    try:
        tree = build_decision_tree(spec.decisions)
    except MissingParentError as exc:
        diagnostics.append(
            error(
                DiagnosticCode.DECISION_PARENT_MISSING,
                str(exc),
                hint="Point parent at an existing decision id or remove it.",
                path="decisions",
            )
        )
        return DecisionResolution(records=last_wins, tree=None, diagnostics=tuple(diagnostics))
    except DecisionCycleError as exc:
        diagnostics.append(
            error(
                DiagnosticCode.DECISION_CYCLE,
                str(exc),
                hint="Decision parents must form a tree.",
                path="decisions",
            )
        )
        return DecisionResolution(records=last_wins, tree=None, diagnostics=tuple(diagnostics))
    return DecisionResolution(records=tree.records, tree=tree, diagnostics=())


def validate_assumptions(spec: WebSpec, decisions: DecisionResolution) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    for assumption in spec.assumptions:
        if assumption.status != "verified":
            diagnostics.append(
                error(
                    DiagnosticCode.UNVERIFIED_ASSUMPTION,
                    f'Assumption "{assumption.id}" is not verified: {assumption.text}',
                    hint="Verify assumptions before compile.",
                )
            )
        decision = decisions.get(assumption.id)
        if decision is None:
            diagnostics.append(
                error(
                    DiagnosticCode.ASSUMPTION_NO_DECISION,
                    f'Assumption "{assumption.id}" has no matching decision record.',
                    hint="Add a decision with the same id in decisions[].",
                )
            )
        elif not decision.is_final:
            diagnostics.append(
                error(
                    DiagnosticCode.ASSUMPTION_DECISION_NOT_FINAL,
                    f'Decision "{decision.id}" for assumption is not final.',
                    hint="Mark decision status as final.",
                )
            )
        else:
            ancestor = decisions.open_ancestor(decision.id)
            if ancestor is not None:
                diagnostics.append(
                    error(
                        DiagnosticCode.ASSUMPTION_DECISION_NOT_FINAL,
                        f'Decision "{decision.id}" for assumption sits under non-final '
                        f"decision: {ancestor.id}",
                        hint="Finalize every ancestor decision.",
                    )
                )
    return diagnostics


def validate_claims(
    spec: WebSpec, steps: Sequence[PlanStep], user_step_ids: Collection[str]
) -> list[Diagnostic]:
    """Claims coverage for user-authored steps of a current-shape spec."""

    if not spec.is_current_shape:
        return []
    invariant_ids = spec.invariant_ids
    user_steps = [step for step in steps if step.id in user_step_ids]
    if not invariant_ids and any(step.ops for step in user_steps):
        return [
            error(
                DiagnosticCode.MISSING_INVARIANTS,
                "v0.2 specs with actions must declare intent.invariants.",
                hint="Add intent.invariants and reference them from step claims.",
                path="intent.invariants",
            )
        ]

    # Without invariants no step has ops, so only claim references are checked.
    diagnostics: list[Diagnostic] = []
    known = set(invariant_ids)
    claimed: set[str] = set()
    for step in user_steps:
        if step.ops and not step.claims:
            diagnostics.append(
                error(
                    DiagnosticCode.STEP_NO_CLAIMS,
                    f'Step "{step.id}" has actions but no claims.',
                    hint="Add claims referencing intent.invariants to keep the plan on track.",
                )
            )
        for claim in step.claims:
            if claim in known:
                claimed.add(claim)
                continue
            diagnostics.append(
                error(
                    DiagnosticCode.UNKNOWN_CLAIM,
                    f'Step "{step.id}" claims unknown invariant: {claim}',
                    hint="Claims must reference intent.invariants ids.",
                )
            )
    for invariant_id in invariant_ids:
        if invariant_id not in claimed:
            diagnostics.append(
                error(
                    DiagnosticCode.UNCLAIMED_INVARIANT,
                    f'Invariant "{invariant_id}" is not claimed by any step.',
                    hint="Add claims to steps to cover all invariants.",
                )
            )
    return diagnostics


def validate_step_decisions(
    steps: Sequence[PlanStep],
    user_step_ids: Collection[str],
    decisions: DecisionResolution,
) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    for step in steps:
        if step.id not in user_step_ids:
            continue
        for decision_id in step.decisions:
            decision = decisions.get(decision_id)
            if decision is None:
                diagnostics.append(
                    error(
                        DiagnosticCode.STEP_DECISION_MISSING,
                        f'Step "{step.id}" references missing decision: {decision_id}',
                        hint="Add the decision to decisions[].",
                    )
                )
            elif not decision.is_final:
                diagnostics.append(
                    error(
                        DiagnosticCode.STEP_DECISION_NOT_FINAL,
                        f'Step "{step.id}" references a non-final decision: {decision_id}',
                        hint="Finalize the decision before compiling.",
                    )
                )
            else:
                ancestor = decisions.open_ancestor(decision_id)
                if ancestor is None:
                    continue
                diagnostics.append(
                    error(
                        DiagnosticCode.STEP_DECISION_NOT_FINAL,
                        f'Step "{step.id}" references decision {decision_id} under a non-final '
                        f"parent: {ancestor.id}",
                        hint="Finalize every ancestor decision before compiling.",
                    )
                )
    return diagnostics


def validate_required_artifacts(spec: WebSpec, steps: Sequence[PlanStep]) -> list[Diagnostic]:
    must_write = [artifact for artifact in spec.artifacts if artifact.must_write]
    if not must_write:
        return []
    written = set(_write_targets(steps))
    return [
        error(
            DiagnosticCode.ARTIFACT_NOT_WRITTEN,
            f"Required artifact not written by plan: {artifact.path}",
            hint="Add an action that writes this artifact or remove mustWrite.",
        )
        for artifact in must_write
        if artifact.path not in written
    ]


def validate_effects(steps: Sequence[PlanStep], policy: EffectPolicy) -> list[Diagnostic]:
    """Write-path and command policy for every op, in plan order."""

    diagnostics: list[Diagnostic] = []
    for step_index, step in enumerate(steps):
        for op_index, op in enumerate(step.ops):
            location = f"steps[{step_index}].ops[{op_index}]"
            if isinstance(op, RunOp):
                violation = policy.command_violation(op.cmd)
            else:
                violation = policy.path_violation(op.path)
            if violation is not None:
                diagnostics.append(
                    error(violation.code, violation.message, hint=violation.hint, path=location)
                )
    return diagnostics


def validate_proof_obligations(steps: Sequence[PlanStep]) -> list[Diagnostic]:
    return [
        error(
            DiagnosticCode.STEP_NO_ENSURES,
            f'Step "{step.id}" has actions but no ensures/checks.',
            hint=(
                "Add at least one ensure (file.exists, file.contains, cmd.ok, route.exists, "
                "git.trackedOnly, doc.*)."
            ),
        )
        for step in steps
        if step.ops and not step.checks
    ]


def validate_requires_order(steps: Sequence[PlanStep]) -> list[Diagnostic]:
    """Warn when ``requires`` names an unknown step or one that runs later."""

    diagnostics: list[Diagnostic] = []
    all_ids = {step.id for step in steps}
    seen: set[str] = set()
    for step in steps:
        for required in step.requires:
            if required in seen:
                continue
            if required in all_ids:
                message = f'Step "{step.id}" requires "{required}", which runs later.'
            else:
                message = f'Step "{step.id}" requires unknown step "{required}".'
            diagnostics.append(
                warning(
                    DiagnosticCode.REQUIRES_ORDER,
                    message,
                    hint="Steps run in the order listed; requires is not used for scheduling.",
                )
            )
        seen.add(step.id)
    return diagnostics


def _write_targets(steps: Iterable[PlanStep]) -> Iterable[str]:
    for step in steps:
        for op in step.ops:
            target = write_target(op)
            if target is not None:
                yield target


__all__ = [
    "DecisionResolution",
    "resolve_decisions",
    "validate_assumptions",
    "validate_claims",
    "validate_effects",
    "validate_effects_declaration",
    "validate_proof_obligations",
    "validate_required_artifacts",
    "validate_requires_order",
    "validate_step_decisions",
]
