"""
webspec — unit tests for static guardrails

File: tests/unit/compiler/test_guardrails.py

Purpose
- Exercise each guardrail pass on its own, plus the decision-graph diagnostics that
  only surface through a full compile.
"""

from __future__ import annotations

from typing import Any

from webspec.compiler import compile_webspec
from webspec.compiler.guardrails import (
    resolve_decisions,
    validate_effects,
    validate_proof_obligations,
    validate_requires_order,
)
from webspec.domain.manifest import parse_manifest
from webspec.domain.plan import AppendFileOp, FileExistsCheck, PlanStep, RunOp, WriteFileOp
from webspec.domain.spec import parse_webspec
from webspec.policy.effects import EffectPolicy


def _decision(decision_id: str, *, parent: str | None = None, status: str = "final") -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": decision_id,
        "question": "q",
        "answer": "a",
        "rationale": "r",
        "status": status,
        "confidence": 0.5,
    }
    if parent is not None:
        record["parent"] = parent
    return record


def _codes(result) -> list[str]:  # type: ignore[no-untyped-def]
    return [item.code for item in result.diagnostics]


def test_duplicate_decision_ids(registry, current_spec, to_yaml) -> None:
    spec = current_spec(decisions=[_decision("D1"), _decision("D1")])
    result = compile_webspec(to_yaml(spec), registry)

    assert _codes(result) == ["E413_DECISION_DUPLICATE"]


def test_missing_decision_parent(registry, current_spec, to_yaml) -> None:
    spec = current_spec(decisions=[_decision("D1", parent="D0")])
    result = compile_webspec(to_yaml(spec), registry)

    assert _codes(result) == ["E414_DECISION_PARENT_MISSING"]
    assert "D0" in result.diagnostics[0].message


def test_decision_cycle(registry, current_spec, to_yaml) -> None:
    spec = current_spec(decisions=[_decision("A", parent="B"), _decision("B", parent="A")])
    result = compile_webspec(to_yaml(spec), registry)

    assert _codes(result) == ["E415_DECISION_CYCLE"]
    assert result.plan is None


def test_final_decision_tree_compiles(registry, current_spec, to_yaml) -> None:
    spec = current_spec(decisions=[_decision("root"), _decision("leaf", parent="root")])
    spec["steps"][0]["decisions"] = ["leaf"]
    result = compile_webspec(to_yaml(spec), registry)

    assert result.ok, _codes(result)
    assert result.plan is not None
    assert result.plan.steps[0].decisions == ("leaf",)


def test_step_decision_under_open_parent_is_not_final(registry, current_spec, to_yaml) -> None:
    spec = current_spec(
        decisions=[_decision("hosting", status="provisional"), _decision("cdn", parent="hosting")]
    )
    spec["steps"][0]["decisions"] = ["cdn"]
    result = compile_webspec(to_yaml(spec), registry)

    assert _codes(result) == ["E426_STEP_DECISION_NOT_FINAL"]
    assert "cdn" in result.diagnostics[0].message
    assert "hosting" in result.diagnostics[0].message


def test_assumption_decision_under_open_parent_is_not_final(
    registry, current_spec, to_yaml
) -> None:
    spec = current_spec(
        decisions=[_decision("hosting", status="provisional"), _decision("A1", parent="hosting")],
        assumptions=[{"id": "A1", "text": "Static hosting", "status": "verified"}],
    )
    result = compile_webspec(to_yaml(spec), registry)

    assert _codes(result) == ["E412_ASSUMPTION_DECISION_NOT_FINAL"]
    assert "hosting" in result.diagnostics[0].message


def test_resolution_reads_through_the_tree(current_spec) -> None:
    spec = parse_webspec(
        current_spec(decisions=[_decision("root"), _decision("leaf", parent="root")])
    )
    resolution = resolve_decisions(spec)

    assert resolution.tree is not None
    assert resolution.get("leaf") is resolution.tree.get("leaf")
    assert resolution.get("ghost") is None
    assert resolution.open_ancestor("leaf") is None


def test_writefile_without_content(registry, current_spec, to_yaml) -> None:
    spec = current_spec()
    spec["steps"][0]["actions"] = [{"writeFile": {"path": "docs/empty.md"}}]
    result = compile_webspec(to_yaml(spec), registry)

    assert _codes(result) == ["E220_WRITEFILE_NO_CONTENT"]
    assert result.diagnostics[0].path == "steps[0].actions[0]"


def test_legacy_spec_ignores_claims_and_decisions(registry, legacy_spec, to_yaml) -> None:
    spec = legacy_spec(
        steps=[
            {
                "id": "readme",
                "claims": ["NOPE"],
                "decisions": ["NOPE"],
                "actions": [{"writeFile": {"path": "README.md", "content": "# demo\n"}}],
                "ensures": [{"exists": "README.md"}],
            }
        ]
    )
    result = compile_webspec(to_yaml(spec), registry)

    assert result.ok, _codes(result)
    assert result.plan is not None
    assert [step.id for step in result.plan.steps] == ["readme"]
    assert result.plan.steps[0].claims == ()


def test_effects_report_each_op_location(vite_manifest: dict[str, Any]) -> None:
    policy = EffectPolicy.from_manifest(parse_manifest(vite_manifest))
    steps = [
        PlanStep(id="ok", ops=(WriteFileOp(path="docs/a.md", content=""),)),
        PlanStep(
            id="bad",
            ops=(
                RunOp(cmd="echo hi"),
                AppendFileOp(path="../escape.txt", content=""),
                RunOp(cmd="curl http://example.com"),
            ),
        ),
    ]

    diagnostics = validate_effects(steps, policy)

    assert [(item.code, item.path) for item in diagnostics] == [
        ("E300_WRITE_OUTSIDE", "steps[1].ops[1]"),
        ("E310_CMD_NOT_ALLOWED", "steps[1].ops[2]"),
    ]


def test_proof_obligations_only_for_steps_with_ops() -> None:
    steps = [
        PlanStep(id="noop"),
        PlanStep(id="checked", ops=(RunOp(cmd="pnpm i"),), checks=(FileExistsCheck(path="x"),)),
        PlanStep(id="unchecked", ops=(RunOp(cmd="pnpm i"),)),
    ]

    diagnostics = validate_proof_obligations(steps)

    assert [item.code for item in diagnostics] == ["E400_STEP_NO_ENSURES"]
    assert '"unchecked"' in diagnostics[0].message


def test_requires_order_warnings() -> None:
    steps = [
        PlanStep(id="a", requires=("b",)),
        PlanStep(id="b", requires=("a",)),
        PlanStep(id="c", requires=("ghost",)),
    ]

    diagnostics = validate_requires_order(steps)

    assert [item.code for item in diagnostics] == ["W430_REQUIRES_ORDER", "W430_REQUIRES_ORDER"]
    assert all(not item.is_error for item in diagnostics)
    assert "runs later" in diagnostics[0].message
    assert "unknown step" in diagnostics[1].message
