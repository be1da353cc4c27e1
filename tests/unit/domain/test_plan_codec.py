"""
webspec — unit tests for the Plan IR codec

File: tests/unit/domain/test_plan_codec.py

Purpose
- Validate Plan IR serialisation shape and the decoder's error reporting.
"""

from __future__ import annotations

import json

import pytest

from webspec.domain.plan import (
    AppendFileOp,
    DocContainsFuzzyCheck,
    GitTrackedOnlyCheck,
    Plan,
    PlanDecodeError,
    PlanStep,
    RunOp,
    WriteTemplateOp,
    check_from_dict,
    op_from_dict,
    write_target,
)


def _plan() -> Plan:
    return Plan(
        target="vite-react",
        preset_version=2,
        spec_hash="ab" * 32,
        steps=(
            PlanStep(
                id="init",
                ops=(
                    RunOp(cmd="pnpm i", cwd="apps/web"),
                    AppendFileOp(path=".gitignore", content=".ai/*\n"),
                    WriteTemplateOp(path="apps/web/a.tsx", template="a.tpl", vars={"B": "1", "A": "2"}),
                ),
                checks=(
                    GitTrackedOnlyCheck(glob=".ai/**", allow=(".ai/README.md",)),
                    DocContainsFuzzyCheck(path="README.md", text="demo", threshold=0.75, gate=False),
                ),
                claims=("INV-1",),
            ),
        ),
    )


def test_to_dict_shape() -> None:
    payload = _plan().to_dict()

    assert list(payload) == ["lang", "target", "presetVersion", "specHash", "steps"]
    assert payload["lang"] == "webspec/plan-v0.1"
    step = payload["steps"][0]  # type: ignore[index]
    assert step["ops"][0] == {"kind": "RUN", "cmd": "pnpm i", "cwd": "apps/web"}
    assert step["checks"][1] == {
        "kind": "doc.contains_fuzzy",
        "path": "README.md",
        "text": "demo",
        "threshold": 0.75,
        "gate": False,
    }
    assert step["requires"] == []
    assert step["decisions"] == []


def test_json_roundtrip_and_stable_bytes() -> None:
    plan = _plan()
    text = plan.to_json()

    assert text.endswith("}\n")
    assert Plan.from_json(text) == plan
    assert Plan.from_json(text).to_json() == text


def test_decoder_collects_every_issue() -> None:
    payload = json.loads(_plan().to_json())
    payload["lang"] = "webspec/plan-v9"
    payload["presetVersion"] = 0
    payload["steps"][0]["ops"][0] = {"kind": "RUN"}
    payload["steps"][0]["checks"][0] = {"kind": "git.trackedOnly", "glob": ".ai/**"}

    with pytest.raises(PlanDecodeError) as excinfo:
        Plan.from_dict(payload)

    message = str(excinfo.value)
    assert "plan.lang" in message
    assert "plan.presetVersion" in message
    assert "plan.steps[0].ops[0].cmd" in message
    assert "plan.steps[0].checks[0].allow" in message


def test_from_json_rejects_invalid_json() -> None:
    with pytest.raises(PlanDecodeError, match="not valid JSON"):
        Plan.from_json("{")


def test_from_dict_rejects_non_object() -> None:
    with pytest.raises(PlanDecodeError, match="expected object"):
        Plan.from_dict(["steps"])


def test_single_op_and_check_decoders() -> None:
    assert op_from_dict({"kind": "APPEND_FILE", "path": "a", "content": ""}) == AppendFileOp(
        path="a", content=""
    )
    with pytest.raises(PlanDecodeError, match="unknown op kind"):
        op_from_dict({"kind": "MOVE"})
    with pytest.raises(PlanDecodeError, match="unknown check kind"):
        check_from_dict({"kind": "pixel.perfect"})


def test_write_target() -> None:
    assert write_target(RunOp(cmd="pnpm i")) is None
    assert write_target(AppendFileOp(path="x", content="")) == "x"
