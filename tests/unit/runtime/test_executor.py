"""
webspec — unit tests for the plan executor

File: tests/unit/runtime/test_executor.py

Purpose
- Validate plan execution against a temporary working tree.

What this test file should cover
- Ops applied in order, templates rendered, checks verified per step.
- Runtime re-check of write and command policy.
- Decode and target failures before anything touches disk.
- Step markers and non-gating warnings.
"""

from __future__ import annotations

import io
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

from webspec.compiler import compile_webspec
from webspec.domain.manifest import StackManifest
from webspec.domain.plan import (
    AppendFileOp,
    CmdOkCheck,
    DocContainsFuzzyCheck,
    DocSectionCheck,
    FileContainsCheck,
    FileExistsCheck,
    Plan,
    PlanStep,
    RouteExistsCheck,
    RunOp,
    WriteFileOp,
    WriteTemplateOp,
)
from webspec.registry.loader import TemplateNotFoundError
from webspec.runtime import (
    CheckFailedError,
    InvalidPlanError,
    OperationFailedError,
    PolicyViolationError,
    UnknownTargetError,
    render_template,
    run_plan,
)

_TEMPLATES = {
    "routes.generated.tsx.tpl": "export const routes = {{ROUTES_JSON}};\n",
    "page.tsx.tpl": "export default function {{PAGE}}() { return null }\n",
}


def _template_loader(manifest: StackManifest, template: str) -> str:
    try:
        return _TEMPLATES[template]
    except KeyError:
        raise TemplateNotFoundError(f"template not found for {manifest.id!r}: {template}") from None


class _Recorder:
    def __init__(self, failing: Sequence[str] = ()) -> None:
        self.calls: list[tuple[list[str], Path]] = []
        self._failing = set(failing)

    def __call__(self, argv: Sequence[str], cwd: Path) -> int:
        self.calls.append((list(argv), cwd))
        return 1 if " ".join(argv) in self._failing else 0


def _plan(*steps: PlanStep, target: str = "vite-react") -> Plan:
    return Plan(target=target, preset_version=1, spec_hash="0" * 64, steps=steps)


def _run(plan: Plan | dict[str, Any], tmp_path: Path, registry: dict[str, Any], **kwargs: Any) -> str:
    out = io.StringIO()
    kwargs.setdefault("command_runner", _Recorder())
    run_plan(
        plan,
        cwd=tmp_path,
        registry=registry,
        template_loader=_template_loader,
        out=out,
        **kwargs,
    )
    return out.getvalue()


def test_render_template() -> None:
    assert render_template("a {{X}} b {{Y}} {{ X }}", {"X": "1"}) == "a 1 b  {{ X }}"


def test_writes_and_appends_then_checks(tmp_path: Path, registry: dict[str, Any]) -> None:
    plan = _plan(
        PlanStep(
            id="docs",
            ops=(
                WriteFileOp(path="docs/guide.md", content="# Guide\n"),
                AppendFileOp(path="docs/guide.md", content="## Usage\nrun it\n"),
                AppendFileOp(path=".gitignore", content=".ai/*\n"),
            ),
            checks=(
                DocSectionCheck(path="docs/guide.md", heading="Usage"),
                FileContainsCheck(path=".gitignore", text=".ai/*"),
            ),
        ),
        PlanStep(id="second", checks=(FileExistsCheck(path="docs/guide.md"),)),
    )

    output = _run(plan, tmp_path, registry)

    assert (tmp_path / "docs/guide.md").read_text(encoding="utf-8") == "# Guide\n## Usage\nrun it\n"
    assert output == "\n==> STEP docs\n\n==> STEP second\n"


def test_write_template_renders_vars(tmp_path: Path, registry: dict[str, Any]) -> None:
    plan = _plan(
        PlanStep(
            id="routes",
            ops=(
                WriteTemplateOp(
                    path="apps/web/src/routes.generated.tsx",
                    template="routes.generated.tsx.tpl",
                    vars={"ROUTES_JSON": '[{"path":"/","page":"Home"}]'},
                ),
            ),
            checks=(RouteExistsCheck(route="/"),),
        )
    )

    _run(plan, tmp_path, registry)

    assert (tmp_path / "apps/web/src/routes.generated.tsx").read_text(encoding="utf-8") == (
        'export const routes = [{"path":"/","page":"Home"}];\n'
    )


def test_missing_template_fails_the_op(tmp_path: Path, registry: dict[str, Any]) -> None:
    plan = _plan(
        PlanStep(
            id="tpl",
            ops=(WriteTemplateOp(path="apps/web/x.tsx", template="nope.tpl"),),
            checks=(FileExistsCheck(path="apps/web/x.tsx"),),
        )
    )

    with pytest.raises(OperationFailedError, match=r"^\[tpl\] template not found"):
        _run(plan, tmp_path, registry)


def test_run_ops_and_cmd_checks_use_runner(tmp_path: Path, registry: dict[str, Any]) -> None:
    recorder = _Recorder()
    plan = _plan(
        PlanStep(
            id="build",
            ops=(RunOp(cmd="pnpm install"), RunOp(cmd="pnpm build", cwd="apps/web")),
            checks=(CmdOkCheck(cmd="pnpm -C apps/web --version"),),
        )
    )

    _run(plan, tmp_path, registry, command_runner=recorder)

    root = tmp_path.resolve()
    assert recorder.calls == [
        (["pnpm", "install"], root),
        (["pnpm", "build"], root / "apps/web"),
        (["pnpm", "-C", "apps/web", "--version"], root),
    ]


def test_failed_command_stops_the_run(tmp_path: Path, registry: dict[str, Any]) -> None:
    recorder = _Recorder(failing=["pnpm install"])
    plan = _plan(
        PlanStep(id="install", ops=(RunOp(cmd="pnpm install"),), checks=(CmdOkCheck(cmd="pnpm -v"),)),
        PlanStep(id="never", ops=(WriteFileOp(path="docs/never.md", content=""),)),
    )

    with pytest.raises(OperationFailedError, match=r"^\[install\] Command failed \(1\): pnpm install$"):
        _run(plan, tmp_path, registry, command_runner=recorder)

    assert len(recorder.calls) == 1
    assert not (tmp_path / "docs/never.md").exists()


def test_runtime_rejects_disallowed_write(tmp_path: Path, registry: dict[str, Any]) -> None:
    plan = _plan(PlanStep(id="bad", ops=(WriteFileOp(path="apps/web/.env", content="K=V"),)))

    with pytest.raises(PolicyViolationError) as excinfo:
        _run(plan, tmp_path, registry)

    assert excinfo.value.code == "E301_DENIED_PATH"
    assert excinfo.value.step_id == "bad"
    assert not (tmp_path / "apps/web/.env").exists()


def test_runtime_rejects_traversal_write(tmp_path: Path, registry: dict[str, Any]) -> None:
    plan = _plan(
        PlanStep(id="bad", ops=(WriteFileOp(path="apps/web/../../package.json", content="x"),))
    )

    with pytest.raises(PolicyViolationError) as excinfo:
        _run(plan, tmp_path, registry)

    assert excinfo.value.code == "E300_WRITE_OUTSIDE"
    assert excinfo.value.step_id == "bad"
    assert not (tmp_path / "package.json").exists()
    assert not (tmp_path.parent / "package.json").exists()


def test_runtime_rejects_disallowed_command(tmp_path: Path, registry: dict[str, Any]) -> None:
    recorder = _Recorder()
    plan = _plan(PlanStep(id="bad", ops=(RunOp(cmd="make install"),)))

    with pytest.raises(PolicyViolationError) as excinfo:
        _run(plan, tmp_path, registry, command_runner=recorder)

    assert excinfo.value.code == "E310_CMD_NOT_ALLOWED"
    assert recorder.calls == []


def test_run_cwd_may_not_escape(tmp_path: Path, registry: dict[str, Any]) -> None:
    plan = _plan(PlanStep(id="bad", ops=(RunOp(cmd="pnpm build", cwd="../.."),)))

    with pytest.raises(PolicyViolationError) as excinfo:
        _run(plan, tmp_path, registry)

    assert excinfo.value.code == "E300_WRITE_OUTSIDE"


def test_failed_check_names_the_step(tmp_path: Path, registry: dict[str, Any]) -> None:
    plan = _plan(PlanStep(id="verify", checks=(FileExistsCheck(path="docs/missing.md"),)))

    with pytest.raises(CheckFailedError, match=r"^\[verify\] Expected file to exist: docs/missing.md$"):
        _run(plan, tmp_path, registry)


def test_non_gating_fuzzy_check_warns_and_continues(tmp_path: Path, registry: dict[str, Any]) -> None:
    warnings: list[str] = []
    plan = _plan(
        PlanStep(
            id="docs",
            ops=(WriteFileOp(path="docs/a.md", content="alpha beta"),),
            checks=(DocContainsFuzzyCheck(path="docs/a.md", text="zzz", threshold=0.9, gate=False),),
        ),
        PlanStep(
            id="strict",
            checks=(DocContainsFuzzyCheck(path="docs/a.md", text="zzz", threshold=0.9),),
        ),
    )

    with pytest.raises(CheckFailedError, match=r"^\[strict\] Fuzzy doc check failed"):
        _run(plan, tmp_path, registry, on_warning=warnings.append)

    assert len(warnings) == 1


def test_invalid_plan_is_rejected_before_any_write(tmp_path: Path, registry: dict[str, Any]) -> None:
    payload = {
        "lang": "webspec/plan-v0.1",
        "target": "vite-react",
        "presetVersion": 1,
        "specHash": "x",
        "steps": [
            {
                "id": "a",
                "ops": [{"kind": "WRITE_FILE", "path": "docs/a.md", "content": "x"}],
                "checks": [],
            },
            {"id": "b", "ops": [{"kind": "DELETE", "path": "docs/a.md"}], "checks": []},
        ],
    }

    with pytest.raises(InvalidPlanError, match="unknown op kind 'DELETE'"):
        _run(payload, tmp_path, registry)

    assert not (tmp_path / "docs").exists()


def test_unknown_target(tmp_path: Path, registry: dict[str, Any]) -> None:
    with pytest.raises(UnknownTargetError, match="Unknown target in plan: rails"):
        _run(_plan(target="rails"), tmp_path, registry)


def test_compiled_legacy_plan_runs_on_app_router(
    tmp_path: Path, registry: dict[str, Any], legacy_spec, to_yaml
) -> None:
    spec = legacy_spec(target="next-app", ui=None, quality=None)
    result = compile_webspec(to_yaml(spec), registry)
    assert result.plan is not None
    # The scaffold command is simulated, so provide the file it would create.
    (tmp_path / "apps/web").mkdir(parents=True)
    (tmp_path / "apps/web/package.json").write_text("{}", encoding="utf-8")
    runnable = Plan(
        target=result.plan.target,
        preset_version=result.plan.preset_version,
        spec_hash=result.plan.spec_hash,
        steps=tuple(step for step in result.plan.steps if step.id != "init_ai"),
    )

    output = _run(runnable, tmp_path, registry)

    assert "==> STEP add_routes" in output
    assert (tmp_path / "apps/web/app/about/page.tsx").read_text(encoding="utf-8") == (
        "export default function About() { return null }\n"
    )
