"""
webspec — plan executor

File: src/webspec/runtime/executor.py

Purpose
- Apply a compiled Plan IR to a working directory, step by step, and verify each
  step's proof obligations before moving on.

Functional requirements
- The plan is re-decoded before anything runs; a malformed plan never touches disk.
- Every op is re-checked against the stack's write and command policy at run time.
- Steps run in plan order; ops before checks; the first failure aborts the run.
- A non-gating fuzzy doc check only warns.
"""

from __future__ import annotations

import re
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Final, TextIO

import structlog

from webspec.domain.diagnostics import DiagnosticCode
from webspec.domain.manifest import StackManifest, parse_manifest
from webspec.domain.plan import (
    AppendFileOp,
    Op,
    Plan,
    PlanDecodeError,
    PlanStep,
    RunOp,
    WriteFileOp,
    WriteTemplateOp,
)
from webspec.domain.validation import ShapeValidationError
from webspec.observability.logging import get_logger
from webspec.policy.effects import EffectPolicy
from webspec.registry.loader import RegistryError, TemplateLoader, load_template
from webspec.runtime.checks import (
    CheckContext,
    CommandRunner,
    WarningSink,
    default_command_runner,
    evaluate_check,
    split_command,
    stderr_warning,
)
from webspec.runtime.errors import (
    InvalidPlanError,
    OperationFailedError,
    PolicyViolationError,
    UnknownTargetError,
)
from webspec.utils.fs import resolve_within

logger = get_logger(__name__)

_TEMPLATE_VAR_RE: Final[re.Pattern[str]] = re.compile(r"\{\{([A-Za-z0-9_]+)\}\}")
_ESCAPE_CODE: Final[str] = DiagnosticCode.WRITE_OUTSIDE.value


def render_template(text: str, variables: Mapping[str, str]) -> str:
    """Replace ``{{name}}`` with ``variables[name]``; unknown names become empty."""

    return _TEMPLATE_VAR_RE.sub(lambda match: variables.get(match.group(1), ""), text)


def run_plan(
    plan: Plan | Mapping[str, object],
    *,
    cwd: Path | str,
    registry: Mapping[str, object],
    template_loader: TemplateLoader = load_template,
    command_runner: CommandRunner = default_command_runner,
    on_warning: WarningSink = stderr_warning,
    out: TextIO | None = None,
) -> None:
    """
    Execute ``plan`` inside ``cwd`` against the stacks in ``registry``.

    Raises a ``PlanExecutionError`` subclass on the first failure. Progress markers
    are written to ``out`` (stdout by default).
    """

    decoded = _decode(plan)
    manifest = _resolve_manifest(decoded.target, registry)
    policy = EffectPolicy.from_manifest(manifest)
    root = Path(cwd).resolve()
    stream = out if out is not None else sys.stdout

    logger.info(
        "plan_run_started",
        target=decoded.target,
        spec_hash=decoded.spec_hash,
        step_count=len(decoded.steps),
        workdir=str(root),
    )
    runner = _StepRunner(
        root=root,
        manifest=manifest,
        policy=policy,
        template_loader=template_loader,
        command_runner=command_runner,
        on_warning=on_warning,
    )
    for step in decoded.steps:
        stream.write(f"\n==> STEP {step.id}\n")
        stream.flush()
        with structlog.contextvars.bound_contextvars(step_id=step.id):
            logger.info("plan_step_started", op_count=len(step.ops), check_count=len(step.checks))
            runner.run_step(step)
    logger.info("plan_run_finished", target=decoded.target, step_count=len(decoded.steps))


def _decode(plan: Plan | Mapping[str, object]) -> Plan:
    payload = plan.to_dict() if isinstance(plan, Plan) else plan
    try:
        return Plan.from_dict(payload)
    except PlanDecodeError as exc:
        raise InvalidPlanError(f"Invalid plan: {exc}") from exc


def _resolve_manifest(target: str, registry: Mapping[str, object]) -> StackManifest:
    raw = registry.get(target)
    if raw is None:
        raise UnknownTargetError(f"Unknown target in plan: {target}")
    if isinstance(raw, StackManifest):
        return raw
    try:
        return parse_manifest(raw)
    except ShapeValidationError as exc:
        raise InvalidPlanError(f"Invalid stack manifest for {target}: {exc}") from exc


class _StepRunner:
    def __init__(
        self,
        *,
        root: Path,
        manifest: StackManifest,
        policy: EffectPolicy,
        template_loader: TemplateLoader,
        command_runner: CommandRunner,
        on_warning: WarningSink,
    ) -> None:
        self._root = root
        self._manifest = manifest
        self._policy = policy
        self._template_loader = template_loader
        self._command_runner = command_runner
        self._on_warning = on_warning

    def run_step(self, step: PlanStep) -> None:
        for op in step.ops:
            self._apply(op, step.id)
        context = CheckContext(
            cwd=self._root,
            manifest=self._manifest,
            run_command=self._command_runner,
            on_warning=self._on_warning,
            step_id=step.id,
        )
        for check in step.checks:
            evaluate_check(check, context)
            logger.debug("plan_check_passed", check_kind=check.kind.value)

    def _apply(self, op: Op, step_id: str) -> None:
        if isinstance(op, RunOp):
            self._run(op, step_id)
        elif isinstance(op, WriteFileOp):
            self._write(op.path, op.content, step_id, append=False)
        elif isinstance(op, AppendFileOp):
            self._write(op.path, op.content, step_id, append=True)
        elif isinstance(op, WriteTemplateOp):
            try:
                template = self._template_loader(self._manifest, op.template)
            except (RegistryError, OSError) as exc:
                raise OperationFailedError(str(exc), step_id=step_id) from exc
            self._write(op.path, render_template(template, op.vars), step_id, append=False)
        else:
            raise OperationFailedError(f"Unknown op kind: {op.kind}", step_id=step_id)
        logger.debug("plan_op_applied", op_kind=op.kind.value)

    def _write(self, relative: str, content: str, step_id: str, *, append: bool) -> None:
        violation = self._policy.path_violation(relative)
        if violation is not None:
            raise PolicyViolationError(violation.message, code=violation.code.value, step_id=step_id)
        try:
            target = resolve_within(self._root, relative)
        except ValueError as exc:
            raise PolicyViolationError(str(exc), code=_ESCAPE_CODE, step_id=step_id) from exc
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if append:
                with target.open("a", encoding="utf-8") as handle:
                    handle.write(content)
            else:
                target.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise OperationFailedError(f"Cannot write {relative}: {exc}", step_id=step_id) from exc

    def _run(self, op: RunOp, step_id: str) -> None:
        violation = self._policy.command_violation(op.cmd)
        if violation is not None:
            raise PolicyViolationError(violation.message, code=violation.code.value, step_id=step_id)
        try:
            argv = split_command(op.cmd)
        except ValueError as exc:
            raise OperationFailedError(f"Cannot parse command {op.cmd!r}: {exc}", step_id=step_id) from exc
        run_cwd = self._root
        if op.cwd is not None:
            try:
                run_cwd = resolve_within(self._root, op.cwd)
            except ValueError as exc:
                raise PolicyViolationError(str(exc), code=_ESCAPE_CODE, step_id=step_id) from exc
        logger.info("plan_command_started", cmd=op.cmd, run_cwd=str(run_cwd))
        try:
            returncode = self._command_runner(argv, run_cwd)
        except OSError as exc:
            raise OperationFailedError(f"Command failed to start: {op.cmd}: {exc}", step_id=step_id) from exc
        if returncode != 0:
            raise OperationFailedError(f"Command failed ({returncode}): {op.cmd}", step_id=step_id)


__all__ = ["render_template", "run_plan"]
