"""Plan IR: closed tagged variants for operations and checks, plus the plan envelope.

Every op/check kind is its own frozen dataclass with a ``kind`` tag. Decoding an unknown
kind, or a known kind with malformed fields, raises ``PlanDecodeError``.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import ClassVar, TypeAlias

from webspec.constants import PLAN_LANG
from webspec.domain.validation import (
    IssueCollector,
    ShapeValidationError,
    as_bool,
    as_float,
    as_int,
    as_list,
    as_object,
    as_optional_str,
    as_str,
    as_str_mapping,
    as_str_tuple,
)


class PlanDecodeError(ValueError):
    """Raised when a persisted plan, op, or check does not decode."""


class OpKind(StrEnum):
    RUN = "RUN"
    WRITE_FILE = "WRITE_FILE"
    APPEND_FILE = "APPEND_FILE"
    WRITE_TEMPLATE = "WRITE_TEMPLATE"


class CheckKind(StrEnum):
    FILE_EXISTS = "file.exists"
    FILE_CONTAINS = "file.contains"
    ROUTE_EXISTS = "route.exists"
    CMD_OK = "cmd.ok"
    GIT_TRACKED_ONLY = "git.trackedOnly"
    DOC_SECTION = "doc.section"
    DOC_CONTAINS = "doc.contains"
    DOC_CONTAINS_FUZZY = "doc.contains_fuzzy"
    ARTIFACT_EXISTS = "artifact.exists"


# --- operations -----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RunOp:
    kind: ClassVar[OpKind] = OpKind.RUN

    cmd: str
    cwd: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"kind": self.kind.value, "cmd": self.cmd}
        if self.cwd is not None:
            payload["cwd"] = self.cwd
        return payload


@dataclass(frozen=True, slots=True)
class WriteFileOp:
    kind: ClassVar[OpKind] = OpKind.WRITE_FILE

    path: str
    content: str

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind.value, "path": self.path, "content": self.content}


@dataclass(frozen=True, slots=True)
class AppendFileOp:
    kind: ClassVar[OpKind] = OpKind.APPEND_FILE

    path: str
    content: str

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind.value, "path": self.path, "content": self.content}


@dataclass(frozen=True, slots=True)
class WriteTemplateOp:
    kind: ClassVar[OpKind] = OpKind.WRITE_TEMPLATE

    path: str
    template: str
    vars: Mapping[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "path": self.path,
            "template": self.template,
            "vars": dict(self.vars),
        }


Op: TypeAlias = RunOp | WriteFileOp | AppendFileOp | WriteTemplateOp
WriteOp: TypeAlias = WriteFileOp | AppendFileOp | WriteTemplateOp


def write_target(op: Op) -> str | None:
    """Return the destination path of a write-producing op, ``None`` for ``RUN``."""

    if isinstance(op, RunOp):
        return None
    return op.path


# --- checks ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileExistsCheck:
    kind: ClassVar[CheckKind] = CheckKind.FILE_EXISTS

    path: str

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind.value, "path": self.path}


@dataclass(frozen=True, slots=True)
class FileContainsCheck:
    kind: ClassVar[CheckKind] = CheckKind.FILE_CONTAINS

    path: str
    text: str

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind.value, "path": self.path, "text": self.text}


@dataclass(frozen=True, slots=True)
class RouteExistsCheck:
    kind: ClassVar[CheckKind] = CheckKind.ROUTE_EXISTS

    route: str

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind.value, "route": self.route}


@dataclass(frozen=True, slots=True)
class CmdOkCheck:
    kind: ClassVar[CheckKind] = CheckKind.CMD_OK

    cmd: str

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind.value, "cmd": self.cmd}


@dataclass(frozen=True, slots=True)
class GitTrackedOnlyCheck:
    kind: ClassVar[CheckKind] = CheckKind.GIT_TRACKED_ONLY

    glob: str
    allow: tuple[str, ...]

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind.value, "glob": self.glob, "allow": list(self.allow)}


@dataclass(frozen=True, slots=True)
class DocSectionCheck:
    kind: ClassVar[CheckKind] = CheckKind.DOC_SECTION

    path: str
    heading: str

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind.value, "path": self.path, "heading": self.heading}


@dataclass(frozen=True, slots=True)
class DocContainsCheck:
    kind: ClassVar[CheckKind] = CheckKind.DOC_CONTAINS

    path: str
    text: str

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind.value, "path": self.path, "text": self.text}


@dataclass(frozen=True, slots=True)
class DocContainsFuzzyCheck:
    kind: ClassVar[CheckKind] = CheckKind.DOC_CONTAINS_FUZZY

    path: str
    text: str
    threshold: float
    gate: bool | None = None

    @property
    def is_gating(self) -> bool:
        return self.gate is not False

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "kind": self.kind.value,
            "path": self.path,
            "text": self.text,
            "threshold": self.threshold,
        }
        if self.gate is not None:
            payload["gate"] = self.gate
        return payload


@dataclass(frozen=True, slots=True)
class ArtifactExistsCheck:
    kind: ClassVar[CheckKind] = CheckKind.ARTIFACT_EXISTS

    path: str

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind.value, "path": self.path}


Check: TypeAlias = (
    FileExistsCheck
    | FileContainsCheck
    | RouteExistsCheck
    | CmdOkCheck
    | GitTrackedOnlyCheck
    | DocSectionCheck
    | DocContainsCheck
    | DocContainsFuzzyCheck
    | ArtifactExistsCheck
)


# --- envelope -------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PlanStep:
    id: str
    requires: tuple[str, ...] = ()
    ops: tuple[Op, ...] = ()
    checks: tuple[Check, ...] = ()
    claims: tuple[str, ...] = ()
    decisions: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "requires": list(self.requires),
            "ops": [op.to_dict() for op in self.ops],
            "checks": [check.to_dict() for check in self.checks],
            "claims": list(self.claims),
            "decisions": list(self.decisions),
        }


@dataclass(frozen=True, slots=True)
class Plan:
    """The compiled, immutable execution plan."""

    target: str
    preset_version: int
    spec_hash: str
    steps: tuple[PlanStep, ...]
    lang: str = PLAN_LANG

    def to_dict(self) -> dict[str, object]:
        return {
            "lang": self.lang,
            "target": self.target,
            "presetVersion": self.preset_version,
            "specHash": self.spec_hash,
            "steps": [step.to_dict() for step in self.steps],
        }

    def to_json(self) -> str:
        """Stable JSON form; the same plan always serialises to the same bytes."""

        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"

    @classmethod
    def from_dict(cls, payload: object) -> Plan:
        issues = IssueCollector()
        root = as_object(payload, "plan", issues)
        if root is None:
            raise PlanDecodeError(_render(issues))
        lang = as_str(root.get("lang"), "plan.lang", issues)
        if lang is not None and lang != PLAN_LANG:
            issues.add("plan.lang", f"must be {PLAN_LANG!r}")
        target = as_str(root.get("target"), "plan.target", issues)
        preset_version = as_int(root.get("presetVersion"), "plan.presetVersion", issues, minimum=1)
        spec_hash = as_str(root.get("specHash"), "plan.specHash", issues)
        raw_steps = as_list(root.get("steps"), "plan.steps", issues) or []
        steps = [_decode_step(item, f"plan.steps[{index}]", issues) for index, item in enumerate(raw_steps)]
        if issues.has_issues:
            raise PlanDecodeError(_render(issues))
        return cls(
            target=target,  # type: ignore[arg-type]
            preset_version=preset_version,  # type: ignore[arg-type]
            spec_hash=spec_hash,  # type: ignore[arg-type]
            steps=tuple(step for step in steps if step is not None),
        )

    @classmethod
    def from_json(cls, text: str) -> Plan:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PlanDecodeError(f"plan is not valid JSON: {exc}") from exc
        return cls.from_dict(payload)


def op_from_dict(payload: object, path: str = "op") -> Op:
    issues = IssueCollector()
    op = _decode_op(payload, path, issues)
    if op is None or issues.has_issues:
        raise PlanDecodeError(_render(issues))
    return op


def check_from_dict(payload: object, path: str = "check") -> Check:
    issues = IssueCollector()
    check = _decode_check(payload, path, issues)
    if check is None or issues.has_issues:
        raise PlanDecodeError(_render(issues))
    return check


def _render(issues: IssueCollector) -> str:
    return str(ShapeValidationError("plan", issues.items()))


def _decode_step(value: object, path: str, issues: IssueCollector) -> PlanStep | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    step_id = as_str(parsed.get("id"), f"{path}.id", issues)
    requires = _optional_ids(parsed.get("requires"), f"{path}.requires", issues)
    claims = _optional_ids(parsed.get("claims"), f"{path}.claims", issues)
    decisions = _optional_ids(parsed.get("decisions"), f"{path}.decisions", issues)
    raw_ops = as_list(parsed.get("ops"), f"{path}.ops", issues) or []
    raw_checks = as_list(parsed.get("checks"), f"{path}.checks", issues) or []
    ops = [_decode_op(item, f"{path}.ops[{index}]", issues) for index, item in enumerate(raw_ops)]
    checks = [
        _decode_check(item, f"{path}.checks[{index}]", issues)
        for index, item in enumerate(raw_checks)
    ]
    if step_id is None:
        return None
    return PlanStep(
        id=step_id,
        requires=requires,
        ops=tuple(op for op in ops if op is not None),
        checks=tuple(check for check in checks if check is not None),
        claims=claims,
        decisions=decisions,
    )


def _optional_ids(value: object, path: str, issues: IssueCollector) -> tuple[str, ...]:
    if value is None:
        return ()
    return as_str_tuple(value, path, issues) or ()


def _decode_op(value: object, path: str, issues: IssueCollector) -> Op | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    kind = parsed.get("kind")
    if kind == OpKind.RUN:
        cmd = as_str(parsed.get("cmd"), f"{path}.cmd", issues)
        cwd = as_optional_str(parsed.get("cwd"), f"{path}.cwd", issues)
        return None if cmd is None else RunOp(cmd=cmd, cwd=cwd)
    if kind in (OpKind.WRITE_FILE, OpKind.APPEND_FILE):
        target = as_str(parsed.get("path"), f"{path}.path", issues)
        content = as_str(parsed.get("content"), f"{path}.content", issues, allow_empty=True)
        if target is None or content is None:
            return None
        if kind == OpKind.WRITE_FILE:
            return WriteFileOp(path=target, content=content)
        return AppendFileOp(path=target, content=content)
    if kind == OpKind.WRITE_TEMPLATE:
        target = as_str(parsed.get("path"), f"{path}.path", issues)
        template = as_str(parsed.get("template"), f"{path}.template", issues)
        variables: dict[str, str] | None = {}
        if parsed.get("vars") is not None:
            variables = as_str_mapping(parsed["vars"], f"{path}.vars", issues)
        if target is None or template is None or variables is None:
            return None
        return WriteTemplateOp(path=target, template=template, vars=variables)
    issues.add(f"{path}.kind", f"unknown op kind {kind!r}")
    return None


def _decode_check(value: object, path: str, issues: IssueCollector) -> Check | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    kind = parsed.get("kind")

    def text(key: str, *, allow_empty: bool = False) -> str | None:
        return as_str(parsed.get(key), f"{path}.{key}", issues, allow_empty=allow_empty)

    if kind == CheckKind.FILE_EXISTS:
        target = text("path")
        return None if target is None else FileExistsCheck(path=target)
    if kind == CheckKind.ARTIFACT_EXISTS:
        target = text("path")
        return None if target is None else ArtifactExistsCheck(path=target)
    if kind in (CheckKind.FILE_CONTAINS, CheckKind.DOC_CONTAINS):
        target, needle = text("path"), text("text", allow_empty=True)
        if target is None or needle is None:
            return None
        if kind == CheckKind.FILE_CONTAINS:
            return FileContainsCheck(path=target, text=needle)
        return DocContainsCheck(path=target, text=needle)
    if kind == CheckKind.ROUTE_EXISTS:
        route = text("route")
        return None if route is None else RouteExistsCheck(route=route)
    if kind == CheckKind.CMD_OK:
        cmd = text("cmd")
        return None if cmd is None else CmdOkCheck(cmd=cmd)
    if kind == CheckKind.GIT_TRACKED_ONLY:
        glob = text("glob")
        allow = as_str_tuple(parsed.get("allow"), f"{path}.allow", issues)
        if glob is None or allow is None:
            return None
        return GitTrackedOnlyCheck(glob=glob, allow=allow)
    if kind == CheckKind.DOC_SECTION:
        target, heading = text("path"), text("heading")
        if target is None or heading is None:
            return None
        return DocSectionCheck(path=target, heading=heading)
    if kind == CheckKind.DOC_CONTAINS_FUZZY:
        target, needle = text("path"), text("text")
        threshold = as_float(
            parsed.get("threshold"), f"{path}.threshold", issues, minimum=0.0, maximum=1.0
        )
        gate = None
        if parsed.get("gate") is not None:
            gate = as_bool(parsed["gate"], f"{path}.gate", issues)
        if target is None or needle is None or threshold is None:
            return None
        return DocContainsFuzzyCheck(path=target, text=needle, threshold=threshold, gate=gate)
    issues.add(f"{path}.kind", f"unknown check kind {kind!r}")
    return None


__all__ = [
    "AppendFileOp",
    "ArtifactExistsCheck",
    "Check",
    "CheckKind",
    "CmdOkCheck",
    "DocContainsCheck",
    "DocContainsFuzzyCheck",
    "DocSectionCheck",
    "FileContainsCheck",
    "FileExistsCheck",
    "GitTrackedOnlyCheck",
    "Op",
    "OpKind",
    "Plan",
    "PlanDecodeError",
    "PlanStep",
    "RouteExistsCheck",
    "RunOp",
    "WriteFileOp",
    "WriteOp",
    "WriteTemplateOp",
    "check_from_dict",
    "op_from_dict",
    "write_target",
]
