"""Decoding of step ``actions`` and ``ensures`` into closed tagged variants.

An action or ensure is a single-key mapping (``{run: "..."}``, ``{exists: "..."}``).
Unknown keys and malformed payloads raise typed decode errors that the plan builder
turns into ``E211_UNKNOWN_ACTION`` / ``E210_UNKNOWN_ENSURE`` diagnostics.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final, TypeAlias

from webspec.compiler.macros import stringify
from webspec.constants import DEFAULT_FUZZY_THRESHOLD
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
from webspec.domain.validation import (
    IssueCollector,
    as_bool,
    as_float,
    as_object,
    as_str,
    as_str_tuple,
)

ACTION_KEYS: Final[tuple[str, ...]] = ("run", "writeFile", "appendFile", "writeTemplate", "macro")
ENSURE_KEYS: Final[tuple[str, ...]] = (
    "exists",
    "contains",
    "routeExists",
    "cmdOk",
    "trackedOnly",
    "docSection",
    "docContains",
    "docContainsFuzzy",
    "artifactExists",
)


class UnknownActionError(ValueError):
    """Raised for an action with no recognised tag or a malformed payload."""


class UnknownEnsureError(ValueError):
    """Raised for an ensure with no recognised tag or a malformed payload."""


@dataclass(frozen=True, slots=True)
class RunAction:
    cmd: str


@dataclass(frozen=True, slots=True)
class WriteFileAction:
    path: str
    content: str | None = None
    template: str | None = None
    vars: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AppendFileAction:
    path: str
    content: str


@dataclass(frozen=True, slots=True)
class WriteTemplateAction:
    path: str
    template: str
    vars: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class MacroAction:
    name: str
    args: Mapping[str, object] = field(default_factory=dict)


Action: TypeAlias = RunAction | WriteFileAction | AppendFileAction | WriteTemplateAction | MacroAction


def decode_action(raw: object) -> Action:
    tag, payload = _tagged(raw, ACTION_KEYS, UnknownActionError, "action")
    issues = IssueCollector()
    action: Action | None = None
    if tag == "run":
        cmd = as_str(payload, "run", issues)
        if cmd is not None:
            action = RunAction(cmd=cmd)
    elif tag == "writeFile":
        body = as_object(payload, "writeFile", issues) or {}
        path = as_str(body.get("path"), "writeFile.path", issues)
        template = body.get("template")
        content = body.get("content")
        if path is not None:
            action = WriteFileAction(
                path=path,
                content=content if isinstance(content, str) else None,
                template=template if isinstance(template, str) and template else None,
                vars=_vars(body.get("vars")),
            )
    elif tag == "appendFile":
        body = as_object(payload, "appendFile", issues) or {}
        path = as_str(body.get("path"), "appendFile.path", issues)
        content = as_str(body.get("content"), "appendFile.content", issues, allow_empty=True)
        if path is not None and content is not None:
            action = AppendFileAction(path=path, content=content)
    elif tag == "writeTemplate":
        body = as_object(payload, "writeTemplate", issues) or {}
        path = as_str(body.get("path"), "writeTemplate.path", issues)
        template = as_str(body.get("template"), "writeTemplate.template", issues)
        if path is not None and template is not None:
            action = WriteTemplateAction(path=path, template=template, vars=_vars(body.get("vars")))
    else:
        body = as_object(payload, "macro", issues) or {}
        name = as_str(body.get("name"), "macro.name", issues)
        args: dict[str, object] = {}
        if body.get("args") is not None:
            args = as_object(body["args"], "macro.args", issues) or {}
        if name is not None:
            action = MacroAction(name=name, args=args)
    if action is None or issues.has_issues:
        raise UnknownActionError(_detail(issues))
    return action


def decode_ensure(raw: object) -> Check:
    """Map one ensure to its primitive check through the fixed lookup table."""

    tag, payload = _tagged(raw, ENSURE_KEYS, UnknownEnsureError, "ensure")
    issues = IssueCollector()
    check: Check | None = None
    if tag == "exists":
        path = as_str(payload, "exists", issues)
        if path is not None:
            check = FileExistsCheck(path=path)
    elif tag == "routeExists":
        route = as_str(payload, "routeExists", issues)
        if route is not None:
            check = RouteExistsCheck(route=route)
    elif tag == "cmdOk":
        cmd = as_str(payload, "cmdOk", issues)
        if cmd is not None:
            check = CmdOkCheck(cmd=cmd)
    else:
        body = as_object(payload, tag, issues) or {}
        path = body.get("path")
        if tag != "trackedOnly":
            path = as_str(path, f"{tag}.path", issues)
        if tag in ("contains", "docContains"):
            text = as_str(body.get("text"), f"{tag}.text", issues, allow_empty=True)
            if path is not None and text is not None:
                if tag == "contains":
                    check = FileContainsCheck(path=path, text=text)
                else:
                    check = DocContainsCheck(path=path, text=text)
        elif tag == "trackedOnly":
            glob = as_str(body.get("glob"), "trackedOnly.glob", issues)
            allow = as_str_tuple(body.get("allow"), "trackedOnly.allow", issues)
            if glob is not None and allow is not None:
                check = GitTrackedOnlyCheck(glob=glob, allow=allow)
        elif tag == "docSection":
            heading = as_str(body.get("heading"), "docSection.heading", issues)
            if path is not None and heading is not None:
                check = DocSectionCheck(path=path, heading=heading)
        elif tag == "docContainsFuzzy":
            text = as_str(body.get("text"), "docContainsFuzzy.text", issues)
            threshold: float | None = DEFAULT_FUZZY_THRESHOLD
            if body.get("threshold") is not None:
                threshold = as_float(
                    body["threshold"], "docContainsFuzzy.threshold", issues, minimum=0.0, maximum=1.0
                )
            gate = None
            if body.get("gate") is not None:
                gate = as_bool(body["gate"], "docContainsFuzzy.gate", issues)
            if path is not None and text is not None and threshold is not None:
                check = DocContainsFuzzyCheck(path=path, text=text, threshold=threshold, gate=gate)
        elif tag == "artifactExists" and path is not None:
            check = ArtifactExistsCheck(path=path)
    if check is None or issues.has_issues:
        raise UnknownEnsureError(_detail(issues))
    return check


def _tagged(
    raw: object,
    keys: tuple[str, ...],
    error_type: type[ValueError],
    noun: str,
) -> tuple[str, object]:
    if not isinstance(raw, Mapping):
        raise error_type(f"{noun} must be a mapping, got {type(raw).__name__}")
    for key in keys:
        if raw.get(key) is not None:
            return key, raw[key]
    present = ", ".join(sorted(str(key) for key in raw)) or "<none>"
    raise error_type(f"unrecognised {noun} keys: {present}")


def _vars(value: object) -> dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    return {str(key): stringify(item) for key, item in value.items()}


def _detail(issues: IssueCollector) -> str:
    if not issues.has_issues:
        return "malformed payload"
    return "; ".join(item.render() for item in issues.items())


__all__ = [
    "ACTION_KEYS",
    "Action",
    "AppendFileAction",
    "ENSURE_KEYS",
    "MacroAction",
    "RunAction",
    "UnknownActionError",
    "UnknownEnsureError",
    "WriteFileAction",
    "WriteTemplateAction",
    "decode_action",
    "decode_ensure",
]
