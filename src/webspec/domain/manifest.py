"""Stack manifest model: per-target write policy, command policy, macros, routing."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, Literal

from webspec.constants import DEFAULT_ROUTES_FILE
from webspec.domain.plan import AppendFileOp, Op, RunOp, WriteFileOp, WriteTemplateOp
from webspec.domain.validation import (
    IssueCollector,
    as_int,
    as_list,
    as_object,
    as_optional_str,
    as_str,
    as_str_mapping,
    as_str_tuple,
)

ArgType = Literal["path", "string", "string[]", "json"]

ARG_TYPES: Final[tuple[str, ...]] = ("path", "string", "string[]", "json")

# Key under which a registry loader records the stack directory on a raw manifest.
STACK_ROOT_KEY: Final[str] = "_stack_root"


@dataclass(frozen=True, slots=True)
class MacroDef:
    """Typed arguments plus the templated ops the macro expands into."""

    args: Mapping[str, ArgType]
    expands_to: tuple[Op, ...]


@dataclass(frozen=True, slots=True)
class RoutingSemantics:
    kind: str | None = None
    routes_file: str = DEFAULT_ROUTES_FILE


@dataclass(frozen=True, slots=True)
class StackManifest:
    id: str
    preset_version: int
    allowed_write_globs: tuple[str, ...]
    allow_prefixes: tuple[str, ...]
    denied_write_globs: tuple[str, ...] = ()
    deny_substrings: tuple[str, ...] = ()
    display_name: str | None = None
    detect_must_exist: tuple[str, ...] = ()
    detect_must_not_exist: tuple[str, ...] = ()
    routing: RoutingSemantics = field(default_factory=RoutingSemantics)
    macros: Mapping[str, MacroDef] = field(default_factory=dict)
    root: Path | None = None

    def macro(self, name: str) -> MacroDef | None:
        return self.macros.get(name)

    def has_macro(self, name: str) -> bool:
        return name in self.macros


def parse_manifest(payload: object) -> StackManifest:
    """Validate a raw manifest mapping; raises ``ShapeValidationError``."""

    issues = IssueCollector()
    root = as_object(payload, "manifest", issues)
    if root is None:
        issues.raise_if_any("manifest")
        raise AssertionError("unreachable")

    manifest_id = as_str(root.get("id"), "id", issues)
    preset_version = as_int(root.get("presetVersion"), "presetVersion", issues, minimum=1)
    display_name = as_optional_str(root.get("displayName"), "displayName", issues)

    must_exist: tuple[str, ...] = ()
    must_not_exist: tuple[str, ...] = ()
    if root.get("detect") is not None:
        detect = as_object(root["detect"], "detect", issues) or {}
        must_exist = _optional_strs(detect.get("mustExist"), "detect.mustExist", issues)
        must_not_exist = _optional_strs(detect.get("mustNotExist"), "detect.mustNotExist", issues)

    effects = as_object(root.get("effectsPolicy"), "effectsPolicy", issues) or {}
    allowed = as_str_tuple(
        effects.get("allowedWriteGlobs"), "effectsPolicy.allowedWriteGlobs", issues, min_items=1
    )
    denied = _optional_strs(
        effects.get("deniedWriteGlobs"), "effectsPolicy.deniedWriteGlobs", issues
    )

    commands = as_object(root.get("commands"), "commands", issues) or {}
    prefixes = as_str_tuple(
        commands.get("allowPrefixes"), "commands.allowPrefixes", issues, min_items=1
    )
    deny_substrings = _optional_strs(
        commands.get("denySubstrings"), "commands.denySubstrings", issues
    )

    routing = _parse_routing(root.get("semantics"), issues)

    macros: dict[str, MacroDef] = {}
    if root.get("macros") is not None:
        raw_macros = as_object(root["macros"], "macros", issues) or {}
        for name in sorted(raw_macros):
            parsed = _parse_macro(raw_macros[name], f"macros.{name}", issues)
            if parsed is not None:
                macros[name] = parsed

    stack_root = root.get(STACK_ROOT_KEY)

    issues.raise_if_any("manifest")
    return StackManifest(
        id=manifest_id,  # type: ignore[arg-type]
        preset_version=preset_version,  # type: ignore[arg-type]
        allowed_write_globs=allowed,  # type: ignore[arg-type]
        allow_prefixes=prefixes,  # type: ignore[arg-type]
        denied_write_globs=denied,
        deny_substrings=deny_substrings,
        display_name=display_name,
        detect_must_exist=must_exist,
        detect_must_not_exist=must_not_exist,
        routing=routing,
        macros=macros,
        root=Path(stack_root) if isinstance(stack_root, (str, Path)) else None,
    )


def _optional_strs(value: object, path: str, issues: IssueCollector) -> tuple[str, ...]:
    if value is None:
        return ()
    return as_str_tuple(value, path, issues) or ()


def _parse_routing(value: object, issues: IssueCollector) -> RoutingSemantics:
    # ``semantics`` is free-form; only the routing keys are interpreted.
    if not isinstance(value, Mapping):
        return RoutingSemantics()
    routing = value.get("routing")
    if not isinstance(routing, Mapping):
        return RoutingSemantics()
    kind = as_optional_str(routing.get("kind"), "semantics.routing.kind", issues)
    routes_file = as_optional_str(routing.get("routesFile"), "semantics.routing.routesFile", issues)
    return RoutingSemantics(kind=kind, routes_file=routes_file or DEFAULT_ROUTES_FILE)


def _parse_macro(value: object, path: str, issues: IssueCollector) -> MacroDef | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    args: dict[str, ArgType] = {}
    raw_args = as_object(parsed.get("args", {}), f"{path}.args", issues) or {}
    for arg_name, arg_type in raw_args.items():
        if arg_type not in ARG_TYPES:
            issues.add(f"{path}.args.{arg_name}", f"must be one of: {', '.join(ARG_TYPES)}")
            continue
        args[arg_name] = arg_type  # type: ignore[assignment]
    items = as_list(parsed.get("expandsTo"), f"{path}.expandsTo", issues) or []
    ops: list[Op] = []
    for index, item in enumerate(items):
        op = _parse_macro_action(item, f"{path}.expandsTo[{index}]", issues)
        if op is not None:
            ops.append(op)
    return MacroDef(args=args, expands_to=tuple(ops))


def _parse_macro_action(value: object, path: str, issues: IssueCollector) -> Op | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    kind = parsed.get("kind")
    if kind == "run":
        cmd = as_str(parsed.get("cmd"), f"{path}.cmd", issues)
        cwd = as_optional_str(parsed.get("cwd"), f"{path}.cwd", issues)
        return None if cmd is None else RunOp(cmd=cmd, cwd=cwd)
    if kind in ("writeFile", "appendFile"):
        target = as_str(parsed.get("path"), f"{path}.path", issues)
        content = as_str(parsed.get("content"), f"{path}.content", issues, allow_empty=True)
        if target is None or content is None:
            return None
        if kind == "writeFile":
            return WriteFileOp(path=target, content=content)
        return AppendFileOp(path=target, content=content)
    if kind == "writeTemplate":
        target = as_str(parsed.get("path"), f"{path}.path", issues)
        template = as_str(parsed.get("template"), f"{path}.template", issues)
        variables: dict[str, str] | None = {}
        if parsed.get("vars") is not None:
            variables = as_str_mapping(parsed["vars"], f"{path}.vars", issues)
        if target is None or template is None or variables is None:
            return None
        return WriteTemplateOp(path=target, template=template, vars=variables)
    issues.add(f"{path}.kind", "must be one of: run, writeFile, appendFile, writeTemplate")
    return None


__all__ = [
    "ARG_TYPES",
    "ArgType",
    "MacroDef",
    "RoutingSemantics",
    "STACK_ROOT_KEY",
    "StackManifest",
    "parse_manifest",
]
