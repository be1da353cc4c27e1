"""Macro expansion: manifest-declared templated actions into concrete plan ops."""

from __future__ import annotations

import dataclasses
import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

from webspec.domain.diagnostics import Diagnostic, DiagnosticCode, error
from webspec.domain.manifest import MacroDef, StackManifest
from webspec.domain.plan import AppendFileOp, Op, RunOp, WriteFileOp, WriteTemplateOp

_SPREAD_RE: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Za-z0-9_]+)\.\.\.\}")
_PLACEHOLDER_RE: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Za-z0-9_]+)\}")


@dataclass(frozen=True, slots=True)
class Expansion:
    ops: tuple[Op, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()


def render(text: str, variables: Mapping[str, object]) -> str:
    """Substitute ``${name...}`` (space-joined list) and then ``${name}`` placeholders."""

    def spread(match: re.Match[str]) -> str:
        value = variables.get(match.group(1))
        if isinstance(value, (list, tuple)):
            return " ".join(stringify(item) for item in value)
        return stringify(value)

    def single(match: re.Match[str]) -> str:
        return stringify(variables.get(match.group(1)))

    return _PLACEHOLDER_RE.sub(single, _SPREAD_RE.sub(spread, text))


def stringify(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(item) for item in value)
    if isinstance(value, Mapping):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def macro_variables(
    name: str,
    args: Mapping[str, object],
    macro: MacroDef,
    *,
    report_missing: bool = True,
) -> tuple[dict[str, object], list[Diagnostic]]:
    """Resolve macro arguments: missing ones become ``""``, ``json`` ones are serialised."""

    variables: dict[str, object] = dict(args)
    diagnostics: list[Diagnostic] = []
    for arg_name, arg_type in macro.args.items():
        if arg_name not in args:
            if report_missing:
                diagnostics.append(
                    error(
                        DiagnosticCode.MISSING_MACRO_ARG,
                        f"Missing macro arg: {arg_name}",
                        hint=f'Provide "{arg_name}" in macro args.',
                        path=f"macros.{name}.args.{arg_name}",
                    )
                )
            variables[arg_name] = ""
            continue
        if arg_type == "json":
            variables[arg_name] = json.dumps(
                args[arg_name], separators=(",", ":"), ensure_ascii=False
            )
    return variables, diagnostics


def expand_macro(
    name: str,
    args: Mapping[str, object],
    manifest: StackManifest,
    *,
    report_missing: bool = True,
    template_vars: Mapping[str, str] | None = None,
) -> Expansion:
    """
    Expand ``name`` from ``manifest`` with ``args``.

    Unknown macros yield no ops and ``E200_UNKNOWN_MACRO``. ``template_vars``, when given,
    replaces the variables of every ``WRITE_TEMPLATE`` op the macro produces.
    """

    macro = manifest.macro(name)
    if macro is None:
        return Expansion(
            diagnostics=(
                error(
                    DiagnosticCode.UNKNOWN_MACRO,
                    f"Unknown macro: {name}",
                    hint="Define it in the stack manifest.",
                ),
            )
        )
    variables, diagnostics = macro_variables(name, args, macro, report_missing=report_missing)
    ops = tuple(_render_op(op, variables, template_vars) for op in macro.expands_to)
    return Expansion(ops=ops, diagnostics=tuple(diagnostics))


def _render_op(
    op: Op,
    variables: Mapping[str, object],
    template_vars: Mapping[str, str] | None,
) -> Op:
    if isinstance(op, RunOp):
        cwd = render(op.cwd, variables) if op.cwd else None
        return RunOp(cmd=render(op.cmd, variables), cwd=cwd)
    if isinstance(op, (WriteFileOp, AppendFileOp)):
        return dataclasses.replace(
            op, path=render(op.path, variables), content=render(op.content, variables)
        )
    if template_vars is not None:
        rendered_vars = dict(template_vars)
    else:
        rendered_vars = {key: render(value, variables) for key, value in op.vars.items()}
    return WriteTemplateOp(
        path=render(op.path, variables), template=op.template, vars=rendered_vars
    )


__all__ = ["Expansion", "expand_macro", "macro_variables", "render", "stringify"]
