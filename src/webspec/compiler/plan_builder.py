"""Plan construction strategies.

Two strategies build the ordered step list, selected once by spec shape:

- ``build_from_explicit_steps`` for any spec that carries user-authored steps;
- ``build_synthesized_program`` for a legacy spec without steps.

A current-shape spec without steps gets no program at all, only ``E902_STEPS_REQUIRED``.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from webspec.compiler.actions import (
    Action,
    AppendFileAction,
    MacroAction,
    RunAction,
    UnknownActionError,
    UnknownEnsureError,
    WriteFileAction,
    WriteTemplateAction,
    decode_action,
    decode_ensure,
)
from webspec.compiler.macros import expand_macro
from webspec.constants import (
    DEFAULT_AI_DIR,
    DEFAULT_FUZZY_THRESHOLD,
    LEGACY_APP_DIR,
    LEGACY_APP_MANIFEST,
    LEGACY_UI_PROBE_CMD,
    MACRO_ADD_ROUTE,
    MACRO_SCAFFOLD,
    MACRO_SET_ROUTES,
    MACRO_SHADCN_ADD,
    MACRO_SHADCN_INIT,
    MACRO_TAILWIND,
    VERIFY_STEP_ID,
)
from webspec.domain.diagnostics import Diagnostic, DiagnosticCode, error
from webspec.domain.manifest import StackManifest
from webspec.domain.plan import (
    AppendFileOp,
    ArtifactExistsCheck,
    Check,
    CmdOkCheck,
    DocContainsCheck,
    DocContainsFuzzyCheck,
    DocSectionCheck,
    FileExistsCheck,
    GitTrackedOnlyCheck,
    Op,
    PlanStep,
    RouteExistsCheck,
    RunOp,
    WriteFileOp,
    WriteTemplateOp,
)
from webspec.domain.spec import WebSpec


@dataclass(frozen=True, slots=True)
class BuildResult:
    """Steps produced by a strategy plus the diagnostics raised while building them."""

    steps: tuple[PlanStep, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()
    user_step_ids: frozenset[str] = frozenset()


PlanStrategy = Callable[[WebSpec, StackManifest], BuildResult]


def select_strategy(spec: WebSpec) -> PlanStrategy | None:
    """Return the strategy for ``spec``; ``None`` when the spec shape requires steps it lacks."""

    if spec.has_explicit_steps:
        return build_from_explicit_steps
    if spec.is_current_shape:
        return None
    return build_synthesized_program


def build_steps(spec: WebSpec, manifest: StackManifest) -> BuildResult:
    strategy = select_strategy(spec)
    if strategy is None:
        return BuildResult(
            diagnostics=(
                error(
                    DiagnosticCode.STEPS_REQUIRED,
                    "v0.2 specs require explicit steps.",
                    hint="Add steps with actions/ensures/claims to keep the agent on track.",
                    path="steps",
                ),
            )
        )
    return strategy(spec, manifest)


# --- explicit steps -------------------------------------------------------------------


def build_from_explicit_steps(spec: WebSpec, manifest: StackManifest) -> BuildResult:
    steps: list[PlanStep] = []
    diagnostics: list[Diagnostic] = []
    for step_index, step in enumerate(spec.steps or ()):
        base = f"steps[{step_index}]"
        ops: list[Op] = []
        for action_index, raw_action in enumerate(step.actions):
            path = f"{base}.actions[{action_index}]"
            try:
                action = decode_action(raw_action)
            except UnknownActionError as exc:
                diagnostics.append(
                    error(
                        DiagnosticCode.UNKNOWN_ACTION,
                        f'Unknown action type in step "{step.id}": {exc}',
                        hint="Use run/writeFile/appendFile/writeTemplate/macro.",
                        path=path,
                    )
                )
                continue
            action_ops, action_diagnostics = action_to_ops(action, manifest, path=path)
            ops.extend(action_ops)
            diagnostics.extend(action_diagnostics)

        checks: list[Check] = []
        for ensure_index, raw_ensure in enumerate(step.ensures):
            try:
                checks.append(decode_ensure(raw_ensure))
            except UnknownEnsureError as exc:
                diagnostics.append(
                    error(
                        DiagnosticCode.UNKNOWN_ENSURE,
                        f'Unknown ensure/check type in step "{step.id}": {exc}',
                        hint="Use a supported ensure type.",
                        path=f"{base}.ensures[{ensure_index}]",
                    )
                )

        steps.append(
            PlanStep(
                id=step.id,
                requires=step.requires,
                ops=tuple(ops),
                checks=tuple(checks),
                claims=step.claims,
                decisions=step.decisions,
            )
        )
    return BuildResult(
        steps=tuple(steps),
        diagnostics=tuple(diagnostics),
        user_step_ids=frozenset(step.id for step in spec.steps or ()),
    )


def action_to_ops(
    action: Action,
    manifest: StackManifest,
    *,
    path: str | None = None,
) -> tuple[tuple[Op, ...], tuple[Diagnostic, ...]]:
    if isinstance(action, RunAction):
        return (RunOp(cmd=action.cmd),), ()
    if isinstance(action, WriteFileAction):
        if action.template is not None:
            return (
                WriteTemplateOp(path=action.path, template=action.template, vars=dict(action.vars)),
            ), ()
        if action.content is None:
            return (), (
                error(
                    DiagnosticCode.WRITEFILE_NO_CONTENT,
                    f"writeFile missing content for path: {action.path}",
                    hint="Provide content.",
                    path=path,
                ),
            )
        return (WriteFileOp(path=action.path, content=action.content),), ()
    if isinstance(action, AppendFileAction):
        return (AppendFileOp(path=action.path, content=action.content),), ()
    if isinstance(action, WriteTemplateAction):
        return (
            WriteTemplateOp(path=action.path, template=action.template, vars=dict(action.vars)),
        ), ()
    if isinstance(action, MacroAction):
        expansion = expand_macro(action.name, action.args, manifest)
        return expansion.ops, expansion.diagnostics
    raise AssertionError(f"unhandled action variant: {type(action).__name__}")


# --- legacy synthesized program -------------------------------------------------------


def build_synthesized_program(spec: WebSpec, manifest: StackManifest) -> BuildResult:
    """Synthesize the canonical legacy program: init, scaffold, ui, routes, quality."""

    steps: list[PlanStep] = [_init_step(spec)]
    diagnostics: list[Diagnostic] = []

    if manifest.has_macro(MACRO_SCAFFOLD):
        steps.append(
            PlanStep(
                id="scaffold_web",
                requires=("init_ai",),
                ops=_expand_quiet(MACRO_SCAFFOLD, {"app": LEGACY_APP_DIR}, manifest),
                checks=(FileExistsCheck(path=LEGACY_APP_MANIFEST),),
            )
        )
    else:
        diagnostics.append(
            error(
                DiagnosticCode.MISSING_MACRO,
                f'Target "{manifest.id}" missing macro "{MACRO_SCAFFOLD}"',
                hint="Add it to stacks/*/manifest.json.",
            )
        )

    ui_ops = _ui_ops(spec, manifest)
    if ui_ops:
        steps.append(
            PlanStep(
                id="setup_ui",
                requires=("scaffold_web",),
                ops=ui_ops,
                checks=(CmdOkCheck(cmd=LEGACY_UI_PROBE_CMD),),
            )
        )

    if spec.routes:
        route_step, route_diagnostics = _routes_step(spec, manifest, has_ui=bool(ui_ops))
        diagnostics.extend(route_diagnostics)
        if route_step is not None:
            steps.append(route_step)

    if spec.quality_gates:
        steps.append(
            PlanStep(
                id="quality_gate",
                requires=(steps[-1].id,),
                ops=tuple(RunOp(cmd=gate) for gate in spec.quality_gates),
                checks=tuple(CmdOkCheck(cmd=gate) for gate in spec.quality_gates),
            )
        )

    return BuildResult(steps=tuple(steps), diagnostics=tuple(diagnostics))


def _init_step(spec: WebSpec) -> PlanStep:
    ai_dir = spec.workspace.ai_dir if spec.workspace is not None else DEFAULT_AI_DIR
    if spec.workspace is not None:
        keep = spec.workspace.keep_tracked
    else:
        keep = (f"{ai_dir}/README.md", f"{ai_dir}/.gitkeep")
    return PlanStep(
        id="init_ai",
        ops=(
            WriteFileOp(path=f"{ai_dir}/README.md", content=f"# {ai_dir}\nAgent workspace.\n"),
            WriteFileOp(path=f"{ai_dir}/.gitkeep", content=""),
            AppendFileOp(
                path=".gitignore",
                content=f"{ai_dir}/*\n!{ai_dir}/README.md\n!{ai_dir}/.gitkeep\n",
            ),
        ),
        checks=(
            FileExistsCheck(path=f"{ai_dir}/README.md"),
            GitTrackedOnlyCheck(glob=f"{ai_dir}/**", allow=keep),
        ),
    )


def _ui_ops(spec: WebSpec, manifest: StackManifest) -> tuple[Op, ...]:
    variables: dict[str, object] = {
        "app": LEGACY_APP_DIR,
        "components": list(spec.shadcn_components),
    }
    ops: list[Op] = []
    for name in (MACRO_TAILWIND, MACRO_SHADCN_INIT):
        if manifest.has_macro(name):
            ops.extend(_expand_quiet(name, variables, manifest))
    if manifest.has_macro(MACRO_SHADCN_ADD) and spec.shadcn_components:
        ops.extend(_expand_quiet(MACRO_SHADCN_ADD, variables, manifest))
    return tuple(ops)


def _routes_step(
    spec: WebSpec,
    manifest: StackManifest,
    *,
    has_ui: bool,
) -> tuple[PlanStep | None, list[Diagnostic]]:
    requires = ("setup_ui",) if has_ui else ("scaffold_web",)
    checks = tuple(RouteExistsCheck(route=route.path) for route in spec.routes)

    if manifest.has_macro(MACRO_SET_ROUTES):
        routes_json = json.dumps(
            [route.to_dict() for route in spec.routes], separators=(",", ":"), ensure_ascii=False
        )
        ops = _expand_quiet(
            MACRO_SET_ROUTES,
            {"app": LEGACY_APP_DIR, "routes": routes_json},
            manifest,
            template_vars={"ROUTES_JSON": routes_json},
        )
        return PlanStep(id="set_routes", requires=requires, ops=ops, checks=checks), []

    if manifest.has_macro(MACRO_ADD_ROUTE):
        ops: list[Op] = []
        for route in spec.routes:
            route_dir = "" if route.path == "/" else route.path
            ops.extend(
                _expand_quiet(
                    MACRO_ADD_ROUTE,
                    {"app": LEGACY_APP_DIR, "ROUTE_DIR": route_dir, "PAGE": route.page},
                    manifest,
                    template_vars={"PAGE": route.page},
                )
            )
        return PlanStep(id="add_routes", requires=requires, ops=tuple(ops), checks=checks), []

    return None, [
        error(
            DiagnosticCode.MISSING_MACRO,
            f'Target "{manifest.id}" has no routing macro '
            f"({MACRO_SET_ROUTES} or {MACRO_ADD_ROUTE}).",
            hint="Add a routing macro to the stack manifest.",
        )
    ]


def _expand_quiet(
    name: str,
    variables: dict[str, object],
    manifest: StackManifest,
    *,
    template_vars: dict[str, str] | None = None,
) -> tuple[Op, ...]:
    # The legacy program supplies its own well-known variables; declared args it does
    # not know about render empty without a diagnostic.
    return expand_macro(
        name, variables, manifest, report_missing=False, template_vars=template_vars
    ).ops


# --- trailing verification step -------------------------------------------------------


def verification_checks(spec: WebSpec) -> tuple[Check, ...]:
    """Checks derived from ``docs`` and ``artifacts.required``, in declaration order."""

    checks: list[Check] = []
    if spec.docs is not None:
        checks.extend(FileExistsCheck(path=path) for path in spec.docs.required_files)
        for section in spec.docs.sections:
            checks.append(DocSectionCheck(path=section.file, heading=section.heading))
            checks.extend(DocContainsCheck(path=section.file, text=text) for text in section.must_contain)
            for fuzzy in section.must_contain_fuzzy:
                checks.append(
                    DocContainsFuzzyCheck(
                        path=section.file,
                        text=fuzzy.text,
                        threshold=(
                            fuzzy.threshold if fuzzy.threshold is not None else DEFAULT_FUZZY_THRESHOLD
                        ),
                        gate=fuzzy.gate,
                    )
                )
    checks.extend(ArtifactExistsCheck(path=artifact.path) for artifact in spec.artifacts)
    return tuple(checks)


def with_verification_step(spec: WebSpec, steps: Sequence[PlanStep]) -> tuple[PlanStep, ...]:
    """Append the ``verify_docs_artifacts`` step when the spec declares any doc/artifact check."""

    checks = verification_checks(spec)
    if not checks:
        return tuple(steps)
    requires = (steps[-1].id,) if steps else ()
    return (*steps, PlanStep(id=VERIFY_STEP_ID, requires=requires, checks=checks))


__all__ = [
    "BuildResult",
    "PlanStrategy",
    "action_to_ops",
    "build_from_explicit_steps",
    "build_steps",
    "build_synthesized_program",
    "select_strategy",
    "verification_checks",
    "with_verification_step",
]
