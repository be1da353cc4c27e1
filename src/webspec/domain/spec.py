"""WebSpec document model and versioned shape validation.

Two shapes are accepted, selected by ``lang``:

- ``webspec/v0.1`` (legacy, the default when ``lang`` is absent) may omit ``steps``;
  the compiler then synthesizes a canonical program.
- ``webspec/v0.2`` adds intent, docs, effects, artifacts, assumptions, and decision
  records, and requires explicit steps.

Step ``actions`` and ``ensures`` are kept as raw mappings here. They are decoded into
tagged variants by the plan builder so that unknown shapes surface as accumulated
diagnostics rather than as a parse failure of the whole document.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from webspec.constants import SPEC_LANG_V1, SPEC_LANG_V2, SPEC_LANGS
from webspec.domain.validation import (
    IssueCollector,
    as_bool,
    as_choice,
    as_float,
    as_list,
    as_object,
    as_optional_str,
    as_str,
    as_str_tuple,
)

DecisionStatus = Literal["provisional", "final"]
AssumptionStatus = Literal["verified", "unverified"]
ExpansionPolicy = Literal["explicit", "inherit"]

_DECISION_STATUSES = ("provisional", "final")
_ASSUMPTION_STATUSES = ("verified", "unverified")
_EXPANSION_POLICIES = ("explicit", "inherit")
_VISIBILITIES = ("public", "private")


@dataclass(frozen=True, slots=True)
class Project:
    name: str
    repo: str | None = None
    visibility: str | None = None


@dataclass(frozen=True, slots=True)
class Workspace:
    ai_dir: str
    keep_tracked: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Route:
    path: str
    page: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "page": self.page}


@dataclass(frozen=True, slots=True)
class Step:
    """A user-authored step; ``actions``/``ensures`` stay undecoded."""

    id: str
    requires: tuple[str, ...] = ()
    claims: tuple[str, ...] = ()
    decisions: tuple[str, ...] = ()
    actions: tuple[object, ...] = ()
    ensures: tuple[object, ...] = ()


@dataclass(frozen=True, slots=True)
class Invariant:
    id: str
    text: str


@dataclass(frozen=True, slots=True)
class Intent:
    summary: str
    invariants: tuple[Invariant, ...] = ()
    non_goals: tuple[Invariant, ...] = ()


@dataclass(frozen=True, slots=True)
class FuzzyExpectation:
    text: str
    threshold: float | None = None
    gate: bool | None = None


@dataclass(frozen=True, slots=True)
class DocsSection:
    file: str
    heading: str
    must_contain: tuple[str, ...] = ()
    must_contain_fuzzy: tuple[FuzzyExpectation, ...] = ()


@dataclass(frozen=True, slots=True)
class Docs:
    required_files: tuple[str, ...] = ()
    sections: tuple[DocsSection, ...] = ()


@dataclass(frozen=True, slots=True)
class Effects:
    write_scopes: tuple[str, ...] | None = None
    expansion_policy: ExpansionPolicy | None = None


@dataclass(frozen=True, slots=True)
class RequiredArtifact:
    path: str
    role: str | None = None
    must_write: bool = False


@dataclass(frozen=True, slots=True)
class Assumption:
    id: str
    text: str
    status: AssumptionStatus


@dataclass(frozen=True, slots=True)
class DecisionRecord:
    """A confidence-scored answer to a design question."""

    id: str
    question: str
    answer: str
    rationale: str
    status: DecisionStatus
    confidence: float
    evidence: tuple[str, ...] = ()
    parent: str | None = None

    @property
    def is_final(self) -> bool:
        return self.status == "final"


@dataclass(frozen=True, slots=True)
class WebSpec:
    """Immutable, validated WebSpec document."""

    lang: str
    target: str
    project: Project
    workspace: Workspace | None = None
    shadcn_components: tuple[str, ...] = ()
    routes: tuple[Route, ...] = ()
    quality_gates: tuple[str, ...] = ()
    steps: tuple[Step, ...] | None = None
    intent: Intent | None = None
    docs: Docs | None = None
    effects: Effects | None = None
    artifacts: tuple[RequiredArtifact, ...] = ()
    assumptions: tuple[Assumption, ...] = ()
    decisions: tuple[DecisionRecord, ...] = ()

    @property
    def is_current_shape(self) -> bool:
        return self.lang == SPEC_LANG_V2

    @property
    def has_explicit_steps(self) -> bool:
        return bool(self.steps)

    @property
    def invariant_ids(self) -> tuple[str, ...]:
        if self.intent is None:
            return ()
        return tuple(item.id for item in self.intent.invariants)

    @property
    def write_scopes(self) -> tuple[str, ...] | None:
        if self.effects is None:
            return None
        return self.effects.write_scopes


def parse_webspec(payload: object) -> WebSpec:
    """Validate a decoded document and return a ``WebSpec``.

    Raises ``ShapeValidationError`` listing every shape issue found.
    """

    issues = IssueCollector()
    root = as_object(payload, "<root>", issues)
    if root is None:
        issues.raise_if_any("webspec")
        raise AssertionError("unreachable")

    raw_lang = root.get("lang")
    lang = SPEC_LANG_V1 if raw_lang is None else as_choice(raw_lang, "lang", issues, choices=SPEC_LANGS)
    current = lang == SPEC_LANG_V2

    target = as_str(root.get("target"), "target", issues)
    project = _parse_project(root.get("project"), issues)
    workspace = _optional(root, "workspace", issues, _parse_workspace)
    components = _parse_ui(root.get("ui"), issues)
    routes = _parse_list(root.get("routes"), "routes", issues, _parse_route)
    gates = _parse_quality(root.get("quality"), issues)
    steps = None
    if root.get("steps") is not None:
        steps = _parse_list(
            root.get("steps"),
            "steps",
            issues,
            lambda item, path, coll: _parse_step(item, path, coll, current=current),
        )

    intent = docs = effects = None
    artifacts: tuple[RequiredArtifact, ...] = ()
    assumptions: tuple[Assumption, ...] = ()
    decisions: tuple[DecisionRecord, ...] = ()
    if current:
        intent = _optional(root, "intent", issues, _parse_intent)
        docs = _optional(root, "docs", issues, _parse_docs)
        effects = _optional(root, "effects", issues, _parse_effects)
        artifacts = _parse_artifacts(root.get("artifacts"), issues)
        assumptions = _parse_list(root.get("assumptions"), "assumptions", issues, _parse_assumption)
        decisions = _parse_list(root.get("decisions"), "decisions", issues, parse_decision_record)

    issues.raise_if_any("webspec")
    assert lang is not None and target is not None and project is not None
    return WebSpec(
        lang=lang,
        target=target,
        project=project,
        workspace=workspace,
        shadcn_components=components,
        routes=routes,
        quality_gates=gates,
        steps=steps,
        intent=intent,
        docs=docs,
        effects=effects,
        artifacts=artifacts,
        assumptions=assumptions,
        decisions=decisions,
    )


def parse_decision_record(value: object, path: str, issues: IssueCollector) -> DecisionRecord | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    record_id = as_str(parsed.get("id"), f"{path}.id", issues)
    question = as_str(parsed.get("question"), f"{path}.question", issues, allow_empty=True)
    answer = as_str(parsed.get("answer"), f"{path}.answer", issues, allow_empty=True)
    rationale = as_str(parsed.get("rationale"), f"{path}.rationale", issues, allow_empty=True)
    status = as_choice(parsed.get("status"), f"{path}.status", issues, choices=_DECISION_STATUSES)
    confidence = as_float(
        parsed.get("confidence"), f"{path}.confidence", issues, minimum=0.0, maximum=1.0
    )
    evidence: tuple[str, ...] | None = ()
    if parsed.get("evidence") is not None:
        evidence = as_str_tuple(parsed["evidence"], f"{path}.evidence", issues)
    parent = as_optional_str(parsed.get("parent"), f"{path}.parent", issues)
    if None in (record_id, question, answer, rationale, status, confidence, evidence):
        return None
    return DecisionRecord(
        id=record_id,  # type: ignore[arg-type]
        question=question,  # type: ignore[arg-type]
        answer=answer,  # type: ignore[arg-type]
        rationale=rationale,  # type: ignore[arg-type]
        status=status,  # type: ignore[arg-type]
        confidence=confidence,  # type: ignore[arg-type]
        evidence=evidence,  # type: ignore[arg-type]
        parent=parent or None,
    )


def _optional(root: Mapping[str, object], key: str, issues: IssueCollector, parser):  # type: ignore[no-untyped-def]
    value = root.get(key)
    if value is None:
        return None
    return parser(value, key, issues)


def _parse_list(value: object, path: str, issues: IssueCollector, parser) -> tuple:  # type: ignore[no-untyped-def, type-arg]
    if value is None:
        return ()
    items = as_list(value, path, issues)
    if items is None:
        return ()
    out = []
    for index, item in enumerate(items):
        parsed = parser(item, f"{path}[{index}]", issues)
        if parsed is not None:
            out.append(parsed)
    return tuple(out)


def _parse_project(value: object, issues: IssueCollector) -> Project | None:
    parsed = as_object(value, "project", issues)
    if parsed is None:
        return None
    name = as_str(parsed.get("name"), "project.name", issues)
    repo = as_optional_str(parsed.get("repo"), "project.repo", issues)
    visibility = None
    if parsed.get("visibility") is not None:
        visibility = as_choice(
            parsed["visibility"], "project.visibility", issues, choices=_VISIBILITIES
        )
    if name is None:
        return None
    return Project(name=name, repo=repo, visibility=visibility)


def _parse_workspace(value: object, path: str, issues: IssueCollector) -> Workspace | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    ai_dir = as_str(parsed.get("aiDir"), f"{path}.aiDir", issues)
    keep = as_str_tuple(parsed.get("keepTracked"), f"{path}.keepTracked", issues, min_items=1)
    if ai_dir is None or keep is None:
        return None
    return Workspace(ai_dir=ai_dir, keep_tracked=keep)


def _parse_ui(value: object, issues: IssueCollector) -> tuple[str, ...]:
    if value is None:
        return ()
    parsed = as_object(value, "ui", issues)
    if parsed is None or parsed.get("shadcn") is None:
        return ()
    shadcn = as_object(parsed["shadcn"], "ui.shadcn", issues)
    if shadcn is None or shadcn.get("components") is None:
        return ()
    return as_str_tuple(shadcn["components"], "ui.shadcn.components", issues) or ()


def _parse_route(value: object, path: str, issues: IssueCollector) -> Route | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    route_path = as_str(parsed.get("path"), f"{path}.path", issues)
    page = as_str(parsed.get("page"), f"{path}.page", issues)
    if route_path is None or page is None:
        return None
    return Route(path=route_path, page=page)


def _parse_quality(value: object, issues: IssueCollector) -> tuple[str, ...]:
    if value is None:
        return ()
    parsed = as_object(value, "quality", issues)
    if parsed is None or parsed.get("gates") is None:
        return ()
    return as_str_tuple(parsed["gates"], "quality.gates", issues) or ()


def _parse_step(value: object, path: str, issues: IssueCollector, *, current: bool) -> Step | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    step_id = as_str(parsed.get("id"), f"{path}.id", issues)
    requires = _str_list_or_empty(parsed.get("requires"), f"{path}.requires", issues)
    actions = as_list(parsed.get("actions"), f"{path}.actions", issues)
    ensures = as_list(parsed.get("ensures"), f"{path}.ensures", issues)
    claims: tuple[str, ...] = ()
    decisions: tuple[str, ...] = ()
    if current:
        claims = _str_list_or_empty(parsed.get("claims"), f"{path}.claims", issues)
        decisions = _str_list_or_empty(parsed.get("decisions"), f"{path}.decisions", issues)
    if step_id is None or actions is None or ensures is None:
        return None
    return Step(
        id=step_id,
        requires=requires,
        claims=claims,
        decisions=decisions,
        actions=tuple(actions),
        ensures=tuple(ensures),
    )


def _str_list_or_empty(value: object, path: str, issues: IssueCollector) -> tuple[str, ...]:
    if value is None:
        return ()
    return as_str_tuple(value, path, issues) or ()


def _parse_labelled(value: object, path: str, issues: IssueCollector) -> Invariant | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    item_id = as_str(parsed.get("id"), f"{path}.id", issues)
    text = as_str(parsed.get("text"), f"{path}.text", issues, allow_empty=True)
    if item_id is None or text is None:
        return None
    return Invariant(id=item_id, text=text)


def _parse_intent(value: object, path: str, issues: IssueCollector) -> Intent | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    summary = as_str(parsed.get("summary"), f"{path}.summary", issues, allow_empty=True)
    invariants = _parse_list(parsed.get("invariants"), f"{path}.invariants", issues, _parse_labelled)
    non_goals = _parse_list(parsed.get("nonGoals"), f"{path}.nonGoals", issues, _parse_labelled)
    if summary is None:
        return None
    return Intent(summary=summary, invariants=invariants, non_goals=non_goals)


def _parse_fuzzy(value: object, path: str, issues: IssueCollector) -> FuzzyExpectation | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    text = as_str(parsed.get("text"), f"{path}.text", issues)
    threshold = None
    if parsed.get("threshold") is not None:
        threshold = as_float(parsed["threshold"], f"{path}.threshold", issues, minimum=0.0, maximum=1.0)
    gate = None
    if parsed.get("gate") is not None:
        gate = as_bool(parsed["gate"], f"{path}.gate", issues)
    if text is None:
        return None
    return FuzzyExpectation(text=text, threshold=threshold, gate=gate)


def _parse_docs_section(value: object, path: str, issues: IssueCollector) -> DocsSection | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    file_path = as_str(parsed.get("file"), f"{path}.file", issues)
    heading = as_str(parsed.get("heading"), f"{path}.heading", issues)
    must_contain = _str_list_or_empty(parsed.get("mustContain"), f"{path}.mustContain", issues)
    fuzzy = _parse_list(parsed.get("mustContainFuzzy"), f"{path}.mustContainFuzzy", issues, _parse_fuzzy)
    if file_path is None or heading is None:
        return None
    return DocsSection(
        file=file_path, heading=heading, must_contain=must_contain, must_contain_fuzzy=fuzzy
    )


def _parse_docs(value: object, path: str, issues: IssueCollector) -> Docs | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    required = _str_list_or_empty(parsed.get("requiredFiles"), f"{path}.requiredFiles", issues)
    sections = _parse_list(parsed.get("sections"), f"{path}.sections", issues, _parse_docs_section)
    return Docs(required_files=required, sections=sections)


def _parse_effects(value: object, path: str, issues: IssueCollector) -> Effects | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    scopes = None
    if parsed.get("writeScopes") is not None:
        scopes = as_str_tuple(parsed["writeScopes"], f"{path}.writeScopes", issues)
    policy = None
    if parsed.get("expansionPolicy") is not None:
        policy = as_choice(
            parsed["expansionPolicy"], f"{path}.expansionPolicy", issues, choices=_EXPANSION_POLICIES
        )
    return Effects(write_scopes=scopes, expansion_policy=policy)  # type: ignore[arg-type]


def _parse_artifact(value: object, path: str, issues: IssueCollector) -> RequiredArtifact | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    artifact_path = as_str(parsed.get("path"), f"{path}.path", issues)
    role = as_optional_str(parsed.get("role"), f"{path}.role", issues)
    must_write: bool | None = False
    if parsed.get("mustWrite") is not None:
        must_write = as_bool(parsed["mustWrite"], f"{path}.mustWrite", issues)
    if artifact_path is None or must_write is None:
        return None
    return RequiredArtifact(path=artifact_path, role=role, must_write=must_write)


def _parse_artifacts(value: object, issues: IssueCollector) -> tuple[RequiredArtifact, ...]:
    if value is None:
        return ()
    parsed = as_object(value, "artifacts", issues)
    if parsed is None:
        return ()
    return _parse_list(parsed.get("required"), "artifacts.required", issues, _parse_artifact)


def _parse_assumption(value: object, path: str, issues: IssueCollector) -> Assumption | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    item_id = as_str(parsed.get("id"), f"{path}.id", issues)
    text = as_str(parsed.get("text"), f"{path}.text", issues, allow_empty=True)
    status = as_choice(parsed.get("status"), f"{path}.status", issues, choices=_ASSUMPTION_STATUSES)
    if item_id is None or text is None or status is None:
        return None
    return Assumption(id=item_id, text=text, status=status)  # type: ignore[arg-type]


__all__ = [
    "Assumption",
    "DecisionRecord",
    "Docs",
    "DocsSection",
    "Effects",
    "FuzzyExpectation",
    "Intent",
    "Invariant",
    "Project",
    "RequiredArtifact",
    "Route",
    "Step",
    "WebSpec",
    "Workspace",
    "parse_decision_record",
    "parse_webspec",
]
