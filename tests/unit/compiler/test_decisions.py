"""
webspec — unit tests for decision trees

File: tests/unit/compiler/test_decisions.py

Purpose
- Validate decision forest construction and its integrity errors.
"""

from __future__ import annotations

import pytest

from webspec.compiler.decisions import (
    DecisionCycleError,
    DuplicateDecisionError,
    MissingParentError,
    build_decision_tree,
)
from webspec.domain.spec import DecisionRecord


def _record(decision_id: str, parent: str | None = None, *, status: str = "final") -> DecisionRecord:
    return DecisionRecord(
        id=decision_id,
        question=f"{decision_id}?",
        answer="yes",
        rationale="because",
        status=status,  # type: ignore[arg-type]
        confidence=0.9,
        parent=parent,
    )


def test_forest_roots_and_index_follow_input_order() -> None:
    tree = build_decision_tree(
        [
            _record("hosting"),
            _record("cdn", parent="hosting"),
            _record("styling"),
            _record("edge", parent="hosting"),
        ]
    )

    assert tree.roots == ("hosting", "styling")
    assert tree.children_of("hosting") == ("cdn", "edge")
    assert tree.parent_of("cdn") == "hosting"
    assert tree.parent_of("missing") is None
    assert tree.get("styling") is not None
    assert tree.to_dict() == {
        "roots": ["hosting", "styling"],
        "index": {
            "hosting": {"children": ["cdn", "edge"]},
            "cdn": {"parent": "hosting"},
            "styling": {},
            "edge": {"parent": "hosting"},
        },
    }


def test_empty_input_builds_empty_tree() -> None:
    tree = build_decision_tree([])

    assert tree.roots == ()
    assert tree.to_dict() == {"roots": [], "index": {}}


def test_duplicate_ids_are_rejected() -> None:
    with pytest.raises(DuplicateDecisionError, match="Duplicate decision id: a"):
        build_decision_tree([_record("a"), _record("a")])


def test_lineage_walks_parents_nearest_first() -> None:
    tree = build_decision_tree(
        [_record("hosting"), _record("cdn", parent="hosting"), _record("edge", parent="cdn")]
    )

    assert tree.lineage("edge") == ("edge", "cdn", "hosting")
    assert tree.lineage("hosting") == ("hosting",)
    assert tree.lineage("missing") == ()


def test_missing_parent_is_rejected() -> None:
    with pytest.raises(MissingParentError) as excinfo:
        build_decision_tree([_record("a", parent="ghost")])

    assert excinfo.value.parent == "ghost"
    assert "ghost" in str(excinfo.value)


def test_parent_cycle_reports_closed_path() -> None:
    with pytest.raises(DecisionCycleError) as excinfo:
        build_decision_tree([_record("a", parent="b"), _record("b", parent="a")])

    cycle = excinfo.value.cycle
    assert cycle[0] == cycle[-1]
    assert set(cycle) == {"a", "b"}
    assert str(excinfo.value).startswith("Decision tree cycle detected: ")


def test_self_parent_is_a_cycle() -> None:
    with pytest.raises(DecisionCycleError) as excinfo:
        build_decision_tree([_record("root"), _record("loop", parent="loop")])

    assert excinfo.value.cycle == ("loop", "loop")


def test_records_preserve_status() -> None:
    tree = build_decision_tree([_record("a", status="provisional")])

    assert tree.records["a"].is_final is False
