"""Decision tree construction and integrity checks."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from webspec.domain.spec import DecisionRecord


class DecisionTreeError(ValueError):
    """Base class for decision tree construction failures."""


class DuplicateDecisionError(DecisionTreeError):
    def __init__(self, decision_id: str) -> None:
        self.decision_id = decision_id
        super().__init__(f"Duplicate decision id: {decision_id}")


class MissingParentError(DecisionTreeError):
    def __init__(self, decision_id: str, parent: str) -> None:
        self.decision_id = decision_id
        self.parent = parent
        super().__init__(f'Decision "{decision_id}" references missing parent: {parent}')


class DecisionCycleError(DecisionTreeError):
    """Raised when parent links form a cycle; ``cycle`` is a closed path."""

    cycle: tuple[str, ...]

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        super().__init__(f"Decision tree cycle detected: {' -> '.join(self.cycle)}")


@dataclass(frozen=True, slots=True)
class DecisionNode:
    record: DecisionRecord
    children: tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def parent(self) -> str | None:
        return self.record.parent


@dataclass(frozen=True, slots=True)
class DecisionIndexEntry:
    parent: str | None
    children: tuple[str, ...]

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {}
        if self.parent is not None:
            payload["parent"] = self.parent
        if self.children:
            payload["children"] = list(self.children)
        return payload


@dataclass(frozen=True, slots=True)
class DecisionTree:
    nodes: Mapping[str, DecisionNode]
    roots: tuple[str, ...]
    index: Mapping[str, DecisionIndexEntry]

    @property
    def records(self) -> dict[str, DecisionRecord]:
        return {node_id: node.record for node_id, node in self.nodes.items()}

    def get(self, decision_id: str) -> DecisionRecord | None:
        node = self.nodes.get(decision_id)
        return None if node is None else node.record

    def parent_of(self, decision_id: str) -> str | None:
        entry = self.index.get(decision_id)
        return None if entry is None else entry.parent

    def lineage(self, decision_id: str) -> tuple[str, ...]:
        """``decision_id`` followed by its ancestors, nearest first."""

        chain: list[str] = []
        current: str | None = decision_id if decision_id in self.nodes else None
        while current is not None:
            chain.append(current)
            current = self.parent_of(current)
        return tuple(chain)

    def children_of(self, decision_id: str) -> tuple[str, ...]:
        entry = self.index.get(decision_id)
        return () if entry is None else entry.children

    def to_dict(self) -> dict[str, object]:
        return {
            "roots": list(self.roots),
            "index": {node_id: entry.to_dict() for node_id, entry in self.index.items()},
        }


def build_decision_tree(records: Iterable[DecisionRecord]) -> DecisionTree:
    """
    Build a decision forest keyed by id.

    Raises ``DuplicateDecisionError``, ``MissingParentError`` or ``DecisionCycleError``.
    Node, root, and child order follow the input order.
    """

    by_id: dict[str, DecisionRecord] = {}
    for record in records:
        if record.id in by_id:
            raise DuplicateDecisionError(record.id)
        by_id[record.id] = record

    children: dict[str, list[str]] = {node_id: [] for node_id in by_id}
    for record in by_id.values():
        if record.parent is None:
            continue
        if record.parent not in by_id:
            raise MissingParentError(record.id, record.parent)
        children[record.parent].append(record.id)

    roots = tuple(node_id for node_id, record in by_id.items() if record.parent is None)

    # Roots first, then anything unreached: a pure parent cycle has no root.
    done: set[str] = set()
    for start in (*roots, *by_id):
        _visit(start, children, done)

    nodes = {
        node_id: DecisionNode(record=record, children=tuple(children[node_id]))
        for node_id, record in by_id.items()
    }
    index = {
        node_id: DecisionIndexEntry(parent=record.parent, children=tuple(children[node_id]))
        for node_id, record in by_id.items()
    }
    return DecisionTree(nodes=nodes, roots=roots, index=index)


def _visit(start: str, children: Mapping[str, Sequence[str]], done: set[str]) -> None:
    if start in done:
        return
    in_progress: set[str] = {start}
    path: list[str] = [start]
    stack: list[tuple[str, int]] = [(start, 0)]
    while stack:
        node_id, next_index = stack[-1]
        kids = children[node_id]
        if next_index >= len(kids):
            stack.pop()
            path.pop()
            in_progress.discard(node_id)
            done.add(node_id)
            continue
        stack[-1] = (node_id, next_index + 1)
        child = kids[next_index]
        if child in done:
            continue
        if child in in_progress:
            start_index = path.index(child)
            raise DecisionCycleError([*path[start_index:], child])
        in_progress.add(child)
        path.append(child)
        stack.append((child, 0))


__all__ = [
    "DecisionCycleError",
    "DecisionIndexEntry",
    "DecisionNode",
    "DecisionTree",
    "DecisionTreeError",
    "DuplicateDecisionError",
    "MissingParentError",
    "build_decision_tree",
]
