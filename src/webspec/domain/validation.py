"""Shape-validation helpers shared by the spec, manifest, and plan decoders.

Validators walk untrusted mappings (decoded YAML/JSON) and record every problem
with a dotted field path instead of stopping at the first one.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str

    def render(self) -> str:
        return f"{self.path}: {self.message}"


class ShapeValidationError(ValueError):
    """Raised when a document does not match its expected shape."""

    def __init__(self, subject: str, issues: Sequence[ValidationIssue]) -> None:
        self.subject = subject
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "; ".join(item.render() for item in self.issues)
        super().__init__(f"invalid {subject}: {rendered}")


class IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ValidationIssue(path=path, message=message))

    def items(self) -> tuple[ValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)

    def raise_if_any(self, subject: str) -> None:
        if self._items:
            raise ShapeValidationError(subject, self._items)


def as_object(value: object, path: str, issues: IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def as_str(value: object, path: str, issues: IssueCollector, *, allow_empty: bool = False) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    if not allow_empty and not value.strip():
        issues.add(path, "must not be empty")
        return None
    return value


def as_optional_str(value: object, path: str, issues: IssueCollector) -> str | None:
    if value is None:
        return None
    return as_str(value, path, issues, allow_empty=True)


def as_bool(value: object, path: str, issues: IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def as_int(
    value: object,
    path: str,
    issues: IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def as_float(
    value: object,
    path: str,
    issues: IssueCollector,
    *,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    if maximum is not None and parsed > maximum:
        issues.add(path, f"must be <= {maximum}")
        return None
    return parsed


def as_list(value: object, path: str, issues: IssueCollector) -> list[object] | None:
    if isinstance(value, (str, bytes, bytearray)) or not isinstance(value, Sequence):
        issues.add(path, f"expected list, got {type(value).__name__}")
        return None
    return list(value)


def as_str_tuple(
    value: object,
    path: str,
    issues: IssueCollector,
    *,
    min_items: int = 0,
    allow_empty_items: bool = False,
) -> tuple[str, ...] | None:
    items = as_list(value, path, issues)
    if items is None:
        return None
    if len(items) < min_items:
        issues.add(path, f"must contain at least {min_items} item(s)")
        return None
    out: list[str] = []
    ok = True
    for index, item in enumerate(items):
        parsed = as_str(item, f"{path}[{index}]", issues, allow_empty=allow_empty_items)
        if parsed is None:
            ok = False
            continue
        out.append(parsed)
    return tuple(out) if ok else None


def as_str_mapping(value: object, path: str, issues: IssueCollector) -> dict[str, str] | None:
    parsed = as_object(value, path, issues)
    if parsed is None:
        return None
    out: dict[str, str] = {}
    for key, item in parsed.items():
        rendered = as_str(item, f"{path}.{key}", issues, allow_empty=True)
        if rendered is not None:
            out[key] = rendered
    return out


def as_choice(
    value: object,
    path: str,
    issues: IssueCollector,
    *,
    choices: Sequence[str],
) -> str | None:
    parsed = as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in choices:
        issues.add(path, f"must be one of: {', '.join(choices)}")
        return None
    return parsed


__all__ = [
    "IssueCollector",
    "ShapeValidationError",
    "ValidationIssue",
    "as_bool",
    "as_choice",
    "as_float",
    "as_int",
    "as_list",
    "as_object",
    "as_optional_str",
    "as_str",
    "as_str_mapping",
    "as_str_tuple",
]
