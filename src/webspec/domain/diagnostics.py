"""Compile diagnostics: the single channel for reporting compile-time problems."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum


class Severity(StrEnum):
    """Diagnostic severities; only ``ERROR`` blocks plan emission."""

    ERROR = "error"
    WARN = "warn"
    INFO = "info"


class DiagnosticCode(StrEnum):
    """Stable diagnostic identifiers."""

    PARSE = "E001_PARSE"
    UNKNOWN_TARGET = "E100_UNKNOWN_TARGET"
    BAD_MANIFEST = "E101_BAD_MANIFEST"
    MISSING_MACRO = "E102_MISSING_MACRO"
    UNKNOWN_MACRO = "E200_UNKNOWN_MACRO"
    MISSING_MACRO_ARG = "E201_MISSING_MACRO_ARG"
    UNKNOWN_ENSURE = "E210_UNKNOWN_ENSURE"
    UNKNOWN_ACTION = "E211_UNKNOWN_ACTION"
    WRITEFILE_NO_CONTENT = "E220_WRITEFILE_NO_CONTENT"
    WRITE_OUTSIDE = "E300_WRITE_OUTSIDE"
    DENIED_PATH = "E301_DENIED_PATH"
    SCOPE_VIOLATION = "E302_SCOPE_VIOLATION"
    CMD_NOT_ALLOWED = "E310_CMD_NOT_ALLOWED"
    CMD_DENIED_SUBSTRING = "E311_CMD_DENIED_SUBSTRING"
    EFFECTS_SCOPE_REQUIRED = "E320_EFFECTS_SCOPE_REQUIRED"
    STEP_NO_ENSURES = "E400_STEP_NO_ENSURES"
    UNVERIFIED_ASSUMPTION = "E410_UNVERIFIED_ASSUMPTION"
    ASSUMPTION_NO_DECISION = "E411_ASSUMPTION_NO_DECISION"
    ASSUMPTION_DECISION_NOT_FINAL = "E412_ASSUMPTION_DECISION_NOT_FINAL"
    DECISION_DUPLICATE = "E413_DECISION_DUPLICATE"
    DECISION_PARENT_MISSING = "E414_DECISION_PARENT_MISSING"
    DECISION_CYCLE = "E415_DECISION_CYCLE"
    STEP_NO_CLAIMS = "E420_STEP_NO_CLAIMS"
    UNKNOWN_CLAIM = "E421_UNKNOWN_CLAIM"
    UNCLAIMED_INVARIANT = "E422_UNCLAIMED_INVARIANT"
    MISSING_INVARIANTS = "E424_MISSING_INVARIANTS"
    STEP_DECISION_MISSING = "E425_STEP_DECISION_MISSING"
    STEP_DECISION_NOT_FINAL = "E426_STEP_DECISION_NOT_FINAL"
    REQUIRES_ORDER = "W430_REQUIRES_ORDER"
    ARTIFACT_NOT_WRITTEN = "E460_ARTIFACT_NOT_WRITTEN"
    STEPS_REQUIRED = "E902_STEPS_REQUIRED"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """One compile finding."""

    code: str
    severity: Severity
    message: str
    hint: str | None = None
    path: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> dict[str, str]:
        """Stable-key JSON-safe export; optional fields are omitted when unset."""

        payload = {
            "code": str(self.code),
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        if self.path is not None:
            payload["path"] = self.path
        return payload


def error(code: str, message: str, *, hint: str | None = None, path: str | None = None) -> Diagnostic:
    return Diagnostic(code=code, severity=Severity.ERROR, message=message, hint=hint, path=path)


def warning(
    code: str, message: str, *, hint: str | None = None, path: str | None = None
) -> Diagnostic:
    return Diagnostic(code=code, severity=Severity.WARN, message=message, hint=hint, path=path)


def has_errors(diagnostics: Iterable[Diagnostic]) -> bool:
    """Return ``True`` when any diagnostic carries error severity."""

    return any(item.is_error for item in diagnostics)


__all__ = [
    "Diagnostic",
    "DiagnosticCode",
    "Severity",
    "error",
    "has_errors",
    "warning",
]
