"""
webspec — domain layer

File: src/webspec/domain/__init__.py

Purpose
- Immutable types shared by the compiler and runtime: WebSpec documents, stack
  manifests, Plan IR ops/checks, and diagnostics.

Functional requirements
- Decoders collect every shape issue with a dotted path before failing.
- Plan IR serialises deterministically.

Non-functional requirements
- No IO side effects in this layer.
"""

from webspec.domain.diagnostics import Diagnostic, DiagnosticCode, Severity, has_errors
from webspec.domain.manifest import MacroDef, RoutingSemantics, StackManifest, parse_manifest
from webspec.domain.plan import (
    Check,
    CheckKind,
    Op,
    OpKind,
    Plan,
    PlanDecodeError,
    PlanStep,
    check_from_dict,
    op_from_dict,
)
from webspec.domain.spec import DecisionRecord, Step, WebSpec, parse_webspec
from webspec.domain.validation import ShapeValidationError, ValidationIssue

__all__ = [
    "Check",
    "CheckKind",
    "DecisionRecord",
    "Diagnostic",
    "DiagnosticCode",
    "MacroDef",
    "Op",
    "OpKind",
    "Plan",
    "PlanDecodeError",
    "PlanStep",
    "RoutingSemantics",
    "Severity",
    "ShapeValidationError",
    "StackManifest",
    "Step",
    "ValidationIssue",
    "WebSpec",
    "check_from_dict",
    "has_errors",
    "op_from_dict",
    "parse_manifest",
    "parse_webspec",
]
