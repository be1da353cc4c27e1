"""
webspec — runtime

File: src/webspec/runtime/__init__.py

Purpose
- Execute a compiled plan in a working directory and verify its proof obligations.

Functional requirements
- Re-check every effect against the stack policy before applying it.
- Stop at the first failing op or check with a step-qualified error.
"""

from webspec.runtime.checks import CheckContext, evaluate_check
from webspec.runtime.errors import (
    CheckFailedError,
    InvalidPlanError,
    OperationFailedError,
    PlanExecutionError,
    PolicyViolationError,
    UnknownTargetError,
)
from webspec.runtime.executor import render_template, run_plan
from webspec.runtime.similarity import fuzzy_score

__all__ = [
    "CheckContext",
    "CheckFailedError",
    "InvalidPlanError",
    "OperationFailedError",
    "PlanExecutionError",
    "PolicyViolationError",
    "UnknownTargetError",
    "evaluate_check",
    "fuzzy_score",
    "render_template",
    "run_plan",
]
