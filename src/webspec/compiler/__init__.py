"""
webspec — compiler

File: src/webspec/compiler/__init__.py

Purpose
- Turn WebSpec text plus a stack registry into either a Plan IR or the complete list
  of diagnostics explaining why no plan was emitted.

Functional requirements
- Compilation is pure and deterministic: same text and registry, same plan bytes.
- Only parse, unknown-target, and bad-manifest failures short-circuit.
"""

from webspec.compiler.decisions import (
    DecisionCycleError,
    DecisionTree,
    DecisionTreeError,
    DuplicateDecisionError,
    MissingParentError,
    build_decision_tree,
)
from webspec.compiler.macros import expand_macro, render
from webspec.compiler.pipeline import CompileResult, compile_webspec
from webspec.compiler.plan_builder import (
    BuildResult,
    build_from_explicit_steps,
    build_synthesized_program,
)

__all__ = [
    "BuildResult",
    "CompileResult",
    "DecisionCycleError",
    "DecisionTree",
    "DecisionTreeError",
    "DuplicateDecisionError",
    "MissingParentError",
    "build_decision_tree",
    "build_from_explicit_steps",
    "build_synthesized_program",
    "compile_webspec",
    "expand_macro",
    "render",
]
