"""Front of the compile pipeline: parse spec text, resolve and validate the target manifest.

All three failures here are fatal and produce exactly one diagnostic.
"""

from __future__ import annotations

from collections.abc import Mapping

import yaml

from webspec.domain.diagnostics import Diagnostic, DiagnosticCode, error
from webspec.domain.manifest import StackManifest, parse_manifest
from webspec.domain.spec import WebSpec, parse_webspec
from webspec.domain.validation import ShapeValidationError

Registry = Mapping[str, object]


def parse_spec_text(source_text: str) -> WebSpec | Diagnostic:
    """Return the parsed spec, or a single ``E001_PARSE`` diagnostic."""

    try:
        payload = yaml.safe_load(source_text)
    except yaml.YAMLError as exc:
        return error(DiagnosticCode.PARSE, f"Spec parse/validate failed: {exc}")
    try:
        return parse_webspec(payload)
    except ShapeValidationError as exc:
        return error(DiagnosticCode.PARSE, f"Spec parse/validate failed: {exc}")


def resolve_manifest(target: str, registry: Registry) -> StackManifest | Diagnostic:
    """Look ``target`` up in ``registry`` and validate it (``E100`` / ``E101`` on failure)."""

    raw = registry.get(target)
    if raw is None:
        return error(
            DiagnosticCode.UNKNOWN_TARGET,
            f"Unknown target: {target}",
            hint="Choose a supported target from the registry.",
            path="target",
        )
    if isinstance(raw, StackManifest):
        return raw
    try:
        return parse_manifest(raw)
    except ShapeValidationError as exc:
        return error(DiagnosticCode.BAD_MANIFEST, f"Invalid stack manifest: {exc}")


__all__ = ["Registry", "parse_spec_text", "resolve_manifest"]
