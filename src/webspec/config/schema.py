"""
webspec — configuration schema and validation.

File: src/webspec/config/schema.py

Purpose
- Define authoritative configuration defaults and strict validation rules for
  ``webspec.toml``.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Unknown sections and fields are rejected rather than ignored.
- Schema version mismatches come with migration guidance.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from webspec.constants import CONFIG_SCHEMA_VERSION
from webspec.domain.validation import (
    IssueCollector,
    ValidationIssue,
    as_bool,
    as_choice,
    as_int,
    as_object,
    as_str,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

# Config paths that are normalized relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("paths", "stacks_dir"),
    ("paths", "out_dir"),
    ("paths", "work_dir"),
    ("observability", "log_dir"),
)

ConfigValidationIssue = ValidationIssue


class MetaConfig(TypedDict):
    schema_version: int


class PathsConfig(TypedDict):
    stacks_dir: str
    out_dir: str
    work_dir: str


class RuntimeConfig(TypedDict):
    init_git: bool


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: str
    log_to_file: bool


class WebSpecConfig(TypedDict):
    meta: MetaConfig
    paths: PathsConfig
    runtime: RuntimeConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[WebSpecConfig] = {
    "meta": {"schema_version": CONFIG_SCHEMA_VERSION},
    "paths": {
        "stacks_dir": "stacks",
        "out_dir": ".ai/build",
        "work_dir": ".ai/tmp/run",
    },
    "runtime": {"init_git": True},
    "observability": {
        "log_level": "WARNING",
        "log_dir": ".ai/logs",
        "log_to_file": False,
    },
}


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


def default_config() -> WebSpecConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade webspec.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the webspec runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate a complete config and return structured issues with dotted paths."""

    issues = IssueCollector()
    root = as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    sections: dict[str, Callable[[dict[str, object], str, IssueCollector], dict[str, Any]]] = {
        "meta": _validate_meta,
        "paths": _validate_paths,
        "runtime": _validate_runtime,
        "observability": _validate_observability,
    }
    _reject_unknown_keys(root, set(sections), "", issues)

    normalized: dict[str, Any] = {}
    for key in sorted(sections):
        raw = root.get(key)
        if raw is None:
            issues.add(key, "missing required section")
            continue
        section = as_object(raw, key, issues)
        if section is None:
            continue
        normalized[key] = sections[key](section, key, issues)

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_meta(payload: dict[str, object], path: str, issues: IssueCollector) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    _require_keys(payload, {"schema_version"}, path, issues)
    out: dict[str, Any] = {}
    if "schema_version" in payload:
        key_path = _join(path, "schema_version")
        parsed = as_int(payload["schema_version"], key_path, issues, minimum=1)
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(key_path, migration_guidance(parsed))
    return out


def _validate_paths(payload: dict[str, object], path: str, issues: IssueCollector) -> dict[str, Any]:
    allowed = {"stacks_dir", "out_dir", "work_dir"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    out: dict[str, Any] = {}
    for key in sorted(allowed):
        if key in payload:
            parsed = as_str(payload[key], _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed
    return out


def _validate_runtime(payload: dict[str, object], path: str, issues: IssueCollector) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"init_git"}, path, issues)
    _require_keys(payload, {"init_git"}, path, issues)
    out: dict[str, Any] = {}
    if "init_git" in payload:
        parsed = as_bool(payload["init_git"], _join(path, "init_git"), issues)
        if parsed is not None:
            out["init_git"] = parsed
    return out


def _validate_observability(
    payload: dict[str, object], path: str, issues: IssueCollector
) -> dict[str, Any]:
    allowed = {"log_level", "log_dir", "log_to_file"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        raw_level = payload["log_level"]
        if isinstance(raw_level, str):
            raw_level = raw_level.upper()
        level = as_choice(raw_level, _join(path, "log_level"), issues, choices=LOG_LEVELS)
        if level is not None:
            out["log_level"] = level
    if "log_dir" in payload:
        log_dir = as_str(payload["log_dir"], _join(path, "log_dir"), issues)
        if log_dir is not None:
            out["log_dir"] = log_dir
    if "log_to_file" in payload:
        log_to_file = as_bool(payload["log_to_file"], _join(path, "log_to_file"), issues)
        if log_to_file is not None:
            out["log_to_file"] = log_to_file
    return out


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            nested = existing if isinstance(existing, dict) else {}
            _merge_into(nested, value)
            target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        item = value[key]
        out[key] = _deep_copy_mapping(item) if isinstance(item, Mapping) else copy.deepcopy(item)
    return out


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "WebSpecConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
