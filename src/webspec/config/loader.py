"""
webspec — runtime config loader.

File: src/webspec/config/loader.py

Purpose
- Load effective CLI config from defaults, ``webspec.toml``, ``WEBSPEC_`` environment
  variables, and CLI overrides.

Functional requirements
- Precedence: CLI > env > file > defaults.
- Each scalar setting has exactly one environment variable
  (``WEBSPEC_PATHS_STACKS_DIR`` -> ``paths.stacks_dir``), coerced to the setting's type.
- Relative paths are normalized against the config file's directory.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final, Literal

from webspec.config.schema import PATH_FIELDS, assert_valid_config, default_config, merge_config

DEFAULT_CONFIG_FILE: Final[str] = "webspec.toml"
ENV_PREFIX: Final[str] = "WEBSPEC_"

SettingKind = Literal["str", "int", "bool"]

# Every overridable setting, keyed by its dotted config path.
SETTINGS: Final[dict[str, SettingKind]] = {
    "meta.schema_version": "int",
    "paths.stacks_dir": "str",
    "paths.out_dir": "str",
    "paths.work_dir": "str",
    "runtime.init_git": "bool",
    "observability.log_level": "str",
    "observability.log_dir": "str",
    "observability.log_to_file": "bool",
}

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def env_var_for(setting: str) -> str:
    """``paths.stacks_dir`` -> ``WEBSPEC_PATHS_STACKS_DIR``."""

    return ENV_PREFIX + setting.replace(".", "_").upper()


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
    base_dir: Path | None = None,
) -> dict[str, Any]:
    """
    Load effective config with deterministic precedence: CLI > env > file > defaults.

    Without ``config_path`` a ``webspec.toml`` in ``base_dir`` (default: cwd) is used
    when present; an explicit path that does not exist is an error.
    """

    search_dir = Path.cwd() if base_dir is None else base_dir
    if config_path is None:
        toml_path = (search_dir / DEFAULT_CONFIG_FILE).resolve()
    else:
        toml_path = Path(config_path).expanduser().resolve()

    layered = assert_valid_config(
        merge_config(default_config(), _read_toml(toml_path, required=config_path is not None))
    )
    for overlay in (
        _env_layer(os.environ if environ is None else environ),
        _cli_layer(cli_overrides or {}),
    ):
        layered = merge_config(layered, overlay)

    return normalize_paths(assert_valid_config(layered), base_dir=toml_path.parent)


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Normalize configured path fields relative to ``base_dir``."""

    normalized = merge_config({}, config)
    for section, key in PATH_FIELDS:
        table = normalized.get(section)
        if isinstance(table, dict) and isinstance(table.get(key), str):
            table[key] = _absolute_posix(table[key], base_dir)
    return normalized


def dump_effective_config(config: Mapping[str, object]) -> str:
    return json.dumps(config, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}

    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _env_layer(environ: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for setting, kind in SETTINGS.items():
        name = env_var_for(setting)
        raw = environ.get(name)
        if raw is not None:
            _assign(layer, setting, _coerce(raw.strip(), kind, f"{name} -> {setting}"))
    return layer


def _coerce(value: str, kind: SettingKind, label: str) -> object:
    if kind == "str":
        return value
    if kind == "int":
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{label} must be an integer") from exc
    if value.lower() in _TRUTHY:
        return True
    if value.lower() in _FALSY:
        return False
    raise ConfigLoadError(f"{label} must be a boolean (true/false/1/0/yes/no/on/off)")


def _cli_layer(cli_overrides: Mapping[str, object]) -> dict[str, Any]:
    """Dotted keys (``paths.out_dir``) become nested; ``None`` values are ignored."""

    layer: dict[str, Any] = {}
    for setting in sorted(cli_overrides):
        value = cli_overrides[setting]
        if value is None:
            continue
        if setting not in SETTINGS:
            raise ConfigLoadError(f"invalid CLI override key {setting!r}")
        _assign(layer, setting, value)
    return layer


def _assign(target: dict[str, Any], setting: str, value: object) -> None:
    section, key = setting.split(".", 1)
    target.setdefault(section, {})[key] = value


def _absolute_posix(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "SETTINGS",
    "dump_effective_config",
    "env_var_for",
    "load_config",
    "normalize_paths",
]
