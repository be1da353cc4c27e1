"""
webspec — unit tests for configuration loading

File: tests/unit/config/test_config_loader.py

Purpose
- Validate defaults, file/env/CLI precedence, coercion, strict validation, and path
  normalization for ``webspec.toml``.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from webspec.config import (
    ConfigLoadError,
    ConfigValidationError,
    default_config,
    dump_effective_config,
    env_var_for,
    load_config,
    validate_config,
)


def _write_toml(directory: Path, body: str) -> Path:
    path = directory / "webspec.toml"
    path.write_text(body, encoding="utf-8")
    return path


def test_defaults_without_config_file(tmp_path: Path) -> None:
    config = load_config(environ={}, base_dir=tmp_path)
    root = tmp_path.resolve().as_posix()

    assert config["paths"] == {
        "out_dir": f"{root}/.ai/build",
        "stacks_dir": f"{root}/stacks",
        "work_dir": f"{root}/.ai/tmp/run",
    }
    assert config["runtime"] == {"init_git": True}
    assert config["observability"]["log_level"] == "WARNING"
    assert config["observability"]["log_to_file"] is False


def test_precedence_cli_over_env_over_file(tmp_path: Path) -> None:
    config_path = _write_toml(
        tmp_path,
        '[paths]\nstacks_dir = "from-file"\nout_dir = "file-out"\n'
        '[observability]\nlog_level = "info"\n',
    )

    config = load_config(
        config_path,
        environ={"WEBSPEC_PATHS_STACKS_DIR": "from-env", "WEBSPEC_PATHS_OUT_DIR": "env-out"},
        cli_overrides={"paths.stacks_dir": "from-cli", "paths.out_dir": None},
    )
    root = tmp_path.resolve().as_posix()

    assert config["paths"]["stacks_dir"] == f"{root}/from-cli"
    assert config["paths"]["out_dir"] == f"{root}/env-out"
    assert config["observability"]["log_level"] == "INFO"


def test_paths_are_relative_to_the_config_file(tmp_path: Path) -> None:
    nested = tmp_path / "conf"
    nested.mkdir()
    config_path = _write_toml(nested, '[paths]\nstacks_dir = "../stacks"\n')

    config = load_config(config_path, environ={})

    assert config["paths"]["stacks_dir"] == f"{tmp_path.resolve().as_posix()}/stacks"


def test_absolute_paths_are_kept(tmp_path: Path) -> None:
    absolute = (tmp_path / "elsewhere").resolve().as_posix()
    config = load_config(
        environ={}, base_dir=tmp_path, cli_overrides={"paths.work_dir": absolute}
    )

    assert config["paths"]["work_dir"] == absolute


@pytest.mark.parametrize(("raw", "expected"), [("off", False), ("YES", True), (" 1 ", True)])
def test_env_booleans_are_coerced(tmp_path: Path, raw: str, expected: bool) -> None:
    config = load_config(environ={"WEBSPEC_RUNTIME_INIT_GIT": raw}, base_dir=tmp_path)

    assert config["runtime"]["init_git"] is expected


def test_invalid_env_boolean(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="WEBSPEC_RUNTIME_INIT_GIT -> runtime.init_git must be a boolean"):
        load_config(environ={"WEBSPEC_RUNTIME_INIT_GIT": "maybe"}, base_dir=tmp_path)


def test_invalid_env_integer(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="must be an integer"):
        load_config(environ={"WEBSPEC_META_SCHEMA_VERSION": "one"}, base_dir=tmp_path)


def test_explicit_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "absent.toml", environ={})


def test_invalid_toml(tmp_path: Path) -> None:
    config_path = _write_toml(tmp_path, "[paths\n")

    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(config_path, environ={})


def test_unknown_fields_are_rejected(tmp_path: Path) -> None:
    config_path = _write_toml(tmp_path, '[paths]\ncache_dir = "x"\n[extras]\nflag = true\n')

    with pytest.raises(ConfigValidationError) as excinfo:
        load_config(config_path, environ={})

    rendered = {(issue.path, issue.message) for issue in excinfo.value.issues}
    assert ("paths.cache_dir", "unknown field") in rendered
    assert ("extras", "unknown field") in rendered


def test_invalid_log_level_from_cli(tmp_path: Path) -> None:
    with pytest.raises(ConfigValidationError, match="observability.log_level"):
        load_config(
            environ={}, base_dir=tmp_path, cli_overrides={"observability.log_level": "loud"}
        )


def test_schema_version_mismatch_carries_guidance() -> None:
    config = default_config()
    config["meta"]["schema_version"] = 7

    result = validate_config(config)

    assert not result.is_valid
    assert result.issues[0].path == "meta.schema_version"
    assert "upgrade the webspec runtime" in result.issues[0].message


def test_missing_section_and_field() -> None:
    config = default_config()
    del config["runtime"]  # type: ignore[misc]
    del config["paths"]["out_dir"]  # type: ignore[misc]

    result = validate_config(config)

    rendered = {(issue.path, issue.message) for issue in result.issues}
    assert ("runtime", "missing required section") in rendered
    assert ("paths.out_dir", "missing required field") in rendered


def test_dump_effective_config_is_stable(tmp_path: Path) -> None:
    config = load_config(environ={}, base_dir=tmp_path)

    assert dump_effective_config(config) == dump_effective_config(dict(reversed(config.items())))


def test_env_names_follow_setting_paths() -> None:
    assert env_var_for("paths.stacks_dir") == "WEBSPEC_PATHS_STACKS_DIR"
    assert env_var_for("observability.log_to_file") == "WEBSPEC_OBSERVABILITY_LOG_TO_FILE"


def test_unknown_cli_override_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="invalid CLI override key 'paths.cache_dir'"):
        load_config(environ={}, base_dir=tmp_path, cli_overrides={"paths.cache_dir": "x"})
