"""Command-line interface router for webspec."""

from __future__ import annotations

import argparse
import json
import re
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from webspec.compiler import CompileResult, compile_webspec
from webspec.config import ConfigLoadError, ConfigValidationError, load_config
from webspec.observability import LoggingConfig, get_logger, setup_logging
from webspec.registry import RegistryError, load_registry
from webspec.runtime import PlanExecutionError, run_plan
from webspec.runtime.git import GitError, init_repository
from webspec.ui.render import CLIRenderer, create_renderer
from webspec.utils.fs import atomic_write

DIAGNOSTICS_FILENAME: Final[str] = "diagnostics.json"
PLAN_FILENAME: Final[str] = "plan.json"

_NON_WORD: Final[re.Pattern[str]] = re.compile(r"\W+")

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class _Compiled:
    spec_path: Path
    out_dir: Path
    registry: dict[str, dict[str, object]]
    result: CompileResult


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="webspec",
        description=(
            "webspec — compile WebSpec documents into guarded execution plans.\n\n"
            "Common workflows:\n"
            "  webspec check app.webspec.yaml      Validate a spec and print diagnostics\n"
            "  webspec compile app.webspec.yaml    Write plan.json and diagnostics.json\n"
            "  webspec run app.webspec.yaml        Compile, then execute the plan\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to webspec TOML config (default: ./webspec.toml if present).",
    )
    common.add_argument(
        "--stacks",
        dest="stacks_dir",
        default=None,
        help="Stacks directory holding <target>/manifest.json (default: stacks).",
    )
    common.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default=None,
        help="Structured log level on stderr (default from config: WARNING).",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show diagnostic paths and hints.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # compile -------------------------------------------------------------
    compile_parser = subparsers.add_parser(
        "compile",
        parents=[common],
        help="Compile a spec into plan.json and diagnostics.json",
        description=(
            "Compile a WebSpec document against the stack registry.\n\n"
            "Examples:\n"
            "  webspec compile app.webspec.yaml\n"
            "  webspec compile app.webspec.yaml --out build --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    compile_parser.add_argument("spec_path", help="Path to the WebSpec YAML document")
    compile_parser.add_argument(
        "--out", dest="out_dir", default=None, help="Output root (default: .ai/build)"
    )
    compile_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    compile_parser.set_defaults(handler=_cmd_compile)

    # run -----------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Compile a spec and execute the plan in a work directory",
        description=(
            "Compile, write the plan, and execute it step by step.\n\n"
            "Examples:\n"
            "  webspec run app.webspec.yaml\n"
            "  webspec run app.webspec.yaml --workdir /tmp/site --no-git-init\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_parser.add_argument("spec_path", help="Path to the WebSpec YAML document")
    run_parser.add_argument(
        "--out", dest="out_dir", default=None, help="Output root (default: .ai/build)"
    )
    run_parser.add_argument(
        "--workdir", dest="work_dir", default=None, help="Work directory (default: .ai/tmp/run)"
    )
    run_parser.add_argument(
        "--no-git-init",
        dest="init_git",
        action="store_false",
        default=None,
        help="Do not initialise a git repository in the work directory.",
    )
    run_parser.set_defaults(handler=_cmd_run)

    # check ---------------------------------------------------------------
    check_parser = subparsers.add_parser(
        "check",
        parents=[common],
        help="Compile a spec without writing anything and print diagnostics",
    )
    check_parser.add_argument("spec_path", help="Path to the WebSpec YAML document")
    check_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    check_parser.set_defaults(handler=_cmd_check)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_compile(args: argparse.Namespace) -> int:
    config = _prepare(args)
    compiled = _compile(args, config)
    _write_outputs(compiled)
    result = compiled.result

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "compile",
                "spec_path": compiled.spec_path.as_posix(),
                "out_dir": compiled.out_dir.as_posix(),
                "ok": result.ok,
                "diagnostics": [item.to_dict() for item in result.diagnostics],
            }
        )
        return 0 if result.ok else 1

    renderer = _get_renderer(args)
    renderer.diagnostics(result.diagnostics)
    if not result.ok:
        return 1
    renderer.kv("Wrote plan", (compiled.out_dir / PLAN_FILENAME).as_posix())
    renderer.next_steps([f"webspec run {args.spec_path}"])
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    config = _prepare(args)
    compiled = _compile(args, config)
    _write_outputs(compiled)
    result = compiled.result

    renderer = _get_renderer(args)
    renderer.diagnostics(result.diagnostics)
    if not result.ok or result.plan is None:
        return 1

    work_dir = Path(_config_str(config, ("paths", "work_dir")))
    work_dir.mkdir(parents=True, exist_ok=True)
    if _config_bool(config, ("runtime", "init_git")):
        try:
            if init_repository(work_dir):
                logger.info("git_repository_initialised", workdir=work_dir.as_posix())
        except GitError as exc:
            raise CLIError(f"git init failed: {exc}", exit_code=2) from exc

    renderer.kv("Running plan in", work_dir.as_posix())
    try:
        run_plan(result.plan, cwd=work_dir, registry=compiled.registry)
    except PlanExecutionError as exc:
        raise CLIError(f"run failed: {exc}", exit_code=3) from exc
    renderer.text("Run complete.")
    return 0


def _cmd_check(args: argparse.Namespace) -> int:
    config = _prepare(args)
    compiled = _compile(args, config)
    result = compiled.result

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "check",
                "spec_path": compiled.spec_path.as_posix(),
                "ok": result.ok,
                "diagnostics": [item.to_dict() for item in result.diagnostics],
            }
        )
        return 0 if result.ok else 1

    renderer = _get_renderer(args)
    renderer.diagnostics(result.diagnostics)
    if result.ok and result.plan is not None:
        renderer.ok(f"{compiled.spec_path.name} compiles to {len(result.plan.steps)} step(s)")
        return 0
    return 1


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def output_dir_name(spec_path: str | Path) -> str:
    """Per-spec output folder name: the spec file name with non-word runs replaced by ``_``."""

    return _NON_WORD.sub("_", Path(spec_path).name)


def _prepare(args: argparse.Namespace) -> dict[str, object]:
    config = _load_effective_config(args)
    setup_logging(
        LoggingConfig(
            level=_config_str(config, ("observability", "log_level")),
            log_dir=_config_str(config, ("observability", "log_dir")),
            log_to_file=_config_bool(config, ("observability", "log_to_file")),
        )
    )
    return config


def _load_effective_config(args: argparse.Namespace) -> dict[str, object]:
    overrides: dict[str, object] = {
        "paths.stacks_dir": getattr(args, "stacks_dir", None),
        "paths.out_dir": getattr(args, "out_dir", None),
        "paths.work_dir": getattr(args, "work_dir", None),
        "runtime.init_git": getattr(args, "init_git", None),
        "observability.log_level": getattr(args, "log_level", None),
    }
    try:
        return load_config(getattr(args, "config_path", None), cli_overrides=overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _compile(args: argparse.Namespace, config: Mapping[str, object]) -> _Compiled:
    spec_path = Path(args.spec_path).expanduser().resolve()
    try:
        source_text = spec_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"cannot read spec {spec_path}: {exc}", exit_code=2) from exc

    registry = _load_stacks(config)
    out_root = Path(_config_str(config, ("paths", "out_dir")))
    return _Compiled(
        spec_path=spec_path,
        out_dir=out_root / output_dir_name(spec_path),
        registry=registry,
        result=compile_webspec(source_text, registry),
    )


def _load_stacks(config: Mapping[str, object]) -> dict[str, dict[str, object]]:
    try:
        return load_registry(_config_str(config, ("paths", "stacks_dir")))
    except RegistryError as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _write_outputs(compiled: _Compiled) -> None:
    result = compiled.result
    try:
        compiled.out_dir.mkdir(parents=True, exist_ok=True)
        diagnostics = [item.to_dict() for item in result.diagnostics]
        atomic_write(
            compiled.out_dir / DIAGNOSTICS_FILENAME,
            json.dumps(diagnostics, indent=2, ensure_ascii=False) + "\n",
        )
        if result.ok and result.plan is not None:
            atomic_write(compiled.out_dir / PLAN_FILENAME, result.plan.to_json())
    except OSError as exc:
        raise CLIError(f"cannot write outputs to {compiled.out_dir}: {exc}", exit_code=2) from exc


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=_flag(args, "no_color"), verbose=_flag(args, "verbose"))


def _config_value(config: Mapping[str, object], path: Sequence[str]) -> object:
    current: object = config
    for part in path:
        if not isinstance(current, Mapping) or part not in current:
            raise CLIError(f"missing config value: {'.'.join(path)}", exit_code=2)
        current = current[part]
    return current


def _config_str(config: Mapping[str, object], path: Sequence[str]) -> str:
    value = _config_value(config, path)
    if not isinstance(value, str) or not value.strip():
        raise CLIError(f"config value {'.'.join(path)} must be a non-empty string", exit_code=2)
    return value


def _config_bool(config: Mapping[str, object], path: Sequence[str]) -> bool:
    value = _config_value(config, path)
    if not isinstance(value, bool):
        raise CLIError(f"config value {'.'.join(path)} must be a boolean", exit_code=2)
    return value


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "main", "output_dir_name", "run_cli"]
