"""Executable CLI entrypoint for ``webspec``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING, Final

from webspec.config import ConfigLoadError, ConfigValidationError
from webspec.registry import RegistryError
from webspec.runtime import PlanExecutionError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    """Deterministic process exit-code contract."""

    SUCCESS = 0
    COMPILE_FAILED = 1
    CONFIG_ERROR = 2
    RUN_FAILED = 3
    INTERNAL_ERROR = 4


# First matching row wins for each exception in the cause chain.
_ROUTES: Final[tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...]] = (
    ((PlanExecutionError,), ExitCode.RUN_FAILED),
    ((ConfigLoadError, ConfigValidationError, RegistryError), ExitCode.CONFIG_ERROR),
    ((FileNotFoundError, NotADirectoryError, PermissionError), ExitCode.CONFIG_ERROR),
)


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m webspec`` and the console script."""

    try:
        from webspec.ui.cli import run_cli

        return _normalize_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _normalize_exit_code(exc.code)
    except Exception as exc:  # noqa: BLE001 - CLI boundary normalization.
        exit_code = _route_exception(exc)
        if exit_code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        else:
            _write_stderr(f"error: {str(exc).strip() or type(exc).__name__}")
        return int(exit_code)


def _normalize_exit_code(raw_code: object) -> int:
    if raw_code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw_code, int) and raw_code in {int(code) for code in ExitCode}:
        return raw_code
    if isinstance(raw_code, str) and raw_code.strip():
        _write_stderr(raw_code.strip())
    return int(ExitCode.INTERNAL_ERROR)


def _route_exception(exc: BaseException) -> ExitCode:
    for item in _cause_chain(exc):
        for types, code in _ROUTES:
            if isinstance(item, types):
                return code
    return ExitCode.INTERNAL_ERROR


def _cause_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` and its explicit or implicit causes, stopping on cycles."""

    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif current.__suppress_context__:
            current = None
        else:
            current = current.__context__


def _write_stderr(message: str) -> None:
    sys.stderr.write(message.rstrip("\n") + "\n")


__all__ = ["ExitCode", "cli_entrypoint"]
