"""Module entrypoint for ``python -m webspec``."""

from __future__ import annotations

from webspec.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
