"""Module entrypoint for ``python -m apimeta``."""

from __future__ import annotations

from apimeta.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
