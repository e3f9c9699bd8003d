"""
apimeta — endpoint audit CLI wrapper

File: scripts/audit_endpoints.py
Last updated: 2026-10-18

Purpose
- Provide a stable, no-install wrapper for the ``apimeta`` CLI.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"


def _load_entrypoint() -> Callable[[Sequence[str] | None], int]:
    try:
        from apimeta.main import cli_entrypoint

        return cli_entrypoint
    except ModuleNotFoundError:
        if str(SRC_PATH) not in sys.path:
            sys.path.insert(0, str(SRC_PATH))
        from apimeta.main import cli_entrypoint

        return cli_entrypoint


def main(argv: Sequence[str] | None = None) -> int:
    entrypoint = _load_entrypoint()
    return entrypoint(list(argv) if argv is not None else None)


if __name__ == "__main__":
    raise SystemExit(main())
