"""
apimeta — CLI subprocess smoke contracts

File: tests/integration/test_cli_smoke.py
Last updated: 2026-10-18

Purpose
- Exercise `python -m apimeta` and the `scripts/audit_endpoints.py` wrapper end to end.
- Verify exit codes, stdout/stderr signals, and the metadata file side effects of canonize.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import yaml

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"

SDK_MODULE = """
class ReposService:
    def get(self, ctx, owner, repo):
        u = f"repos/{owner}/{repo}"
        req = self.client.new_request("GET", u, None)
        return self.client.do(ctx, req, None)

    def delete(self, ctx, owner, repo):
        u = f"repos/{owner}/{repo}"
        req = self.client.new_request("DELETE", u, None)
        return self.client.do(ctx, req, None)
"""


def _env() -> dict[str, str]:
    env = os.environ.copy()
    existing_pythonpath = env.get("PYTHONPATH")
    src_pythonpath = str(SRC_PATH)
    env["PYTHONPATH"] = (
        src_pythonpath if not existing_pythonpath else f"{src_pythonpath}:{existing_pythonpath}"
    )
    for name in list(env):
        if name.startswith("APIMETA_"):
            del env[name]
    return env


def _run_cli(repo_root: Path, *args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, "-m", "apimeta", *args],
        cwd=repo_root,
        text=True,
        capture_output=True,
        check=False,
        env=_env(),
    )


def _write(path: Path, contents: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(contents, encoding="utf-8")


def _seed_repo(repo_root: Path, *, delete_operation: str) -> Path:
    _write(repo_root / "sdk" / "repos.py", SDK_MODULE)
    metadata_path = repo_root / "metadata.yaml"
    document = {
        "methods": [
            {"name": "ReposService.delete", "operations": [delete_operation]},
            {"name": "ReposService.get", "operations": ["GET /repos/{owner}/{repo}"]},
        ],
        "operations": [
            {"name": "DELETE /repos/{owner}/{repo}"},
            {"name": "GET /repos/{owner}/{repo}"},
        ],
    }
    metadata_path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
    return metadata_path


def _render_failure(label: str, completed: subprocess.CompletedProcess[str]) -> str:
    return (
        f"{label} failed with exit code {completed.returncode}\n"
        f"stdout:\n{completed.stdout}\n"
        f"stderr:\n{completed.stderr}\n"
    )


def test_validate_canonize_validate_cycle(tmp_path: Path) -> None:
    metadata_path = _seed_repo(tmp_path, delete_operation="DELETE /repos/{org}/{name}")

    before = _run_cli(tmp_path, "validate")
    assert before.returncode == 1, _render_failure("validate", before)
    assert "apimeta canonize" in before.stderr
    assert "found 1 issues in" in before.stderr

    canonize = _run_cli(tmp_path, "canonize")
    assert canonize.returncode == 0, _render_failure("canonize", canonize)
    saved = yaml.safe_load(metadata_path.read_text(encoding="utf-8"))
    assert saved["methods"][0]["operations"] == ["DELETE /repos/{owner}/{repo}"]

    after = _run_cli(tmp_path, "validate")
    assert after.returncode == 0, _render_failure("validate", after)


def test_endpoints_json_output_is_parseable(tmp_path: Path) -> None:
    _seed_repo(tmp_path, delete_operation="DELETE /repos/{owner}/{repo}")

    result = _run_cli(tmp_path, "endpoints", "--json")

    assert result.returncode == 0, _render_failure("endpoints --json", result)
    payload = json.loads(result.stdout)
    assert [method["name"] for method in payload["methods"]] == [
        "ReposService.delete",
        "ReposService.get",
    ]
    assert [method["http_method"] for method in payload["methods"]] == ["DELETE", "GET"]


def test_audit_endpoints_script_matches_module_entrypoint(tmp_path: Path) -> None:
    _seed_repo(tmp_path, delete_operation="DELETE /repos/{owner}/{repo}")

    result = subprocess.run(
        [
            sys.executable,
            str(PROJECT_ROOT / "scripts" / "audit_endpoints.py"),
            "endpoints",
            "--repo-root",
            str(tmp_path),
        ],
        cwd=PROJECT_ROOT,
        text=True,
        capture_output=True,
        check=False,
        env=_env(),
    )

    assert result.returncode == 0, _render_failure("audit_endpoints.py endpoints", result)
    assert result.stdout.splitlines() == [
        "ReposService.delete\tDELETE\trepos/{owner}/{repo}\t",
        "ReposService.get\tGET\trepos/{owner}/{repo}\t",
    ]
