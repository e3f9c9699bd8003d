"""
apimeta — unit tests for the CLI router

File: tests/unit/ui/test_cli.py
Last updated: 2026-10-18

Purpose
- Exercise every subcommand in-process against a small SDK package and metadata file.

What this test file should cover
- validate / canonize / format / endpoints / update-openapi outputs and exit codes.
- Exit-code routing for config, analysis and remote failures.
- Remote access is replaced by an in-memory contents client.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import yaml

from apimeta.errors import RemoteFetchError
from apimeta.main import ExitCode, cli_entrypoint
from apimeta.remote.contents import RemoteEntry
from apimeta.ui import cli

ISSUES_MODULE = """
class IssuesService:
    def get(self, ctx, owner, repo, issue_number):
        u = f"repos/{owner}/{repo}/issues/{issue_number}"
        req = self.client.new_request("GET", u, None)
        return self.client.do(ctx, req, None)

    def list_by_org(self, ctx, org, opts=None):
        u = f"orgs/{org}/issues"
        return self._list(ctx, u, opts)

    def _list(self, ctx, u, opts):
        u = add_options(u, opts)
        req = self.client.new_request("GET", u, None)
        return self.client.do(ctx, req, None)
"""

GET_ISSUE = "GET /repos/{owner}/{repo}/issues/{issue_number}"
LIST_ORG = "GET /orgs/{org}/issues"
PUBLIC_FILE = "descriptions/api.github.com/api.github.com.json"

ISSUE_DOCS = "https://docs.github.com/rest/issues/issues"

DESCRIPTION = {
    "paths": {
        "/repos/{owner}/{repo}/issues/{issue_number}": {
            "get": {"externalDocs": {"url": ISSUE_DOCS + "#get-an-issue"}}
        },
        "/orgs/{org}/issues": {
            "get": {"externalDocs": {"url": ISSUE_DOCS + "#list-organization-issues"}}
        },
    }
}


class FakeRemote:
    def __init__(self, *, commit: str = "c0ffee", fail: bool = False) -> None:
        self.commit = commit
        self.fail = fail
        self.closed = False

    def __enter__(self) -> FakeRemote:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.closed = True

    def get_commit(self, ref: str) -> str:
        if self.fail:
            raise RemoteFetchError(f"GET commits/{ref} failed with status 503")
        return self.commit

    def list_directory(self, path: str, ref: str) -> list[RemoteEntry]:
        if path == "descriptions":
            return [RemoteEntry("api.github.com"), RemoteEntry("ghes-2.22")]
        return [RemoteEntry("api.github.com.json", f"https://raw.test/{ref}/api.github.com.json")]

    def download(self, url: str) -> bytes:
        return json.dumps(DESCRIPTION).encode("utf-8")


def _write(root: Path, rel_path: str, text: str) -> None:
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _write_metadata(root: Path, document: dict[str, Any]) -> Path:
    path = root / "metadata.yaml"
    path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
    return path


def _repo(root: Path, *, methods: list[dict[str, Any]] | None = None) -> Path:
    _write(root, "sdk/issues.py", ISSUES_MODULE)
    return _write_metadata(
        root,
        {
            "methods": methods
            if methods is not None
            else [
                {"name": "IssuesService.get", "operations": [GET_ISSUE]},
                {"name": "IssuesService.list_by_org", "operations": [LIST_ORG]},
            ],
            "operations": [{"name": GET_ISSUE}, {"name": LIST_ORG}],
        },
    )


def _run(root: Path, *args: str) -> int:
    command, *rest = args
    return cli_entrypoint([command, "--repo-root", str(root), *rest])


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    for name in ("APIMETA_PATHS_SOURCE_DIR", "APIMETA_PATHS_METADATA_FILE"):
        monkeypatch.delenv(name, raising=False)


def test_validate_clean_repository(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _repo(tmp_path)

    assert _run(tmp_path, "validate") == ExitCode.SUCCESS
    assert capsys.readouterr().err == ""


def test_validate_reports_issues_and_count(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    metadata_path = _repo(
        tmp_path, methods=[{"name": "IssuesService.get", "operations": [GET_ISSUE]}]
    )

    assert _run(tmp_path, "validate") == ExitCode.VALIDATION_FAILED

    err = capsys.readouterr().err.splitlines()
    assert err == [
        "Method IssuesService.list_by_org does not exist in metadata.yaml. Please add it.",
        f"found 1 issues in {metadata_path.resolve().as_posix()}",
    ]


def test_canonize_rewrites_mapping(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    metadata_path = _repo(
        tmp_path,
        methods=[
            {"name": "IssuesService.get", "operations": [GET_ISSUE]},
            {
                "name": "IssuesService.list_by_org",
                "operations": ["GET /orgs/{organization}/issues"],
            },
        ],
    )

    assert _run(tmp_path, "canonize") == ExitCode.SUCCESS

    out = capsys.readouterr().out
    assert out == (
        "IssuesService.list_by_org: GET /orgs/{organization}/issues -> GET /orgs/{org}/issues\n"
    )
    saved = yaml.safe_load(metadata_path.read_text(encoding="utf-8"))
    assert saved["methods"][1]["operations"] == [LIST_ORG]
    assert _run(tmp_path, "validate") == ExitCode.SUCCESS


def test_canonize_failure_exits_with_analysis_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    metadata_path = _repo(
        tmp_path, methods=[{"name": "IssuesService.get", "operations": ["GET /nowhere/{x}"]}]
    )
    before = metadata_path.read_text(encoding="utf-8")

    assert _run(tmp_path, "canonize") == ExitCode.ANALYSIS_ERROR

    assert "no matching operation" in capsys.readouterr().err
    assert metadata_path.read_text(encoding="utf-8") == before


def test_format_sorts_layers(tmp_path: Path) -> None:
    metadata_path = _write_metadata(
        tmp_path,
        {"operations": [{"name": "POST /b"}, {"name": "GET /b"}, {"name": "GET /a"}]},
    )

    assert _run(tmp_path, "format") == ExitCode.SUCCESS

    saved = yaml.safe_load(metadata_path.read_text(encoding="utf-8"))
    assert [item["name"] for item in saved["operations"]] == ["GET /a", "GET /b", "POST /b"]


def test_endpoints_json_lists_resolved_methods(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _repo(tmp_path)

    assert _run(tmp_path, "endpoints", "--json") == ExitCode.SUCCESS

    payload = json.loads(capsys.readouterr().out)
    assert payload["command"] == "endpoints"
    assert payload["unresolved"] == []
    assert payload["methods"] == [
        {
            "name": "IssuesService.get",
            "source_file": "issues.py",
            "http_method": "GET",
            "url_templates": ["repos/{owner}/{repo}/issues/{issue_number}"],
            "helper": None,
        },
        {
            "name": "IssuesService.list_by_org",
            "source_file": "issues.py",
            "http_method": "GET",
            "url_templates": ["orgs/{org}/issues"],
            "helper": "IssuesService._list",
        },
    ]


def test_endpoints_text_flags_unresolved_methods(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _write(tmp_path, "sdk/meta.py", "class MetaService:\n    def zen(self, ctx):\n        return\n")

    assert _run(tmp_path, "endpoints") == ExitCode.ANALYSIS_ERROR

    captured = capsys.readouterr()
    assert captured.out == "MetaService.zen\t-\t-\t\n"
    assert "error: meta.py: MetaService.zen: no HTTP method or URL found" in captured.err


def test_update_openapi_writes_operations_and_commit(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    metadata_path = _write_metadata(tmp_path, {"methods": [{"name": "IssuesService.get"}]})
    remote = FakeRemote()
    monkeypatch.setattr(cli, "_open_contents_client", lambda config: remote)

    assert _run(tmp_path, "update-openapi", "--ref", "v1") == ExitCode.SUCCESS

    saved = yaml.safe_load(metadata_path.read_text(encoding="utf-8"))
    assert saved["openapi_commit"] == "c0ffee"
    assert [item["name"] for item in saved["openapi_operations"]] == [LIST_ORG, GET_ISSUE]
    assert saved["openapi_operations"][0]["openapi_files"] == [PUBLIC_FILE]
    assert remote.closed


def test_validate_checks_openapi_commit(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _write(tmp_path, "sdk/issues.py", ISSUES_MODULE)
    _write_metadata(
        tmp_path,
        {
            "methods": [
                {"name": "IssuesService.get", "operations": [GET_ISSUE]},
                {"name": "IssuesService.list_by_org", "operations": [LIST_ORG]},
            ],
            "operations": [{"name": LIST_ORG}],
            "openapi_operations": [{"name": GET_ISSUE, "openapi_files": [PUBLIC_FILE]}],
            "openapi_commit": "c0ffee",
        },
    )
    monkeypatch.setattr(cli, "_open_contents_client", lambda config: FakeRemote())

    assert _run(tmp_path, "validate") == ExitCode.SUCCESS
    assert _run(tmp_path, "validate", "--check-openapi-commit") == ExitCode.VALIDATION_FAILED

    err = capsys.readouterr().err
    assert "openapi_operations does not match operations from git commit c0ffee" in err
    assert "found 1 issues in" in err


def test_remote_failure_exits_with_remote_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    metadata_path = _write_metadata(tmp_path, {"methods": [{"name": "IssuesService.get"}]})
    before = metadata_path.read_text(encoding="utf-8")
    monkeypatch.setattr(cli, "_open_contents_client", lambda config: FakeRemote(fail=True))

    assert _run(tmp_path, "update-openapi") == ExitCode.REMOTE_ERROR

    assert "error: GET commits/main failed with status 503" in capsys.readouterr().err
    assert metadata_path.read_text(encoding="utf-8") == before


def test_missing_config_file_exits_with_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _repo(tmp_path)

    assert _run(tmp_path, "validate", "--config", "absent.toml") == ExitCode.CONFIG_ERROR
    assert "error: config file not found" in capsys.readouterr().err


def test_config_file_and_flags_select_paths(tmp_path: Path) -> None:
    _write(tmp_path, "code/issues.py", ISSUES_MODULE)
    _write(
        tmp_path,
        "conf/apimeta.toml",
        '[paths]\nsource_dir = "../code"\nmetadata_file = "../missing.yaml"\n',
    )
    _repo(tmp_path)

    exit_code = _run(
        tmp_path, "validate", "--config", "conf/apimeta.toml", "--metadata", "metadata.yaml"
    )

    assert exit_code == ExitCode.SUCCESS


def test_missing_source_dir_exits_with_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _write_metadata(tmp_path, {})

    assert _run(tmp_path, "validate") == ExitCode.CONFIG_ERROR
    assert "error: source directory not found" in capsys.readouterr().err


def test_bad_metadata_exits_with_analysis_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _repo(tmp_path)
    (tmp_path / "metadata.yaml").write_text("methods: [\n", encoding="utf-8")

    assert _run(tmp_path, "validate") == ExitCode.ANALYSIS_ERROR
    assert "error: unable to load metadata" in capsys.readouterr().err


def test_structural_extraction_error_exits_with_analysis_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _repo(tmp_path)
    _write(
        tmp_path,
        "sdk/bad.py",
        "class BadService:\n"
        "    def get(self, ctx):\n"
        '        req = self.client.new_request("GET", "a", None)\n'
        '        req = self.client.new_request("POST", "a", None)\n'
        "        return req\n",
    )

    assert _run(tmp_path, "endpoints") == ExitCode.ANALYSIS_ERROR
    assert "error: bad.py:4 BadService.get: found both GET and POST" in capsys.readouterr().err


def test_missing_subcommand_exits_with_usage_error(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint([]) == ExitCode.CONFIG_ERROR
    assert "usage: apimeta" in capsys.readouterr().err
