"""
apimeta — unit tests for the source scanner

File: tests/unit/extraction/test_scanner.py
Last updated: 2026-10-18

Purpose
- Validate module discovery, class and method eligibility, parallel scanning and helper
  resolution over a small on-disk SDK package.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from structlog.testing import capture_logs

from apimeta.errors import ExtractionError, HelperResolutionError, SourceParseError
from apimeta.extraction.models import AnalyzerConfig
from apimeta.extraction.scanner import (
    build_inventory,
    collect_source_files,
    scan_directory,
    scan_directory_async,
    scan_file,
)

ISSUES_MODULE = '''
class IssuesService:
    """Issue endpoints."""

    async def list_by_org(self, ctx, org, opts=None):
        u = f"orgs/{org}/issues"
        return await self._list_issues(ctx, u, opts)

    async def get(self, ctx, owner, repo, number):
        u = f"repos/{owner}/{repo}/issues/{number}"
        req = self.client.new_request("GET", u, None)
        return await self.client.do(ctx, req, None)

    async def _list_issues(self, ctx, u, opts):
        u = add_options(u, opts)
        req = self.client.new_request("GET", u, None)
        return await self.client.do(ctx, req, None)

    @property
    def base(self):
        return self.client.base_url

    def __repr__(self):
        return "IssuesService"


class _HiddenService:
    def get(self, ctx):
        req = self.client.new_request("GET", "hidden", None)
        return req


class Paginator:
    def next(self, ctx):
        req = self.client.new_request("GET", "next", None)
        return req
'''

CLIENT_MODULE = """
class Client:
    def bare_do(self, ctx, req):
        return req
"""

CLIENT_EXTRA_MODULE = """
class Client:
    def octocat(self, ctx, message):
        u = "octocat"
        req = self.new_request("GET", u, None)
        return self.do(ctx, req, None)
"""


def _write(root: Path, rel_path: str, text: str) -> None:
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _sdk(root: Path) -> Path:
    source_dir = root / "sdk"
    _write(source_dir, "issues.py", ISSUES_MODULE)
    _write(source_dir, "client.py", CLIENT_MODULE)
    _write(source_dir, "misc.py", CLIENT_EXTRA_MODULE)
    _write(source_dir, "test_issues.py", "class FakeService:\n    def get(self, ctx): ...\n")
    _write(source_dir, "issues_test.py", "class OtherService:\n    pass\n")
    _write(source_dir, "conftest.py", "")
    _write(source_dir, "README.md", "not python")
    _write(source_dir, "nested/deep.py", "class DeepService:\n    def get(self, ctx): ...\n")
    return source_dir


def test_collect_source_files_skips_tests_and_subdirectories(tmp_path: Path) -> None:
    source_dir = _sdk(tmp_path)

    assert collect_source_files(source_dir) == ["client.py", "issues.py", "misc.py"]


def test_collect_source_files_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(SourceParseError, match="does not exist"):
        collect_source_files(tmp_path / "absent")


def test_scan_file_selects_public_service_methods(tmp_path: Path) -> None:
    source_dir = _sdk(tmp_path)

    methods = scan_file(source_dir, "issues.py")
    names = [method.name for method in methods]

    assert names == [
        "IssuesService.list_by_org",
        "IssuesService.get",
        "IssuesService._list_issues",
    ]
    assert [method.exported for method in methods] == [True, True, False]


def test_client_class_is_scanned_outside_core_files(tmp_path: Path) -> None:
    source_dir = _sdk(tmp_path)

    assert scan_file(source_dir, "client.py") == []
    extra = scan_file(source_dir, "misc.py")
    assert [method.name for method in extra] == ["Client.octocat"]
    assert extra[0].http_method == "GET"
    assert extra[0].url_templates == ("octocat",)


def test_scan_file_wraps_syntax_errors(tmp_path: Path) -> None:
    _write(tmp_path, "broken.py", "class BrokenService:\n    def get(self\n")

    with pytest.raises(SourceParseError) as excinfo:
        scan_file(tmp_path, "broken.py")

    assert "broken.py" in str(excinfo.value)


def test_public_method_failure_names_file_and_method(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "bad.py",
        "class BadService:\n"
        "    def get(self, ctx, flag):\n"
        "        if flag:\n"
        '            req = self.client.new_request("GET", "a", None)\n'
        "        else:\n"
        '            req = self.client.new_request("PUT", "a", None)\n'
        "        return req\n",
    )

    with pytest.raises(ExtractionError) as excinfo:
        scan_file(tmp_path, "bad.py")

    assert excinfo.value.source_file == "bad.py"
    assert excinfo.value.method == "BadService.get"
    assert str(excinfo.value) == "bad.py:6 BadService.get: found both GET and PUT"


def test_private_method_failure_is_tolerated(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "soft.py",
        "class SoftService:\n"
        "    def _gen(self, ctx):\n"
        "        value = yield ctx\n"
        "        return value\n",
    )

    with capture_logs() as logs:
        methods = scan_file(tmp_path, "soft.py")

    assert len(methods) == 1
    assert methods[0].exported is False
    assert methods[0].http_method == ""
    assert [(entry["event"], entry["log_level"]) for entry in logs] == [
        ("private_method_unparsed", "warning"),
        ("source_file_scanned", "debug"),
    ]


def test_scan_directory_orders_by_file_then_name(tmp_path: Path) -> None:
    source_dir = _sdk(tmp_path)

    methods = scan_directory(source_dir, max_workers=2)

    assert [(method.source_file, method.name) for method in methods] == [
        ("issues.py", "IssuesService._list_issues"),
        ("issues.py", "IssuesService.get"),
        ("issues.py", "IssuesService.list_by_org"),
        ("misc.py", "Client.octocat"),
    ]


async def test_scan_directory_async_matches_sync_result(tmp_path: Path) -> None:
    source_dir = _sdk(tmp_path)

    methods = await scan_directory_async(source_dir, max_workers=1)

    assert [method.name for method in methods][0] == "IssuesService._list_issues"
    assert len(methods) == 4


def test_build_inventory_resolves_helpers(tmp_path: Path) -> None:
    source_dir = _sdk(tmp_path)

    inventory = build_inventory(source_dir)
    by_org = inventory.get("IssuesService.list_by_org")

    assert by_org is not None
    assert by_org.http_method == "GET"
    assert by_org.url_templates == ("orgs/{org}/issues",)
    assert inventory.names == [
        "IssuesService.get",
        "IssuesService.list_by_org",
        "Client.octocat",
    ]
    assert inventory.unresolved == ()
    assert inventory.scanned_files == ("client.py", "issues.py", "misc.py")


def test_build_inventory_reports_unresolvable_helper(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "users.py",
        "class UsersService:\n"
        "    def get(self, ctx, user):\n"
        '        u = f"users/{user}"\n'
        "        return self.missing(ctx, u)\n",
    )

    with pytest.raises(HelperResolutionError, match="unable to find helper method"):
        build_inventory(tmp_path)


def test_unresolved_lists_exported_methods_without_information(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "meta.py",
        "class MetaService:\n"
        "    def zen(self, ctx):\n"
        "        return None\n",
    )

    inventory = build_inventory(tmp_path)

    assert [method.name for method in inventory.unresolved] == ["MetaService.zen"]


def test_custom_suffix_and_client_class(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "api.py",
        "class IssuesAPI:\n"
        "    def get(self, ctx):\n"
        '        req = self.client.new_request("GET", "issues", None)\n'
        "        return req\n"
        "class IssuesService:\n"
        "    def get(self, ctx):\n"
        '        req = self.client.new_request("GET", "other", None)\n'
        "        return req\n",
    )
    config = AnalyzerConfig(service_suffix="API", client_class="Gateway")

    methods = scan_directory(tmp_path, config=config)

    assert [method.name for method in methods] == ["IssuesAPI.get"]


def test_overload_stubs_are_not_scanned(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "issues.py",
        "import typing\n"
        "from typing import overload\n"
        "\n"
        "class IssuesService:\n"
        "    @overload\n"
        "    def get(self, ctx, number: int): ...\n"
        "\n"
        "    @typing.overload\n"
        "    def get(self, ctx, number: str): ...\n"
        "\n"
        "    def get(self, ctx, number):\n"
        '        u = f"issues/{number}"\n'
        '        req = self.client.new_request("GET", u, None)\n'
        "        return self.client.do(ctx, req, None)\n",
    )

    inventory = build_inventory(tmp_path)

    assert inventory.names == ["IssuesService.get"]
    assert inventory.unresolved == ()
    assert inventory.methods[0].url_templates == ("issues/{number}",)


def test_redefined_method_is_a_structural_error(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "issues.py",
        "class IssuesService:\n"
        "    def get(self, ctx):\n"
        '        req = self.client.new_request("GET", "a", None)\n'
        "        return req\n"
        "\n"
        "    def get(self, ctx):\n"
        '        req = self.client.new_request("GET", "b", None)\n'
        "        return req\n",
    )

    with pytest.raises(ExtractionError) as excinfo:
        scan_directory(tmp_path)

    assert str(excinfo.value) == (
        "issues.py IssuesService.get: defined more than once (first in issues.py)"
    )


def test_same_identity_in_two_files_is_a_structural_error(tmp_path: Path) -> None:
    for name in ("a.py", "b.py"):
        _write(
            tmp_path,
            name,
            "class IssuesService:\n"
            "    def get(self, ctx):\n"
            '        req = self.client.new_request("GET", "issues", None)\n'
            "        return req\n",
        )

    with pytest.raises(ExtractionError, match=r"b.py IssuesService.get: .*first in a.py"):
        build_inventory(tmp_path)


def test_explicit_file_list_limits_the_scan(tmp_path: Path) -> None:
    source_dir = _sdk(tmp_path)

    methods = scan_directory(source_dir, files=["misc.py"])

    assert [method.name for method in methods] == ["Client.octocat"]
