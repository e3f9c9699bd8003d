"""Command-line interface router for apimeta."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from apimeta.config import (
    ConfigLoadError,
    ConfigValidationError,
    dump_effective_config,
    load_config,
)
from apimeta.errors import OpenAPICommitMismatchError
from apimeta.extraction import AnalyzerConfig, Inventory, build_inventory
from apimeta.metadata import (
    Metadata,
    NormalizationCache,
    canonicalize,
    load_metadata,
    save_metadata,
    update_from_remote,
    validate_metadata,
    validate_openapi_commit,
)
from apimeta.observability import LoggingConfig, setup_logging, shutdown_logging
from apimeta.remote import GitHubContentsClient

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="apimeta",
        description=(
            "apimeta — audit SDK service methods against REST operation metadata.\n\n"
            "Common workflows:\n"
            "  apimeta validate            Cross-check SDK methods and metadata.yaml\n"
            "  apimeta canonize            Rewrite mappings to canonical operation names\n"
            "  apimeta update-openapi      Refresh openapi_operations from upstream\n"
            "  apimeta endpoints --json    Dump the extracted endpoint inventory\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--repo-root",
        default=".",
        help="Repository root directory (default: current working directory).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to apimeta TOML config (default: <repo-root>/apimeta.toml if present).",
    )
    common.add_argument(
        "--metadata",
        dest="metadata_file",
        default=None,
        help="Metadata YAML file (default: paths.metadata_file).",
    )
    common.add_argument(
        "--source-dir",
        dest="source_dir",
        default=None,
        help="SDK package directory to scan (default: paths.source_dir).",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Log debug output to stderr.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # validate ------------------------------------------------------------
    validate_parser = subparsers.add_parser(
        "validate",
        parents=[common],
        help="Report discrepancies between SDK methods and metadata",
        description=(
            "Scan the SDK, resolve helper calls and cross-check the method mapping and\n"
            "operation layers of metadata.yaml. Exits 1 when issues are found.\n\n"
            "Examples:\n"
            "  apimeta validate\n"
            "  apimeta validate --check-openapi-commit\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    validate_parser.add_argument(
        "--check-openapi-commit",
        action="store_true",
        default=False,
        help="Also verify openapi_operations against openapi_commit (network access).",
    )
    validate_parser.set_defaults(handler=_cmd_validate)

    # canonize ------------------------------------------------------------
    canonize_parser = subparsers.add_parser(
        "canonize",
        parents=[common],
        help="Rewrite method operations to their canonical names",
    )
    canonize_parser.set_defaults(handler=_cmd_canonize)

    # update-openapi ------------------------------------------------------
    update_parser = subparsers.add_parser(
        "update-openapi",
        parents=[common],
        help="Rebuild openapi_operations from the upstream REST descriptions",
    )
    update_parser.add_argument(
        "--ref",
        default=None,
        help="Git ref of the description repository (default: remote.ref).",
    )
    update_parser.set_defaults(handler=_cmd_update_openapi)

    # format --------------------------------------------------------------
    format_parser = subparsers.add_parser(
        "format",
        parents=[common],
        help="Rewrite metadata.yaml in canonical order",
    )
    format_parser.set_defaults(handler=_cmd_format)

    # endpoints -----------------------------------------------------------
    endpoints_parser = subparsers.add_parser(
        "endpoints",
        parents=[common],
        help="Print the extracted endpoint inventory",
    )
    endpoints_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    endpoints_parser.set_defaults(handler=_cmd_endpoints)

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
        config = _load_effective_config(namespace)
        setup_logging(
            LoggingConfig.from_mapping(config.get("observability", {}), verbose=namespace.verbose)
        )
        logger.debug(
            "command_started",
            command=namespace.command,
            config=dump_effective_config(config),
        )
        result = handler(namespace, config)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    finally:
        shutdown_logging()
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_validate(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    metadata_path = _metadata_path(config)
    inventory = _scan(config)
    metadata = load_metadata(metadata_path)

    issues = validate_metadata(inventory.exported, metadata, cache=NormalizationCache())
    if args.check_openapi_commit:
        try:
            with _open_contents_client(config) as client:
                validate_openapi_commit(
                    metadata,
                    client,
                    descriptions_dir=config["remote"]["descriptions_dir"],
                    max_workers=config["analysis"]["max_workers"],
                )
        except OpenAPICommitMismatchError as exc:
            issues.append(str(exc))

    if not issues:
        return 0
    for issue in issues:
        print(issue, file=sys.stderr)
    print(f"found {len(issues)} issues in {metadata_path}", file=sys.stderr)
    return 1


def _cmd_canonize(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    metadata_path = _metadata_path(config)
    metadata = load_metadata(metadata_path)
    renames = canonicalize(metadata, cache=NormalizationCache())
    save_metadata(metadata_path, metadata)
    for rename in renames:
        print(rename.describe())
    return 0


def _cmd_update_openapi(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    metadata_path = _metadata_path(config)
    metadata = load_metadata(metadata_path)
    remote = config["remote"]
    with _open_contents_client(config) as client:
        update_from_remote(
            metadata,
            client,
            ref=args.ref or remote["ref"],
            descriptions_dir=remote["descriptions_dir"],
            max_workers=config["analysis"]["max_workers"],
        )
    save_metadata(metadata_path, metadata)
    return 0


def _cmd_format(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    metadata_path = _metadata_path(config)
    metadata: Metadata = load_metadata(metadata_path)
    save_metadata(metadata_path, metadata)
    return 0


def _cmd_endpoints(args: argparse.Namespace, config: Mapping[str, Any]) -> int:
    inventory = _scan(config)
    unresolved = inventory.unresolved

    if args.json:
        _emit_json(
            {
                "command": "endpoints",
                "source_dir": inventory.source_dir.as_posix(),
                "methods": [method.to_dict() for method in inventory.exported],
                "unresolved": [method.name for method in unresolved],
            }
        )
    else:
        for method in inventory.exported:
            helper = "" if method.helper_reference is None else method.helper_reference.name
            print("\t".join((method.name, method.http_method or "-", method.url or "-", helper)))

    for method in unresolved:
        print(
            f"error: {method.source_file}: {method.name}: no HTTP method or URL found",
            file=sys.stderr,
        )
    return 3 if unresolved else 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _repo_root(args: argparse.Namespace) -> Path:
    candidate = Path(args.repo_root).expanduser().resolve()
    if not candidate.is_dir():
        raise CLIError(f"repo root is not a directory: {candidate}", exit_code=2)
    return candidate


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    repo_root = _repo_root(args)
    overrides: dict[str, object] = {}
    if args.metadata_file:
        overrides["paths.metadata_file"] = _resolve_optional_path(args.metadata_file, repo_root)
    if args.source_dir:
        overrides["paths.source_dir"] = _resolve_optional_path(args.source_dir, repo_root)

    config_path = args.config_path
    if config_path is not None:
        config_path = _resolve_optional_path(config_path, repo_root)

    try:
        return load_config(config_path, base_dir=repo_root, cli_overrides=overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _resolve_optional_path(path_arg: str, repo_root: Path) -> str:
    candidate = Path(path_arg).expanduser()
    resolved = candidate if candidate.is_absolute() else repo_root / candidate
    return resolved.resolve().as_posix()


def _metadata_path(config: Mapping[str, Any]) -> Path:
    return Path(config["paths"]["metadata_file"])


def _scan(config: Mapping[str, Any]) -> Inventory:
    source_dir = Path(config["paths"]["source_dir"])
    if not source_dir.is_dir():
        raise CLIError(f"source directory not found: {source_dir}", exit_code=2)
    analysis = config["analysis"]
    try:
        analyzer_config = AnalyzerConfig.from_mapping(analysis)
    except ValueError as exc:
        raise CLIError(f"invalid analysis config: {exc}", exit_code=2) from exc
    return build_inventory(source_dir, config=analyzer_config, max_workers=analysis["max_workers"])


def _open_contents_client(config: Mapping[str, Any]) -> GitHubContentsClient:
    return GitHubContentsClient.from_config(config["remote"])


__all__ = ["CLIError", "build_parser", "run_cli"]
