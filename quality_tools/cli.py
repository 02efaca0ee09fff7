"""quality-tools-config - inspect how a project's configuration is resolved.

This module provides read-only commands for:
- Showing the effective configuration (optionally with value sources)
- Validating every configuration file and the merged result
- Listing discovered configuration sources
- Explaining where a single value came from

Example:
    # Effective configuration as YAML
    quality-tools-config show --project-root .

    # What phpstan will run with, as JSON with sources
    quality-tools-config show --tool phpstan --format json --with-sources

    # Why is rector disabled?
    quality-tools-config explain tools.rector.enabled
"""

import argparse
import json
import logging
import sys
from typing import Any

import yaml

from quality_tools.config.loader import (
    build_overrides,
    describe_sources,
    discovery_errors,
    resolve,
    resolve_for_tool,
)
from quality_tools.config.merger import ROOT_KEY
from quality_tools.config.resolved import ResolvedConfiguration
from quality_tools.framework.errors import (
    ErrorSeverity,
    QualityToolsError,
    to_quality_tools_error,
)
from quality_tools.observability.logging import configure_logging

logger = logging.getLogger(__name__)

_SEVERITY_LABELS = {
    ErrorSeverity.FATAL: "Error",
    ErrorSeverity.USER_ERROR: "Configuration error",
    ErrorSeverity.SECURITY: "Security error",
}


def _render(payload: Any, fmt: str) -> str:
    if fmt == "json":
        return json.dumps(payload, indent=2, default=str)
    return yaml.safe_dump(payload, sort_keys=False, default_flow_style=False, allow_unicode=True)


def _resolve_from_args(args: argparse.Namespace) -> ResolvedConfiguration:
    overrides = build_overrides(args.set or [])
    if args.tool:
        return resolve_for_tool(args.project_root, args.tool, overrides)
    return resolve(args.project_root, overrides)


def _report_error(error: QualityToolsError, fmt: str) -> None:
    """Print an error to stderr, as structured details when JSON output was requested."""
    if fmt == "json":
        print(json.dumps({"error": error.to_details().to_dict()}, indent=2), file=sys.stderr)
        return
    print(f"{_SEVERITY_LABELS[error.severity]}: {error.message}", file=sys.stderr)


# =============================================================================
# Commands
# =============================================================================


def config_show(args: argparse.Namespace) -> int:
    """Print the effective configuration.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        config = _resolve_from_args(args)
    except QualityToolsError as e:
        _report_error(e, args.format)
        return 1

    payload: dict[str, Any] = config.with_sources() if args.with_sources else config.data
    if args.tool:
        payload = {
            "tool": args.tool,
            "resolved": config.tool_config_resolved(args.tool),
            "configuration": payload,
        }
    if args.with_sources:
        payload = {
            **payload,
            "sources": config.merge_summary.get("sources", []),
            "conflicts": [conflict.to_dict() for conflict in config.conflicts],
        }

    print(_render(payload, args.format))
    return 0


def config_validate(args: argparse.Namespace) -> int:
    """Validate configuration files and the merged result.

    Returns:
        Exit code (0 when every file loaded and the merged result is valid, 1 otherwise)
    """
    errors = discovery_errors(args.project_root, tool=args.tool)
    for path, message in errors.items():
        print(f"{path}: {message}", file=sys.stderr)

    try:
        config = _resolve_from_args(args)
    except QualityToolsError as e:
        _report_error(e, args.format)
        return 1

    if errors:
        print(f"Configuration resolved, but {len(errors)} file(s) were skipped", file=sys.stderr)
        return 1

    summary = config.merge_summary
    print(
        f"Configuration is valid ({summary.get('total_sources', 0)} sources, "
        f"{summary.get('total_conflicts', 0)} overrides)"
    )
    return 0


def config_sources(args: argparse.Namespace) -> int:
    """List discovered configuration sources, highest priority first."""
    sources = describe_sources(args.project_root)
    print(_render({"project_root": str(args.project_root), "sources": sources}, args.format))
    return 0


def config_explain(args: argparse.Namespace) -> int:
    """Show which source supplied a value and what it replaced."""
    key_path = args.key if args.key.startswith(f"{ROOT_KEY}.") else f"{ROOT_KEY}.{args.key}"

    try:
        config = _resolve_from_args(args)
    except QualityToolsError as e:
        _report_error(e, args.format)
        return 1

    chain = config.full_chain(key_path)
    if not chain:
        print(f"Error: No value found for '{key_path}'", file=sys.stderr)
        return 1

    payload = {
        "key": key_path,
        "value": config.get(key_path),
        "source": config.source_of(key_path),
        "overridden": config.was_overridden(key_path),
        "chain": chain,
    }
    print(_render(payload, args.format))
    return 0


# =============================================================================
# Main CLI
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser
    """
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--project-root", "-p", default=".", help="Project directory (default: current directory)"
    )
    common.add_argument(
        "--format",
        "-f",
        choices=["yaml", "json"],
        default="yaml",
        help="Output format (default: yaml)",
    )

    resolving = argparse.ArgumentParser(add_help=False)
    resolving.add_argument(
        "--set",
        action="append",
        metavar="KEY=VALUE",
        help="Command-line override, e.g. tools.phpstan.level=8 (can be used multiple times)",
    )
    resolving.add_argument("--tool", "-t", help="Resolve the configuration one tool runs with")

    parser = argparse.ArgumentParser(
        prog="quality-tools-config",
        description="Inspect quality-tools configuration resolution",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  quality-tools-config show
  quality-tools-config show --tool rector --with-sources
  quality-tools-config validate --project-root /path/to/project
  quality-tools-config sources --format json
  quality-tools-config explain tools.phpstan.level --set tools.phpstan.level=8
        """,
    )
    parser.add_argument(
        "--verbose", "-v", action="count", default=0, help="Increase log output (-vv for debug)"
    )
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    show_parser = subparsers.add_parser(
        "show", parents=[common, resolving], help="Show the effective configuration"
    )
    show_parser.add_argument(
        "--with-sources", action="store_true", help="Annotate every value with its source"
    )
    show_parser.set_defaults(func=config_show)

    validate_parser = subparsers.add_parser(
        "validate", parents=[common, resolving], help="Validate configuration files"
    )
    validate_parser.set_defaults(func=config_validate)

    sources_parser = subparsers.add_parser(
        "sources", parents=[common], help="List discovered configuration sources"
    )
    sources_parser.set_defaults(func=config_sources)

    explain_parser = subparsers.add_parser(
        "explain", parents=[common, resolving], help="Explain where a value came from"
    )
    explain_parser.add_argument("key", help="Key path, e.g. tools.rector.enabled")
    explain_parser.set_defaults(func=config_explain)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose, json_output=args.log_json)

    # If no command provided, show help
    if not args.command:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except Exception as e:
        error = to_quality_tools_error(e)
        logger.exception("Command %s failed", args.command)
        _report_error(error, args.format)
        return 1


if __name__ == "__main__":
    sys.exit(main())
