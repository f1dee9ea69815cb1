"""CLI entry point for spanwatch.

Usage:
    python -m spanwatch <command> [options]

Commands:
    traces show [--date YYYY-MM-DD] [--root PATH] [--json]
    traces dates [--root PATH]
    config validate
    config get KEY
"""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn

from spanwatch import __version__


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="spanwatch",
        description="Span tracing and session health for agent tooling",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # traces command
    traces_parser = subparsers.add_parser("traces", help="Persisted trace queries")
    traces_subparsers = traces_parser.add_subparsers(
        dest="traces_command", help="Traces subcommands"
    )

    # traces show
    traces_show_parser = traces_subparsers.add_parser(
        "show", help="Aggregate the spans recorded on one date"
    )
    traces_show_parser.add_argument(
        "--date",
        help="UTC date to report on, YYYY-MM-DD (default: today)",
    )
    traces_show_parser.add_argument(
        "--root",
        help="Knowledge root directory (default: from config)",
    )
    traces_show_parser.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Output the report as JSON",
    )

    # traces dates
    traces_dates_parser = traces_subparsers.add_parser(
        "dates", help="List dates that have trace files"
    )
    traces_dates_parser.add_argument(
        "--root",
        help="Knowledge root directory (default: from config)",
    )

    # config command
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(
        dest="config_command", help="Config subcommands"
    )
    config_subparsers.add_parser("validate", help="Validate configuration file")

    # config get
    get_parser = config_subparsers.add_parser("get", help="Get configuration value")
    get_parser.add_argument("key", help="Configuration key (e.g. traces.knowledge_root)")

    return parser


def cmd_config_get(args: argparse.Namespace) -> int:
    """Handle 'config get' command."""
    from spanwatch.config import Config

    try:
        config = Config.load_or_default()
        value = config.get_value(args.key)
        print(value)
        return 0
    except KeyError:
        print(f"Error: Config key not found: {args.key}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error reading config: {e}", file=sys.stderr)
        return 1


def cmd_config_validate(args: argparse.Namespace) -> int:
    """Handle 'config validate' command."""
    from spanwatch.config import Config

    try:
        config = Config.load()
        print(f"Configuration valid: {config.config_path}")
        print(f"  Version: {config.version}")
        print(f"  Knowledge root: {config.traces.knowledge_root}")
        max_calls = config.session.max_tool_calls
        print(f"  Max tool calls: {max_calls if max_calls is not None else 'unbounded'}")
        print(f"  Log level: {config.logging.level}")
        print(f"  Log file: {config.logging.file or 'stderr'}")
        return 0
    except FileNotFoundError as e:
        print(f"No configuration found: {e}", file=sys.stderr)
        return 0  # Missing config is not an error
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1


def main() -> NoReturn:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from spanwatch.config import Config
    from spanwatch.logs import setup_logging

    try:
        setup_logging(Config.load_or_default().logging)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        setup_logging()

    if args.command == "traces":
        if args.traces_command == "show":
            from spanwatch.traces.cli import cmd_traces_show

            sys.exit(cmd_traces_show(args))
        elif args.traces_command == "dates":
            from spanwatch.traces.cli import cmd_traces_dates

            sys.exit(cmd_traces_dates(args))
        else:
            parser.parse_args(["traces", "--help"])
            sys.exit(1)
    elif args.command == "config":
        if args.config_command == "validate":
            sys.exit(cmd_config_validate(args))
        elif args.config_command == "get":
            sys.exit(cmd_config_get(args))
        else:
            parser.parse_args(["config", "--help"])
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
