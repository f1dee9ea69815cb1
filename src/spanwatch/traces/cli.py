"""CLI commands for trace queries.

This module provides the command handlers for the traces subcommands:
- show: Aggregate the spans persisted for one date and print a report
- dates: List the dates that have persisted spans
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from spanwatch.traces.aggregator import TraceReport

if TYPE_CHECKING:
    import argparse


def format_percent(rate: float) -> str:
    """Format a rate as a whole percentage."""
    return f"{rate * 100:.0f}%"


def format_seconds(ms: int) -> str:
    """Format milliseconds as seconds with one decimal."""
    return f"{ms / 1000:.1f}s"


def format_trace_report(report: TraceReport, scope: str) -> str:
    """Format a trace report for display.

    Args:
        report: The aggregated report.
        scope: Label for what was aggregated (e.g. a date).

    Returns:
        Multi-line report text.
    """
    lines = [
        f"Trace Report ({scope})",
        f"Spans: {report.span_count} | Duration: {format_seconds(report.total_duration_ms)}"
        f" | Errors: {format_percent(report.error_rate)}",
        f"Tokens: {report.total_input_tokens} in / {report.total_output_tokens} out"
        f" | Cache reads: {report.total_cache_read_tokens}"
        f" ({format_percent(report.cache_hit_rate)} hit rate)",
        "",
    ]

    operations = report.operations_by_time()
    if operations:
        lines.append("By Operation:")
        for name, stats in operations:
            suffix = f" ({stats.errors} errors)" if stats.errors > 0 else ""
            lines.append(f"  {name}: {stats.count}x, avg {stats.avg_ms:.0f}ms{suffix}")
        lines.append("")

    models = report.models_by_count()
    if models:
        lines.append("By Model:")
        for model, stats in models:
            lines.append(
                f"  {model}: {stats.count} calls, "
                f"{stats.input_tokens} in / {stats.output_tokens} out"
            )
        lines.append("")

    if report.span_count == 0:
        lines.append("No trace data available for this scope.")

    return "\n".join(lines)


def _open_store(args: argparse.Namespace):
    from spanwatch.config import Config
    from spanwatch.traces.store import JsonlRecordStore

    root = getattr(args, "root", None)
    if root:
        return JsonlRecordStore(Path(root))

    config = Config.load_or_default()
    return JsonlRecordStore(config.traces.knowledge_root)


def cmd_traces_show(args: argparse.Namespace) -> int:
    """Handle 'traces show' command - aggregate one date."""
    from spanwatch.traces.aggregator import aggregate
    from spanwatch.traces.store import is_valid_date

    date = getattr(args, "date", None) or datetime.now(timezone.utc).strftime("%Y-%m-%d")
    if not is_valid_date(date):
        print(f"Invalid date '{date}': expected YYYY-MM-DD", file=sys.stderr)
        return 1

    try:
        store = _open_store(args)
    except (ValueError, OSError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    report = aggregate(store.read_date(date))

    if getattr(args, "json_output", False):
        print(json.dumps({"date": date, **report.to_dict()}, indent=2))
    else:
        print(format_trace_report(report, date))

    return 0


def cmd_traces_dates(args: argparse.Namespace) -> int:
    """Handle 'traces dates' command - list dates with trace files."""
    try:
        store = _open_store(args)
    except (ValueError, OSError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    dates = store.available_dates()
    if not dates:
        print(f"No trace files found under {store.traces_dir}")
        return 0

    for date in dates:
        print(date)
    return 0
