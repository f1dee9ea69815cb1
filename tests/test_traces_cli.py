"""Tests for the traces CLI commands."""

import argparse
import json
from datetime import datetime, timezone

import pytest

from spanwatch.__main__ import cmd_config_get, cmd_config_validate, create_parser
from spanwatch.config import KNOWLEDGE_DIR_ENV, LOG_LEVEL_ENV
from spanwatch.traces.aggregator import aggregate
from spanwatch.traces.cli import (
    cmd_traces_dates,
    cmd_traces_show,
    format_percent,
    format_seconds,
    format_trace_report,
)
from spanwatch.traces.span import Span, SpanStatus
from spanwatch.traces.store import JsonlRecordStore


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv(KNOWLEDGE_DIR_ENV, raising=False)
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)


def make_span(name: str, duration_ms: int, day: int = 24, **kwargs) -> Span:
    """Create a test span started on the given February 2026 day."""
    return Span(
        trace_id="t1",
        span_id=f"{name}-{duration_ms}",
        name=name,
        started_at=datetime(2026, 2, day, 8, 0, tzinfo=timezone.utc),
        duration_ms=duration_ms,
        **kwargs,
    )


@pytest.fixture
def populated_root(tmp_path):
    store = JsonlRecordStore(tmp_path)
    store.append(make_span("decompose", 100, model="haiku", input_tokens=100, output_tokens=20))
    store.append(make_span("decompose", 300, status=SpanStatus.ERROR, error="boom"))
    store.append(
        make_span("generate", 50, model="sonnet", cache_read_tokens=40, cache_hit=True)
    )
    store.append(make_span("generate", 10, day=25))
    return tmp_path


class TestFormatting:
    """Tests for report formatting helpers."""

    def test_format_percent(self):
        assert format_percent(0) == "0%"
        assert format_percent(1 / 3) == "33%"
        assert format_percent(1.0) == "100%"

    def test_format_seconds(self):
        assert format_seconds(0) == "0.0s"
        assert format_seconds(1400) == "1.4s"
        assert format_seconds(61000) == "61.0s"

    def test_empty_report(self):
        output = format_trace_report(aggregate([]), "2026-02-24")

        assert output.startswith("Trace Report (2026-02-24)")
        assert "Spans: 0 | Duration: 0.0s | Errors: 0%" in output
        assert "No trace data available for this scope." in output
        assert "By Operation:" not in output
        assert "By Model:" not in output

    def test_populated_report(self):
        report = aggregate(
            [
                make_span("decompose", 100, model="haiku", input_tokens=100, output_tokens=20),
                make_span("decompose", 300, status=SpanStatus.ERROR),
                make_span("generate", 100),
            ]
        )
        output = format_trace_report(report, "session")

        assert "Spans: 3 | Duration: 0.5s | Errors: 33%" in output
        assert "Tokens: 100 in / 20 out | Cache reads: 0 (0% hit rate)" in output
        assert "  decompose: 2x, avg 200ms (1 errors)" in output
        assert "  generate: 1x, avg 100ms" in output
        assert "  haiku: 1 calls, 100 in / 20 out" in output
        assert "No trace data" not in output

    def test_operations_sorted_by_total_time(self):
        report = aggregate([make_span("fast", 5), make_span("slow", 500)])
        output = format_trace_report(report, "x")
        assert output.index("slow:") < output.index("fast:")


class TestTracesShow:
    """Tests for the 'traces show' command."""

    def test_text_report(self, populated_root, capsys):
        args = argparse.Namespace(root=str(populated_root), date="2026-02-24", json_output=False)

        assert cmd_traces_show(args) == 0

        out = capsys.readouterr().out
        assert "Trace Report (2026-02-24)" in out
        assert "Spans: 3" in out
        assert "decompose: 2x" in out

    def test_json_report(self, populated_root, capsys):
        args = argparse.Namespace(root=str(populated_root), date="2026-02-24", json_output=True)

        assert cmd_traces_show(args) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["date"] == "2026-02-24"
        assert data["span_count"] == 3
        assert data["total_cache_read_tokens"] == 40
        assert data["by_name"]["decompose"]["errors"] == 1
        assert set(data["by_model"]) == {"haiku", "sonnet"}

    def test_other_date_is_separate(self, populated_root, capsys):
        args = argparse.Namespace(root=str(populated_root), date="2026-02-25", json_output=True)
        cmd_traces_show(args)
        assert json.loads(capsys.readouterr().out)["span_count"] == 1

    def test_date_without_file(self, tmp_path, capsys):
        args = argparse.Namespace(root=str(tmp_path), date="2020-01-01", json_output=False)

        assert cmd_traces_show(args) == 0
        assert "No trace data available" in capsys.readouterr().out

    def test_invalid_date(self, tmp_path, capsys):
        args = argparse.Namespace(root=str(tmp_path), date="../../etc", json_output=False)

        assert cmd_traces_show(args) == 1
        assert "Invalid date" in capsys.readouterr().err

    def test_root_from_environment(self, populated_root, monkeypatch, capsys):
        monkeypatch.setenv(KNOWLEDGE_DIR_ENV, str(populated_root))
        monkeypatch.chdir(populated_root)
        args = argparse.Namespace(root=None, date="2026-02-24", json_output=True)

        assert cmd_traces_show(args) == 0
        assert json.loads(capsys.readouterr().out)["span_count"] == 3


class TestTracesDates:
    """Tests for the 'traces dates' command."""

    def test_lists_dates(self, populated_root, capsys):
        assert cmd_traces_dates(argparse.Namespace(root=str(populated_root))) == 0
        assert capsys.readouterr().out.split() == ["2026-02-24", "2026-02-25"]

    def test_no_files(self, tmp_path, capsys):
        assert cmd_traces_dates(argparse.Namespace(root=str(tmp_path))) == 0
        assert "No trace files found" in capsys.readouterr().out


class TestParser:
    """Tests for argument parsing."""

    def test_traces_show_arguments(self):
        args = create_parser().parse_args(
            ["traces", "show", "--date", "2026-02-24", "--root", "kb", "--json"]
        )
        assert args.command == "traces"
        assert args.traces_command == "show"
        assert args.date == "2026-02-24"
        assert args.root == "kb"
        assert args.json_output is True

    def test_traces_show_defaults(self):
        args = create_parser().parse_args(["traces", "show"])
        assert args.date is None
        assert args.root is None
        assert args.json_output is False

    def test_traces_dates(self):
        args = create_parser().parse_args(["traces", "dates"])
        assert args.traces_command == "dates"

    def test_config_validate(self):
        args = create_parser().parse_args(["config", "validate"])
        assert args.command == "config"
        assert args.config_command == "validate"

    def test_config_get(self):
        args = create_parser().parse_args(["config", "get", "logging.level"])
        assert args.config_command == "get"
        assert args.key == "logging.level"


class TestConfigValidate:
    """Tests for the 'config validate' command."""

    def test_valid_config(self, tmp_path, monkeypatch, capsys):
        config_dir = tmp_path / ".spanwatch"
        config_dir.mkdir()
        (config_dir / "config.toml").write_text("[session]\nmax_tool_calls = 50\n")
        monkeypatch.chdir(tmp_path)

        assert cmd_config_validate(argparse.Namespace()) == 0

        out = capsys.readouterr().out
        assert "Configuration valid" in out
        assert "Max tool calls: 50" in out
        assert "Log file: stderr" in out

    def test_invalid_config(self, tmp_path, monkeypatch, capsys):
        config_dir = tmp_path / ".spanwatch"
        config_dir.mkdir()
        (config_dir / "config.toml").write_text('[logging]\nlevel = "nope"\n')
        monkeypatch.chdir(tmp_path)

        assert cmd_config_validate(argparse.Namespace()) == 1
        assert "Configuration error" in capsys.readouterr().err


class TestConfigGet:
    """Tests for the 'config get' command."""

    def test_prints_value(self, tmp_path, monkeypatch, capsys):
        config_dir = tmp_path / ".spanwatch"
        config_dir.mkdir()
        (config_dir / "config.toml").write_text("[session]\nmax_tool_calls = 50\n")
        monkeypatch.chdir(tmp_path)

        assert cmd_config_get(argparse.Namespace(key="session.max_tool_calls")) == 0
        assert capsys.readouterr().out.strip() == "50"

    def test_unknown_key(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)

        assert cmd_config_get(argparse.Namespace(key="traces.nonexistent")) == 1
        assert "Config key not found: traces.nonexistent" in capsys.readouterr().err
