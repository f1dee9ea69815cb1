"""Tests for trace aggregation."""

from __future__ import annotations

import json
import math
from datetime import datetime, timezone

import pytest

from spanwatch.traces.aggregator import ModelStats, NameStats, TraceReport, aggregate
from spanwatch.traces.recorder import SpanRecorder
from spanwatch.traces.span import Span, SpanResult, SpanStatus


def make_span(
    name: str = "op",
    duration_ms: int = 100,
    status: SpanStatus = SpanStatus.OK,
    model: str | None = None,
    input_tokens: int | None = None,
    output_tokens: int | None = None,
    cache_read_tokens: int | None = None,
) -> Span:
    """Create a test span."""
    return Span(
        trace_id="t1",
        span_id=f"{name}-{duration_ms}",
        name=name,
        started_at=datetime(2026, 2, 24, 8, 0, tzinfo=timezone.utc),
        duration_ms=duration_ms,
        status=status,
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_read_tokens=cache_read_tokens,
        cache_hit=(cache_read_tokens or 0) > 0,
    )


class TestEmpty:
    """Tests for aggregating nothing."""

    def test_empty_spans(self):
        report = aggregate([])

        assert report.span_count == 0
        assert report.total_duration_ms == 0
        assert report.total_input_tokens == 0
        assert report.total_output_tokens == 0
        assert report.total_cache_read_tokens == 0
        assert report.error_rate == 0
        assert report.cache_hit_rate == 0
        assert not math.isnan(report.error_rate)
        assert not math.isnan(report.cache_hit_rate)
        assert report.by_name == {}
        assert report.by_model == {}

    def test_accepts_generators(self):
        report = aggregate(make_span(duration_ms=d) for d in (10, 20))
        assert report.span_count == 2
        assert report.total_duration_ms == 30


class TestTotals:
    """Tests for sums and rates."""

    def test_computes_correct_totals(self, clock):
        recorder = SpanRecorder(clock=clock)
        first = recorder.start("op1")
        second = recorder.start("op2")
        recorder.end(
            first,
            SpanResult(status=SpanStatus.OK, input_tokens=100, output_tokens=50, cache_read_tokens=80),
        )
        recorder.end(
            second, SpanResult(status=SpanStatus.ERROR, input_tokens=200, output_tokens=100)
        )

        report = aggregate(recorder.session_spans())

        assert report.span_count == 2
        assert report.total_input_tokens == 300
        assert report.total_output_tokens == 150
        assert report.total_cache_read_tokens == 80
        assert report.error_rate == 0.5
        assert report.cache_hit_rate == 0.5

    def test_absent_tokens_count_as_zero(self):
        report = aggregate([make_span(), make_span(name="b", input_tokens=7)])
        assert report.total_input_tokens == 7
        assert report.total_output_tokens == 0

    def test_order_independent(self):
        spans = [
            make_span("a", 10, model="haiku", input_tokens=1),
            make_span("b", 20, status=SpanStatus.ERROR),
            make_span("a", 30, cache_read_tokens=5),
        ]
        assert aggregate(spans) == aggregate(list(reversed(spans)))


class TestGroupings:
    """Tests for by_name and by_model."""

    def test_groups_by_operation_name(self):
        report = aggregate(
            [
                make_span("decompose", 100),
                make_span("decompose", 300, status=SpanStatus.ERROR),
                make_span("generate", 50),
            ]
        )

        assert report.by_name["decompose"] == NameStats(count=2, total_ms=400, errors=1)
        assert report.by_name["generate"] == NameStats(count=1, total_ms=50, errors=0)
        assert report.by_name["decompose"].avg_ms == 200

    def test_groups_by_model(self):
        report = aggregate(
            [
                make_span("op1", model="haiku", input_tokens=100, output_tokens=50),
                make_span("op2", model="sonnet", input_tokens=200, output_tokens=100),
                make_span("op3", model="haiku", input_tokens=10),
            ]
        )

        assert report.by_model["haiku"] == ModelStats(count=2, input_tokens=110, output_tokens=50)
        assert report.by_model["sonnet"] == ModelStats(count=1, input_tokens=200, output_tokens=100)

    def test_excludes_spans_without_model(self):
        report = aggregate([make_span("no-model"), make_span("empty", model="")])
        assert report.by_model == {}
        assert report.span_count == 2


class TestReportAccessors:
    """Tests for TraceReport helpers."""

    def test_operations_by_time(self):
        report = aggregate([make_span("fast", 10), make_span("slow", 900), make_span("mid", 100)])
        assert [name for name, _ in report.operations_by_time()] == ["slow", "mid", "fast"]

    def test_models_by_count(self):
        report = aggregate(
            [make_span("a", 1, model="haiku"), make_span("b", 2, model="opus"), make_span("c", 3, model="opus")]
        )
        assert [model for model, _ in report.models_by_count()] == ["opus", "haiku"]

    def test_avg_ms_of_empty_stats(self):
        assert NameStats().avg_ms == 0.0

    def test_to_json(self):
        report = aggregate([make_span("op", model="haiku", input_tokens=3)])
        data = json.loads(report.to_json())

        assert data["span_count"] == 1
        assert data["by_name"]["op"] == {"count": 1, "total_ms": 100, "errors": 0}
        assert data["by_model"]["haiku"] == {"count": 1, "input_tokens": 3, "output_tokens": 0}

    def test_default_report(self):
        assert TraceReport().to_dict()["error_rate"] == 0.0
