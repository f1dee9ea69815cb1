"""Trace aggregation for spanwatch.

Folds a collection of finalized spans into summary counts, rates and
per-operation / per-model groupings. The fold is pure and does not depend
on span order.

Usage:
    from spanwatch.traces import aggregator

    report = aggregator.aggregate(recorder.session_spans())
    slowest = report.operations_by_time()
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from typing import Any

from spanwatch.traces.span import Span


@dataclass
class NameStats:
    """Aggregated statistics for one operation name.

    Attributes:
        count: Number of spans with this name.
        total_ms: Sum of their durations.
        errors: Number of those spans with error status.
    """

    count: int = 0
    total_ms: int = 0
    errors: int = 0

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class ModelStats:
    """Aggregated token usage for one model.

    Attributes:
        count: Number of spans that reported this model.
        input_tokens: Sum of their input tokens.
        output_tokens: Sum of their output tokens.
    """

    count: int = 0
    input_tokens: int = 0
    output_tokens: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class TraceReport:
    """Summary of a collection of spans.

    Attributes:
        span_count: Number of spans.
        total_duration_ms: Sum of durations.
        total_input_tokens: Sum of input tokens (absent counts as 0).
        total_output_tokens: Sum of output tokens (absent counts as 0).
        total_cache_read_tokens: Sum of cache read tokens (absent counts as 0).
        error_rate: Fraction of spans with error status; 0 for no spans.
        cache_hit_rate: Fraction of spans with a cache hit; 0 for no spans.
        by_name: Per-operation statistics keyed by span name.
        by_model: Per-model statistics; spans without a model are left out.
    """

    span_count: int = 0
    total_duration_ms: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cache_read_tokens: int = 0
    error_rate: float = 0.0
    cache_hit_rate: float = 0.0
    by_name: dict[str, NameStats] = field(default_factory=dict)
    by_model: dict[str, ModelStats] = field(default_factory=dict)

    def operations_by_time(self) -> list[tuple[str, NameStats]]:
        """Get operations sorted by total time spent, largest first."""
        return sorted(self.by_name.items(), key=lambda item: item[1].total_ms, reverse=True)

    def models_by_count(self) -> list[tuple[str, ModelStats]]:
        """Get models sorted by span count, largest first."""
        return sorted(self.by_model.items(), key=lambda item: item[1].count, reverse=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "span_count": self.span_count,
            "total_duration_ms": self.total_duration_ms,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_cache_read_tokens": self.total_cache_read_tokens,
            "error_rate": self.error_rate,
            "cache_hit_rate": self.cache_hit_rate,
            "by_name": {k: v.to_dict() for k, v in self.by_name.items()},
            "by_model": {k: v.to_dict() for k, v in self.by_model.items()},
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=2)


def aggregate(spans: Iterable[Span]) -> TraceReport:
    """Aggregate spans into a TraceReport.

    Args:
        spans: Finalized spans, in any order.

    Returns:
        The report. Rates are 0 when there are no spans.
    """
    report = TraceReport()
    error_count = 0
    cache_hits = 0

    for span in spans:
        report.span_count += 1
        report.total_duration_ms += span.duration_ms
        report.total_input_tokens += span.input_tokens or 0
        report.total_output_tokens += span.output_tokens or 0
        report.total_cache_read_tokens += span.cache_read_tokens or 0

        if span.is_error:
            error_count += 1
        if span.cache_hit:
            cache_hits += 1

        name_stats = report.by_name.setdefault(span.name, NameStats())
        name_stats.count += 1
        name_stats.total_ms += span.duration_ms
        if span.is_error:
            name_stats.errors += 1

        if not span.model:
            continue
        model_stats = report.by_model.setdefault(span.model, ModelStats())
        model_stats.count += 1
        model_stats.input_tokens += span.input_tokens or 0
        model_stats.output_tokens += span.output_tokens or 0

    if report.span_count > 0:
        report.error_rate = error_count / report.span_count
        report.cache_hit_rate = cache_hits / report.span_count

    return report
