"""Span tracing, storage and aggregation for spanwatch.

Architecture:
    collaborator code
            | start()/end()
            v
    SpanRecorder (active table + session list)
            | finalized Span
            v
    RecordSink (JsonlRecordStore by default)
            |
            v
    <knowledge-root>/traces/trace-YYYY-MM-DD.jsonl
            |
            v (on-demand)
    aggregate() -> TraceReport
"""

from spanwatch.traces.span import Span, SpanResult, SpanStatus
from spanwatch.traces.store import JsonlRecordStore, RecordSink, is_valid_date
from spanwatch.traces.recorder import SpanRecorder
from spanwatch.traces.aggregator import (
    ModelStats,
    NameStats,
    TraceReport,
    aggregate,
)

__all__ = [
    # Records
    "Span",
    "SpanResult",
    "SpanStatus",
    # Storage
    "RecordSink",
    "JsonlRecordStore",
    "is_valid_date",
    # Recording
    "SpanRecorder",
    # Aggregation
    "TraceReport",
    "NameStats",
    "ModelStats",
    "aggregate",
]
