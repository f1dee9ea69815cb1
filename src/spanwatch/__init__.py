"""Spanwatch - In-process observability for agent tooling.

Spanwatch records timed units of work as spans, persists them to
date-partitioned JSONL files, aggregates them into trace reports, and
analyzes the session's tool-call log for unhealthy working patterns.
"""

__version__ = "0.1.0"

from spanwatch.config import Config
from spanwatch.health import HealthSignal, SessionHealthReport, Severity, analyze_session
from spanwatch.observability import Observability
from spanwatch.session import SessionLog, SessionState, ToolCallEvent
from spanwatch.traces import (
    JsonlRecordStore,
    RecordSink,
    Span,
    SpanRecorder,
    SpanResult,
    SpanStatus,
    TraceReport,
    aggregate,
)

aggregate_traces = aggregate

__all__ = [
    "Config",
    "Observability",
    "Span",
    "SpanResult",
    "SpanStatus",
    "SpanRecorder",
    "RecordSink",
    "JsonlRecordStore",
    "TraceReport",
    "aggregate",
    "aggregate_traces",
    "SessionLog",
    "SessionState",
    "ToolCallEvent",
    "HealthSignal",
    "SessionHealthReport",
    "Severity",
    "analyze_session",
]
