"""Process-level observability hub for spanwatch.

Bundles the span recorder, the record store and the session event log
behind one explicitly constructed object. Create one per process (or per
test) and pass it to whatever needs to record or query.

Usage:
    from spanwatch import Observability

    obs = Observability.from_config(Config.load_or_default())

    span_id = obs.start_span("decompose", tags={"step": "plan"})
    ...
    obs.end_span(span_id, model="haiku", input_tokens=120, output_tokens=40)

    with obs.track("repo_map"):
        build_repo_map()

    report = obs.aggregate_traces(obs.session_spans())
    signals = obs.analyze_session()
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime

from spanwatch.config import Config
from spanwatch.health import HealthSignal, SessionHealthReport, Severity, analyze_session
from spanwatch.ids import Clock, IdGenerator, SystemClock
from spanwatch.session import SessionLog, SessionState
from spanwatch.traces.aggregator import TraceReport, aggregate
from spanwatch.traces.recorder import SpanRecorder
from spanwatch.traces.span import Span, SpanResult, SpanStatus
from spanwatch.traces.store import JsonlRecordStore, RecordSink

logger = logging.getLogger(__name__)

TOOL_SPAN_PREFIX = "tool:"


class Observability:
    """Span recording, history queries and session health in one place."""

    def __init__(
        self,
        store: RecordSink | None = None,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
        max_tool_calls: int | None = None,
    ):
        """Initialize the hub.

        Args:
            store: Record sink for finalized spans. None keeps spans in
                memory only and makes history queries return nothing.
            clock: Time source shared by every component.
            ids: Identifier source for spans and traces.
            max_tool_calls: Cap for the session tool-call log.
        """
        self.clock = clock or SystemClock()
        self.store = store
        self.recorder = SpanRecorder(sink=store, clock=self.clock, ids=ids)
        self.session = SessionLog(clock=self.clock, max_tool_calls=max_tool_calls)

    @classmethod
    def from_config(cls, config: Config, clock: Clock | None = None) -> Observability:
        """Create a hub persisting to the configured knowledge root."""
        return cls(
            store=JsonlRecordStore(config.traces.knowledge_root),
            clock=clock,
            max_tool_calls=config.session.max_tool_calls,
        )

    # Spans

    def start_span(
        self,
        name: str,
        trace_id: str | None = None,
        parent_span_id: str | None = None,
        tags: dict[str, str] | None = None,
    ) -> str:
        """Start a span and return its id."""
        return self.recorder.start(
            name, trace_id=trace_id, parent_span_id=parent_span_id, tags=tags
        )

    def end_span(self, span_id: str, result: SpanResult | None = None, **fields) -> Span | None:
        """End a span; None if the id is unknown or already ended."""
        return self.recorder.end(span_id, result, **fields)

    def session_spans(self) -> tuple[Span, ...]:
        """Spans finalized by this process, in completion order."""
        return self.recorder.session_spans()

    def spans_for_date(self, date: str) -> list[Span]:
        """Spans persisted for a YYYY-MM-DD UTC date."""
        if self.store is None:
            return []
        return self.store.read_date(date)

    @staticmethod
    def aggregate_traces(spans: Iterable[Span]) -> TraceReport:
        return aggregate(spans)

    # Session events

    def record_tool_call(self, tool: str, success: bool = True) -> None:
        self.session.record_tool_call(tool, success)

    def record_commit(self) -> None:
        self.session.record_commit()

    def session_state(self) -> SessionState:
        return self.session.snapshot()

    def analyze_session(self, now: datetime | None = None) -> list[HealthSignal]:
        """Evaluate session health at ``now`` (defaults to the clock)."""
        return analyze_session(self.session.snapshot(), now or self.clock.now())

    def health_report(self, now: datetime | None = None) -> SessionHealthReport:
        """Build a full health report and log a summary of it."""
        report = SessionHealthReport.build(self.session.snapshot(), now or self.clock.now())
        logger.info(
            f"Session health check: {report.overall} "
            f"(signals={[s.id for s in report.signals]}, "
            f"critical={report.count(Severity.CRITICAL)}, "
            f"warning={report.count(Severity.WARNING)})"
        )
        return report

    @contextmanager
    def track(self, tool: str, tags: dict[str, str] | None = None) -> Iterator[str]:
        """Time a tool invocation as a span and log it as a tool call.

        The span is named ``tool:<name>`` and tagged with the tool name. An
        exception raised inside the block ends the span with error status,
        records a failed call, and propagates.

        Yields:
            The span id, for use as a parent of nested spans.
        """
        span_tags = {"tool": tool}
        if tags:
            span_tags.update(tags)
        span_id = self.start_span(f"{TOOL_SPAN_PREFIX}{tool}", tags=span_tags)

        try:
            yield span_id
        except Exception as e:
            error = str(e) or type(e).__name__
            self.end_span(span_id, SpanResult(status=SpanStatus.ERROR, error=error))
            self.record_tool_call(tool, success=False)
            raise

        self.end_span(span_id, SpanResult(status=SpanStatus.OK))
        self.record_tool_call(tool, success=True)

    def reset(self) -> None:
        """Clear spans and start a fresh session. For test isolation only."""
        self.recorder.reset()
        self.session.reset()
