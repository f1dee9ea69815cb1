"""Span lifecycle tracking for spanwatch.

The recorder owns the table of in-flight spans. Ending a span removes it
from the table exactly once, freezes it into a Span, appends it to the
session list and hands it to the record sink.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime

from spanwatch.ids import Clock, IdGenerator, SequentialIdGenerator, SystemClock
from spanwatch.traces.span import Span, SpanResult, SpanStatus
from spanwatch.traces.store import RecordSink

logger = logging.getLogger(__name__)


@dataclass
class _ActiveSpan:
    """A started span that has not been ended yet."""

    trace_id: str
    span_id: str
    name: str
    started_at: datetime
    parent_span_id: str | None = None
    tags: dict[str, str] | None = None


class SpanRecorder:
    """Tracks active spans and records finalized ones.

    Safe to use from several threads: the active table and the session list
    share one lock, and the sink is called outside of it.
    """

    def __init__(
        self,
        sink: RecordSink | None = None,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
    ):
        """Initialize the recorder.

        Args:
            sink: Where finalized spans are persisted. None keeps spans in
                memory only.
            clock: Time source. Defaults to SystemClock.
            ids: Identifier source. Defaults to a SequentialIdGenerator on
                the same clock.
        """
        self.sink = sink
        self.clock = clock or SystemClock()
        self.ids = ids or SequentialIdGenerator(self.clock)
        self._active: dict[str, _ActiveSpan] = {}
        self._session: list[Span] = []
        self._lock = threading.Lock()

    def start(
        self,
        name: str,
        trace_id: str | None = None,
        parent_span_id: str | None = None,
        tags: dict[str, str] | None = None,
    ) -> str:
        """Start a span.

        Args:
            name: Operation label.
            trace_id: Trace to join. A fresh trace is started when omitted.
            parent_span_id: Enclosing span, if any.
            tags: String tags, copied and fixed for the span's lifetime.

        Returns:
            The new span id, to be passed to end().
        """
        span_id = self.ids.next_id()
        active = _ActiveSpan(
            trace_id=trace_id if trace_id is not None else self.ids.next_id(),
            span_id=span_id,
            name=name,
            started_at=self.clock.now(),
            parent_span_id=parent_span_id,
            tags=dict(tags) if tags is not None else None,
        )

        with self._lock:
            self._active[span_id] = active

        return span_id

    def end(
        self,
        span_id: str,
        result: SpanResult | None = None,
        **fields,
    ) -> Span | None:
        """End a span and record it.

        Outcome metrics may be given as a SpanResult or as keyword
        arguments with the same names (status may be a SpanStatus or its
        string value).

        Args:
            span_id: Id returned by start().
            result: Outcome metrics.

        Returns:
            The finalized span, or None if the id is unknown or was already
            ended.
        """
        if result is None:
            result = SpanResult(**fields)
        elif fields:
            raise TypeError("Pass either a SpanResult or keyword fields, not both")

        with self._lock:
            active = self._active.pop(span_id, None)
            if active is None:
                logger.warning(f"Attempted to end unknown span {span_id!r}")
                return None

            ended_at = self.clock.now()
            elapsed_ms = int((ended_at - active.started_at).total_seconds() * 1000)
            status = result.status or SpanStatus.OK

            span = Span(
                trace_id=active.trace_id,
                span_id=active.span_id,
                parent_span_id=active.parent_span_id,
                name=active.name,
                started_at=active.started_at,
                duration_ms=max(0, elapsed_ms),
                status=status,
                error=result.error if status is SpanStatus.ERROR else None,
                model=result.model,
                input_tokens=result.input_tokens,
                output_tokens=result.output_tokens,
                cache_read_tokens=result.cache_read_tokens,
                cache_write_tokens=result.cache_write_tokens,
                cache_hit=(result.cache_read_tokens or 0) > 0,
                tags=active.tags,
            )
            self._session.append(span)

        if self.sink is not None:
            try:
                self.sink.append(span)
            except Exception as e:
                logger.warning(f"Failed to persist trace span {span.span_id}: {e}")

        return span

    def session_spans(self) -> tuple[Span, ...]:
        """Return the spans finalized in this process, in completion order."""
        with self._lock:
            return tuple(self._session)

    def active_count(self) -> int:
        """Return the number of spans started but not yet ended."""
        with self._lock:
            return len(self._active)

    def reset(self) -> None:
        """Forget all active and finalized spans and restart the id sequence.

        For test isolation only.
        """
        with self._lock:
            self._active.clear()
            self._session.clear()
        self.ids.reset()
