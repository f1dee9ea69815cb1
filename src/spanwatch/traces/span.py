"""Span records for spanwatch.

A span is one finalized, timed unit of work with its outcome metrics.
Spans are frozen once built; the recorder keeps the mutable pre-finalization
state to itself.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

from spanwatch.ids import format_timestamp, parse_timestamp


class SpanStatus(Enum):
    """Outcome of a finalized span."""

    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class SpanResult:
    """Outcome metrics supplied when a span is ended.

    Every field is optional. Absent token counts are omitted from the
    persisted record and count as zero in aggregation.

    Attributes:
        status: Outcome of the work, as a SpanStatus or its string value.
            Defaults to ok at finalization.
        error: Error message. Only kept when status is error.
        model: Model name that served the work, if any.
        input_tokens: Prompt tokens consumed.
        output_tokens: Completion tokens produced.
        cache_read_tokens: Tokens served from the prompt cache.
        cache_write_tokens: Tokens written to the prompt cache.
    """

    status: SpanStatus | str | None = None
    error: str | None = None
    model: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    cache_read_tokens: int | None = None
    cache_write_tokens: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.status, str):
            object.__setattr__(self, "status", SpanStatus(self.status))


@dataclass(frozen=True)
class Span:
    """A finalized span.

    Attributes:
        trace_id: Correlates a group of related spans.
        span_id: Unique within the process lifetime.
        name: Operation label.
        started_at: When the span was started (aware UTC datetime).
        duration_ms: Whole milliseconds between start and end, never negative.
        status: ok or error.
        parent_span_id: Enclosing span, informational only.
        error: Error message, only present when status is error.
        model: Model name reported at finalization.
        input_tokens: Prompt tokens reported at finalization.
        output_tokens: Completion tokens reported at finalization.
        cache_read_tokens: Cache read tokens reported at finalization.
        cache_write_tokens: Cache write tokens reported at finalization.
        cache_hit: True iff cache_read_tokens > 0.
        tags: String tags given when the span was started, read-only.
    """

    trace_id: str
    span_id: str
    name: str
    started_at: datetime
    duration_ms: int
    status: SpanStatus = SpanStatus.OK
    parent_span_id: str | None = None
    error: str | None = None
    model: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    cache_read_tokens: int | None = None
    cache_write_tokens: int | None = None
    cache_hit: bool = False
    tags: Mapping[str, str] | None = field(default=None)

    def __post_init__(self) -> None:
        if isinstance(self.status, str):
            object.__setattr__(self, "status", SpanStatus(self.status))
        # Tags are read-only once the span is built
        if self.tags is not None and not isinstance(self.tags, MappingProxyType):
            object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    @property
    def is_error(self) -> bool:
        return self.status is SpanStatus.ERROR

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary, omitting absent fields."""
        data: dict[str, Any] = {
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
            "name": self.name,
            "started_at": format_timestamp(self.started_at),
            "duration_ms": self.duration_ms,
            "status": self.status.value,
            "error": self.error,
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_read_tokens": self.cache_read_tokens,
            "cache_write_tokens": self.cache_write_tokens,
            "cache_hit": self.cache_hit,
            "tags": dict(self.tags) if self.tags is not None else None,
        }
        return {k: v for k, v in data.items() if v is not None}

    def to_json(self) -> str:
        """Serialize to a single JSON line (no trailing newline)."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Span:
        """Create a Span from a persisted dictionary.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If the status or timestamp cannot be parsed.
            TypeError: If data is not a mapping or a field has the wrong type.
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected a JSON object, got {type(data).__name__}")

        cache_read = data.get("cache_read_tokens")
        cache_hit = data.get("cache_hit")
        if cache_hit is None:
            cache_hit = (cache_read or 0) > 0

        tags = data.get("tags")

        return cls(
            trace_id=data["trace_id"],
            span_id=data["span_id"],
            parent_span_id=data.get("parent_span_id"),
            name=data["name"],
            started_at=parse_timestamp(data["started_at"]),
            duration_ms=int(data["duration_ms"]),
            status=SpanStatus(data["status"]),
            error=data.get("error"),
            model=data.get("model"),
            input_tokens=data.get("input_tokens"),
            output_tokens=data.get("output_tokens"),
            cache_read_tokens=cache_read,
            cache_write_tokens=data.get("cache_write_tokens"),
            cache_hit=bool(cache_hit),
            tags=dict(tags) if tags is not None else None,
        )

    @classmethod
    def from_json(cls, line: str) -> Span:
        """Parse one JSONL line.

        Raises:
            json.JSONDecodeError: If the line is not valid JSON.
        """
        return cls.from_dict(json.loads(line))
