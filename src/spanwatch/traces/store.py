"""Date-partitioned JSONL storage for finalized spans.

Spans are appended to one file per UTC calendar date:

    <knowledge-root>/traces/trace-YYYY-MM-DD.jsonl

Writes and reads never raise. A failed write is logged and dropped; a failed
read (unreadable file, malformed line, or a date string that is not exactly
YYYY-MM-DD) is logged and yields an empty list.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from pathlib import Path
from typing import Protocol

from spanwatch.ids import utc_date
from spanwatch.traces.span import Span

logger = logging.getLogger(__name__)

TRACES_DIRNAME = "traces"
TRACE_FILE_PREFIX = "trace-"
TRACE_FILE_SUFFIX = ".jsonl"

# Checked before the date is used in a path.
DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


class RecordSink(Protocol):
    """Durable destination for finalized spans."""

    def append(self, span: Span) -> bool:
        """Persist one span. Must not raise."""
        ...

    def read_date(self, date: str) -> list[Span]:
        """Return the spans stored for a UTC date. Must not raise."""
        ...


def is_valid_date(date: object) -> bool:
    """Check that a value is a strict ``YYYY-MM-DD`` string."""
    return isinstance(date, str) and DATE_PATTERN.fullmatch(date) is not None


class JsonlRecordStore:
    """Append-only JSONL span store, one file per UTC date."""

    def __init__(self, knowledge_root: Path):
        """Initialize the store.

        Args:
            knowledge_root: Root directory; trace files live under its
                traces/ subdirectory.
        """
        self.knowledge_root = Path(knowledge_root)
        self.traces_dir = self.knowledge_root / TRACES_DIRNAME
        self._file_locks: dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def path_for_date(self, date: str) -> Path:
        """Return the trace file path for a (validated) date string."""
        return self.traces_dir / f"{TRACE_FILE_PREFIX}{date}{TRACE_FILE_SUFFIX}"

    def _lock_for(self, path: Path) -> threading.Lock:
        with self._locks_guard:
            lock = self._file_locks.get(path)
            if lock is None:
                lock = threading.Lock()
                self._file_locks[path] = lock
            return lock

    def append(self, span: Span) -> bool:
        """Append a span to the file for its start date.

        Args:
            span: The finalized span.

        Returns:
            True if the line was written, False otherwise.
        """
        try:
            line = span.to_json() + "\n"
            path = self.path_for_date(utc_date(span.started_at))

            with self._lock_for(path):
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line)

            return True
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to persist trace span {span.span_id}: {e}")
            return False

    def read_date(self, date: str) -> list[Span]:
        """Read back every span stored for a UTC date.

        Args:
            date: Date string in strict YYYY-MM-DD form.

        Returns:
            Spans in file order. Empty if the date is invalid, the file does
            not exist, or any line fails to parse.
        """
        if not is_valid_date(date):
            logger.warning(
                f"Rejected invalid trace date {str(date)[:20]!r}; expected YYYY-MM-DD"
            )
            return []

        path = self.path_for_date(date)
        if not path.exists():
            return []

        spans: list[Span] = []
        try:
            with open(path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    spans.append(Span.from_json(line))
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            # One bad line discards the whole date.
            logger.warning(f"Failed to read trace file for {date}: {e}")
            return []

        return spans

    def available_dates(self) -> list[str]:
        """List the dates that have a trace file, oldest first."""
        if not self.traces_dir.is_dir():
            return []

        dates = []
        for path in self.traces_dir.glob(f"{TRACE_FILE_PREFIX}*{TRACE_FILE_SUFFIX}"):
            date = path.name[len(TRACE_FILE_PREFIX):-len(TRACE_FILE_SUFFIX)]
            if is_valid_date(date):
                dates.append(date)
        return sorted(dates)
