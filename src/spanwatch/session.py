"""In-memory session event log for spanwatch.

Records discrete tool calls and commits for the lifetime of the process.
Unlike spans these events have no duration and are never persisted; they
feed the health analyzer.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime

from spanwatch.ids import Clock, SystemClock

# Successful calls to these tools drive the sprint state.
SPRINT_START_TOOL = "sprint_start"
SPRINT_COMPLETE_TOOL = "sprint_complete"
SPRINT_PROGRESS_TOOL = "sprint_progress"


@dataclass(frozen=True)
class ToolCallEvent:
    """One tool invocation."""

    tool: str
    success: bool
    timestamp: datetime


@dataclass
class SessionState:
    """Everything recorded since the session started.

    Attributes:
        started_at: When the session (process) started.
        tool_calls: Tool calls in recording order.
        commit_count: Number of commits recorded.
        last_commit_at: When the most recent commit was recorded.
        sprint_active: Whether a sprint is being tracked.
        last_progress_at: When sprint progress was last recorded.
    """

    started_at: datetime
    tool_calls: list[ToolCallEvent] = field(default_factory=list)
    commit_count: int = 0
    last_commit_at: datetime | None = None
    sprint_active: bool = False
    last_progress_at: datetime | None = None


class SessionLog:
    """Narrow recording interface over the session state.

    Collaborators only append events; existing entries are never changed.
    """

    def __init__(self, clock: Clock | None = None, max_tool_calls: int | None = None):
        """Initialize the log.

        Args:
            clock: Time source. Defaults to SystemClock.
            max_tool_calls: Keep only this many most recent tool calls.
                None keeps every call.
        """
        self.clock = clock or SystemClock()
        self.max_tool_calls = max_tool_calls
        self._lock = threading.Lock()
        self._state = SessionState(started_at=self.clock.now())

    @property
    def started_at(self) -> datetime:
        return self._state.started_at

    def record_tool_call(self, tool: str, success: bool = True) -> None:
        """Record a tool invocation.

        Args:
            tool: Tool name.
            success: Whether the call succeeded.
        """
        now = self.clock.now()
        with self._lock:
            state = self._state
            state.tool_calls.append(ToolCallEvent(tool=tool, success=success, timestamp=now))

            if self.max_tool_calls is not None and len(state.tool_calls) > self.max_tool_calls:
                del state.tool_calls[: len(state.tool_calls) - self.max_tool_calls]

            if not success:
                return

            if tool == SPRINT_START_TOOL:
                state.sprint_active = True
            elif tool == SPRINT_COMPLETE_TOOL:
                state.sprint_active = False
            elif tool == SPRINT_PROGRESS_TOOL:
                state.last_progress_at = now

    def record_commit(self) -> None:
        """Record a commit.

        Sprint progress is tracked separately and is left untouched.
        """
        now = self.clock.now()
        with self._lock:
            self._state.commit_count += 1
            self._state.last_commit_at = now

    def set_sprint_active(self, active: bool) -> None:
        with self._lock:
            self._state.sprint_active = active

    def record_progress(self) -> None:
        now = self.clock.now()
        with self._lock:
            self._state.last_progress_at = now

    def snapshot(self) -> SessionState:
        """Return an independent copy of the current state."""
        with self._lock:
            return replace(self._state, tool_calls=list(self._state.tool_calls))

    def reset(self) -> None:
        """Start a fresh session. For test isolation only."""
        with self._lock:
            self._state = SessionState(started_at=self.clock.now())
