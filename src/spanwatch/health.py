"""Session health analysis for spanwatch.

Detects unhealthy working patterns in the session event log:
- Many tool calls without any commit (coding stall)
- The same tool called over and over (thrashing, stuck loops)
- A high share of failing tool calls
- An active sprint with no recorded progress
- Commits made without sprint tracking
- Very long sessions

Analysis is a pure function of a session snapshot and an instant; nothing
is stored between calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from spanwatch.session import SessionState

MIN_SESSION_MINUTES = 5
RECENT_WINDOW = timedelta(minutes=30)

NO_COMMITS_MIN_CALLS = 15
NO_COMMITS_MIN_MINUTES = 20
THRASHING_MIN_CALLS = 5
REPETITION_WARNING_RUN = 3
REPETITION_CRITICAL_RUN = 5
ERROR_RATE_MIN_CALLS = 5
ERROR_RATE_THRESHOLD = 0.4
STALE_PROGRESS_MINUTES = 45
NO_SPRINT_MIN_MINUTES = 10
LONG_SESSION_MINUTES = 120

# Bookkeeping tools that are expected to be called repeatedly.
MAINTENANCE_TOOLS = frozenset({"sprint_progress", "health_check", "session_health"})


class Severity(Enum):
    """Severity of a health signal."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class HealthSignal:
    """A qualitative observation about the session.

    Attributes:
        id: Stable signal identifier (e.g. "thrashing").
        severity: How serious the observation is.
        message: Human readable description.
        metric: Short metric summary backing the observation.
    """

    id: str
    severity: Severity
    message: str
    metric: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "severity": self.severity.value,
            "message": self.message,
            "metric": self.metric,
        }


def _minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def _round(value: float) -> int:
    """Round half up, for display."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def analyze_session(state: SessionState, now: datetime) -> list[HealthSignal]:
    """Evaluate the health rules against a session snapshot.

    Args:
        state: The session state to analyze.
        now: The instant to analyze at.

    Returns:
        Signals in rule order. A session younger than five minutes yields a
        single "too_early" signal; otherwise at least one signal is returned.
    """
    minutes = _minutes_between(state.started_at, now)

    if minutes < MIN_SESSION_MINUTES:
        return [
            HealthSignal(
                id="too_early",
                severity=Severity.INFO,
                message="Session too young for meaningful analysis",
                metric=f"{_round(minutes)}m",
            )
        ]

    signals: list[HealthSignal] = []
    total_calls = len(state.tool_calls)
    recent = [c for c in state.tool_calls if now - c.timestamp < RECENT_WINDOW]

    # Tool calls without commits
    if (
        total_calls > NO_COMMITS_MIN_CALLS
        and state.commit_count == 0
        and minutes > NO_COMMITS_MIN_MINUTES
    ):
        signals.append(
            HealthSignal(
                id="no_commits",
                severity=Severity.WARNING,
                message=(
                    f"{total_calls} tool calls in {_round(minutes)}m with no commits. "
                    "Are you stuck?"
                ),
                metric=f"{total_calls} calls / 0 commits",
            )
        )

    # Same tool called often within the window
    frequency: dict[str, int] = {}
    for call in recent:
        frequency[call.tool] = frequency.get(call.tool, 0) + 1
    for tool, count in frequency.items():
        if count >= THRASHING_MIN_CALLS and tool not in MAINTENANCE_TOOLS:
            signals.append(
                HealthSignal(
                    id="thrashing",
                    severity=Severity.WARNING,
                    message=(
                        f'"{tool}" called {count} times in last 30m. '
                        "Possible thrashing, try a different approach."
                    ),
                    metric=f"{count}x in 30m",
                )
            )

    # Trailing run of identical calls
    if len(recent) >= REPETITION_WARNING_RUN:
        last_tool = recent[-1].tool
        run = 1
        for i in range(len(recent) - 1, 0, -1):
            if recent[i].tool != recent[i - 1].tool:
                break
            run += 1
        if run >= REPETITION_WARNING_RUN and last_tool not in MAINTENANCE_TOOLS:
            signals.append(
                HealthSignal(
                    id="action_repetition",
                    severity=(
                        Severity.CRITICAL
                        if run >= REPETITION_CRITICAL_RUN
                        else Severity.WARNING
                    ),
                    message=(
                        f'"{last_tool}" called {run} times consecutively. '
                        "Likely stuck; try a different approach or escalate."
                    ),
                    metric=f"{run}x consecutive",
                )
            )

    # Failing calls
    recent_total = len(recent)
    recent_errors = sum(1 for c in recent if not c.success)
    if recent_total >= ERROR_RATE_MIN_CALLS and recent_errors / recent_total > ERROR_RATE_THRESHOLD:
        percent = _round(recent_errors / recent_total * 100)
        signals.append(
            HealthSignal(
                id="high_error_rate",
                severity=Severity.CRITICAL,
                message=(
                    f"{recent_errors}/{recent_total} tool calls failed in last 30m "
                    f"({percent}% error rate). Check for systemic issues."
                ),
                metric=f"{percent}% failure",
            )
        )

    # Sprint without progress
    if state.sprint_active:
        if state.last_progress_at is not None:
            since_progress = _minutes_between(state.last_progress_at, now)
            if since_progress > STALE_PROGRESS_MINUTES:
                signals.append(
                    HealthSignal(
                        id="stale_progress",
                        severity=Severity.WARNING,
                        message=(
                            "Sprint active but no progress recorded in "
                            f"{_round(since_progress)}m. Record progress or checkpoint."
                        ),
                        metric=f"{_round(since_progress)}m since last update",
                    )
                )
        elif minutes > STALE_PROGRESS_MINUTES:
            signals.append(
                HealthSignal(
                    id="stale_progress",
                    severity=Severity.WARNING,
                    message=(
                        f"Sprint active but progress never recorded ({_round(minutes)}m). "
                        "Log your first milestone."
                    ),
                    metric=f"{_round(minutes)}m, no progress logged",
                )
            )

    # Commits outside a sprint
    if not state.sprint_active and state.commit_count > 0 and minutes > NO_SPRINT_MIN_MINUTES:
        signals.append(
            HealthSignal(
                id="no_sprint",
                severity=Severity.INFO,
                message="Commits without an active sprint. Consider starting sprint tracking.",
                metric=f"{state.commit_count} commits, no sprint",
            )
        )

    if minutes > LONG_SESSION_MINUTES:
        signals.append(
            HealthSignal(
                id="long_session",
                severity=Severity.INFO,
                message=(
                    f"Session running for {_round(minutes)}m. "
                    "Consider compacting or restarting the context."
                ),
                metric=f"{_round(minutes)}m",
            )
        )

    if not signals:
        signals.append(
            HealthSignal(
                id="healthy",
                severity=Severity.INFO,
                message="Session looks healthy. No concerning patterns detected.",
                metric=(
                    f"{total_calls} calls, {state.commit_count} commits "
                    f"in {_round(minutes)}m"
                ),
            )
        )

    return signals


def overall_health(signals: list[HealthSignal]) -> str:
    """Derive the overall session label from a list of signals.

    Returns:
        "unhealthy", "concerning", "minor_issues" or "healthy".
    """
    if any(s.severity is Severity.CRITICAL for s in signals):
        return "unhealthy"

    warnings = sum(1 for s in signals if s.severity is Severity.WARNING)
    if warnings >= 2:
        return "concerning"
    if warnings == 1:
        return "minor_issues"
    return "healthy"


@dataclass
class SessionHealthReport:
    """Signals plus the session totals they were derived from."""

    overall: str
    session_minutes: int
    total_tool_calls: int
    commit_count: int
    sprint_active: bool
    signals: list[HealthSignal] = field(default_factory=list)

    @classmethod
    def build(cls, state: SessionState, now: datetime) -> SessionHealthReport:
        """Analyze a session snapshot and wrap the result."""
        signals = analyze_session(state, now)
        return cls(
            overall=overall_health(signals),
            session_minutes=_round(_minutes_between(state.started_at, now)),
            total_tool_calls=len(state.tool_calls),
            commit_count=state.commit_count,
            sprint_active=state.sprint_active,
            signals=signals,
        )

    def count(self, severity: Severity) -> int:
        return sum(1 for s in self.signals if s.severity is severity)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "overall": self.overall,
            "session_minutes": self.session_minutes,
            "total_tool_calls": self.total_tool_calls,
            "commit_count": self.commit_count,
            "sprint_active": self.sprint_active,
            "signals": [s.to_dict() for s in self.signals],
        }


_SEVERITY_TAGS = {
    Severity.INFO: "[INFO]",
    Severity.WARNING: "[WARN]",
    Severity.CRITICAL: "[CRIT]",
}


def format_health_report(report: SessionHealthReport) -> str:
    """Format a health report for display."""
    lines = [
        f"Session Health: {report.overall} ({report.session_minutes}m, "
        f"{report.total_tool_calls} tool calls, {report.commit_count} commits)",
        "",
    ]
    for signal in report.signals:
        lines.append(f"{_SEVERITY_TAGS[signal.severity]} {signal.message}")
    return "\n".join(lines)
