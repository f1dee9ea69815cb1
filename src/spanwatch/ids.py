"""Clock and identifier capabilities for spanwatch.

Time and ids are injected rather than read from globals so that tests can
drive the recorder and the health analyzer with deterministic values.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Protocol

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


class Clock(Protocol):
    """Source of wall-clock instants."""

    def now(self) -> datetime:
        """Return the current instant as a timezone-aware UTC datetime."""
        ...


class IdGenerator(Protocol):
    """Source of span and trace identifiers."""

    def next_id(self) -> str:
        """Return an identifier unique within the process lifetime."""
        ...

    def reset(self) -> None:
        """Restart the sequence (test isolation only)."""
        ...


class SystemClock:
    """Clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def to_base36(n: int) -> str:
    """Encode a non-negative integer in lowercase base 36."""
    if n < 0:
        raise ValueError(f"Cannot encode negative number: {n}")
    if n == 0:
        return "0"

    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


class SequentialIdGenerator:
    """Generates ids of the form ``<millis>-<counter>``, both base 36.

    The millisecond prefix keeps ids roughly time-ordered across restarts;
    the counter guarantees uniqueness within one process.
    """

    def __init__(self, clock: Clock | None = None):
        """Initialize the generator.

        Args:
            clock: Clock used for the time prefix. Defaults to SystemClock.
        """
        self.clock = clock or SystemClock()
        self._counter = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            self._counter += 1
            counter = self._counter
        millis = int(self.clock.now().timestamp() * 1000)
        return f"{to_base36(millis)}-{to_base36(counter)}"

    def reset(self) -> None:
        with self._lock:
            self._counter = 0


def utc_date(instant: datetime) -> str:
    """Return the ``YYYY-MM-DD`` UTC calendar date of an instant."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc).strftime("%Y-%m-%d")


def format_timestamp(instant: datetime) -> str:
    """Format an instant as ISO 8601 UTC with a ``Z`` suffix."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    text = instant.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO 8601 timestamp, accepting a ``Z`` suffix.

    Raises:
        TypeError: If text is not a string.
        ValueError: If text is not a valid ISO 8601 timestamp.
    """
    if not isinstance(text, str):
        raise TypeError(f"Expected an ISO 8601 string, got {type(text).__name__}")
    instant = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant
