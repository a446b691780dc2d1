"""Injectable time source.

Code that needs "now" takes a ``Clock`` instead of calling
``datetime.now()`` directly, so token expiry can be tested deterministically.
"""

from __future__ import annotations

import re
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Source of the current instant in UTC."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as an aware UTC datetime."""


class SystemClock(Clock):
    """Clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock pinned to a controlled instant.

    Example:
        >>> clock = FixedClock.from_isoformat("2025-01-07T09:00:00Z")
        >>> clock.advance(timedelta(hours=1))
        >>> clock.now().hour
        10
    """

    def __init__(self, now: datetime):
        self._lock = threading.Lock()
        self._now = _as_utc(now)

    @classmethod
    def from_isoformat(cls, value: str) -> FixedClock:
        """Create a clock from an RFC 3339 timestamp such as ``2025-01-07T09:00:00Z``."""
        return cls(parse_timestamp(value))

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set_now(self, now: datetime) -> None:
        """Move the clock to ``now``."""
        with self._lock:
            self._now = _as_utc(now)

    def advance(self, delta: timedelta) -> None:
        """Advance (or rewind, if negative) the clock by ``delta``."""
        with self._lock:
            self._now += delta


def _as_utc(value: datetime) -> datetime:
    # Naive datetimes are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def system_clock() -> Clock:
    """Create the production clock."""
    return SystemClock()


_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Accepts a ``Z`` suffix and fractional seconds of any length (truncated to
    microseconds). Naive values are taken to be UTC.

    Raises:
        ValueError: If ``value`` is not a timestamp.
    """
    if not isinstance(value, str):
        raise ValueError(f"Expected a timestamp string, got {value!r}")
    normalized = value.strip()
    if normalized[-1:] in ("Z", "z"):
        normalized = normalized[:-1] + "+00:00"
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits
    normalized = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), normalized, count=1)
    return _as_utc(datetime.fromisoformat(normalized))
