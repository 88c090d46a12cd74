"""Watch session statistics."""

from __future__ import annotations

from datetime import datetime


class StatsTracker:
    """Count wake-ups, lines, matches and problems for one watch session."""

    def __init__(self) -> None:
        self._start_time = datetime.now()
        self._wakeups = 0
        self._lines = 0
        self._matches = 0
        self._alerts_failed = 0
        self._io_errors = 0
        self._resets = 0
        self._last_match: datetime | None = None

    def record_wakeup(self, lines: int) -> None:
        self._wakeups += 1
        self._lines += lines

    def record_match(self) -> None:
        self._matches += 1
        self._last_match = datetime.now()

    def record_alert_failure(self) -> None:
        self._alerts_failed += 1

    def record_io_error(self) -> None:
        self._io_errors += 1

    def record_reset(self, count: int = 1) -> None:
        self._resets += count

    @property
    def matches(self) -> int:
        return self._matches

    def summary(self) -> dict:
        uptime = (datetime.now() - self._start_time).total_seconds()
        return {
            "wakeups": self._wakeups,
            "lines_read": self._lines,
            "matches": self._matches,
            "alerts_failed": self._alerts_failed,
            "io_errors": self._io_errors,
            "resets": self._resets,
            "last_match": self._last_match.isoformat() if self._last_match else None,
            "uptime_seconds": round(uptime, 1),
        }
