#!/usr/bin/env python3
"""
Cyber Risk Register - Audit Trail Recorder
Appends immutable entries to a risk's audit trail. Entries are ordered by a
register-wide sequence number; wall-clock timestamps are nudged forward so
they never tie or run backwards within a trail, even under clock skew or
same-microsecond bursts.
"""

import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

try:
    from .logger import get_logger
    from .models import AuditEntry, to_plain, utcnow
except ImportError:
    from logger import get_logger
    from models import AuditEntry, to_plain, utcnow

logger = get_logger('audit')

_TICK = timedelta(microseconds=1)


def snapshot(values: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-friendly copy of a field -> value mapping."""
    return {k: to_plain(v) for k, v in values.items()}


class AuditRecorder:
    """Builds audit entries with strictly increasing sequence and time."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None,
                 start_sequence: int = 0):
        self._clock = clock or utcnow
        self._sequence = start_sequence
        self._last_timestamp: Optional[datetime] = None
        self._lock = threading.Lock()

    @property
    def sequence(self) -> int:
        """Sequence number of the most recently issued entry."""
        return self._sequence

    def seed(self, entries: Iterable[AuditEntry]):
        """Advance counters past entries loaded from storage."""
        with self._lock:
            for entry in entries:
                if entry.sequence > self._sequence:
                    self._sequence = entry.sequence
                if self._last_timestamp is None or entry.timestamp > self._last_timestamp:
                    self._last_timestamp = entry.timestamp

    def record(
        self,
        trail: Tuple[AuditEntry, ...],
        action: str,
        details: str,
        user: str,
        previous_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
    ) -> Tuple[AuditEntry, ...]:
        """Return *trail* with one new entry appended. *trail* is not modified."""
        with self._lock:
            self._sequence += 1
            timestamp = self._clock()
            floor = self._last_timestamp
            if trail and (floor is None or trail[-1].timestamp > floor):
                floor = trail[-1].timestamp
            if floor is not None and timestamp <= floor:
                timestamp = floor + _TICK
            self._last_timestamp = timestamp

            entry = AuditEntry(
                id=f"AT-{self._sequence:06d}",
                timestamp=timestamp,
                sequence=self._sequence,
                user=user,
                action=action,
                details=details,
                previous_value=snapshot(previous_value) if previous_value is not None else None,
                new_value=snapshot(new_value) if new_value is not None else None,
            )

        logger.debug(f"Audit: {action} by {user} ({entry.id})")
        return tuple(trail) + (entry,)
