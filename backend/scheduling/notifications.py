"""In-process notification of schedule changes.

Routes publish a :class:`ScheduleChange` after a successful write so that
listeners (cache invalidation, calendar refresh) can react. The scheduling
core itself never publishes.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from threading import Lock

logger = logging.getLogger(__name__)

AVAILABILITY_CHANGED = 'availability'
APPOINTMENTS_CHANGED = 'appointments'
LIMITS_CHANGED = 'limits'


@dataclass(frozen=True)
class ScheduleChange:
    kind: str
    clinician_id: str
    record_ids: tuple[int, ...] = field(default_factory=tuple)


Listener = Callable[[ScheduleChange], None]


class ScheduleNotifier:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._lock = Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that removes it again."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, change: ScheduleChange) -> None:
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(change)
            except Exception:
                # A failing listener must not undo a committed write.
                logger.exception('Schedule listener %r failed for %s', listener, change)


notifier = ScheduleNotifier()
