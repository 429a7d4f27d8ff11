from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Event, Lock, Thread
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .errors import SchedulingError
from .planner import NotificationCategory, TriggerSpec, next_fire_at

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocalNotificationCenter:
    """In-process notification backend.

    Holds trigger registrations keyed by identifier and fires them from a
    background loop. A repeated ``submit`` replaces the earlier registration.
    """

    def __init__(
        self,
        on_trigger: Optional[Callable[[TriggerSpec, datetime], None]] = None,
        check_interval: float = 1.0,
        authorized: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.on_trigger = on_trigger
        self.check_interval = max(0.2, check_interval)
        self.authorized = authorized
        self.clock = clock

        self._registrations: Dict[str, TriggerSpec] = {}
        self._next_fire: Dict[str, datetime] = {}
        self._categories: Dict[str, NotificationCategory] = {}
        self._lock = Lock()
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    def register_categories(self, categories: Iterable[NotificationCategory]) -> None:
        with self._lock:
            for category in categories:
                self._categories[category.identifier] = category
        logger.debug("Registered notification categories: %s", sorted(self._categories))

    def submit(self, spec: TriggerSpec) -> None:
        if not self.authorized:
            raise SchedulingError("Notifications are not authorized")
        category = spec.content.category
        with self._lock:
            if category is not None and category.identifier not in self._categories:
                raise SchedulingError(f"Unknown notification category {category.identifier}")
            fire_at = next_fire_at(spec, self.clock())
            replaced = spec.identifier in self._registrations
            self._registrations[spec.identifier] = spec
            self._next_fire[spec.identifier] = fire_at
        logger.debug(
            "%s trigger %s, next at %s",
            "Replaced" if replaced else "Registered",
            spec.identifier,
            fire_at.isoformat(),
        )

    def cancel(self, identifier: str) -> None:
        with self._lock:
            removed = self._registrations.pop(identifier, None)
            self._next_fire.pop(identifier, None)
        if removed:
            logger.debug("Cancelled trigger %s", identifier)

    def pending_identifiers(self) -> List[str]:
        with self._lock:
            return sorted(self._registrations)

    def get(self, identifier: str) -> Optional[TriggerSpec]:
        with self._lock:
            return self._registrations.get(identifier)

    def next_fire(self, identifier: str) -> Optional[datetime]:
        with self._lock:
            return self._next_fire.get(identifier)

    def pop_due(self, now: datetime) -> List[Tuple[TriggerSpec, datetime]]:
        """Collect triggers due at ``now`` and move each to its next occurrence."""
        due: List[Tuple[TriggerSpec, datetime]] = []
        with self._lock:
            for identifier, fire_at in list(self._next_fire.items()):
                if fire_at > now:
                    continue
                spec = self._registrations[identifier]
                due.append((spec, fire_at))
                if spec.repeats:
                    self._next_fire[identifier] = next_fire_at(spec, max(now, fire_at))
                else:
                    del self._registrations[identifier]
                    del self._next_fire[identifier]
        due.sort(key=lambda item: item[1])
        return due

    def start(self) -> None:
        self._stop_event.clear()
        self._thread = Thread(target=self._loop, name="notification-center", daemon=True)
        self._thread.start()
        logger.info("Notification center started with %s triggers", len(self.pending_identifiers()))

    def shutdown(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2)
        self._thread = None

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            for spec, fire_at in self.pop_due(self.clock()):
                self._fire(spec, fire_at)
            self._stop_event.wait(self.check_interval)

    def _fire(self, spec: TriggerSpec, fire_at: datetime) -> None:
        logger.info("Trigger %s fired for %s (%s)", spec.identifier, fire_at.isoformat(), spec.content.title)
        if self.on_trigger:
            try:
                self.on_trigger(spec, fire_at)
            except Exception:  # pragma: no cover - callback safety
                logger.error("on_trigger callback failed", exc_info=True)
