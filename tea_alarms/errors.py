from __future__ import annotations

import logging
from threading import Lock
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TeaAlarmError(Exception):
    """Base class for collaborator failures surfaced to the alarm core."""


class SchedulingError(TeaAlarmError):
    """The notification backend rejected a trigger (e.g. permission revoked)."""


class PersistenceError(TeaAlarmError):
    """Local alarm storage could not be read or written."""


class RemoteError(TeaAlarmError):
    """The remote alarm store failed (network, auth, quota)."""


class ErrorReporter:
    """Single channel for user-visible failures.

    Keeps only the most recent message. The consumer (UI, CLI) clears it
    once shown; the alarm core never does.
    """

    def __init__(self, on_error: Optional[Callable[[str], None]] = None) -> None:
        self.on_error = on_error
        self._lock = Lock()
        self._last_error: Optional[str] = None

    def report(self, message: str) -> None:
        logger.error("%s", message)
        with self._lock:
            self._last_error = message
        if self.on_error:
            try:
                self.on_error(message)
            except Exception:  # pragma: no cover - callback safety
                logger.error("on_error callback failed", exc_info=True)

    @property
    def last_error(self) -> Optional[str]:
        with self._lock:
            return self._last_error

    def clear(self) -> Optional[str]:
        with self._lock:
            message = self._last_error
            self._last_error = None
        return message
