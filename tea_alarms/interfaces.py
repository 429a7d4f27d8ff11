"""Collaborators the alarm core talks to.

Implementations signal failure by raising; the core reports and carries on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .planner import TriggerSpec
    from .storage import Alarm


@runtime_checkable
class NotificationScheduler(Protocol):
    def submit(self, spec: "TriggerSpec") -> None:
        """Register ``spec``, replacing any registration with the same identifier.

        Raises:
            SchedulingError: the backend refused the trigger.
        """
        ...

    def cancel(self, identifier: str) -> None:
        ...


@runtime_checkable
class PersistenceStore(Protocol):
    def save(self, alarms: List["Alarm"]) -> None:
        ...

    def load(self) -> List["Alarm"]:
        """Return stored alarms, ``[]`` when nothing was saved yet.

        Raises:
            PersistenceError: stored data exists but cannot be read.
        """
        ...


@runtime_checkable
class RemoteStore(Protocol):
    def upload(self, alarm: "Alarm") -> None:
        ...

    def delete(self, alarm_id: str) -> None:
        ...

    def fetch_all(self) -> List["Alarm"]:
        ...
