"""Turns an alarm's weekly recurrence into notification trigger specs.

Everything here is pure: no collaborator is called, the same alarm always
yields the same specs and identifiers, so re-submitting after a reload
overwrites registrations instead of duplicating them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple

from time_utils import ensure_aware, resolve_timezone

from .storage import Alarm

REMINDER_LEAD_MINUTES = 5

MAIN_TITLE = "Tea Time Alarm"
REMINDER_TITLE = "Tea Preparation Reminder"
REMINDER_BODY = "Your tea will be ready in 5 minutes. Get ready to brew!"


@dataclass(frozen=True)
class NotificationAction:
    identifier: str
    title: str
    destructive: bool = False


@dataclass(frozen=True)
class NotificationCategory:
    identifier: str
    actions: Tuple[NotificationAction, ...] = ()


SNOOZE_ACTION = NotificationAction("SNOOZE_ACTION", "Snooze")
DISMISS_ACTION = NotificationAction("DISMISS_ACTION", "Dismiss", destructive=True)
TEA_TIME_CATEGORY = NotificationCategory("TEA_TIME_CATEGORY", (SNOOZE_ACTION, DISMISS_ACTION))
NOTIFICATION_CATEGORIES: Tuple[NotificationCategory, ...] = (TEA_TIME_CATEGORY,)


@dataclass(frozen=True)
class NotificationContent:
    title: str
    body: str
    subtitle: str = ""
    category: Optional[NotificationCategory] = None
    sound: str = "default"


class TriggerKind(str, Enum):
    MAIN = "main"
    REMINDER = "reminder"


@dataclass(frozen=True)
class TriggerSpec:
    identifier: str
    alarm_id: str
    kind: TriggerKind
    weekday: int
    hour: int
    minute: int
    time_zone: str
    content: NotificationContent
    repeats: bool = True

    @property
    def clock(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


def main_identifier(alarm_id: str, day: int) -> str:
    return f"{alarm_id}_{day}"


def reminder_identifier(alarm_id: str, day: int) -> str:
    return f"{alarm_id}_reminder_{day}"


def reminder_minute(minute: int) -> int:
    # Clamped inside the same hour: 09:03 reminds at 09:00, not 08:58.
    return max(0, minute - REMINDER_LEAD_MINUTES)


def trigger_identifiers(alarm: Alarm) -> List[str]:
    identifiers: List[str] = []
    for day in alarm.repeat_days:
        identifiers.append(main_identifier(alarm.id, day))
        identifiers.append(reminder_identifier(alarm.id, day))
    return identifiers


def plan_triggers(alarm: Alarm) -> FrozenSet[TriggerSpec]:
    """Return the main and reminder trigger for every repeat day of ``alarm``."""
    if not alarm.repeat_days:
        raise ValueError(f"Alarm {alarm.id} has no repeat days")

    main_content = NotificationContent(
        title=MAIN_TITLE,
        subtitle=alarm.notification_subtitle,
        body=alarm.label,
        category=TEA_TIME_CATEGORY,
    )
    reminder_content = NotificationContent(title=REMINDER_TITLE, body=REMINDER_BODY)
    hour = alarm.time_of_day.hour
    minute = alarm.time_of_day.minute

    specs = set()
    for day in alarm.repeat_days:
        specs.add(
            TriggerSpec(
                identifier=main_identifier(alarm.id, day),
                alarm_id=alarm.id,
                kind=TriggerKind.MAIN,
                weekday=day,
                hour=hour,
                minute=minute,
                time_zone=alarm.time_zone,
                content=main_content,
            )
        )
        specs.add(
            TriggerSpec(
                identifier=reminder_identifier(alarm.id, day),
                alarm_id=alarm.id,
                kind=TriggerKind.REMINDER,
                weekday=day,
                hour=hour,
                minute=reminder_minute(minute),
                time_zone=alarm.time_zone,
                content=reminder_content,
            )
        )
    return frozenset(specs)


def python_weekday(day: int) -> int:
    """Map 1=Sunday..7=Saturday onto ``datetime.weekday()`` (Monday=0)."""
    return (day + 5) % 7


def next_fire_at(spec: TriggerSpec, now: datetime) -> datetime:
    """Next instant strictly after ``now`` at which ``spec`` fires.

    Evaluated on the wall clock of the spec's own timezone, so the result
    keeps the same local time across DST changes.
    """
    tz = resolve_timezone(spec.time_zone)
    local_now = ensure_aware(now).astimezone(tz)
    days_ahead = (python_weekday(spec.weekday) - local_now.weekday()) % 7
    day = local_now.date() + timedelta(days=days_ahead)
    candidate = datetime(day.year, day.month, day.day, spec.hour, spec.minute, tzinfo=tz)
    if candidate > local_now:
        return candidate
    day += timedelta(days=7)
    return datetime(day.year, day.month, day.day, spec.hour, spec.minute, tzinfo=tz)


def next_occurrence(alarm: Alarm, now: datetime) -> Optional[datetime]:
    mains = [s for s in plan_triggers(alarm) if s.kind is TriggerKind.MAIN]
    return earliest(mains, now)


def earliest(specs: Iterable[TriggerSpec], now: datetime) -> Optional[datetime]:
    instants = [next_fire_at(s, now) for s in specs]
    return min(instants) if instants else None
