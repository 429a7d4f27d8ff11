from __future__ import annotations

import json
import logging
import os
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, time
from pathlib import Path
from typing import Iterable, List, Tuple

from time_utils import FALLBACK_TIMEZONE, is_valid_timezone, resolve_timezone

from .errors import PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_SUBTITLE = "Time to Sip Tea!"

# 1 = Sunday ... 7 = Saturday
ALL_WEEKDAYS: Tuple[int, ...] = (1, 2, 3, 4, 5, 6, 7)
WEEKDAY_NAMES = {
    1: "Sun",
    2: "Mon",
    3: "Tue",
    4: "Wed",
    5: "Thu",
    6: "Fri",
    7: "Sat",
}


@dataclass(frozen=True, order=True)
class TimeOfDay:
    hour: int
    minute: int

    def __post_init__(self) -> None:
        if not 0 <= self.hour <= 23:
            raise ValueError(f"Hour out of range: {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"Minute out of range: {self.minute}")

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"

    @classmethod
    def coerce(cls, value, tzinfo=None) -> "TimeOfDay":
        """Build a clock time from the usual representations.

        Only hour and minute survive. Aware datetimes are read in ``tzinfo``
        when given, so a picked instant shows the same clock time in the
        alarm's own zone.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            raw = value.strip()
            if "T" in raw or " " in raw or "-" in raw[1:]:
                value = datetime.fromisoformat(raw)
            else:
                parts = raw.split(":")
                if len(parts) < 2:
                    raise ValueError(f"No colon in time value: {raw!r}")
                return cls(int(parts[0]), int(parts[1]))
        if isinstance(value, datetime):
            if value.tzinfo and tzinfo:
                value = value.astimezone(tzinfo)
            return cls(value.hour, value.minute)
        if isinstance(value, time):
            return cls(value.hour, value.minute)
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return cls(int(value[0]), int(value[1]))
        raise TypeError(f"Cannot interpret {value!r} as a time of day")


def normalize_repeat_days(days: Iterable[int] | None) -> Tuple[int, ...]:
    normalized = set()
    for day in days or ():
        try:
            number = int(day)
        except (TypeError, ValueError):
            logger.warning("Invalid weekday %r encountered; dropping", day)
            continue
        if number in WEEKDAY_NAMES:
            normalized.add(number)
        else:
            logger.warning("Weekday %r outside 1..7; dropping", day)
    if not normalized:
        return ALL_WEEKDAYS
    return tuple(sorted(normalized))


@dataclass(frozen=True)
class Alarm:
    id: str
    time_of_day: TimeOfDay
    time_zone: str
    label: str
    notification_subtitle: str
    repeat_days: Tuple[int, ...] = ALL_WEEKDAYS

    @classmethod
    def create(
        cls,
        time_of_day,
        time_zone: str | None,
        label: str = "",
        subtitle: str = "",
        repeat_days: Iterable[int] | None = None,
    ) -> "Alarm":
        zone = time_zone
        if not is_valid_timezone(zone):
            logger.warning("Alarm timezone %r is not a known zone, using %s", zone, FALLBACK_TIMEZONE)
            zone = FALLBACK_TIMEZONE
        return cls(
            id=str(uuid.uuid4()).upper(),
            time_of_day=TimeOfDay.coerce(time_of_day, resolve_timezone(zone)),
            time_zone=zone,
            label=label or "",
            notification_subtitle=subtitle if subtitle and subtitle.strip() else DEFAULT_SUBTITLE,
            repeat_days=normalize_repeat_days(repeat_days),
        )

    def normalized(self) -> "Alarm":
        """Copy with repeat days cleaned up; records from older clients may carry none."""
        days = normalize_repeat_days(self.repeat_days)
        if days == self.repeat_days:
            return self
        logger.warning("Alarm %s had repeat days %r, using %r", self.id, self.repeat_days, days)
        return replace(self, repeat_days=days)

    @property
    def tzinfo(self):
        return resolve_timezone(self.time_zone)

    def describe_days(self) -> str:
        return ", ".join(WEEKDAY_NAMES[d] for d in sorted(self.repeat_days))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "time": str(self.time_of_day),
            "time_zone": self.time_zone,
            "label": self.label,
            "notification_subtitle": self.notification_subtitle,
            "repeat_days": list(self.repeat_days),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Alarm":
        alarm_id = data.get("id")
        time_raw = data.get("time") or data.get("time_of_day")
        if not alarm_id or not time_raw:
            raise ValueError("Alarm payload missing id/time fields")
        time_zone = data.get("time_zone") or data.get("timeZoneIdentifier") or FALLBACK_TIMEZONE
        subtitle = data.get("notification_subtitle")
        if subtitle is None:
            subtitle = data.get("notificationSubtitle", DEFAULT_SUBTITLE)
        days = data.get("repeat_days")
        if days is None:
            days = data.get("repeatDays")
        return cls(
            id=str(alarm_id),
            time_of_day=TimeOfDay.coerce(time_raw, resolve_timezone(time_zone)),
            time_zone=str(time_zone),
            label=str(data.get("label") or ""),
            notification_subtitle=str(subtitle),
            repeat_days=normalize_repeat_days(days),
        )


def load_alarms(path: Path) -> List[Alarm]:
    if not path.exists():
        return []
    try:
        with path.open("r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, ValueError) as exc:
        raise PersistenceError(f"Failed to read alarms from {path}: {exc}") from exc
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise PersistenceError(f"Alarm file {path} does not contain a list")
    alarms: List[Alarm] = []
    for item in payload:
        try:
            alarms.append(Alarm.from_dict(item))
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning("Skipping alarm item due to parse error: %s", exc)
    return alarms


def save_alarms(path: Path, alarms: Iterable[Alarm]) -> None:
    serializable = [a.to_dict() for a in alarms]
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(serializable, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    except OSError as exc:
        raise PersistenceError(f"Failed to write alarms to {path}: {exc}") from exc


class JsonAlarmStorage:
    """Keeps the whole alarm collection as one JSON list on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> List[Alarm]:
        alarms = load_alarms(self.path)
        logger.debug("Loaded %s alarms from %s", len(alarms), self.path)
        return alarms

    def save(self, alarms: Iterable[Alarm]) -> None:
        save_alarms(self.path, alarms)
