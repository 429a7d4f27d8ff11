import json
from datetime import datetime, time, timezone

import pytest

from tea_alarms.errors import PersistenceError
from tea_alarms.storage import (
    ALL_WEEKDAYS,
    DEFAULT_SUBTITLE,
    Alarm,
    JsonAlarmStorage,
    TimeOfDay,
    normalize_repeat_days,
)


def test_empty_repeat_days_become_every_day():
    alarm = Alarm.create("07:15", "UTC", label="Oolong", repeat_days=[])
    assert alarm.repeat_days == (1, 2, 3, 4, 5, 6, 7)
    assert normalize_repeat_days(None) == ALL_WEEKDAYS


def test_repeat_days_are_deduplicated_and_filtered():
    assert normalize_repeat_days([4, 2, 2, 9, 0]) == (2, 4)
    assert normalize_repeat_days([8]) == ALL_WEEKDAYS


def test_blank_subtitle_gets_placeholder():
    assert Alarm.create("07:15", "UTC", subtitle="").notification_subtitle == DEFAULT_SUBTITLE
    assert Alarm.create("07:15", "UTC", subtitle="   ").notification_subtitle == DEFAULT_SUBTITLE
    assert Alarm.create("07:15", "UTC", subtitle="Brew!").notification_subtitle == "Brew!"


def test_unknown_timezone_falls_back_to_utc():
    alarm = Alarm.create("07:15", "Mars/Olympus_Mons")
    assert alarm.time_zone == "UTC"


def test_ids_are_unique():
    ids = {Alarm.create("07:15", "UTC").id for _ in range(50)}
    assert len(ids) == 50


def test_time_of_day_coercion():
    assert TimeOfDay.coerce("9:03") == TimeOfDay(9, 3)
    assert TimeOfDay.coerce("09:03:30") == TimeOfDay(9, 3)
    assert TimeOfDay.coerce(time(21, 45)) == TimeOfDay(21, 45)
    assert TimeOfDay.coerce((6, 0)) == TimeOfDay(6, 0)
    assert TimeOfDay.coerce("2024-02-10T18:20:00") == TimeOfDay(18, 20)
    assert str(TimeOfDay(6, 5)) == "06:05"
    with pytest.raises(ValueError):
        TimeOfDay(24, 0)
    with pytest.raises(ValueError):
        TimeOfDay.coerce("noon")


def test_aware_datetime_is_read_in_alarm_timezone():
    picked = datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)
    alarm = Alarm.create(picked, "Asia/Tokyo")
    assert alarm.time_of_day == TimeOfDay(17, 0)


def test_save_and_load(tmp_path):
    storage = JsonAlarmStorage(tmp_path / "nested" / "alarms.json")
    alarms = [
        Alarm.create("07:15", "Europe/London", label="Earl Grey", repeat_days=[2, 3]),
        Alarm.create("16:00", "UTC", label="Matcha", subtitle="Whisk it"),
    ]
    storage.save(alarms)
    assert storage.load() == alarms

    raw = json.loads(storage.path.read_text(encoding="utf-8"))
    assert raw[0]["time"] == "07:15"
    assert raw[0]["time_zone"] == "Europe/London"
    assert raw[0]["repeat_days"] == [2, 3]


def test_missing_file_loads_empty(tmp_path):
    assert JsonAlarmStorage(tmp_path / "absent.json").load() == []


def test_corrupted_file_raises(tmp_path):
    path = tmp_path / "alarms.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(PersistenceError):
        JsonAlarmStorage(path).load()


def test_malformed_items_are_skipped(tmp_path):
    path = tmp_path / "alarms.json"
    payload = [
        {"id": "OK", "time": "08:30", "time_zone": "UTC", "label": "x", "repeat_days": [1]},
        {"label": "no id or time"},
        {"id": "BAD", "time": "99:99"},
    ]
    path.write_text(json.dumps(payload), encoding="utf-8")
    loaded = JsonAlarmStorage(path).load()
    assert [a.id for a in loaded] == ["OK"]


def test_legacy_keys_are_accepted():
    alarm = Alarm.from_dict(
        {
            "id": "LEGACY",
            "time": "10:05",
            "timeZoneIdentifier": "America/New_York",
            "label": "Chai",
            "notificationSubtitle": "Spices!",
            "repeatDays": [7],
        }
    )
    assert alarm.time_zone == "America/New_York"
    assert alarm.notification_subtitle == "Spices!"
    assert alarm.repeat_days == (7,)
