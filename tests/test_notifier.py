from datetime import datetime, timedelta, timezone

import pytest

from tea_alarms.errors import SchedulingError
from tea_alarms.manager import AlarmStore
from tea_alarms.notifier import LocalNotificationCenter
from tea_alarms.planner import NOTIFICATION_CATEGORIES, TriggerKind, plan_triggers
from tea_alarms.storage import Alarm

# Monday 2025-01-06 08:00 UTC
MONDAY_MORNING = datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc)


def _center(now=MONDAY_MORNING, **kwargs) -> LocalNotificationCenter:
    center = LocalNotificationCenter(clock=lambda: now, **kwargs)
    center.register_categories(NOTIFICATION_CATEGORIES)
    return center


def _specs(hour=9, minute=3, days=(2,)):
    alarm = Alarm.create((hour, minute), "UTC", label="Sencha", repeat_days=days)
    return alarm, plan_triggers(alarm)


def test_submit_overwrites_same_identifier():
    center = _center()
    _, specs = _specs()
    for spec in specs:
        center.submit(spec)
    for spec in specs:
        center.submit(spec)
    assert center.pending_identifiers() == sorted(s.identifier for s in specs)


def test_cancel_removes_and_ignores_unknown():
    center = _center()
    _, specs = _specs()
    spec = next(iter(specs))
    center.submit(spec)
    center.cancel(spec.identifier)
    center.cancel("never-registered")
    assert center.get(spec.identifier) is None
    assert center.pending_identifiers() == []


def test_unauthorized_center_rejects_submission():
    center = _center(authorized=False)
    _, specs = _specs()
    with pytest.raises(SchedulingError):
        center.submit(next(iter(specs)))


def test_unregistered_category_is_rejected():
    center = LocalNotificationCenter(clock=lambda: MONDAY_MORNING)
    _, specs = _specs()
    main = next(s for s in specs if s.kind is TriggerKind.MAIN)
    reminder = next(s for s in specs if s.kind is TriggerKind.REMINDER)
    with pytest.raises(SchedulingError):
        center.submit(main)
    center.submit(reminder)
    assert center.pending_identifiers() == [reminder.identifier]


def test_pop_due_fires_reminder_then_main_and_rearms_weekly():
    center = _center()
    _, specs = _specs(hour=9, minute=3, days=(2,))
    for spec in specs:
        center.submit(spec)

    assert center.pop_due(MONDAY_MORNING) == []

    fired = center.pop_due(MONDAY_MORNING.replace(hour=9, minute=5))
    assert [(s.kind, at.hour, at.minute) for s, at in fired] == [
        (TriggerKind.REMINDER, 9, 0),
        (TriggerKind.MAIN, 9, 3),
    ]
    assert center.pop_due(MONDAY_MORNING.replace(hour=9, minute=6)) == []

    main = next(s for s, _ in fired if s.kind is TriggerKind.MAIN)
    assert center.next_fire(main.identifier) == datetime(2025, 1, 13, 9, 3, tzinfo=timezone.utc)


def test_store_rejections_from_center_are_reported():
    center = _center(authorized=False)
    store = AlarmStore(center, persistence=_NullPersistence())
    alarm = store.add("09:00", "UTC", label="Genmaicha", repeat_days=[5])
    assert store.alarms == (alarm,)
    assert "Notifications are not authorized" in store.reporter.last_error


def test_on_trigger_callback_receives_fired_specs():
    now = {"value": MONDAY_MORNING}
    received = []
    center = LocalNotificationCenter(
        on_trigger=lambda spec, at: received.append((spec.identifier, at)),
        clock=lambda: now["value"],
    )
    center.register_categories(NOTIFICATION_CATEGORIES)
    store = AlarmStore(center, persistence=_NullPersistence())
    alarm = store.add("08:30", "UTC", repeat_days=[2])

    now["value"] = MONDAY_MORNING + timedelta(minutes=31)
    for spec, at in center.pop_due(now["value"]):
        center._fire(spec, at)

    assert [ident for ident, _ in received] == [f"{alarm.id}_reminder_2", f"{alarm.id}_2"]


class _NullPersistence:
    def save(self, alarms):
        pass

    def load(self):
        return []
