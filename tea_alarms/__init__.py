"""Recurring tea alarm scheduling core."""

from .errors import ErrorReporter, PersistenceError, RemoteError, SchedulingError, TeaAlarmError
from .manager import AlarmsChanged, AlarmStore
from .notifier import LocalNotificationCenter
from .planner import TriggerKind, TriggerSpec, next_fire_at, plan_triggers, trigger_identifiers
from .storage import Alarm, JsonAlarmStorage, TimeOfDay
from .sync import SyncReconciler
