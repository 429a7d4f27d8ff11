from __future__ import annotations

import itertools
import logging
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from functools import partial
from threading import Lock
from typing import Callable, Iterable, Iterator, List, Optional, Tuple, Union

from .errors import ErrorReporter
from .interfaces import NotificationScheduler, PersistenceStore, RemoteStore
from .planner import TriggerKind, TriggerSpec, plan_triggers, trigger_identifiers
from .storage import Alarm

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlarmsChanged:
    kind: str  # "added", "removed", "loaded" or "replaced"
    alarms: Tuple[Alarm, ...]
    alarm: Optional[Alarm] = None


Listener = Callable[[AlarmsChanged], None]


class AlarmStore:
    """Owns the alarm collection and keeps derived triggers in step with it.

    Collaborator calls are fire-and-forget: with an ``executor`` they run in
    the background, otherwise inline. Either way a failing collaborator is
    reported through ``reporter`` and never interrupts the operation.
    """

    def __init__(
        self,
        notifier: NotificationScheduler,
        persistence: PersistenceStore,
        remote: Optional[RemoteStore] = None,
        reporter: Optional[ErrorReporter] = None,
        executor: Optional[Executor] = None,
    ):
        self.notifier = notifier
        self.persistence = persistence
        self.remote = remote
        self.reporter = reporter or ErrorReporter()
        self.executor = executor

        self._alarms: List[Alarm] = []
        self._lock = Lock()
        self._listeners: List[Listener] = []
        self._save_lock = Lock()
        self._save_seq = itertools.count(1)
        self._last_saved_seq = 0

    @property
    def alarms(self) -> Tuple[Alarm, ...]:
        with self._lock:
            return tuple(self._alarms)

    def __len__(self) -> int:
        with self._lock:
            return len(self._alarms)

    def __iter__(self) -> Iterator[Alarm]:
        return iter(self.alarms)

    def get(self, alarm_id: str) -> Optional[Alarm]:
        with self._lock:
            for alarm in self._alarms:
                if alarm.id == alarm_id:
                    return alarm
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def add(
        self,
        time_of_day,
        time_zone: Optional[str],
        label: str = "",
        subtitle: str = "",
        repeat_days: Optional[Iterable[int]] = None,
    ) -> Alarm:
        alarm = Alarm.create(time_of_day, time_zone, label=label, subtitle=subtitle, repeat_days=repeat_days)
        specs = plan_triggers(alarm)
        with self._lock:
            self._alarms.append(alarm)
            snapshot = tuple(self._alarms)
        logger.info(
            "Alarm %s added at %s %s on %s (label=%s)",
            alarm.id,
            alarm.time_of_day,
            alarm.time_zone,
            alarm.describe_days(),
            alarm.label,
        )
        self._submit(alarm, specs)
        self._save(snapshot)
        if self.remote is not None:
            self._dispatch("Error uploading alarm to remote store", self.remote.upload, alarm)
        self._emit(AlarmsChanged("added", snapshot, alarm))
        return alarm

    def remove(self, index_or_id: Union[int, str]) -> Optional[Alarm]:
        """Remove an alarm by 0-based position or by id.

        Returns the removed alarm, or None when nothing matches.
        """
        with self._lock:
            alarm = self._find(index_or_id)
        if alarm is None:
            logger.info("No alarm matches %r, nothing removed", index_or_id)
            return None

        for identifier in trigger_identifiers(alarm):
            self._cancel(identifier)
        if self.remote is not None:
            self._dispatch("Error deleting alarm from remote store", self.remote.delete, alarm.id)

        with self._lock:
            self._alarms = [a for a in self._alarms if a.id != alarm.id]
            snapshot = tuple(self._alarms)
        logger.info("Removed alarm %s (%s)", alarm.id, alarm.label)
        self._save(snapshot)
        self._emit(AlarmsChanged("removed", snapshot, alarm))
        return alarm

    def load_from_persistence(self) -> List[Alarm]:
        try:
            loaded = [alarm.normalized() for alarm in self.persistence.load() or []]
        except Exception as exc:
            self.reporter.report(f"Error loading alarms: {exc}")
            loaded = []
        with self._lock:
            self._alarms = loaded
            snapshot = tuple(self._alarms)
        logger.info("Loaded %s alarms from persistence", len(snapshot))
        for alarm in snapshot:
            self.schedule(alarm)
        self._emit(AlarmsChanged("loaded", snapshot))
        return list(snapshot)

    def replace_all(self, alarms: Iterable[Alarm], save: bool = True) -> List[Alarm]:
        """Swap the whole collection for ``alarms`` and re-plan every trigger."""
        with self._lock:
            self._alarms = [alarm.normalized() for alarm in alarms]
            snapshot = tuple(self._alarms)
        logger.info("Alarm collection replaced (%s alarms)", len(snapshot))
        for alarm in snapshot:
            self.schedule(alarm)
        if save:
            self._save(snapshot)
        self._emit(AlarmsChanged("replaced", snapshot))
        return list(snapshot)

    def schedule(self, alarm: Alarm) -> None:
        try:
            specs = plan_triggers(alarm)
        except ValueError as exc:
            self.reporter.report(f"Error planning triggers for {alarm.label}: {exc}")
            return
        self._submit(alarm, specs)

    def cancel_triggers(self, alarm: Alarm) -> List[str]:
        identifiers = trigger_identifiers(alarm)
        for identifier in identifiers:
            self._cancel(identifier)
        return identifiers

    def _find(self, index_or_id: Union[int, str]) -> Optional[Alarm]:
        if isinstance(index_or_id, bool):
            return None
        if isinstance(index_or_id, int):
            if 0 <= index_or_id < len(self._alarms):
                return self._alarms[index_or_id]
            return None
        for alarm in self._alarms:
            if alarm.id == index_or_id:
                return alarm
        return None

    def _submit(self, alarm: Alarm, specs: Iterable[TriggerSpec]) -> None:
        for spec in sorted(specs, key=lambda s: s.identifier):
            what = "notification" if spec.kind is TriggerKind.MAIN else "reminder"
            failure = f"Error scheduling {what} for {alarm.label} on weekday {spec.weekday}"
            self._dispatch(failure, self.notifier.submit, spec)

    def _cancel(self, identifier: str) -> None:
        self._dispatch(f"Cancelling trigger {identifier} failed", self.notifier.cancel, identifier, report=False)

    def _save(self, snapshot: Tuple[Alarm, ...]) -> None:
        self._dispatch("Error saving alarms", self._write_snapshot, next(self._save_seq), snapshot)

    def _write_snapshot(self, seq: int, snapshot: Tuple[Alarm, ...]) -> None:
        with self._save_lock:
            if seq < self._last_saved_seq:
                logger.debug("Skipping stale alarm snapshot #%s", seq)
                return
            self.persistence.save(list(snapshot))
            self._last_saved_seq = seq

    def _dispatch(self, failure: str, fn: Callable, *args, report: bool = True) -> None:
        if self.executor is None:
            try:
                fn(*args)
            except Exception as exc:
                self._failed(failure, exc, report)
            return
        try:
            future = self.executor.submit(fn, *args)
        except RuntimeError as exc:
            self._failed(failure, exc, report)
            return
        future.add_done_callback(partial(self._on_done, failure, report))

    def _on_done(self, failure: str, report: bool, future: Future) -> None:
        if future.cancelled():
            logger.debug("%s: call cancelled", failure)
            return
        exc = future.exception()
        if exc is not None:
            self._failed(failure, exc, report)

    def _failed(self, failure: str, exc: BaseException, report: bool) -> None:
        if report:
            self.reporter.report(f"{failure}: {exc}")
        else:
            logger.warning("%s: %s", failure, exc)

    def _emit(self, event: AlarmsChanged) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:  # pragma: no cover - callback safety
                logger.error("Alarm change listener failed", exc_info=True)
