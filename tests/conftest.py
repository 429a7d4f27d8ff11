from typing import Dict, List

import pytest

from tea_alarms.errors import ErrorReporter, PersistenceError, RemoteError, SchedulingError
from tea_alarms.manager import AlarmStore


class RecordingNotifier:
    def __init__(self):
        self.registered: Dict[str, object] = {}
        self.submitted: List[str] = []
        self.cancelled: List[str] = []
        self.fail_kinds = set()

    def submit(self, spec):
        if spec.kind in self.fail_kinds:
            raise SchedulingError("permission revoked")
        self.submitted.append(spec.identifier)
        self.registered[spec.identifier] = spec

    def cancel(self, identifier):
        self.cancelled.append(identifier)
        self.registered.pop(identifier, None)


class MemoryPersistence:
    def __init__(self, alarms=None):
        self.stored = list(alarms or [])
        self.saves = 0
        self.fail_save = False
        self.fail_load = False

    def save(self, alarms):
        if self.fail_save:
            raise PersistenceError("disk full")
        self.saves += 1
        self.stored = list(alarms)

    def load(self):
        if self.fail_load:
            raise PersistenceError("cannot decode alarms.json")
        return list(self.stored)


class MemoryRemote:
    def __init__(self, alarms=None):
        self.records = {a.id: a for a in alarms or []}
        self.uploaded: List[str] = []
        self.deleted: List[str] = []
        self.fail = False

    def upload(self, alarm):
        if self.fail:
            raise RemoteError("network unreachable")
        self.uploaded.append(alarm.id)
        self.records[alarm.id] = alarm

    def delete(self, alarm_id):
        if self.fail:
            raise RemoteError("network unreachable")
        self.deleted.append(alarm_id)
        self.records.pop(alarm_id, None)

    def fetch_all(self):
        if self.fail:
            raise RemoteError("network unreachable")
        return list(self.records.values())


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def persistence():
    return MemoryPersistence()


@pytest.fixture
def remote():
    return MemoryRemote()


@pytest.fixture
def reporter():
    return ErrorReporter()


@pytest.fixture
def store(notifier, persistence, remote, reporter):
    return AlarmStore(notifier=notifier, persistence=persistence, remote=remote, reporter=reporter)
