"""Remote snapshot reconciliation.

Policy is last-fetch-wins: a fetched snapshot replaces the local collection
wholesale, with no per-field merge and no conflict detection. Triggers of
alarms deleted elsewhere survive the swap unless ``cancel_missing`` is set.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .errors import ErrorReporter
from .interfaces import RemoteStore
from .manager import AlarmStore
from .storage import Alarm

logger = logging.getLogger(__name__)


class SyncReconciler:
    def __init__(
        self,
        store: AlarmStore,
        remote: RemoteStore,
        reporter: Optional[ErrorReporter] = None,
    ):
        self.store = store
        self.remote = remote
        self.reporter = reporter or store.reporter

    def reconcile(self, snapshot: Iterable[Alarm], cancel_missing: bool = False) -> List[Alarm]:
        incoming = list(snapshot)
        if cancel_missing:
            remote_ids = {alarm.id for alarm in incoming}
            for alarm in self.store.alarms:
                if alarm.id not in remote_ids:
                    logger.info("Alarm %s absent from remote snapshot, cancelling its triggers", alarm.id)
                    self.store.cancel_triggers(alarm)
        return self.store.replace_all(incoming)

    def refresh(self, cancel_missing: bool = False) -> Optional[List[Alarm]]:
        try:
            snapshot = list(self.remote.fetch_all())
        except Exception as exc:
            self.reporter.report(f"Error fetching alarms from remote store: {exc}")
            return None
        logger.info("Fetched %s alarms from remote store", len(snapshot))
        return self.reconcile(snapshot, cancel_missing=cancel_missing)

    def push_all(self) -> int:
        """Upload every local alarm; returns how many uploads succeeded."""
        uploaded = 0
        for alarm in self.store.alarms:
            try:
                self.remote.upload(alarm)
            except Exception as exc:
                self.reporter.report(f"Error uploading alarm to remote store: {exc}")
                continue
            uploaded += 1
        return uploaded
