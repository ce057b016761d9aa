"""
Store/roadmap agreement checks.

After every committed command the engine re-reads the touched tasks from both
the entity store and the roadmap file and compares status, rank and the
last-update timestamp. A difference is never repaired here: picking one side
as the winner could silently drop the other side's intent.
"""

import logging
from pathlib import Path
from typing import Iterable

from roadsync.lib.errors import Drift, SynchronizationMismatchError
from roadsync.roadmap.codec import read_roadmap
from roadsync.store.adapter import EntityStoreAdapter

logger = logging.getLogger(__name__)

COMPARED_FIELDS = ("status", "rank", "updated")


class StateSynchronizer:
    def __init__(self, store: EntityStoreAdapter, roadmap_path: Path):
        self.store = store
        self.roadmap_path = roadmap_path

    def compare(self, task_ids: Iterable[str] | None = None) -> list[Drift]:
        """Fresh read of both stores; returns every disagreement found."""
        roadmap = {t.id: t for t in read_roadmap(self.roadmap_path).tasks}
        records = self.store.list_tasks()

        ids = sorted(set(task_ids)) if task_ids is not None else sorted(set(roadmap) | set(records))
        drifts = []
        for task_id in ids:
            task = roadmap.get(task_id)
            record = records.get(task_id)
            if task is None or record is None:
                drifts.append(Drift(
                    task_id, "presence",
                    "present" if record else "missing",
                    "present" if task else "missing",
                ))
                continue
            for name in COMPARED_FIELDS:
                store_value = getattr(record, name)
                roadmap_value = getattr(task, name)
                if name == "status":
                    store_value, roadmap_value = store_value.value, roadmap_value.value
                if store_value != roadmap_value:
                    drifts.append(Drift(task_id, name, store_value, roadmap_value))
        return drifts

    def verify(self, task_ids: Iterable[str], operation: str = "") -> None:
        """Raise SynchronizationMismatchError if any touched task drifted."""
        task_ids = list(task_ids)
        drifts = self.compare(task_ids)
        if drifts:
            for drift in drifts:
                logger.error(f"[SYNC] {operation}: {drift}")
            raise SynchronizationMismatchError(drifts=drifts, operation=operation)
        logger.debug(f"[SYNC] {operation}: {len(task_ids)} task(s) in agreement")

    def audit(self) -> list[Drift]:
        """Compare every task known to either store."""
        return self.compare()
