"""
Task id validation and renumbering.

Ids are PREFIX-N with up to two dotted sub-levels for children and
grandchildren (UI-3, UI-3.1, UI-3.1.2). Renumbering walks the roadmap in
file order: each top-level task with an allowed prefix takes the next number
for that prefix, and its children and grandchildren are numbered under the
new parent id. Tasks with any other prefix keep their ids, and so do their
descendants.
"""

import logging
import shutil
from dataclasses import dataclass, replace
from pathlib import Path

from roadsync.lib.constants import DEFAULT_ID_PREFIXES
from roadsync.lib.types import TaskStatus
from roadsync.roadmap.codec import RoadmapDocument, TaskLine, decode, encode

logger = logging.getLogger(__name__)

# PREFIX-N.N.N at most
MAX_ID_DEPTH = 3

BACKUP_SUFFIX = ".bak"


@dataclass(frozen=True)
class IdIssue:
    line_number: int
    task_id: str
    message: str

    def __str__(self):
        return f"Line {self.line_number}: {self.task_id} {self.message}"


def id_prefix(task_id: str) -> str:
    return task_id.split("-", 1)[0]


def id_levels(task_id: str) -> int:
    return task_id.split("-", 1)[1].count(".") + 1


def validate_ids(doc: RoadmapDocument, prefixes=DEFAULT_ID_PREFIXES) -> list[IdIssue]:
    """Check every task id against the allowed prefixes and the nesting limit."""
    issues = []
    for entry in doc.entries:
        if not isinstance(entry, TaskLine):
            continue
        task = entry.task

        def issue(message):
            issues.append(IdIssue(entry.line_number, task.id, message))

        if id_prefix(task.id) not in prefixes:
            issue(f"has prefix '{id_prefix(task.id)}', not one of {', '.join(prefixes)}")
        if id_levels(task.id) > MAX_ID_DEPTH:
            issue(f"has {id_levels(task.id)} levels (max {MAX_ID_DEPTH})")
        if task.depth >= MAX_ID_DEPTH:
            issue(f"is nested {task.depth} levels deep (max {MAX_ID_DEPTH - 1})")
        elif task.parent_id and not task.id.startswith(task.parent_id + "."):
            issue(f"is not numbered under its parent {task.parent_id}")
        if task.status == TaskStatus.COMPLETED and not task.done:
            issue("is completed without a done date")
    return issues


def plan_renumber(doc: RoadmapDocument, prefixes=DEFAULT_ID_PREFIXES) -> dict[str, str]:
    """Map old id -> new id for every task whose id changes."""
    counters: dict[str, int] = {}
    new_ids: dict[str, str] = {}
    for task in doc.tasks:
        if task.parent_id is None:
            prefix = id_prefix(task.id)
            if prefix not in prefixes:
                continue
            counters[prefix] = counters.get(prefix, 0) + 1
            new_ids[task.id] = f"{prefix}-{counters[prefix]}"
        elif task.parent_id in new_ids and task.depth < MAX_ID_DEPTH:
            parent = new_ids[task.parent_id]
            counters[parent] = counters.get(parent, 0) + 1
            new_ids[task.id] = f"{parent}.{counters[parent]}"
    return {old: new for old, new in new_ids.items() if old != new}


def apply_renumber(doc: RoadmapDocument, mapping: dict[str, str]) -> RoadmapDocument:
    """Return a copy of doc with ids replaced.

    Raises:
        MalformedLineError: a new id collides with one that was kept
    """
    renumbered = decode(encode(doc))
    for entry in renumbered.entries:
        if isinstance(entry, TaskLine) and entry.task.id in mapping:
            entry.task = replace(entry.task, id=mapping[entry.task.id])
    return decode(encode(renumbered))


def backup_roadmap(path: Path) -> Path:
    """Copy the roadmap next to itself with a .bak suffix."""
    backup = path.with_name(path.name + BACKUP_SUFFIX)
    shutil.copy2(path, backup)
    logger.info(f"[ROADMAP] Backed up {path} to {backup}")
    return backup
