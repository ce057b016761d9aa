"""
todo.txt export for the roadmap.

Renders tasks as todo.txt lines, e.g.

    (A) @active Implement feature X - src:+Auth - due:2025-04-22
    x @completed Fix bug Y - done:2025-04-10 - ts:04.10.25_10:00 AM PDT

The output is regenerated from the roadmap on every run; manual edits to the
exported file are lost.
"""

import logging
import re
from enum import Enum
from pathlib import Path

from roadsync.lib.types import Task, TaskStatus

logger = logging.getLogger(__name__)


class SortMode(Enum):
    RWS = "RWS"        # Rank, status group, depth (active only), document order
    STATUS = "STATUS"  # Status group, document order
    ALPHA = "ALPHA"    # Task name, document order
    SOURCE = "SOURCE"  # Section, then RWS


# Lower group sorts first
STATUS_GROUP = {
    TaskStatus.PAUSED: 1,
    TaskStatus.TESTING: 2,
    TaskStatus.ACTIVE: 3,
    TaskStatus.PENDING: 4,
    TaskStatus.BLOCKED: 5,
    TaskStatus.PENDING_TESTING: 99,
    TaskStatus.COMPLETED: 100,
}

SECTION_PREFIX_RE = re.compile(r'^(Phase|Task|Subtask)\s*\d+(\.\d+)*:?\s*')
TS_SEPARATOR_RE = re.compile(r'\s*\|\s*')


def _rws_key(task: Task) -> tuple:
    group = STATUS_GROUP[task.status]
    depth_key = -task.depth if task.status == TaskStatus.ACTIVE else 0
    return (task.rank is None, task.rank or "", group, depth_key, task.ordinal)


def sort_tasks(tasks: list[Task], mode: SortMode = SortMode.RWS) -> list[Task]:
    """Sort tasks for export. Completed tasks always trail in document order."""
    incomplete = [t for t in tasks if t.status != TaskStatus.COMPLETED]
    completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]

    if mode == SortMode.ALPHA:
        incomplete.sort(key=lambda t: (t.name.lower(), t.ordinal))
    elif mode == SortMode.STATUS:
        incomplete.sort(key=lambda t: (STATUS_GROUP[t.status], t.ordinal))
    elif mode == SortMode.SOURCE:
        incomplete.sort(key=lambda t: (source_tag(t), _rws_key(t)))
    else:
        incomplete.sort(key=_rws_key)

    return incomplete + completed


def source_tag(task: Task) -> str:
    """Sanitized section heading for the src:+ tag."""
    if not task.section:
        return ""
    cleaned = SECTION_PREFIX_RE.sub("", task.section)
    return re.sub(r'[\s&]+', '', cleaned)


def to_iso_date(mmddyy: str | None) -> str | None:
    """MM.DD.YY -> YYYY-MM-DD. Years 00-50 are 20xx."""
    if not mmddyy:
        return None
    match = re.match(r'^(\d{2})\.(\d{2})\.(\d{2})$', mmddyy)
    if not match:
        return None
    year = int(match.group(3))
    full_year = 2000 + year if year <= 50 else 1900 + year
    return f"{full_year}-{match.group(1)}-{match.group(2)}"


def format_todo_line(task: Task, priority: str | None) -> str:
    line = ""
    if task.status == TaskStatus.COMPLETED:
        line += "x "
    elif priority:
        line += f"({priority}) "

    line += f"@{task.status.value.lower().replace('_', '')} {task.name}"

    metadata = []
    src = source_tag(task)
    if src:
        metadata.append(f"src:+{src}")
    due = to_iso_date(task.due)
    if due:
        metadata.append(f"due:{due}")
    if task.status == TaskStatus.COMPLETED:
        done = to_iso_date(task.done)
        if done:
            metadata.append(f"done:{done}")
    if task.updated:
        metadata.append("ts:" + TS_SEPARATOR_RE.sub("_", task.updated))

    if metadata:
        line += " - " + " - ".join(metadata)
    return line


def export_todotxt(tasks: list[Task], mode: SortMode = SortMode.RWS) -> list[str]:
    """Render tasks as todo.txt lines.

    In RWS mode ranked tasks keep their rank as priority; unranked open tasks
    get sequential priorities starting after the highest explicit rank, until
    Z is exhausted.
    """
    ordered = sort_tasks(tasks, mode)

    next_priority = ord("A")
    if mode == SortMode.RWS:
        ranks = [t.rank for t in ordered if t.rank]
        if ranks:
            next_priority = ord(max(ranks)) + 1

    lines = []
    for task in ordered:
        priority = None
        if mode == SortMode.RWS:
            if task.rank:
                priority = task.rank
            elif task.status != TaskStatus.COMPLETED and next_priority <= ord("Z"):
                priority = chr(next_priority)
                next_priority += 1
        lines.append(format_todo_line(task, priority))

    logger.info(f"[TODO] Rendered {len(lines)} lines (sort: {mode.value})")
    return lines


def write_todotxt(path: Path, tasks: list[Task], mode: SortMode = SortMode.RWS) -> int:
    """Write the todo.txt export. Returns the number of lines written."""
    lines = export_todotxt(tasks, mode)
    path.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")
    return len(lines)
