"""
Next-task resolution.

resolve() walks an ordered list of tiers and returns the first task a tier
selects, with the tier's reason. Tasks are passed in roadmap order, which is
the final tie-break everywhere.

"Highest priority" means: ranked before unranked, A before B, then roadmap
order.

The function is pure. Any task or error change invalidates a previous
answer, so callers resolve again after every mutation.
"""

from dataclasses import dataclass
from typing import Callable, Iterable

from roadsync.lib.types import ErrorRecord, Task, TaskStatus

REASON_BLOCKED = "blocked"
REASON_RESUME_PAUSED = "resume-paused"
REASON_RESUME_TESTING = "resume-testing"
REASON_RANKED = "ranked"
REASON_DEEPEST_ACTIVE = "deepest-active"
REASON_PENDING_TESTING = "pending-testing"
REASON_NEXT_PENDING = "next-pending"
REASON_NONE = "none-actionable"

# Statuses a ranked task may have to be picked by the ranked tier
RANKABLE_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.ACTIVE, TaskStatus.PENDING_TESTING})


@dataclass(frozen=True)
class Resolution:
    task: Task | None
    reason: str

    @property
    def task_id(self) -> str | None:
        return self.task.id if self.task else None


Selector = Callable[[list[Task], frozenset[str]], "Task | None"]


def priority_key(task: Task) -> tuple:
    return (task.rank is None, task.rank or "", task.ordinal)


def _highest(tasks: Iterable[Task]) -> Task | None:
    candidates = list(tasks)
    return min(candidates, key=priority_key) if candidates else None


def blocked_tasks(errors: Iterable[ErrorRecord]) -> frozenset[str]:
    """Ids of tasks with a blocks edge from an active error."""
    return frozenset(task_id for e in errors if e.is_active for task_id in e.blocks)


def select_blocked(tasks: list[Task], blocked: frozenset[str]) -> Task | None:
    return _highest(t for t in tasks if t.id in blocked and t.status != TaskStatus.COMPLETED)


def select_paused(tasks: list[Task], blocked: frozenset[str]) -> Task | None:
    return _highest(t for t in tasks if t.status == TaskStatus.PAUSED)


def select_testing(tasks: list[Task], blocked: frozenset[str]) -> Task | None:
    return _highest(t for t in tasks if t.status == TaskStatus.TESTING)


def select_ranked(tasks: list[Task], blocked: frozenset[str]) -> Task | None:
    return _highest(
        t for t in tasks
        if t.rank and t.status in RANKABLE_STATUSES and t.id not in blocked
    )


def select_deepest_active(tasks: list[Task], blocked: frozenset[str]) -> Task | None:
    active = [t for t in tasks if t.status == TaskStatus.ACTIVE and not t.rank]
    if not active:
        return None
    return min(active, key=lambda t: (-t.depth, t.ordinal))


def select_pending_testing(tasks: list[Task], blocked: frozenset[str]) -> Task | None:
    return _highest(t for t in tasks if t.status == TaskStatus.PENDING_TESTING and not t.rank)


def select_next_pending(tasks: list[Task], blocked: frozenset[str]) -> Task | None:
    return _highest(t for t in tasks if t.status == TaskStatus.PENDING and not t.rank)


TIERS: list[tuple[str, Selector]] = [
    (REASON_BLOCKED, select_blocked),
    (REASON_RESUME_PAUSED, select_paused),
    (REASON_RESUME_TESTING, select_testing),
    (REASON_RANKED, select_ranked),
    (REASON_DEEPEST_ACTIVE, select_deepest_active),
    (REASON_PENDING_TESTING, select_pending_testing),
    (REASON_NEXT_PENDING, select_next_pending),
]


def resolve(tasks: list[Task], active_errors: Iterable[ErrorRecord]) -> Resolution:
    """Pick the single next actionable task.

    Args:
        tasks: All tasks in roadmap order
        active_errors: Error records; resolved ones are ignored

    Returns:
        Resolution with the chosen task (or None) and the tier's reason
    """
    blocked = blocked_tasks(active_errors)
    for reason, selector in TIERS:
        task = selector(tasks, blocked)
        if task is not None:
            return Resolution(task, reason)
    return Resolution(None, REASON_NONE)
