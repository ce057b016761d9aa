"""
Shared data types for roadsync.

Dataclasses and enums used by the roadmap codec, the entity store adapter and
the workflow engine. Kept in one module to avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum


class TaskStatus(Enum):
    """Task lifecycle states. Values match the FSM state strings."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    PENDING_TESTING = "PENDING_TESTING"
    TESTING = "TESTING"
    BLOCKED = "BLOCKED"
    COMPLETED = "COMPLETED"


class SessionStatus(Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    ENDED = "ENDED"


class VerificationStatus(Enum):
    PENDING_USER_INITIATION = "PENDING_USER_INITIATION"
    ACTIVE = "ACTIVE"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ErrorStatus(Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class Task:
    """A unit of trackable work as it appears on the roadmap."""
    id: str
    name: str
    status: TaskStatus
    rank: str | None = None            # A (highest) .. Z
    due: str | None = None             # MM.DD.YY
    done: str | None = None            # MM.DD.YY, completed tasks only
    updated: str | None = None         # "MM.DD.YY | HH:MM AM TZ"
    note: str | None = None
    parent_id: str | None = None
    ordinal: int = 0                   # Document order
    depth: int = 0                     # Nesting level, 0 = top
    section: str | None = None         # Nearest markdown heading


@dataclass(frozen=True)
class TaskRecord:
    """A Task as the entity store sees it."""
    id: str
    name: str
    status: TaskStatus
    rank: str | None = None
    updated: str | None = None
    prior_status: TaskStatus | None = None   # Restored when the last blocker resolves
    resume_status: TaskStatus | None = None  # Restored on session resume
    log: tuple[str, ...] = ()


@dataclass(frozen=True)
class WorkSession:
    id: str
    status: SessionStatus
    target_task_id: str
    session_type: str = "feature"
    started: str | None = None
    ended: str | None = None
    awaiting_approval: bool = False


@dataclass(frozen=True)
class WorkSessionSave:
    id: str
    session_id: str
    saved_at: str
    reason: str = ""
    consumed: bool = False


@dataclass(frozen=True)
class ErrorRecord:
    """A blocking fault and the tasks it blocks."""
    id: str
    status: ErrorStatus
    description: str = ""
    blocks: tuple[str, ...] = ()

    @property
    def is_active(self) -> bool:
        return self.status == ErrorStatus.ACTIVE


@dataclass(frozen=True)
class VerificationRequest:
    id: str
    task_id: str
    status: VerificationStatus
    evidence: "Evidence | None" = None    # As gathered on entering the approval queue


@dataclass(frozen=True)
class Evidence:
    """Result of the evidence-gathering hook."""
    passed: bool
    summary: str = ""
    artifacts: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TransitionEvent:
    """A committed status change, handed to the notification hook."""
    entity_id: str
    entity_type: str
    from_state: str
    to_state: str
    command: str
    timestamp: str
