"""
Engine commands and results.

Commands form a closed set: Engine.apply() dispatches on the command class,
and every class here has exactly one handler.
"""

from dataclasses import dataclass, field
from typing import Union

from roadsync.lib.types import WorkSession


@dataclass(frozen=True)
class ImportTasks:
    """Register roadmap tasks that the entity store does not know yet."""


@dataclass(frozen=True)
class BeginSession:
    session_type: str = "feature"
    task_id: str | None = None


@dataclass(frozen=True)
class SaveSession:
    reason: str = ""


@dataclass(frozen=True)
class ResumeSession:
    save_id: str | None = None


@dataclass(frozen=True)
class EndSession:
    reason: str


@dataclass(frozen=True)
class StartTesting:
    task_id: str | None = None


@dataclass(frozen=True)
class EnterApprovalQueue:
    task_id: str | None = None


@dataclass(frozen=True)
class Approve:
    task_id: str


@dataclass(frozen=True)
class Reject:
    task_id: str
    reason: str


@dataclass(frozen=True)
class RaiseError:
    description: str
    task_ids: tuple[str, ...]
    error_id: str | None = None


@dataclass(frozen=True)
class ResolveError:
    error_id: str


@dataclass(frozen=True)
class RenumberIds:
    dry_run: bool = False


@dataclass(frozen=True)
class StatusCheck:
    pass


Command = Union[
    ImportTasks,
    BeginSession,
    SaveSession,
    ResumeSession,
    EndSession,
    StartTesting,
    EnterApprovalQueue,
    Approve,
    Reject,
    RaiseError,
    ResolveError,
    RenumberIds,
    StatusCheck,
]

COMMAND_NAMES = {
    ImportTasks: "import",
    BeginSession: "begin-session",
    SaveSession: "save-session",
    ResumeSession: "resume-session",
    EndSession: "end-session",
    StartTesting: "start-testing",
    EnterApprovalQueue: "enter-approval-queue",
    Approve: "approve",
    Reject: "reject",
    RaiseError: "raise-error",
    ResolveError: "resolve-error",
    RenumberIds: "renumber-ids",
    StatusCheck: "status-check",
}


def command_name(command) -> str:
    return COMMAND_NAMES[type(command)]


@dataclass(frozen=True)
class EngineState:
    """The current (ACTIVE or PAUSED) work session, threaded through every call."""
    session: WorkSession | None = None


@dataclass
class CommandResult:
    ok: bool
    message: str
    task_id: str | None = None
    reason: str | None = None
    data: dict = field(default_factory=dict)

    @classmethod
    def rejected(cls, message: str, **data) -> "CommandResult":
        return cls(ok=False, message=message, data=data)
