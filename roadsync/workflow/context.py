"""
Per-command working copy.

A Work holds the freshly read roadmap document and task records plus
everything a handler wants to change. Nothing here performs I/O: the engine
commits the changeset, writes the roadmap, verifies and notifies once the
handler returns.
"""

import re
from dataclasses import dataclass, field, replace

from roadsync.lib.constants import ENTITY_SESSION, ENTITY_TASK
from roadsync.lib.errors import InvalidTransitionError
from roadsync.lib.types import (
    SessionStatus,
    Task,
    TaskRecord,
    TaskStatus,
    TransitionEvent,
    WorkSession,
)
from roadsync.roadmap.codec import RoadmapDocument
from roadsync.store.adapter import Changeset
from roadsync.workflow.fsm import SessionFSM, TaskFSM

PAUSE_NOTE_RE = re.compile(r'\s*\[Paused: SWS [A-Z]+-\d+\]')


def with_pause_note(note: str | None, save_id: str) -> str:
    marker = f"[Paused: SWS {save_id}]"
    return f"{without_pause_note(note) or ''} {marker}".strip()


def without_pause_note(note: str | None) -> str | None:
    if not note:
        return None
    return PAUSE_NOTE_RE.sub("", note).strip() or None


@dataclass
class Work:
    command: str
    doc: RoadmapDocument
    records: dict[str, TaskRecord]
    timestamp: str
    today: str
    changes: Changeset = field(default_factory=Changeset)
    events: list[TransitionEvent] = field(default_factory=list)
    touched: set[str] = field(default_factory=set)
    roadmap_changed: bool = False

    def task(self, task_id: str) -> Task:
        task = self.doc.get(task_id)
        if task is None:
            raise InvalidTransitionError("unknown task", f"{task_id} is not on the roadmap")
        if task_id not in self.records:
            raise InvalidTransitionError("unregistered task", f"{task_id} is not in the entity store (run import)")
        return task

    def record(self, task_id: str) -> TaskRecord:
        self.task(task_id)
        return self.records[task_id]

    def log(self, entity_id: str, detail: str) -> None:
        self.changes.note(entity_id, f"[{self.timestamp}] {self.command}: {detail}")

    def event(self, entity_id: str, entity_type: str, from_state: str, to_state: str) -> None:
        self.events.append(TransitionEvent(
            entity_id, entity_type, from_state, to_state, self.command, self.timestamp,
        ))

    def set_task(self, task_id: str, to_status: TaskStatus, detail: str = "",
                 roadmap: dict | None = None, store: dict | None = None) -> Task:
        """Move a task to to_status on both sides.

        Args:
            roadmap: extra Task fields to change on the roadmap line
            store: extra state keys to write on the Task entity

        Raises:
            InvalidTransitionError: if the task FSM has no such transition
        """
        task = self.task(task_id)
        TaskFSM(task.id, task.status).advance(to_status, self.command)

        updated = replace(task, status=to_status, updated=self.timestamp, **(roadmap or {}))
        self.doc.update(updated)
        self.roadmap_changed = True

        fields = {"status": to_status.value, "updated": self.timestamp}
        fields.update(store or {})
        self.changes.set(task.id, **fields)

        if task.status != to_status:
            line = f"{task.status.value} -> {to_status.value}"
            self.log(task.id, f"{line} ({detail})" if detail else line)
            self.event(task.id, ENTITY_TASK, task.status.value, to_status.value)
        self.touched.add(task.id)
        return updated

    def set_session(self, session: WorkSession, trigger: str, guarded: bool = True,
                    detail: str = "", **fields) -> WorkSession:
        """Fire a session trigger and record the new status.

        Raises:
            ApprovalStateViolation: guarded trigger while approval is pending
            InvalidTransitionError: trigger not valid from the current status
        """
        fsm = SessionFSM(session.id, session.status, session.awaiting_approval)
        if guarded:
            fsm.guarded(trigger, self.command)
        else:
            fsm.fire(trigger, self.command)

        self.changes.set(session.id, status=fsm.status.value, **fields)
        line = f"{session.status.value} -> {fsm.status.value}"
        self.log(session.id, f"{line} ({detail})" if detail else line)
        self.event(session.id, ENTITY_SESSION, session.status.value, fsm.status.value)

        changed = {"status": fsm.status}
        if "ended" in fields:
            changed["ended"] = fields["ended"]
        if "awaiting_approval" in fields:
            changed["awaiting_approval"] = fields["awaiting_approval"] == "true"
        return replace(session, **changed)


def require_session(session: WorkSession | None, status: SessionStatus) -> WorkSession:
    if session is None or session.status != status:
        raise InvalidTransitionError(
            f"no {status.value.lower()} session",
            "begin or resume a session first" if status == SessionStatus.ACTIVE else "nothing to resume",
        )
    return session
