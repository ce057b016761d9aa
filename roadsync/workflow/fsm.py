"""Task, session and verification state machines using the transitions library.

Each machine wraps one record. Triggers are the named actions the engine may
take; anything not listed raises MachineError, which the wrappers turn into
InvalidTransitionError. Session triggers that must not run while approval is
pending are guarded with `unless`.

Usage:
    from roadsync.workflow.fsm import TaskFSM

    fsm = TaskFSM(task.id, task.status)
    fsm.advance(TaskStatus.PAUSED, "save-session")
    fsm.status  # TaskStatus.PAUSED
"""

import logging

from transitions import Machine, MachineError

from roadsync.lib.errors import ApprovalStateViolation, InvalidTransitionError
from roadsync.lib.types import SessionStatus, TaskStatus, VerificationStatus

logger = logging.getLogger(__name__)


TASK_STATES = [s.value for s in TaskStatus]

# Statuses a blocking error can override and later restore
BLOCKABLE = ["PENDING", "ACTIVE", "PAUSED", "PENDING_TESTING", "TESTING"]

TASK_TRANSITIONS = [
    # Session begin
    {"trigger": "begin", "source": ["PENDING", "BLOCKED"], "dest": "ACTIVE"},

    # Session save / resume
    {"trigger": "pause", "source": ["ACTIVE", "TESTING"], "dest": "PAUSED"},
    {"trigger": "resume_active", "source": "PAUSED", "dest": "ACTIVE"},
    {"trigger": "resume_testing", "source": "PAUSED", "dest": "TESTING"},

    # Testing and approval
    {"trigger": "submit_for_testing", "source": "ACTIVE", "dest": "PENDING_TESTING"},
    {"trigger": "start_testing", "source": "PENDING_TESTING", "dest": "TESTING"},
    {"trigger": "approve", "source": "TESTING", "dest": "COMPLETED"},
    {"trigger": "reject", "source": "TESTING", "dest": "ACTIVE"},
]
# Blocking errors: any open status to BLOCKED and back to where it was
TASK_TRANSITIONS += [{"trigger": "block", "source": s, "dest": "BLOCKED"} for s in BLOCKABLE]
TASK_TRANSITIONS += [{"trigger": f"unblock_to_{s.lower()}", "source": "BLOCKED", "dest": s} for s in BLOCKABLE]


SESSION_STATES = [s.value for s in SessionStatus]

SESSION_TRANSITIONS = [
    {"trigger": "save", "source": "ACTIVE", "dest": "PAUSED", "unless": "awaiting_approval"},
    {"trigger": "resume", "source": "PAUSED", "dest": "ACTIVE", "unless": "awaiting_approval"},
    {"trigger": "end", "source": "ACTIVE", "dest": "ENDED", "unless": "awaiting_approval"},
    # Approval outcome ends the session regardless of the pending flag
    {"trigger": "finish_approved", "source": "ACTIVE", "dest": "ENDED"},
]


VERIFICATION_STATES = [s.value for s in VerificationStatus]

VERIFICATION_TRANSITIONS = [
    {"trigger": "start", "source": "PENDING_USER_INITIATION", "dest": "ACTIVE"},
    {"trigger": "approve", "source": "ACTIVE", "dest": "APPROVED"},
    {"trigger": "reject", "source": "ACTIVE", "dest": "REJECTED"},
]


def _build_trigger_lookup(transitions: list[dict]) -> dict[tuple[str, str], str]:
    """Build lookup from (source, dest) -> trigger name. First trigger wins."""
    lookup: dict[tuple[str, str], str] = {}
    for t in transitions:
        sources = t["source"] if isinstance(t["source"], list) else [t["source"]]
        for source in sources:
            lookup.setdefault((source, t["dest"]), t["trigger"])
    return lookup


TASK_TRIGGER_FOR = _build_trigger_lookup(TASK_TRANSITIONS)


class _RecordFSM:
    """Shared machinery: one Machine per record, history of applied changes."""

    kind = "record"

    def __init__(self, record_id: str, initial: str, states: list[str], transitions: list[dict]):
        self.record_id = record_id
        self.history: list[tuple[str, str, str]] = []
        self.machine = Machine(
            model=self,
            states=states,
            transitions=transitions,
            initial=initial,
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    def on_state_change(self, event) -> None:
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name
        logger.info(f"[FSM] {self.kind} {self.record_id}: {from_state} -> {to_state} ({trigger})")
        self.history.append((from_state, to_state, trigger))

    def fire(self, trigger: str, command: str) -> None:
        try:
            getattr(self, trigger)()
        except (MachineError, AttributeError) as e:
            raise InvalidTransitionError(
                "invalid transition", f"{self.kind} {self.record_id} cannot {trigger} from {self.state} ({command})"
            ) from e


class TaskFSM(_RecordFSM):
    """State machine for one task."""

    kind = "task"

    def __init__(self, task_id: str, status: TaskStatus):
        super().__init__(task_id, status.value, TASK_STATES, TASK_TRANSITIONS)

    @property
    def status(self) -> TaskStatus:
        return TaskStatus(self.state)

    def advance(self, to_status: TaskStatus, command: str) -> None:
        """Move to to_status via whichever trigger connects the two states."""
        if self.state == to_status.value:
            logger.debug(f"[FSM] task {self.record_id}: already {to_status.value}, no-op")
            return
        trigger = TASK_TRIGGER_FOR.get((self.state, to_status.value))
        if trigger is None:
            raise InvalidTransitionError(
                "invalid transition",
                f"task {self.record_id} cannot go {self.state} -> {to_status.value} ({command})",
            )
        self.fire(trigger, command)


class SessionFSM(_RecordFSM):
    """State machine for one work session."""

    kind = "session"

    def __init__(self, session_id: str, status: SessionStatus, awaiting_approval: bool = False):
        self.awaiting_approval = awaiting_approval
        super().__init__(session_id, status.value, SESSION_STATES, SESSION_TRANSITIONS)

    @property
    def status(self) -> SessionStatus:
        return SessionStatus(self.state)

    def guarded(self, trigger: str, command: str) -> None:
        """Fire a guarded trigger; a pending approval refuses it."""
        if self.awaiting_approval:
            raise ApprovalStateViolation(command, self.record_id)
        try:
            fired = getattr(self, trigger)()
        except MachineError as e:
            raise InvalidTransitionError(
                "invalid transition", f"session {self.record_id} cannot {trigger} from {self.state} ({command})"
            ) from e
        if not fired:
            raise ApprovalStateViolation(command, self.record_id)


class VerificationFSM(_RecordFSM):
    """State machine for one verification request. Strictly linear."""

    kind = "verification"

    def __init__(self, request_id: str, status: VerificationStatus):
        super().__init__(request_id, status.value, VERIFICATION_STATES, VERIFICATION_TRANSITIONS)

    @property
    def status(self) -> VerificationStatus:
        return VerificationStatus(self.state)
