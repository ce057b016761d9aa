"""
Human approval gate.

A task under TESTING enters the approval queue, which pins its session
(save, resume and end are refused) until a human approves or rejects.
Approval is two-phase: the VerificationRequest is committed as APPROVED and
read back before the task completes, so a crash in between leaves a state
that a repeated approve picks up from.
"""

import logging
from dataclasses import replace

from roadsync.hooks import Hooks
from roadsync.lib.constants import ENTITY_TASK, ENTITY_VERIFICATION
from roadsync.lib.errors import Drift, InvalidTransitionError, SynchronizationMismatchError
from roadsync.lib.types import (
    Evidence,
    Task,
    TaskStatus,
    VerificationRequest,
    VerificationStatus,
    WorkSession,
)
from roadsync.roadmap.codec import add_subtask
from roadsync.store.adapter import Changeset, EntityStoreAdapter, encode_evidence
from roadsync.workflow.context import Work
from roadsync.workflow.fsm import VerificationFSM

logger = logging.getLogger(__name__)


class ApprovalGate:
    def __init__(self, store: EntityStoreAdapter, hooks: Hooks):
        self.store = store
        self.hooks = hooks

    def _request(self, task_id: str, allowed: set[VerificationStatus]) -> VerificationRequest:
        request = self.store.latest_verification(task_id)
        if request is None or request.status not in allowed:
            wanted = "/".join(sorted(s.value for s in allowed))
            found = request.status.value if request else "none"
            raise InvalidTransitionError(
                "no verification request", f"{task_id} needs a {wanted} verification request (found {found})"
            )
        return request

    @staticmethod
    def _pending(session: WorkSession, task_id: str) -> WorkSession:
        if not session.awaiting_approval or session.target_task_id != task_id:
            raise InvalidTransitionError("no approval pending", f"{task_id} is not in the approval queue")
        return session

    def enter(self, work: Work, session: WorkSession, task_id: str | None = None
              ) -> tuple[WorkSession, VerificationRequest, Evidence]:
        """Gather evidence and pin the session until a decision."""
        if session.awaiting_approval:
            raise InvalidTransitionError(
                "approval pending", f"{session.target_task_id} is already awaiting approval"
            )
        task_id = task_id or session.target_task_id
        if task_id != session.target_task_id:
            raise InvalidTransitionError(
                "wrong task", f"session {session.id} targets {session.target_task_id}, not {task_id}"
            )
        task = work.task(task_id)
        if task.status != TaskStatus.TESTING:
            raise InvalidTransitionError("not testing", f"{task_id} is {task.status.value}; start testing first")
        request = self._request(task_id, {VerificationStatus.ACTIVE})

        evidence = self.hooks.evidence(task)
        logger.info(f"[APPROVAL] {task_id}: evidence {'passed' if evidence.passed else 'failed'}")

        work.changes.set(session.id, awaiting_approval="true")
        work.changes.set(request.id, evidence=encode_evidence(evidence))
        work.log(session.id, f"awaiting approval of {task_id} ({request.id})")
        summary = evidence.summary.splitlines()[0] if evidence.summary else ""
        work.log(task_id, f"evidence {'passed' if evidence.passed else 'failed'}" + (f": {summary}" if summary else ""))
        work.touched.add(task_id)
        return replace(session, awaiting_approval=True), request, evidence

    def approve(self, work: Work, session: WorkSession, task_id: str) -> tuple[WorkSession, str | None]:
        """Complete the task. Returns (ended session, follow-up task id or None)."""
        self._pending(session, task_id)
        task = work.task(task_id)
        if task.status == TaskStatus.BLOCKED:
            raise InvalidTransitionError("blocked", f"{task_id} is blocked by an active error")
        if task.status != TaskStatus.TESTING:
            raise InvalidTransitionError("not testing", f"{task_id} is {task.status.value}")
        request = self._request(task_id, {VerificationStatus.ACTIVE, VerificationStatus.APPROVED})

        follow_up = self.hooks.documentation(replace(task, status=TaskStatus.COMPLETED))

        if request.status == VerificationStatus.ACTIVE:
            fsm = VerificationFSM(request.id, request.status)
            fsm.fire("approve", work.command)
            first = Changeset()
            first.set(request.id, status=fsm.status.value)
            first.note(request.id, f"[{work.timestamp}] {work.command}: ACTIVE -> APPROVED")
            self.store.commit(first)
            work.event(request.id, ENTITY_VERIFICATION, "ACTIVE", "APPROVED")
        else:
            logger.info(f"[APPROVAL] {request.id} already APPROVED, completing {task_id}")

        confirmed = self.store.get_verification(request.id)
        if confirmed is None or confirmed.status != VerificationStatus.APPROVED:
            raise SynchronizationMismatchError(
                drifts=[Drift(task_id, "verification", confirmed.status.value if confirmed else None, "APPROVED")],
                operation=work.command,
            )

        work.set_task(task_id, TaskStatus.COMPLETED, detail=f"{request.id} approved",
                      roadmap={"done": work.today})
        session = work.set_session(
            session, "finish_approved", guarded=False, detail=f"{task_id} approved",
            ended=work.timestamp, awaiting_approval="false",
        )

        child_id = self._spawn_follow_up(work, task_id, follow_up) if follow_up else None
        return session, child_id

    def reject(self, work: Work, session: WorkSession, task_id: str, reason: str) -> WorkSession:
        """Send the task back to ACTIVE with the reason on record."""
        self._pending(session, task_id)
        task = work.task(task_id)
        record = work.record(task_id)
        blocked_from_testing = task.status == TaskStatus.BLOCKED and record.prior_status == TaskStatus.TESTING
        if task.status != TaskStatus.TESTING and not blocked_from_testing:
            raise InvalidTransitionError("not testing", f"{task_id} is {task.status.value}")
        request = self._request(task_id, {VerificationStatus.ACTIVE})

        fsm = VerificationFSM(request.id, request.status)
        fsm.fire("reject", work.command)
        work.changes.set(request.id, status=fsm.status.value)
        work.log(request.id, f"ACTIVE -> REJECTED ({reason})")
        work.event(request.id, ENTITY_VERIFICATION, "ACTIVE", "REJECTED")

        if blocked_from_testing:
            # Still blocked; resolving the error brings it back as ACTIVE
            work.changes.set(task_id, prior_status=TaskStatus.ACTIVE.value)
            work.log(task_id, f"rejected while BLOCKED, restores to ACTIVE ({request.id}: {reason})")
            work.touched.add(task_id)
        else:
            work.set_task(task_id, TaskStatus.ACTIVE, detail=f"{request.id} rejected: {reason}")

        work.changes.set(session.id, awaiting_approval="false")
        work.log(session.id, f"approval of {task_id} rejected")
        return replace(session, awaiting_approval=False)

    def _spawn_follow_up(self, work: Work, parent_id: str, name: str) -> str:
        prefix = f"{parent_id}."
        numbers = [
            int(t.id[len(prefix):]) for t in work.doc.tasks
            if t.id.startswith(prefix) and t.id[len(prefix):].isdigit()
        ]
        child_id = f"{prefix}{max(numbers, default=0) + 1}"
        child = Task(id=child_id, name=name, status=TaskStatus.PENDING, updated=work.timestamp)

        work.doc = add_subtask(work.doc, parent_id, child)
        work.roadmap_changed = True
        work.changes.create(
            child_id, ENTITY_TASK,
            log=f"[{work.timestamp}] {work.command}: follow-up for {parent_id}",
            name=name, status=TaskStatus.PENDING.value, rank=None, updated=work.timestamp,
        )
        work.changes.relate(parent_id, child_id, "hasSubtask")
        work.touched.add(child_id)
        logger.info(f"[APPROVAL] {parent_id}: follow-up {child_id} '{name}'")
        return child_id
