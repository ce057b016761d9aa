"""
Workflow engine.

Engine.apply() takes one command and the current session state and returns
the new state plus a result. Each command runs under the roadmap lock:

    1. read the roadmap and task records
    2. run the handler against an in-memory Work (guards raise here)
    3. commit the entity store changeset
    4. rewrite the roadmap
    5. verify both stores agree on every touched task
    6. regenerate the todo.txt export, when one is configured
    7. hand each committed transition to the notification hook

Guard failures come back as rejected results with nothing written. Store
write failures and synchronization mismatches propagate: the engine must not
keep going on state it cannot trust.

Usage:
    engine = Engine.from_config(load_config(project_dir))
    state = engine.load_state()
    state, result = engine.apply(BeginSession(), state)
"""

import logging
from dataclasses import replace
from pathlib import Path

from roadsync.hooks import Hooks, build_hooks
from roadsync.lib.clock import Clock, format_date, format_timestamp, system_clock
from roadsync.lib.config import EngineConfig
from roadsync.lib.constants import (
    DEFAULT_ID_PREFIXES,
    DEFAULT_LOCK_TIMEOUT,
    DEFAULT_TIMEZONE,
    END_REASON_TESTING,
    ENTITY_ERROR,
    ENTITY_SAVE,
    ENTITY_SESSION,
    ENTITY_TASK,
    ENTITY_VERIFICATION,
    ERROR_ID_PREFIX,
    SAVE_ID_PREFIX,
    SESSION_ID_PREFIX,
    VERIFICATION_ID_PREFIX,
)
from roadsync.lib.errors import (
    Drift,
    InvalidTransitionError,
    MalformedLineError,
    SynchronizationMismatchError,
)
from roadsync.lib.hooks_config import load_hooks_config
from roadsync.lib.locking import roadmap_lock
from roadsync.lib.types import (
    ErrorStatus,
    SessionStatus,
    TaskStatus,
    VerificationStatus,
    WorkSession,
)
from roadsync.roadmap.codec import RoadmapDocument, read_roadmap, write_roadmap
from roadsync.roadmap.ids import apply_renumber, backup_roadmap, plan_renumber, validate_ids
from roadsync.roadmap.todotxt import SortMode, write_todotxt
from roadsync.store.adapter import EntityStoreAdapter
from roadsync.store.backend import JsonlMemoryBackend
from roadsync.workflow.approval import ApprovalGate
from roadsync.workflow.commands import (
    Approve,
    BeginSession,
    CommandResult,
    EndSession,
    EngineState,
    EnterApprovalQueue,
    ImportTasks,
    RaiseError,
    Reject,
    RenumberIds,
    ResolveError,
    ResumeSession,
    SaveSession,
    StartTesting,
    StatusCheck,
    command_name,
)
from roadsync.workflow.context import Work, require_session, with_pause_note, without_pause_note
from roadsync.workflow.fsm import VerificationFSM
from roadsync.workflow.resolver import REASON_NONE, blocked_tasks, resolve
from roadsync.workflow.sync import StateSynchronizer

logger = logging.getLogger(__name__)

# Task statuses that pause with the session and come back on resume
PAUSABLE = (TaskStatus.ACTIVE, TaskStatus.TESTING)


class Engine:
    def __init__(
        self,
        store: EntityStoreAdapter,
        roadmap_path: Path,
        lock_path: Path | None = None,
        hooks: Hooks | None = None,
        clock: Clock | None = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        todo_path: Path | None = None,
        todo_sort_mode: SortMode = SortMode.RWS,
        id_prefixes: tuple[str, ...] = DEFAULT_ID_PREFIXES,
    ):
        self.store = store
        self.roadmap_path = roadmap_path
        self.lock_path = lock_path or roadmap_path.parent / f".{roadmap_path.name}.lock"
        self.hooks = hooks or Hooks()
        self.clock = clock or system_clock(DEFAULT_TIMEZONE)
        self.lock_timeout = lock_timeout
        self.todo_path = todo_path
        self.todo_sort_mode = todo_sort_mode
        self.id_prefixes = id_prefixes
        self.sync = StateSynchronizer(store, roadmap_path)
        self.gate = ApprovalGate(store, self.hooks)
        self._handlers = {
            ImportTasks: self._import,
            BeginSession: self._begin_session,
            SaveSession: self._save_session,
            ResumeSession: self._resume_session,
            EndSession: self._end_session,
            StartTesting: self._start_testing,
            EnterApprovalQueue: self._enter_approval,
            Approve: self._approve,
            Reject: self._reject,
            RaiseError: self._raise_error,
            ResolveError: self._resolve_error,
            RenumberIds: self._renumber_ids,
            StatusCheck: self._status_check,
        }

    @classmethod
    def from_config(cls, config: EngineConfig, hooks: Hooks | None = None) -> "Engine":
        if hooks is None:
            hooks = build_hooks(load_hooks_config(config.hooks_path), config.project_dir)
        store = EntityStoreAdapter(JsonlMemoryBackend(config.store_path), retries=config.store_write_retries)
        return cls(
            store,
            config.roadmap_path,
            lock_path=config.lock_path,
            hooks=hooks,
            clock=system_clock(config.timezone),
            lock_timeout=config.lock_timeout,
            todo_path=config.todo_path if config.todo_auto_export else None,
            todo_sort_mode=SortMode(config.todo_sort_mode),
            id_prefixes=config.id_prefixes,
        )

    # -- entry points ----------------------------------------------------

    def load_state(self) -> EngineState:
        """Rebuild EngineState from the store: the ACTIVE session, else the latest PAUSED one."""
        sessions = self.store.list_sessions()
        for status in (SessionStatus.ACTIVE, SessionStatus.PAUSED):
            matching = [s for s in sessions if s.status == status]
            if matching:
                return EngineState(session=matching[-1])
        return EngineState()

    def apply(self, command, state: EngineState) -> tuple[EngineState, CommandResult]:
        """Run one command.

        Returns:
            (new state, result). A rejected result leaves state unchanged.

        Raises:
            EntityWriteFailure: store write failed after retrying
            SynchronizationMismatchError: store and roadmap disagree afterwards
            LockTimeout: another process holds the roadmap lock
        """
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unknown command {type(command).__name__}")
        name = command_name(command)

        with roadmap_lock(self.lock_path, self.lock_timeout):
            try:
                new_state, result = handler(command, state)
            except (MalformedLineError, InvalidTransitionError) as e:
                logger.warning(f"[ENGINE] {name} rejected: {e}")
                return state, CommandResult.rejected(str(e), command=name)
        logger.info(f"[ENGINE] {name}: {result.message}")
        return new_state, result

    # -- plumbing --------------------------------------------------------

    def _work(self, command: str) -> Work:
        moment = self.clock()
        return Work(
            command=command,
            doc=read_roadmap(self.roadmap_path),
            records=self.store.list_tasks(),
            timestamp=format_timestamp(moment),
            today=format_date(moment),
        )

    def _commit(self, work: Work) -> None:
        self.store.commit(work.changes)

        if work.roadmap_changed:
            try:
                write_roadmap(self.roadmap_path, work.doc)
            except OSError as e:
                logger.error(f"[ENGINE] {work.command}: roadmap write failed after store commit: {e}")
                drifts = self.sync.compare(work.touched) or [
                    Drift("*", "roadmap", "committed", f"write failed: {e}")
                ]
                raise SynchronizationMismatchError(drifts=drifts, operation=work.command) from e

        if work.touched:
            self.sync.verify(work.touched, work.command)

        if work.roadmap_changed:
            self._export_todo(work.doc)

        for event in work.events:
            self.hooks.notify(event)

    def _export_todo(self, doc: RoadmapDocument) -> None:
        """Keep todo.txt in step with every roadmap rewrite."""
        if self.todo_path is None:
            return
        try:
            count = write_todotxt(self.todo_path, doc.tasks, self.todo_sort_mode)
        except OSError as e:
            # The roadmap is already committed; the export is rebuilt on the next write
            logger.warning(f"[ENGINE] todo.txt export to {self.todo_path} failed: {e}")
            return
        logger.debug(f"[ENGINE] Exported {count} task(s) to {self.todo_path}")

    def _session(self, state: EngineState) -> WorkSession | None:
        """The threaded session, refreshed from the store when it is there."""
        session = state.session
        if session is None:
            return None
        stored = self.store.get_session(session.id)
        if stored is None:
            return session
        return replace(stored, awaiting_approval=stored.awaiting_approval or session.awaiting_approval)

    def _ensure_no_active_session(self, except_id: str | None = None) -> None:
        for session in self.store.list_sessions():
            if session.status == SessionStatus.ACTIVE and session.id != except_id:
                raise InvalidTransitionError(
                    "session active", f"{session.id} on {session.target_task_id} is still active (save or end it)"
                )

    # -- handlers --------------------------------------------------------

    def _import(self, command: ImportTasks, state: EngineState):
        work = self._work("import")
        missing = [t for t in work.doc.tasks if t.id not in work.records]
        for task in missing:
            work.changes.create(
                task.id, ENTITY_TASK,
                log=f"[{work.timestamp}] import: registered from roadmap line",
                name=task.name, status=task.status.value, rank=task.rank, updated=task.updated,
            )
            if task.parent_id:
                work.changes.relate(task.parent_id, task.id, "hasSubtask")
            work.touched.add(task.id)
        self._commit(work)
        return state, CommandResult(
            ok=True,
            message=f"Imported {len(missing)} task(s)" if missing else "All roadmap tasks already registered",
            data={"imported": [t.id for t in missing]},
        )

    def _begin_session(self, command: BeginSession, state: EngineState):
        current = self._session(state)
        if current is not None and current.status == SessionStatus.ACTIVE:
            raise InvalidTransitionError("session active", f"{current.id} is still active (save or end it)")
        self._ensure_no_active_session()

        work = self._work("begin-session")
        if command.task_id:
            task = work.task(command.task_id)
            reason = "explicit"
        else:
            resolution = resolve(work.doc.tasks, self.store.list_errors())
            if resolution.task is None:
                raise InvalidTransitionError(REASON_NONE, "no actionable task on the roadmap")
            task = work.task(resolution.task_id)
            reason = resolution.reason

        if task.status == TaskStatus.COMPLETED:
            raise InvalidTransitionError("completed", f"{task.id} is already COMPLETED")
        if task.status == TaskStatus.PAUSED:
            raise InvalidTransitionError("paused", f"{task.id} is PAUSED; use resume-session")

        session_id = self.store.next_id(ENTITY_SESSION, SESSION_ID_PREFIX)
        blocked = blocked_tasks(self.store.list_errors())

        if task.status == TaskStatus.PENDING:
            work.set_task(task.id, TaskStatus.ACTIVE, detail=session_id)
        elif task.status == TaskStatus.BLOCKED and task.id in blocked:
            # Work on the fix; the task stays BLOCKED and resumes as ACTIVE
            work.changes.set(task.id, prior_status=TaskStatus.ACTIVE.value)
            work.log(task.id, f"{session_id} began while BLOCKED, restores to ACTIVE")
            work.touched.add(task.id)
        elif task.status == TaskStatus.BLOCKED:
            work.set_task(task.id, TaskStatus.ACTIVE, detail=f"{session_id}, no active blocker",
                          store={"prior_status": None})

        work.changes.create(
            session_id, ENTITY_SESSION,
            log=f"[{work.timestamp}] begin-session: ACTIVE on {task.id} ({reason})",
            status=SessionStatus.ACTIVE.value, target=task.id, session_type=command.session_type,
            started=work.timestamp, awaiting_approval="false",
        )
        work.changes.relate(session_id, task.id, "targets")
        work.event(session_id, ENTITY_SESSION, "", SessionStatus.ACTIVE.value)
        self._commit(work)

        session = WorkSession(
            id=session_id,
            status=SessionStatus.ACTIVE,
            target_task_id=task.id,
            session_type=command.session_type,
            started=work.timestamp,
        )
        return EngineState(session=session), CommandResult(
            ok=True,
            message=f"Began {session_id} on {task.id} '{task.name}' ({reason})",
            task_id=task.id,
            reason=reason,
            data={"session_id": session_id},
        )

    def _save_session(self, command: SaveSession, state: EngineState):
        session = require_session(self._session(state), SessionStatus.ACTIVE)
        work = self._work("save-session")
        save_id = self.store.next_id(ENTITY_SAVE, SAVE_ID_PREFIX)

        session = work.set_session(session, "save", detail=save_id)

        task = work.task(session.target_task_id)
        if task.status in PAUSABLE:
            work.set_task(
                task.id, TaskStatus.PAUSED, detail=save_id,
                roadmap={"note": with_pause_note(task.note, save_id)},
                store={"resume_status": task.status.value},
            )

        work.changes.create(
            save_id, ENTITY_SAVE,
            log=f"[{work.timestamp}] save-session: {command.reason}" if command.reason else None,
            session=session.id, saved_at=work.timestamp, reason=command.reason, consumed="false",
        )
        work.changes.relate(session.id, save_id, "hasSave")
        self._commit(work)

        return EngineState(session=session), CommandResult(
            ok=True,
            message=f"Saved {session.id} as {save_id}",
            task_id=task.id,
            data={"save_id": save_id},
        )

    def _find_save(self, command: ResumeSession, current: WorkSession | None):
        if command.save_id:
            save = self.store.get_save(command.save_id)
            if save is None:
                raise InvalidTransitionError("unknown save", f"{command.save_id} does not exist")
            if save.consumed:
                raise InvalidTransitionError("save consumed", f"{save.id} was already resumed")
            return save

        open_saves = [s for s in self.store.list_saves() if not s.consumed]
        if current is not None and current.status == SessionStatus.PAUSED:
            open_saves = [s for s in open_saves if s.session_id == current.id]
        if not open_saves:
            raise InvalidTransitionError("no paused session", "nothing to resume")
        return open_saves[-1]

    def _resume_session(self, command: ResumeSession, state: EngineState):
        current = self._session(state)
        save = self._find_save(command, current)
        session = self.store.get_session(save.session_id)
        if session is None or session.status != SessionStatus.PAUSED:
            raise InvalidTransitionError("not paused", f"session of {save.id} is not PAUSED")
        if current is not None and current.id == session.id:
            session = replace(session, awaiting_approval=current.awaiting_approval or session.awaiting_approval)
        self._ensure_no_active_session()

        work = self._work("resume-session")
        session = work.set_session(session, "resume", detail=save.id)

        task = work.task(session.target_task_id)
        record = work.record(task.id)
        if task.status == TaskStatus.PAUSED:
            work.set_task(
                task.id, record.resume_status or TaskStatus.ACTIVE, detail=save.id,
                roadmap={"note": without_pause_note(task.note)},
                store={"resume_status": None},
            )
        elif task.status == TaskStatus.BLOCKED and record.prior_status == TaskStatus.PAUSED:
            # Blocked while paused: the fix brings it back to where the session left it
            restore = record.resume_status or TaskStatus.ACTIVE
            work.doc.update(replace(task, note=without_pause_note(task.note)))
            work.roadmap_changed = True
            work.changes.set(task.id, prior_status=restore.value, resume_status=None)
            work.log(task.id, f"{save.id} resumed while BLOCKED, restores to {restore.value}")
            work.touched.add(task.id)

        work.changes.set(save.id, consumed="true")
        work.log(save.id, "consumed")
        self._commit(work)

        return EngineState(session=session), CommandResult(
            ok=True,
            message=f"Resumed {session.id} from {save.id} on {task.id}",
            task_id=task.id,
            data={"session_id": session.id, "save_id": save.id},
        )

    def _end_session(self, command: EndSession, state: EngineState):
        session = require_session(self._session(state), SessionStatus.ACTIVE)
        work = self._work("end-session")
        session = work.set_session(session, "end", detail=command.reason, ended=work.timestamp)

        task = work.task(session.target_task_id)
        request_id = None
        if command.reason == END_REASON_TESTING:
            if task.status != TaskStatus.ACTIVE:
                raise InvalidTransitionError(
                    "not active", f"{task.id} is {task.status.value}; only ACTIVE tasks go to testing"
                )
            request_id = self.store.next_id(ENTITY_VERIFICATION, VERIFICATION_ID_PREFIX)
            work.set_task(task.id, TaskStatus.PENDING_TESTING, detail=f"{request_id} created")
            work.changes.create(
                request_id, ENTITY_VERIFICATION,
                log=f"[{work.timestamp}] end-session: created for {task.id}",
                task=task.id, status=VerificationStatus.PENDING_USER_INITIATION.value,
            )
            work.changes.relate(request_id, task.id, "verifies")
            work.event(request_id, ENTITY_VERIFICATION, "", VerificationStatus.PENDING_USER_INITIATION.value)
        self._commit(work)

        message = f"Ended {session.id} ({command.reason})"
        if request_id:
            message += f"; {task.id} awaits testing ({request_id})"
        return EngineState(), CommandResult(
            ok=True, message=message, task_id=task.id,
            data={"session_id": session.id, "verification_id": request_id},
        )

    def _start_testing(self, command: StartTesting, state: EngineState):
        work = self._work("start-testing")
        task_id = command.task_id
        if task_id is None:
            current = self._session(state)
            target = work.doc.get(current.target_task_id) if current else None
            if target is not None and target.status == TaskStatus.PENDING_TESTING:
                task_id = target.id
            else:
                waiting = [t for t in work.doc.tasks if t.status == TaskStatus.PENDING_TESTING]
                if not waiting:
                    raise InvalidTransitionError("nothing to test", "no task is PENDING_TESTING")
                task_id = waiting[0].id

        task = work.task(task_id)
        if task.status != TaskStatus.PENDING_TESTING:
            raise InvalidTransitionError("not pending testing", f"{task.id} is {task.status.value}")
        request = self.store.latest_verification(task.id)
        if request is None or request.status != VerificationStatus.PENDING_USER_INITIATION:
            raise InvalidTransitionError("no verification request", f"{task.id} has no request awaiting testing")

        fsm = VerificationFSM(request.id, request.status)
        fsm.fire("start", work.command)
        work.changes.set(request.id, status=fsm.status.value)
        work.log(request.id, "PENDING_USER_INITIATION -> ACTIVE")
        work.event(request.id, ENTITY_VERIFICATION, request.status.value, fsm.status.value)
        work.set_task(task.id, TaskStatus.TESTING, detail=request.id)
        self._commit(work)

        return state, CommandResult(
            ok=True, message=f"Testing {task.id} ({request.id})", task_id=task.id,
            data={"verification_id": request.id},
        )

    def _enter_approval(self, command: EnterApprovalQueue, state: EngineState):
        session = require_session(self._session(state), SessionStatus.ACTIVE)
        work = self._work("enter-approval-queue")
        session, request, evidence = self.gate.enter(work, session, command.task_id)
        self._commit(work)

        return EngineState(session=session), CommandResult(
            ok=True,
            message=f"{session.target_task_id} awaits approval ({request.id}); evidence "
                    + ("passed" if evidence.passed else "FAILED"),
            task_id=session.target_task_id,
            data={"verification_id": request.id, "evidence": evidence},
        )

    def _approve(self, command: Approve, state: EngineState):
        session = require_session(self._session(state), SessionStatus.ACTIVE)
        work = self._work("approve")
        session, follow_up = self.gate.approve(work, session, command.task_id)
        self._commit(work)

        message = f"Approved {command.task_id}; {session.id} ended"
        if follow_up:
            message += f"; follow-up {follow_up} added"
        return EngineState(), CommandResult(
            ok=True, message=message, task_id=command.task_id, data={"follow_up": follow_up},
        )

    def _reject(self, command: Reject, state: EngineState):
        session = require_session(self._session(state), SessionStatus.ACTIVE)
        work = self._work("reject")
        session = self.gate.reject(work, session, command.task_id, command.reason)
        self._commit(work)

        return EngineState(session=session), CommandResult(
            ok=True, message=f"Rejected {command.task_id}: {command.reason}", task_id=command.task_id,
        )

    def _raise_error(self, command: RaiseError, state: EngineState):
        if not command.task_ids:
            raise InvalidTransitionError("no tasks", "an error must block at least one task")
        work = self._work("raise-error")
        error_id = command.error_id or self.store.next_id(ENTITY_ERROR, ERROR_ID_PREFIX)
        if self.store.get_error(error_id) is not None:
            raise InvalidTransitionError("duplicate error", f"{error_id} already exists")

        for task_id in command.task_ids:
            task = work.task(task_id)
            if task.status == TaskStatus.COMPLETED:
                raise InvalidTransitionError("completed", f"{task_id} is COMPLETED and cannot be blocked")

        work.changes.create(
            error_id, ENTITY_ERROR,
            log=f"[{work.timestamp}] raise-error: blocks {', '.join(command.task_ids)}",
            status=ErrorStatus.ACTIVE.value, description=command.description,
        )
        work.event(error_id, ENTITY_ERROR, "", ErrorStatus.ACTIVE.value)
        for task_id in dict.fromkeys(command.task_ids):
            work.changes.relate(error_id, task_id, "blocks")
            task = work.task(task_id)
            if task.status == TaskStatus.BLOCKED:
                work.log(task_id, f"also blocked by {error_id}")
                work.touched.add(task_id)
                continue
            work.set_task(
                task_id, TaskStatus.BLOCKED, detail=f"{error_id}: {command.description}",
                store={"prior_status": task.status.value},
            )
        self._commit(work)

        return state, CommandResult(
            ok=True,
            message=f"{error_id} blocks {', '.join(command.task_ids)}",
            data={"error_id": error_id},
        )

    def _resolve_error(self, command: ResolveError, state: EngineState):
        error = self.store.get_error(command.error_id)
        if error is None:
            raise InvalidTransitionError("unknown error", f"{command.error_id} does not exist")
        if not error.is_active:
            raise InvalidTransitionError("already resolved", f"{error.id} is already resolved")

        work = self._work("resolve-error")
        still_blocked = blocked_tasks(e for e in self.store.list_errors() if e.id != error.id)

        work.changes.set(error.id, status=ErrorStatus.RESOLVED.value)
        work.log(error.id, "active -> resolved")
        work.event(error.id, ENTITY_ERROR, ErrorStatus.ACTIVE.value, ErrorStatus.RESOLVED.value)

        restored = []
        for task_id in error.blocks:
            task = work.doc.get(task_id)
            if task is None or task_id not in work.records:
                logger.warning(f"[ENGINE] {error.id} blocked unknown task {task_id}")
                continue
            if task_id in still_blocked or task.status != TaskStatus.BLOCKED:
                continue
            prior = work.records[task_id].prior_status or TaskStatus.PENDING
            work.set_task(task_id, prior, detail=f"{error.id} resolved", store={"prior_status": None})
            restored.append(task_id)
        self._commit(work)

        message = f"Resolved {error.id}"
        if restored:
            message += f"; restored {', '.join(restored)}"
        return state, CommandResult(ok=True, message=message, data={"restored": restored})

    def _renumber_ids(self, command: RenumberIds, state: EngineState):
        doc = read_roadmap(self.roadmap_path)
        mapping = plan_renumber(doc, self.id_prefixes)

        # Store entities are keyed by task id and cannot be renamed
        registered = sorted(set(mapping) & set(self.store.list_tasks()))
        if registered:
            raise InvalidTransitionError(
                "registered", f"{', '.join(registered)} already in the entity store; renumber before import"
            )

        renumbered = apply_renumber(doc, mapping)
        data = {"mapping": mapping, "issues": validate_ids(renumbered, self.id_prefixes), "backup": None}
        if not mapping:
            return state, CommandResult(ok=True, message="Task ids already in sequence", data=data)
        if command.dry_run:
            return state, CommandResult(ok=True, message=f"Would renumber {len(mapping)} task(s)", data=data)

        data["backup"] = backup_roadmap(self.roadmap_path)
        write_roadmap(self.roadmap_path, renumbered)
        self._export_todo(renumbered)
        return state, CommandResult(
            ok=True, message=f"Renumbered {len(mapping)} task(s); backup at {data['backup']}", data=data,
        )

    def _status_check(self, command: StatusCheck, state: EngineState):
        doc = read_roadmap(self.roadmap_path)
        errors = self.store.list_errors()
        resolution = resolve(doc.tasks, errors)
        drifts = self.sync.audit()
        session = self._session(state)

        counts: dict[str, int] = {}
        for task in doc.tasks:
            counts[task.status.value] = counts.get(task.status.value, 0) + 1

        if resolution.task:
            message = f"Next: {resolution.task.id} '{resolution.task.name}' ({resolution.reason})"
        else:
            message = "Next: nothing actionable"
        if drifts:
            message += f"; {len(drifts)} drift(s) between store and roadmap"

        return state, CommandResult(
            ok=not drifts,
            message=message,
            task_id=resolution.task_id,
            reason=resolution.reason,
            data={
                "session": session,
                "counts": counts,
                "active_errors": [e for e in errors if e.is_active],
                "drifts": drifts,
            },
        )
