"""Tests for roadsync.workflow.engine (end-to-end over a real store and roadmap)."""

import fcntl
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from roadsync.hooks import Hooks
from roadsync.lib.errors import EntityWriteFailure, LockTimeout, SynchronizationMismatchError
from roadsync.lib.types import (
    Evidence,
    SessionStatus,
    TaskStatus,
    TransitionEvent,
    VerificationStatus,
)
from roadsync.roadmap.codec import read_roadmap
from roadsync.store import EntityStoreAdapter, JsonlMemoryBackend
from roadsync.workflow.commands import (
    Approve,
    BeginSession,
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
)
from roadsync.workflow.engine import Engine

ROADMAP = """# Roadmap

## Auth
- [ T-001 ] Fix login bug 🔄 • [ rnk:A ] [ 04.09.25 | 9:00 AM UTC ]
- [ T-002 ] Add logout ⏳
- [ T-003 ] Session timeout ⏳ • [ rnk:B ]
- [ T-004 ] Old work ✅ • [ done:04.01.25 ]
"""

NOW = datetime(2025, 4, 10, 10, 0, tzinfo=timezone.utc)
TS = "04.10.25 | 10:00 AM UTC"


@pytest.fixture
def hooks():
    return Hooks(
        evidence=MagicMock(return_value=Evidence(passed=True, summary="exit 0\n12 passed")),
        documentation=MagicMock(return_value=None),
        notify=MagicMock(),
    )


@pytest.fixture
def engine(tmp_path, hooks):
    roadmap = tmp_path / "ROADMAP_TASKS.md"
    roadmap.write_text(ROADMAP, encoding="utf-8")
    store = EntityStoreAdapter(JsonlMemoryBackend(tmp_path / ".roadsync" / "memory.jsonl"))
    eng = Engine(
        store,
        roadmap,
        lock_path=tmp_path / ".roadsync" / "roadmap.lock",
        hooks=hooks,
        clock=lambda: NOW,
        lock_timeout=1,
    )
    _, result = eng.apply(ImportTasks(), EngineState())
    assert result.ok
    return eng


def roadmap_task(engine, task_id):
    return read_roadmap(engine.roadmap_path).get(task_id)


def to_approval(engine):
    """Drive T-001 through testing into the approval queue."""
    state, _ = engine.apply(BeginSession(task_id="T-001"), EngineState())
    state, _ = engine.apply(EndSession("testing"), state)
    state, _ = engine.apply(StartTesting("T-001"), state)
    state, _ = engine.apply(BeginSession(task_id="T-001"), state)
    state, result = engine.apply(EnterApprovalQueue(), state)
    assert result.ok, result.message
    return state


class TestImport:
    """Tests for registering roadmap tasks."""

    def test_tasks_registered(self, engine):
        records = engine.store.list_tasks()
        assert set(records) == {"T-001", "T-002", "T-003", "T-004"}
        assert records["T-001"].status == TaskStatus.ACTIVE
        assert records["T-001"].rank == "A"
        assert records["T-001"].updated == "04.09.25 | 9:00 AM UTC"
        assert records["T-002"].rank is None

    def test_import_is_idempotent(self, engine):
        _, result = engine.apply(ImportTasks(), EngineState())
        assert result.ok
        assert result.data["imported"] == []

    def test_stores_agree_after_import(self, engine):
        assert engine.sync.audit() == []

    def test_unregistered_task_refused(self, engine):
        text = engine.roadmap_path.read_text(encoding="utf-8")
        engine.roadmap_path.write_text(text + "- [ T-005 ] Late addition ⏳\n", encoding="utf-8")
        _, result = engine.apply(BeginSession(task_id="T-005"), EngineState())
        assert not result.ok
        assert "run import" in result.message


class TestBeginSession:
    """Tests for begin-session."""

    def test_resolved_target(self, engine):
        state, result = engine.apply(BeginSession(), EngineState())
        assert result.ok
        assert result.task_id == "T-001"
        assert result.reason == "ranked"
        assert state.session.target_task_id == "T-001"
        assert state.session.status == SessionStatus.ACTIVE
        assert engine.store.get_session(state.session.id).status == SessionStatus.ACTIVE

    def test_pending_task_becomes_active(self, engine, hooks):
        state, result = engine.apply(BeginSession(task_id="T-002"), EngineState())
        assert result.ok
        assert state.session.id == "WS-0001"

        task = roadmap_task(engine, "T-002")
        assert task.status == TaskStatus.ACTIVE
        assert task.updated == TS

        record = engine.store.list_tasks()["T-002"]
        assert record.status == TaskStatus.ACTIVE
        assert f"[{TS}] begin-session: PENDING -> ACTIVE (WS-0001)" in record.log

        events = [c.args[0] for c in hooks.notify.call_args_list]
        assert TransitionEvent("T-002", "Task", "PENDING", "ACTIVE", "begin-session", TS) in events

    def test_one_active_session(self, engine):
        state, _ = engine.apply(BeginSession(), EngineState())
        new_state, result = engine.apply(BeginSession(task_id="T-002"), state)
        assert not result.ok
        assert result.message.startswith("session active")
        assert new_state is state
        assert roadmap_task(engine, "T-002").status == TaskStatus.PENDING

    def test_active_session_found_in_store(self, engine):
        """A fresh EngineState still sees the ACTIVE session in the store."""
        engine.apply(BeginSession(), EngineState())
        _, result = engine.apply(BeginSession(task_id="T-002"), EngineState())
        assert not result.ok

    def test_completed_task_refused(self, engine):
        _, result = engine.apply(BeginSession(task_id="T-004"), EngineState())
        assert not result.ok
        assert result.message.startswith("completed")

    def test_unknown_task_refused(self, engine):
        _, result = engine.apply(BeginSession(task_id="T-999"), EngineState())
        assert not result.ok
        assert "T-999" in result.message

    def test_load_state(self, engine):
        state, _ = engine.apply(BeginSession(), EngineState())
        assert engine.load_state() == state


class TestTestingFlow:
    """Submitting for testing and starting tests."""

    def test_end_session_for_testing(self, engine):
        state, _ = engine.apply(BeginSession(task_id="T-001"), EngineState())
        state, result = engine.apply(EndSession("testing"), state)
        assert result.ok
        assert state.session is None

        text = engine.roadmap_path.read_text(encoding="utf-8")
        assert f"- [ T-001 ] Fix login bug 🔬 • [ rnk:A ] [ {TS} ]" in text

        requests = engine.store.list_verifications("T-001")
        assert len(requests) == 1
        assert requests[0].status == VerificationStatus.PENDING_USER_INITIATION
        assert engine.store.get_session("WS-0001").status == SessionStatus.ENDED

    def test_end_session_other_reason_keeps_status(self, engine):
        state, _ = engine.apply(BeginSession(task_id="T-001"), EngineState())
        _, result = engine.apply(EndSession("abandoned"), state)
        assert result.ok
        assert roadmap_task(engine, "T-001").status == TaskStatus.ACTIVE
        assert engine.store.list_verifications() == []

    def test_start_testing(self, engine):
        state, _ = engine.apply(BeginSession(task_id="T-001"), EngineState())
        state, _ = engine.apply(EndSession("testing"), state)
        _, result = engine.apply(StartTesting(), state)
        assert result.ok
        assert result.task_id == "T-001"
        assert roadmap_task(engine, "T-001").status == TaskStatus.TESTING
        assert engine.store.latest_verification("T-001").status == VerificationStatus.ACTIVE

    def test_start_testing_requires_pending_testing(self, engine):
        _, result = engine.apply(StartTesting("T-002"), EngineState())
        assert not result.ok
        assert result.message.startswith("not pending testing")
        assert roadmap_task(engine, "T-002").status == TaskStatus.PENDING

    def test_nothing_to_test(self, engine):
        _, result = engine.apply(StartTesting(), EngineState())
        assert not result.ok


class TestRejectFlow:
    """Rejection sends the task back and a new request follows."""

    def test_reject_then_resubmit(self, engine):
        state = to_approval(engine)
        state, result = engine.apply(Reject("T-001", "flaky"), state)
        assert result.ok
        assert state.session.awaiting_approval is False
        assert state.session.status == SessionStatus.ACTIVE

        assert roadmap_task(engine, "T-001").status == TaskStatus.ACTIVE
        assert engine.store.get_verification("VR-0001").status == VerificationStatus.REJECTED

        state, result = engine.apply(EndSession("testing"), state)
        assert result.ok
        requests = engine.store.list_verifications("T-001")
        assert [(r.id, r.status) for r in requests] == [
            ("VR-0001", VerificationStatus.REJECTED),
            ("VR-0002", VerificationStatus.PENDING_USER_INITIATION),
        ]

    def test_reject_requires_pending_approval(self, engine):
        state, _ = engine.apply(BeginSession(task_id="T-001"), EngineState())
        _, result = engine.apply(Reject("T-001", "flaky"), state)
        assert not result.ok
        assert result.message.startswith("no approval pending")


class TestApprovalExclusivity:
    """While approval is pending the session cannot be saved or ended."""

    def test_evidence_recorded_on_request(self, engine):
        to_approval(engine)
        request = engine.store.latest_verification("T-001")
        assert request.id == "VR-0001"
        assert request.evidence == Evidence(passed=True, summary="exit 0\n12 passed")

    @pytest.mark.parametrize("command", [SaveSession("lunch"), EndSession("done"), EndSession("testing")])
    def test_refused_without_side_effects(self, engine, command):
        state = to_approval(engine)
        roadmap_before = engine.roadmap_path.read_text(encoding="utf-8")
        store_before = engine.store.backend.path.read_text(encoding="utf-8")

        new_state, result = engine.apply(command, state)

        assert not result.ok
        assert result.message == "blocked: active approval pending"
        assert new_state is state
        assert engine.roadmap_path.read_text(encoding="utf-8") == roadmap_before
        assert engine.store.backend.path.read_text(encoding="utf-8") == store_before

    def test_evidence_gathered_once(self, engine, hooks):
        to_approval(engine)
        assert hooks.evidence.call_count == 1
        assert hooks.evidence.call_args.args[0].id == "T-001"

    def test_enter_twice_refused(self, engine):
        state = to_approval(engine)
        _, result = engine.apply(EnterApprovalQueue(), state)
        assert not result.ok
        assert result.message.startswith("approval pending")

    def test_enter_requires_testing(self, engine):
        state, _ = engine.apply(BeginSession(task_id="T-002"), EngineState())
        _, result = engine.apply(EnterApprovalQueue(), state)
        assert not result.ok
        assert result.message.startswith("not testing")


class TestApprove:
    """Approval completes the task and ends the session."""

    def test_approve(self, engine):
        state = to_approval(engine)
        state, result = engine.apply(Approve("T-001"), state)
        assert result.ok
        assert state.session is None

        task = roadmap_task(engine, "T-001")
        assert task.status == TaskStatus.COMPLETED
        assert task.done == "04.10.25"
        assert engine.store.get_verification("VR-0001").status == VerificationStatus.APPROVED

        session = engine.store.get_session("WS-0002")
        assert session.status == SessionStatus.ENDED
        assert session.awaiting_approval is False
        assert engine.sync.audit() == []

    def test_documentation_follow_up(self, engine, hooks):
        hooks.documentation.return_value = "Document Fix login bug"
        state = to_approval(engine)
        _, result = engine.apply(Approve("T-001"), state)
        assert result.data["follow_up"] == "T-001.1"

        completed = hooks.documentation.call_args.args[0]
        assert completed.status == TaskStatus.COMPLETED

        child = roadmap_task(engine, "T-001.1")
        assert child.name == "Document Fix login bug"
        assert child.status == TaskStatus.PENDING
        assert child.parent_id == "T-001"
        assert engine.store.list_tasks()["T-001.1"].status == TaskStatus.PENDING
        assert engine.sync.audit() == []

    def test_approve_wrong_task(self, engine):
        state = to_approval(engine)
        _, result = engine.apply(Approve("T-003"), state)
        assert not result.ok
        assert roadmap_task(engine, "T-001").status == TaskStatus.TESTING

    def test_approve_without_session(self, engine):
        _, result = engine.apply(Approve("T-001"), EngineState())
        assert not result.ok

    def test_blocked_task_cannot_be_approved(self, engine):
        state = to_approval(engine)
        engine.apply(RaiseError("flaky CI", ("T-001",)), state)
        _, result = engine.apply(Approve("T-001"), state)
        assert not result.ok
        assert result.message.startswith("blocked")
        assert engine.store.get_verification("VR-0001").status == VerificationStatus.ACTIVE

    def test_reject_while_blocked_restores_active(self, engine):
        state = to_approval(engine)
        engine.apply(RaiseError("flaky CI", ("T-001",)), state)
        state, result = engine.apply(Reject("T-001", "fix CI first"), state)
        assert result.ok
        assert roadmap_task(engine, "T-001").status == TaskStatus.BLOCKED
        assert engine.store.list_tasks()["T-001"].prior_status == TaskStatus.ACTIVE

        engine.apply(ResolveError("ERR-0001"), state)
        assert roadmap_task(engine, "T-001").status == TaskStatus.ACTIVE


class TestBlockingErrors:
    """Blocking is derived from active errors and restored on resolution."""

    def test_raise_blocks_task(self, engine):
        _, result = engine.apply(RaiseError("db down", ("T-002",)), EngineState())
        assert result.ok
        assert result.data["error_id"] == "ERR-0001"
        assert roadmap_task(engine, "T-002").status == TaskStatus.BLOCKED
        record = engine.store.list_tasks()["T-002"]
        assert record.prior_status == TaskStatus.PENDING
        assert engine.store.get_error("ERR-0001").blocks == ("T-002",)

        _, status = engine.apply(StatusCheck(), EngineState())
        assert status.task_id == "T-002"
        assert status.reason == "blocked"

    def test_restored_only_after_last_error(self, engine):
        engine.apply(RaiseError("db down", ("T-002",)), EngineState())
        engine.apply(RaiseError("dns down", ("T-002", "T-003")), EngineState())

        _, result = engine.apply(ResolveError("ERR-0001"), EngineState())
        assert result.ok
        assert result.data["restored"] == []
        assert roadmap_task(engine, "T-002").status == TaskStatus.BLOCKED

        _, result = engine.apply(ResolveError("ERR-0002"), EngineState())
        assert result.data["restored"] == ["T-002", "T-003"]
        assert roadmap_task(engine, "T-002").status == TaskStatus.PENDING
        assert roadmap_task(engine, "T-003").status == TaskStatus.PENDING
        assert engine.store.list_tasks()["T-002"].prior_status is None
        resolved = engine.store.get_error("ERR-0002")
        assert not resolved.is_active
        assert resolved.blocks == ("T-002", "T-003")

    def test_active_status_restored(self, engine):
        engine.apply(RaiseError("db down", ("T-001",)), EngineState())
        engine.apply(ResolveError("ERR-0001"), EngineState())
        assert roadmap_task(engine, "T-001").status == TaskStatus.ACTIVE

    def test_completed_task_cannot_be_blocked(self, engine):
        _, result = engine.apply(RaiseError("regression", ("T-004",)), EngineState())
        assert not result.ok
        assert engine.store.list_errors() == []

    def test_explicit_error_id(self, engine):
        _, result = engine.apply(RaiseError("db down", ("T-002",), error_id="ERR-0042"), EngineState())
        assert result.data["error_id"] == "ERR-0042"
        _, again = engine.apply(RaiseError("db down", ("T-003",), error_id="ERR-0042"), EngineState())
        assert not again.ok
        assert again.message.startswith("duplicate error")

    def test_resolve_twice(self, engine):
        engine.apply(RaiseError("db down", ("T-002",)), EngineState())
        engine.apply(ResolveError("ERR-0001"), EngineState())
        _, result = engine.apply(ResolveError("ERR-0001"), EngineState())
        assert not result.ok
        assert result.message.startswith("already resolved")

    def test_begin_on_blocked_task(self, engine):
        """Working on the fix keeps the task BLOCKED; it comes back ACTIVE."""
        engine.apply(RaiseError("db down", ("T-002",)), EngineState())
        state, result = engine.apply(BeginSession(), EngineState())
        assert result.ok
        assert result.task_id == "T-002"
        assert result.reason == "blocked"
        assert roadmap_task(engine, "T-002").status == TaskStatus.BLOCKED

        engine.apply(ResolveError("ERR-0001"), state)
        assert roadmap_task(engine, "T-002").status == TaskStatus.ACTIVE


class TestSaveResume:
    """Pausing and resuming a session."""

    def test_save(self, engine):
        state, _ = engine.apply(BeginSession(task_id="T-001"), EngineState())
        state, result = engine.apply(SaveSession("lunch"), state)
        assert result.ok
        assert result.data["save_id"] == "WSS-0001"
        assert state.session.status == SessionStatus.PAUSED

        task = roadmap_task(engine, "T-001")
        assert task.status == TaskStatus.PAUSED
        assert task.note == "[Paused: SWS WSS-0001]"
        assert engine.store.list_tasks()["T-001"].resume_status == TaskStatus.ACTIVE
        assert engine.load_state() == state

        _, status = engine.apply(StatusCheck(), state)
        assert status.task_id == "T-001"
        assert status.reason == "resume-paused"

    def test_begin_on_paused_task_refused(self, engine):
        state, _ = engine.apply(BeginSession(task_id="T-001"), EngineState())
        state, _ = engine.apply(SaveSession(), state)
        _, result = engine.apply(BeginSession(task_id="T-001"), state)
        assert not result.ok
        assert "resume-session" in result.message

    def test_resume(self, engine):
        state, _ = engine.apply(BeginSession(task_id="T-001"), EngineState())
        state, _ = engine.apply(SaveSession(), state)
        state, result = engine.apply(ResumeSession(), state)
        assert result.ok
        assert state.session.status == SessionStatus.ACTIVE

        task = roadmap_task(engine, "T-001")
        assert task.status == TaskStatus.ACTIVE
        assert task.note is None
        assert engine.store.get_save("WSS-0001").consumed is True

        _, again = engine.apply(ResumeSession(), state)
        assert not again.ok

    def test_resume_restores_testing(self, engine):
        state, _ = engine.apply(BeginSession(task_id="T-001"), EngineState())
        state, _ = engine.apply(EndSession("testing"), state)
        state, _ = engine.apply(StartTesting("T-001"), state)
        state, _ = engine.apply(BeginSession(task_id="T-001"), state)
        state, _ = engine.apply(SaveSession(), state)
        engine.apply(ResumeSession("WSS-0001"), state)
        assert roadmap_task(engine, "T-001").status == TaskStatus.TESTING

    def test_note_is_kept(self, engine):
        text = engine.roadmap_path.read_text(encoding="utf-8")
        engine.roadmap_path.write_text(text.replace("Add logout ⏳", "Add logout ⏳ see design doc"), encoding="utf-8")
        state, _ = engine.apply(BeginSession(task_id="T-002"), EngineState())
        state, _ = engine.apply(SaveSession(), state)
        assert roadmap_task(engine, "T-002").note == "see design doc [Paused: SWS WSS-0001]"
        engine.apply(ResumeSession(), state)
        assert roadmap_task(engine, "T-002").note == "see design doc"

    def test_blocked_while_paused(self, engine):
        state, _ = engine.apply(BeginSession(task_id="T-002"), EngineState())
        state, _ = engine.apply(SaveSession(), state)
        engine.apply(RaiseError("db down", ("T-002",)), state)
        assert engine.store.list_tasks()["T-002"].prior_status == TaskStatus.PAUSED

        state, result = engine.apply(ResumeSession(), state)
        assert result.ok
        assert roadmap_task(engine, "T-002").status == TaskStatus.BLOCKED
        assert roadmap_task(engine, "T-002").note is None
        assert engine.store.list_tasks()["T-002"].prior_status == TaskStatus.ACTIVE

        engine.apply(ResolveError("ERR-0001"), state)
        assert roadmap_task(engine, "T-002").status == TaskStatus.ACTIVE

    def test_save_without_session(self, engine):
        _, result = engine.apply(SaveSession(), EngineState())
        assert not result.ok


class TestFailures:
    """Failures that must not be papered over."""

    def test_tampered_roadmap_raises_mismatch(self, engine):
        text = engine.roadmap_path.read_text(encoding="utf-8")
        engine.roadmap_path.write_text(text.replace("Add logout ⏳", "Add logout ⏳ • [ rnk:C ]"), encoding="utf-8")

        with pytest.raises(SynchronizationMismatchError) as exc_info:
            engine.apply(BeginSession(task_id="T-002"), EngineState())
        drift = exc_info.value.drifts[0]
        assert (drift.task_id, drift.field, drift.store_value, drift.roadmap_value) == ("T-002", "rank", None, "C")
        assert exc_info.value.operation == "begin-session"

    def test_status_check_reports_drift(self, engine):
        text = engine.roadmap_path.read_text(encoding="utf-8")
        engine.roadmap_path.write_text(text.replace("Add logout ⏳", "Add logout 🔄"), encoding="utf-8")
        _, result = engine.apply(StatusCheck(), EngineState())
        assert not result.ok
        assert [(d.task_id, d.field) for d in result.data["drifts"]] == [("T-002", "status")]

    def test_store_failure_leaves_roadmap_untouched(self, engine):
        before = engine.roadmap_path.read_text(encoding="utf-8")
        with patch.object(engine.store.backend, "add_observations", side_effect=OSError("disk full")):
            with pytest.raises(EntityWriteFailure):
                engine.apply(BeginSession(task_id="T-002"), EngineState())
        assert engine.roadmap_path.read_text(encoding="utf-8") == before
        assert engine.load_state() == EngineState()
        assert engine.store.list_tasks()["T-002"].status == TaskStatus.PENDING

    def test_failed_resolve_can_be_retried(self, engine):
        engine.apply(RaiseError("db down", ("T-002",)), EngineState())
        with patch.object(engine.store.backend, "add_observations", side_effect=OSError("disk full")):
            with pytest.raises(EntityWriteFailure):
                engine.apply(ResolveError("ERR-0001"), EngineState())
        error = engine.store.get_error("ERR-0001")
        assert error.is_active
        assert error.blocks == ("T-002",)
        assert roadmap_task(engine, "T-002").status == TaskStatus.BLOCKED

        _, result = engine.apply(ResolveError("ERR-0001"), EngineState())
        assert result.ok
        assert result.data["restored"] == ["T-002"]
        assert roadmap_task(engine, "T-002").status == TaskStatus.PENDING

    def test_roadmap_write_failure_is_mismatch(self, engine):
        with patch("roadsync.workflow.engine.write_roadmap", side_effect=OSError("read-only")):
            with pytest.raises(SynchronizationMismatchError) as exc_info:
                engine.apply(BeginSession(task_id="T-002"), EngineState())
        assert [(d.task_id, d.field) for d in exc_info.value.drifts][:1] == [("T-002", "status")]

    def test_malformed_roadmap_rejected(self, engine):
        text = engine.roadmap_path.read_text(encoding="utf-8")
        engine.roadmap_path.write_text(text + "- [ T-006 ] No emoji here\n", encoding="utf-8")
        store_before = engine.store.backend.path.read_text(encoding="utf-8")
        _, result = engine.apply(BeginSession(), EngineState())
        assert not result.ok
        assert result.message.startswith("Line 8")
        assert engine.store.backend.path.read_text(encoding="utf-8") == store_before

    def test_lock_timeout(self, engine):
        engine.lock_timeout = 0.2
        engine.lock_path.parent.mkdir(parents=True, exist_ok=True)
        engine.lock_path.touch()
        with open(engine.lock_path) as holder:
            fcntl.flock(holder, fcntl.LOCK_EX | fcntl.LOCK_NB)
            with pytest.raises(LockTimeout):
                engine.apply(StatusCheck(), EngineState())
            fcntl.flock(holder, fcntl.LOCK_UN)


UI_ROADMAP = """# Roadmap

- [ UI-4 ] Navbar ⏳
  - [ UI-4.2 ] Mobile menu ⏳
- [ UI-2 ] Footer ⏳
"""


class TestRenumberIds:
    """Renumbering roadmap ids before they are registered."""

    @pytest.fixture
    def fresh(self, tmp_path, hooks):
        project = tmp_path / "fresh"
        project.mkdir()
        roadmap = project / "ROADMAP_TASKS.md"
        roadmap.write_text(UI_ROADMAP, encoding="utf-8")
        store = EntityStoreAdapter(JsonlMemoryBackend(project / "memory.jsonl"))
        return Engine(store, roadmap, hooks=hooks, clock=lambda: NOW, lock_timeout=1, todo_path=project / "todo.txt")

    def test_dry_run_writes_nothing(self, fresh):
        _, result = fresh.apply(RenumberIds(dry_run=True), EngineState())
        assert result.ok
        assert result.data["mapping"] == {"UI-4": "UI-1", "UI-4.2": "UI-1.1"}
        assert fresh.roadmap_path.read_text(encoding="utf-8") == UI_ROADMAP
        assert not fresh.roadmap_path.with_name("ROADMAP_TASKS.md.bak").exists()

    def test_renumber_backs_up_and_exports(self, fresh):
        _, result = fresh.apply(RenumberIds(), EngineState())
        assert result.ok
        assert result.data["backup"].read_text(encoding="utf-8") == UI_ROADMAP
        doc = read_roadmap(fresh.roadmap_path)
        assert [t.id for t in doc.tasks] == ["UI-1", "UI-1.1", "UI-2"]
        assert doc.get("UI-1.1").name == "Mobile menu"
        assert "Mobile menu" in fresh.todo_path.read_text(encoding="utf-8")

        _, again = fresh.apply(RenumberIds(), EngineState())
        assert again.message == "Task ids already in sequence"

        _, imported = fresh.apply(ImportTasks(), EngineState())
        assert imported.data["imported"] == ["UI-1", "UI-1.1", "UI-2"]

    def test_registered_tasks_refused(self, engine):
        engine.id_prefixes = ("T",)
        before = engine.roadmap_path.read_text(encoding="utf-8")
        _, result = engine.apply(RenumberIds(), EngineState())
        assert not result.ok
        assert result.message.startswith("registered")
        assert engine.roadmap_path.read_text(encoding="utf-8") == before


class TestTodoExport:
    """todo.txt follows every roadmap rewrite."""

    def test_regenerated_after_roadmap_write(self, engine, tmp_path):
        engine.todo_path = tmp_path / "todo.txt"
        engine.apply(BeginSession(task_id="T-002"), EngineState())
        lines = engine.todo_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 4
        assert any("@active Add logout" in line for line in lines)

    def test_untouched_roadmap_not_exported(self, engine, tmp_path):
        engine.todo_path = tmp_path / "todo.txt"
        engine.apply(StatusCheck(), EngineState())
        assert not engine.todo_path.exists()

    def test_export_failure_keeps_command(self, engine, tmp_path):
        engine.todo_path = tmp_path / "todo.txt"
        with patch("roadsync.workflow.engine.write_todotxt", side_effect=OSError("read-only")):
            _, result = engine.apply(BeginSession(task_id="T-002"), EngineState())
        assert result.ok
        assert roadmap_task(engine, "T-002").status == TaskStatus.ACTIVE
