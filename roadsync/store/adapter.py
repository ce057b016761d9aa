"""
Entity store adapter.

Typed reads and batched writes over the Memory System backend. Entity state
lives in `key=value` observations where the latest value for a key wins;
every other observation is a free-text audit line.

Writes for one command are collected in a Changeset and committed in a fixed
order: new entities, new relations, then all state observations in a single
call. That last call is the commit point. Relations are never deleted here:
an edge from a resolved Error stays as its record of what it blocked, and
only active Errors count when deriving BLOCKED. New entities are created
carrying only their audit line and get their state in the commit call, so
readers skip an entity with no state yet: it belongs to a command that never
committed. Failed writes are retried, then surface as EntityWriteFailure.
"""

import json
import logging
import re
from dataclasses import dataclass, field

from roadsync.lib.constants import (
    DEFAULT_WRITE_RETRIES,
    ENTITY_ERROR,
    ENTITY_SAVE,
    ENTITY_SESSION,
    ENTITY_TASK,
    ENTITY_VERIFICATION,
)
from roadsync.lib.errors import EntityWriteFailure
from roadsync.lib.types import (
    ErrorRecord,
    ErrorStatus,
    Evidence,
    SessionStatus,
    TaskRecord,
    TaskStatus,
    VerificationRequest,
    VerificationStatus,
    WorkSession,
    WorkSessionSave,
)
from roadsync.store.relations import RelationSet

logger = logging.getLogger(__name__)

STATE_RE = re.compile(r'^(?P<key>[a-z_]+)=(?P<value>.*)$')
ID_NUMBER_RE = re.compile(r'-(\d+)$')

# State key every committed entity of the type carries
COMMIT_KEY = {
    ENTITY_TASK: "status",
    ENTITY_SESSION: "status",
    ENTITY_SAVE: "session",
    ENTITY_ERROR: "status",
    ENTITY_VERIFICATION: "status",
}


def encode_state(fields: dict) -> list[str]:
    return [f"{key}={'' if value is None else value}" for key, value in fields.items()]


def decode_entity(entity: dict) -> tuple[dict[str, str | None], tuple[str, ...]]:
    """Split observations into (latest state, audit log)."""
    state: dict[str, str | None] = {}
    log = []
    for obs in entity["observations"]:
        match = STATE_RE.match(obs)
        if match:
            state[match.group("key")] = match.group("value") or None
        else:
            log.append(obs)
    return state, tuple(log)


def is_committed(entity: dict) -> bool:
    """True once the entity's state observations have been written."""
    key = COMMIT_KEY.get(entity["entityType"], "status")
    state, _ = decode_entity(entity)
    return bool(state.get(key))


def encode_evidence(evidence: Evidence) -> str:
    """One-line JSON, so the evidence fits a single state observation."""
    return json.dumps(
        {"passed": evidence.passed, "summary": evidence.summary, "artifacts": list(evidence.artifacts)},
        ensure_ascii=False,
    )


def decode_evidence(value: str | None) -> Evidence | None:
    if not value:
        return None
    data = json.loads(value)
    return Evidence(passed=data["passed"], summary=data.get("summary", ""), artifacts=data.get("artifacts", []))


def _status(enum_cls, value: str | None):
    return enum_cls(value) if value else None


@dataclass
class NewEntity:
    name: str
    entity_type: str
    log: list[str] = field(default_factory=list)

    def to_record(self) -> dict:
        return {"name": self.name, "entityType": self.entity_type, "observations": list(self.log)}


@dataclass
class Changeset:
    """All store writes for one command."""
    entities: list[NewEntity] = field(default_factory=list)
    links: RelationSet = field(default_factory=RelationSet)
    state: dict[str, dict] = field(default_factory=dict)
    log: dict[str, list[str]] = field(default_factory=dict)

    def create(self, entity_name: str, entity_type: str, log: str | None = None, **state) -> None:
        """Queue a new entity. Its state is written with the commit call."""
        self.entities.append(NewEntity(entity_name, entity_type, [log] if log else []))
        self.set(entity_name, **state)

    def set(self, entity_name: str, **fields) -> None:
        self.state.setdefault(entity_name, {}).update(fields)

    def note(self, entity_name: str, line: str) -> None:
        self.log.setdefault(entity_name, []).append(line)

    def relate(self, from_id: str, to_id: str, relation_type: str) -> None:
        self.links.add(from_id, to_id, relation_type)

    def observations(self) -> list[dict]:
        names = list(dict.fromkeys([*self.state, *self.log]))
        return [
            {"entityName": name, "contents": encode_state(self.state.get(name, {})) + self.log.get(name, [])}
            for name in names
        ]

    def is_empty(self) -> bool:
        return not (self.entities or self.links or self.state or self.log)


class EntityStoreAdapter:
    """Typed client over a Memory System backend."""

    def __init__(self, backend, retries: int = DEFAULT_WRITE_RETRIES):
        self.backend = backend
        self.retries = retries

    # -- writes ----------------------------------------------------------

    def _write(self, operation: str, fn, payload):
        attempts = self.retries + 1
        last_error = None
        for attempt in range(1, attempts + 1):
            try:
                return fn(payload)
            except OSError as e:
                last_error = e
                logger.warning(f"[STORE] {operation} failed (attempt {attempt}/{attempts}): {e}")
        raise EntityWriteFailure(operation, attempts, last_error)

    def commit(self, changes: Changeset) -> None:
        if changes.is_empty():
            return
        if changes.entities:
            self._write("create_entities", self.backend.create_entities, [e.to_record() for e in changes.entities])
        if changes.links:
            self._write("create_relations", self.backend.create_relations, [r.to_record() for r in changes.links])
        observations = changes.observations()
        if observations:
            self._write("add_observations", self.backend.add_observations, observations)
        logger.debug(
            f"[STORE] committed {len(changes.entities)} entities, {len(changes.links)} links, "
            f"{len(observations)} observation sets"
        )

    # -- reads -----------------------------------------------------------

    def _entities(self, entity_type: str, committed_only: bool = True) -> tuple[list[dict], RelationSet]:
        result = self.backend.search_nodes(entity_type=entity_type)
        entities = result["entities"]
        if committed_only:
            entities = [e for e in entities if is_committed(e)]
        return entities, RelationSet.from_records(result["relations"])

    def _open(self, name: str) -> dict | None:
        result = self.backend.open_nodes([name])
        for entity in result["entities"]:
            if is_committed(entity):
                return entity
        return None

    def next_id(self, entity_type: str, prefix: str) -> str:
        # Uncommitted entities still hold their name
        entities, _ = self._entities(entity_type, committed_only=False)
        numbers = [0]
        for entity in entities:
            match = ID_NUMBER_RE.search(entity["name"])
            if entity["name"].startswith(prefix + "-") and match:
                numbers.append(int(match.group(1)))
        return f"{prefix}-{max(numbers) + 1:04d}"

    @staticmethod
    def _task(entity: dict) -> TaskRecord:
        state, log = decode_entity(entity)
        return TaskRecord(
            id=entity["name"],
            name=state.get("name") or entity["name"],
            status=TaskStatus(state["status"]),
            rank=state.get("rank"),
            updated=state.get("updated"),
            prior_status=_status(TaskStatus, state.get("prior_status")),
            resume_status=_status(TaskStatus, state.get("resume_status")),
            log=log,
        )

    def list_tasks(self) -> dict[str, TaskRecord]:
        entities, _ = self._entities(ENTITY_TASK)
        return {e["name"]: self._task(e) for e in entities}

    @staticmethod
    def _session(entity: dict) -> WorkSession:
        state, _ = decode_entity(entity)
        return WorkSession(
            id=entity["name"],
            status=SessionStatus(state["status"]),
            target_task_id=state["target"],
            session_type=state.get("session_type") or "feature",
            started=state.get("started"),
            ended=state.get("ended"),
            awaiting_approval=state.get("awaiting_approval") == "true",
        )

    def list_sessions(self) -> list[WorkSession]:
        entities, _ = self._entities(ENTITY_SESSION)
        return sorted((self._session(e) for e in entities), key=lambda s: s.id)

    def get_session(self, session_id: str) -> WorkSession | None:
        entity = self._open(session_id)
        if entity is None or entity["entityType"] != ENTITY_SESSION:
            return None
        return self._session(entity)

    @staticmethod
    def _save(entity: dict) -> WorkSessionSave:
        state, _ = decode_entity(entity)
        return WorkSessionSave(
            id=entity["name"],
            session_id=state["session"],
            saved_at=state.get("saved_at") or "",
            reason=state.get("reason") or "",
            consumed=state.get("consumed") == "true",
        )

    def list_saves(self) -> list[WorkSessionSave]:
        entities, _ = self._entities(ENTITY_SAVE)
        return sorted((self._save(e) for e in entities), key=lambda s: s.id)

    def get_save(self, save_id: str) -> WorkSessionSave | None:
        entity = self._open(save_id)
        if entity is None or entity["entityType"] != ENTITY_SAVE:
            return None
        return self._save(entity)

    def list_errors(self) -> list[ErrorRecord]:
        entities, relations = self._entities(ENTITY_ERROR)
        errors = []
        for entity in entities:
            state, _ = decode_entity(entity)
            errors.append(ErrorRecord(
                id=entity["name"],
                status=ErrorStatus(state["status"]),
                description=state.get("description") or "",
                blocks=tuple(relations.targets(entity["name"], "blocks")),
            ))
        return sorted(errors, key=lambda e: e.id)

    def get_error(self, error_id: str) -> ErrorRecord | None:
        for error in self.list_errors():
            if error.id == error_id:
                return error
        return None

    @staticmethod
    def _verification(entity: dict) -> VerificationRequest:
        state, _ = decode_entity(entity)
        return VerificationRequest(
            id=entity["name"],
            task_id=state["task"],
            status=VerificationStatus(state["status"]),
            evidence=decode_evidence(state.get("evidence")),
        )

    def list_verifications(self, task_id: str | None = None) -> list[VerificationRequest]:
        entities, _ = self._entities(ENTITY_VERIFICATION)
        requests = sorted((self._verification(e) for e in entities), key=lambda v: v.id)
        if task_id is not None:
            requests = [v for v in requests if v.task_id == task_id]
        return requests

    def get_verification(self, request_id: str) -> VerificationRequest | None:
        entity = self._open(request_id)
        if entity is None or entity["entityType"] != ENTITY_VERIFICATION:
            return None
        return self._verification(entity)

    def latest_verification(self, task_id: str) -> VerificationRequest | None:
        requests = self.list_verifications(task_id)
        return requests[-1] if requests else None
