"""
JSON-lines entity store backend.

Stores the knowledge graph in the Memory System's record format, one JSON
object per line:

    {"type": "entity", "name": "T-001", "entityType": "Task", "observations": ["status=ACTIVE"]}
    {"type": "relation", "from": "ERR-0001", "to": "T-001", "relationType": "blocks"}

Each public call loads the file, applies one change and rewrites the file
atomically, so every call is atomic on its own. There are no multi-call
transactions.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from roadsync.lib.validate import validate, validate_before_write

logger = logging.getLogger(__name__)


class UnknownEntityError(KeyError):
    """Observation added to an entity that does not exist."""


class JsonlMemoryBackend:
    def __init__(self, path: Path):
        self.path = path

    # -- reading ---------------------------------------------------------

    def read_graph(self) -> tuple[list[dict], list[dict]]:
        """Return (entities, relations) from disk."""
        if not self.path.exists():
            return [], []

        entities, relations = [], []
        for lineno, line in enumerate(self.path.read_text(encoding="utf-8").splitlines(), 1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{self.path}:{lineno}: invalid JSON: {e}") from None
            validate(record, "record")
            if record["type"] == "entity":
                entities.append(record)
            else:
                relations.append(record)
        return entities, relations

    def search_nodes(self, query: str | None = None, entity_type: str | None = None) -> dict:
        """Entities whose name, type or observations contain query, plus their relations."""
        entities, relations = self.read_graph()
        matched = []
        for entity in entities:
            if entity_type and entity["entityType"] != entity_type:
                continue
            if query:
                needle = query.lower()
                haystack = [entity["name"], entity["entityType"], *entity["observations"]]
                if not any(needle in item.lower() for item in haystack):
                    continue
            matched.append(entity)
        return {"entities": matched, "relations": self._touching(relations, matched)}

    def open_nodes(self, names: list[str]) -> dict:
        """Entities with the given names, plus their relations."""
        wanted = set(names)
        entities, relations = self.read_graph()
        matched = [e for e in entities if e["name"] in wanted]
        return {"entities": matched, "relations": self._touching(relations, matched)}

    @staticmethod
    def _touching(relations: list[dict], entities: list[dict]) -> list[dict]:
        names = {e["name"] for e in entities}
        return [r for r in relations if r["from"] in names or r["to"] in names]

    # -- writing ---------------------------------------------------------

    def create_entities(self, entities: list[dict]) -> list[dict]:
        """Create entities; names that already exist are skipped. Returns the created ones."""
        existing, relations = self.read_graph()
        names = {e["name"] for e in existing}
        created = []
        for entity in entities:
            if entity["name"] in names:
                logger.debug(f"[STORE] entity {entity['name']} exists, skipping")
                continue
            record = {
                "type": "entity",
                "name": entity["name"],
                "entityType": entity["entityType"],
                "observations": list(entity.get("observations", [])),
            }
            existing.append(record)
            names.add(record["name"])
            created.append(record)
        if created:
            self._write(existing, relations)
        return created

    def add_observations(self, observations: list[dict]) -> list[dict]:
        """Append observations: [{"entityName": ..., "contents": [...]}, ...]."""
        entities, relations = self.read_graph()
        by_name = {e["name"]: e for e in entities}
        added = []
        for item in observations:
            entity = by_name.get(item["entityName"])
            if entity is None:
                raise UnknownEntityError(item["entityName"])
            entity["observations"].extend(item["contents"])
            added.append({"entityName": item["entityName"], "addedObservations": list(item["contents"])})
        self._write(entities, relations)
        return added

    def create_relations(self, relations: list[dict]) -> list[dict]:
        """Create relations; exact duplicates are skipped."""
        entities, existing = self.read_graph()
        keys = {(r["from"], r["to"], r["relationType"]) for r in existing}
        created = []
        for rel in relations:
            key = (rel["from"], rel["to"], rel["relationType"])
            if key in keys:
                continue
            record = {"type": "relation", "from": rel["from"], "to": rel["to"], "relationType": rel["relationType"]}
            existing.append(record)
            keys.add(key)
            created.append(record)
        if created:
            self._write(entities, existing)
        return created

    def _write(self, entities: list[dict], relations: list[dict]) -> None:
        records = entities + relations
        for record in records:
            validate_before_write(record, "record", self.path)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                for record in records:
                    fh.write(json.dumps(record, ensure_ascii=False) + "\n")
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
