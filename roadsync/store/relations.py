"""
Paired relations.

Every relation type that has an inverse is stored as both directed edges.
RelationSet only adds the two together and hides edges whose partner is
missing.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

INVERSE = {
    "blocks": "blockedBy",
    "hasSubtask": "partOf",
    "verifies": "verifiedBy",
    "hasSave": "savedFrom",
    "targets": "targetedBy",
}
INVERSE.update({v: k for k, v in list(INVERSE.items())})
INVERSE["relatedTo"] = "relatedTo"


@dataclass(frozen=True)
class Relation:
    from_id: str
    to_id: str
    relation_type: str

    def inverse(self) -> "Relation":
        if self.relation_type not in INVERSE:
            raise ValueError(f"Relation type '{self.relation_type}' has no inverse")
        return Relation(self.to_id, self.from_id, INVERSE[self.relation_type])

    def to_record(self) -> dict:
        return {"from": self.from_id, "to": self.to_id, "relationType": self.relation_type}


def paired(from_id: str, to_id: str, relation_type: str) -> list[Relation]:
    """Both directions of a relation, forward edge first."""
    forward = Relation(from_id, to_id, relation_type)
    back = forward.inverse()
    return [forward] if back == forward else [forward, back]


class RelationSet:
    """Directed edges, always complete in both directions."""

    def __init__(self):
        self._edges: set[Relation] = set()

    @classmethod
    def from_records(cls, records: list[dict]) -> "RelationSet":
        """Build from store records, dropping edges whose inverse is missing."""
        raw = {Relation(r["from"], r["to"], r["relationType"]) for r in records}
        rs = cls()
        for rel in raw:
            if rel.relation_type not in INVERSE:
                logger.warning(f"[STORE] Ignoring relation with unknown type: {rel}")
                continue
            if rel.inverse() not in raw:
                logger.warning(f"[STORE] Ignoring unpaired relation: {rel}")
                continue
            rs._edges.add(rel)
        return rs

    def add(self, from_id: str, to_id: str, relation_type: str) -> list[Relation]:
        pair = paired(from_id, to_id, relation_type)
        self._edges.update(pair)
        return pair

    def targets(self, from_id: str, relation_type: str) -> list[str]:
        return sorted(r.to_id for r in self._edges if r.from_id == from_id and r.relation_type == relation_type)

    def __iter__(self):
        return iter(sorted(self._edges, key=lambda r: (r.from_id, r.relation_type, r.to_id)))

    def __len__(self) -> int:
        return len(self._edges)
