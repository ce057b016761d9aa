"""
Entity store ("Memory System") access for roadsync.

The store is an external graph of entities, append-only observation logs and
typed relations. roadsync reads and writes it only through coarse
create/read/update calls.
"""

from roadsync.store.adapter import Changeset, EntityStoreAdapter
from roadsync.store.backend import JsonlMemoryBackend, UnknownEntityError
from roadsync.store.relations import Relation, RelationSet, paired

__all__ = [
    "Changeset",
    "EntityStoreAdapter",
    "JsonlMemoryBackend",
    "UnknownEntityError",
    "Relation",
    "RelationSet",
    "paired",
]
