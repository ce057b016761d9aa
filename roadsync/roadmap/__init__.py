"""
Roadmap document support for roadsync.

The roadmap is the human-readable, order-significant mirror of task state.
It is always read and written whole.
"""

from roadsync.roadmap.codec import (
    RoadmapDocument,
    TaskLine,
    add_subtask,
    decode,
    encode,
    read_roadmap,
    write_roadmap,
)
from roadsync.roadmap.ids import apply_renumber, backup_roadmap, plan_renumber, validate_ids
from roadsync.roadmap.todotxt import SortMode, export_todotxt, sort_tasks

__all__ = [
    "RoadmapDocument",
    "TaskLine",
    "add_subtask",
    "decode",
    "encode",
    "read_roadmap",
    "write_roadmap",
    "apply_renumber",
    "backup_roadmap",
    "plan_renumber",
    "validate_ids",
    "SortMode",
    "export_todotxt",
    "sort_tasks",
]
