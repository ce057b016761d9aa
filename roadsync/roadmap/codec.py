"""
Roadmap parser for roadsync.

Decodes the markdown roadmap into a RoadmapDocument and encodes it back.
Task lines follow:

    - [ ID ] Name <emoji> [• [ rnk:X ]] [• [ due:MM.DD.YY ]] [• [ done:MM.DD.YY ]] [[ TIMESTAMP ]] [Note]

Leading whitespace encodes nesting. Every other line (headings, prose,
blank lines) is carried verbatim so a rewrite never loses content.
"""

import logging
import os
import re
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path

from roadsync.lib.constants import (
    DATE_PATTERN,
    EMOJI_STATUS,
    RANK_PATTERN,
    STATUS_EMOJI,
    TASK_ID_PATTERN,
)
from roadsync.lib.errors import MalformedLineError
from roadsync.lib.types import Task, TaskStatus

logger = logging.getLogger(__name__)

# Anything that starts like a task line must parse as one
TASK_START_RE = re.compile(r'^[ \t]*- \[ [^\]\s]')
TASK_LINE_RE = re.compile(r'^(?P<indent>[ \t]*)- \[ (?P<id>\S+) \] (?P<rest>.*\S)\s*$')
HEADING_RE = re.compile(r'^#{1,6}\s+(?P<title>.*?)\s*$')
TAIL_RE = re.compile(
    r'^(?P<tags>(?: • \[ [a-z]+:[^\]\s]+ \])*)'
    r'(?: \[ (?P<ts>\d{2}\.\d{2}\.\d{2} \| \d{1,2}:\d{2} [AP]M [A-Z]{2,5}) \])?'
    r'(?: (?P<note>.+))?$'
)
TAG_RE = re.compile(r' • \[ (?P<key>[a-z]+):(?P<value>[^\]\s]+) \]')

TAG_ORDER = ("rnk", "due", "done")
CHILD_INDENT = "  "


@dataclass
class TaskLine:
    task: Task
    indent: str = ""
    line_number: int = 0


@dataclass
class RoadmapDocument:
    """Ordered roadmap content: TaskLine entries and verbatim text lines."""
    entries: list = field(default_factory=list)
    trailing_newline: bool = True

    @property
    def tasks(self) -> list[Task]:
        """Tasks in document order."""
        return [e.task for e in self.entries if isinstance(e, TaskLine)]

    def get(self, task_id: str) -> Task | None:
        for entry in self.entries:
            if isinstance(entry, TaskLine) and entry.task.id == task_id:
                return entry.task
        return None

    def update(self, task: Task) -> None:
        """Replace a task in place, keeping its position and indentation."""
        for entry in self.entries:
            if isinstance(entry, TaskLine) and entry.task.id == task.id:
                entry.task = task
                return
        raise KeyError(f"Task {task.id} not in roadmap")


def _tokenize_status(rest: str, lineno: int, raw: str) -> tuple[str, TaskStatus, str]:
    """Split 'Name <emoji> tail' into (name, status, tail)."""
    tokens = rest.split(" ")
    for i, token in enumerate(tokens):
        status = EMOJI_STATUS.get(token)
        if status is None:
            continue
        name = " ".join(tokens[:i])
        if not name.strip():
            raise MalformedLineError(lineno, "missing task name", raw)
        tail = " ".join(tokens[i + 1:])
        return name, status, (" " + tail if tail else "")

    for token in tokens:
        if token and token != "•" and not any(ch.isalnum() for ch in token) and any(ord(ch) > 0x2000 for ch in token):
            raise MalformedLineError(lineno, f"unrecognized status emoji {token!r}", raw)
    raise MalformedLineError(lineno, "missing status emoji", raw)


def _parse_tags(tag_text: str, lineno: int, raw: str) -> dict[str, str]:
    tags: dict[str, str] = {}
    for match in TAG_RE.finditer(tag_text):
        key, value = match.group("key"), match.group("value")
        if key not in TAG_ORDER:
            raise MalformedLineError(lineno, f"unknown tag '{key}'", raw)
        if key in tags:
            raise MalformedLineError(lineno, f"repeated tag '{key}'", raw)
        if key == "rnk" and not RANK_PATTERN.match(value):
            raise MalformedLineError(lineno, f"invalid rank '{value}' (expected A-Z)", raw)
        if key in ("due", "done") and not DATE_PATTERN.match(value):
            raise MalformedLineError(lineno, f"invalid {key} date '{value}' (expected MM.DD.YY)", raw)
        tags[key] = value
    return tags


def parse_task_line(line: str, lineno: int = 0) -> tuple[str, Task]:
    """Parse one task line. Returns (indent, task) with position fields unset."""
    match = TASK_LINE_RE.match(line)
    if not match:
        raise MalformedLineError(lineno, "malformed task line", line)

    task_id = match.group("id")
    if not TASK_ID_PATTERN.match(task_id):
        raise MalformedLineError(lineno, f"invalid task id '{task_id}'", line)

    name, status, tail = _tokenize_status(match.group("rest"), lineno, line)

    tail_match = TAIL_RE.match(tail)
    if not tail_match:
        raise MalformedLineError(lineno, "unparseable tags", line)
    note = tail_match.group("note")
    if note and note.startswith("•"):
        raise MalformedLineError(lineno, "unparseable tag", line)

    tags = _parse_tags(tail_match.group("tags"), lineno, line)
    if "done" in tags and status != TaskStatus.COMPLETED:
        logger.warning(f"[ROADMAP] Line {lineno}: done date on non-completed task {task_id}")

    task = Task(
        id=task_id,
        name=name,
        status=status,
        rank=tags.get("rnk"),
        due=tags.get("due"),
        done=tags.get("done"),
        updated=tail_match.group("ts"),
        note=note,
    )
    return match.group("indent"), task


def decode(content: str) -> RoadmapDocument:
    """Parse roadmap text into a RoadmapDocument.

    Raises:
        MalformedLineError: on an unparseable task line or a duplicate id
    """
    trailing_newline = content.endswith("\n")
    lines = content.split("\n")
    if trailing_newline:
        lines.pop()

    doc = RoadmapDocument(trailing_newline=trailing_newline)
    seen: dict[str, int] = {}
    stack: list[tuple[int, str]] = []  # (indent width, task id)
    section = None
    ordinal = 0

    for lineno, line in enumerate(lines, 1):
        heading = HEADING_RE.match(line)
        if heading:
            section = heading.group("title")
            stack = []
            doc.entries.append(line)
            continue

        if not TASK_START_RE.match(line):
            doc.entries.append(line)
            continue

        indent, task = parse_task_line(line, lineno)
        if task.id in seen:
            raise MalformedLineError(lineno, f"duplicate task id '{task.id}' (first on line {seen[task.id]})", line)
        seen[task.id] = lineno

        width = len(indent.expandtabs(4))
        while stack and stack[-1][0] >= width:
            stack.pop()
        parent_id = stack[-1][1] if stack else None
        task = replace(task, parent_id=parent_id, ordinal=ordinal, depth=len(stack), section=section)
        stack.append((width, task.id))
        ordinal += 1

        doc.entries.append(TaskLine(task=task, indent=indent, line_number=lineno))

    logger.debug(f"[ROADMAP] Decoded {ordinal} tasks from {len(lines)} lines")
    return doc


def encode_task_line(task: Task, indent: str = "") -> str:
    parts = [f"{indent}- [ {task.id} ] {task.name} {STATUS_EMOJI[task.status]}"]
    values = {"rnk": task.rank, "due": task.due, "done": task.done}
    for key in TAG_ORDER:
        if values[key]:
            parts.append(f" • [ {key}:{values[key]} ]")
    if task.updated:
        parts.append(f" [ {task.updated} ]")
    if task.note:
        parts.append(f" {task.note}")
    return "".join(parts)


def encode(doc: RoadmapDocument) -> str:
    """Serialize a RoadmapDocument back to roadmap text."""
    lines = []
    for entry in doc.entries:
        if isinstance(entry, TaskLine):
            lines.append(encode_task_line(entry.task, entry.indent))
        else:
            lines.append(entry)
    text = "\n".join(lines)
    return text + "\n" if doc.trailing_newline else text


def add_subtask(doc: RoadmapDocument, parent_id: str, task: Task) -> RoadmapDocument:
    """Insert task as the last child of parent_id. Returns the re-indexed document."""
    start = None
    parent_indent = ""
    for i, entry in enumerate(doc.entries):
        if isinstance(entry, TaskLine) and entry.task.id == parent_id:
            start = i
            parent_indent = entry.indent
            break
    if start is None:
        raise KeyError(f"Task {parent_id} not in roadmap")

    parent_width = len(parent_indent.expandtabs(4))
    insert_at = start + 1
    for i in range(start + 1, len(doc.entries)):
        entry = doc.entries[i]
        if not isinstance(entry, TaskLine) or len(entry.indent.expandtabs(4)) <= parent_width:
            break
        insert_at = i + 1

    doc.entries.insert(insert_at, TaskLine(task=task, indent=parent_indent + CHILD_INDENT))
    return decode(encode(doc))


def read_roadmap(path: Path) -> RoadmapDocument:
    """Read and decode the roadmap file."""
    if not path.exists():
        raise FileNotFoundError(f"Roadmap not found: {path}")
    return decode(path.read_text(encoding="utf-8"))


def write_roadmap(path: Path, doc: RoadmapDocument) -> None:
    """Rewrite the whole roadmap file atomically."""
    content = encode(doc)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.debug(f"[ROADMAP] Wrote {len(doc.tasks)} tasks to {path}")
