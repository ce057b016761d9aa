"""
Exception taxonomy for roadsync.

Guard failures (malformed roadmap, invalid transition, approval violation)
are refused cleanly before any store mutation. Synchronization mismatches are
the one class of error that halts the engine.
"""

from dataclasses import dataclass, field


class RoadsyncError(Exception):
    """Base class for every roadsync error."""


class ConfigError(RoadsyncError):
    """Configuration file missing or invalid."""


class LockTimeout(RoadsyncError):
    """Roadmap lock acquisition timed out."""


class MalformedLineError(RoadsyncError):
    """A roadmap line could not be decoded."""

    def __init__(self, line_number: int, reason: str, line: str = ""):
        self.line_number = line_number
        self.reason = reason
        self.line = line
        super().__init__(f"Line {line_number}: {reason}" + (f": {line.strip()!r}" if line else ""))


class EntityWriteFailure(RoadsyncError):
    """An entity store write failed after retrying."""

    def __init__(self, operation: str, attempts: int, cause: Exception | None = None):
        self.operation = operation
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Entity store {operation} failed after {attempts} attempt(s)"
            + (f": {cause}" if cause else "")
        )


class InvalidTransitionError(RoadsyncError):
    """A command's guard refused the transition."""

    def __init__(self, guard: str, detail: str = ""):
        self.guard = guard
        self.detail = detail
        super().__init__(f"{guard}: {detail}" if detail else guard)


class ApprovalStateViolation(InvalidTransitionError):
    """Session save/resume/end attempted while approval is pending."""

    def __init__(self, command: str, session_id: str = ""):
        self.command = command
        self.session_id = session_id
        super().__init__("blocked", "active approval pending")


@dataclass
class Drift:
    """One field that disagrees between the entity store and the roadmap."""
    task_id: str
    field: str
    store_value: str | None
    roadmap_value: str | None

    def __str__(self):
        return f"{self.task_id}.{self.field}: store={self.store_value!r} roadmap={self.roadmap_value!r}"


@dataclass
class SynchronizationMismatchError(RoadsyncError):
    """Entity store and roadmap disagree after a transition."""
    drifts: list[Drift] = field(default_factory=list)
    operation: str = ""

    def __str__(self):
        head = f"Synchronization mismatch after {self.operation}" if self.operation else "Synchronization mismatch"
        return head + ": " + "; ".join(str(d) for d in self.drifts)
