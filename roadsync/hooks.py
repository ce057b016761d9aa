"""
Collaborator hooks consumed by the engine.

- evidence: Task -> Evidence, run when a task enters the approval queue
- documentation: Task -> follow-up task name or None, run on completion
- notify: TransitionEvent -> None, run for every committed transition

Defaults are built from hooks.yaml; tests and embedders pass their own
callables.
"""

import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from roadsync.lib.hooks_config import HooksConfig
from roadsync.lib.types import Evidence, Task, TransitionEvent
from roadsync.notifications import TransitionNotifier

logger = logging.getLogger(__name__)

EVIDENCE_TAIL_LINES = 20

EvidenceHook = Callable[[Task], Evidence]
DocumentationHook = Callable[[Task], "str | None"]
NotifyHook = Callable[[TransitionEvent], None]


class CommandEvidence:
    """Gather evidence by running a shell command template."""

    def __init__(self, command: str | None, timeout: int, cwd: Path | None = None):
        self.command = command
        self.timeout = timeout
        self.cwd = cwd

    def __call__(self, task: Task) -> Evidence:
        if not self.command:
            return Evidence(passed=False, summary="No evidence command configured")

        # Split before substituting so task names stay single arguments
        try:
            cmd = [arg.format(task_id=task.id, task_name=task.name) for arg in shlex.split(self.command)]
        except (ValueError, KeyError, IndexError) as e:
            logger.warning(f"[EVIDENCE] Invalid evidence command {self.command!r}: {e}")
            return Evidence(passed=False, summary=f"Invalid evidence command: {e}")
        logger.info(f"[EVIDENCE] {task.id}: running {shlex.join(cmd)}")
        try:
            result = subprocess.run(
                cmd, cwd=self.cwd, capture_output=True, text=True, timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            return Evidence(passed=False, summary=f"Evidence command timed out after {self.timeout}s")
        except OSError as e:
            return Evidence(passed=False, summary=f"Evidence command failed to start: {e}")

        output = (result.stdout + result.stderr).strip().splitlines()
        tail = "\n".join(output[-EVIDENCE_TAIL_LINES:])
        return Evidence(
            passed=result.returncode == 0,
            summary=f"exit {result.returncode}" + (f"\n{tail}" if tail else ""),
            artifacts=[shlex.join(cmd)],
        )


class PrefixDocumentation:
    """Require a documentation follow-up for tasks whose id prefix is listed."""

    def __init__(self, prefixes: list[str], name_template: str):
        self.prefixes = set(prefixes)
        self.name_template = name_template

    def __call__(self, task: Task) -> str | None:
        prefix = task.id.split("-", 1)[0]
        if prefix not in self.prefixes:
            return None
        return self.name_template.format(name=task.name, task_id=task.id)


def _no_documentation(task: Task) -> None:
    return None


def _log_only(event: TransitionEvent) -> None:
    logger.debug(f"[NOTIFY] {event.entity_id}: {event.from_state} -> {event.to_state}")


@dataclass
class Hooks:
    evidence: EvidenceHook = field(default_factory=lambda: CommandEvidence(None, 1))
    documentation: DocumentationHook = _no_documentation
    notify: NotifyHook = _log_only


def build_hooks(config: HooksConfig, project_dir: Path | None = None) -> Hooks:
    """Build the default hook set from hooks.yaml settings."""
    return Hooks(
        evidence=CommandEvidence(config.evidence_command, config.evidence_timeout, cwd=project_dir),
        documentation=PrefixDocumentation(config.documentation_prefixes, config.follow_up_name),
        notify=TransitionNotifier(config.desktop_notifications, config.notification_urgency),
    )
