"""
Collaborator hook configuration.

Loads hooks.yaml to decide how evidence is gathered, when a completed task
needs a documentation follow-up, and whether transitions raise desktop
notifications. A missing file yields the defaults.

Example hooks.yaml:

    evidence:
      command: "make test TASK={task_id}"
      timeout: 600
    documentation:
      required_prefixes: ["API", "UI"]
      follow_up_name: "Document {name}"
    notifications:
      desktop: true
      urgency: low

Evidence command templates support {task_id} and {task_name}.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from roadsync.lib.errors import ConfigError
from roadsync.lib.validate import ValidationError, validate

logger = logging.getLogger(__name__)

DEFAULT_EVIDENCE_TIMEOUT = 300
DEFAULT_FOLLOW_UP_NAME = "Document {name}"


@dataclass
class HooksConfig:
    """Hook configuration from hooks.yaml."""
    evidence_command: str | None = None
    evidence_timeout: int = DEFAULT_EVIDENCE_TIMEOUT
    documentation_prefixes: list[str] = field(default_factory=list)
    follow_up_name: str = DEFAULT_FOLLOW_UP_NAME
    desktop_notifications: bool = False
    notification_urgency: str = "low"


def load_hooks_config(path: Path | None) -> HooksConfig:
    """Load hooks.yaml and return HooksConfig.

    Raises:
        ConfigError: if the file is not valid YAML or fails the schema
    """
    if path is None or not path.exists():
        return HooksConfig()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from None

    try:
        validate(data, "hooks")
    except ValidationError as e:
        raise ConfigError(f"Invalid hooks file {path}: {e}") from None

    evidence = data.get("evidence") or {}
    documentation = data.get("documentation") or {}
    notifications = data.get("notifications") or {}

    config = HooksConfig(
        evidence_command=evidence.get("command"),
        evidence_timeout=evidence.get("timeout", DEFAULT_EVIDENCE_TIMEOUT),
        documentation_prefixes=list(documentation.get("required_prefixes", [])),
        follow_up_name=documentation.get("follow_up_name", DEFAULT_FOLLOW_UP_NAME),
        desktop_notifications=notifications.get("desktop", False),
        notification_urgency=notifications.get("urgency", "low"),
    )
    logger.debug(f"Loaded hooks from {path}: {config}")
    return config
