"""
Transition notifications for roadsync.

Every committed transition is logged. With `notifications.desktop` set in
hooks.yaml, each one is also sent through notify-send (freedesktop
compliant: mako, dunst, GNOME, KDE).
"""

import logging
import shutil
import subprocess

from roadsync.lib.types import TransitionEvent

logger = logging.getLogger(__name__)


VALID_URGENCIES = ("low", "normal", "critical")
MAX_NOTIFICATION_LENGTH = 200
NOTIFY_TIMEOUT = 5

# Transitions that always raise a critical alert
CRITICAL_STATES = ("BLOCKED",)


def notify(title: str, message: str, urgency: str = "normal") -> bool:
    """
    Send a desktop notification.

    Args:
        title: Notification title
        message: Notification body, truncated to MAX_NOTIFICATION_LENGTH
        urgency: One of "low", "normal", "critical"

    Returns:
        True if notify-send accepted the notification
    """
    if urgency not in VALID_URGENCIES:
        logger.warning(f"[NOTIFY] Invalid urgency '{urgency}', using 'normal'")
        urgency = "normal"

    if not shutil.which("notify-send"):
        logger.debug("[NOTIFY] notify-send not found, skipping desktop notification")
        return False

    if len(message) > MAX_NOTIFICATION_LENGTH:
        message = message[:MAX_NOTIFICATION_LENGTH] + "..."

    cmd = [
        "notify-send",
        "--urgency", urgency,
        "--app-name", "roadsync",
        "--category", "roadsync.transition",
        title,
        message,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=NOTIFY_TIMEOUT)
    except subprocess.TimeoutExpired:
        logger.warning("[NOTIFY] notify-send timed out")
        return False
    except OSError as e:
        logger.warning(f"[NOTIFY] Failed to run notify-send: {e}")
        return False

    if result.returncode != 0:
        logger.warning(f"[NOTIFY] notify-send failed (exit {result.returncode}): {result.stderr}")
        return False
    return True


def describe(event: TransitionEvent) -> str:
    origin = event.from_state or "new"
    return f"{origin} -> {event.to_state} ({event.command})"


class TransitionNotifier:
    """Notification hook: called once per committed transition."""

    def __init__(self, desktop: bool = False, urgency: str = "low"):
        self.desktop = desktop
        self.urgency = urgency

    def __call__(self, event: TransitionEvent) -> None:
        logger.info(f"[NOTIFY] {event.entity_type} {event.entity_id}: {describe(event)}")
        if not self.desktop:
            return
        urgency = "critical" if event.to_state in CRITICAL_STATES else self.urgency
        notify(f"roadsync: {event.entity_id}", describe(event), urgency)
