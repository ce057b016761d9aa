"""Shared constants for roadsync."""

import re

from roadsync.lib.types import TaskStatus

# Roadmap status emojis. PAUSED also accepts the bare glyph without VS16.
STATUS_EMOJI = {
    TaskStatus.PENDING: "⏳",
    TaskStatus.ACTIVE: "🔄",
    TaskStatus.PAUSED: "⏸️",
    TaskStatus.PENDING_TESTING: "🔬",
    TaskStatus.TESTING: "🧪",
    TaskStatus.BLOCKED: "❌",
    TaskStatus.COMPLETED: "✅",
}
EMOJI_STATUS = {emoji: status for status, emoji in STATUS_EMOJI.items()}
EMOJI_STATUS["⏸"] = TaskStatus.PAUSED

TASK_ID_PATTERN = re.compile(r'^[A-Z][A-Z0-9]{0,9}-\d+(?:\.\d+)*$')
RANK_PATTERN = re.compile(r'^[A-Z]$')
DATE_PATTERN = re.compile(r'^\d{2}\.\d{2}\.\d{2}$')
ID_PREFIX_PATTERN = re.compile(r'^[A-Z][A-Z0-9]{1,7}$')

# Prefixes renumbered by `roadsync renumber`
DEFAULT_ID_PREFIXES = (
    "AUTH", "UI", "CORE", "WIDGET", "PWA", "BUG", "REFACTOR", "DOCS", "TEST", "DB", "INFRA", "A11Y",
)

# Entity types in the store
ENTITY_TASK = "Task"
ENTITY_SESSION = "WorkSession"
ENTITY_SAVE = "WorkSessionSave"
ENTITY_ERROR = "Error"
ENTITY_VERIFICATION = "VerificationRequest"

# Id prefixes for engine-created entities
SESSION_ID_PREFIX = "WS"
SAVE_ID_PREFIX = "WSS"
ERROR_ID_PREFIX = "ERR"
VERIFICATION_ID_PREFIX = "VR"

END_REASON_TESTING = "testing"

DEFAULT_TIMEZONE = "America/Los_Angeles"
DEFAULT_LOCK_TIMEOUT = 30
DEFAULT_WRITE_RETRIES = 1
