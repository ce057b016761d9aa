"""
Safe .env parser for roadsync.env.

Reads KEY=value lines without shell execution. Values that look like shell
expansion or command chaining are refused.
"""

import re
from pathlib import Path

from roadsync.lib.errors import ConfigError

FORBIDDEN_PATTERNS = [
    re.compile(r'`'),
    re.compile(r'\$\('),
    re.compile(r'\$\{'),
    re.compile(r';'),
    re.compile(r'&&'),
    re.compile(r'\|\|'),
    re.compile(r'\|'),
]

KEY_PATTERN = re.compile(r'^[A-Z][A-Z0-9_]*$')


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_env(text: str, source: str = "<env>") -> dict[str, str]:
    """Parse env-file text into a dict.

    Raises:
        ConfigError: on invalid syntax, an invalid key, or a forbidden pattern
    """
    result = {}
    for lineno, raw in enumerate(text.splitlines(), 1):
        line = raw.strip()
        if not line or line.startswith('#'):
            continue
        if line.startswith('export '):
            line = line[len('export '):].lstrip()

        key, sep, value = line.partition('=')
        if not sep:
            raise ConfigError(f"{source}:{lineno}: invalid syntax (no '=')")
        key = key.strip()
        if not KEY_PATTERN.match(key):
            raise ConfigError(f"{source}:{lineno}: invalid key '{key}'")

        value = _unquote(value.strip())
        for pattern in FORBIDDEN_PATTERNS:
            if pattern.search(value):
                raise ConfigError(f"{source}:{lineno}: forbidden pattern in value for {key}")

        result[key] = value
    return result


def load_env(path: Path) -> dict[str, str]:
    """Load and parse an env file."""
    if not path.exists():
        raise ConfigError(f"Env file not found: {path}")
    return parse_env(path.read_text(encoding="utf-8"), source=str(path))
