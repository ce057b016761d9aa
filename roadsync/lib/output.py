"""Console reporting shared by the CLI commands."""

import sys

from roadsync.workflow.commands import CommandResult, EngineState

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_CONFIG = 2
EXIT_MISMATCH = 3
EXIT_STORE = 4


def error(message: str) -> None:
    print(f"ERROR: {message}", file=sys.stderr)


def report(result: CommandResult) -> int:
    """Print a command result; returns the exit code for it."""
    if not result.ok:
        error(result.message)
        return EXIT_REJECTED
    print(result.message)
    return EXIT_OK


def describe_session(state: EngineState) -> str:
    session = state.session
    if session is None:
        return "No open session"
    line = f"{session.id} {session.status.value} on {session.target_task_id} ({session.session_type})"
    if session.awaiting_approval:
        line += " - awaiting approval"
    return line
