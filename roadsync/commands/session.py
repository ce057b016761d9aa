"""
roadsync begin/save/resume/end/start-testing - Work session commands.

Each command rebuilds the session state from the entity store, applies one
engine command and prints the outcome.
"""

from roadsync.lib.config import EngineConfig
from roadsync.lib.output import report
from roadsync.workflow.commands import (
    BeginSession,
    EndSession,
    ResumeSession,
    SaveSession,
    StartTesting,
)
from roadsync.workflow.engine import Engine


def cmd_begin(args, engine: Engine, config: EngineConfig) -> int:
    """Begin a session on the resolved (or given) task."""
    command = BeginSession(session_type=args.type, task_id=getattr(args, 'task', None))
    _, result = engine.apply(command, engine.load_state())
    return report(result)


def cmd_save(args, engine: Engine, config: EngineConfig) -> int:
    """Pause the active session."""
    _, result = engine.apply(SaveSession(reason=args.reason or ""), engine.load_state())
    return report(result)


def cmd_resume(args, engine: Engine, config: EngineConfig) -> int:
    """Resume the latest (or given) save."""
    _, result = engine.apply(ResumeSession(save_id=args.save_id), engine.load_state())
    return report(result)


def cmd_end(args, engine: Engine, config: EngineConfig) -> int:
    """End the active session. Reason 'testing' submits the task for testing."""
    _, result = engine.apply(EndSession(reason=args.reason), engine.load_state())
    return report(result)


def cmd_start_testing(args, engine: Engine, config: EngineConfig) -> int:
    _, result = engine.apply(StartTesting(task_id=args.task), engine.load_state())
    return report(result)
