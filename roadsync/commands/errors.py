"""
roadsync raise-error/resolve-error - Blocking error commands.
"""

from roadsync.lib.config import EngineConfig
from roadsync.lib.output import report
from roadsync.workflow.commands import RaiseError, ResolveError
from roadsync.workflow.engine import Engine


def cmd_raise_error(args, engine: Engine, config: EngineConfig) -> int:
    """Record an error blocking one or more tasks."""
    command = RaiseError(
        description=args.description,
        task_ids=tuple(args.tasks),
        error_id=args.id,
    )
    _, result = engine.apply(command, engine.load_state())
    return report(result)


def cmd_resolve_error(args, engine: Engine, config: EngineConfig) -> int:
    """Resolve an error; tasks with no remaining blocker get their status back."""
    _, result = engine.apply(ResolveError(error_id=args.error_id), engine.load_state())
    return report(result)
