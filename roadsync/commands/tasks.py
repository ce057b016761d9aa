"""
roadsync import/renumber - Register roadmap tasks and keep their ids in order.
"""

from roadsync.lib.config import EngineConfig
from roadsync.lib.output import report
from roadsync.workflow.commands import ImportTasks, RenumberIds
from roadsync.workflow.engine import Engine


def cmd_import(args, engine: Engine, config: EngineConfig) -> int:
    """Create Task entities for roadmap tasks the store does not know."""
    _, result = engine.apply(ImportTasks(), engine.load_state())
    code = report(result)
    for task_id in result.data.get("imported", []):
        print(f"  + {task_id}")
    return code


def cmd_renumber(args, engine: Engine, config: EngineConfig) -> int:
    """Renumber task ids gapless per prefix, backing up the roadmap first."""
    _, result = engine.apply(RenumberIds(dry_run=args.dry_run), engine.load_state())
    code = report(result)
    for old, new in result.data.get("mapping", {}).items():
        print(f"  {old} -> {new}")
    for issue in result.data.get("issues", []):
        print(f"WARNING: {issue}")
    return code
