"""
roadsync status/export-todo - Read-only views of the roadmap.
"""

from roadsync.lib.config import EngineConfig
from roadsync.lib.output import EXIT_MISMATCH, EXIT_OK, describe_session, error, report
from roadsync.roadmap.codec import read_roadmap
from roadsync.roadmap.todotxt import SortMode, write_todotxt
from roadsync.workflow.commands import StatusCheck
from roadsync.workflow.engine import Engine


def cmd_status(args, engine: Engine, config: EngineConfig) -> int:
    """Show the next task, the open session, error blockers and drift."""
    state = engine.load_state()
    _, result = engine.apply(StatusCheck(), state)
    if "counts" not in result.data:
        return report(result)

    print(result.message)
    print(f"Session: {describe_session(state)}")

    counts = result.data["counts"]
    if counts:
        print("Tasks: " + ", ".join(f"{status} {n}" for status, n in sorted(counts.items())))

    for err in result.data["active_errors"]:
        print(f"Error {err.id}: {err.description} (blocks {', '.join(err.blocks) or 'nothing'})")

    drifts = result.data["drifts"]
    if drifts:
        for drift in drifts:
            error(f"drift {drift}")
        return EXIT_MISMATCH
    return EXIT_OK


def cmd_export_todo(args, engine: Engine, config: EngineConfig) -> int:
    """Regenerate the todo.txt file from the roadmap."""
    mode = SortMode((args.sort or config.todo_sort_mode).upper())
    doc = read_roadmap(config.roadmap_path)
    count = write_todotxt(config.todo_path, doc.tasks, mode)
    print(f"Wrote {count} task(s) to {config.todo_path} ({mode.value})")
    return EXIT_OK
