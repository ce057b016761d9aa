#!/usr/bin/env python3
"""roadsync CLI entrypoint."""

import argparse
import logging
import sys
from pathlib import Path

from roadsync.commands import approval as cmd_approval_module
from roadsync.commands import errors as cmd_errors_module
from roadsync.commands import session as cmd_session_module
from roadsync.commands import status as cmd_status_module
from roadsync.commands import tasks as cmd_tasks_module
from roadsync.lib.config import load_config
from roadsync.lib.errors import (
    ConfigError,
    EntityWriteFailure,
    LockTimeout,
    RoadsyncError,
    SynchronizationMismatchError,
)
from roadsync.lib.output import EXIT_CONFIG, EXIT_MISMATCH, EXIT_REJECTED, EXIT_STORE, error
from roadsync.roadmap.todotxt import SortMode
from roadsync.workflow.engine import Engine


def get_project(args):
    """Load config for --project-dir (default: cwd) and build the engine."""
    project_dir = Path(args.project_dir or ".").resolve()
    config = load_config(project_dir)
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )
    return Engine.from_config(config), config


def dispatch(handler):
    """Wrap a commands/ handler as an argparse func."""
    def run(args):
        engine, config = get_project(args)
        return handler(args, engine, config)
    return run


def main(argv=None):
    parser = argparse.ArgumentParser(prog='roadsync', description='Roadmap and entity store synchronization')
    parser.add_argument('--project-dir', '-C', help='Project directory (default: current directory)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # roadsync import
    p_import = subparsers.add_parser('import', help='Register roadmap tasks in the entity store')
    p_import.set_defaults(func=dispatch(cmd_tasks_module.cmd_import))

    # roadsync renumber
    p_renumber = subparsers.add_parser('renumber', help='Renumber task ids in file order per prefix')
    p_renumber.add_argument('--dry-run', '-n', action='store_true', help='Show the new ids without writing')
    p_renumber.set_defaults(func=dispatch(cmd_tasks_module.cmd_renumber))

    # roadsync begin
    p_begin = subparsers.add_parser('begin', help='Begin a work session on the next task')
    p_begin.add_argument('task', nargs='?', help='Task ID (resolved automatically if omitted)')
    p_begin.add_argument('--type', '-t', default='feature', help='Session type (default: feature)')
    p_begin.set_defaults(func=dispatch(cmd_session_module.cmd_begin))

    # roadsync save
    p_save = subparsers.add_parser('save', help='Pause the active session')
    p_save.add_argument('--reason', '-r', help='Why the session is paused')
    p_save.set_defaults(func=dispatch(cmd_session_module.cmd_save))

    # roadsync resume
    p_resume = subparsers.add_parser('resume', help='Resume a paused session')
    p_resume.add_argument('save_id', nargs='?', help='Save ID (latest if omitted)')
    p_resume.set_defaults(func=dispatch(cmd_session_module.cmd_resume))

    # roadsync end
    p_end = subparsers.add_parser('end', help="End the active session ('testing' submits for testing)")
    p_end.add_argument('reason', help="End reason, e.g. 'testing' or 'abandoned'")
    p_end.set_defaults(func=dispatch(cmd_session_module.cmd_end))

    # roadsync start-testing
    p_testing = subparsers.add_parser('start-testing', help='Start testing a PENDING_TESTING task')
    p_testing.add_argument('task', nargs='?', help='Task ID (session target or first waiting if omitted)')
    p_testing.set_defaults(func=dispatch(cmd_session_module.cmd_start_testing))

    # roadsync enter-approval
    p_enter = subparsers.add_parser('enter-approval', help='Gather evidence and queue for approval')
    p_enter.add_argument('task', nargs='?', help='Task ID (session target if omitted)')
    p_enter.set_defaults(func=dispatch(cmd_approval_module.cmd_enter_approval))

    # roadsync approve
    p_approve = subparsers.add_parser('approve', help='Approve a task awaiting approval')
    p_approve.add_argument('task', help='Task ID')
    p_approve.set_defaults(func=dispatch(cmd_approval_module.cmd_approve))

    # roadsync reject
    p_reject = subparsers.add_parser('reject', help='Reject a task awaiting approval')
    p_reject.add_argument('task', help='Task ID')
    p_reject.add_argument('reason', help='What needs to change')
    p_reject.set_defaults(func=dispatch(cmd_approval_module.cmd_reject))

    # roadsync review
    p_review = subparsers.add_parser('review', help='Interactive approval review')
    p_review.add_argument('task', nargs='?', help='Task ID (session target if omitted)')
    p_review.set_defaults(func=dispatch(cmd_approval_module.cmd_review))

    # roadsync status
    p_status = subparsers.add_parser('status', help='Show next task, session and drift')
    p_status.set_defaults(func=dispatch(cmd_status_module.cmd_status))

    # roadsync raise-error
    p_raise = subparsers.add_parser('raise-error', help='Record an error blocking tasks')
    p_raise.add_argument('description', help='What is wrong')
    p_raise.add_argument('tasks', nargs='+', help='Blocked task IDs')
    p_raise.add_argument('--id', help='Error ID (next ERR-NNNN if omitted)')
    p_raise.set_defaults(func=dispatch(cmd_errors_module.cmd_raise_error))

    # roadsync resolve-error
    p_resolve = subparsers.add_parser('resolve-error', help='Resolve an error')
    p_resolve.add_argument('error_id', help='Error ID')
    p_resolve.set_defaults(func=dispatch(cmd_errors_module.cmd_resolve_error))

    # roadsync export-todo
    p_export = subparsers.add_parser('export-todo', help='Write the roadmap as todo.txt')
    p_export.add_argument('--sort', '-s', choices=[m.value for m in SortMode],
                          type=str.upper, help='Sort mode (default: TODO_SORT_MODE)')
    p_export.set_defaults(func=dispatch(cmd_status_module.cmd_export_todo))

    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except (ConfigError, LockTimeout, FileNotFoundError) as e:
        error(str(e))
        return EXIT_CONFIG
    except SynchronizationMismatchError as e:
        error(str(e))
        return EXIT_MISMATCH
    except EntityWriteFailure as e:
        error(str(e))
        return EXIT_STORE
    except RoadsyncError as e:
        error(str(e))
        return EXIT_REJECTED


if __name__ == '__main__':
    sys.exit(main())
