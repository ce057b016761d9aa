"""
roadsync enter-approval/approve/reject/review - Human approval commands.
"""

from roadsync.lib.config import EngineConfig
from roadsync.lib.output import EXIT_OK, EXIT_REJECTED, error, report
from roadsync.lib.tui import APPROVE, ReviewApp
from roadsync.roadmap.codec import read_roadmap
from roadsync.workflow.commands import Approve, EnterApprovalQueue, Reject
from roadsync.workflow.engine import Engine


def cmd_enter_approval(args, engine: Engine, config: EngineConfig) -> int:
    """Gather evidence and put the task in the approval queue."""
    _, result = engine.apply(EnterApprovalQueue(task_id=args.task), engine.load_state())
    code = report(result)
    evidence = result.data.get("evidence")
    if evidence is not None and evidence.summary:
        print(evidence.summary)
    return code


def cmd_approve(args, engine: Engine, config: EngineConfig) -> int:
    """Approve a task awaiting approval."""
    _, result = engine.apply(Approve(task_id=args.task), engine.load_state())
    return report(result)


def cmd_reject(args, engine: Engine, config: EngineConfig) -> int:
    """Reject a task awaiting approval and send it back to ACTIVE."""
    if not args.reason.strip():
        error("Rejection needs a reason")
        return EXIT_REJECTED
    _, result = engine.apply(Reject(task_id=args.task, reason=args.reason), engine.load_state())
    return report(result)


def cmd_review(args, engine: Engine, config: EngineConfig) -> int:
    """Interactive review: show evidence, then approve or reject."""
    state = engine.load_state()
    session = state.session
    if session is None:
        error("No open session to review")
        return EXIT_REJECTED

    task_id = args.task or session.target_task_id
    if session.awaiting_approval:
        # Queued earlier: show the evidence recorded on entry
        request = engine.store.latest_verification(task_id)
        evidence = request.evidence if request else None
    else:
        state, result = engine.apply(EnterApprovalQueue(task_id=task_id), state)
        if not result.ok:
            return report(result)
        evidence = result.data.get("evidence")

    task = read_roadmap(config.roadmap_path).get(task_id)
    if task is None:
        error(f"Task {task_id} not on the roadmap")
        return EXIT_REJECTED

    decision = ReviewApp(task, evidence).run()
    if decision is None:
        print(f"{task_id} left in the approval queue")
        return EXIT_OK

    action, reason = decision
    if action == APPROVE:
        _, result = engine.apply(Approve(task_id=task_id), state)
    else:
        _, result = engine.apply(Reject(task_id=task_id, reason=reason), state)
    return report(result)
