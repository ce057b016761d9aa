"""Interactive approval review for `roadsync review`."""

from rich.markup import escape
from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Footer, Header, Input, Label, Static

from roadsync.lib.types import Evidence, Task

APPROVE = "approve"
REJECT = "reject"


class ReasonModal(ModalScreen[str]):
    """Modal for entering a rejection reason."""

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def compose(self) -> ComposeResult:
        yield Container(
            Label("Rejection reason:", id="reason-label"),
            Input(placeholder="What needs to change?", id="reason-input"),
            Label("Press Enter to submit, Escape to cancel", id="reason-hint"),
            id="reason-dialog",
        )

    def on_mount(self) -> None:
        self.query_one("#reason-input", Input).focus()

    @on(Input.Submitted)
    def on_submit(self, event: Input.Submitted) -> None:
        self.dismiss(event.value.strip())

    def action_cancel(self) -> None:
        self.dismiss("")


def format_evidence(task: Task, evidence: Evidence | None) -> str:
    # Task names and command output are text, never markup
    lines = [f"[b]{task.id}[/b] {escape(task.name)}", ""]
    if evidence is None:
        lines.append("[dim]No evidence gathered[/dim]")
        return "\n".join(lines)
    verdict = "[green]PASSED[/green]" if evidence.passed else "[red]FAILED[/red]"
    lines.append(f"Evidence: {verdict}")
    if evidence.summary:
        lines += ["", escape(evidence.summary)]
    for artifact in evidence.artifacts:
        lines.append(f"[dim]- {escape(artifact)}[/dim]")
    return "\n".join(lines)


class ReviewApp(App[tuple[str, str] | None]):
    """Show evidence for a task awaiting approval and collect the decision.

    Exits with (APPROVE, "") or (REJECT, reason), or None when the reviewer
    quits without deciding.
    """

    CSS = """
    #evidence-scroll {
        border: solid $primary;
        padding: 1;
        height: 1fr;
    }

    #reason-dialog {
        align: center middle;
        width: 60;
        height: auto;
        border: thick $primary;
        background: $surface;
        padding: 1 2;
    }

    #reason-label {
        margin-bottom: 1;
    }

    #reason-hint {
        margin-top: 1;
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("a", "approve", "Approve"),
        Binding("r", "reject", "Reject"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(self, task: Task, evidence: Evidence | None) -> None:
        super().__init__()
        self.review_task = task
        self.evidence = evidence

    def compose(self) -> ComposeResult:
        yield Header()
        yield VerticalScroll(
            Static(format_evidence(self.review_task, self.evidence), id="evidence-body"),
            id="evidence-scroll",
        )
        yield Footer()

    def on_mount(self) -> None:
        self.title = f"Review {self.review_task.id}"

    def action_approve(self) -> None:
        self.exit((APPROVE, ""))

    def action_reject(self) -> None:
        def handle_reason(reason: str) -> None:
            if not reason:
                self.notify("Rejection needs a reason", severity="warning")
                return
            self.exit((REJECT, reason))

        self.push_screen(ReasonModal(), handle_reason)

    def action_quit(self) -> None:
        self.exit(None)
