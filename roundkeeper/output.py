"""Rich console output for resumption decisions."""

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from roundkeeper.flow import FlowPhase
from roundkeeper.ledger import RoundLedger
from roundkeeper.models import Action, ResubmitMessage, TriggerParticipant
from roundkeeper.scheduler import ScheduleResult

console = Console(legacy_windows=False)


def _preview(text: str, words: int = 20) -> str:
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def describe_action(action: Action | None) -> str:
    """One-line description of a detector action."""
    if action is None:
        return "No action"
    if isinstance(action, TriggerParticipant):
        return f"Trigger participant {action.participant_index} for round {action.round_number}"
    if isinstance(action, ResubmitMessage):
        return (
            f"Resubmit round {action.round_number} to "
            f"{len(action.expected_participant_ids)} participant(s): {_preview(action.text)}"
        )
    raise TypeError(f"Unknown action: {action!r}")


def print_ledger(ledger: RoundLedger, result: ScheduleResult, waiting_on_search: bool) -> None:
    """Print the round ledger and scheduling verdict as a table."""
    console.print(Rule("[bold cyan]Round Ledger[/bold cyan]"))
    table = Table(show_header=False, box=None)
    table.add_column("field", style="dim")
    table.add_column("value")
    table.add_row("Current round", str(ledger.current_round) if ledger.current_round is not None else "-")
    table.add_row("Enabled participants", str(ledger.enabled_count))
    table.add_row("Responded", ", ".join(str(i) for i in sorted(ledger.responded_indices)) or "-")
    table.add_row("In progress", ", ".join(str(i) for i in sorted(ledger.in_progress_indices)) or "-")
    table.add_row("Roster changed", "yes" if ledger.roster_changed_since_round else "no")
    table.add_row("Submission in progress", "yes" if result.submission_in_progress else "no")
    table.add_row("Waiting on search", "yes" if waiting_on_search else "no")
    table.add_row("Incomplete", "yes" if result.is_incomplete else "no")
    table.add_row(
        "Next participant",
        str(result.next_participant_index) if result.next_participant_index is not None else "-",
    )
    console.print(table)


def print_decision(action: Action | None) -> None:
    style = "dim" if action is None else "green"
    console.print(Panel(Text(describe_action(action)), title="[bold]Decision[/bold]", border_style=style))


def print_phase(phase: FlowPhase) -> None:
    console.print(Text(f"Flow phase: {phase.name}", style="bold magenta"))
