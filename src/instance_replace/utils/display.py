"""
Display utilities for presenting the target instance and replacement outcome.
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..models import OutcomeStatus, PhaseStatus, ReplacementOutcome

console = Console()

PHASE_STYLES = {
    PhaseStatus.SUCCEEDED: "green",
    PhaseStatus.TOLERATED: "yellow",
    PhaseStatus.FAILED: "red",
    PhaseStatus.SKIPPED: "dim",
    PhaseStatus.CANCELLED: "magenta",
}


def display_instance_found(instance_id: str, node_name: Optional[str] = None) -> None:
    """Show which instance the identifier resolved to."""
    if node_name:
        console.print(f"Instance [cyan]{instance_id}[/cyan] ([magenta]{node_name}[/magenta]) found for deletion")
    else:
        console.print(f"Instance [cyan]{instance_id}[/cyan] found for deletion")


def display_confirmation_required() -> None:
    console.print("\n[yellow]Must specify --yes to delete instance[/yellow]")


def display_outcome(outcome: ReplacementOutcome) -> None:
    """Print the per-phase results and a one-line verdict."""
    if outcome.phases:
        table = Table(title=f"Replacement of {outcome.instance_id}")
        table.add_column("Phase", style="cyan")
        table.add_column("Status")
        table.add_column("Detail", style="dim")
        for result in outcome.phases:
            style = PHASE_STYLES.get(result.status, "white")
            table.add_row(
                result.phase.value,
                f"[{style}]{result.status.value}[/{style}]",
                str(result.error) if result.error else "",
            )
        console.print(table)

    if outcome.status == OutcomeStatus.SUCCEEDED:
        display_success(f"✓ Instance {outcome.instance_id} deleted")
        return
    if outcome.status == OutcomeStatus.CONFIRMATION_REQUIRED:
        return

    phase = outcome.phase.value if outcome.phase else "unknown"
    verb = "cancelled" if outcome.status == OutcomeStatus.CANCELLED else "failed"
    display_error(f"✗ Replacement {verb} during {phase}: {outcome.error}")
    if outcome.partial_mutation:
        display_warning(
            "Changes were already applied (detach/cordon/drain) and were not rolled back; "
            "manual cleanup may be needed."
        )


def display_error(message: str) -> None:
    """Display error message."""
    console.print(f"[red]{escape(message)}[/red]")


def display_warning(message: str) -> None:
    """Display warning message."""
    console.print(f"[yellow]{message}[/yellow]")


def display_success(message: str) -> None:
    """Display success message."""
    console.print(f"[green]{message}[/green]")
