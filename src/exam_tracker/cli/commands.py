"""CLI commands for the exam tracker.

Commands:
- status: Student profile, chapter counts and backup state
- backup / backups / restore: Snapshot management
- export / import: Full database export and import (JSON)
- export-csv: Chapter table as CSV
- reload-defaults: Re-read the class-defaults document
- reset: Delete every chapter and reset the config lists
"""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from exam_tracker.config.app_config import load_app_config
from exam_tracker.core.documents import format_last_updated
from exam_tracker.core.errors import TrackerError
from exam_tracker.core.tracker_service import TrackerSession

app = typer.Typer(
    name="tracker",
    help="Exam preparation tracker: chapters, daily plans and backups.",
    no_args_is_help=True,
)

console = Console()


def _open_session() -> TrackerSession:
    """Open a session on the configured database, or exit with an error."""
    try:
        return TrackerSession.open(load_app_config())
    except TrackerError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)


def _confirm_or_abort(message: str, yes: bool) -> None:
    if yes:
        return
    if not typer.confirm(message, default=False):
        console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(code=1)


# =============================================================================
# STATUS
# =============================================================================


@app.command()
def status() -> None:
    """Show the student profile, progress and backup state."""
    with _open_session() as session:
        info = session.get_student_info()
        chapters = session.list_chapters()
        backups = session.list_backups()

        lock = "[green]locked[/green]" if info.locked else "[dim]unlocked[/dim]"
        header = (
            f"[bold]{info.name or 'Student'}[/bold]  class {info.class_name or '-'}  ({lock})\n"
            f"Review date: {info.review_date}\n"
            f"Chapters: {len(chapters)} | Backups: {len(backups)}"
        )
        console.print(Panel(header, title="[bold]Exam tracker[/bold]", expand=False))

        if chapters:
            table = Table(show_header=True, header_style="bold")
            table.add_column("Subject", style="cyan")
            table.add_column("Chapters", justify="right")
            table.add_column("Confident", justify="right")
            for subject in session.active_subjects():
                in_subject = [c for c in chapters if c.subject == subject]
                confident = sum(1 for c in in_subject if c.confidence in ("Good", "Excellent"))
                table.add_row(subject, str(len(in_subject)), str(confident))
            console.print(table)

        if backups:
            console.print(
                f"[dim]Last backup:[/dim] {format_last_updated(backups[0].timestamp)} "
                f"({backups[0].description})"
            )
        if session.backup_reminder_due:
            console.print(
                "[yellow]⚠ It has been a week since the last reminder. "
                "Consider running 'tracker export'.[/yellow]"
            )


# =============================================================================
# BACKUPS
# =============================================================================


@app.command()
def backup(
    description: str = typer.Option(
        "Manual backup", "--description", "-d", help="Snapshot description"
    ),
) -> None:
    """Create a snapshot of the current data."""
    with _open_session() as session:
        snapshot = session.create_backup(description)
        console.print("[green]✓ Backup created[/green]")
        console.print(f"  [dim]id:[/dim]       {snapshot.id}")
        console.print(f"  [dim]chapters:[/dim] {snapshot.chapter_count}")


@app.command()
def backups() -> None:
    """List snapshots, newest first."""
    with _open_session() as session:
        snapshots = session.list_backups()

    if not snapshots:
        console.print("[dim]No backups yet[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Taken")
    table.add_column("Description")
    table.add_column("Chapters", justify="right")
    for snapshot in snapshots:
        table.add_row(
            str(snapshot.id),
            format_last_updated(snapshot.timestamp),
            snapshot.description,
            str(snapshot.chapter_count),
        )
    console.print(table)


@app.command()
def restore(
    backup_id: int = typer.Argument(..., help="Backup ID (see 'tracker backups')"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Replace the current data with a snapshot."""
    _confirm_or_abort(f"Replace all current data with backup {backup_id}?", yes)

    with _open_session() as session:
        if not session.restore_from_backup(backup_id):
            console.print(f"[red]✗ Could not restore backup {backup_id}[/red]")
            raise typer.Exit(code=1)
    console.print(f"[green]✓ Restored backup {backup_id}[/green]")


# =============================================================================
# EXPORT / IMPORT
# =============================================================================


@app.command()
def export(
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON file"),
) -> None:
    """Export the whole database, including backups, as JSON."""
    with _open_session() as session:
        document = session.export_full_database()
        path = output or Path(session.export_filename("full"))

    path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
    console.print(f"[green]✓ Exported to {path}[/green]")
    console.print(f"  [dim]chapters:[/dim] {len(document['data']['trackingData'])}")
    console.print(f"  [dim]backups:[/dim]  {len(document['data']['backups'])}")


@app.command(name="import")
def import_(
    file: Path = typer.Argument(..., help="JSON file from 'tracker export'"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Replace the current data with an exported database."""
    if not file.exists():
        console.print(f"[red]✗ File not found: {file}[/red]")
        raise typer.Exit(code=1)

    _confirm_or_abort("Replace all current data with the imported file?", yes)

    with _open_session() as session:
        ok = session.import_full_database(file.read_bytes())
    if not ok:
        console.print(f"[red]✗ Invalid export file: {file}[/red]")
        console.print("  [dim]Current data was kept; a pre-import backup was taken.[/dim]")
        raise typer.Exit(code=1)
    console.print(f"[green]✓ Imported {file}[/green]")


@app.command(name="export-csv")
def export_csv(
    output: Path | None = typer.Option(None, "--output", "-o", help="Output CSV file"),
) -> None:
    """Export the chapter table as CSV."""
    with _open_session() as session:
        content = session.export_csv()
        path = output or Path(session.export_filename("csv"))

    path.write_text(content, encoding="utf-8")
    console.print(f"[green]✓ Exported to {path}[/green]")


# =============================================================================
# MAINTENANCE
# =============================================================================


@app.command(name="reload-defaults")
def reload_defaults() -> None:
    """Re-read the class-defaults document."""
    with _open_session() as session:
        if not session.defaults.reload():
            console.print(
                f"[red]✗ Could not load {session.defaults.document_path}[/red]"
            )
            raise typer.Exit(code=1)
        classes = session.defaults.list_classes()
    console.print(f"[green]✓ Loaded defaults for {len(classes)} classes[/green]")


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete every chapter and reset subjects, methods and exam types."""
    _confirm_or_abort("Delete ALL chapters and reset the configuration?", yes)

    with _open_session() as session:
        snapshot = session.clear_all_data()
    console.print("[green]✓ All data cleared[/green]")
    console.print(f"  [dim]pre-clear backup id:[/dim] {snapshot.id}")


if __name__ == "__main__":
    app()
