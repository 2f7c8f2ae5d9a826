"""Utility functions for the orchestrator CLI."""
import logging
import os
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from planner_server.models import EventPlan
from productivity_server.models import ConflictResolution
from syllabus_server.models import SyllabusEvent

console = Console()
err_console = Console(stderr=True)

# Log level when --verbose is not given
SCHEDULER_LOG_LEVEL = os.getenv("SCHEDULER_LOG_LEVEL", "WARNING")


def configure_logging(verbose: bool = False) -> None:
    """Route library logging through rich. --verbose forces DEBUG."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else SCHEDULER_LOG_LEVEL.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


def expand_pdf_paths(paths: tuple[str, ...]) -> list[str]:
    """Expand paths to include all PDFs in directories.

    Args:
        paths: Tuple of file paths and/or directory paths

    Returns:
        List of PDF file paths with directories expanded

    Raises:
        SystemExit: If a path is missing or a directory contains no PDF files
    """
    pdf_files: list[str] = []

    for path_str in paths:
        path = Path(path_str)

        if path.is_file():
            pdf_files.append(path_str)
        elif path.is_dir():
            pdfs_in_dir = sorted(path.glob("*.pdf"))

            if not pdfs_in_dir:
                err_console.print(
                    f"[red]Error:[/red] Directory '{path_str}' contains no PDF files."
                )
                raise SystemExit(1)

            pdf_files.extend(str(p) for p in pdfs_in_dir)
        else:
            err_console.print(
                f"[red]Error:[/red] Path '{path_str}' does not exist."
            )
            raise SystemExit(1)

    return pdf_files


def format_datetime_human(iso_datetime: str) -> str:
    """Convert ISO datetime to human-readable format (Tue 03/04 19:00)."""
    try:
        dt = datetime.fromisoformat(iso_datetime.replace('Z', '+00:00'))
        return dt.strftime("%a %m/%d %H:%M")
    except (ValueError, AttributeError):
        return iso_datetime


def truncate_title(title: str, max_length: int = 45) -> str:
    """Truncate title to max_length characters, adding ellipsis if needed."""
    if len(title) <= max_length:
        return title
    return title[:max_length-3] + "..."


def create_plans_table(plans: list[EventPlan], source: str) -> Table:
    table = Table(title=f"📅 Event Plans ({source})", show_header=True, header_style="bold magenta")
    table.add_column("#", style="cyan", width=3)
    table.add_column("Title", style="white")
    table.add_column("When", style="yellow")
    table.add_column("Repeats", style="green")
    table.add_column("Confidence", justify="right")

    for i, plan in enumerate(plans, start=1):
        repeats = ""
        if plan.recurrence is not None:
            repeats = plan.recurrence.frequency.lower()
            if plan.recurrence.days_of_week:
                repeats += " " + "/".join(day[:3].title() for day in plan.recurrence.days_of_week)
        table.add_row(
            str(i),
            truncate_title(plan.title),
            f"{format_datetime_human(plan.start_date_time)} → {format_datetime_human(plan.end_date_time)}",
            repeats,
            f"{plan.confidence:.2f}",
        )
    return table


def create_conflicts_table(plan: EventPlan, resolution: ConflictResolution) -> Table:
    table = Table(title=f"⚠️  Conflicts for {truncate_title(plan.title, 30)}", show_header=True,
                  header_style="bold red")
    table.add_column("Event", style="white")
    table.add_column("When", style="yellow")
    table.add_column("Type")
    table.add_column("Severity")

    for conflict in resolution.conflicts:
        table.add_row(
            truncate_title(conflict.title),
            f"{format_datetime_human(conflict.start)} → {format_datetime_human(conflict.end)}",
            conflict.conflict_type,
            conflict.severity,
        )
    return table


def create_alternatives_table(resolution: ConflictResolution) -> Table:
    table = Table(title="🔁 Alternatives", show_header=True, header_style="bold blue")
    table.add_column("Rank", style="cyan", width=4)
    table.add_column("When", style="yellow")
    table.add_column("Score", justify="right")
    table.add_column("Tradeoffs", style="dim")

    for alternative in resolution.alternatives:
        table.add_row(
            str(alternative.rank),
            format_datetime_human(alternative.plan.start_date_time),
            f"{alternative.score:.2f}",
            "; ".join(alternative.tradeoffs),
        )
    return table


def create_syllabus_table(events: list[SyllabusEvent], title: str = "📚 Syllabus Events") -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Date", style="yellow")
    table.add_column("Type", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Confidence", justify="right")

    for event in events:
        table.add_row(event.date, event.type, truncate_title(event.title), f"{event.confidence:.2f}")
    return table
