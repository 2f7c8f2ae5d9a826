# -*- coding: utf-8 -*-
"""Command line front end for the scheduling assistant.

Examples:
    python -m orchestrator.run plan "Block 7-9pm Tu/Th for EE labs; avoid Fridays"
    python -m orchestrator.run plan --events-json calendar.json "Study group Monday 6pm"
    python -m orchestrator.run syllabus --import-events pdfs/
    python -m orchestrator.run parse-date --year 2025 "03/04"
"""
import asyncio
import json
import os
import typing as t

import click
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from orchestrator.pipeline import SchedulingOrchestrator, default_analyzer
from orchestrator.utils import (configure_logging, console, create_alternatives_table, create_conflicts_table,
                                create_plans_table, create_syllabus_table, err_console, expand_pdf_paths)
from planner_server.models import SchedulingContext, SchedulingRequest
from planner_server.temporal import parse_date_loose
from productivity_server.providers import InMemoryCalendarProvider, parse_calendar_events
from productivity_server.store import InMemoryAuditLog, InMemoryRecordStore
from syllabus_server.service import SyllabusService


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Student scheduling assistant."""
    configure_logging(verbose)


@cli.command()
@click.argument("text")
@click.option("--user-id", default="cli-user", show_default=True, help="User the request belongs to.")
@click.option(
    "--events-json",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file with a list of existing calendar events to check for conflicts.",
)
@click.option("--no-llm", is_flag=True, help="Skip the LLM and use the heuristic planner only.")
def plan(text: str, user_id: str, events_json: t.Optional[str], no_llm: bool) -> None:
    """Turn a free-text request into event plans.

    TEXT: The request, e.g. "Block 7-9pm Tu/Th for EE labs".
    """
    existing = []
    if events_json:
        with open(events_json, encoding="utf-8") as f:
            try:
                existing = parse_calendar_events(json.load(f))
            except json.JSONDecodeError as e:
                err_console.print(f"[red]Error:[/red] {events_json} is not valid JSON: {e}")
                raise SystemExit(1)

    orchestrator = SchedulingOrchestrator(analyzer=None if no_llm else default_analyzer())
    request = SchedulingRequest(
        user_id=user_id,
        natural_language_input=text,
        context=SchedulingContext(existing_events=existing),
    )
    try:
        result = asyncio.run(orchestrator.analyze_request(request))
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    console.print(create_plans_table(result.plans, result.source))
    for plan_ in result.plans:
        console.print(f"[dim]{plan_.explanation}[/dim]")

    if result.llm_analysis and result.llm_analysis.clarification_needed:
        console.print(Panel("\n".join(result.llm_analysis.clarification_needed),
                            title="❓ Clarification needed", border_style="yellow"))

    for plan_ in result.plans:
        resolution = result.conflicts.get(plan_.id)
        if resolution is None or not resolution.conflicts:
            continue
        console.print(create_conflicts_table(plan_, resolution))
        if resolution.alternatives:
            console.print(create_alternatives_table(resolution))
        console.print(f"[bold]Recommendation:[/bold] {resolution.recommendation}")


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("--user-id", default="cli-user", show_default=True, help="User the syllabi belong to.")
@click.option("--import-events", is_flag=True, help="Also write the extracted events to the calendar.")
def syllabus(paths: tuple[str, ...], user_id: str, import_events: bool) -> None:
    """Extract dated events from syllabus PDFs.

    PATHS: Syllabus PDF files or directories containing PDFs.
    """
    pdfs = expand_pdf_paths(paths)
    service = SyllabusService(InMemoryRecordStore(), InMemoryAuditLog())

    console.print(
        Panel.fit(
            f"[bold blue]📚 Syllabus Import[/bold blue]\n"
            f"Processing [bold]{len(pdfs)}[/bold] syllabus PDFs",
            border_style="blue"
        )
    )

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True
    ) as progress:
        task = progress.add_task("Parsing syllabi...", total=len(pdfs))
        for pdf_path in pdfs:
            progress.update(task, description=f"Parsing {os.path.basename(pdf_path)}...")
            analysis = service.process_pdf(user_id, pdf_path)
            name = analysis.course_info.name or os.path.basename(pdf_path)
            console.print(f"   ✓ {pdf_path}: {analysis.summary}")
            if analysis.events:
                console.print(create_syllabus_table(analysis.events, title=f"📚 {name}"))
            progress.update(task, advance=1)

    if import_events:
        calendar = InMemoryCalendarProvider()
        try:
            created = service.import_events(user_id, None, calendar)
        except ValueError as e:
            console.print(f"[yellow]Nothing imported:[/yellow] {e}")
            return
        console.print(f"\n[bold green]✅ Imported {len(created)} event(s) into the calendar[/bold green]")


@cli.command("parse-date")
@click.argument("text")
@click.option("--year", type=int, help="Year to assume when the text has none.")
def parse_date(text: str, year: t.Optional[int]) -> None:
    """Resolve a loosely written date to YYYY-MM-DD."""
    resolved = parse_date_loose(text, year)
    if resolved is None:
        err_console.print(f"[red]Error:[/red] No date found in '{text}'.")
        raise SystemExit(1)
    console.print(resolved)


if __name__ == "__main__":
    cli()
