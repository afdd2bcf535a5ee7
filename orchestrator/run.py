# -*- coding: utf-8 -*-
import asyncio
import json
import logging
import sys
import typing as t
from datetime import datetime

import click
from rich.console import Console
from rich.json import JSON
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from calendar_core.events import syllabus_events_to_calendar_events
from calendar_core.models import CalendarEvent, PrioritizedAssignment
from canvas_lms.assignments import fetch_canvas_calendar
from canvas_lms.client import CanvasClient, CanvasError
from services.shared import config
from services.shared.llm import get_llm_client
from syllabus_parser.parser import SyllabusProcessingError, process_syllabus
from syllabus_parser.pdf_utils import PdfExtractionError, extract_pdf_pages


console = Console()

PRIORITY_STYLES = {"high": "bold red", "medium": "yellow", "low": "green"}


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.LOG_LEVEL,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def format_datetime_human(value: t.Optional[datetime]) -> str:
    """Format a datetime as MM/DD HH:MM."""
    if value is None:
        return "-"
    return value.strftime("%m/%d %H:%M")


def truncate_title(title: str, max_length: int = 45) -> str:
    """Truncate title to max_length characters, adding ellipsis if needed."""
    if len(title) <= max_length:
        return title
    return title[:max_length-3] + "..."


def create_assignments_table(assignments: list[PrioritizedAssignment]) -> Table:
    table = Table(title="📚 Upcoming Assignments", show_header=True, header_style="bold magenta")
    table.add_column("Priority")
    table.add_column("Assignment", style="white")
    table.add_column("Course", style="cyan")
    table.add_column("Due", style="yellow")
    table.add_column("Days", justify="right")
    table.add_column("Notes", style="dim")

    for a in assignments:
        table.add_row(
            f"[{PRIORITY_STYLES[a.priority]}]{a.priority}[/]",
            truncate_title(a.name),
            truncate_title(a.course, 30),
            format_datetime_human(a.due_at),
            str(a.days_until_due) if a.days_until_due is not None else "-",
            a.ai_notes,
        )
    return table


def create_events_table(title: str, events: list[CalendarEvent]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Title", style="white")
    table.add_column("Date/Time", style="yellow")
    table.add_column("Variant")

    for event in events:
        table.add_row(
            truncate_title(event.title),
            f"{format_datetime_human(event.start_date)} → {format_datetime_human(event.end_date)}",
            event.variant,
        )
    return table


async def _load_canvas_calendar():
    llm = get_llm_client()
    try:
        async with CanvasClient() as canvas:
            return await fetch_canvas_calendar(canvas, llm, config.PRIORITIZATION_MODEL)
    finally:
        if llm is not None:
            await llm.close()


async def _process_syllabi(syllabus_pdfs: t.Sequence[str], verbose: bool) -> bool:
    """Process every PDF on one event loop with one model client. Returns True if any failed."""
    llm = get_llm_client()
    if llm is None:
        console.print("[yellow]No model API key set, using keyword-based extraction.[/yellow]")

    failed = False
    try:
        for pdf in syllabus_pdfs:
            console.print(Panel.fit(f"[bold blue]📄 {pdf}[/bold blue]", border_style="blue"))
            try:
                pages = await asyncio.to_thread(extract_pdf_pages, pdf)
                result = await process_syllabus(pages, llm, config.SYLLABUS_MODEL)
            except (PdfExtractionError, SyllabusProcessingError) as e:
                console.print(f"[red]Error:[/red] {e}")
                failed = True
                continue

            if not result.events:
                console.print("[yellow]No events were found in the syllabus.[/yellow]")
                continue

            heading = " ".join(filter(None, [result.course_code, result.course_name])) or pdf
            events = syllabus_events_to_calendar_events(result.events)
            console.print(create_events_table(f"📅 {heading}", events))
            if verbose:
                data = [event.model_dump(mode="json") for event in result.events]
                console.print(Panel(JSON(json.dumps(data, indent=2)), title="📄 Extracted Events", border_style="blue"))
    finally:
        if llm is not None:
            await llm.close()
    return failed


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Canvas assignments and syllabus PDFs as prioritized calendar events."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
@click.pass_context
def assignments(ctx: click.Context) -> None:
    """Fetch and prioritize upcoming Canvas assignments."""
    if not config.CANVAS_ACCESS_TOKEN:
        console.print("[red]Error:[/red] No Canvas API token configured (CANVAS_ACCESS_TOKEN).")
        raise SystemExit(1)

    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"),
                  console=console, transient=True) as progress:
        progress.add_task("Fetching assignments from Canvas...", total=None)
        try:
            calendar = asyncio.run(_load_canvas_calendar())
        except CanvasError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise SystemExit(1)

    if not calendar.assignments:
        console.print("[yellow]No upcoming assignments found.[/yellow]")
        return

    console.print(create_assignments_table(calendar.assignments))
    if ctx.obj["verbose"]:
        data = [event.model_dump(mode="json") for event in calendar.events]
        console.print(Panel(JSON(json.dumps(data, indent=2)), title="📄 Calendar Events", border_style="blue"))


@cli.command()
@click.argument(
    "syllabus_pdfs",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False),
)
@click.pass_context
def syllabus(ctx: click.Context, syllabus_pdfs: tuple[str, ...]) -> None:
    """Extract calendar events from syllabus PDFs.

    SYLLABUS_PDFS: Paths to syllabus PDF files.
    """
    if asyncio.run(_process_syllabi(syllabus_pdfs, ctx.obj["verbose"])):
        sys.exit(1)


if __name__ == "__main__":
    cli()
