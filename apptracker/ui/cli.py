"""
Command-Line Interface for the Application Tracker

Usage:
    python -m apptracker.ui.cli add "TechCorp" "Backend Engineer" --date 2026-02-01
    python -m apptracker.ui.cli list --start 2026-01-01
    python -m apptracker.ui.cli update app_123 status "Interview"
    python -m apptracker.ui.cli funnel --start 2026-01-01 --end 2026-03-31
"""

import logging
import typer
from datetime import datetime
from typing import Optional
from functools import lru_cache
from rich.console import Console
from rich.table import Table

from apptracker.analytics import DateRange, Stage, funnel_chart
from apptracker.errors import TrackerError
from apptracker.ui.api.database.record_store import RecordStore
from apptracker.ui.api.models.application_models import ApplicationCreate
from apptracker.ui.api.services.application_service import ApplicationService
from config.settings import settings

app = typer.Typer(
    name="apptracker",
    help="Track job applications and your hiring funnel",
    add_completion=False
)
console = Console()

DATE_FORMATS = ["%Y-%m-%d"]

STAGE_STYLES = {
    Stage.APPLIED: "white",
    Stage.FIRST_NEXT_STEP: "cyan",
    Stage.PASSED_NEXT_STEP: "blue",
    Stage.INTERVIEW: "magenta",
    Stage.OFFER_RECEIVED: "green",
}


@lru_cache(maxsize=1)
def get_service() -> ApplicationService:
    """Service bound to the configured record store"""
    return ApplicationService(RecordStore(settings.db_path))


@app.callback()
def main():
    """Track job applications and your hiring funnel"""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _range(start: Optional[datetime], end: Optional[datetime]) -> DateRange:
    return DateRange(
        start=start.date() if start else None,
        end=end.date() if end else None,
    )


def _fail(error: Exception) -> None:
    console.print(f"[red]Error: {error}[/red]")
    raise typer.Exit(code=1)


@app.command()
def add(
    company: str = typer.Argument(..., help="Company name"),
    role: str = typer.Argument(..., help="Role applied for"),
    apply_date: Optional[datetime] = typer.Option(None, "--date", "-d", formats=DATE_FORMATS, help="Apply date (default: today)"),
    status: Stage = typer.Option(Stage.APPLIED, "--status", "-s", help="Current stage"),
    owner: str = typer.Option(settings.default_owner, "--owner", help="Owner id"),
):
    """Track a new application"""
    data = ApplicationCreate(
        company_name=company,
        role=role,
        apply_date=apply_date.date() if apply_date else None,
        status=status,
    )
    try:
        app_id = get_service().create_application(owner, data)
    except TrackerError as e:
        _fail(e)

    console.print(f"[green]✓ Added {role} at {company}[/green] [dim]({app_id})[/dim]")


@app.command("list")
def list_applications(
    start: Optional[datetime] = typer.Option(None, "--start", formats=DATE_FORMATS, help="First apply date"),
    end: Optional[datetime] = typer.Option(None, "--end", formats=DATE_FORMATS, help="Last apply date"),
    owner: str = typer.Option(settings.default_owner, "--owner", help="Owner id"),
):
    """List applications in the order they were added"""
    date_range = _range(start, end)
    try:
        applications = get_service().list_applications(owner, date_range)
    except TrackerError as e:
        _fail(e)

    table = Table(title=f"Applications ({date_range.describe()})")
    table.add_column("ID", style="dim")
    table.add_column("Company", style="cyan")
    table.add_column("Role", style="white")
    table.add_column("Applied", style="yellow")
    table.add_column("Status")

    for a in applications:
        style = STAGE_STYLES.get(a.status, "white")
        table.add_row(
            a.id,
            a.company_name,
            a.role,
            a.apply_date.isoformat() if a.apply_date else "-",
            f"[{style}]{a.status.value}[/{style}]",
        )

    console.print(table)
    console.print(f"[dim]{len(applications)} application(s)[/dim]")


@app.command()
def update(
    app_id: str = typer.Argument(..., help="Application id"),
    field: str = typer.Argument(..., help="company_name, role, apply_date or status"),
    value: str = typer.Argument(..., help="New value"),
    owner: str = typer.Option(settings.default_owner, "--owner", help="Owner id"),
):
    """Change one field of an application"""
    try:
        get_service().update_field(owner, app_id, field, value)
    except TrackerError as e:
        _fail(e)

    console.print(f"[green]✓ Updated {field} of {app_id}[/green]")


@app.command()
def delete(
    app_id: str = typer.Argument(..., help="Application id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    owner: str = typer.Option(settings.default_owner, "--owner", help="Owner id"),
):
    """Delete an application"""
    if not yes and not typer.confirm("Delete this job?"):
        console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit()

    try:
        get_service().delete_application(owner, app_id)
    except TrackerError as e:
        _fail(e)

    console.print(f"[green]✓ Deleted {app_id}[/green]")


@app.command()
def funnel(
    start: Optional[datetime] = typer.Option(None, "--start", formats=DATE_FORMATS, help="First apply date"),
    end: Optional[datetime] = typer.Option(None, "--end", formats=DATE_FORMATS, help="Last apply date"),
    owner: str = typer.Option(settings.default_owner, "--owner", help="Owner id"),
    width: int = typer.Option(40, "--width", "-w", help="Chart width in characters"),
):
    """Show the application funnel"""
    date_range = _range(start, end)
    try:
        report = get_service().funnel_report(owner, date_range)
    except TrackerError as e:
        _fail(e)

    chart = Table(title=f"Insights ({date_range.describe()})", show_header=False, box=None)
    chart.add_column("Stage", style="cyan")
    chart.add_column("Bar")
    chart.add_column("Count", justify="right")

    for stage, count, height in funnel_chart(report.stages, settings.bar_min_height, settings.bar_max_height):
        cells = round(height / settings.bar_max_height * width)
        bar = "█" * cells if count else "[dim]·[/dim]"
        chart.add_row(stage.value, f"[{STAGE_STYLES[stage]}]{bar}[/{STAGE_STYLES[stage]}]", str(count))

    console.print(chart)

    table = Table()
    table.add_column("", style="cyan")
    table.add_column("Number of jobs", justify="right")
    table.add_column("% of total", justify="right", style="green")
    table.add_column("% of previous", justify="right", style="yellow")

    for stat in report.stages:
        table.add_row(
            stat.stage.value,
            str(stat.count),
            f"{stat.percent_of_total:.1f}%",
            stat.previous_label,
        )

    console.print(table)
    console.print(f"[dim]{report.total} application(s) in range[/dim]")


@app.command()
def status(
    owner: str = typer.Option(settings.default_owner, "--owner", help="Owner id"),
):
    """Show store status"""
    service = get_service()
    try:
        total = service.store.count()
        mine = len(service.list_applications(owner))
    except TrackerError as e:
        _fail(e)

    table = Table(title="System Status")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Record Store", str(service.store.db_path))
    table.add_row("Stored Applications", str(total))
    table.add_row(f"Applications of {owner}", str(mine))
    table.add_row("Stages", ", ".join(s.value for s in Stage))

    console.print(table)


if __name__ == "__main__":
    app()
