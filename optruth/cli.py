"""Operational Truth CLI.

Commands:
- init: Initialize database schema
- summary: Reconcile a project record (JSON file or stored project) and
  print its financial rollup, health score and truth matrix
- catalog: List work types or show one template
- web serve: Run the dashboard API
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from optruth.catalog.templates import calculate_template_estimate, get_catalog
from optruth.config import get_config
from optruth.core.logging import configure_logging
from optruth.db.connection import close_db, get_engine
from optruth.db.models import Base
from optruth.db.store import SqlProjectStore
from optruth.errors import PersistenceError
from optruth.sync.facade import DashboardSyncFacade
from optruth.sync.persistence import ProjectRecord, record_to_state

app = typer.Typer(
    name="optruth",
    help="Operational Truth - reconciled project facts, costs and health",
    no_args_is_help=True,
)
web_cli = typer.Typer(help="Web UI / API")
app.add_typer(web_cli, name="web")

console = Console()


@app.callback()
def main(
    log_level: str | None = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
):
    configure_logging(log_level)


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        engine = get_engine()
        async with engine.begin() as conn:
            if drop:
                console.print("[yellow]Dropping existing tables...[/yellow]")
                await conn.run_sync(Base.metadata.drop_all)
            console.print("[green]Creating tables...[/green]")
            await conn.run_sync(Base.metadata.create_all)
        await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def summary(
    path: Path | None = typer.Argument(None, help="Project record (JSON)"),
    project_id: str | None = typer.Option(None, "--project", help="Stored project ID"),
    sync: bool = typer.Option(False, "--sync", help="Write the reconciled state back"),
):
    """Reconcile a project and show its rollup, health and truth matrix."""
    if (path is None) == (project_id is None):
        console.print("[red]Pass either a JSON file or --project[/red]")
        raise typer.Exit(code=2)

    if path is not None:
        try:
            record = ProjectRecord.model_validate(json.loads(path.read_text()))
        except (OSError, ValueError) as e:
            console.print(f"[red]✗[/red] Could not read {path}: {e}")
            raise typer.Exit(code=1)
        facade = DashboardSyncFacade(record_to_state(record))
    else:
        facade = _load_stored(project_id, sync)

    _print_summary(facade)


def _load_stored(project_id: str, sync: bool) -> DashboardSyncFacade:
    async def _load():
        try:
            facade = await DashboardSyncFacade.load(project_id, SqlProjectStore())
            if sync:
                await facade.sync()
            return facade
        finally:
            await close_db()

    try:
        return asyncio.run(_load())
    except PersistenceError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)


def _print_summary(facade: DashboardSyncFacade) -> None:
    finance = facade.get_financial_summary()
    health = facade.get_health_score()
    matrix = facade.get_truth_matrix()

    console.print(f"[bold]Project:[/bold] {facade.project_id}"
                  f"{'  [yellow](draft)[/yellow]' if finance.is_draft else ''}")

    table = Table(title=f"Financial Summary ({finance.currency})")
    table.add_column("Metric", style="cyan")
    table.add_column("Amount", justify="right", style="green")
    table.add_row("Materials", str(finance.material_cost))
    table.add_row("Labor", str(finance.labor_cost))
    table.add_row("Other", str(finance.other_cost))
    table.add_row("Subtotal", str(finance.subtotal))
    table.add_row(f"Tax ({finance.tax_rate})", str(finance.tax_amount))
    table.add_row("Grand Total", str(finance.grand_total))
    table.add_row("Approved Budget", str(finance.approved_budget))
    table.add_row("Current Spend", str(finance.current_spend))
    table.add_row("Remaining", str(finance.remaining_budget))
    table.add_row("Progress", f"{finance.progress_percent}%")
    table.add_row("Cost Stability", finance.cost_stability)
    console.print(table)

    table = Table(title=f"Health: {health.score} ({health.status_label})")
    table.add_column("Pillar", style="cyan")
    table.add_column("Weight", justify="right")
    table.add_column("Status")
    for pillar in health.pillars:
        if pillar.excluded:
            status = "[dim]excluded[/dim]"
        elif pillar.completed:
            status = "[green]✓[/green]"
        else:
            status = "[red]missing[/red]"
        table.add_row(pillar.label, str(pillar.weight), status)
    console.print(table)

    table = Table(title=f"Truth Matrix ({matrix.conflict_count} conflict(s))")
    table.add_column("Pillar", style="cyan")
    table.add_column("Visual")
    table.add_column("Document")
    table.add_column("Conflict")
    for pillar in matrix.pillars:
        if pillar.is_blocking:
            conflict = "[red]yes[/red]"
        elif pillar.conflict_suppressed:
            conflict = "[yellow]ignored[/yellow]"
        else:
            conflict = ""
        table.add_row(pillar.name, pillar.visual.status, pillar.document.status, conflict)
    console.print(table)


@app.command()
def catalog(
    work_type: str | None = typer.Argument(None, help="Work type to show"),
):
    """List work types, or show one template's materials."""
    pricing = get_catalog()

    if work_type is None:
        table = Table(title="Work Types")
        table.add_column("ID", style="cyan")
        table.add_column("Name")
        table.add_column("Template", justify="center")
        for definition in pricing.work_types:
            has_template = pricing.get_template(definition.id) is not None
            table.add_row(definition.id, definition.name, "✓" if has_template else "")
        console.print(table)
        return

    template = pricing.get_template(work_type)
    if template is None:
        console.print(f"[red]✗[/red] No template for work type '{work_type}'")
        raise typer.Exit(code=1)

    table = Table(title=f"Template: {template.work_type}")
    table.add_column("Item", style="cyan")
    table.add_column("Qty", justify="right")
    table.add_column("Unit")
    table.add_column("Unit Price", justify="right", style="green")
    table.add_column("Waste %", justify="right")
    for material in template.materials:
        table.add_row(
            material.item,
            str(material.quantity),
            material.unit,
            str(material.unit_price),
            str(material.waste) if material.essential else "",
        )
    console.print(table)

    estimate = calculate_template_estimate(template)
    console.print(
        f"Materials {estimate.material_cost}  Labor {estimate.labor_cost} "
        f"({template.estimated_hours}h @ {template.labor_rate})  "
        f"[bold]Total {estimate.total_cost}[/bold]"
    )


@web_cli.command("serve")
def web_serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind"),
    port: int = typer.Option(8001, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload (dev only)"),
):
    """Run the dashboard API."""
    import uvicorn

    typer.echo(f"Starting Operational Truth API on http://{host}:{port}")
    uvicorn.run(
        "optruth.web.app:create_app", factory=True, host=host, port=port, reload=reload, workers=1
    )


if __name__ == "__main__":
    app()
