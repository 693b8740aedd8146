"""Telemetry log inspection."""

import json
from dataclasses import asdict
from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from . import console, telemetry_app
from ..telemetry.events import event_to_dict
from ..telemetry.summary import DEFAULT_LIMIT, load_events, summarize_events


@telemetry_app.command("summary")
def telemetry_summary(
    path: Path = typer.Argument(..., help="JSONL telemetry log"),
    limit: int = typer.Option(DEFAULT_LIMIT, "--limit", help="Only read the last N events (0 for all)"),
    as_json: bool = typer.Option(False, "--json", help="Emit the summary as JSON"),
):
    """Summarize a JSONL telemetry log."""
    if not path.exists():
        console.print(f"[red]Telemetry log not found: {path}[/red]")
        raise typer.Exit(1)

    summary = summarize_events(load_events(path, limit))

    if as_json:
        data = asdict(summary)
        data["recent_actions"] = [event_to_dict(e) for e in summary.recent_actions]
        console.print_json(json.dumps(data, default=str))
        return

    console.print(f"[bold]Telemetry summary[/bold] ({summary.total_events} events from {path})")

    counts = Table(title="Event Counts")
    counts.add_column("Type")
    counts.add_column("Count", justify="right")
    for event_type, count in summary.event_counts.items():
        counts.add_row(event_type, str(count))
    console.print(counts)

    if summary.vendor_spend:
        spend = Table(title="Vendor Spend")
        spend.add_column("Vendor")
        spend.add_column("Lamports", justify="right")
        spend.add_column("USD", justify="right")
        for row in summary.vendor_spend:
            spend.add_row(row.vendor, str(row.amount_lamports), f"${row.amount_usd:.4f}")
        console.print(spend)

    if summary.budget is not None:
        b = summary.budget
        console.print(
            f"Budget: spent {b.spent_lamports} / {b.initial_lamports} lamports, "
            f"{b.remaining_lamports} remaining"
        )

    stats = summary.task_stats
    console.print(
        f"Tasks: planned {stats.planned}, started {stats.started}, "
        f"[green]succeeded {stats.succeeded}[/green], [red]failed {stats.failed}[/red]"
    )

    if summary.halt is not None:
        console.print(f"[red]Halted at {summary.halt.timestamp}: {summary.halt.reason} ({escape(summary.halt.details)})[/red]")
