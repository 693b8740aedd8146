"""Policy store commands: create, list, show, delete."""

import json
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.table import Table

from . import console, policy_app
from ..policies import create_policy, delete_policy, list_policies, load_policy, load_policy_file


def _parse_rate_limits(values: List[str]) -> dict:
    limits = {}
    for raw in values:
        vendor, sep, limit = raw.partition("=")
        if not sep or not vendor.strip():
            raise typer.BadParameter(f"Expected VENDOR=MAX, got '{raw}'", param_hint="--rate-limit")
        try:
            limits[vendor.strip()] = int(limit)
        except ValueError:
            raise typer.BadParameter(f"Rate limit for {vendor} must be an integer", param_hint="--rate-limit")
    return limits


@policy_app.command("create")
def create_policy_cmd(
    policy_id: str,
    vendor: List[str] = typer.Option([], "--vendor", "-v", help="Allowed vendor address (repeatable)"),
    budget_cap: int = typer.Option(1_000_000, "--budget-cap", help="Budget cap per window, in lamports"),
    budget_window: int = typer.Option(3600, "--budget-window", help="Budget window, in seconds"),
    rate_limit: List[str] = typer.Option([], "--rate-limit", help="VENDOR=MAX requests per window (repeatable)"),
    agent_id: str = typer.Option("agent-001", "--agent-id", help="Agent id stamped on telemetry"),
    task_id: Optional[str] = typer.Option(None, "--task-id"),
    max_failures: int = typer.Option(3, "--max-failures", help="Consecutive failures before halting"),
    settlement_timeout_ms: int = typer.Option(30_000, "--settlement-timeout-ms"),
    from_file: Optional[Path] = typer.Option(None, "--from-file", help="Import a JSON or YAML policy document"),
):
    """Create (or overwrite) a stored payment policy."""
    try:
        if from_file is not None:
            payload = load_policy_file(from_file).to_dict()
        else:
            payload = {
                "allowedVendors": vendor,
                "budgetCap": budget_cap,
                "budgetWindow": budget_window,
                "rateLimits": _parse_rate_limits(rate_limit),
                "provenance": {"agentId": agent_id, "taskId": task_id},
                "haltConditions": {
                    "maxConsecutiveFailures": max_failures,
                    "settlementTimeoutMs": settlement_timeout_ms,
                },
            }
        policy = create_policy(policy_id, payload)
    except (ValueError, ValidationError, OSError) as e:
        console.print(f"[red]Failed to create policy: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Policy '{policy_id}' saved.[/green]")
    console.print(f"Vendors: {len(policy.allowed_vendors)}  Cap: {policy.budget_cap} lamports  Window: {policy.budget_window}s")


@policy_app.command("list")
def list_policies_cmd():
    """List stored policies."""
    policies = list_policies()
    if not policies:
        console.print("No policies found.")
        return

    table = Table(title="Payment Policies")
    table.add_column("ID")
    table.add_column("Agent")
    table.add_column("Vendors", justify="right")
    table.add_column("Cap (lamports)", justify="right")
    table.add_column("Window (s)", justify="right")
    for pid, policy in policies.items():
        table.add_row(
            pid,
            policy.provenance.agent_id,
            str(len(policy.allowed_vendors)),
            str(policy.budget_cap),
            str(policy.budget_window),
        )
    console.print(table)


@policy_app.command("show")
def show_policy_cmd(policy_id: str):
    """Print a stored policy as JSON."""
    try:
        policy = load_policy(policy_id)
    except FileNotFoundError:
        console.print(f"[red]Policy '{policy_id}' not found.[/red]")
        raise typer.Exit(1)
    except (ValueError, ValidationError) as e:
        console.print(f"[red]Invalid policy '{policy_id}': {e}[/red]")
        raise typer.Exit(1)
    console.print_json(json.dumps(policy.to_dict()))


@policy_app.command("delete")
def delete_policy_cmd(policy_id: str):
    """Delete a stored policy."""
    try:
        removed = delete_policy(policy_id)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    if not removed:
        console.print(f"[red]Policy '{policy_id}' not found.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Policy '{policy_id}' deleted.[/green]")
