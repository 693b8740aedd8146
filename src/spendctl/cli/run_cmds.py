"""Demo buyer loop against the simulated payment client."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from . import app, console
from ..adapters.text import TextTransformAdapter
from ..executor import AgentAction
from ..ledger.budget import BudgetState
from ..payments.client import SimulatedPaymentClient
from ..planner import CostOptimizerPlanner, GreedyPlanner
from ..policies import PaymentPolicy, load_policy, policy_from_dict
from ..runner import AgentRunner, RunReport
from ..sdk import create_session
from ..telemetry.sinks import ConsoleSink, JSONLSink
from ..utils.config_loader import config_loader

DEMO_VENDOR = "SimVendor" + "1" * 34
DEMO_ENDPOINT = "http://localhost:3001/api/transform"

DEMO_TASKS = [
    ("task-001", {"text": "Hello, agent world!", "operation": "uppercase"}, 1),
    ("task-002", {"text": "Autonomous Agents", "operation": "reverse"}, 2),
    ("task-003", {"text": "BUDGETED SPENDING", "operation": "lowercase"}, 1),
]


def _demo_policy(vendor: str, budget_cap: int, agent_id: str) -> PaymentPolicy:
    return policy_from_dict(
        {
            "allowedVendors": [vendor],
            "budgetCap": budget_cap,
            "budgetWindow": 3600,
            "rateLimits": {vendor: 10},
            "provenance": {"agentId": agent_id, "taskId": "demo-task-001"},
            "haltConditions": {"maxConsecutiveFailures": 3, "settlementTimeoutMs": 30_000},
        }
    )


async def _run_demo(policy: PaymentPolicy, vendor: str, price: str, sinks, cost_first: bool) -> tuple[RunReport, BudgetState]:
    config = config_loader.get_config()
    session = create_session(policy, sinks=sinks)
    client = SimulatedPaymentClient(network=config.network)
    adapter = TextTransformAdapter(client, vendor, DEMO_ENDPOINT, price)
    runner = AgentRunner(
        session.executor,
        {"text-transform": adapter},
        planner=CostOptimizerPlanner() if cost_first else GreedyPlanner(),
    )
    actions = [
        AgentAction(type="text-transform", input=task_input, priority=priority, task_id=task_id)
        for task_id, task_input, priority in DEMO_TASKS
    ]
    try:
        report = await runner.run(actions)
    finally:
        await session.close()
    return report, session.budget_manager.get_state()


@app.command("run")
def run_demo(
    policy_id: Optional[str] = typer.Option(None, "--policy", "-p", help="Stored policy to run under"),
    vendor: Optional[str] = typer.Option(None, "--vendor", help="Vendor address (defaults to the policy's first vendor)"),
    budget_cap: int = typer.Option(1_000_000, "--budget-cap", help="Budget cap in lamports when no policy is given"),
    price: str = typer.Option("$0.01", "--price", help="Price per request, USD or lamports"),
    agent_id: str = typer.Option("buyer-agent-001", "--agent-id"),
    jsonl: Optional[Path] = typer.Option(None, "--jsonl", help="Append telemetry to this JSONL file"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not print telemetry events"),
    cost_first: bool = typer.Option(False, "--cost-first", help="Pick the cheapest task first"),
):
    """Run the demo buyer agent through a short task queue."""
    try:
        if policy_id:
            policy = load_policy(policy_id)
        else:
            policy = _demo_policy(vendor or DEMO_VENDOR, budget_cap, agent_id)
    except FileNotFoundError:
        console.print(f"[red]Policy '{policy_id}' not found.[/red]")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Invalid policy: {e}[/red]")
        raise typer.Exit(1)

    if not policy.allowed_vendors and vendor is None:
        console.print("[red]Policy has no allowed vendors; pass --vendor.[/red]")
        raise typer.Exit(1)
    target = vendor or policy.allowed_vendors[0]

    config = config_loader.get_config()
    sinks = []
    if not quiet:
        sinks.append(ConsoleSink(console))
    jsonl_path = jsonl or config.telemetry.jsonl_path
    if jsonl_path:
        sinks.append(JSONLSink(jsonl_path, buffer_size=config.telemetry.jsonl_buffer_size))

    console.print(f"[bold]Agent {policy.provenance.agent_id}[/bold]  budget {policy.budget_cap} lamports  vendor {target}")
    report, final = asyncio.run(_run_demo(policy, target, price, sinks, cost_first))

    table = Table(title="Task Outcomes")
    table.add_column("Task")
    table.add_column("Status")
    table.add_column("Cost (lamports)", justify="right")
    table.add_column("Result / Error")
    for outcome in report.outcomes:
        if outcome.success:
            status = "[green]OK[/green]"
            cost = str(outcome.result.cost)
            detail = str(outcome.result.data)
        else:
            status = "[red]FAILED[/red]"
            cost = "0"
            detail = outcome.error or ""
        table.add_row(outcome.action.task_id or "-", status, cost, escape(detail))
    console.print(table)

    if report.halted:
        console.print(f"[red]Agent halted ({report.halted}): {report.halt_details}[/red]")
    console.print(f"Spent: {final.spent} lamports  Remaining: {final.available} lamports")
    if report.failed and not report.succeeded:
        raise typer.Exit(1)
