"""spendctl CLI: modular command package."""

import os
from pathlib import Path
from typing import Optional

import typer
import yaml
from dotenv import find_dotenv, load_dotenv
from rich.console import Console

from .. import __version__
from ..policies import resolve_policy_dir
from ..utils.logging_config import setup_logging

# ── Shared state ────────────────────────────────────────────────────────────

app = typer.Typer(help="spendctl - budgeted spending for autonomous agents")
console = Console()

policy_app = typer.Typer()
telemetry_app = typer.Typer()

app.add_typer(policy_app, name="policy", help="Create, inspect and delete payment policies")
app.add_typer(telemetry_app, name="telemetry", help="Inspect telemetry logs")


# ── Path helpers ────────────────────────────────────────────────────────────

def spendctl_dir() -> Path:
    return Path.home() / ".spendctl"


def config_dir() -> Path:
    return Path(os.getenv("SPENDCTL_CONFIG_DIR") or spendctl_dir() / "config")


def log_dir() -> Path:
    return Path(os.getenv("SPENDCTL_LOG_DIR") or spendctl_dir() / "logs")


DEFAULT_CONFIG = {
    "version": 1,
    "network": "solana-devnet",
    "sol_usd_price": 150.0,
    "log_level": "INFO",
    "telemetry": {
        "console": True,
        "jsonl_path": None,
        "jsonl_buffer_size": 10,
        "webhook_url": None,
    },
}


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override the configured log level"),
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Load environment variables from this file"),
):
    """Load .env and configure logging before any command runs."""
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv(find_dotenv(usecwd=True))
    setup_logging((log_level or os.getenv("SPENDCTL_LOG_LEVEL") or "WARNING").upper())


@app.command("version")
def show_version():
    """Print the installed version."""
    console.print(f"spendctl {__version__}")


# ── Init command (lives at top level, so defined here) ──────────────────────

@app.command("init")
def init_spendctl():
    """Create the config, policy and log folders with a default config.yaml."""
    cfg_dir = config_dir()
    console.print(f"[bold]Initializing spendctl in {cfg_dir.parent}...[/bold]")

    for path in (cfg_dir, resolve_policy_dir(), log_dir()):
        path.mkdir(parents=True, exist_ok=True)

    config_file = cfg_dir / "config.yaml"
    if config_file.exists():
        console.print(f"Keeping existing {config_file}")
    else:
        console.print(f"Creating default {config_file}...")
        config_file.write_text(yaml.safe_dump(DEFAULT_CONFIG, sort_keys=False), encoding="utf-8")

    console.print("[green]spendctl initialized.[/green]")


# ── Register submodule commands (import triggers decorator registration) ────

from . import policy_cmds      # noqa: E402, F401
from . import run_cmds         # noqa: E402, F401
from . import telemetry_cmds   # noqa: E402, F401
