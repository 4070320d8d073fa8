"""CLI commands for agentops-lite."""

import asyncio
from datetime import datetime

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from agentops_lite import __logo__, __version__
from agentops_lite.tracking import Tracker, TrackerConfig
from agentops_lite.tracking.constants import (
    CLI_DEFAULT_TAGS,
    CLI_DEFAULT_TRACE_NAME,
    ENV_API_KEY,
    ENV_ENDPOINT,
)
from agentops_lite.tracking.report import event_breakdown, session_info

app = typer.Typer(
    name="agentops-lite",
    help=f"{__logo__} agentops-lite - Lightweight AgentOps event tracking",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} agentops-lite v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(None, "--version", "-v", callback=version_callback, is_eager=True),
):
    """agentops-lite - Lightweight AgentOps event tracking."""
    pass


def _format_ms(ts: int | None) -> str:
    if ts is None:
        return "N/A"
    return datetime.fromtimestamp(ts / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _print_session_info(tracker: Tracker) -> None:
    info = session_info(tracker)
    table = Table(title="Session Info")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Session ID", info["session_id"] or "None")
    table.add_row("Start Time", _format_ms(info["start_time"]))
    table.add_row("Active Traces", str(info["active_traces"]))
    table.add_row("Total Events", str(info["total_events"]))
    console.print(table)


def _print_breakdown(report: dict) -> None:
    table = Table(title="Session Breakdown")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("State", report["state"] or "-")
    table.add_row("Duration", f"{report['duration_ms'] or 0:,} ms")
    for kind, count in report["by_kind"].items():
        table.add_row(f"Events ({kind})", str(count))
    table.add_row("Tokens", f"{report['total_tokens']:,}")
    table.add_row("Tools used", ", ".join(report["tools_used"]) or "-")
    table.add_row("Total cost", f"${report['total_cost']:.4f}")
    console.print(table)


# ============================================================================
# Demo
# ============================================================================


@app.command()
def demo(
    scenario: str = typer.Option(
        "all", "--scenario", "-s", help="simple, tool, workflow, manual or all"
    ),
    api_key: str = typer.Option(
        "", "--api-key", "-k", envvar=ENV_API_KEY, help="Collector API key"
    ),
    endpoint: str = typer.Option(None, "--endpoint", "-e", envvar=ENV_ENDPOINT, help="Collector URL"),
    delay: float = typer.Option(1.0, "--delay", "-d", help="Simulated model latency in seconds"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show tracker logs"),
):
    """Run the instrumented demo assistant and show the tracked session."""
    from agentops_lite.demo import SCENARIOS, DemoAssistant, run_scenario

    if scenario != "all" and scenario not in SCENARIOS:
        console.print(f"[red]Unknown scenario: {scenario}[/red]")
        raise typer.Exit(1)

    if logs:
        logger.enable("agentops_lite")
    else:
        logger.disable("agentops_lite")

    if not api_key:
        console.print(
            Panel(
                f"Set [cyan]{ENV_API_KEY}[/cyan] to deliver events to the collector.\n"
                "Running with local tracking only.",
                title="AgentOps Not Configured",
                border_style="yellow",
            )
        )

    cfg = TrackerConfig.from_env()
    cfg.tags = cfg.tags or list(CLI_DEFAULT_TAGS)
    cfg.trace_name = cfg.trace_name or CLI_DEFAULT_TRACE_NAME
    if endpoint:
        cfg.endpoint = endpoint

    tracker = Tracker()
    tracker.init(api_key, cfg)
    assistant = DemoAssistant(tracker, delay=delay)
    selected = SCENARIOS if scenario == "all" else (scenario,)

    async def run_all():
        for name in selected:
            with console.status(f"[dim]Running {name}...[/dim]", spinner="dots"):
                output = await run_scenario(assistant, name)
            console.print(f"[green]✓[/green] [bold]{name}[/bold]: {output}")
        console.print()
        _print_session_info(tracker)
        session = tracker.get_active_session()
        tracker.end_session()
        await tracker.aclose()
        return session

    session = asyncio.run(run_all())

    if session is not None:
        _print_breakdown(event_breakdown(session))
    stats = tracker.sender.stats
    console.print(
        f"\n[dim]Delivery: {stats.sent} sent, {stats.failed} failed, {stats.skipped} skipped[/dim]"
    )


# ============================================================================
# Config
# ============================================================================


@app.command()
def config():
    """Show the tracker configuration resolved from the environment."""
    cfg = TrackerConfig.from_env()

    table = Table(title=f"{__logo__} Tracker Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row(
        "API key", cfg.masked_api_key or f"[yellow]not set ({ENV_API_KEY})[/yellow]"
    )
    table.add_row("Endpoint", cfg.endpoint)
    table.add_row("Tags", ", ".join(cfg.tags) or "-")
    table.add_row("Trace name", cfg.trace_name or "-")
    table.add_row("Auto-start session", "yes" if cfg.auto_start_session else "no")
    console.print(table)
