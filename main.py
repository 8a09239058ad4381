#!/usr/bin/env python3
"""FX Bias Monitor - CLI Entry Point."""
import sys
import json
import time
import logging
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.table import Table

from __version__ import __version__

console = Console()
logger = logging.getLogger("fxbias.cli")

SIGNAL_STYLES = {
    "STRONG_BUY": "bold green",
    "BUY": "green",
    "HOLD": "white",
    "SELL": "red",
    "STRONG_SELL": "bold red",
}
STATUS_STYLES = {"HEALTHY": "green", "WARNING": "yellow", "CRITICAL": "red"}


def _init_components(config_path=None, verbose=False):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from config import load_config
    from models.database import Database
    from monitor.monitor import build_monitor

    config = load_config(config_path)
    log_cfg = config.get("logging", {})
    setup_logging("DEBUG" if verbose else log_cfg.get("level", "INFO"), log_cfg.get("file"))

    db = None
    if config.get("database", {}).get("enabled"):
        db = Database(config["database"]["path"])
        db.connect()

    monitor = build_monitor(config, persistence=db)
    return {"config": config, "db": db, "monitor": monitor}


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="fxbias")
@click.pass_context
def cli(ctx, config_path, verbose):
    """FX Bias Monitor - macro, positioning and sentiment scoring for currencies and metals."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    if "_components" not in ctx.obj:
        ctx.obj["_components"] = _init_components(ctx.obj.get("config_path"), ctx.obj.get("verbose"))
    return ctx.obj["_components"]


def _parse_assets(asset):
    from models.enums import Asset
    if not asset:
        return None
    try:
        return [Asset(a.strip().upper()) for a in asset.split(",") if a.strip()]
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--asset")


# ──────────────────────────────────────────────────────
# SERVICE
# ──────────────────────────────────────────────────────
@cli.command()
@click.pass_context
def run(ctx):
    """Start the scheduler and block until interrupted."""
    c = _get_components(ctx)
    monitor = c["monitor"]
    monitor.start()
    tasks = monitor.get_schedule_status()
    console.print(f"[bold cyan]FX Bias Monitor[/bold cyan] running {len(tasks)} tasks. Press Ctrl+C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\nStopping...")
    finally:
        monitor.close()
        if c["db"]:
            c["db"].close()


@cli.command()
@click.option("--source", default=None, help="Run a single source (e.g. FRED)")
@click.option("--asset", default=None, help="Comma-separated assets to collect")
@click.pass_context
def collect(ctx, source, asset):
    """Run collection once and show what came back."""
    c = _get_components(ctx)
    monitor = c["monitor"]
    assets = _parse_assets(asset)
    if source:
        results = {}
        result = monitor.manager.run_one(source.upper(), assets)
        if result is None:
            console.print(f"[yellow]{source.upper()} is unknown or disabled.[/yellow]")
            return
        results[source.upper()] = result
    else:
        results = monitor.manager.run_all(assets)

    table = Table(title="Collection", show_header=True)
    table.add_column("Source", style="bold")
    table.add_column("Records", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Time", justify="right")
    for name, result in sorted(results.items()):
        errors = f"[red]{len(result.errors)}[/red]" if result.errors else "0"
        table.add_row(name, str(result.record_count), errors, f"{result.elapsed_ms}ms")
    console.print(table)
    for name, result in sorted(results.items()):
        for err in result.errors:
            console.print(f"  [red]{name}[/red] {err}")
        if result.from_cache:
            console.print(f"  [yellow]{name}[/yellow] fell back to cached result from "
                          f"{result.from_cache.strftime('%Y-%m-%d %H:%M')} UTC")


@cli.command()
@click.option("--asset", default=None, help="Comma-separated assets to show")
@click.option("--indicator", default=None, help="Comma-separated indicators (e.g. INFLATION_CPI)")
@click.option("--max-age", default=24.0, type=float, help="Only points younger than this many hours")
@click.option("--refresh", is_flag=True, help="Collect from all sources first")
@click.pass_context
def data(ctx, asset, indicator, max_age, refresh):
    """Show collected data points, newest first."""
    from models.enums import Indicator
    from utils.formatters import format_pct, format_timestamp, format_value
    c = _get_components(ctx)
    monitor = c["monitor"]
    indicators = None
    if indicator:
        try:
            indicators = [Indicator(i.strip().upper()) for i in indicator.split(",") if i.strip()]
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--indicator")
    if refresh:
        monitor.collect()
    points = monitor.get_data(assets=_parse_assets(asset), indicators=indicators, max_age_hours=max_age)
    if not points:
        console.print("[yellow]No data points. Run 'collect' first or widen --max-age.[/yellow]")
        return

    table = Table(title=f"Data Points ({len(points)})", show_header=True)
    table.add_column("Asset", style="bold")
    table.add_column("Indicator")
    table.add_column("Actual", justify="right")
    table.add_column("Previous", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("Source")
    table.add_column("Released")
    table.add_column("Valid")
    for p in points:
        change = None
        if p.previous:
            change = (p.actual - p.previous) / abs(p.previous) * 100
        table.add_row(
            p.asset.value,
            p.indicator.value,
            format_value(p.actual, p.unit),
            format_value(p.previous),
            format_pct(change, with_color=True),
            p.source,
            format_timestamp(p.release_date),
            "yes" if p.validation_passed else "[red]no[/red]",
        )
    console.print(table)


@cli.command()
@click.option("--asset", default=None, help="Comma-separated assets to show")
@click.option("--refresh", is_flag=True, help="Collect from all sources before scoring")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--explain", is_flag=True, help="Print the factor breakdown per asset")
@click.pass_context
def scores(ctx, asset, refresh, as_json, explain):
    """Recalculate and show asset bias scores."""
    from utils.formatters import format_score, format_probability
    c = _get_components(ctx)
    monitor = c["monitor"]
    if refresh:
        monitor.collect()
    monitor.recalculate_scores()
    results = monitor.get_scores(_parse_assets(asset))

    if as_json:
        console.print(json.dumps([s.to_dict() for s in results], indent=2), soft_wrap=True, markup=False)
        return

    table = Table(title="Asset Bias Scores", show_header=True)
    table.add_column("Asset", style="bold")
    table.add_column("Signal")
    table.add_column("Score", justify="right")
    table.add_column("Econ", justify="right")
    table.add_column("Pos", justify="right")
    table.add_column("Sent", justify="right")
    table.add_column("CB", justify="right")
    table.add_column("Conf", justify="right")
    table.add_column("Data")
    for s in results:
        style = SIGNAL_STYLES.get(s.signal.value, "white")
        table.add_row(
            s.asset.value,
            f"[{style}]{s.signal.value}[/{style}]",
            format_score(s.normalized_score, with_color=True),
            format_score(s.economic_score),
            format_score(s.positioning_score),
            format_score(s.sentiment_score),
            format_score(s.central_bank_score),
            format_probability(s.confidence),
            s.data_quality.value,
        )
    console.print(table)

    if explain:
        for s in results:
            console.print()
            console.print(monitor.engine.explain(s), markup=False)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def rates(ctx, as_json):
    """Estimate central-bank rate decisions."""
    from utils.formatters import format_probability, format_bps
    c = _get_components(ctx)
    monitor = c["monitor"]
    monitor.analyze_rate_decisions()
    estimates = monitor.get_rate_decisions()

    if as_json:
        console.print(json.dumps([e.to_dict() for e in estimates], indent=2), soft_wrap=True, markup=False)
        return

    table = Table(title="Rate Decision Outlook", show_header=True)
    table.add_column("Asset", style="bold")
    table.add_column("Bank")
    table.add_column("Cut", justify="right")
    table.add_column("Hold", justify="right")
    table.add_column("Hike", justify="right")
    table.add_column("Expected", justify="right")
    table.add_column("Next meeting")
    for e in estimates:
        table.add_row(
            e.asset.value,
            e.bank_name,
            format_probability(e.cut_probability),
            format_probability(e.hold_probability),
            format_probability(e.hike_probability),
            format_bps(e.expected_change_bps),
            e.next_meeting_date.strftime("%Y-%m-%d") if e.next_meeting_date else "N/A",
        )
    console.print(table)
    for e in estimates:
        console.print(f"  [bold]{e.asset.value}[/bold] " + "; ".join(e.key_factors))


@cli.command()
@click.pass_context
def health(ctx):
    """Show system health."""
    from utils.formatters import time_ago
    c = _get_components(ctx)
    h = c["monitor"].get_system_health()
    style = STATUS_STYLES.get(h.status.value, "white")
    console.print(f"Status: [{style}]{h.status.value}[/{style}]")
    console.print(f"  Sources: {h.active_sources} active, {h.failed_sources} disabled")
    console.print(f"  Last success: {time_ago(h.last_success)}")
    console.print(f"  Points: {h.total_points} ({h.validation_pass_rate:.0%} valid)")
    console.print(f"  Freshness score: {h.freshness_score:.0f}/100")
    for alert in h.alerts:
        console.print(f"  [yellow]! {alert}[/yellow]")


@cli.command()
@click.pass_context
def schedule(ctx):
    """Show scheduled tasks."""
    c = _get_components(ctx)
    status = c["monitor"].get_schedule_status()
    table = Table(title="Schedule", show_header=True)
    table.add_column("Task", style="bold")
    table.add_column("Every", justify="right")
    table.add_column("Enabled")
    table.add_column("Runs", justify="right")
    table.add_column("Failures", justify="right")
    for name, s in status.items():
        table.add_row(
            name,
            f"{s['interval_seconds']}s",
            "yes" if s["enabled"] else "[dim]no[/dim]",
            str(s["run_count"]),
            str(s["failure_count"]),
        )
    console.print(table)


@cli.command()
@click.option("--enable", "enable_name", default=None, help="Re-enable a source (resets its error count)")
@click.option("--disable", "disable_name", default=None, help="Disable a source")
@click.pass_context
def sources(ctx, enable_name, disable_name):
    """Show source health, or toggle a source."""
    from monitor.manager import UnknownSourceError
    from utils.formatters import time_ago
    c = _get_components(ctx)
    monitor = c["monitor"]
    try:
        if enable_name:
            monitor.enable_source(enable_name.upper(), True)
            console.print(f"[green]✓[/green] {enable_name.upper()} enabled")
        if disable_name:
            monitor.enable_source(disable_name.upper(), False)
            console.print(f"[yellow]{disable_name.upper()} disabled[/yellow]")
    except UnknownSourceError as e:
        raise click.ClickException(f"Unknown source: {e.args[0]}")

    table = Table(title="Sources", show_header=True)
    table.add_column("Source", style="bold")
    table.add_column("Enabled")
    table.add_column("Errors", justify="right")
    table.add_column("Last success")
    for name, h in monitor.get_source_health().items():
        table.add_row(
            name,
            "yes" if h.enabled else "[red]no[/red]",
            f"{h.consecutive_error_count}/{h.max_errors}",
            time_ago(h.last_success),
        )
    console.print(table)


@cli.command()
@click.argument("task")
@click.pass_context
def trigger(ctx, task):
    """Run a scheduled task now."""
    from monitor.scheduler import UnknownTaskError, TaskAlreadyRunningError
    c = _get_components(ctx)
    try:
        result = c["monitor"].trigger_task(task.upper())
    except UnknownTaskError:
        names = ", ".join(c["monitor"].get_schedule_status())
        raise click.ClickException(f"Unknown task {task}. Available: {names}")
    except TaskAlreadyRunningError:
        raise click.ClickException(f"{task} is already running")

    mark = "[green]✓[/green]" if result.success else "[red]✗[/red]"
    console.print(f"{mark} {result.task}: {result.data_points} records in {result.elapsed_ms}ms")
    for err in result.errors:
        console.print(f"  [red]{err}[/red]")


# ──────────────────────────────────────────────────────
# WEB
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.option("--host", default=None, type=str, help="Host to bind to")
@click.option("--no-scheduler", is_flag=True, help="Serve the API without background collection")
@click.pass_context
def web(ctx, port, host, no_scheduler):
    """Launch the JSON API."""
    from web.app import create_app

    c = _get_components(ctx)
    web_cfg = c["config"].get("web", {})
    port = port or web_cfg.get("port", 5000)
    host = host or web_cfg.get("host", "127.0.0.1")

    app = create_app(c["config"], {"monitor": c["monitor"], "db": c["db"]})
    if not no_scheduler:
        c["monitor"].start()

    console.print(f"\n[bold cyan]FX Bias Monitor -- API[/bold cyan]\n")
    console.print(f"  http://{host}:{port}/api/scores")
    console.print(f"\n  Press Ctrl+C to stop.\n")

    try:
        app.run(host=host, port=port, debug=False)
    finally:
        c["monitor"].close()


if __name__ == "__main__":
    cli()
