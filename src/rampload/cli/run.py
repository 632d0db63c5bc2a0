"""``rampload run``: execute a staged load test from a configuration file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from rampload._internal.config import load_config, parse_stage_flag
from rampload._internal.errors import ConfigurationError, RampLoadError, ThresholdFailure
from rampload._internal.logging import setup_logging
from rampload.cli.report import (
    EXIT_CHECKS_FAILED,
    EXIT_CONFIG_ERROR,
    exit_code_for,
    print_report,
)
from rampload.engine.session import run_load_test

if TYPE_CHECKING:
    from rampload._internal.config import RunConfig
    from rampload.metrics.models import MetricSnapshot, RunResult

console = Console(stderr=True)


def _make_live_table(snapshot: MetricSnapshot | None) -> Table:
    """Build a Rich table summarising the latest tick.

    Args:
        snapshot: Latest interval snapshot, or None before the first tick.

    Returns:
        Formatted Rich Table.
    """
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    if snapshot is None:
        table.add_row("Status", "Starting...")
        return table

    table.add_row("Elapsed", f"{snapshot.elapsed_seconds:.0f}s")
    table.add_row("Stage", str(snapshot.stage_index))
    table.add_row("Active Users", str(snapshot.active_users))
    table.add_row("Requests/sec", f"{snapshot.requests_per_second:.1f}")
    table.add_row("p50 Latency", f"{snapshot.latency_p50:.1f}ms")
    table.add_row("p95 Latency", f"{snapshot.latency_p95:.1f}ms")
    table.add_row("Failed (interval)", str(snapshot.failed_requests))
    return table


def _execute(config: RunConfig, *, live_display: bool) -> RunResult:
    """Run the load test, optionally with a live-updating table on stderr."""
    stdout = Console()
    if not live_display:
        return run_load_test(config, reporter=lambda r: print_report(r, stdout))

    with Live(
        _make_live_table(None),
        console=console,
        refresh_per_second=2,
        transient=True,
    ) as live:

        def _report(result: RunResult) -> None:
            live.stop()
            print_report(result, stdout)

        return run_load_test(
            config,
            on_snapshot=lambda s: live.update(_make_live_table(s)),
            reporter=_report,
        )


def run_cmd(
    config_file: Path = typer.Argument(
        ...,
        help="Path to the YAML (or JSON) run configuration.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    url: str | None = typer.Option(
        None,
        "--url",
        "-u",
        help="Override target_url from the configuration.",
    ),
    stage: list[str] | None = typer.Option(
        None,
        "--stage",
        "-s",
        help="Replace the configured stages; repeat as DURATION:TARGET (e.g. 10s:50).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit logs as one JSON object per line.",
    ),
    no_live: bool = typer.Option(
        False,
        "--no-live",
        help="Disable the live progress table.",
    ),
) -> None:
    """Execute a staged load test and exit non-zero on failed checks or thresholds."""
    setup_logging(
        level=logging.DEBUG if verbose else logging.INFO,
        json_format=json_logs,
    )

    try:
        config = load_config(config_file)
        stages = [parse_stage_flag(s) for s in stage or []]
        config = config.with_overrides(target_url=url, stages=stages)
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from exc

    pattern = config.pattern()
    console.print(
        Panel(
            f"[bold]Target:[/bold]     {config.target_url}\n"
            f"[bold]Stages:[/bold]     {pattern.describe()}\n"
            f"[bold]Max users:[/bold]  {pattern.max_target}\n"
            f"[bold]Thresholds:[/bold] {len(config.thresholds)}",
            title="rampload",
            border_style="cyan",
        )
    )

    try:
        result = _execute(config, live_display=not no_live)
    except RampLoadError as exc:
        console.print(f"[red]Load test failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    code = exit_code_for(result, fail_on_check_failure=config.fail_on_check_failure)
    if code == EXIT_CHECKS_FAILED:
        console.print(
            f"[red]FAIL:[/red] checks passed for "
            f"{result.summary.check_pass_rate * 100:.2f}% of evaluations"
        )
    try:
        result.raise_for_thresholds()
    except ThresholdFailure as exc:
        console.print(f"[red]FAIL:[/red] {exc}")

    if code:
        raise typer.Exit(code=code)
    console.print("[green]All checks and thresholds passed.[/green]")
