"""End-of-run summary printed to standard output."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from rampload.metrics.models import RunResult
    from rampload.metrics.thresholds import ThresholdResult

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2
EXIT_CHECKS_FAILED = 98
EXIT_THRESHOLDS_FAILED = 99


def exit_code_for(result: RunResult, *, fail_on_check_failure: bool = True) -> int:
    """Map a run outcome to a process exit status.

    Failed checks take precedence over failed thresholds.
    """
    if fail_on_check_failure and not result.summary.checks_passed:
        return EXIT_CHECKS_FAILED
    if not result.thresholds_passed:
        return EXIT_THRESHOLDS_FAILED
    return EXIT_OK


def _format_observed(threshold_result: ThresholdResult) -> str:
    threshold = threshold_result.threshold
    if threshold.metric_name == "http_req_duration":
        return f"{threshold_result.observed:.2f}ms"
    if threshold.aggregation == "count":
        return f"{threshold_result.observed:.0f}"
    if threshold.metric_name == "http_reqs":
        return f"{threshold_result.observed:.2f}/s"
    return f"{threshold_result.observed * 100:.2f}%"


def print_report(result: RunResult, console: Console | None = None) -> None:
    """Print the run summary: requests, checks, latency, stages, thresholds.

    Args:
        result: Completed run result.
        console: Console to print to. Defaults to standard output.
    """
    console = console or Console()
    summary = result.summary

    overview = Table(title="Run Summary", show_header=True, header_style="bold green")
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Target", result.target_url)
    overview.add_row("Stages", result.pattern_description)
    overview.add_row("Duration", f"{result.duration_seconds:.1f}s")
    overview.add_row("Peak Users", str(summary.peak_users))
    overview.add_row("Total Requests", str(summary.total_requests))
    overview.add_row("Requests/sec", f"{summary.requests_per_second:.1f}")
    overview.add_row(
        "Failed Requests",
        f"{summary.failed_requests} ({summary.failed_rate * 100:.2f}%)",
    )
    overview.add_row("Latency min", f"{summary.latency_min:.2f}ms")
    overview.add_row("Latency avg", f"{summary.latency_avg:.2f}ms")
    overview.add_row("Latency med", f"{summary.latency_med:.2f}ms")
    overview.add_row("Latency p90", f"{summary.latency_p90:.2f}ms")
    overview.add_row("Latency p95", f"{summary.latency_p95:.2f}ms")
    overview.add_row("Latency p99", f"{summary.latency_p99:.2f}ms")
    overview.add_row("Latency max", f"{summary.latency_max:.2f}ms")
    console.print(overview)

    if summary.checks:
        checks = Table(title="Checks", show_header=True, header_style="bold cyan")
        checks.add_column("Check")
        checks.add_column("Passed", justify="right")
        checks.add_column("Failed", justify="right")
        checks.add_column("Pass Rate", justify="right")
        for stats in summary.checks.values():
            style = "green" if stats.fails == 0 else "red"
            checks.add_row(
                stats.name,
                str(stats.passes),
                str(stats.fails),
                f"[{style}]{stats.pass_rate * 100:.2f}%[/{style}]",
            )
        console.print(checks)

    if summary.stages:
        stages = Table(title="Per-Stage Breakdown", show_header=True, header_style="bold cyan")
        stages.add_column("#", justify="right")
        stages.add_column("Stage")
        stages.add_column("Requests", justify="right")
        stages.add_column("Failed", justify="right")
        for stage in summary.stages:
            stages.add_row(
                str(stage.index),
                stage.description,
                str(stage.requests),
                str(stage.failed_requests),
            )
        console.print(stages)

    if summary.errors_by_type or summary.errors_by_status:
        errors = Table(title="Errors", show_header=True, header_style="bold red")
        errors.add_column("Error")
        errors.add_column("Count", justify="right")
        for error_type, count in sorted(summary.errors_by_type.items()):
            errors.add_row(error_type, str(count))
        for status, count in sorted(summary.errors_by_status.items()):
            errors.add_row(f"HTTP {status}", str(count))
        console.print(errors)

    for threshold_result in result.thresholds:
        threshold = threshold_result.threshold
        mark = "[green]✓[/green]" if threshold_result.passed else "[red]✗[/red]"
        console.print(
            f"{mark} {threshold.metric_name}: {threshold.expression} "
            f"(observed {_format_observed(threshold_result)})"
        )

    if result.interrupted:
        console.print("[yellow]Run was interrupted before the last stage completed.[/yellow]")
