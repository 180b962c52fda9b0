"""``explorerload run``: execute a scenario with live terminal output."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from explorerload._internal.config import load_config
from explorerload._internal.errors import ConfigError, ExplorerLoadError
from explorerload.engine.runner import LoadTestRunner
from explorerload.patterns.constant import ConstantPattern
from explorerload.patterns.ramp import RampPattern
from explorerload.patterns.stages import StagesPattern, parse_duration, parse_stage

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from rich.console import RenderableType

    from explorerload.metrics.models import (
        CheckSummary,
        CustomMetricSummary,
        MetricSnapshot,
        TestResult,
    )
    from explorerload.patterns.base import LoadPattern

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Pattern construction
# ---------------------------------------------------------------------------


def _build_pattern(
    vus: int,
    duration: float,
    ramp_to: int | None,
    stages: list[str] | None,
) -> LoadPattern:
    """Pick the pattern the flags describe, as a ``BadParameter`` on bad values.

    ``--stage`` wins over ``--ramp-to``, which wins over a constant ``--vus``.
    """
    try:
        if stages:
            return StagesPattern([parse_stage(s) for s in stages])
        if ramp_to is not None:
            return RampPattern(start_users=vus, end_users=ramp_to, ramp_duration=duration)
        return ConstantPattern(users=vus)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _parse_duration_option(value: str) -> float:
    try:
        return parse_duration(value)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc


# ---------------------------------------------------------------------------
# Rich rendering
# ---------------------------------------------------------------------------


Row = tuple[str, str]


def _kv_table(rows: Iterable[Row], *, title: str | None = None, style: str = "bold cyan") -> Table:
    table = Table(title=title, show_header=True, header_style=style, expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    for label, value in rows:
        table.add_row(label, value)
    return table


def _ms(value: float) -> str:
    return f"{value:.1f}ms"


def _pct(fraction: float) -> str:
    return f"{fraction * 100:.2f}%"


def _format_custom_metric(metric: CustomMetricSummary) -> str:
    if metric.kind == "rate":
        trues = int(metric.value)
        return f"{_pct(metric.rate)}  ✓ {trues}  ✗ {metric.total - trues}"
    return f"{metric.value:g}  {metric.per_second:.2f}/s"


def _checks_table(checks: dict[str, CheckSummary]) -> Table:
    table = Table(title="Checks", show_header=True, header_style="bold cyan", expand=True)
    for heading in ("Check", "Passed", "✓", "✗"):
        table.add_column(heading, justify="left" if heading == "Check" else "right")
    for check in checks.values():
        mark = "[green]✓[/green]" if check.fails == 0 else "[red]✗[/red]"
        table.add_row(f"{mark} {check.name}", _pct(check.rate), str(check.passes), str(check.fails))
    return table


def _custom_metrics_table(metrics: dict[str, CustomMetricSummary]) -> Table:
    table = Table(title="Custom Metrics", show_header=True, header_style="bold cyan", expand=True)
    for heading in ("Metric", "Type", "Value"):
        table.add_column(heading, justify="right" if heading == "Value" else "left")
    for metric in metrics.values():
        table.add_row(metric.name, metric.kind, _format_custom_metric(metric))
    return table


def _tick_rows(snapshot: MetricSnapshot) -> Iterator[Row]:
    yield "Elapsed", f"{snapshot.elapsed_seconds:.0f}s"
    yield "Virtual Users", str(snapshot.active_users)
    yield "Iterations", str(snapshot.iterations)
    yield "Requests/sec", f"{snapshot.requests_per_second:.1f}"
    yield "p50 / p95", f"{_ms(snapshot.latency_p50)} / {_ms(snapshot.latency_p95)}"
    yield "HTTP Errors", f"{snapshot.total_errors} ({_pct(snapshot.error_rate)})"
    for check in snapshot.checks.values():
        yield f"Check: {check.name}", _pct(check.rate)
    for metric in snapshot.custom_metrics.values():
        yield metric.name, _format_custom_metric(metric)


def _make_live_view(snapshot: MetricSnapshot | None) -> RenderableType:
    if snapshot is None:
        return _kv_table([("Status", "Starting virtual users...")])
    return _kv_table(_tick_rows(snapshot))


def _summary_rows(result: TestResult) -> Iterator[Row]:
    yield "Scenario", result.scenario_name
    yield "Pattern", result.pattern_description
    yield "Duration", f"{result.duration_seconds:.1f}s"
    summary = result.final_summary
    if summary is None:
        return
    yield "Iterations", f"{summary.iterations} ({summary.interrupted_iterations} interrupted)"
    yield "Total Requests", str(summary.total_requests)
    yield "Avg Requests/sec", f"{summary.requests_per_second:.1f}"
    yield "Latency avg / max", f"{_ms(summary.latency_avg)} / {_ms(summary.latency_max)}"
    yield "Latency p50 / p90 / p95", " / ".join(
        _ms(v) for v in (summary.latency_p50, summary.latency_p90, summary.latency_p95)
    )
    yield "HTTP Errors", f"{summary.total_errors} ({_pct(summary.error_rate)})"
    for status, count in sorted(summary.errors_by_status.items()):
        yield f"  HTTP {status}", str(count)
    for error_type, count in sorted(summary.errors_by_type.items()):
        yield f"  {error_type}", str(count)


def _print_summary(result: TestResult) -> None:
    summary = result.final_summary
    if summary is not None and summary.checks:
        console.print(_checks_table(summary.checks))
    if summary is not None and summary.custom_metrics:
        console.print(_custom_metrics_table(summary.custom_metrics))
    console.print(_kv_table(_summary_rows(result), title="Test Complete", style="bold green"))


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def run_cmd(
    scenario_file: Path = typer.Argument(
        ...,
        help="Scenario file, e.g. scenarios/dora_the_explorer.py.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    vus: int = typer.Option(
        1,
        "--vus",
        "-u",
        help="Concurrent virtual users (start count when ramping).",
        min=0,
    ),
    duration: str = typer.Option(
        "30s",
        "--duration",
        "-d",
        help="Test duration, e.g. 30s, 1m30s or 90.",
    ),
    ramp_to: int | None = typer.Option(
        None,
        "--ramp-to",
        help="Ramp linearly from --vus to this many users over --duration.",
        min=0,
    ),
    stage: list[str] | None = typer.Option(
        None,
        "--stage",
        "-s",
        help="DURATION:TARGET ramp stage, repeatable (e.g. -s 10s:5 -s 20s:5 -s 5s:0).",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Request timeout in seconds (default: EXPLORERLOAD_TIMEOUT or 60).",
        min=0.001,
    ),
    tick_interval: float = typer.Option(
        1.0,
        "--tick",
        help="Seconds between scaling and live-view updates.",
        min=0.1,
    ),
    fail_on_error_rate: float | None = typer.Option(
        None,
        "--fail-on-error-rate",
        help="Exit non-zero if the HTTP error rate exceeds this fraction (e.g., 0.05).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log at DEBUG level.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit logs as JSON lines.",
    ),
) -> None:
    """Run SCENARIO_FILE, showing a live table per tick and a summary at the end."""
    duration_seconds = _parse_duration_option(duration)
    load_pattern = _build_pattern(
        vus=vus,
        duration=duration_seconds,
        ramp_to=ramp_to,
        stages=stage,
    )
    try:
        config = load_config()
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    if timeout is not None:
        config = replace(config, request_timeout=timeout)

    console.print(
        Panel(
            f"[bold]Scenario:[/bold] {scenario_file.name}\n"
            f"[bold]Pattern:[/bold]  {load_pattern.describe()}\n"
            f"[bold]Duration:[/bold] {load_pattern.total_duration(duration_seconds):g}s\n"
            f"[bold]Timeout:[/bold]  {config.request_timeout:g}s",
            title="explorerload",
            border_style="cyan",
        )
    )

    try:
        test_runner = LoadTestRunner(
            scenario_path=scenario_file,
            pattern=load_pattern,
            duration_seconds=duration_seconds,
            tick_interval=tick_interval,
            config=config,
            log_level=logging.DEBUG if verbose else logging.INFO,
            json_logs=json_logs or None,
        )
    except ExplorerLoadError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    try:
        with Live(
            _make_live_view(None),
            console=console,
            refresh_per_second=2,
            transient=True,
        ) as live:

            def _live_snapshot(snapshot: MetricSnapshot) -> None:
                live.update(_make_live_view(snapshot))

            test_runner.on_snapshot = _live_snapshot
            result = test_runner.run()
    except ExplorerLoadError as exc:
        console.print(f"[red]Load test failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    _print_summary(result)

    if (
        fail_on_error_rate is not None
        and result.final_summary is not None
        and result.final_summary.error_rate > fail_on_error_rate
    ):
        console.print(
            f"[red]FAIL:[/red] HTTP error rate {result.final_summary.error_rate * 100:.2f}% "
            f"exceeds threshold {fail_on_error_rate * 100:.2f}%"
        )
        raise typer.Exit(code=1)

    console.print("[green]Load test completed successfully.[/green]")
