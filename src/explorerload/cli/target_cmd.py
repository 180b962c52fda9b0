"""``explorerload target``: serve the local stand-in for the explored service."""

from __future__ import annotations

import logging

import typer
from rich.console import Console

from explorerload._internal.logging import setup_logging
from explorerload.target.app import DEFAULT_HOST, DEFAULT_PORT, EXPLORE_PATH, run_target

console = Console(stderr=True)


def target_cmd(
    host: str = typer.Option(DEFAULT_HOST, "--host", help="Interface to bind."),
    port: int = typer.Option(DEFAULT_PORT, "--port", "-p", help="Port to listen on."),
    latency_scale: float = typer.Option(
        1.0,
        "--latency-scale",
        help="Multiplier on the simulated journey latency (0 answers immediately).",
        min=0.0,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log every request.",
    ),
) -> None:
    """Serve GET /dora-the-explorer until interrupted."""
    setup_logging(level=logging.DEBUG if verbose else logging.INFO)
    console.print(
        f"[cyan]Serving[/cyan] http://{host}:{port}{EXPLORE_PATH} "
        f"(latency x{latency_scale:g}), Ctrl+C to stop"
    )
    try:
        run_target(host=host, port=port, latency_scale=latency_scale)
    except OSError as exc:
        console.print(f"[red]Cannot listen on {host}:{port}:[/red] {exc}")
        raise typer.Exit(code=1) from exc
