from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from switchboard.config import SwitchboardConfig, load_config
from switchboard.errors import SwitchboardError
from switchboard.models.request import (
    OperationType,
    ProcessingOptions,
    ProcessingRequest,
    RequestInput,
)
from switchboard.runtime.logging_config import configure_from_config
from switchboard.runtime.router import Router

load_dotenv()

log = logging.getLogger(__name__)

app = typer.Typer(help="Switchboard AI backend router")
console = Console()


def _load(config_path: Path, verbose: bool) -> SwitchboardConfig:
    config = load_config(config_path)
    configure_from_config(config.runtime, verbose=verbose)
    return config


@app.command()
def backends(
    config_path: Path = typer.Option(Path("config.toml"), "--config", "-c"),  # noqa: B008
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """List configured backends and their models."""
    config = _load(config_path, verbose)
    if not config.backends:
        console.print("[yellow]No backends configured.[/yellow]")
        return

    table = Table(title="Backends")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Provider")
    table.add_column("Priority", justify="right")
    table.add_column("Active")
    table.add_column("Models")
    for b in sorted(config.backends, key=lambda b: (b.priority, b.id)):
        table.add_row(
            b.id,
            b.name,
            b.provider.value,
            str(b.priority),
            "yes" if b.is_active else "no",
            ", ".join(m.name for m in b.models if m.is_active),
        )
    console.print(table)


@app.command()
def status(
    config_path: Path = typer.Option(Path("config.toml"), "--config", "-c"),  # noqa: B008
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Health-check every backend and show the results with live metrics."""
    config = _load(config_path, verbose)

    async def _run():
        router = await Router.from_config(config)
        try:
            return await router.status()
        finally:
            await router.stop()

    rows = asyncio.run(_run())
    table = Table(title="Backend status")
    table.add_column("ID", style="cyan")
    table.add_column("Provider")
    table.add_column("Active")
    table.add_column("Healthy")
    table.add_column("Success rate", justify="right")
    table.add_column("Latency ms", justify="right")
    for s in rows:
        metrics = s.metrics or {}
        latency = metrics.get("avg_latency_ms")
        rate = metrics.get("success_rate")
        table.add_row(
            s.id,
            s.provider.value,
            "yes" if s.active else "no",
            "[green]yes[/green]" if s.healthy else "[red]no[/red]",
            f"{rate:.2f}" if rate is not None else "-",
            f"{latency:.0f}" if latency is not None else "-",
        )
    console.print(table)


@app.command()
def process(
    operation: OperationType = typer.Argument(..., help="Operation type"),
    text: str = typer.Argument(..., help="Input text"),
    backend: str | None = typer.Option(None, "--backend", help="Preferred backend id"),
    model: str | None = typer.Option(None, "--model", help="Preferred model name"),
    target_language: str = typer.Option("en", "--to", help="Target language for translation"),
    no_fallback: bool = typer.Option(False, "--no-fallback", help="Disable fallback attempt"),
    config_path: Path = typer.Option(Path("config.toml"), "--config", "-c"),  # noqa: B008
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Route one request and print the normalized result."""
    config = _load(config_path, verbose)
    request = ProcessingRequest(
        operation=operation,
        input=RequestInput(text=text),
        options=ProcessingOptions(
            preferred_backend_id=backend,
            preferred_model=model,
            target_language=target_language,
            fallback_enabled=not no_fallback,
        ),
    )

    async def _run():
        router = await Router.from_config(config)
        try:
            return await router.process(request)
        finally:
            await router.stop()

    try:
        result = asyncio.run(_run())
    except SwitchboardError as exc:
        console.print(f"[red]{exc.code}[/red] {exc.message}")
        raise typer.Exit(code=1) from exc

    console.print(
        f"[bold]{result.backend_id}[/bold]/{result.model} "
        f"latency={result.latency_ms:.0f}ms cost=${result.cost.total_cost:.6f}"
        + (" (fallback)" if result.fallback_used else "")
    )
    console.print_json(json.dumps(result.output.model_dump(mode="json")))


if __name__ == "__main__":
    app()
