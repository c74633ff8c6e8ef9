"""Typer CLI for mysql-pipe."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

import typer
from rich.console import Console
from rich.table import Table

from mysql_pipe.config.loader import load_resource_config
from mysql_pipe.config.models import ConfigurationError, ResourceConfig
from mysql_pipe.observability.logging_config import configure_logging
from mysql_pipe.resources.factory import describe_options, resource_names
from mysql_pipe.resources.gate import DeduplicationGate
from mysql_pipe.resources.sink import IngestionSink
from mysql_pipe.storage.gateway import BackendUnavailableError, StorageGateway

# stdout carries records for `filter`; everything human-facing goes to stderr
console = Console(stderr=True)
app = typer.Typer(name="mysql-pipe", help="Stream records into and against MySQL")


@app.callback()
def main(
    log_level: str = typer.Option("INFO", "--log-level", help="Log level"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON logs"),
) -> None:
    configure_logging(log_level, json_logs=json_logs)


def _load(config_path: str, section: str | None) -> ResourceConfig:
    path = Path(config_path)
    if not path.exists():
        console.print(f"[red]Config file not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        return load_resource_config(path, section=section)
    except ConfigurationError as exc:
        console.print(f"[red]Invalid config:[/red] {exc}")
        raise typer.Exit(1) from exc


def _records(source: BinaryIO) -> Iterator[bytes]:
    """Newline-delimited records; blank lines are skipped."""
    for line in source:
        record = line.rstrip(b"\r\n")
        if record:
            yield record


def _open_input(input_path: Path | None) -> BinaryIO:
    if input_path is None:
        return sys.stdin.buffer
    if not input_path.exists():
        console.print(f"[red]Input file not found: {input_path}[/red]")
        raise typer.Exit(1)
    return input_path.open("rb")


@app.command()
def validate(
    config_path: str = typer.Argument(..., help="Path to resource YAML"),
    section: str | None = typer.Option(
        None, "--section", help="Resource mapping to read (e.g. mysql-table)"
    ),
) -> None:
    """Validate a resource configuration file."""
    config = _load(config_path, section)
    console.print(f"[green]Valid[/green] table={config.table}")
    console.print(f"  fields:   {', '.join(config.fields)}")
    console.print(f"  encoding: {config.encoding}")
    console.print(f"  insert-chunk-size: {config.insert_chunk_size}")
    console.print("  connection: [dim]****[/dim]")


@app.command()
def options() -> None:
    """List the options every resource recognizes."""
    table = Table(title=f"Options for {', '.join(resource_names())}")
    table.add_column("Option", style="cyan")
    table.add_column("Required")
    table.add_column("Default")
    table.add_column("Description")
    for opt in describe_options():
        default = "" if opt["default"] is None else str(opt["default"])
        table.add_row(
            opt["name"], "yes" if opt["required"] else "no", default, opt["description"]
        )
    console.print(table)


@app.command()
def ingest(
    config_path: str = typer.Argument(..., help="Path to resource YAML"),
    input_path: Path | None = typer.Option(
        None, "--input", "-i", help="Newline-delimited records (default: stdin)"
    ),
    section: str | None = typer.Option(None, "--section", help="Resource mapping"),
) -> None:
    """Write every record into the configured table (mysql-table)."""
    config = _load(config_path, section)
    source = _open_input(input_path)
    try:
        try:
            sink = IngestionSink(config)
        except ConfigurationError as exc:
            console.print(f"[red]Cannot build sink:[/red] {exc}")
            raise typer.Exit(1) from exc
        result = asyncio.run(sink.drain(_records(source)))
    finally:
        if source is not sys.stdin.buffer:
            source.close()

    if not result.ok:
        console.print(
            f"[red]Ingest stopped after {result.written} row(s):[/red] {result.error}"
        )
        raise typer.Exit(1)
    console.print(f"[green]Ingested {result.written} row(s) into {config.table}[/green]")


@app.command("filter")
def filter_records(
    config_path: str = typer.Argument(..., help="Path to resource YAML"),
    input_path: Path | None = typer.Option(
        None, "--input", "-i", help="Newline-delimited records (default: stdin)"
    ),
    section: str | None = typer.Option(None, "--section", help="Resource mapping"),
) -> None:
    """Echo only records whose key is not yet in the table (mysql-filter)."""
    config = _load(config_path, section)
    try:
        gate = DeduplicationGate(config)
    except ConfigurationError as exc:
        console.print(f"[red]Cannot build filter:[/red] {exc}")
        raise typer.Exit(1) from exc

    async def _run(source: BinaryIO) -> tuple[int, int, int]:
        passed = dropped = failed = 0
        for index, record in enumerate(_records(source)):
            outcome = await gate.evaluate(record)
            if not outcome.ok:
                failed += 1
                console.print(f"[red]record {index}:[/red] {outcome.error}")
            elif outcome.output is None:
                dropped += 1
            else:
                passed += 1
                sys.stdout.buffer.write(outcome.output + b"\n")
        sys.stdout.buffer.flush()
        return passed, dropped, failed

    source = _open_input(input_path)
    try:
        passed, dropped, failed = asyncio.run(_run(source))
    finally:
        gate.close()
        if source is not sys.stdin.buffer:
            source.close()

    console.print(f"passed={passed} dropped={dropped} failed={failed}")
    if failed:
        raise typer.Exit(1)


@app.command()
def health(
    config_path: str = typer.Argument(..., help="Path to resource YAML"),
    wait: bool = typer.Option(False, "--wait", help="Retry until MySQL answers"),
    section: str | None = typer.Option(None, "--section", help="Resource mapping"),
) -> None:
    """Check that the configured MySQL backend is reachable."""
    config = _load(config_path, section)
    try:
        gateway = StorageGateway.from_descriptor(config.connection.get_secret_value())
    except ConfigurationError as exc:
        console.print(f"[red]Invalid connection:[/red] {exc}")
        raise typer.Exit(1) from exc

    with gateway:
        if wait:
            try:
                gateway.wait_until_ready()
            except BackendUnavailableError as exc:
                console.print(f"[red]{exc}[/red]")
                raise typer.Exit(1) from exc
        status = gateway.health()

    table = Table(title="Backend Health")
    table.add_column("Component", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")
    style = "green" if status["status"] == "running" else "red"
    table.add_row("mysql", f"[{style}]{status['status']}[/{style}]", status["target"])
    console.print(table)
    if status["status"] != "running":
        raise typer.Exit(1)
