"""Command-line interface for Mongo Extract."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mongo_extract import __version__

app = typer.Typer(
    name="mongo-extract",
    help="Windowed batch extraction from MongoDB collections",
    add_completion=False,
)

console = Console()


def _load_settings(config: Optional[str]):
    from mongo_extract.core.config import Settings, get_settings

    if config:
        return Settings.from_yaml(config)
    return get_settings()


# ============================================================================
# Extraction Commands
# ============================================================================

@app.command()
def run(
    config: Optional[str] = typer.Option(
        None,
        "--config", "-c",
        help="Path to configuration file",
    ),
    output: str = typer.Option(
        "output",
        "--output", "-o",
        help="Directory receiving the emitted units",
    ),
    retries: Optional[int] = typer.Option(
        None,
        "--retries",
        help="Attempts before giving up (defaults to retry.max_attempts)",
    ),
) -> None:
    """Run one extraction and write its units to a directory."""
    from mongo_extract.connectors import MongoDBConfig, MongoDBConnector
    from mongo_extract.core.exceptions import FatalRunError, MongoExtractError
    from mongo_extract.core.retry import RetryPolicy
    from mongo_extract.enrichment import AddressEnricher
    from mongo_extract.extraction import RunController
    from mongo_extract.sinks import DirectorySink
    from mongo_extract.utils.logging import setup_logging

    try:
        settings = _load_settings(config)
    except (MongoExtractError, FileNotFoundError) as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(1)

    setup_logging(
        level=settings.logging.level,
        format=settings.logging.format,
        log_file=settings.logging.file,
    )

    console.print(Panel.fit(
        f"[bold blue]Mongo Extract v{__version__}[/bold blue]\n"
        f"{settings.mongodb.database}.{settings.mongodb.collection} -> {output}",
        title="Extraction",
    ))

    sink = DirectorySink(output)
    enricher = (
        AddressEnricher.from_settings(settings.enrichment)
        if settings.enrichment.enabled
        else None
    )

    def attempt():
        store = MongoDBConnector(MongoDBConfig.from_settings(settings.mongodb))
        controller = RunController(
            settings,
            store,
            sink,
            record_transform=enricher.enrich if enricher else None,
        )
        result = controller.run()
        if not result.committed:
            raise result.fatal_error or FatalRunError("Extraction run rolled back")
        return result

    policy = RetryPolicy.from_settings(settings.retry)
    if retries is not None:
        policy.max_attempts = max(1, retries)

    try:
        result = policy.execute(attempt)
    except MongoExtractError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(1)
    finally:
        if enricher:
            enricher.close()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Metric")
    table.add_column("Value")
    table.add_row("Windows", str(result.windows_planned))
    table.add_row("Windows failed", str(result.windows_failed))
    table.add_row("Records", str(result.records_read))
    table.add_row("Units", str(result.units_emitted))
    table.add_row("Batches dropped", str(result.batches_dropped))
    console.print(table)

    console.print(f"\n[green]✓[/green] Wrote {len(sink.written)} units to {output}")


@app.command()
def plan(
    from_date: Optional[str] = typer.Option(
        None,
        "--from",
        help="Start of the range (defaults to 24 hours ago)",
    ),
    to_date: Optional[str] = typer.Option(
        None,
        "--to",
        help="End of the range (defaults to now)",
    ),
    range_days: int = typer.Option(
        1,
        "--range", "-r",
        help="Window length in days",
    ),
) -> None:
    """Preview the windows an incremental run would query."""
    from mongo_extract.core.utils import format_millis
    from mongo_extract.extraction import WindowPlanner

    if range_days < 1:
        console.print("[red]Error:[/red] --range must be at least 1")
        raise typer.Exit(1)

    windows = list(WindowPlanner(range_days=range_days).plan(from_date, to_date))

    table = Table(show_header=True, header_style="bold")
    table.add_column("#")
    table.add_column("Start")
    table.add_column("End")
    for i, window in enumerate(windows):
        table.add_row(str(i), format_millis(window.start), format_millis(window.end))

    console.print(table)
    console.print(f"\n{len(windows)} windows")


# ============================================================================
# Post-processing Commands
# ============================================================================

@app.command()
def enrich(
    input_path: str = typer.Argument(..., help="JSON array file"),
    output: Optional[str] = typer.Option(
        None,
        "--output", "-o",
        help="Output file (prints to stdout when omitted)",
    ),
    endpoint: str = typer.Option(
        "https://kalinka.edumall.io/location_detect",
        "--endpoint",
        help="Location detection endpoint",
    ),
) -> None:
    """Add province, district and ward to every record of a JSON array."""
    from mongo_extract.core.exceptions import MongoExtractError
    from mongo_extract.enrichment import AddressEnricher

    try:
        payload = Path(input_path).read_text()
        with AddressEnricher(endpoint=endpoint) as enricher:
            result = enricher.enrich_payload(payload)
    except (MongoExtractError, OSError) as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(1)

    _write_or_print(result, output)


@app.command(name="map")
def map_fields(
    input_path: str = typer.Argument(..., help="JSON array file"),
    from_field: str = typer.Option(..., "--from-field", help="Input field holding the lookup value"),
    to_field: str = typer.Option(..., "--to-field", help="Collection field matched against it"),
    replace_id: bool = typer.Option(False, "--replace-id", help="Keep the input record's _id"),
    config: Optional[str] = typer.Option(
        None,
        "--config", "-c",
        help="Path to configuration file",
    ),
    output: Optional[str] = typer.Option(
        None,
        "--output", "-o",
        help="Output file (prints to stdout when omitted)",
    ),
) -> None:
    """Merge matching collection documents into every record of a JSON array."""
    from mongo_extract.connectors import MongoDBConfig, MongoDBConnector
    from mongo_extract.core.exceptions import MongoExtractError
    from mongo_extract.extraction import FieldMapper

    try:
        settings = _load_settings(config)
        payload = Path(input_path).read_text()
        with MongoDBConnector(MongoDBConfig.from_settings(settings.mongodb)) as store:
            mapper = FieldMapper(
                store,
                from_field=from_field,
                to_field=to_field,
                replace_id=replace_id,
                spec=settings.query_spec(),
            )
            result = mapper.map_payload(payload)
    except (MongoExtractError, OSError) as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(1)

    _write_or_print(result, output)


def _write_or_print(content: str, output: Optional[str]) -> None:
    if output:
        Path(output).write_text(content)
        console.print(f"[green]✓[/green] Results saved to {output}")
    else:
        typer.echo(content)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"Mongo Extract version {__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
