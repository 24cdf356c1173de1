"""
Command-line interface for DNS Speed Test.

Provides a CLI for ranking DNS resolvers by latency with
live progress and several output formats.
"""

import asyncio
import logging
import sys
from contextlib import nullcontext
from pathlib import Path
from typing import Optional, Sequence

import click
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .models import (
    MAX_TESTS_PER_DOMAIN,
    MAX_TIMEOUT,
    MIN_TESTS_PER_DOMAIN,
    MIN_TIMEOUT,
    ProviderResult,
    RunConfig,
    Transport,
)
from .output import (
    CSVOutput,
    JSONOutput,
    ReportFormatter,
    RichConsoleOutput,
    default_export_path,
)
from .query_engine import DNSQueryEngine
from .resolvers import (
    DEFAULT_PROVIDERS,
    PROVIDERS,
    create_custom_provider,
    get_provider,
    list_providers,
)
from .runner import NullSink, ResultSink, TestOrchestrator
from .workload import DEFAULT_DOMAINS, load_domains


LOG_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


def configure_logging(verbosity: int) -> None:
    """Route log records to stderr through rich."""
    level = LOG_LEVELS[min(verbosity, len(LOG_LEVELS) - 1)]
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


class ConsoleSink:
    """Shows run progress as a rich progress bar."""

    def __init__(self, progress: Progress):
        self.progress = progress
        self._task_id = None
        self._total = 0

    def on_status(self, message: str) -> None:
        self.progress.console.print(f"[dim]{message}[/dim]")

    def on_start(self, total_tests: int) -> None:
        if self._task_id is not None:
            self.progress.remove_task(self._task_id)
        self._total = total_tests
        self._task_id = self.progress.add_task("Probing resolvers", total=total_tests)

    def on_progress(self) -> None:
        if self._task_id is not None:
            self.progress.advance(self._task_id)

    def on_complete(self, results: Sequence[ProviderResult], report: str) -> None:
        if self._task_id is not None:
            self.progress.update(self._task_id, completed=self._total)


def create_progress() -> Progress:
    """Create the progress display used while a run is active."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=Console(stderr=True),
        transient=True,
    )


@click.group(context_settings={"auto_envvar_prefix": "DNS_SPEEDTEST"})
@click.version_option(__version__)
@click.option(
    "--verbose", "-v",
    count=True,
    help="Increase log verbosity (-v info, -vv debug)",
)
def main(verbose: int):
    """
    DNS Speed Test - rank public DNS resolvers by latency.

    Resolves a fixed set of popular domains against each resolver
    and orders them by average response time.
    """
    configure_logging(verbose)


@main.command()
@click.option(
    "--provider", "-r",
    multiple=True,
    help="Provider to test (can specify multiple). Options: " + ", ".join(list_providers()),
)
@click.option(
    "--custom-provider", "-c",
    multiple=True,
    help="Custom resolver IP address",
)
@click.option(
    "--all", "all_providers",
    is_flag=True,
    help="Test every provider in the catalog",
)
@click.option(
    "--tests-per-domain", "-n",
    type=click.IntRange(MIN_TESTS_PER_DOMAIN, MAX_TESTS_PER_DOMAIN),
    default=3,
    show_default=True,
    help="Lookups per domain and provider",
)
@click.option(
    "--timeout",
    type=click.FloatRange(MIN_TIMEOUT, MAX_TIMEOUT),
    default=3.0,
    show_default=True,
    help="Per-lookup timeout in seconds",
)
@click.option(
    "--tcp",
    is_flag=True,
    help="Use TCP instead of UDP",
)
@click.option(
    "--ipv6",
    is_flag=True,
    help="Use the provider's IPv6 address when available",
)
@click.option(
    "--parallel/--sequential",
    default=True,
    show_default=True,
    help="Run a provider's lookups concurrently or one at a time",
)
@click.option(
    "--domains-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="File with probe domains, one per line",
)
@click.option(
    "--repeat",
    type=click.IntRange(1, 10),
    default=1,
    show_default=True,
    help="Number of consecutive runs (history is shown when > 1)",
)
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file path (JSON or CSV based on extension)",
)
@click.option(
    "--export",
    is_flag=True,
    help="Export the last run as CSV to the Documents folder",
)
@click.option(
    "--plain",
    is_flag=True,
    help="Print the plain-text latency report",
)
@click.option(
    "--json",
    is_flag=True,
    help="Output results as JSON to stdout",
)
@click.option(
    "--quiet", "-q",
    is_flag=True,
    help="Suppress progress output",
)
def run(
    provider: tuple,
    custom_provider: tuple,
    all_providers: bool,
    tests_per_domain: int,
    timeout: float,
    tcp: bool,
    ipv6: bool,
    parallel: bool,
    domains_file: Optional[Path],
    repeat: int,
    output: Optional[Path],
    export: bool,
    plain: bool,
    json: bool,
    quiet: bool,
):
    """
    Run DNS latency tests.

    Examples:

    \b
      # Quick test with default providers
      dns-speedtest run

    \b
      # Compare specific providers over TCP
      dns-speedtest run -r cloudflare -r google --tcp

    \b
      # Every provider, five lookups per domain, exported to CSV
      dns-speedtest run --all -n 5 -o results.csv
    """
    if all_providers:
        providers_list = list(PROVIDERS.values())
    else:
        providers_list = []
        for name in provider:
            try:
                providers_list.append(get_provider(name))
            except ValueError as e:
                click.echo(f"Error: {e}", err=True)
                sys.exit(1)

    for ip in custom_provider:
        providers_list.append(create_custom_provider(ip))

    if not providers_list:
        providers_list = [get_provider(name) for name in DEFAULT_PROVIDERS]

    if domains_file:
        try:
            domains = load_domains(domains_file)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    else:
        domains = DEFAULT_DOMAINS

    config = RunConfig(
        tests_per_domain=tests_per_domain,
        timeout=timeout,
        transport=Transport.TCP if tcp else Transport.UDP,
        use_ipv6=ipv6,
        parallel_tests=parallel,
    )

    progress = None if quiet else create_progress()
    sink: ResultSink = ConsoleSink(progress) if progress is not None else NullSink()

    orchestrator = TestOrchestrator(
        domains=domains,
        engine=DNSQueryEngine(),
        sink=sink,
    )

    async def run_benchmark():
        completed = 0
        for _ in range(repeat):
            if await orchestrator.run_all(providers_list, config) is None:
                break
            completed += 1
        return completed

    with progress if progress is not None else nullcontext():
        completed = asyncio.run(run_benchmark())

    record = orchestrator.history.latest()
    if not completed or record is None:
        click.echo("Error: no results were produced", err=True)
        sys.exit(1)

    if json:
        if repeat > 1:
            click.echo(JSONOutput.format_history(orchestrator.history.all()))
        else:
            click.echo(JSONOutput.format(record))
    elif plain:
        click.echo(ReportFormatter.format(record.results), nl=False)
    elif not quiet:
        RichConsoleOutput.print(record)

    if repeat > 1 and not json and not quiet:
        click.echo("Test History:")
        click.echo(ReportFormatter.format_history(orchestrator.history.all()), nl=False)

    if output:
        if output.suffix.lower() == ".csv":
            CSVOutput.save(record.results, output)
        elif output.suffix.lower() == ".json":
            JSONOutput.save(record, output)
        else:
            output = output.with_suffix(".json")
            JSONOutput.save(record, output)
        if not quiet:
            click.echo(f"Results saved to {output}")

    if export:
        path = default_export_path()
        CSVOutput.save(record.results, path)
        if not quiet:
            click.echo(f"Results exported to {path}")


@main.command()
def list_available():
    """List all available DNS providers and the probe domains."""
    console = Console()
    table = Table(
        title="Available DNS Providers",
        box=box.ROUNDED,
        header_style="bold cyan",
    )

    table.add_column("Key", style="green")
    table.add_column("Name")
    table.add_column("IPv4", style="cyan")
    table.add_column("IPv6", style="magenta")
    table.add_column("Description")

    for key, entry in PROVIDERS.items():
        table.add_row(
            key,
            entry.name,
            entry.ipv4,
            entry.ipv6 or "-",
            entry.description or "",
        )

    console.print(table)
    console.print()
    console.print("[dim]Default providers:[/dim]", ", ".join(DEFAULT_PROVIDERS))
    console.print("[dim]Probe domains:[/dim]", ", ".join(DEFAULT_DOMAINS))


@main.command()
@click.option(
    "--port", "-p",
    type=int,
    default=5000,
    help="Port to run the API server on",
)
@click.option(
    "--host",
    default="127.0.0.1",
    help="Host to bind the server to",
)
def serve(port: int, host: str):
    """
    Launch the web API.

    Serves the provider catalog, run history and a WebSocket
    endpoint that streams live progress of a run.
    """
    try:
        from .gui import run_server
    except ImportError as e:
        click.echo("Web dependencies not installed.", err=True)
        click.echo("Install with: pip install dns-speedtest[web]", err=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Serving DNS Speed Test API on http://{host}:{port}")
    click.echo("Press Ctrl+C to stop the server")

    run_server(host=host, port=port)


if __name__ == "__main__":
    main()
