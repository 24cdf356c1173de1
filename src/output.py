"""
Output formatting for DNS latency results.

Provides multiple output formats:
- Text: the ranked latency report and the history view
- CSV: Spreadsheet-compatible export of one run
- JSON: Machine-readable run and history export
- Rich: Terminal tables
"""

import csv
import json
from datetime import datetime
from io import StringIO
from pathlib import Path
from typing import Iterable, Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import NS_PER_MS, ProviderResult, RunRecord
from .statistics import StatisticsEngine


REPORT_HEADER = "DNS Provider Latency Results:"
REPORT_SEPARATOR = "-" * 40
FAILURE_TEXT = "Timeout or Error"

CSV_HEADER = ["Provider", "IP", "Latency", "Success", "Tests Done", "Total Tests"]


def format_latency(latency_ns: Optional[int]) -> str:
    """Render a nanosecond duration as milliseconds, e.g. ``50.000ms``."""
    if latency_ns is None:
        return "-"
    return f"{latency_ns / NS_PER_MS:.3f}ms"


def default_export_path(now: Optional[datetime] = None) -> Path:
    """Timestamped CSV path in the user's Documents folder."""
    now = now or datetime.now()
    filename = f"dns_test_results_{now.strftime('%Y-%m-%d_%H-%M-%S')}.csv"
    return Path.home() / "Documents" / filename


class ReportFormatter:
    """Plain-text renderings shown to the user."""

    @staticmethod
    def format(results: Iterable[ProviderResult]) -> str:
        """
        Format a ranked run as the latency report.

        Args:
            results: Ranked provider results

        Returns:
            Report text, one line per provider
        """
        lines = [REPORT_HEADER, REPORT_SEPARATOR]
        for result in results:
            prefix = f"{result.provider.name:<20} ({result.provider.ipv4}): "
            if result.success:
                lines.append(prefix + format_latency(result.latency_ns))
            else:
                lines.append(prefix + FAILURE_TEXT)
        return "\n".join(lines) + "\n"

    @staticmethod
    def format_history(records: Sequence[RunRecord]) -> str:
        """Format stored runs, newest first."""
        lines = []
        for record in reversed(records):
            if not record.results:
                continue
            lines.append("")
            lines.append(f"Test Run: {record.started_at.strftime('%Y-%m-%d %H:%M:%S')}")
            for result in record.results:
                text = format_latency(result.latency_ns) if result.success else "Failed"
                lines.append(f"{result.provider.name:<20}: {text}")
        return "\n".join(lines) + "\n" if lines else ""


class CSVOutput:
    """CSV output formatter."""

    @staticmethod
    def format(results: Iterable[ProviderResult]) -> str:
        """
        Format a ranked run as CSV.

        Latency is in milliseconds and left empty for failed
        providers; Tests Done counts successful probes.
        """
        output = StringIO()
        writer = csv.writer(output)

        writer.writerow(CSV_HEADER)

        for result in results:
            writer.writerow([
                result.provider.name,
                result.provider.ipv4,
                round(result.latency_ms, 3) if result.success else "",
                result.success,
                result.successful_probes,
                result.total_probes,
            ])

        return output.getvalue()

    @staticmethod
    def save(results: Sequence[ProviderResult], path: Path) -> None:
        """Save a run to a CSV file, creating the parent folder."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", newline="") as f:
            f.write(CSVOutput.format(results))


class JSONOutput:
    """JSON output formatter."""

    @staticmethod
    def result_data(result: ProviderResult) -> dict:
        return {
            "name": result.provider.name,
            "ip": result.provider.ipv4,
            "ipv6": result.provider.ipv6,
            "success": result.success,
            "latency_ms": round(result.latency_ms, 3),
            "probes": {
                "total": result.total_probes,
                "successful": result.successful_probes,
                "success_rate_pct": round(result.success_rate, 2),
            },
            "spread_ms": {
                "min": _ms(result.min_latency_ns),
                "median": _ms(result.median_latency_ns),
                "max": _ms(result.max_latency_ns),
            },
        }

    @staticmethod
    def run_data(record: RunRecord) -> dict:
        """Dictionary form of one run."""
        data = {
            "started_at": record.started_at.isoformat(),
            "providers": [JSONOutput.result_data(r) for r in record.results],
            "winner": None,
        }

        winner = record.winner
        if winner:
            data["winner"] = {
                "name": winner.provider.name,
                "latency_ms": round(winner.latency_ms, 3),
                "improvements_pct": {
                    k: round(v, 2)
                    for k, v in StatisticsEngine.improvements(record.results).items()
                },
            }
        return data

    @staticmethod
    def format(record: RunRecord, indent: int = 2) -> str:
        """Format one run as JSON."""
        return json.dumps(JSONOutput.run_data(record), indent=indent)

    @staticmethod
    def format_history(records: Sequence[RunRecord], indent: int = 2) -> str:
        """Format stored runs as a JSON list, oldest first."""
        return json.dumps([JSONOutput.run_data(r) for r in records], indent=indent)

    @staticmethod
    def save(record: RunRecord, path: Path) -> None:
        """Save a run to a JSON file."""
        with open(path, "w") as f:
            f.write(JSONOutput.format(record))


def _ms(latency_ns: Optional[int]) -> Optional[float]:
    return None if latency_ns is None else round(latency_ns / NS_PER_MS, 3)


class RichConsoleOutput:
    """Rich library console output with colors and tables."""

    @staticmethod
    def print(record: RunRecord, console: Optional[Console] = None) -> None:
        """Print one ranked run as a table with the winner below it."""
        console = console or Console()

        table = Table(
            title="DNS Provider Latency",
            box=box.ROUNDED,
            header_style="bold magenta",
        )

        table.add_column("#", justify="right", style="dim")
        table.add_column("Provider", style="cyan")
        table.add_column("IP", style="dim")
        table.add_column("Avg (ms)", justify="right", style="green")
        table.add_column("Min", justify="right")
        table.add_column("Median", justify="right")
        table.add_column("Max", justify="right")
        table.add_column("Success", justify="right")

        for rank, result in enumerate(record.results, start=1):
            if result.success:
                avg = f"{result.latency_ms:.1f}"
            else:
                avg = f"[red]{FAILURE_TEXT}[/red]"
            table.add_row(
                str(rank),
                result.provider.name,
                result.provider.ipv4,
                avg,
                _cell(result.min_latency_ns),
                _cell(result.median_latency_ns),
                _cell(result.max_latency_ns),
                f"{result.successful_probes}/{result.total_probes}",
            )

        console.print()
        console.print(table)

        winner = record.winner
        if winner:
            console.print(Panel(
                f"[bold green]Fastest: {winner.provider.name}[/bold green]\n"
                f"Average Latency: {winner.latency_ms:.1f}ms | "
                f"Success Rate: {winner.success_rate:.1f}%",
                border_style="green",
            ))
        else:
            console.print(Panel(
                "[bold yellow]No successful queries - cannot determine a winner[/bold yellow]",
                border_style="yellow",
            ))
        console.print()


def _cell(latency_ns: Optional[int]) -> str:
    return "-" if latency_ns is None else f"{latency_ns / NS_PER_MS:.1f}"
