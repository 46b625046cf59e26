"""
Rich-based terminal dashboard for speed check results.

All formatting and rating helpers live in ``speedcore`` -- this module
only does presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from speedcore.models import MeasurementResult
from speedcore.orchestrator import Phase, ProgressEvent
from speedcore.rating import Metric, classify, connection_type, rating_color, rating_label
from speedcore.stats import format_latency, format_speed

console = Console()


# ---------------------------------------------------------------------------
# Sparkline helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_sparkline(values: List[float]) -> str:
    """Return a single-line Unicode bar-chart."""
    if not values:
        return "No data"

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    return "".join(
        _BARS[min(int((v - lo) / span * (len(_BARS) - 1)), len(_BARS) - 1)]
        for v in values
    )


def _rated(metric: Metric, value: float, text: str) -> str:
    rating = classify(metric, value)
    color = rating_color(rating)
    return f"[bold {color}]{text}[/bold {color}] [dim]({rating_label(metric, rating)})[/dim]"


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Speed Check[/bold cyan]\n"
            "[dim]Download, upload, latency and jitter from public endpoints[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_final_results(result: MeasurementResult, title: str = "Results") -> None:
    body = (
        f"[bold white]   Download:[/bold white]  "
        f"{_rated(Metric.DOWNLOAD, result.download, format_speed(result.download))}\n"
        f"[bold white]   Upload:[/bold white]    "
        f"{_rated(Metric.UPLOAD, result.upload, format_speed(result.upload))}\n"
        f"[bold white]   Ping:[/bold white]      "
        f"{_rated(Metric.PING, result.ping, format_latency(result.ping))}\n"
        f"[bold white]   Jitter:[/bold white]    "
        f"{_rated(Metric.JITTER, result.jitter, format_latency(result.jitter))}\n\n"
        f"[bold cyan]Connection:[/bold cyan] {connection_type(result.download)}"
    )
    if result.synthetic:
        body += "\n[yellow]Some values are estimates: the network could not be fully probed.[/yellow]"

    console.print()
    console.print(Panel.fit(body, title=f"[bold]{title}[/bold]", border_style="cyan"))
    console.print()


def print_history(entries: List[MeasurementResult]) -> None:
    if not entries:
        console.print("[dim]No saved results yet.[/dim]")
        return

    table = Table(title="History", box=box.ROUNDED)
    table.add_column("#", style="dim", width=4)
    table.add_column("Time")
    table.add_column("Download", justify="right")
    table.add_column("Upload", justify="right")
    table.add_column("Ping", justify="right")
    table.add_column("Jitter", justify="right")
    table.add_column("", width=3)

    for i, r in enumerate(entries):
        table.add_row(
            str(i + 1),
            r.timestamp.strftime("%Y-%m-%d %H:%M"),
            format_speed(r.download),
            format_speed(r.upload),
            format_latency(r.ping),
            format_latency(r.jitter),
            "~" if r.synthetic else "",
        )

    console.print(table)
    console.print(
        Panel(
            f"[green]{create_sparkline([r.download for r in entries])}[/green]",
            title="Download Over Time",
        )
    )


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

_PHASE_TEXT = {
    Phase.DOWNLOAD: "Testing download speed",
    Phase.UPLOAD: "Estimating upload speed",
    Phase.PING: "Measuring latency",
    Phase.JITTER: "Measuring jitter",
    Phase.AGGREGATE: "Done",
}

_NEXT_PHASE = {
    Phase.DOWNLOAD: Phase.UPLOAD,
    Phase.UPLOAD: Phase.PING,
    Phase.PING: Phase.JITTER,
    Phase.JITTER: Phase.AGGREGATE,
}


class PhaseProgress:
    """Spinner showing the running phase; fed by orchestrator progress events."""

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            TextColumn("[bold cyan]{task.fields[detail]}[/bold cyan]"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = None

    def start(self) -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(_PHASE_TEXT[Phase.DOWNLOAD], detail="")

    def update(self, event: ProgressEvent) -> None:
        if self._task_id is None:
            return

        detail = _describe(event)
        if detail:
            console.print(f"  [green]✓[/green] {detail}")

        next_phase = _NEXT_PHASE.get(event.phase, Phase.AGGREGATE)
        self.progress.update(self._task_id, description=_PHASE_TEXT[next_phase], detail="")

    def stop(self) -> None:
        self.progress.stop()


def _describe(event: ProgressEvent) -> Optional[str]:
    if event.value is None:
        return None
    mark = " [dim](estimated)[/dim]" if event.synthetic else ""
    if event.phase in (Phase.DOWNLOAD, Phase.UPLOAD):
        return f"{event.phase.value.title()}: {format_speed(event.value)}{mark}"
    return f"{event.phase.value.title()}: {format_latency(event.value)}{mark}"
