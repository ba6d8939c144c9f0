"""
CLI Interface
=============
Command-line interface for the drawing check engine.

Usage:
    python -m drawcheck analyze <drawing> [--geotech <report>] [options]
    python -m drawcheck geotech <report>
    python -m drawcheck info <drawing>
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from . import __version__
from .engine import AnalysisEngine, AnalyzerConfig
from .errors import DrawCheckError
from .geotech_extractor import extract_geotech_report
from .models import DetectorKind, DocumentReport, OverlapPolicy
from .page_loader import DocumentLoader
from .progress import ProgressListener

console = Console()

DETECTOR_TITLES = {
    DetectorKind.RED_ELEMENTS: "Red Elements",
    DetectorKind.HIGHLIGHTS: "Highlights",
    DetectorKind.MISSING_REFS: "Missing References",
    DetectorKind.OVERLAPPING_TEXT: "Overlapping Text",
    DetectorKind.GEOTECH: "Geotech Verification",
}


class RichProgressListener(ProgressListener):
    """Feeds engine progress into a rich Progress task."""

    def __init__(self, progress: Progress, task_id):
        self.progress = progress
        self.task_id = task_id

    def on_page_start(self, page_number: int, page_count: int) -> None:
        self.progress.update(
            self.task_id,
            total=page_count,
            description=f"Analyzing page {page_number}/{page_count}...",
        )

    def on_page_done(self, page_number: int, totals: dict[str, int]) -> None:
        self.progress.advance(self.task_id)


@click.group()
@click.version_option(version=__version__, prog_name="drawcheck")
def cli():
    """Drawing Check Engine: rule-based QA for engineering drawings."""
    pass


@cli.command()
@click.argument("drawing_path", type=click.Path(exists=True))
@click.option(
    "--geotech", "-g",
    "geotech_path",
    default=None,
    type=click.Path(exists=True),
    help="Geotechnical report (PDF or text) to verify seismic values against",
)
@click.option(
    "--scale", "-s",
    default=3.0,
    type=float,
    help="Render scale for PDF pages",
)
@click.option(
    "--page-start",
    default=None,
    type=int,
    help="Start page (1-indexed)",
)
@click.option(
    "--page-end",
    default=None,
    type=int,
    help="End page (1-indexed, inclusive)",
)
@click.option(
    "--overlap-policy",
    default=OverlapPolicy.UNION.value,
    type=click.Choice([p.value for p in OverlapPolicy]),
    help="How PDF-text and pixel overlap detections are combined",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.option(
    "--log-file",
    default=None,
    help="Path to log file",
)
@click.option(
    "--output", "-o",
    default=None,
    help="Save the JSON report to this file",
)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only JSON result to stdout (for programmatic use)",
)
def analyze(
    drawing_path: str,
    geotech_path: str,
    scale: float,
    page_start: int,
    page_end: int,
    overlap_policy: str,
    log_level: str,
    log_file: str,
    output: str,
    json_output: bool,
):
    """Analyze a drawing (PDF or image) for defects."""

    if json_output:
        # Suppress console output for JSON mode
        log_level = "ERROR"

    page_range = None
    if page_start is not None or page_end is not None:
        page_range = (page_start or 1, page_end or 99999)

    config = AnalyzerConfig(
        scale=scale,
        page_range=page_range,
        overlap_policy=OverlapPolicy(overlap_policy),
        log_level=log_level,
        log_file=log_file,
        output_file=output,
    )

    if not json_output:
        console.print()
        console.print(
            Panel.fit(
                f"[bold cyan]Drawing Check Engine v{__version__}[/]\n"
                f"[dim]Analyzing: {os.path.basename(drawing_path)}[/]",
                border_style="cyan",
            )
        )
        console.print()

    try:
        if not json_output:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=console,
            ) as progress:
                task = progress.add_task("Loading drawing...", total=None)
                engine = AnalysisEngine(config, RichProgressListener(progress, task))
                report = engine.run(drawing_path, geotech_path=geotech_path)

            _display_report(report)
        else:
            engine = AnalysisEngine(config)
            report = engine.run(drawing_path, geotech_path=geotech_path)
            print(json.dumps(
                report.model_dump(mode="json"),
                indent=2,
                ensure_ascii=False,
            ))

    except FileNotFoundError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)
    except DrawCheckError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)


@cli.command()
@click.argument("report_path", type=click.Path(exists=True))
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only JSON result to stdout",
)
def geotech(report_path: str, json_output: bool):
    """Extract seismic design values from a geotechnical report."""

    pages = DocumentLoader().load_report_pages(report_path)
    report = extract_geotech_report(pages, source_name=Path(report_path).name)

    if json_output:
        print(json.dumps(
            report.model_dump(mode="json", exclude={"pages"}),
            indent=2,
            ensure_ascii=False,
        ))
        return

    console.print()
    table = Table(title="Seismic Design Values", border_style="cyan")
    table.add_column("Parameter", style="bold")
    table.add_column("Description")
    table.add_column("Value", justify="right")
    table.add_column("Page", justify="right")
    table.add_column("Confidence", justify="right")

    for value in report.values.values():
        table.add_row(
            value.label,
            value.full_name,
            value.value or "[dim]not found[/]",
            str(value.page_number) if value.page_number else "-",
            f"{value.confidence:.1f}" if value.found else "-",
        )

    console.print(table)
    console.print(
        f"[dim]{report.found_count}/{len(report.values)} value(s) found "
        f"in {len(pages)} page(s)[/]"
    )
    console.print()


@cli.command()
@click.argument("drawing_path", type=click.Path(exists=True))
def info(drawing_path: str):
    """Display drawing file information."""

    loader = DocumentLoader()
    try:
        sizes = loader.page_sizes(drawing_path)
    except DrawCheckError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    console.print()
    table = Table(title="Drawing Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row("File", os.path.basename(drawing_path))
    table.add_row("Pages", str(len(sizes)))
    table.add_row(
        "File Size",
        f"{os.path.getsize(drawing_path) / 1024 / 1024:.2f} MB",
    )
    for number, (width, height) in enumerate(sizes, start=1):
        table.add_row(f"Page {number}", f"{width:.0f} x {height:.0f}")

    console.print(table)
    console.print()


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _status_icon(count: int) -> str:
    return "[green]✓[/]" if count == 0 else "[red]✗[/]"


def _display_report(report: DocumentReport):
    """Display analysis results as rich tables."""
    console.print()

    table = Table(title="Detection Summary", border_style="cyan")
    table.add_column("Detector", style="bold")
    table.add_column("Issues", justify="right")
    table.add_column("Status", justify="center")

    for kind in DetectorKind:
        count = report.totals.get(kind.value, 0)
        table.add_row(DETECTOR_TITLES[kind], str(count), _status_icon(count))

    console.print(table)
    console.print()

    if report.pages:
        pages_table = Table(title="Per-Page Results", border_style="green")
        pages_table.add_column("Page", justify="right", style="bold")
        pages_table.add_column("Red", justify="right")
        pages_table.add_column("Highlights", justify="right")
        pages_table.add_column("Missing Refs", justify="right")
        pages_table.add_column("Overlaps", justify="right")

        for page in report.pages:
            pages_table.add_row(
                str(page.page_number),
                str(page.red_elements.count),
                str(page.highlights.count),
                str(page.missing_refs.count),
                str(page.overlapping_text.count),
            )

        console.print(pages_table)
        console.print()

    if report.geotech is not None:
        _display_geotech(report)

    if not report.completed:
        console.print("[yellow]⚠ Analysis stopped before the last page[/]")

    console.print(
        f"[dim]drawcheck v{report.analyzer_version} | "
        f"Pages: {len(report.pages)}/{report.page_count} | "
        f"Issues: {report.total_issues} | "
        f"Elapsed: {report.elapsed_seconds:.2f}s[/]"
    )
    console.print()


def _display_geotech(report: DocumentReport):
    geotech = report.geotech
    comparison = geotech.comparison

    if not geotech.checked:
        console.print(f"[dim]Geotech: {geotech.message}[/]")
        console.print()
        return

    table = Table(
        title=f"Geotech Verification (notes on page {geotech.notes_page_number})",
        border_style="yellow",
    )
    table.add_column("Parameter", style="bold")
    table.add_column("Report", justify="right")
    table.add_column("Drawing", justify="right")
    table.add_column("Status", justify="center")

    for entry in comparison.matches:
        table.add_row(entry.label, entry.expected_value, entry.found_value, "[green]✓[/]")
    for entry in comparison.mismatches:
        table.add_row(entry.label, entry.expected_value, entry.found_value, "[red]✗ MISMATCH[/]")
    for entry in comparison.missing:
        table.add_row(entry.label, entry.expected_value, "-", "[yellow]⚠ MISSING[/]")

    console.print(table)
    console.print(f"[dim]{geotech.message}[/]")
    console.print()


# ─── Entry point (for python -m drawcheck.cli) ────────────────────────────────


if __name__ == "__main__":
    cli()
