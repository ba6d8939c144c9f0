"""
Analysis Engine
===============
Main orchestrator that runs every analyzer over a drawing, page by page,
and collects the results into a DocumentReport.

Usage:
    engine = AnalysisEngine(config)
    report = engine.run("path/to/drawing.pdf", geotech_path="report.pdf")
    # report is a DocumentReport with per-page results and totals

Architecture:
    PDF/Image → DocumentLoader → DrawingPages →
    [red, highlights, missing refs, overlapping text] per page
    + geotech verification once per document → DocumentReport (JSON)
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Optional, TypeVar

from . import __version__
from .errors import AnalysisError
from .geotech_extractor import extract_geotech_report
from .geotech_verifier import verify_geotech
from .highlights import detect_highlights
from .missing_refs import detect_missing_refs
from .models import (
    DetectorKind,
    DocumentReport,
    DrawingDocument,
    DrawingPage,
    GeotechReport,
    GeotechVerificationResult,
    OverlapPolicy,
    PageReport,
)
from .overlapping_text import detect_overlapping_text
from .page_loader import DocumentLoader
from .progress import LoggingProgressListener, ProgressListener
from .red_elements import detect_red_elements

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


@dataclass
class AnalyzerConfig:
    """Configuration for the analysis engine."""

    # Rendering
    scale: float = 3.0

    # Processing
    page_range: Optional[tuple[int, int]] = None
    overlap_policy: OverlapPolicy = OverlapPolicy.UNION

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Output
    output_file: Optional[str] = None


class AnalysisEngine:
    """
    Drawing analysis engine.

    Runs, for each page in order:
        1. Red element detection
        2. Highlight detection
        3. Missing reference detection
        4. Overlapping text detection

    Geotechnical verification runs once per document and is attached to the
    first page. Control returns to the event loop after every analyzer so a
    listener can observe progress between stages.
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        listener: Optional[ProgressListener] = None,
    ):
        self.config = config or AnalyzerConfig()
        self.listener = listener or LoggingProgressListener()
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        package_logger = logging.getLogger("drawcheck")
        package_logger.setLevel(log_level)

        formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

        # Console handler
        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(formatter)
            package_logger.addHandler(console)

        # File handler
        if self.config.log_file:
            log_dir = Path(self.config.log_file).parent
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.config.log_file, encoding="utf-8")
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            package_logger.addHandler(file_handler)

    # ─── Synchronous Entry Point ─────────────────────────────────────────────

    def run(self, path: str, geotech_path: Optional[str] = None) -> DocumentReport:
        """
        Load a drawing (and optional geotech report), analyze it, and save the
        JSON report when ``output_file`` is configured.

        Raises:
            FileNotFoundError: If an input file doesn't exist.
            ImageDecodeError: If a raster drawing cannot be decoded.
            AnalysisError: If any analyzer fails.
        """
        loader = DocumentLoader(scale=self.config.scale)
        document = loader.load(path, page_range=self.config.page_range)

        geotech = None
        if geotech_path:
            pages = loader.load_report_pages(geotech_path)
            geotech = extract_geotech_report(pages, source_name=Path(geotech_path).name)

        report = asyncio.run(self.analyze(document, geotech))

        if self.config.output_file:
            self.save_report(report, Path(self.config.output_file))

        return report

    # ─── Async Pipeline ──────────────────────────────────────────────────────

    async def analyze(
        self,
        document: DrawingDocument,
        geotech: Optional[GeotechReport] = None,
    ) -> DocumentReport:
        """
        Analyze every page of a loaded document.

        Raises:
            AnalysisError: On the first analyzer failure; the run stops there.
        """
        start_time = time.time()
        page_count = len(document.pages)
        logger.info(f"Starting analysis of: {document.source_name} ({page_count} page(s))")

        report = DocumentReport(
            source_name=document.source_name,
            analyzer_version=__version__,
            scale=self.config.scale,
            page_count=page_count,
        )

        # ── Geotechnical verification (once per document) ─────────────
        report.geotech = await self._stage(
            DetectorKind.GEOTECH,
            None,
            verify_geotech(geotech, document.text_pages(), self.listener),
        )
        report.totals[DetectorKind.GEOTECH.value] += report.geotech.count

        # ── Per-page analyzers ────────────────────────────────────────
        for index, page in enumerate(document.pages):
            if not self.listener.should_continue():
                logger.warning(
                    f"Analysis stopped before page {page.page_number} "
                    f"({index}/{page_count} page(s) done)"
                )
                report.completed = False
                break

            self.listener.on_page_start(page.page_number, page_count)
            page_report = await self._analyze_page(
                page,
                report.geotech if index == 0 else None,
            )
            report.pages.append(page_report)

            for kind, result in (
                (DetectorKind.RED_ELEMENTS, page_report.red_elements),
                (DetectorKind.HIGHLIGHTS, page_report.highlights),
                (DetectorKind.MISSING_REFS, page_report.missing_refs),
                (DetectorKind.OVERLAPPING_TEXT, page_report.overlapping_text),
            ):
                report.totals[kind.value] += result.count

            self.listener.on_page_done(page.page_number, dict(report.totals))

        report.elapsed_seconds = round(time.time() - start_time, 3)
        logger.info(
            f"Analysis complete in {report.elapsed_seconds:.2f}s: "
            f"{report.total_issues} issue(s) across {len(report.pages)} page(s)"
        )
        return report

    async def _analyze_page(
        self,
        page: DrawingPage,
        geotech: Optional[GeotechVerificationResult],
    ) -> PageReport:
        number = page.page_number
        logger.debug(f"Page {number}: red elements")
        red = await self._stage(
            DetectorKind.RED_ELEMENTS, number,
            detect_red_elements(page.image, self.listener),
        )

        logger.debug(f"Page {number}: highlights")
        highlights = await self._stage(
            DetectorKind.HIGHLIGHTS, number,
            detect_highlights(page.image, self.listener),
        )

        logger.debug(f"Page {number}: missing references")
        missing = await self._stage(
            DetectorKind.MISSING_REFS, number,
            detect_missing_refs(page.text, self.listener),
        )

        logger.debug(f"Page {number}: overlapping text")
        overlapping = await self._stage(
            DetectorKind.OVERLAPPING_TEXT, number,
            detect_overlapping_text(
                page.image, page.text, self.listener, self.config.overlap_policy
            ),
        )

        return PageReport(
            page_number=number,
            red_elements=red,
            highlights=highlights,
            missing_refs=missing,
            overlapping_text=overlapping,
            geotech_verification=geotech,
        )

    async def _stage(
        self,
        kind: DetectorKind,
        page_number: Optional[int],
        analyzer: Awaitable[T],
    ) -> T:
        """Await one analyzer, wrap its failure, then yield to the event loop."""
        try:
            result = await analyzer
        except Exception as e:
            error = AnalysisError(kind.value, page_number, e)
            logger.error(str(error))
            raise error from e
        await asyncio.sleep(0)
        return result

    # ─── Output ──────────────────────────────────────────────────────────────

    def save_report(self, report: DocumentReport, filepath: Path):
        """Save a DocumentReport to a JSON file."""
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(report.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
        logger.info(f"Saved JSON report: {filepath}")
