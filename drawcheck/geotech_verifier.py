"""
Geotechnical Verifier
=====================
Cross-checks the seismic values extracted from a geotechnical report
against the values printed in the drawing's general notes.

Flow:
    drawing pages -> general-notes section -> per-parameter comparison
    -> approximate label positions for matched/mismatched parameters
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .coordinates import pdf_box_to_canvas
from .geotech_patterns import SEISMIC_PARAMETERS, normalize_value, values_match
from .models import (
    ComparisonResult,
    ComparisonStatus,
    DetectionMethod,
    DetectorKind,
    ExtractedValue,
    GeotechReport,
    GeotechVerificationResult,
    PageText,
    ParameterComparison,
    ParameterHighlight,
    Region,
    TextItem,
    Viewport,
)
from .progress import ProgressListener, notify_count

logger = logging.getLogger(__name__)

NO_REPORT_MESSAGE = "No geotechnical report data available for verification"
NO_TEXT_MESSAGE = "Text verification requires PDF upload (images not supported)"

NOTES_WINDOW = 2000
LOOKAHEAD_ITEMS = 10
MIN_BOX_WIDTH = 100
MIN_BOX_HEIGHT = 20

# Headings tried in order on each page
NOTES_HEADINGS = [
    re.compile(r"LATERAL\s+LOADS\s+SEISMIC:", re.IGNORECASE),
    re.compile(r"SEISMIC:", re.IGNORECASE),
    re.compile(r"GENERAL\s+NOTES?", re.IGNORECASE),
    re.compile(r"GEN\.\s+NOTES?", re.IGNORECASE),
    re.compile(r"STRUCTURAL\s+NOTES?", re.IGNORECASE),
    re.compile(r"SEISMIC\s+DESIGN\s+CRITERIA", re.IGNORECASE),
]

# A number or a category token near a label
VALUE_TOKEN_RE = re.compile(r"[\d\.]+|[A-F]|I{1,3}|IV")


@dataclass
class NotesSection:
    page_number: int
    text: str
    start_index: int = 0
    fallback: bool = False


# ─── Notes Section ────────────────────────────────────────────────────────────


def find_general_notes_section(pages: list[PageText]) -> Optional[NotesSection]:
    """
    Locate the general-notes text of a drawing.

    Pages are searched in order, each against every heading in order; the
    first hit returns the 2000 characters starting at the heading. Without a
    heading the whole first page is returned with ``fallback=True``.
    """
    for page in pages:
        text = page.full_text
        for heading in NOTES_HEADINGS:
            match = heading.search(text)
            if match is None:
                continue
            start = match.start()
            logger.debug(
                f"Notes heading '{match.group(0)}' on page {page.page_number} at {start}"
            )
            return NotesSection(
                page_number=page.page_number,
                text=text[start:start + NOTES_WINDOW],
                start_index=start,
            )

    if pages:
        logger.debug("No notes heading found, using the whole first page")
        return NotesSection(
            page_number=pages[0].page_number,
            text=pages[0].full_text,
            start_index=0,
            fallback=True,
        )

    return None


# ─── Comparison ───────────────────────────────────────────────────────────────


def _find_in_notes(key: str, notes_text: str) -> Optional[str]:
    parameter = SEISMIC_PARAMETERS[key]
    for pattern in parameter.patterns:
        match = pattern.search(notes_text)
        if match is not None:
            return normalize_value(match.group(1), parameter.value_type)
    return None


def compare_values_in_notes(
    notes_text: str,
    expected: dict[str, ExtractedValue],
) -> ComparisonResult:
    """
    Classify every expected value as match, mismatch or missing.

    Parameters without an expected value are skipped. In the notes, the
    first match of the first matching pattern is taken as the drawing value.
    """
    matches = []
    mismatches = []
    missing = []

    for key, value in expected.items():
        if not value.value or key not in SEISMIC_PARAMETERS:
            continue

        found = _find_in_notes(key, notes_text)
        if found is None:
            missing.append(
                ParameterComparison(parameter=key, label=value.label, expected_value=value.value)
            )
            continue

        entry = ParameterComparison(
            parameter=key,
            label=value.label,
            expected_value=value.value,
            found_value=found,
        )
        if values_match(value.value, found, value.value_type):
            matches.append(entry)
        else:
            mismatches.append(entry)

    return ComparisonResult(
        matches=tuple(matches),
        mismatches=tuple(mismatches),
        missing=tuple(missing),
    )


# ─── Positions ────────────────────────────────────────────────────────────────


def _term_pattern(term: str) -> re.Pattern:
    return re.compile(rf"(?<![A-Z0-9]){re.escape(term)}(?![A-Z0-9])", re.IGNORECASE)


def find_parameter_position(
    items: list[TextItem],
    key: str,
    viewport: Viewport,
) -> Optional[Region]:
    """
    Approximate canvas box of a parameter label and its value.

    Search terms are tried in order against each item, case-insensitively and
    only where the term is not part of a longer word (``SS`` does not match
    ``SITE CLASS``). The box is extended right over value-like tokens in the
    following items and padded to at least 100 x 20 PDF units.
    """
    parameter = SEISMIC_PARAMETERS.get(key)
    if parameter is None:
        return None

    for term in parameter.search_terms:
        pattern = _term_pattern(term)
        for i, item in enumerate(items):
            if not pattern.search(item.text):
                continue

            max_x = item.x + item.width
            box_height = item.height
            for following in items[i + 1:min(i + LOOKAHEAD_ITEMS, len(items))]:
                if VALUE_TOKEN_RE.search(following.text):
                    max_x = max(max_x, following.x + following.width)
                    box_height = max(box_height, following.height)

            return pdf_box_to_canvas(
                item.x,
                item.y,
                max(max_x - item.x, MIN_BOX_WIDTH),
                max(box_height, MIN_BOX_HEIGHT),
                viewport,
                detection_method=DetectionMethod.PDF_TEXT,
                matched_text=item.text,
            )

    return None


def _highlights(
    comparison: ComparisonResult,
    page: Optional[PageText],
) -> list[ParameterHighlight]:
    if page is None:
        return []

    highlights = []
    for status, entries in (
        (ComparisonStatus.MATCH, comparison.matches),
        (ComparisonStatus.MISMATCH, comparison.mismatches),
    ):
        for entry in entries:
            region = find_parameter_position(page.items, entry.parameter, page.viewport)
            if region is None:
                logger.debug(f"No position found for {entry.label}")
                continue
            highlights.append(
                ParameterHighlight(
                    parameter=entry.parameter,
                    label=entry.label,
                    status=status,
                    region=region,
                )
            )
    return highlights


# ─── Entry Point ──────────────────────────────────────────────────────────────


async def verify_geotech(
    report: Optional[GeotechReport],
    drawing_pages: Optional[list[PageText]],
    listener: Optional[ProgressListener] = None,
) -> GeotechVerificationResult:
    """
    Compare a geotechnical report with a drawing's general notes.

    Unmet preconditions (no report, no drawing text) produce a zero-count
    result with a descriptive message.
    """
    if report is None or report.found_count == 0:
        return GeotechVerificationResult(message=NO_REPORT_MESSAGE)

    if not drawing_pages:
        return GeotechVerificationResult(message=NO_TEXT_MESSAGE)

    section = find_general_notes_section(drawing_pages)
    if section is None:
        return GeotechVerificationResult(message=NO_TEXT_MESSAGE)

    comparison = compare_values_in_notes(section.text, report.values)
    issues = comparison.issue_count
    notify_count(listener, DetectorKind.GEOTECH, issues)

    notes_page = next(
        (page for page in drawing_pages if page.page_number == section.page_number),
        None,
    )
    highlights = _highlights(comparison, notes_page)

    if issues:
        message = (
            f"Found {len(comparison.mismatches)} mismatch(es) and "
            f"{len(comparison.missing)} missing value(s)"
        )
    else:
        message = f"All {len(comparison.matches)} seismic value(s) verified successfully"

    logger.info(
        f"Geotech verification (notes page {section.page_number}"
        f"{', fallback' if section.fallback else ''}): {message}"
    )

    return GeotechVerificationResult(
        detected=issues > 0,
        count=issues,
        comparison=comparison,
        highlights=highlights,
        notes_page_number=section.page_number,
        notes_fallback=section.fallback,
        checked=True,
        message=message,
    )
