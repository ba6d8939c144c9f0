"""
Missing Reference Analyzer
==========================
Flags placeholder reference callouts such as ``-/---`` that were never
filled in with a detail/sheet number. Works on extracted PDF text only.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .coordinates import pdf_box_to_canvas
from .models import DetectionMethod, DetectionResult, DetectorKind, PageText, Region
from .progress import ProgressListener, notify_count

logger = logging.getLogger(__name__)

# 1-4 dashes, a slash, 1-4 dashes, optional trailing punctuation
PLACEHOLDER_RE = re.compile(r"^-{1,4}/-{1,4}[.,;:!?]?$")

NO_TEXT_MESSAGE = (
    "Missing reference detection requires PDF text (no text items available)"
)


def is_placeholder(text: str) -> bool:
    return PLACEHOLDER_RE.match(text.strip()) is not None


async def detect_missing_refs(
    page_text: Optional[PageText],
    listener: Optional[ProgressListener] = None,
) -> DetectionResult:
    """
    Match every text item against the placeholder pattern.

    Each match becomes one canvas-space region; matches are not merged.
    """
    if page_text is None or not page_text.items:
        logger.debug("No text items, skipping missing reference detection")
        notify_count(listener, DetectorKind.MISSING_REFS, 0)
        return DetectionResult.empty(NO_TEXT_MESSAGE)

    found: list[Region] = []
    for item in page_text.items:
        if not is_placeholder(item.text):
            continue
        found.append(
            pdf_box_to_canvas(
                item.x,
                item.y,
                item.width,
                item.height,
                page_text.viewport,
                pixel_count=1,
                detection_method=DetectionMethod.PDF_TEXT,
                matched_text=item.text.strip(),
            )
        )

    if found:
        logger.info(
            f"Page {page_text.page_number}: {len(found)} missing reference(s) "
            f"({', '.join(r.matched_text for r in found)})"
        )
    notify_count(listener, DetectorKind.MISSING_REFS, len(found))

    return DetectionResult.from_regions(
        found,
        "Found {count} missing reference(s) (-/---)",
        "No missing references detected",
    )
