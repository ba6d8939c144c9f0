"""
Overlapping Text Analyzer
=========================
Finds text that collides with other text, using two independent methods:

1. **PDF text**: pairwise bounding-box intersection of extracted text
   items, skipping symbols and callout bubbles.
2. **Pixel**: dense black clusters whose stroke pattern looks like two
   lines of text printed on top of each other.

The two result sets are combined according to an ``OverlapPolicy``.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .coordinates import pdf_box_to_canvas
from .models import (
    DetectionMethod,
    DetectionResult,
    DetectorKind,
    OverlapPolicy,
    PageImage,
    PageText,
    Region,
    TextItem,
)
from .pixels import black_mask
from .progress import ProgressListener, notify_count
from .regions import merge_regions, new_visited, scan_regions

logger = logging.getLogger(__name__)

# ─── PDF Text Method ──────────────────────────────────────────────────────────

MIN_ITEM_SIZE = 4
MIN_OVERLAP = 5

# e.g. 630SX001, 610SD025: detail/sheet reference printed inside a bubble
DETAIL_REFERENCE_RE = re.compile(r"^\d{3}[A-Z]{1,2}\d{3}$", re.IGNORECASE)
ALNUM_RE = re.compile(r"[a-zA-Z0-9]")


@dataclass
class CalloutBubble:
    """Exclusion zone around a detail reference callout (PDF space)."""
    x: float
    y: float
    width: float
    height: float
    center_x: float
    center_y: float
    radius: float

    def contains(self, item: TextItem) -> bool:
        cx = item.x + item.width / 2
        cy = item.y + item.height / 2
        if self.x <= cx <= self.x + self.width and self.y <= cy <= self.y + self.height:
            return True
        return math.hypot(cx - self.center_x, cy - self.center_y) < self.radius


def is_likely_text(item: TextItem) -> bool:
    """Reject empty runs, lone symbols, and tiny glyphs."""
    text = item.text.strip()
    if not text:
        return False
    if len(text) == 1 and not ALNUM_RE.search(text):
        return False
    if item.height < MIN_ITEM_SIZE or item.width < MIN_ITEM_SIZE:
        return False
    if abs(item.font_size) < MIN_ITEM_SIZE:
        return False
    return True


def find_callout_bubbles(items: list[TextItem]) -> list[CalloutBubble]:
    bubbles = []
    for item in items:
        if not DETAIL_REFERENCE_RE.match(item.text.strip()):
            continue
        padding = max(item.width, item.height) * 0.5
        bubbles.append(
            CalloutBubble(
                x=item.x - padding,
                y=item.y - item.height * 2,
                width=item.width + padding * 2,
                height=item.height * 3,
                center_x=item.x + item.width / 2,
                center_y=item.y - item.height * 0.5,
                radius=max(item.width, item.height * 2),
            )
        )
    return bubbles


def _inside_bubble(item: TextItem, bubbles: list[CalloutBubble]) -> bool:
    return any(bubble.contains(item) for bubble in bubbles)


def detect_pdf_overlaps(page_text: PageText) -> list[Region]:
    """Pairwise overlap of likely-text items, mapped to canvas space."""
    items = [item for item in page_text.items if is_likely_text(item)]
    bubbles = find_callout_bubbles(page_text.items)
    logger.debug(
        f"Page {page_text.page_number}: {len(items)} text item(s), "
        f"{len(bubbles)} callout bubble(s) excluded"
    )

    candidates = [item for item in items if not _inside_bubble(item, bubbles)]
    scale = page_text.viewport.scale
    overlaps: list[Region] = []

    for i, first in enumerate(candidates):
        for second in candidates[i + 1:]:
            if len(first.text.strip()) <= 2 and len(second.text.strip()) <= 2:
                continue

            if (
                first.x + first.width < second.x
                or second.x + second.width < first.x
                or first.y + first.height < second.y
                or second.y + second.height < first.y
            ):
                continue

            ox = max(first.x, second.x)
            oy = max(first.y, second.y)
            ow = min(first.x + first.width, second.x + second.width) - ox
            oh = min(first.y + first.height, second.y + second.height) - oy
            if ow <= MIN_OVERLAP or oh <= MIN_OVERLAP:
                continue

            overlaps.append(
                pdf_box_to_canvas(
                    ox,
                    oy,
                    ow,
                    oh,
                    page_text.viewport,
                    pixel_count=math.ceil(ow * oh * scale * scale),
                    detection_method=DetectionMethod.PDF_TEXT,
                    text_pair=(first.text, second.text),
                )
            )

    return overlaps


# ─── Pixel Method ─────────────────────────────────────────────────────────────

SEED_ROW_STRIDE = 3
SEED_COL_STRIDE = 6
MAX_TRACE_PIXELS = 10_000
MIN_DENSITY = 0.32
MAX_DENSITY = 0.7
MIN_ASPECT = 2.0
MAX_ASPECT = 15
MIN_HEIGHT = 10
MAX_HEIGHT = 35
MIN_WIDTH = 30
SAMPLE_LINES = 5
MIN_TRANSITIONS = 6
MIN_VARIED_LINES = 3
MERGE_DISTANCE = 10


def _line_transitions(row: np.ndarray) -> int:
    """Black/white changes along a sampled row, starting from white."""
    if row.size == 0:
        return 0
    padded = np.concatenate(([False], row))
    return int(np.count_nonzero(padded[1:] != padded[:-1]))


def looks_like_overlapping_text(black: np.ndarray, region: Region) -> bool:
    """Density, geometry and stroke-transition tests on a black cluster."""
    height, width = black.shape
    x0, y0 = int(region.x), int(region.y)
    x1 = min(int(region.x + region.width), width)
    y1 = min(int(region.y + region.height), height)

    box = black[y0:y1, x0:x1]
    if box.size == 0:
        return False
    density = np.count_nonzero(box) / box.size
    if density < MIN_DENSITY or density > MAX_DENSITY:
        return False

    aspect = region.width / region.height if region.height else math.inf
    if aspect < MIN_ASPECT or aspect > MAX_ASPECT:
        return False
    if region.height < MIN_HEIGHT or region.height > MAX_HEIGHT:
        return False
    if region.width < MIN_WIDTH:
        return False

    lines = min(SAMPLE_LINES, int(region.height))
    varied = 0
    for i in range(lines):
        y = math.floor(region.y + region.height * i / lines)
        if y >= height:
            continue
        if _line_transitions(black[y, x0:x1:2]) >= MIN_TRANSITIONS:
            varied += 1

    return varied >= MIN_VARIED_LINES


def detect_pixel_overlaps(image: PageImage) -> list[Region]:
    black = black_mask(image.rgb())
    visited = new_visited(black)

    found = [
        region
        for region in scan_regions(
            black, visited, SEED_ROW_STRIDE, SEED_COL_STRIDE, MAX_TRACE_PIXELS
        )
        if looks_like_overlapping_text(black, region)
    ]
    return merge_regions(found, MERGE_DISTANCE)


# ─── Combined ─────────────────────────────────────────────────────────────────


def combine_overlaps(
    pdf_regions: list[Region],
    pixel_regions: list[Region],
    policy: OverlapPolicy = OverlapPolicy.UNION,
) -> list[Region]:
    """
    Combine both result sets. ``DEDUPLICATE`` drops pixel regions that
    intersect any PDF-text region.
    """
    if policy == OverlapPolicy.DEDUPLICATE:
        pixel_regions = [
            region
            for region in pixel_regions
            if not any(region.intersects(pdf) for pdf in pdf_regions)
        ]
    return list(pdf_regions) + list(pixel_regions)


async def detect_overlapping_text(
    image: PageImage,
    page_text: Optional[PageText] = None,
    listener: Optional[ProgressListener] = None,
    policy: OverlapPolicy = OverlapPolicy.UNION,
) -> DetectionResult:
    """
    Run the PDF-text method (when text is available) and the pixel method.

    Raises:
        ImageDecodeError: If the image buffer is malformed.
    """
    pdf_regions: list[Region] = []
    if page_text is not None:
        pdf_regions = detect_pdf_overlaps(page_text)
    else:
        logger.debug("No PDF text available, pixel analysis only")

    pixel_regions = detect_pixel_overlaps(image)
    combined = combine_overlaps(pdf_regions, pixel_regions, policy)
    pixel_kept = len(combined) - len(pdf_regions)

    logger.debug(
        f"Overlapping text: {len(pdf_regions)} PDF, {len(pixel_regions)} pixel, "
        f"{len(combined)} kept ({policy.value})"
    )
    notify_count(listener, DetectorKind.OVERLAPPING_TEXT, len(combined))

    return DetectionResult.from_regions(
        combined,
        f"Found {{count}} overlapping text region(s) "
        f"({len(pdf_regions)} PDF, {pixel_kept} pixel)",
        "No overlapping text detected",
    )
