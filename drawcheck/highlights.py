"""
Highlight Analyzer
==================
Finds highlighter-marked areas: a gray fill band or a bright marker color.

Candidate areas must pass a shape filter. Small areas and areas framed by a
black outline on two or more sides (rebar symbols, detail graphics) are
rejected unless they are wide table-cell strips.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np

from .models import DetectionResult, DetectorKind, PageImage, Region
from .pixels import black_mask, highlight_mask
from .progress import ProgressListener, notify_count
from .regions import merge_regions, new_visited, scan_regions

logger = logging.getLogger(__name__)

MAX_TRACE_PIXELS = 100_000
MIN_PIXEL_COUNT = 100
MIN_BOX_AREA = 1200
MIN_FILL_RATIO = 0.48
OUTLINE_OFFSET = 2
OUTLINE_BLACK_RATIO = 0.15
WIDE_ASPECT_RATIO = 3.0
MERGE_DISTANCE = 20


def _meets_size(region: Region) -> bool:
    return region.pixel_count > MIN_PIXEL_COUNT and (
        (region.width > 15 and region.height > 5)
        or (region.width > 5 and region.height > 15)
    )


def _edge_ratio(samples: np.ndarray) -> float:
    if samples.size == 0:
        return 0.0
    return float(np.count_nonzero(samples)) / samples.size


def is_box_shaped(
    highlight: np.ndarray,
    black: np.ndarray,
    region: Region,
) -> bool:
    """
    Shape filter for a candidate highlight area.

    Args:
        highlight: Highlight predicate mask for the page.
        black: Black predicate mask for the page.
        region: Traced candidate (canvas space).
    """
    height, width = highlight.shape
    x0, y0 = int(region.x), int(region.y)
    x1 = min(int(region.x + region.width), width)
    y1 = min(int(region.y + region.height), height)

    if region.width * region.height < MIN_BOX_AREA:
        return False

    filled = np.count_nonzero(highlight[y0:y1:2, x0:x1:2])
    sampled_total = math.ceil(region.width / 2) * math.ceil(region.height / 2)
    fill_ratio = filled / sampled_total if sampled_total else 0.0

    top_y = max(0, y0 - OUTLINE_OFFSET)
    bottom_y = min(height - 1, int(region.y + region.height) + OUTLINE_OFFSET)
    left_x = max(0, x0 - OUTLINE_OFFSET)
    right_x = min(width - 1, int(region.x + region.width) + OUTLINE_OFFSET)

    ratios = (
        _edge_ratio(black[top_y, x0:x1:2]),
        _edge_ratio(black[bottom_y, x0:x1:2]),
        _edge_ratio(black[y0:y1:2, left_x]),
        _edge_ratio(black[y0:y1:2, right_x]),
    )
    outlined_edges = sum(1 for ratio in ratios if ratio > OUTLINE_BLACK_RATIO)

    aspect = region.width / region.height if region.height else math.inf
    if outlined_edges >= 2 and aspect < WIDE_ASPECT_RATIO:
        return False

    return fill_ratio > MIN_FILL_RATIO


async def detect_highlights(
    image: PageImage,
    listener: Optional[ProgressListener] = None,
) -> DetectionResult:
    """
    Detect highlighted areas and merge the ones within 20 px of each other.

    Raises:
        ImageDecodeError: If the image buffer is malformed.
    """
    rgb = image.rgb()
    highlight = highlight_mask(rgb)
    black = black_mask(rgb)
    visited = new_visited(highlight)

    candidates = 0
    elements: list[Region] = []
    for region in scan_regions(highlight, visited, 1, 1, MAX_TRACE_PIXELS):
        if not _meets_size(region):
            continue
        candidates += 1
        if is_box_shaped(highlight, black, region):
            elements.append(region)

    merged = merge_regions(elements, MERGE_DISTANCE)

    logger.debug(
        f"Highlights: {candidates} candidate(s), {len(elements)} box-shaped, "
        f"{len(merged)} after merge"
    )
    notify_count(listener, DetectorKind.HIGHLIGHTS, len(merged))

    return DetectionResult.from_regions(
        merged,
        "Found {count} highlighted area(s)",
        "No highlights detected",
    )
