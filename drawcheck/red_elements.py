"""
Red Element Analyzer
====================
Finds clusters of red markup (redlines, revision clouds) on a rendered page.
"""

from __future__ import annotations

import logging
from typing import Optional

from .models import DetectionResult, DetectorKind, PageImage
from .pixels import red_mask
from .progress import ProgressListener, notify_count
from .regions import merge_regions, new_visited, scan_regions

logger = logging.getLogger(__name__)

SEED_STRIDE = 2
MAX_TRACE_PIXELS = 100_000
MIN_PIXEL_COUNT = 50
MERGE_DISTANCE = 15


async def detect_red_elements(
    image: PageImage,
    listener: Optional[ProgressListener] = None,
) -> DetectionResult:
    """
    Detect red pixel clusters and merge the ones within 15 px of each other.

    Raises:
        ImageDecodeError: If the image buffer is malformed.
    """
    mask = red_mask(image.rgb())
    visited = new_visited(mask)

    elements = [
        region
        for region in scan_regions(
            mask, visited, SEED_STRIDE, SEED_STRIDE, MAX_TRACE_PIXELS
        )
        if region.pixel_count > MIN_PIXEL_COUNT
    ]
    merged = merge_regions(elements, MERGE_DISTANCE)

    logger.debug(f"Red clusters: {len(elements)} traced, {len(merged)} after merge")
    notify_count(listener, DetectorKind.RED_ELEMENTS, len(merged))

    return DetectionResult.from_regions(
        merged,
        "Found {count} red element(s)",
        "No red elements detected",
    )
