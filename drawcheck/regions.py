"""
Region Tracing & Merging
========================
Connected-component tracing over a boolean pixel mask and proximity merging
of the resulting boxes. Shared by every pixel analyzer.

The ``visited`` bitset is owned by the caller for the duration of one page
scan: a pixel is marked when it is first enqueued and is never enqueued
again, so no pixel is traced twice within a scan.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterator

import numpy as np

from .models import CoordinateSpace, DetectionMethod, Region

logger = logging.getLogger(__name__)


def new_visited(mask: np.ndarray) -> np.ndarray:
    """Fresh visited bitset for one page scan."""
    return np.zeros(mask.shape, dtype=bool)


def trace_region(
    mask: np.ndarray,
    start_x: int,
    start_y: int,
    visited: np.ndarray,
    max_pixels: int,
) -> Region:
    """
    Breadth-first 4-connected flood fill from ``(start_x, start_y)``.

    Only pixels where ``mask`` is true are members. Expansion stops once
    ``max_pixels`` members have been collected.

    Returns:
        Canvas-space Region with ``width = max_x - min_x`` and
        ``height = max_y - min_y`` and the member pixel count.
    """
    height, width = mask.shape
    min_x = max_x = start_x
    min_y = max_y = start_y
    count = 0

    queue: deque[tuple[int, int]] = deque()
    if mask[start_y, start_x] and not visited[start_y, start_x]:
        visited[start_y, start_x] = True
        queue.append((start_x, start_y))

    while queue and count < max_pixels:
        x, y = queue.popleft()
        count += 1

        if x < min_x:
            min_x = x
        elif x > max_x:
            max_x = x
        if y < min_y:
            min_y = y
        elif y > max_y:
            max_y = y

        for nx, ny in ((x + 1, y), (x - 1, y), (x, y + 1), (x, y - 1)):
            if 0 <= nx < width and 0 <= ny < height:
                if mask[ny, nx] and not visited[ny, nx]:
                    visited[ny, nx] = True
                    queue.append((nx, ny))

    return Region(
        x=min_x,
        y=min_y,
        width=max_x - min_x,
        height=max_y - min_y,
        pixel_count=count,
        space=CoordinateSpace.CANVAS,
        detection_method=DetectionMethod.PIXEL,
    )


def scan_regions(
    mask: np.ndarray,
    visited: np.ndarray,
    row_step: int = 1,
    col_step: int = 1,
    max_pixels: int = 100_000,
) -> Iterator[Region]:
    """
    Trace a region from every unvisited mask pixel on the seed grid.

    Seeds are visited in row-major order over rows ``0, row_step, ...`` and
    columns ``0, col_step, ...``.
    """
    seed_rows, seed_cols = np.nonzero(mask[::row_step, ::col_step])
    for grid_y, grid_x in zip(seed_rows.tolist(), seed_cols.tolist()):
        y = grid_y * row_step
        x = grid_x * col_step
        if visited[y, x]:
            continue
        yield trace_region(mask, x, y, visited, max_pixels)


def _within(a: Region, b: Region, distance: float) -> bool:
    horizontal, vertical = a.gap_to(b)
    return horizontal <= distance and vertical <= distance


def merge_regions(regions: list[Region], distance: float) -> list[Region]:
    """
    Union boxes that lie within ``distance`` of each other on both axes.

    Passes repeat until no pair merges, so applying the function to its own
    output returns the same boxes.
    """
    current = list(regions)
    merged = True
    passes = 0

    while merged:
        merged = False
        passes += 1
        next_round: list[Region] = []
        absorbed: set[int] = set()

        for i, region in enumerate(current):
            if i in absorbed:
                continue
            absorbed.add(i)

            for j in range(i + 1, len(current)):
                if j in absorbed:
                    continue
                if _within(region, current[j], distance):
                    region = region.union(current[j])
                    absorbed.add(j)
                    merged = True

            next_round.append(region)

        current = next_round

    logger.debug(
        f"Merged {len(regions)} region(s) into {len(current)} "
        f"at {distance}px ({passes} pass(es))"
    )
    return current
