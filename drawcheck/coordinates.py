"""
Coordinate Mapping
==================
Converts boxes from PDF text space (origin bottom-left, unscaled units,
baseline y) into canvas space (origin top-left, scaled pixels).
"""

from __future__ import annotations

import math

from .models import CoordinateSpace, Region, Viewport


def pdf_box_to_canvas(
    x: float,
    y: float,
    width: float,
    height: float,
    viewport: Viewport,
    **tags,
) -> Region:
    """
    Map a PDF-space box whose ``(x, y)`` is the baseline origin.

    The box grows upward from the baseline, so the canvas top edge is the
    mapped baseline minus the scaled height. ``tags`` are passed through to
    the Region (``pixel_count``, ``detection_method``, ``matched_text`` ...).
    """
    t = viewport.transform
    canvas_x = t[0] * x + t[4]
    canvas_y = t[3] * y + t[5]
    scaled_width = math.ceil(width * viewport.scale)
    scaled_height = math.ceil(height * viewport.scale)

    return Region(
        x=math.floor(canvas_x),
        y=math.floor(canvas_y) - scaled_height,
        width=scaled_width,
        height=scaled_height,
        space=CoordinateSpace.CANVAS,
        **tags,
    )


def ensure_canvas(region: Region, viewport: Viewport) -> Region:
    """Return ``region`` in canvas space, mapping it only if it is in PDF space."""
    if region.space == CoordinateSpace.CANVAS:
        return region
    return pdf_box_to_canvas(
        region.x,
        region.y,
        region.width,
        region.height,
        viewport,
        pixel_count=region.pixel_count,
        detection_method=region.detection_method,
        matched_text=region.matched_text,
        text_pair=region.text_pair,
    )
