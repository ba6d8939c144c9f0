"""
Errors
======
Exception types raised by the drawing check engine.

Only fatal conditions are raised. Missing inputs and unmet verification
preconditions are reported in-band through the result models instead.
"""

from __future__ import annotations

from typing import Optional


class DrawCheckError(RuntimeError):
    """Base class for all engine failures."""


class ImageDecodeError(DrawCheckError):
    """A page image is malformed or could not be loaded."""


class AnalysisError(DrawCheckError):
    """An analyzer failed; processing of the remaining pages stops."""

    def __init__(self, stage: str, page_number: Optional[int], cause: Exception):
        self.stage = stage
        self.page_number = page_number
        self.cause = cause
        where = f" on page {page_number}" if page_number is not None else ""
        super().__init__(f"{stage} failed{where}: {cause}")
