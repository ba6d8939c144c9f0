"""
Progress Listener
=================
Observer interface for analysis progress. The engine and analyzers call
these hooks; a UI (the CLI progress bar) or a test double implements them.

All notifications are fire-and-forget: a listener never affects the result
and may be called any number of times.
"""

from __future__ import annotations

import logging

from .models import DetectorKind

logger = logging.getLogger(__name__)


class ProgressListener:
    """Base listener. Every hook is a no-op, override the ones you need."""

    def on_page_start(self, page_number: int, page_count: int) -> None:
        pass

    def on_detector_count(self, kind: DetectorKind, count: int) -> None:
        """Called by an analyzer with the number of issues it found."""
        pass

    def on_page_done(self, page_number: int, totals: dict[str, int]) -> None:
        """Called by the engine with the running per-detector totals."""
        pass

    def should_continue(self) -> bool:
        """Checked before each page; returning False stops the run."""
        return True


class LoggingProgressListener(ProgressListener):
    """Writes progress events to the package logger."""

    def on_page_start(self, page_number: int, page_count: int) -> None:
        logger.info(f"Analyzing page {page_number}/{page_count}")

    def on_detector_count(self, kind: DetectorKind, count: int) -> None:
        logger.debug(f"{kind.value}: {count}")

    def on_page_done(self, page_number: int, totals: dict[str, int]) -> None:
        summary = ", ".join(f"{k}={v}" for k, v in totals.items())
        logger.info(f"Page {page_number} done ({summary})")


def notify_count(listener, kind: DetectorKind, count: int) -> None:
    """Forward a count to ``listener`` if one was given."""
    if listener is not None:
        listener.on_detector_count(kind, count)
