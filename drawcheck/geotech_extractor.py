"""
Geotechnical Value Extractor
============================
Pulls seismic design values out of geotechnical report text.

For every parameter the ordered pattern list is tried pattern-by-pattern,
page-by-page. The first pattern that yields an accepted match on any page
decides the value. When a page holds several matches for that pattern
(typically an ASCE column next to a site-specific column), the match with
the highest context priority wins and ties keep the earliest match.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .geotech_patterns import SEISMIC_PARAMETERS, SeismicParameter, normalize_value
from .models import ExtractedValue, GeotechReport, ReportPage

logger = logging.getLogger(__name__)

CONTEXT_RADIUS = 100

_SITE_SPECIFIC = ("SITE SPECIFIC", "SITE-SPECIFIC")
_CODE_BASED = ("ASCE", "SECTION 11")


def context_priority(text: str, match_start: int, match_text: str = "") -> int:
    """
    Rank a match by the words around it.

    3  the match itself names a site-specific column
    2  site-specific wording within 100 characters
    1  no code-based (ASCE / Section 11) wording nearby
    0  code-based value
    """
    own = match_text.upper()
    if any(word in own for word in _SITE_SPECIFIC):
        return 3
    if any(word in own for word in _CODE_BASED):
        return 0

    start = max(0, match_start - CONTEXT_RADIUS)
    context = text[start:match_start + CONTEXT_RADIUS].upper()
    if any(word in context for word in _SITE_SPECIFIC):
        return 2
    if not any(word in context for word in _CODE_BASED):
        return 1
    return 0


def match_confidence(match_text: str, label: str) -> float:
    confidence = 0.5
    if label.lower() in match_text.lower():
        confidence += 0.3
    if "=" in match_text or ":" in match_text:
        confidence += 0.2
    return min(confidence, 1.0)


def _best_match(
    parameter: SeismicParameter,
    pattern: re.Pattern,
    text: str,
) -> Optional[re.Match]:
    best = None
    best_priority = -1
    for match in pattern.finditer(text):
        raw = match.group(1)
        if not raw or not parameter.accepts(raw):
            continue
        priority = context_priority(text, match.start(), match.group(0))
        if priority > best_priority:
            best = match
            best_priority = priority
    return best


def extract_value(parameter: SeismicParameter, pages: list[ReportPage]) -> ExtractedValue:
    """Search ``pages`` for one parameter."""
    for pattern in parameter.patterns:
        for page in pages:
            match = _best_match(parameter, pattern, page.text)
            if match is None:
                continue
            return ExtractedValue(
                key=parameter.key,
                label=parameter.label,
                full_name=parameter.full_name,
                value_type=parameter.value_type,
                value=normalize_value(match.group(1), parameter.value_type),
                page_number=page.page_number,
                confidence=match_confidence(match.group(0), parameter.label),
            )
    return ExtractedValue.not_found(parameter)


def extract_seismic_values(pages: list[ReportPage]) -> dict[str, ExtractedValue]:
    """
    Extract all eleven seismic parameters.

    Returns:
        Dict keyed by parameter key, in table order. Parameters that were not
        found carry ``value=None``.
    """
    values = {}
    for key, parameter in SEISMIC_PARAMETERS.items():
        values[key] = extract_value(parameter, pages)
        if values[key].found:
            logger.debug(
                f"{parameter.label} = {values[key].value} "
                f"(page {values[key].page_number}, confidence {values[key].confidence:.1f})"
            )
    return values


def extract_geotech_report(pages: list[ReportPage], source_name: str = "") -> GeotechReport:
    values = extract_seismic_values(pages)
    report = GeotechReport(source_name=source_name, values=values, pages=list(pages))
    logger.info(
        f"Extracted {report.found_count}/{len(values)} seismic value(s)"
        + (f" from {source_name}" if source_name else "")
    )
    return report
