"""
Seismic Parameter Patterns
==========================
Ordered regex lists for the eleven seismic design parameters that are
cross-checked between a geotechnical report and the drawing notes.

Patterns are tried in list order; each one captures the value in group 1.
Earlier patterns are more specific (table rows, labelled columns), later
ones are looser prose forms.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from .models import ValueType

NUMERIC_TOLERANCE = 0.005
_FLOAT_GUARD = 1e-9


@dataclass(frozen=True)
class SeismicParameter:
    """A seismic design parameter and the patterns that locate it."""
    key: str
    label: str
    full_name: str
    value_type: ValueType
    patterns: tuple[re.Pattern, ...]
    valid_values: Optional[frozenset[str]] = None
    search_terms: tuple[str, ...] = field(default_factory=tuple)

    def accepts(self, raw_value: str) -> bool:
        """Category values must belong to the closed set; numerics always pass."""
        if self.valid_values is None:
            return True
        return raw_value.upper().strip() in self.valid_values


def _compile(*patterns: str) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


# ─── Parameter Table ──────────────────────────────────────────────────────────

_CATEGORY_A_TO_F = frozenset("ABCDEF")

SEISMIC_PARAMETERS: dict[str, SeismicParameter] = {
    "Sds": SeismicParameter(
        key="Sds",
        label="Sds",
        full_name="Design Spectral Response Acceleration (Short Period)",
        value_type=ValueType.NUMERIC,
        patterns=_compile(
            r"S[_\s]?DS\s*\([^)]*\)\s*[=:]\s*(\d+\.?\d*)",  # SDS (Site Specific): 0.95
            r"S\s*DS\s*:\s*(\d+\.?\d+)",                    # S DS : 1.2
            r"SDS\s*:\s*(\d+\.?\d+)",
            r"S[_\s]?DS\s*=\s*(\d+\.?\d*)",                 # SDS = 0.77
            r"S_DS\s+(\d+\.\d+)\s*g",                       # S_DS 0.77 g
            r"SDS\s+(\d+\.\d+)\s*g",
            r"S\s+DS\s+(\d+\.\d+)\s*g",
            r"Design\s+Spectral\s+Response\s+Acceleration\s+.*?\(.*?short.*?period.*?\).*?[=:]\s*(\d+\.\d+)",
            r"Short\s+Period\s+Design\s+Spectral\s+Response\s+Acceleration\s*[=:]\s*(\d+\.\d+)",
            r"Adjusted\s+Short\s+Period\s+Spectral\s+Acceleration\s*[=:]\s*(\d+\.\d+)",
        ),
        search_terms=("SDS", "S_DS", "S DS"),
    ),
    "Sd1": SeismicParameter(
        key="Sd1",
        label="Sd1",
        full_name="Design Spectral Response Acceleration (1-Second)",
        value_type=ValueType.NUMERIC,
        patterns=_compile(
            r"S[_\s]?D1\s*\([^)]*\)\s*[=:]\s*(\d+\.?\d*)",
            r"S\s*D1\s*:\s*(\d+\.?\d+)",
            r"SD1\s*:\s*(\d+\.?\d+)",
            r"S[_\s]?D1\s*=\s*(\d+\.?\d*)",
            r"S_D1\s+(\d+\.\d+)\s*g",
            r"SD1\s+(\d+\.\d+)\s*g",
            r"S\s+D1\s+(\d+\.\d+)\s*g",
            r"Design\s+Spectral\s+Response\s+Acceleration\s+.*?\(.*?1.*?second.*?\).*?[=:]\s*(\d+\.\d+)",
            r"1\s*[-–]\s*Second\s+Design\s+Spectral\s+Response\s+Acceleration\s*[=:]\s*(\d+\.\d+)",
            r"Adjusted\s+1\s*[-–]\s*Second\s+Spectral\s+Acceleration\s*[=:]\s*(\d+\.\d+)",
        ),
        search_terms=("SD1", "S_D1", "S D1"),
    ),
    "Sms": SeismicParameter(
        key="Sms",
        label="Sms",
        full_name="Site-Modified MCER Spectral Response (Short Period)",
        value_type=ValueType.NUMERIC,
        patterns=_compile(
            r"S[_\s]?MS\s*\([^)]*\)\s*[=:]\s*(\d+\.?\d*)",
            r"S\s*MS\s*:\s*(\d+\.?\d+)",
            r"SMS\s*:\s*(\d+\.?\d+)",
            r"S_MS\s+(\d+\.\d+)\s*g",
            r"SMS\s+(\d+\.\d+)\s*g",
            r"S\s+MS\s+(\d+\.\d+)\s*g",
            r"S_MS\s*=\s*(\d+\.\d+)",
            r"SMS\s*=\s*(\d+\.\d+)",
        ),
        search_terms=("SMS", "S_MS", "S MS"),
    ),
    "Sm1": SeismicParameter(
        key="Sm1",
        label="Sm1",
        full_name="Site-Modified MCER Spectral Response (1-Second)",
        value_type=ValueType.NUMERIC,
        patterns=_compile(
            r"S[_\s]?M1\s*\([^)]*\)\s*[=:]\s*(\d+\.?\d*)",
            r"S\s*M1\s*:\s*(\d+\.?\d+)",
            r"SM1\s*:\s*(\d+\.?\d+)",
            r"S_M1\s+(\d+\.\d+)\s*g",
            r"SM1\s+(\d+\.\d+)\s*g",
            r"S\s+M1\s+(\d+\.\d+)\s*g",
            r"S_M1\s*=\s*(\d+\.\d+)",
            r"SM1\s*=\s*(\d+\.\d+)",
        ),
        search_terms=("SM1", "S_M1", "S M1"),
    ),
    "Ss": SeismicParameter(
        key="Ss",
        label="Ss",
        full_name="MCER Spectral Response Acceleration (Short Period)",
        value_type=ValueType.NUMERIC,
        patterns=_compile(
            r"Mapped\s+Spectral\s+Response\s+Acceleration\s+at\s+0\.2-second\s+period,?\s+S[sS]\s+(\d{1,2}(?:\.\d+)?)\s*g",
            r"\bS\s+S\s*[=:,]\s*(\d{1,2}(?:\.\d+)?)\s*g?\b",
            r"\bSS\s*[=:,]\s*(\d{1,2}(?:\.\d+)?)\s*g?\b",
            r"\bSs\s*=\s*(\d{1,2}(?:\.\d+)?)\b",
            r"MCER\s+.*?Short\s+Period\s+.*?[=:]\s*(\d{1,2}\.\d+)",
            r"Mapped\s+Spectral\s+Acceleration\s+.*?Short\s+Period.*?[=:]\s*(\d{1,2}\.\d+)",
            r"Risk\s*[-–]\s*Targeted\s+.*?Short\s+Period.*?[=:]\s*(\d{1,2}\.\d+)",
        ),
        search_terms=("SS", "S_S", "S S", "Ss"),
    ),
    "S1": SeismicParameter(
        key="S1",
        label="S1",
        full_name="MCER Spectral Response Acceleration (1-Second)",
        value_type=ValueType.NUMERIC,
        patterns=_compile(
            r"Mapped\s+Spectral\s+Response\s+Acceleration\s+at\s+1\.0-second\s+period,?\s+S[1₁]\s+(\d{1,2}(?:\.\d+)?)\s*g",
            r"\bS\s+1\s*[=:,]\s*(\d{1,2}(?:\.\d+)?)\s*g?\b",
            r"\bS1\s*[=:,]\s*(\d{1,2}(?:\.\d+)?)\s*g?\b",
            r"MCER\s+.*?1\s*[-–]\s*Second.*?[=:]\s*(\d{1,2}\.\d+)",
            r"Mapped\s+Spectral\s+Acceleration\s+.*?1\s*[-–]\s*Second.*?[=:]\s*(\d{1,2}\.\d+)",
            r"Risk\s*[-–]\s*Targeted\s+.*?1\s*[-–]\s*Second.*?[=:]\s*(\d{1,2}\.\d+)",
        ),
        search_terms=("S1", "S_1", "S 1"),
    ),
    "Fa": SeismicParameter(
        key="Fa",
        label="Fa",
        full_name="Site Coefficient (Short Period)",
        value_type=ValueType.NUMERIC,
        patterns=_compile(
            r"Site\s+Coefficient,?\s+Fa\s+(\d+\.\d+)",
            r"FA\s*[=:,]\s*(\d+\.\d+)",
            r"F[_\s]?A\s*[=:,]\s*(\d+\.\d+)",
            r"Site\s+Coefficient\s+.*?Short\s+Period.*?[=:]\s*(\d+\.\d+)",
            r"Site\s+Class\s+Modification\s+Factor\s+.*?0\.2.*?[=:]\s*(\d+\.\d+)",
            r"FPGA\s*[=:]\s*(\d+\.\d+)",
        ),
        search_terms=("FA", "F_A", "F A"),
    ),
    "Fv": SeismicParameter(
        key="Fv",
        label="Fv",
        full_name="Site Coefficient (1-Second)",
        value_type=ValueType.NUMERIC,
        patterns=_compile(
            r"FV\s*[=:]\s*(\d+\.\d+)",
            r"F[_\s]?V\s*[=:]\s*(\d+\.\d+)",
            r"Site\s+Coefficient\s+.*?1\s*[-–]\s*Second.*?[=:]\s*(\d+\.\d+)",
            r"Site\s+Class\s+Modification\s+Factor\s+.*?1\.0.*?[=:]\s*(\d+\.\d+)",
        ),
        search_terms=("FV", "F_V", "F V"),
    ),
    "siteClass": SeismicParameter(
        key="siteClass",
        label="Site Class",
        full_name="Site Classification",
        value_type=ValueType.CATEGORY,
        patterns=_compile(
            r"Site\s+Class\s+([A-F])\b",
            r"Site\s+Class\s*[=:]\s*([A-F])\b",
            r"Site\s+Classification\s*[=:]\s*([A-F])\b",
            r"ASCE\s+7.*?Site\s+Class\s*[=:]\s*([A-F])\b",
            r"Seismic\s+Site\s+Class\s*[=:]\s*([A-F])\b",
            r"The\s+site\s+class\s+is\s+([A-F])\b",
        ),
        valid_values=_CATEGORY_A_TO_F,
        search_terms=("SITE CLASS", "Site Class", "SITE", "CLASS"),
    ),
    "riskCategory": SeismicParameter(
        key="riskCategory",
        label="Risk Category",
        full_name="Risk Category",
        value_type=ValueType.CATEGORY,
        patterns=_compile(
            r"RISK\s+CATEGORY:\s*(I{1,3}|IV)\b",
            r"Risk\s+Category\s*[=:]\s*(I{1,3}|IV)\b",
            r"Seismic\s+Risk\s+Category\s*[=:]\s*(I{1,3}|IV)\b",
            r"ASCE\s+7.*?Risk\s+Category\s*[=:]\s*(I{1,3}|IV)\b",
            r"Occupancy\s+Category\s*[=:]\s*(I{1,3}|IV)\b",
            r"The\s+risk\s+category\s+is\s+(I{1,3}|IV)\b",
        ),
        valid_values=frozenset({"I", "II", "III", "IV"}),
        search_terms=("RISK CATEGORY", "Risk Category", "RISK"),
    ),
    "seismicDesignCategory": SeismicParameter(
        key="seismicDesignCategory",
        label="SDC",
        full_name="Seismic Design Category",
        value_type=ValueType.CATEGORY,
        patterns=_compile(
            r"Seismic\s+Design\s+Category\s+for\s+Risk\s+Category[^,\n]*?([A-F])\b",
            r"SEISMIC\s+DESIGN\s+CATEGORY:\s*([A-F])\b",
            r"Seismic\s+Design\s+Category\s+([A-F])\b",
            r"Seismic\s+Design\s+Category\s*[=:]\s*([A-F])\b",
            r"SDC\s*[=:]\s*([A-F])\b",
        ),
        valid_values=_CATEGORY_A_TO_F,
        search_terms=("SEISMIC DESIGN CATEGORY", "Seismic Design Category", "SDC", "CATEGORY"),
    ),
}


# ─── Value Helpers ────────────────────────────────────────────────────────────


def normalize_value(raw: str, value_type: ValueType) -> str:
    """
    Canonical string form of an extracted value.

    Numerics are re-stringified through float (``"1.20"`` -> ``"1.2"``,
    ``"1.0"`` -> ``"1"``); categories are upper-cased and trimmed.
    """
    if value_type == ValueType.NUMERIC:
        try:
            number = float(raw)
        except ValueError:
            return raw
        text = repr(number)
        return text[:-2] if text.endswith(".0") else text

    if value_type == ValueType.CATEGORY:
        return raw.upper().strip()

    return raw.strip()


def values_match(first: str, second: str, value_type: ValueType) -> bool:
    """Numeric values match within ±0.005; categories match case-insensitively."""
    if value_type == ValueType.NUMERIC:
        try:
            a = float(first)
            b = float(second)
        except (TypeError, ValueError):
            return False
        return abs(a - b) <= NUMERIC_TOLERANCE + _FLOAT_GUARD

    if value_type == ValueType.CATEGORY:
        return first.upper().strip() == second.upper().strip()

    return first.strip() == second.strip()
