"""
Test Suite for Geotechnical Verification
========================================
Tests for seismic value patterns, report extraction, and the comparison of
report values against a drawing's general notes.
"""

from __future__ import annotations

import asyncio

import pytest

from drawcheck.coordinates import pdf_box_to_canvas
from drawcheck.geotech_extractor import (
    context_priority,
    extract_geotech_report,
    extract_seismic_values,
    match_confidence,
)
from drawcheck.geotech_patterns import SEISMIC_PARAMETERS, normalize_value, values_match
from drawcheck.geotech_verifier import (
    NO_REPORT_MESSAGE,
    NO_TEXT_MESSAGE,
    compare_values_in_notes,
    find_general_notes_section,
    find_parameter_position,
    verify_geotech,
)
from drawcheck.models import (
    ComparisonStatus,
    ExtractedValue,
    GeotechReport,
    PageText,
    ReportPage,
    TextItem,
    ValueType,
    Viewport,
)


VIEWPORT = Viewport.for_page(612, 792, 3.0)


def drawing_page(*texts: str, page_number: int = 1) -> PageText:
    """Lay text items out left to right on one line."""
    items = []
    x = 50.0
    for text in texts:
        width = 6.0 * len(text)
        items.append(TextItem(text=text, x=x, y=600, width=width, height=10, font_size=10))
        x += width + 4
    return PageText(page_number=page_number, items=items, viewport=VIEWPORT)


def expected(key: str, value: str) -> ExtractedValue:
    parameter = SEISMIC_PARAMETERS[key]
    return ExtractedValue(
        key=key,
        label=parameter.label,
        full_name=parameter.full_name,
        value_type=parameter.value_type,
        value=value,
        page_number=1,
        confidence=1.0,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# PATTERN & VALUE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestSeismicPatterns:
    """Test the parameter table and value helpers."""

    def test_parameter_table(self):
        assert list(SEISMIC_PARAMETERS) == [
            "Sds", "Sd1", "Sms", "Sm1", "Ss", "S1", "Fa", "Fv",
            "siteClass", "riskCategory", "seismicDesignCategory",
        ]
        assert SEISMIC_PARAMETERS["riskCategory"].valid_values == {"I", "II", "III", "IV"}
        assert SEISMIC_PARAMETERS["Sds"].value_type == ValueType.NUMERIC

    def test_normalize_numeric(self):
        assert normalize_value("1.20", ValueType.NUMERIC) == "1.2"
        assert normalize_value("1.0", ValueType.NUMERIC) == "1"
        assert normalize_value("0.950", ValueType.NUMERIC) == "0.95"
        assert normalize_value("12.", ValueType.NUMERIC) == "12"

    def test_normalize_category(self):
        assert normalize_value(" d ", ValueType.CATEGORY) == "D"
        assert normalize_value("iv", ValueType.CATEGORY) == "IV"

    def test_numeric_tolerance(self):
        assert values_match("0.770", "0.775", ValueType.NUMERIC)
        assert values_match("1.2", "1.20", ValueType.NUMERIC)
        assert not values_match("0.77", "0.78", ValueType.NUMERIC)
        assert not values_match("abc", "0.78", ValueType.NUMERIC)

    def test_category_comparison(self):
        assert values_match("d", "D", ValueType.CATEGORY)
        assert values_match(" II ", "ii", ValueType.CATEGORY)
        assert not values_match("D", "E", ValueType.CATEGORY)


# ═══════════════════════════════════════════════════════════════════════════════
# EXTRACTOR TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestExtractor:
    """Test report value extraction."""

    def test_site_specific_preferred_over_asce(self):
        pages = [ReportPage(
            page_number=1,
            text="Seismic design values: SDS (ASCE 11.4): 1.20, SDS (Site Specific): 0.95",
        )]

        values = extract_seismic_values(pages)

        assert values["Sds"].value == "0.95"
        assert values["Sds"].page_number == 1
        assert values["Sds"].confidence == 1.0

    def test_context_priority(self):
        asce = "ASCE 7-16 Section 11.4 values SDS = 1.10"
        assert context_priority(asce, asce.index("SDS"), "SDS = 1.10") == 0

        plain = "Design values SDS = 1.10"
        assert context_priority(plain, plain.index("SDS"), "SDS = 1.10") == 1

        nearby = "Site-specific response spectrum SDS = 0.95"
        assert context_priority(nearby, nearby.index("SDS"), "SDS = 0.95") == 2

        assert context_priority("", 0, "SDS (SITE SPECIFIC): 0.95") == 3

    def test_context_window_limited(self):
        text = "SITE SPECIFIC " + "x" * 200 + " SDS = 1.10"
        assert context_priority(text, text.index("SDS"), "SDS = 1.10") == 1

    def test_confidence(self):
        assert match_confidence("SDS = 1.0", "Sds") == 1.0
        assert match_confidence("S_DS 0.77 g", "Sds") == 0.5
        assert match_confidence("Site Class D", "Site Class") == 0.8

    def test_full_report(self):
        pages = [ReportPage(
            page_number=1,
            text=(
                "SEISMIC DESIGN PARAMETERS Site Class D Risk Category: II "
                "Ss = 1.5 S1 = 0.6 Fa = 1.0 Fv = 1.7 SMS = 1.5 SM1 = 1.02 "
                "SDS = 1.0 SD1 = 0.68 Seismic Design Category: D"
            ),
        )]

        report = extract_geotech_report(pages, source_name="geo.pdf")

        assert report.found_count == 11
        assert report.values["siteClass"].value == "D"
        assert report.values["riskCategory"].value == "II"
        assert report.values["Ss"].value == "1.5"
        assert report.values["S1"].value == "0.6"
        assert report.values["Fa"].value == "1"
        assert report.values["Sds"].value == "1"
        assert report.values["Sd1"].value == "0.68"
        assert report.values["Sm1"].value == "1.02"
        assert report.values["seismicDesignCategory"].value == "D"
        assert report.source_name == "geo.pdf"

    def test_risk_category_roman(self):
        values = extract_seismic_values([ReportPage(page_number=1, text="Risk Category: IV")])
        assert values["riskCategory"].value == "IV"

    def test_prose_site_class(self):
        values = extract_seismic_values([
            ReportPage(page_number=1, text="Based on borings, the site class is D.")
        ])
        assert values["siteClass"].value == "D"

    def test_value_on_later_page(self):
        pages = [
            ReportPage(page_number=1, text="Introduction and scope"),
            ReportPage(page_number=2, text="SD1 = 0.500"),
        ]
        values = extract_seismic_values(pages)
        assert values["Sd1"].value == "0.5"
        assert values["Sd1"].page_number == 2

    def test_not_found(self):
        values = extract_seismic_values([ReportPage(page_number=1, text="Nothing here")])
        assert values["Fv"].value is None
        assert not values["Fv"].found
        assert values["Fv"].confidence == 0.0
        assert values["Fv"].label == "Fv"


# ═══════════════════════════════════════════════════════════════════════════════
# VERIFIER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestNotesSection:
    """Test general-notes lookup."""

    def test_general_notes_heading(self):
        pages = [
            drawing_page("FOUNDATION PLAN", page_number=1),
            drawing_page("SHEET S-001", "GENERAL NOTES", "SDS = 1.0", page_number=2),
        ]

        section = find_general_notes_section(pages)

        assert section.page_number == 2
        assert section.text.startswith("GENERAL NOTES")
        assert not section.fallback

    def test_heading_order(self):
        page = drawing_page("GENERAL NOTES", "LATERAL LOADS SEISMIC:", "SDS = 1.0")
        section = find_general_notes_section([page])
        assert section.text.startswith("LATERAL LOADS SEISMIC:")

    def test_window_length(self):
        page = drawing_page("GENERAL NOTES", "x" * 3000)
        section = find_general_notes_section([page])
        assert len(section.text) == 2000

    def test_fallback_first_page(self):
        pages = [drawing_page("PLAN", page_number=3), drawing_page("ELEVATION", page_number=4)]
        section = find_general_notes_section(pages)
        assert section.fallback
        assert section.page_number == 3
        assert section.text == "PLAN"

    def test_no_pages(self):
        assert find_general_notes_section([]) is None


class TestComparison:
    """Test value comparison in notes text."""

    def test_match_mismatch_missing(self):
        values = {
            "Sds": expected("Sds", "1"),
            "siteClass": expected("siteClass", "D"),
            "Fa": expected("Fa", "1.2"),
        }

        result = compare_values_in_notes("SDS = 1.00 Site Class: E", values)

        assert [c.parameter for c in result.matches] == ["Sds"]
        assert [c.parameter for c in result.mismatches] == ["siteClass"]
        assert result.mismatches[0].found_value == "E"
        assert result.mismatches[0].expected_value == "D"
        assert [c.parameter for c in result.missing] == ["Fa"]
        assert result.issue_count == 2

    def test_parameters_without_value_skipped(self):
        values = {"Fv": ExtractedValue.not_found(SEISMIC_PARAMETERS["Fv"])}
        result = compare_values_in_notes("FV = 1.7", values)
        assert result.matches == () and result.mismatches == () and result.missing == ()

    def test_tolerance_applies(self):
        result = compare_values_in_notes("SDS = 0.775", {"Sds": expected("Sds", "0.77")})
        assert len(result.matches) == 1


class TestParameterPosition:
    """Test label position lookup."""

    def test_label_extended_over_value(self):
        items = [
            TextItem(text="SDS", x=100, y=500, width=20, height=10, font_size=10),
            TextItem(text="=", x=125, y=500, width=5, height=10, font_size=10),
            TextItem(text="1.00", x=135, y=500, width=20, height=10, font_size=10),
        ]

        region = find_parameter_position(items, "Sds", VIEWPORT)

        assert region.box() == pdf_box_to_canvas(100, 500, 100, 20, VIEWPORT).box()
        assert region.matched_text == "SDS"

    def test_wide_value_run(self):
        items = [
            TextItem(text="S_DS", x=100, y=500, width=20, height=10, font_size=10),
            TextItem(text="0.77 g (ASCE 7-16 site-specific procedure)", x=125, y=500,
                     width=200, height=12, font_size=12),
        ]
        region = find_parameter_position(items, "Sds", VIEWPORT)
        assert region.box() == pdf_box_to_canvas(100, 500, 225, 20, VIEWPORT).box()

    def test_term_not_matched_inside_word(self):
        items = [
            TextItem(text="SITE CLASS", x=50, y=500, width=60, height=10, font_size=10),
            TextItem(text="D", x=115, y=500, width=6, height=10, font_size=10),
            TextItem(text="Ss = 1.5", x=50, y=480, width=48, height=10, font_size=10),
        ]

        region = find_parameter_position(items, "Ss", VIEWPORT)

        assert region.matched_text == "Ss = 1.5"

    def test_not_found(self):
        items = [TextItem(text="BEAM", x=0, y=0, width=10, height=10)]
        assert find_parameter_position(items, "Sds", VIEWPORT) is None
        assert find_parameter_position(items, "unknown", VIEWPORT) is None


class TestVerifyGeotech:
    """Test the verification entry point."""

    def _report(self, **values: str) -> GeotechReport:
        return GeotechReport(values={k: expected(k, v) for k, v in values.items()})

    def test_no_report(self):
        result = asyncio.run(verify_geotech(None, [drawing_page("GENERAL NOTES")]))
        assert not result.detected
        assert result.count == 0
        assert result.message == NO_REPORT_MESSAGE

    def test_report_without_values(self):
        report = extract_geotech_report(
            [ReportPage(page_number=1, text="no seismic data here")]
        )
        assert report.found_count == 0

        result = asyncio.run(verify_geotech(report, [drawing_page("GENERAL NOTES")]))

        assert not result.checked
        assert result.count == 0
        assert result.message == NO_REPORT_MESSAGE

    def test_image_drawing(self):
        result = asyncio.run(verify_geotech(self._report(Sds="1"), []))
        assert result.count == 0
        assert result.message == NO_TEXT_MESSAGE

    def test_mismatch_reported(self):
        page = drawing_page("GENERAL NOTES", "SDS", "=", "1.00", "SITE CLASS", "=", "E")
        report = self._report(Sds="1", siteClass="D")

        result = asyncio.run(verify_geotech(report, [page]))

        assert result.detected
        assert result.count == 1
        assert result.checked
        assert result.notes_page_number == 1
        assert result.message == "Found 1 mismatch(es) and 0 missing value(s)"

        statuses = {h.parameter: h.status for h in result.highlights}
        assert statuses == {
            "Sds": ComparisonStatus.MATCH,
            "siteClass": ComparisonStatus.MISMATCH,
        }
        for highlight in result.highlights:
            assert highlight.region.width >= 300
            assert highlight.region.height >= 60

    def test_all_verified(self):
        page = drawing_page("GENERAL NOTES", "SDS = 0.775", "RISK CATEGORY: II")
        report = self._report(Sds="0.77", riskCategory="II")

        result = asyncio.run(verify_geotech(report, [page]))

        assert result.count == 0
        assert not result.detected
        assert result.message == "All 2 seismic value(s) verified successfully"

    def test_missing_counted(self):
        page = drawing_page("GENERAL NOTES", "SDS = 1.0")
        report = self._report(Sds="1", Fv="1.7")

        result = asyncio.run(verify_geotech(report, [page]))

        assert result.count == 1
        assert result.message == "Found 0 mismatch(es) and 1 missing value(s)"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
