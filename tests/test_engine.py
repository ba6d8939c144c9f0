"""
Test Suite for Analysis Engine
==============================
Integration tests for the per-page pipeline, progress listener hooks,
error wrapping, document loading, and JSON serialization.
"""

from __future__ import annotations

import asyncio
import json
import logging

import fitz  # PyMuPDF
import numpy as np
import pytest
from PIL import Image

from drawcheck.engine import AnalysisEngine, AnalyzerConfig
from drawcheck.errors import AnalysisError, ImageDecodeError
from drawcheck.geotech_extractor import extract_geotech_report
from drawcheck.geotech_verifier import NO_REPORT_MESSAGE
from drawcheck.models import (
    DetectorKind,
    DrawingDocument,
    DrawingPage,
    OverlapPolicy,
    PageImage,
    PageText,
    ReportPage,
    TextItem,
    Viewport,
)
from drawcheck.page_loader import DocumentLoader
from drawcheck.progress import ProgressListener


def red_page() -> np.ndarray:
    pixels = np.full((200, 300, 4), 255, dtype=np.uint8)
    pixels[100:131, 100:151, :3] = (220, 30, 30)
    return pixels


def make_document(with_text: bool = True) -> DrawingDocument:
    viewport = Viewport.for_page(100, 66.7, 3.0)
    page_one_text = None
    page_two_text = None
    if with_text:
        page_one_text = PageText(
            page_number=1,
            items=[
                TextItem(text="GENERAL NOTES", x=5, y=60, width=40, height=4, font_size=4),
                TextItem(text="SDS = 1.00", x=5, y=50, width=30, height=4, font_size=4),
                TextItem(text="-/---", x=60, y=20, width=10, height=4, font_size=4),
            ],
            viewport=viewport,
        )
        page_two_text = PageText(page_number=2, items=[], viewport=viewport)

    blank = np.full((200, 300, 4), 255, dtype=np.uint8)
    return DrawingDocument(
        source_name="drawing.pdf",
        pages=[
            DrawingPage(page_number=1, image=PageImage.from_array(red_page()), text=page_one_text),
            DrawingPage(page_number=2, image=PageImage.from_array(blank), text=page_two_text),
        ],
    )


class RecordingListener(ProgressListener):
    def __init__(self, stop_after: int = 0):
        self.events = []
        self.stop_after = stop_after
        self.pages_done = 0

    def on_page_start(self, page_number, page_count):
        self.events.append(("start", page_number, page_count))

    def on_detector_count(self, kind, count):
        self.events.append(("count", kind, count))

    def on_page_done(self, page_number, totals):
        self.pages_done += 1
        self.events.append(("done", page_number, totals))

    def should_continue(self):
        return not self.stop_after or self.pages_done < self.stop_after


# ═══════════════════════════════════════════════════════════════════════════════
# ENGINE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestAnalyzerConfig:
    """Test configuration defaults."""

    def test_defaults(self):
        config = AnalyzerConfig()
        assert config.scale == 3.0
        assert config.page_range is None
        assert config.overlap_policy == OverlapPolicy.UNION
        assert config.log_level == "INFO"
        assert config.log_file is None


class TestAnalysisEngine:
    """Test the per-page pipeline."""

    def test_pages_and_totals(self):
        engine = AnalysisEngine(AnalyzerConfig(log_level="WARNING"))

        report = asyncio.run(engine.analyze(make_document()))

        assert report.page_count == 2
        assert report.completed
        assert [p.page_number for p in report.pages] == [1, 2]
        assert report.pages[0].red_elements.count == 1
        assert report.pages[0].missing_refs.count == 1
        assert report.pages[1].red_elements.count == 0
        assert report.totals[DetectorKind.RED_ELEMENTS.value] == 1
        assert report.totals[DetectorKind.MISSING_REFS.value] == 1
        assert report.total_issues == sum(report.totals.values())

    def test_geotech_attached_to_first_page(self):
        engine = AnalysisEngine(AnalyzerConfig(log_level="WARNING"))

        report = asyncio.run(engine.analyze(make_document()))

        assert report.pages[0].geotech_verification is not None
        assert report.pages[0].geotech_verification.message == NO_REPORT_MESSAGE
        assert report.pages[1].geotech_verification is None
        assert report.totals[DetectorKind.GEOTECH.value] == 0

    def test_geotech_mismatch_counted(self):
        geotech = extract_geotech_report(
            [ReportPage(page_number=1, text="SDS = 1.20 SD1 = 0.60")]
        )
        engine = AnalysisEngine(AnalyzerConfig(log_level="WARNING"))

        report = asyncio.run(engine.analyze(make_document(), geotech))

        # SDS differs, SD1 is absent from the notes
        assert report.geotech.count == 2
        assert report.totals[DetectorKind.GEOTECH.value] == 2
        assert report.pages[0].issue_count == 1 + 1 + 2

    def test_image_only_document(self):
        geotech = extract_geotech_report([ReportPage(page_number=1, text="SDS = 1.20")])
        engine = AnalysisEngine(AnalyzerConfig(log_level="WARNING"))

        report = asyncio.run(engine.analyze(make_document(with_text=False), geotech))

        assert report.geotech.message == (
            "Text verification requires PDF upload (images not supported)"
        )
        assert report.pages[0].missing_refs.count == 0
        assert report.pages[0].red_elements.count == 1

    def test_listener_event_order(self):
        listener = RecordingListener()
        engine = AnalysisEngine(AnalyzerConfig(log_level="WARNING"), listener)

        asyncio.run(engine.analyze(make_document()))

        page_one = []
        for event in listener.events:
            page_one.append(event)
            if event[0] == "done":
                break

        assert page_one[0] == ("start", 1, 2)
        assert [e[1] for e in page_one if e[0] == "count"] == [
            DetectorKind.RED_ELEMENTS,
            DetectorKind.HIGHLIGHTS,
            DetectorKind.MISSING_REFS,
            DetectorKind.OVERLAPPING_TEXT,
        ]
        assert page_one[-1][2][DetectorKind.RED_ELEMENTS.value] == 1

    def test_default_listener_logs_pages(self, caplog):
        engine = AnalysisEngine(AnalyzerConfig(log_level="INFO"))

        with caplog.at_level(logging.INFO, logger="drawcheck"):
            asyncio.run(engine.analyze(make_document()))

        messages = [record.getMessage() for record in caplog.records]
        assert "Analyzing page 1/2" in messages
        assert any(m.startswith("Page 2 done (red_elements=1") for m in messages)

    def test_stop_between_pages(self):
        listener = RecordingListener(stop_after=1)
        engine = AnalysisEngine(AnalyzerConfig(log_level="WARNING"), listener)

        report = asyncio.run(engine.analyze(make_document()))

        assert not report.completed
        assert len(report.pages) == 1

    def test_analyzer_failure_wrapped(self):
        document = DrawingDocument(
            source_name="broken.png",
            pages=[DrawingPage(page_number=1, image=PageImage(data=b"\x00" * 7, width=3, height=3))],
        )
        engine = AnalysisEngine(AnalyzerConfig(log_level="CRITICAL"))

        with pytest.raises(AnalysisError) as excinfo:
            asyncio.run(engine.analyze(document))

        error = excinfo.value
        assert error.stage == DetectorKind.RED_ELEMENTS.value
        assert error.page_number == 1
        assert isinstance(error.cause, ImageDecodeError)
        assert str(error).startswith("red_elements failed on page 1:")

    def test_report_serialization(self, tmp_path):
        engine = AnalysisEngine(AnalyzerConfig(log_level="WARNING"))
        report = asyncio.run(engine.analyze(make_document()))

        output = tmp_path / "out" / "report.json"
        engine.save_report(report, output)
        parsed = json.loads(output.read_text(encoding="utf-8"))

        assert parsed["source_name"] == "drawing.pdf"
        assert parsed["pages"][0]["red_elements"]["count"] == 1
        assert parsed["pages"][0]["missing_refs"]["locations"][0]["detection_method"] == "pdf-text"
        assert parsed["pages"][0]["missing_refs"]["locations"][0]["space"] == "canvas"
        assert parsed["total_issues"] == report.total_issues


# ═══════════════════════════════════════════════════════════════════════════════
# LOADER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestDocumentLoader:
    """Test PDF and image loading."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DocumentLoader().load(str(tmp_path / "nope.pdf"))

    def test_png_drawing(self, tmp_path):
        path = tmp_path / "drawing.png"
        Image.new("RGB", (50, 40), "white").save(path)

        document = DocumentLoader().load(str(path))

        assert len(document.pages) == 1
        page = document.pages[0]
        assert page.text is None
        assert (page.image.width, page.image.height) == (50, 40)
        assert page.image.rgb().shape == (40, 50, 3)
        assert not document.has_text

    def test_undecodable_image(self, tmp_path):
        path = tmp_path / "drawing.png"
        path.write_bytes(b"not an image")
        with pytest.raises(ImageDecodeError):
            DocumentLoader().load(str(path))

    def test_pdf_drawing(self, tmp_path):
        path = tmp_path / "drawing.pdf"
        doc = fitz.open()
        page = doc.new_page(width=612, height=792)
        page.insert_text((72, 100), "-/---", fontsize=12)
        doc.save(str(path))
        doc.close()

        document = DocumentLoader(scale=1.0).load(str(path))

        assert len(document.pages) == 1
        drawing_page = document.pages[0]
        assert drawing_page.image.rgb().shape == (792, 612, 3)
        assert drawing_page.text.viewport.transform == (1.0, 0.0, 0.0, -1.0, 0.0, 792.0)

        items = [i for i in drawing_page.text.items if i.text.strip() == "-/---"]
        assert len(items) == 1
        assert abs(items[0].x - 72) < 1
        assert abs(items[0].y - 692) < 1
        assert items[0].font_size == pytest.approx(12)

    def test_page_range(self, tmp_path):
        path = tmp_path / "drawing.pdf"
        doc = fitz.open()
        for _ in range(3):
            doc.new_page(width=100, height=100)
        doc.save(str(path))
        doc.close()

        loader = DocumentLoader(scale=1.0)
        document = loader.load(str(path), page_range=(2, 3))

        assert [p.page_number for p in document.pages] == [2, 3]
        assert loader.get_page_count(str(path)) == 3

    def test_text_report(self, tmp_path):
        path = tmp_path / "geotech.txt"
        path.write_text("Site Class D\nSDS = 1.1", encoding="utf-8")

        pages = DocumentLoader().load_report_pages(str(path))

        assert len(pages) == 1
        assert pages[0].page_number == 1
        assert "SDS = 1.1" in pages[0].text

    def test_run_end_to_end(self, tmp_path):
        drawing = tmp_path / "drawing.png"
        Image.fromarray(red_page()[..., :3]).save(drawing)
        output = tmp_path / "report.json"

        engine = AnalysisEngine(AnalyzerConfig(log_level="WARNING", output_file=str(output)))
        report = engine.run(str(drawing))

        assert report.totals[DetectorKind.RED_ELEMENTS.value] == 1
        assert report.pages[0].missing_refs.count == 0
        assert output.exists()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
