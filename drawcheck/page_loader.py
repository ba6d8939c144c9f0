"""
Document Loader
===============
Turns input files into the page contract the analyzers consume.

- PDF drawings are rendered with PyMuPDF (fitz) at a fixed scale and their
  text spans are extracted with positions in PDF space.
- Raster drawings (PNG, JPEG, ...) are decoded with Pillow; they carry no
  text, so text-based analyzers report that they were skipped.
- Geotechnical reports are reduced to plain text per page.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF
import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import ImageDecodeError
from .models import (
    DrawingDocument,
    DrawingPage,
    PageImage,
    PageText,
    ReportPage,
    TextItem,
    Viewport,
)

logger = logging.getLogger(__name__)

PDF_SUFFIXES = {".pdf"}
TEXT_SUFFIXES = {".txt"}


class DocumentLoader:
    """
    Loads drawings and geotechnical reports.

    Args:
        scale: Render scale for PDF pages (3.0 renders at 216 DPI).
    """

    def __init__(self, scale: float = 3.0):
        self.scale = scale

    def get_page_count(self, path: str) -> int:
        """Number of pages in a PDF, 1 for a raster image."""
        source = self._require(path)
        if source.suffix.lower() not in PDF_SUFFIXES:
            return 1
        with fitz.open(str(source)) as doc:
            return doc.page_count

    def page_sizes(self, path: str) -> list[tuple[float, float]]:
        """``(width, height)`` of each page in PDF units, or pixels for images."""
        source = self._require(path)
        if source.suffix.lower() not in PDF_SUFFIXES:
            image = self._decode_image(source)
            return [(float(image.width), float(image.height))]
        with fitz.open(str(source)) as doc:
            return [(page.rect.width, page.rect.height) for page in doc]

    def load(
        self,
        path: str,
        page_range: Optional[tuple[int, int]] = None,
    ) -> DrawingDocument:
        """
        Load a drawing.

        Args:
            path: PDF or raster image file.
            page_range: Optional (start, end) range (1-indexed, inclusive).

        Raises:
            FileNotFoundError: If ``path`` does not exist.
            ImageDecodeError: If a raster image cannot be decoded.
        """
        source = self._require(path)
        if source.suffix.lower() in PDF_SUFFIXES:
            return self._load_pdf(source, page_range)
        return self._load_image(source)

    def load_report_pages(self, path: str) -> list[ReportPage]:
        """
        Read a geotechnical report as one text string per page.

        Span texts are joined with single spaces so table cells that PyMuPDF
        splits into separate spans read as one line.
        """
        source = self._require(path)
        if source.suffix.lower() in TEXT_SUFFIXES:
            return [ReportPage(page_number=1, text=source.read_text(encoding="utf-8"))]

        pages = []
        with fitz.open(str(source)) as doc:
            for page_idx, page in enumerate(doc):
                items = self._extract_text_items(page)
                pages.append(
                    ReportPage(
                        page_number=page_idx + 1,
                        text=" ".join(item.text for item in items),
                    )
                )
        logger.info(f"Read {len(pages)} report page(s) from {source.name}")
        return pages

    # ─── PDF ─────────────────────────────────────────────────────────────────

    def _load_pdf(
        self,
        source: Path,
        page_range: Optional[tuple[int, int]],
    ) -> DrawingDocument:
        document = DrawingDocument(source_name=source.name)

        with fitz.open(str(source)) as doc:
            total_pages = doc.page_count

            start_page = 1
            end_page = total_pages
            if page_range:
                start_page = max(1, page_range[0])
                end_page = min(total_pages, page_range[1])

            logger.info(
                f"Rendering {source.name} at scale {self.scale} "
                f"(pages {start_page} to {end_page})"
            )

            for page_idx in range(start_page - 1, end_page):
                page = doc[page_idx]
                page_num = page_idx + 1

                image = self._render_page(page)
                viewport = Viewport.for_page(page.rect.width, page.rect.height, self.scale)
                items = self._extract_text_items(page)

                document.pages.append(
                    DrawingPage(
                        page_number=page_num,
                        image=image,
                        text=PageText(page_number=page_num, items=items, viewport=viewport),
                    )
                )
                logger.debug(
                    f"Page {page_num}: {image.width}x{image.height}px, "
                    f"{len(items)} text item(s)"
                )

        return document

    def _render_page(self, page: fitz.Page) -> PageImage:
        # alpha=False keeps the page background white instead of transparent
        pix = page.get_pixmap(matrix=fitz.Matrix(self.scale, self.scale), alpha=False)
        pixels = np.frombuffer(pix.samples, dtype=np.uint8).reshape(
            (pix.height, pix.width, pix.n)
        )
        return PageImage(data=pixels, width=pix.width, height=pix.height, scale=self.scale)

    def _extract_text_items(self, page: fitz.Page) -> list[TextItem]:
        """
        One TextItem per non-empty span.

        ``y`` is the span baseline measured from the page bottom and the item
        height is the font size, matching the glyph box a PDF text matrix
        describes.
        """
        page_height = page.rect.height
        items: list[TextItem] = []

        page_dict = page.get_text("dict", flags=fitz.TEXT_PRESERVE_WHITESPACE)
        for block in page_dict.get("blocks", []):
            if block.get("type") != 0:
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    if not text.strip():
                        continue
                    x0, _, x1, _ = span["bbox"]
                    size = span.get("size", 0.0)
                    items.append(
                        TextItem(
                            text=text,
                            x=x0,
                            y=page_height - span["origin"][1],
                            width=x1 - x0,
                            height=size,
                            font_size=size,
                        )
                    )
        return items

    # ─── Images ──────────────────────────────────────────────────────────────

    def _decode_image(self, source: Path) -> Image.Image:
        try:
            with Image.open(source) as img:
                return img.convert("RGBA")
        except (UnidentifiedImageError, OSError) as e:
            raise ImageDecodeError(f"Cannot decode image {source.name}: {e}") from e

    def _load_image(self, source: Path) -> DrawingDocument:
        image = self._decode_image(source)
        pixels = np.asarray(image, dtype=np.uint8)
        logger.info(f"Loaded image {source.name} ({image.width}x{image.height}px)")
        return DrawingDocument(
            source_name=source.name,
            pages=[
                DrawingPage(
                    page_number=1,
                    image=PageImage.from_array(pixels, scale=1.0),
                )
            ],
        )

    @staticmethod
    def _require(path: str) -> Path:
        source = Path(path)
        if not source.exists():
            raise FileNotFoundError(f"File not found: {path}")
        return source
