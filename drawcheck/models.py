"""
Data Models
===========
Pydantic models for detection input and output.
All result models are serializable to JSON via ``model_dump()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from .errors import ImageDecodeError


# ─── Enums ────────────────────────────────────────────────────────────────────


class CoordinateSpace(str, Enum):
    """Coordinate system a region's box is expressed in."""
    CANVAS = "canvas"  # origin top-left, scaled raster pixels
    PDF = "pdf"        # origin bottom-left, unscaled PDF units


class DetectionMethod(str, Enum):
    """How a region was found."""
    PIXEL = "pixel"
    PDF_TEXT = "pdf-text"


class DetectorKind(str, Enum):
    """The five analyzer passes."""
    RED_ELEMENTS = "red_elements"
    HIGHLIGHTS = "highlights"
    MISSING_REFS = "missing_refs"
    OVERLAPPING_TEXT = "overlapping_text"
    GEOTECH = "geotech_verification"


class OverlapPolicy(str, Enum):
    """How PDF-text and pixel overlap detections are combined."""
    UNION = "union"              # keep both sets
    DEDUPLICATE = "deduplicate"  # drop pixel regions covered by a PDF-text region


class ValueType(str, Enum):
    """Seismic parameter value kinds."""
    NUMERIC = "numeric"
    CATEGORY = "category"


class ComparisonStatus(str, Enum):
    MATCH = "match"
    MISMATCH = "mismatch"


# ─── Page Input ───────────────────────────────────────────────────────────────


@dataclass
class PageImage:
    """
    Raster render of one page.

    ``data`` is either a packed RGBA/RGB byte buffer (row-major) or a numpy
    ``uint8`` array shaped ``(height, width, channels)``.
    """
    data: Union[bytes, bytearray, memoryview, np.ndarray]
    width: int
    height: int
    scale: float = 3.0

    @classmethod
    def from_array(cls, array: np.ndarray, scale: float = 3.0) -> "PageImage":
        """Wrap an ``(h, w, 3|4)`` array."""
        if array.ndim != 3:
            raise ImageDecodeError(f"Expected a 3-d pixel array, got shape {array.shape}")
        height, width = array.shape[:2]
        return cls(data=array, width=width, height=height, scale=scale)

    def rgb(self) -> np.ndarray:
        """
        Validate the buffer and return an ``(height, width, 3)`` uint8 view.

        Raises:
            ImageDecodeError: If the buffer does not describe a valid image.
        """
        if self.width <= 0 or self.height <= 0:
            raise ImageDecodeError(
                f"Invalid image dimensions {self.width}x{self.height}"
            )

        if isinstance(self.data, np.ndarray):
            array = self.data
            if (
                array.ndim != 3
                or array.shape[0] != self.height
                or array.shape[1] != self.width
                or array.shape[2] not in (3, 4)
            ):
                raise ImageDecodeError(
                    f"Pixel array shape {array.shape} does not match "
                    f"{self.width}x{self.height} RGB(A)"
                )
            if array.dtype != np.uint8:
                array = array.astype(np.uint8)
            return array[..., :3]

        buffer = np.frombuffer(self.data, dtype=np.uint8)
        pixels = self.width * self.height
        channels = buffer.size // pixels
        if channels not in (3, 4) or buffer.size != pixels * channels:
            raise ImageDecodeError(
                f"Buffer of {buffer.size} bytes is not a "
                f"{self.width}x{self.height} RGB(A) image"
            )
        return buffer.reshape((self.height, self.width, channels))[..., :3]


class TextItem(BaseModel):
    """
    A run of text extracted from a PDF page.
    Position is in raw PDF space: ``(x, y)`` is the baseline origin with
    y measured from the page bottom.
    """
    text: str
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0
    font_size: float = Field(
        default=0.0,
        description="Glyph scale proxy, |transform[0]| of the text matrix",
    )


class Viewport(BaseModel):
    """Maps PDF space to canvas space for one rendered page."""
    scale: float = 3.0
    transform: tuple[float, float, float, float, float, float]
    width: float = 0.0
    height: float = 0.0

    @classmethod
    def for_page(cls, page_width: float, page_height: float, scale: float = 3.0) -> "Viewport":
        """Viewport for an unrotated page whose media box starts at the origin."""
        return cls(
            scale=scale,
            transform=(scale, 0.0, 0.0, -scale, 0.0, page_height * scale),
            width=page_width * scale,
            height=page_height * scale,
        )


class PageText(BaseModel):
    """Extracted text items and the viewport of one drawing page."""
    page_number: int = Field(ge=1)
    items: list[TextItem] = Field(default_factory=list)
    viewport: Viewport

    @computed_field
    @property
    def full_text(self) -> str:
        return " ".join(item.text for item in self.items)


class ReportPage(BaseModel):
    """Plain text of one geotechnical report page."""
    page_number: int = Field(ge=1)
    text: str = ""


@dataclass
class DrawingPage:
    """One page as handed to the analyzers."""
    page_number: int
    image: PageImage
    text: Optional[PageText] = None


@dataclass
class DrawingDocument:
    """A loaded drawing, either a PDF (with text) or a single raster image."""
    source_name: str
    pages: list[DrawingPage] = field(default_factory=list)

    @property
    def has_text(self) -> bool:
        return any(page.text is not None for page in self.pages)

    def text_pages(self) -> list[PageText]:
        return [page.text for page in self.pages if page.text is not None]


# ─── Regions ──────────────────────────────────────────────────────────────────


class Region(BaseModel):
    """
    Axis-aligned box describing one detected defect instance.
    Regions are immutable; merging produces a new region.
    """
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float
    height: float
    pixel_count: int = 0
    space: CoordinateSpace = CoordinateSpace.CANVAS
    detection_method: Optional[DetectionMethod] = None
    matched_text: Optional[str] = None
    text_pair: Optional[tuple[str, str]] = None

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def gap_to(self, other: "Region") -> tuple[float, float]:
        """Horizontal and vertical gap to another box, zero where they overlap."""
        horizontal = max(self.x - other.right, other.x - self.right, 0)
        vertical = max(self.y - other.bottom, other.y - self.bottom, 0)
        return horizontal, vertical

    def intersects(self, other: "Region") -> bool:
        return not (
            self.right < other.x
            or other.right < self.x
            or self.bottom < other.y
            or other.bottom < self.y
        )

    def union(self, other: "Region") -> "Region":
        """Minimal enclosing box with summed pixel count."""
        if self.space != other.space:
            raise ValueError(
                f"Cannot merge {self.space.value} region with {other.space.value} region"
            )
        min_x = min(self.x, other.x)
        min_y = min(self.y, other.y)
        max_x = max(self.right, other.right)
        max_y = max(self.bottom, other.bottom)
        return Region(
            x=min_x,
            y=min_y,
            width=max_x - min_x,
            height=max_y - min_y,
            pixel_count=self.pixel_count + other.pixel_count,
            space=self.space,
            detection_method=self.detection_method,
        )

    def box(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)


class DetectionResult(BaseModel):
    """Output of one analyzer on one page."""
    detected: bool = False
    count: int = Field(default=0, ge=0)
    locations: list[Region] = Field(default_factory=list)
    message: str = ""

    @model_validator(mode="after")
    def _check_consistency(self) -> "DetectionResult":
        if self.detected != (self.count > 0):
            raise ValueError("detected must be true exactly when count > 0")
        if len(self.locations) != self.count:
            raise ValueError(
                f"count ({self.count}) does not match locations ({len(self.locations)})"
            )
        return self

    @classmethod
    def from_regions(
        cls,
        regions: list[Region],
        found_message: str,
        empty_message: str,
    ) -> "DetectionResult":
        """
        Build a consistent result. ``found_message`` may use ``{count}``.
        """
        count = len(regions)
        return cls(
            detected=count > 0,
            count=count,
            locations=list(regions),
            message=found_message.format(count=count) if count else empty_message,
        )

    @classmethod
    def empty(cls, message: str) -> "DetectionResult":
        return cls(detected=False, count=0, locations=[], message=message)


# ─── Geotechnical Models ─────────────────────────────────────────────────────


class ExtractedValue(BaseModel):
    """A seismic parameter value pulled from a geotechnical report."""
    key: str
    label: str
    full_name: str = ""
    value_type: ValueType = ValueType.NUMERIC
    value: Optional[str] = None
    page_number: Optional[int] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @classmethod
    def not_found(cls, parameter) -> "ExtractedValue":
        """Initial state for a parameter before any page has been searched."""
        return cls(
            key=parameter.key,
            label=parameter.label,
            full_name=parameter.full_name,
            value_type=parameter.value_type,
        )

    @computed_field
    @property
    def found(self) -> bool:
        return self.value is not None


class GeotechReport(BaseModel):
    """Seismic values extracted from an uploaded geotechnical report."""
    source_name: str = ""
    values: dict[str, ExtractedValue] = Field(default_factory=dict)
    pages: list[ReportPage] = Field(default_factory=list)
    extracted_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @computed_field
    @property
    def found_count(self) -> int:
        return sum(1 for v in self.values.values() if v.value is not None)


class ParameterComparison(BaseModel):
    """One parameter's geotech value against what the drawing notes say."""
    model_config = ConfigDict(frozen=True)

    parameter: str
    label: str
    expected_value: str
    found_value: Optional[str] = None


class ComparisonResult(BaseModel):
    """Outcome of comparing geotech values with the general notes."""
    model_config = ConfigDict(frozen=True)

    matches: tuple[ParameterComparison, ...] = ()
    mismatches: tuple[ParameterComparison, ...] = ()
    missing: tuple[ParameterComparison, ...] = ()

    @computed_field
    @property
    def issue_count(self) -> int:
        return len(self.mismatches) + len(self.missing)


class ParameterHighlight(BaseModel):
    """Approximate drawing location of a matched or mismatched parameter."""
    parameter: str
    label: str
    status: ComparisonStatus
    region: Region


class GeotechVerificationResult(BaseModel):
    """Output of the geotechnical cross-check for a whole drawing."""
    detected: bool = False
    count: int = Field(default=0, ge=0)
    comparison: ComparisonResult = Field(default_factory=ComparisonResult)
    highlights: list[ParameterHighlight] = Field(default_factory=list)
    notes_page_number: Optional[int] = None
    notes_fallback: bool = False
    checked: bool = False
    message: str = ""


# ─── Report Models ────────────────────────────────────────────────────────────


class PageReport(BaseModel):
    """All analyzer results for one page."""
    page_number: int = Field(ge=1)
    red_elements: DetectionResult
    highlights: DetectionResult
    missing_refs: DetectionResult
    overlapping_text: DetectionResult
    geotech_verification: Optional[GeotechVerificationResult] = None

    @computed_field
    @property
    def issue_count(self) -> int:
        total = (
            self.red_elements.count
            + self.highlights.count
            + self.missing_refs.count
            + self.overlapping_text.count
        )
        if self.geotech_verification is not None:
            total += self.geotech_verification.count
        return total


class DocumentReport(BaseModel):
    """
    Complete output of an analysis run.
    ``totals`` holds the running per-detector counts across all pages.
    """
    source_name: str = ""
    analyzer_version: str = "1.0.0"
    analyzed_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    scale: float = 3.0
    page_count: int = 0
    completed: bool = True
    elapsed_seconds: float = 0.0
    pages: list[PageReport] = Field(default_factory=list)
    geotech: Optional[GeotechVerificationResult] = None
    totals: dict[str, int] = Field(
        default_factory=lambda: {kind.value: 0 for kind in DetectorKind}
    )

    @computed_field
    @property
    def total_issues(self) -> int:
        return sum(self.totals.values())
