"""
core/models.py
--------------
Central data-transfer objects (dataclasses) used throughout the billchart
pipeline. Fields are plain Python types / numpy arrays so every stage can
share them without circular imports.

Flow of ownership:

    BillImage → Rect (graph zone) → AxisCut → [BarSegment] → [LabelRoi]
              → [LabelCandidate] → ConsumptionEstimate
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np


# ---------------------------------------------------------------------------
# Ingestion layer
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BillImage:
    """A decoded, orientation-normalised bill photo."""

    image: np.ndarray = field(repr=False)
    """BGR image array, shape (H, W, 3), dtype uint8."""

    source: str = ""
    """Human-readable source identifier (file path, "<bytes>", …)."""

    scale: float = 1.0
    """Decoded width divided by the original width (≤ 1.0)."""

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rect:
    """Axis-aligned pixel rectangle inside a parent image."""

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Rect must have positive size, got {self.width}x{self.height}")
        if self.x < 0 or self.y < 0:
            raise ValueError(f"Rect origin must be non-negative, got ({self.x}, {self.y})")

    @classmethod
    def clamped(
        cls, x: float, y: float, width: float, height: float, bounds_w: int, bounds_h: int
    ) -> "Rect":
        """Build a rect clamped to ``bounds_w`` × ``bounds_h`` (at least 1×1)."""
        x0 = int(max(0, min(round(x), bounds_w - 1)))
        y0 = int(max(0, min(round(y), bounds_h - 1)))
        x1 = int(max(x0 + 1, min(round(x + width), bounds_w)))
        y1 = int(max(y0 + 1, min(round(y + height), bounds_h)))
        return cls(x0, y0, x1 - x0, y1 - y0)

    @classmethod
    def from_fractions(
        cls, left: float, top: float, right: float, bottom: float, bounds_w: int, bounds_h: int
    ) -> "Rect":
        """Build a rect from fractional edges of the parent."""
        return cls.clamped(
            left * bounds_w,
            top * bounds_h,
            (right - left) * bounds_w,
            (bottom - top) * bounds_h,
            bounds_w,
            bounds_h,
        )

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)

    def crop(self, image: np.ndarray) -> np.ndarray:
        """Return a copy of the region of *image* covered by this rect."""
        return image[self.y : self.bottom, self.x : self.right].copy()


@dataclass(frozen=True)
class AxisCut:
    """Graph image with the Y-axis margin removed."""

    image: np.ndarray = field(repr=False)
    x_cut: int = 0
    """Columns removed from the left of the graph image."""

    method: str = "none"
    """Which structural detector decided the cut: 'line', 'density' or 'none'."""


@dataclass(frozen=True)
class BarSegment:
    """Horizontal extent and top edge of one detected bar (axis-excluded coords)."""

    x_left: int
    x_right: int
    top_y: int
    peak_density: float = 0.0

    def __post_init__(self) -> None:
        if self.x_left >= self.x_right:
            raise ValueError(f"x_left ({self.x_left}) must be < x_right ({self.x_right})")
        if self.top_y < 0:
            raise ValueError(f"top_y must be non-negative, got {self.top_y}")

    @property
    def x_center(self) -> float:
        return (self.x_left + self.x_right) / 2.0

    @property
    def width(self) -> int:
        return self.x_right - self.x_left


@dataclass(frozen=True)
class LabelRoi:
    """Enhanced crop of the label printed above one bar."""

    segment: BarSegment
    rect: Rect
    image: np.ndarray = field(repr=False)
    """Binarised grayscale image, dtype uint8; black digits on white."""

    @property
    def x_center(self) -> float:
        return self.segment.x_center


# ---------------------------------------------------------------------------
# Recognition layer
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WordBox:
    text: str
    confidence: float
    bbox: Tuple[int, int, int, int]  # (x, y, w, h)


@dataclass(frozen=True)
class RecognitionOutput:
    """What the recognition engine returned for one image."""

    text: str
    confidence: float
    """0–100."""

    words: Tuple[WordBox, ...] = ()


@dataclass(frozen=True)
class LabelCandidate:
    """Outcome of recognising one label ROI."""

    value: Optional[int]
    """Parsed kWh value, or None if nothing in the valid range was read."""

    confidence: float
    raw_text: str
    x_center: float

    above_range: bool = False
    """True when a clean read exceeded the valid range (possible commercial usage)."""

    @property
    def is_valid(self) -> bool:
        return self.value is not None


# ---------------------------------------------------------------------------
# Estimation layer
# ---------------------------------------------------------------------------

class EstimateStatus(str, Enum):
    OK = "ok"
    INSUFFICIENT = "insufficient"
    ERROR = "error"


class PipelineState(str, Enum):
    DETECTING = "detecting"
    RECOGNIZING = "recognizing"
    OK = "ok"
    INSUFFICIENT = "insufficient"
    ERROR = "error"

    @classmethod
    def from_status(cls, status: EstimateStatus) -> "PipelineState":
        return cls(status.value)


@dataclass(frozen=True)
class ConsumptionEstimate:
    """Final result of one OCR run, consumed by the sizing calculator."""

    status: EstimateStatus
    months_used: int = 0
    values_used: Tuple[int, ...] = ()
    avg_monthly_kwh: Optional[float] = None
    annual_kwh: Optional[float] = None
    confidence: float = 0.0

    is_estimated: bool = False
    """True when the annual figure is extrapolated from fewer than 12 months."""

    message: str = ""
    """Human-readable explanation, always set for INSUFFICIENT and ERROR."""

    commercial_warning: bool = False
    """Several labels read above the residential range; usage may be commercial."""

    candidates: Tuple[LabelCandidate, ...] = field(default=(), repr=False)

    @classmethod
    def error(cls, message: str) -> "ConsumptionEstimate":
        return cls(status=EstimateStatus.ERROR, message=message)

    @classmethod
    def insufficient(
        cls,
        message: str,
        values: Tuple[int, ...] = (),
        confidence: float = 0.0,
        candidates: Tuple[LabelCandidate, ...] = (),
        commercial_warning: bool = False,
    ) -> "ConsumptionEstimate":
        return cls(
            status=EstimateStatus.INSUFFICIENT,
            months_used=len(values),
            values_used=values,
            confidence=confidence,
            message=message,
            candidates=candidates,
            commercial_warning=commercial_warning,
        )

    @property
    def is_ok(self) -> bool:
        return self.status is EstimateStatus.OK

    def to_dict(self) -> dict:
        """Plain-dict view for JSON output."""
        return {
            "status": self.status.value,
            "months_used": self.months_used,
            "values_used": list(self.values_used),
            "avg_monthly_kwh": self.avg_monthly_kwh,
            "annual_kwh": self.annual_kwh,
            "confidence": round(self.confidence, 2),
            "is_estimated": self.is_estimated,
            "message": self.message,
            "commercial_warning": self.commercial_warning,
        }


@dataclass
class PipelineTrace:
    """Intermediate artefacts of a single pipeline run (debug / overlays)."""

    page: Optional[BillImage] = field(default=None, repr=False)
    zone: Optional[Rect] = None
    axis_cut: Optional[AxisCut] = None
    segments: list[BarSegment] = field(default_factory=list)
    rois: list[LabelRoi] = field(default_factory=list)
    candidates: list[LabelCandidate] = field(default_factory=list)
