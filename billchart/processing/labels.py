"""
processing/labels.py
--------------------
Label ROI extraction: crops the band just above each bar's top edge, where
the bill prints that month's kWh, and prepares it for recognition.

Enhancement applied (in order):
1. Nearest-neighbour upscale (keeps digit edges sharp)
2. Grayscale
3. Percentile contrast stretch (skipped on near-uniform crops)
4. Binary threshold → black digits on white
5. White border (the recognizer segments better with a margin)
"""

from __future__ import annotations

import logging

import cv2
import numpy as np

from billchart.core.config import LabelConfig
from billchart.core.models import BarSegment, LabelRoi, Rect
from billchart.processing.profiles import to_gray

logger = logging.getLogger(__name__)


class LabelRoiExtractor:
    """Builds one enhanced :class:`LabelRoi` per bar."""

    def __init__(self, config: LabelConfig) -> None:
        self._cfg = config

    def extract_all(self, image: np.ndarray, segments: list[BarSegment]) -> list[LabelRoi]:
        return [self.extract(image, s) for s in segments]

    def extract(self, image: np.ndarray, segment: BarSegment) -> LabelRoi:
        rect = self.roi_rect(image.shape[1], image.shape[0], segment)
        enhanced = self.enhance(rect.crop(image))
        return LabelRoi(segment=segment, rect=rect, image=enhanced)

    def roi_rect(self, width: int, height: int, segment: BarSegment) -> Rect:
        """Region above *segment*, widened on both sides, clamped to the image."""
        c = self._cfg
        widen = segment.width * c.widen_fraction
        roi_h = max(1.0, c.height_fraction * height)
        bottom = segment.top_y - c.gap_px
        return Rect.clamped(
            segment.x_left - widen,
            bottom - roi_h,
            segment.width + 2 * widen,
            roi_h,
            width,
            height,
        )

    def enhance(self, crop: np.ndarray) -> np.ndarray:
        c = self._cfg
        big = cv2.resize(crop, None, fx=c.upscale, fy=c.upscale, interpolation=cv2.INTER_NEAREST)
        gray = to_gray(big)

        lo, hi = np.percentile(gray, (1, 99))
        if hi - lo >= c.min_contrast:
            gray = np.clip((gray.astype(np.float32) - lo) * (255.0 / (hi - lo)), 0, 255).astype(np.uint8)

        _, binary = cv2.threshold(gray, c.binarize_threshold, 255, cv2.THRESH_BINARY)
        if c.border_px:
            binary = cv2.copyMakeBorder(
                binary, c.border_px, c.border_px, c.border_px, c.border_px,
                cv2.BORDER_CONSTANT, value=255,
            )
        return binary
