"""
processing/segmentation.py
--------------------------
Bar segmentation on the axis-excluded graph image.

Step 1 — columns: dark-pixel counts per column inside a band that skips the
chart title and the month labels, smoothed, thresholded at a fraction of the
maximum. Solid bar fills clear the threshold; thin gridlines and label text
do not. Runs narrower than ``min_width`` or wider than ``max_width_fraction``
of the image are dropped. If more than ``max_bars`` remain, the densest are
kept and left-to-right order is restored.

Step 2 — tops: inside each bar's columns, scan rows upward from the bottom of
the band. The bar body starts at the first row with ``top_sustain_rows``
consecutive filled rows; the top is the last filled row before a gap of the
same length.
"""

from __future__ import annotations

import logging

import numpy as np

from billchart.core.config import SegmentationConfig
from billchart.core.models import BarSegment
from billchart.processing.profiles import ink_mask, runs, smooth

logger = logging.getLogger(__name__)


class BarSegmenter:
    """Detects bar columns and their top edges."""

    def __init__(self, config: SegmentationConfig) -> None:
        self._cfg = config

    def segment(self, image: np.ndarray) -> list[BarSegment]:
        """Return detected bars ordered left to right."""
        c = self._cfg
        h, w = image.shape[:2]
        mask = ink_mask(image, c.ink_threshold)
        y0 = int(h * c.band_top)
        y1 = max(y0 + 1, int(h * c.band_bottom))

        profile = smooth(mask[y0:y1].sum(axis=0), c.smooth_window)
        peak = float(profile.max()) if profile.size else 0.0
        if peak <= 0:
            logger.debug("Bar segmentation: empty band")
            return []

        max_width = max(c.min_width, int(c.max_width_fraction * w))
        spans: list[tuple[int, int, float]] = []
        for start, end in runs(profile >= c.column_fraction * peak):
            width = end - start
            if width < c.min_width or width > max_width:
                logger.debug("Dropping column run [%d, %d) of width %d", start, end, width)
                continue
            spans.append((start, end, float(profile[start:end].max()) / (y1 - y0)))

        if len(spans) > c.max_bars:
            spans.sort(key=lambda s: s[2], reverse=True)
            spans = sorted(spans[: c.max_bars], key=lambda s: s[0])

        segments = [
            BarSegment(
                x_left=start,
                x_right=end,
                top_y=self._find_top(mask, start, end, y0, y1),
                peak_density=density,
            )
            for start, end, density in spans
        ]
        logger.info("Bar segmentation: %d bar(s) found", len(segments))
        return segments

    def _find_top(self, mask: np.ndarray, x0: int, x1: int, band_top: int, band_bottom: int) -> int:
        c = self._cfg
        filled = mask[:, x0:x1].mean(axis=1) >= c.top_fill_fraction
        sustain = c.top_sustain_rows

        # Climb to the first sustained stretch of fill: the bar body
        y = band_bottom - 1
        while y >= band_top and not filled[max(0, y - sustain + 1) : y + 1].all():
            y -= 1
        if y < band_top:
            return band_top

        # Climb through the body until the fill stops for `sustain` rows
        top = y
        gap = 0
        while y >= 0:
            if filled[y]:
                top = y
                gap = 0
            else:
                gap += 1
                if gap >= sustain:
                    break
            y -= 1
        return top
