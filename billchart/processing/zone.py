"""
processing/zone.py
------------------
Graph zone locator: finds the sub-rectangle of a full bill page that holds
the consumption bar chart, using ink-density profiles only (no OCR).

Steps:
1. Downscale to ``analysis_width`` for speed
2. Per-row ink fraction inside the search band, smoothed
3. Baseline = median row ink; threshold = baseline + ``row_offset``
4. Longest run of rows above threshold → vertical extent
5. Per-column ink inside that band → horizontal extent
6. Pad, then map back to full resolution

If no run is long enough, a fixed proportional band is returned instead.
The locator never raises on a valid image.
"""

from __future__ import annotations

import logging

import cv2
import numpy as np

from billchart.core.config import ZoneConfig
from billchart.core.models import Rect
from billchart.processing.profiles import ink_mask, longest_run, smooth

logger = logging.getLogger(__name__)


class GraphZoneLocator:
    """Locates the bar-chart area of a bill photo."""

    def __init__(self, config: ZoneConfig) -> None:
        self._cfg = config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def locate(self, image: np.ndarray) -> Rect:
        """Return the chart rect in full-resolution coordinates of *image*."""
        full_h, full_w = image.shape[:2]
        small, factor = self._downscale(image)
        mask = ink_mask(small, self._cfg.ink_threshold)

        rows = self._vertical_extent(mask)
        if rows is None:
            rect = self.fallback(full_w, full_h)
            logger.info("Graph zone not found, using fallback band %s", rect.as_tuple())
            return rect

        y0, y1 = rows
        x0, x1 = self._horizontal_extent(mask[y0:y1])

        sh, sw = mask.shape
        pad_x = self._cfg.padding_fraction * sw
        pad_y = self._cfg.padding_fraction * sh
        rect = Rect.clamped(
            (x0 - pad_x) / factor,
            (y0 - pad_y) / factor,
            (x1 - x0 + 2 * pad_x) / factor,
            (y1 - y0 + 2 * pad_y) / factor,
            full_w,
            full_h,
        )
        logger.debug("Graph zone located at %s", rect.as_tuple())
        return rect

    def fallback(self, width: int, height: int) -> Rect:
        """Fixed proportional band where this bill layout places its chart."""
        c = self._cfg
        return Rect.from_fractions(
            c.fallback_left, c.fallback_top, c.fallback_right, c.fallback_bottom, width, height
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _downscale(self, image: np.ndarray) -> tuple[np.ndarray, float]:
        w = image.shape[1]
        target = self._cfg.analysis_width
        if w <= target:
            return image, 1.0
        factor = target / w
        h = max(1, round(image.shape[0] * factor))
        return cv2.resize(image, (target, h), interpolation=cv2.INTER_AREA), factor

    def _vertical_extent(self, mask: np.ndarray) -> tuple[int, int] | None:
        c = self._cfg
        h = mask.shape[0]
        top = int(h * c.search_top)
        bottom = max(top + 1, int(h * c.search_bottom))

        row_ink = smooth(mask[top:bottom].mean(axis=1), c.row_smooth_window)
        baseline = float(np.median(row_ink))
        threshold = baseline + c.row_offset

        run = longest_run(row_ink > threshold, c.row_max_gap)
        min_len = max(1, int(c.min_run_fraction * (bottom - top)))
        if run is None or run[1] - run[0] < min_len:
            logger.debug(
                "No row run ≥ %d px above %.3f (baseline %.3f, best %s)",
                min_len, threshold, baseline, run,
            )
            return None
        return top + run[0], top + run[1]

    def _horizontal_extent(self, band: np.ndarray) -> tuple[int, int]:
        c = self._cfg
        w = band.shape[1]
        col_ink = smooth(band.mean(axis=0), c.col_smooth_window)
        run = longest_run(col_ink > c.col_ink_floor, int(c.col_max_gap_fraction * w))
        if run is None:
            return 0, w
        return run
