"""
processing/axis.py
------------------
Axis exclusion: removes the Y-axis line and its scale numerals from the left
of the graph image.

The cut is decided purely from pixel geometry:

* **line**: a thin column run that is dark over most of the bar band, in
  the left part of the image, is the axis line; cut just right of it.
* **density**: otherwise, the first column whose smoothed ink count rises
  above a fraction of the profile's maximum marks the bar area; cut a small
  margin left of it.

The printed scale values never influence which pixels are kept.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from billchart.core.config import AxisConfig
from billchart.core.models import AxisCut
from billchart.processing.profiles import ink_mask, runs, smooth

logger = logging.getLogger(__name__)


class AxisExcluder:
    """Crops the Y-axis margin from a graph image."""

    def __init__(self, config: AxisConfig) -> None:
        self._cfg = config

    def exclude(self, graph: np.ndarray) -> AxisCut:
        c = self._cfg
        h, w = graph.shape[:2]
        mask = ink_mask(graph, c.ink_threshold)
        y0 = int(h * c.band_top)
        y1 = max(y0 + 1, int(h * c.band_bottom))
        band = mask[y0:y1]

        x_cut = self._from_axis_line(band)
        method = "line"
        if x_cut is None:
            x_cut = self._from_density(band)
            method = "density" if x_cut is not None else "none"

        # Keep at least one column
        x_cut = min(x_cut or 0, w - 1)
        logger.debug("Axis exclusion: x_cut=%d (%s) on %dx%d graph", x_cut, method, w, h)
        return AxisCut(image=graph[:, x_cut:].copy(), x_cut=x_cut, method=method)

    # ------------------------------------------------------------------
    # Detectors
    # ------------------------------------------------------------------

    def _from_axis_line(self, band: np.ndarray) -> Optional[int]:
        c = self._cfg
        w = band.shape[1]
        fill = band.mean(axis=0)
        limit = c.line_search_fraction * w
        for start, end in runs(fill >= c.line_min_fraction):
            if start >= limit:
                break
            if end - start <= c.line_max_width:
                return end + c.line_margin
        return None

    def _from_density(self, band: np.ndarray) -> Optional[int]:
        c = self._cfg
        profile = smooth(band.sum(axis=0), c.smooth_window)
        peak = float(profile.max()) if profile.size else 0.0
        if peak <= 0:
            return None
        first = int(np.argmax(profile > c.density_fraction * peak))
        return max(0, first - c.safety_margin)
