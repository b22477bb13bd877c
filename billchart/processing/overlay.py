"""
processing/overlay.py
---------------------
Annotated debug images showing what the pipeline saw.

* :func:`draw_page_overlay`: full page with the graph zone and axis cut
* :func:`draw_chart_overlay`: axis-excluded chart with bars, tops, label
  ROIs and the value read from each
"""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from billchart.core.models import PipelineTrace

_ZONE = (255, 255, 0)      # cyan
_AXIS = (0, 0, 255)        # red
_BAR = (0, 200, 0)         # green
_TOP = (0, 255, 255)       # yellow
_ROI = (255, 0, 255)       # magenta
_NULL = (0, 0, 200)        # dark red


def _bgr(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    return image.copy()


def draw_page_overlay(page: np.ndarray, trace: PipelineTrace) -> np.ndarray:
    out = _bgr(page)
    if trace.zone is None:
        return out
    z = trace.zone
    cv2.rectangle(out, (z.x, z.y), (z.right - 1, z.bottom - 1), _ZONE, 2)
    cv2.putText(out, "graph zone", (z.x + 4, max(12, z.y - 6)),
                cv2.FONT_HERSHEY_SIMPLEX, 0.5, _ZONE, 1)
    if trace.axis_cut is not None:
        x = z.x + trace.axis_cut.x_cut
        cv2.line(out, (x, z.y), (x, z.bottom - 1), _AXIS, 1)
    return out


def draw_chart_overlay(trace: PipelineTrace) -> Optional[np.ndarray]:
    if trace.axis_cut is None:
        return None
    out = _bgr(trace.axis_cut.image)
    h = out.shape[0]

    values = {round(c.x_center, 1): c for c in trace.candidates}
    for seg in trace.segments:
        cv2.rectangle(out, (seg.x_left, seg.top_y), (seg.x_right - 1, h - 1), _BAR, 1)
        cv2.line(out, (seg.x_left, seg.top_y), (seg.x_right - 1, seg.top_y), _TOP, 2)

    for roi in trace.rois:
        r = roi.rect
        cand = values.get(round(roi.x_center, 1))
        colour = _ROI if cand is None or cand.is_valid else _NULL
        cv2.rectangle(out, (r.x, r.y), (r.right - 1, r.bottom - 1), colour, 1)
        if cand is not None:
            text = str(cand.value) if cand.is_valid else "?"
            cv2.putText(out, text, (r.x, max(10, r.y - 2)),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.35, colour, 1)
    return out
