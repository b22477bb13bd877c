"""
processing/profiles.py
----------------------
1-D ink-density helpers shared by the geometry stages.

"Ink" is any pixel whose luminance is below a threshold. Row and column
profiles of ink density are the only structural signal the locator,
axis excluder and bar segmenter rely on.
"""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np
from scipy.ndimage import uniform_filter1d  # type: ignore[import-untyped]

Run = tuple[int, int]  # [start, end) indices


def to_gray(image: np.ndarray) -> np.ndarray:
    """Return a 2-D uint8 luminance image."""
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def ink_mask(image: np.ndarray, threshold: int) -> np.ndarray:
    """Boolean mask of pixels darker than *threshold*."""
    return to_gray(image) < threshold


def smooth(profile: np.ndarray, window: int) -> np.ndarray:
    """Centred moving average; edges are padded with the nearest value."""
    data = np.asarray(profile, dtype=np.float64)
    if window <= 1 or data.size == 0:
        return data
    return uniform_filter1d(data, size=min(window, data.size), mode="nearest")


def runs(mask: np.ndarray) -> list[Run]:
    """Contiguous runs of True values in a 1-D boolean array."""
    flags = np.asarray(mask, dtype=bool)
    if flags.size == 0:
        return []
    padded = np.concatenate(([False], flags, [False])).astype(np.int8)
    edges = np.flatnonzero(np.diff(padded))
    return [(int(s), int(e)) for s, e in zip(edges[::2], edges[1::2])]


def bridge(found: list[Run], max_gap: int) -> list[Run]:
    """Merge runs separated by at most *max_gap* elements."""
    if not found or max_gap <= 0:
        return list(found)
    merged = [found[0]]
    for start, end in found[1:]:
        last_start, last_end = merged[-1]
        if start - last_end <= max_gap:
            merged[-1] = (last_start, end)
        else:
            merged.append((start, end))
    return merged


def longest_run(mask: np.ndarray, max_gap: int = 0) -> Optional[Run]:
    """Longest run of True values after bridging small gaps, or None."""
    found = bridge(runs(mask), max_gap)
    if not found:
        return None
    # Ties go to the later run
    return max(reversed(found), key=lambda r: r[1] - r[0])
