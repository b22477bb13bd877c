"""
conftest.py
-----------
Shared pytest fixtures for the billchart test suite.

Synthetic bill pages are drawn with OpenCV so every geometry stage can be
checked against known bar positions, and fake recognition engines stand in
for Tesseract.
"""

from __future__ import annotations

import threading
import time
from types import SimpleNamespace
from typing import Callable, Optional, Sequence

import cv2
import numpy as np
import pytest

from billchart.core.config import AppConfig
from billchart.core.exceptions import EngineUnavailableError, RecognitionError
from billchart.core.models import RecognitionOutput
from billchart.recognition.base import RecognitionEngine
from billchart.recognition.service import RecognitionService

# Page geometry used by `bill_page`
PAGE_H, PAGE_W = 1200, 800
BASELINE_Y = 1000
BAR_X0, BAR_PITCH, BAR_W = 130, 52, 26
AXIS_X = 110
MAX_BAR_PX = 180

_FONT = cv2.FONT_HERSHEY_SIMPLEX


# ---------------------------------------------------------------------------
# Drawing helpers
# ---------------------------------------------------------------------------

def bar_columns(n: int) -> list[tuple[int, int]]:
    """(x_left, x_right) page columns of each bar drawn by :func:`draw_bill_page`."""
    return [(BAR_X0 + i * BAR_PITCH, BAR_X0 + i * BAR_PITCH + BAR_W) for i in range(n)]


def draw_bill_page(values: Sequence[int], axis_labels: Sequence[str] = ("1200", "900", "600", "300")) -> np.ndarray:
    """A white bill page with header text and a consumption bar chart in the lower half."""
    img = np.full((PAGE_H, PAGE_W, 3), 255, dtype=np.uint8)

    # Header block, well above the chart search band
    for i, line in enumerate(["ELECTRIC COMPANY", "Account 123456789", "Billing period summary"]):
        cv2.putText(img, line, (60, 80 + i * 40), _FONT, 0.8, (0, 0, 0), 2)
    cv2.putText(img, "Amount due this period", (60, 540), _FONT, 0.5, (0, 0, 0), 1)

    # Chart title and light gridlines
    cv2.putText(img, "CONSUMPTION HISTORY", (130, 755), _FONT, 0.6, (0, 0, 0), 1)
    for y in (820, 880, 940):
        cv2.line(img, (AXIS_X, y), (760, y), (225, 225, 225), 1)

    # Y axis: line and scale numerals to its left
    cv2.rectangle(img, (AXIS_X, 790), (AXIS_X + 1, BASELINE_Y), (0, 0, 0), -1)
    for i, label in enumerate(axis_labels):
        cv2.putText(img, label, (65, 805 + i * 55), _FONT, 0.4, (0, 0, 0), 1)

    # Baseline
    cv2.rectangle(img, (AXIS_X, BASELINE_Y), (760, BASELINE_Y + 1), (0, 0, 0), -1)

    peak = max(values) if values else 1
    for (x0, x1), value in zip(bar_columns(len(values)), values):
        top = BASELINE_Y - int(round(value / peak * MAX_BAR_PX))
        cv2.rectangle(img, (x0, top), (x1 - 1, BASELINE_Y - 1), (70, 60, 50), -1)
        text = str(value)
        (tw, _), _ = cv2.getTextSize(text, _FONT, 0.4, 1)
        cv2.putText(img, text, ((x0 + x1) // 2 - tw // 2, top - 8), _FONT, 0.4, (0, 0, 0), 1)
        cv2.putText(img, "M", ((x0 + x1) // 2 - 5, BASELINE_Y + 22), _FONT, 0.4, (0, 0, 0), 1)

    return img


def draw_bar_chart(
    heights: Sequence[int],
    width: int = 700,
    height: int = 300,
    x0: int = 20,
    pitch: int = 52,
    bar_w: int = 26,
    bottom: int = 260,
) -> tuple[np.ndarray, list[tuple[int, int, int]]]:
    """An already-cropped chart: returns the image and (x_left, x_right, top) per bar."""
    img = np.full((height, width, 3), 255, dtype=np.uint8)
    bars = []
    for i, h in enumerate(heights):
        xl = x0 + i * pitch
        top = bottom - h
        cv2.rectangle(img, (xl, top), (xl + bar_w - 1, bottom - 1), (40, 40, 40), -1)
        cv2.putText(img, "123", (xl, top - 8), _FONT, 0.35, (0, 0, 0), 1)
        bars.append((xl, xl + bar_w, top))
    return img, bars


# ---------------------------------------------------------------------------
# Fake recognition engines
# ---------------------------------------------------------------------------

class ScriptedEngine(RecognitionEngine):
    """Returns scripted texts in call order (use with max_concurrency=1)."""

    def __init__(self, texts: Sequence[str], confidence: float = 90.0, delay_s: float = 0.0) -> None:
        self.texts = list(texts)
        self.confidence = confidence
        self.delay_s = delay_s
        self.calls = 0
        self.opened = 0
        self.closed = 0
        self._lock = threading.Lock()

    def open(self) -> None:
        self.opened += 1

    def close(self) -> None:
        self.closed += 1

    def recognize(self, image: np.ndarray, timeout_s: float = 0.0) -> RecognitionOutput:
        with self._lock:
            i = self.calls
            self.calls += 1
        if self.delay_s:
            time.sleep(self.delay_s)
        text = self.texts[i] if i < len(self.texts) else ""
        if text == "!error":
            raise RecognitionError("unreadable region")
        return RecognitionOutput(text=text, confidence=self.confidence)


class ContentEngine(RecognitionEngine):
    """Derives a value from the ROI pixels: deterministic whatever the call order."""

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def recognize(self, image: np.ndarray, timeout_s: float = 0.0) -> RecognitionOutput:
        value = 100 + int(image.mean())
        return RecognitionOutput(text=str(value), confidence=float(image.shape[1] % 50 + 50))


class UnavailableEngine(RecognitionEngine):
    def open(self) -> None:
        raise EngineUnavailableError("engine binary missing")

    def close(self) -> None:
        pass

    def recognize(self, image: np.ndarray, timeout_s: float = 0.0) -> RecognitionOutput:
        raise AssertionError("never opened")


# ---------------------------------------------------------------------------
# Reusable fixtures
# ---------------------------------------------------------------------------

TWELVE_VALUES = [300, 320, 310, 350, 380, 420, 450, 440, 400, 360, 330, 340]


@pytest.fixture
def bill_page() -> Callable[..., np.ndarray]:
    return draw_bill_page


@pytest.fixture
def bar_chart() -> Callable[..., tuple[np.ndarray, list[tuple[int, int, int]]]]:
    return draw_bar_chart


@pytest.fixture
def app_config() -> AppConfig:
    """Default config, one recognition job in flight so scripted engines stay ordered."""
    cfg = AppConfig()
    cfg.recognition.max_concurrency = 1
    return cfg


@pytest.fixture
def make_service() -> Callable[..., RecognitionService]:
    def _make(engine: RecognitionEngine, timeout_s: float = 5.0, cold_timeout_s: Optional[float] = None):
        return RecognitionService(
            lambda: engine,
            timeout_s=timeout_s,
            cold_timeout_s=cold_timeout_s if cold_timeout_s is not None else timeout_s,
        )
    return _make


@pytest.fixture
def scripted_engine() -> type[ScriptedEngine]:
    return ScriptedEngine


@pytest.fixture
def content_engine() -> ContentEngine:
    return ContentEngine()


@pytest.fixture
def unavailable_engine() -> UnavailableEngine:
    return UnavailableEngine()


@pytest.fixture
def twelve_values() -> list[int]:
    return list(TWELVE_VALUES)


@pytest.fixture
def bill_layout() -> SimpleNamespace:
    """Page constants used by `bill_page`, for asserting on detected geometry."""
    return SimpleNamespace(
        height=PAGE_H,
        width=PAGE_W,
        baseline_y=BASELINE_Y,
        axis_x=AXIS_X,
        max_bar_px=MAX_BAR_PX,
        bar_columns=bar_columns,
    )
