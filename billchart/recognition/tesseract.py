"""
recognition/tesseract.py
------------------------
RecognitionEngine adapter for the Tesseract binary via pytesseract.

Configured for bar labels: digit-only whitelist and a single-line page
segmentation mode (``--psm 7``; ``11`` for sparse text also works on some
bills). Word boxes and confidences come from ``image_to_data``.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import pytesseract

from billchart.core.config import RecognitionConfig
from billchart.core.exceptions import (
    EngineUnavailableError,
    RecognitionError,
    RecognitionTimeoutError,
)
from billchart.core.models import RecognitionOutput, WordBox
from billchart.recognition.base import RecognitionEngine

logger = logging.getLogger(__name__)


class TesseractEngine(RecognitionEngine):
    """Digit-only Tesseract reader."""

    def __init__(self, config: RecognitionConfig) -> None:
        self._cfg = config
        self._version: Optional[str] = None
        self._options = (
            f"--oem {config.oem} --psm {config.psm} "
            f"-c tessedit_char_whitelist={config.whitelist}"
        )

    # ------------------------------------------------------------------
    # RecognitionEngine implementation
    # ------------------------------------------------------------------

    def open(self) -> None:
        if self._cfg.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self._cfg.tesseract_cmd
        try:
            self._version = str(pytesseract.get_tesseract_version())
        except pytesseract.TesseractNotFoundError as exc:
            raise EngineUnavailableError(f"Tesseract binary not found: {exc}") from exc
        except OSError as exc:
            raise EngineUnavailableError(f"Tesseract could not be started: {exc}") from exc
        logger.info("Tesseract %s ready (%s)", self._version, self._options)

    def close(self) -> None:
        # Each call spawns its own process; nothing stays resident.
        if self._version is not None:
            logger.debug("Tesseract engine closed")
        self._version = None

    def recognize(self, image: np.ndarray, timeout_s: float = 0.0) -> RecognitionOutput:
        if self._version is None:
            raise RecognitionError("Tesseract engine not opened. Call open() first.")
        try:
            data = pytesseract.image_to_data(
                image,
                lang=self._cfg.language,
                config=self._options,
                output_type=pytesseract.Output.DICT,
                timeout=timeout_s,
            )
        except pytesseract.TesseractNotFoundError as exc:
            raise EngineUnavailableError(f"Tesseract binary disappeared: {exc}") from exc
        except OSError as exc:
            raise EngineUnavailableError(f"Tesseract could not be run: {exc}") from exc
        except RuntimeError as exc:
            if "timeout" in str(exc).lower():
                raise RecognitionTimeoutError(f"Tesseract timed out after {timeout_s:.0f}s") from exc
            raise RecognitionError(f"Tesseract failed: {exc}") from exc
        except pytesseract.TesseractError as exc:
            raise RecognitionError(f"Tesseract failed: {exc}") from exc

        return self._to_output(data)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_output(data: dict) -> RecognitionOutput:
        words: list[WordBox] = []
        for i, text in enumerate(data.get("text", [])):
            text = (text or "").strip()
            conf = float(data["conf"][i])
            # Tesseract reports -1 for layout rows that carry no word
            if not text or conf < 0:
                continue
            words.append(WordBox(
                text=text,
                confidence=conf,
                bbox=(int(data["left"][i]), int(data["top"][i]),
                      int(data["width"][i]), int(data["height"][i])),
            ))

        if not words:
            return RecognitionOutput(text="", confidence=0.0)
        return RecognitionOutput(
            text=" ".join(w.text for w in words),
            confidence=sum(w.confidence for w in words) / len(words),
            words=tuple(words),
        )

    @property
    def version(self) -> Optional[str]:
        return self._version
