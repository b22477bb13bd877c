"""
recognition/base.py
-------------------
Abstract base class for recognition engines.

The pipeline only depends on this contract. Concrete adapters (one per
engine) implement ``open()``, ``close()`` and ``recognize()``; which adapter
is used is decided once, when the engine is built.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from billchart.core.models import RecognitionOutput


class RecognitionEngine(ABC):
    """Interface contract for anything that turns an image into text."""

    @abstractmethod
    def open(self) -> None:
        """Start / warm the engine. Called once before the first recognition.

        Raises:
            EngineUnavailableError: If the engine cannot be started.
        """

    @abstractmethod
    def close(self) -> None:
        """Release resources held by the engine."""

    @abstractmethod
    def recognize(self, image: np.ndarray, timeout_s: float = 0.0) -> RecognitionOutput:
        """Recognize *image* (grayscale or BGR uint8).

        Args:
            image:     Region to read.
            timeout_s: Per-call budget in seconds; 0 means no limit. A
                       running call must give up once it is spent.

        Raises:
            RecognitionTimeoutError: If the call ran out of time.
            EngineUnavailableError:  If the engine can no longer run at all.
            RecognitionError:        For any other engine failure.
        """

    # ------------------------------------------------------------------
    # Convenience: context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "RecognitionEngine":
        self.open()
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    @property
    def name(self) -> str:
        return type(self).__name__
