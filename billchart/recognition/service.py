"""
recognition/service.py
----------------------
RecognitionService: the one engine instance a process shares.

The engine is built from a factory chosen once from configuration, opened
lazily on the first ``lease()``, reused by every later request, and torn
down by ``shutdown()``. A request that hits an engine failure calls
``discard()``; the next lease then starts a fresh engine.

Reference counting keeps ``shutdown()`` from closing an engine that a
running request still holds: the close is deferred until the last lease
ends.

Usage::

    service = RecognitionService.from_config(cfg.recognition)
    with service.lease() as engine:
        out = engine.recognize(roi, timeout_s=service.timeout_s)
    service.shutdown()
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from billchart.core.config import RecognitionConfig
from billchart.core.exceptions import ConfigError
from billchart.recognition.base import RecognitionEngine
from billchart.recognition.tesseract import TesseractEngine

logger = logging.getLogger(__name__)

EngineFactory = Callable[[], RecognitionEngine]

# Adapter per supported engine, keyed by ``recognition.engine``
ENGINES: dict[str, Callable[[RecognitionConfig], RecognitionEngine]] = {
    "tesseract": TesseractEngine,
}


def engine_factory(config: RecognitionConfig) -> EngineFactory:
    """Resolve the configured adapter once; return a zero-arg builder."""
    try:
        adapter = ENGINES[config.engine]
    except KeyError:
        raise ConfigError(
            f"Unknown recognition engine '{config.engine}'. Available: {sorted(ENGINES)}"
        ) from None
    return lambda: adapter(config)


class RecognitionService:
    """Lazily-constructed, reference-counted handle on one engine."""

    def __init__(
        self,
        factory: EngineFactory,
        timeout_s: float = 20.0,
        cold_timeout_s: float = 60.0,
    ) -> None:
        self._factory = factory
        self._timeout_s = timeout_s
        self._cold_timeout_s = cold_timeout_s

        self._lock = threading.Lock()
        self._engine: Optional[RecognitionEngine] = None
        self._leases = 0
        self._warm = False
        self._shutdown_pending = False
        self._init_count = 0

    @classmethod
    def from_config(cls, config: RecognitionConfig) -> "RecognitionService":
        return cls(
            engine_factory(config),
            timeout_s=config.timeout_s,
            cold_timeout_s=config.cold_timeout_s,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @contextmanager
    def lease(self) -> Iterator[RecognitionEngine]:
        """Borrow the engine, opening it first if needed.

        Raises:
            EngineUnavailableError: If the engine cannot be opened.
        """
        with self._lock:
            if self._engine is None:
                engine = self._factory()
                engine.open()
                self._engine = engine
                self._warm = False
                self._init_count += 1
                logger.info("Recognition engine %s initialised (#%d)", engine.name, self._init_count)
            self._leases += 1
            self._shutdown_pending = False
            engine = self._engine

        try:
            yield engine
        finally:
            with self._lock:
                self._leases -= 1
                if self._shutdown_pending and self._leases == 0:
                    self._close_locked()

    def mark_warm(self) -> None:
        """Record that the engine completed a request; later calls use the warm timeout."""
        with self._lock:
            if self._engine is not None:
                self._warm = True

    def discard(self, reason: str = "") -> None:
        """Drop a failed engine so the next lease starts a fresh one."""
        with self._lock:
            if self._engine is None:
                return
            logger.warning("Discarding recognition engine%s", f": {reason}" if reason else "")
            self._close_locked()

    def shutdown(self) -> None:
        """Close the engine now, or as soon as the last lease ends."""
        with self._lock:
            if self._leases > 0:
                self._shutdown_pending = True
                logger.debug("Shutdown deferred until %d lease(s) end", self._leases)
                return
            self._close_locked()

    def _close_locked(self) -> None:
        engine, self._engine = self._engine, None
        self._warm = False
        self._shutdown_pending = False
        if engine is None:
            return
        try:
            engine.close()
        except Exception:
            logger.exception("Error while closing recognition engine %s", engine.name)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def timeout_s(self) -> float:
        """Per-call budget: generous while the engine is cold, tighter once warm."""
        with self._lock:
            return self._timeout_s if self._warm else self._cold_timeout_s

    @property
    def is_initialized(self) -> bool:
        with self._lock:
            return self._engine is not None

    @property
    def init_count(self) -> int:
        with self._lock:
            return self._init_count

    @property
    def active_leases(self) -> int:
        with self._lock:
            return self._leases
