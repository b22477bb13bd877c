"""
estimation/session.py
---------------------
EstimationSession: what a host page talks to.

Each ``submit()`` starts a new request and supersedes any request still in
flight. Only the newest request may commit: a stale run is cancelled at its
next stage boundary, and if it finishes anyway its estimate is dropped.
Committed results and stage changes are published on the
:class:`~billchart.core.bus.EventBus`.

The session owns no engine; it is handed a :class:`RecognitionService` and
releases it in ``close()`` when the hosting page ends.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from billchart.core.bus import ESTIMATE, STATE, EventBus
from billchart.core.cancellation import CancellationToken, RequestGate
from billchart.core.config import AppConfig
from billchart.core.exceptions import RequestCancelledError
from billchart.core.models import ConsumptionEstimate, PipelineState
from billchart.estimation.override import MonthlyUsage, resolve_monthly_kwh
from billchart.ingestion.image_loader import ImageSource
from billchart.processing.pipeline import ConsumptionPipeline
from billchart.recognition.service import RecognitionService

logger = logging.getLogger(__name__)


class EstimationSession:
    """Runs pipeline requests for one page and keeps only the newest result."""

    def __init__(
        self,
        config: AppConfig,
        service: RecognitionService,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._service = service
        self._pipeline = ConsumptionPipeline(config, service)
        self._gate = RequestGate()
        self._bus = bus or EventBus()
        self._lock = threading.Lock()
        self._latest: Optional[ConsumptionEstimate] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit(self, source: ImageSource) -> Optional[ConsumptionEstimate]:
        """Process *source* as the newest request.

        Returns:
            The committed estimate, or ``None`` if a newer request
            superseded this one before it finished.
        """
        token = self._gate.begin()
        logger.info("Request %d started", token.generation)
        try:
            estimate = self._pipeline.run(
                source, token, on_state=lambda s: self._publish_state(token, s)
            )
        except RequestCancelledError as exc:
            logger.info("%s; result discarded", exc)
            return None
        return self._commit(token, estimate)

    def monthly_usage(self, manual_kwh: Optional[float] = None) -> MonthlyUsage:
        """Monthly kWh for sizing: the user's entry if positive, else the latest reading."""
        return resolve_monthly_kwh(self.latest, manual_kwh)

    def cancel(self) -> None:
        """Abandon whatever request is in flight."""
        self._gate.cancel_all()

    def close(self) -> None:
        """Cancel in-flight work and release the recognition engine."""
        self._gate.cancel_all()
        self._service.shutdown()

    @property
    def latest(self) -> Optional[ConsumptionEstimate]:
        with self._lock:
            return self._latest

    @property
    def bus(self) -> EventBus:
        return self._bus

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _commit(
        self, token: CancellationToken, estimate: ConsumptionEstimate
    ) -> Optional[ConsumptionEstimate]:
        with self._lock:
            if not self._gate.is_current(token):
                logger.info("Request %d finished after being superseded; dropped", token.generation)
                return None
            self._latest = estimate
        self._bus.publish(ESTIMATE, estimate)
        return estimate

    def _publish_state(self, token: CancellationToken, state: PipelineState) -> None:
        if self._gate.is_current(token):
            self._bus.publish(STATE, state)

    def __enter__(self) -> "EstimationSession":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
