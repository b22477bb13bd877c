"""
processing/pipeline.py
-----------------------
ConsumptionPipeline: orchestrates the full photo → estimate chain.

  source
    → BillImageLoader      → BillImage
    → GraphZoneLocator     → Rect
    → AxisExcluder         → AxisCut
    → BarSegmenter         → [BarSegment]
    → LabelRoiExtractor    → [LabelRoi]
    → LabelReader          → [LabelCandidate]
    → fuse_candidates      → ConsumptionEstimate

States reported through ``on_state``:
DETECTING → RECOGNIZING → OK | INSUFFICIENT | ERROR.

The cancellation token is checked at every stage boundary; a superseded
request raises :class:`RequestCancelledError` instead of returning.
Decode and engine failures become ERROR estimates with a readable message,
never a zero estimate.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import cv2
import numpy as np

from billchart.core.cancellation import CancellationToken
from billchart.core.config import AppConfig
from billchart.core.exceptions import ImageDecodeError, ProcessingError, RecognitionError
from billchart.core.models import ConsumptionEstimate, PipelineState, PipelineTrace
from billchart.estimation.fusion import fuse_candidates
from billchart.ingestion.image_loader import BillImageLoader, ImageSource
from billchart.processing.axis import AxisExcluder
from billchart.processing.labels import LabelRoiExtractor
from billchart.processing.segmentation import BarSegmenter
from billchart.processing.zone import GraphZoneLocator
from billchart.recognition.reader import LabelReader
from billchart.recognition.service import RecognitionService

logger = logging.getLogger(__name__)

StateCallback = Callable[[PipelineState], None]


class ConsumptionPipeline:
    """End-to-end chart reading chain for one bill photo."""

    def __init__(self, config: AppConfig, service: RecognitionService) -> None:
        self._cfg = config
        self._service = service

        self._loader = BillImageLoader(config.ingestion)
        self._locator = GraphZoneLocator(config.zone)
        self._axis = AxisExcluder(config.axis)
        self._segmenter = BarSegmenter(config.segmentation)
        self._labels = LabelRoiExtractor(config.labels)
        self._reader = LabelReader(service, config.recognition, config.fusion)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(
        self,
        source: ImageSource,
        token: Optional[CancellationToken] = None,
        on_state: Optional[StateCallback] = None,
    ) -> ConsumptionEstimate:
        """Read the consumption chart in *source*.

        Raises:
            RequestCancelledError: If *token* was cancelled mid-run.
        """
        estimate, _ = self.run_traced(source, token, on_state)
        return estimate

    def run_traced(
        self,
        source: ImageSource,
        token: Optional[CancellationToken] = None,
        on_state: Optional[StateCallback] = None,
    ) -> tuple[ConsumptionEstimate, PipelineTrace]:
        """Same as :meth:`run` but also returns the intermediate artefacts."""
        token = token or CancellationToken()
        notify = on_state or (lambda _state: None)
        trace = PipelineTrace()

        notify(PipelineState.DETECTING)
        try:
            bill = self._loader.load(source)
            trace.page = bill
            token.raise_if_cancelled("graph detection")
            self.detect(bill.image, token, trace)
        except (ImageDecodeError, ProcessingError) as exc:
            logger.error("Chart detection failed: %s", exc)
            return self._finish(ConsumptionEstimate.error(str(exc)), trace, notify)

        min_bars = self._cfg.segmentation.min_bars
        if len(trace.segments) < min_bars:
            estimate = ConsumptionEstimate.insufficient(
                f"Only {len(trace.segments)} bar(s) found in the chart "
                f"(at least {min_bars} needed). Enter your monthly kWh manually."
            )
            return self._finish(estimate, trace, notify)

        token.raise_if_cancelled("label recognition")
        notify(PipelineState.RECOGNIZING)
        try:
            trace.candidates = self._reader.read(trace.rois, token)
        except RecognitionError as exc:
            self._service.discard(str(exc))
            return self._finish(
                ConsumptionEstimate.error(f"Text recognition failed: {exc}"), trace, notify
            )

        token.raise_if_cancelled("fusion")
        estimate = fuse_candidates(trace.candidates, self._cfg.fusion)
        return self._finish(estimate, trace, notify)

    def detect(
        self,
        image: np.ndarray,
        token: Optional[CancellationToken] = None,
        trace: Optional[PipelineTrace] = None,
    ) -> PipelineTrace:
        """Run the geometry stages (zone → axis → bars → label ROIs) on *image*."""
        token = token or CancellationToken()
        trace = trace if trace is not None else PipelineTrace()
        try:
            trace.zone = self._locator.locate(image)
            graph = trace.zone.crop(image)

            token.raise_if_cancelled("axis exclusion")
            trace.axis_cut = self._axis.exclude(graph)

            token.raise_if_cancelled("bar segmentation")
            trace.segments = self._segmenter.segment(trace.axis_cut.image)

            token.raise_if_cancelled("label extraction")
            trace.rois = self._labels.extract_all(trace.axis_cut.image, trace.segments)
        except cv2.error as exc:
            raise ProcessingError(f"Image processing failed: {exc}") from exc

        logger.debug(
            "Detection: zone=%s x_cut=%d bars=%d",
            trace.zone.as_tuple(), trace.axis_cut.x_cut, len(trace.segments),
        )
        return trace

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _finish(
        estimate: ConsumptionEstimate, trace: PipelineTrace, notify: StateCallback
    ) -> tuple[ConsumptionEstimate, PipelineTrace]:
        notify(PipelineState.from_status(estimate.status))
        return estimate, trace

    @property
    def service(self) -> RecognitionService:
        return self._service
