"""
recognition/reader.py
---------------------
LabelReader: recognises every label ROI and parses it into a
:class:`LabelCandidate`.

ROIs are independent, so they are submitted to a small thread pool
(``max_concurrency`` in flight). Results are written back by index, which
keeps each candidate tied to its bar's ``x_center`` whatever order the
engine finishes in.

Failure policy:
* unreadable text / out-of-range value → candidate with ``value=None``
* a per-ROI engine error               → logged, candidate with ``value=None``
  (also any unexpected exception from the adapter)
* timeout, engine unavailable, or an
  OS-level failure (process, binary)   → raised; the whole request fails

A failing request waits for calls already running to return before it
releases the engine, so an adapter is never closed mid-call. Adapters must
honour ``timeout_s`` for that wait to stay bounded.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Optional

from billchart.core.cancellation import CancellationToken
from billchart.core.config import FusionConfig, RecognitionConfig
from billchart.core.exceptions import (
    BillChartError,
    EngineUnavailableError,
    RecognitionError,
    RecognitionTimeoutError,
)
from billchart.core.models import LabelCandidate, LabelRoi, RecognitionOutput
from billchart.recognition.parsing import parse_label_value
from billchart.recognition.service import RecognitionService

logger = logging.getLogger(__name__)


class LabelReader:
    """Runs recognition over label ROIs with bounded concurrency."""

    def __init__(
        self,
        service: RecognitionService,
        config: RecognitionConfig,
        fusion: FusionConfig,
    ) -> None:
        self._service = service
        self._cfg = config
        self._fusion = fusion

    def read(
        self, rois: list[LabelRoi], token: Optional[CancellationToken] = None
    ) -> list[LabelCandidate]:
        """Recognise *rois*; the result list is index-aligned with the input."""
        if not rois:
            return []

        with self._service.lease() as engine:
            budget = self._service.timeout_s
            pool = ThreadPoolExecutor(
                max_workers=min(self._cfg.max_concurrency, len(rois)),
                thread_name_prefix="billchart-ocr",
            )
            futures: list[Future] = [
                pool.submit(engine.recognize, roi.image, budget) for roi in rois
            ]
            candidates: list[LabelCandidate] = []
            try:
                for i, (roi, fut) in enumerate(zip(rois, futures)):
                    if token is not None:
                        token.raise_if_cancelled("label recognition")
                    output = self._result(fut, i, budget)
                    candidates.append(self._to_candidate(output, roi))
            except BaseException:
                # Drain in-flight calls before the lease ends: the caller
                # may discard (close) this engine right after.
                pool.shutdown(wait=True, cancel_futures=True)
                raise
            pool.shutdown(wait=True)
            self._service.mark_warm()

        valid = sum(1 for c in candidates if c.is_valid)
        logger.info("Recognised %d/%d label(s)", valid, len(candidates))
        return candidates

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _result(fut: Future, index: int, budget: float) -> RecognitionOutput:
        try:
            return fut.result(timeout=budget)
        except FutureTimeout as exc:
            raise RecognitionTimeoutError(
                f"Label {index} not recognised within {budget:.0f}s"
            ) from exc
        except (RecognitionTimeoutError, EngineUnavailableError):
            raise
        except RecognitionError as exc:
            logger.warning("Label %d: recognition failed, skipping (%s)", index, exc)
            return RecognitionOutput(text="", confidence=0.0)
        except BillChartError:
            raise
        except OSError as exc:
            raise EngineUnavailableError(f"Recognition engine stopped working: {exc}") from exc
        except Exception as exc:
            logger.warning("Label %d: engine raised %s, skipping (%s)", index, type(exc).__name__, exc)
            return RecognitionOutput(text="", confidence=0.0)

    def _to_candidate(self, output: RecognitionOutput, roi: LabelRoi) -> LabelCandidate:
        parsed = parse_label_value(output.text, self._fusion.min_value, self._fusion.max_value)
        if parsed.value is None and parsed.digits:
            logger.debug(
                "Label at x=%.1f: '%s' rejected (digits=%s)", roi.x_center, output.text, parsed.digits
            )
        return LabelCandidate(
            value=parsed.value,
            confidence=output.confidence,
            raw_text=output.text,
            x_center=roi.x_center,
            above_range=parsed.above_range,
        )
