"""
estimation/fusion.py
--------------------
Temporal fusion: turns per-bar label candidates into one
:class:`ConsumptionEstimate`.

Rules:
  * Valid candidates are ordered by ``x_center`` (left = oldest month).
  * Neighbours closer than ``dedup_fraction`` of the typical bar spacing are
    one bar read twice; the higher-confidence read wins.
  * The rightmost ``max_months`` values are used (the most recent year).
  * ``max_months`` values → the annual figure is their exact sum.
  * ``min_months`` .. ``max_months - 1`` → annual = average × 12, flagged
    as estimated.
  * Fewer than ``min_months`` → INSUFFICIENT, no numbers; the caller falls
    back to manual entry.
  * Confidence is the mean confidence of the values actually used.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from billchart.core.config import FusionConfig
from billchart.core.models import ConsumptionEstimate, EstimateStatus, LabelCandidate

logger = logging.getLogger(__name__)

_MONTHS_PER_YEAR = 12


def fuse_candidates(
    candidates: Sequence[LabelCandidate], config: FusionConfig
) -> ConsumptionEstimate:
    """Build the estimate from every candidate the reader produced (valid or not)."""
    spacing = _bar_spacing(candidates)
    valid = sorted((c for c in candidates if c.is_valid), key=lambda c: c.x_center)
    merged = _dedup(valid, config.dedup_fraction * spacing)
    used = merged[-config.max_months :]

    values = tuple(int(c.value) for c in used)  # type: ignore[arg-type]
    confidence = float(np.mean([c.confidence for c in used])) if used else 0.0
    commercial = sum(1 for c in candidates if c.above_range) >= config.commercial_min_count
    if commercial:
        logger.warning("Several labels read above %d kWh; usage may be commercial", config.max_value)

    if len(values) < config.min_months:
        logger.info("Only %d month(s) recognised; estimate withheld", len(values))
        return ConsumptionEstimate.insufficient(
            message=(
                f"Only {len(values)} month(s) could be read from the chart "
                f"(at least {config.min_months} needed). Enter your monthly kWh manually."
            ),
            values=values,
            confidence=confidence,
            candidates=tuple(candidates),
            commercial_warning=commercial,
        )

    total = float(sum(values))
    avg = total / len(values)
    exact = len(values) >= _MONTHS_PER_YEAR
    annual = total if exact else avg * _MONTHS_PER_YEAR
    message = (
        "Annual total from 12 months of history."
        if exact
        else f"Annual figure estimated from {len(values)} months."
    )
    logger.info(
        "Estimate: %d month(s), avg %.1f kWh, annual %.1f kWh (%s), conf %.1f",
        len(values), avg, annual, "exact" if exact else "estimated", confidence,
    )
    return ConsumptionEstimate(
        status=EstimateStatus.OK,
        months_used=len(values),
        values_used=values,
        avg_monthly_kwh=avg,
        annual_kwh=annual,
        confidence=confidence,
        is_estimated=not exact,
        message=message,
        commercial_warning=commercial,
        candidates=tuple(candidates),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _bar_spacing(candidates: Sequence[LabelCandidate]) -> float:
    """Median gap between neighbouring bars, from every candidate's position."""
    xs = sorted(c.x_center for c in candidates)
    if len(xs) < 2:
        return 0.0
    return float(np.median(np.diff(xs)))


def _dedup(ordered: list[LabelCandidate], min_gap: float) -> list[LabelCandidate]:
    merged: list[LabelCandidate] = []
    for cand in ordered:
        if merged and cand.x_center - merged[-1].x_center <= min_gap:
            if cand.confidence > merged[-1].confidence:
                merged[-1] = cand
            continue
        merged.append(cand)
    return merged
