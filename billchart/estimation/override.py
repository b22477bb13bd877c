"""
estimation/override.py
----------------------
Chooses the monthly kWh handed to the sizing calculator: a positive value
typed by the user always wins over the chart reading.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from billchart.core.models import ConsumptionEstimate

MANUAL = "manual"
CHART = "chart"
NONE = "none"


@dataclass(frozen=True)
class MonthlyUsage:
    kwh: Optional[float]
    source: str
    """'manual', 'chart' or 'none'."""


def resolve_monthly_kwh(
    estimate: Optional[ConsumptionEstimate], manual_kwh: Optional[float] = None
) -> MonthlyUsage:
    if manual_kwh is not None and manual_kwh > 0:
        return MonthlyUsage(kwh=float(manual_kwh), source=MANUAL)
    if estimate is not None and estimate.is_ok and estimate.avg_monthly_kwh is not None:
        return MonthlyUsage(kwh=estimate.avg_monthly_kwh, source=CHART)
    return MonthlyUsage(kwh=None, source=NONE)
