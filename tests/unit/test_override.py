"""tests/unit/test_override.py — Manual kWh override tests."""

from billchart.core.models import ConsumptionEstimate, EstimateStatus
from billchart.estimation.override import CHART, MANUAL, NONE, resolve_monthly_kwh

OK_ESTIMATE = ConsumptionEstimate(
    status=EstimateStatus.OK,
    months_used=4,
    values_used=(200, 210, 220, 230),
    avg_monthly_kwh=215.0,
    annual_kwh=2580.0,
    confidence=90.0,
    is_estimated=True,
)


def test_manual_entry_wins_over_chart():
    usage = resolve_monthly_kwh(OK_ESTIMATE, manual_kwh=500)
    assert usage.kwh == 500.0
    assert usage.source == MANUAL


def test_chart_used_without_manual_entry():
    usage = resolve_monthly_kwh(OK_ESTIMATE)
    assert usage.kwh == 215.0
    assert usage.source == CHART


def test_non_positive_manual_entry_ignored():
    assert resolve_monthly_kwh(OK_ESTIMATE, manual_kwh=0).source == CHART
    assert resolve_monthly_kwh(OK_ESTIMATE, manual_kwh=-10).source == CHART


def test_insufficient_estimate_gives_nothing():
    est = ConsumptionEstimate.insufficient("too few", values=(200, 210))
    usage = resolve_monthly_kwh(est)
    assert usage.kwh is None
    assert usage.source == NONE


def test_error_estimate_still_accepts_manual_entry():
    usage = resolve_monthly_kwh(ConsumptionEstimate.error("bad photo"), manual_kwh=320)
    assert usage.kwh == 320.0
    assert usage.source == MANUAL


def test_no_estimate_at_all():
    assert resolve_monthly_kwh(None).source == NONE
