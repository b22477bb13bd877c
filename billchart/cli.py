"""
cli.py
------
Command-line interface for reading consumption charts from bill photos.

Commands:
    billchart estimate   Read one or more bill photos and print the estimate
    billchart segments   Show the detected graph zone, axis cut and bars
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
import cv2
from tqdm import tqdm

from billchart.core.config import load_config
from billchart.core.exceptions import BillChartError, ConfigError
from billchart.core.models import ConsumptionEstimate, EstimateStatus
from billchart.estimation.override import resolve_monthly_kwh
from billchart.ingestion.image_loader import BillImageLoader
from billchart.processing.overlay import draw_chart_overlay, draw_page_overlay
from billchart.processing.pipeline import ConsumptionPipeline
from billchart.recognition.service import RecognitionService


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_config_or_exit(config_path):
    try:
        return load_config(config_path)
    except ConfigError as exc:
        click.echo(f"Config error: {exc}", err=True)
        sys.exit(2)


@click.group()
def main() -> None:
    """Bill consumption-chart reader -- CLI."""


# ---------------------------------------------------------------------------
# billchart estimate
# ---------------------------------------------------------------------------

def _print_estimate(name: str, est: ConsumptionEstimate, manual_kwh: float | None) -> None:
    click.echo("\n" + "=" * 60)
    click.echo(f" {name}")
    click.echo("=" * 60)
    click.echo(f"  Status           : {est.status.value.upper()}")
    if est.status is EstimateStatus.OK:
        kind = "estimated" if est.is_estimated else "exact"
        click.echo(f"  Months used      : {est.months_used}")
        click.echo(f"  Values (kWh)     : {', '.join(str(v) for v in est.values_used)}")
        click.echo(f"  Monthly average  : {est.avg_monthly_kwh:.1f} kWh")
        click.echo(f"  Annual           : {est.annual_kwh:.1f} kWh ({kind})")
        click.echo(f"  Confidence       : {est.confidence:.1f}")
    if est.message:
        click.echo(f"  Note             : {est.message}")
    if est.commercial_warning:
        click.echo("  [WARN] Several values exceed the residential range; check for commercial usage.")
    usage = resolve_monthly_kwh(est, manual_kwh)
    if usage.kwh is not None:
        click.echo(f"  kWh for sizing   : {usage.kwh:.1f} ({usage.source})")
    else:
        click.echo("  kWh for sizing   : -- (enter monthly kWh manually)")


@main.command("estimate")
@click.argument("images", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "config_path", default=None, type=click.Path(), help="YAML config (default: config/default.yaml).")
@click.option("--manual-kwh", default=None, type=float, help="Monthly kWh typed by the user; overrides the chart reading.")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON lines.")
@click.option("--debug-dir", default=None, type=click.Path(file_okay=False), help="Write annotated overlays here.")
@click.option("--log-level", default="WARNING", show_default=True, help="Logging verbosity.")
def estimate_cmd(images, config_path, manual_kwh, as_json, debug_dir, log_level):
    """Read the consumption chart in each IMAGE and estimate monthly/annual kWh."""
    _setup_logging(log_level)
    cfg = _load_config_or_exit(config_path)

    service = RecognitionService.from_config(cfg.recognition)
    pipeline = ConsumptionPipeline(cfg, service)
    out_dir = Path(debug_dir) if debug_dir else None
    if out_dir:
        out_dir.mkdir(parents=True, exist_ok=True)

    results: list[tuple[str, ConsumptionEstimate]] = []
    try:
        with tqdm(total=len(images), unit="image", dynamic_ncols=True, disable=len(images) < 2) as pbar:
            for path in images:
                name = Path(path).name
                estimate, trace = pipeline.run_traced(
                    path, on_state=lambda s: pbar.set_postfix({"image": name, "stage": s.value})
                )
                results.append((path, estimate))

                if out_dir:
                    _write_overlays(path, trace, out_dir)
                pbar.update(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted.")
    except BillChartError:
        logging.exception("Fatal error")
        sys.exit(1)
    finally:
        service.shutdown()

    for path, est in results:
        if as_json:
            payload = est.to_dict()
            payload["image"] = path
            usage = resolve_monthly_kwh(est, manual_kwh)
            payload["monthly_kwh_for_sizing"] = usage.kwh
            payload["monthly_kwh_source"] = usage.source
            click.echo(json.dumps(payload))
        else:
            _print_estimate(Path(path).name, est, manual_kwh)

    if not as_json:
        click.echo("")
    if any(est.status is EstimateStatus.ERROR for _, est in results):
        sys.exit(1)


def _write_overlays(path: str, trace, out_dir: Path) -> None:
    if trace.page is None:
        return
    stem = Path(path).stem
    cv2.imwrite(str(out_dir / f"{stem}_page.png"), draw_page_overlay(trace.page.image, trace))
    chart = draw_chart_overlay(trace)
    if chart is not None:
        cv2.imwrite(str(out_dir / f"{stem}_chart.png"), chart)
    for i, roi in enumerate(trace.rois):
        cv2.imwrite(str(out_dir / f"{stem}_label_{i:02d}.png"), roi.image)


# ---------------------------------------------------------------------------
# billchart segments
# ---------------------------------------------------------------------------

@main.command("segments")
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "config_path", default=None, type=click.Path(), help="YAML config.")
def segments_cmd(image, config_path):
    """Show the graph zone, axis cut and bars detected in IMAGE (no OCR)."""
    _setup_logging("WARNING")
    cfg = _load_config_or_exit(config_path)
    loader = BillImageLoader(cfg.ingestion)

    try:
        bill = loader.load(image)
    except BillChartError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    service = RecognitionService.from_config(cfg.recognition)
    trace = ConsumptionPipeline(cfg, service).detect(bill.image)

    click.echo(f"\nImage      : {bill.width}x{bill.height} (scale {bill.scale:.2f})")
    click.echo(f"Graph zone : x={trace.zone.x} y={trace.zone.y} w={trace.zone.width} h={trace.zone.height}")
    click.echo(f"Axis cut   : {trace.axis_cut.x_cut}px ({trace.axis_cut.method})")
    click.echo(f"Bars       : {len(trace.segments)}\n")
    click.echo(f"  {'#':>3} {'left':>6} {'right':>6} {'centre':>8} {'top':>6} {'density':>8}")
    for i, seg in enumerate(trace.segments):
        click.echo(
            f"  {i:>3} {seg.x_left:>6} {seg.x_right:>6} {seg.x_center:>8.1f} "
            f"{seg.top_y:>6} {seg.peak_density:>8.2f}"
        )
    click.echo("")


if __name__ == "__main__":
    main()
