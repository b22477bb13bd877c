"""
core/config.py
--------------
Loads, validates, and exposes the tuned pipeline constants from a YAML file.

Every ink-density fraction, luminance cutoff and merge distance used by the
pipeline lives here so it can be recalibrated against real bill samples
without touching the algorithms.

Usage:
    from billchart.core.config import load_config, AppConfig
    cfg = load_config()            # loads config/default.yaml
    cfg = load_config("my.yaml")   # loads a custom file
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from billchart.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_CONFIG = _PROJECT_ROOT / "config" / "default.yaml"


def _odd(v: int) -> int:
    if v % 2 == 0:
        raise ValueError("smoothing windows must be odd")
    return v


# ---------------------------------------------------------------------------
# Pydantic sub-models
# ---------------------------------------------------------------------------

class IngestionConfig(BaseModel):
    max_width: int = Field(1600, ge=200)


class ZoneConfig(BaseModel):
    analysis_width: int = Field(800, ge=200, le=1600)
    ink_threshold: int = Field(200, ge=1, le=255)
    row_smooth_window: int = Field(15, ge=1)
    col_smooth_window: int = Field(9, ge=1)
    search_top: float = Field(0.40, ge=0.0, le=1.0)
    search_bottom: float = Field(0.98, ge=0.0, le=1.0)
    row_offset: float = Field(0.02, ge=0.0, le=1.0)
    row_max_gap: int = Field(6, ge=0)
    col_ink_floor: float = Field(0.02, ge=0.0, le=1.0)
    col_max_gap_fraction: float = Field(0.08, ge=0.0, le=1.0)
    min_run_fraction: float = Field(0.12, gt=0.0, le=1.0)
    padding_fraction: float = Field(0.02, ge=0.0, le=0.5)
    fallback_top: float = Field(0.40, ge=0.0, le=1.0)
    fallback_bottom: float = Field(0.95, ge=0.0, le=1.0)
    fallback_left: float = Field(0.04, ge=0.0, le=1.0)
    fallback_right: float = Field(0.98, ge=0.0, le=1.0)

    @field_validator("row_smooth_window", "col_smooth_window")
    @classmethod
    def windows_must_be_odd(cls, v: int) -> int:
        return _odd(v)

    @model_validator(mode="after")
    def bands_ordered(self) -> "ZoneConfig":
        if self.search_top >= self.search_bottom:
            raise ValueError("search_top must be above search_bottom")
        if self.fallback_top >= self.fallback_bottom:
            raise ValueError("fallback_top must be above fallback_bottom")
        if self.fallback_left >= self.fallback_right:
            raise ValueError("fallback_left must be left of fallback_right")
        return self


class AxisConfig(BaseModel):
    ink_threshold: int = Field(200, ge=1, le=255)
    band_top: float = Field(0.30, ge=0.0, le=1.0)
    band_bottom: float = Field(0.92, ge=0.0, le=1.0)
    smooth_window: int = Field(5, ge=1)
    density_fraction: float = Field(0.18, gt=0.0, le=1.0)
    safety_margin: int = Field(4, ge=0)
    line_min_fraction: float = Field(0.60, gt=0.0, le=1.0)
    line_max_width: int = Field(5, ge=1)
    line_search_fraction: float = Field(0.40, gt=0.0, le=1.0)
    line_margin: int = Field(3, ge=0)

    @field_validator("smooth_window")
    @classmethod
    def window_must_be_odd(cls, v: int) -> int:
        return _odd(v)

    @model_validator(mode="after")
    def band_ordered(self) -> "AxisConfig":
        if self.band_top >= self.band_bottom:
            raise ValueError("band_top must be above band_bottom")
        return self


class SegmentationConfig(BaseModel):
    ink_threshold: int = Field(200, ge=1, le=255)
    band_top: float = Field(0.18, ge=0.0, le=1.0)
    band_bottom: float = Field(0.92, ge=0.0, le=1.0)
    smooth_window: int = Field(5, ge=1)
    column_fraction: float = Field(0.38, gt=0.0, le=1.0)
    min_width: int = Field(6, ge=1)
    max_width_fraction: float = Field(0.12, gt=0.0, le=1.0)
    max_bars: int = Field(13, ge=1)
    min_bars: int = Field(4, ge=1)
    top_fill_fraction: float = Field(0.5, gt=0.0, le=1.0)
    top_sustain_rows: int = Field(3, ge=1)

    @field_validator("smooth_window")
    @classmethod
    def window_must_be_odd(cls, v: int) -> int:
        return _odd(v)

    @model_validator(mode="after")
    def band_ordered(self) -> "SegmentationConfig":
        if self.band_top >= self.band_bottom:
            raise ValueError("band_top must be above band_bottom")
        return self


class LabelConfig(BaseModel):
    widen_fraction: float = Field(0.20, ge=0.0, le=1.0)
    height_fraction: float = Field(0.16, gt=0.0, le=1.0)
    gap_px: int = Field(3, ge=0)
    upscale: int = Field(3, ge=1, le=6)
    min_contrast: int = Field(48, ge=0, le=255)
    binarize_threshold: int = Field(185, ge=1, le=254)
    border_px: int = Field(8, ge=0)


class RecognitionConfig(BaseModel):
    engine: str = "tesseract"
    tesseract_cmd: Optional[str] = None
    language: str = "eng"
    whitelist: str = "0123456789"
    psm: int = Field(7, ge=0, le=13)
    oem: int = Field(3, ge=0, le=3)
    timeout_s: float = Field(20.0, gt=0)
    cold_timeout_s: float = Field(60.0, gt=0)
    max_concurrency: int = Field(2, ge=1, le=4)


class FusionConfig(BaseModel):
    min_value: int = Field(20, ge=0)
    max_value: int = Field(3000, gt=0)
    min_months: int = Field(4, ge=1)
    max_months: int = Field(12, ge=1)
    dedup_fraction: float = Field(0.35, ge=0.0, le=1.0)
    commercial_min_count: int = Field(3, ge=1)

    @model_validator(mode="after")
    def ranges_ordered(self) -> "FusionConfig":
        if self.min_value >= self.max_value:
            raise ValueError("min_value must be below max_value")
        if self.min_months > self.max_months:
            raise ValueError("min_months must not exceed max_months")
        return self


class LoggingConfig(BaseModel):
    log_level: str = "INFO"


# ---------------------------------------------------------------------------
# Root config model
# ---------------------------------------------------------------------------

class AppConfig(BaseModel):
    ingestion: IngestionConfig = IngestionConfig()
    zone: ZoneConfig = ZoneConfig()
    axis: AxisConfig = AxisConfig()
    segmentation: SegmentationConfig = SegmentationConfig()
    labels: LabelConfig = LabelConfig()
    recognition: RecognitionConfig = RecognitionConfig()
    fusion: FusionConfig = FusionConfig()
    logging: LoggingConfig = LoggingConfig()


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(path: str | Path | None = None) -> AppConfig:
    """Load and validate AppConfig from a YAML file.

    Args:
        path: Explicit path to a YAML file. Defaults to ``config/default.yaml``.

    Returns:
        Validated :class:`AppConfig` instance.

    Raises:
        ConfigError: If the file is missing or contains invalid values.
    """
    config_path = Path(path) if path else _DEFAULT_CONFIG

    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        raw: dict[str, Any] = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"YAML parse error in {config_path}: {exc}") from exc

    try:
        cfg = AppConfig.model_validate(raw)
    except Exception as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc

    logger.info("Configuration loaded from %s", config_path)
    return cfg
