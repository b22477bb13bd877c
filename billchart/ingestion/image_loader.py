"""
ingestion/image_loader.py
-------------------------
Decodes an uploaded bill photo into a :class:`BillImage`.

Steps:
1. Decode with Pillow (path, raw bytes, or pass-through of a BGR array)
2. Apply the EXIF orientation tag so phone photos come out upright
3. Convert to a BGR uint8 array (OpenCV convention)
4. Downscale to ``max_width`` if larger, preserving aspect ratio
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Union

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from billchart.core.config import IngestionConfig
from billchart.core.exceptions import ImageDecodeError
from billchart.core.models import BillImage

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, bytes, np.ndarray]


class BillImageLoader:
    """Turns a path, a byte string or an array into a bounded :class:`BillImage`."""

    def __init__(self, config: IngestionConfig) -> None:
        self._cfg = config

    def load(self, source: ImageSource) -> BillImage:
        """Decode *source*.

        Raises:
            ImageDecodeError: If the data cannot be decoded as an image.
        """
        if isinstance(source, np.ndarray):
            bgr = self._from_array(source)
            label = "<array>"
        elif isinstance(source, (bytes, bytearray)):
            bgr = self._decode(io.BytesIO(source), "<bytes>")
            label = "<bytes>"
        else:
            path = Path(source)
            if not path.exists():
                raise ImageDecodeError(f"Image file not found: {path}")
            bgr = self._decode(path, str(path))
            label = str(path)

        return self._bound(bgr, label)

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(fp, label: str) -> np.ndarray:
        try:
            with Image.open(fp) as im:
                im = ImageOps.exif_transpose(im)
                rgb = np.asarray(im.convert("RGB"))
        except UnidentifiedImageError as exc:
            raise ImageDecodeError(f"Unsupported or corrupt image: {label}") from exc
        except Image.DecompressionBombError as exc:
            raise ImageDecodeError(f"Image {label} is too large to decode: {exc}") from exc
        except (OSError, ValueError) as exc:
            raise ImageDecodeError(f"Could not decode image {label}: {exc}") from exc
        return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)

    @staticmethod
    def _from_array(arr: np.ndarray) -> np.ndarray:
        if arr.dtype != np.uint8 or arr.ndim not in (2, 3) or arr.size == 0:
            raise ImageDecodeError(
                f"Expected a non-empty uint8 image array, got dtype={arr.dtype} shape={arr.shape}"
            )
        if arr.ndim == 2:
            return cv2.cvtColor(arr, cv2.COLOR_GRAY2BGR)
        if arr.shape[2] == 4:
            return cv2.cvtColor(arr, cv2.COLOR_BGRA2BGR)
        if arr.shape[2] != 3:
            raise ImageDecodeError(f"Unsupported channel count: {arr.shape[2]}")
        return arr.copy()

    # ------------------------------------------------------------------
    # Resolution bound
    # ------------------------------------------------------------------

    def _bound(self, bgr: np.ndarray, label: str) -> BillImage:
        h, w = bgr.shape[:2]
        max_w = self._cfg.max_width
        if w <= max_w:
            logger.debug("Loaded %s at %dx%d", label, w, h)
            return BillImage(image=bgr, source=label, scale=1.0)

        scale = max_w / w
        new_size = (max_w, max(1, round(h * scale)))
        resized = cv2.resize(bgr, new_size, interpolation=cv2.INTER_AREA)
        logger.debug("Loaded %s at %dx%d, downscaled to %dx%d", label, w, h, *new_size)
        return BillImage(image=resized, source=label, scale=scale)
