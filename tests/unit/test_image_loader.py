"""tests/unit/test_image_loader.py — BillImageLoader decode / bound tests."""

import io

import cv2
import numpy as np
import pytest
from PIL import Image

from billchart.core.config import IngestionConfig
from billchart.core.exceptions import ImageDecodeError
from billchart.ingestion.image_loader import BillImageLoader


def make_bgr(h=60, w=80) -> np.ndarray:
    img = np.full((h, w, 3), 255, dtype=np.uint8)
    img[0, 0] = (255, 0, 0)  # pure blue in BGR
    return img


class TestBillImageLoader:
    def setup_method(self):
        self.loader = BillImageLoader(IngestionConfig())

    def test_png_bytes_decode_to_bgr(self):
        ok, buf = cv2.imencode(".png", make_bgr())
        assert ok
        bill = self.loader.load(buf.tobytes())
        assert bill.image.shape == (60, 80, 3)
        assert tuple(bill.image[0, 0]) == (255, 0, 0)
        assert bill.source == "<bytes>"
        assert bill.scale == 1.0

    def test_path_and_str_accepted(self, tmp_path):
        p = tmp_path / "bill.png"
        cv2.imwrite(str(p), make_bgr())
        assert self.loader.load(p).width == 80
        assert self.loader.load(str(p)).height == 60

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ImageDecodeError, match="not found"):
            self.loader.load(tmp_path / "nope.jpg")

    def test_corrupt_bytes_raise(self):
        with pytest.raises(ImageDecodeError):
            self.loader.load(b"definitely not an image")

    def test_wide_image_downscaled(self):
        bill = self.loader.load(np.full((400, 3200, 3), 200, dtype=np.uint8))
        assert bill.width == 1600
        assert bill.height == 200
        assert bill.scale == pytest.approx(0.5)

    def test_exif_orientation_applied(self):
        im = Image.new("RGB", (40, 20), (255, 255, 255))
        exif = Image.Exif()
        exif[0x0112] = 6  # rotate 90° clockwise on display
        buf = io.BytesIO()
        im.save(buf, format="JPEG", exif=exif.tobytes())
        bill = self.loader.load(buf.getvalue())
        assert bill.image.shape[:2] == (40, 20)

    def test_grayscale_array_expanded(self):
        bill = self.loader.load(np.zeros((10, 20), dtype=np.uint8))
        assert bill.image.shape == (10, 20, 3)

    def test_bgra_array_drops_alpha(self):
        bill = self.loader.load(np.zeros((10, 20, 4), dtype=np.uint8))
        assert bill.image.shape == (10, 20, 3)

    def test_array_is_copied(self):
        arr = make_bgr()
        bill = self.loader.load(arr)
        bill.image[:] = 0
        assert arr.max() == 255

    def test_float_array_rejected(self):
        with pytest.raises(ImageDecodeError):
            self.loader.load(np.zeros((10, 10, 3), dtype=np.float32))

    def test_oversized_photo_is_a_decode_error(self, monkeypatch):
        ok, buf = cv2.imencode(".png", make_bgr())
        assert ok
        # 80x60 is more than twice this limit, so Pillow refuses it outright
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        with pytest.raises(ImageDecodeError, match="too large"):
            self.loader.load(buf.tobytes())
