"""tests/unit/test_labels.py — LabelRoiExtractor tests."""

import cv2
import numpy as np

from billchart.core.config import LabelConfig
from billchart.core.models import BarSegment, Rect
from billchart.processing.labels import LabelRoiExtractor


class TestRoiRect:
    def setup_method(self):
        self.extractor = LabelRoiExtractor(LabelConfig())

    def test_region_sits_above_the_bar(self):
        seg = BarSegment(x_left=100, x_right=130, top_y=150)
        rect = self.extractor.roi_rect(600, 300, seg)
        # widened by 20 % of 30 px each side, 16 % of 300 px tall, 3 px gap
        assert rect == Rect(94, 99, 42, 48)
        assert rect.bottom <= seg.top_y

    def test_clamped_at_image_top(self):
        seg = BarSegment(x_left=100, x_right=130, top_y=10)
        rect = self.extractor.roi_rect(600, 300, seg)
        assert rect.y == 0
        assert rect.bottom == 7

    def test_clamped_at_image_sides(self):
        seg = BarSegment(x_left=2, x_right=22, top_y=100)
        rect = self.extractor.roi_rect(25, 300, seg)
        assert rect.x == 0
        assert rect.right == 25

    def test_bar_touching_top_still_gives_a_region(self):
        rect = self.extractor.roi_rect(600, 300, BarSegment(x_left=10, x_right=40, top_y=0))
        assert rect.width > 0 and rect.height > 0


class TestEnhance:
    def setup_method(self):
        self.cfg = LabelConfig()
        self.extractor = LabelRoiExtractor(self.cfg)

    def _digits(self) -> np.ndarray:
        img = np.full((20, 40, 3), 255, dtype=np.uint8)
        cv2.putText(img, "825", (2, 15), cv2.FONT_HERSHEY_SIMPLEX, 0.4, (0, 0, 0), 1)
        return img

    def test_output_is_binary_with_border(self):
        out = self.extractor.enhance(self._digits())
        b = self.cfg.border_px
        assert out.ndim == 2
        assert out.shape == (20 * self.cfg.upscale + 2 * b, 40 * self.cfg.upscale + 2 * b)
        assert set(np.unique(out)) <= {0, 255}
        assert (out[:b] == 255).all()

    def test_digits_survive_as_black(self):
        out = self.extractor.enhance(self._digits())
        assert (out == 0).any()

    def test_faint_digits_are_stretched(self):
        faint = np.full((20, 40, 3), 245, dtype=np.uint8)
        # 190 would binarise to white without the stretch
        cv2.putText(faint, "825", (2, 15), cv2.FONT_HERSHEY_SIMPLEX, 0.4, (190, 190, 190), 1)
        out = self.extractor.enhance(faint)
        assert (out == 0).any()

    def test_near_uniform_crop_is_not_amplified(self):
        rng = np.random.default_rng(0)
        noise = rng.integers(195, 206, size=(20, 40, 3), dtype=np.uint8)
        out = self.extractor.enhance(noise)
        assert (out == 255).all()


def test_extract_all_is_index_aligned(bar_chart):
    img, _ = bar_chart([120, 200, 160])
    segs = [BarSegment(20, 46, 140), BarSegment(72, 98, 60), BarSegment(124, 150, 100)]
    rois = LabelRoiExtractor(LabelConfig()).extract_all(img, segs)
    assert [r.segment for r in rois] == segs
    assert [r.x_center for r in rois] == [33.0, 85.0, 137.0]
    assert all(r.rect.bottom <= r.segment.top_y for r in rois)
