"""
Tests for Palm Detection
========================
"""

import numpy as np
import pytest

from gesture_pipeline.capture.preprocess import letterbox
from gesture_pipeline.core.errors import InferenceError, TensorShapeError
from gesture_pipeline.core.types import PalmRegion
from gesture_pipeline.detection.anchors import PALM_ANCHORS, generate_anchors
from gesture_pipeline.detection.palm_detector import (
    PalmDetector, decode_palm_outputs, iou, nms, pick_primary_region, sigmoid,
)
from gesture_pipeline.utils.config import PalmDetectorConfig

from fakes import CENTER_ANCHOR, FakeEngine, blank_frame, palm_outputs, solid_frame


def region(bbox, score):
    return PalmRegion(bbox=bbox, landmarks=(), score=score)


class TestAnchors:
    """Test suite for SSD anchor generation."""

    def test_anchor_count(self):
        """24x24x2 + 12x12x6 anchors for the 192 model."""
        assert PALM_ANCHORS.shape == (2016, 2)

    def test_first_layer_origin(self):
        """Both anchors of the first stride-8 cell sit at its centre."""
        assert PALM_ANCHORS[0].tolist() == pytest.approx([1 / 48, 1 / 48])
        assert PALM_ANCHORS[1].tolist() == pytest.approx([1 / 48, 1 / 48])

    def test_stride_16_layers_merged(self):
        """The three stride-16 layers share one 12x12 grid, 6 anchors per cell."""
        assert PALM_ANCHORS[1152].tolist() == pytest.approx([1 / 24, 1 / 24])
        assert PALM_ANCHORS[1157].tolist() == pytest.approx([1 / 24, 1 / 24])
        assert PALM_ANCHORS[1158].tolist() == pytest.approx([3 / 24, 1 / 24])

    def test_center_anchor(self):
        """Test fixture anchor lands in the middle of the image."""
        assert PALM_ANCHORS[CENTER_ANCHOR].tolist() == pytest.approx([6.5 / 12, 6.5 / 12])

    def test_other_input_size(self):
        """Anchor count follows the input size."""
        anchors = generate_anchors(input_size=128)
        assert anchors.shape == (16 * 16 * 2 + 8 * 8 * 6, 2)


class TestBoxMath:
    """Test suite for sigmoid, IoU and NMS."""

    def test_sigmoid(self):
        assert sigmoid(0.0) == 0.5
        assert sigmoid(1000.0) == pytest.approx(1.0)
        assert sigmoid(-1000.0) == pytest.approx(0.0)

    def test_iou_identity(self):
        box = (10.0, 10.0, 50.0, 30.0)
        assert iou(box, box) == pytest.approx(1.0)

    def test_iou_disjoint(self):
        assert iou((0, 0, 10, 10), (20, 20, 30, 30)) == 0.0

    def test_iou_zero_area(self):
        assert iou((5, 5, 5, 5), (0, 0, 10, 10)) == 0.0

    def test_iou_half_overlap(self):
        """Two unit-height boxes sharing one of three columns."""
        a, b = (0, 0, 2, 1), (1, 0, 3, 1)
        assert iou(a, b) == pytest.approx(1 / 3)
        assert iou(b, a) == pytest.approx(iou(a, b))

    def test_nms_orders_by_score(self):
        regions = [
            region((0, 0, 10, 10), 0.6),
            region((100, 100, 110, 110), 0.9),
            region((200, 200, 210, 210), 0.7),
        ]
        assert nms(regions, 0.3, 10) == [1, 2, 0]

    def test_nms_suppresses_overlaps(self):
        """Lower-scoring boxes overlapping a kept box are dropped."""
        regions = [
            region((0, 0, 10, 10), 0.8),
            region((1, 1, 11, 11), 0.9),
            region((50, 50, 60, 60), 0.5),
        ]
        assert nms(regions, 0.3, 10) == [1, 2]

    def test_nms_top_k(self):
        regions = [region((i * 20, 0, i * 20 + 10, 10), 0.5 + i * 0.01) for i in range(5)]
        assert len(nms(regions, 0.3, 2)) == 2

    @pytest.mark.parametrize("top_k", [0, 1])
    def test_nms_keeps_best_box(self, top_k):
        regions = [region((i * 20, 0, i * 20 + 10, 10), 0.5 + i * 0.01) for i in range(5)]
        assert nms(regions, 0.3, top_k) == [4]

    def test_nms_invariants_random_boxes(self):
        """No kept pair overlaps past the threshold; scores never increase."""
        rng = np.random.RandomState(7)
        regions = []
        for _ in range(60):
            x, y = rng.uniform(0, 200, size=2)
            w, h = rng.uniform(5, 60, size=2)
            regions.append(region((x, y, x + w, y + h), float(rng.uniform(0.5, 1.0))))

        kept = nms(regions, 0.3, 8)
        assert len(kept) <= 8
        scores = [regions[i].score for i in kept]
        assert scores == sorted(scores, reverse=True)
        for a in kept:
            for b in kept:
                if a != b:
                    assert iou(regions[a].bbox, regions[b].bbox) < 0.3

    def test_pick_primary_region(self):
        """Highest score wins; ties keep the first."""
        a = region((0, 0, 1, 1), 0.8)
        b = region((2, 2, 3, 3), 0.8)
        c = region((4, 4, 5, 5), 0.3)
        assert pick_primary_region([c, a, b]) is a
        assert pick_primary_region([]) is None


class TestDecode:
    """Test suite for decode_palm_outputs()."""

    @pytest.fixture
    def info(self):
        _, info = letterbox(blank_frame(640, 480), 192)
        return info

    def test_single_anchor(self, info):
        """One confident anchor decodes to a box around its centre."""
        boxes, scores = palm_outputs(hits=[(CENTER_ANCHOR, 0.9, 40.0, 40.0)])
        regions = decode_palm_outputs(boxes, scores, info)

        assert len(regions) == 1
        r = regions[0]
        assert r.score == pytest.approx(0.9)

        ax = 6.5 / 12
        half = 20.0 / 192
        x1, y1, x2, y2 = r.bbox
        assert x1 == pytest.approx((ax - half) * 640, abs=1e-3)
        assert x2 == pytest.approx((ax + half) * 640, abs=1e-3)
        # 24 rows of padding at scale 0.3 = 80 frame pixels
        assert y1 == pytest.approx((ax - half) * 640 - 80, abs=1e-3)
        assert 0 <= x1 < x2 <= 639
        assert 0 <= y1 < y2 <= 479

        assert len(r.landmarks) == 7
        for kx, ky in r.landmarks:
            assert kx == pytest.approx(ax * 640, abs=1e-3)
            assert ky == pytest.approx(ax * 640 - 80, abs=1e-3)

    def test_below_threshold(self, info):
        boxes, scores = palm_outputs(hits=[(CENTER_ANCHOR, 0.4, 40.0, 40.0)])
        assert decode_palm_outputs(boxes, scores, info) == []

    def test_custom_threshold(self, info):
        boxes, scores = palm_outputs(hits=[(CENTER_ANCHOR, 0.4, 40.0, 40.0)])
        config = PalmDetectorConfig(score_threshold=0.3)
        assert len(decode_palm_outputs(boxes, scores, info, config)) == 1

    def test_degenerate_box_dropped(self, info):
        boxes, scores = palm_outputs(hits=[(CENTER_ANCHOR, 0.9, 0.0, 40.0)])
        assert decode_palm_outputs(boxes, scores, info) == []

    def test_box_clamped_to_frame(self, info):
        boxes, scores = palm_outputs(hits=[(CENTER_ANCHOR, 0.9, 1000.0, 1000.0)])
        (r,) = decode_palm_outputs(boxes, scores, info)
        assert r.bbox == (0.0, 0.0, 639.0, 479.0)

    def test_overlapping_anchors_suppressed(self, info):
        """Neighbouring anchors of the same cell collapse to one region."""
        boxes, scores = palm_outputs(hits=[
            (CENTER_ANCHOR, 0.9, 40.0, 40.0),
            (CENTER_ANCHOR + 1, 0.8, 40.0, 40.0),
        ])
        regions = decode_palm_outputs(boxes, scores, info)
        assert len(regions) == 1
        assert regions[0].score == pytest.approx(0.9)

    def test_rank_error(self, info):
        with pytest.raises(TensorShapeError):
            decode_palm_outputs(np.zeros((2016, 18)), np.zeros((1, 2016, 1)), info)

    def test_feature_error(self, info):
        boxes, scores = palm_outputs(features=17)
        with pytest.raises(TensorShapeError):
            decode_palm_outputs(boxes, scores, info)

    def test_anchor_mismatch(self, info):
        boxes, _ = palm_outputs()
        scores = np.zeros((1, 2000, 1), dtype=np.float32)
        with pytest.raises(TensorShapeError):
            decode_palm_outputs(boxes, scores, info)

    def test_missing_score_column(self, info):
        boxes, _ = palm_outputs()
        scores = np.zeros((1, 2016, 0), dtype=np.float32)
        with pytest.raises(TensorShapeError):
            decode_palm_outputs(boxes, scores, info)

    def test_no_anchors(self, info):
        with pytest.raises(TensorShapeError):
            decode_palm_outputs(np.zeros((1, 0, 18)), np.zeros((1, 0, 1)), info)


class TestPalmDetector:
    """Test suite for PalmDetector."""

    def test_too_few_outputs(self):
        detector = PalmDetector(FakeEngine(outputs=[np.zeros((1, 2016, 18))]))
        with pytest.raises(TensorShapeError):
            detector.detect(blank_frame())

    def test_engine_failure(self):
        detector = PalmDetector(FakeEngine(exc=RuntimeError("session run failed")))
        with pytest.raises(InferenceError):
            detector.detect(blank_frame())

    def test_blank_frame(self):
        detector = PalmDetector(FakeEngine(outputs=palm_outputs()))
        assert detector.detect(blank_frame()) == []

    def test_engine_receives_letterboxed_tensor(self):
        engine = FakeEngine(outputs=palm_outputs())
        PalmDetector(engine).detect(solid_frame(640, 480, (0, 255, 0)))
        assert engine.calls[0].shape == (1, 192, 192, 3)

    def test_close_closes_engine(self):
        engine = FakeEngine(outputs=palm_outputs())
        PalmDetector(engine).close()
        assert engine.closed


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
