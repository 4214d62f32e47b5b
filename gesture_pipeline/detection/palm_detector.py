"""
Palm detection: SSD output decoding and non-max suppression.

The detector network emits, per anchor, a raw objectness score and 18
regression values (box centre offset, box size, 7 keypoint offsets) in
model-input pixels. Decoding maps survivors back to original-frame pixels
through the letterbox transform.
"""

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from gesture_pipeline.capture.preprocess import letterbox
from gesture_pipeline.core.errors import TensorShapeError
from gesture_pipeline.core.types import NUM_PALM_KEYPOINTS, Frame, LetterboxInfo, PalmRegion
from gesture_pipeline.detection.anchors import generate_anchors
from gesture_pipeline.models.engine import InferenceEngine, run_inference
from gesture_pipeline.utils.config import PalmDetectorConfig

logger = logging.getLogger(__name__)

MIN_FEATURES = 4 + NUM_PALM_KEYPOINTS * 2


def sigmoid(x: float) -> float:
    # Split keeps exp() from overflowing on large-magnitude logits
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def iou(a: Sequence[float], b: Sequence[float]) -> float:
    """Intersection over union of two [x1, y1, x2, y2] boxes."""
    x1 = max(a[0], b[0])
    y1 = max(a[1], b[1])
    x2 = min(a[2], b[2])
    y2 = min(a[3], b[3])

    inter = max(x2 - x1, 0.0) * max(y2 - y1, 0.0)
    if inter <= 0.0:
        return 0.0

    area_a = max(a[2] - a[0], 0.0) * max(a[3] - a[1], 0.0)
    area_b = max(b[2] - b[0], 0.0) * max(b[3] - b[1], 0.0)
    union = area_a + area_b - inter
    if union <= 0.0:
        return 0.0
    return inter / union


def nms(regions: Sequence[PalmRegion], threshold: float, top_k: int) -> List[int]:
    """Greedy NMS; returns kept indices in non-increasing score order.

    The best box is always kept, so ``top_k < 1`` behaves like 1.
    """
    order = sorted(range(len(regions)), key=lambda i: regions[i].score, reverse=True)
    keep = []
    for idx in order:
        if any(iou(regions[idx].bbox, regions[k].bbox) >= threshold for k in keep):
            continue
        keep.append(idx)
        if len(keep) >= top_k:
            break
    return keep


def pick_primary_region(regions: Sequence[PalmRegion]) -> Optional[PalmRegion]:
    """Highest-scoring region; the first one wins ties."""
    best = None
    for region in regions:
        if best is None or region.score > best.score:
            best = region
    return best


def _anchor_and_feature_dims(shape, what: str):
    if len(shape) < 3:
        raise TensorShapeError(
            "unexpected palm %s shape %s, need [batch, anchors, features]" % (what, tuple(shape))
        )
    return int(shape[-2]), int(shape[-1])


def decode_palm_outputs(boxes: np.ndarray, scores: np.ndarray, info: LetterboxInfo,
                        config: Optional[PalmDetectorConfig] = None,
                        anchors: Optional[np.ndarray] = None,
                        input_size: Optional[int] = None) -> List[PalmRegion]:
    """Decode raw detector outputs into NMS-filtered palm regions.

    Args:
        boxes: regression output, shape (..., anchors, features >= 18)
        scores: raw score output, shape (..., anchors, k)
        info: letterbox used to build the detector input
        config: thresholds (defaults if None)
        anchors: normalized anchor centres (generated for input_size if None)
        input_size: detector input size (config.input_size if None)

    Raises:
        TensorShapeError: on rank, feature or anchor-count mismatches
    """
    cfg = config or PalmDetectorConfig()
    input_size = float(input_size or cfg.input_size)
    if anchors is None:
        anchors = generate_anchors(int(input_size))

    boxes = np.asarray(boxes, dtype=np.float32)
    scores = np.asarray(scores, dtype=np.float32)
    anchor_dim, feature_dim = _anchor_and_feature_dims(boxes.shape, "box")
    score_anchor_dim, score_feature_dim = _anchor_and_feature_dims(scores.shape, "score")

    if feature_dim < MIN_FEATURES:
        raise TensorShapeError("palm box feature dimension too small: %d" % feature_dim)
    if anchor_dim < 1:
        raise TensorShapeError("palm outputs have no anchors")
    if score_feature_dim < 1:
        raise TensorShapeError("palm score output has no score column")
    if anchor_dim != score_anchor_dim:
        raise TensorShapeError(
            "anchor dimension mismatch between boxes (%d) and scores (%d)"
            % (anchor_dim, score_anchor_dim)
        )

    # Only the first batch is decoded
    box_rows = boxes.reshape(-1, anchor_dim, feature_dim)[0]
    score_rows = scores.reshape(-1, score_anchor_dim, score_feature_dim)[0]

    bias_x = info.pad_x / info.scale
    bias_y = info.pad_y / info.scale
    scale = float(max(info.orig_w, info.orig_h))
    max_x = float(max(info.orig_w - 1, 0))
    max_y = float(max(info.orig_h - 1, 0))

    candidates = []
    for i in range(min(len(anchors), anchor_dim)):
        score = sigmoid(float(score_rows[i, 0]))
        if score < cfg.score_threshold:
            continue

        row = box_rows[i] / input_size
        ax, ay = float(anchors[i][0]), float(anchors[i][1])
        cx = row[0] + ax
        cy = row[1] + ay
        hw = row[2] / 2.0
        hh = row[3] / 2.0

        x1 = (cx - hw) * scale - bias_x
        y1 = (cy - hh) * scale - bias_y
        x2 = (cx + hw) * scale - bias_x
        y2 = (cy + hh) * scale - bias_y
        if x2 <= x1 or y2 <= y1:
            continue

        bbox = (
            min(max(float(x1), 0.0), max_x),
            min(max(float(y1), 0.0), max_y),
            min(max(float(x2), 0.0), max_x),
            min(max(float(y2), 0.0), max_y),
        )
        keypoints = tuple(
            (float((row[4 + 2 * k] + ax) * scale - bias_x),
             float((row[5 + 2 * k] + ay) * scale - bias_y))
            for k in range(NUM_PALM_KEYPOINTS)
        )
        candidates.append(PalmRegion(bbox=bbox, landmarks=keypoints, score=score))

    kept = nms(candidates, cfg.nms_threshold, cfg.top_k)
    logger.debug("Palm decode: %d candidates, %d kept", len(candidates), len(kept))
    return [candidates[i] for i in kept]


class PalmDetector:
    """
    Runs the palm detection network on full frames.

    Example:
        >>> detector = PalmDetector(OnnxEngine("models/palm_detection_mediapipe_2023feb.onnx"))
        >>> regions = detector.detect(frame)
        >>> best = pick_primary_region(regions)
    """

    def __init__(self, engine: InferenceEngine, config: Optional[PalmDetectorConfig] = None,
                 anchors: Optional[np.ndarray] = None):
        self.config = config or PalmDetectorConfig()
        self._engine = engine
        self._anchors = anchors if anchors is not None else generate_anchors(self.config.input_size)

    @property
    def anchors(self) -> np.ndarray:
        return self._anchors

    def detect(self, frame: Frame) -> List[PalmRegion]:
        """Detect palms in a frame.

        Raises:
            FrameSizeError: bad frame buffer
            TensorShapeError: fewer than 2 outputs or malformed outputs
            InferenceError: the detector engine failed
        """
        tensor, info = letterbox(frame, self.config.input_size)
        outputs = run_inference(self._engine, tensor, "palm detector")
        if len(outputs) < 2:
            raise TensorShapeError(
                "palm detector returned %d outputs, expected at least 2" % len(outputs)
            )
        return decode_palm_outputs(
            outputs[0], outputs[1], info,
            config=self.config,
            anchors=self._anchors,
            input_size=self.config.input_size,
        )

    def close(self) -> None:
        self._engine.close()
