"""
Handpose estimation: palm detection → oriented crop → 21 landmarks.

The landmark network takes a 224 x 224 crop and returns:
    output[0]: 63 values, 21 x (x, y, z) in crop pixels
    output[1]: hand presence confidence (scalar, optional)
    output[2]: handedness score (scalar, optional)
"""

import logging
from contextlib import nullcontext
from typing import List, Optional, Sequence

import numpy as np

from gesture_pipeline.core.errors import PipelineError, TensorShapeError
from gesture_pipeline.core.types import NUM_LANDMARKS, Frame, HandposeOutput
from gesture_pipeline.detection.crop import crop_from_palm, prepare_rotated_crop
from gesture_pipeline.detection.palm_detector import PalmDetector, pick_primary_region
from gesture_pipeline.models.engine import InferenceEngine, run_inference
from gesture_pipeline.utils.config import CropConfig
from gesture_pipeline.utils.performance import PerformanceMonitor

logger = logging.getLogger(__name__)


def decode_landmarks(flat) -> np.ndarray:
    """First 21 (x, y, z) triples of a flat landmark vector.

    Raises:
        TensorShapeError: fewer than 63 values
    """
    values = np.asarray(flat, dtype=np.float32).reshape(-1)
    needed = NUM_LANDMARKS * 3
    if values.size < needed:
        raise TensorShapeError(
            "unexpected landmarks length: got %d, need %d" % (values.size, needed)
        )
    return values[:needed].reshape(NUM_LANDMARKS, 3).copy()


def first_scalar(outputs: Sequence[np.ndarray], index: int) -> float:
    """First element of ``outputs[index]``; 0.0 when absent or empty."""
    if len(outputs) <= index:
        return 0.0
    values = np.asarray(outputs[index]).reshape(-1)
    if values.size == 0:
        return 0.0
    return float(values[0])


def combine_confidence(confidence: float, region_score: Optional[float] = None) -> float:
    """Landmark confidence, scaled by the palm score when known, in [0, 1]."""
    if region_score is not None:
        confidence = confidence * region_score
    return min(max(float(confidence), 0.0), 1.0)


class HandposeEstimator:
    """
    Full per-frame hand landmark estimation for the best palm.

    Example:
        >>> estimator = HandposeEstimator(palm_detector, OnnxEngine(handpose_path))
        >>> output = estimator.infer(frame)
        >>> output.confidence, len(output.projected_landmarks)
    """

    def __init__(self, palm_detector: PalmDetector, landmark_engine: InferenceEngine,
                 config: Optional[CropConfig] = None,
                 monitor: Optional[PerformanceMonitor] = None):
        self.config = config or CropConfig()
        self._palm_detector = palm_detector
        self._engine = landmark_engine
        self.monitor = monitor

    def _measure(self, stage: str):
        if self.monitor is None:
            return nullcontext()
        return self.monitor.measure(stage)

    def detect_palms(self, frame: Frame) -> List:
        # A failing detector means "no palm" for this frame
        try:
            return self._palm_detector.detect(frame)
        except PipelineError as e:
            logger.warning("Palm detection failed: %s", e)
            return []

    def infer(self, frame: Frame) -> HandposeOutput:
        """Estimate landmarks for the highest-scoring palm.

        Raises:
            FrameSizeError: bad frame buffer
            TensorShapeError: landmark network output malformed
            InferenceError: landmark network failed on this crop
        """
        frame.validate()
        with self._measure("detect"):
            regions = self.detect_palms(frame)
        selected = pick_primary_region(regions)
        if selected is None:
            return HandposeOutput.empty(regions)

        with self._measure("handpose"):
            center, side, angle = crop_from_palm(selected, self.config)
            tensor, transform = prepare_rotated_crop(
                frame, center, side, angle, self.config.input_size
            )
            outputs = run_inference(self._engine, tensor, "handpose")

        if len(outputs) < 1:
            raise TensorShapeError("handpose model returned no outputs")

        landmarks = decode_landmarks(outputs[0])
        confidence = first_scalar(outputs, 1)
        handedness = first_scalar(outputs, 2)

        return HandposeOutput(
            raw_landmarks=landmarks,
            projected_landmarks=transform.project_landmarks(landmarks),
            confidence=combine_confidence(confidence, selected.score),
            handedness=handedness,
            palm_regions=regions,
        )

    def close(self) -> None:
        self._palm_detector.close()
        self._engine.close()
