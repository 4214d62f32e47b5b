"""
Gesture classifier: finger states, learned gesture kind, handedness, motion.

Per frame:
    1. Gate on handpose confidence and landmark count
    2. Bounding-box-normalized finger rules (see finger_state)
    3. Learned 34-way classifier over wrist-centred, palm-width scaled x/y
    4. Handedness from the handpose score
    5. Wrist motion over the tracker window

The learned classifier is optional. Without an engine (model missing or
failed to load) every frame's primary kind is UNKNOWN.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from gesture_pipeline.core.types import (
    NUM_LANDMARKS, Frame, GestureDetail, GestureKind, GestureResult, Handedness,
    HandposeOutput, Point,
)
from gesture_pipeline.core.errors import ModelLoadError
from gesture_pipeline.models.engine import InferenceEngine, OnnxEngine
from gesture_pipeline.recognition.finger_state import (
    INDEX_MCP, MIDDLE_MCP, PINKY_MCP, WRIST, classify_fingers, projected_span,
)
from gesture_pipeline.recognition.gesture_table import DEFAULT_TABLE, GestureTable
from gesture_pipeline.recognition.motion import MotionTracker
from gesture_pipeline.utils.config import ClassifierConfig, ModelPaths

logger = logging.getLogger(__name__)

HAND_LABEL = "Hand detected"
NO_HAND_LABEL = "No hand detected"


def handedness_from_score(score: float) -> Handedness:
    """Right for score >= 0.5, Left for (0, 0.5), Unknown otherwise."""
    if score >= 0.5:
        return Handedness.RIGHT
    if score > 0.0:
        return Handedness.LEFT
    return Handedness.UNKNOWN


def normalize_for_model(raw_landmarks) -> Optional[np.ndarray]:
    """Build the 42-d classifier input from 21 raw landmarks.

    Translates to the wrist and scales by palm width (index-MCP to
    pinky-MCP), falling back to the wrist to middle-MCP distance. z is
    dropped.

    Returns:
        float32 array of shape (42,), or None if the hand is degenerate
    """
    pts = np.asarray(raw_landmarks, dtype=np.float32)
    if pts.ndim != 2 or pts.shape[0] != NUM_LANDMARKS or pts.shape[1] < 2:
        return None

    xy = pts[:, :2] - pts[WRIST, :2]
    scale = float(np.linalg.norm(xy[INDEX_MCP] - xy[PINKY_MCP]))
    if scale <= 1e-6:
        scale = float(np.linalg.norm(xy[MIDDLE_MCP]))
    if scale <= 1e-6:
        return None

    return (xy / scale).reshape(-1).astype(np.float32)


def load_gesture_engine(paths: ModelPaths) -> Optional[InferenceEngine]:
    """Load the learned classifier backend named in config, or None.

    A missing or broken classifier degrades to UNKNOWN gestures rather than
    stopping recognition.
    """
    try:
        if paths.gesture_backend == "torch":
            from gesture_pipeline.models.gesture_net import TorchEngine
            return TorchEngine(checkpoint_path=paths.gesture_classifier)
        return OnnxEngine(paths.gesture_classifier, intra_threads=paths.intra_threads)
    except ModelLoadError as e:
        logger.warning("Gesture classifier unavailable (%s), all gestures will be Unknown", e)
        return None


class GestureClassifier:
    """Per-frame gesture classification with a private motion window.

    Example:
        >>> classifier = GestureClassifier(engine=OnnxEngine("models/gesture_classifier.onnx"))
        >>> detail = classifier.classify(raw, projected, 0.9, 0.8, time.monotonic())
    """

    def __init__(self, engine: Optional[InferenceEngine] = None,
                 config: Optional[ClassifierConfig] = None,
                 table: Optional[GestureTable] = None):
        self.config = config or ClassifierConfig()
        self._engine = engine
        self._table = table or DEFAULT_TABLE
        self._motion = MotionTracker(self.config.motion)

        # Stats
        self._model_calls = 0
        self._model_failures = 0

        if engine is None:
            logger.warning("No gesture model, primary gesture will be Unknown")

    @property
    def table(self) -> GestureTable:
        return self._table

    @property
    def motion_tracker(self) -> MotionTracker:
        return self._motion

    def classify(self, raw_landmarks, projected_landmarks: Sequence[Point],
                 confidence: float, handedness_score: float,
                 timestamp: float) -> Optional[GestureDetail]:
        """Classify one hand.

        Args:
            raw_landmarks: (21, 3) landmarks in model crop space
            projected_landmarks: 21 (x, y) points in frame pixels
            confidence: combined handpose confidence
            handedness_score: raw handedness output
            timestamp: frame timestamp (monotonic seconds)

        Returns:
            GestureDetail, or None when gated out
        """
        if confidence < self.config.min_confidence:
            return None
        raw = np.asarray(raw_landmarks, dtype=np.float32).reshape(-1, 3)
        if raw.shape[0] < NUM_LANDMARKS or len(projected_landmarks) < NUM_LANDMARKS:
            return None

        finger_states = classify_fingers(raw, self.config.fingers)
        handedness = handedness_from_score(handedness_score)
        primary = self.detect_gesture(raw[:NUM_LANDMARKS])

        wrist = projected_landmarks[WRIST]
        span = projected_span(projected_landmarks)
        motion = self._motion.update(wrist, span, timestamp, primary)

        return GestureDetail(
            primary=primary,
            handedness=handedness,
            finger_states=finger_states,
            motion=motion,
            secondary=None,
        )

    def detect_gesture(self, raw_landmarks) -> GestureKind:
        """Run the learned classifier; UNKNOWN on any failure."""
        if self._engine is None:
            return GestureKind.UNKNOWN

        features = normalize_for_model(raw_landmarks)
        if features is None:
            return GestureKind.UNKNOWN

        self._model_calls += 1
        try:
            outputs = self._engine.infer(features.reshape(1, -1))
        except Exception as e:
            self._model_failures += 1
            logger.warning("Gesture model inference failed: %s", e)
            return GestureKind.UNKNOWN

        if not outputs or np.asarray(outputs[0]).size == 0:
            self._model_failures += 1
            logger.warning("Gesture model returned no logits")
            return GestureKind.UNKNOWN

        predicted = int(np.argmax(np.asarray(outputs[0]).reshape(-1)))
        kind = self._table.lookup(predicted)
        if kind is GestureKind.UNKNOWN:
            logger.debug("Class index %d not in %r", predicted, self._table)
        return kind

    def reset(self) -> None:
        """Drop motion history (e.g. after the hand leaves the frame)."""
        self._motion.reset()

    def get_stats(self) -> dict:
        return {
            "model_calls": self._model_calls,
            "model_failures": self._model_failures,
            "table": self._table.version,
        }


def build_gesture_result(output: HandposeOutput, frame: Frame,
                         classifier: GestureClassifier) -> GestureResult:
    """Turn a handpose output into the result delivered to presentation.

    Landmarks and detail are only attached when the confidence clears the
    classifier gate.
    """
    confidence = float(output.confidence)
    has_detection = (confidence >= classifier.config.min_confidence
                     and len(output.projected_landmarks) >= NUM_LANDMARKS)

    detail = None
    if has_detection:
        detail = classifier.classify(
            output.raw_landmarks,
            output.projected_landmarks,
            confidence,
            output.handedness,
            frame.timestamp,
        )

    if detail is not None:
        label = detail.primary.display_name
    elif has_detection:
        label = HAND_LABEL
    else:
        label = NO_HAND_LABEL

    return GestureResult(
        label=label,
        confidence=confidence,
        timestamp=frame.timestamp,
        landmarks=output.projected_landmarks if has_detection else None,
        detail=detail,
        palm_regions=output.palm_regions,
    )
