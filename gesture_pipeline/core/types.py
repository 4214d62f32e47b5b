"""
Shared domain types for the gesture recognition pipeline.

Centralizes enums, value objects and result containers used across the
capture, detection and recognition packages to avoid circular imports.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from gesture_pipeline.core.errors import FrameSizeError

NUM_LANDMARKS = 21
NUM_PALM_KEYPOINTS = 7

Point = Tuple[float, float]


# =============================================================================
# Frames
# =============================================================================

@dataclass(frozen=True, eq=False)
class Frame:
    """Immutable RGBA frame produced by the capture collaborator.

    ``pixels`` is a row-major RGBA8 buffer without stride padding, either a
    ``bytes``-like object or a uint8 numpy array.
    """
    pixels: object
    width: int
    height: int
    timestamp: float = field(default_factory=time.monotonic)

    @property
    def expected_size(self) -> int:
        return int(self.width) * int(self.height) * 4

    def _flat(self) -> np.ndarray:
        if isinstance(self.pixels, np.ndarray):
            return self.pixels.reshape(-1)
        return np.frombuffer(self.pixels, dtype=np.uint8)

    def validate(self) -> None:
        """Raise FrameSizeError unless the buffer holds exactly w*h*4 bytes."""
        actual = int(self._flat().size)
        if self.width <= 0 or self.height <= 0 or actual != self.expected_size:
            raise FrameSizeError(actual, self.expected_size)

    def as_rgba(self) -> np.ndarray:
        """Validated ``(H, W, 4)`` uint8 view of the pixel buffer."""
        self.validate()
        flat = self._flat()
        if flat.dtype != np.uint8:
            flat = flat.astype(np.uint8)
        return flat.reshape(self.height, self.width, 4)

    @classmethod
    def from_rgb(cls, image: np.ndarray, timestamp: Optional[float] = None) -> "Frame":
        """Build a frame from an ``(H, W, 3)`` RGB image."""
        height, width = image.shape[:2]
        rgba = np.empty((height, width, 4), dtype=np.uint8)
        rgba[:, :, :3] = image[:, :, :3]
        rgba[:, :, 3] = 255
        return cls(
            pixels=rgba,
            width=width,
            height=height,
            timestamp=time.monotonic() if timestamp is None else timestamp,
        )

    @classmethod
    def from_bgr(cls, image: np.ndarray, timestamp: Optional[float] = None) -> "Frame":
        """Build a frame from an OpenCV ``(H, W, 3)`` BGR image."""
        return cls.from_rgb(image[:, :, ::-1], timestamp=timestamp)


@dataclass(frozen=True)
class LetterboxInfo:
    """Scale and padding used to letterbox a frame into a square tensor."""
    scale: float
    pad_x: float
    pad_y: float
    orig_w: int
    orig_h: int

    def unletterbox(self, x: float, y: float) -> Point:
        """Map model-input pixel coordinates back to clamped frame pixels."""
        px = (x - self.pad_x) / self.scale
        py = (y - self.pad_y) / self.scale
        return (
            min(max(px, 0.0), float(max(self.orig_w - 1, 0))),
            min(max(py, 0.0), float(max(self.orig_h - 1, 0))),
        )


# =============================================================================
# Detection results
# =============================================================================

@dataclass(frozen=True)
class PalmRegion:
    """A palm candidate that survived NMS, in original-frame pixels."""
    bbox: Tuple[float, float, float, float]
    landmarks: Tuple[Point, ...]
    score: float

    @property
    def width(self) -> float:
        return abs(self.bbox[2] - self.bbox[0])

    @property
    def height(self) -> float:
        return abs(self.bbox[3] - self.bbox[1])


@dataclass
class HandposeOutput:
    """Decoded landmark network output for the primary palm of one frame."""
    raw_landmarks: np.ndarray          # (21, 3) model space, or (0, 3)
    projected_landmarks: List[Point]   # 21 points in frame pixels, or empty
    confidence: float
    handedness: float
    palm_regions: List[PalmRegion] = field(default_factory=list)

    @classmethod
    def empty(cls, palm_regions: Optional[List[PalmRegion]] = None) -> "HandposeOutput":
        return cls(
            raw_landmarks=np.zeros((0, 3), dtype=np.float32),
            projected_landmarks=[],
            confidence=0.0,
            handedness=0.0,
            palm_regions=list(palm_regions or []),
        )


# =============================================================================
# Gesture types
# =============================================================================

class FingerState(Enum):
    """Flexion state of a single finger."""
    EXTENDED = "extended"
    HALF_BENT = "half_bent"
    FOLDED = "folded"


class Handedness(Enum):
    LEFT = "left"
    RIGHT = "right"
    UNKNOWN = "unknown"


class GestureMotion(Enum):
    """Motion pattern of the wrist over the recent window."""
    STEADY = "steady"
    MOVING = "moving"
    FANNING = "fanning"
    VERTICAL_WAVE = "vertical_wave"


class GestureKind(Enum):
    """Gesture categories of the learned classifier (HaGRID vocabulary)."""
    CALL = "call"
    DISLIKE = "dislike"
    FIST = "fist"
    FOUR = "four"
    GRABBING = "grabbing"
    GRIP = "grip"
    HAND_HEART = "hand_heart"
    HAND_HEART2 = "hand_heart2"
    HOLY = "holy"
    LIKE = "like"
    LITTLE_FINGER = "little_finger"
    MIDDLE_FINGER = "middle_finger"
    MUTE = "mute"
    NO_GESTURE = "no_gesture"
    OK = "ok"
    ONE = "one"
    PALM = "palm"
    PEACE = "peace"
    PEACE_INVERTED = "peace_inverted"
    POINT = "point"
    ROCK = "rock"
    STOP = "stop"
    STOP_INVERTED = "stop_inverted"
    TAKE_PICTURE = "take_picture"
    THREE = "three"
    THREE2 = "three2"
    THREE3 = "three3"
    THREE_GUN = "three_gun"
    THUMB_INDEX = "thumb_index"
    THUMB_INDEX2 = "thumb_index2"
    TIMEOUT = "timeout"
    TWO_UP = "two_up"
    TWO_UP_INVERTED = "two_up_inverted"
    XSIGN = "xsign"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, name: str) -> "GestureKind":
        """Convert a string gesture name to GestureKind, safely."""
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def is_open_hand(self) -> bool:
        return self in (GestureKind.PALM, GestureKind.FOUR, GestureKind.UNKNOWN)


@dataclass(frozen=True)
class GestureDetail:
    """Per-frame gesture classification, rebuilt on every call."""
    primary: GestureKind
    handedness: Handedness
    finger_states: Tuple[FingerState, ...]
    motion: GestureMotion
    secondary: Optional[GestureKind] = None


class GestureResult:
    """Container for one recognized frame, delivered to the presentation side.

    Uses __slots__ since one is allocated per processed frame.
    """

    __slots__ = ("label", "confidence", "timestamp", "landmarks", "detail", "palm_regions")

    def __init__(self, label: str, confidence: float, timestamp: float,
                 landmarks: Optional[Sequence[Point]] = None,
                 detail: Optional[GestureDetail] = None,
                 palm_regions: Optional[List[PalmRegion]] = None):
        self.label = label
        self.confidence = confidence
        self.timestamp = timestamp
        self.landmarks = list(landmarks) if landmarks is not None else None
        self.detail = detail
        self.palm_regions = palm_regions or []

    def __repr__(self):
        return f"GestureResult({self.label!r}, conf={self.confidence:.2f})"

    @property
    def hand_detected(self) -> bool:
        return self.landmarks is not None

    def display_text(self) -> str:
        return f"{self.label} ({self.confidence * 100:.0f}%)"
