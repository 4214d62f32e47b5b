"""
Closed-form finger flexion rules over 21 hand landmarks.

Landmarks are first normalized to their bounding box (translate by the
bounding min, divide by the larger side) so every threshold below is a
fraction of the hand's extent and the result does not depend on where the
hand sits in the image.
"""

import logging
from typing import Sequence, Tuple

import numpy as np

from gesture_pipeline.core.types import FingerState, Point
from gesture_pipeline.utils.config import FingerThresholds

logger = logging.getLogger(__name__)

# MediaPipe hand landmark indices
WRIST = 0
THUMB_CMC = 1
THUMB_MCP = 2
THUMB_IP = 3
THUMB_TIP = 4
INDEX_MCP = 5
INDEX_PIP = 6
INDEX_DIP = 7
INDEX_TIP = 8
MIDDLE_MCP = 9
MIDDLE_PIP = 10
MIDDLE_DIP = 11
MIDDLE_TIP = 12
RING_MCP = 13
RING_PIP = 14
RING_DIP = 15
RING_TIP = 16
PINKY_MCP = 17
PINKY_PIP = 18
PINKY_DIP = 19
PINKY_TIP = 20

# Joint chains (MCP, PIP, DIP, TIP) for the four non-thumb fingers
FINGER_JOINTS = {
    "index":  (INDEX_MCP, INDEX_PIP, INDEX_DIP, INDEX_TIP),
    "middle": (MIDDLE_MCP, MIDDLE_PIP, MIDDLE_DIP, MIDDLE_TIP),
    "ring":   (RING_MCP, RING_PIP, RING_DIP, RING_TIP),
    "pinky":  (PINKY_MCP, PINKY_PIP, PINKY_DIP, PINKY_TIP),
}

FINGER_NAMES = ("thumb", "index", "middle", "ring", "pinky")


def normalize_landmarks(points) -> Tuple[np.ndarray, float]:
    """Bounding-box normalization of ``(N, 3)`` landmarks.

    Returns:
        (normalized points, span) where span = max(span_x, span_y, 1e-3).
        z is divided by the same span.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    mins = pts[:, :2].min(axis=0)
    maxs = pts[:, :2].max(axis=0)
    span = float(max(maxs[0] - mins[0], maxs[1] - mins[1], 1e-3))

    normalized = pts.copy()
    normalized[:, 0] = (pts[:, 0] - mins[0]) / span
    normalized[:, 1] = (pts[:, 1] - mins[1]) / span
    normalized[:, 2] = pts[:, 2] / span
    return normalized, span


def projected_span(points: Sequence[Point]) -> float:
    """Larger side of the bounding box of frame-space points, floored at 1px."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if pts.size == 0:
        return 1.0
    extent = pts.max(axis=0) - pts.min(axis=0)
    return float(max(extent[0], extent[1], 1.0))


def classify_finger(points: np.ndarray, joints: Tuple[int, int, int, int],
                    thresholds: FingerThresholds = None) -> FingerState:
    """Classify one non-thumb finger from normalized landmarks."""
    t = thresholds or FingerThresholds()
    mcp, pip, dip, tip = (points[i] for i in joints)
    wrist = points[WRIST]

    dist_tip = _distance(tip, wrist)
    dist_pip = _distance(pip, wrist)
    dist_mcp = _distance(mcp, wrist)

    straightness = average_straightness(pip - mcp, dip - pip, tip - dip)
    extension = dist_tip - dist_pip
    reach = dist_tip - dist_mcp

    if (extension > t.extended_extension and straightness > t.extended_straightness
            and reach > t.extended_reach):
        return FingerState.EXTENDED
    if (extension < t.folded_extension or straightness < t.folded_straightness
            or reach < t.folded_reach):
        return FingerState.FOLDED
    return FingerState.HALF_BENT


def classify_thumb(points: np.ndarray, thresholds: FingerThresholds = None) -> FingerState:
    """Classify the thumb; folding is also judged by proximity to the palm.

    ``spread`` is the tip's distance to the nearer of index-MCP and pinky-MCP.
    """
    t = thresholds or FingerThresholds()
    wrist = points[WRIST]
    cmc, mcp, ip, tip = (points[i] for i in (THUMB_CMC, THUMB_MCP, THUMB_IP, THUMB_TIP))

    dist_tip_wrist = _distance(tip, wrist)
    dist_ip_wrist = _distance(ip, wrist)
    dist_mcp_wrist = _distance(mcp, wrist)

    spread = min(_distance(tip, points[INDEX_MCP]), _distance(tip, points[PINKY_MCP]))
    straightness = average_straightness(mcp - cmc, ip - mcp, tip - ip)
    extension = dist_tip_wrist - dist_ip_wrist
    reach = dist_tip_wrist - dist_mcp_wrist

    if spread < t.thumb_folded_spread and (
            straightness < t.thumb_folded_straightness or reach < t.thumb_folded_reach):
        return FingerState.FOLDED
    if (dist_tip_wrist > t.thumb_extended_distance
            and straightness > t.thumb_extended_straightness
            and extension > t.thumb_extended_extension):
        return FingerState.EXTENDED
    return FingerState.HALF_BENT


def classify_fingers(raw_landmarks, thresholds: FingerThresholds = None) -> Tuple[FingerState, ...]:
    """Finger states in thumb, index, middle, ring, pinky order."""
    normalized, _ = normalize_landmarks(raw_landmarks)
    states = [classify_thumb(normalized, thresholds)]
    for name in FINGER_NAMES[1:]:
        states.append(classify_finger(normalized, FINGER_JOINTS[name], thresholds))
    return tuple(states)


# =============================================================================
# Math Helpers
# =============================================================================

def average_straightness(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> float:
    """Mean cosine of consecutive segment directions, in [-1, 1]."""
    ab = float(np.dot(_unit(a), _unit(b)))
    bc = float(np.dot(_unit(b), _unit(c)))
    return max(-1.0, min(1.0, (ab + bc) / 2.0))


def _unit(v: np.ndarray) -> np.ndarray:
    length = float(np.linalg.norm(v))
    if length < 1e-5:
        return np.zeros(3)
    return v / length


def _distance(p1: np.ndarray, p2: np.ndarray) -> float:
    """Euclidean distance between two 3D points."""
    return float(np.linalg.norm(p1 - p2))
