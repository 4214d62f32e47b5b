"""
Overlay drawing for recognition results: palm boxes, crop outline, skeleton.

All drawing happens in place on BGR images (OpenCV convention).
"""

from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from gesture_pipeline.core.types import GestureResult, PalmRegion, Point

# Hand connection pairs for drawing skeleton
HAND_CONNECTIONS = [
    (0, 1), (1, 2), (2, 3), (3, 4),        # Thumb
    (0, 5), (5, 6), (6, 7), (7, 8),        # Index
    (0, 9), (9, 10), (10, 11), (11, 12),   # Middle
    (0, 13), (13, 14), (14, 15), (15, 16), # Ring
    (0, 17), (17, 18), (18, 19), (19, 20), # Pinky
    (5, 9), (9, 13), (13, 17),             # Palm
]

FINGERTIPS = (4, 8, 12, 16, 20)

# Colors (BGR)
LINE_COLOR = (248, 189, 56)
POINT_COLOR = (113, 113, 248)
PALM_BOX_COLOR = (0, 200, 0)
CROP_COLOR = (255, 128, 0)
TEXT_COLOR = (0, 255, 255)

# Boxes below this score are not drawn
PALM_SCORE_THRESHOLD = 0.25


def _pt(p: Point) -> Tuple[int, int]:
    return int(round(p[0])), int(round(p[1]))


def draw_skeleton(image: np.ndarray, points: Sequence[Point], thickness: int = 2) -> np.ndarray:
    """Draw landmark connections and joints."""
    if len(points) < 2:
        return image
    for a, b in HAND_CONNECTIONS:
        if a < len(points) and b < len(points):
            cv2.line(image, _pt(points[a]), _pt(points[b]), LINE_COLOR, thickness, cv2.LINE_AA)
    radius = max(thickness // 2, 2) + 2
    for i, p in enumerate(points):
        r = radius + 2 if i in FINGERTIPS else radius
        cv2.circle(image, _pt(p), r, POINT_COLOR, -1, cv2.LINE_AA)
    return image


def draw_palm_regions(image: np.ndarray, regions: Sequence[PalmRegion],
                      min_score: float = PALM_SCORE_THRESHOLD) -> np.ndarray:
    """Draw palm boxes with their score and keypoints."""
    for region in regions:
        if region.score < min_score:
            continue
        x1, y1, x2, y2 = region.bbox
        cv2.rectangle(image, _pt((x1, y1)), _pt((x2, y2)), PALM_BOX_COLOR, 2)
        cv2.putText(image, f"{region.score:.2f}", _pt((x1, max(y1 - 6, 12))),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, PALM_BOX_COLOR, 1)
        for p in region.landmarks:
            cv2.circle(image, _pt(p), 3, PALM_BOX_COLOR, -1)
    return image


def draw_polygon(image: np.ndarray, corners: List[Point], color=CROP_COLOR) -> np.ndarray:
    """Closed outline, e.g. the rotated crop from CropTransform.corners()."""
    pts = np.array([_pt(c) for c in corners], dtype=np.int32).reshape(-1, 1, 2)
    cv2.polylines(image, [pts], True, color, 2, cv2.LINE_AA)
    return image


def draw_result(image: np.ndarray, result: GestureResult,
                crop_corners: Optional[List[Point]] = None) -> np.ndarray:
    """Full overlay for one recognized frame."""
    draw_palm_regions(image, result.palm_regions)
    if crop_corners:
        draw_polygon(image, crop_corners)
    if result.landmarks:
        draw_skeleton(image, result.landmarks)

    lines = [result.display_text()]
    if result.detail is not None:
        d = result.detail
        lines.append(f"{d.handedness.value} | {d.motion.value}")
        lines.append(" ".join(s.value[0].upper() for s in d.finger_states))
    for i, text in enumerate(lines):
        cv2.putText(image, text, (20, 30 + 28 * i), cv2.FONT_HERSHEY_SIMPLEX,
                    0.7, TEXT_COLOR, 2)
    return image
