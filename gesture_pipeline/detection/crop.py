"""
Oriented square crop around a palm for the landmark network.

The crop is centred on the palm keypoints, sized generously so extended
fingers stay inside, and rotated so the palm's principal axis points up.
``CropTransform`` carries the mapping between crop pixels and frame pixels
in both directions.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Tuple

import cv2
import numpy as np

from gesture_pipeline.core.types import Frame, PalmRegion, Point
from gesture_pipeline.utils.config import CropConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CropTransform:
    """Rotation + scale between an S x S model crop and frame pixels.

    A crop pixel (u, v) samples the frame at
    ``center + R(angle) * ((u - S/2) * side/S, (v - S/2) * side/S)``.
    """
    center: Point
    side: float
    angle: float
    output_size: int
    orig_w: int
    orig_h: int

    @property
    def pixel_scale(self) -> float:
        """Frame pixels per crop pixel."""
        return self.side / float(self.output_size)

    def matrix(self) -> np.ndarray:
        """2x3 affine matrix mapping crop pixels to frame pixels."""
        k = self.pixel_scale
        c, s = math.cos(self.angle), math.sin(self.angle)
        half = self.output_size / 2.0
        cx, cy = self.center
        return np.array([
            [k * c, -k * s, cx - k * c * half + k * s * half],
            [k * s, k * c, cy - k * s * half - k * c * half],
        ], dtype=np.float64)

    def project(self, x: float, y: float) -> Point:
        """Crop pixel → frame pixel, clamped to the frame."""
        fx, fy = self._to_frame(x, y)
        return (
            min(max(fx, 0.0), float(max(self.orig_w - 1, 0))),
            min(max(fy, 0.0), float(max(self.orig_h - 1, 0))),
        )

    def to_crop(self, x: float, y: float) -> Point:
        """Frame pixel → crop pixel (inverse of the unclamped projection)."""
        k = self.pixel_scale
        c, s = math.cos(self.angle), math.sin(self.angle)
        dx = x - self.center[0]
        dy = y - self.center[1]
        half = self.output_size / 2.0
        return (
            (c * dx + s * dy) / k + half,
            (-s * dx + c * dy) / k + half,
        )

    def project_landmarks(self, landmarks) -> List[Point]:
        """Project (N, >=2) crop-space landmarks into frame pixels."""
        pts = np.asarray(landmarks, dtype=np.float64).reshape(len(landmarks), -1)
        return [self.project(float(p[0]), float(p[1])) for p in pts]

    def corners(self) -> List[Point]:
        """Unclamped frame-space corners of the crop, clockwise from top-left."""
        s = float(self.output_size)
        return [self._to_frame(u, v) for u, v in ((0.0, 0.0), (s, 0.0), (s, s), (0.0, s))]

    def _to_frame(self, x: float, y: float) -> Point:
        k = self.pixel_scale
        c, s = math.cos(self.angle), math.sin(self.angle)
        half = self.output_size / 2.0
        ux = (x - half) * k
        uy = (y - half) * k
        return (
            self.center[0] + c * ux - s * uy,
            self.center[1] + s * ux + c * uy,
        )


def estimate_orientation(region: PalmRegion) -> float:
    """Palm angle (radians) from the principal axis of its keypoints, minus 90°."""
    if len(region.landmarks) < 2:
        return 0.0

    pts = np.asarray(region.landmarks, dtype=np.float64)
    d = pts - pts.mean(axis=0)
    n = float(len(pts))
    cov_xx = float((d[:, 0] * d[:, 0]).sum() / n)
    cov_xy = float((d[:, 0] * d[:, 1]).sum() / n)
    cov_yy = float((d[:, 1] * d[:, 1]).sum() / n)

    trace = cov_xx + cov_yy
    det = cov_xx * cov_yy - cov_xy * cov_xy
    lambda1 = max(trace * 0.5 + math.sqrt(max((trace * 0.5) ** 2 - det, 0.0)), 1e-6)

    if abs(cov_xy) > 1e-6:
        vx, vy = lambda1 - cov_yy, cov_xy
    elif cov_xx >= cov_yy:
        vx, vy = 1.0, 0.0
    else:
        vx, vy = 0.0, 1.0

    return math.atan2(vy, vx) - math.pi * 0.5


def crop_from_palm(region: PalmRegion, config: CropConfig = None) -> Tuple[Point, float, float]:
    """Crop centre, side length and angle for a palm region."""
    cfg = config or CropConfig()
    x1, y1, x2, y2 = region.bbox

    if region.landmarks:
        pts = np.asarray(region.landmarks, dtype=np.float64)
        center = (float(pts[:, 0].mean()), float(pts[:, 1].mean()))
        extent = pts.max(axis=0) - pts.min(axis=0)
        keypoint_span = float(max(extent[0], extent[1]))
    else:
        center = ((x1 + x2) * 0.5, (y1 + y2) * 0.5)
        keypoint_span = 0.0

    side = cfg.scale * max(abs(x2 - x1), abs(y2 - y1), keypoint_span, cfg.min_side)
    return center, side, estimate_orientation(region)


def prepare_rotated_crop(frame: Frame, center: Point, side: float, angle: float,
                         size: int) -> Tuple[np.ndarray, CropTransform]:
    """Rasterize the oriented crop with bilinear sampling.

    Out-of-frame samples are black.

    Returns:
        (tensor of shape (1, size, size, 3) float32 in [0, 1], CropTransform)
    """
    rgba = frame.as_rgba()
    transform = CropTransform(
        center=(float(center[0]), float(center[1])),
        side=float(side),
        angle=float(angle),
        output_size=int(size),
        orig_w=frame.width,
        orig_h=frame.height,
    )

    crop = cv2.warpAffine(
        np.ascontiguousarray(rgba[:, :, :3]),
        transform.matrix(),
        (size, size),
        flags=cv2.INTER_LINEAR | cv2.WARP_INVERSE_MAP,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0),
    )
    tensor = (crop.astype(np.float32) / 255.0)[np.newaxis, ...]
    return tensor, transform
