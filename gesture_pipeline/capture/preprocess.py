"""
Letterbox preprocessing for square-input networks.

Resizes a frame so its longer side fits the model input, centres it on a
black canvas and converts it to a normalized ``(1, S, S, 3)`` RGB tensor.
"""

import logging
from typing import Tuple

import cv2
import numpy as np

from gesture_pipeline.core.types import Frame, LetterboxInfo

logger = logging.getLogger(__name__)


def letterbox(frame: Frame, size: int) -> Tuple[np.ndarray, LetterboxInfo]:
    """Letterbox a frame into an S x S tensor.

    Args:
        frame: RGBA frame (validated, FrameSizeError on a bad buffer)
        size: square model input size S

    Returns:
        (tensor of shape (1, S, S, 3) float32 in [0, 1], LetterboxInfo)
    """
    rgba = frame.as_rgba()
    w, h = frame.width, frame.height

    scale = size / float(max(w, h))
    new_w = max(1, int(round(w * scale)))
    new_h = max(1, int(round(h * scale)))

    rgb = rgba[:, :, :3]
    if (new_w, new_h) != (w, h):
        rgb = cv2.resize(rgb, (new_w, new_h), interpolation=cv2.INTER_LINEAR)

    pad_x = max(0, (size - new_w) // 2)
    pad_y = max(0, (size - new_h) // 2)

    canvas = np.zeros((size, size, 3), dtype=np.uint8)
    paste_w = min(new_w, size - pad_x)
    paste_h = min(new_h, size - pad_y)
    canvas[pad_y:pad_y + paste_h, pad_x:pad_x + paste_w] = rgb[:paste_h, :paste_w]

    tensor = (canvas.astype(np.float32) / 255.0)[np.newaxis, ...]
    info = LetterboxInfo(
        scale=scale,
        pad_x=float(pad_x),
        pad_y=float(pad_y),
        orig_w=w,
        orig_h=h,
    )
    return tensor, info
