"""
SSD anchor layout of the MediaPipe palm detector.

Four feature layers with strides 8, 16, 16, 16; layers sharing a stride are
merged into one grid with their anchors stacked per cell. Every anchor is
unit-sized, so only the normalized centres are kept.
"""

from typing import Sequence

import numpy as np

PALM_STRIDES = (8, 16, 16, 16)
ANCHORS_PER_LAYER = 2
ANCHOR_OFFSET = 0.5


def generate_anchors(input_size: int = 192, strides: Sequence[int] = PALM_STRIDES,
                     anchors_per_layer: int = ANCHORS_PER_LAYER,
                     offset: float = ANCHOR_OFFSET) -> np.ndarray:
    """Normalized anchor centres in model output order.

    Returns:
        float32 array of shape (N, 2); N == 2016 for the 192 palm model
    """
    centers = []
    layer = 0
    while layer < len(strides):
        stride = strides[layer]
        repeats = 0
        while layer < len(strides) and strides[layer] == stride:
            repeats += anchors_per_layer
            layer += 1

        grid = int(np.ceil(input_size / float(stride)))
        for y in range(grid):
            cy = (y + offset) / grid
            for x in range(grid):
                cx = (x + offset) / grid
                centers.extend([(cx, cy)] * repeats)

    return np.asarray(centers, dtype=np.float32)


PALM_ANCHORS = generate_anchors()
