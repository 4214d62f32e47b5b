"""
Still-image frame sources for offline recognition and benchmarks.
"""

import logging
import time
from typing import Iterable, List, Optional

import cv2

from gesture_pipeline.core.pipeline import FrameSource
from gesture_pipeline.core.types import Frame

logger = logging.getLogger(__name__)


def load_frame(path: str) -> Frame:
    """Read an image file into an RGBA frame.

    Raises:
        FileNotFoundError: the file is missing or not a decodable image
    """
    image = cv2.imread(path, cv2.IMREAD_COLOR)
    if image is None:
        raise FileNotFoundError("cannot read image: %s" % path)
    logger.debug("Loaded %s (%dx%d)", path, image.shape[1], image.shape[0])
    return Frame.from_bgr(image)


class ImageSource(FrameSource):
    """Replays a fixed list of frames, optionally looping."""

    def __init__(self, frames: Iterable[Frame], loop: bool = False):
        self._frames: List[Frame] = list(frames)
        self._loop = loop
        self._index = 0
        self._closed = False

    @classmethod
    def from_paths(cls, paths: Iterable[str], loop: bool = False) -> "ImageSource":
        return cls([load_frame(p) for p in paths], loop=loop)

    def read(self) -> Optional[Frame]:
        if self._closed or not self._frames:
            return None
        if self._index >= len(self._frames):
            if not self._loop:
                return None
            self._index = 0
        frame = self._frames[self._index]
        self._index += 1
        # Fresh timestamp so motion tracking sees real time passing
        return Frame(pixels=frame.pixels, width=frame.width, height=frame.height,
                     timestamp=time.monotonic())

    def close(self) -> None:
        self._closed = True
