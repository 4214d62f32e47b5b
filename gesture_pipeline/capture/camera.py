"""
OpenCV camera frame source.

Opens a capture device, negotiates resolution/FPS and hands RGBA frames to
the pipeline. Pixel-format negotiation beyond what OpenCV does is out of
scope.
"""

import logging
import time
from collections import deque
from typing import Optional, Tuple

import cv2

from gesture_pipeline.core.errors import PipelineError
from gesture_pipeline.core.pipeline import FrameSource
from gesture_pipeline.core.types import Frame
from gesture_pipeline.utils.config import CameraConfig

logger = logging.getLogger(__name__)


class CameraError(PipelineError, RuntimeError):
    """Camera device could not be opened."""


class CameraSource(FrameSource):
    """
    Camera capture producing RGBA frames.

    Example:
        >>> with CameraSource(CameraConfig()) as camera:
        ...     frame = camera.read()
    """

    # Consecutive failed reads before the source reports exhaustion
    MAX_READ_FAILURES = 30

    def __init__(self, config: Optional[CameraConfig] = None):
        self.config = config or CameraConfig()
        self._cap: Optional[cv2.VideoCapture] = None
        self._frame_number = 0
        self._capture_times = deque(maxlen=30)  # type: deque

    def open(self) -> None:
        """Open the device.

        Raises:
            CameraError: no backend could deliver frames
        """
        cfg = self.config
        logger.info("Opening camera (device=%s, %dx%d@%dfps)",
                    cfg.device_id, cfg.width, cfg.height, cfg.fps)

        for backend in (cv2.CAP_V4L2, cv2.CAP_ANY):
            cap = cv2.VideoCapture(cfg.device_id, backend)
            if not cap.isOpened():
                logger.warning("Camera backend %s failed, trying next...", backend)
                continue

            cap.set(cv2.CAP_PROP_FRAME_WIDTH, cfg.width)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, cfg.height)
            cap.set(cv2.CAP_PROP_FPS, cfg.fps)
            cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

            ok, image = cap.read()
            if ok and image is not None:
                self._cap = cap
                break
            logger.warning("Can't read frames from backend %s, trying next...", backend)
            cap.release()

        if self._cap is None:
            raise CameraError("failed to open camera device %s" % cfg.device_id)

        logger.info("Camera initialized: %dx%d@%.0ffps",
                    int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
                    int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
                    self._cap.get(cv2.CAP_PROP_FPS))
        self._frame_number = 0

    def read(self) -> Optional[Frame]:
        """Next RGBA frame; None once the device is closed or keeps failing."""
        failures = 0
        while self._cap is not None:
            start = time.perf_counter()
            ok, image = self._cap.read()
            if ok and image is not None:
                self._capture_times.append(time.perf_counter() - start)
                break
            failures += 1
            if failures >= self.MAX_READ_FAILURES:
                logger.error("Camera stopped delivering frames")
                return None
        else:
            return None

        if self.config.flip_horizontal:
            image = cv2.flip(image, 1)

        self._frame_number += 1
        rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
        height, width = rgba.shape[:2]
        return Frame(pixels=rgba, width=width, height=height, timestamp=time.monotonic())

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Camera released after %d frames (avg read %.1fms)",
                        self._frame_number, self.avg_capture_time_ms)

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    @property
    def resolution(self) -> Tuple[int, int]:
        return (self.config.width, self.config.height)

    @property
    def avg_capture_time_ms(self) -> float:
        if not self._capture_times:
            return 0.0
        return (sum(self._capture_times) / len(self._capture_times)) * 1000

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
