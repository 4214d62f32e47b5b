"""
Pipeline orchestrator: capture → recognizer → presentation.

Architecture:
    FrameSource --(frames, cap 1, drop new)--> RecognizerStage
    RecognizerStage --(results, cap 1, overwrite oldest)--> UI

Each stage runs in its own thread with its own stop flag. The recognizer
always processes the newest queued frame and discards the rest, so it never
falls behind the camera. Models are loaded inside the recognizer thread and
are never touched by any other thread.
"""

import logging
import threading
from typing import Callable, Optional

from gesture_pipeline.core.channel import Channel
from gesture_pipeline.core.errors import ModelLoadError, PipelineError
from gesture_pipeline.core.types import Frame, GestureResult
from gesture_pipeline.detection.handpose import HandposeEstimator
from gesture_pipeline.detection.palm_detector import PalmDetector
from gesture_pipeline.models.engine import OnnxEngine
from gesture_pipeline.recognition.gesture_classifier import (
    GestureClassifier, build_gesture_result, load_gesture_engine,
)
from gesture_pipeline.utils.config import AppConfig
from gesture_pipeline.utils.logger import log_timing
from gesture_pipeline.utils.performance import PerformanceMonitor

logger = logging.getLogger(__name__)


class FrameSource:
    """Capture collaborator: yields frames until exhausted."""

    def read(self) -> Optional[Frame]:
        """Next frame, or None when the source is exhausted."""
        raise NotImplementedError

    def close(self) -> None:
        """Release the device."""


class Recognizer:
    """Single-threaded frame → GestureResult chain.

    Owned by exactly one thread; the classifier's motion window is private
    to it.
    """

    def __init__(self, estimator: HandposeEstimator, classifier: GestureClassifier,
                 monitor: Optional[PerformanceMonitor] = None):
        self.estimator = estimator
        self.classifier = classifier
        self.monitor = monitor
        if monitor is not None and estimator.monitor is None:
            estimator.monitor = monitor

    def process(self, frame: Frame) -> GestureResult:
        """Recognize one frame.

        Raises:
            FrameSizeError, TensorShapeError: per-frame contract violations
            InferenceError: the landmark engine failed on this frame
        """
        if self.monitor is None:
            output = self.estimator.infer(frame)
            return build_gesture_result(output, frame, self.classifier)

        self.monitor.frame_start()
        try:
            output = self.estimator.infer(frame)
            with self.monitor.measure("classify"):
                result = build_gesture_result(output, frame, self.classifier)
        except PipelineError:
            self.monitor.frame_failed()
            raise
        self.monitor.frame_complete()
        return result

    def close(self) -> None:
        self.estimator.close()


@log_timing
def build_estimator(config: AppConfig) -> HandposeEstimator:
    """Load the palm detector and landmark models named in config.

    Raises:
        ModelLoadError: either model missing or unloadable
    """
    paths = config.models
    palm_engine = OnnxEngine(paths.palm_detector, intra_threads=paths.intra_threads)
    try:
        landmark_engine = OnnxEngine(paths.handpose, intra_threads=paths.intra_threads)
    except ModelLoadError:
        palm_engine.close()
        raise
    detector = PalmDetector(palm_engine, config.palm_detector)
    return HandposeEstimator(detector, landmark_engine, config.crop)


@log_timing
def build_classifier(config: AppConfig) -> GestureClassifier:
    """Gesture classifier with the configured backend (Unknown-only if absent)."""
    return GestureClassifier(
        engine=load_gesture_engine(config.models),
        config=config.classifier,
    )


class CaptureStage:
    """Pulls frames from a source and offers them to the recognizer.

    A full channel drops the new frame; the capture thread never blocks on
    the recognizer.
    """

    def __init__(self, source: FrameSource, frames: Channel, name: str = "capture"):
        self._source = source
        self._frames = frames
        self._name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.frames_read = 0
        self.frames_dropped = 0

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        logger.info("Capture stage started")

    def _run(self) -> None:
        try:
            while not self._stop.is_set():
                frame = self._source.read()
                if frame is None:
                    logger.info("Frame source exhausted after %d frames", self.frames_read)
                    break
                self.frames_read += 1
                if not self._frames.try_send(frame):
                    self.frames_dropped += 1
        finally:
            self._frames.close()

    def stop(self) -> None:
        """Signal the thread, close its channel and wait for it to exit."""
        self._stop.set()
        self._frames.close()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._source.close()
        logger.info("Capture stage stopped (read=%d, dropped=%d)",
                    self.frames_read, self.frames_dropped)

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


class RecognizerStage:
    """Runs recognition on the latest frame and publishes results.

    ``estimator_factory`` and ``classifier_factory`` are called inside the
    worker thread. A ModelLoadError there is logged and ends the stage;
    per-frame errors are logged and the frame is skipped.
    """

    def __init__(self, estimator_factory: Callable[[], HandposeEstimator],
                 classifier_factory: Callable[[], GestureClassifier],
                 frames: Channel, results: Channel,
                 monitor: Optional[PerformanceMonitor] = None,
                 name: str = "recognizer"):
        self._estimator_factory = estimator_factory
        self._classifier_factory = classifier_factory
        self._frames = frames
        self._results = results
        self._monitor = monitor
        self._name = name
        self._stop = threading.Event()
        self._ready = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.frames_processed = 0
        self.frames_failed = 0
        self.load_error: Optional[Exception] = None

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        recognizer = None
        try:
            try:
                recognizer = Recognizer(
                    self._estimator_factory(), self._classifier_factory(), self._monitor
                )
            except ModelLoadError as e:
                self.load_error = e
                logger.error("Failed to load recognition models: %s", e)
                return
            finally:
                self._ready.set()
            logger.info("Recognizer stage ready")
            self._loop(recognizer)
        finally:
            if recognizer is not None:
                recognizer.close()
            self._results.close()

    def _loop(self, recognizer: Recognizer) -> None:
        stale_seen = self._frames.stale
        while not self._stop.is_set():
            frame = self._frames.recv_latest()
            if frame is None or self._stop.is_set():
                break

            if self._monitor is not None:
                stale = self._frames.stale
                self._monitor.record_stale(stale - stale_seen)
                stale_seen = stale

            try:
                result = recognizer.process(frame)
            except PipelineError as e:
                self.frames_failed += 1
                logger.warning("Skipping frame: %s", e)
                continue

            self.frames_processed += 1
            self._results.send_overwrite(result)

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until model loading finished (successfully or not)."""
        return self._ready.wait(timeout)

    def stop(self) -> None:
        """Signal the thread, close its inbound channel and wait for it to exit."""
        self._stop.set()
        self._frames.close()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        logger.info("Recognizer stage stopped (processed=%d, failed=%d)",
                    self.frames_processed, self.frames_failed)

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


class GesturePipeline:
    """
    Wires a frame source, the recognizer and the results channel.

    Example:
        >>> pipeline = GesturePipeline.from_config(CameraSource(cfg.camera), cfg)
        >>> with pipeline:
        ...     while running:
        ...         result = pipeline.latest_result()
        ...         if result:
        ...             show(result)
    """

    def __init__(self, source: FrameSource,
                 estimator_factory: Callable[[], HandposeEstimator],
                 classifier_factory: Callable[[], GestureClassifier],
                 monitor: Optional[PerformanceMonitor] = None,
                 frame_capacity: int = 1, result_capacity: int = 1):
        self.monitor = monitor or PerformanceMonitor()
        self.frames = Channel(frame_capacity, name="frames")
        self.results = Channel(result_capacity, name="results")
        self._capture = CaptureStage(source, self.frames)
        self._recognizer = RecognizerStage(
            estimator_factory, classifier_factory, self.frames, self.results, self.monitor
        )
        self._running = False

    @classmethod
    def from_config(cls, source: FrameSource, config: AppConfig,
                    monitor: Optional[PerformanceMonitor] = None) -> "GesturePipeline":
        return cls(
            source,
            estimator_factory=lambda: build_estimator(config),
            classifier_factory=lambda: build_classifier(config),
            monitor=monitor,
        )

    def start(self) -> None:
        if self._running:
            return
        self._recognizer.start()
        self._capture.start()
        self._running = True
        logger.info("Gesture pipeline started")

    def stop(self) -> None:
        """Stop capture first, then recognition; no stage writes after return."""
        if not self._running:
            return
        self._capture.stop()
        self._recognizer.stop()
        self.results.close()
        self._running = False
        logger.info("Gesture pipeline stopped")

    def latest_result(self) -> Optional[GestureResult]:
        """Newest undelivered result without blocking, or None."""
        latest = None
        while True:
            item = self.results.try_recv()
            if item is None:
                return latest
            latest = item

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        return self._recognizer.wait_ready(timeout)

    @property
    def load_error(self) -> Optional[Exception]:
        return self._recognizer.load_error

    @property
    def is_running(self) -> bool:
        return self._running and self._recognizer.is_alive

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
