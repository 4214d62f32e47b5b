#!/usr/bin/env python3
"""
Hand gesture recognition pipeline - command line entry point.

Usage:
    gesture-pipeline image hand.jpg --output overlay.jpg   # Single image
    gesture-pipeline camera                                 # Live camera window
    gesture-pipeline info models/palm_detection_mediapipe_2023feb.onnx
    gesture-pipeline bench hand.jpg --iterations 100        # Latency report
"""

import argparse
import logging
import signal
import sys
import threading
from typing import Optional

import cv2

from gesture_pipeline.capture.image_source import load_frame
from gesture_pipeline.core.errors import ModelLoadError, PipelineError
from gesture_pipeline.core.pipeline import (
    FrameSource, GesturePipeline, Recognizer, build_classifier, build_estimator,
)
from gesture_pipeline.core.types import Frame, GestureResult
from gesture_pipeline.detection.crop import CropTransform, crop_from_palm
from gesture_pipeline.detection.palm_detector import pick_primary_region
from gesture_pipeline.models.engine import OnnxEngine
from gesture_pipeline.utils.config import AppConfig, load_config
from gesture_pipeline.utils.logger import setup_logging
from gesture_pipeline.utils.performance import PerformanceMonitor
from gesture_pipeline.utils.skeleton import draw_result

logger = logging.getLogger(__name__)

WINDOW_NAME = "Gesture Pipeline"


def _crop_corners(result: GestureResult, config: AppConfig, frame: Frame):
    region = pick_primary_region(result.palm_regions)
    if region is None:
        return None
    center, side, angle = crop_from_palm(region, config.crop)
    transform = CropTransform(center, side, angle, config.crop.input_size,
                              frame.width, frame.height)
    return transform.corners()


def describe_result(result: GestureResult) -> str:
    lines = [f"Result: {result.display_text()}"]
    lines.append(f"  palm regions: {len(result.palm_regions)}")
    for i, region in enumerate(result.palm_regions):
        lines.append("    [%d] score=%.3f bbox=(%.1f, %.1f, %.1f, %.1f)"
                     % ((i, region.score) + tuple(region.bbox)))
    if result.detail is not None:
        d = result.detail
        lines.append(f"  gesture: {d.primary.display_name}")
        lines.append(f"  handedness: {d.handedness.value}")
        lines.append(f"  motion: {d.motion.value}")
        lines.append("  fingers: " + ", ".join(s.value for s in d.finger_states))
    return "\n".join(lines)


def _build_recognizer(config: AppConfig, monitor: Optional[PerformanceMonitor] = None) -> Recognizer:
    return Recognizer(build_estimator(config), build_classifier(config), monitor)


def run_image(args, config: AppConfig) -> int:
    frame = load_frame(args.path)
    recognizer = _build_recognizer(config)
    try:
        result = recognizer.process(frame)
    finally:
        recognizer.close()

    print(describe_result(result))

    if args.output:
        image = cv2.cvtColor(frame.as_rgba(), cv2.COLOR_RGBA2BGR)
        draw_result(image, result, _crop_corners(result, config, frame))
        cv2.imwrite(args.output, image)
        logger.info("Overlay written to %s", args.output)
    return 0


def run_bench(args, config: AppConfig) -> int:
    frame = load_frame(args.path)
    monitor = PerformanceMonitor(window_size=max(args.iterations, 1))
    recognizer = _build_recognizer(config, monitor)
    try:
        for _ in range(args.warmup):
            recognizer.process(frame)
        monitor.reset()
        for i in range(args.iterations):
            result = recognizer.process(frame)
            if i == 0:
                logger.info("First result: %s", result.display_text())
    finally:
        recognizer.close()

    print(monitor.get_report())
    return 0


def run_info(args, config: AppConfig) -> int:
    with OnnxEngine(args.model, intra_threads=config.models.intra_threads) as engine:
        print(engine.describe())
    return 0


class _DisplayTee(FrameSource):
    """Forwards frames from a source and keeps the newest one for display."""

    def __init__(self, source: FrameSource):
        self._source = source
        self._lock = threading.Lock()
        self._latest: Optional[Frame] = None

    def read(self) -> Optional[Frame]:
        frame = self._source.read()
        if frame is not None:
            with self._lock:
                self._latest = frame
        return frame

    def latest(self) -> Optional[Frame]:
        with self._lock:
            return self._latest

    def close(self) -> None:
        self._source.close()


def run_camera(args, config: AppConfig) -> int:
    from gesture_pipeline.capture.camera import CameraSource

    if args.device is not None:
        config.camera.device_id = args.device

    camera = CameraSource(config.camera)
    camera.open()
    tee = _DisplayTee(camera)
    pipeline = GesturePipeline.from_config(tee, config)

    running = True

    def handle_signal(signum, _frame):
        nonlocal running
        logger.info("Signal %d received, shutting down...", signum)
        running = False

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    last_result: Optional[GestureResult] = None
    with pipeline:
        pipeline.wait_ready()
        if pipeline.load_error is not None:
            return 2

        while running and pipeline.is_running:
            result = pipeline.latest_result()
            if result is not None:
                last_result = result
                logger.debug("%s", result)

            frame = tee.latest()
            if frame is not None:
                image = cv2.cvtColor(frame.as_rgba(), cv2.COLOR_RGBA2BGR)
                if last_result is not None:
                    draw_result(image, last_result)
                cv2.imshow(WINDOW_NAME, image)

            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                running = False
            elif key == ord("p"):
                print(pipeline.monitor.get_report())

    cv2.destroyAllWindows()
    print(pipeline.monitor.get_report())
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Real-time hand gesture recognition",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to a YAML config (defaults to config/default.yaml)"
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        help="Override logging level (DEBUG, INFO, ...)"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_image = sub.add_parser("image", help="Recognize a gesture in a still image")
    p_image.add_argument("path", help="Image file")
    p_image.add_argument("--output", "-o", default=None, help="Write overlay image here")
    p_image.set_defaults(func=run_image)

    p_camera = sub.add_parser("camera", help="Live recognition from a camera")
    p_camera.add_argument("--device", type=int, default=None, help="Camera device ID")
    p_camera.set_defaults(func=run_camera)

    p_info = sub.add_parser("info", help="Print model inputs and outputs")
    p_info.add_argument("model", help="ONNX model file")
    p_info.set_defaults(func=run_info)

    p_bench = sub.add_parser("bench", help="Benchmark recognition on an image")
    p_bench.add_argument("path", help="Image file")
    p_bench.add_argument("--iterations", "-n", type=int, default=100)
    p_bench.add_argument("--warmup", type=int, default=5)
    p_bench.set_defaults(func=run_bench)

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    overrides = {"logging": {"level": args.log_level}} if args.log_level else None
    config = load_config(args.config, overrides=overrides)

    setup_logging(config.logging)

    try:
        return args.func(args, config)
    except ModelLoadError as e:
        logger.error("Model load failed: %s", e)
        return 2
    except (PipelineError, FileNotFoundError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
