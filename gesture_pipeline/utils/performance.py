"""
Per-stage latency and throughput monitoring for the recognizer.
"""

import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Optional

logger = logging.getLogger(__name__)

# Stages recorded by the recognition loop
STAGES = ("detect", "handpose", "classify")


@dataclass
class PerformanceMetrics:
    """Snapshot of the rolling metrics."""
    fps: float = 0.0
    frame_time_ms: float = 0.0
    stage_ms: Dict[str, float] = field(default_factory=dict)
    total_frames: int = 0
    stale_frames: int = 0
    failed_frames: int = 0


class PerformanceMonitor:
    """
    Rolling per-stage timing for the recognition thread.

    Stale frames are the ones the recognizer discarded in favour of a newer
    frame; failed frames are the ones skipped because of a per-frame error.

    Example:
        >>> monitor = PerformanceMonitor()
        >>> monitor.frame_start()
        >>> with monitor.measure("detect"):
        ...     regions = detector.detect(frame)
        >>> monitor.frame_complete()
    """

    def __init__(self, window_size: int = 30):
        self.window_size = window_size
        self._frame_times = deque(maxlen=window_size)  # type: deque
        self._stage_times: Dict[str, deque] = {}
        self._frame_start: Optional[float] = None
        self._total_frames = 0
        self._stale_frames = 0
        self._failed_frames = 0
        self._lock = threading.Lock()

    def reset(self) -> None:
        with self._lock:
            self._frame_times.clear()
            self._stage_times.clear()
            self._total_frames = 0
            self._stale_frames = 0
            self._failed_frames = 0

    def frame_start(self) -> None:
        """Mark the start of frame processing."""
        self._frame_start = time.perf_counter()

    def frame_complete(self) -> None:
        """Mark frame processing complete and update metrics."""
        if self._frame_start is None:
            return
        frame_time = time.perf_counter() - self._frame_start
        with self._lock:
            self._frame_times.append(frame_time)
            self._total_frames += 1
        self._frame_start = None

    def frame_failed(self) -> None:
        self._frame_start = None
        with self._lock:
            self._failed_frames += 1

    def record_stale(self, count: int) -> None:
        if count <= 0:
            return
        with self._lock:
            self._stale_frames += count

    @contextmanager
    def measure(self, stage: str):
        """
        Context manager to measure a processing stage.

        Args:
            stage: Name of the stage (e.g. "detect", "handpose")
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            with self._lock:
                if stage not in self._stage_times:
                    self._stage_times[stage] = deque(maxlen=self.window_size)
                self._stage_times[stage].append(elapsed)

    @property
    def fps(self) -> float:
        """Processed frames per second (rolling average)."""
        with self._lock:
            if not self._frame_times:
                return 0.0
            avg = sum(self._frame_times) / len(self._frame_times)
        return 1.0 / avg if avg > 0 else 0.0

    @property
    def frame_time_ms(self) -> float:
        with self._lock:
            if not self._frame_times:
                return 0.0
            return (sum(self._frame_times) / len(self._frame_times)) * 1000

    def stage_time_ms(self, stage: str) -> float:
        """Average time for a stage in milliseconds."""
        with self._lock:
            times = self._stage_times.get(stage)
            if not times:
                return 0.0
            return (sum(times) / len(times)) * 1000

    def get_metrics(self) -> PerformanceMetrics:
        with self._lock:
            stages = list(self._stage_times)
            total, stale, failed = self._total_frames, self._stale_frames, self._failed_frames
        return PerformanceMetrics(
            fps=self.fps,
            frame_time_ms=self.frame_time_ms,
            stage_ms={s: self.stage_time_ms(s) for s in stages},
            total_frames=total,
            stale_frames=stale,
            failed_frames=failed,
        )

    def get_report(self) -> str:
        """Formatted performance report."""
        m = self.get_metrics()
        lines = [
            "Performance Report",
            "=" * 40,
            f"FPS: {m.fps:.1f}",
            f"Frame time: {m.frame_time_ms:.2f}ms",
            "",
            "Per-Stage Breakdown:",
        ]
        for stage in STAGES + tuple(s for s in m.stage_ms if s not in STAGES):
            if stage in m.stage_ms:
                lines.append(f"  {stage}: {m.stage_ms[stage]:.2f}ms")
        lines += [
            "",
            "Frame Stats:",
            f"  Processed: {m.total_frames}",
            f"  Stale (dropped): {m.stale_frames}",
            f"  Failed: {m.failed_frames}",
        ]
        return "\n".join(lines)
