"""
Wrist motion tracking.

Keeps a short time window of wrist positions and classifies the trajectory
as steady, moving, fanning (horizontal back-and-forth of an open hand) or a
vertical wave.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, List, Optional

from gesture_pipeline.core.types import GestureKind, GestureMotion, Point
from gesture_pipeline.utils.config import MotionConfig

logger = logging.getLogger(__name__)


@dataclass
class MotionSample:
    """Single wrist observation in frame pixels."""
    time: float
    x: float
    y: float
    span: float


def direction_changes(samples: List[MotionSample], select: Callable[[MotionSample], float],
                      min_step: float) -> int:
    """Count sign flips between consecutive deltas, ignoring steps below min_step."""
    changes = 0
    last_sign = 0
    for prev, curr in zip(samples, samples[1:]):
        delta = select(curr) - select(prev)
        if abs(delta) < min_step:
            continue
        sign = 1 if delta > 0 else -1
        if last_sign != 0 and sign != last_sign:
            changes += 1
        last_sign = sign
    return changes


class MotionTracker:
    """
    Sliding-window wrist motion classifier.

    One tracker belongs to one classifier instance and is only touched by
    the recognition thread.

    Example:
        >>> tracker = MotionTracker()
        >>> motion = tracker.update((320.0, 240.0), 150.0, time.monotonic(), GestureKind.PALM)
    """

    def __init__(self, config: Optional[MotionConfig] = None):
        self.config = config or MotionConfig()
        self._history = deque()  # type: deque

    def update(self, point: Point, span: float, timestamp: float,
               primary: GestureKind) -> GestureMotion:
        """
        Append a wrist sample and classify the current window.

        Args:
            point: wrist position in frame pixels
            span: hand extent in pixels (floored at 1)
            timestamp: monotonic seconds
            primary: gesture kind of the current frame

        Returns:
            Motion pattern over the window
        """
        cfg = self.config
        self._history.append(MotionSample(
            time=timestamp, x=float(point[0]), y=float(point[1]), span=max(float(span), 1.0)
        ))

        while self._history and timestamp - self._history[0].time > cfg.window_s:
            self._history.popleft()

        if len(self._history) < cfg.min_samples:
            return GestureMotion.STEADY

        samples = list(self._history)
        norm = max(sum(s.span for s in samples) / len(samples), 1.0)

        xs = [s.x for s in samples]
        ys = [s.y for s in samples]
        spread_x = (max(xs) - min(xs)) / norm
        spread_y = (max(ys) - min(ys)) / norm

        min_step = norm * cfg.step_ratio
        changes_x = direction_changes(samples, lambda s: s.x, min_step)
        changes_y = direction_changes(samples, lambda s: s.y, min_step)

        if (spread_x > cfg.spread_gesture and changes_x >= cfg.min_direction_changes
                and primary.is_open_hand):
            return GestureMotion.FANNING
        if spread_y > cfg.spread_gesture and changes_y >= cfg.min_direction_changes:
            return GestureMotion.VERTICAL_WAVE
        if spread_x > cfg.spread_moving or spread_y > cfg.spread_moving:
            return GestureMotion.MOVING
        return GestureMotion.STEADY

    def reset(self) -> None:
        """Clear the sample window."""
        self._history.clear()

    def __len__(self):
        return len(self._history)

    @property
    def trajectory_points(self) -> List[Point]:
        """Current window as (x, y) tuples for visualization."""
        return [(s.x, s.y) for s in self._history]
