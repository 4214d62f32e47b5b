"""
Tests for Wrist Motion Tracking
===============================
"""

import pytest

from gesture_pipeline.core.types import GestureKind, GestureMotion
from gesture_pipeline.recognition.motion import MotionSample, MotionTracker, direction_changes
from gesture_pipeline.utils.config import MotionConfig

SPAN = 100.0


def feed(tracker, xs, ys=None, kind=GestureKind.PALM, dt=0.1, t0=0.0, span=SPAN):
    """Push a trajectory and return the motion after the last sample."""
    ys = ys if ys is not None else [0.0] * len(xs)
    motion = None
    for i, (x, y) in enumerate(zip(xs, ys)):
        motion = tracker.update((x, y), span, t0 + i * dt, kind)
    return motion


class TestDirectionChanges:
    """Test suite for direction_changes()."""

    def test_zigzag(self):
        samples = [MotionSample(i, x, 0.0, SPAN) for i, x in enumerate([0, 10, 0, 10])]
        assert direction_changes(samples, lambda s: s.x, 1.0) == 2

    def test_small_steps_ignored(self):
        samples = [MotionSample(i, x, 0.0, SPAN) for i, x in enumerate([0, 10, 9, 20])]
        assert direction_changes(samples, lambda s: s.x, 5.0) == 0


class TestMotionTracker:
    """Test suite for MotionTracker."""

    @pytest.fixture
    def tracker(self):
        return MotionTracker(MotionConfig())

    def test_too_few_samples(self, tracker):
        """Below min_samples the hand is always steady."""
        assert feed(tracker, [0.0, 300.0]) is GestureMotion.STEADY

    @pytest.mark.parametrize("span", [1.0, SPAN, 1e4])
    def test_stationary(self, tracker, span):
        """A hand that does not move is steady at any hand size."""
        assert feed(tracker, [50.0] * 6, span=span) is GestureMotion.STEADY

    def test_fanning_open_hand(self, tracker):
        assert feed(tracker, [0.0, 100.0, 0.0, 100.0, 0.0]) is GestureMotion.FANNING

    def test_fanning_requires_open_hand(self, tracker):
        """A closed hand swinging sideways is just moving."""
        motion = feed(tracker, [0.0, 100.0, 0.0, 100.0, 0.0], kind=GestureKind.FIST)
        assert motion is GestureMotion.MOVING

    def test_vertical_wave(self, tracker):
        motion = feed(tracker, [0.0] * 5, ys=[0.0, 100.0, 0.0, 100.0, 0.0],
                      kind=GestureKind.FIST)
        assert motion is GestureMotion.VERTICAL_WAVE

    def test_monotonic_motion(self, tracker):
        assert feed(tracker, [0.0, 20.0, 40.0, 60.0]) is GestureMotion.MOVING

    def test_jitter_is_steady(self, tracker):
        """Steps below step_ratio * span are noise."""
        assert feed(tracker, [0.0, 5.0, 0.0, 5.0, 0.0, 5.0]) is GestureMotion.STEADY

    def test_window_eviction(self, tracker):
        """Samples older than window_s fall out of the window."""
        feed(tracker, [0.0, 100.0, 0.0, 100.0])
        assert len(tracker) == 4
        motion = tracker.update((0.0, 0.0), SPAN, 5.0, GestureKind.PALM)
        assert len(tracker) == 1
        assert motion is GestureMotion.STEADY

    def test_reset(self, tracker):
        feed(tracker, [0.0, 100.0, 0.0])
        tracker.reset()
        assert len(tracker) == 0
        assert tracker.trajectory_points == []

    def test_trajectory_points(self, tracker):
        feed(tracker, [1.0, 2.0], ys=[3.0, 4.0])
        assert tracker.trajectory_points == [(1.0, 3.0), (2.0, 4.0)]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
