"""Gesture recognition: finger states, learned classes, motion."""
from .gesture_classifier import GestureClassifier, build_gesture_result
from .gesture_table import GestureTable
from .motion import MotionTracker

__all__ = [
    "GestureClassifier",
    "build_gesture_result",
    "GestureTable",
    "MotionTracker",
]
