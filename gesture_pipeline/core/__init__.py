"""Shared types, errors and inter-stage channels."""
from .channel import Channel
from .errors import FrameSizeError, ModelLoadError, PipelineError, TensorShapeError
from .types import (
    Frame, FingerState, GestureDetail, GestureKind, GestureMotion, GestureResult,
    Handedness, HandposeOutput, LetterboxInfo, PalmRegion,
)

__all__ = [
    "Channel",
    "FrameSizeError",
    "ModelLoadError",
    "PipelineError",
    "TensorShapeError",
    "Frame",
    "FingerState",
    "GestureDetail",
    "GestureKind",
    "GestureMotion",
    "GestureResult",
    "Handedness",
    "HandposeOutput",
    "LetterboxInfo",
    "PalmRegion",
]
