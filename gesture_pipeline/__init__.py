"""
Hand Gesture Recognition Pipeline
=================================

Real-time hand gesture recognition from a live camera stream.

Modules:
    - core: Frame and result types, errors, channels, the threaded pipeline
    - capture: Letterboxing and frame sources (camera, still images)
    - detection: Palm detection, rotated crop, handpose landmarks
    - recognition: Finger states, learned gesture class, motion tracking
    - models: Inference engines (ONNX Runtime, PyTorch GestureNet)
    - utils: Configuration, logging, performance, overlay drawing
"""

__version__ = "0.3.0"
