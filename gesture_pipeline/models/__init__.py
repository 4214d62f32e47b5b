"""
Inference engines.

Provides:
    - InferenceEngine: tensor in, list of tensors out
    - OnnxEngine: ONNX Runtime session wrapper
    - GestureNet / TorchEngine: PyTorch classifier (models.gesture_net, optional)
"""
from .engine import InferenceEngine, OnnxEngine

__all__ = ["InferenceEngine", "OnnxEngine"]
