"""
GestureNet: lightweight MLP over normalized hand landmarks.

Architecture:
    Input  : 42 features (21 landmarks x (x, y), wrist-centred, palm-width scaled)
    FC1    : 128 units, BatchNorm, ReLU, Dropout(0.3)
    FC2    : 64 units, BatchNorm, ReLU, Dropout(0.2)
    FC3    : 32 units, ReLU
    Output : 34 logits (HaGRID classes, see recognition.gesture_table)

A checkpoint can be served directly through TorchEngine or exported to ONNX
for OnnxEngine.
"""

import logging
import os
from typing import List

import numpy as np

from gesture_pipeline.core.errors import InferenceError, ModelLoadError
from gesture_pipeline.models.engine import InferenceEngine

logger = logging.getLogger(__name__)

try:
    import torch
    import torch.nn as nn
    TORCH_AVAILABLE = True
except ImportError:
    TORCH_AVAILABLE = False
    logger.info("PyTorch not available, GestureNet / TorchEngine disabled")

INPUT_DIM = 42
NUM_CLASSES = 34


def _check_torch():
    if not TORCH_AVAILABLE:
        raise ModelLoadError(
            "PyTorch is required for the torch gesture backend. "
            "Install with: pip install 'gesture-pipeline[torch]'"
        )


if TORCH_AVAILABLE:

    class GestureNet(nn.Module):
        """Lightweight MLP for hand gesture classification."""

        def __init__(self, input_dim=INPUT_DIM, num_classes=NUM_CLASSES,
                     dropout1=0.3, dropout2=0.2):
            super().__init__()

            self.features = nn.Sequential(
                nn.Linear(input_dim, 128),
                nn.BatchNorm1d(128),
                nn.ReLU(inplace=True),
                nn.Dropout(dropout1),

                nn.Linear(128, 64),
                nn.BatchNorm1d(64),
                nn.ReLU(inplace=True),
                nn.Dropout(dropout2),

                nn.Linear(64, 32),
                nn.ReLU(inplace=True),
            )

            self.classifier = nn.Linear(32, num_classes)
            self.input_dim = input_dim
            self.num_classes = num_classes

            self._init_weights()

        def _init_weights(self):
            for m in self.modules():
                if isinstance(m, nn.Linear):
                    nn.init.kaiming_normal_(m.weight, nonlinearity="relu")
                    if m.bias is not None:
                        nn.init.zeros_(m.bias)
                elif isinstance(m, nn.BatchNorm1d):
                    nn.init.ones_(m.weight)
                    nn.init.zeros_(m.bias)

        def forward(self, x):
            """Forward pass.

            Args:
                x: Tensor of shape (batch, 42)

            Returns:
                Tensor of shape (batch, num_classes) of raw logits
            """
            x = self.features(x)
            return self.classifier(x)

        def export_onnx(self, output_path, opset_version=13):
            """Export to ONNX so the classifier can run through OnnxEngine."""
            self.eval()
            dummy_input = torch.randn(1, self.input_dim)
            if next(self.parameters()).is_cuda:
                dummy_input = dummy_input.cuda()

            os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)

            torch.onnx.export(
                self,
                dummy_input,
                output_path,
                input_names=["landmarks"],
                output_names=["gesture_logits"],
                dynamic_axes={
                    "landmarks": {0: "batch_size"},
                    "gesture_logits": {0: "batch_size"},
                },
                opset_version=opset_version,
                do_constant_folding=True,
            )
            logger.info("ONNX model exported to %s", output_path)

        @classmethod
        def load_checkpoint(cls, path, device="cpu"):
            """Load a trained model from checkpoint.

            Supports both a full checkpoint dict (``model_state_dict`` plus
            ``num_classes``/``input_dim``) and a raw state_dict.
            """
            checkpoint = torch.load(path, map_location=device)

            if isinstance(checkpoint, dict) and "model_state_dict" in checkpoint:
                state_dict = checkpoint["model_state_dict"]
                num_classes = checkpoint.get("num_classes", NUM_CLASSES)
                input_dim = checkpoint.get("input_dim", INPUT_DIM)
            else:
                state_dict = checkpoint
                clf_key = "classifier.weight"
                num_classes = state_dict[clf_key].shape[0] if clf_key in state_dict else NUM_CLASSES
                input_dim = INPUT_DIM

            model = cls(input_dim=input_dim, num_classes=num_classes)
            model.load_state_dict(state_dict)
            model.to(device)
            model.eval()
            logger.info("Loaded GestureNet (%d classes) from %s", num_classes, path)
            return model

else:

    class GestureNet:
        """Stub used when PyTorch is not available."""

        def __init__(self, *args, **kwargs):
            _check_torch()

        @classmethod
        def load_checkpoint(cls, path, device="cpu"):
            _check_torch()


class TorchEngine(InferenceEngine):
    """Runs a GestureNet checkpoint (or any module) behind the engine interface."""

    name = "torch"

    def __init__(self, model=None, checkpoint_path: str = None, device: str = None):
        _check_torch()
        if model is None:
            if not checkpoint_path or not os.path.isfile(checkpoint_path):
                raise ModelLoadError("checkpoint not found: %s" % checkpoint_path)
            device = device or ("cuda" if torch.cuda.is_available() else "cpu")
            try:
                model = GestureNet.load_checkpoint(checkpoint_path, device=device)
            except (RuntimeError, KeyError, OSError) as e:
                raise ModelLoadError("failed to load %s: %s" % (checkpoint_path, e)) from e
        self._device = device or "cpu"
        self._model = model.to(self._device).eval()

    def infer(self, tensor: np.ndarray) -> List[np.ndarray]:
        batch = torch.from_numpy(np.ascontiguousarray(tensor, dtype=np.float32)).to(self._device)
        with torch.no_grad():
            try:
                logits = self._model(batch)
            except RuntimeError as e:
                raise InferenceError("GestureNet forward failed: %s" % e) from e
        return [logits.cpu().numpy()]

    def describe(self) -> str:
        return "TorchEngine(%s on %s)" % (type(self._model).__name__, self._device)

    def close(self) -> None:
        self._model = None
