"""
Inference engine capability.

The pipeline only needs ``infer(tensor) -> [outputs]``. Concrete engines are
selected once at startup and owned by the recognition stage:

    - OnnxEngine : ONNX Runtime session (palm detector, handpose, classifier)
    - TorchEngine: PyTorch GestureNet checkpoint (see models.gesture_net)
"""

import logging
import os
from typing import List, Sequence

import numpy as np
import onnxruntime as ort

from gesture_pipeline.core.errors import InferenceError, ModelLoadError, PipelineError

logger = logging.getLogger(__name__)


class InferenceEngine:
    """Given one input tensor, returns the ordered list of output tensors."""

    name = "engine"

    def infer(self, tensor: np.ndarray) -> List[np.ndarray]:
        raise NotImplementedError

    def describe(self) -> str:
        """Human-readable summary of inputs/outputs."""
        return self.name

    def close(self) -> None:
        """Release runtime resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class OnnxEngine(InferenceEngine):
    """Wraps an ONNX Runtime session for single-batch inference."""

    name = "onnx"

    def __init__(self, model_path: str, intra_threads: int = 2,
                 providers: Sequence[str] = None):
        """Load an ONNX model.

        Args:
            model_path: Path to the .onnx file
            intra_threads: Intra-op thread count for the CPU provider
            providers: Execution providers; CPU (plus CUDA when available) if None

        Raises:
            ModelLoadError: If the file is missing or the session fails to load
        """
        if not os.path.isfile(model_path):
            raise ModelLoadError("model not found: %s" % model_path)

        if providers is None:
            providers = ["CPUExecutionProvider"]
            if "CUDAExecutionProvider" in ort.get_available_providers():
                providers.insert(0, "CUDAExecutionProvider")

        options = ort.SessionOptions()
        options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        options.intra_op_num_threads = intra_threads

        try:
            self._session = ort.InferenceSession(
                model_path, sess_options=options, providers=list(providers)
            )
        except Exception as e:
            raise ModelLoadError("failed to load %s: %s" % (model_path, e)) from e

        self._model_path = model_path
        self._input_name = self._session.get_inputs()[0].name
        self._output_names = [o.name for o in self._session.get_outputs()]
        logger.info("ONNX model loaded: %s (providers: %s)",
                    model_path, ", ".join(self._session.get_providers()))

    def infer(self, tensor: np.ndarray) -> List[np.ndarray]:
        tensor = np.ascontiguousarray(tensor, dtype=np.float32)
        try:
            return list(self._session.run(self._output_names, {self._input_name: tensor}))
        except Exception as e:
            # ORT raises its own Fail / InvalidArgument types per run
            raise InferenceError("%s: %s" % (self._model_path, e)) from e

    def describe(self) -> str:
        lines = ["Model: %s" % self._model_path]
        for i, node in enumerate(self._session.get_inputs()):
            lines.append("  input[%d]  %s shape=%s dtype=%s" % (i, node.name, node.shape, node.type))
        for i, node in enumerate(self._session.get_outputs()):
            lines.append("  output[%d] %s shape=%s dtype=%s" % (i, node.name, node.shape, node.type))
        return "\n".join(lines)

    def close(self) -> None:
        self._session = None
        logger.debug("ONNX session released: %s", self._model_path)


def run_inference(engine: InferenceEngine, tensor: np.ndarray, what: str) -> List[np.ndarray]:
    """Call ``engine.infer``, reporting any runtime failure as InferenceError."""
    try:
        return engine.infer(tensor)
    except PipelineError:
        raise
    except Exception as e:
        raise InferenceError("%s inference failed: %s" % (what, e)) from e
