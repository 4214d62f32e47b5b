"""
Exception taxonomy for the recognition pipeline.

Input contract violations (bad frame buffers, unexpected tensor shapes) are
raised to the immediate caller, as are runtime failures during a single
inference. Missing optional data never raises; it is resolved with
documented defaults at the call site. Model unavailability is
raised once at load time and ends the recognition stage.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class FrameSizeError(PipelineError, ValueError):
    """Frame pixel buffer does not match ``width * height * 4``."""

    def __init__(self, actual: int, expected: int):
        super().__init__(
            "frame buffer size mismatch: got %d, expected %d" % (actual, expected)
        )
        self.actual = actual
        self.expected = expected


class TensorShapeError(PipelineError, ValueError):
    """An inference engine returned outputs with an unexpected rank or shape."""


class ModelLoadError(PipelineError, RuntimeError):
    """A model file is missing or the inference runtime refused to load it."""


class InferenceError(PipelineError, RuntimeError):
    """The inference runtime failed on one input; the frame is skipped."""
