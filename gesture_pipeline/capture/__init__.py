"""Frame preprocessing and frame sources."""
from .preprocess import letterbox

__all__ = ["letterbox"]
