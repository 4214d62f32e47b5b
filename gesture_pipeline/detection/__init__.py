"""Palm detection, rotated crop and handpose landmark estimation."""
from .anchors import PALM_ANCHORS, generate_anchors
from .crop import CropTransform, crop_from_palm, prepare_rotated_crop
from .handpose import HandposeEstimator
from .palm_detector import PalmDetector, decode_palm_outputs, pick_primary_region

__all__ = [
    "PALM_ANCHORS",
    "generate_anchors",
    "CropTransform",
    "crop_from_palm",
    "prepare_rotated_crop",
    "HandposeEstimator",
    "PalmDetector",
    "decode_palm_outputs",
    "pick_primary_region",
]
