"""
Centralized configuration.

Every heuristic threshold of the pipeline lives in a named dataclass field
with its default; components receive their section at construction. YAML
files are deep-merged over the defaults and checked against a small schema.
"""

import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")
DEFAULT_CONFIG_PATH = os.path.join(_CONFIG_DIR, "default.yaml")
_MODELS_DIR = os.path.join(_BASE_DIR, "models")

# Schema: sections and the expected type of their fields
_CONFIG_SCHEMA = {
    "palm_detector": {
        "score_threshold": float,
        "nms_threshold": float,
        "top_k": int,
        "input_size": int,
    },
    "crop": {
        "input_size": int,
        "scale": float,
        "min_side": float,
    },
    "classifier": {
        "min_confidence": float,
    },
    "motion": {
        "window_s": float,
        "min_samples": int,
        "spread_gesture": float,
        "spread_moving": float,
        "step_ratio": float,
        "min_direction_changes": int,
    },
    "models": {
        "palm_detector": str,
        "handpose": str,
        "gesture_classifier": str,
        "gesture_backend": str,
        "intra_threads": int,
    },
    "camera": {
        "device_id": int,
        "width": int,
        "height": int,
        "fps": int,
    },
    "logging": {
        "level": str,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _validate(data: dict) -> list:
    """Check known fields against the schema; returns the list of warnings."""
    warnings = []
    for section_name, fields in _CONFIG_SCHEMA.items():
        section = data.get(section_name)
        if section is None:
            continue
        if not isinstance(section, dict):
            warnings.append(f"Section '{section_name}' should be a dict, got {type(section).__name__}")
            continue
        for field_name, expected_type in fields.items():
            if field_name not in section:
                continue
            value = section[field_name]
            # Allow int where float is expected
            if expected_type is float and isinstance(value, (int, float)) and not isinstance(value, bool):
                continue
            if not isinstance(value, expected_type):
                warnings.append(
                    f"{section_name}.{field_name}: expected {expected_type.__name__}, "
                    f"got {type(value).__name__} ({value!r})"
                )
    for w in warnings:
        logger.warning("Config validation: %s", w)
    return warnings


# =============================================================================
# Sections
# =============================================================================

@dataclass
class PalmDetectorConfig:
    """Palm detector decoding thresholds."""
    score_threshold: float = 0.5
    nms_threshold: float = 0.3
    top_k: int = 32
    input_size: int = 192

    @classmethod
    def from_dict(cls, d: dict) -> "PalmDetectorConfig":
        return cls(
            score_threshold=float(d.get("score_threshold", 0.5)),
            nms_threshold=float(d.get("nms_threshold", 0.3)),
            top_k=int(d.get("top_k", 32)),
            input_size=int(d.get("input_size", 192)),
        )


@dataclass
class CropConfig:
    """Rotated crop sizing for the landmark network."""
    input_size: int = 224
    scale: float = 2.4       # crop side relative to the palm extent
    min_side: float = 80.0   # pixels

    @classmethod
    def from_dict(cls, d: dict) -> "CropConfig":
        return cls(
            input_size=int(d.get("input_size", 224)),
            scale=float(d.get("scale", 2.4)),
            min_side=float(d.get("min_side", 80.0)),
        )


@dataclass
class FingerThresholds:
    """Closed-form finger flexion rules, in bounding-span-normalized units."""
    extended_extension: float = 0.15
    extended_straightness: float = 0.40
    extended_reach: float = 0.06
    folded_extension: float = 0.08
    folded_straightness: float = 0.18
    folded_reach: float = 0.05
    thumb_folded_spread: float = 0.25
    thumb_folded_straightness: float = 0.28
    thumb_folded_reach: float = 0.15
    thumb_extended_distance: float = 0.30
    thumb_extended_straightness: float = 0.28
    thumb_extended_extension: float = 0.08

    @classmethod
    def from_dict(cls, d: dict) -> "FingerThresholds":
        defaults = asdict(cls())
        return cls(**{k: float(d.get(k, v)) for k, v in defaults.items()})


@dataclass
class MotionConfig:
    """Sliding-window wrist motion classification."""
    window_s: float = 1.2
    min_samples: int = 3
    spread_gesture: float = 0.55
    spread_moving: float = 0.25
    step_ratio: float = 0.08
    min_direction_changes: int = 2

    @classmethod
    def from_dict(cls, d: dict) -> "MotionConfig":
        return cls(
            window_s=float(d.get("window_s", 1.2)),
            min_samples=int(d.get("min_samples", 3)),
            spread_gesture=float(d.get("spread_gesture", 0.55)),
            spread_moving=float(d.get("spread_moving", 0.25)),
            step_ratio=float(d.get("step_ratio", 0.08)),
            min_direction_changes=int(d.get("min_direction_changes", 2)),
        )


@dataclass
class ClassifierConfig:
    """Gesture classifier gate and nested rule sets."""
    min_confidence: float = 0.2
    fingers: FingerThresholds = field(default_factory=FingerThresholds)
    motion: MotionConfig = field(default_factory=MotionConfig)

    @classmethod
    def from_dict(cls, d: dict, fingers: Optional[dict] = None,
                  motion: Optional[dict] = None) -> "ClassifierConfig":
        return cls(
            min_confidence=float(d.get("min_confidence", 0.2)),
            fingers=FingerThresholds.from_dict(fingers or {}),
            motion=MotionConfig.from_dict(motion or {}),
        )


@dataclass
class ModelPaths:
    """Filesystem locations of the three models, supplied by provisioning."""
    palm_detector: str = os.path.join(_MODELS_DIR, "palm_detection_mediapipe_2023feb.onnx")
    handpose: str = os.path.join(_MODELS_DIR, "handpose_estimation_mediapipe_2023feb.onnx")
    gesture_classifier: str = os.path.join(_MODELS_DIR, "gesture_classifier.onnx")
    gesture_backend: str = "onnx"   # onnx | torch
    intra_threads: int = 2

    @classmethod
    def from_dict(cls, d: dict) -> "ModelPaths":
        defaults = cls()
        return cls(
            palm_detector=d.get("palm_detector", defaults.palm_detector),
            handpose=d.get("handpose", defaults.handpose),
            gesture_classifier=d.get("gesture_classifier", defaults.gesture_classifier),
            gesture_backend=d.get("gesture_backend", defaults.gesture_backend),
            intra_threads=int(d.get("intra_threads", defaults.intra_threads)),
        )


@dataclass
class CameraConfig:
    """Camera configuration settings."""
    device_id: int = 0
    width: int = 1280
    height: int = 720
    fps: int = 30
    flip_horizontal: bool = True

    @classmethod
    def from_dict(cls, config: dict) -> "CameraConfig":
        """Create config from dictionary (YAML parsed)."""
        return cls(
            device_id=config.get("device_id", 0),
            width=config.get("width", 1280),
            height=config.get("height", 720),
            fps=config.get("fps", 30),
            flip_horizontal=config.get("flip_horizontal", True),
        )


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None
    max_size_mb: int = 10
    backup_count: int = 3

    @classmethod
    def from_dict(cls, d: dict) -> "LoggingConfig":
        return cls(
            level=d.get("level", "INFO"),
            file=d.get("file"),
            max_size_mb=d.get("max_size_mb", 10),
            backup_count=d.get("backup_count", 3),
        )


@dataclass
class AppConfig:
    """All configuration sections of the application."""
    palm_detector: PalmDetectorConfig = field(default_factory=PalmDetectorConfig)
    crop: CropConfig = field(default_factory=CropConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    models: ModelPaths = field(default_factory=ModelPaths)
    camera: CameraConfig = field(default_factory=CameraConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "AppConfig":
        _validate(data)
        return cls(
            palm_detector=PalmDetectorConfig.from_dict(data.get("palm_detector") or {}),
            crop=CropConfig.from_dict(data.get("crop") or {}),
            classifier=ClassifierConfig.from_dict(
                data.get("classifier") or {},
                fingers=data.get("fingers"),
                motion=data.get("motion"),
            ),
            models=ModelPaths.from_dict(data.get("models") or {}),
            camera=CameraConfig.from_dict(data.get("camera") or {}),
            logging=LoggingConfig.from_dict(data.get("logging") or {}),
        )


def load_config(config_path: Optional[str] = None,
                overrides: Optional[dict] = None) -> AppConfig:
    """Load configuration from YAML, falling back to defaults.

    Args:
        config_path: YAML file; the bundled ``config/default.yaml`` if None
        overrides: nested dict merged last (e.g. from CLI flags)
    """
    config_path = config_path or DEFAULT_CONFIG_PATH
    data = {}
    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded config from %s", config_path)
    except FileNotFoundError:
        logger.warning("Config file not found: %s, using defaults", config_path)

    if overrides:
        data = _deep_merge(data, overrides)
    return AppConfig.from_dict(data)
