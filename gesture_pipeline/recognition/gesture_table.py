"""
Versioned class-index → GestureKind table for the learned classifier.

The table has to match the class order the classifier was trained with;
shipping a new model with a different order means shipping a new table
version alongside it.
"""

import logging
from typing import Dict, Iterable, Optional

from gesture_pipeline.core.types import GestureKind

logger = logging.getLogger(__name__)

# HaGRID class order used to train the 34-way classifier
HAGRID_CLASSES = (
    "call", "dislike", "fist", "four", "grabbing", "grip", "hand_heart",
    "hand_heart2", "holy", "like", "little_finger", "middle_finger", "mute",
    "no_gesture", "ok", "one", "palm", "peace", "peace_inverted", "point",
    "rock", "stop", "stop_inverted", "take_picture", "three", "three2",
    "three3", "three_gun", "thumb_index", "thumb_index2", "timeout", "two_up",
    "two_up_inverted", "xsign",
)


class GestureTable:
    """Maps classifier output indices to gesture kinds."""

    def __init__(self, classes: Iterable[str], version: str = "custom"):
        self.version = version
        self._mapping: Dict[int, GestureKind] = {}
        for idx, name in enumerate(classes):
            kind = GestureKind.from_string(name)
            if kind is GestureKind.UNKNOWN:
                logger.warning("Table %s: class %d '%s' has no gesture kind", version, idx, name)
            self._mapping[idx] = kind

    @classmethod
    def hagrid(cls) -> "GestureTable":
        return cls(HAGRID_CLASSES, version="hagrid-34")

    def lookup(self, index: int) -> GestureKind:
        """Gesture kind for a class index; UNKNOWN when out of range."""
        return self._mapping.get(int(index), GestureKind.UNKNOWN)

    def index_of(self, kind: GestureKind) -> Optional[int]:
        for idx, k in self._mapping.items():
            if k is kind:
                return idx
        return None

    def __len__(self):
        return len(self._mapping)

    def __repr__(self):
        return f"GestureTable(version={self.version!r}, classes={len(self)})"


DEFAULT_TABLE = GestureTable.hagrid()
