"""
Image view: one captured image referencing a pose and an intrinsic by id.
"""

from dataclasses import dataclass
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)

# Sentinel for ids that are not yet assigned (64-bit unsigned max)
UNDEFINED_INDEX = (1 << 64) - 1
UNDEFINED_TIME = -1.0


@dataclass
class View:
    """
    A single image of the scene.

    A view whose id_pose or id_intrinsic equals UNDEFINED_INDEX is not yet
    localized or calibrated.
    """
    id_view: int = UNDEFINED_INDEX
    id_intrinsic: int = UNDEFINED_INDEX
    id_pose: int = UNDEFINED_INDEX
    width: int = 0  # Image width in pixels
    height: int = 0  # Image height in pixels
    timestamp: float = UNDEFINED_TIME  # Acquisition time

    def has_pose(self) -> bool:
        return self.id_pose != UNDEFINED_INDEX

    def has_intrinsic(self) -> bool:
        return self.id_intrinsic != UNDEFINED_INDEX

    def to_dict(self) -> Dict[str, Any]:
        return {
            'width': self.width,
            'height': self.height,
            'timestamp': self.timestamp,
            'id_view': self.id_view,
            'id_intrinsic': self.id_intrinsic,
            'id_pose': self.id_pose,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "View":
        return cls(
            id_view=int(data['id_view']),
            id_intrinsic=int(data['id_intrinsic']),
            id_pose=int(data['id_pose']),
            width=int(data.get('width', 0)),
            height=int(data.get('height', 0)),
            timestamp=float(data.get('timestamp', UNDEFINED_TIME)),
        )
