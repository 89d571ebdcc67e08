"""
Scene container for structure-from-motion data.

A Veta holds independent maps sharing one 64-bit index space:

    views:          view id      -> View
    poses:          pose id      -> Pose
    intrinsics:     intrinsic id -> IntrinsicBase
    structure:      landmark id  -> Landmark
    control_points: landmark id  -> Landmark

Cross references (view -> pose, view -> intrinsic) are not maintained
automatically. valid_ids() checks that every stored pose and intrinsic is
used by at least one view.
"""

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

from .intrinsics import IntrinsicBase
from .landmark import Landmark
from .pose import Pose
from .view import View, UNDEFINED_INDEX

logger = logging.getLogger(__name__)


class VetaParts(enum.IntFlag):
    """Sections of a scene, combined with `|` to select what to check, load or save."""
    VIEWS = 1
    EXTRINSICS = 2
    INTRINSICS = 4
    STRUCTURE = 8
    CONTROL_POINTS = 16
    ALL = VIEWS | EXTRINSICS | INTRINSICS | STRUCTURE | CONTROL_POINTS

    def has(self, flag: "VetaParts") -> bool:
        """True if every bit of `flag` is selected."""
        return (self & flag) == flag


class Veta:
    """
    Generic SfM data container.

    Entries are inserted and removed directly through the maps; removing a
    pose or an intrinsic does not touch the views that reference it.
    """

    def __init__(self):
        self.views: Dict[int, View] = {}
        self.poses: Dict[int, Pose] = {}
        self.intrinsics: Dict[int, IntrinsicBase] = {}
        self.structure: Dict[int, Landmark] = {}
        self.control_points: Dict[int, Landmark] = {}

    def get_views(self) -> Dict[int, View]:
        return self.views

    def get_poses(self) -> Dict[int, Pose]:
        return self.poses

    def get_intrinsics(self) -> Dict[int, IntrinsicBase]:
        return self.intrinsics

    def get_landmarks(self) -> Dict[int, Landmark]:
        return self.structure

    def get_control_points(self) -> Dict[int, Landmark]:
        return self.control_points

    def is_pose_and_intrinsic_defined(self, view: Optional[View]) -> bool:
        """Check that the view has a pose and an intrinsic, both present in the scene."""
        if view is None:
            return False
        return (
            view.id_intrinsic != UNDEFINED_INDEX
            and view.id_pose != UNDEFINED_INDEX
            and view.id_intrinsic in self.intrinsics
            and view.id_pose in self.poses
        )

    def get_pose_or_die(self, view: View) -> Pose:
        """
        Pose associated to a view.

        Raises:
            KeyError: If the view's pose is not in the scene
        """
        if view.id_pose not in self.poses:
            raise KeyError(f"Pose {view.id_pose} of view {view.id_view} is not defined")
        return self.poses[view.id_pose]

    def __repr__(self) -> str:
        return (
            f"Veta(views={len(self.views)}, poses={len(self.poses)}, "
            f"intrinsics={len(self.intrinsics)}, structure={len(self.structure)}, "
            f"control_points={len(self.control_points)})"
        )


@dataclass
class ValidationResult:
    """Outcome of valid_ids(); evaluates to its `valid` flag."""
    valid: bool
    message: str = ''
    orphan_intrinsics: List[int] = field(default_factory=list)
    orphan_poses: List[int] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid


def valid_ids(veta: Veta, parts: VetaParts = VetaParts.ALL) -> ValidationResult:
    """
    Check that stored intrinsics and poses are referenced by at least one view.

    Only orphans are reported: a view referencing an id missing from the
    scene does not fail this check. The scene is not modified.

    Args:
        veta: Scene to check
        parts: INTRINSICS and/or EXTRINSICS select which maps are checked

    Returns:
        ValidationResult with the sorted orphan ids of the checked maps
    """
    parts = VetaParts(parts)
    intrinsic_ids = set(veta.intrinsics)
    pose_ids = set(veta.poses)

    referenced_intrinsics = set()
    referenced_poses = set()
    for view in veta.views.values():
        if view.id_intrinsic in intrinsic_ids:
            referenced_intrinsics.add(view.id_intrinsic)
        if view.id_pose in pose_ids:
            referenced_poses.add(view.id_pose)

    orphan_intrinsics: List[int] = []
    orphan_poses: List[int] = []
    if parts.has(VetaParts.INTRINSICS):
        orphan_intrinsics = sorted(intrinsic_ids - referenced_intrinsics)
    if parts.has(VetaParts.EXTRINSICS):
        orphan_poses = sorted(pose_ids - referenced_poses)

    if orphan_intrinsics or orphan_poses:
        message = (
            f"Some poses or intrinsics are not used by any view "
            f"(orphan intrinsics: {orphan_intrinsics}, orphan poses: {orphan_poses})"
        )
        logger.warning(message)
        return ValidationResult(False, message, orphan_intrinsics, orphan_poses)

    return ValidationResult(True, 'All poses and intrinsics are used by at least one view')


class IndexGenerator:
    """
    Id counters for new scene entries.

    Each counter is incremented before use, so the first id is 1.
    """

    def __init__(self):
        self.view_id_counter = 0
        self.pose_id_counter = 0
        self.intrinsics_id_counter = 0
        self.landmark_id_counter = 0
        self.feature_id_counter = 0

    def new_view_id(self) -> int:
        self.view_id_counter += 1
        return self.view_id_counter

    def new_pose_id(self) -> int:
        self.pose_id_counter += 1
        return self.pose_id_counter

    def new_intrinsics_id(self) -> int:
        self.intrinsics_id_counter += 1
        return self.intrinsics_id_counter

    def new_landmark_id(self) -> int:
        self.landmark_id_counter += 1
        return self.landmark_id_counter

    def new_feature_id(self) -> int:
        self.feature_id_counter += 1
        return self.feature_id_counter

    def reset_view_id_counter(self) -> None:
        self.view_id_counter = 0

    def reset_pose_id_counter(self) -> None:
        self.pose_id_counter = 0

    def reset_intrinsics_id_counter(self) -> None:
        self.intrinsics_id_counter = 0

    def reset_landmark_id_counter(self) -> None:
        self.landmark_id_counter = 0

    def reset_feature_id_counter(self) -> None:
        self.feature_id_counter = 0
