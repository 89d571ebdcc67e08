"""
Tests for the scene container and its consistency check.
"""

import pytest
import numpy as np
from numpy.testing import assert_allclose

from veta.camera import PinholeIntrinsic
from veta.landmark import Landmark, Observation
from veta.pose import Pose
from veta.scene import IndexGenerator, ValidationResult, Veta, VetaParts, valid_ids
from veta.view import UNDEFINED_INDEX, View


@pytest.fixture
def scene():
    """One intrinsic (id 5), one pose (id 7) and one view using both."""
    veta = Veta()
    veta.intrinsics[5] = PinholeIntrinsic(200, 100, 160.0, 160.0, 100.0, 50.0)
    veta.poses[7] = Pose.from_euler([0, 0, 10], center=[1.0, 2.0, 3.0])
    veta.views[1] = View(id_view=1, id_intrinsic=5, id_pose=7, width=200, height=100, timestamp=0.5)
    return veta


class TestVetaParts:
    """Tests for section flags."""

    def test_values(self):
        assert VetaParts.VIEWS == 1
        assert VetaParts.EXTRINSICS == 2
        assert VetaParts.INTRINSICS == 4
        assert VetaParts.STRUCTURE == 8
        assert VetaParts.CONTROL_POINTS == 16
        assert VetaParts.ALL == 31

    def test_has(self):
        parts = VetaParts.VIEWS | VetaParts.INTRINSICS
        assert parts.has(VetaParts.VIEWS)
        assert parts.has(VetaParts.INTRINSICS)
        assert not parts.has(VetaParts.EXTRINSICS)
        assert not parts.has(VetaParts.VIEWS | VetaParts.STRUCTURE)
        assert VetaParts.ALL.has(VetaParts.CONTROL_POINTS)


class TestValidIds:
    """Tests for orphan detection."""

    def test_consistent_scene_passes(self, scene):
        result = valid_ids(scene, VetaParts.ALL)
        assert result
        assert result.valid
        assert result.orphan_poses == []
        assert result.orphan_intrinsics == []

    def test_orphan_pose_fails(self, scene):
        scene.poses[9] = Pose()
        result = valid_ids(scene, VetaParts.EXTRINSICS)
        assert not result
        assert result.orphan_poses == [9]
        assert "orphan" in result.message

    def test_orphan_pose_ignored_without_extrinsics_bit(self, scene):
        scene.poses[9] = Pose()
        assert valid_ids(scene, VetaParts.VIEWS | VetaParts.INTRINSICS)

    def test_orphan_intrinsic_fails(self, scene):
        scene.intrinsics[6] = PinholeIntrinsic(10, 10, 1.0, 1.0, 5.0, 5.0)
        result = valid_ids(scene, VetaParts.INTRINSICS)
        assert not result
        assert result.orphan_intrinsics == [6]
        assert result.orphan_poses == []

    def test_dangling_view_reference_is_tolerated(self, scene):
        scene.views[2] = View(id_view=2, id_intrinsic=42, id_pose=43)
        assert valid_ids(scene, VetaParts.ALL)

    def test_undefined_ids_are_tolerated(self, scene):
        scene.views[2] = View(id_view=2)
        assert valid_ids(scene, VetaParts.ALL)

    def test_scene_is_not_modified(self, scene):
        scene.poses[9] = Pose()
        valid_ids(scene)
        assert sorted(scene.poses) == [7, 9]
        assert sorted(scene.intrinsics) == [5]
        assert sorted(scene.views) == [1]

    def test_empty_scene_passes(self):
        assert valid_ids(Veta())

    def test_result_truthiness(self):
        assert not ValidationResult(False)
        assert ValidationResult(True)


class TestVetaAccessors:
    """Tests for scene helpers."""

    def test_pose_and_intrinsic_defined(self, scene):
        assert scene.is_pose_and_intrinsic_defined(scene.views[1])

    def test_missing_pose(self, scene):
        view = View(id_view=2, id_intrinsic=5, id_pose=8)
        assert not scene.is_pose_and_intrinsic_defined(view)

    def test_undefined_ids(self, scene):
        assert not scene.is_pose_and_intrinsic_defined(View(id_view=3))
        assert not scene.is_pose_and_intrinsic_defined(None)

    def test_get_pose_or_die(self, scene):
        pose = scene.get_pose_or_die(scene.views[1])
        assert pose.is_close(scene.poses[7])

    def test_get_pose_or_die_raises(self, scene):
        with pytest.raises(KeyError):
            scene.get_pose_or_die(View(id_view=2, id_pose=8))

    def test_getters_return_maps(self, scene):
        assert scene.get_views() is scene.views
        assert scene.get_poses() is scene.poses
        assert scene.get_intrinsics() is scene.intrinsics
        assert scene.get_landmarks() is scene.structure
        assert scene.get_control_points() is scene.control_points

    def test_project_landmark_through_view(self, scene):
        view = scene.views[1]
        pose = scene.get_pose_or_die(view)
        camera = scene.intrinsics[view.id_intrinsic]
        X = pose.inverse()([0.0, 0.0, 4.0])
        assert_allclose(camera.project(pose(X)), [100, 50], atol=1e-9)


class TestViewAndLandmark:
    """Tests for the plain data records."""

    def test_view_defaults(self):
        view = View()
        assert view.id_pose == UNDEFINED_INDEX
        assert not view.has_pose()
        assert not view.has_intrinsic()

    def test_view_fields(self, scene):
        assert View.from_dict(scene.views[1].to_dict()) == scene.views[1]
        assert set(scene.views[1].to_dict()) == {
            'width', 'height', 'timestamp', 'id_view', 'id_intrinsic', 'id_pose'
        }

    def test_landmark_round_trip(self):
        landmark = Landmark(
            X=[1.0, 2.0, 3.0],
            observations={
                1: Observation(x=[10.5, 20.5], id_feat=3),
                4: Observation(x=[11.0, 19.0], id_feat=8, color=(255, 128, 0)),
            },
        )
        rebuilt = Landmark.from_dict(landmark.to_dict())
        assert_allclose(rebuilt.X, landmark.X)
        assert sorted(rebuilt.observations) == [1, 4]
        assert rebuilt.observations[1].id_feat == 3
        assert rebuilt.observations[1].color is None
        assert rebuilt.observations[4].color == (255, 128, 0)
        assert_allclose(rebuilt.observations[4].x, [11.0, 19.0])


class TestIndexGenerator:
    """Tests for id counters."""

    def test_first_id_is_one(self):
        gen = IndexGenerator()
        assert gen.new_view_id() == 1
        assert gen.new_view_id() == 2
        assert gen.new_pose_id() == 1
        assert gen.new_intrinsics_id() == 1
        assert gen.new_landmark_id() == 1
        assert gen.new_feature_id() == 1

    def test_counters_are_independent_per_generator(self):
        first = IndexGenerator()
        second = IndexGenerator()
        first.new_pose_id()
        first.new_pose_id()
        assert second.new_pose_id() == 1

    def test_reset(self):
        gen = IndexGenerator()
        for _ in range(3):
            gen.new_view_id()
            gen.new_pose_id()
            gen.new_intrinsics_id()
            gen.new_landmark_id()
            gen.new_feature_id()
        gen.reset_view_id_counter()
        gen.reset_pose_id_counter()
        gen.reset_intrinsics_id_counter()
        gen.reset_landmark_id_counter()
        assert gen.new_view_id() == 1
        assert gen.new_pose_id() == 1
        assert gen.new_intrinsics_id() == 1
        assert gen.new_landmark_id() == 1
        assert gen.new_feature_id() == 4
        gen.reset_feature_id_counter()
        assert gen.new_feature_id() == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
