"""
Tests for the camera intrinsic contract.

These tests verify:
    - Projection and pixel mapping for the pinhole and spherical models
    - Parameter vector round trips and subset parameterization
    - Hashing, equality and cloning
    - Serialized fields
"""

import pytest
import numpy as np
from numpy.testing import assert_allclose

from veta.camera import (
    PinholeIntrinsic,
    PinholeIntrinsicBrownT2,
    PinholeIntrinsicFisheye,
    PinholeIntrinsicRadialK1,
    PinholeIntrinsicRadialK3,
)
from veta.intrinsics import (
    EIntrinsic,
    IntrinsicBase,
    IntrinsicParamType,
    hash_combine,
    image_points,
    is_pinhole,
    is_spherical,
    is_valid,
)
from veta.pose import Pose
from veta.spherical import IntrinsicSpherical


def all_cameras():
    """One instance of every camera model."""
    return [
        PinholeIntrinsic(640, 480, 500.0, 510.0, 320.0, 240.0),
        PinholeIntrinsicRadialK1(640, 480, 500.0, 510.0, 320.0, 240.0, -0.1),
        PinholeIntrinsicRadialK3(640, 480, 500.0, 510.0, 320.0, 240.0, -0.05, 0.01, -0.001),
        PinholeIntrinsicBrownT2(640, 480, 500.0, 510.0, 320.0, 240.0, -0.05, 0.01, 0.0, 0.001, -0.0005),
        PinholeIntrinsicFisheye(640, 480, 500.0, 510.0, 320.0, 240.0, 0.01, -0.005, 0.001, 0.0),
        IntrinsicSpherical(2000, 1000),
    ]


@pytest.fixture
def pinhole():
    return PinholeIntrinsic(200, 100, 160.0, 160.0, 100.0, 50.0)


@pytest.fixture
def brown():
    return PinholeIntrinsicBrownT2(
        4000, 3000, 3200.0, 3180.0, 2000.0, 1500.0, -0.1, 0.01, 0.001, 0.0005, -0.0002
    )


class TestTypeTags:
    """Tests for the model type predicates."""

    def test_pinhole_family(self):
        for cam in all_cameras()[:-1]:
            assert is_pinhole(cam.get_type())
            assert not is_spherical(cam.get_type())
            assert is_valid(cam.get_type())

    def test_spherical(self):
        assert is_spherical(EIntrinsic.CAMERA_SPHERICAL)
        assert not is_pinhole(EIntrinsic.CAMERA_SPHERICAL)

    def test_range_markers_are_not_models(self):
        assert not is_valid(EIntrinsic.PINHOLE_CAMERA_START)
        assert not is_valid(EIntrinsic.PINHOLE_CAMERA_END)


class TestPinholeProjection:
    """Tests for the undistorted pinhole model."""

    def test_optical_axis_projects_to_principal_point(self, pinhole):
        assert_allclose(pinhole.project([0, 0, 1]), [100, 50])

    def test_project_known_point(self, pinhole):
        # (0.5, -0.25) on the normalized plane
        assert_allclose(pinhole.project([1.0, -0.5, 2.0]), [180.0, 10.0])

    def test_project_points(self, pinhole):
        points = np.array([[0, 0, 1], [1.0, -0.5, 2.0]])
        assert_allclose(pinhole.project_points(points), [[100, 50], [180, 10]])

    def test_residual(self, pinhole):
        assert_allclose(pinhole.residual([0, 0, 1], [103, 46]), [3, -4])

    def test_intrinsic_matrix(self, pinhole):
        K = pinhole.K
        assert_allclose(K, [[160, 0, 100], [0, 160, 50], [0, 0, 1]])
        assert_allclose(pinhole.K_inv @ K, np.eye(3), atol=1e-12)

    def test_from_K(self, pinhole):
        rebuilt = PinholeIntrinsic.from_K(200, 100, pinhole.K)
        assert rebuilt == pinhole

    def test_focal_is_mean(self):
        cam = PinholeIntrinsic(10, 10, 100.0, 200.0, 5.0, 5.0)
        assert cam.focal == pytest.approx(150.0)
        assert cam.image_plane_to_camera_plane_error(3.0) == pytest.approx(0.02)

    def test_no_distortion(self, pinhole):
        assert not pinhole.have_disto()
        p = np.array([12.0, 34.0])
        assert_allclose(pinhole.get_undisto_pixel(p), p)
        assert_allclose(pinhole.get_disto_pixel(p), p)

    def test_bearing(self, pinhole):
        X = np.array([[1.0, -0.5, 2.0], [0.1, 0.2, 1.0]])
        pixels = pinhole.project_points(X).T
        rays = pinhole.bearing(pixels)
        assert rays.shape == (3, 2)
        assert_allclose(rays.T, X / np.linalg.norm(X, axis=1, keepdims=True), atol=1e-12)

    def test_bearing_single_pixel(self, pinhole):
        rays = pinhole.bearing([100.0, 50.0])
        assert rays.shape == (3, 1)
        assert_allclose(rays[:, 0], [0.0, 0.0, 1.0], atol=1e-12)

    def test_bearing_rejects_row_layout(self, pinhole):
        pixels = np.array([[10.0, 20.0], [30.0, 40.0], [50.0, 60.0]])
        with pytest.raises(ValueError, match="2xN"):
            pinhole.bearing(pixels)

    def test_projective_equivalent(self, pinhole):
        pose = Pose.from_euler([5, -10, 20], center=[0.5, 0.1, -3.0])
        P = pinhole.get_projective_equivalent(pose)
        X = np.array([0.2, -0.3, 1.5])
        x = P @ np.append(X, 1.0)
        assert_allclose(x[:2] / x[2], pinhole.project(pose(X)), atol=1e-9)

    def test_negative_dimensions_raise(self):
        with pytest.raises(ValueError):
            PinholeIntrinsic(-1, 10)


class TestAffineMapping:
    """cam_to_img and img_to_cam are inverse of each other for every model."""

    @pytest.mark.parametrize("camera", all_cameras(), ids=lambda c: c.TYPE_NAME)
    def test_round_trip(self, camera):
        for p in ([0.0, 0.0], [12.5, -3.0], [640.0, 480.0], [1999.0, 999.0]):
            assert_allclose(camera.cam_to_img(camera.img_to_cam(p)), p, atol=1e-9)
            assert_allclose(camera.img_to_cam(camera.cam_to_img(p)), p, atol=1e-9)


class TestSpherical:
    """Tests for the equirectangular model."""

    @pytest.fixture
    def camera(self):
        return IntrinsicSpherical(2000, 1000)

    def test_forward_axis_projects_to_center(self, camera):
        assert_allclose(camera.project([0, 0, 1]), [1000, 500])

    def test_right_axis(self, camera):
        # Quarter turn in longitude spans a quarter of the image size
        assert_allclose(camera.project([1, 0, 0]), [1500, 500], atol=1e-9)

    def test_bearing_inverts_projection(self, camera):
        X = np.array([[0.0, -1.0, 1.0], [1.0, 0.5, -2.0], [-0.3, 0.2, 0.9]])
        pixels = camera.project_points(X).T
        rays = camera.bearing(pixels)
        assert_allclose(rays.T, X / np.linalg.norm(X, axis=1, keepdims=True), atol=1e-12)

    def test_no_parameters(self, camera):
        assert camera.get_params() == []
        assert camera.num_params() == 0
        assert camera.update_from_params([])
        assert not camera.update_from_params([1.0])
        assert camera.subset_parameterization(IntrinsicParamType.NONE) == []
        assert not camera.have_disto()

    def test_error_scale(self, camera):
        assert camera.image_plane_to_camera_plane_error(20.0) == pytest.approx(0.01)

    def test_bearing_rejects_row_layout(self, camera):
        with pytest.raises(ValueError, match="2xN"):
            camera.bearing(np.zeros((4, 2)))

    def test_projective_equivalent_is_pose_matrix(self, camera):
        pose = Pose.from_euler([0, 10, 0], center=[1, 2, 3])
        assert_allclose(camera.get_projective_equivalent(pose), pose.as_matrix())


class TestParameters:
    """Tests for the optimizer interface."""

    @pytest.mark.parametrize("camera", all_cameras(), ids=lambda c: c.TYPE_NAME)
    def test_update_from_own_params(self, camera):
        params = camera.get_params()
        assert camera.update_from_params(params)
        assert camera.get_params() == params

    def test_parameter_layout(self, brown):
        assert brown.get_params() == [
            3200.0, 3180.0, 2000.0, 1500.0, -0.1, 0.01, 0.001, 0.0005, -0.0002
        ]
        assert brown.num_params() == 9

    def test_update_changes_state(self, brown):
        params = brown.get_params()
        params[0] = 3300.0
        params[8] = 0.0
        assert brown.update_from_params(params)
        assert brown.fx == 3300.0
        assert brown.disto[4] == 0.0
        assert brown.width == 4000

    def test_wrong_arity_is_rejected(self, brown):
        before = brown.get_params()
        assert not brown.update_from_params(before[:-1])
        assert not brown.update_from_params(before + [0.0])
        assert brown.get_params() == before

    def test_subset_focal_only_on_brown(self, brown):
        constant = brown.subset_parameterization(IntrinsicParamType.ADJUST_FOCAL_LENGTH)
        assert constant == [2, 3, 4, 5, 6, 7, 8]

    def test_subset_all(self, brown):
        assert brown.subset_parameterization(IntrinsicParamType.ADJUST_ALL) == []

    def test_subset_none_freezes_everything(self, brown):
        mask = IntrinsicParamType.NONE | IntrinsicParamType.ADJUST_ALL
        assert brown.subset_parameterization(mask) == list(range(9))

    def test_subset_distortion_on_pinhole(self, pinhole):
        constant = pinhole.subset_parameterization(IntrinsicParamType.ADJUST_DISTORTION)
        assert constant == [0, 1, 2, 3]

    def test_subset_principal_point_on_fisheye(self):
        cam = PinholeIntrinsicFisheye(10, 10, 5.0, 5.0, 5.0, 5.0)
        constant = cam.subset_parameterization(IntrinsicParamType.ADJUST_PRINCIPAL_POINT)
        assert constant == [0, 1, 4, 5, 6, 7]


class TestIdentity:
    """Tests for hashing, equality and cloning."""

    def test_hash_combine_is_order_sensitive(self):
        assert hash_combine(hash_combine(0, 1), 2) != hash_combine(hash_combine(0, 2), 1)

    def test_hash_fits_64_bits(self, brown):
        assert 0 <= brown.hash_value() < 2 ** 64

    def test_equal_cameras_hash_equal(self, pinhole):
        rebuilt = PinholeIntrinsic.from_K(200, 100, pinhole.K)
        assert rebuilt.hash_value() == pinhole.hash_value()

        updated = PinholeIntrinsic(200, 100)
        updated.update_from_params(pinhole.get_params())
        assert updated.hash_value() == pinhole.hash_value()

    def test_different_cameras_hash_differently(self, pinhole):
        other = PinholeIntrinsic(200, 100, 161.0, 160.0, 100.0, 50.0)
        assert other.hash_value() != pinhole.hash_value()

        k1 = PinholeIntrinsicRadialK1(200, 100, 160.0, 160.0, 100.0, 50.0, 0.0)
        assert k1.hash_value() != pinhole.hash_value()

    def test_clone_is_independent(self, brown):
        copy = brown.clone()
        assert copy == brown
        copy.update_from_params([1.0] * 9)
        assert copy != brown
        assert brown.fx == 3200.0


class TestSerializedFields:
    """Tests for to_dict / from_dict on each model."""

    @pytest.mark.parametrize("camera", all_cameras(), ids=lambda c: c.TYPE_NAME)
    def test_round_trip(self, camera):
        rebuilt = type(camera).from_dict(camera.to_dict())
        assert rebuilt == camera

    def test_pinhole_fields(self, pinhole):
        assert pinhole.to_dict() == {
            'width': 200,
            'height': 100,
            'focal_length': [160.0, 160.0],
            'principal_point': [100.0, 50.0],
        }

    def test_scalar_focal_length(self):
        data = {'width': 10, 'height': 10, 'focal_length': 7.0, 'principal_point': [5, 5]}
        cam = PinholeIntrinsic.from_dict(data)
        assert cam.fx == cam.fy == 7.0

    def test_wrong_distortion_count_raises(self, brown):
        data = brown.to_dict()
        data['disto_param'] = data['disto_param'][:4]
        with pytest.raises(ValueError, match="pinhole_brown_t2"):
            PinholeIntrinsicBrownT2.from_dict(data)

    def test_missing_distortion_raises(self):
        data = {'width': 10, 'height': 10, 'focal_length': [7.0, 7.0], 'principal_point': [5, 5]}
        with pytest.raises(ValueError, match="pinhole_fisheye"):
            PinholeIntrinsicFisheye.from_dict(data)

    def test_k3_layout(self):
        cam = PinholeIntrinsicRadialK3(10, 10, 1.0, 2.0, 3.0, 4.0, 0.1, 0.2, 0.3)
        assert cam.to_dict()['disto_param'] == [0.1, 0.2, 0.3]

    def test_from_dict_is_abstract(self):
        assert 'from_dict' in IntrinsicBase.__abstractmethods__
        assert isinstance(IntrinsicBase.__dict__['from_dict'], classmethod)


class TestImagePoints:
    """Tests for the pixel array layout helper."""

    def test_single_pixel(self):
        assert image_points([3.0, 4.0]).shape == (2, 1)

    def test_columns_kept(self):
        points = np.arange(8.0).reshape(2, 4)
        assert_allclose(image_points(points), points)

    @pytest.mark.parametrize("shape", [(3,), (4, 2), (2, 2, 2)])
    def test_bad_layout(self, shape):
        with pytest.raises(ValueError):
            image_points(np.zeros(shape))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
