import math

import numpy as np
import pytest

from licalib.ouster import NUM_FIRING, OusterCloud, OusterLiDAR, OusterRingNo


def _cloud(height=32, far_column=None):
    width = NUM_FIRING
    n = width * height
    xyz = np.tile([1.0, 2.0, 2.0], (n, 1))
    w = np.tile(np.arange(width), height)
    h = np.repeat(np.arange(height), width)
    if far_column is not None:
        xyz[w == far_column] = [100.0, 0.0, 0.0]
    t = w * 1000
    return OusterCloud(xyz, t, h, width, height)


def test_output_grid_size():
    scan = OusterLiDAR(OusterRingNo.RING16).organize(_cloud(), 10.0)
    assert scan.full_features.width == NUM_FIRING
    assert scan.full_features.height == 16
    assert scan.raw_data.height == 16
    assert scan.timestamp == 10.0


def test_points_come_from_selected_rings():
    cloud = _cloud()
    scan = OusterLiDAR(16).organize(cloud, 10.0)
    for w, h in [(0, 0), (7, 3), (2047, 15)]:
        xyz, stamp = scan.full_features.at(w, h)
        np.testing.assert_allclose(xyz, cloud.xyz[2 * h * cloud.width + w])
        assert stamp == pytest.approx(10.0 + w * 1000 * 1e-9)
        raw, raw_t = scan.raw_data.at(w, h)
        np.testing.assert_allclose(raw, [2 * h, w * 1000, 3.0])
        assert raw_t == pytest.approx(w * 1000 * 1e-9)


def test_far_points_are_invalid():
    scan = OusterLiDAR(32).organize(_cloud(far_column=5), 4.0)
    xyz, stamp = scan.full_features.at(5, 1)
    assert all(math.isnan(v) for v in xyz)
    assert stamp == 4.0
    raw, raw_t = scan.raw_data.at(5, 1)
    assert math.isnan(raw[0])
    assert raw_t == 4.0
    assert scan.full_features.valid_mask().sum() == (NUM_FIRING - 1) * 32


def test_too_many_rings_raises():
    with pytest.raises(ValueError):
        OusterLiDAR(OusterRingNo.RING64).organize(_cloud(height=32), 0.0)


def test_narrow_cloud_raises():
    cloud = OusterCloud(np.zeros((16, 3)), np.zeros(16), np.zeros(16), 1, 16)
    with pytest.raises(ValueError):
        OusterLiDAR(16).organize(cloud, 0.0)


def test_bad_shapes_raise():
    with pytest.raises(ValueError):
        OusterCloud(np.zeros((3, 3)), np.zeros(4), np.zeros(4), 2, 2)