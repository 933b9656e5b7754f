import numpy as np
import pytest
from hypothesis import given
from hypothesis import strategies as st

from licalib.cloud import PointCloud
from licalib.surfel import (
    COLOR_LIST,
    SurfelAssociation,
    check_plane_type,
    fit_plane,
    point_to_plane_distance,
    voxel_leaves,
)


def _plane_leaf(shift=0.0):
    xs, ys = np.meshgrid(np.arange(10) * 0.1, np.arange(10) * 0.1)
    z = 1.0 + 0.01 * ((np.arange(100) % 3) - 1)
    xyz = np.column_stack([xs.ravel() + shift, ys.ravel(), z])
    return PointCloud(xyz, np.arange(100) * 0.01 + 1.0)


def _scan(height, width=20, stamp=1.0):
    rows = []
    stamps = []
    for h in range(height):
        for w in range(width):
            rows.append([0.05 + 0.04 * w, 0.05 + 0.07 * h, 1.0])
            stamps.append(stamp + 0.01 * w + 0.001 * h)
    return PointCloud(np.array(rows), np.array(stamps) if stamp else np.zeros(len(rows)), width, height)


def _associated(height, stamp=1.0, measure=False):
    assoc = SurfelAssociation()
    assoc.set_surfel_map([_plane_leaf()])
    scan = _scan(height, stamp=stamp)
    raw_measure = PointCloud(scan.xyz * 2, scan.timestamps, scan.width, scan.height) if measure else None
    assoc.get_association(scan, scan, raw_measure, 2)
    return assoc, scan


def test_voxel_leaves_split_and_drop_nan():
    xyz = np.array([[0.1, 0.1, 0.1], [0.2, 0.2, 0.2], [1.5, 0.1, 0.1], [np.nan, 0, 0]])
    leaves = voxel_leaves(PointCloud(xyz, np.arange(4.0)), 1.0)
    assert len(leaves) == 2
    assert sorted(len(leaf) for leaf in leaves) == [1, 2]


def test_voxel_leaves_bad_resolution():
    with pytest.raises(ValueError):
        voxel_leaves(PointCloud(np.zeros((1, 3))), 0.0)


def test_check_plane_type_line_rejected():
    assert check_plane_type([1.0, 0.01, 0.01], np.eye(3), 0.7) == -1


def test_check_plane_type_picks_axis():
    vecs = np.array([[1.0, 0.0, 0.1], [0.0, 1.0, 0.7], [0.0, 0.0, 0.2]])
    assert check_plane_type([1.0, 1.0, 0.01], vecs, 0.7) == 0


def test_fit_plane_recovers_plane():
    leaf = _plane_leaf()
    coeffs, inliers = fit_plane(leaf.xyz, np.random.default_rng(1))
    assert np.linalg.norm(coeffs[:3]) == pytest.approx(1.0)
    assert abs(coeffs[2]) == pytest.approx(1.0, abs=1e-3)
    assert len(inliers) == len(leaf)
    for p in leaf.xyz:
        assert point_to_plane_distance(p, coeffs) < 0.05


def test_fit_plane_too_few_points():
    assert fit_plane(_plane_leaf().xyz[:15], np.random.default_rng(1)) is None


@given(st.floats(-10, 10), st.floats(-10, 10), st.floats(-10, 10))
def test_point_to_plane_distance_along_normal(x, y, k):
    plane = np.array([0.0, 0.0, 1.0, -2.0])
    assert point_to_plane_distance([x, y, 2.0 + k], plane) == pytest.approx(abs(k))


def test_set_surfel_map_builds_plane():
    assoc = SurfelAssociation()
    assoc.set_surfel_map([_plane_leaf()], timestamp=3.5)
    planes = assoc.surfel_planes()
    assert len(planes) == 1
    assert assoc.map_timestamp() == 3.5
    plane = planes[0]
    np.testing.assert_allclose(plane.box_min, plane.cloud.xyz.min(axis=0))
    np.testing.assert_allclose(plane.pi, -plane.p4[3] * plane.p4[:3])


def test_set_surfel_map_rejects_line_and_small_leaves():
    line = np.column_stack(
        [np.arange(20) * 0.01, 0.001 * (np.arange(20) % 2), 0.001 * (np.arange(20) % 3)]
    )
    assoc = SurfelAssociation()
    assoc.set_surfel_map([line, _plane_leaf().xyz[:9]])
    assert assoc.surfel_planes() == []


def test_surfels_map_colours():
    assoc = SurfelAssociation()
    assoc.set_surfel_map([_plane_leaf(), _plane_leaf(shift=5.0)])
    xyz, rgb = assoc.surfels_map()
    planes = assoc.surfel_planes()
    n0 = len(planes[0].cloud_inlier)
    assert len(xyz) == n0 + len(planes[1].cloud_inlier)
    assert set(rgb[:n0]) == {COLOR_LIST[0]}
    assert set(rgb[n0:]) == {COLOR_LIST[1]}


def test_association_chronological_and_from_scan():
    assoc, scan = _associated(2, measure=True)
    assoc.average_time_down_sample(1)
    points = assoc.surfel_points()
    assert len(points) == 2 * scan.height
    stamps = [p.timestamp for p in points]
    assert stamps == sorted(stamps)
    for p in points:
        assert p.plane_id == 0
        assert any(np.allclose(p.point, q) for q in scan.xyz)
        np.testing.assert_allclose(p.point_raw, 2 * p.point)
        np.testing.assert_allclose(p.point_in_map, p.point)


def test_zero_timestamps_skipped():
    assoc, _ = _associated(2, stamp=0.0)
    assoc.average_time_down_sample(1)
    assert assoc.surfel_points() == []


def test_time_down_sample_step():
    assoc, _ = _associated(2)
    assoc.average_time_down_sample(2)
    full, _ = _associated(2)
    full.average_time_down_sample(1)
    assert [p.timestamp for p in assoc.surfel_points()] == [
        p.timestamp for p in full.surfel_points()[::2]
    ]


def test_average_down_sample_needs_enough_points():
    assoc, _ = _associated(2)
    assoc.average_down_sample(5)
    assert assoc.surfel_points() == []


def test_average_down_sample_step_one_keeps_all():
    assoc, scan = _associated(12)
    assoc.average_down_sample(2 * scan.height)
    assert len(assoc.surfel_points()) == 2 * scan.height


def test_random_down_sample_count():
    assoc, scan = _associated(12)
    assoc.random_down_sample(5, np.random.default_rng(3))
    points = assoc.surfel_points()
    assert len(points) == 5
    full, _ = _associated(12)
    full.average_time_down_sample(1)
    known = {p.timestamp for p in full.surfel_points()}
    assert all(p.timestamp in known for p in points)


def test_mismatched_grids_raise():
    assoc = SurfelAssociation()
    assoc.set_surfel_map([_plane_leaf()])
    with pytest.raises(ValueError):
        assoc.get_association(_scan(2), _scan(3))