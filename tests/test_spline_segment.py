import math

import pytest
from hypothesis import given
from hypothesis import strategies as st

from licalib.spline_common import SplineRangeError
from licalib.spline_segment import SplineMeta, SplineSegmentMeta


@pytest.fixture
def segment():
    return SplineSegmentMeta(t0=1.0, dt=0.5, n=6, order=4)


def test_time_range(segment):
    assert segment.min_time() == 1.0
    assert segment.max_time() == pytest.approx(2.5)
    assert segment.num_parameters() == 6


def test_index_at_start(segment):
    assert segment.compute_t_index(1.0) == (0.0, 0)


def test_index_inside(segment):
    u, s = segment.compute_t_index(1.75)
    assert s == 1
    assert u == pytest.approx(0.5)


def test_index_at_max_time_is_pulled_inside(segment):
    u, s = segment.compute_t_index(segment.max_time())
    assert s == segment.n - segment.order
    assert u == pytest.approx(1.0)
    assert u < 1.0


def test_index_just_before_start_is_pulled_inside(segment):
    u, s = segment.compute_t_index(1.0 - 5e-10)
    assert s == 0
    assert 0.0 <= u < 1e-6


def test_index_outside_is_none(segment):
    assert segment.compute_t_index(3.0) is None
    assert segment.compute_t_index(1.0 - 1e-6) is None


@given(st.floats(min_value=1.0, max_value=2.5, exclude_max=True))
def test_index_reconstructs_time(t):
    seg = SplineSegmentMeta(t0=1.0, dt=0.5, n=6, order=4)
    u, s = seg.compute_t_index(t)
    assert 0.0 <= u < 1.0
    assert 0 <= s <= seg.n - seg.order
    assert math.isclose(seg.t0 + (s + u) * seg.dt, t, abs_tol=1e-9)


def test_spline_meta_parameters_and_second_segment():
    first = SplineSegmentMeta(t0=0.0, dt=0.5, n=6)
    second = SplineSegmentMeta(t0=10.0, dt=0.5, n=5)
    meta = SplineMeta([first, second])
    assert meta.num_parameters() == first.n + second.n
    idx, u = meta.compute_spline_index(10.75)
    assert idx == 7
    assert u == pytest.approx(0.5)


def test_spline_meta_first_segment():
    first = SplineSegmentMeta(t0=0.0, dt=0.5, n=6)
    second = SplineSegmentMeta(t0=10.0, dt=0.5, n=5)
    meta = SplineMeta([first, second])
    idx, u = meta.compute_spline_index(0.0)
    assert (idx, u) == (0, 0.0)


def test_spline_meta_out_of_range_raises():
    meta = SplineMeta([SplineSegmentMeta(t0=0.0, dt=0.5, n=6)])
    with pytest.raises(SplineRangeError):
        meta.compute_spline_index(5.0)


def test_spline_meta_without_segments_raises():
    with pytest.raises(SplineRangeError):
        SplineMeta().compute_spline_index(0.0)