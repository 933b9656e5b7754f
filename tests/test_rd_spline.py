import numpy as np
import pytest

from licalib.rd_spline import RdSpline
from licalib.spline_common import SplineRangeError


def make_random_spline(n=10, seed=0, dt=0.25, start=2.0):
    spline = RdSpline(3, 4, dt, start)
    spline.gen_random_trajectory(n, rng=np.random.default_rng(seed))
    return spline


def test_time_range():
    spline = RdSpline(2, 4, 0.25, 2.0)
    spline.resize(6)
    assert spline.min_time() == 2.0
    assert spline.max_time() == pytest.approx(2.75)
    assert spline.time_interval() == 0.25


def test_compute_t_index_inside():
    spline = RdSpline(2, 4, 0.25, 2.0)
    spline.resize(6)
    u, s = spline.compute_t_index(2.625)
    assert s == 2
    assert u == pytest.approx(0.5)
    assert spline.compute_t_index(2.0) == (0.0, 0)


def test_compute_t_index_out_of_range():
    spline = RdSpline(2, 4, 0.25, 2.0)
    spline.resize(6)
    with pytest.raises(SplineRangeError):
        spline.compute_t_index(1.9)
    with pytest.raises(SplineRangeError):
        spline.compute_t_index(spline.max_time())


def test_constant_knots_give_constant_value():
    spline = RdSpline(3, 4, 0.1)
    value = np.array([1.0, -2.0, 3.5])
    for _ in range(8):
        spline.knots_push_back(value)
    for t in np.linspace(spline.min_time(), spline.max_time() - 1e-6, 17):
        np.testing.assert_allclose(spline.evaluate(t), value, atol=1e-12)
        np.testing.assert_allclose(spline.velocity(t), np.zeros(3), atol=1e-9)


def test_linear_knots_give_constant_velocity():
    dt = 0.2
    spline = RdSpline(3, 4, dt)
    slope = np.array([1.0, -2.0, 0.5])
    for i in range(9):
        spline.knots_push_back(slope * i)
    times = np.linspace(spline.min_time(), spline.max_time() - 1e-6, 11)
    for t in times:
        np.testing.assert_allclose(spline.velocity(t), slope / dt, rtol=1e-9)
        np.testing.assert_allclose(spline.acceleration(t), np.zeros(3), atol=1e-8)
    delta = spline.evaluate(times[-1]) - spline.evaluate(times[0])
    np.testing.assert_allclose(delta, slope * (times[-1] - times[0]) / dt, rtol=1e-9)


def test_velocity_matches_finite_difference():
    spline = make_random_spline()
    h = 1e-6
    for t in (2.3, 2.71, 3.05):
        numeric = (spline.evaluate(t + h) - spline.evaluate(t - h)) / (2 * h)
        np.testing.assert_allclose(spline.velocity(t), numeric, rtol=1e-5, atol=1e-5)


def test_acceleration_matches_finite_difference():
    spline = make_random_spline(seed=3)
    h = 1e-6
    for t in (2.3, 2.71, 3.05):
        numeric = (spline.velocity(t + h) - spline.velocity(t - h)) / (2 * h)
        np.testing.assert_allclose(spline.acceleration(t), numeric, rtol=1e-4, atol=1e-4)


def test_jacobian_weights_reproduce_value():
    spline = make_random_spline(seed=7)
    t = 2.9
    value, jac = spline.evaluate(t, with_jacobian=True)
    _, s = spline.compute_t_index(t)
    assert jac.start_idx == s
    knots = spline.knots()[jac.start_idx : jac.start_idx + 4]
    combined = sum(w * k for w, k in zip(jac.d_val_d_knot, knots))
    np.testing.assert_allclose(value, combined, atol=1e-12)
    assert jac.d_val_d_knot.sum() == pytest.approx(1.0)
    _, vel_jac = spline.velocity(t, with_jacobian=True)
    assert vel_jac.d_val_d_knot.sum() == pytest.approx(0.0, abs=1e-9)


def test_negative_derivative_rejected():
    spline = make_random_spline()
    with pytest.raises(ValueError):
        spline.evaluate(2.5, derivative=-1)


def test_push_pop_and_front():
    spline = RdSpline(2, 4, 0.5, 1.0)
    spline.knots_push_back([1.0, 2.0])
    spline.knots_push_back([3.0, 4.0])
    np.testing.assert_array_equal(spline.knots_front(), [1.0, 2.0])
    spline.knots_pop_back()
    assert len(spline.knots()) == 1
    spline.knots_pop_front()
    assert spline.knots() == []
    assert spline.min_time() == pytest.approx(1.0 + 0.5)


def test_pop_on_empty_raises_and_keeps_start():
    spline = RdSpline(2, 4, 0.5, 1.0)
    with pytest.raises(IndexError):
        spline.knots_pop_back()
    with pytest.raises(IndexError):
        spline.knots_pop_front()
    assert spline.min_time() == 1.0
    with pytest.raises(IndexError):
        spline.knots_front()


def test_wrong_knot_shape_rejected():
    spline = RdSpline(3, 4, 0.5)
    with pytest.raises(ValueError):
        spline.knots_push_back([1.0, 2.0])


def test_resize_pads_with_zeros_and_truncates():
    spline = RdSpline(2, 4, 0.5)
    spline.knots_push_back([5.0, 6.0])
    spline.resize(3)
    knots = spline.knots()
    assert len(knots) == 3
    np.testing.assert_array_equal(knots[0], [5.0, 6.0])
    np.testing.assert_array_equal(knots[2], np.zeros(2))
    spline.resize(1)
    assert len(spline.knots()) == 1
    np.testing.assert_array_equal(spline.get_knot(0), [5.0, 6.0])


def test_set_and_get_knot_round_trip():
    spline = RdSpline(3, 4, 0.5)
    spline.resize(4)
    spline.set_knot(2, [1.5, -0.5, 2.0])
    np.testing.assert_array_equal(spline.get_knot(2), [1.5, -0.5, 2.0])
    copy = spline.get_knot(2)
    copy[0] = 100.0
    np.testing.assert_array_equal(spline.get_knot(2), [1.5, -0.5, 2.0])


def test_random_trajectory_static_init():
    spline = RdSpline(3, 4, 0.1)
    spline.gen_random_trajectory(9, static_init=True, rng=np.random.default_rng(1))
    knots = spline.knots()
    assert len(knots) == 9
    for knot in knots[1:4]:
        np.testing.assert_array_equal(knot, knots[0])
    assert all(np.all(np.abs(k) <= 5.0) for k in knots)


def test_set_start_time_shifts_range():
    spline = make_random_spline(start=2.0)
    span = spline.max_time() - spline.min_time()
    spline.set_start_time(7.0)
    assert spline.min_time() == 7.0
    assert spline.max_time() - spline.min_time() == pytest.approx(span)


def test_invalid_construction_rejected():
    with pytest.raises(ValueError):
        RdSpline(3, 4, 0.0)
    with pytest.raises(ValueError):
        RdSpline(0, 4, 0.1)