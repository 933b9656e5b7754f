"""Uniform B-spline over euclidean vectors."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from itertools import islice

import numpy as np

from licalib.spline_common import (
    SplineRangeError,
    compute_base_coefficients,
    compute_blending_matrix,
)


@dataclass(frozen=True)
class JacobianStruct:
    """Non-zero part of the derivative of a spline value with respect to its knots."""

    start_idx: int
    d_val_d_knot: np.ndarray


class RdSpline:
    """Uniform B-spline of a given order whose knots are vectors of dimension ``dim``."""

    def __init__(self, dim: int, order: int, time_interval: float, start_time: float = 0.0):
        if dim < 1:
            raise ValueError(f"dimension must be positive, got {dim}")
        if order < 1:
            raise ValueError(f"spline order must be positive, got {order}")
        if time_interval <= 0:
            raise ValueError(f"knot interval must be positive, got {time_interval}")
        self._dim = dim
        self._order = order
        self._dt = float(time_interval)
        self._start_t = float(start_time)
        self._knots: deque[np.ndarray] = deque()
        self._blending = compute_blending_matrix(order)
        self._base_coefficients = compute_base_coefficients(order)

    def _as_knot(self, knot) -> np.ndarray:
        arr = np.array(knot, dtype=float)
        if arr.shape != (self._dim,):
            raise ValueError(f"knot must have shape ({self._dim},), got {arr.shape}")
        return arr

    def compute_t_index(self, timestamp: float) -> tuple[float, int]:
        """Return ``(u, s)``: the fraction into the interval and its first knot."""
        if timestamp < self._start_t:
            raise SplineRangeError(
                f"timestamp {timestamp} before start time {self._start_t}"
            )
        st = timestamp - self._start_t
        s = int(math.floor(st / self._dt))
        u = (st - s * self._dt) / self._dt
        if s + self._order > len(self._knots):
            raise SplineRangeError(
                f"s {s} order {self._order} knots {len(self._knots)}; "
                f"timestamp: {timestamp}; start_t {self._start_t}"
            )
        return u, s

    def set_start_time(self, start_time: float) -> None:
        self._start_t = float(start_time)

    def max_time(self) -> float:
        return self._start_t + (len(self._knots) - self._order + 1) * self._dt

    def min_time(self) -> float:
        return self._start_t

    def gen_random_trajectory(self, n: int, static_init: bool = False, rng=None) -> None:
        """Append ``n`` random knots in [-5, 5]; with ``static_init`` the first N are equal."""
        rng = np.random.default_rng() if rng is None else rng
        if static_init:
            first = rng.uniform(-5.0, 5.0, self._dim)
            self._knots.extend(first.copy() for _ in range(self._order))
            remaining = n - self._order
        else:
            remaining = n
        self._knots.extend(rng.uniform(-5.0, 5.0, self._dim) for _ in range(max(remaining, 0)))

    def knots_push_back(self, knot) -> None:
        self._knots.append(self._as_knot(knot))

    def knots_pop_back(self) -> None:
        self._knots.pop()

    def knots_front(self) -> np.ndarray:
        if not self._knots:
            raise IndexError("spline has no knots")
        return self._knots[0].copy()

    def knots_pop_front(self) -> None:
        """Drop the first knot and move the start time one interval on."""
        self._knots.popleft()
        self._start_t += self._dt

    def resize(self, n: int) -> None:
        """Truncate or pad with zero knots to exactly ``n`` knots."""
        if n < 0:
            raise ValueError(f"knot count must be non-negative, got {n}")
        while len(self._knots) > n:
            self._knots.pop()
        self._knots.extend(np.zeros(self._dim) for _ in range(n - len(self._knots)))

    def get_knot(self, i: int) -> np.ndarray:
        return self._knots[i].copy()

    def set_knot(self, i: int, value) -> None:
        self._knots[i] = self._as_knot(value)

    def knots(self) -> list[np.ndarray]:
        return [knot.copy() for knot in self._knots]

    def time_interval(self) -> float:
        return self._dt

    def _base_coeffs_with_time(self, derivative: int, t: float) -> np.ndarray:
        res = np.zeros(self._order)
        if derivative < self._order:
            powers = t ** np.arange(self._order - derivative, dtype=float)
            res[derivative:] = self._base_coefficients[derivative, derivative:] * powers
        return res

    def evaluate(self, time: float, derivative: int = 0, with_jacobian: bool = False):
        """Value or time derivative at ``time``; with ``with_jacobian`` also the Jacobian."""
        if derivative < 0:
            raise ValueError(f"derivative must be non-negative, got {derivative}")
        u, s = self.compute_t_index(time)
        p = self._base_coeffs_with_time(derivative, u)
        coeff = (1.0 / self._dt) ** derivative * (self._blending @ p)
        block = np.stack(list(islice(self._knots, s, s + self._order)))
        value = coeff @ block
        if with_jacobian:
            return value, JacobianStruct(start_idx=s, d_val_d_knot=coeff)
        return value

    def velocity(self, time: float, with_jacobian: bool = False):
        return self.evaluate(time, 1, with_jacobian)

    def acceleration(self, time: float, with_jacobian: bool = False):
        return self.evaluate(time, 2, with_jacobian)