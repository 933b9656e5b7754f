"""Blending and base-coefficient matrices for uniform B-splines."""

from __future__ import annotations

import math

import numpy as np

SPLINE_ORDER = 4


class SplineRangeError(ValueError):
    """Raised when a time or index lies outside the range a spline covers."""


def c_n_k(n: int, k: int) -> int:
    """Return the binomial coefficient "n choose k", or 0 when k > n."""
    if n < 0 or k < 0:
        raise ValueError(f"binomial coefficient needs n, k >= 0, got {n}, {k}")
    if k > n:
        return 0
    return math.comb(n, k)


def compute_blending_matrix(order: int, cumulative: bool = False) -> np.ndarray:
    """Blending matrix of a uniform B-spline of the given order.

    With ``cumulative`` set, row ``i`` holds the sum of rows ``i..order-1``.
    """
    if order < 1:
        raise ValueError(f"spline order must be positive, got {order}")

    m = np.zeros((order, order))
    for i in range(order):
        for j in range(order):
            total = sum(
                (-1.0) ** (s - j)
                * c_n_k(order, s - j)
                * (order - s - 1.0) ** (order - 1.0 - i)
                for s in range(j, order)
            )
            m[j, i] = c_n_k(order - 1, order - 1 - i) * total

    if cumulative:
        m = np.cumsum(m[::-1], axis=0)[::-1]

    return m / math.factorial(order - 1)


def compute_base_coefficients(order: int) -> np.ndarray:
    """Rows hold the derivative coefficients of the polynomial [1, t, ..., t^(N-1)]."""
    if order < 1:
        raise ValueError(f"spline order must be positive, got {order}")

    coefficients = np.zeros((order, order))
    coefficients[0, :] = 1.0
    for n in range(1, order):
        idx = np.arange(n - 1, order)
        coefficients[n, n - 1 :] = (idx - n + 1) * coefficients[n - 1, n - 1 :]
    return coefficients