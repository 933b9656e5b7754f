"""Static IMU calibrations: accelerometer and gyroscope bias, scale and misalignment."""

from __future__ import annotations

import numpy as np


def _as_vector(value, size: int, name: str) -> np.ndarray:
    arr = np.array(value, dtype=float)
    if arr.shape != (size,):
        raise ValueError(f"{name} must have shape ({size},), got {arr.shape}")
    return arr


def _random_params(size: int, rng) -> np.ndarray:
    rng = np.random.default_rng() if rng is None else rng
    values = rng.uniform(-1.0, 1.0, size)
    values[:3] /= 10
    values[3:] /= 100
    return values


def _apply(bias: np.ndarray, scale: np.ndarray, raw_measurement) -> np.ndarray:
    raw = _as_vector(raw_measurement, 3, "raw_measurement")
    return raw + scale @ raw - bias


def _invert(bias: np.ndarray, scale: np.ndarray, calibrated_measurement) -> np.ndarray:
    cal = _as_vector(calibrated_measurement, 3, "calibrated_measurement")
    return np.linalg.solve(np.eye(3) + scale, cal + bias)


class CalibAccelBias:
    """Accelerometer calibration with 9 parameters ``[bx, by, bz, s1..s6]``.

    The scale matrix is lower triangular:
    ``[[s1, 0, 0], [s2, s4, 0], [s3, s5, s6]]``.
    """

    SIZE = 9

    def __init__(self, param=None):
        self._param = np.zeros(self.SIZE) if param is None else _as_vector(param, self.SIZE, "param")

    def param(self) -> np.ndarray:
        """Copy of the parameter vector."""
        return self._param.copy()

    def set_random(self, rng=None) -> None:
        """Bias in [-0.1, 0.1] and scale terms in [-0.01, 0.01] (for tests)."""
        self._param = _random_params(self.SIZE, rng)

    def __iadd__(self, inc):
        self._param = self._param + _as_vector(inc, self.SIZE, "increment")
        return self

    def bias_and_scale(self) -> tuple[np.ndarray, np.ndarray]:
        """Return the bias vector and the scale matrix."""
        p = self._param
        scale = np.zeros((3, 3))
        scale[:, 0] = p[3:6]
        scale[1, 1] = p[6]
        scale[2, 1] = p[7]
        scale[2, 2] = p[8]
        return p[:3].copy(), scale

    def calibrated(self, raw_measurement) -> np.ndarray:
        """Calibrated measurement ``(I + S) raw - b``."""
        bias, scale = self.bias_and_scale()
        return _apply(bias, scale, raw_measurement)

    def invert_calibration(self, calibrated_measurement) -> np.ndarray:
        """Raw measurement that calibrates to ``calibrated_measurement``."""
        bias, scale = self.bias_and_scale()
        return _invert(bias, scale, calibrated_measurement)


class CalibGyroBias:
    """Gyroscope calibration with 12 parameters ``[bx, by, bz, s1..s9]``.

    The scale matrix is full, filled column by column from ``s1..s9``.
    """

    SIZE = 12

    def __init__(self, param=None):
        self._param = np.zeros(self.SIZE) if param is None else _as_vector(param, self.SIZE, "param")

    def param(self) -> np.ndarray:
        """Copy of the parameter vector."""
        return self._param.copy()

    def set_random(self, rng=None) -> None:
        """Bias in [-0.1, 0.1] and scale terms in [-0.01, 0.01] (for tests)."""
        self._param = _random_params(self.SIZE, rng)

    def __iadd__(self, inc):
        self._param = self._param + _as_vector(inc, self.SIZE, "increment")
        return self

    def bias_and_scale(self) -> tuple[np.ndarray, np.ndarray]:
        """Return the bias vector and the scale matrix."""
        return self._param[:3].copy(), self._param[3:12].reshape(3, 3).T.copy()

    def calibrated(self, raw_measurement) -> np.ndarray:
        """Calibrated measurement ``(I + S) raw - b``."""
        bias, scale = self.bias_and_scale()
        return _apply(bias, scale, raw_measurement)

    def invert_calibration(self, calibrated_measurement) -> np.ndarray:
        """Raw measurement that calibrates to ``calibrated_measurement``."""
        bias, scale = self.bias_and_scale()
        return _invert(bias, scale, calibrated_measurement)