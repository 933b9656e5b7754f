"""Organised point clouds whose points carry a position and a timestamp."""

from __future__ import annotations

import numpy as np


class PointCloud:
    """A ``width`` x ``height`` grid of points stored row by row.

    Each point has a position ``xyz`` and a ``timestamp``. A point whose x
    coordinate is NaN is treated as invalid.
    """

    def __init__(self, xyz=None, timestamps=None, width=None, height=None):
        points = np.empty((0, 3)) if xyz is None else np.array(xyz, dtype=float)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError(f"xyz must have shape (n, 3), got {points.shape}")
        n = len(points)

        if timestamps is None:
            stamps = np.zeros(n)
        else:
            stamps = np.array(timestamps, dtype=float).reshape(-1)
        if stamps.shape != (n,):
            raise ValueError(f"expected {n} timestamps, got {stamps.shape[0]}")

        if height is None:
            height = 1 if width is None or width == n else (n // width if width else 0)
        if width is None:
            width = n // height if height else 0
        if width < 0 or height < 0 or width * height != n:
            raise ValueError(f"{width} x {height} grid does not hold {n} points")

        self.xyz = points
        self.timestamps = stamps
        self.width = int(width)
        self.height = int(height)

    @classmethod
    def filled(cls, width: int, height: int, timestamp: float = 0.0) -> "PointCloud":
        """A grid of invalid (NaN) points that all carry ``timestamp``."""
        if width < 0 or height < 0:
            raise ValueError(f"grid size must be non-negative, got {width} x {height}")
        n = width * height
        return cls(np.full((n, 3), np.nan), np.full(n, float(timestamp)), width, height)

    def __len__(self) -> int:
        return len(self.xyz)

    def _index(self, w: int, h: int) -> int:
        if not (0 <= w < self.width and 0 <= h < self.height):
            raise IndexError(f"({w}, {h}) outside {self.width} x {self.height} grid")
        return h * self.width + w

    def at(self, w: int, h: int) -> tuple[np.ndarray, float]:
        """Position and timestamp of the point in column ``w`` and row ``h``."""
        i = self._index(w, h)
        return self.xyz[i].copy(), float(self.timestamps[i])

    def set(self, w: int, h: int, xyz, timestamp: float) -> None:
        i = self._index(w, h)
        point = np.asarray(xyz, dtype=float)
        if point.shape != (3,):
            raise ValueError(f"point must have shape (3,), got {point.shape}")
        self.xyz[i] = point
        self.timestamps[i] = float(timestamp)

    def valid_mask(self) -> np.ndarray:
        """Boolean mask of the points whose x coordinate is not NaN."""
        return ~np.isnan(self.xyz[:, 0])

    def extend(self, other: "PointCloud") -> None:
        """Append the points of ``other``; the result is an unorganised cloud."""
        self.xyz = np.concatenate([self.xyz, other.xyz])
        self.timestamps = np.concatenate([self.timestamps, other.timestamps])
        self.width = len(self.xyz)
        self.height = 1

    def transformed(self, transform) -> "PointCloud":
        """A copy with every valid point moved by the 4x4 homogeneous ``transform``."""
        t = np.asarray(transform, dtype=float)
        if t.shape != (4, 4):
            raise ValueError(f"transform must have shape (4, 4), got {t.shape}")
        result = self.copy()
        mask = self.valid_mask()
        result.xyz[mask] = self.xyz[mask] @ t[:3, :3].T + t[:3, 3]
        return result

    def copy(self) -> "PointCloud":
        return PointCloud(self.xyz.copy(), self.timestamps.copy(), self.width, self.height)

    def clear(self) -> None:
        self.xyz = np.empty((0, 3))
        self.timestamps = np.empty(0)
        self.width = 0
        self.height = 0