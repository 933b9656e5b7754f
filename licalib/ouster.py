"""Organising Ouster point clouds into fixed-size, timestamped scans."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

import numpy as np

from licalib.cloud import PointCloud
from licalib.lidar_feature import LiDARFeature

NUM_FIRING = 2048
MAX_DEPTH = 60.0


class OusterRingNo(IntEnum):
    RING128 = 128
    RING64 = 64
    RING32 = 32
    RING16 = 16


@dataclass
class OusterCloud:
    """An organised Ouster cloud stored row by row.

    ``t`` holds each point's time offset from the scan start in nanoseconds
    and ``ring`` its laser ring number.
    """

    xyz: np.ndarray
    t: np.ndarray
    ring: np.ndarray
    width: int
    height: int
    intensity: np.ndarray | None = None

    def __post_init__(self):
        n = self.width * self.height
        self.xyz = np.asarray(self.xyz, dtype=float)
        if self.xyz.shape != (n, 3):
            raise ValueError(f"xyz must have shape ({n}, 3), got {self.xyz.shape}")
        self.t = np.asarray(self.t).reshape(-1)
        self.ring = np.asarray(self.ring).reshape(-1)
        if self.t.shape != (n,) or self.ring.shape != (n,):
            raise ValueError(f"t and ring must each hold {n} values")
        if self.intensity is not None:
            self.intensity = np.asarray(self.intensity, dtype=float).reshape(-1)
            if self.intensity.shape != (n,):
                raise ValueError(f"intensity must hold {n} values")


class OusterLiDAR:
    """Picks evenly spaced rings of an Ouster cloud and attaches point times.

    The raw cloud holds ``(ring, time offset in ns, range in m)`` per point.
    """

    def __init__(self, ring_no):
        self.ring_no = OusterRingNo(ring_no)
        self.num_firing = NUM_FIRING

    def organize(self, cloud: OusterCloud, stamp: float) -> LiDARFeature:
        """Build a ``num_firing`` x ``ring_no`` scan from ``cloud`` taken at ``stamp``.

        Points farther than 60 m are left invalid (NaN) with the scan time.
        """
        rings = int(self.ring_no)
        ring_step = cloud.height // rings
        if ring_step < 1:
            raise ValueError(
                f"ring number {rings} too large for a cloud of height {cloud.height}"
            )
        if cloud.width < self.num_firing:
            raise ValueError(
                f"cloud width {cloud.width} smaller than {self.num_firing} firings"
            )

        rows = np.arange(rings) * ring_step
        cols = slice(0, self.num_firing)
        xyz = cloud.xyz.reshape(cloud.height, cloud.width, 3)[rows, cols]
        t = cloud.t.reshape(cloud.height, cloud.width)[rows, cols].astype(float)
        ring = cloud.ring.reshape(cloud.height, cloud.width)[rows, cols].astype(float)

        depth = np.sqrt(np.sum(xyz * xyz, axis=2))
        keep = ~(depth > MAX_DEPTH)

        shape = (rings, self.num_firing)
        out_xyz = np.full(shape + (3,), np.nan)
        out_xyz[keep] = xyz[keep]
        out_t = np.full(shape, float(stamp))
        out_t[keep] = stamp + t[keep] * 1e-9

        raw = np.full(shape + (3,), np.nan)
        raw[keep] = np.stack([ring, t, depth], axis=2)[keep]
        raw_t = np.full(shape, float(stamp))
        raw_t[keep] = t[keep] * 1e-9

        full = PointCloud(out_xyz.reshape(-1, 3), out_t.reshape(-1), self.num_firing, rings)
        raw_cloud = PointCloud(raw.reshape(-1, 3), raw_t.reshape(-1), self.num_firing, rings)
        return LiDARFeature(timestamp=float(stamp), full_features=full, raw_data=raw_cloud)