"""LiDAR scans, point correspondences and the per-laser intrinsic model."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import IntEnum

import numpy as np

from licalib.cloud import PointCloud

logger = logging.getLogger(__name__)

NUM_LASERS = 16
NUM_LASER_PARAMS = 6


class LidarModelType(IntEnum):
    VLP_16_PACKET = 0
    VLP_16_SIMU = 1
    VLP_16_POINTS = 2
    VLP_32E_POINTS = 3
    VLS_128_POINTS = 4
    HDL_32E_POINTS = 5
    OUSTER = 6
    OUSTER_16_POINTS = 7
    OUSTER_32_POINTS = 8
    OUSTER_64_POINTS = 9
    OUSTER_128_POINTS = 10
    HESAI_XT32 = 11
    LIVOX_HORIZON = 12
    RS_16 = 13
    RS_M1 = 14


class GeometryType(IntEnum):
    LINE = 0
    PLANE = 1


@dataclass
class LiDARFeature:
    """One scan: its start time, the latest point time, the points and raw measurements."""

    timestamp: float = 0.0
    time_max: float = 0.0
    full_features: PointCloud = field(default_factory=PointCloud)
    raw_data: PointCloud = field(default_factory=PointCloud)

    def clear(self) -> None:
        self.timestamp = 0.0
        self.time_max = 0.0
        self.full_features.clear()
        self.raw_data.clear()

    def copy(self) -> "LiDARFeature":
        return LiDARFeature(
            self.timestamp, self.time_max, self.full_features.copy(), self.raw_data.copy()
        )


@dataclass
class PointCorrespondence:
    """A scan point matched to a line or plane of the map."""

    t_point: float = 0.0
    t_map: float = 0.0
    point: np.ndarray = field(default_factory=lambda: np.zeros(3))
    point_raw: np.ndarray = field(default_factory=lambda: np.zeros(3))
    geo_type: GeometryType = GeometryType.PLANE
    geo_plane: np.ndarray = field(default_factory=lambda: np.zeros(4))
    geo_normal: np.ndarray = field(default_factory=lambda: np.zeros(3))
    geo_point: np.ndarray = field(default_factory=lambda: np.zeros(3))


# Vertical angles in degrees, in firing order.
_VERT_CORRECTION = (-15, 1, -13, 3, -11, 5, -9, 7, -7, 9, -5, 11, -3, 13, -1, 15)

# ring_case 0: rings in firing order; 1: decreasing vertical angle; 2: increasing.
_RING_MAP = (
    (0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15),
    (15, 13, 11, 9, 7, 5, 3, 1, 14, 12, 10, 8, 6, 4, 2, 0),
    (0, 2, 4, 6, 8, 10, 12, 14, 1, 3, 5, 7, 9, 11, 13, 15),
)

_RING_CASE_TEXT = (
    "lidar [ring] field in the order of firing time",
    "lidar [ring] in the order of decreasing vertical angle",
    "lidar [ring] in the order of incremental vertical angle",
)


def _check_ring_case(ring_case: int) -> int:
    if not 0 <= ring_case < len(_RING_MAP):
        raise ValueError(f"ring_case {ring_case} not in range [0, {len(_RING_MAP) - 1}]")
    return int(ring_case)


class LiDARIntrinsic:
    """Range scale and offset, position offsets and angle corrections of 16 lasers.

    Each laser has six parameters: distance scale, distance offset, vertical
    offset, horizontal offset, vertical angle (rad) and horizontal angle
    correction (rad). They are stored in firing order.
    """

    def __init__(self, ring_case: int = 0):
        self._ring_case = _check_ring_case(ring_case)
        self._params = np.zeros((NUM_LASERS, NUM_LASER_PARAMS))
        self._params[:, 0] = 1.0
        self._params[:, 4] = np.radians(_VERT_CORRECTION)

    @property
    def ring_case(self) -> int:
        return self._ring_case

    def set_ring_case(self, ring_case: int) -> None:
        self._ring_case = _check_ring_case(ring_case)
        logger.info(_RING_CASE_TEXT[self._ring_case])

    def _row(self, laser_id: int) -> int:
        if not 0 <= laser_id < NUM_LASERS:
            raise ValueError(f"laser_id {laser_id} not in range [0, {NUM_LASERS - 1}]")
        return _RING_MAP[self._ring_case][laser_id]

    def get_calibrated(self, laser_id: int, point_raw) -> np.ndarray:
        """Point in xyz from a raw ``(laser_id, angle, range)`` measurement."""
        return self.calibrate(self._params[self._row(laser_id)], point_raw)

    @staticmethod
    def calibrate(laser_param, point_raw) -> np.ndarray:
        """Apply six laser parameters to a raw ``(laser_id, angle, range)`` measurement."""
        params = np.asarray(laser_param, dtype=float)
        raw = np.asarray(point_raw, dtype=float)
        if params.shape != (NUM_LASER_PARAMS,):
            raise ValueError(f"laser_param must have shape (6,), got {params.shape}")
        if raw.shape != (3,):
            raise ValueError(f"point_raw must have shape (3,), got {raw.shape}")
        dist_scale, dist_offset, vert_offset, horiz_offset, vert_rad, delta_horiz = params
        rot = raw[1] - delta_horiz
        rho = dist_scale * raw[2] + dist_offset
        xy_dist = rho * math.cos(vert_rad)

        # Sensor frame: x back, y right, z up.
        x = xy_dist * math.sin(rot) + horiz_offset * math.cos(rot)
        y = xy_dist * math.cos(rot) + horiz_offset * math.sin(rot)
        z = rho * math.sin(vert_rad) + vert_offset
        return np.array([y, -x, z])

    def _check_idx(self, idx: int) -> None:
        if not 0 < idx < NUM_LASER_PARAMS:
            raise ValueError(f"parameter index {idx} not in range [1, {NUM_LASER_PARAMS - 1}]")

    def get_laser_param(self, laser_id: int, idx: int) -> float:
        self._check_idx(idx)
        return float(self._params[self._row(laser_id), idx])

    def set_laser_param(self, laser_id: int, idx: int, value: float) -> None:
        self._check_idx(idx)
        self._params[self._row(laser_id), idx] = float(value)

    def laser_params(self) -> np.ndarray:
        """Copy of the 16x6 parameter table, rows in firing order."""
        return self._params.copy()

    def format_laser_params(self) -> str:
        """Table of the parameters, lasers by decreasing vertical angle, in mm and degrees."""
        lines = [
            "dist_scale, dist_offset_mm, vert_offset_mm, horiz_offset_mm, "
            "vert_degree, delta_horiz_degree"
        ]
        for row in _RING_MAP[1]:
            v = self._params[row]
            values = (
                v[0],
                v[1] * 1000,
                v[2] * 1000,
                v[3] * 1000,
                math.degrees(v[4]),
                math.degrees(v[5]),
            )
            lines.append(", ".join(f"{x:15.5f}" for x in values))
        return "\n".join(lines) + "\n"