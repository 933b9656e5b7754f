"""Removal of motion distortion from LiDAR scans and map building along a trajectory."""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np

from licalib.cloud import PointCloud
from licalib.imu import OdomData
from licalib.lidar_feature import LiDARFeature, LiDARIntrinsic
from licalib.lie import quat_to_matrix
from licalib.spline_common import SplineRangeError

PoseFunction = Callable[[float], Optional[np.ndarray]]

MAP_POINT_STEP = 3


def _rotation(value) -> np.ndarray:
    arr = np.asarray(value, dtype=float)
    if arr.shape == (4,):
        return quat_to_matrix(arr)
    if arr.shape == (3, 3):
        return arr
    raise ValueError(f"rotation must be a (w, x, y, z) quaternion or 3x3 matrix, got {arr.shape}")


def _pose(value) -> np.ndarray:
    arr = np.asarray(value, dtype=float)
    if arr.shape != (4, 4):
        raise ValueError(f"pose must have shape (4, 4), got {arr.shape}")
    return arr


class ScanUndistortion:
    """Moves every point of a scan into one target frame using the LiDAR pose at its time.

    ``pose_at`` maps a time to the 4x4 LiDAR-to-world pose, or to ``None`` when
    the trajectory does not cover that time. With ``apply_intrinsic`` set and a
    raw measurement cloud given, points are recomputed from the raw
    ``(laser id, angle, range)`` measurements through ``lidar_intrinsic``.
    """

    def __init__(
        self,
        pose_at: PoseFunction,
        lidar_intrinsic: LiDARIntrinsic | None = None,
        apply_intrinsic: bool = False,
    ):
        if apply_intrinsic and lidar_intrinsic is None:
            raise ValueError("apply_intrinsic needs a lidar_intrinsic")
        self._pose_at = pose_at
        self._intrinsic = lidar_intrinsic
        self._apply_intrinsic = bool(apply_intrinsic)
        self._scan_data: dict[float, LiDARFeature] = {}
        self._scan_data_in_map: dict[float, LiDARFeature] = {}
        self._map_cloud = PointCloud()

    def _pose_or_none(self, timestamp: float) -> np.ndarray | None:
        pose = self._pose_at(timestamp)
        return None if pose is None else _pose(pose)

    def undistort(
        self,
        scan_raw: PointCloud,
        q_g_to_target=None,
        p_target_in_g=None,
        correct_position: bool = False,
        scan_raw_measure: PointCloud | None = None,
    ) -> PointCloud:
        """Return ``scan_raw`` with each point expressed in the target frame.

        Invalid points stay invalid. Points whose time the trajectory does not
        cover are left at the origin with time zero.
        """
        r_g_to_target = np.eye(3) if q_g_to_target is None else _rotation(q_g_to_target)
        p_target = np.zeros(3) if p_target_in_g is None else np.asarray(p_target_in_g, dtype=float)
        if p_target.shape != (3,):
            raise ValueError(f"p_target_in_g must have shape (3,), got {p_target.shape}")
        if scan_raw_measure is not None and (
            (scan_raw_measure.width, scan_raw_measure.height)
            != (scan_raw.width, scan_raw.height)
        ):
            raise ValueError("scan_raw_measure grid differs from scan_raw grid")

        use_intrinsic = self._apply_intrinsic and scan_raw_measure is not None
        n = len(scan_raw)
        out_xyz = np.zeros((n, 3))
        out_t = np.zeros(n)

        invalid = ~scan_raw.valid_mask()
        out_xyz[invalid] = np.nan
        out_t[invalid] = scan_raw.timestamps[invalid]

        for i in np.flatnonzero(~invalid):
            stamp = float(scan_raw.timestamps[i])
            pose = self._pose_or_none(stamp)
            if pose is None:
                continue
            r_lk_to_l0 = r_g_to_target @ pose[:3, :3]
            if use_intrinsic:
                raw = scan_raw_measure.xyz[i]
                p_lk = self._intrinsic.get_calibrated(int(raw[0]), raw)
            else:
                p_lk = scan_raw.xyz[i]
            point = r_lk_to_l0 @ p_lk
            if correct_position:
                point = point + r_g_to_target @ (pose[:3, 3] - p_target)
            out_xyz[i] = point
            out_t[i] = stamp

        return PointCloud(out_xyz, out_t, scan_raw.width, scan_raw.height)

    def undistort_scans(self, scans, correct_position: bool = False) -> None:
        """Undistort each scan into the LiDAR frame at the scan's start time."""
        self._scan_data = {}
        for scan in scans:
            pose = self._pose_or_none(scan.timestamp)
            if pose is None:
                raise SplineRangeError(f"no LiDAR pose at scan time {scan.timestamp}")
            cloud = self.undistort(
                scan.full_features, pose[:3, :3].T, pose[:3, 3], correct_position
            )
            self._scan_data.setdefault(
                scan.timestamp, LiDARFeature(timestamp=scan.timestamp, full_features=cloud)
            )

    def undistort_scans_in_map(
        self, scans, correct_position: bool = False, use_raw_measure: bool = False
    ) -> None:
        """Move scans into the world frame and gather every third valid point into the map.

        Scans whose start time the trajectory does not cover are skipped.
        """
        self._scan_data_in_map = {}
        self._map_cloud = PointCloud()
        for scan in scans:
            if self._pose_or_none(scan.timestamp) is None:
                continue
            measure = scan.raw_data if use_raw_measure else None
            cloud = self.undistort(
                scan.full_features, None, None, correct_position, measure
            )
            self._scan_data_in_map.setdefault(
                scan.timestamp, LiDARFeature(timestamp=scan.timestamp, full_features=cloud)
            )
            picked = np.arange(0, len(cloud), MAP_POINT_STEP)
            picked = picked[~np.isnan(cloud.xyz[picked, 0])]
            self._map_cloud.extend(PointCloud(cloud.xyz[picked], cloud.timestamps[picked]))

    def transform_scans_with_odometry(self, odom_data) -> None:
        """Move the undistorted scans into the map frame with odometry poses of matching time."""
        self._scan_data_in_map = {}
        self._map_cloud = PointCloud()
        for odom in odom_data:
            if not isinstance(odom, OdomData):
                odom = OdomData(*odom)
            feature = self._scan_data.get(odom.timestamp)
            if feature is None:
                continue
            cloud = feature.full_features.transformed(odom.pose)
            self._scan_data_in_map.setdefault(
                odom.timestamp, LiDARFeature(timestamp=odom.timestamp, full_features=cloud)
            )
            self._map_cloud.extend(cloud)

    def scan_data(self) -> dict[float, LiDARFeature]:
        return dict(self._scan_data)

    def scan_data_in_map(self) -> dict[float, LiDARFeature]:
        return dict(self._scan_data_in_map)

    def map_cloud(self) -> PointCloud:
        return self._map_cloud.copy()