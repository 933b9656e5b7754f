"""IMU, pose and odometry samples, IMU intrinsics and estimator options."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

from licalib.lie import quat_to_matrix

GRAVITY_NORM = -9.797


def _vec(value, size: int, name: str) -> np.ndarray:
    arr = np.array(value, dtype=float)
    if arr.shape != (size,):
        raise ValueError(f"{name} must have shape ({size},), got {arr.shape}")
    return arr


def _identity_quat() -> np.ndarray:
    return np.array([1.0, 0.0, 0.0, 0.0])


@dataclass
class IMUData:
    """Gyroscope and accelerometer sample; orientation is a ``(w, x, y, z)`` quaternion."""

    timestamp: float
    gyro: np.ndarray
    accel: np.ndarray
    orientation: np.ndarray = field(default_factory=_identity_quat)

    def __post_init__(self):
        self.gyro = _vec(self.gyro, 3, "gyro")
        self.accel = _vec(self.accel, 3, "accel")
        self.orientation = _vec(self.orientation, 4, "orientation")


@dataclass
class PoseData:
    """Timestamped position and ``(w, x, y, z)`` orientation."""

    timestamp: float = 0.0
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: np.ndarray = field(default_factory=_identity_quat)

    def __post_init__(self):
        self.position = _vec(self.position, 3, "position")
        self.orientation = _vec(self.orientation, 4, "orientation")


@dataclass
class OdomData:
    """Timestamped 4x4 homogeneous pose."""

    timestamp: float = 0.0
    pose: np.ndarray = field(default_factory=lambda: np.eye(4))

    def __post_init__(self):
        self.pose = np.array(self.pose, dtype=float)
        if self.pose.shape != (4, 4):
            raise ValueError(f"pose must have shape (4, 4), got {self.pose.shape}")


@dataclass
class TrajectoryEstimatorOptions:
    """Which parts of the problem the trajectory estimator keeps fixed."""

    lock_traj: bool = False
    lock_P: bool = True
    lock_R: bool = True
    lock_t_offset: bool = True
    t_offset_padding: float = 0.02
    lock_ab: bool = True
    lock_wb: bool = True
    lock_g: bool = True
    lock_LiDAR_intrinsic: bool = True
    lock_IMU_intrinsic: bool = True


def euler_angles_xyz(rotation) -> np.ndarray:
    """Angles ``(a, b, c)`` with ``R = Rx(a) Ry(b) Rz(c)`` and ``a`` in ``[0, pi]``."""
    m = np.asarray(rotation, dtype=float)
    if m.shape != (3, 3):
        raise ValueError(f"rotation must have shape (3, 3), got {m.shape}")
    a = math.atan2(m[1, 2], m[2, 2])
    c2 = math.hypot(m[0, 0], m[0, 1])
    if a > 0:
        a -= math.pi
        b = math.atan2(-m[0, 2], -c2)
    else:
        b = math.atan2(-m[0, 2], c2)
    s1, c1 = math.sin(a), math.cos(a)
    c = math.atan2(s1 * m[2, 0] - c1 * m[1, 0], c1 * m[1, 1] - s1 * m[2, 1])
    return -np.array([a, b, c])


@dataclass
class IMUIntrinsic:
    """Scale and misalignment of gyroscope and accelerometer, g-sensitivity and axis rotation.

    ``mw_vec`` and ``ma_vec`` hold three scales then three misalignments;
    ``aw_vec`` holds the nine g-sensitivity terms; ``q_w_to_a`` is ``(w, x, y, z)``.
    """

    mw_vec: np.ndarray = field(default_factory=lambda: np.array([1.0, 1.0, 1.0, 0.0, 0.0, 0.0]))
    ma_vec: np.ndarray = field(default_factory=lambda: np.array([1.0, 1.0, 1.0, 0.0, 0.0, 0.0]))
    aw_vec: np.ndarray = field(default_factory=lambda: np.zeros(9))
    q_w_to_a: np.ndarray = field(default_factory=_identity_quat)

    def __post_init__(self):
        self.mw_vec = _vec(self.mw_vec, 6, "mw_vec")
        self.ma_vec = _vec(self.ma_vec, 6, "ma_vec")
        self.aw_vec = _vec(self.aw_vec, 9, "aw_vec")
        self.q_w_to_a = _vec(self.q_w_to_a, 4, "q_w_to_a")

    @staticmethod
    def get_calibrated(mw, aw, ma, q_w_to_a, w_b, a_b) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(Mw (q w_b) + Aw a_b, Ma a_b)``."""
        mw = np.asarray(mw, dtype=float)
        aw = np.asarray(aw, dtype=float)
        ma = np.asarray(ma, dtype=float)
        for name, mat in (("mw", mw), ("aw", aw), ("ma", ma)):
            if mat.shape != (3, 3):
                raise ValueError(f"{name} must have shape (3, 3), got {mat.shape}")
        w = _vec(w_b, 3, "w_b")
        a = _vec(a_b, 3, "a_b")
        gyro = mw @ (quat_to_matrix(q_w_to_a) @ w) + aw @ a
        return gyro, ma @ a

    def format_params(self) -> str:
        """Readable listing of the parameters and of the axis rotation in degrees."""

        def row(label: str, values) -> str:
            return label + "," + ",".join(f"{v:.6f}" for v in values)

        rot = quat_to_matrix(self.q_w_to_a)
        euler_w_to_a = np.degrees(euler_angles_xyz(rot))
        euler_a_to_w = np.degrees(euler_angles_xyz(rot.T))
        lines = [
            row("Sw", self.mw_vec[:3]),
            row("Mw", self.mw_vec[3:]),
            row("Sa", self.ma_vec[:3]),
            row("Ma", self.ma_vec[3:]),
            row("Aw", self.aw_vec),
            "euler_WtoA: " + " ".join(f"{v:g}" for v in euler_w_to_a),
            "euler_AtoW: " + " ".join(f"{v:g}" for v in euler_a_to_w),
        ]
        return "\n".join(lines) + "\n"