"""Rotation helpers and Jacobians on SO(3), plus decoupled SE(3) and Sim(3) maps.

Rotations are 3x3 matrices, rigid and similarity transforms are 4x4 homogeneous
matrices, and quaternions are arrays ordered ``(w, x, y, z)``.
"""

from __future__ import annotations

import math

import numpy as np

EPSILON = 1e-10


def _vector(value, size: int, name: str) -> np.ndarray:
    arr = np.asarray(value, dtype=float)
    if arr.shape != (size,):
        raise ValueError(f"{name} must have shape ({size},), got {arr.shape}")
    return arr


def _matrix(value, rows: int, cols: int, name: str) -> np.ndarray:
    arr = np.asarray(value, dtype=float)
    if arr.shape != (rows, cols):
        raise ValueError(f"{name} must have shape ({rows}, {cols}), got {arr.shape}")
    return arr


def hat(v) -> np.ndarray:
    """Skew-symmetric matrix such that ``hat(v) @ w == cross(v, w)``."""
    x, y, z = _vector(v, 3, "vector")
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def quat_to_matrix(q) -> np.ndarray:
    """Rotation matrix of a quaternion ``(w, x, y, z)``; the quaternion is normalised first."""
    q = _vector(q, 4, "quaternion")
    norm = np.linalg.norm(q)
    if norm == 0.0:
        raise ValueError("quaternion must not be zero")
    w, x, y, z = q / norm
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
            [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
            [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
        ]
    )


def matrix_to_quat(rotation) -> np.ndarray:
    """Unit quaternion ``(w, x, y, z)`` with ``w >= 0`` for a rotation matrix."""
    r = _matrix(rotation, 3, 3, "rotation")
    diag_sum = float(r[0, 0] + r[1, 1] + r[2, 2])
    if diag_sum > 0:
        s = math.sqrt(diag_sum + 1.0) * 2
        q = np.array([s / 4, (r[2, 1] - r[1, 2]) / s, (r[0, 2] - r[2, 0]) / s, (r[1, 0] - r[0, 1]) / s])
    elif r[0, 0] > r[1, 1] and r[0, 0] > r[2, 2]:
        s = math.sqrt(1.0 + r[0, 0] - r[1, 1] - r[2, 2]) * 2
        q = np.array([(r[2, 1] - r[1, 2]) / s, s / 4, (r[0, 1] + r[1, 0]) / s, (r[0, 2] + r[2, 0]) / s])
    elif r[1, 1] > r[2, 2]:
        s = math.sqrt(1.0 + r[1, 1] - r[0, 0] - r[2, 2]) * 2
        q = np.array([(r[0, 2] - r[2, 0]) / s, (r[0, 1] + r[1, 0]) / s, s / 4, (r[1, 2] + r[2, 1]) / s])
    else:
        s = math.sqrt(1.0 + r[2, 2] - r[0, 0] - r[1, 1]) * 2
        q = np.array([(r[1, 0] - r[0, 1]) / s, (r[0, 2] + r[2, 0]) / s, (r[1, 2] + r[2, 1]) / s, s / 4])
    q /= np.linalg.norm(q)
    return -q if q[0] < 0 else q


def so3_exp(omega) -> np.ndarray:
    """Rotation matrix of a rotation vector (Rodrigues' formula)."""
    omega = _vector(omega, 3, "omega")
    theta2 = float(omega @ omega)
    k = hat(omega)
    if theta2 < EPSILON:
        return np.eye(3) + k + k @ k / 2
    theta = math.sqrt(theta2)
    return np.eye(3) + math.sin(theta) / theta * k + (1 - math.cos(theta)) / theta2 * (k @ k)


def so3_log(rotation) -> np.ndarray:
    """Rotation vector, of norm at most pi, of a rotation matrix."""
    w, x, y, z = matrix_to_quat(rotation)
    vec = np.array([x, y, z])
    n = float(np.linalg.norm(vec))
    if n * n < EPSILON * EPSILON:
        factor = 2.0 / w - 2.0 * n * n / (3.0 * w ** 3)
    else:
        factor = 2.0 * math.atan2(n, w) / n
    return factor * vec


def se3_logd(transform) -> np.ndarray:
    """Decoupled log of a rigid transform: ``(translation, log(R))``."""
    t = _matrix(transform, 4, 4, "transform")
    return np.concatenate([t[:3, 3], so3_log(t[:3, :3])])


def se3_expd(upsilon_omega) -> np.ndarray:
    """Rigid transform with rotation ``exp(omega)`` and translation ``upsilon``."""
    v = _vector(upsilon_omega, 6, "upsilon_omega")
    result = np.eye(4)
    result[:3, :3] = so3_exp(v[3:])
    result[:3, 3] = v[:3]
    return result


def _scale_and_rotation(s_r: np.ndarray) -> tuple[float, np.ndarray]:
    det = float(np.linalg.det(s_r))
    if det <= 0:
        raise ValueError("similarity block must have a positive determinant")
    scale = det ** (1.0 / 3.0)
    return scale, s_r / scale


def sim3_logd(transform) -> np.ndarray:
    """Decoupled log of a similarity transform: ``(translation, log(R), log(s))``."""
    t = _matrix(transform, 4, 4, "transform")
    scale, rot = _scale_and_rotation(t[:3, :3])
    return np.concatenate([t[:3, 3], so3_log(rot), [math.log(scale)]])


def sim3_expd(upsilon_omega_sigma) -> np.ndarray:
    """Similarity transform with block ``exp(sigma) exp(omega)`` and translation ``upsilon``."""
    v = _vector(upsilon_omega_sigma, 7, "upsilon_omega_sigma")
    result = np.eye(4)
    result[:3, :3] = math.exp(v[6]) * so3_exp(v[3:6])
    result[:3, 3] = v[:3]
    return result


def _hats(phi) -> tuple[float, np.ndarray, np.ndarray]:
    phi = _vector(phi, 3, "phi")
    phi_hat = hat(phi)
    return float(phi @ phi), phi_hat, phi_hat @ phi_hat


def right_jacobian_so3(phi) -> np.ndarray:
    """Jr with ``exp(phi + eps) ~ exp(phi) exp(Jr eps)``."""
    norm2, phi_hat, phi_hat2 = _hats(phi)
    j = np.eye(3)
    if norm2 > EPSILON:
        norm = math.sqrt(norm2)
        j -= phi_hat * (1 - math.cos(norm)) / norm2
        j += phi_hat2 * (norm - math.sin(norm)) / (norm2 * norm)
    else:
        j -= phi_hat / 2
        j += phi_hat2 / 6
    return j


def right_jacobian_inv_so3(phi) -> np.ndarray:
    """Inverse of Jr: ``log(exp(phi) exp(eps)) ~ phi + Jr^-1 eps``."""
    norm2, phi_hat, phi_hat2 = _hats(phi)
    j = np.eye(3) + phi_hat / 2
    if norm2 > EPSILON:
        norm = math.sqrt(norm2)
        j += phi_hat2 * (1 / norm2 - (1 + math.cos(norm)) / (2 * norm * math.sin(norm)))
    else:
        j += phi_hat2 / 12
    return j


def left_jacobian_so3(phi) -> np.ndarray:
    """Jl with ``exp(phi + eps) ~ exp(Jl eps) exp(phi)``."""
    norm2, phi_hat, phi_hat2 = _hats(phi)
    j = np.eye(3)
    if norm2 > EPSILON:
        norm = math.sqrt(norm2)
        j += phi_hat * (1 - math.cos(norm)) / norm2
        j += phi_hat2 * (norm - math.sin(norm)) / (norm2 * norm)
    else:
        j += phi_hat / 2
        j += phi_hat2 / 6
    return j


def left_jacobian_inv_so3(phi) -> np.ndarray:
    """Inverse of Jl: ``log(exp(eps) exp(phi)) ~ phi + Jl^-1 eps``."""
    norm2, phi_hat, phi_hat2 = _hats(phi)
    j = np.eye(3) - phi_hat / 2
    if norm2 > EPSILON:
        norm = math.sqrt(norm2)
        j += phi_hat2 * (1 / norm2 - (1 + math.cos(norm)) / (2 * norm * math.sin(norm)))
    else:
        j += phi_hat2 / 12
    return j


def right_jacobian_se3_decoupled(phi) -> np.ndarray:
    """6x6 right Jacobian of the decoupled SE(3) exponential."""
    phi = _vector(phi, 6, "phi")
    j = np.zeros((6, 6))
    omega = phi[3:]
    j[3:, 3:] = right_jacobian_so3(omega)
    j[:3, :3] = so3_exp(omega).T
    return j


def right_jacobian_inv_se3_decoupled(phi) -> np.ndarray:
    """6x6 inverse right Jacobian of the decoupled SE(3) exponential."""
    phi = _vector(phi, 6, "phi")
    j = np.zeros((6, 6))
    omega = phi[3:]
    j[3:, 3:] = right_jacobian_inv_so3(omega)
    j[:3, :3] = so3_exp(omega)
    return j


def right_jacobian_sim3_decoupled(phi) -> np.ndarray:
    """7x7 right Jacobian of the decoupled Sim(3) exponential."""
    phi = _vector(phi, 7, "phi")
    j = np.zeros((7, 7))
    omega = phi[3:6]
    j[3:6, 3:6] = right_jacobian_so3(omega)
    j[:3, :3] = math.exp(-phi[6]) * so3_exp(omega).T
    j[6, 6] = 1.0
    return j


def right_jacobian_inv_sim3_decoupled(phi) -> np.ndarray:
    """7x7 inverse right Jacobian of the decoupled Sim(3) exponential."""
    phi = _vector(phi, 7, "phi")
    j = np.zeros((7, 7))
    omega = phi[3:6]
    j[3:6, 3:6] = right_jacobian_inv_so3(omega)
    j[:3, :3] = math.exp(phi[6]) * so3_exp(omega)
    j[6, 6] = 1.0
    return j


def get_trans_between(trans_start, rot_start, trans_end, rot_end) -> np.ndarray:
    """Relative transform ``start^-1 * end`` from two poses given as translation and quaternion."""
    start = np.eye(4)
    start[:3, :3] = quat_to_matrix(rot_start)
    start[:3, 3] = _vector(trans_start, 3, "trans_start")
    end = np.eye(4)
    end[:3, :3] = quat_to_matrix(rot_end)
    end[:3, 3] = _vector(trans_end, 3, "trans_end")
    return np.linalg.inv(start) @ end