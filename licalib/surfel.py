"""Planar surfels from voxelised maps and association of scan points to them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from licalib.cloud import PointCloud

logger = logging.getLogger(__name__)

MIN_LEAF_POINTS = 10
MIN_PLANE_INLIERS = 20
PLANE_DISTANCE_THRESHOLD = 0.05
RANSAC_MAX_ITERATIONS = 50
MIN_COVAR_EIGVALUE_MULT = 0.01
MIN_SURFEL_POINTS = 20
COLOR_LIST = (0xFF0000, 0xFF00FF, 0x436EEE, 0xBF3EFF, 0xB4EEB4, 0xFFE7BA)


@dataclass
class SurfelPoint:
    """A scan point tied to a surfel plane."""

    timestamp: float
    point: np.ndarray
    point_in_map: np.ndarray
    plane_id: int
    point_raw: np.ndarray = field(default_factory=lambda: np.zeros(3))


@dataclass
class SurfelPlane:
    """Plane ``p4`` (unit normal and offset), its closest point ``pi`` and bounding box."""

    p4: np.ndarray
    pi: np.ndarray
    box_min: np.ndarray
    box_max: np.ndarray
    cloud: PointCloud
    cloud_inlier: PointCloud


def _as_points(points) -> np.ndarray:
    if isinstance(points, PointCloud):
        return points.xyz[points.valid_mask()]
    arr = np.asarray(points, dtype=float)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"points must have shape (n, 3), got {arr.shape}")
    return arr


def voxel_leaves(cloud: PointCloud, resolution: float) -> list[PointCloud]:
    """Split the valid points of ``cloud`` into cubic voxels of edge ``resolution``."""
    if resolution <= 0:
        raise ValueError(f"resolution must be positive, got {resolution}")
    mask = cloud.valid_mask()
    xyz = cloud.xyz[mask]
    stamps = cloud.timestamps[mask]
    if len(xyz) == 0:
        return []
    keys = np.floor(xyz / resolution).astype(np.int64)
    unique, inverse = np.unique(keys, axis=0, return_inverse=True)
    inverse = inverse.reshape(-1)
    return [
        PointCloud(xyz[inverse == i], stamps[inverse == i]) for i in range(len(unique))
    ]


def _leaf_eigen(points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    cov = np.cov(points, rowvar=False)
    evals, evecs = np.linalg.eigh(cov)
    evals = np.maximum(evals, MIN_COVAR_EIGVALUE_MULT * evals.max())
    return evals, evecs


def check_plane_type(eigen_value, eigen_vector, p_lambda: float) -> int:
    """Return the plane type (0, 1 or 2) of a voxel's covariance, or -1 if not planar."""
    vals = np.asarray(eigen_value, dtype=float)
    vecs = np.asarray(eigen_vector, dtype=float)
    order = np.argsort(-vals, kind="stable")
    s = vals[order]
    p = 2 * (s[1] - s[2]) / (s[2] + s[1] + s[0])
    if p < p_lambda:
        return -1
    normal = np.abs(vecs[:, order[2]])
    return int(np.argsort(-normal, kind="stable")[2])


def fit_plane(points, rng=None):
    """RANSAC plane fit; return ``(coeffs, inlier_indices)`` or ``None``.

    ``coeffs`` is ``(nx, ny, nz, d)`` with a unit normal, refined on the inliers.
    """
    pts = _as_points(points)
    rng = np.random.default_rng() if rng is None else rng
    n = len(pts)
    if n < 3:
        return None

    best = None
    for _ in range(RANSAC_MAX_ITERATIONS):
        sample = pts[rng.choice(n, 3, replace=False)]
        normal = np.cross(sample[1] - sample[0], sample[2] - sample[0])
        norm = np.linalg.norm(normal)
        if norm < 1e-12:
            continue
        normal /= norm
        d = -normal @ sample[0]
        inliers = np.flatnonzero(np.abs(pts @ normal + d) < PLANE_DISTANCE_THRESHOLD)
        if best is None or len(inliers) > len(best):
            best = inliers

    if best is None or len(best) < MIN_PLANE_INLIERS:
        return None
    inlier_pts = pts[best]
    centroid = inlier_pts.mean(axis=0)
    _, _, vt = np.linalg.svd(inlier_pts - centroid)
    normal = vt[-1]
    return np.append(normal, -normal @ centroid), best


def point_to_plane_distance(pt, plane_coeff) -> float:
    """Absolute distance of ``pt`` from the plane ``(n, d)``."""
    p = np.asarray(pt, dtype=float)
    c = np.asarray(plane_coeff, dtype=float)
    return float(abs(p @ c[:3] + c[3]))


class SurfelAssociation:
    """Builds planar surfels from voxel leaves and associates scan points with them."""

    def __init__(self, associated_radius: float = 0.05, plane_lambda: float = 0.7):
        self._radius = float(associated_radius)
        self._p_lambda = float(plane_lambda)
        self._map_timestamp = 0.0
        self._rng = np.random.default_rng(0)
        self._planes: list[SurfelPlane] = []
        self._map_xyz = np.empty((0, 3))
        self._map_rgb = np.empty(0, dtype=np.int64)
        self._per_surfel: list[list[SurfelPoint]] = []
        self._all: list[SurfelPoint] = []
        self._downsampled: list[SurfelPoint] = []

    def set_plane_lambda(self, plane_lambda: float) -> None:
        self._p_lambda = float(plane_lambda)

    def _clear(self) -> None:
        self._planes = []
        self._per_surfel = []
        self._downsampled = []
        self._map_xyz = np.empty((0, 3))
        self._map_rgb = np.empty(0, dtype=np.int64)
        self._all = []

    def set_surfel_map(self, leaves, timestamp: float = 0.0) -> None:
        """Replace the surfels with the planar ones found among ``leaves``."""
        self._clear()
        self._map_timestamp = float(timestamp)
        counter = [0, 0, 0]
        for leaf in leaves:
            cloud = leaf if isinstance(leaf, PointCloud) else PointCloud(_as_points(leaf))
            mask = cloud.valid_mask()
            pts = cloud.xyz[mask]
            stamps = cloud.timestamps[mask]
            if len(pts) < MIN_LEAF_POINTS:
                continue
            evals, evecs = _leaf_eigen(pts)
            plane_type = check_plane_type(evals, evecs, self._p_lambda)
            if plane_type < 0:
                continue
            fit = fit_plane(pts, self._rng)
            if fit is None:
                continue
            coeffs, inliers = fit
            counter[plane_type] += 1
            self._planes.append(
                SurfelPlane(
                    p4=coeffs,
                    pi=-coeffs[3] * coeffs[:3],
                    box_min=pts.min(axis=0),
                    box_max=pts.max(axis=0),
                    cloud=PointCloud(pts, stamps),
                    cloud_inlier=PointCloud(pts[inliers], stamps[inliers]),
                )
            )

        self._per_surfel = [[] for _ in self._planes]
        logger.info("Plane type  :%s; Plane number: %d", counter, len(self._planes))

        xyz_parts = [plane.cloud_inlier.xyz for plane in self._planes]
        rgb_parts = [
            np.full(len(plane.cloud_inlier), COLOR_LIST[i % len(COLOR_LIST)], dtype=np.int64)
            for i, plane in enumerate(self._planes)
        ]
        if xyz_parts:
            self._map_xyz = np.concatenate(xyz_parts)
            self._map_rgb = np.concatenate(rgb_parts)

    def _associate_scan_to_surfel(self, plane: SurfelPlane, grid: np.ndarray) -> list[np.ndarray]:
        with np.errstate(invalid="ignore"):
            inside = np.all((grid > plane.box_min) & (grid < plane.box_max), axis=2)
            dist = np.abs(grid @ plane.p4[:3] + plane.p4[3])
            mask = ~np.isnan(grid[..., 0]) & inside & (dist <= self._radius)
        return [np.flatnonzero(row) for row in mask]

    def get_association(
        self, scan_in_map, scan_raw_xyz, scan_raw_measure=None, selected_num_per_ring: int = 2
    ) -> None:
        """Tie up to ``selected_num_per_ring`` points per ring and surfel to that surfel."""
        width, height = scan_raw_xyz.width, scan_raw_xyz.height
        for name, other in (("scan_in_map", scan_in_map), ("scan_raw_measure", scan_raw_measure)):
            if other is not None and (other.width, other.height) != (width, height):
                raise ValueError(f"{name} grid differs from scan_raw_xyz grid")

        grid = scan_in_map.xyz.reshape(height, width, 3)
        flags = np.full((height, width), -1, dtype=np.int64)
        for plane_id, plane in enumerate(self._planes):
            for h, cols in enumerate(self._associate_scan_to_surfel(plane, grid)):
                if len(cols) < selected_num_per_ring * 2:
                    continue
                step = max(len(cols) // (selected_num_per_ring + 1), 1)
                for selected in range(selected_num_per_ring):
                    flags[h, cols[step * (selected + 1) - 1]] = plane_id

        # Column-major walk keeps the points in chronological order.
        for w, h in np.argwhere(flags.T >= 0):
            w, h = int(w), int(h)
            point, stamp = scan_raw_xyz.at(w, h)
            if stamp == 0:
                continue
            in_map, _ = scan_in_map.at(w, h)
            spoint = SurfelPoint(
                timestamp=stamp, point=point, point_in_map=in_map, plane_id=int(flags[h, w])
            )
            if scan_raw_measure is not None:
                spoint.point_raw = scan_raw_measure.at(w, h)[0]
            self._per_surfel[spoint.plane_id].append(spoint)
            self._all.append(spoint)

    def random_down_sample(self, num_points_max: int = 5, rng=None) -> None:
        """Add ``num_points_max`` random points from every surfel with enough points."""
        rng = np.random.default_rng() if rng is None else rng
        for points in self._per_surfel:
            if len(points) < MIN_SURFEL_POINTS:
                continue
            for index in rng.integers(0, len(points), num_points_max):
                self._downsampled.append(points[int(index)])

    def average_down_sample(self, num_points_max: int = 5) -> None:
        """Add evenly spaced points from every surfel with enough points."""
        for points in self._per_surfel:
            if len(points) < MIN_SURFEL_POINTS:
                continue
            step = max(len(points) // num_points_max, 1)
            self._downsampled.extend(points[::step])

    def average_time_down_sample(self, step: int = 10) -> None:
        """Add every ``step``-th associated point in time order."""
        if step < 1:
            raise ValueError(f"step must be positive, got {step}")
        self._downsampled.extend(self._all[::step])

    def surfel_planes(self) -> list[SurfelPlane]:
        return list(self._planes)

    def surfel_points(self) -> list[SurfelPoint]:
        return list(self._downsampled)

    def map_timestamp(self) -> float:
        return self._map_timestamp

    def surfels_map(self) -> tuple[np.ndarray, np.ndarray]:
        """Inlier points of all surfels and their RGB colours."""
        return self._map_xyz.copy(), self._map_rgb.copy()