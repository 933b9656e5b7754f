# licalib

Building blocks for LiDAR-IMU calibration in Python, on top of NumPy.

Conventions used throughout: quaternions are arrays ordered `(w, x, y, z)`,
rotations are 3x3 matrices and poses are 4x4 homogeneous matrices.

## Modules

- `licalib.spline_common`: `c_n_k` (binomial coefficient),
  `compute_blending_matrix(order, cumulative)` and
  `compute_base_coefficients(order)` for uniform B-splines, and the
  `SplineRangeError` exception raised for times outside a spline.
- `licalib.spline_segment`: `SplineSegmentMeta` (first time, knot spacing,
  knot count) and `SplineMeta`, a list of segments. `compute_t_index` returns
  `(u, s)` or `None`; `compute_spline_index` returns the global knot index and
  fraction, or raises `SplineRangeError`. Times a nanosecond past either end of
  a segment are pulled back inside.
- `licalib.rd_spline`: `RdSpline(dim, order, time_interval, start_time)`, a
  uniform B-spline over vectors. Knots are added with `knots_push_back`,
  removed with `knots_pop_back`/`knots_pop_front`, read with `get_knot`/`knots`
  and changed with `set_knot`/`resize`. `evaluate(time, derivative,
  with_jacobian)`, `velocity` and `acceleration` return the value, and with
  `with_jacobian=True` also a `JacobianStruct` (first knot index and the
  coefficients of the knots).
- `licalib.lie`: `hat`, `quat_to_matrix`, `matrix_to_quat`, `so3_exp`,
  `so3_log`, the decoupled `se3_expd`/`se3_logd` and `sim3_expd`/`sim3_logd`,
  the left and right SO(3) Jacobians and their inverses, the decoupled SE(3)
  and Sim(3) right Jacobians and their inverses, and `get_trans_between`.
- `licalib.cloud`: `PointCloud`, an organised `width` x `height` grid of
  points, each with a position and a timestamp; points with NaN x are invalid.
  It supports `filled`, `at`, `set`, `valid_mask`, `extend`, `transformed`,
  `copy` and `clear`.
- `licalib.lidar_feature`: `LiDARFeature` (a scan: points and raw
  measurements), `PointCorrespondence`, the `LidarModelType` and
  `GeometryType` enums, and `LiDARIntrinsic`, a six-parameter model for each
  of 16 lasers with three ring orderings (`ring_case` 0, 1 or 2).
- `licalib.imu`: `IMUData`, `PoseData`, `OdomData`,
  `TrajectoryEstimatorOptions`, `IMUIntrinsic` (gyroscope and accelerometer
  scale/misalignment, g-sensitivity and axis rotation) and `euler_angles_xyz`.
- `licalib.calib_bias`: `CalibAccelBias` (9 parameters) and `CalibGyroBias`
  (12 parameters) with `calibrated` and `invert_calibration`.
- `licalib.velodyne`: `Velodyne16`, which decodes raw VLP-16 packets
  (`unpack_packets`) or reorders an organised 16-row cloud (`unpack_cloud`)
  into a `LiDARFeature` with per-point times.
- `licalib.ouster`: `OusterCloud` and `OusterLiDAR`, which picks evenly spaced
  rings of an Ouster cloud (`organize`) and drops points beyond 60 m.
- `licalib.surfel`: `voxel_leaves`, `check_plane_type`, `fit_plane` (RANSAC),
  `point_to_plane_distance`, and `SurfelAssociation`, which keeps the planar
  voxel leaves as surfels (`set_surfel_map`), ties scan points to them
  (`get_association`) and down-samples the result (`random_down_sample`,
  `average_down_sample`, `average_time_down_sample`).
- `licalib.undistortion`: `ScanUndistortion`, which removes motion distortion
  from scans given a function from time to 4x4 LiDAR pose, and builds a map
  cloud from scans either along that pose function or from odometry poses.

## Installation

```
pip install .
```

Test dependencies are in the `test` extra:

```
pip install ".[test]"
pytest
```

## Example

```python
import numpy as np
from licalib.rd_spline import RdSpline

spline = RdSpline(3, 4, 0.1, 0.0)
for k in range(6):
    spline.knots_push_back(np.array([k * 0.1, 0.0, 0.0]))

print(spline.min_time(), spline.max_time())  # 0.0 0.3
print(spline.evaluate(0.15, 0, False))
print(spline.velocity(0.15, False))
```

## What the package does not do

- There is no trajectory optimiser: `TrajectoryEstimatorOptions` only holds
  settings, and no SE(3) trajectory spline is provided. `ScanUndistortion`
  takes the pose function from the caller.
- There is no scan matching or odometry; `SurfelAssociation.set_surfel_map`
  takes voxel leaves, for example from `voxel_leaves`.
- There is no reading or writing of point-cloud files or sensor recordings,
  no publishing of results to other programs, and no command-line tool.