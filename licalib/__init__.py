"""LiDAR-IMU calibration building blocks: B-splines, Lie group helpers, point clouds,
LiDAR and IMU models, scan decoding, surfel association and scan undistortion."""

__version__ = "0.1.0"