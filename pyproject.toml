[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "licalib"
version = "0.1.0"
description = "LiDAR-IMU calibration building blocks: uniform B-splines, Lie group helpers, LiDAR scan decoding, surfel association and scan undistortion"
requires-python = ">=3.10"
dependencies = ["numpy"]
keywords = ["lidar", "imu", "calibration", "b-spline", "lie-group", "point-cloud", "robotics"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = ["pytest", "hypothesis"]

[tool.hatch.build.targets.wheel]
packages = ["licalib"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"
