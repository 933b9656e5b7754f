"""Decoding of VLP-16 packets and organised clouds into timestamped scans."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass

import numpy as np

from licalib.cloud import PointCloud
from licalib.lidar_feature import LiDARFeature

RAW_SCAN_SIZE = 3
SCANS_PER_BLOCK = 32
BLOCK_DATA_SIZE = SCANS_PER_BLOCK * RAW_SCAN_SIZE
ROTATION_RESOLUTION = 0.01
ROTATION_MAX_UNITS = 36000
DISTANCE_RESOLUTION = 0.002
UPPER_BANK = 0xEEFF
LOWER_BANK = 0xDDFF
BLOCKS_PER_PACKET = 12
PACKET_STATUS_SIZE = 2
BLOCK_SIZE = 4 + BLOCK_DATA_SIZE
PACKET_SIZE = BLOCKS_PER_PACKET * BLOCK_SIZE + 4 + PACKET_STATUS_SIZE

FIRINGS_PER_BLOCK = 2
SCANS_PER_FIRING = 16
BLOCK_TDURATION = 110.592  # microseconds
DSR_TOFFSET = 2.304  # microseconds
FIRING_TOFFSET = 55.296  # microseconds
PACKET_TIME = BLOCKS_PER_PACKET * 2 * FIRING_TOFFSET

NUM_FIRINGS = 1824
SCAN_PERIOD = 0.100800

_VERT_CORRECTION = np.radians(
    [-15, 1, -13, 3, -11, 5, -9, 7, -7, 9, -5, 11, -3, 13, -1, 15]
)

# Row of the organised cloud for each laser, from the top (15 deg) down.
SCAN_MAPPING_16 = (15, 7, 14, 6, 13, 5, 12, 4, 11, 3, 10, 2, 9, 1, 8, 0)

_BLOCK_HEADER = struct.Struct("<HH")


@dataclass
class VelodyneConfig:
    """Range limits in metres and azimuth window in hundredths of a degree."""

    max_range: float = 150.0
    min_range: float = 1.0
    min_angle: int = 0
    max_angle: int = 36000


class Velodyne16:
    """Turns VLP-16 data into a 16-row organised scan plus raw measurements.

    The raw cloud holds ``(laser id, azimuth in rad, range in m)`` per point.
    """

    def __init__(self):
        self.config = VelodyneConfig()
        rot = np.radians(ROTATION_RESOLUTION * np.arange(ROTATION_MAX_UNITS))
        self._cos_rot = np.cos(rot)
        self._sin_rot = np.sin(rot)
        self._cos_vert = np.cos(_VERT_CORRECTION)
        self._sin_vert = np.sin(_VERT_CORRECTION)
        w = np.arange(NUM_FIRINGS)[:, None]
        h = np.arange(SCANS_PER_FIRING)[None, :]
        self._time_block = h * DSR_TOFFSET * 1e-6 + w * FIRING_TOFFSET * 1e-6

    def exact_time(self, dsr: int, firing: int) -> float:
        """Time offset in seconds of laser ``dsr`` in firing ``firing`` from scan start."""
        if not 0 <= firing < NUM_FIRINGS or not 0 <= dsr < SCANS_PER_FIRING:
            raise IndexError(f"(dsr {dsr}, firing {firing}) outside timing table")
        return float(self._time_block[firing, dsr])

    def _in_range(self, distance: float) -> bool:
        return self.config.min_range <= distance <= self.config.max_range

    def _in_window(self, azimuth: int) -> bool:
        lo, hi = self.config.min_angle, self.config.max_angle
        return (lo < hi and lo <= azimuth <= hi) or (lo > hi and (azimuth <= hi or azimuth >= lo))

    def unpack_packets(self, packets, stamp: float) -> LiDARFeature:
        """Decode raw 1206-byte packets taken at scan time ``stamp``."""
        packets = [bytes(p) for p in packets]
        for packet in packets:
            if len(packet) < BLOCKS_PER_PACKET * BLOCK_SIZE:
                raise ValueError(
                    f"packet of {len(packet)} bytes is shorter than "
                    f"{BLOCKS_PER_PACKET * BLOCK_SIZE}"
                )
        width = 24 * len(packets)
        n = width * SCANS_PER_FIRING
        full = PointCloud(np.zeros((n, 3)), np.zeros(n), width, SCANS_PER_FIRING)
        raw_cloud = PointCloud(np.zeros((n, 3)), np.zeros(n), width, SCANS_PER_FIRING)
        deg2rad_resolution = math.radians(ROTATION_RESOLUTION)

        block_counter = 0
        for packet in packets:
            blocks = [
                (
                    _BLOCK_HEADER.unpack_from(packet, b * BLOCK_SIZE)[1],
                    packet[b * BLOCK_SIZE + 4 : (b + 1) * BLOCK_SIZE],
                )
                for b in range(BLOCKS_PER_PACKET)
            ]
            last_azimuth_diff = 0.0
            for block, (rotation, data) in enumerate(blocks):
                azimuth = float(rotation)
                if block < BLOCKS_PER_PACKET - 1:
                    next_rotation = blocks[block + 1][0]
                    azimuth_diff = float(
                        (ROTATION_MAX_UNITS + next_rotation - rotation) % ROTATION_MAX_UNITS
                    )
                    last_azimuth_diff = azimuth_diff
                else:
                    azimuth_diff = last_azimuth_diff

                for firing in range(FIRINGS_PER_BLOCK):
                    column = 2 * block_counter + firing
                    for dsr in range(SCANS_PER_FIRING):
                        k = (firing * SCANS_PER_FIRING + dsr) * RAW_SCAN_SIZE
                        azimuth_f = azimuth + azimuth_diff * (
                            dsr * DSR_TOFFSET + firing * FIRING_TOFFSET
                        ) / BLOCK_TDURATION
                        azimuth_corrected = int(math.floor(azimuth_f + 0.5)) % ROTATION_MAX_UNITS
                        if not self._in_window(azimuth_corrected):
                            continue

                        distance = (data[k] | (data[k + 1] << 8)) * DISTANCE_RESOLUTION
                        timestamp = stamp + self.exact_time(dsr, column)
                        row = SCAN_MAPPING_16[dsr]
                        if self._in_range(distance):
                            cos_v, sin_v = self._cos_vert[dsr], self._sin_vert[dsr]
                            cos_r = self._cos_rot[azimuth_corrected]
                            sin_r = self._sin_rot[azimuth_corrected]
                            x = distance * cos_v * sin_r
                            y = distance * cos_v * cos_r
                            z = distance * sin_v
                            xyz = (y, -x, z)
                            measure = (dsr, azimuth_f * deg2rad_resolution, distance)
                        else:
                            xyz = measure = (math.nan, math.nan, math.nan)
                        full.set(column, row, xyz, timestamp)
                        raw_cloud.set(column, row, measure, timestamp)
                block_counter += 1

        return LiDARFeature(timestamp=stamp, full_features=full, raw_data=raw_cloud)

    def unpack_cloud(self, xyz, intensity, width: int, height: int, stamp: float) -> LiDARFeature:
        """Reorder an organised 16-row cloud (row = laser id) and attach point times.

        ``xyz`` has ``width * height`` rows stored row by row. The raw cloud holds
        ``(laser id, azimuth from timing, intensity)``.
        """
        if height != SCANS_PER_FIRING:
            raise ValueError(f"cloud must have {SCANS_PER_FIRING} rows, got {height}")
        if not 0 <= width <= NUM_FIRINGS:
            raise ValueError(f"cloud width must be in [0, {NUM_FIRINGS}], got {width}")
        points = np.asarray(xyz, dtype=float)
        n = width * height
        if points.shape != (n, 3):
            raise ValueError(f"xyz must have shape ({n}, 3), got {points.shape}")
        values = np.asarray(intensity, dtype=float).reshape(-1)
        if values.shape != (n,):
            raise ValueError(f"expected {n} intensities, got {values.shape[0]}")

        src = points.reshape(height, width, 3)
        src_intensity = values.reshape(height, width)
        delta_t = self._time_block[:width, :].T  # (dsr, w)
        times = stamp + delta_t

        out_xyz = np.empty((height, width, 3))
        out_raw = np.empty((height, width, 3))
        out_t = np.empty((height, width))
        for dsr, row in enumerate(SCAN_MAPPING_16):
            out_xyz[row] = src[dsr]
            out_t[row] = times[dsr]
            out_raw[row, :, 0] = dsr
            out_raw[row, :, 1] = 2 * math.pi * (delta_t[dsr] / SCAN_PERIOD)
            out_raw[row, :, 2] = src_intensity[dsr]

        stamps = out_t.reshape(-1)
        full = PointCloud(out_xyz.reshape(-1, 3), stamps, width, height)
        raw_cloud = PointCloud(out_raw.reshape(-1, 3), stamps.copy(), width, height)
        return LiDARFeature(timestamp=stamp, full_features=full, raw_data=raw_cloud)