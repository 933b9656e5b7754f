"""Time-to-knot bookkeeping for splines built from one or more segments."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from licalib.spline_common import SPLINE_ORDER, SplineRangeError

_TIME_NUDGE = 1e-9


@dataclass
class SplineSegmentMeta:
    """A uniform spline segment: first valid time, knot spacing and knot count."""

    t0: float
    dt: float
    n: int = 0
    order: int = SPLINE_ORDER

    @property
    def degree(self) -> int:
        return self.order - 1

    def num_parameters(self) -> int:
        return self.n

    def min_time(self) -> float:
        return self.t0

    def max_time(self) -> float:
        return self.t0 + (self.n - self.degree) * self.dt

    def compute_t_index(self, timestamp: float) -> tuple[float, int] | None:
        """Return ``(u, s)`` for a time in this segment, or ``None`` if outside.

        Times a nanosecond beyond either end are pulled back inside.
        """
        t = timestamp
        if timestamp >= self.max_time():
            t = timestamp - _TIME_NUDGE
        elif timestamp < self.min_time():
            t = timestamp + _TIME_NUDGE

        if not self.min_time() <= t < self.max_time():
            return None
        st = (t - self.t0) / self.dt
        s = int(math.floor(st))
        return st - s, s


@dataclass
class SplineMeta:
    """An ordered list of spline segments whose knots are stored back to back."""

    segments: list[SplineSegmentMeta] = field(default_factory=list)

    def num_parameters(self) -> int:
        return sum(segment.num_parameters() for segment in self.segments)

    def compute_spline_index(self, timestamp: float) -> tuple[int, float]:
        """Return ``(idx, u)``: the global index of the first knot and the fraction."""
        idx = 0
        for segment in self.segments:
            found = segment.compute_t_index(timestamp)
            if found is not None:
                u, s = found
                return idx + s, u
            idx += segment.num_parameters()

        if not self.segments:
            raise SplineRangeError(f"time {timestamp:.15f} given to a spline with no segments")
        first = self.segments[0]
        raise SplineRangeError(
            f"time {timestamp:.15f} not in [{first.t0:.15f}, {first.max_time():.15f}]"
        )