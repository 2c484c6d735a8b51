"""
Joint angle geometry and ideal-range deviation.
"""
from __future__ import annotations

import math
from typing import Optional

from .landmarks import Keypoint

# Segments shorter than this (normalized units) give no usable bearing.
_MIN_SEGMENT = 1e-9


def angle_between(
    a: Optional[Keypoint],
    b: Optional[Keypoint],
    c: Optional[Keypoint],
) -> Optional[float]:
    """
    Angle at vertex b between rays b->a and b->c, in degrees [0, 180].
    None when a point is missing, non-finite or coincides with the vertex.
    """
    if a is None or b is None or c is None:
        return None
    if not all(math.isfinite(v) for p in (a, b, c) for v in (p.x, p.y)):
        return None
    if math.hypot(a.x - b.x, a.y - b.y) < _MIN_SEGMENT:
        return None
    if math.hypot(c.x - b.x, c.y - b.y) < _MIN_SEGMENT:
        return None
    radians = math.atan2(c.y - b.y, c.x - b.x) - math.atan2(a.y - b.y, a.x - b.x)
    angle = abs(math.degrees(radians))
    if angle > 180.0:
        angle = 360.0 - angle
    return angle


def deviation_from_range(value: float, lo: float, hi: float) -> float:
    """
    Percent distance of value from the midpoint of [lo, hi]; 0 inside the range.
    Midpoint-relative so narrow and wide ranges scale the same way.
    """
    if lo <= value <= hi:
        return 0.0
    mid = (lo + hi) / 2.0
    if abs(mid) < 1e-9:
        return abs(value - mid) * 100.0
    return abs((value - mid) / mid) * 100.0
