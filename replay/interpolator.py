"""Catmull-Rom interpolation between recorded fixes.

Recorded tracks are sparse (typically one fix every 1-4 seconds) while a
display refreshes much faster. Blending a four-fix window with a cardinal
spline gives continuous motion through every recorded fix.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from flightlog.fixes import Fix, GeoPoint

DEFAULT_TENSION = 0.5
# Below this horizontal rate (deg/s) the tangent is too short to give a bearing
MIN_TANGENT_RATE = 1e-9


@dataclass(frozen=True)
class InterpolatedPoint:
    """Result of interpolating a fix window at one time."""

    timestamp: float
    location: GeoPoint
    altitude: float
    heading: float | None = None
    climb_rate: float | None = None


def _basis(tension: float) -> np.ndarray:
    """Cardinal spline basis matrix (tension 0.5 is Catmull-Rom)."""
    s = tension
    return np.array(
        [
            [0.0, 1.0, 0.0, 0.0],
            [-s, 0.0, s, 0.0],
            [2 * s, s - 3, 3 - 2 * s, -s],
            [-s, 2 - s, s - 2, s],
        ]
    )


def _as_point(fix: Fix, timestamp: float | None = None) -> InterpolatedPoint:
    return InterpolatedPoint(
        timestamp=fix.timestamp if timestamp is None else timestamp,
        location=fix.location,
        altitude=fix.altitude,
        heading=fix.heading,
        climb_rate=fix.climb_rate,
    )


def _unwrap_longitudes(longitudes: np.ndarray) -> np.ndarray:
    """Make successive longitudes continuous across the antimeridian, anchored at p1."""
    unwrapped = np.array(longitudes, dtype=float)
    for i in range(1, len(unwrapped)):
        step = unwrapped[i] - unwrapped[i - 1]
        if step > 180.0:
            unwrapped[i:] -= 360.0
        elif step < -180.0:
            unwrapped[i:] += 360.0
    # Keep p1 at its recorded value
    return unwrapped - (unwrapped[1] - longitudes[1])


def nearest_fix(window: Sequence[Fix], t: float) -> Fix:
    """Fix in ``window`` whose timestamp is closest to ``t`` (earliest on ties)."""
    return min(window, key=lambda fix: abs(fix.timestamp - t))


def _bracket(window: Sequence[Fix], t: float) -> int | None:
    """Index i with window[i].timestamp <= t <= window[i + 1].timestamp."""
    for i in range(len(window) - 1):
        if window[i].timestamp <= t <= window[i + 1].timestamp:
            return i
    return None


def interpolate(
    window: Sequence[Fix],
    t: float,
    tension: float = DEFAULT_TENSION,
) -> InterpolatedPoint:
    """Estimate position, altitude, heading and climb at time ``t``.

    Args:
        window: Fixes ordered by timestamp, usually the two fixes bracketing
            ``t`` plus one neighbour on each side.
        t: Query time.
        tension: Cardinal spline tension.

    Returns:
        The interpolated point stamped with ``t``. When ``t`` is not bracketed
        by two fixes the nearest fix is returned unchanged, keeping its own
        timestamp.

    Raises:
        ValueError: If ``window`` is empty.
    """
    if not window:
        raise ValueError("interpolation window is empty")

    i = _bracket(window, t) if len(window) >= 2 else None
    if i is None:
        return _as_point(nearest_fix(window, t))

    p1, p2 = window[i], window[i + 1]
    p0 = window[i - 1] if i > 0 else p1
    p3 = window[i + 2] if i + 2 < len(window) else p2

    span = p2.timestamp - p1.timestamp
    if span <= 0:
        return _as_point(p2, t)
    u = (t - p1.timestamp) / span

    controls = np.array(
        [[p.location.latitude, p.location.longitude, p.altitude] for p in (p0, p1, p2, p3)]
    )
    controls[:, 1] = _unwrap_longitudes(controls[:, 1])
    coefficients = _basis(tension) @ controls
    value = np.array([1.0, u, u * u, u * u * u]) @ coefficients
    # d/du scaled to per-second rates
    rate = np.array([0.0, 1.0, 2 * u, 3 * u * u]) @ coefficients / span

    latitude = float(np.clip(value[0], -90.0, 90.0))
    longitude = float((value[1] + 180.0) % 360.0 - 180.0)

    north = float(rate[0])
    east = float(rate[1]) * math.cos(math.radians(latitude))
    if math.hypot(north, east) > MIN_TANGENT_RATE:
        heading = math.degrees(math.atan2(east, north)) % 360
    else:
        heading = nearest_fix((p1, p2), t).heading

    return InterpolatedPoint(
        timestamp=t,
        location=GeoPoint(latitude=latitude, longitude=longitude),
        altitude=float(value[2]),
        heading=heading,
        climb_rate=float(rate[2]),
    )
