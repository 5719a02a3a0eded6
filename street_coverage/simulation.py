"""Synthetic fix streams for demos and replay testing."""

from __future__ import annotations

import math
from typing import List, Sequence

from .coverage.preprocessing import to_local_meters
from .models import LonLat


def simulate_walk(
    waypoints: Sequence[LonLat],
    step_m: float = 25.0,
    *,
    close_loop: bool = False,
) -> List[LonLat]:
    """Interpolate fixes every ``step_m`` metres between consecutive waypoints.

    The final waypoint is emitted as the last fix of an open path; a closed
    loop returns to (but does not repeat) the first waypoint.
    """

    if step_m <= 0:
        raise ValueError("step_m must be greater than zero")
    if not waypoints:
        return []
    route = list(waypoints)
    if close_loop:
        route.append(route[0])

    path: List[LonLat] = []
    for (lon1, lat1), (lon2, lat2) in zip(route, route[1:]):
        dx, dy = to_local_meters(lat1, lon2 - lon1, lat2 - lat1)
        distance = math.hypot(dx, dy)
        steps = max(1, math.ceil(distance / step_m))
        for j in range(steps):
            t = j / steps
            path.append((lon1 + (lon2 - lon1) * t, lat1 + (lat2 - lat1) * t))
    if not close_loop:
        path.append(route[-1])
    return path


__all__ = ["simulate_walk"]
