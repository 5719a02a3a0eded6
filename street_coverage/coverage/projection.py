"""Point-to-polyline projection in a local metric frame."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

from ..models import LonLat
from .preprocessing import PreparedPolyline, prepare_polyline


@dataclass(frozen=True, slots=True)
class Projection:
    """Nearest point on a polyline to a query location."""

    t: float
    lon: float
    lat: float
    distance_m: float
    segment_index: int


def project_onto_polyline(
    lon: float,
    lat: float,
    polyline: Union[PreparedPolyline, Sequence[LonLat]],
) -> Projection:
    """Project ``(lon, lat)`` onto ``polyline`` and return the nearest point.

    Every segment is evaluated in metres; zero-length segments project onto
    their first vertex. On exact distance ties the earliest segment wins.
    ``t`` is the arc-length fraction of the nearest point (0 for a polyline
    whose total length is zero).
    """

    prepared = (
        polyline
        if isinstance(polyline, PreparedPolyline)
        else prepare_polyline(polyline)
    )
    metric = prepared.metric_points
    if metric.shape[0] < 2:
        raise ValueError("Polyline projection requires at least two vertices")

    point = np.asarray(prepared.to_metric(lon, lat), dtype=float)
    starts = metric[:-1]
    deltas = np.diff(metric, axis=0)
    len_sq = np.einsum("ij,ij->i", deltas, deltas)
    dots = np.einsum("ij,ij->i", point - starts, deltas)
    local_t = np.zeros_like(len_sq)
    np.divide(dots, len_sq, out=local_t, where=len_sq > 0.0)
    local_t = np.clip(local_t, 0.0, 1.0)
    nearest = starts + local_t[:, None] * deltas
    distances = np.linalg.norm(nearest - point, axis=1)

    # argmin returns the first occurrence, i.e. a strict "<" scan.
    best = int(np.argmin(distances))
    best_t = float(local_t[best])
    total = prepared.total_length
    if total > 0.0:
        fraction = (
            float(prepared.cumulative[best])
            + best_t * float(prepared.segment_lengths[best])
        ) / total
    else:
        fraction = 0.0

    a_lon, a_lat = prepared.coords[best]
    b_lon, b_lat = prepared.coords[best + 1]
    return Projection(
        t=min(max(fraction, 0.0), 1.0),
        lon=a_lon + (b_lon - a_lon) * best_t,
        lat=a_lat + (b_lat - a_lat) * best_t,
        distance_m=float(distances[best]),
        segment_index=best,
    )


__all__ = ["Projection", "project_onto_polyline"]
