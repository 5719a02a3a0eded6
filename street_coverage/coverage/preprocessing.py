"""Preprocessing utilities turning street vertices into metric geometry and samples."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import List, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from ..config import COVERAGE_SAMPLE_STEP_M, METERS_PER_DEGREE
from ..models import LonLat

MetricArray = NDArray[np.float64]


@dataclass(frozen=True, slots=True)
class Sample:
    """Coverage sample located at normalised arc-length ``t`` along a street."""

    lon: float
    lat: float
    t: float


@dataclass(slots=True)
class PreparedPolyline:
    """Metric representation of a polyline in its own local frame.

    The frame is anchored at the first vertex and scaled with the cosine of
    that vertex's latitude, so every polyline carries its own reference.
    """

    coords: Tuple[LonLat, ...]
    ref_lat: float
    origin: LonLat
    metric_points: MetricArray
    segment_lengths: MetricArray
    cumulative: MetricArray
    total_length: float

    def to_metric(self, lon: float, lat: float) -> Tuple[float, float]:
        """Return planar metres of ``(lon, lat)`` relative to the frame origin."""

        return to_local_meters(
            self.ref_lat, lon - self.origin[0], lat - self.origin[1]
        )


def to_local_meters(ref_lat: float, lon: float, lat: float) -> Tuple[float, float]:
    """Convert a lon/lat delta (degrees) to planar metres.

    Equirectangular approximation, only valid over city-scale distances.
    """

    cos_lat = math.cos(ref_lat * math.pi / 180.0)
    return lon * METERS_PER_DEGREE * cos_lat, lat * METERS_PER_DEGREE


def project_points(
    coords: Sequence[LonLat], ref_lat: float, origin: LonLat
) -> MetricArray:
    """Vectorised :func:`to_local_meters` for a whole coordinate sequence."""

    if not coords:
        return np.empty((0, 2), dtype=float)
    array = np.asarray(coords, dtype=float)
    cos_lat = math.cos(ref_lat * math.pi / 180.0)
    xs = (array[:, 0] - origin[0]) * METERS_PER_DEGREE * cos_lat
    ys = (array[:, 1] - origin[1]) * METERS_PER_DEGREE
    return np.column_stack((xs, ys))


def prepare_polyline(coords: Sequence[LonLat]) -> PreparedPolyline:
    """Return the metric frame, segment lengths and cumulative lengths of ``coords``."""

    if not coords:
        raise ValueError("Cannot prepare an empty polyline")
    points = tuple((float(lon), float(lat)) for lon, lat in coords)
    origin = points[0]
    ref_lat = origin[1]
    metric = project_points(points, ref_lat, origin)
    if len(points) < 2:
        lengths = np.zeros(0, dtype=float)
    else:
        lengths = np.linalg.norm(np.diff(metric, axis=0), axis=1)
    cumulative = np.concatenate(([0.0], np.cumsum(lengths)))
    return PreparedPolyline(
        coords=points,
        ref_lat=ref_lat,
        origin=origin,
        metric_points=metric,
        segment_lengths=lengths,
        cumulative=cumulative,
        total_length=float(cumulative[-1]),
    )


def sample_polyline(
    coords: Sequence[LonLat], step_m: float = COVERAGE_SAMPLE_STEP_M
) -> List[Sample]:
    """Return evenly spaced coverage samples along ``coords``.

    Each segment contributes ``ceil(length / step_m)`` samples starting at its
    first vertex, and a final sample sits exactly on the last vertex with
    ``t == 1.0``. Polylines with fewer than two vertices, or with zero total
    length, yield no samples and can never be covered.
    """

    if step_m <= 0:
        raise ValueError("step_m must be greater than zero")
    if len(coords) < 2:
        return []
    prepared = prepare_polyline(coords)
    total = prepared.total_length
    if total <= 0.0:
        return []

    samples: List[Sample] = []
    points = prepared.coords
    for idx, seg_len in enumerate(prepared.segment_lengths):
        seg_len = float(seg_len)
        steps = math.ceil(seg_len / step_m)
        if steps <= 0:
            continue
        a_lon, a_lat = points[idx]
        b_lon, b_lat = points[idx + 1]
        start = float(prepared.cumulative[idx])
        for j in range(steps):
            local_t = j / steps
            samples.append(
                Sample(
                    lon=a_lon + (b_lon - a_lon) * local_t,
                    lat=a_lat + (b_lat - a_lat) * local_t,
                    t=(start + local_t * seg_len) / total,
                )
            )
    last_lon, last_lat = points[-1]
    samples.append(Sample(lon=last_lon, lat=last_lat, t=1.0))
    return samples


__all__ = [
    "MetricArray",
    "PreparedPolyline",
    "Sample",
    "prepare_polyline",
    "project_points",
    "sample_polyline",
    "to_local_meters",
]
