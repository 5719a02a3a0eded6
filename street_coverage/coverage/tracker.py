"""Per-street coverage state: sample marking, validation and progress extraction."""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import List, Optional

import numpy as np
from numpy.typing import NDArray

from ..config import COVERAGE_RADIUS_M, COVERAGE_SAMPLE_STEP_M, VALIDATION_THRESHOLD
from ..models import LonLat, Street
from .preprocessing import (
    MetricArray,
    PreparedPolyline,
    Sample,
    prepare_polyline,
    project_points,
    sample_polyline,
)


@dataclass(slots=True)
class SegmentCoverage:
    """Mutable coverage record for one street.

    ``covered`` is index-aligned with ``samples``. ``min_covered_t`` and
    ``max_covered_t`` start in the empty sentinel state (1.0, 0.0) and only
    describe a range once a sample has been covered. A validated record is
    terminal and never mutated again.
    """

    street: Street
    polyline: Optional[PreparedPolyline]
    samples: List[Sample]
    sample_points: MetricArray
    covered: NDArray[np.bool_]
    min_covered_t: float = 1.0
    max_covered_t: float = 0.0
    validated: bool = False
    touched_fixes: int = field(default=0)

    @property
    def way_id(self) -> int:
        return self.street.way_id

    @property
    def coords(self) -> tuple[LonLat, ...]:
        return self.street.vertices

    @property
    def coverable(self) -> bool:
        return self.polyline is not None and len(self.samples) > 0

    @property
    def covered_count(self) -> int:
        return int(np.count_nonzero(self.covered))

    @property
    def has_coverage(self) -> bool:
        return self.min_covered_t <= self.max_covered_t


@dataclass(frozen=True, slots=True)
class CoverageUpdate:
    """Result of applying one snapped fix to a coverage record."""

    touched_any: bool
    newly_covered: int = 0


def build_coverage(
    street: Street, step_m: float = COVERAGE_SAMPLE_STEP_M
) -> SegmentCoverage:
    """Sample ``street`` and return a fresh, empty coverage record."""

    samples = sample_polyline(street.vertices, step_m) if street.coverable else []
    polyline = prepare_polyline(street.vertices) if samples else None
    if polyline is not None:
        sample_points = project_points(
            [(s.lon, s.lat) for s in samples], polyline.ref_lat, polyline.origin
        )
    else:
        sample_points = np.empty((0, 2), dtype=float)
    return SegmentCoverage(
        street=street,
        polyline=polyline,
        samples=samples,
        sample_points=sample_points,
        covered=np.zeros(len(samples), dtype=bool),
    )


def apply_fix(
    coverage: SegmentCoverage,
    snapped_lon: float,
    snapped_lat: float,
    radius_m: float = COVERAGE_RADIUS_M,
) -> CoverageUpdate:
    """Mark every uncovered sample within ``radius_m`` of the snapped point."""

    if coverage.validated or not coverage.coverable or coverage.polyline is None:
        return CoverageUpdate(False)
    point = np.asarray(coverage.polyline.to_metric(snapped_lon, snapped_lat))
    distances = np.linalg.norm(coverage.sample_points - point, axis=1)
    fresh = np.nonzero((distances <= radius_m) & ~coverage.covered)[0]
    if fresh.size == 0:
        return CoverageUpdate(False)

    coverage.covered[fresh] = True
    for idx in fresh:
        t = coverage.samples[int(idx)].t
        if t < coverage.min_covered_t:
            coverage.min_covered_t = t
        if t > coverage.max_covered_t:
            coverage.max_covered_t = t
    coverage.touched_fixes += 1
    return CoverageUpdate(True, int(fresh.size))


def validation_ratio(coverage: SegmentCoverage) -> float:
    total = len(coverage.covered)
    if total == 0:
        return 0.0
    return coverage.covered_count / total


def required_samples(sample_count: int, threshold: float = VALIDATION_THRESHOLD) -> int:
    """Return the smallest covered count whose ratio reaches ``threshold``.

    The product is rounded before ``ceil`` so that e.g. ``0.8 * 15`` asks for
    12 samples rather than 13 because of binary floating point.
    """

    return math.ceil(round(threshold * sample_count, 9))


def try_validate(
    coverage: SegmentCoverage, threshold: float = VALIDATION_THRESHOLD
) -> bool:
    """Validate ``coverage`` once its ratio clears ``threshold``.

    Returns True only for the transition itself; already validated or
    uncoverable records return False without changes.
    """

    if coverage.validated or not coverage.coverable:
        return False
    if coverage.covered_count < required_samples(len(coverage.covered), threshold):
        return False
    coverage.validated = True
    return True


def force_validated(coverage: SegmentCoverage) -> None:
    """Mark ``coverage`` as fully walked, bypassing sampling (restore path)."""

    coverage.covered[:] = True
    coverage.min_covered_t = 0.0
    coverage.max_covered_t = 1.0
    coverage.validated = True


def coverage_percent(coverage: SegmentCoverage) -> int:
    """Return the covered share as a rounded 0-100 value."""

    if coverage.validated:
        return 100
    return int(round(validation_ratio(coverage) * 100.0))


def extract_sub_polyline(
    polyline: PreparedPolyline, t0: float, t1: float
) -> Optional[List[LonLat]]:
    """Return the part of ``polyline`` between arc-length fractions ``t0`` and ``t1``.

    Interior vertices are kept so bends survive; the two end points are
    interpolated on their segments. Returns None for an empty range or a
    zero-length polyline.
    """

    total = polyline.total_length
    if t0 >= t1 or total <= 0.0 or len(polyline.coords) < 2:
        return None
    start_d = max(t0, 0.0) * total
    end_d = min(t1, 1.0) * total
    if start_d >= end_d:
        return None

    path: List[LonLat] = [_point_at_distance(polyline, start_d)]
    for idx, vertex in enumerate(polyline.coords):
        distance = float(polyline.cumulative[idx])
        if start_d < distance < end_d:
            path.append(vertex)
    path.append(_point_at_distance(polyline, end_d))
    return path


def extract_progress(coverage: SegmentCoverage) -> Optional[List[LonLat]]:
    """Return the walked stretch between the covered bounds for display."""

    if coverage.polyline is None or not coverage.has_coverage:
        return None
    return extract_sub_polyline(
        coverage.polyline, coverage.min_covered_t, coverage.max_covered_t
    )


def _point_at_distance(polyline: PreparedPolyline, distance: float) -> LonLat:
    cumulative = polyline.cumulative
    last_segment = len(polyline.coords) - 2
    idx = int(np.searchsorted(cumulative, distance, side="right")) - 1
    idx = min(max(idx, 0), last_segment)
    seg_len = float(polyline.segment_lengths[idx])
    local_t = (distance - float(cumulative[idx])) / seg_len if seg_len > 0 else 0.0
    local_t = min(max(local_t, 0.0), 1.0)
    a_lon, a_lat = polyline.coords[idx]
    b_lon, b_lat = polyline.coords[idx + 1]
    return a_lon + (b_lon - a_lon) * local_t, a_lat + (b_lat - a_lat) * local_t


__all__ = [
    "CoverageUpdate",
    "SegmentCoverage",
    "apply_fix",
    "build_coverage",
    "coverage_percent",
    "extract_progress",
    "extract_sub_polyline",
    "force_validated",
    "required_samples",
    "try_validate",
    "validation_ratio",
]
