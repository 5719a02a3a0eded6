"""Tests covering per-street coverage accumulation and validation."""

from __future__ import annotations

import pytest

from street_coverage.coverage.tracker import (
    apply_fix,
    build_coverage,
    coverage_percent,
    extract_progress,
    extract_sub_polyline,
    force_validated,
    required_samples,
    try_validate,
    validation_ratio,
)
from street_coverage.models import Street


def test_build_coverage_starts_empty(straight_street) -> None:
    coverage = build_coverage(straight_street, 5.0)

    assert coverage.way_id == 100
    assert coverage.coverable
    assert len(coverage.covered) == len(coverage.samples) == 24
    assert coverage.covered_count == 0
    assert (coverage.min_covered_t, coverage.max_covered_t) == (1.0, 0.0)
    assert not coverage.has_coverage
    assert not coverage.validated


def test_single_vertex_street_is_uncoverable() -> None:
    coverage = build_coverage(Street(way_id=1, vertices=((1.0, 1.0),)))

    assert not coverage.coverable
    assert not apply_fix(coverage, 1.0, 1.0).touched_any
    assert validation_ratio(coverage) == 0.0
    assert not try_validate(coverage)


def test_apply_fix_marks_samples_within_radius(straight_street) -> None:
    coverage = build_coverage(straight_street, 5.0)

    update = apply_fix(coverage, 0.0, 0.0, radius_m=15.0)

    # Samples at 0, 4.8, 9.7 and 14.5 m lie inside the 15 m radius.
    assert update.touched_any
    assert update.newly_covered == 4
    assert coverage.covered[:4].all()
    assert not coverage.covered[4:].any()
    assert coverage.min_covered_t == 0.0
    assert coverage.max_covered_t == pytest.approx(3 / 23)


def test_apply_fix_repeated_point_is_a_no_op(straight_street) -> None:
    coverage = build_coverage(straight_street, 5.0)
    apply_fix(coverage, 0.0, 0.0005)

    again = apply_fix(coverage, 0.0, 0.0005)

    assert not again.touched_any
    assert again.newly_covered == 0


def test_out_of_order_fixes_widen_both_bounds(straight_street) -> None:
    coverage = build_coverage(straight_street, 5.0)
    apply_fix(coverage, 0.0, 0.0008)
    high = coverage.max_covered_t
    apply_fix(coverage, 0.0, 0.0002)

    assert coverage.max_covered_t == high
    assert coverage.min_covered_t < 0.1


@pytest.mark.parametrize("count, expected", [(5, 4), (10, 8), (15, 12), (24, 20), (1, 1)])
def test_required_samples(count: int, expected: int) -> None:
    assert required_samples(count, 0.8) == expected


def test_threshold_boundary(straight_street) -> None:
    below = build_coverage(straight_street, 5.0)
    below.covered[:19] = True
    at = build_coverage(straight_street, 5.0)
    at.covered[:20] = True

    assert validation_ratio(at) == pytest.approx(20 / 24)
    assert not try_validate(below, 0.8)
    assert not below.validated
    assert try_validate(at, 0.8)
    assert at.validated


def test_try_validate_is_idempotent(straight_street) -> None:
    coverage = build_coverage(straight_street, 5.0)
    coverage.covered[:] = True

    assert try_validate(coverage)
    assert not try_validate(coverage)
    assert coverage.validated


def test_validated_coverage_is_terminal(straight_street) -> None:
    coverage = build_coverage(straight_street, 5.0)
    apply_fix(coverage, 0.0, 0.0)
    coverage.covered[:] = True
    try_validate(coverage)
    snapshot = (coverage.min_covered_t, coverage.max_covered_t)

    update = apply_fix(coverage, 0.0, 0.001)

    assert not update.touched_any
    assert (coverage.min_covered_t, coverage.max_covered_t) == snapshot
    assert coverage_percent(coverage) == 100


def test_force_validated_fills_coverage(straight_street) -> None:
    coverage = build_coverage(straight_street, 5.0)

    force_validated(coverage)

    assert coverage.validated
    assert coverage.covered.all()
    assert (coverage.min_covered_t, coverage.max_covered_t) == (0.0, 1.0)


def test_extract_sub_polyline_keeps_interior_vertices(bent_street) -> None:
    coverage = build_coverage(bent_street, 5.0)
    assert coverage.polyline is not None

    path = extract_sub_polyline(coverage.polyline, 0.2, 0.8)

    assert path is not None
    assert len(path) == 4
    assert path[1:-1] == [bent_street.vertices[1], bent_street.vertices[2]]
    assert path[0] == pytest.approx((0.0, 0.0006))
    assert path[-1] == pytest.approx((0.001, 0.0014))


def test_extract_sub_polyline_within_one_segment(bent_street) -> None:
    coverage = build_coverage(bent_street, 5.0)
    assert coverage.polyline is not None

    path = extract_sub_polyline(coverage.polyline, 0.4, 0.5)

    assert path is not None
    assert len(path) == 2
    assert path[0][1] == pytest.approx(0.001)
    assert path[1][1] == pytest.approx(0.001)
    assert path[0][0] < path[1][0]


def test_extract_sub_polyline_rejects_empty_range(bent_street) -> None:
    coverage = build_coverage(bent_street, 5.0)
    assert coverage.polyline is not None

    assert extract_sub_polyline(coverage.polyline, 0.5, 0.5) is None
    assert extract_sub_polyline(coverage.polyline, 0.7, 0.3) is None


def test_extract_progress_follows_covered_bounds(straight_street) -> None:
    coverage = build_coverage(straight_street, 5.0)
    assert extract_progress(coverage) is None

    apply_fix(coverage, 0.0, 0.0005, radius_m=12.0)
    path = extract_progress(coverage)

    assert path is not None
    assert len(path) == 2
    assert path[0][1] == pytest.approx(coverage.min_covered_t * 0.001)
    assert path[1][1] == pytest.approx(coverage.max_covered_t * 0.001)
    assert path[0][1] < 0.0005 < path[1][1]
