"""Street coverage engine: sampling, projection, matching and coverage tracking."""

from .export import feature_collection, line_feature
from .matcher import MatchCandidate, match_nearest
from .preprocessing import (
    PreparedPolyline,
    Sample,
    prepare_polyline,
    sample_polyline,
    to_local_meters,
)
from .projection import Projection, project_onto_polyline
from .tracker import (
    CoverageUpdate,
    SegmentCoverage,
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

__all__ = [
    "CoverageUpdate",
    "MatchCandidate",
    "PreparedPolyline",
    "Projection",
    "Sample",
    "SegmentCoverage",
    "apply_fix",
    "build_coverage",
    "coverage_percent",
    "extract_progress",
    "extract_sub_polyline",
    "feature_collection",
    "force_validated",
    "line_feature",
    "match_nearest",
    "prepare_polyline",
    "project_onto_polyline",
    "required_samples",
    "sample_polyline",
    "to_local_meters",
    "try_validate",
    "validation_ratio",
]
