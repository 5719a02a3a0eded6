"""Nearest-street map matching for raw GPS fixes."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, Optional

from ..config import MATCH_MAX_DISTANCE_M
from .projection import project_onto_polyline
from .tracker import SegmentCoverage

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MatchCandidate:
    """Best street for a fix together with the snapped location."""

    coverage: SegmentCoverage
    t: float
    snapped_lon: float
    snapped_lat: float
    distance_m: float

    @property
    def way_id(self) -> int:
        return self.coverage.way_id

    def within(self, max_distance_m: float = MATCH_MAX_DISTANCE_M) -> bool:
        return self.distance_m <= max_distance_m


def match_nearest(
    lon: float, lat: float, coverages: Iterable[SegmentCoverage]
) -> Optional[MatchCandidate]:
    """Return the coverage record whose street lies closest to ``(lon, lat)``.

    Validated streets take part in the search so a fix next to a finished
    street is not forced onto a farther one. Uncoverable streets are skipped.
    Returns None when no coverable street is available.
    """

    best: Optional[MatchCandidate] = None
    for coverage in coverages:
        if not coverage.coverable or coverage.polyline is None:
            continue
        projection = project_onto_polyline(lon, lat, coverage.polyline)
        if best is None or projection.distance_m < best.distance_m:
            best = MatchCandidate(
                coverage=coverage,
                t=projection.t,
                snapped_lon=projection.lon,
                snapped_lat=projection.lat,
                distance_m=projection.distance_m,
            )
    if best is not None:
        _LOGGER.debug(
            "Nearest street way=%s dist=%.1fm t=%.3f",
            best.way_id,
            best.distance_m,
            best.t,
        )
    return best


__all__ = ["MatchCandidate", "match_nearest"]
