"""GeoJSON export of street geometry for overlay rendering."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Sequence, Tuple

from shapely.geometry import LineString, mapping

from ..models import LonLat

FeatureCollection = Dict[str, Any]


def line_feature(way_id: int, coords: Sequence[LonLat], **properties: Any) -> Dict[str, Any]:
    """Return a GeoJSON LineString feature identified by ``way_id``."""

    geometry = mapping(LineString(coords))
    return {
        "type": "Feature",
        "id": way_id,
        "properties": {"id": way_id, **properties},
        "geometry": {
            "type": geometry["type"],
            "coordinates": [list(point) for point in geometry["coordinates"]],
        },
    }


def feature_collection(
    lines: Iterable[Tuple[int, Sequence[LonLat]]],
) -> FeatureCollection:
    """Build a FeatureCollection from ``(way_id, coords)`` pairs (≥2 points each)."""

    features = [
        line_feature(way_id, coords) for way_id, coords in lines if len(coords) >= 2
    ]
    return {"type": "FeatureCollection", "features": features}


__all__ = ["FeatureCollection", "feature_collection", "line_feature"]
