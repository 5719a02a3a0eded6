"""Domain models for streets, badges and exploration snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

LonLat = Tuple[float, float]


@dataclass(frozen=True)
class Street:
    way_id: int
    # Ordered (lon, lat) vertices in WGS84 degrees
    vertices: Tuple[LonLat, ...]
    name: Optional[str] = None

    @property
    def coverable(self) -> bool:
        return len(self.vertices) >= 2


@dataclass(frozen=True)
class BadgeDefinition:
    id: str
    name: str
    icon: str
    # Number of validated streets required to unlock
    threshold: int

    def to_event(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "icon": self.icon}


@dataclass(frozen=True)
class ExplorationSnapshot:
    user_id: str
    city: str
    validated_way_ids: FrozenSet[int]
    total_ways: int
    unlocked_badge_ids: FrozenSet[str]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "city": self.city,
            "validated_way_ids": sorted(self.validated_way_ids),
            "total_ways": self.total_ways,
            "unlocked_badge_ids": sorted(self.unlocked_badge_ids),
        }


@dataclass
class RestoreSnapshot:
    validated_way_ids: List[int] = field(default_factory=list)
    unlocked_badge_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_ids(
        cls, way_ids: Iterable[Any], badge_ids: Iterable[Any] = ()
    ) -> "RestoreSnapshot":
        return cls(
            validated_way_ids=[int(way_id) for way_id in way_ids],
            unlocked_badge_ids=[str(badge_id) for badge_id in badge_ids],
        )

    @property
    def empty(self) -> bool:
        return not self.validated_way_ids and not self.unlocked_badge_ids
