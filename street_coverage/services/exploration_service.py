"""Exploration session service.

Owns every :class:`SegmentCoverage` of one city session and runs the fix
pipeline: nearest-street match, coverage update, validation, milestone
evaluation and batched persistence. Fixes are processed one at a time to
completion; observers only ever read state between fixes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from ..config import (
    COVERAGE_RADIUS_M,
    COVERAGE_SAMPLE_STEP_M,
    MATCH_MAX_DISTANCE_M,
    SAVE_BATCH_SIZE,
    SNAPSHOT_WRITER_MAX_WORKERS,
    VALIDATION_THRESHOLD,
)
from ..coverage import (
    SegmentCoverage,
    apply_fix,
    build_coverage,
    coverage_percent,
    extract_progress,
    feature_collection,
    force_validated,
    match_nearest,
    try_validate,
)
from ..coverage.export import FeatureCollection
from ..milestones import DEFAULT_BADGES, BadgeQueue, evaluate_milestones
from ..models import (
    BadgeDefinition,
    ExplorationSnapshot,
    LonLat,
    RestoreSnapshot,
    Street,
)
from ..persistence import PersistenceScheduler, SnapshotWriter
from ..stores import ExplorationStore
from ..utils import format_percent


@dataclass(slots=True)
class ExplorationSessionConfig:
    sample_step_m: float = COVERAGE_SAMPLE_STEP_M
    coverage_radius_m: float = COVERAGE_RADIUS_M
    match_max_distance_m: float = MATCH_MAX_DISTANCE_M
    validation_threshold: float = VALIDATION_THRESHOLD
    save_batch_size: int = SAVE_BATCH_SIZE
    badges: Sequence[BadgeDefinition] = DEFAULT_BADGES
    store: ExplorationStore | None = None
    writer_max_workers: int = SNAPSHOT_WRITER_MAX_WORKERS
    logger: logging.Logger | None = None

    def __post_init__(self) -> None:
        if self.sample_step_m <= 0:
            raise ValueError("sample_step_m must be greater than zero")
        if self.coverage_radius_m < 0:
            raise ValueError("coverage_radius_m must not be negative")
        if self.match_max_distance_m < 0:
            raise ValueError("match_max_distance_m must not be negative")
        if not 0.0 < self.validation_threshold <= 1.0:
            raise ValueError("validation_threshold must be within (0, 1]")
        if self.save_batch_size < 1:
            raise ValueError("save_batch_size must be >= 1")


@dataclass
class FixOutcome:
    """What a single fix did to the session."""

    matched: bool
    way_id: Optional[int] = None
    distance_m: Optional[float] = None
    touched: bool = False
    newly_validated: Optional[int] = None
    badges: List[BadgeDefinition] = field(default_factory=list)
    save_requested: bool = False


@dataclass(frozen=True)
class StreetSummary:
    way_id: int
    name: Optional[str]
    coverage_pct: int
    validated: bool


class ExplorationSession:
    def __init__(
        self,
        user_id: str,
        city: str,
        config: ExplorationSessionConfig | None = None,
    ) -> None:
        self.user_id = user_id
        self.city = city
        self.config = config or ExplorationSessionConfig()
        self._log = self.config.logger or logging.getLogger(self.__class__.__name__)
        self._coverages: Dict[int, SegmentCoverage] = {}
        self._validated: Set[int] = set()
        self._carried: Set[int] = set()
        self._unlocked: Set[str] = set()
        self._pending_restore: Optional[RestoreSnapshot] = None
        self._loaded = False
        self._closed = False
        self.badge_queue = BadgeQueue()
        self._scheduler = PersistenceScheduler(self.config.save_batch_size)
        self._writer: Optional[SnapshotWriter] = (
            SnapshotWriter(self.config.store, max_workers=self.config.writer_max_workers)
            if self.config.store is not None
            else None
        )

    # ------------------------------------------------------------------
    # Dataset lifecycle
    # ------------------------------------------------------------------
    def load_streets(self, streets: Iterable[Street]) -> int:
        """Replace the dataset and return the number of coverable streets.

        Any previous coverage, validated set, badges and save bookkeeping are
        discarded. A restore received before the dataset is applied now.
        """

        arena: Dict[int, SegmentCoverage] = {}
        for street in streets:
            if street.way_id in arena:
                self._log.warning("Duplicate way id %s ignored", street.way_id)
                continue
            arena[street.way_id] = build_coverage(street, self.config.sample_step_m)
        uncoverable = sum(1 for cov in arena.values() if not cov.coverable)

        # Swap the arena in one step so fixes never see a half-built dataset.
        self._coverages = arena
        self._validated = set()
        self._carried = set()
        self._unlocked = set()
        self.badge_queue.clear()
        self._scheduler.reset()
        self._loaded = True
        self._log.info(
            "Loaded %d streets for %s (%d uncoverable)",
            len(arena),
            self.city,
            uncoverable,
        )

        pending, self._pending_restore = self._pending_restore, None
        if pending is not None:
            self.restore(pending)
        return len(arena) - uncoverable

    def restore(self, snapshot: RestoreSnapshot) -> int:
        """Seed validated streets and unlocked badges from durable state.

        Only the named ids are touched. Ids with no coverable street in the
        current dataset take no part in matching, geometry or counts, but are
        carried into every later snapshot so the durable record keeps them.
        Returns how many streets were newly validated (0 when deferred until
        streets load).
        """

        if not self._loaded:
            self._pending_restore = _merge_restores(self._pending_restore, snapshot)
            self._log.info("Deferring restore until streets are loaded")
            return 0

        restored = 0
        skipped: List[int] = []
        for way_id in dict.fromkeys(snapshot.validated_way_ids):
            coverage = self._coverages.get(way_id)
            if coverage is None or not coverage.coverable:
                skipped.append(way_id)
                self._carried.add(way_id)
                continue
            if way_id in self._validated:
                continue
            if not coverage.validated:
                force_validated(coverage)
            self._validated.add(way_id)
            restored += 1
        self._unlocked.update(snapshot.unlocked_badge_ids)
        self._scheduler.seed(restored)
        if skipped:
            self._log.debug(
                "Carrying %d restored way ids with no coverable street", len(skipped)
            )
        self._log.info(
            "Restored %d validated streets and %d badges for %s",
            restored,
            len(snapshot.unlocked_badge_ids),
            self.city,
        )
        return restored

    def restore_from_store(self) -> int:
        """Load and apply the stored record for this user and city."""

        store = self.config.store
        if store is None:
            return 0
        return self.restore(store.load(self.user_id, self.city))

    # ------------------------------------------------------------------
    # Fix pipeline
    # ------------------------------------------------------------------
    def process_fix(self, lon: float, lat: float) -> FixOutcome:
        if self._closed or not self._coverages:
            return FixOutcome(matched=False)
        if not (math.isfinite(lon) and math.isfinite(lat)):
            self._log.debug("Ignoring non-finite fix lon=%s lat=%s", lon, lat)
            return FixOutcome(matched=False)

        candidate = match_nearest(lon, lat, self._coverages.values())
        if candidate is None:
            return FixOutcome(matched=False)
        if not candidate.within(self.config.match_max_distance_m):
            self._log.debug(
                "Fix [%.5f, %.5f] %.1fm from nearest street, ignored",
                lon,
                lat,
                candidate.distance_m,
            )
            return FixOutcome(
                matched=False,
                way_id=candidate.way_id,
                distance_m=candidate.distance_m,
            )

        outcome = FixOutcome(
            matched=True, way_id=candidate.way_id, distance_m=candidate.distance_m
        )
        coverage = candidate.coverage
        if coverage.validated:
            return outcome

        update = apply_fix(
            coverage,
            candidate.snapped_lon,
            candidate.snapped_lat,
            self.config.coverage_radius_m,
        )
        if not update.touched_any:
            return outcome
        outcome.touched = True

        if try_validate(coverage, self.config.validation_threshold):
            self._on_validated(coverage, outcome)
        return outcome

    def process_fixes(self, fixes: Iterable[LonLat]) -> List[FixOutcome]:
        return [self.process_fix(lon, lat) for lon, lat in fixes]

    def _on_validated(self, coverage: SegmentCoverage, outcome: FixOutcome) -> None:
        self._validated.add(coverage.way_id)
        outcome.newly_validated = coverage.way_id
        count = len(self._validated)
        self._log.info(
            "Validated way=%s (%s) %d/%d",
            coverage.way_id,
            coverage.street.name or "unnamed",
            count,
            len(self._coverages),
        )

        for badge in evaluate_milestones(count, self.config.badges, self._unlocked):
            self._unlocked.add(badge.id)
            self.badge_queue.push(badge)
            outcome.badges.append(badge)
            self._log.info(
                "Unlocked badge %s (threshold %d, count %d)",
                badge.name,
                badge.threshold,
                count,
            )

        if self._scheduler.on_validated(count):
            outcome.save_requested = self._request_save()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def snapshot(self) -> ExplorationSnapshot:
        return ExplorationSnapshot(
            user_id=self.user_id,
            city=self.city,
            validated_way_ids=frozenset(self._validated | self._carried),
            total_ways=len(self._coverages),
            unlocked_badge_ids=frozenset(self._unlocked),
        )

    def _request_save(self) -> bool:
        if self._writer is None or not self.user_id:
            return False
        self._writer.submit(self.snapshot())
        return True

    def close(self) -> bool:
        """Flush unsaved validations and stop the writer.

        Returns True when a final snapshot was handed to the store.
        """

        if self._closed:
            return False
        flushed = False
        if self._scheduler.on_teardown(len(self._validated)):
            flushed = self._request_save()
        self._closed = True
        if self._writer is not None:
            self._writer.close(wait=True)
        return flushed

    def __enter__(self) -> "ExplorationSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Read-side views
    # ------------------------------------------------------------------
    @property
    def validated_way_ids(self) -> FrozenSet[int]:
        return frozenset(self._validated)

    @property
    def unlocked_badge_ids(self) -> FrozenSet[str]:
        return frozenset(self._unlocked)

    @property
    def explored_count(self) -> int:
        return len(self._validated)

    @property
    def total_ways(self) -> int:
        return len(self._coverages)

    @property
    def progress_pct(self) -> int:
        return format_percent(len(self._validated), len(self._coverages))

    @property
    def write_failures(self) -> int:
        return self._writer.failures if self._writer is not None else 0

    def coverage_for(self, way_id: int) -> Optional[SegmentCoverage]:
        return self._coverages.get(way_id)

    def progress_lines(self) -> Dict[int, List[LonLat]]:
        """Walked stretches of every in-progress street keyed by way id."""

        lines: Dict[int, List[LonLat]] = {}
        for way_id, coverage in self._coverages.items():
            if coverage.validated or not coverage.has_coverage:
                continue
            path = extract_progress(coverage)
            if path is not None:
                lines[way_id] = path
        return lines

    def progress_geometry(self) -> FeatureCollection:
        return feature_collection(self.progress_lines().items())

    def validated_lines(self) -> List[Tuple[int, Sequence[LonLat]]]:
        return [
            (way_id, self._coverages[way_id].coords)
            for way_id in self._coverages
            if way_id in self._validated
        ]

    def validated_geometry(self) -> FeatureCollection:
        return feature_collection(self.validated_lines())

    def street_summaries(self) -> List[StreetSummary]:
        """Per-street progress, in-progress streets first by coverage."""

        summaries = [
            StreetSummary(
                way_id=coverage.way_id,
                name=coverage.street.name,
                coverage_pct=coverage_percent(coverage),
                validated=coverage.validated,
            )
            for coverage in self._coverages.values()
        ]
        in_progress = sorted(
            (s for s in summaries if not s.validated),
            key=lambda s: -s.coverage_pct,
        )
        explored = sorted(
            (s for s in summaries if s.validated),
            key=lambda s: ((s.name or "").lower(), s.way_id),
        )
        return in_progress + explored


def _merge_restores(
    current: Optional[RestoreSnapshot], incoming: RestoreSnapshot
) -> RestoreSnapshot:
    if current is None:
        return incoming
    return RestoreSnapshot(
        validated_way_ids=list(
            dict.fromkeys([*current.validated_way_ids, *incoming.validated_way_ids])
        ),
        unlocked_badge_ids=list(
            dict.fromkeys([*current.unlocked_badge_ids, *incoming.unlocked_badge_ids])
        ),
    )


__all__ = [
    "ExplorationSession",
    "ExplorationSessionConfig",
    "FixOutcome",
    "StreetSummary",
]
