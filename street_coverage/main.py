"""Replay a stream of GPS fixes through an exploration session."""

from __future__ import annotations

import argparse
from dataclasses import asdict
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd

from .config import DEFAULT_CITY, EXPLORATION_STORE_DIR, USER_ID
from .errors import ExplorationStoreError, StreetDataError
from .models import LonLat, Street
from .services import ExplorationSession, ExplorationSessionConfig
from .simulation import simulate_walk
from .stores import JsonFileExplorationStore
from .streets import OverpassStreetSource, load_streets_file

_LON_COLUMNS = ("lon", "lng", "longitude")
_LAT_COLUMNS = ("lat", "latitude")


def _setup_logging(verbose: bool = False) -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


def read_fixes_csv(path: Path) -> List[LonLat]:
    """Return ``(lon, lat)`` fixes from a CSV with lon/lat style headers."""

    frame = pd.read_csv(path)
    columns = {str(col).strip().lower(): col for col in frame.columns}
    lon_col = next((columns[c] for c in _LON_COLUMNS if c in columns), None)
    lat_col = next((columns[c] for c in _LAT_COLUMNS if c in columns), None)
    if lon_col is None or lat_col is None:
        raise ValueError(f"{path} must contain lon and lat columns")
    coords = frame[[lon_col, lat_col]].apply(pd.to_numeric, errors="coerce").dropna()
    return [(float(lon), float(lat)) for lon, lat in coords.itertuples(index=False)]


def parse_waypoints(raw: str) -> List[LonLat]:
    """Parse ``"lon,lat;lon,lat;..."`` into waypoint tuples."""

    waypoints: List[LonLat] = []
    for chunk in raw.split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = [part.strip() for part in chunk.split(",")]
        if len(parts) != 2:
            raise ValueError(f"Invalid waypoint '{chunk}', expected lon,lat")
        waypoints.append((float(parts[0]), float(parts[1])))
    return waypoints


def write_report(session: ExplorationSession, path: Path) -> None:
    frame = pd.DataFrame([asdict(summary) for summary in session.street_summaries()])
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False)


def _load_streets(args: argparse.Namespace) -> List[Street]:
    if args.streets is not None:
        return load_streets_file(args.streets)
    return OverpassStreetSource().fetch(args.city)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Replay GPS fixes against a city's streets and record which streets"
            " were walked."
        )
    )
    parser.add_argument("--city", default=DEFAULT_CITY)
    parser.add_argument(
        "--streets",
        type=Path,
        help="Saved Overpass JSON payload; fetched live for --city when omitted",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--fixes", type=Path, help="CSV file with lon/lat columns")
    source.add_argument(
        "--waypoints",
        help="Synthetic walk 'lon,lat;lon,lat;...' interpolated every --step-m",
    )
    parser.add_argument("--step-m", type=float, default=25.0)
    parser.add_argument("--loop", action="store_true", help="Close the waypoint loop")
    parser.add_argument("--user", default=USER_ID)
    parser.add_argument("--store", type=Path, default=Path(EXPLORATION_STORE_DIR))
    parser.add_argument("--report", type=Path, help="Optional street summary CSV")
    parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        streets = _load_streets(args)
    except StreetDataError as exc:
        logging.error("Failed to load streets for '%s': %s", args.city, exc)
        return 1

    try:
        if args.fixes is not None:
            fixes = read_fixes_csv(args.fixes)
        else:
            fixes = simulate_walk(
                parse_waypoints(args.waypoints), args.step_m, close_loop=args.loop
            )
    except (OSError, ValueError) as exc:
        logging.error("Failed to read fixes: %s", exc)
        return 1

    store = JsonFileExplorationStore(args.store) if args.user else None
    if store is None:
        logging.warning("No user id given; progress will not be saved")
    config = ExplorationSessionConfig(store=store)

    with ExplorationSession(args.user, args.city, config) as session:
        session.load_streets(streets)
        try:
            session.restore_from_store()
        except ExplorationStoreError as exc:
            logging.warning("Starting without saved progress: %s", exc)

        outcomes = session.process_fixes(fixes)
        matched = sum(1 for outcome in outcomes if outcome.matched)
        badges = [badge.name for outcome in outcomes for badge in outcome.badges]
        logging.info(
            "Replayed %d fixes (%d matched): %d/%d streets explored (%d%%)",
            len(outcomes),
            matched,
            session.explored_count,
            session.total_ways,
            session.progress_pct,
        )
        if badges:
            logging.info("Badges unlocked: %s", ", ".join(badges))
        if args.report is not None:
            write_report(session, args.report)
            logging.info("Street report written to %s", args.report)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
