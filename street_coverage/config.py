"""Central configuration for the street coverage engine.

All values are constants imported by the rest of the package. Adjust as needed
for your environment. Overrides are read from environment variables
(optionally via a local `.env`).
"""

from __future__ import annotations

import os

from dotenv import load_dotenv


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _env_list(key: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(key, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


# Load .env from the current directory or any parent folder.
load_dotenv()


# ---------------------------------------------------------------------------
# Coordinate metric
# ---------------------------------------------------------------------------
# Metres per degree of latitude used by the equirectangular approximation.
# Only valid at city scale (well under ~50 km).
METERS_PER_DEGREE = 111000.0


# ---------------------------------------------------------------------------
# Coverage tuning
# ---------------------------------------------------------------------------
# Spacing (metres) between coverage samples along each street.
COVERAGE_SAMPLE_STEP_M = _env_float("COVERAGE_SAMPLE_STEP_M", 5.0)

# A sample counts as walked when the snapped fix lies within this radius.
COVERAGE_RADIUS_M = _env_float("COVERAGE_RADIUS_M", 15.0)

# Fixes further than this from every street are ignored (indoor / off-network).
MATCH_MAX_DISTANCE_M = _env_float("MATCH_MAX_DISTANCE_M", 50.0)

# Fraction of samples that must be covered before a street is validated.
VALIDATION_THRESHOLD = _env_float("VALIDATION_THRESHOLD", 0.80)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------
# Emit a snapshot once this many new streets have been validated.
SAVE_BATCH_SIZE = _env_int("SAVE_BATCH_SIZE", 10)

# Fire-and-forget snapshot writes run on one background thread (saves stay in
# submission order). Set to 0 to write inline on the calling thread.
SNAPSHOT_WRITER_MAX_WORKERS = _env_int("SNAPSHOT_WRITER_MAX_WORKERS", 1)

# Directory (absolute or relative) holding one JSON file per (user, city).
EXPLORATION_STORE_DIR = os.getenv("EXPLORATION_STORE_DIR", "explorations")

# Session identity used by the CLI when none is passed explicitly.
USER_ID = os.getenv("STREET_COVERAGE_USER_ID", "")
DEFAULT_CITY = os.getenv("STREET_COVERAGE_CITY", "Marly-le-Roi")


# ---------------------------------------------------------------------------
# Street data (Overpass)
# ---------------------------------------------------------------------------
# Endpoints are tried in order; the next one is used when a request fails.
OVERPASS_ENDPOINTS = _env_list(
    "OVERPASS_ENDPOINTS",
    "https://overpass-api.de/api/interpreter,"
    "https://overpass.kumi.systems/api/interpreter,"
    "https://overpass.private.coffee/api/interpreter",
)

# Request timeout in seconds (also passed to the Overpass query itself).
OVERPASS_TIMEOUT = _env_int("OVERPASS_TIMEOUT", 60)

# Pause before the single retry issued after an HTTP 429.
OVERPASS_RETRY_DELAY_SECONDS = _env_float("OVERPASS_RETRY_DELAY_SECONDS", 5.0)

# Street payloads are cached per city for this long.
OVERPASS_CACHE_TTL_SECONDS = _env_int("OVERPASS_CACHE_TTL_SECONDS", 24 * 3600)
OVERPASS_CACHE_MAX_ENTRIES = _env_int("OVERPASS_CACHE_MAX_ENTRIES", 16)

# Highway classes that never count as walkable streets.
OVERPASS_EXCLUDED_HIGHWAYS = _env_list(
    "OVERPASS_EXCLUDED_HIGHWAYS",
    "motorway,trunk,primary,motorway_link,trunk_link,service,footway,"
    "cycleway,path,steps",
)

# Skip the Overpass cache entirely (always hit the network).
OVERPASS_CACHE_DISABLED = _env_bool("OVERPASS_CACHE_DISABLED", False)
