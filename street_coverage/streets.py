"""Street dataset collaborator: Overpass query, fetch and normalisation."""

from __future__ import annotations

import json
import logging
from pathlib import Path
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import requests
from cachetools import TTLCache

from .config import (
    OVERPASS_CACHE_DISABLED,
    OVERPASS_CACHE_MAX_ENTRIES,
    OVERPASS_CACHE_TTL_SECONDS,
    OVERPASS_ENDPOINTS,
    OVERPASS_EXCLUDED_HIGHWAYS,
    OVERPASS_RETRY_DELAY_SECONDS,
    OVERPASS_TIMEOUT,
)
from .errors import StreetDataError
from .models import LonLat, Street

_LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]


def build_streets_query(
    city: str,
    excluded_highways: Sequence[str] = OVERPASS_EXCLUDED_HIGHWAYS,
    *,
    timeout: int = OVERPASS_TIMEOUT,
) -> str:
    """Return the Overpass QL query selecting walkable ways inside ``city``."""

    safe_city = city.replace("\\", "\\\\").replace('"', '\\"')
    excluded = "|".join(excluded_highways)
    highway_filter = '["highway"]'
    if excluded:
        highway_filter += f'["highway"!~"{excluded}"]'
    return "\n".join(
        [
            f"[out:json][timeout:{timeout}];",
            f'relation["name"="{safe_city}"]["admin_level"="8"];',
            "map_to_area->.searchArea;",
            f"way{highway_filter}(area.searchArea);",
            "out geom;",
        ]
    )


def parse_overpass_ways(payload: Mapping[str, Any]) -> List[Street]:
    """Convert an Overpass ``out geom`` payload into :class:`Street` records.

    Non-way elements and ways without an id are dropped. Ways with fewer than
    two vertices are kept; they simply can never be covered.
    """

    elements = payload.get("elements")
    if not isinstance(elements, list):
        raise StreetDataError("Overpass payload has no 'elements' list")

    streets: List[Street] = []
    seen: set[int] = set()
    for element in elements:
        if not isinstance(element, Mapping) or element.get("type") != "way":
            continue
        try:
            way_id = int(element["id"])
        except (KeyError, TypeError, ValueError):
            continue
        if way_id in seen:
            continue
        seen.add(way_id)
        vertices = _normalise_geometry(element.get("geometry") or [])
        tags = element.get("tags") if isinstance(element.get("tags"), Mapping) else {}
        name = tags.get("name") if tags else None
        streets.append(Street(way_id=way_id, vertices=vertices, name=name))
    return streets


def _normalise_geometry(points: Iterable[Any]) -> tuple[LonLat, ...]:
    vertices: List[LonLat] = []
    for point in points:
        if not isinstance(point, Mapping):
            continue
        try:
            vertices.append((float(point["lon"]), float(point["lat"])))
        except (KeyError, TypeError, ValueError):
            continue
    return tuple(vertices)


def load_streets_file(path: PathLike) -> List[Street]:
    """Read a saved Overpass JSON payload from disk."""

    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise StreetDataError(f"Unable to read street file {path}: {exc}") from exc
    if isinstance(payload, Mapping) and isinstance(payload.get("streets"), list):
        # Shape returned by the street API proxy: {"streets": [...], "relation": ...}
        payload = {"elements": payload["streets"]}
    return parse_overpass_ways(payload)


class OverpassStreetSource:
    """Fetch street ways for a city from Overpass with endpoint rotation."""

    def __init__(
        self,
        endpoints: Sequence[str] = OVERPASS_ENDPOINTS,
        *,
        timeout: int = OVERPASS_TIMEOUT,
        retry_delay: float = OVERPASS_RETRY_DELAY_SECONDS,
        excluded_highways: Sequence[str] = OVERPASS_EXCLUDED_HIGHWAYS,
        cache_ttl: int = OVERPASS_CACHE_TTL_SECONDS,
        cache_enabled: bool = not OVERPASS_CACHE_DISABLED,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not endpoints:
            raise ValueError("At least one Overpass endpoint is required")
        self._endpoints = tuple(endpoints)
        self._timeout = timeout
        self._retry_delay = retry_delay
        self._excluded = tuple(excluded_highways)
        self._session = session
        self._sleep = sleep
        self._cache: Optional[TTLCache[str, List[Street]]] = (
            TTLCache(maxsize=max(1, OVERPASS_CACHE_MAX_ENTRIES), ttl=cache_ttl)
            if cache_enabled and cache_ttl > 0
            else None
        )
        self._cache_lock = threading.RLock()
        self._log = logging.getLogger(self.__class__.__name__)

    def fetch(self, city: str) -> List[Street]:
        """Return the streets of ``city``, served from cache when fresh."""

        if self._cache is not None:
            with self._cache_lock:
                cached = self._cache.get(city)
            if cached is not None:
                self._log.info("Street cache hit for %s", city)
                return list(cached)

        self._log.info("Fetching Overpass streets for %s", city)
        query = build_streets_query(city, self._excluded, timeout=self._timeout)
        payload = self._query(query)
        streets = parse_overpass_ways(payload)
        if self._cache is not None:
            with self._cache_lock:
                self._cache[city] = streets
        self._log.info("Loaded %d ways for %s", len(streets), city)
        return list(streets)

    def clear_cache(self) -> None:
        if self._cache is not None:
            with self._cache_lock:
                self._cache.clear()

    def _query(self, query: str) -> Dict[str, Any]:
        last_error: Exception = StreetDataError("No Overpass endpoints tried")
        for endpoint in self._endpoints:
            try:
                response = self._post(endpoint, query)
                if response.status_code == 429:
                    self._log.warning(
                        "Overpass 429 on %s, retrying in %ss",
                        endpoint,
                        self._retry_delay,
                    )
                    self._sleep(self._retry_delay)
                    response = self._post(endpoint, query)
                response.raise_for_status()
                payload = response.json()
                if not isinstance(payload, dict):
                    raise StreetDataError("Overpass response is not a JSON object")
                return payload
            except (requests.RequestException, ValueError, StreetDataError) as exc:
                last_error = exc
                self._log.warning("Overpass endpoint failed (%s): %s", endpoint, exc)
        raise StreetDataError(
            f"All Overpass endpoints failed: {last_error}"
        ) from last_error

    def _post(self, endpoint: str, query: str) -> requests.Response:
        poster = self._session.post if self._session is not None else requests.post
        return poster(endpoint, data={"data": query}, timeout=self._timeout)


__all__ = [
    "OverpassStreetSource",
    "build_streets_query",
    "load_streets_file",
    "parse_overpass_ways",
]
