"""Tests for the Overpass street source and payload normalisation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import pytest
import requests

from street_coverage.errors import StreetDataError
from street_coverage.streets import (
    OverpassStreetSource,
    build_streets_query,
    load_streets_file,
    parse_overpass_ways,
)

PAYLOAD: Dict[str, Any] = {
    "elements": [
        {
            "type": "way",
            "id": 11,
            "tags": {"name": "Rue de Paris", "highway": "residential"},
            "geometry": [{"lat": 48.8666, "lon": 2.0833}, {"lat": 48.8670, "lon": 2.0840}],
        },
        {"type": "relation", "id": 99, "members": []},
        {"type": "way", "id": 12, "geometry": [{"lat": 48.8, "lon": 2.0}]},
        {"type": "way", "geometry": [{"lat": 1.0, "lon": 1.0}, {"lat": 2.0, "lon": 2.0}]},
        {"type": "way", "id": 11, "geometry": []},
    ]
}


class _FakeResponse:
    def __init__(self, status_code: int, payload: Any = None) -> None:
        self.status_code = status_code
        self._payload = payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self) -> Any:
        return self._payload


class _FakeSession:
    def __init__(self, responses: List[Any]) -> None:
        self._responses = list(responses)
        self.calls: List[str] = []

    def post(self, url: str, data: Any = None, timeout: Any = None) -> _FakeResponse:
        self.calls.append(url)
        result = self._responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def test_parse_overpass_ways_normalises_geometry() -> None:
    streets = parse_overpass_ways(PAYLOAD)

    assert [street.way_id for street in streets] == [11, 12]
    assert streets[0].vertices == ((2.0833, 48.8666), (2.0840, 48.8670))
    assert streets[0].name == "Rue de Paris"
    assert streets[1].name is None
    assert not streets[1].coverable


def test_parse_overpass_ways_requires_elements() -> None:
    with pytest.raises(StreetDataError):
        parse_overpass_ways({"remark": "runtime error"})


def test_build_streets_query_filters_highways() -> None:
    query = build_streets_query("Marly-le-Roi", ["motorway", "footway"], timeout=30)

    assert query.startswith("[out:json][timeout:30];")
    assert 'relation["name"="Marly-le-Roi"]["admin_level"="8"];' in query
    assert 'way["highway"]["highway"!~"motorway|footway"](area.searchArea);' in query
    assert query.endswith("out geom;")


def test_build_streets_query_escapes_quotes() -> None:
    query = build_streets_query('Saint "X"', [])

    assert 'relation["name"="Saint \\"X\\""]' in query
    assert 'way["highway"](area.searchArea);' in query


def test_load_streets_file_accepts_proxy_shape(tmp_path: Path) -> None:
    path = tmp_path / "streets.json"
    path.write_text(
        json.dumps({"streets": PAYLOAD["elements"], "relation": None}), encoding="utf-8"
    )

    streets = load_streets_file(path)

    assert [street.way_id for street in streets] == [11, 12]


def test_load_streets_file_missing(tmp_path: Path) -> None:
    with pytest.raises(StreetDataError):
        load_streets_file(tmp_path / "absent.json")


def test_fetch_rotates_endpoints_on_failure() -> None:
    session = _FakeSession(
        [requests.ConnectionError("boom"), _FakeResponse(200, PAYLOAD)]
    )
    source = OverpassStreetSource(
        ["https://a.example/api", "https://b.example/api"],
        session=session,
        sleep=lambda _: None,
    )

    streets = source.fetch("Marly-le-Roi")

    assert len(streets) == 2
    assert session.calls == ["https://a.example/api", "https://b.example/api"]


def test_fetch_retries_once_after_rate_limit() -> None:
    sleeps: List[float] = []
    session = _FakeSession([_FakeResponse(429), _FakeResponse(200, PAYLOAD)])
    source = OverpassStreetSource(
        ["https://a.example/api"],
        session=session,
        retry_delay=0.5,
        sleep=sleeps.append,
    )

    streets = source.fetch("Marly-le-Roi")

    assert len(streets) == 2
    assert sleeps == [0.5]
    assert session.calls == ["https://a.example/api", "https://a.example/api"]


def test_fetch_raises_when_every_endpoint_fails() -> None:
    session = _FakeSession(
        [_FakeResponse(503), _FakeResponse(429), _FakeResponse(429)]
    )
    source = OverpassStreetSource(
        ["https://a.example/api", "https://b.example/api"],
        session=session,
        sleep=lambda _: None,
    )

    with pytest.raises(StreetDataError):
        source.fetch("Marly-le-Roi")


def test_fetch_serves_cached_city() -> None:
    session = _FakeSession([_FakeResponse(200, PAYLOAD)])
    source = OverpassStreetSource(["https://a.example/api"], session=session)

    first = source.fetch("Marly-le-Roi")
    second = source.fetch("Marly-le-Roi")

    assert first == second
    assert len(session.calls) == 1


def test_fetch_without_cache_hits_network_each_time() -> None:
    session = _FakeSession([_FakeResponse(200, PAYLOAD), _FakeResponse(200, PAYLOAD)])
    source = OverpassStreetSource(
        ["https://a.example/api"], session=session, cache_enabled=False
    )

    source.fetch("Marly-le-Roi")
    source.fetch("Marly-le-Roi")

    assert len(session.calls) == 2


def test_fetch_uses_requests_post_without_session(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    calls: List[Dict[str, Any]] = []

    def fake_post(url: str, data: Any = None, timeout: Any = None) -> _FakeResponse:
        calls.append({"url": url, "data": data, "timeout": timeout})
        return _FakeResponse(200, PAYLOAD)

    monkeypatch.setattr("street_coverage.streets.requests.post", fake_post)
    source = OverpassStreetSource(["https://a.example/api"], timeout=12)

    source.fetch("Marly-le-Roi")

    assert calls[0]["timeout"] == 12
    assert "[timeout:12]" in calls[0]["data"]["data"]
