"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable street fixtures so coverage
and session tests share the same geometry.
"""
from __future__ import annotations

import os
import sys
from typing import List

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from street_coverage.models import Street
from street_coverage.services import ExplorationSessionConfig
from street_coverage.stores import InMemoryExplorationStore


# --- Factory helpers -------------------------------------------------
def make_short_streets(count: int, start_id: int = 1) -> List[Street]:
    """Return ``count`` ~55 m north-south streets spaced ~1.1 km apart."""

    return [
        Street(
            way_id=start_id + idx,
            vertices=((idx * 0.01, 0.0), (idx * 0.01, 0.0005)),
            name=f"Street {start_id + idx}",
        )
        for idx in range(count)
    ]


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def straight_street() -> Street:
    """~111 m street along the meridian starting at the origin."""

    return Street(way_id=100, vertices=((0.0, 0.0), (0.0, 0.001)), name="Main Street")


@pytest.fixture
def bent_street() -> Street:
    """Three ~111 m legs: north, east, north."""

    return Street(
        way_id=200,
        vertices=((0.0, 0.0), (0.0, 0.001), (0.001, 0.001), (0.001, 0.002)),
        name="Crooked Lane",
    )


@pytest.fixture
def memory_store() -> InMemoryExplorationStore:
    return InMemoryExplorationStore()


@pytest.fixture
def inline_config(memory_store: InMemoryExplorationStore) -> ExplorationSessionConfig:
    """Session config saving synchronously into the in-memory store."""

    return ExplorationSessionConfig(store=memory_store, writer_max_workers=0)
