"""Service layer package.

Exports high-level services consumed by orchestration / presentation layers.
"""

from .exploration_service import (
    ExplorationSession,
    ExplorationSessionConfig,
    FixOutcome,
    StreetSummary,
)

__all__ = [
    "ExplorationSession",
    "ExplorationSessionConfig",
    "FixOutcome",
    "StreetSummary",
]
