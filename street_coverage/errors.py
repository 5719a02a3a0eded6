"""Central error types used across the application."""

from __future__ import annotations


class StreetCoverageError(RuntimeError):
    """Base error for the street coverage package."""


class StreetDataError(StreetCoverageError):
    """Raised when a street dataset cannot be fetched or parsed."""


class ExplorationStoreError(StreetCoverageError):
    """Raised when an exploration record cannot be read or written."""


__all__ = [
    "StreetCoverageError",
    "StreetDataError",
    "ExplorationStoreError",
]
