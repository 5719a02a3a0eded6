"""Street coverage engine: turns GPS fixes into walked OpenStreetMap streets."""

from .errors import ExplorationStoreError, StreetCoverageError, StreetDataError
from .models import BadgeDefinition, ExplorationSnapshot, RestoreSnapshot, Street
from .services import ExplorationSession, ExplorationSessionConfig, FixOutcome

__all__ = [
    "BadgeDefinition",
    "ExplorationSession",
    "ExplorationSessionConfig",
    "ExplorationSnapshot",
    "ExplorationStoreError",
    "FixOutcome",
    "RestoreSnapshot",
    "Street",
    "StreetCoverageError",
    "StreetDataError",
]
