"""Storage collaborators for exploration records.

A store performs a full-overwrite upsert keyed by ``(user_id, city)``; the
latest save always wins. Load failures surface as
:class:`~street_coverage.errors.ExplorationStoreError`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from hashlib import sha256
import json
import logging
from pathlib import Path
import threading
from typing import Any, Dict, Protocol, Tuple, Union

from .config import EXPLORATION_STORE_DIR
from .errors import ExplorationStoreError
from .models import ExplorationSnapshot, RestoreSnapshot
from .utils import json_dumps_sorted

_LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]
_StoreKey = Tuple[str, str]


class ExplorationStore(Protocol):
    """Durable exploration record keyed by user and city."""

    def load(self, user_id: str, city: str) -> RestoreSnapshot:
        """Return the stored state, or an empty snapshot when none exists."""
        ...

    def save(self, snapshot: ExplorationSnapshot) -> None:
        """Overwrite the record for ``(snapshot.user_id, snapshot.city)``."""
        ...


def _require_user(snapshot: ExplorationSnapshot) -> None:
    if not snapshot.user_id:
        raise ExplorationStoreError("Cannot save exploration without a user id")


class InMemoryExplorationStore:
    """Process-local store, mainly for tests and embedded use."""

    def __init__(self) -> None:
        self._records: Dict[_StoreKey, ExplorationSnapshot] = {}
        self._lock = threading.Lock()
        self.save_count = 0

    def load(self, user_id: str, city: str) -> RestoreSnapshot:
        with self._lock:
            record = self._records.get((user_id, city))
        if record is None:
            return RestoreSnapshot()
        return RestoreSnapshot.from_ids(
            sorted(record.validated_way_ids), sorted(record.unlocked_badge_ids)
        )

    def save(self, snapshot: ExplorationSnapshot) -> None:
        _require_user(snapshot)
        with self._lock:
            self._records[(snapshot.user_id, snapshot.city)] = snapshot
            self.save_count += 1

    def get(self, user_id: str, city: str) -> ExplorationSnapshot | None:
        with self._lock:
            return self._records.get((user_id, city))


class JsonFileExplorationStore:
    """One JSON document per ``(user_id, city)`` under ``base_dir``."""

    def __init__(self, base_dir: PathLike = EXPLORATION_STORE_DIR) -> None:
        base = Path(base_dir)
        self._base_dir = base if base.is_absolute() else Path.cwd() / base
        self._lock = threading.Lock()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def path_for(self, user_id: str, city: str) -> Path:
        # Hashing keeps arbitrary city names and user ids filesystem-safe.
        signature = sha256(
            json_dumps_sorted({"user_id": user_id, "city": city}).encode("utf-8")
        ).hexdigest()
        return self._base_dir / signature[0:2] / f"{signature}.json"

    def load(self, user_id: str, city: str) -> RestoreSnapshot:
        path = self.path_for(user_id, city)
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload: Dict[str, Any] = json.load(handle)
        except FileNotFoundError:
            return RestoreSnapshot()
        except (OSError, json.JSONDecodeError) as exc:
            raise ExplorationStoreError(
                f"Failed reading exploration record {path}: {exc}"
            ) from exc
        try:
            return RestoreSnapshot.from_ids(
                payload.get("validated_way_ids") or [],
                payload.get("unlocked_badge_ids") or [],
            )
        except (TypeError, ValueError) as exc:
            raise ExplorationStoreError(
                f"Malformed exploration record {path}: {exc}"
            ) from exc

    def save(self, snapshot: ExplorationSnapshot) -> None:
        _require_user(snapshot)
        path = self.path_for(snapshot.user_id, snapshot.city)
        payload = snapshot.to_payload()
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                temp_path = path.with_suffix(".tmp")
                with temp_path.open("w", encoding="utf-8") as handle:
                    handle.write(json_dumps_sorted(payload, indent=2))
                temp_path.replace(path)
            except OSError as exc:
                raise ExplorationStoreError(
                    f"Failed writing exploration record {path}: {exc}"
                ) from exc
        _LOGGER.debug("Wrote exploration record %s", path)


__all__ = [
    "ExplorationStore",
    "InMemoryExplorationStore",
    "JsonFileExplorationStore",
]
