"""Badge milestones derived from the number of validated streets."""

from __future__ import annotations

from collections import deque
import logging
from typing import Collection, Deque, Iterable, List, Optional, Sequence

from .models import BadgeDefinition

_LOGGER = logging.getLogger(__name__)

DEFAULT_BADGES: tuple[BadgeDefinition, ...] = (
    BadgeDefinition("first_step", "First Steps", "🚶", 1),
    BadgeDefinition("explorer", "Explorer", "🗺️", 50),
    BadgeDefinition("walker", "Walker", "🏃", 125),
    BadgeDefinition("connoisseur", "Connoisseur", "🌆", 249),
    BadgeDefinition("master", "Master of the City", "🏆", 498),
)


def evaluate_milestones(
    validated_count: int,
    definitions: Sequence[BadgeDefinition] = DEFAULT_BADGES,
    unlocked: Collection[str] = (),
) -> List[BadgeDefinition]:
    """Return definitions crossed at ``validated_count`` and not yet unlocked.

    The result is ordered by threshold (definition order breaks ties).
    """

    crossed = [
        badge
        for badge in definitions
        if badge.threshold <= validated_count and badge.id not in unlocked
    ]
    return sorted(crossed, key=lambda badge: badge.threshold)


class BadgeQueue:
    """FIFO of unlocked badges waiting to be shown, plus the one on display.

    The engine only pushes; a presentation layer pulls with :meth:`advance`
    and releases the active slot with :meth:`dismiss`.
    """

    def __init__(self, badges: Iterable[BadgeDefinition] = ()) -> None:
        self._pending: Deque[BadgeDefinition] = deque(badges)
        self._active: Optional[BadgeDefinition] = None

    def push(self, badge: BadgeDefinition) -> None:
        self._pending.append(badge)

    def pop_or_none(self) -> Optional[BadgeDefinition]:
        if not self._pending:
            return None
        return self._pending.popleft()

    @property
    def active(self) -> Optional[BadgeDefinition]:
        return self._active

    def advance(self) -> Optional[BadgeDefinition]:
        """Fill the active slot from the queue when it is free."""

        if self._active is None:
            self._active = self.pop_or_none()
            if self._active is not None:
                _LOGGER.info("Presenting badge %s", self._active.name)
        return self._active

    def dismiss(self) -> Optional[BadgeDefinition]:
        """Release the active badge and move on to the next one."""

        self._active = None
        return self.advance()

    def pending(self) -> List[BadgeDefinition]:
        return list(self._pending)

    def clear(self) -> None:
        self._pending.clear()
        self._active = None

    def __len__(self) -> int:
        return len(self._pending)


__all__ = ["BadgeQueue", "DEFAULT_BADGES", "evaluate_milestones"]
