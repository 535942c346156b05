"""Service for drawing numeric session PINs that are unused in the store."""

from __future__ import annotations

import logging
import random

from live_quiz.constants.quiz_constants import PIN_ALLOCATION_ATTEMPTS, PIN_MAX, PIN_MIN
from live_quiz.core.errors import ExhaustedKeyspace
from live_quiz.core.store import SessionStore, session_path

logger = logging.getLogger(__name__)


class PinAllocator:
    """Draws uniform 6-digit PINs and retries on collision.

    The check-then-write window is not closed here; two hosts drawing the
    same PIN at the same instant would both pass ``exists``. The retry loop
    only makes that unlikely.
    """

    def __init__(
        self,
        store: SessionStore,
        max_attempts: int = PIN_ALLOCATION_ATTEMPTS,
        rng: random.Random | None = None,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be a positive integer.")
        self._store = store
        self._max_attempts = max_attempts
        self._rng = rng or random.Random()

    def allocate(self) -> str:
        for attempt in range(1, self._max_attempts + 1):
            pin = self._draw()
            if not self._store.exists(session_path(pin)):
                return pin
            logger.debug("PIN %s already in use (attempt %d/%d)", pin, attempt, self._max_attempts)
        raise ExhaustedKeyspace(
            f"Failed to find an unused PIN after {self._max_attempts} attempts."
        )

    def _draw(self) -> str:
        return str(self._rng.randint(PIN_MIN, PIN_MAX))
