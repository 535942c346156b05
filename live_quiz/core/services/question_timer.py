"""Countdown helpers and the deadline-driven auto-advance actor.

Every observer derives its countdown from the persisted ``phaseDeadline``,
so a late subscriber shows the same remaining time as the host. Only the
host actor (``QuestionTimer`` driven by ``AutoAdvanceLoop``) turns an elapsed
deadline into a transition.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable

from live_quiz.constants.quiz_constants import AUTO_ADVANCE_TICK_SECONDS
from live_quiz.core.errors import InvalidTransition, NotFound
from live_quiz.core.models import SessionState, SessionStatus, Transition
from live_quiz.core.services.game_session import SessionStateMachine
from live_quiz.core.store import SESSION_ROOT, SessionStore
from live_quiz.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)


def seconds_remaining(phase_started_at: int, limit_seconds: int, now: int) -> int:
    """Whole seconds left in a phase that began at ``phase_started_at`` (ms)."""
    return seconds_until(phase_started_at + limit_seconds * 1000, now)


def seconds_until(deadline: int, now: int) -> int:
    remaining_ms = deadline - now
    if remaining_ms <= 0:
        return 0
    return math.ceil(remaining_ms / 1000)


def remaining_for(state: SessionState, now: int) -> int | None:
    """Seconds left in the current phase, or None when the phase is untimed."""
    if state.status is not SessionStatus.ACTIVE or state.phase_deadline is None:
        return None
    return seconds_until(state.phase_deadline, now)


class QuestionTimer:
    """Applies reveal/advance when the persisted phase deadline has passed."""

    def __init__(self, store: SessionStore, state_machine: SessionStateMachine, clock: Clock = now_ms) -> None:
        self._store = store
        self._state_machine = state_machine
        self._clock = clock

    def tick(self, pin: str) -> Transition | None:
        try:
            state = self._state_machine.get_state(pin)
        except NotFound:
            return None
        if state.status is not SessionStatus.ACTIVE or state.phase_deadline is None:
            return None
        if self._clock() < state.phase_deadline:
            return None

        transition = Transition.ADVANCE if state.show_result else Transition.REVEAL
        try:
            self._state_machine.apply_transition(pin, transition, expected=state.phase)
        except (InvalidTransition, NotFound) as exc:
            # Someone else moved the session first; the deadline is stale.
            logger.debug("Skipped timed %s for %s: %s", transition.value, pin, exc)
            return None
        return transition

    def tick_all(self) -> dict[str, Transition]:
        applied: dict[str, Transition] = {}
        for pin in self._store.children(SESSION_ROOT):
            transition = self.tick(pin)
            if transition is not None:
                applied[pin] = transition
        return applied


class AutoAdvanceLoop:
    """Background task that ticks every session once per interval.

    Ticks run on a worker thread; the facade lock is never taken on the event loop.
    """

    def __init__(
        self,
        tick: Callable[[], dict[str, Transition]],
        interval: float = AUTO_ADVANCE_TICK_SECONDS,
    ) -> None:
        self._tick = tick
        self._interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="auto-advance")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def _run(self) -> None:
        logger.info("Auto-advance loop started (interval %.1fs)", self._interval)
        while True:
            try:
                applied = await asyncio.to_thread(self._tick)
            except Exception:
                logger.exception("Auto-advance tick failed")
            else:
                for pin, transition in applied.items():
                    logger.info("Timer elapsed for %s; applied %s", pin, transition.value)
            await asyncio.sleep(self._interval)
