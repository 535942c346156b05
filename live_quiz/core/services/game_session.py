"""Service owning the authoritative phase of each quiz session.

States and host transitions::

    waiting  --start-->    active(0, showResult=False)
    active   --reveal-->   active(i, showResult=True)          only from showResult=False
    active   --advance-->  active(i + 1, showResult=False)     if i + 1 < question count
    active   --advance-->  finished(showResult=True)           otherwise
    active   --stop-->     finished
    finished --reset-->    waiting(-1, showResult=False)       also clears all participants

Every write is a compare-and-set against the state record that was read, so
two actors racing on the same transition cannot both apply it. Callers that
act on an observed phase (the auto-advance loop) pass ``expected`` to turn a
stale trigger into a rejected no-op.
"""

from __future__ import annotations

import logging

from live_quiz.constants.quiz_constants import REVEAL_DURATION_SECONDS
from live_quiz.core.errors import InvalidTransition, NotFound
from live_quiz.core.models import Phase, SessionState, SessionStatus, Transition
from live_quiz.core.services.participant_registry import ParticipantRegistry
from live_quiz.core.services.quiz_repository import QuizRepository
from live_quiz.core.store import SessionStore, session_path
from live_quiz.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)


class SessionStateMachine:
    """Applies host transitions to ``session/{pin}/state``."""

    def __init__(
        self,
        store: SessionStore,
        repository: QuizRepository,
        participants: ParticipantRegistry,
        clock: Clock = now_ms,
        reveal_seconds: int = REVEAL_DURATION_SECONDS,
    ) -> None:
        self._store = store
        self._repository = repository
        self._participants = participants
        self._clock = clock
        self._reveal_seconds = reveal_seconds

    def get_state(self, pin: str) -> SessionState:
        record = self._store.read(session_path(pin, "state"))
        if record is None:
            raise NotFound(f"Quiz {pin} not found.")
        return SessionState.from_record(record)

    def apply_transition(
        self,
        pin: str,
        transition: Transition | str,
        expected: Phase | None = None,
    ) -> SessionState:
        """Apply ``transition`` and persist the resulting state."""
        try:
            transition = Transition(transition)
        except ValueError as exc:
            raise InvalidTransition(f"Unknown transition '{transition}'.") from exc

        path = session_path(pin, "state")
        while True:
            current_record = self._store.read(path)
            if current_record is None:
                raise NotFound(f"Quiz {pin} not found.")
            current = SessionState.from_record(current_record)
            if expected is not None and current.phase != expected:
                raise InvalidTransition(
                    f"Session {pin} moved on before '{transition.value}' could apply."
                )
            new_state = self._next_state(pin, current, transition)
            if self._store.compare_and_set(path, current_record, new_state.to_record()):
                break
            logger.debug("State of %s changed concurrently; re-evaluating %s", pin, transition.value)

        if transition is Transition.RESET:
            self._participants.clear(pin)
        logger.info(
            "Session %s: %s -> %s (question %d, showResult=%s)",
            pin,
            transition.value,
            new_state.status.value,
            new_state.current_question_index,
            new_state.show_result,
        )
        return new_state

    def _next_state(self, pin: str, current: SessionState, transition: Transition) -> SessionState:
        status = current.status
        now = self._clock()

        if transition is Transition.START:
            self._require(status is SessionStatus.WAITING, transition, current)
            return self._question_phase(pin, 0, now)

        if transition is Transition.REVEAL:
            self._require(status is SessionStatus.ACTIVE and not current.show_result, transition, current)
            return SessionState(
                status=SessionStatus.ACTIVE,
                current_question_index=current.current_question_index,
                show_result=True,
                phase_started_at=now,
                phase_deadline=now + self._reveal_seconds * 1000,
            )

        if transition is Transition.ADVANCE:
            self._require(status is SessionStatus.ACTIVE, transition, current)
            next_index = current.current_question_index + 1
            if next_index < self._repository.get_question_count(pin):
                return self._question_phase(pin, next_index, now)
            return SessionState(
                status=SessionStatus.FINISHED,
                current_question_index=current.current_question_index,
                show_result=True,
            )

        if transition is Transition.STOP:
            self._require(status is SessionStatus.ACTIVE, transition, current)
            return SessionState(
                status=SessionStatus.FINISHED,
                current_question_index=current.current_question_index,
                show_result=current.show_result,
            )

        self._require(status is SessionStatus.FINISHED, transition, current)
        return SessionState()

    def _question_phase(self, pin: str, index: int, now: int) -> SessionState:
        question = self._repository.get_question(pin, index)
        return SessionState(
            status=SessionStatus.ACTIVE,
            current_question_index=index,
            show_result=False,
            phase_started_at=now,
            phase_deadline=now + question.time_limit * 1000,
        )

    @staticmethod
    def _require(allowed: bool, transition: Transition, current: SessionState) -> None:
        if not allowed:
            phase = current.status.value + (" (results shown)" if current.show_result else "")
            raise InvalidTransition(f"Cannot {transition.value} while the session is {phase}.")
