"""Service that validates answer submissions and updates participant scores."""

from __future__ import annotations

from live_quiz.constants.quiz_constants import CORRECT_ANSWER_POINTS, OPTION_COUNT
from live_quiz.core.errors import AnswerRejected, NotFound
from live_quiz.core.models import Participant, ScoreDelta, SessionState, SessionStatus
from live_quiz.core.services.quiz_repository import QuizRepository
from live_quiz.core.store import SessionStore, participant_path, session_path
from live_quiz.utils.clock import Clock, now_ms


class ScoringEngine:
    """Scores each participant at most once per question."""

    def __init__(
        self,
        store: SessionStore,
        repository: QuizRepository,
        clock: Clock = now_ms,
        correct_points: int = CORRECT_ANSWER_POINTS,
    ) -> None:
        self._store = store
        self._repository = repository
        self._clock = clock
        self._correct_points = correct_points

    def submit_answer(
        self,
        pin: str,
        participant_id: str,
        question_index: int,
        option_index: int,
    ) -> ScoreDelta:
        """Score a submission or raise ``AnswerRejected`` without touching the store."""
        path = participant_path(pin, participant_id)
        state_record = self._store.read(session_path(pin, "state"))
        if state_record is None:
            raise NotFound(f"Quiz {pin} not found.")
        state = SessionState.from_record(state_record)

        if state.status is not SessionStatus.ACTIVE:
            raise AnswerRejected(AnswerRejected.NOT_ACTIVE, "The session is not running.")
        if state.show_result:
            raise AnswerRejected(AnswerRejected.ANSWERS_CLOSED, "Answers are closed for this question.")
        if question_index != state.current_question_index:
            raise AnswerRejected(
                AnswerRejected.WRONG_QUESTION,
                f"Question {question_index} is not the current question.",
            )
        if isinstance(option_index, bool) or not 0 <= option_index < OPTION_COUNT:
            raise AnswerRejected(AnswerRejected.INVALID_OPTION, f"Option {option_index} is out of range.")

        question = self._repository.get_question(pin, question_index)
        correct = option_index == question.correct_index
        points = self._correct_points if correct else 0

        while True:
            record = self._store.read(path)
            if record is None:
                raise NotFound(f"Participant {participant_id} is not part of quiz {pin}.")
            participant = Participant.from_record(record)
            if participant.has_answered(question_index):
                raise AnswerRejected(
                    AnswerRejected.ALREADY_ANSWERED,
                    f"Question {question_index} was already answered.",
                )
            answered_at = self._clock()
            participant.score += points
            participant.current_answer_index = option_index
            participant.answer_question_index = question_index
            participant.last_answer_time = answered_at
            # One combined record write so observers never see a half-updated participant.
            if self._store.compare_and_set(path, record, participant.to_record()):
                return ScoreDelta(
                    participant_id=participant.id,
                    question_index=question_index,
                    option_index=option_index,
                    correct=correct,
                    points=points,
                    score=participant.score,
                    answered_at=answered_at,
                )
