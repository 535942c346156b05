"""Business logic facade shared by the API server and the auto-advance loop."""

from __future__ import annotations

import hashlib
import hmac
import logging
import random
import secrets
from collections.abc import Callable
from threading import Lock
from typing import TypeVar

from live_quiz.core.errors import (
    AnswerRejected,
    InvalidTransition,
    NotFound,
    Outcome,
    QuizError,
    QuizValidationError,
    StoreTransportError,
    StoreUnavailable,
)
from live_quiz.core.markdown_renderer import renderer
from live_quiz.core.models import (
    CreatedQuiz,
    Participant,
    Phase,
    Question,
    QuizDefinition,
    QuizSummary,
    ScoreDelta,
    SessionSnapshot,
    SessionState,
    Transition,
)
from live_quiz.core.quiz_exporter import export_quiz_text
from live_quiz.core.quiz_importer import parse_quiz_text
from live_quiz.core.services.game_session import SessionStateMachine
from live_quiz.core.services.participant_registry import ParticipantRegistry
from live_quiz.core.services.pin_allocator import PinAllocator
from live_quiz.core.services.question_timer import QuestionTimer, remaining_for
from live_quiz.core.services.quiz_repository import QuizRepository
from live_quiz.core.services.scoreboard import LeaderboardRanker, ScoreboardRow
from live_quiz.core.services.scoring import ScoringEngine
from live_quiz.core.settings import GameSettings
from live_quiz.core.store import ChangeCallback, SessionStore, Unsubscribe, session_path
from live_quiz.utils.clock import Clock, now_ms

T = TypeVar("T")

logger = logging.getLogger(__name__)


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class QuizManager:
    """Facade for quiz services: Repository, PINs, State machine, Participants, Scoring, Ranking, Timer.

    Services raise ``QuizError`` subclasses; every public method here returns
    an ``Outcome`` instead, so callers branch on ``ok`` rather than catching.
    """

    def __init__(
        self,
        store: SessionStore,
        settings: GameSettings | None = None,
        clock: Clock = now_ms,
        rng: random.Random | None = None,
    ) -> None:
        self._lock = Lock()
        self._store = store
        self._clock = clock
        self.settings = settings or GameSettings()

        # Services
        self._repository = QuizRepository(store, clock, self.settings.default_time_limit)
        self._pins = PinAllocator(store, self.settings.pin_attempts, rng)
        self._participants = ParticipantRegistry(store, clock)
        self._state_machine = SessionStateMachine(
            store, self._repository, self._participants, clock, self.settings.reveal_seconds
        )
        self._scoring = ScoringEngine(store, self._repository, clock, self.settings.correct_answer_points)
        self._ranker = LeaderboardRanker(self.settings.leaderboard_size)
        self._timer = QuestionTimer(store, self._state_machine, clock)

    # --- Quiz Definitions ---

    def create_quiz(self, title: str, questions: list[Question], created_by: str = "host") -> Outcome[CreatedQuiz]:
        def create() -> CreatedQuiz:
            pin = self._pins.allocate()
            token = secrets.token_urlsafe(24)
            quiz = self._repository.create(pin, title, questions, created_by, _hash_token(token))
            logger.info("Created quiz %s '%s' with %d questions", pin, quiz.title, len(quiz.questions))
            return CreatedQuiz(quiz=quiz, host_token=token)

        return self._run("create quiz", create)

    def import_quiz(self, text: str, title: str | None = None, created_by: str = "host") -> Outcome[CreatedQuiz]:
        try:
            imported = parse_quiz_text(text)
        except QuizValidationError as exc:
            logger.info("Quiz import rejected: %s", exc)
            return Outcome.failure(exc)
        chosen_title = title or imported.title
        if not chosen_title:
            return Outcome.failure(QuizValidationError("Imported quiz needs a TITLE line or an explicit title."))
        return self.create_quiz(chosen_title, imported.questions, created_by)

    def list_quizzes(self) -> Outcome[list[QuizSummary]]:
        return self._run("list quizzes", self._repository.list_summaries)

    def get_quiz(self, pin: str) -> Outcome[QuizDefinition]:
        return self._run("read quiz", lambda: self._repository.get(pin))

    def export_quiz(self, pin: str) -> Outcome[str]:
        return self._run("export quiz", lambda: export_quiz_text(self._repository.get(pin)))

    def replace_questions(self, pin: str, questions: list[Question]) -> Outcome[QuizDefinition]:
        return self._run("replace questions", lambda: self._repository.replace_questions(pin, questions))

    def delete_quiz(self, pin: str) -> Outcome[None]:
        def delete() -> None:
            self._repository.delete(pin)
            logger.info("Deleted quiz %s", pin)

        return self._run("delete quiz", delete)

    def verify_host(self, pin: str, token: str | None) -> Outcome[bool]:
        def verify() -> bool:
            if not self._repository.exists(pin):
                raise NotFound(f"Quiz {pin} not found.")
            expected = self._repository.get_host_token_hash(pin)
            if not token or expected is None:
                return False
            return hmac.compare_digest(expected, _hash_token(token))

        return self._run("verify host", verify)

    # --- Session State ---

    def get_state(self, pin: str) -> Outcome[SessionState]:
        return self._run("read state", lambda: self._state_machine.get_state(pin))

    def apply_transition(
        self, pin: str, transition: Transition | str, expected: Phase | None = None
    ) -> Outcome[SessionState]:
        return self._run(
            f"transition {getattr(transition, 'value', transition)} on {pin}",
            lambda: self._state_machine.apply_transition(pin, transition, expected),
        )

    def get_snapshot(self, pin: str) -> Outcome[SessionSnapshot]:
        def snapshot() -> SessionSnapshot:
            quiz = self._repository.get(pin)
            state = self._state_machine.get_state(pin)
            question = None
            if 0 <= state.current_question_index < len(quiz.questions):
                question = quiz.questions[state.current_question_index]
            return SessionSnapshot(
                pin=pin,
                title=quiz.title,
                state=state,
                question_count=len(quiz.questions),
                participant_count=self._participants.count(pin),
                seconds_remaining=remaining_for(state, self._clock()),
                question=question,
            )

        return self._run("read snapshot", snapshot)

    def render_question_html(self, question: Question) -> str:
        return renderer.render_fragment(question.text)

    def tick_timers(self) -> dict[str, Transition]:
        """Fire every elapsed phase deadline; only the host actor calls this."""
        outcome = self._run("timer tick", self._timer.tick_all)
        return outcome.value if outcome.ok else {}

    # --- Participants & Scoring ---

    def join(self, pin: str, participant_id: str, name: str) -> Outcome[Participant]:
        def join() -> Participant:
            participant = self._participants.join(pin, participant_id, name)
            logger.info("Participant %s joined %s as '%s'", participant.id, pin, participant.name)
            return participant

        return self._run("join", join)

    def get_participant(self, pin: str, participant_id: str) -> Outcome[Participant]:
        return self._run("read participant", lambda: self._participants.get(pin, participant_id))

    def get_participants(self, pin: str) -> Outcome[list[Participant]]:
        def participants() -> list[Participant]:
            self._require_quiz(pin)
            return self._participants.get_participants(pin)

        return self._run("list participants", participants)

    def submit_answer(
        self, pin: str, participant_id: str, question_index: int, option_index: int
    ) -> Outcome[ScoreDelta]:
        return self._run(
            f"answer from {participant_id} on {pin}",
            lambda: self._scoring.submit_answer(pin, participant_id, question_index, option_index),
        )

    # --- Leaderboard ---

    def get_leaderboard(self, pin: str, limit: int | None = None) -> Outcome[list[ScoreboardRow]]:
        def leaderboard() -> list[ScoreboardRow]:
            self._require_quiz(pin)
            return self._ranker.rows(self._participants.get_participants(pin), limit)

        return self._run("read leaderboard", leaderboard)

    # --- Observation ---

    def subscribe(self, pin: str, on_change: ChangeCallback) -> Unsubscribe:
        """Watch every record of one session; ``on_change`` gets the session record."""
        return self._store.subscribe(session_path(pin), on_change)

    # --- Internals ---

    def _require_quiz(self, pin: str) -> None:
        if not self._repository.exists(pin):
            raise NotFound(f"Quiz {pin} not found.")

    def _run(self, action: str, operation: Callable[[], T]) -> Outcome[T]:
        try:
            with self._lock:
                return Outcome.success(operation())
        except StoreTransportError as exc:
            logger.error("%s failed: store unavailable (%s)", action, exc)
            return Outcome.failure(StoreUnavailable(str(exc)))
        except InvalidTransition as exc:
            logger.warning("%s rejected: %s", action, exc)
            return Outcome.failure(exc)
        except AnswerRejected as exc:
            logger.info("%s rejected (%s): %s", action, exc.reason, exc)
            return Outcome.failure(exc)
        except QuizError as exc:
            logger.info("%s failed: %s", action, exc)
            return Outcome.failure(exc)
