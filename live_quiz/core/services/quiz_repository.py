"""Service for storing quiz definitions in the shared store."""

from __future__ import annotations

from live_quiz.constants.quiz_constants import DEFAULT_TIME_LIMIT_SECONDS, OPTION_COUNT
from live_quiz.core.errors import InvalidTransition, NotFound, QuizValidationError
from live_quiz.core.models import Question, QuizDefinition, QuizSummary, SessionState, SessionStatus
from live_quiz.core.store import SESSION_ROOT, SessionStore, session_path
from live_quiz.utils.clock import Clock, now_ms


class QuizRepository:
    """Creates, reads and deletes quiz definitions keyed by PIN."""

    def __init__(
        self,
        store: SessionStore,
        clock: Clock = now_ms,
        default_time_limit: int = DEFAULT_TIME_LIMIT_SECONDS,
    ) -> None:
        self._store = store
        self._clock = clock
        self._default_time_limit = default_time_limit

    def create(
        self,
        pin: str,
        title: str,
        questions: list[Question],
        created_by: str,
        host_token_hash: str,
    ) -> QuizDefinition:
        """Validate and persist a new quiz together with its waiting state."""
        cleaned_title = title.strip()
        if not cleaned_title:
            raise QuizValidationError("Quiz title must not be empty.")
        prepared = self.prepare_questions(questions)
        quiz = QuizDefinition(
            id=pin,
            title=cleaned_title,
            questions=prepared,
            created_at=self._clock(),
            created_by=created_by.strip() or "host",
        )
        self._store.write(
            session_path(pin),
            {
                "info": quiz.info_record(),
                "questions": quiz.questions_record(),
                "state": SessionState().to_record(),
                "host": {"tokenHash": host_token_hash},
            },
        )
        return quiz

    def get(self, pin: str) -> QuizDefinition:
        info = self._store.read(session_path(pin, "info"))
        if info is None:
            raise NotFound(f"Quiz {pin} not found.")
        questions = self._store.read(session_path(pin, "questions")) or []
        return QuizDefinition.from_records(pin, info, questions)

    def exists(self, pin: str) -> bool:
        return self._store.exists(session_path(pin))

    def get_questions(self, pin: str) -> list[Question]:
        return self.get(pin).questions

    def get_question(self, pin: str, index: int) -> Question:
        questions = self.get_questions(pin)
        if not 0 <= index < len(questions):
            raise NotFound(f"Question index {index} out of range for quiz {pin}.")
        return questions[index]

    def get_question_count(self, pin: str) -> int:
        return len(self.get_questions(pin))

    def replace_questions(self, pin: str, questions: list[Question]) -> QuizDefinition:
        """Swap the question list; only allowed before the session starts."""
        state = self._store.read(session_path(pin, "state"))
        if state is None:
            raise NotFound(f"Quiz {pin} not found.")
        if SessionState.from_record(state).status is not SessionStatus.WAITING:
            raise InvalidTransition("Questions cannot change once the session has started.")
        prepared = self.prepare_questions(questions)
        self._store.write(session_path(pin, "questions"), [q.to_record() for q in prepared])
        return self.get(pin)

    def list_summaries(self) -> list[QuizSummary]:
        """Return every stored quiz, newest first."""
        summaries: list[QuizSummary] = []
        for pin in self._store.children(SESSION_ROOT):
            record = self._store.read(session_path(pin))
            if not record or "info" not in record:
                continue
            state = SessionState.from_record(record.get("state") or SessionState().to_record())
            summaries.append(
                QuizSummary(
                    id=pin,
                    title=record["info"]["title"],
                    created_at=record["info"].get("createdAt", 0),
                    question_count=len(record.get("questions") or []),
                    status=state.status,
                    participant_count=len(record.get("participants") or {}),
                )
            )
        return sorted(summaries, key=lambda s: (s.created_at, s.id), reverse=True)

    def delete(self, pin: str) -> None:
        if not self._store.exists(session_path(pin)):
            raise NotFound(f"Quiz {pin} not found.")
        self._store.delete(session_path(pin))

    def get_host_token_hash(self, pin: str) -> str | None:
        record = self._store.read(session_path(pin, "host"))
        if record is None:
            return None
        return record.get("tokenHash")

    # --- Validation ---

    def prepare_questions(self, questions: list[Question]) -> list[Question]:
        if not questions:
            raise QuizValidationError("Quiz must contain at least one question.")
        return [self._prepare_question(q) for q in questions]

    def _prepare_question(self, question: Question) -> Question:
        """Validate and normalize a question before storage."""
        options = self._validate_options(question.options)
        if not isinstance(question.correct_index, int) or not 0 <= question.correct_index < OPTION_COUNT:
            raise QuizValidationError("Correct option index must be between 0 and 3.")

        cleaned_text = question.text.strip()
        if not cleaned_text:
            raise QuizValidationError("Question text must not be empty.")

        image_url = (question.image_url or "").strip() or None
        return Question(
            text=cleaned_text,
            options=options,
            correct_index=question.correct_index,
            time_limit=self._normalize_time_limit(question.time_limit),
            image_url=image_url,
        )

    @staticmethod
    def _validate_options(options: list[str]) -> list[str]:
        if len(options) != OPTION_COUNT:
            raise QuizValidationError("Each question must have exactly four options.")
        cleaned = [option.strip() for option in options]
        if any(not option for option in cleaned):
            raise QuizValidationError("Option text cannot be empty.")
        return cleaned

    def _normalize_time_limit(self, time_limit: int | None) -> int:
        if time_limit is None:
            return self._default_time_limit
        if isinstance(time_limit, bool) or not isinstance(time_limit, int):
            raise QuizValidationError("Time limit must be provided as an integer number of seconds.")
        if time_limit <= 0:
            raise QuizValidationError("Time limit must be a positive integer.")
        return time_limit
