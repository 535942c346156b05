"""Domain models for the quiz service.

Every record kept in the shared store has a matching dataclass here. The
``to_record``/``from_record`` pairs translate between the dataclasses and the
camelCase dictionaries that observers read from the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from live_quiz.constants.quiz_constants import DEFAULT_TIME_LIMIT_SECONDS


class SessionStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    FINISHED = "finished"


class Transition(str, Enum):
    """Host-triggered state machine transitions."""

    START = "start"
    REVEAL = "reveal"
    ADVANCE = "advance"
    STOP = "stop"
    RESET = "reset"


@dataclass(slots=True)
class Question:
    """Multiple-choice question with exactly four options."""

    text: str
    options: list[str]
    correct_index: int
    time_limit: int = DEFAULT_TIME_LIMIT_SECONDS
    image_url: str | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "imageUrl": self.image_url,
            "options": list(self.options),
            "correctIndex": self.correct_index,
            "timeLimit": self.time_limit,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Question":
        return cls(
            text=record["text"],
            options=list(record["options"]),
            correct_index=record["correctIndex"],
            time_limit=record.get("timeLimit", DEFAULT_TIME_LIMIT_SECONDS),
            image_url=record.get("imageUrl") or None,
        )


@dataclass(slots=True)
class QuizDefinition:
    """Title and ordered questions of one quiz, keyed by its PIN."""

    id: str
    title: str
    questions: list[Question]
    created_at: int
    created_by: str

    def info_record(self) -> dict[str, Any]:
        return {"title": self.title, "createdAt": self.created_at, "createdBy": self.created_by}

    def questions_record(self) -> list[dict[str, Any]]:
        return [question.to_record() for question in self.questions]

    @classmethod
    def from_records(
        cls, pin: str, info: dict[str, Any], questions: list[dict[str, Any]]
    ) -> "QuizDefinition":
        return cls(
            id=pin,
            title=info["title"],
            questions=[Question.from_record(q) for q in questions],
            created_at=info.get("createdAt", 0),
            created_by=info.get("createdBy", ""),
        )


@dataclass(frozen=True, slots=True)
class Phase:
    """The (status, question index, reveal flag) triple used for guarded writes."""

    status: SessionStatus
    current_question_index: int
    show_result: bool


@dataclass(slots=True)
class SessionState:
    """Authoritative phase of one quiz session."""

    status: SessionStatus = SessionStatus.WAITING
    current_question_index: int = -1
    show_result: bool = False
    phase_started_at: int | None = None
    phase_deadline: int | None = None

    @property
    def phase(self) -> Phase:
        return Phase(self.status, self.current_question_index, self.show_result)

    @property
    def accepting_answers(self) -> bool:
        return self.status is SessionStatus.ACTIVE and not self.show_result

    def to_record(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "currentQuestionIndex": self.current_question_index,
            "showResult": self.show_result,
            "phaseStartedAt": self.phase_started_at,
            "phaseDeadline": self.phase_deadline,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "SessionState":
        return cls(
            status=SessionStatus(record["status"]),
            current_question_index=record.get("currentQuestionIndex", -1),
            show_result=bool(record.get("showResult", False)),
            phase_started_at=record.get("phaseStartedAt"),
            phase_deadline=record.get("phaseDeadline"),
        )


@dataclass(slots=True)
class Participant:
    """A joined player and their running score."""

    id: str
    name: str
    score: int = 0
    current_answer_index: int = -1
    answer_question_index: int | None = None
    last_answer_time: int | None = None
    joined_at: int | None = None

    def has_answered(self, question_index: int) -> bool:
        return self.answer_question_index == question_index

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "score": self.score,
            "currentAnswerIndex": self.current_answer_index,
            "answerQuestionIndex": self.answer_question_index,
            "lastAnswerTime": self.last_answer_time,
            "joinedAt": self.joined_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Participant":
        return cls(
            id=record["id"],
            name=record.get("name", ""),
            score=record.get("score", 0),
            current_answer_index=record.get("currentAnswerIndex", -1),
            answer_question_index=record.get("answerQuestionIndex"),
            last_answer_time=record.get("lastAnswerTime"),
            joined_at=record.get("joinedAt"),
        )


@dataclass(slots=True)
class ScoreDelta:
    """Effect of one accepted answer submission."""

    participant_id: str
    question_index: int
    option_index: int
    correct: bool
    points: int
    score: int
    answered_at: int


@dataclass(slots=True)
class QuizSummary:
    """Row of the quiz listing shown to hosts."""

    id: str
    title: str
    created_at: int
    question_count: int
    status: SessionStatus
    participant_count: int = 0


@dataclass(slots=True)
class CreatedQuiz:
    """Result of creating a quiz: the definition plus the host's credential."""

    quiz: QuizDefinition
    host_token: str


@dataclass(slots=True)
class SessionSnapshot:
    """Everything an observer needs to render the current phase."""

    pin: str
    title: str
    state: SessionState
    question_count: int
    participant_count: int
    seconds_remaining: int | None = None
    question: Question | None = None
