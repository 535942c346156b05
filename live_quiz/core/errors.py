"""Error taxonomy for the quiz core and the result type returned at its boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


class QuizError(Exception):
    """Base class for every failure the core reports."""


class NotFound(QuizError):
    """Raised when a session, question or participant does not exist."""


class ExhaustedKeyspace(QuizError):
    """Raised when no unused PIN could be drawn within the attempt cap."""


class InvalidTransition(QuizError):
    """Raised when a host action is not legal in the current phase."""


class QuizValidationError(QuizError, ValueError):
    """Raised when quiz or participant input fails validation."""


class StoreUnavailable(QuizError):
    """Raised when the shared store cannot be reached."""


class StoreTransportError(Exception):
    """Raised by store adapters on transport or permission failures."""


class AnswerRejected(QuizError):
    """Raised when a submission is late, duplicated or out of range."""

    NOT_ACTIVE = "not_active"
    ANSWERS_CLOSED = "answers_closed"
    WRONG_QUESTION = "wrong_question"
    ALREADY_ANSWERED = "already_answered"
    INVALID_OPTION = "invalid_option"

    def __init__(self, reason: str, message: str | None = None) -> None:
        super().__init__(message or reason)
        self.reason = reason


@dataclass(slots=True)
class Outcome(Generic[T]):
    """Explicit success/failure result handed across the core boundary."""

    value: T | None = None
    error: QuizError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: QuizError) -> "Outcome[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
