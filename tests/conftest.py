from __future__ import annotations

import random

import pytest

from live_quiz.core.models import Question
from live_quiz.core.quiz_manager import QuizManager
from live_quiz.core.services.game_session import SessionStateMachine
from live_quiz.core.services.participant_registry import ParticipantRegistry
from live_quiz.core.services.quiz_repository import QuizRepository
from live_quiz.core.services.scoring import ScoringEngine
from live_quiz.core.settings import GameSettings
from live_quiz.core.store import InMemoryStore


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class ScriptedRandom(random.Random):
    """Returns queued values from ``randint`` before falling back to real draws."""

    def __init__(self, values: list[int]) -> None:
        super().__init__(0)
        self._values = list(values)

    def randint(self, a: int, b: int) -> int:
        if self._values:
            return self._values.pop(0)
        return super().randint(a, b)


class CountingStore(InMemoryStore):
    def __init__(self) -> None:
        super().__init__()
        self.exists_calls: list[str] = []

    def exists(self, path: str) -> bool:
        self.exists_calls.append(path)
        return super().exists(path)


def make_questions() -> list[Question]:
    return [
        Question(text="Capital of Norway?", options=["Bergen", "Oslo", "Bodø", "Molde"], correct_index=1, time_limit=30),
        Question(text="2 + 2?", options=["4", "3", "5", "22"], correct_index=0, time_limit=20),
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def questions() -> list[Question]:
    return make_questions()


@pytest.fixture
def repository(store, clock) -> QuizRepository:
    return QuizRepository(store, clock)


@pytest.fixture
def registry(store, clock) -> ParticipantRegistry:
    return ParticipantRegistry(store, clock)


@pytest.fixture
def machine(store, repository, registry, clock) -> SessionStateMachine:
    return SessionStateMachine(store, repository, registry, clock, reveal_seconds=20)


@pytest.fixture
def scoring(store, repository, clock) -> ScoringEngine:
    return ScoringEngine(store, repository, clock)


@pytest.fixture
def pin(repository, questions) -> str:
    repository.create("123456", "Geography", questions, "host", "hash")
    return "123456"


@pytest.fixture
def manager(store, clock) -> QuizManager:
    return QuizManager(store, GameSettings(auto_advance=False), clock=clock, rng=random.Random(7))
