"""Service for ordering participants into a leaderboard."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from live_quiz.constants.quiz_constants import LEADERBOARD_TOP_N
from live_quiz.core.models import Participant


@dataclass(slots=True)
class ScoreboardRow:
    """Immutable snapshot returned to consumers."""

    rank: int
    participant_id: str
    name: str
    score: int
    last_answer_time: int | None


def _sort_key(participant: Participant) -> tuple[int, float, str]:
    answered_at = participant.last_answer_time
    return (
        -participant.score,
        math.inf if answered_at is None else answered_at,
        participant.id,
    )


class LeaderboardRanker:
    """Pure ranking of a participant snapshot; recomputed on every change."""

    def __init__(self, top_n: int = LEADERBOARD_TOP_N) -> None:
        self._top_n = top_n

    @staticmethod
    def rank(participants: Iterable[Participant]) -> list[Participant]:
        """Order by score descending, then earliest last answer, never-answered last.

        The participant id is the final key so equal entries come out in the
        same order whatever order they went in.
        """
        return sorted(participants, key=_sort_key)

    def top(self, participants: Iterable[Participant], limit: int | None = None) -> list[Participant]:
        return self.rank(participants)[: self._top_n if limit is None else limit]

    def rows(self, participants: Iterable[Participant], limit: int | None = None) -> list[ScoreboardRow]:
        """Ranked rows; the full board unless ``limit`` is given."""
        ranked = self.rank(participants)
        if limit is not None:
            ranked = ranked[:limit]
        return [
            ScoreboardRow(
                rank=position,
                participant_id=participant.id,
                name=participant.name,
                score=participant.score,
                last_answer_time=participant.last_answer_time,
            )
            for position, participant in enumerate(ranked, start=1)
        ]
