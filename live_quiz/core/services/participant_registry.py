"""Service for tracking the players joined to a session."""

from __future__ import annotations

from live_quiz.core.errors import NotFound, QuizValidationError
from live_quiz.core.models import Participant
from live_quiz.core.store import SessionStore, participant_path, session_path
from live_quiz.utils.clock import Clock, now_ms


class ParticipantRegistry:
    """Manages participant records under ``session/{pin}/participants``."""

    def __init__(self, store: SessionStore, clock: Clock = now_ms) -> None:
        self._store = store
        self._clock = clock

    def join(self, pin: str, participant_id: str, name: str) -> Participant:
        """Register a participant, or refresh the display name of a returning one.

        Joining is allowed in every phase. A late joiner starts at zero and has
        no answers for earlier questions.
        """
        if not self._store.exists(session_path(pin, "info")):
            raise NotFound(f"Quiz {pin} not found.")
        cleaned_id = participant_id.strip()
        path = participant_path(pin, cleaned_id)
        cleaned_name = name.strip()
        if not cleaned_name:
            raise QuizValidationError("Display name must not be empty.")

        while True:
            existing = self._store.read(path)
            if existing is None:
                entry = Participant(id=cleaned_id, name=cleaned_name, joined_at=self._clock())
            else:
                entry = Participant.from_record(existing)
                entry.name = cleaned_name
            if self._store.compare_and_set(path, existing, entry.to_record()):
                return entry

    def get(self, pin: str, participant_id: str) -> Participant:
        record = self._store.read(participant_path(pin, participant_id))
        if record is None:
            raise NotFound(f"Participant {participant_id} is not part of quiz {pin}.")
        return Participant.from_record(record)

    def get_participants(self, pin: str) -> list[Participant]:
        """Return participants in join order."""
        records = self._store.read(session_path(pin, "participants")) or {}
        participants = [Participant.from_record(record) for record in records.values()]
        return sorted(participants, key=lambda p: (p.joined_at or 0, p.id))

    def count(self, pin: str) -> int:
        return len(self._store.children(session_path(pin, "participants")))

    def clear(self, pin: str) -> None:
        """Drop every participant record of the session."""
        self._store.delete(session_path(pin, "participants"))
