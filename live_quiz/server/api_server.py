"""FastAPI server exposing quiz sessions to hosts and players.

Routes:
- ``POST /sessions`` and ``POST /sessions/import`` create a quiz and return its PIN
  plus the host token; host-only routes expect that token in ``X-Host-Token``.
- ``POST /sessions/{pin}/participants`` and ``POST /sessions/{pin}/answers`` are the
  player actions. Rejected answers are reported as ``accepted: false`` with no
  reason, so players cannot probe timing.
- ``POST /sessions/{pin}/transitions/{name}`` is host control.
- ``WS /sessions/{pin}/ws`` pushes a fresh snapshot after every change to the session.

The lifespan starts the auto-advance loop, which is the only actor that turns an
elapsed phase deadline into a transition.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from live_quiz.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from live_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT, HOST_TOKEN_HEADER
from live_quiz.core.errors import (
    AnswerRejected,
    ExhaustedKeyspace,
    InvalidTransition,
    NotFound,
    Outcome,
    QuizValidationError,
    StoreUnavailable,
)
from live_quiz.core.models import (
    CreatedQuiz,
    Participant,
    Phase,
    Question,
    QuizSummary,
    SessionSnapshot,
    SessionStatus,
)
from live_quiz.core.quiz_manager import QuizManager
from live_quiz.core.services.question_timer import AutoAdvanceLoop
from live_quiz.core.services.scoreboard import ScoreboardRow

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[Exception], int]] = [
    (NotFound, 404),
    (InvalidTransition, 409),
    (QuizValidationError, 422),
    (ExhaustedKeyspace, 503),
    (StoreUnavailable, 503),
]


class QuestionPayload(BaseModel):
    """Payload schema for one question of a new quiz."""

    text: str
    options: list[str]
    correct_index: int
    time_limit: int | None = None
    image_url: str | None = None

    def to_question(self) -> Question:
        return Question(
            text=self.text,
            options=list(self.options),
            correct_index=self.correct_index,
            time_limit=self.time_limit,  # type: ignore[arg-type]  # None means the default
            image_url=self.image_url,
        )


class CreateQuizPayload(BaseModel):
    title: str
    questions: list[QuestionPayload]
    created_by: str = "host"


class ImportQuizPayload(BaseModel):
    text: str
    title: str | None = None
    created_by: str = "host"


class JoinPayload(BaseModel):
    """Payload schema for joining a session."""

    name: str
    participant_id: str | None = None


class AnswerPayload(BaseModel):
    """Payload schema for submitted answers."""

    participant_id: str
    question_index: int
    option_index: int


class ExpectedPhasePayload(BaseModel):
    """Optional guard: apply the transition only if the session is still in this phase."""

    status: SessionStatus
    current_question_index: int
    show_result: bool

    def to_phase(self) -> Phase:
        return Phase(self.status, self.current_question_index, self.show_result)


def _unwrap(outcome: Outcome[Any]) -> Any:
    if outcome.ok:
        return outcome.value
    error = outcome.error
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            raise HTTPException(status_code=status_code, detail=str(error))
    raise HTTPException(status_code=400, detail=str(error))


def _question_payload(question: Question, index: int, include_answer: bool) -> dict[str, object]:
    return {
        "index": index,
        "text": question.text,
        "image_url": question.image_url,
        "options": list(question.options),
        "time_limit": question.time_limit,
        "correct_index": question.correct_index if include_answer else None,
    }


def _snapshot_payload(manager: QuizManager, snapshot: SessionSnapshot) -> dict[str, object]:
    state = snapshot.state
    question = None
    if snapshot.question is not None:
        # Players only learn the answer once results are shown.
        reveal = state.show_result or state.status is SessionStatus.FINISHED
        question = _question_payload(snapshot.question, state.current_question_index, reveal)
        question["question_html"] = manager.render_question_html(snapshot.question)
    return {
        "pin": snapshot.pin,
        "title": snapshot.title,
        "status": state.status.value,
        "current_question_index": state.current_question_index,
        "show_result": state.show_result,
        "phase_started_at": state.phase_started_at,
        "phase_deadline": state.phase_deadline,
        "seconds_remaining": snapshot.seconds_remaining,
        "question_count": snapshot.question_count,
        "participant_count": snapshot.participant_count,
        "question": question,
    }


def _participant_payload(participant: Participant) -> dict[str, object]:
    return {
        "participant_id": participant.id,
        "name": participant.name,
        "score": participant.score,
        "current_answer_index": participant.current_answer_index,
        "answer_question_index": participant.answer_question_index,
        "last_answer_time": participant.last_answer_time,
    }


def _leaderboard_payload(rows: list[ScoreboardRow]) -> list[dict[str, object]]:
    return [
        {
            "rank": row.rank,
            "participant_id": row.participant_id,
            "name": row.name,
            "score": row.score,
            "last_answer_time": row.last_answer_time,
        }
        for row in rows
    ]


def _created_payload(created: CreatedQuiz) -> dict[str, object]:
    return {
        "pin": created.quiz.id,
        "title": created.quiz.title,
        "question_count": len(created.quiz.questions),
        "created_at": created.quiz.created_at,
        "host_token": created.host_token,
    }


def _summary_payload(summary: QuizSummary) -> dict[str, object]:
    return {
        "pin": summary.id,
        "title": summary.title,
        "created_at": summary.created_at,
        "question_count": summary.question_count,
        "status": summary.status.value,
        "participant_count": summary.participant_count,
    }


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def create_api_app(quiz_manager: QuizManager) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager."""
    settings = quiz_manager.settings
    auto_advance = AutoAdvanceLoop(quiz_manager.tick_timers, settings.tick_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.auto_advance:
            auto_advance.start()
        try:
            yield
        finally:
            await auto_advance.stop()
            logger.info("API server shut down")

    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION, description=APP_ABOUT_TEXT, lifespan=lifespan)
    app.state.auto_advance = auto_advance
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)

    def require_host(
        pin: str,
        x_host_token: str | None = Header(default=None, alias=HOST_TOKEN_HEADER),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> str:
        if not _unwrap(manager.verify_host(pin, x_host_token)):
            raise HTTPException(status_code=403, detail="A valid host token is required.")
        return pin

    @app.get("/ping")
    def health_check() -> dict[str, bool]:
        return {"ok": True}

    # --- Quizzes ---

    @app.post("/sessions", status_code=201)
    def create_quiz(
        payload: CreateQuizPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        questions = [q.to_question() for q in payload.questions]
        return _created_payload(_unwrap(manager.create_quiz(payload.title, questions, payload.created_by)))

    @app.post("/sessions/import", status_code=201)
    def import_quiz(
        payload: ImportQuizPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _created_payload(_unwrap(manager.import_quiz(payload.text, payload.title, payload.created_by)))

    @app.get("/sessions")
    def list_quizzes(manager: QuizManager = Depends(quiz_manager_dep)) -> list[dict[str, object]]:
        return [_summary_payload(summary) for summary in _unwrap(manager.list_quizzes())]

    @app.get("/sessions/{pin}")
    def get_snapshot(pin: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _snapshot_payload(manager, _unwrap(manager.get_snapshot(pin)))

    @app.get("/sessions/{pin}/questions")
    def get_questions(
        pin: str = Depends(require_host),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        quiz = _unwrap(manager.get_quiz(pin))
        return [_question_payload(q, i, include_answer=True) for i, q in enumerate(quiz.questions)]

    @app.put("/sessions/{pin}/questions")
    def replace_questions(
        payload: list[QuestionPayload],
        pin: str = Depends(require_host),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        quiz = _unwrap(manager.replace_questions(pin, [q.to_question() for q in payload]))
        return [_question_payload(q, i, include_answer=True) for i, q in enumerate(quiz.questions)]

    @app.get("/sessions/{pin}/export", response_class=PlainTextResponse)
    def export_quiz(
        pin: str = Depends(require_host),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> str:
        return _unwrap(manager.export_quiz(pin))

    @app.delete("/sessions/{pin}", status_code=204)
    def delete_quiz(
        pin: str = Depends(require_host),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> None:
        _unwrap(manager.delete_quiz(pin))

    # --- Host control ---

    @app.post("/sessions/{pin}/transitions/{name}")
    def apply_transition(
        name: str,
        expected: ExpectedPhasePayload | None = None,
        pin: str = Depends(require_host),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        phase = expected.to_phase() if expected is not None else None
        _unwrap(manager.apply_transition(pin, name, phase))
        return _snapshot_payload(manager, _unwrap(manager.get_snapshot(pin)))

    # --- Players ---

    @app.post("/sessions/{pin}/participants", status_code=201)
    def join(
        pin: str,
        payload: JoinPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        participant_id = payload.participant_id or uuid4().hex
        return _participant_payload(_unwrap(manager.join(pin, participant_id, payload.name)))

    @app.get("/sessions/{pin}/participants/{participant_id}")
    def get_participant(
        pin: str,
        participant_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _participant_payload(_unwrap(manager.get_participant(pin, participant_id)))

    @app.post("/sessions/{pin}/answers")
    def submit_answer(
        pin: str,
        payload: AnswerPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        outcome = manager.submit_answer(pin, payload.participant_id, payload.question_index, payload.option_index)
        if isinstance(outcome.error, AnswerRejected):
            return {"accepted": False}
        delta = _unwrap(outcome)
        return {
            "accepted": True,
            "question_index": delta.question_index,
            "option_index": delta.option_index,
            "answered_at": delta.answered_at,
        }

    @app.get("/sessions/{pin}/leaderboard")
    def get_leaderboard(
        pin: str,
        limit: int | None = None,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        return _leaderboard_payload(_unwrap(manager.get_leaderboard(pin, limit)))

    # --- Push channel ---

    @app.websocket("/sessions/{pin}/ws")
    async def session_updates(websocket: WebSocket, pin: str, view: str = "player") -> None:
        await websocket.accept()
        loop = asyncio.get_running_loop()
        changes: asyncio.Queue[None] = asyncio.Queue()
        limit = None if view == "host" else settings.leaderboard_size

        def on_change(_: Any) -> None:
            loop.call_soon_threadsafe(changes.put_nowait, None)

        async def push_snapshots() -> None:
            while True:
                snapshot = await run_in_threadpool(quiz_manager.get_snapshot, pin)
                if not snapshot.ok:
                    await websocket.send_json({"type": "session.closed", "pin": pin})
                    return
                leaderboard = await run_in_threadpool(quiz_manager.get_leaderboard, pin, limit)
                await websocket.send_json(
                    {
                        "type": "session.snapshot",
                        "snapshot": _snapshot_payload(quiz_manager, snapshot.value),
                        "leaderboard": _leaderboard_payload(leaderboard.value or []),
                    }
                )
                await changes.get()
                # Coalesce bursts; observers only need the latest value.
                while not changes.empty():
                    changes.get_nowait()

        unsubscribe = quiz_manager.subscribe(pin, on_change)
        pusher = asyncio.create_task(push_snapshots())
        logger.info("Observer connected to %s (%s view)", pin, view)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("Observer disconnected from %s", pin)
        finally:
            unsubscribe()
            pusher.cancel()
            await asyncio.gather(pusher, return_exceptions=True)

    return app


def run_api_server(
    quiz_manager: QuizManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API until interrupted."""
    app = create_api_app(quiz_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=quiz_manager.settings.log_level.lower())
    server = uvicorn.Server(config)
    server.run()
