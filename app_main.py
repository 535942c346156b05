"""Application entry point for the LiveQuiz service."""

from __future__ import annotations

from live_quiz.core.quiz_manager import QuizManager
from live_quiz.core.settings import load_settings
from live_quiz.core.store import InMemoryStore
from live_quiz.server.api_server import run_api_server
from live_quiz.utils.logging_config import configure_logging


def main() -> None:
    """Load settings, initialize logging and serve the API."""
    settings = load_settings()
    logger = configure_logging(settings.log_level)
    logger.info("Starting LiveQuiz on %s:%d", settings.host, settings.port)

    quiz_manager = QuizManager(store=InMemoryStore(), settings=settings)
    run_api_server(quiz_manager=quiz_manager, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
