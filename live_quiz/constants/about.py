"""Static metadata describing LiveQuiz."""

APP_NAME = "LiveQuiz"
APP_VERSION = "0.1"
APP_ABOUT_TEXT = (
    "LiveQuiz runs PIN-based multiplayer trivia sessions. A host creates a quiz, "
    "players join with the PIN, and answers are scored and ranked in real time."
)
