"""LiveQuiz: PIN-based multiplayer trivia sessions."""
