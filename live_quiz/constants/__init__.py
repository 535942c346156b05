"""Constants shared across LiveQuiz modules."""
