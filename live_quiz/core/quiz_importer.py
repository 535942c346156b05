"""Utilities for importing quizzes from a human-friendly text file.

File format (an optional title line, then blocks separated by blank lines or '---'):

    TITLE: Quiz title        (optional, first non-empty line only)

    Q: Question text (markdown). Additional lines until the next marker are
       treated as part of the question.
    IMAGE: https://...       (optional)
    A: First option text
    B: Second option text
    C: Third option text
    D: Fourth option text
    CORRECT: A|B|C|D
    TIMELIMIT: seconds       (optional, defaults to 30)

Example:

    TITLE: Capitals

    Q: What is the capital of Norway?
    A: Bergen
    B: Oslo
    C: Trondheim
    D: Stavanger
    CORRECT: B
    TIMELIMIT: 20
"""

from __future__ import annotations

from dataclasses import dataclass

from live_quiz.constants.quiz_constants import DEFAULT_TIME_LIMIT_SECONDS
from live_quiz.core.errors import QuizValidationError
from live_quiz.core.models import Question


class QuizImportError(QuizValidationError):
    """Raised when a quiz definition cannot be parsed."""


@dataclass(slots=True)
class ImportedQuiz:
    """Container for imported quiz metadata and questions."""

    title: str | None
    questions: list[Question]


_OPTION_ORDER = ["A", "B", "C", "D"]


def parse_quiz_text(text: str) -> ImportedQuiz:
    title, body = _split_title(text)
    questions = [_parse_block(block) for block in _split_blocks(body)]
    if not questions:
        raise QuizImportError("Quiz text did not contain any questions.")
    return ImportedQuiz(title=title, questions=questions)


def _split_title(text: str) -> tuple[str | None, str]:
    lines = text.splitlines()
    for position, raw_line in enumerate(lines):
        stripped = raw_line.strip()
        if not stripped:
            continue
        if stripped.upper().startswith("TITLE:"):
            title = stripped.split(":", 1)[1].strip()
            return title or None, "\n".join(lines[position + 1 :])
        break
    return None, text


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return [block for block in blocks if block]


def _parse_block(block: str) -> Question:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    image_url: str | None = None
    time_limit = DEFAULT_TIME_LIMIT_SECONDS
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("IMAGE:"):
            image_url = line.split(":", 1)[1].strip() or None
            current_section = None
            continue

        if upper.startswith("TIMELIMIT:"):
            time_limit = _parse_time_limit(line.split(":", 1)[1].strip())
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in _OPTION_ORDER:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizImportError(f"Encountered text outside of a known section: '{line}'.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuizImportError("Question text missing (Q: ...)")
    if len(options) != 4:
        raise QuizImportError("Each question must define exactly four options (A-D).")
    if correct_letter is None:
        raise QuizImportError(f"Question '{question_text}' has no CORRECT line.")
    if correct_letter not in _OPTION_ORDER:
        raise QuizImportError("CORRECT must be one of A, B, C, or D.")

    option_list = [options[letter].strip() for letter in _OPTION_ORDER]
    if any(not opt for opt in option_list):
        raise QuizImportError("Option text cannot be empty.")

    return Question(
        text=question_text,
        options=option_list,
        correct_index=_OPTION_ORDER.index(correct_letter),
        time_limit=time_limit,
        image_url=image_url,
    )


def _parse_time_limit(raw_value: str) -> int:
    if not raw_value:
        raise QuizImportError("TIMELIMIT must include an integer value.")
    try:
        parsed_value = int(raw_value)
    except ValueError as exc:
        raise QuizImportError("TIMELIMIT must be an integer number of seconds.") from exc
    if parsed_value <= 0:
        raise QuizImportError("TIMELIMIT must be a positive integer.")
    return parsed_value
