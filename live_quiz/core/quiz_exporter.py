"""Serialise a quiz into the plain-text format read by ``quiz_importer``."""

from __future__ import annotations

from live_quiz.core.models import Question, QuizDefinition

_OPTION_LETTERS = ("A", "B", "C", "D")


def export_quiz_text(quiz: QuizDefinition) -> str:
    if not quiz.questions:
        raise ValueError("Cannot export an empty quiz.")
    blocks = [_serialize_question(question) for question in quiz.questions]
    return f"TITLE: {quiz.title}\n\n" + "\n\n---\n\n".join(blocks) + "\n"


def _serialize_question(question: Question) -> str:
    question_lines = question.text.splitlines() or [question.text]
    lines = [f"Q: {question_lines[0]}", *question_lines[1:]]

    if question.image_url:
        lines.append(f"IMAGE: {question.image_url}")

    for letter, option_text in zip(_OPTION_LETTERS, question.options):
        option_lines = option_text.splitlines() or [option_text]
        lines.append(f"{letter}: {option_lines[0]}")
        lines.extend(option_lines[1:])

    lines.append(f"CORRECT: {_OPTION_LETTERS[question.correct_index]}")
    lines.append(f"TIMELIMIT: {question.time_limit}")
    return "\n".join(lines)
