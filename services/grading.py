# services/grading.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from errors import AnswerValidationError

QUESTION_TYPES = ("single", "multiple", "boolean", "text")


@dataclass(frozen=True)
class Grade:
    is_correct: bool
    points_awarded: int


def validate_submission(submitted: Any) -> list[str]:
    """
    A submission is a non-empty list of non-empty strings.
    Anything else is the caller's mistake, not a wrong answer.
    """
    if not isinstance(submitted, (list, tuple)) or not submitted:
        raise AnswerValidationError("At least one answer must be selected.")
    for ans in submitted:
        if not isinstance(ans, str) or not ans.strip():
            raise AnswerValidationError("All answers must be non-empty strings.")
    return list(submitted)


def _norm_text(s: str) -> str:
    return s.strip().casefold()


def is_correct(qtype: str, correct_answers: Sequence[str], submitted: Sequence[str]) -> bool:
    correct = list(correct_answers or [])
    if not correct:
        return False

    if qtype in ("single", "boolean"):
        return len(submitted) == 1 and submitted[0] in correct

    if qtype == "multiple":
        return len(submitted) == len(correct) and set(submitted) == set(correct)

    if qtype == "text":
        expected = {_norm_text(c) for c in correct}
        return any(_norm_text(s) in expected for s in submitted)

    raise ValueError(f"unknown question type: {qtype!r}")


def grade(question: Any, submitted: Sequence[str]) -> Grade:
    """Grade one submission against a question (anything with type/correct_answers/points)."""
    answers = validate_submission(submitted)
    ok = is_correct(question.type, question.correct_answers, answers)
    points = question.points if question.points is not None else 1
    return Grade(is_correct=ok, points_awarded=points if ok else 0)
