# services/session_engine.py
"""
Quiz session lifecycle.

Every function here works on an in-memory QuizSession and never touches the
database; services/session_store.py loads, persists and adds side effects.

    in-progress -> paused -> in-progress -> completed
    in-progress -> completed
    in-progress | paused -> abandoned
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Sequence, Tuple

from errors import AnswerValidationError, InvalidTransition
from models import (
    SESSION_ABANDONED,
    SESSION_COMPLETED,
    SESSION_IN_PROGRESS,
    SESSION_PAUSED,
    QuizSession,
    SessionAnswer,
    new_id,
)
from services.grading import Grade, grade, validate_submission

# Expected time budget per answered question, in seconds.
SECONDS_PER_QUESTION = 30
SPEED_BONUS_RATIO = 0.75


def round_half_up(value: float | Decimal, places: int = 2) -> float:
    q = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def accuracy_of(correct: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round_half_up(Decimal(correct * 100) / Decimal(total))


def speed_bonus_earned(answer_count: int, time_spent: int | float) -> bool:
    budget = answer_count * SECONDS_PER_QUESTION
    return time_spent < SPEED_BONUS_RATIO * budget


def elapsed_seconds(started_at: datetime, now: datetime) -> int:
    seconds = (now - started_at).total_seconds()
    return max(0, int(Decimal(str(seconds)).quantize(Decimal(1), rounding=ROUND_HALF_UP)))


def new_session(user_id: str, quiz: Any, first_attempt: bool, now: datetime) -> QuizSession:
    return QuizSession(
        id=new_id(),
        user_id=user_id,
        quiz_id=quiz.id,
        status=SESSION_IN_PROGRESS,
        started_at=now,
        current_question_index=0,
        score=0,
        max_score=quiz.max_score,
        accuracy=0.0,
        perfect_score=False,
        speed_bonus=False,
        time_spent=0,
        first_attempt=first_attempt,
        answers=[],
    )


def recompute(session: QuizSession) -> None:
    """Derive score/accuracy/perfect flag from the full answer list."""
    answers = session.answers
    correct = sum(1 for a in answers if a.is_correct)
    session.score = sum(a.points_awarded or 0 for a in answers)
    session.accuracy = accuracy_of(correct, len(answers))
    session.perfect_score = bool(answers) and session.accuracy == 100


def has_answer(session: QuizSession, question_id: str) -> bool:
    return any(a.question_id == question_id for a in session.answers)


def record_answer(
    session: QuizSession,
    question: Any,
    selected: Sequence[str],
    time_spent: int,
    now: datetime,
) -> Tuple[SessionAnswer, Grade]:
    if session.status != SESSION_IN_PROGRESS:
        raise InvalidTransition("Session is not active.")
    selected = validate_submission(selected)
    if time_spent is None or not math.isfinite(time_spent) or time_spent < 0:
        raise AnswerValidationError("time_spent must be a non-negative number of seconds.")
    if has_answer(session, question.id):
        raise InvalidTransition("Answer for this question already submitted.")

    result = grade(question, selected)
    answer = SessionAnswer(
        position=len(session.answers),
        question_id=question.id,
        selected_answers=list(selected),
        is_correct=result.is_correct,
        points_awarded=result.points_awarded,
        time_spent=int(time_spent),
        answered_at=now,
    )
    session.answers.append(answer)
    recompute(session)
    session.current_question_index += 1
    return answer, result


def pause(session: QuizSession, now: datetime) -> None:
    if session.status != SESSION_IN_PROGRESS:
        raise InvalidTransition("Cannot pause a session that is not in progress.")
    session.status = SESSION_PAUSED
    session.paused_at = now


def resume(session: QuizSession, now: datetime) -> None:
    if session.status != SESSION_PAUSED:
        raise InvalidTransition("Session can only be resumed from paused state.")
    session.status = SESSION_IN_PROGRESS
    session.paused_at = None
    session.resumed_at = now


def complete(session: QuizSession, now: datetime) -> None:
    if session.status == SESSION_COMPLETED:
        raise InvalidTransition("Session already completed.")
    if session.status == SESSION_ABANDONED:
        raise InvalidTransition("Session was abandoned.")
    session.status = SESSION_COMPLETED
    session.completed_at = now
    session.paused_at = None
    session.time_spent = elapsed_seconds(session.started_at, now)
    recompute(session)
    session.speed_bonus = speed_bonus_earned(len(session.answers), session.time_spent)


def abandon(session: QuizSession) -> None:
    if session.status not in (SESSION_IN_PROGRESS, SESSION_PAUSED):
        raise InvalidTransition("Only an active session can be abandoned.")
    session.status = SESSION_ABANDONED
    session.paused_at = None


def summary(session: QuizSession, quiz: Any) -> dict:
    """Payload describing a finished session, as sent to the stats consumer."""
    return {
        "session_id": session.id,
        "user_id": session.user_id,
        "quiz_id": session.quiz_id,
        "quiz_title": quiz.title,
        "category": quiz.category,
        "difficulty": quiz.difficulty,
        "score": session.score,
        "max_score": session.max_score,
        "correct_answers": session.correct_answers,
        "total_questions": len(session.answers),
        "accuracy": session.accuracy,
        "time_spent": session.time_spent,
        "perfect_score": session.perfect_score,
        "speed_bonus": session.speed_bonus,
        "first_attempt": session.first_attempt,
        "completed_at": session.completed_at.isoformat() if session.completed_at else None,
    }
