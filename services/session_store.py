# services/session_store.py
"""Loads and persists quiz sessions around the pure lifecycle in session_engine."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db import utcnow
from errors import Forbidden, InvalidTransition, NotFound
from models import (
    ACTIVE_STATUSES,
    SESSION_ABANDONED,
    SESSION_COMPLETED,
    SESSION_IN_PROGRESS,
    Question,
    Quiz,
    QuizSession,
)
from services import session_engine as engine
from services.outbox import TOPIC_SESSION_COMPLETED, enqueue
from services.session_engine import round_half_up
from services.timeframes import local_date

logger = logging.getLogger("quizplay.sessions")

STALE_AFTER = timedelta(hours=24)


# --- Lookups ----------------------------------------------------------------------


def get_quiz(db: Session, quiz_id: str) -> Quiz:
    quiz = db.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFound("Quiz not found.")
    return quiz


def find_active_session(db: Session, user_id: str, quiz_id: str) -> Optional[QuizSession]:
    return db.scalar(
        select(QuizSession)
        .where(
            QuizSession.user_id == user_id,
            QuizSession.quiz_id == quiz_id,
            QuizSession.status.in_(ACTIVE_STATUSES),
        )
        .order_by(QuizSession.started_at.desc())
    )


def find_by_id(db: Session, session_id: str, user_id: str) -> Optional[QuizSession]:
    """Owner-scoped: another user's session is reported as missing."""
    return db.scalar(
        select(QuizSession).where(QuizSession.id == session_id, QuizSession.user_id == user_id)
    )


def get_owned_session(db: Session, session_id: str, user_id: str) -> QuizSession:
    session = find_by_id(db, session_id, user_id)
    if session is None:
        raise NotFound("Session not found.")
    return session


def has_completed_attempt(db: Session, user_id: str, quiz_id: str) -> bool:
    found = db.scalar(
        select(QuizSession.id)
        .where(
            QuizSession.user_id == user_id,
            QuizSession.quiz_id == quiz_id,
            QuizSession.status == SESSION_COMPLETED,
        )
        .limit(1)
    )
    return found is not None


# --- Lifecycle --------------------------------------------------------------------


def start_session(
    db: Session, user_id: str, quiz_id: str, now: Optional[datetime] = None
) -> Tuple[QuizSession, bool]:
    """
    Return (session, created). An existing in-progress or paused session for
    the pair is returned untouched.
    """
    quiz = get_quiz(db, quiz_id)
    if not quiz.is_active:
        raise Forbidden("Quiz is not active.")
    if not quiz.is_accessible_by(user_id):
        raise Forbidden("You do not have access to this quiz.")

    existing = find_active_session(db, user_id, quiz_id)
    if existing is not None:
        return existing, False

    now = now or utcnow()
    first_attempt = not has_completed_attempt(db, user_id, quiz_id)
    session = engine.new_session(user_id, quiz, first_attempt, now)
    db.add(session)
    try:
        db.execute(
            update(Quiz)
            .where(Quiz.id == quiz_id)
            .values(views=Quiz.views + 1, last_played_at=now)
        )
        db.commit()
    except IntegrityError:
        # a concurrent start for the same pair won the partial unique index
        db.rollback()
        winner = find_active_session(db, user_id, quiz_id)
        if winner is None:
            raise
        logger.info("concurrent start for user=%s quiz=%s; reusing %s", user_id, quiz_id, winner.id)
        return winner, False

    logger.info("session %s started user=%s quiz=%s", session.id, user_id, quiz_id)
    return session, True


def _unanswered(session: QuizSession, quiz: Quiz) -> List[Question]:
    answered = {a.question_id for a in session.answers}
    return [q for q in quiz.questions if q.id not in answered]


def current_question(db: Session, session_id: str, user_id: str) -> Dict[str, Any]:
    session = get_owned_session(db, session_id, user_id)
    if session.status != SESSION_IN_PROGRESS:
        raise InvalidTransition("Session is not active.")
    quiz = session.quiz
    remaining = _unanswered(session, quiz)
    if not remaining:
        raise InvalidTransition("No more questions in this quiz.")
    total = len(quiz.question_links)
    return {
        "session": session,
        "question": remaining[0],
        "progress": {
            "current": total - len(remaining) + 1,
            "total": total,
            "answered": len(session.answers),
        },
    }


def submit_answer(
    db: Session,
    session_id: str,
    user_id: str,
    question_id: str,
    selected: List[str],
    time_spent: int,
    now: Optional[datetime] = None,
):
    session = get_owned_session(db, session_id, user_id)
    question = next((q for q in session.quiz.questions if q.id == question_id), None)
    if question is None:
        raise NotFound("Question not found in this quiz.")

    answer, result = engine.record_answer(session, question, selected, time_spent, now or utcnow())
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidTransition("Answer for this question already submitted.")
    return session, answer, result


def pause_session(db: Session, session_id: str, user_id: str) -> QuizSession:
    session = get_owned_session(db, session_id, user_id)
    engine.pause(session, utcnow())
    db.commit()
    return session


def resume_session(db: Session, session_id: str, user_id: str) -> QuizSession:
    session = get_owned_session(db, session_id, user_id)
    engine.resume(session, utcnow())
    db.commit()
    return session


def complete_session(
    db: Session, session_id: str, user_id: str, now: Optional[datetime] = None
) -> Tuple[QuizSession, int, Dict[str, Any]]:
    """
    Complete the session and queue its completion event in one transaction.
    Returns (session, outbox event id, event payload).
    """
    session = get_owned_session(db, session_id, user_id)
    engine.complete(session, now or utcnow())
    db.execute(update(Quiz).where(Quiz.id == session.quiz_id).values(play_count=Quiz.play_count + 1))
    payload = engine.summary(session, session.quiz)
    event = enqueue(db, TOPIC_SESSION_COMPLETED, payload)
    db.commit()
    logger.info(
        "session %s completed score=%s/%s accuracy=%s",
        session.id,
        session.score,
        session.max_score,
        session.accuracy,
    )
    return session, event.id, payload


def abandon_stale_sessions(
    db: Session, older_than: timedelta = STALE_AFTER, now: Optional[datetime] = None
) -> int:
    cutoff = (now or utcnow()) - older_than
    stale = db.scalars(
        select(QuizSession).where(
            QuizSession.status.in_(ACTIVE_STATUSES), QuizSession.started_at < cutoff
        )
    ).all()
    for session in stale:
        engine.abandon(session)
    db.commit()
    if stale:
        logger.info("abandoned %d stale sessions", len(stale))
    return len(stale)


# --- Reporting --------------------------------------------------------------------


def list_user_sessions(
    db: Session,
    user_id: str,
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
) -> Tuple[List[QuizSession], int]:
    filters = [QuizSession.user_id == user_id]
    if status:
        filters.append(QuizSession.status == status)
    total = db.scalar(select(func.count()).select_from(QuizSession).where(*filters)) or 0
    rows = db.scalars(
        select(QuizSession)
        .where(*filters)
        .order_by(QuizSession.started_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return list(rows), total


def quiz_sessions(db: Session, quiz_id: str) -> Dict[str, Any]:
    """Aggregate over every user's sessions of one quiz."""
    sessions = db.scalars(select(QuizSession).where(QuizSession.quiz_id == quiz_id)).all()
    completed = [s for s in sessions if s.status == SESSION_COMPLETED]
    abandoned = sum(1 for s in sessions if s.status == SESSION_ABANDONED)

    def mean(values):
        values = list(values)
        return round_half_up(sum(values) / len(values)) if values else 0.0

    return {
        "quiz_id": quiz_id,
        "total_sessions": len(sessions),
        "completed_sessions": len(completed),
        "abandoned_sessions": abandoned,
        "completion_rate": round_half_up(len(completed) * 100 / len(sessions)) if sessions else 0.0,
        "average_score": mean(s.score for s in completed),
        "average_accuracy": mean(s.accuracy for s in completed),
        "average_time_spent": mean(s.time_spent for s in completed),
        "unique_players": len({s.user_id for s in sessions}),
    }


def quiz_trends(db: Session, quiz_id: str, since: datetime) -> List[Dict[str, Any]]:
    sessions = db.scalars(
        select(QuizSession)
        .where(QuizSession.quiz_id == quiz_id, QuizSession.started_at >= since)
        .order_by(QuizSession.started_at)
    ).all()

    days: Dict[Any, List[QuizSession]] = defaultdict(list)
    for s in sessions:
        days[local_date(s.started_at)].append(s)

    trends = []
    for day in sorted(days):
        bucket = days[day]
        done = [s.accuracy for s in bucket if s.status == SESSION_COMPLETED]
        trends.append(
            {
                "date": day.isoformat(),
                "attempts": len(bucket),
                "completed": len(done),
                "average_score": round_half_up(sum(done) / len(done)) if done else 0.0,
            }
        )
    return trends
