# services/stats.py
"""Records completed sessions against the player's history and aggregates."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db import utcnow
from models import Achievement, QuizHistory, TopicStats, User
from services.achievements import SessionContext, evaluate, level_for
from services.session_engine import round_half_up
from services.timeframes import local_date

logger = logging.getLogger("quizplay.stats")

PERFECT_SCORE_BONUS = 10
SPEED_BONUS_POINTS = 5
QUIZZES_PER_TOPIC_LEVEL = 5


def bonus_points(summary: Dict[str, Any]) -> int:
    bonus = 0
    if summary.get("perfect_score"):
        bonus += PERFECT_SCORE_BONUS
    if summary.get("speed_bonus"):
        bonus += SPEED_BONUS_POINTS
    return bonus


def _parse_moment(value: Any, fallback: datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return fallback
    return fallback


def get_or_create_user(db: Session, user_id: str, display_name: Optional[str] = None) -> User:
    user = db.get(User, user_id)
    if user is None:
        user = User(
            id=user_id,
            display_name=display_name,
            is_active=True,
            total_score=0,
            average_score=0.0,
            total_quizzes_played=0,
            current_streak=0,
            best_streak=0,
            level=1,
            experience=0,
        )
        db.add(user)
        db.flush()
    elif display_name and not user.display_name:
        user.display_name = display_name
    return user


def update_streak(user: User, day: date) -> None:
    last = user.last_quiz_date
    if last is None:
        user.current_streak = 1
    elif day == last:
        user.current_streak = max(user.current_streak or 0, 1)
    elif day == last + timedelta(days=1):
        user.current_streak = (user.current_streak or 0) + 1
    elif day > last:
        user.current_streak = 1
    # an older day arriving late leaves the streak alone
    if last is None or day > last:
        user.last_quiz_date = day
    user.best_streak = max(user.best_streak or 0, user.current_streak or 0)


def update_topic_stats(db: Session, user_id: str, category: str, score: int) -> TopicStats:
    topic = db.scalar(
        select(TopicStats).where(TopicStats.user_id == user_id, TopicStats.category == category)
    )
    if topic is None:
        topic = TopicStats(
            user_id=user_id, category=category, total_quizzes=0, average_score=0.0, best_score=0
        )
        db.add(topic)
    n = (topic.total_quizzes or 0) + 1
    topic.average_score = round_half_up(((topic.average_score or 0.0) * (n - 1) + score) / n)
    topic.total_quizzes = n
    topic.best_score = max(topic.best_score or 0, score)
    topic.level = 1 + n // QUIZZES_PER_TOPIC_LEVEL
    return topic


def _record(
    db: Session, summary: Dict[str, Any], display_name: Optional[str], now: datetime
) -> Dict[str, Any]:
    session_id = summary["session_id"]
    existing = db.scalar(select(QuizHistory).where(QuizHistory.session_id == session_id))
    if existing is not None:
        logger.info("session %s already recorded; replaying stored result", session_id)
        return dict(existing.result or {})

    user = get_or_create_user(db, str(summary["user_id"]), display_name)
    completed_at = _parse_moment(summary.get("completed_at"), now)
    score = int(summary.get("score") or 0)
    bonus = bonus_points(summary)
    category = summary.get("category") or "general"

    history = QuizHistory(
        user_id=user.id,
        session_id=session_id,
        quiz_id=str(summary["quiz_id"]),
        quiz_title=summary.get("quiz_title") or "",
        category=category,
        difficulty=summary.get("difficulty") or "medium",
        score=score,
        max_score=int(summary.get("max_score") or 0),
        correct_answers=int(summary.get("correct_answers") or 0),
        total_questions=int(summary.get("total_questions") or 0),
        accuracy=float(summary.get("accuracy") or 0.0),
        time_spent=int(summary.get("time_spent") or 0),
        points_earned=score,
        bonus_points=bonus,
        completed_at=completed_at,
    )
    db.add(history)

    old_level = user.level or 1
    user.total_quizzes_played = (user.total_quizzes_played or 0) + 1
    user.total_score = (user.total_score or 0) + score + bonus
    user.experience = (user.experience or 0) + score + bonus
    update_streak(user, local_date(completed_at))
    update_topic_stats(db, user.id, category, score)
    db.flush()

    avg = db.scalar(select(func.avg(QuizHistory.score)).where(QuizHistory.user_id == user.id))
    user.average_score = round_half_up(float(avg or 0))

    context = SessionContext(
        accuracy=history.accuracy,
        time_spent=history.time_spent,
        total_questions=history.total_questions,
    )
    unlocked = evaluate(db, user, context, now)
    user.level = level_for(user.experience)

    result = {
        "points_earned": score,
        "bonus_points": bonus,
        "level_up": user.level > old_level,
        "new_level": user.level,
        "new_achievements": [
            {
                "code": a.code,
                "name": a.name,
                "rarity": a.rarity,
                "points_awarded": a.points_awarded,
            }
            for a in unlocked
        ],
        "recorded": True,
    }
    history.result = result
    db.commit()
    return result


def process_completed_quiz(
    db: Session,
    summary: Dict[str, Any],
    display_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Record one completed session. Safe to call more than once for the same
    session_id: later calls return the result stored by the first.
    """
    now = now or utcnow()
    try:
        return _record(db, summary, display_name, now)
    except IntegrityError:
        # lost a race with a concurrent delivery (history or achievement row)
        db.rollback()
        logger.info("concurrent write for session %s; retrying once", summary.get("session_id"))
        return _record(db, summary, display_name, now)


def user_overview(db: Session, user_id: str, recent: int = 10) -> Optional[Dict[str, Any]]:
    user = db.get(User, user_id)
    if user is None:
        return None
    history = db.scalars(
        select(QuizHistory)
        .where(QuizHistory.user_id == user_id)
        .order_by(QuizHistory.completed_at.desc())
        .limit(recent)
    ).all()
    topics = db.scalars(
        select(TopicStats)
        .where(TopicStats.user_id == user_id)
        .order_by(TopicStats.average_score.desc())
    ).all()
    achievements = db.scalars(
        select(Achievement)
        .where(Achievement.user_id == user_id)
        .order_by(Achievement.unlocked_at.desc())
        .limit(5)
    ).all()
    return {"user": user, "history": history, "topics": topics, "achievements": achievements}
