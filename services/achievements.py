# services/achievements.py
"""
Achievement registry and evaluator.

Each definition pairs its display data with a pure predicate over the
player's progress and, optionally, the session that was just completed.
Thresholds are ">= N and not yet awarded", so a skipped evaluation is
picked up the next time the player finishes a quiz.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db import utcnow
from errors import NotFound
from models import Achievement, QuizHistory, User
from services.session_engine import SECONDS_PER_QUESTION
from services.timeframes import local_date

logger = logging.getLogger("quizplay.achievements")

SPEED_DEMON_RATIO = 0.5
XP_PER_LEVEL = 100


def level_for(experience: int) -> int:
    return 1 + max(0, experience or 0) // XP_PER_LEVEL


@dataclass(frozen=True)
class HistoryEntry:
    category: str
    accuracy: float
    score: int
    completed_at: datetime


@dataclass(frozen=True)
class SessionContext:
    accuracy: float
    time_spent: int
    total_questions: int


@dataclass(frozen=True)
class UserProgress:
    user_id: str
    total_score: int
    history: Tuple[HistoryEntry, ...]
    today: date

    def days_played(self) -> set:
        return {local_date(h.completed_at) for h in self.history}

    def sessions_on(self, day: date) -> int:
        return sum(1 for h in self.history if local_date(h.completed_at) == day)


Predicate = Callable[[UserProgress, Optional[SessionContext]], bool]


@dataclass(frozen=True)
class AchievementDefinition:
    code: str
    type: str
    name: str
    description: str
    icon: str
    rarity: str
    points_awarded: int
    predicate: Predicate = field(compare=False, repr=False)

    def public(self) -> dict:
        return {
            "code": self.code,
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "rarity": self.rarity,
            "points_awarded": self.points_awarded,
        }


# --- Predicates -------------------------------------------------------------------


def played_at_least(n: int) -> Predicate:
    return lambda progress, _session: len(progress.history) >= n


def total_score_at_least(n: int) -> Predicate:
    return lambda progress, _session: progress.total_score >= n


def perfect_session(_progress: UserProgress, session: Optional[SessionContext]) -> bool:
    return session is not None and session.accuracy == 100


def perfect_sessions_at_least(n: int) -> Predicate:
    return lambda progress, _session: sum(1 for h in progress.history if h.accuracy == 100) >= n


def fast_session(_progress: UserProgress, session: Optional[SessionContext]) -> bool:
    if session is None or session.total_questions <= 0:
        return False
    expected = session.total_questions * SECONDS_PER_QUESTION
    return session.time_spent < expected * SPEED_DEMON_RATIO


def sessions_today_at_least(n: int) -> Predicate:
    return lambda progress, _session: progress.sessions_on(progress.today) >= n


def daily_streak(days: int) -> Predicate:
    def check(progress: UserProgress, _session: Optional[SessionContext]) -> bool:
        played = progress.days_played()
        return all(progress.today - timedelta(days=i) in played for i in range(days))

    return check


def distinct_categories_at_least(n: int) -> Predicate:
    return lambda progress, _session: len({h.category for h in progress.history}) >= n


def category_mastery(min_sessions: int, min_accuracy: float) -> Predicate:
    def check(progress: UserProgress, _session: Optional[SessionContext]) -> bool:
        by_category: Dict[str, List[float]] = defaultdict(list)
        for h in progress.history:
            by_category[h.category].append(h.accuracy)
        return any(
            len(accs) >= min_sessions and sum(accs) / len(accs) >= min_accuracy
            for accs in by_category.values()
        )

    return check


# --- Registry ---------------------------------------------------------------------

_DEFINITIONS = (
    AchievementDefinition(
        "first_quiz", "milestone", "First Quiz!", "Completed your first quiz",
        "🎯", "common", 10, played_at_least(1),
    ),
    AchievementDefinition(
        "quiz_master_10", "milestone", "Quiz Master", "Completed 10 quizzes",
        "🏆", "rare", 50, played_at_least(10),
    ),
    AchievementDefinition(
        "quiz_legend_50", "milestone", "Quiz Legend", "Completed 50 quizzes",
        "👑", "epic", 200, played_at_least(50),
    ),
    AchievementDefinition(
        "quiz_god_100", "milestone", "Quiz God", "Completed 100 quizzes",
        "💎", "legendary", 500, played_at_least(100),
    ),
    AchievementDefinition(
        "perfectionist", "accuracy", "Perfectionist", "100% correct answers in a quiz",
        "💯", "rare", 25, perfect_session,
    ),
    AchievementDefinition(
        "accuracy_master", "accuracy", "Accuracy Master", "10 quizzes with 100% correct answers",
        "🎖️", "epic", 150, perfect_sessions_at_least(10),
    ),
    AchievementDefinition(
        "speed_demon", "speed", "Speed Demon", "Finished a quiz in record time",
        "⚡", "rare", 30, fast_session,
    ),
    AchievementDefinition(
        "streak_warrior_5", "streak", "Streak Warrior", "5 quizzes in a single day",
        "🔥", "rare", 40, sessions_today_at_least(5),
    ),
    AchievementDefinition(
        "daily_dedication_7", "streak", "Daily Dedication", "A quiz every day for a week",
        "📅", "epic", 100, daily_streak(7),
    ),
    AchievementDefinition(
        "score_hunter_500", "score", "Score Hunter", "Scored 500 points",
        "🏹", "common", 20, total_score_at_least(500),
    ),
    AchievementDefinition(
        "score_master_2000", "score", "Score Master", "Scored 2000 points",
        "🎯", "rare", 75, total_score_at_least(2000),
    ),
    AchievementDefinition(
        "score_legend_5000", "score", "Score Legend", "Scored 5000 points",
        "🌟", "epic", 200, total_score_at_least(5000),
    ),
    AchievementDefinition(
        "category_explorer", "category", "Category Explorer", "Completed quizzes in 5 categories",
        "🗺️", "rare", 60, distinct_categories_at_least(5),
    ),
    AchievementDefinition(
        "category_master", "category", "Category Master",
        "Average above 80% in one category (min. 10 quizzes)",
        "🧠", "epic", 120, category_mastery(10, 80),
    ),
)

ACHIEVEMENTS: Mapping[str, AchievementDefinition] = MappingProxyType(
    {d.code: d for d in _DEFINITIONS}
)


def definitions() -> Tuple[AchievementDefinition, ...]:
    return _DEFINITIONS


def qualifying(
    progress: UserProgress,
    session: Optional[SessionContext],
    already_awarded: Iterable[str],
) -> List[AchievementDefinition]:
    """Definitions that newly qualify, skipping names already awarded."""
    owned = set(already_awarded)
    return [d for d in _DEFINITIONS if d.name not in owned and d.predicate(progress, session)]


# --- Persistence ------------------------------------------------------------------


def load_progress(db: Session, user: User, now: Optional[datetime] = None) -> UserProgress:
    rows = db.scalars(
        select(QuizHistory)
        .where(QuizHistory.user_id == user.id)
        .order_by(QuizHistory.completed_at.desc())
    ).all()
    history = tuple(
        HistoryEntry(
            category=h.category,
            accuracy=h.accuracy,
            score=h.score,
            completed_at=h.completed_at,
        )
        for h in rows
    )
    return UserProgress(
        user_id=user.id,
        total_score=user.total_score or 0,
        history=history,
        today=local_date(now or utcnow()),
    )


def awarded_names(db: Session, user_id: str) -> List[str]:
    return list(db.scalars(select(Achievement.name).where(Achievement.user_id == user_id)))


def evaluate(
    db: Session,
    user: User,
    session: Optional[SessionContext] = None,
    now: Optional[datetime] = None,
) -> List[Achievement]:
    """
    Add newly earned achievements and credit their experience to the user.
    Runs inside the caller's transaction; the caller commits.
    """
    now = now or utcnow()
    db.flush()
    progress = load_progress(db, user, now)
    earned = qualifying(progress, session, awarded_names(db, user.id))

    awarded: List[Achievement] = []
    for d in earned:
        achievement = Achievement(
            user_id=user.id,
            code=d.code,
            type=d.type,
            name=d.name,
            description=d.description,
            icon=d.icon,
            rarity=d.rarity,
            points_awarded=d.points_awarded,
            unlocked_at=now,
        )
        db.add(achievement)
        user.experience = (user.experience or 0) + d.points_awarded
        awarded.append(achievement)
    user.level = level_for(user.experience)

    if awarded:
        logger.info("user %s unlocked %s", user.id, ", ".join(a.code for a in awarded))
    return awarded


def check_and_award(
    db: Session,
    user_id: str,
    session: Optional[SessionContext] = None,
    now: Optional[datetime] = None,
) -> List[Achievement]:
    """Standalone evaluation for one user, committed atomically."""
    for attempt in (1, 2):
        user = db.get(User, user_id)
        if user is None:
            raise NotFound("User not found.")
        awarded = evaluate(db, user, session, now)
        try:
            db.commit()
            return awarded
        except IntegrityError:
            # another writer awarded one of these first; re-read and retry
            db.rollback()
            if attempt == 2:
                raise
    return []


def achievement_stats(db: Session, user_id: str) -> dict:
    rows = db.scalars(select(Achievement).where(Achievement.user_id == user_id)).all()
    by_rarity: Dict[str, int] = defaultdict(int)
    for a in rows:
        by_rarity[a.rarity] += 1
    available = len(_DEFINITIONS)
    return {
        "total": len(rows),
        "available": available,
        "completion": round(len(rows) * 100 / available) if available else 0,
        "points_earned": sum(a.points_awarded for a in rows),
        "by_rarity": dict(by_rarity),
    }
