# services/rankings.py
"""
Leaderboard recomputation.

Each run writes a complete set of rows under a fresh generation id and then
repoints ranking_snapshots(scope, scope_key) at it in the same transaction.
Readers always go through the snapshot pointer, so one scope key is never
served half old and half new. Generations older than the one just replaced
are removed afterwards.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from db import utcnow
from models import (
    CategoryRanking,
    GlobalRanking,
    QuizHistory,
    RankingSnapshot,
    TopicStats,
    User,
    WeeklyRanking,
    new_id,
)
from services.session_engine import round_half_up
from services.timeframes import local_date, week_bounds, week_start

logger = logging.getLogger("quizplay.rankings")

SCOPE_GLOBAL = "global"
SCOPE_WEEKLY = "weekly"
SCOPE_CATEGORY = "category"

MODEL_BY_SCOPE: Dict[str, Type[Any]] = {
    SCOPE_GLOBAL: GlobalRanking,
    SCOPE_WEEKLY: WeeklyRanking,
    SCOPE_CATEGORY: CategoryRanking,
}


@dataclass
class Standing:
    user_id: str
    user_name: str
    total_score: int
    average_score: float
    quizzes_played: int
    level: int = 1


def global_sort_key(s: Standing):
    return (-s.total_score, -s.average_score, -s.quizzes_played, s.user_id)


def category_sort_key(s: Standing):
    return (-s.total_score, -s.average_score, -s.level, s.user_id)


def rank(standings: Iterable[Standing], key=global_sort_key) -> List[tuple[int, Standing]]:
    """Sort by the tie-break chain and number 1..N with no gaps."""
    return [(i, s) for i, s in enumerate(sorted(standings, key=key), start=1)]


def _display_names(db: Session, user_ids: Iterable[str]) -> Dict[str, str]:
    ids = list(set(user_ids))
    if not ids:
        return {}
    rows = db.execute(select(User.id, User.display_name).where(User.id.in_(ids))).all()
    return {uid: (name or uid) for uid, name in rows}


def _standings_from_history(db: Session, rows: Sequence[QuizHistory]) -> List[Standing]:
    scores: Dict[str, List[int]] = defaultdict(list)
    for h in rows:
        scores[h.user_id].append(h.score)
    names = _display_names(db, scores)
    return [
        Standing(
            user_id=uid,
            user_name=names.get(uid, uid),
            total_score=sum(values),
            average_score=round_half_up(sum(values) / len(values)),
            quizzes_played=len(values),
        )
        for uid, values in scores.items()
    ]


# --- Swap -------------------------------------------------------------------------


def _publish(
    db: Session,
    scope: str,
    scope_key: str,
    ranked: List[tuple[int, Standing]],
    build_row,
    now: Optional[datetime] = None,
) -> str:
    generation = new_id()
    for position, standing in ranked:
        db.add(build_row(generation, position, standing))

    snapshot = db.scalar(
        select(RankingSnapshot).where(
            RankingSnapshot.scope == scope, RankingSnapshot.scope_key == scope_key
        )
    )
    if snapshot is None:
        snapshot = RankingSnapshot(scope=scope, scope_key=scope_key)
        db.add(snapshot)
    replaced = snapshot.generation
    snapshot.generation = generation
    snapshot.row_count = len(ranked)
    snapshot.computed_at = now or utcnow()
    db.commit()

    # the replaced generation stays until the next run for readers holding the old pointer
    _prune(db, scope, scope_key, keep=[g for g in (generation, replaced) if g])
    logger.info("published %s ranking %r: %d rows", scope, scope_key, len(ranked))
    return generation


def _prune(db: Session, scope: str, scope_key: str, keep: List[str]) -> None:
    model = MODEL_BY_SCOPE[scope]
    stmt = delete(model).where(model.generation.not_in(keep))
    if scope == SCOPE_WEEKLY:
        stmt = stmt.where(model.week_start == date.fromisoformat(scope_key))
    elif scope == SCOPE_CATEGORY:
        stmt = stmt.where(model.category == scope_key)
    db.execute(stmt)
    db.commit()


def current_generation(db: Session, scope: str, scope_key: str = "") -> Optional[str]:
    return db.scalar(
        select(RankingSnapshot.generation).where(
            RankingSnapshot.scope == scope, RankingSnapshot.scope_key == scope_key
        )
    )


def current_snapshot(db: Session, scope: str, scope_key: str = "") -> Optional[tuple[str, int]]:
    """(generation, row_count) of the published board, read in one statement."""
    row = db.execute(
        select(RankingSnapshot.generation, RankingSnapshot.row_count).where(
            RankingSnapshot.scope == scope, RankingSnapshot.scope_key == scope_key
        )
    ).first()
    return (row.generation, row.row_count or 0) if row else None


# --- Recompute --------------------------------------------------------------------


def recompute_global(db: Session) -> int:
    users = db.scalars(
        select(User).where(User.is_active.is_(True), User.total_quizzes_played > 0)
    ).all()
    standings = [
        Standing(
            user_id=u.id,
            user_name=u.display_name or u.id,
            total_score=u.total_score or 0,
            average_score=u.average_score or 0.0,
            quizzes_played=u.total_quizzes_played or 0,
            level=u.level or 1,
        )
        for u in users
    ]
    ranked = rank(standings)

    def build(generation, position, s):
        return GlobalRanking(
            generation=generation,
            user_id=s.user_id,
            user_name=s.user_name,
            total_score=s.total_score,
            average_score=s.average_score,
            quizzes_played=s.quizzes_played,
            level=s.level,
            rank=position,
        )

    _publish(db, SCOPE_GLOBAL, "", ranked, build)
    return len(ranked)


def recompute_weekly(db: Session, monday: Optional[date] = None) -> int:
    monday = week_start(monday or local_date(utcnow()))
    start, end = week_bounds(monday)
    rows = db.scalars(
        select(QuizHistory).where(QuizHistory.completed_at >= start, QuizHistory.completed_at < end)
    ).all()
    ranked = rank(_standings_from_history(db, rows))

    def build(generation, position, s):
        return WeeklyRanking(
            generation=generation,
            week_start=monday,
            user_id=s.user_id,
            user_name=s.user_name,
            total_score=s.total_score,
            average_score=s.average_score,
            quizzes_played=s.quizzes_played,
            rank=position,
        )

    _publish(db, SCOPE_WEEKLY, monday.isoformat(), ranked, build)
    return len(ranked)


def recompute_category(db: Session, category: str) -> int:
    rows = db.scalars(select(QuizHistory).where(QuizHistory.category == category)).all()
    standings = _standings_from_history(db, rows)
    levels = dict(
        db.execute(
            select(TopicStats.user_id, TopicStats.level).where(TopicStats.category == category)
        ).all()
    )
    for s in standings:
        s.level = levels.get(s.user_id, 1)
    ranked = rank(standings, key=category_sort_key)

    def build(generation, position, s):
        return CategoryRanking(
            generation=generation,
            category=category,
            user_id=s.user_id,
            user_name=s.user_name,
            total_score=s.total_score,
            average_score=s.average_score,
            quizzes_played=s.quizzes_played,
            level=s.level,
            rank=position,
        )

    _publish(db, SCOPE_CATEGORY, category, ranked, build)
    return len(ranked)


def categories(db: Session) -> List[str]:
    return list(db.scalars(select(QuizHistory.category).distinct().order_by(QuizHistory.category)))


def recompute_all(db: Session, kind: Optional[str] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if kind in (None, SCOPE_GLOBAL):
        out[SCOPE_GLOBAL] = recompute_global(db)
    if kind in (None, SCOPE_WEEKLY):
        out[SCOPE_WEEKLY] = recompute_weekly(db)
    if kind in (None, SCOPE_CATEGORY):
        out[SCOPE_CATEGORY] = {c: recompute_category(db, c) for c in categories(db)}
    return out


# --- Read -------------------------------------------------------------------------


def _scope_filter(scope: str, scope_key: str):
    model = MODEL_BY_SCOPE[scope]
    if scope == SCOPE_WEEKLY:
        return model, [model.week_start == date.fromisoformat(scope_key)]
    if scope == SCOPE_CATEGORY:
        return model, [model.category == scope_key]
    return model, []


def read_ranking(
    db: Session,
    scope: str,
    scope_key: str = "",
    page: int = 1,
    limit: int = 50,
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    model, filters = _scope_filter(scope, scope_key)
    snapshot = current_snapshot(db, scope, scope_key)
    rows: List[Any] = []
    total = 0
    user_rank = None
    if snapshot is not None:
        generation, total = snapshot
        filters = filters + [model.generation == generation]
        rows = list(
            db.scalars(
                select(model)
                .where(*filters)
                .order_by(model.rank)
                .offset((page - 1) * limit)
                .limit(limit)
            )
        )
        if user_id:
            user_rank = db.scalar(select(model).where(*filters, model.user_id == user_id))

    pages = (total + limit - 1) // limit if limit else 0
    return {
        "ranking": rows,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": pages},
        "user_rank": user_rank,
    }


def user_ranking_stats(db: Session, user_id: str) -> Dict[str, Any]:
    """The caller's position in the global, current-week and each category board."""
    out: Dict[str, Any] = {"global": None, "weekly": None, "categories": {}}

    generation = current_generation(db, SCOPE_GLOBAL)
    if generation:
        out["global"] = db.scalar(
            select(GlobalRanking).where(
                GlobalRanking.generation == generation, GlobalRanking.user_id == user_id
            )
        )

    monday = week_start(local_date(utcnow())).isoformat()
    generation = current_generation(db, SCOPE_WEEKLY, monday)
    if generation:
        out["weekly"] = db.scalar(
            select(WeeklyRanking).where(
                WeeklyRanking.generation == generation, WeeklyRanking.user_id == user_id
            )
        )

    snapshots = db.scalars(
        select(RankingSnapshot).where(RankingSnapshot.scope == SCOPE_CATEGORY)
    ).all()
    for snap in snapshots:
        row = db.scalar(
            select(CategoryRanking).where(
                CategoryRanking.generation == snap.generation, CategoryRanking.user_id == user_id
            )
        )
        if row is not None:
            out["categories"][snap.scope_key] = row
    return out
