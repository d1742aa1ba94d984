# routers/rankings.py
from __future__ import annotations

from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query

from db import SessionLocal, utcnow
from deps.auth import Caller, current_user, require_admin
from schemas.rankings import RankingEntry, RankingPage, RecomputeResponse, UserRankings
from services import rankings
from services.timeframes import local_date, week_start

router = APIRouter(prefix="/rankings", tags=["rankings"])


def _page(scope: str, scope_key: str, page: int, limit: int, user_id: str) -> dict:
    with SessionLocal() as db:
        data = rankings.read_ranking(db, scope, scope_key, page, limit, user_id)
        return {
            "ok": True,
            "ranking": [RankingEntry.model_validate(r) for r in data["ranking"]],
            "pagination": data["pagination"],
            "user_rank": (
                RankingEntry.model_validate(data["user_rank"]) if data["user_rank"] else None
            ),
        }


@router.get("/global", response_model=RankingPage)
def global_ranking(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    caller: Caller = Depends(current_user),
):
    return _page(rankings.SCOPE_GLOBAL, "", page, limit, caller.id)


@router.get("/weekly", response_model=RankingPage)
def weekly_ranking(
    week: Optional[date] = Query(default=None, description="Any day in the wanted week"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    caller: Caller = Depends(current_user),
):
    monday = week_start(week or local_date(utcnow()))
    return _page(rankings.SCOPE_WEEKLY, monday.isoformat(), page, limit, caller.id)


@router.get("/categories", response_model=List[str])
def ranking_categories(caller: Caller = Depends(current_user)):
    with SessionLocal() as db:
        return rankings.categories(db)


@router.get("/category/{category}", response_model=RankingPage)
def category_ranking(
    category: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    caller: Caller = Depends(current_user),
):
    return _page(rankings.SCOPE_CATEGORY, category, page, limit, caller.id)


@router.get("/user", response_model=UserRankings)
def my_rankings(caller: Caller = Depends(current_user)):
    with SessionLocal() as db:
        data = rankings.user_ranking_stats(db, caller.id)

        def entry(row):
            return RankingEntry.model_validate(row) if row is not None else None

        return {
            "ok": True,
            "global_rank": entry(data["global"]),
            "weekly_rank": entry(data["weekly"]),
            "categories": {k: entry(v) for k, v in data["categories"].items()},
        }


@router.post("/update", response_model=RecomputeResponse, dependencies=[Depends(require_admin)])
def update_rankings(type: Optional[Literal["global", "weekly", "category"]] = None):
    with SessionLocal() as db:
        updated = rankings.recompute_all(db, type)
    return {"ok": True, "updated": updated}
