# schemas/rankings.py
from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class RankingEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    rank: int
    user_id: str
    user_name: str
    total_score: int
    average_score: float
    quizzes_played: int
    # scope-specific
    level: Optional[int] = None
    week_start: Optional[date] = None
    category: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class RankingPage(BaseModel):
    ok: bool
    ranking: List[RankingEntry]
    pagination: Pagination
    user_rank: Optional[RankingEntry] = None


class UserRankings(BaseModel):
    ok: bool
    global_rank: Optional[RankingEntry] = None
    weekly_rank: Optional[RankingEntry] = None
    categories: Dict[str, RankingEntry] = {}


class RecomputeResponse(BaseModel):
    ok: bool
    updated: Dict[str, object]
