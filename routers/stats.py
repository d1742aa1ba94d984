# routers/stats.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from db import SessionLocal
from deps.auth import Caller, current_user, require_client
from errors import NotFound
from schemas.achievements import AchievementOut
from schemas.stats import (
    HistoryOut,
    QuizCompleted,
    QuizCompletedResponse,
    TopicOut,
    UserOut,
    UserStatsResponse,
)
from services.stats import process_completed_quiz, user_overview

router = APIRouter(prefix="/stats", tags=["stats"])


@router.post(
    "/quiz-completed",
    response_model=QuizCompletedResponse,
    dependencies=[Depends(require_client)],
)
def quiz_completed(req: QuizCompleted):
    summary = req.model_dump(exclude={"display_name"})
    with SessionLocal() as db:
        progress = process_completed_quiz(db, summary, display_name=req.display_name)
    return {"ok": True, "progress": progress}


@router.get("", response_model=UserStatsResponse)
def my_stats(
    recent: int = Query(default=10, ge=1, le=50),
    caller: Caller = Depends(current_user),
):
    with SessionLocal() as db:
        overview = user_overview(db, caller.id, recent)
        if overview is None:
            raise NotFound("No stats recorded for this user yet.")
        return {
            "ok": True,
            "user": UserOut.model_validate(overview["user"]),
            "recent_history": [HistoryOut.model_validate(h) for h in overview["history"]],
            "topics": [TopicOut.model_validate(t) for t in overview["topics"]],
            "recent_achievements": [
                AchievementOut.model_validate(a) for a in overview["achievements"]
            ],
        }
