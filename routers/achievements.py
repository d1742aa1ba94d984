# routers/achievements.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select

from db import SessionLocal
from deps.auth import Caller, current_user
from models import Achievement
from schemas.achievements import AchievementList, AchievementOut, AchievementStats, AvailableList
from services.achievements import achievement_stats, definitions

router = APIRouter(prefix="/achievements", tags=["achievements"])


@router.get("", response_model=AchievementList)
def my_achievements(caller: Caller = Depends(current_user)):
    with SessionLocal() as db:
        rows = db.scalars(
            select(Achievement)
            .where(Achievement.user_id == caller.id)
            .order_by(Achievement.unlocked_at.desc())
        ).all()
        items = [AchievementOut.model_validate(a) for a in rows]
    return {"ok": True, "items": items, "count": len(items)}


@router.get("/stats", response_model=AchievementStats)
def my_achievement_stats(caller: Caller = Depends(current_user)):
    with SessionLocal() as db:
        return {"ok": True, **achievement_stats(db, caller.id)}


@router.get("/available", response_model=AvailableList)
def available_achievements(caller: Caller = Depends(current_user)):
    with SessionLocal() as db:
        unlocked = dict(
            db.execute(
                select(Achievement.name, Achievement.unlocked_at).where(
                    Achievement.user_id == caller.id
                )
            ).all()
        )
    items = [
        {**d.public(), "unlocked": d.name in unlocked, "unlocked_at": unlocked.get(d.name)}
        for d in definitions()
    ]
    return {"ok": True, "items": items}
