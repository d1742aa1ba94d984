# schemas/achievements.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class AchievementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    code: str
    type: str
    name: str
    description: str
    icon: str
    rarity: str
    points_awarded: int
    unlocked_at: datetime


class AvailableAchievement(BaseModel):
    code: str
    type: str
    name: str
    description: str
    icon: str
    rarity: str
    points_awarded: int
    unlocked: bool
    unlocked_at: Optional[datetime] = None


class AchievementList(BaseModel):
    ok: bool
    items: List[AchievementOut]
    count: int


class AvailableList(BaseModel):
    ok: bool
    items: List[AvailableAchievement]


class AchievementStats(BaseModel):
    ok: bool
    total: int
    available: int
    completion: int
    points_earned: int
    by_rarity: Dict[str, int]
