# schemas/stats.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from schemas.achievements import AchievementOut
from schemas.sessions import Progress


class QuizCompleted(BaseModel):
    """Completed-session summary posted by the session engine."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str
    user_id: str
    quiz_id: str
    quiz_title: str = ""
    category: str = "general"
    difficulty: str = "medium"
    score: int = Field(default=0, ge=0)
    max_score: int = Field(default=0, ge=0)
    correct_answers: int = Field(default=0, ge=0)
    total_questions: int = Field(default=0, ge=0)
    accuracy: float = Field(default=0.0, ge=0, le=100)
    time_spent: int = Field(default=0, ge=0)
    perfect_score: bool = False
    speed_bonus: bool = False
    first_attempt: bool = True
    completed_at: Optional[datetime] = None
    display_name: Optional[str] = None


class QuizCompletedResponse(BaseModel):
    ok: bool
    progress: Progress


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    display_name: Optional[str] = None
    total_score: int
    average_score: float
    total_quizzes_played: int
    current_streak: int
    best_streak: int
    last_quiz_date: Optional[date] = None
    level: int
    experience: int


class HistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    session_id: str
    quiz_id: str
    quiz_title: str
    category: str
    difficulty: str
    score: int
    max_score: int
    correct_answers: int
    total_questions: int
    accuracy: float
    time_spent: int
    points_earned: int
    bonus_points: int
    completed_at: datetime


class TopicOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    category: str
    total_quizzes: int
    average_score: float
    best_score: int
    level: int


class UserStatsResponse(BaseModel):
    ok: bool
    user: UserOut
    recent_history: List[HistoryOut]
    topics: List[TopicOut]
    recent_achievements: List[AchievementOut]
