# schemas/quizzes.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class QuestionPublic(BaseModel):
    """A question as shown to players: never carries the correct answers."""

    model_config = ConfigDict(from_attributes=True)
    id: str
    text: str
    type: str
    options: List[str]
    points: int
    difficulty: str


class QuizOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    title: str
    description: Optional[str] = None
    category: str
    difficulty: str
    time_limit: Optional[int] = None
    passing_score: int
    is_public: bool
    play_count: int
    views: int
    last_played_at: Optional[datetime] = None
    question_count: int
    max_score: int


class QuizDetailOut(QuizOut):
    questions: List[QuestionPublic]
