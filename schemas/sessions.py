# schemas/sessions.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from schemas.quizzes import QuestionPublic

# ---------- Requests ----------


class AnswerRequest(BaseModel):
    # gateway clients send camelCase; both spellings are accepted
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    question_id: str
    # shape is checked by the grader so malformed answers get a 400
    selected_answers: Optional[List[str]] = None
    time_spent: float = 0


# ---------- Responses ----------


class AnswerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    question_id: str
    selected_answers: List[str]
    is_correct: bool
    points_awarded: int
    time_spent: int
    answered_at: datetime


class SessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    user_id: str
    quiz_id: str
    status: str
    started_at: datetime
    paused_at: Optional[datetime] = None
    resumed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    current_question_index: int
    score: int
    max_score: int
    correct_answers: int
    accuracy: float
    perfect_score: bool
    speed_bonus: bool
    time_spent: int
    first_attempt: bool
    # usually excluded in list views
    answers: List[AnswerOut] = []


class StartResponse(BaseModel):
    ok: bool
    created: bool
    message: str
    session: SessionOut


class AnswerResponse(BaseModel):
    ok: bool
    is_correct: bool
    points_awarded: int
    session: SessionOut


class QuestionProgress(BaseModel):
    current: int
    total: int
    answered: int


class CurrentQuestionResponse(BaseModel):
    ok: bool
    session_id: str
    question: QuestionPublic
    progress: QuestionProgress


class Progress(BaseModel):
    points_earned: int
    bonus_points: int
    level_up: bool
    new_level: Optional[int] = None
    new_achievements: List[Dict[str, Any]] = []
    recorded: bool = True


class CompleteResponse(BaseModel):
    ok: bool
    session: SessionOut
    progress: Progress


class SessionListResponse(BaseModel):
    ok: bool
    items: List[Dict[str, Any]]
    page: int
    limit: int
    total: int


class QuizSessionStats(BaseModel):
    quiz_id: str
    total_sessions: int
    completed_sessions: int
    abandoned_sessions: int
    completion_rate: float
    average_score: float
    average_accuracy: float
    average_time_spent: float
    unique_players: int


class TrendPoint(BaseModel):
    date: str
    attempts: int
    completed: int
    average_score: float
