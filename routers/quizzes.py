# routers/quizzes.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, select

from db import SessionLocal
from deps.auth import Caller, current_user
from errors import NotFound
from models import Quiz
from schemas.quizzes import QuizDetailOut, QuizOut

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


@router.get("", response_model=List[QuizOut])
def list_quizzes(
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=100),
    caller: Caller = Depends(current_user),
):
    with SessionLocal() as db:
        stmt = select(Quiz).where(
            Quiz.is_active.is_(True),
            or_(Quiz.is_public.is_(True), Quiz.created_by == caller.id),
        )
        if category:
            stmt = stmt.where(Quiz.category == category)
        if difficulty:
            stmt = stmt.where(Quiz.difficulty == difficulty)
        quizzes = db.scalars(stmt.order_by(Quiz.title).limit(limit)).all()
        return [QuizOut.model_validate(q) for q in quizzes]


@router.get("/{quiz_id}", response_model=QuizDetailOut)
def get_quiz(quiz_id: str, caller: Caller = Depends(current_user)):
    with SessionLocal() as db:
        quiz = db.get(Quiz, quiz_id)
        # private quizzes are invisible to outsiders
        if quiz is None or not quiz.is_accessible_by(caller.id):
            raise NotFound("Quiz not found.")
        return QuizDetailOut.model_validate(quiz)
