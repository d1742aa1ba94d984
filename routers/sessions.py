# routers/sessions.py
from __future__ import annotations

from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response

from db import SessionLocal, utcnow
from deps.auth import Caller, current_user
from schemas.quizzes import QuestionPublic
from schemas.sessions import (
    AnswerRequest,
    AnswerResponse,
    CompleteResponse,
    CurrentQuestionResponse,
    QuizSessionStats,
    SessionListResponse,
    SessionOut,
    StartResponse,
    TrendPoint,
)
from services import session_store
from services.outbox import StatsNotifier, degraded_progress, get_notifier

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("/start/{quiz_id}", response_model=StartResponse)
def start_session(quiz_id: str, response: Response, caller: Caller = Depends(current_user)):
    with SessionLocal() as db:
        session, created = session_store.start_session(db, caller.id, quiz_id)
        response.status_code = 201 if created else 200
        return {
            "ok": True,
            "created": created,
            "message": "Session started." if created else "Continuing existing session.",
            "session": SessionOut.model_validate(session),
        }


@router.get("", response_model=SessionListResponse)
def list_sessions(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status: Optional[str] = None,
    caller: Caller = Depends(current_user),
):
    with SessionLocal() as db:
        rows, total = session_store.list_user_sessions(db, caller.id, page, limit, status)
        # answers are only returned by GET /sessions/{id}
        items = [SessionOut.model_validate(s).model_dump(exclude={"answers"}) for s in rows]
    return {"ok": True, "items": items, "page": page, "limit": limit, "total": total}


@router.get("/quiz/{quiz_id}/stats", response_model=QuizSessionStats)
def quiz_stats(quiz_id: str, caller: Caller = Depends(current_user)):
    with SessionLocal() as db:
        session_store.get_quiz(db, quiz_id)
        return session_store.quiz_sessions(db, quiz_id)


@router.get("/quiz/{quiz_id}/trends", response_model=List[TrendPoint])
def quiz_trends(
    quiz_id: str,
    days: int = Query(default=30, ge=1, le=365),
    caller: Caller = Depends(current_user),
):
    with SessionLocal() as db:
        session_store.get_quiz(db, quiz_id)
        return session_store.quiz_trends(db, quiz_id, utcnow() - timedelta(days=days))


@router.get("/{session_id}", response_model=SessionOut)
def get_session(session_id: str, caller: Caller = Depends(current_user)):
    with SessionLocal() as db:
        session = session_store.get_owned_session(db, session_id, caller.id)
        return SessionOut.model_validate(session)


@router.get("/{session_id}/question", response_model=CurrentQuestionResponse)
def current_question(session_id: str, caller: Caller = Depends(current_user)):
    with SessionLocal() as db:
        found = session_store.current_question(db, session_id, caller.id)
        return {
            "ok": True,
            "session_id": session_id,
            "question": QuestionPublic.model_validate(found["question"]),
            "progress": found["progress"],
        }


@router.post("/{session_id}/answer", response_model=AnswerResponse)
def submit_answer(session_id: str, req: AnswerRequest, caller: Caller = Depends(current_user)):
    with SessionLocal() as db:
        session, _answer, result = session_store.submit_answer(
            db, session_id, caller.id, req.question_id, req.selected_answers, req.time_spent
        )
        return {
            "ok": True,
            "is_correct": result.is_correct,
            "points_awarded": result.points_awarded,
            "session": SessionOut.model_validate(session),
        }


@router.post("/{session_id}/pause", response_model=SessionOut)
def pause_session(session_id: str, caller: Caller = Depends(current_user)):
    with SessionLocal() as db:
        return SessionOut.model_validate(session_store.pause_session(db, session_id, caller.id))


@router.post("/{session_id}/resume", response_model=SessionOut)
def resume_session(session_id: str, caller: Caller = Depends(current_user)):
    with SessionLocal() as db:
        return SessionOut.model_validate(session_store.resume_session(db, session_id, caller.id))


@router.post("/{session_id}/complete", response_model=CompleteResponse)
def complete_session(
    session_id: str,
    caller: Caller = Depends(current_user),
    notifier: StatsNotifier = Depends(get_notifier),
):
    with SessionLocal() as db:
        session, event_id, payload = session_store.complete_session(db, session_id, caller.id)
        out = SessionOut.model_validate(session)

    # the database session is closed before going over the network
    progress = notifier.deliver(event_id, caller.authorization)
    if progress is None:
        progress = degraded_progress(payload)
    return {"ok": True, "session": out, "progress": progress}
