from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from db import SessionLocal
from errors import NotFound
from main import app
from models import Achievement, QuizHistory, User
from services.achievements import (
    ACHIEVEMENTS,
    HistoryEntry,
    SessionContext,
    UserProgress,
    check_and_award,
    evaluate,
    level_for,
    qualifying,
)

client = TestClient(app)

TODAY = date(2026, 3, 9)
NOW = datetime(2026, 3, 9, 18, 0, tzinfo=timezone.utc)


def entry(category="general", accuracy=50.0, score=1, days_ago=0):
    moment = datetime.combine(TODAY - timedelta(days=days_ago), datetime.min.time(), timezone.utc)
    return HistoryEntry(category=category, accuracy=accuracy, score=score, completed_at=moment)


def progress(history=(), total_score=0):
    return UserProgress(user_id="u", total_score=total_score, history=tuple(history), today=TODAY)


def codes(defs):
    return {d.code for d in defs}


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        ACHIEVEMENTS["new"] = ACHIEVEMENTS["first_quiz"]


def test_milestones_use_at_least_thresholds():
    p = progress([entry()] * 11)
    got = codes(qualifying(p, None, []))
    assert {"first_quiz", "quiz_master_10"} <= got
    assert "quiz_legend_50" not in got


def test_already_awarded_names_are_skipped():
    p = progress([entry()])
    assert qualifying(p, None, ["First Quiz!"]) == []


def test_session_scoped_rules():
    p = progress([entry(accuracy=100.0)])
    perfect_fast = SessionContext(accuracy=100.0, time_spent=14, total_questions=1)
    got = codes(qualifying(p, perfect_fast, []))
    assert {"perfectionist", "speed_demon"} <= got

    # speed demon needs strictly less than half the 30s-per-question budget
    boundary = SessionContext(accuracy=50.0, time_spent=15, total_questions=1)
    assert "speed_demon" not in codes(qualifying(p, boundary, []))
    assert "perfectionist" not in codes(qualifying(p, boundary, []))


def test_score_and_category_rules():
    cats = ["a", "b", "c", "d", "e"]
    p = progress([entry(category=c) for c in cats], total_score=2000)
    got = codes(qualifying(p, None, []))
    assert {"score_hunter_500", "score_master_2000", "category_explorer"} <= got
    assert "score_legend_5000" not in got

    mastery = progress([entry(category="maths", accuracy=85.0)] * 10)
    assert "category_master" in codes(qualifying(mastery, None, []))
    weak = progress([entry(category="maths", accuracy=70.0)] * 10)
    assert "category_master" not in codes(qualifying(weak, None, []))


def test_streak_rules():
    five_today = progress([entry()] * 5)
    assert "streak_warrior_5" in codes(qualifying(five_today, None, []))

    week = progress([entry(days_ago=d) for d in range(7)])
    assert "daily_dedication_7" in codes(qualifying(week, None, []))
    gap = progress([entry(days_ago=d) for d in (0, 1, 2, 4, 5, 6, 7)])
    assert "daily_dedication_7" not in codes(qualifying(gap, None, []))


def test_level_for():
    assert level_for(0) == 1
    assert level_for(99) == 1
    assert level_for(100) == 2
    assert level_for(250) == 3


def _seed_user(db, user_id="alice", plays=1):
    user = User(
        id=user_id,
        is_active=True,
        total_score=plays,
        average_score=1.0,
        total_quizzes_played=plays,
        current_streak=0,
        best_streak=0,
        level=1,
        experience=0,
    )
    db.add(user)
    for i in range(plays):
        db.add(
            QuizHistory(
                user_id=user_id,
                session_id=f"{user_id}-{i}",
                quiz_id="quiz-1",
                category="general",
                score=1,
                accuracy=50.0,
                completed_at=NOW,
            )
        )
    db.commit()


def test_evaluate_twice_never_double_awards():
    with SessionLocal() as db:
        _seed_user(db)
        first = check_and_award(db, "alice", now=NOW)
        assert [a.code for a in first] == ["first_quiz"]
        assert check_and_award(db, "alice", now=NOW) == []
        count = db.scalar(select(func.count()).select_from(Achievement))
        assert count == 1
        assert db.get(User, "alice").experience == 10


def test_evaluate_credits_experience_and_level():
    with SessionLocal() as db:
        _seed_user(db, plays=10)
        user = db.get(User, "alice")
        user.experience = 50
        awarded = evaluate(db, user, now=NOW)
        db.commit()
        # first_quiz (10) + quiz_master_10 (50) + streak_warrior_5 (40)
        assert {a.code for a in awarded} == {"first_quiz", "quiz_master_10", "streak_warrior_5"}
        assert user.experience == 150
        assert user.level == 2


def test_achievement_endpoints():
    with SessionLocal() as db:
        _seed_user(db)
        check_and_award(db, "alice", now=NOW)

    headers = {"x-user-id": "alice"}
    mine = client.get("/achievements", headers=headers).json()
    assert mine["count"] == 1 and mine["items"][0]["name"] == "First Quiz!"

    stats = client.get("/achievements/stats", headers=headers).json()
    assert stats["total"] == 1
    assert stats["available"] == len(ACHIEVEMENTS)
    assert stats["points_earned"] == 10
    assert stats["by_rarity"] == {"common": 1}

    available = client.get("/achievements/available", headers=headers).json()["items"]
    assert len(available) == len(ACHIEVEMENTS)
    unlocked = [a["code"] for a in available if a["unlocked"]]
    assert unlocked == ["first_quiz"]


def test_check_and_award_unknown_user():
    with SessionLocal() as db:
        with pytest.raises(NotFound):
            check_and_award(db, "ghost")
