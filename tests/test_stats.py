from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from sqlalchemy import func, select

from db import SessionLocal
from main import app
from models import QuizHistory, TopicStats, User
from services.stats import process_completed_quiz, update_streak

client = TestClient(app)

SERVICE = {"x-api-key": "test-key"}


def summary(session_id="s1", user_id="alice", score=3, **overrides):
    data = {
        "session_id": session_id,
        "user_id": user_id,
        "quiz_id": "quiz-1",
        "quiz_title": "Quiz",
        "category": "geography",
        "difficulty": "easy",
        "score": score,
        "max_score": 5,
        "correct_answers": 3,
        "total_questions": 5,
        "accuracy": 60.0,
        "time_spent": 120,
        "perfect_score": False,
        "speed_bonus": False,
        "first_attempt": True,
        "completed_at": "2026-03-02T10:00:00+00:00",
    }
    data.update(overrides)
    return data


def test_quiz_completed_requires_service_key():
    r = client.post("/stats/quiz-completed", json=summary())
    assert r.status_code == 401


def test_quiz_completed_records_history_and_aggregates():
    r = client.post("/stats/quiz-completed", json=summary(), headers=SERVICE)
    assert r.status_code == 200
    progress = r.json()["progress"]
    assert progress["points_earned"] == 3
    assert progress["bonus_points"] == 0
    assert progress["recorded"] is True
    assert [a["code"] for a in progress["new_achievements"]] == ["first_quiz"]

    with SessionLocal() as db:
        user = db.get(User, "alice")
        assert user.total_quizzes_played == 1
        assert user.total_score == 3
        assert user.average_score == 3.0
        assert user.current_streak == 1 and user.best_streak == 1
        # 3 points + 10 for the first-quiz achievement
        assert user.experience == 13
        topic = db.scalars(select(TopicStats)).one()
        assert (topic.category, topic.total_quizzes, topic.best_score) == ("geography", 1, 3)


def test_camel_case_payload_is_accepted():
    body = {
        "sessionId": "s9",
        "userId": "bob",
        "quizId": "quiz-1",
        "score": 2,
        "perfectScore": True,
        "speedBonus": True,
        "accuracy": 100,
        "totalQuestions": 2,
        "timeSpent": 10,
    }
    r = client.post("/stats/quiz-completed", json=body, headers=SERVICE)
    assert r.status_code == 200
    assert r.json()["progress"]["bonus_points"] == 15


def test_redelivery_is_idempotent():
    with SessionLocal() as db:
        first = process_completed_quiz(db, summary())
    with SessionLocal() as db:
        second = process_completed_quiz(db, summary())
        assert second == first
        assert db.scalar(select(func.count()).select_from(QuizHistory)) == 1
        assert db.get(User, "alice").total_quizzes_played == 1


def test_bonus_points_and_level_up():
    with SessionLocal() as db:
        progress = process_completed_quiz(
            db,
            summary(score=95, perfect_score=True, speed_bonus=True, accuracy=100.0),
        )
    assert progress["bonus_points"] == 15
    assert progress["level_up"] is True
    assert progress["new_level"] >= 2
    names = {a["name"] for a in progress["new_achievements"]}
    assert {"First Quiz!", "Perfectionist"} <= names


def test_average_score_is_mean_of_history():
    with SessionLocal() as db:
        process_completed_quiz(db, summary("s1", score=3))
        process_completed_quiz(db, summary("s2", score=4))
        process_completed_quiz(db, summary("s3", score=4))
        assert db.get(User, "alice").average_score == 3.67


def test_streak_rules():
    user = User(id="u", current_streak=0, best_streak=0)
    day = datetime(2026, 3, 2, tzinfo=timezone.utc).date()
    update_streak(user, day)
    assert user.current_streak == 1
    update_streak(user, day)
    assert user.current_streak == 1
    update_streak(user, day + timedelta(days=1))
    update_streak(user, day + timedelta(days=2))
    assert user.current_streak == 3 and user.best_streak == 3
    update_streak(user, day + timedelta(days=5))
    assert user.current_streak == 1 and user.best_streak == 3
    assert user.last_quiz_date == day + timedelta(days=5)


def test_get_stats_overview():
    with SessionLocal() as db:
        process_completed_quiz(db, summary("s1", score=3))
        process_completed_quiz(db, summary("s2", score=1, category="history"))

    r = client.get("/stats", headers={"x-user-id": "alice"})
    assert r.status_code == 200
    body = r.json()
    assert body["user"]["total_quizzes_played"] == 2
    assert len(body["recent_history"]) == 2
    assert {t["category"] for t in body["topics"]} == {"geography", "history"}
    assert body["recent_achievements"][0]["code"] == "first_quiz"


def test_get_stats_unknown_user_is_404():
    r = client.get("/stats", headers={"x-user-id": "nobody"})
    assert r.status_code == 404
