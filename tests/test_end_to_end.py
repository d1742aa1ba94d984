from fastapi.testclient import TestClient

from db import SessionLocal
from main import app
from models import User

client = TestClient(app)

ALICE = {"x-user-id": "alice", "Authorization": "Bearer alice-token"}


def test_play_a_quiz_from_start_to_leaderboard(make_quiz, stats_consumer):
    make_quiz("capitals", n=3, category="geography")

    r = client.post("/sessions/start/capitals", headers=ALICE)
    assert r.status_code == 201
    sid = r.json()["session"]["id"]

    for qid, choice in (("capitals-q1", "a"), ("capitals-q2", "a"), ("capitals-q3", "b")):
        r = client.post(
            f"/sessions/{sid}/answer",
            json={"question_id": qid, "selected_answers": [choice], "time_spent": 3},
            headers=ALICE,
        )
        assert r.status_code == 200

    r = client.post(f"/sessions/{sid}/complete", headers=ALICE)
    assert r.status_code == 200
    body = r.json()
    assert body["session"]["score"] == 2
    assert body["session"]["accuracy"] == 66.67
    assert body["session"]["perfect_score"] is False
    progress = body["progress"]
    assert progress["recorded"] is True
    assert progress["points_earned"] == 2
    assert "First Quiz!" in [a["name"] for a in progress["new_achievements"]]

    with SessionLocal() as db:
        user = db.get(User, "alice")
        assert user.total_quizzes_played == 1

    mine = client.get("/achievements", headers=ALICE).json()
    assert "First Quiz!" in [a["name"] for a in mine["items"]]

    assert client.post("/rankings/update", headers={"x-admin-token": "test-admin"}).status_code == 200
    board = client.get("/rankings/global", headers=ALICE).json()
    assert board["user_rank"]["rank"] == 1
    assert board["ranking"][0]["user_id"] == "alice"
