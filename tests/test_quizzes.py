from fastapi.testclient import TestClient

from main import app

client = TestClient(app)


def test_list_quizzes_hides_private_and_inactive(make_quiz):
    make_quiz("open")
    make_quiz("off", is_active=False)
    make_quiz("mine", is_public=False, created_by="alice")
    make_quiz("theirs", is_public=False, created_by="carol")

    r = client.get("/quizzes", headers={"x-user-id": "alice"})
    assert r.status_code == 200
    assert sorted(q["id"] for q in r.json()) == ["mine", "open"]


def test_quiz_detail_never_exposes_answers(make_quiz):
    make_quiz("open", n=2, points=2)
    r = client.get("/quizzes/open", headers={"x-user-id": "alice"})
    assert r.status_code == 200
    body = r.json()
    assert body["question_count"] == 2 and body["max_score"] == 4
    assert [q["id"] for q in body["questions"]] == ["open-q1", "open-q2"]
    assert all("correct_answers" not in q for q in body["questions"])


def test_private_quiz_visible_to_invited_users_only(make_quiz):
    make_quiz("secret", is_public=False, created_by="carol", invited_users=["bob"])
    assert client.get("/quizzes/secret", headers={"x-user-id": "bob"}).status_code == 200
    assert client.get("/quizzes/secret", headers={"x-user-id": "alice"}).status_code == 404


def test_catalog_resync_keeps_counters_and_reorders(make_quiz):
    make_quiz("open", n=3)
    client.post("/sessions/start/open", headers={"x-user-id": "alice"})
    make_quiz(
        "open",
        questions=[
            {"id": "open-q3", "text": "Third?", "correct_answers": ["a"]},
            {"id": "open-q1", "text": "First?", "correct_answers": ["a"]},
        ],
    )
    body = client.get("/quizzes/open", headers={"x-user-id": "alice"}).json()
    assert [q["id"] for q in body["questions"]] == ["open-q3", "open-q1"]
    assert body["views"] == 1
