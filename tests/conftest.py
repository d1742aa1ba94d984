import json
import os
import tempfile
from pathlib import Path

# must be set before db.py is imported
_TMP = Path(tempfile.mkdtemp(prefix="quizplay-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'test.db'}"
os.environ["ADMIN_TOKEN"] = "test-admin"
os.environ["SERVICE_API_KEY"] = "test-key"
os.environ["STATS_SERVICE_URL"] = "http://stats.test"
os.environ["APP_TIMEZONE"] = "UTC"

import httpx  # noqa: E402
import pytest  # noqa: E402

import models  # noqa: E402,F401
from db import Base, SessionLocal, engine  # noqa: E402
from main import app  # noqa: E402
from services.catalog import QuizModel, sync_catalog  # noqa: E402
from services.outbox import StatsNotifier, get_notifier  # noqa: E402
from services.stats import process_completed_quiz  # noqa: E402

Base.metadata.create_all(engine)


@pytest.fixture(autouse=True)
def clean_db():
    yield
    app.dependency_overrides.clear()
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def make_quiz():
    """Create a quiz of `n` single-answer questions whose correct option is "a"."""

    def make(quiz_id="quiz-1", n=3, points=1, category="general", questions=None, **fields):
        if questions is None:
            questions = [
                {
                    "id": f"{quiz_id}-q{i}",
                    "text": f"Question {i}?",
                    "type": "single",
                    "options": ["a", "b", "c"],
                    "correct_answers": ["a"],
                    "points": points,
                }
                for i in range(1, n + 1)
            ]
        raw = {
            "id": quiz_id,
            "title": fields.pop("title", f"Quiz {quiz_id}"),
            "category": category,
            "questions": questions,
            **fields,
        }
        with SessionLocal() as db:
            sync_catalog(db, [QuizModel(**raw)])
        return raw

    return make


@pytest.fixture
def stats_consumer():
    """
    Route completion notifications to the in-process stats consumer through
    httpx.MockTransport. Returns the list of captured requests.
    """
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.headers.get("x-api-key") != "test-key":
            return httpx.Response(401, json={"ok": False, "error": "Unauthorized."})
        with SessionLocal() as db:
            progress = process_completed_quiz(db, json.loads(request.content))
        return httpx.Response(200, json={"ok": True, "progress": progress})

    notifier = StatsNotifier(
        base_url="http://stats.test",
        api_key="test-key",
        transport=httpx.MockTransport(handler),
    )
    app.dependency_overrides[get_notifier] = lambda: notifier
    return calls


@pytest.fixture
def stats_down():
    """Every notification fails with a connection error."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("stats service unreachable", request=request)

    notifier = StatsNotifier(
        base_url="http://stats.test",
        api_key="test-key",
        transport=httpx.MockTransport(handler),
    )
    app.dependency_overrides[get_notifier] = lambda: notifier
    return calls
