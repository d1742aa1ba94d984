from fastapi.testclient import TestClient

from main import app
from tools.check_alembic_single_head import main as check_single_head

client = TestClient(app)


def test_health_root_and_db():
    assert client.get("/").json() == {"ok": True}
    assert client.get("/health/db").json() == {"ok": True}


def test_health_migrations_basic():
    r = client.get("/health/migrations")
    assert r.status_code == 200
    b = r.json()
    assert "code_heads" in b and isinstance(b["code_heads"], list)
    assert b["code_heads"] == ["0001_initial"]
    assert "db_version" in b


def test_single_alembic_head(capsys):
    check_single_head()
    assert "Alembic head OK: 0001_initial" in capsys.readouterr().out


def test_outbox_health_when_empty():
    assert client.get("/health/outbox").json() == {"ok": True, "pending": 0, "dead": 0}
