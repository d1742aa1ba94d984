import pytest
from pydantic import ValidationError

from services.catalog import QuestionModel, load_catalog


def test_boolean_questions_get_fixed_options():
    q = QuestionModel(id="b", text="?", type="boolean", options=["yes", "no"], correct_answers=["FALSE"])
    assert q.options == ["true", "false"]
    assert q.correct_answers == ["false"]


@pytest.mark.parametrize(
    "fields",
    [
        {"type": "boolean", "correct_answers": ["maybe"]},
        {"type": "single", "correct_answers": ["a", "b"]},
        {"type": "boolean", "correct_answers": ["true", "false"]},
        {"type": "multiple", "correct_answers": []},
        {"type": "text", "correct_answers": [""]},
        {"type": "essay", "correct_answers": ["x"]},
        {"type": "single", "correct_answers": ["a"], "points": -1},
    ],
)
def test_invalid_questions_are_rejected(fields):
    with pytest.raises(ValidationError):
        QuestionModel(id="q", text="?", **fields)


def test_loader_skips_bad_rows(tmp_path):
    (tmp_path / "quizzes.jsonl").write_text(
        "\n".join(
            [
                "# comment",
                '{"id": "ok", "title": "Fine", "questions": [{"id": "q", "text": "?", "correct_answers": ["a"]}]}',
                "{not json",
                '{"id": "bad", "title": "Bad", "questions": '
                '[{"id": "q2", "text": "?", "type": "single", "correct_answers": ["a", "b"]}]}',
                "",
            ]
        ),
        encoding="utf-8",
    )
    (tmp_path / "broken.json").write_text("[{", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    quizzes = load_catalog(tmp_path)
    assert [q.id for q in quizzes] == ["ok"]
    assert quizzes[0].passing_score == 60


def test_missing_directory_is_empty(tmp_path):
    assert load_catalog(tmp_path / "nope") == []
