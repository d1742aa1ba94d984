from types import SimpleNamespace

import pytest

from errors import AnswerValidationError
from services.grading import grade, is_correct


def q(qtype, correct, points=1):
    return SimpleNamespace(type=qtype, correct_answers=correct, points=points)


@pytest.mark.parametrize(
    "qtype, correct, submitted, expected",
    [
        ("single", ["Paris"], ["Paris"], True),
        ("single", ["Paris"], ["Lyon"], False),
        ("single", ["Paris"], ["Paris", "Lyon"], False),
        ("boolean", ["true"], ["true"], True),
        ("boolean", ["true"], ["false"], False),
        ("multiple", ["Oslo", "Helsinki"], ["Helsinki", "Oslo"], True),
        ("multiple", ["Oslo", "Helsinki"], ["Oslo"], False),
        ("multiple", ["Oslo", "Helsinki"], ["Oslo", "Helsinki", "Berlin"], False),
        ("multiple", ["Oslo", "Helsinki"], ["Oslo", "Berlin"], False),
        ("text", ["Rome", "Roma"], ["  rome "], True),
        ("text", ["Rome"], ["ROME"], True),
        ("text", ["Rome"], ["Milan", "rome"], True),
        ("text", ["Rome"], ["Romes"], False),
    ],
)
def test_is_correct_table(qtype, correct, submitted, expected):
    assert is_correct(qtype, correct, submitted) is expected


def test_grade_awards_question_points_only_when_correct():
    question = q("multiple", ["a", "b"], points=3)
    assert grade(question, ["b", "a"]).points_awarded == 3
    assert grade(question, ["a"]).points_awarded == 0


def test_grade_defaults_to_one_point():
    result = grade(q("single", ["a"], points=None), ["a"])
    assert result.is_correct is True and result.points_awarded == 1


def test_zero_point_question_still_marked_correct():
    result = grade(q("single", ["a"], points=0), ["a"])
    assert result.is_correct is True and result.points_awarded == 0


@pytest.mark.parametrize("submitted", [[], None, "a", [""], ["  "], ["a", 3]])
def test_malformed_submission_is_a_validation_error(submitted):
    with pytest.raises(AnswerValidationError):
        grade(q("single", ["a"]), submitted)


def test_unknown_question_type_raises():
    with pytest.raises(ValueError):
        is_correct("essay", ["x"], ["x"])
