from datetime import timedelta
from types import SimpleNamespace

import pytest

from db import utcnow
from errors import AnswerValidationError, InvalidTransition
from models import SESSION_ABANDONED, SESSION_COMPLETED, SESSION_IN_PROGRESS, SESSION_PAUSED
from services import session_engine as engine


def make_quiz(points):
    questions = [
        SimpleNamespace(id=f"q{i}", type="single", correct_answers=["a"], points=p)
        for i, p in enumerate(points, 1)
    ]
    return SimpleNamespace(id="quiz-1", max_score=sum(points), questions=questions)


def started(points=(1, 1, 1), now=None):
    quiz = make_quiz(points)
    session = engine.new_session("alice", quiz, True, now or utcnow())
    return quiz, session


def test_new_session_defaults():
    quiz, s = started((2, 0, 3))
    assert s.status == SESSION_IN_PROGRESS
    assert s.max_score == 5
    assert s.current_question_index == 0
    assert s.score == 0 and s.accuracy == 0 and s.perfect_score is False
    assert s.id and len(s.id) == 32


def test_score_and_accuracy_recomputed_from_all_answers():
    quiz, s = started((2, 0, 3))
    now = utcnow()
    engine.record_answer(s, quiz.questions[0], ["a"], 5, now)
    engine.record_answer(s, quiz.questions[1], ["b"], 5, now)
    engine.record_answer(s, quiz.questions[2], ["a"], 5, now)
    assert s.score == 5
    assert s.accuracy == 66.67
    assert s.correct_answers == 2
    assert s.current_question_index == 3
    assert s.perfect_score is False


def test_perfect_score_flag():
    quiz, s = started((1, 1))
    for question in quiz.questions:
        engine.record_answer(s, question, ["a"], 1, utcnow())
    assert s.accuracy == 100 and s.perfect_score is True


def test_duplicate_answer_rejected_and_state_unchanged():
    quiz, s = started()
    engine.record_answer(s, quiz.questions[0], ["a"], 3, utcnow())
    with pytest.raises(InvalidTransition):
        engine.record_answer(s, quiz.questions[0], ["b"], 3, utcnow())
    assert len(s.answers) == 1 and s.score == 1 and s.current_question_index == 1


def test_answer_validation_errors():
    quiz, s = started()
    with pytest.raises(AnswerValidationError):
        engine.record_answer(s, quiz.questions[0], [], 3, utcnow())
    with pytest.raises(AnswerValidationError):
        engine.record_answer(s, quiz.questions[0], ["a"], -1, utcnow())
    assert s.answers == []


def test_pause_resume_cycle():
    quiz, s = started()
    engine.pause(s, utcnow())
    assert s.status == SESSION_PAUSED and s.paused_at is not None
    with pytest.raises(InvalidTransition):
        engine.record_answer(s, quiz.questions[0], ["a"], 1, utcnow())
    with pytest.raises(InvalidTransition):
        engine.pause(s, utcnow())
    engine.resume(s, utcnow())
    assert s.status == SESSION_IN_PROGRESS
    assert s.paused_at is None and s.resumed_at is not None
    with pytest.raises(InvalidTransition):
        engine.resume(s, utcnow())


def test_complete_is_terminal():
    quiz, s = started()
    engine.record_answer(s, quiz.questions[0], ["a"], 1, utcnow())
    engine.complete(s, utcnow())
    assert s.status == SESSION_COMPLETED and s.completed_at is not None
    for op in (engine.pause, engine.resume, engine.complete):
        with pytest.raises(InvalidTransition):
            op(s, utcnow())
    with pytest.raises(InvalidTransition):
        engine.record_answer(s, quiz.questions[1], ["a"], 1, utcnow())
    with pytest.raises(InvalidTransition):
        engine.abandon(s)


def test_complete_from_paused_is_allowed():
    quiz, s = started()
    engine.pause(s, utcnow())
    engine.complete(s, utcnow())
    assert s.status == SESSION_COMPLETED and s.paused_at is None


def test_abandoned_session_cannot_complete():
    quiz, s = started()
    engine.abandon(s)
    assert s.status == SESSION_ABANDONED
    with pytest.raises(InvalidTransition):
        engine.complete(s, utcnow())


@pytest.mark.parametrize("seconds, expected", [(224, True), (225, False), (226, False)])
def test_speed_bonus_boundary_for_ten_answers(seconds, expected):
    quiz, s = started([1] * 10)
    for question in quiz.questions:
        engine.record_answer(s, question, ["a"], 1, s.started_at)
    engine.complete(s, s.started_at + timedelta(seconds=seconds))
    assert s.time_spent == seconds
    assert s.speed_bonus is expected


def test_time_spent_is_rounded_to_whole_seconds():
    quiz, s = started()
    engine.complete(s, s.started_at + timedelta(seconds=12, milliseconds=500))
    assert s.time_spent == 13


def test_no_answers_means_no_speed_bonus_and_zero_accuracy():
    quiz, s = started()
    engine.complete(s, s.started_at + timedelta(seconds=1))
    assert s.accuracy == 0 and s.speed_bonus is False and s.perfect_score is False


def test_summary_payload():
    quiz, s = started((2, 0, 3))
    quiz.title, quiz.category, quiz.difficulty = "Capitals", "geography", "easy"
    engine.record_answer(s, quiz.questions[0], ["a"], 1, utcnow())
    engine.complete(s, utcnow())
    payload = engine.summary(s, quiz)
    assert payload["session_id"] == s.id
    assert payload["score"] == 2 and payload["max_score"] == 5
    assert payload["total_questions"] == 1 and payload["correct_answers"] == 1
    assert payload["category"] == "geography"
    assert isinstance(payload["completed_at"], str)


def test_round_half_up():
    assert engine.round_half_up(66.665) == 66.67
    assert engine.accuracy_of(2, 3) == 66.67
    assert engine.accuracy_of(1, 3) == 33.33
    assert engine.accuracy_of(0, 0) == 0.0
