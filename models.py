from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy import JSON, Boolean, Date, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db import Base, UTCDateTime, utcnow

SESSION_IN_PROGRESS = "in-progress"
SESSION_PAUSED = "paused"
SESSION_COMPLETED = "completed"
SESSION_ABANDONED = "abandoned"

ACTIVE_STATUSES = (SESSION_IN_PROGRESS, SESSION_PAUSED)
TERMINAL_STATUSES = (SESSION_COMPLETED, SESSION_ABANDONED)

_ACTIVE_SQL = sa.text("status IN ('in-progress', 'paused')")


def new_id() -> str:
    return uuid.uuid4().hex


# --- Catalog ----------------------------------------------------------------------


class Quiz(Base):
    __tablename__ = "quizzes"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(64), default="general")
    difficulty: Mapped[str] = mapped_column(String(16), default="medium")
    time_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # seconds
    passing_score: Mapped[int] = mapped_column(Integer, default=60)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[str] = mapped_column(String(64), default="system")
    invited_users: Mapped[list] = mapped_column(JSON, default=list)
    play_count: Mapped[int] = mapped_column(Integer, default=0)
    views: Mapped[int] = mapped_column(Integer, default=0)
    last_played_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    question_links: Mapped[List["QuizQuestion"]] = relationship(
        back_populates="quiz",
        order_by="QuizQuestion.position",
        cascade="all, delete-orphan",
    )

    @property
    def questions(self) -> List["Question"]:
        return [link.question for link in self.question_links]

    @property
    def max_score(self) -> int:
        return sum(q.points or 0 for q in self.questions)

    @property
    def question_count(self) -> int:
        return len(self.question_links)

    def is_accessible_by(self, user_id: str) -> bool:
        if self.is_public or self.created_by == user_id:
            return True
        return user_id in (self.invited_users or [])


class Question(Base):
    __tablename__ = "questions"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    text: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(16), default="single")
    options: Mapped[list] = mapped_column(JSON, default=list)
    correct_answers: Mapped[list] = mapped_column(JSON, default=list)
    points: Mapped[int] = mapped_column(Integer, default=1)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    difficulty: Mapped[str] = mapped_column(String(16), default="medium")


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"
    quiz_id: Mapped[str] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"), primary_key=True
    )
    question_id: Mapped[str] = mapped_column(ForeignKey("questions.id"), primary_key=True)
    position: Mapped[int] = mapped_column(Integer)

    quiz: Mapped[Quiz] = relationship(back_populates="question_links")
    question: Mapped[Question] = relationship(lazy="joined")


# --- Sessions ---------------------------------------------------------------------


class QuizSession(Base):
    __tablename__ = "sessions"
    __table_args__ = (
        # at most one non-terminal session per (user, quiz)
        sa.Index(
            "uq_sessions_active_user_quiz",
            "user_id",
            "quiz_id",
            unique=True,
            sqlite_where=_ACTIVE_SQL,
            postgresql_where=_ACTIVE_SQL,
        ),
        sa.Index("ix_sessions_user_quiz_status", "user_id", "quiz_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    quiz_id: Mapped[str] = mapped_column(ForeignKey("quizzes.id"), index=True)
    status: Mapped[str] = mapped_column(String(16), default=SESSION_IN_PROGRESS)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    paused_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    resumed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    current_question_index: Mapped[int] = mapped_column(Integer, default=0)
    score: Mapped[int] = mapped_column(Integer, default=0)
    max_score: Mapped[int] = mapped_column(Integer, default=0)
    accuracy: Mapped[float] = mapped_column(Float, default=0.0)
    perfect_score: Mapped[bool] = mapped_column(Boolean, default=False)
    speed_bonus: Mapped[bool] = mapped_column(Boolean, default=False)
    time_spent: Mapped[int] = mapped_column(Integer, default=0)  # seconds
    first_attempt: Mapped[bool] = mapped_column(Boolean, default=True)

    quiz: Mapped[Quiz] = relationship()
    answers: Mapped[List["SessionAnswer"]] = relationship(
        back_populates="session",
        order_by="SessionAnswer.position",
        cascade="all, delete-orphan",
    )

    @property
    def correct_answers(self) -> int:
        return sum(1 for a in self.answers if a.is_correct)


class SessionAnswer(Base):
    __tablename__ = "session_answers"
    __table_args__ = (sa.UniqueConstraint("session_id", "question_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE"), index=True
    )
    position: Mapped[int] = mapped_column(Integer)
    question_id: Mapped[str] = mapped_column(String(64))
    selected_answers: Mapped[list] = mapped_column(JSON)
    is_correct: Mapped[bool] = mapped_column(Boolean)
    points_awarded: Mapped[int] = mapped_column(Integer, default=0)
    time_spent: Mapped[int] = mapped_column(Integer, default=0)
    answered_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    session: Mapped[QuizSession] = relationship(back_populates="answers")


class OutboxEvent(Base):
    __tablename__ = "outbox_events"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic: Mapped[str] = mapped_column(String(64), index=True)
    payload: Mapped[dict] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String(16), default="pending", index=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)


# --- Players, history, achievements -------------------------------------------------


class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    total_score: Mapped[int] = mapped_column(Integer, default=0)
    average_score: Mapped[float] = mapped_column(Float, default=0.0)
    total_quizzes_played: Mapped[int] = mapped_column(Integer, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    best_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_quiz_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    level: Mapped[int] = mapped_column(Integer, default=1)
    experience: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)


class QuizHistory(Base):
    __tablename__ = "quiz_history"
    __table_args__ = (sa.Index("ix_quiz_history_user_completed", "user_id", "completed_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    session_id: Mapped[str] = mapped_column(String(32), unique=True)
    quiz_id: Mapped[str] = mapped_column(String(64), index=True)
    quiz_title: Mapped[str] = mapped_column(String(200), default="")
    category: Mapped[str] = mapped_column(String(64), index=True)
    difficulty: Mapped[str] = mapped_column(String(16), default="medium")
    score: Mapped[int] = mapped_column(Integer, default=0)
    max_score: Mapped[int] = mapped_column(Integer, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0)
    total_questions: Mapped[int] = mapped_column(Integer, default=0)
    accuracy: Mapped[float] = mapped_column(Float, default=0.0)
    time_spent: Mapped[int] = mapped_column(Integer, default=0)
    points_earned: Mapped[int] = mapped_column(Integer, default=0)
    bonus_points: Mapped[int] = mapped_column(Integer, default=0)
    completed_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    # snapshot of the progress returned to the caller, replayed on redelivery
    result: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)


class TopicStats(Base):
    __tablename__ = "topic_stats"
    __table_args__ = (sa.UniqueConstraint("user_id", "category"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    category: Mapped[str] = mapped_column(String(64))
    total_quizzes: Mapped[int] = mapped_column(Integer, default=0)
    average_score: Mapped[float] = mapped_column(Float, default=0.0)
    best_score: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)


class Achievement(Base):
    __tablename__ = "achievements"
    __table_args__ = (sa.UniqueConstraint("user_id", "name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    code: Mapped[str] = mapped_column(String(32))
    type: Mapped[str] = mapped_column(String(16))
    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str] = mapped_column(String(255), default="")
    icon: Mapped[str] = mapped_column(String(16), default="")
    rarity: Mapped[str] = mapped_column(String(16))
    points_awarded: Mapped[int] = mapped_column(Integer, default=0)
    unlocked_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)


# --- Rankings ---------------------------------------------------------------------


class RankingSnapshot(Base):
    """Points each ranking scope key at the generation readers should see."""

    __tablename__ = "ranking_snapshots"
    __table_args__ = (sa.UniqueConstraint("scope", "scope_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scope: Mapped[str] = mapped_column(String(16))
    scope_key: Mapped[str] = mapped_column(String(64), default="")
    generation: Mapped[str] = mapped_column(String(32))
    row_count: Mapped[int] = mapped_column(Integer, default=0)
    computed_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)


class GlobalRanking(Base):
    __tablename__ = "global_rankings"
    __table_args__ = (sa.Index("ix_global_rankings_generation_rank", "generation", "rank"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    generation: Mapped[str] = mapped_column(String(32))
    user_id: Mapped[str] = mapped_column(String(64))
    user_name: Mapped[str] = mapped_column(String(120))
    total_score: Mapped[int] = mapped_column(Integer)
    average_score: Mapped[float] = mapped_column(Float)
    quizzes_played: Mapped[int] = mapped_column(Integer)
    level: Mapped[int] = mapped_column(Integer, default=1)
    rank: Mapped[int] = mapped_column(Integer)


class WeeklyRanking(Base):
    __tablename__ = "weekly_rankings"
    __table_args__ = (sa.Index("ix_weekly_rankings_generation_rank", "generation", "rank"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    generation: Mapped[str] = mapped_column(String(32))
    week_start: Mapped[date] = mapped_column(Date, index=True)
    user_id: Mapped[str] = mapped_column(String(64))
    user_name: Mapped[str] = mapped_column(String(120))
    total_score: Mapped[int] = mapped_column(Integer)
    average_score: Mapped[float] = mapped_column(Float)
    quizzes_played: Mapped[int] = mapped_column(Integer)
    rank: Mapped[int] = mapped_column(Integer)


class CategoryRanking(Base):
    __tablename__ = "category_rankings"
    __table_args__ = (sa.Index("ix_category_rankings_generation_rank", "generation", "rank"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    generation: Mapped[str] = mapped_column(String(32))
    category: Mapped[str] = mapped_column(String(64), index=True)
    user_id: Mapped[str] = mapped_column(String(64))
    user_name: Mapped[str] = mapped_column(String(120))
    total_score: Mapped[int] = mapped_column(Integer)
    average_score: Mapped[float] = mapped_column(Float)
    quizzes_played: Mapped[int] = mapped_column(Integer)
    level: Mapped[int] = mapped_column(Integer, default=1)
    rank: Mapped[int] = mapped_column(Integer)
