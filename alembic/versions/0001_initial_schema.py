"""initial schema: catalog, sessions, outbox, stats, achievements, rankings

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

"""
import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

_ACTIVE = sa.text("status IN ('in-progress', 'paused')")


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _ranking_columns() -> list:
    return [
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("generation", sa.String(32), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("user_name", sa.String(120), nullable=False),
        sa.Column("total_score", sa.Integer(), nullable=False),
        sa.Column("average_score", sa.Float(), nullable=False),
        sa.Column("quizzes_played", sa.Integer(), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
    ]


def upgrade() -> None:
    # --- catalog ---
    op.create_table(
        "quizzes",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("difficulty", sa.String(16), nullable=False),
        sa.Column("time_limit", sa.Integer(), nullable=True),
        sa.Column("passing_score", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.String(64), nullable=False),
        sa.Column("invited_users", sa.JSON(), nullable=False),
        sa.Column("play_count", sa.Integer(), nullable=False),
        sa.Column("views", sa.Integer(), nullable=False),
        _ts("last_played_at"),
        _ts("created_at", nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_quizzes"),
    )
    op.create_table(
        "questions",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("options", sa.JSON(), nullable=False),
        sa.Column("correct_answers", sa.JSON(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column("difficulty", sa.String(16), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_questions"),
    )
    op.create_table(
        "quiz_questions",
        sa.Column("quiz_id", sa.String(64), nullable=False),
        sa.Column("question_id", sa.String(64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["quiz_id"], ["quizzes.id"],
            name="fk_quiz_questions_quiz_id_quizzes", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["question_id"], ["questions.id"], name="fk_quiz_questions_question_id_questions"
        ),
        sa.PrimaryKeyConstraint("quiz_id", "question_id", name="pk_quiz_questions"),
    )

    # --- sessions ---
    op.create_table(
        "sessions",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("quiz_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        _ts("started_at", nullable=False),
        _ts("paused_at"),
        _ts("resumed_at"),
        _ts("completed_at"),
        sa.Column("current_question_index", sa.Integer(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("max_score", sa.Integer(), nullable=False),
        sa.Column("accuracy", sa.Float(), nullable=False),
        sa.Column("perfect_score", sa.Boolean(), nullable=False),
        sa.Column("speed_bonus", sa.Boolean(), nullable=False),
        sa.Column("time_spent", sa.Integer(), nullable=False),
        sa.Column("first_attempt", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["quiz_id"], ["quizzes.id"], name="fk_sessions_quiz_id_quizzes"),
        sa.PrimaryKeyConstraint("id", name="pk_sessions"),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])
    op.create_index("ix_sessions_quiz_id", "sessions", ["quiz_id"])
    op.create_index("ix_sessions_user_quiz_status", "sessions", ["user_id", "quiz_id", "status"])
    op.create_index(
        "uq_sessions_active_user_quiz",
        "sessions",
        ["user_id", "quiz_id"],
        unique=True,
        sqlite_where=_ACTIVE,
        postgresql_where=_ACTIVE,
    )

    op.create_table(
        "session_answers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.String(32), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("question_id", sa.String(64), nullable=False),
        sa.Column("selected_answers", sa.JSON(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("points_awarded", sa.Integer(), nullable=False),
        sa.Column("time_spent", sa.Integer(), nullable=False),
        _ts("answered_at", nullable=False),
        sa.ForeignKeyConstraint(
            ["session_id"], ["sessions.id"],
            name="fk_session_answers_session_id_sessions", ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_session_answers"),
        sa.UniqueConstraint("session_id", "question_id", name="uq_session_answers_session_id"),
    )
    op.create_index("ix_session_answers_session_id", "session_answers", ["session_id"])

    op.create_table(
        "outbox_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("topic", sa.String(64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        _ts("created_at", nullable=False),
        _ts("delivered_at"),
        sa.PrimaryKeyConstraint("id", name="pk_outbox_events"),
    )
    op.create_index("ix_outbox_events_topic", "outbox_events", ["topic"])
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"])

    # --- players ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("display_name", sa.String(120), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("total_score", sa.Integer(), nullable=False),
        sa.Column("average_score", sa.Float(), nullable=False),
        sa.Column("total_quizzes_played", sa.Integer(), nullable=False),
        sa.Column("current_streak", sa.Integer(), nullable=False),
        sa.Column("best_streak", sa.Integer(), nullable=False),
        sa.Column("last_quiz_date", sa.Date(), nullable=True),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("experience", sa.Integer(), nullable=False),
        _ts("created_at", nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )
    op.create_table(
        "quiz_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("session_id", sa.String(32), nullable=False),
        sa.Column("quiz_id", sa.String(64), nullable=False),
        sa.Column("quiz_title", sa.String(200), nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("difficulty", sa.String(16), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("max_score", sa.Integer(), nullable=False),
        sa.Column("correct_answers", sa.Integer(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("accuracy", sa.Float(), nullable=False),
        sa.Column("time_spent", sa.Integer(), nullable=False),
        sa.Column("points_earned", sa.Integer(), nullable=False),
        sa.Column("bonus_points", sa.Integer(), nullable=False),
        _ts("completed_at", nullable=False),
        sa.Column("result", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_quiz_history_user_id_users"),
        sa.PrimaryKeyConstraint("id", name="pk_quiz_history"),
        sa.UniqueConstraint("session_id", name="uq_quiz_history_session_id"),
    )
    op.create_index("ix_quiz_history_quiz_id", "quiz_history", ["quiz_id"])
    op.create_index("ix_quiz_history_category", "quiz_history", ["category"])
    op.create_index("ix_quiz_history_user_completed", "quiz_history", ["user_id", "completed_at"])

    op.create_table(
        "topic_stats",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("total_quizzes", sa.Integer(), nullable=False),
        sa.Column("average_score", sa.Float(), nullable=False),
        sa.Column("best_score", sa.Integer(), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_topic_stats_user_id_users"),
        sa.PrimaryKeyConstraint("id", name="pk_topic_stats"),
        sa.UniqueConstraint("user_id", "category", name="uq_topic_stats_user_id"),
    )

    op.create_table(
        "achievements",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("icon", sa.String(16), nullable=False),
        sa.Column("rarity", sa.String(16), nullable=False),
        sa.Column("points_awarded", sa.Integer(), nullable=False),
        _ts("unlocked_at", nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_achievements_user_id_users"),
        sa.PrimaryKeyConstraint("id", name="pk_achievements"),
        sa.UniqueConstraint("user_id", "name", name="uq_achievements_user_id"),
    )
    op.create_index("ix_achievements_user_id", "achievements", ["user_id"])

    # --- rankings ---
    op.create_table(
        "ranking_snapshots",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("scope", sa.String(16), nullable=False),
        sa.Column("scope_key", sa.String(64), nullable=False),
        sa.Column("generation", sa.String(32), nullable=False),
        sa.Column("row_count", sa.Integer(), nullable=False),
        _ts("computed_at", nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_ranking_snapshots"),
        sa.UniqueConstraint("scope", "scope_key", name="uq_ranking_snapshots_scope"),
    )

    # columns shared by the three ranking tables
    op.create_table(
        "global_rankings",
        *_ranking_columns(),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_global_rankings"),
    )
    op.create_index(
        "ix_global_rankings_generation_rank", "global_rankings", ["generation", "rank"]
    )
    op.create_table(
        "weekly_rankings",
        *_ranking_columns(),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_weekly_rankings"),
    )
    op.create_index("ix_weekly_rankings_week_start", "weekly_rankings", ["week_start"])
    op.create_index(
        "ix_weekly_rankings_generation_rank", "weekly_rankings", ["generation", "rank"]
    )
    op.create_table(
        "category_rankings",
        *_ranking_columns(),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_category_rankings"),
    )
    op.create_index("ix_category_rankings_category", "category_rankings", ["category"])
    op.create_index(
        "ix_category_rankings_generation_rank", "category_rankings", ["generation", "rank"]
    )


def downgrade() -> None:
    for table in (
        "category_rankings",
        "weekly_rankings",
        "global_rankings",
        "ranking_snapshots",
        "achievements",
        "topic_stats",
        "quiz_history",
        "users",
        "outbox_events",
        "session_answers",
        "sessions",
        "quiz_questions",
        "questions",
        "quizzes",
    ):
        op.drop_table(table)
