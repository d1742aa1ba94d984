# services/catalog.py
"""Quiz catalog: JSON / JSONL files under CATALOG_DIR, synced into the database."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator
from sqlalchemy.orm import Session

from models import Question, Quiz, QuizQuestion
from services.grading import QUESTION_TYPES

logger = logging.getLogger("quizplay.catalog")

_BASE = Path(__file__).resolve().parent.parent
_DEFAULT_DIR = _BASE / "data" / "quizzes"

BOOLEAN_OPTIONS = ["true", "false"]


def catalog_dir() -> Path:
    return Path(os.getenv("CATALOG_DIR") or _DEFAULT_DIR)


class QuestionModel(BaseModel):
    id: str
    text: str
    type: str = "single"
    options: List[str] = Field(default_factory=list)
    correct_answers: List[str]
    points: int = Field(default=1, ge=0)
    explanation: Optional[str] = None
    difficulty: str = "medium"

    @model_validator(mode="after")
    def _check_answers(self) -> "QuestionModel":
        if self.type not in QUESTION_TYPES:
            raise ValueError(f"unknown question type {self.type!r}")
        if not self.correct_answers or any(not a for a in self.correct_answers):
            raise ValueError("correct_answers must be a non-empty list of non-empty strings")
        if self.type == "boolean":
            # fixed two-valued domain
            self.options = list(BOOLEAN_OPTIONS)
            self.correct_answers = [a.strip().lower() for a in self.correct_answers]
            if any(a not in BOOLEAN_OPTIONS for a in self.correct_answers):
                raise ValueError("boolean answer must be 'true' or 'false'")
        if self.type in ("single", "boolean") and len(self.correct_answers) != 1:
            raise ValueError(f"{self.type} questions need exactly one correct answer")
        if self.type == "text":
            self.options = []
        return self


class QuizModel(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    category: str = "general"
    difficulty: str = "medium"
    time_limit: Optional[int] = Field(default=None, ge=0)
    passing_score: int = Field(default=60, ge=0, le=100)
    is_active: bool = True
    is_public: bool = True
    created_by: str = "system"
    invited_users: List[str] = Field(default_factory=list)
    questions: List[QuestionModel] = Field(min_length=1)


def _iter_jsonl(p: Path) -> Iterable[Dict[str, Any]]:
    with p.open("r", encoding="utf-8") as f:
        for idx, line in enumerate(f, 1):
            s = line.strip()
            if not s or s.startswith("#") or s.startswith("//"):
                continue
            try:
                yield json.loads(s)
            except json.JSONDecodeError:
                logger.warning("%s:%d: skipping malformed line", p.name, idx)
                continue


def _iter_json(p: Path) -> Iterable[Dict[str, Any]]:
    with p.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("%s: not valid JSON, skipped", p.name)
            data = []
    if isinstance(data, dict):
        data = [data]
    if isinstance(data, list):
        for obj in data:
            yield obj


def load_catalog(directory: Optional[Path] = None) -> List[QuizModel]:
    root = directory or catalog_dir()
    quizzes: List[QuizModel] = []
    if not root.exists():
        logger.warning("catalog directory %s does not exist", root)
        return quizzes

    for p in sorted(root.rglob("*")):
        if not p.is_file():
            continue
        suf = p.suffix.lower()
        if suf == ".jsonl":
            source = _iter_jsonl(p)
        elif suf == ".json":
            source = _iter_json(p)
        else:
            continue

        for raw in source:
            try:
                quizzes.append(QuizModel(**raw))
            except (ValidationError, TypeError) as e:
                qid = raw.get("id") if isinstance(raw, dict) else None
                logger.warning("%s: skipping invalid quiz %r: %s", p.name, qid, e)
                continue
    return quizzes


def _upsert_question(db: Session, q: QuestionModel) -> Question:
    row = db.get(Question, q.id)
    if row is None:
        row = Question(id=q.id)
        db.add(row)
    row.text = q.text
    row.type = q.type
    row.options = list(q.options)
    row.correct_answers = list(q.correct_answers)
    row.points = q.points
    row.explanation = q.explanation
    row.difficulty = q.difficulty
    return row


def sync_catalog(db: Session, quizzes: Optional[List[QuizModel]] = None) -> int:
    """Upsert quizzes, questions and their ordering. Counters are preserved."""
    if quizzes is None:
        quizzes = load_catalog()

    for qm in quizzes:
        quiz = db.get(Quiz, qm.id)
        if quiz is None:
            quiz = Quiz(id=qm.id, play_count=0, views=0)
            db.add(quiz)
        quiz.title = qm.title
        quiz.description = qm.description
        quiz.category = qm.category
        quiz.difficulty = qm.difficulty
        quiz.time_limit = qm.time_limit
        quiz.passing_score = qm.passing_score
        quiz.is_active = qm.is_active
        quiz.is_public = qm.is_public
        quiz.created_by = qm.created_by
        quiz.invited_users = list(qm.invited_users)

        seen = set()
        links = []
        for q in qm.questions:
            if q.id in seen:
                continue
            seen.add(q.id)
            _upsert_question(db, q)
            links.append(QuizQuestion(question_id=q.id, position=len(links)))
        quiz.question_links = []
        db.flush()
        quiz.question_links = links

    db.commit()
    logger.info("catalog synced: %d quizzes", len(quizzes))
    return len(quizzes)
