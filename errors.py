"""Domain errors raised by the services and rendered by main.py."""

from __future__ import annotations


class QuizPlayError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        self.message = message


class NotFound(QuizPlayError):
    status_code = 404


class Forbidden(QuizPlayError):
    status_code = 403


class InvalidTransition(QuizPlayError):
    status_code = 400


class AnswerValidationError(QuizPlayError):
    status_code = 400
