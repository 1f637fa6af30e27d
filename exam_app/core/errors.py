"""Exceptions raised by the exam engine."""

from __future__ import annotations


class ExamEngineError(Exception):
    """Base class for all exam engine errors."""


class InvalidStateError(ExamEngineError, RuntimeError):
    """Raised when an operation is not allowed in the session's current state."""


class InvalidIndexError(ExamEngineError, IndexError):
    """Raised when a question index is outside the loaded question list."""


class InvalidAnswerError(ExamEngineError, ValueError):
    """Raised when an answer value does not fit the question type."""


class IncompleteMetadataError(ExamEngineError, LookupError):
    """Raised when question metadata lacks a field needed for an aggregation."""

    def __init__(self, question_id: str, field_name: str) -> None:
        super().__init__(f"Question {question_id!r} has no {field_name} metadata.")
        self.question_id = question_id
        self.field_name = field_name


class UnknownSessionError(ExamEngineError, KeyError):
    """Raised when a session id is not registered with the exam manager."""

    def __str__(self) -> str:
        return f"Unknown session: {self.args[0]!r}" if self.args else "Unknown session"
