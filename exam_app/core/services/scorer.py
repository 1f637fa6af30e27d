"""Scoring of test attempts against a marking scheme."""

from __future__ import annotations

from collections.abc import Sequence

from exam_app.core.errors import InvalidAnswerError
from exam_app.core.models import (
    AttemptResult,
    MarkingScheme,
    MultipleChoiceResponse,
    NumericalResponse,
    Question,
    QuestionAnswer,
    QuestionOutcome,
    QuestionType,
    Response,
    SingleChoiceResponse,
)


def evaluate_response(question: Question, response: Response | None) -> QuestionOutcome:
    """Classify one response. Multiple-choice needs an exact set match."""
    if response is None:
        return QuestionOutcome.UNATTEMPTED

    if question.question_type is QuestionType.SINGLE:
        if not isinstance(response, SingleChoiceResponse):
            raise InvalidAnswerError(f"Question {question.id!r} expects a single-choice response.")
        is_correct = response.option in question.correct_options
    elif question.question_type is QuestionType.MULTIPLE:
        if not isinstance(response, MultipleChoiceResponse):
            raise InvalidAnswerError(f"Question {question.id!r} expects a multiple-choice response.")
        is_correct = response.options == question.correct_options
    else:
        if not isinstance(response, NumericalResponse):
            raise InvalidAnswerError(f"Question {question.id!r} expects a numerical response.")
        is_correct = question.numerical_key.accepts(response.value)

    return QuestionOutcome.CORRECT if is_correct else QuestionOutcome.INCORRECT


def compute_score(
    correct_count: int,
    incorrect_count: int,
    unattempted_count: int,
    marking_scheme: MarkingScheme,
) -> float:
    return (
        correct_count * marking_scheme.correct
        + incorrect_count * marking_scheme.incorrect
        + unattempted_count * marking_scheme.unattempted
    )


def score_attempt(
    test_id: str,
    questions: Sequence[Question],
    answers: Sequence[QuestionAnswer],
    marking_scheme: MarkingScheme,
    duration_ms: float,
    remaining_time_ms: float,
) -> AttemptResult:
    """Score an attempt.

    Total time comes from the session countdown rather than the per-question
    times, which may drift from it.
    """
    if len(questions) != len(answers):
        raise ValueError("Every question needs exactly one answer record.")

    outcomes: list[QuestionOutcome] = []
    for question, answer in zip(questions, answers):
        if answer.question_id != question.id:
            raise ValueError(
                f"Answer for {answer.question_id!r} does not match question {question.id!r}."
            )
        outcomes.append(evaluate_response(question, answer.response))

    correct_count = outcomes.count(QuestionOutcome.CORRECT)
    incorrect_count = outcomes.count(QuestionOutcome.INCORRECT)
    unattempted_count = outcomes.count(QuestionOutcome.UNATTEMPTED)

    return AttemptResult(
        test_id=test_id,
        score=compute_score(correct_count, incorrect_count, unattempted_count, marking_scheme),
        correct_count=correct_count,
        incorrect_count=incorrect_count,
        unattempted_count=unattempted_count,
        total_time_taken_ms=max(0.0, duration_ms - remaining_time_ms),
        outcomes=tuple(outcomes),
    )
