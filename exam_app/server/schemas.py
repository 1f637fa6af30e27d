"""Request payload schemas for the exam API.

Field names are accepted in snake_case or in the camelCase used by the web
client.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from exam_app.constants.session_constants import (
    DEFAULT_CORRECT_POINTS,
    DEFAULT_INCORRECT_POINTS,
    DEFAULT_UNATTEMPTED_POINTS,
)
from exam_app.core.models import (
    MarkingScheme,
    NumericalAnswerKey,
    Question,
    QuestionType,
    TestDefinition,
)


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MarkingSchemePayload(_Payload):
    correct: float = DEFAULT_CORRECT_POINTS
    incorrect: float = DEFAULT_INCORRECT_POINTS
    unattempted: float = DEFAULT_UNATTEMPTED_POINTS

    def to_marking_scheme(self) -> MarkingScheme:
        return MarkingScheme(correct=self.correct, incorrect=self.incorrect, unattempted=self.unattempted)


class RangePayload(_Payload):
    min: float
    max: float


class NumericalAnswerPayload(_Payload):
    exact_value: float
    range: RangePayload
    unit: str = ""


class QuestionPayload(_Payload):
    id: str
    question_type: Literal["single", "multiple", "numerical"]
    subject: str | None = None
    topic: str | None = None
    difficulty: str | None = None
    marks: float = Field(default=1.0, gt=0)
    text: str = ""
    options: list[str] = Field(default_factory=list)
    correct_options: list[int] = Field(default_factory=list)
    numerical_answer: NumericalAnswerPayload | None = None

    def to_question(self) -> Question:
        numerical_key = None
        if self.numerical_answer is not None:
            numerical_key = NumericalAnswerKey(
                exact_value=self.numerical_answer.exact_value,
                minimum=self.numerical_answer.range.min,
                maximum=self.numerical_answer.range.max,
                unit=self.numerical_answer.unit,
            )
        return Question(
            id=self.id,
            question_type=QuestionType(self.question_type),
            subject=self.subject,
            topic=self.topic,
            difficulty=self.difficulty,
            marks=self.marks,
            text=self.text,
            options=tuple(self.options),
            correct_options=frozenset(self.correct_options),
            numerical_key=numerical_key,
        )


class TestDefinitionPayload(_Payload):
    """Wire shape of a test handed over by the question service."""

    __test__ = False

    test_id: str
    duration_minutes: float = Field(gt=0)
    marking_scheme: MarkingSchemePayload = Field(default_factory=MarkingSchemePayload)
    questions: list[QuestionPayload] = Field(min_length=1)

    def to_definition(self) -> TestDefinition:
        """Convert to the core model. Raises ``ValueError`` for inconsistent questions."""
        return TestDefinition(
            test_id=self.test_id,
            duration_minutes=self.duration_minutes,
            questions=tuple(question.to_question() for question in self.questions),
            marking_scheme=self.marking_scheme.to_marking_scheme(),
        )


class NavigatePayload(_Payload):
    index: int


class AnswerPayload(_Payload):
    """A single option index, a list of option indices, a number, or ``None`` to clear."""

    index: int
    value: int | float | list[int] | None = None


class MarkPayload(_Payload):
    index: int


class TickPayload(_Payload):
    delta_ms: float = Field(ge=0)
