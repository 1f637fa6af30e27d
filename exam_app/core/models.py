"""Domain models for the exam engine."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from exam_app.constants.session_constants import (
    DEFAULT_CORRECT_POINTS,
    DEFAULT_INCORRECT_POINTS,
    DEFAULT_UNATTEMPTED_POINTS,
    MS_PER_MINUTE,
)


class QuestionType(Enum):
    """Supported answer formats."""

    SINGLE = "single"
    MULTIPLE = "multiple"
    NUMERICAL = "numerical"


class SessionStatus(Enum):
    """Lifecycle of a test attempt."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class QuestionOutcome(Enum):
    """Scoring outcome of a single question."""

    CORRECT = "correct"
    INCORRECT = "incorrect"
    UNATTEMPTED = "unattempted"


class QuestionStatus(Enum):
    """Palette state of a question as shown to the candidate."""

    NOT_VISITED = "not_visited"
    NOT_ANSWERED = "not_answered"
    ANSWERED = "answered"
    MARKED_FOR_REVIEW = "marked_for_review"
    ANSWERED_AND_MARKED = "answered_and_marked"


@dataclass(frozen=True, slots=True)
class NumericalAnswerKey:
    """Accepted value for a numerical question; the range bounds are inclusive."""

    exact_value: float
    minimum: float
    maximum: float
    unit: str = ""

    def __post_init__(self) -> None:
        if self.minimum > self.maximum:
            raise ValueError("Numerical answer range minimum must not exceed maximum.")

    def accepts(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum


@dataclass(frozen=True, slots=True)
class Question:
    """A fetched question. Options and answer key depend on ``question_type``."""

    id: str
    question_type: QuestionType
    subject: str | None = None
    topic: str | None = None
    difficulty: str | None = None
    marks: float = 1.0
    text: str = ""
    options: tuple[str, ...] = ()
    correct_options: frozenset[int] = frozenset()
    numerical_key: NumericalAnswerKey | None = None

    def __post_init__(self) -> None:
        if self.marks <= 0:
            raise ValueError("Question marks must be a positive number.")
        if self.question_type is QuestionType.NUMERICAL:
            if self.numerical_key is None:
                raise ValueError(f"Numerical question {self.id!r} needs a numerical answer key.")
            if self.options or self.correct_options:
                raise ValueError(f"Numerical question {self.id!r} cannot define options.")
            return

        if self.numerical_key is not None:
            raise ValueError(f"Choice question {self.id!r} cannot define a numerical key.")
        if not self.options:
            raise ValueError(f"Choice question {self.id!r} needs at least one option.")
        if not self.correct_options:
            raise ValueError(f"Choice question {self.id!r} needs at least one correct option.")
        if any(not 0 <= index < len(self.options) for index in self.correct_options):
            raise ValueError(f"Correct option out of range for question {self.id!r}.")
        if self.question_type is QuestionType.SINGLE and len(self.correct_options) != 1:
            raise ValueError(f"Single-choice question {self.id!r} must have exactly one correct option.")

    @property
    def option_count(self) -> int:
        return len(self.options)


@dataclass(frozen=True, slots=True)
class QuestionMetadata:
    """Classification data the analysis engine needs for one question."""

    id: str
    subject: str | None = None
    topic: str | None = None
    difficulty: str | None = None

    @classmethod
    def from_question(cls, question: Question) -> "QuestionMetadata":
        return cls(
            id=question.id,
            subject=question.subject,
            topic=question.topic,
            difficulty=question.difficulty,
        )


@dataclass(frozen=True, slots=True)
class MarkingScheme:
    """Points awarded per outcome. Signs are not constrained."""

    correct: float = DEFAULT_CORRECT_POINTS
    incorrect: float = DEFAULT_INCORRECT_POINTS
    unattempted: float = DEFAULT_UNATTEMPTED_POINTS


@dataclass(frozen=True, slots=True)
class TestDefinition:
    """Everything needed to open a test session."""

    __test__ = False  # not a pytest test class

    test_id: str
    duration_minutes: float
    questions: tuple[Question, ...]
    marking_scheme: MarkingScheme = field(default_factory=MarkingScheme)

    def __post_init__(self) -> None:
        if self.duration_minutes <= 0:
            raise ValueError("Test duration must be positive.")
        ids = [question.id for question in self.questions]
        if len(set(ids)) != len(ids):
            raise ValueError("Question ids must be unique within a test.")

    @property
    def duration_ms(self) -> int:
        return int(round(self.duration_minutes * MS_PER_MINUTE))


# --- Answer responses -------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SingleChoiceResponse:
    option: int


@dataclass(frozen=True, slots=True)
class MultipleChoiceResponse:
    options: frozenset[int]


@dataclass(frozen=True, slots=True)
class NumericalResponse:
    value: float


Response = SingleChoiceResponse | MultipleChoiceResponse | NumericalResponse


@dataclass(slots=True)
class QuestionAnswer:
    """Mutable per-question record owned by a test session."""

    question_id: str
    response: Response | None = None
    elapsed_time_ms: float = 0.0
    visited: bool = False
    marked_for_review: bool = False
    visit_count: int = 0

    @property
    def answered(self) -> bool:
        return self.response is not None

    def snapshot(self) -> "QuestionAnswer":
        return replace(self)


@dataclass(frozen=True, slots=True)
class AttemptResult:
    """Immutable outcome of a submitted attempt."""

    test_id: str
    score: float
    correct_count: int
    incorrect_count: int
    unattempted_count: int
    total_time_taken_ms: float
    outcomes: tuple[QuestionOutcome, ...]

    @property
    def total_questions(self) -> int:
        return len(self.outcomes)

    @property
    def attempted_count(self) -> int:
        return self.correct_count + self.incorrect_count

    @property
    def is_correct(self) -> tuple[bool, ...]:
        return tuple(outcome is QuestionOutcome.CORRECT for outcome in self.outcomes)


@dataclass(frozen=True, slots=True)
class NavigationEvent:
    """One entry of a session's navigation history."""

    timestamp_ms: float
    action: str
    from_index: int | None
    to_index: int | None


@dataclass(frozen=True, slots=True)
class QuestionStateSummary:
    """Question ids grouped by palette status."""

    not_visited: tuple[str, ...]
    not_answered: tuple[str, ...]
    answered: tuple[str, ...]
    marked_for_review: tuple[str, ...]
    answered_and_marked: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class QuestionStats:
    answered: int
    marked: int
    visited: int
    not_visited: int
