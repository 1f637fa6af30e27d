"""Result types produced by the analysis and recommendation engines.

All types are frozen: an ``AnalysisData`` is built once per attempt and only
read afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from exam_app.core.models import QuestionOutcome


@dataclass(frozen=True, slots=True)
class SubjectPerformance:
    subject: str
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    unattempted: int
    accuracy: float
    average_time_ms: float

    @property
    def attempted(self) -> int:
        return self.correct_answers + self.incorrect_answers


@dataclass(frozen=True, slots=True)
class TimeDistribution:
    fast: int = 0
    moderate: int = 0
    slow: int = 0

    @property
    def total(self) -> int:
        return self.fast + self.moderate + self.slow


@dataclass(frozen=True, slots=True)
class TimeAnalysis:
    total_time_ms: float
    average_time_per_question_ms: float
    distribution: TimeDistribution
    time_efficiency: int


@dataclass(frozen=True, slots=True)
class DifficultyBucket:
    attempted: int = 0
    correct: int = 0
    accuracy: float = 0.0


@dataclass(frozen=True, slots=True)
class DifficultyAnalysis:
    easy: DifficultyBucket = field(default_factory=DifficultyBucket)
    medium: DifficultyBucket = field(default_factory=DifficultyBucket)
    hard: DifficultyBucket = field(default_factory=DifficultyBucket)

    @property
    def total_attempted(self) -> int:
        return self.easy.attempted + self.medium.attempted + self.hard.attempted


@dataclass(frozen=True, slots=True)
class AccuracyTrendPoint:
    question_number: int
    question_id: str
    is_correct: bool
    time_spent_ms: float
    cumulative_accuracy: float


@dataclass(frozen=True, slots=True)
class SpeedTrendSegment:
    segment: int
    average_time_per_question_ms: float
    questions_attempted: int


@dataclass(frozen=True, slots=True)
class SubjectProgression:
    subject: str
    first_half_accuracy: float
    second_half_accuracy: float


@dataclass(frozen=True, slots=True)
class ProgressionMetrics:
    accuracy_trend: tuple[AccuracyTrendPoint, ...]
    speed_trend: tuple[SpeedTrendSegment, ...]
    subject_progression: tuple[SubjectProgression, ...]


@dataclass(frozen=True, slots=True)
class Recommendations:
    strengths: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()
    study_plan: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class QuestionAnalysis:
    """Per-question row for the review table."""

    question_id: str
    subject: str | None
    topic: str | None
    difficulty: str | None
    outcome: QuestionOutcome
    time_spent_ms: float
    visited: bool
    marked_for_review: bool

    @property
    def is_correct(self) -> bool:
        return self.outcome is QuestionOutcome.CORRECT


@dataclass(frozen=True, slots=True)
class AnalysisData:
    test_id: str
    overall_score: float
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    unattempted: int
    accuracy: float
    time_taken_ms: float
    subject_performance: tuple[SubjectPerformance, ...]
    time_analysis: TimeAnalysis
    difficulty_analysis: DifficultyAnalysis
    recommendations: Recommendations
    question_analysis: tuple[QuestionAnalysis, ...] = ()
    progression_metrics: ProgressionMetrics | None = None
    # Questions left out of an aggregation because metadata was missing.
    excluded_questions: int = 0
