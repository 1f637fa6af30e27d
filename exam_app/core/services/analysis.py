"""Turns a scored attempt into subject, time, difficulty and progression analytics.

Missing metadata never aborts the report: a question without a subject is left
out of the subject breakdown, a question without a difficulty is left out of
the difficulty buckets, and the number of such questions is reported on the
result as ``excluded_questions``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
import logging
import math

from exam_app.constants.analysis_constants import (
    DIFFICULTY_ALIASES,
    FAST_THRESHOLD_MS,
    FAST_WEIGHT,
    MODERATE_WEIGHT,
    PROGRESSION_SEGMENT_COUNT,
    SLOW_THRESHOLD_MS,
    SLOW_WEIGHT,
)
from exam_app.core.analysis_models import (
    AccuracyTrendPoint,
    AnalysisData,
    DifficultyAnalysis,
    DifficultyBucket,
    ProgressionMetrics,
    QuestionAnalysis,
    Recommendations,
    SpeedTrendSegment,
    SubjectPerformance,
    SubjectProgression,
    TimeAnalysis,
    TimeDistribution,
)
from exam_app.core.errors import IncompleteMetadataError
from exam_app.core.models import AttemptResult, QuestionAnswer, QuestionMetadata, QuestionOutcome
from exam_app.core.services.recommendations import generate_recommendations

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Row:
    index: int
    answer: QuestionAnswer
    outcome: QuestionOutcome
    metadata: QuestionMetadata | None

    @property
    def question_id(self) -> str:
        return self.answer.question_id

    @property
    def attempted(self) -> bool:
        return self.outcome is not QuestionOutcome.UNATTEMPTED


@dataclass(slots=True)
class _Tally:
    total: int = 0
    correct: int = 0
    incorrect: int = 0
    time_ms: float = 0.0

    @property
    def attempted(self) -> int:
        return self.correct + self.incorrect

    def add(self, row: _Row) -> None:
        self.total += 1
        self.time_ms += row.answer.elapsed_time_ms
        if row.outcome is QuestionOutcome.CORRECT:
            self.correct += 1
        elif row.outcome is QuestionOutcome.INCORRECT:
            self.incorrect += 1


def build_analysis(
    result: AttemptResult,
    answers: Sequence[QuestionAnswer],
    metadata: Sequence[QuestionMetadata] | Mapping[str, QuestionMetadata],
    timeline: Sequence[int] | None = None,
) -> AnalysisData:
    """Build the full analysis for one attempt.

    ``answers`` must be in question order, matching ``result.outcomes``.
    ``timeline`` lists question indices in the order they were answered; the
    progression section is omitted without it.
    """
    if len(answers) != len(result.outcomes):
        raise ValueError("Answer records do not match the attempt result.")

    metadata_by_id = _index_metadata(metadata)
    rows = [
        _Row(index=index, answer=answer, outcome=outcome, metadata=metadata_by_id.get(answer.question_id))
        for index, (answer, outcome) in enumerate(zip(answers, result.outcomes))
    ]
    excluded: set[str] = set()

    analysis = AnalysisData(
        test_id=result.test_id,
        overall_score=result.score,
        total_questions=result.total_questions,
        correct_answers=result.correct_count,
        incorrect_answers=result.incorrect_count,
        unattempted=result.unattempted_count,
        accuracy=_percentage(result.correct_count, result.attempted_count),
        time_taken_ms=result.total_time_taken_ms,
        subject_performance=_aggregate_subjects(rows, excluded),
        time_analysis=_analyze_time(rows, result.total_time_taken_ms),
        difficulty_analysis=_aggregate_difficulty(rows, excluded),
        recommendations=Recommendations(),
        question_analysis=tuple(_question_row(row) for row in rows),
        progression_metrics=_build_progression(rows, timeline),
        excluded_questions=len(excluded),
    )
    if excluded:
        logger.warning(
            "Analysis for test %s excluded %d question(s) with incomplete metadata",
            result.test_id,
            len(excluded),
        )
    return replace(analysis, recommendations=generate_recommendations(analysis))


def _aggregate_subjects(rows: Sequence[_Row], excluded: set[str]) -> tuple[SubjectPerformance, ...]:
    tallies: dict[str, _Tally] = {}
    for row in rows:
        try:
            subject = _require_subject(row)
        except IncompleteMetadataError as exc:
            excluded.add(exc.question_id)
            logger.debug("%s Leaving it out of the subject breakdown.", exc)
            continue
        tallies.setdefault(subject, _Tally()).add(row)

    return tuple(
        SubjectPerformance(
            subject=subject,
            total_questions=tally.total,
            correct_answers=tally.correct,
            incorrect_answers=tally.incorrect,
            unattempted=tally.total - tally.attempted,
            accuracy=_percentage(tally.correct, tally.attempted),
            average_time_ms=tally.time_ms / tally.attempted if tally.attempted else 0.0,
        )
        for subject, tally in tallies.items()
    )


def classify_time(elapsed_ms: float) -> str:
    """Return ``fast``, ``moderate`` or ``slow`` for a question's elapsed time."""
    if elapsed_ms < FAST_THRESHOLD_MS:
        return "fast"
    if elapsed_ms <= SLOW_THRESHOLD_MS:
        return "moderate"
    return "slow"


def calculate_time_efficiency(distribution: TimeDistribution) -> int:
    if distribution.total == 0:
        return 0
    weighted = (
        distribution.fast * FAST_WEIGHT
        + distribution.moderate * MODERATE_WEIGHT
        + distribution.slow * SLOW_WEIGHT
    )
    return _round_half_up(weighted / distribution.total * 100)


def _analyze_time(rows: Sequence[_Row], total_time_ms: float) -> TimeAnalysis:
    counts = {"fast": 0, "moderate": 0, "slow": 0}
    for row in rows:
        if row.attempted:
            counts[classify_time(row.answer.elapsed_time_ms)] += 1
    distribution = TimeDistribution(**counts)
    return TimeAnalysis(
        total_time_ms=total_time_ms,
        average_time_per_question_ms=total_time_ms / len(rows) if rows else 0.0,
        distribution=distribution,
        time_efficiency=calculate_time_efficiency(distribution),
    )


def normalize_difficulty(difficulty: str) -> str | None:
    return DIFFICULTY_ALIASES.get(difficulty.strip().lower())


def _aggregate_difficulty(rows: Sequence[_Row], excluded: set[str]) -> DifficultyAnalysis:
    tallies = {"easy": _Tally(), "medium": _Tally(), "hard": _Tally()}
    for row in rows:
        if not row.attempted:
            continue
        try:
            raw = _require_difficulty(row)
        except IncompleteMetadataError as exc:
            excluded.add(exc.question_id)
            logger.debug("%s Leaving it out of the difficulty buckets.", exc)
            continue
        bucket = normalize_difficulty(raw)
        if bucket is None:
            # Unknown labels are dropped rather than guessed.
            continue
        tallies[bucket].add(row)

    buckets = {
        name: DifficultyBucket(
            attempted=tally.attempted,
            correct=tally.correct,
            accuracy=_percentage(tally.correct, tally.attempted),
        )
        for name, tally in tallies.items()
    }
    return DifficultyAnalysis(**buckets)


def _build_progression(rows: Sequence[_Row], timeline: Sequence[int] | None) -> ProgressionMetrics | None:
    if not timeline:
        return None

    ordered: list[_Row] = []
    for index in timeline:
        if not 0 <= index < len(rows):
            raise ValueError(f"Timeline refers to unknown question index {index}.")
        row = rows[index]
        if row.attempted:
            ordered.append(row)
    if not ordered:
        return None

    return ProgressionMetrics(
        accuracy_trend=_accuracy_trend(ordered),
        speed_trend=_speed_trend(ordered),
        subject_progression=_subject_progression(ordered),
    )


def _accuracy_trend(ordered: Sequence[_Row]) -> tuple[AccuracyTrendPoint, ...]:
    points: list[AccuracyTrendPoint] = []
    correct_so_far = 0
    for position, row in enumerate(ordered, start=1):
        is_correct = row.outcome is QuestionOutcome.CORRECT
        correct_so_far += is_correct
        points.append(
            AccuracyTrendPoint(
                question_number=row.index + 1,
                question_id=row.question_id,
                is_correct=is_correct,
                time_spent_ms=row.answer.elapsed_time_ms,
                cumulative_accuracy=_percentage(correct_so_far, position),
            )
        )
    return tuple(points)


def _speed_trend(ordered: Sequence[_Row]) -> tuple[SpeedTrendSegment, ...]:
    size = math.ceil(len(ordered) / PROGRESSION_SEGMENT_COUNT)
    segments: list[SpeedTrendSegment] = []
    for number, start in enumerate(range(0, len(ordered), size), start=1):
        chunk = ordered[start:start + size]
        segments.append(
            SpeedTrendSegment(
                segment=number,
                average_time_per_question_ms=sum(row.answer.elapsed_time_ms for row in chunk) / len(chunk),
                questions_attempted=len(chunk),
            )
        )
    return tuple(segments)


def _subject_progression(ordered: Sequence[_Row]) -> tuple[SubjectProgression, ...]:
    by_subject: dict[str, list[bool]] = {}
    for row in ordered:
        if row.metadata is None or not row.metadata.subject:
            continue
        by_subject.setdefault(row.metadata.subject, []).append(row.outcome is QuestionOutcome.CORRECT)

    progression: list[SubjectProgression] = []
    for subject, results in by_subject.items():
        middle = math.ceil(len(results) / 2)
        first, second = results[:middle], results[middle:]
        progression.append(
            SubjectProgression(
                subject=subject,
                first_half_accuracy=_percentage(sum(first), len(first)),
                second_half_accuracy=_percentage(sum(second), len(second)),
            )
        )
    return tuple(progression)


def _question_row(row: _Row) -> QuestionAnalysis:
    metadata = row.metadata
    return QuestionAnalysis(
        question_id=row.question_id,
        subject=metadata.subject if metadata else None,
        topic=metadata.topic if metadata else None,
        difficulty=metadata.difficulty if metadata else None,
        outcome=row.outcome,
        time_spent_ms=row.answer.elapsed_time_ms,
        visited=row.answer.visited,
        marked_for_review=row.answer.marked_for_review,
    )


def _require_subject(row: _Row) -> str:
    if row.metadata is None or not (row.metadata.subject or "").strip():
        raise IncompleteMetadataError(row.question_id, "subject")
    return row.metadata.subject


def _require_difficulty(row: _Row) -> str:
    if row.metadata is None or not (row.metadata.difficulty or "").strip():
        raise IncompleteMetadataError(row.question_id, "difficulty")
    return row.metadata.difficulty


def _index_metadata(
    metadata: Sequence[QuestionMetadata] | Mapping[str, QuestionMetadata],
) -> dict[str, QuestionMetadata]:
    if isinstance(metadata, Mapping):
        return dict(metadata)
    return {entry.id: entry for entry in metadata}


def _percentage(part: int, whole: int) -> float:
    return part / whole * 100 if whole else 0.0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
