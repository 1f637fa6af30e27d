"""Threshold rules that turn an analysis into study recommendations."""

from __future__ import annotations

from exam_app.constants.analysis_constants import (
    FALLBACK_SUBJECT_NAME,
    GOOD_TIME_EFFICIENCY,
    POOR_TIME_EFFICIENCY,
    STRONG_SUBJECT_ACCURACY,
    WEAK_SUBJECT_ACCURACY,
)
from exam_app.core.analysis_models import AnalysisData, Recommendations

REVIEW_INCORRECT_STEP = "Review incorrect answers and understand the concepts"
TIMED_PRACTICE_STEP = "Take timed practice tests to improve speed"


def generate_recommendations(analysis: AnalysisData) -> Recommendations:
    """Derive strengths, improvement areas and a study plan.

    Subjects are judged on accuracy, the attempt as a whole on time
    efficiency. Without any subject breakdown the overall accuracy is judged
    instead, under a generic subject name, provided something was attempted.
    """
    strengths: list[str] = []
    improvements: list[str] = []
    study_plan: list[str] = []

    graded = [(entry.subject, entry.accuracy) for entry in analysis.subject_performance]
    if not analysis.subject_performance and analysis.correct_answers + analysis.incorrect_answers:
        graded = [(FALLBACK_SUBJECT_NAME, analysis.accuracy)]

    weak_subjects: list[str] = []
    for subject, accuracy in graded:
        if accuracy >= STRONG_SUBJECT_ACCURACY:
            strengths.append(f"Strong performance in {subject}")
        elif accuracy < WEAK_SUBJECT_ACCURACY:
            weak_subjects.append(subject)
            improvements.append(f"Focus more on {subject}")

    time_efficiency = analysis.time_analysis.time_efficiency
    has_timing = analysis.time_analysis.distribution.total > 0
    if has_timing and time_efficiency >= GOOD_TIME_EFFICIENCY:
        strengths.append("Good time management")
    elif has_timing and time_efficiency < POOR_TIME_EFFICIENCY:
        improvements.append("Work on time management and speed")

    study_plan.extend(f"Practice more questions in {subject}" for subject in weak_subjects)
    study_plan.append(REVIEW_INCORRECT_STEP)
    study_plan.append(TIMED_PRACTICE_STEP)

    return Recommendations(
        strengths=tuple(strengths),
        improvements=tuple(improvements),
        study_plan=tuple(study_plan),
    )
