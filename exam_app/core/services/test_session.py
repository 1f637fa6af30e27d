"""Service that owns one candidate's timed test attempt."""

from __future__ import annotations

from collections.abc import Callable, Iterable
import logging
import math
import time

from exam_app.constants.session_constants import MS_PER_SECOND
from exam_app.core.errors import InvalidAnswerError, InvalidIndexError, InvalidStateError
from exam_app.core.models import (
    AttemptResult,
    MarkingScheme,
    MultipleChoiceResponse,
    NavigationEvent,
    NumericalResponse,
    Question,
    QuestionAnswer,
    QuestionStateSummary,
    QuestionStats,
    QuestionStatus,
    QuestionType,
    Response,
    SessionStatus,
    SingleChoiceResponse,
    TestDefinition,
)
from exam_app.core.services.scorer import score_attempt

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * MS_PER_SECOND


class TestSession:
    """State machine for a single attempt: NOT_STARTED -> IN_PROGRESS -> COMPLETED.

    The session is single-writer. Callers that drive it from a timer thread and
    a request thread at once must serialize access (``ExamManager`` does).
    """

    __test__ = False

    def __init__(self, definition: TestDefinition, clock: Clock = monotonic_ms) -> None:
        self._definition = definition
        self._questions: tuple[Question, ...] = tuple(definition.questions)
        self._answers: list[QuestionAnswer] = [
            QuestionAnswer(question_id=question.id) for question in self._questions
        ]
        self._clock = clock
        self._status = SessionStatus.NOT_STARTED
        self._active_index: int = 0
        self._remaining_time_ms: float = float(definition.duration_ms)
        self._started_at_ms: float | None = None
        self._last_mark_ms: float | None = None
        # Wall time charged by navigation or submit since the last tick.
        self._charged_since_tick_ms: float = 0.0
        self._result: AttemptResult | None = None
        self._history: list[NavigationEvent] = []
        self._timeline: list[int] = []

    # --- Read-only state ---

    @property
    def test_id(self) -> str:
        return self._definition.test_id

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def active_index(self) -> int:
        return self._active_index

    @property
    def remaining_time_ms(self) -> float:
        return self._remaining_time_ms

    @property
    def duration_ms(self) -> int:
        return self._definition.duration_ms

    @property
    def marking_scheme(self) -> MarkingScheme:
        return self._definition.marking_scheme

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    @property
    def question_count(self) -> int:
        return len(self._questions)

    @property
    def result(self) -> AttemptResult | None:
        return self._result

    @property
    def navigation_history(self) -> tuple[NavigationEvent, ...]:
        return tuple(self._history)

    def get_question(self, index: int) -> Question:
        self._check_index(index)
        return self._questions[index]

    def get_answer(self, index: int) -> QuestionAnswer:
        self._check_index(index)
        return self._answers[index].snapshot()

    def get_answers(self) -> list[QuestionAnswer]:
        return [answer.snapshot() for answer in self._answers]

    def answer_timeline(self) -> tuple[int, ...]:
        """Question indices in the order their current answers were given."""
        return tuple(self._timeline)

    # --- Lifecycle ---

    def start_test(self) -> None:
        if self._status is not SessionStatus.NOT_STARTED:
            raise InvalidStateError("Test has already been started.")
        if not self._questions:
            raise InvalidStateError("Cannot start a test without questions.")

        now = self._clock()
        self._status = SessionStatus.IN_PROGRESS
        self._remaining_time_ms = float(self._definition.duration_ms)
        self._active_index = 0
        self._started_at_ms = now
        self._last_mark_ms = now
        self._visit(0)
        self._record_event("start", None, 0)
        logger.info(
            "Started test %s with %d questions and %d ms on the clock",
            self.test_id,
            self.question_count,
            self.duration_ms,
        )

    def navigate_to(self, index: int) -> None:
        self._require_in_progress("navigate")
        self._check_index(index)
        if index == self._active_index:
            return

        self._account_in_flight_time()
        self._answers[self._active_index].visited = True
        previous = self._active_index
        self._active_index = index
        self._visit(index)
        self._record_event("navigate", previous, index)
        logger.debug("Test %s: moved from question %d to %d", self.test_id, previous, index)

    def answer_question(self, index: int, value: object) -> None:
        """Record or clear an answer.

        Single-choice takes an option index, multiple-choice takes the full set
        of selected indices (replacing any earlier selection), numerical takes a
        number. ``None`` or an empty selection clears the answer.
        """
        self._require_in_progress("answer a question")
        self._check_index(index)
        response = _coerce_response(self._questions[index], value)

        self._answers[index].response = response
        if index in self._timeline:
            self._timeline.remove(index)
        if response is not None:
            self._timeline.append(index)
        self._record_event("answer" if response is not None else "clear", self._active_index, index)

    def toggle_mark_for_review(self, index: int) -> bool:
        self._require_in_progress("mark a question")
        self._check_index(index)
        answer = self._answers[index]
        answer.marked_for_review = not answer.marked_for_review
        self._record_event("mark" if answer.marked_for_review else "unmark", self._active_index, index)
        return answer.marked_for_review

    def tick(self, delta_ms: float) -> AttemptResult | None:
        """Advance the countdown. Returns the result when time runs out.

        The active question is charged only for the part of ``delta_ms`` that
        navigation has not already charged as wall time since the last tick.
        """
        self._require_in_progress("advance the timer")
        if delta_ms < 0:
            raise ValueError("Tick delta must not be negative.")

        applied = min(float(delta_ms), self._remaining_time_ms)
        self._remaining_time_ms -= applied
        uncharged = applied - self._charged_since_tick_ms
        if uncharged > 0:
            self._answers[self._active_index].elapsed_time_ms += uncharged
        self._charged_since_tick_ms = max(0.0, -uncharged)
        self._last_mark_ms = self._clock()

        if self._remaining_time_ms <= 0:
            self._remaining_time_ms = 0.0
            logger.info("Time expired for test %s; submitting automatically", self.test_id)
            return self.submit()
        return None

    def submit(self) -> AttemptResult:
        """Finish the attempt. Repeated calls return the first result."""
        if self._status is SessionStatus.COMPLETED:
            return self._result
        if self._status is SessionStatus.NOT_STARTED:
            raise InvalidStateError("Cannot submit a test that was never started.")

        self._account_in_flight_time()
        self._answers[self._active_index].visited = True
        result = self._score()
        self._result = result
        self._status = SessionStatus.COMPLETED
        self._record_event("submit", self._active_index, None)
        self._last_mark_ms = None
        logger.info(
            "Submitted test %s: score=%s correct=%d incorrect=%d unattempted=%d",
            self.test_id,
            result.score,
            result.correct_count,
            result.incorrect_count,
            result.unattempted_count,
        )
        return result

    def score_preview(self) -> AttemptResult:
        """Score the current answers without completing the attempt."""
        if self._result is not None:
            return self._result
        if self._status is SessionStatus.NOT_STARTED:
            raise InvalidStateError("Cannot preview the score before the test has started.")
        return self._score()

    # --- Palette ---

    def question_status(self, index: int) -> QuestionStatus:
        self._check_index(index)
        answer = self._answers[index]
        if answer.answered:
            return QuestionStatus.ANSWERED_AND_MARKED if answer.marked_for_review else QuestionStatus.ANSWERED
        if answer.marked_for_review:
            return QuestionStatus.MARKED_FOR_REVIEW
        if answer.visited:
            return QuestionStatus.NOT_ANSWERED
        return QuestionStatus.NOT_VISITED

    def status_summary(self) -> QuestionStateSummary:
        groups: dict[QuestionStatus, list[str]] = {status: [] for status in QuestionStatus}
        for index, question in enumerate(self._questions):
            groups[self.question_status(index)].append(question.id)
        return QuestionStateSummary(
            not_visited=tuple(groups[QuestionStatus.NOT_VISITED]),
            not_answered=tuple(groups[QuestionStatus.NOT_ANSWERED]),
            answered=tuple(groups[QuestionStatus.ANSWERED]),
            marked_for_review=tuple(groups[QuestionStatus.MARKED_FOR_REVIEW]),
            answered_and_marked=tuple(groups[QuestionStatus.ANSWERED_AND_MARKED]),
        )

    def question_stats(self) -> QuestionStats:
        visited = sum(1 for answer in self._answers if answer.visited)
        return QuestionStats(
            answered=sum(1 for answer in self._answers if answer.answered),
            marked=sum(1 for answer in self._answers if answer.marked_for_review),
            visited=visited,
            not_visited=len(self._answers) - visited,
        )

    # --- Internals ---

    def _score(self) -> AttemptResult:
        return score_attempt(
            test_id=self.test_id,
            questions=self._questions,
            answers=self._answers,
            marking_scheme=self._definition.marking_scheme,
            duration_ms=self._definition.duration_ms,
            remaining_time_ms=self._remaining_time_ms,
        )

    def _require_in_progress(self, action: str) -> None:
        if self._status is SessionStatus.NOT_STARTED:
            raise InvalidStateError(f"Cannot {action} before the test has started.")
        if self._status is SessionStatus.COMPLETED:
            raise InvalidStateError(f"Cannot {action} after the test has been submitted.")

    def _check_index(self, index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int):
            raise InvalidIndexError(f"Question index must be an integer, got {index!r}.")
        if not 0 <= index < len(self._questions):
            raise InvalidIndexError(f"Question index {index} out of range")

    def _visit(self, index: int) -> None:
        answer = self._answers[index]
        answer.visited = True
        answer.visit_count += 1

    def _account_in_flight_time(self) -> None:
        """Charge wall time since the last navigation or tick to the active question."""
        now = self._clock()
        if self._last_mark_ms is not None:
            in_flight = max(0.0, now - self._last_mark_ms)
            self._answers[self._active_index].elapsed_time_ms += in_flight
            self._charged_since_tick_ms += in_flight
        self._last_mark_ms = now

    def _record_event(self, action: str, from_index: int | None, to_index: int | None) -> None:
        started = self._started_at_ms if self._started_at_ms is not None else self._clock()
        self._history.append(
            NavigationEvent(
                timestamp_ms=max(0.0, self._clock() - started),
                action=action,
                from_index=from_index,
                to_index=to_index,
            )
        )


def _coerce_response(question: Question, value: object) -> Response | None:
    """Turn a raw answer value into the response type for ``question``."""
    if value is None:
        return None

    if question.question_type is QuestionType.SINGLE:
        if isinstance(value, SingleChoiceResponse):
            value = value.option
        if not _is_index(value):
            raise InvalidAnswerError(f"Question {question.id!r} expects a single option index.")
        _check_option(question, value)
        return SingleChoiceResponse(option=value)

    if question.question_type is QuestionType.MULTIPLE:
        if isinstance(value, MultipleChoiceResponse):
            value = value.options
        if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
            raise InvalidAnswerError(f"Question {question.id!r} expects a collection of option indices.")
        selected = list(value)
        for option in selected:
            if not _is_index(option):
                raise InvalidAnswerError(f"Question {question.id!r} expects integer option indices.")
            _check_option(question, option)
        if not selected:
            return None
        return MultipleChoiceResponse(options=frozenset(selected))

    if isinstance(value, NumericalResponse):
        value = value.value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidAnswerError(f"Question {question.id!r} expects a numerical value.")
    if not math.isfinite(value):
        raise InvalidAnswerError(f"Question {question.id!r} needs a finite numerical value.")
    return NumericalResponse(value=float(value))


def _is_index(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_option(question: Question, option: int) -> None:
    if not 0 <= option < question.option_count:
        raise InvalidAnswerError(
            f"Option {option} out of range for question {question.id!r} "
            f"with {question.option_count} options."
        )
