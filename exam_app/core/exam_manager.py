"""Thread-safe facade over test sessions shared between the API and timers."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
import logging
from threading import Lock
from uuid import uuid4

from exam_app.constants.session_constants import MAX_COMPLETED_SESSIONS
from exam_app.core.analysis_models import AnalysisData
from exam_app.core.errors import InvalidStateError, UnknownSessionError
from exam_app.core.models import (
    AttemptResult,
    Question,
    QuestionAnswer,
    QuestionMetadata,
    QuestionStateSummary,
    QuestionStats,
    QuestionStatus,
    SessionStatus,
    TestDefinition,
)
from exam_app.core.services.analysis import build_analysis
from exam_app.core.services.test_session import Clock, TestSession, monotonic_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Immutable view of a session returned to consumers."""

    session_id: str
    test_id: str
    status: SessionStatus
    active_index: int
    remaining_time_ms: float
    duration_ms: int
    question_count: int
    answers: tuple[QuestionAnswer, ...]
    palette: tuple[QuestionStatus, ...]
    summary: QuestionStateSummary
    stats: QuestionStats


class ExamManager:
    """Registry of in-memory sessions; every call is serialized by one lock.

    Serializing here is what makes ``submit`` exactly-once: a timer expiry and
    a user submit cannot interleave, so the later caller sees COMPLETED and
    gets the cached result.

    Completed sessions stay available for result and analysis lookups until
    more than ``max_completed_sessions`` have finished; the oldest are then
    evicted. Sessions still in progress are never evicted.
    """

    def __init__(
        self,
        clock: Clock = monotonic_ms,
        max_completed_sessions: int = MAX_COMPLETED_SESSIONS,
    ) -> None:
        if max_completed_sessions < 1:
            raise ValueError("max_completed_sessions must be at least 1.")
        self._lock = Lock()
        self._clock = clock
        self._max_completed = max_completed_sessions
        self._sessions: dict[str, TestSession] = {}
        self._analyses: dict[str, AnalysisData] = {}
        # Completed session ids, oldest first.
        self._completed: OrderedDict[str, None] = OrderedDict()

    # --- Session lifecycle ---

    def create_session(self, definition: TestDefinition) -> str:
        with self._lock:
            session_id = uuid4().hex
            self._sessions[session_id] = TestSession(definition, clock=self._clock)
            logger.info("Created session %s for test %s", session_id, definition.test_id)
            return session_id

    def start(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            session = self._get_session(session_id)
            session.start_test()
            return self._snapshot(session_id, session)

    def discard_session(self, session_id: str) -> None:
        """Drop a session without scoring it. Abandoned attempts earn nothing."""
        with self._lock:
            session = self._get_session(session_id)
            self._forget(session_id)
            logger.info(
                "Discarded session %s for test %s in state %s",
                session_id,
                session.test_id,
                session.status.value,
            )

    def list_sessions(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    # --- Candidate actions ---

    def navigate(self, session_id: str, index: int) -> SessionSnapshot:
        with self._lock:
            session = self._get_session(session_id)
            session.navigate_to(index)
            return self._snapshot(session_id, session)

    def answer(self, session_id: str, index: int, value: object) -> SessionSnapshot:
        with self._lock:
            session = self._get_session(session_id)
            session.answer_question(index, value)
            return self._snapshot(session_id, session)

    def toggle_mark(self, session_id: str, index: int) -> bool:
        with self._lock:
            return self._get_session(session_id).toggle_mark_for_review(index)

    def tick(self, session_id: str, delta_ms: float) -> AttemptResult | None:
        with self._lock:
            result = self._get_session(session_id).tick(delta_ms)
            if result is not None:
                self._record_completion(session_id)
            return result

    def tick_with_snapshot(
        self,
        session_id: str,
        delta_ms: float,
    ) -> tuple[AttemptResult | None, SessionSnapshot]:
        """Tick and snapshot the session under one lock acquisition."""
        with self._lock:
            session = self._get_session(session_id)
            result = session.tick(delta_ms)
            if result is not None:
                self._record_completion(session_id)
            return result, self._snapshot(session_id, session)

    def submit(self, session_id: str) -> AttemptResult:
        with self._lock:
            result = self._get_session(session_id).submit()
            self._record_completion(session_id)
            return result

    # --- Queries ---

    def get_snapshot(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            return self._snapshot(session_id, self._get_session(session_id))

    def get_question(self, session_id: str, index: int) -> Question:
        with self._lock:
            return self._get_session(session_id).get_question(index)

    def get_question_view(self, session_id: str, index: int) -> tuple[Question, SessionSnapshot]:
        """Return a question together with a snapshot taken under the same lock."""
        with self._lock:
            session = self._get_session(session_id)
            return session.get_question(index), self._snapshot(session_id, session)

    def get_result(self, session_id: str) -> AttemptResult | None:
        with self._lock:
            return self._get_session(session_id).result

    def get_score_preview(self, session_id: str) -> AttemptResult:
        with self._lock:
            return self._get_session(session_id).score_preview()

    def build_analysis(self, session_id: str) -> AnalysisData:
        """Analyse a submitted attempt using the session's own metadata and timeline."""
        with self._lock:
            cached = self._analyses.get(session_id)
            if cached is not None:
                return cached

            session = self._get_session(session_id)
            if session.result is None:
                raise InvalidStateError("Analysis is only available after the test is submitted.")
            analysis = build_analysis(
                result=session.result,
                answers=session.get_answers(),
                metadata=[QuestionMetadata.from_question(question) for question in session.questions],
                timeline=session.answer_timeline(),
            )
            self._analyses[session_id] = analysis
            return analysis

    # --- Internals ---

    def _record_completion(self, session_id: str) -> None:
        if session_id in self._completed:
            return
        self._completed[session_id] = None
        while len(self._completed) > self._max_completed:
            evicted, _ = self._completed.popitem(last=False)
            self._forget(evicted)
            logger.info("Evicted completed session %s", evicted)

    def _forget(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._analyses.pop(session_id, None)
        self._completed.pop(session_id, None)

    def _get_session(self, session_id: str) -> TestSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise UnknownSessionError(session_id)
        return session

    @staticmethod
    def _snapshot(session_id: str, session: TestSession) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=session_id,
            test_id=session.test_id,
            status=session.status,
            active_index=session.active_index,
            remaining_time_ms=session.remaining_time_ms,
            duration_ms=session.duration_ms,
            question_count=session.question_count,
            answers=tuple(session.get_answers()),
            palette=tuple(session.question_status(index) for index in range(session.question_count)),
            summary=session.status_summary(),
            stats=session.question_stats(),
        )
