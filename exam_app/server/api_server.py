"""FastAPI server that exposes exam sessions to candidate clients."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
import logging
from threading import Thread

from fastapi import Depends, FastAPI, HTTPException
import uvicorn

from exam_app.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_app.constants.session_constants import TICK_INTERVAL_MS
from exam_app.core.errors import (
    InvalidAnswerError,
    InvalidIndexError,
    InvalidStateError,
    UnknownSessionError,
)
from exam_app.core.exam_manager import ExamManager, SessionSnapshot
from exam_app.core.markdown_math_renderer import renderer
from exam_app.core.models import AttemptResult, QuestionType, SessionStatus
from exam_app.server.schemas import (
    AnswerPayload,
    MarkPayload,
    NavigatePayload,
    TestDefinitionPayload,
    TickPayload,
)

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors() -> Iterator[None]:
    """Map engine exceptions onto HTTP status codes."""
    try:
        yield
    except UnknownSessionError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (InvalidIndexError, InvalidAnswerError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _serialize_snapshot(snapshot: SessionSnapshot) -> dict[str, object]:
    return {
        "session_id": snapshot.session_id,
        "test_id": snapshot.test_id,
        "status": snapshot.status.value,
        "active_index": snapshot.active_index,
        "remaining_time_ms": snapshot.remaining_time_ms,
        "duration_ms": snapshot.duration_ms,
        "question_count": snapshot.question_count,
        "palette": [status.value for status in snapshot.palette],
        "question_states": asdict(snapshot.summary),
        "stats": asdict(snapshot.stats),
    }


def _serialize_result(result: AttemptResult) -> dict[str, object]:
    return {
        "test_id": result.test_id,
        "score": result.score,
        "correct_count": result.correct_count,
        "incorrect_count": result.incorrect_count,
        "unattempted_count": result.unattempted_count,
        "total_time_taken_ms": result.total_time_taken_ms,
        "outcomes": [outcome.value for outcome in result.outcomes],
        "is_correct": list(result.is_correct),
    }


def _serialize_response(response: object) -> object:
    if response is None:
        return None
    payload = asdict(response)
    if "options" in payload:
        return sorted(payload["options"])
    return next(iter(payload.values()))


def _get_exam_manager_dependency(exam_manager: ExamManager):
    def dependency() -> ExamManager:
        return exam_manager

    return dependency


def create_api_app(exam_manager: ExamManager) -> FastAPI:
    """Create a FastAPI application wired to the provided exam manager."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION, description=APP_ABOUT_TEXT)
    manager_dep = _get_exam_manager_dependency(exam_manager)

    @app.get("/about")
    def about() -> dict[str, object]:
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "license": APP_LICENSE,
            "tick_interval_ms": TICK_INTERVAL_MS,
        }

    @app.post("/sessions", status_code=201)
    def create_session(
        payload: TestDefinitionPayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _translate_errors():
            definition = payload.to_definition()
            session_id = manager.create_session(definition)
            return _serialize_snapshot(manager.get_snapshot(session_id))

    @app.post("/sessions/{session_id}/start")
    def start_session(session_id: str, manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        with _translate_errors():
            return _serialize_snapshot(manager.start(session_id))

    @app.get("/sessions/{session_id}")
    def get_session(session_id: str, manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        with _translate_errors():
            return _serialize_snapshot(manager.get_snapshot(session_id))

    @app.get("/sessions/{session_id}/questions/{index}")
    def get_question(
        session_id: str,
        index: int,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _translate_errors():
            question, snapshot = manager.get_question_view(session_id, index)
        rendered = renderer.render_question(question)
        answer = snapshot.answers[index]
        view: dict[str, object] = {
            "index": index,
            "question_id": rendered.question_id,
            "question_type": rendered.question_type.value,
            "question_html": rendered.stem_html,
            "options": list(rendered.options_html),
            "unit": rendered.unit,
            "subject": question.subject,
            "topic": question.topic,
            "marks": question.marks,
            "status": snapshot.palette[index].value,
            "response": _serialize_response(answer.response),
            "marked_for_review": answer.marked_for_review,
            "correct_options": None,
            "accepted_range": None,
        }
        # Only reveal the answer key once the attempt is over.
        if snapshot.status is SessionStatus.COMPLETED:
            if question.question_type is QuestionType.NUMERICAL:
                view["accepted_range"] = [question.numerical_key.minimum, question.numerical_key.maximum]
            else:
                view["correct_options"] = sorted(question.correct_options)
        return view

    @app.post("/sessions/{session_id}/navigate")
    def navigate(
        session_id: str,
        payload: NavigatePayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _translate_errors():
            return _serialize_snapshot(manager.navigate(session_id, payload.index))

    @app.post("/sessions/{session_id}/answer")
    def answer(
        session_id: str,
        payload: AnswerPayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _translate_errors():
            return _serialize_snapshot(manager.answer(session_id, payload.index, payload.value))

    @app.post("/sessions/{session_id}/mark")
    def toggle_mark(
        session_id: str,
        payload: MarkPayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _translate_errors():
            marked = manager.toggle_mark(session_id, payload.index)
        return {"index": payload.index, "marked_for_review": marked}

    @app.post("/sessions/{session_id}/tick")
    def tick(
        session_id: str,
        payload: TickPayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        with _translate_errors():
            result, snapshot = manager.tick_with_snapshot(session_id, payload.delta_ms)
        return {
            "remaining_time_ms": snapshot.remaining_time_ms,
            "status": snapshot.status.value,
            "result": _serialize_result(result) if result is not None else None,
        }

    @app.post("/sessions/{session_id}/submit")
    def submit(session_id: str, manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        with _translate_errors():
            return _serialize_result(manager.submit(session_id))

    @app.get("/sessions/{session_id}/analysis")
    def get_analysis(session_id: str, manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        with _translate_errors():
            analysis = manager.build_analysis(session_id)
        return asdict(analysis)

    @app.delete("/sessions/{session_id}", status_code=204)
    def discard_session(session_id: str, manager: ExamManager = Depends(manager_dep)) -> None:
        with _translate_errors():
            manager.discard_session(session_id)

    return app


def start_api_server(
    exam_manager: ExamManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(exam_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="ExamApiServer", daemon=True)
    thread.start()
    logger.info("Exam API listening on %s:%d", host, port)
    return thread
