"""Application entry point for the exam engine API."""

from __future__ import annotations

from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_app.core.exam_manager import ExamManager
from exam_app.server.api_server import start_api_server
from exam_app.utils.logging_config import configure_logging


def main() -> None:
    """Initialize logging, start the API server, and block until it stops."""
    logger = configure_logging()
    logger.info("Starting exam engine…")

    exam_manager = ExamManager()
    server_thread = start_api_server(exam_manager=exam_manager, host=DEFAULT_HOST, port=DEFAULT_PORT)
    try:
        server_thread.join()
    except KeyboardInterrupt:
        logger.info("Shutting down exam engine")


if __name__ == "__main__":
    main()
