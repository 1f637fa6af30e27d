"""Static metadata describing the exam engine."""

APP_NAME = "ExamEngine"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "ExamEngine runs timed, multi-question mock tests and turns each completed "
    "attempt into subject, time and difficulty analytics with study recommendations."
)
