import sys
from pathlib import Path

import pytest

# Add the project root to sys.path so we can import exam_app
ROOT_PATH = Path(__file__).resolve().parent.parent
if ROOT_PATH.as_posix() not in sys.path:
    sys.path.insert(0, ROOT_PATH.as_posix())

from exam_app.core.models import MarkingScheme, TestDefinition  # noqa: E402
from exam_app.core.services.test_session import TestSession  # noqa: E402
from factories import FakeClock, make_multiple, make_numerical, make_single  # noqa: E402


# Common test fixtures
@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def marking_scheme() -> MarkingScheme:
    return MarkingScheme(correct=4, incorrect=-1, unattempted=0)


@pytest.fixture
def three_single_definition(marking_scheme) -> TestDefinition:
    """Three single-choice questions, option 0 correct everywhere."""
    return TestDefinition(
        test_id="mock-1",
        duration_minutes=10,
        questions=(make_single("q1"), make_single("q2"), make_single("q3")),
        marking_scheme=marking_scheme,
    )


@pytest.fixture
def mixed_definition(marking_scheme) -> TestDefinition:
    return TestDefinition(
        test_id="mock-mixed",
        duration_minutes=30,
        questions=(
            make_single("s1", correct=1),
            make_multiple("m1", correct={0, 2}),
            make_numerical("n1"),
        ),
        marking_scheme=marking_scheme,
    )


@pytest.fixture
def session(three_single_definition, clock) -> TestSession:
    return TestSession(three_single_definition, clock=clock)


@pytest.fixture
def started_session(session) -> TestSession:
    session.start_test()
    return session
