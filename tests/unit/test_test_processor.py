"""Tests for test processor."""

import threading

import pytest

from ctrf_reporter.models.report import TestDetails, TestRecord
from ctrf_reporter.test_processor import TestProcessor, render_cause
from ctrf_reporter.testing.factories import TestDetailsFactory, TestRecordFactory


def _raise_and_capture(message: str) -> ValueError:
    try:
        raise ValueError(message)
    except ValueError as e:
        return e


def test_create_test_copies_details() -> None:
    """Builds a record from the start-time placeholder."""
    details = TestDetails(
        start_time=1_000,
        handle="id-1",
        display_name="test_login",
        tags=("smoke", "auth"),
        file_path="tests/test_auth.py",
    )

    test = TestProcessor().create_test("test_login", details, 1_250)

    assert test.name == "test_login"
    assert test.tags == ["smoke", "auth"]
    assert test.file_path == "tests/test_auth.py"
    assert test.start == 1_000
    assert test.stop == 1_250
    assert test.duration == 250
    assert test.status is None
    assert test.thread_id == threading.current_thread().name


def test_create_test_deduplicates_tags_in_order() -> None:
    """Tags form an ordered set."""
    details = TestDetails(start_time=0, tags=("b", "a", "b"))

    test = TestProcessor().create_test("t", details, 0)

    assert test.tags == ["b", "a"]


def test_create_test_from_unnamed_placeholder() -> None:
    """The caller supplies the name; placeholder names are not required."""
    details = TestDetailsFactory.build(display_name=None)

    test = TestProcessor().create_test("Unknown Test", details, 1_400)

    assert test.name == "Unknown Test"
    assert test.duration == 400
    assert test.tags == ["smoke"]


def test_set_failure_details_keeps_short_trace() -> None:
    """Short traces are stored unchanged in both message and trace."""
    test = TestRecordFactory.build(status="failed")

    TestProcessor(max_message_length=500).set_failure_details(test, "AssertionError")

    assert test.message == "AssertionError"
    assert test.trace == "AssertionError"


def test_set_failure_details_truncates_message() -> None:
    """Long traces are cut to the configured length plus an ellipsis."""
    test = TestRecordFactory.build(status="failed")
    cause = _raise_and_capture("x" * 200)

    TestProcessor(max_message_length=50).set_failure_details(test, cause)

    assert test.message is not None
    assert test.trace is not None
    assert len(test.message) <= 53
    assert test.message.endswith("...")
    assert test.message == test.trace[:50] + "..."
    assert len(test.trace) > len(test.message)


def test_set_failure_details_renders_full_traceback() -> None:
    """Exceptions are rendered with traceback, type and message."""
    test = TestRecordFactory.build(status="failed")
    cause = _raise_and_capture("boom")

    TestProcessor().set_failure_details(test, cause)

    assert test.trace is not None
    assert test.trace.startswith("Traceback (most recent call last):")
    assert "ValueError: boom" in test.trace
    assert "_raise_and_capture" in test.trace


def test_set_failure_details_trace_exactly_at_limit() -> None:
    """A trace exactly as long as the limit is not truncated."""
    test = TestRecord(name="t", status="failed")

    TestProcessor(max_message_length=10).set_failure_details(test, "0123456789")

    assert test.message == "0123456789"


@pytest.mark.parametrize(
    ("cause", "expected"),
    [
        ("already rendered", "already rendered"),
        (RuntimeError("not raised"), "RuntimeError: not raised\n"),
    ],
)
def test_render_cause(cause: BaseException | str, expected: str) -> None:
    """Renders strings as-is and exceptions through traceback formatting."""
    assert render_cause(cause) == expected
