"""Tests for CLI module."""

import json
import logging
import sys
from pathlib import Path

import pytest

from ctrf_reporter.cli import format_output, log_results_summary, main, run
from ctrf_reporter.models.report import CtrfReport, Results, TestRecord, Tool
from ctrf_reporter.testing.factories import SummaryFactory, TestRecordFactory


def _report(*tests: TestRecord, failed: int = 0) -> CtrfReport:
    return CtrfReport(
        results=Results(
            tool=Tool(name="pytest", version="8.3.0"),
            summary=SummaryFactory.build(
                tests=len(tests),
                passed=len(tests) - failed,
                failed=failed,
                pending=0,
                skipped=0,
                other=0,
                start=1_000,
                stop=4_500,
            ),
            tests=list(tests),
        )
    )


def test_log_results_summary_passed(caplog: pytest.LogCaptureFixture) -> None:
    """Logs passed tests with checkmark symbol."""
    tests = [TestRecordFactory.build(name="test_login", duration=12)]

    with caplog.at_level(logging.INFO):
        log_results_summary(logging.getLogger(), tests)

    assert "Test Results Summary:" in caplog.text
    assert "✓ test_login: passed (12ms)" in caplog.text


def test_log_results_summary_failure_message(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Logs the first line of the failure message."""
    tests = [
        TestRecordFactory.build(
            name="test_checkout",
            status="failed",
            duration=7,
            message="AssertionError: totals differ\nassert 3 == 4",
        )
    ]

    with caplog.at_level(logging.INFO):
        log_results_summary(logging.getLogger(), tests)

    assert "✗ test_checkout: failed (7ms)" in caplog.text
    assert "Message: AssertionError: totals differ" in caplog.text
    assert "assert 3 == 4" not in caplog.text


def test_log_results_summary_flaky(caplog: pytest.LogCaptureFixture) -> None:
    """Logs retry count of flaky tests."""
    tests = [TestRecordFactory.build(name="test_search", retries=2, flaky=True)]

    with caplog.at_level(logging.INFO):
        log_results_summary(logging.getLogger(), tests)

    assert "Flaky after 2 retries" in caplog.text


def test_log_results_summary_skipped(caplog: pytest.LogCaptureFixture) -> None:
    """Logs skipped tests without their message."""
    tests = [
        TestRecordFactory.build(
            name="test_legacy", status="skipped", duration=0, message="legacy"
        )
    ]

    with caplog.at_level(logging.INFO):
        log_results_summary(logging.getLogger(), tests)

    assert "↷ test_legacy: skipped (0ms)" in caplog.text
    assert "Message:" not in caplog.text


def test_format_output() -> None:
    """Formats totals, flaky count and duration."""
    report = _report(
        TestRecordFactory.build(name="a"),
        TestRecordFactory.build(name="a", retries=1, flaky=True),
        TestRecordFactory.build(name="b", status="failed"),
        failed=1,
    )

    assert format_output(report) == {
        "tool": "pytest",
        "tests": 3,
        "passed": 2,
        "failed": 1,
        "skipped": 0,
        "pending": 0,
        "other": 0,
        "flaky": 1,
        "duration": 3_500,
    }


def test_format_output_empty() -> None:
    """Returns zero totals when the report has no tests."""
    output = format_output(_report())

    assert output["tests"] == 0
    assert output["flaky"] == 0


class TestRun:
    """Tests for run function."""

    def test_returns_zero_when_all_tests_pass(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Returns 0 and prints totals when nothing failed."""
        path = tmp_path / "ctrf-report.json"
        path.write_text(_report(TestRecordFactory.build(name="a")).to_json())

        exit_code = run(path)

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out)["passed"] == 1

    def test_returns_one_when_test_fails(self, tmp_path: Path) -> None:
        """Returns 1 when any test failed."""
        path = tmp_path / "ctrf-report.json"
        path.write_text(
            _report(TestRecordFactory.build(name="a", status="failed"), failed=1)
            .to_json()
        )

        assert run(path) == 1

    def test_returns_two_when_report_missing(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Returns 2 when there is no readable report."""
        with caplog.at_level(logging.ERROR):
            exit_code = run(tmp_path / "missing.json")

        assert exit_code == 2
        assert "No readable CTRF report" in caplog.text

    def test_returns_two_when_report_malformed(self, tmp_path: Path) -> None:
        """Returns 2 when the report is not valid CTRF."""
        path = tmp_path / "ctrf-report.json"
        path.write_text("[]")

        assert run(path) == 2


def test_main_exits_with_run_result(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Parses the report option and exits with the run result."""
    path = tmp_path / "ctrf-report.json"
    path.write_text(
        _report(TestRecordFactory.build(name="a", status="failed"), failed=1).to_json()
    )
    monkeypatch.setattr(sys, "argv", ["ctrf-report", "--report", str(path)])

    with pytest.raises(SystemExit) as exc_info:
        main()

    assert exc_info.value.code == 1
