"""CLI entry point for inspecting CTRF reports."""

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from ctrf_reporter.file_service import ReportFileService
from ctrf_reporter.models.report import CtrfReport, TestRecord

STATUS_SYMBOLS = {
    "passed": "✓",
    "failed": "✗",
    "skipped": "↷",
    "pending": "…",
    "other": "?",
}

EXIT_OK = 0
EXIT_FAILED_TESTS = 1
EXIT_UNREADABLE = 2


def log_results_summary(log: logging.Logger, tests: Sequence[TestRecord]) -> None:
    """Log a formatted line per test, with failure messages."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for test in tests:
        symbol = STATUS_SYMBOLS.get(test.status or "", "?")
        log.info(
            "%s %s: %s (%dms)",
            symbol,
            test.name,
            test.status or "unknown",
            test.duration,
        )
        if test.flaky:
            log.info("  Flaky after %d retries", test.retries or 0)
        if test.status == "failed" and test.message:
            log.info("  Message: %s", test.message.splitlines()[0])


def format_output(report: CtrfReport) -> dict[str, Any]:
    """Format the report summary for JSON output."""
    summary = report.results.summary
    return {
        "tool": report.results.tool.name,
        "tests": summary.tests,
        "passed": summary.passed,
        "failed": summary.failed,
        "skipped": summary.skipped,
        "pending": summary.pending,
        "other": summary.other,
        "flaky": sum(1 for test in report.results.tests if test.flaky),
        "duration": summary.stop - summary.start,
    }


def run(report_path: Path) -> int:
    """Summarize a report and return exit code."""
    log = logging.getLogger("ctrf_reporter")

    report = ReportFileService(report_path=report_path).load_existing_report()
    if report is None:
        log.error("No readable CTRF report at %s", report_path)
        return EXIT_UNREADABLE

    log_results_summary(log, report.results.tests)
    print(json.dumps(format_output(report), indent=2))

    return EXIT_FAILED_TESTS if report.results.summary.failed else EXIT_OK


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Summarize a CTRF test report")
    parser.add_argument(
        "--report",
        type=Path,
        default=Path("ctrf-report.json"),
        help="Path to the CTRF JSON report (default: ctrf-report.json)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    sys.exit(run(args.report))


if __name__ == "__main__":  # pragma: no cover
    main()
