"""Startup duration metric for the report summary."""

from collections.abc import Sequence

from ctrf_reporter.models.report import Summary, TestRecord

STARTUP_DURATION_KEY = "startupDuration"


def process_startup_duration(summary: Summary, tests: Sequence[TestRecord]) -> Summary:
    """Add the time between run start and the earliest test start to summary extra.

    Args:
        summary: Summary of the run
        tests: Records of the run

    Returns:
        A copy of the summary with ``extra["startupDuration"]`` set, or the summary
        unchanged when there is nothing to measure

    """
    starts = [test.start for test in tests if test.start is not None]
    if not starts or summary.start <= 0:
        return summary

    extra = dict(summary.extra or {})
    extra[STARTUP_DURATION_KEY] = min(starts) - summary.start
    return summary.model_copy(update={"extra": extra})
