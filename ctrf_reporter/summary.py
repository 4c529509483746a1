"""Summary statistics for a list of test records."""

from collections import Counter
from collections.abc import Sequence

from ctrf_reporter.models.report import Summary, TestRecord


def create_summary(tests: Sequence[TestRecord], start: int, stop: int) -> Summary:
    """Count records by status.

    Records without a status are included in ``tests`` but in none of the
    status buckets.
    """
    counts = Counter(test.status for test in tests)
    return Summary(
        tests=len(tests),
        passed=counts["passed"],
        failed=counts["failed"],
        pending=counts["pending"],
        skipped=counts["skipped"],
        other=counts["other"],
        start=start,
        stop=stop,
    )
