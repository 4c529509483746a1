"""Conversion of suite-level failures into synthetic test records."""

from dataclasses import dataclass

from ctrf_reporter.models.report import TestRecord
from ctrf_reporter.test_processor import TestProcessor

INITIALIZATION_ERROR = "Initialization Error"
EXECUTION_ERROR = "Execution Error"


@dataclass(frozen=True, kw_only=True)
class RunContext:
    """Outcome of the run as seen by the harness that drove it.

    ``execution_exception`` is the suite-level failure, either an exception or an
    already rendered trace.
    """

    execution_exception: BaseException | str | None = None


@dataclass(frozen=True, kw_only=True)
class SuiteExecutionErrorHandler:
    """Handles failures raised outside of any individual test.

    A suite that fails before or after its tests always yields exactly one failing
    record, so the report is never empty or all green when the harness errored.
    """

    test_processor: TestProcessor

    def handle_initialization_error(
        self, context: RunContext, start: int, stop: int
    ) -> TestRecord | None:
        """Build an "Initialization Error" record if the context carries a failure."""
        return self._handle_error(context, INITIALIZATION_ERROR, start, stop)

    def handle_execution_error(
        self, context: RunContext, start: int, stop: int
    ) -> TestRecord | None:
        """Build an "Execution Error" record if the context carries a failure."""
        return self._handle_error(context, EXECUTION_ERROR, start, stop)

    def _handle_error(
        self, context: RunContext, name: str, start: int, stop: int
    ) -> TestRecord | None:
        if context.execution_exception is None:
            return None

        record = TestRecord(
            name=name,
            status="failed",
            start=start,
            stop=stop,
            duration=stop - start,
        )
        self.test_processor.set_failure_details(record, context.execution_exception)
        return record
