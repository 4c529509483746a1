"""Aggregation of test events into a CTRF report."""

import logging
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from ctrf_reporter.composer import CtrfReportComposer
from ctrf_reporter.config import CtrfConfig
from ctrf_reporter.file_service import ReportFileService
from ctrf_reporter.models.report import CtrfReport, TestDetails, TestRecord, TestStatus
from ctrf_reporter.suite_errors import RunContext, SuiteExecutionErrorHandler
from ctrf_reporter.summary import create_summary
from ctrf_reporter.test_processor import TestProcessor

log = logging.getLogger(__name__)

UNKNOWN_TEST = "Unknown Test"


def current_time_millis() -> int:
    """Return wall-clock time as epoch milliseconds."""
    return time.time_ns() // 1_000_000


@dataclass(kw_only=True)
class CtrfReportManager:
    """Owns the records of one test run and turns test events into a report.

    Event sources (test framework adapters) call the ``on_test_*`` methods from
    any worker thread. Records are kept in completion order. ``start_test_run``
    and ``finish_test_run`` are one-shot transitions; a finished manager can be
    started again for a new run.

    Example:
        manager = CtrfReportManager.from_config(config, tool_name="pytest")
        manager.start_test_run()
        manager.on_test_start("tests/test_a.py::test_a", "test_a")
        manager.on_test_success("tests/test_a.py::test_a")
        manager.finish_test_run()

    """

    file_service: ReportFileService
    test_processor: TestProcessor
    suite_error_handler: SuiteExecutionErrorHandler
    composer: CtrfReportComposer
    clock: Callable[[], int] = current_time_millis

    _tests: list[TestRecord] = field(default_factory=list, init=False, repr=False)
    _in_flight: dict[str, TestDetails] = field(
        default_factory=dict, init=False, repr=False
    )
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )
    _run_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )
    _started: bool = field(default=False, init=False, repr=False)
    _run_start_time: int = field(default=0, init=False, repr=False)

    @classmethod
    def from_config(
        cls,
        config: CtrfConfig,
        tool_name: str,
        tool_version: str | None = None,
    ) -> "CtrfReportManager":
        """Create a manager with collaborators built from configuration."""
        test_processor = TestProcessor(max_message_length=config.max_message_length)
        return cls(
            file_service=ReportFileService(report_path=config.report_path),
            test_processor=test_processor,
            suite_error_handler=SuiteExecutionErrorHandler(
                test_processor=test_processor
            ),
            composer=CtrfReportComposer(
                config=config,
                tool_name=tool_name,
                default_tool_version=tool_version,
            ),
        )

    @property
    def tests(self) -> Sequence[TestRecord]:
        """Snapshot of the records collected so far."""
        with self._lock:
            return tuple(self._tests)

    @property
    def is_started(self) -> bool:
        """Whether a run is in progress."""
        return self._started

    def on_test_start(
        self,
        handle: str,
        display_name: str,
        tags: Iterable[str] = (),
        file_path: str | None = None,
    ) -> None:
        """Remember when a test started; a repeated handle replaces the placeholder."""
        self._in_flight[handle] = TestDetails(
            start_time=self.clock(),
            handle=handle,
            display_name=display_name,
            tags=tuple(tags),
            file_path=file_path,
        )

    def on_test_skipped(
        self,
        handle: str,
        display_name: str,
        tags: Iterable[str] = (),
        file_path: str | None = None,
        reason: str | None = None,
    ) -> None:
        """Record a skipped test; skips have no separate start event."""
        now = self.clock()
        details = TestDetails(
            start_time=now,
            handle=handle,
            display_name=display_name,
            tags=tuple(tags),
            file_path=file_path,
        )
        test = self.test_processor.create_test(display_name, details, now)
        test.status = "skipped"
        if reason:
            test.message = reason

        with self._lock:
            self._tests.append(test)

    def on_test_success(self, handle: str) -> None:
        """Record a passed test."""
        self._process_test_result(handle, None, "passed")

    def on_test_failure(self, handle: str, cause: BaseException | str | None) -> None:
        """Record a failed test."""
        self._process_test_result(handle, cause, "failed")

    def on_test_aborted(self, handle: str, cause: BaseException | str | None) -> None:
        """Record an aborted test; aborts are reported as failures."""
        self._process_test_result(handle, cause, "failed")

    def start_test_run(self) -> None:
        """Start the run, seeding it from a previously written report.

        Only the first call takes effect until the run is finished, so several
        event sources may call it safely.
        """
        if not self._compare_and_set(False, True):
            return

        existing_start_time = self.file_service.get_existing_start_time()
        existing_tests = self.file_service.get_existing_tests()

        self._run_start_time = (
            existing_start_time if existing_start_time is not None else self.clock()
        )
        with self._lock:
            self._tests.extend(existing_tests)

        if existing_tests:
            log.info("Merging %d test(s) from existing report", len(existing_tests))
        log.debug("Test run started at %d", self._run_start_time)

    def finish_test_run(self, context: RunContext | None = None) -> CtrfReport | None:
        """Finish the run and persist the report.

        Args:
            context: Outcome of the run from the harness; a carried exception is
                turned into a synthetic failing record

        Returns:
            The composed report, or None if no run was in progress or the report
            could not be composed

        """
        if not self._compare_and_set(True, False):
            return None

        stop_time = self.clock()
        try:
            tests = self._add_suite_error(context, stop_time)
            summary = create_summary(tests, self._run_start_time, stop_time)
            report = self.composer.generate_report(summary, tests)
            self.file_service.write_results_to_file(report)
            return report
        except Exception:
            log.exception("Failed to produce CTRF report")
            return None
        finally:
            with self._lock:
                self._tests.clear()
            self._in_flight.clear()

    def _add_suite_error(
        self, context: RunContext | None, stop_time: int
    ) -> Sequence[TestRecord]:
        with self._lock:
            if not self._tests:
                if context is not None and (
                    error := self.suite_error_handler.handle_initialization_error(
                        context, self._run_start_time, stop_time
                    )
                ):
                    self._tests.append(error)
            elif context is not None and context.execution_exception is not None:
                last_stop = self._tests[-1].stop
                if last_stop is None:
                    last_stop = self._run_start_time
                if error := self.suite_error_handler.handle_execution_error(
                    context, last_stop, stop_time
                ):
                    self._tests.append(error)
            return tuple(self._tests)

    def _process_test_result(
        self, handle: str, cause: BaseException | str | None, status: TestStatus
    ) -> None:
        stop_time = self.clock()
        details = self._in_flight.pop(handle, None)
        if details is None:
            log.debug("No start event for %s, recording as %s", handle, UNKNOWN_TEST)
            details = TestDetails(start_time=stop_time, display_name=UNKNOWN_TEST)

        test = self.test_processor.create_test(
            details.display_name or UNKNOWN_TEST, details, stop_time
        )
        test.status = status
        if cause is not None:
            self.test_processor.set_failure_details(test, cause)

        with self._lock:
            self._handle_reruns_and_flaky(test)
            self._tests.append(test)

    def _handle_reruns_and_flaky(self, test: TestRecord) -> None:
        previous = [t for t in self._tests if t.name == test.name]
        if previous:
            test.retries = len(previous)

        if test.status == "passed":
            had_previous_failures = any(t.status == "failed" for t in previous)
            if had_previous_failures or (
                test.retries is not None and test.retries > 0
            ):
                test.flaky = True

    def _compare_and_set(self, expected: bool, value: bool) -> bool:
        with self._run_lock:
            if self._started != expected:
                return False
            self._started = value
            return True
