"""unittest result listener that writes a CTRF report."""

import platform
import unittest
from types import TracebackType
from typing import Any, TextIO, TypeAlias

from ctrf_reporter.config import CtrfConfig, load_config
from ctrf_reporter.report_manager import CtrfReportManager

TOOL_NAME = "unittest"

ExcInfo: TypeAlias = tuple[type[BaseException], BaseException, TracebackType | None]


class CtrfTestResult(unittest.TextTestResult):
    """Text result that also forwards every outcome to a report manager.

    The run boundaries come from ``startTestRun``/``stopTestRun``; the harness has
    no suite-level failure context, so class and module fixture errors appear as
    failed records of their own. Records are named by ``test.id()``.
    """

    def __init__(
        self,
        stream: TextIO,
        descriptions: bool,
        verbosity: int,
        *,
        manager: CtrfReportManager,
        **kwargs: Any,
    ) -> None:
        super().__init__(stream, descriptions, verbosity, **kwargs)
        self.manager = manager
        self._failed_subtests: set[str] = set()

    def startTestRun(self) -> None:  # noqa: N802
        super().startTestRun()
        self.manager.start_test_run()

    def stopTestRun(self) -> None:  # noqa: N802
        super().stopTestRun()
        self.manager.finish_test_run(None)

    def startTest(self, test: unittest.TestCase) -> None:  # noqa: N802
        super().startTest(test)
        self.manager.on_test_start(
            test.id(),
            display_name=test.id(),
            file_path=_class_name(test),
        )

    def addSuccess(self, test: unittest.TestCase) -> None:  # noqa: N802
        super().addSuccess(test)
        self.manager.on_test_success(test.id())

    def addUnexpectedSuccess(self, test: unittest.TestCase) -> None:  # noqa: N802
        super().addUnexpectedSuccess(test)
        self.manager.on_test_success(test.id())

    def addFailure(self, test: unittest.TestCase, err: ExcInfo) -> None:  # noqa: N802
        super().addFailure(test, err)
        self.manager.on_test_failure(test.id(), err[1])

    def addError(self, test: unittest.TestCase, err: ExcInfo) -> None:  # noqa: N802
        super().addError(test, err)
        if not isinstance(test, unittest.TestCase):
            # class or module fixture error, reported without startTest
            self.manager.on_test_start(test.id(), display_name=test.id())
        self.manager.on_test_aborted(test.id(), err[1])

    def addSkip(self, test: unittest.TestCase, reason: str) -> None:  # noqa: N802
        super().addSkip(test, reason)
        self.manager.on_test_skipped(
            test.id(),
            display_name=test.id(),
            file_path=_class_name(test),
            reason=reason,
        )

    def addExpectedFailure(  # noqa: N802
        self, test: unittest.TestCase, err: ExcInfo
    ) -> None:
        super().addExpectedFailure(test, err)
        self.manager.on_test_skipped(
            test.id(),
            display_name=test.id(),
            file_path=_class_name(test),
            reason="expected failure",
        )

    def addSubTest(  # noqa: N802
        self,
        test: unittest.TestCase,
        subtest: unittest.TestCase,
        err: ExcInfo | None,
    ) -> None:
        super().addSubTest(test, subtest, err)
        if err is None or test.id() in self._failed_subtests:
            return
        self._failed_subtests.add(test.id())
        if issubclass(err[0], test.failureException):
            self.manager.on_test_failure(test.id(), err[1])
        else:
            self.manager.on_test_aborted(test.id(), err[1])


class CtrfTestRunner(unittest.TextTestRunner):
    """Text runner whose results are also written as a CTRF report."""

    def __init__(
        self,
        *args: Any,
        manager: CtrfReportManager | None = None,
        config: CtrfConfig | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        if manager is None:
            manager = CtrfReportManager.from_config(
                config or load_config(),
                tool_name=TOOL_NAME,
                tool_version=platform.python_version(),
            )
        self.manager = manager

    def _makeResult(self) -> CtrfTestResult:  # noqa: N802
        return CtrfTestResult(
            self.stream, self.descriptions, self.verbosity, manager=self.manager
        )


def _class_name(test: unittest.TestCase) -> str | None:
    # subtests report against their parent case
    test = getattr(test, "test_case", test)
    if not isinstance(test, unittest.TestCase):
        return None
    cls = type(test)
    return f"{cls.__module__}.{cls.__qualname__}"
