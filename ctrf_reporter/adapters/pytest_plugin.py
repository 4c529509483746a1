"""pytest plugin that writes a CTRF report.

Activated with ``--ctrf PATH``. Registered through the ``pytest11`` entry point.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from ctrf_reporter.config import ConfigError, load_config
from ctrf_reporter.models.report import CtrfReport
from ctrf_reporter.report_manager import CtrfReportManager
from ctrf_reporter.suite_errors import RunContext

log = logging.getLogger(__name__)

TOOL_NAME = "pytest"
PLUGIN_NAME = "ctrf-reporter"

BUILTIN_MARKS = frozenset(
    ["parametrize", "usefixtures", "filterwarnings", "skip", "skipif", "xfail"]
)

SESSION_ERROR_STATUSES = frozenset(
    [
        pytest.ExitCode.INTERRUPTED,
        pytest.ExitCode.INTERNAL_ERROR,
        pytest.ExitCode.USAGE_ERROR,
    ]
)


@dataclass(kw_only=True)
class _TestOutcome:
    """Outcome of a test folded over its setup, call and teardown phases."""

    failure: str | None = None
    skip_reason: str | None = None
    skipped: bool = False


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command line options."""
    group = parser.getgroup("ctrf", "CTRF report")
    group.addoption(
        "--ctrf",
        action="store",
        metavar="PATH",
        default=None,
        help="Write a CTRF JSON report to PATH.",
    )
    group.addoption(
        "--ctrf-max-message-length",
        action="store",
        type=int,
        metavar="N",
        default=None,
        help="Maximum length of failure messages in the CTRF report.",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register the reporter when ``--ctrf`` is given, on the controller only."""
    report_path = config.getoption("ctrf")
    if report_path is None or hasattr(config, "workerinput"):
        return

    try:
        ctrf_config = load_config(
            overrides={
                "report_path": Path(report_path),
                "max_message_length": config.getoption("ctrf_max_message_length"),
            }
        )
    except ConfigError as e:
        raise pytest.UsageError(str(e)) from e

    manager = CtrfReportManager.from_config(
        ctrf_config, tool_name=TOOL_NAME, tool_version=pytest.__version__
    )
    config.pluginmanager.register(CtrfPlugin(manager=manager), PLUGIN_NAME)
    log.debug("CTRF reporter enabled, report path %s", ctrf_config.report_path)


def pytest_unconfigure(config: pytest.Config) -> None:
    """Unregister the reporter."""
    if (plugin := config.pluginmanager.get_plugin(PLUGIN_NAME)) is not None:
        config.pluginmanager.unregister(plugin)


@dataclass(kw_only=True)
class CtrfPlugin:
    """Translates pytest hooks into report manager events."""

    manager: CtrfReportManager
    report: CtrfReport | None = field(default=None, init=False)
    _tags: dict[str, Sequence[str]] = field(default_factory=dict, init=False)
    _outcomes: dict[str, _TestOutcome] = field(default_factory=dict, init=False)
    _file_paths: dict[str, str] = field(default_factory=dict, init=False)
    _collection_errors: list[str] = field(default_factory=list, init=False)

    def pytest_sessionstart(self, session: pytest.Session) -> None:
        """Start the test run."""
        self.manager.start_test_run()

    def pytest_collectreport(self, report: pytest.CollectReport) -> None:
        """Remember collection errors for the run context."""
        if report.failed:
            self._collection_errors.append(f"{report.nodeid}\n{report.longreprtext}")

    def pytest_collection_modifyitems(self, items: Sequence[pytest.Item]) -> None:
        """Capture marker names of each collected test as tags."""
        for item in items:
            names = (m.name for m in item.iter_markers())
            self._tags[item.nodeid] = [
                name for name in dict.fromkeys(names) if name not in BUILTIN_MARKS
            ]

    def pytest_runtest_logstart(
        self, nodeid: str, location: tuple[str, int | None, str]
    ) -> None:
        """Start tracking a test.

        Records are named by node id, which is unique per test.
        """
        self._file_paths[nodeid] = location[0]
        self._start(nodeid)

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        """Fold phase reports and emit one outcome after teardown.

        Rerun plugins report a failed attempt with the ``rerun`` outcome and skip
        its teardown; the attempt is emitted right away and the next one started.
        """
        nodeid = report.nodeid
        outcome = self._outcomes.setdefault(nodeid, _TestOutcome())

        if report.failed or report.outcome == "rerun":
            if outcome.failure is None:
                outcome.failure = report.longreprtext or report.outcome
        elif report.skipped:
            outcome.skipped = True
            outcome.skip_reason = _skip_reason(report)

        if report.outcome == "rerun":
            self._emit(nodeid, self._outcomes.pop(nodeid))
            self._start(nodeid)
        elif report.when == "teardown":
            self._emit(nodeid, self._outcomes.pop(nodeid))

    @pytest.hookimpl(trylast=True)
    def pytest_sessionfinish(
        self, session: pytest.Session, exitstatus: int | pytest.ExitCode
    ) -> None:
        """Finish the run and write the report."""
        self.report = self.manager.finish_test_run(self._run_context(exitstatus))

    def pytest_terminal_summary(
        self, terminalreporter: pytest.TerminalReporter
    ) -> None:
        """Show where the report was written."""
        if self.report is None:
            return
        summary = self.report.results.summary
        terminalreporter.write_sep(
            "-",
            f"CTRF report: {self.manager.file_service.report_path} "
            f"({summary.tests} tests, {summary.failed} failed)",
        )

    def _start(self, nodeid: str) -> None:
        self._outcomes[nodeid] = _TestOutcome()
        self.manager.on_test_start(
            nodeid,
            display_name=nodeid,
            tags=self._tags.get(nodeid, ()),
            file_path=self._file_paths.get(nodeid),
        )

    def _emit(self, nodeid: str, outcome: _TestOutcome) -> None:
        if outcome.failure is not None:
            self.manager.on_test_failure(nodeid, outcome.failure)
        elif outcome.skipped:
            self.manager.on_test_skipped(
                nodeid,
                display_name=nodeid,
                tags=self._tags.get(nodeid, ()),
                file_path=self._file_paths.get(nodeid),
                reason=outcome.skip_reason,
            )
        else:
            self.manager.on_test_success(nodeid)

    def _run_context(self, exitstatus: int | pytest.ExitCode) -> RunContext:
        if self._collection_errors:
            return RunContext(
                execution_exception="Errors during collection:\n"
                + "\n".join(self._collection_errors)
            )
        if exitstatus in SESSION_ERROR_STATUSES:
            return RunContext(
                execution_exception=(
                    "pytest session finished with exit status "
                    f"{pytest.ExitCode(exitstatus).name}"
                )
            )
        return RunContext()


def _skip_reason(report: pytest.TestReport) -> str | None:
    if (reason := getattr(report, "wasxfail", None)) is not None:
        return f"xfail: {reason}" if reason else "xfail"
    if isinstance(report.longrepr, tuple):
        return str(report.longrepr[2])
    return None
