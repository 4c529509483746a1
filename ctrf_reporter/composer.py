"""Composition of the final CTRF document."""

from collections.abc import Sequence
from dataclasses import dataclass

from ctrf_reporter.config import CtrfConfig
from ctrf_reporter.models.report import (
    CtrfReport,
    Environment,
    Results,
    Summary,
    TestRecord,
    Tool,
)
from ctrf_reporter.startup_duration import process_startup_duration


@dataclass(frozen=True, kw_only=True)
class CtrfReportComposer:
    """Wraps a summary and records into a CTRF document with tool and environment."""

    config: CtrfConfig
    tool_name: str
    default_tool_version: str | None = None

    def generate_report(
        self, summary: Summary, tests: Sequence[TestRecord]
    ) -> CtrfReport:
        """Build the report document.

        Args:
            summary: Summary of the run
            tests: Records in completion order

        Returns:
            The complete document, ready to serialize

        """
        if self.config.calculate_startup_duration:
            summary = process_startup_duration(summary, tests)

        return CtrfReport(
            results=Results(
                tool=self._compose_tool(),
                summary=summary,
                tests=list(tests),
                environment=self._compose_environment(),
            )
        )

    def _compose_tool(self) -> Tool:
        return Tool(
            name=self.tool_name,
            version=self.config.tool_version or self.default_tool_version,
        )

    def _compose_environment(self) -> Environment | None:
        environment = Environment(
            report_name=self.config.report_name,
            app_name=self.config.app_name,
            app_version=self.config.app_version,
            build_name=self.config.build_name,
            build_number=self.config.build_number,
            build_url=self.config.build_url,
            repository_name=self.config.repository_name,
            repository_url=self.config.repository_url,
            commit=self.config.commit,
            branch_name=self.config.branch_name,
            os_platform=self.config.os_platform,
            os_release=self.config.os_release,
            os_version=self.config.os_version,
            test_environment=self.config.test_environment,
        )
        return None if environment.is_empty() else environment
