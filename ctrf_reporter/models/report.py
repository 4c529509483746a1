"""Models for the Common Test Report Format (CTRF) document."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import ConfigDict, Field

from ctrf_reporter.models.base import Model

REPORT_FORMAT = "CTRF"
SPEC_VERSION = "0.0.0"

TestStatus = Literal["passed", "failed", "skipped", "pending", "other"]


class TestRecord(Model):
    """One observed test outcome.

    Records are mutable while a run is in progress: the aggregation engine sets the
    status, failure details and rerun information after the record is created.
    """

    __test__ = False

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    name: str = Field(..., description="Test display name")
    status: TestStatus | None = Field(default=None, description="Test outcome")
    duration: int = Field(default=0, description="Duration in milliseconds")
    start: int | None = Field(default=None, description="Start time, epoch millis")
    stop: int | None = Field(default=None, description="Stop time, epoch millis")
    suite: str | None = Field(default=None, description="Logical suite name")
    message: str | None = Field(
        default=None, description="Failure or skip message, length-capped"
    )
    trace: str | None = Field(default=None, description="Full failure trace")
    tags: list[str] | None = Field(default=None, description="Ordered test tags")
    file_path: str | None = Field(default=None, description="Source file or class")
    retries: int | None = Field(
        default=None, description="Number of prior attempts with the same name"
    )
    flaky: bool | None = Field(default=None, description="Passed after a retry")
    thread_id: str | None = Field(
        default=None, description="Name of the thread that reported the outcome"
    )
    extra: dict[str, Any] | None = Field(
        default=None, description="Tool-specific metadata"
    )


class Summary(Model):
    """Aggregated counts and run boundaries."""

    tests: int = Field(..., ge=0)
    passed: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    pending: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
    other: int = Field(..., ge=0)
    suites: int | None = None
    start: int
    stop: int
    extra: dict[str, Any] | None = None


class Tool(Model):
    """Test tool that produced the report."""

    name: str
    version: str | None = None
    extra: dict[str, Any] | None = None


class Environment(Model):
    """Build, repository and platform metadata."""

    report_name: str | None = None
    app_name: str | None = None
    app_version: str | None = None
    build_name: str | None = None
    build_number: str | None = None
    build_url: str | None = None
    repository_name: str | None = None
    repository_url: str | None = None
    commit: str | None = None
    branch_name: str | None = None
    os_platform: str | None = None
    os_release: str | None = None
    os_version: str | None = None
    test_environment: str | None = None
    extra: dict[str, Any] | None = None

    def is_empty(self) -> bool:
        """Return True when no metadata is set."""
        return not self.model_dump(exclude_none=True)


class Results(Model):
    """Results section of the report."""

    tool: Tool
    summary: Summary
    tests: Sequence[TestRecord] = Field(default_factory=list)
    environment: Environment | None = None
    extra: dict[str, Any] | None = None


class CtrfReport(Model):
    """Top-level CTRF document."""

    report_format: Literal["CTRF"] = REPORT_FORMAT
    spec_version: str = Field(default=SPEC_VERSION, pattern=r"^\d+\.\d+\.\d+$")
    results: Results
    extra: dict[str, Any] | None = None

    def to_json(self, indent: int = 2) -> str:
        """Serialize to CTRF JSON, omitting unset fields."""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)

    @classmethod
    def from_json(cls, data: str | bytes) -> "CtrfReport":
        """Parse a CTRF JSON document."""
        return cls.model_validate_json(data)


@dataclass(frozen=True, kw_only=True)
class TestDetails:
    """In-flight placeholder for a started test that has no outcome yet."""

    __test__ = False

    start_time: int
    handle: str | None = None
    display_name: str | None = None
    tags: Sequence[str] = field(default_factory=tuple)
    file_path: str | None = None
