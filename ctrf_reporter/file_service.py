"""Persistence of CTRF reports on the filesystem."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from ctrf_reporter.models.report import CtrfReport, TestRecord

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ReportFileService:
    """Reads and writes the report at a configured path.

    Nothing here raises: a reporting failure must not fail the test run that
    produced it.
    """

    report_path: Path

    def write_results_to_file(self, report: CtrfReport) -> bool:
        """Write the report as JSON, creating parent directories as needed.

        An existing file is overwritten with a warning.

        Returns:
            True if the file was written

        """
        path = self.report_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)

            if path.exists():
                log.warning("File already exists and will be overwritten: %s", path)

            path.write_text(report.to_json())
        except PermissionError as e:
            log.error("Access denied: %s - %s", path, e)
        except FileExistsError as e:
            log.error("File already exists: %s - %s", path, e)
        except OSError as e:
            log.error("Failed to write results to file: %s - %s", path, e)
        else:
            log.info("CTRF report written to %s", path)
            return True
        return False

    def load_existing_report(self) -> CtrfReport | None:
        """Load a previously written report, or None if absent or unparsable."""
        path = self.report_path
        try:
            if not path.is_file():
                return None
            return CtrfReport.from_json(path.read_bytes())
        except (OSError, ValidationError) as e:
            log.warning("Ignoring unreadable existing report %s: %s", path, e)
            return None

    def get_existing_start_time(self) -> int | None:
        """Return the summary start time of the existing report, if any."""
        if (report := self.load_existing_report()) is None:
            return None
        return report.results.summary.start

    def get_existing_tests(self) -> Sequence[TestRecord]:
        """Return the records of the existing report, or an empty tuple."""
        if (report := self.load_existing_report()) is None:
            return ()
        return tuple(report.results.tests)
