"""Filesystem-backed store of report files and their processing state."""

import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO

from tinkoff_sync.exceptions import ReportFormatError, ReportNotFoundError, ReportStoreError
from tinkoff_sync.logging_setup import get_logger
from tinkoff_sync.models import Report, ReportId
from tinkoff_sync.parsers import ParserRegistry, ReportParser

logger = get_logger(__name__)


def report_id_of(path: Path) -> ReportId:
    """Build the identifier of a report file from its name and creation time."""
    stat = path.stat()
    # Birth time where the platform records it, inode change time otherwise
    created = getattr(stat, "st_birthtime", None) or stat.st_ctime
    return ReportId(path.name, datetime.fromtimestamp(created, tz=timezone.utc))


class ReportStore:
    """
    Directory of report files where the file name is the processing state.

    ``statement.csv`` is waiting to be processed, ``statement_processed.csv``
    has been processed. There is no other record of processing history.

    Usage:
        store = ReportStore(Path("~/reports").expanduser())
        for report_id in store.list_unprocessed():
            report = store.find(report_id)
            ...
            store.mark_processed(report_id)
    """

    def __init__(self, base_dir: Path, read_only: bool = False) -> None:
        """
        Initialize store.

        Args:
            base_dir: Directory holding report files
            read_only: Validate but never rename files in mark_processed

        Raises:
            ReportStoreError: If base_dir is not a readable directory
        """
        self.base_dir = Path(base_dir)
        self.read_only = read_only
        logger.info("Checking report directory %s", self.base_dir.resolve())
        if not self.base_dir.is_dir() or not os.access(self.base_dir, os.R_OK):
            raise ReportStoreError(f"Not a readable directory: {self.base_dir}")

    def _scan(self, include_processed: bool) -> list[ReportId]:
        files: list[Path] = []
        for path in self.base_dir.iterdir():
            if not path.is_file():
                continue
            parser_class = ParserRegistry.get_parser_class(path)
            if parser_class is None:
                continue
            if not include_processed and parser_class.is_processed(path):
                continue
            files.append(path)

        return [report_id_of(path) for path in sorted(files, key=lambda p: p.name)]

    def list_all(self) -> list[ReportId]:
        """List every report file, processed or not, sorted by name."""
        return self._scan(include_processed=True)

    def list_unprocessed(self) -> list[ReportId]:
        """List report files not yet marked processed, sorted by name."""
        return self._scan(include_processed=False)

    def find(self, report_id: ReportId) -> Report:
        """
        Parse a report into its operations.

        Args:
            report_id: Report identifier

        Returns:
            Report with freshly parsed operations

        Raises:
            ReportNotFoundError: If the file is missing or unreadable
            ReportFormatError: If the format is unsupported or content is invalid
        """
        path = self.base_dir / report_id.name
        if not path.is_file() or not os.access(path, os.R_OK):
            raise ReportNotFoundError(f"Report not found: {report_id.name}")

        parser = ParserRegistry.get_parser(path)
        if parser is None:
            raise ReportFormatError(f"Unsupported report format: {report_id.name}")

        with open(path, "rb") as f:
            operations = parser.parse(f)

        return Report(report_id=report_id, operations=operations)

    def _parser_class(self, name: str) -> type[ReportParser]:
        parser_class = ParserRegistry.get_parser_class(Path(name))
        if parser_class is None:
            raise ReportStoreError(f"Invalid name of report: {name}")
        return parser_class

    @staticmethod
    def _base_name(name: str, parser_class: type[ReportParser]) -> str:
        return name[: -len(parser_class.extension)]

    def check_processable(self, report_id: ReportId) -> Path:
        """
        Verify a report can be marked processed, without renaming it.

        Args:
            report_id: Report identifier

        Returns:
            Path the report would be renamed to

        Raises:
            ReportNotFoundError: If the report file is missing or not writable
            ReportStoreError: If the report is already processed or the
                processed file exists
        """
        parser_class = self._parser_class(report_id.name)
        if parser_class.is_processed(Path(report_id.name)):
            raise ReportStoreError(f"Report is already processed: {report_id.name}")

        source = self.base_dir / report_id.name
        target = self.base_dir / (
            self._base_name(report_id.name, parser_class) + parser_class.processed_suffix()
        )

        if not source.is_file() or not os.access(source, os.R_OK | os.W_OK):
            raise ReportNotFoundError(f"Report not found: {report_id.name}")
        if target.exists():
            raise ReportStoreError(f"Processed report already exists: {target.name}")
        return target

    def mark_processed(self, report_id: ReportId) -> Path:
        """
        Rename a report to its processed name.

        Args:
            report_id: Report identifier

        Returns:
            Path of the processed file

        Raises:
            ReportNotFoundError: If the report file is missing or not writable
            ReportStoreError: If the report is already processed or the
                processed file exists
        """
        target = self.check_processable(report_id)
        source = self.base_dir / report_id.name

        if self.read_only:
            logger.info("Read-only store, not renaming %s", report_id.name)
            return target

        os.rename(source, target)
        logger.info("Marked report %s as processed", report_id.name)
        return target

    def save(self, name: str, content: BinaryIO | bytes) -> ReportId:
        """
        Store a new report file verbatim.

        Args:
            name: File name of the report
            content: Report bytes or a binary stream

        Returns:
            Identifier of the saved report

        Raises:
            ReportStoreError: If the name is not acceptable or the report (or
                a processed report with the same base name) already exists
        """
        if not name or Path(name).name != name:
            raise ReportStoreError(f"Invalid name of report: {name!r}")

        parser_class = self._parser_class(name)
        if any(p.is_processed(Path(name)) for p in ParserRegistry.get_all_parsers()):
            raise ReportStoreError(f"Saving already processed reports is not allowed: {name}")

        path = self.base_dir / name
        if path.exists():
            raise ReportStoreError(f"Report file already exists: {name}")

        base_name = self._base_name(name, parser_class)
        for other in ParserRegistry.get_all_parsers():
            if (self.base_dir / (base_name + other.processed_suffix())).exists():
                raise ReportStoreError(
                    f"Report file with this name is already processed earlier: {name}"
                )

        with open(path, "xb") as f:
            if isinstance(content, bytes):
                f.write(content)
            else:
                shutil.copyfileobj(content, f)

        logger.info("Saved report %s", name)
        return report_id_of(path)
