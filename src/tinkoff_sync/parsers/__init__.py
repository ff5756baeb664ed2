"""Report parsers package."""

from tinkoff_sync.parsers.base import ParserRegistry, ReportParser
from tinkoff_sync.parsers.csv_report import CsvReportParser
from tinkoff_sync.parsers.ofx import OfxDecoder, OfxReportParser

__all__ = [
    "ReportParser",
    "ParserRegistry",
    "CsvReportParser",
    "OfxDecoder",
    "OfxReportParser",
]
