"""Base parser class and registry for report formats."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, ClassVar

from tinkoff_sync.models import Operation

PROCESSED_MARKER = "_processed"


class ReportParser(ABC):
    """Abstract base class for report format parsers."""

    # Class attributes to be overridden by subclasses
    format_name: ClassVar[str] = "Unknown"
    extension: ClassVar[str] = ""  # Lower-case, with the leading dot

    @classmethod
    def processed_suffix(cls) -> str:
        """Suffix that replaces the extension once a report is processed."""
        return f"{PROCESSED_MARKER}{cls.extension}"

    @classmethod
    def can_parse(cls, filepath: Path) -> bool:
        """
        Check if this parser handles the given file.

        Args:
            filepath: Report path (only the name is inspected)

        Returns:
            True if the extension matches, case-insensitively
        """
        return filepath.name.lower().endswith(cls.extension)

    @classmethod
    def is_processed(cls, filepath: Path) -> bool:
        """Check if the file name carries the processed marker."""
        return filepath.name.lower().endswith(cls.processed_suffix())

    @abstractmethod
    def parse(self, stream: BinaryIO) -> list[Operation]:
        """
        Parse report content and return operations in file order.

        Args:
            stream: Binary stream positioned at the start of the report

        Returns:
            List of Operation objects

        Raises:
            ReportFormatError: If the report cannot be decoded
        """
        pass


class ParserRegistry:
    """Registry for report parsers with detection by file extension."""

    _parsers: ClassVar[list[type[ReportParser]]] = []

    @classmethod
    def register(cls, parser_class: type[ReportParser]) -> type[ReportParser]:
        """
        Register a parser class. Can be used as a decorator.

        Example:
            @ParserRegistry.register
            class QifReportParser(ReportParser):
                ...
        """
        if parser_class not in cls._parsers:
            cls._parsers.append(parser_class)
        return parser_class

    @classmethod
    def get_parser_class(cls, filepath: Path) -> type[ReportParser] | None:
        """Get the parser class responsible for the given file."""
        for parser_class in cls._parsers:
            if parser_class.can_parse(filepath):
                return parser_class
        return None

    @classmethod
    def get_parser(cls, filepath: Path) -> ReportParser | None:
        """
        Get a parser instance for the given file.

        Args:
            filepath: Report path

        Returns:
            Parser instance if found, None otherwise
        """
        parser_class = cls.get_parser_class(filepath)
        return parser_class() if parser_class else None

    @classmethod
    def get_all_parsers(cls) -> list[type[ReportParser]]:
        """Get all registered parser classes."""
        return cls._parsers.copy()
