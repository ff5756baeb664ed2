"""Tinkoff CSV statement parser."""

import csv
import io
from datetime import date
from typing import BinaryIO, ClassVar

from tinkoff_sync.exceptions import ReportFormatError
from tinkoff_sync.logging_setup import get_logger
from tinkoff_sync.models import Operation
from tinkoff_sync.parsers.base import ParserRegistry, ReportParser
from tinkoff_sync.utils import map_currency, parse_date, parse_decimal, parse_timestamp

logger = get_logger(__name__)

ENCODING = "cp1251"
DELIMITER = ";"

# Column titles of the export header
COL_STATUS = "Статус"
COL_OPERATION_DATE = "Дата операции"
COL_PAYMENT_DATE = "Дата платежа"
COL_CARD = "Номер карты"
COL_OPERATION_AMOUNT = "Сумма операции"
COL_OPERATION_CURRENCY = "Валюта операции"
COL_PAYMENT_AMOUNT = "Сумма платежа"
COL_PAYMENT_CURRENCY = "Валюта платежа"
COL_CASHBACK = "Кэшбэк"
COL_CATEGORY = "Категория"
COL_MCC = "MCC"
COL_DESCRIPTION = "Описание"
COL_BONUS = "Бонусы (включая кэшбэк)"

REQUIRED_COLUMNS = (
    COL_STATUS,
    COL_OPERATION_DATE,
    COL_PAYMENT_DATE,
    COL_CARD,
    COL_OPERATION_AMOUNT,
    COL_OPERATION_CURRENCY,
    COL_PAYMENT_AMOUNT,
    COL_PAYMENT_CURRENCY,
    COL_CASHBACK,
    COL_CATEGORY,
    COL_MCC,
    COL_DESCRIPTION,
    COL_BONUS,
)

FAILED_STATUS = "FAILED"


def _later(first: date | None, second: date) -> date | None:
    if first is None:
        return None
    return max(first, second)


@ParserRegistry.register
class CsvReportParser(ReportParser):
    """Parser for the semicolon-separated statement export."""

    format_name: ClassVar[str] = "CSV"
    extension: ClassVar[str] = ".csv"

    def __init__(self) -> None:
        self.failed_skipped = 0

    def parse(self, stream: BinaryIO) -> list[Operation]:
        """Parse CSV rows into operations, dropping failed ones."""
        operations: list[Operation] = []
        self.failed_skipped = 0

        text = io.TextIOWrapper(stream, encoding=ENCODING, newline="")
        try:
            reader = csv.DictReader(text, delimiter=DELIMITER, skipinitialspace=True)
            header = [name.strip() for name in reader.fieldnames or []]
            missing = [col for col in REQUIRED_COLUMNS if col not in header]
            if missing:
                raise ReportFormatError(f"Missing columns: {', '.join(missing)}")
            reader.fieldnames = header

            for row in reader:
                values = {k: (v or "").strip() for k, v in row.items() if k is not None}

                # Declined operations never reach the account
                if values[COL_STATUS].upper() == FAILED_STATUS:
                    self.failed_skipped += 1
                    continue

                operations.append(self._parse_row(values, reader.line_num))
        except UnicodeDecodeError as e:
            raise ReportFormatError(f"Report is not {ENCODING} encoded: {e}") from e
        except csv.Error as e:
            raise ReportFormatError(f"Malformed CSV: {e}") from e
        finally:
            # Leave the caller's stream open
            text.detach()

        if self.failed_skipped:
            logger.debug("Skipped %d failed rows", self.failed_skipped)
        return operations

    @staticmethod
    def _parse_row(values: dict[str, str], line_num: int) -> Operation:
        timestamp = parse_timestamp(values[COL_OPERATION_DATE])
        if timestamp is None:
            raise ReportFormatError(
                f"Line {line_num}: invalid operation date {values[COL_OPERATION_DATE]!r}"
            )

        try:
            return Operation(
                operation_timestamp=timestamp,
                payment_date=_later(parse_date(values[COL_PAYMENT_DATE]), timestamp.date()),
                card_mask=values[COL_CARD] or None,
                operation_amount=parse_decimal(values[COL_OPERATION_AMOUNT]),  # type: ignore[arg-type]
                operation_currency=map_currency(values[COL_OPERATION_CURRENCY] or None),  # type: ignore[arg-type]
                payment_amount=parse_decimal(values[COL_PAYMENT_AMOUNT]),  # type: ignore[arg-type]
                payment_currency=map_currency(values[COL_PAYMENT_CURRENCY] or None),  # type: ignore[arg-type]
                cashback=parse_decimal(values[COL_CASHBACK]),
                bonus=parse_decimal(values[COL_BONUS]),
                category=values[COL_CATEGORY] or None,
                mcc_code=values[COL_MCC] or None,
                description=values[COL_DESCRIPTION],
            )
        except ValueError as e:
            raise ReportFormatError(f"Line {line_num}: {e}") from e
