"""Tests for report parsers."""

import io
from collections.abc import Callable
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from xml.etree import ElementTree

import pytest

from tinkoff_sync.exceptions import ReportFormatError
from tinkoff_sync.models import Operation
from tinkoff_sync.parsers import CsvReportParser, OfxReportParser, ParserRegistry
from tinkoff_sync.parsers.ofx import OfxDecoder

OK_ROW = [
    "21.02.2020 20:00:31",
    "21.02.2020",
    "*1234",
    "OK",
    "2000",
    "RUB",
    "2000",
    "RUB",
    "",
    "Финан. услуги",
    "6012",
    "Перевод с карты",
    "0",
]


def row(**changes: str) -> list[str]:
    """Return OK_ROW with some columns replaced, by column index name."""
    columns = {
        "timestamp": 0,
        "payment_date": 1,
        "card": 2,
        "status": 3,
        "amount": 4,
        "currency": 5,
        "payment_amount": 6,
        "cashback": 8,
        "mcc": 10,
    }
    values = list(OK_ROW)
    for name, value in changes.items():
        values[columns[name]] = value
    return values


class TestParserRegistry:
    """Tests for parser detection by extension."""

    def test_detects_csv(self) -> None:
        """Test CSV detection is case-insensitive."""
        assert isinstance(ParserRegistry.get_parser(Path("a.csv")), CsvReportParser)
        assert isinstance(ParserRegistry.get_parser(Path("A.CSV")), CsvReportParser)

    def test_detects_ofx(self) -> None:
        """Test OFX detection."""
        assert isinstance(ParserRegistry.get_parser(Path("a.ofx")), OfxReportParser)

    def test_unknown_extension(self) -> None:
        """Test unknown files get no parser."""
        assert ParserRegistry.get_parser(Path("a.xls")) is None

    def test_processed_marker(self) -> None:
        """Test processed names are recognized per format."""
        assert CsvReportParser.is_processed(Path("a_processed.csv")) is True
        assert CsvReportParser.is_processed(Path("a_PROCESSED.CSV")) is True
        assert CsvReportParser.is_processed(Path("a.csv")) is False
        assert OfxReportParser.processed_suffix() == "_processed.ofx"


class TestCsvReportParser:
    """Tests for the CSV statement parser."""

    def test_parse_fixture(self, csv_file: Path) -> None:
        """Test parsing the statement fixture."""
        with open(csv_file, "rb") as f:
            operations = CsvReportParser().parse(f)

        assert len(operations) == 4

        op = operations[1]
        assert op.operation_timestamp == datetime(2023, 3, 25, 15, 0, 0)
        assert op.payment_date == date(2023, 3, 25)
        assert op.operation_amount == Decimal("-113.50")
        assert op.operation_currency == "RUR"
        assert op.mcc_code == "5411"
        assert op.category == "Супермаркеты"
        assert op.description == "Пятерочка"
        assert op.bonus == Decimal("1.00")
        assert op.account_hint is None

    def test_failed_rows_dropped(self, make_csv: Callable[[list[list[str]]], bytes]) -> None:
        """Test FAILED rows are skipped in any letter case."""
        content = make_csv([row(status="FAILED"), row(), row(status="failed")])
        parser = CsvReportParser()
        operations = parser.parse(io.BytesIO(content))

        assert len(operations) == 1
        assert parser.failed_skipped == 2

    def test_scenario_row(self, make_csv: Callable[[list[list[str]]], bytes]) -> None:
        """Test a complete settled card row."""
        [op] = CsvReportParser().parse(io.BytesIO(make_csv([row()])))

        assert op.operation_timestamp == datetime(2020, 2, 21, 20, 0, 31)
        assert op.payment_date == date(2020, 2, 21)
        assert op.card_mask == "*1234"
        assert op.operation_amount == Decimal("2000")
        assert op.payment_currency == "RUR"
        assert op.cashback is None
        assert op.bonus == Decimal("0")
        assert op.is_card_operation is True
        assert op.is_hold is False

    def test_missing_payment_date_is_hold(
        self, make_csv: Callable[[list[list[str]]], bytes]
    ) -> None:
        """Test an empty payment date produces a hold."""
        [op] = CsvReportParser().parse(io.BytesIO(make_csv([row(payment_date="")])))
        assert op.payment_date is None
        assert op.is_hold is True

    def test_payment_date_not_before_operation(
        self, make_csv: Callable[[list[list[str]]], bytes]
    ) -> None:
        """Test payment date earlier than the operation is raised to it."""
        [op] = CsvReportParser().parse(io.BytesIO(make_csv([row(payment_date="20.02.2020")])))
        assert op.payment_date == date(2020, 2, 21)

    def test_optional_fields_absent(self, make_csv: Callable[[list[list[str]]], bytes]) -> None:
        """Test empty card, MCC and unparsable cashback become None."""
        content = make_csv([row(card="", mcc="", cashback="n/a")])
        [op] = CsvReportParser().parse(io.BytesIO(content))

        assert op.card_mask is None
        assert op.mcc_code is None
        assert op.cashback is None
        assert op.is_card_operation is False

    def test_short_mcc_padded(self, make_csv: Callable[[list[list[str]]], bytes]) -> None:
        """Test MCC codes are padded to four digits."""
        [op] = CsvReportParser().parse(io.BytesIO(make_csv([row(mcc="742")])))
        assert op.mcc_code == "0742"

    def test_malformed_timestamp_is_fatal(
        self, make_csv: Callable[[list[list[str]]], bytes]
    ) -> None:
        """Test an unparsable operation date fails the whole report."""
        content = make_csv([row(), row(timestamp="21.02.2020")])
        with pytest.raises(ReportFormatError, match="operation date"):
            CsvReportParser().parse(io.BytesIO(content))

    def test_malformed_amount_is_fatal(
        self, make_csv: Callable[[list[list[str]]], bytes]
    ) -> None:
        """Test an unparsable mandatory amount fails the whole report."""
        content = make_csv([row(amount="two thousand")])
        with pytest.raises(ReportFormatError, match="operation_amount"):
            CsvReportParser().parse(io.BytesIO(content))

    def test_missing_column(self) -> None:
        """Test a header without required columns is rejected."""
        content = '"Дата операции";"Сумма операции"\r\n"21.02.2020 20:00:31";"1"\r\n'
        with pytest.raises(ReportFormatError, match="Missing columns"):
            CsvReportParser().parse(io.BytesIO(content.encode("cp1251")))

    def test_leaves_stream_open(self, make_csv: Callable[[list[list[str]]], bytes]) -> None:
        """Test the caller's stream is not closed by parsing."""
        stream = io.BytesIO(make_csv([row()]))
        CsvReportParser().parse(stream)
        assert stream.closed is False


class TestOfxReportParser:
    """Tests for the OFX statement parser."""

    @pytest.fixture
    def operations(self, ofx_file: Path) -> list[Operation]:
        with open(ofx_file, "rb") as f:
            return OfxReportParser().parse(f)

    def test_parse_fixture(self, operations: list[Operation]) -> None:
        """Test all transactions are decoded in file order."""
        assert len(operations) == 4

        op = operations[0]
        assert op.operation_timestamp == datetime(2023, 3, 24, 23, 10, 10)
        assert op.payment_date == date(2023, 3, 24)
        assert op.operation_amount == Decimal("20.00")
        assert op.payment_amount == Decimal("20.00")
        assert op.operation_currency == "RUR"
        assert op.description == "43319285777 Кэшбэк за обычные покупки"
        assert op.category == "Другое"
        assert op.card_mask is None
        assert op.mcc_code is None
        assert op.account_hint == "40817810000016123456"

    def test_timezone_conversion(self, operations: list[Operation]) -> None:
        """Test posted times are converted to Moscow time."""
        assert operations[1].operation_timestamp == datetime(2023, 3, 25, 15, 0, 0)
        assert operations[3].operation_timestamp == datetime(2023, 3, 28, 6, 0, 0)
        assert operations[3].payment_date == date(2023, 3, 28)

    def test_default_currency(self, operations: list[Operation]) -> None:
        """Test transactions without currency use the statement default."""
        assert operations[2].operation_currency == "RUR"

    def test_account_per_statement(self, operations: list[Operation]) -> None:
        """Test each statement carries its own account."""
        assert [op.account_hint for op in operations] == [
            "40817810000016123456",
            "40817810000016123456",
            "40817810000016123456",
            "40817840000016000001",
        ]
        assert operations[3].operation_currency == "USD"

    def test_ofx_operations_are_settled(self, operations: list[Operation]) -> None:
        """Test OFX never produces holds or card operations."""
        assert not any(op.is_hold or op.is_card_operation for op in operations)

    def test_transaction_outside_account(self) -> None:
        """Test a transaction after the statement closed is rejected."""
        content = b"""<OFX><STMTRS>
            <BANKACCTFROM><ACCTID>1</ACCTID></BANKACCTFROM>
            </STMTRS>
            <STMTTRN><DTPOSTED>20230324231010[+3:MSK]</DTPOSTED><TRNAMT>1</TRNAMT>
            <FITID>1</FITID><CURRENCY><CURSYM>RUB</CURSYM></CURRENCY></STMTTRN>
            </OFX>"""
        with pytest.raises(ReportFormatError, match="outside"):
            OfxReportParser().parse(io.BytesIO(content))

    def test_bad_timestamp_is_fatal(self, ofx_file: Path) -> None:
        """Test a timestamp not matching the bank format fails the report."""
        content = ofx_file.read_bytes().replace(
            b"20230326093015.000[+3:MSK]", b"2023-03-26T09:30:15"
        )
        with pytest.raises(ReportFormatError, match="43319285912"):
            OfxReportParser().parse(io.BytesIO(content))

    def test_malformed_xml(self) -> None:
        """Test broken XML is reported as a format error."""
        with pytest.raises(ReportFormatError, match="Malformed"):
            OfxReportParser().parse(io.BytesIO(b"<OFX><STMTRS></OFX>"))

    def test_decoded_elements_are_released(self, ofx_file: Path) -> None:
        """Test statements are detached from the partial tree once decoded."""
        parser = ElementTree.XMLPullParser(events=("start", "end"))
        parser.feed(ofx_file.read_bytes())
        parser.close()
        events = list(parser.read_events())
        root = events[0][1]
        assert len(list(root.iter("STMTTRN"))) == 4

        decoder = OfxDecoder()
        decoder.consume(events)

        assert len(decoder.operations) == 4
        assert list(root.iter("STMTTRN")) == []
        assert list(root.iter("STMTRS")) == []


class TestCrossFormat:
    """The same statement exported as CSV and OFX."""

    def test_same_operations(self, csv_file: Path, ofx_file: Path) -> None:
        """Test both formats agree apart from format-specific fields."""
        with open(csv_file, "rb") as f:
            csv_ops = CsvReportParser().parse(f)
        with open(ofx_file, "rb") as f:
            ofx_ops = OfxReportParser().parse(f)

        def strip(op: Operation) -> Operation:
            return replace(
                op, account_hint=None, mcc_code=None, description="", bonus=None, cashback=None
            )

        assert [strip(op) for op in ofx_ops] == [strip(op) for op in csv_ops]
