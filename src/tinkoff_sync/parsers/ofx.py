"""Tinkoff OFX (XML) statement parser.

The document is scanned forward-only with ``XMLPullParser`` and decoded by
a small state machine, so a large export is never materialized as a whole
tree:

    OUTSIDE --BANKACCTFROM closes--> ACCOUNT --STMTTRN opens--> TRANSACTION
       ^                               |  ^                          |
       +---------STMTRS opens/closes---+  +-------STMTTRN closes-----+
"""

from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import BinaryIO, ClassVar
from xml.etree import ElementTree

from tinkoff_sync.exceptions import ReportFormatError
from tinkoff_sync.logging_setup import get_logger
from tinkoff_sync.models import Operation
from tinkoff_sync.parsers.base import ParserRegistry, ReportParser
from tinkoff_sync.utils import map_currency, parse_ofx_timestamp, to_institution_time

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024

STATEMENT = "STMTRS"
ACCOUNT_FROM = "BANKACCTFROM"
TRANSACTION = "STMTTRN"
DEFAULT_CURRENCY = "CURDEF"


class State(Enum):
    """Decoder position relative to account statements."""

    OUTSIDE = "outside"
    ACCOUNT = "account"
    TRANSACTION = "transaction"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1].upper()


class OfxDecoder:
    """Turns pull-parser events into operations."""

    def __init__(self) -> None:
        self.state = State.OUTSIDE
        self.account: str | None = None
        self.default_currency: str | None = None
        self.operations: list[Operation] = []
        # Leaf values of the element currently being decoded
        self._fields: dict[str, str] | None = None
        # Ancestors of the current element, innermost last
        self._open: list[ElementTree.Element] = []

    def consume(self, events: Iterable[tuple[str, ElementTree.Element]]) -> None:
        """Feed a batch of ``(event, element)`` pairs to the state machine."""
        for event, elem in events:
            tag = _local_name(elem.tag)
            if event == "start":
                self._on_start(tag)
                self._open.append(elem)
            else:
                self._open.pop()
                self._on_end(tag, elem)

    def _reset_account(self) -> None:
        self.state = State.OUTSIDE
        self.account = None
        self.default_currency = None
        self._fields = None

    def _on_start(self, tag: str) -> None:
        if tag == STATEMENT:
            self._reset_account()
        elif tag == ACCOUNT_FROM:
            self._fields = {}
        elif tag == TRANSACTION:
            if self.state is not State.ACCOUNT:
                raise ReportFormatError("Transaction found outside of an account statement")
            self.state = State.TRANSACTION
            self._fields = {}

    def _on_end(self, tag: str, elem: ElementTree.Element) -> None:
        if tag == STATEMENT:
            self._reset_account()
            self._discard(elem)
        elif tag == ACCOUNT_FROM:
            account_id = (self._fields or {}).get("ACCTID")
            if not account_id:
                raise ReportFormatError("Account descriptor without ACCTID")
            self.account = account_id
            self.state = State.ACCOUNT
            self._fields = None
            self._discard(elem)
        elif tag == TRANSACTION and self.state is State.TRANSACTION:
            self.operations.append(self._build_operation(self._fields or {}))
            self.state = State.ACCOUNT
            self._fields = None
            self._discard(elem)
        elif tag == DEFAULT_CURRENCY:
            self.default_currency = (elem.text or "").strip() or None
        elif self._fields is not None and len(elem) == 0:
            self._fields[tag] = (elem.text or "").strip()

    def _discard(self, elem: ElementTree.Element) -> None:
        """Drop a decoded element so the partial tree stays small."""
        elem.clear()
        if self._open:
            self._open[-1].remove(elem)

    def _build_operation(self, fields: dict[str, str]) -> Operation:
        fit_id = fields.get("FITID", "")
        try:
            posted = parse_ofx_timestamp(fields["DTPOSTED"])
            amount = Decimal(fields["TRNAMT"])
        except KeyError as e:
            raise ReportFormatError(f"Transaction {fit_id!r} has no {e.args[0]}") from e
        except (ValueError, InvalidOperation) as e:
            raise ReportFormatError(f"Transaction {fit_id!r}: {e}") from e

        currency = map_currency(fields.get("CURSYM") or self.default_currency)
        if not currency:
            raise ReportFormatError(f"Transaction {fit_id!r} has no currency")

        timestamp = to_institution_time(posted)
        return Operation(
            operation_timestamp=timestamp,
            payment_date=timestamp.date(),
            card_mask=None,
            operation_amount=amount,
            operation_currency=currency,
            payment_amount=amount,
            payment_currency=currency,
            category=fields.get("MEMO"),
            description=" ".join(part for part in (fit_id, fields.get("NAME")) if part),
            account_hint=self.account,
        )


@ParserRegistry.register
class OfxReportParser(ReportParser):
    """Parser for OFX 2 (XML) statement exports."""

    format_name: ClassVar[str] = "OFX"
    extension: ClassVar[str] = ".ofx"

    def parse(self, stream: BinaryIO) -> list[Operation]:
        """Stream the XML document and decode its transactions."""
        parser = ElementTree.XMLPullParser(events=("start", "end"))
        decoder = OfxDecoder()
        try:
            for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
                parser.feed(chunk)
                decoder.consume(parser.read_events())
            parser.close()
            decoder.consume(parser.read_events())
        except ElementTree.ParseError as e:
            raise ReportFormatError(f"Malformed OFX document: {e}") from e

        logger.debug("Decoded %d OFX transactions", len(decoder.operations))
        return decoder.operations
