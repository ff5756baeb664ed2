"""Data models for report operations, cards and accounts."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from tinkoff_sync.utils.parsing import normalize_mcc

INSTITUTION = "TINKOFF"


class OperationType(str, Enum):
    """Direction of money movement on an account."""

    WITHDRAW = "WITHDRAW"
    DEPOSIT = "DEPOSIT"

    @classmethod
    def of(cls, amount: Decimal) -> "OperationType":
        """Return WITHDRAW for negative amounts, DEPOSIT otherwise."""
        return cls.WITHDRAW if amount < 0 else cls.DEPOSIT


@dataclass(frozen=True)
class Operation:
    """A single report entry in canonical form."""

    operation_timestamp: datetime
    payment_date: date | None
    card_mask: str | None
    operation_amount: Decimal
    operation_currency: str
    payment_amount: Decimal
    payment_currency: str
    description: str
    cashback: Decimal | None = None
    bonus: Decimal | None = None
    category: str | None = None
    mcc_code: str | None = None
    account_hint: str | None = None

    def __post_init__(self) -> None:
        """Validate required fields and normalize the MCC code."""
        for name in (
            "operation_timestamp",
            "operation_amount",
            "operation_currency",
            "payment_amount",
            "payment_currency",
            "description",
        ):
            if getattr(self, name) is None:
                raise ValueError(f"Operation field '{name}' is required")
        object.__setattr__(self, "mcc_code", normalize_mcc(self.mcc_code))

    @property
    def is_hold(self) -> bool:
        """Return True if the operation is not settled yet."""
        return self.payment_date is None

    @property
    def is_card_operation(self) -> bool:
        """Return True if the operation was made with a card at a merchant."""
        return self.mcc_code is not None and bool(self.card_mask)

    @property
    def operation_date(self) -> date:
        return self.operation_timestamp.date()


@dataclass(frozen=True)
class ReportId:
    """Identifies a report file by its name and creation time."""

    name: str
    created: datetime

    def __str__(self) -> str:
        return f"{self.name}@{self.created.isoformat()}"


@dataclass(frozen=True)
class Report:
    """A parsed report with its operations in file order."""

    report_id: ReportId
    operations: list[Operation] = field(default_factory=list)


@dataclass(frozen=True)
class Card:
    """A payment card known to the card directory."""

    card_number: str
    issuer: str = INSTITUTION
    owner: str | None = None

    def matches_mask(self, mask: str) -> bool:
        """Check if a masked card number (``*1234``, ``553691******1234``) fits this card."""
        mask = mask.replace("-", "").replace(" ", "")
        head = mask.split("*", 1)[0] if "*" in mask else ""
        tail = mask.rsplit("*", 1)[-1]
        if not tail.isdigit():
            return False

        clean_number = self.card_number.replace("-", "").replace(" ", "")
        return clean_number.startswith(head) and clean_number.endswith(tail)


@dataclass(frozen=True)
class Account:
    """A bank account that operations are booked to."""

    number: str
    institution: str = INSTITUTION
    currency: str = "RUR"
    owner: str | None = None


@dataclass(frozen=True)
class Money:
    """Absolute amount with its currency, as sent to the ledger."""

    amount: Decimal
    currency: str

    @classmethod
    def of(cls, amount: Decimal, currency: str) -> "Money":
        """Build Money from a signed amount, rounded to cents."""
        return cls(abs(amount).quantize(Decimal("0.01")), currency)

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"
