"""Resolution of report operations to cards and accounts."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from tinkoff_sync.directory import Directory
from tinkoff_sync.logging_setup import get_logger
from tinkoff_sync.models import INSTITUTION, Account, Card, Operation

logger = get_logger(__name__)

T = TypeVar("T")


class FailureKind(str, Enum):
    """Reasons a report could not be processed."""

    UNRESOLVED_CARD_MASK = "unresolved_card_mask"
    AMBIGUOUS_CARD_MASK = "ambiguous_card_mask"
    UNRESOLVED_ACCOUNT = "unresolved_account"
    MALFORMED_REPORT = "malformed_report"
    REPORT_NOT_FOUND = "report_not_found"
    ACCOUNT_NOT_FOUND = "account_not_found"
    REPORT_NOT_PROCESSABLE = "report_not_processable"


@dataclass(frozen=True)
class Resolution(Generic[T]):
    """Outcome of a lookup: a value, or the kind of failure and a message."""

    value: T | None = None
    failure: FailureKind | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        """Return True if the lookup succeeded."""
        return self.failure is None

    @classmethod
    def success(cls, value: T | None) -> "Resolution[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, failure: FailureKind, detail: str) -> "Resolution[T]":
        logger.error(detail)
        return cls(failure=failure, detail=detail)


# Cards already resolved while processing one report, keyed by mask
CardContext = dict[str, Card]


class CardResolver:
    """Finds the card and account an operation belongs to."""

    def __init__(self, directory: Directory, institution: str = INSTITUTION) -> None:
        self.directory = directory
        self.institution = institution

    def resolve_card(self, context: CardContext, mask: str | None) -> Resolution[Card]:
        """
        Resolve a card mask to exactly one card of the institution.

        Args:
            context: Per-report cache, updated on a successful lookup
            mask: Masked card number from the report (may be empty)

        Returns:
            Resolution holding the card, or no card when mask is empty
        """
        if not mask:
            return Resolution.success(None)

        card = context.get(mask)
        if card is not None:
            return Resolution.success(card)

        cards = [
            c for c in self.directory.find_cards_by_mask(mask) if c.issuer == self.institution
        ]
        if not cards:
            return Resolution.fail(
                FailureKind.UNRESOLVED_CARD_MASK, f"Unable to find card by mask {mask}"
            )
        if len(cards) > 1:
            return Resolution.fail(
                FailureKind.AMBIGUOUS_CARD_MASK, f"Multiple cards found by mask {mask}"
            )

        context[mask] = cards[0]
        return Resolution.success(cards[0])

    def resolve_account(self, operation: Operation, card: Card | None) -> Resolution[Account]:
        """
        Pick the account an operation is booked to.

        A resolved card decides by its binding on the payment date (the
        operation date for holds). Without a card, the account named in the
        report wins; otherwise the lowest-numbered account of the
        institution in the operation currency is used.
        """
        if card is not None:
            day = operation.payment_date or operation.operation_date
            account = self.directory.find_account_of_card(card.card_number, day)
            if account is None:
                return Resolution.fail(
                    FailureKind.UNRESOLVED_ACCOUNT,
                    f"Unable to find account for card {card.card_number} and date {day}",
                )
            return Resolution.success(account)

        if operation.account_hint:
            account = self.directory.find_account_by_identifier(operation.account_hint)
            if account is None:
                return Resolution.fail(
                    FailureKind.UNRESOLVED_ACCOUNT,
                    f"Unable to find account {operation.account_hint}",
                )
            return Resolution.success(account)

        currency = operation.operation_currency
        accounts = self.directory.find_accounts_by_institution_and_currency(
            self.institution, currency
        )
        if not accounts:
            return Resolution.fail(
                FailureKind.UNRESOLVED_ACCOUNT,
                f"Unable to find account for {self.institution} and currency {currency}",
            )
        return Resolution.success(min(accounts, key=lambda a: a.number))
