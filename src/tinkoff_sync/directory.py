"""Card and account directories used to resolve report operations."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any

from tinkoff_sync.models import INSTITUTION, Account, Card


class Directory(ABC):
    """Lookup of known cards and accounts."""

    @abstractmethod
    def find_cards_by_mask(self, mask: str) -> list[Card]:
        """Return every card whose number fits the mask, of any issuer."""

    @abstractmethod
    def find_accounts_by_institution_and_currency(
        self, institution: str, currency: str
    ) -> list[Account]:
        """Return accounts held at the institution in the given currency."""

    @abstractmethod
    def find_account_of_card(self, card_number: str, day: date) -> Account | None:
        """Return the account the card was bound to on the given day."""

    @abstractmethod
    def find_account_by_identifier(self, number: str) -> Account | None:
        """Return the account with the given number."""


@dataclass(frozen=True)
class CardBinding:
    """Period during which a card draws from an account (bounds inclusive)."""

    card_number: str
    account_number: str
    valid_from: date | None = None
    valid_to: date | None = None

    def active_on(self, day: date) -> bool:
        """Check if the binding covers the given day."""
        if self.valid_from and day < self.valid_from:
            return False
        return not (self.valid_to and day > self.valid_to)


def _parse_iso(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


class ConfigDirectory(Directory):
    """
    Directory backed by the ``cards`` and ``accounts`` sections of the config.

    Example config:
        {
          "accounts": [
            {"number": "40817810000016123456", "currency": "RUR"}
          ],
          "cards": [
            {
              "card_number": "5536913837701234",
              "accounts": [{"account": "40817810000016123456", "from": "2020-01-01"}]
            }
          ]
        }
    """

    def __init__(
        self,
        cards: list[Card] | None = None,
        accounts: list[Account] | None = None,
        bindings: list[CardBinding] | None = None,
    ) -> None:
        self._cards = list(cards or [])
        self._accounts = {acc.number: acc for acc in accounts or []}
        self._bindings = list(bindings or [])

    @classmethod
    def from_config(cls, config: dict[str, Any] | None) -> "ConfigDirectory":
        """
        Build a directory from loaded JSON config.

        Args:
            config: Loaded JSON config (may be None)

        Returns:
            ConfigDirectory with the configured cards, accounts and bindings
        """
        if not config:
            return cls()

        accounts = [
            Account(
                number=acc["number"],
                institution=acc.get("institution", INSTITUTION),
                currency=acc.get("currency", "RUR"),
                owner=acc.get("owner"),
            )
            for acc in config.get("accounts", [])
        ]

        cards: list[Card] = []
        bindings: list[CardBinding] = []
        for entry in config.get("cards", []):
            card = Card(
                card_number=entry["card_number"],
                issuer=entry.get("issuer", INSTITUTION),
                owner=entry.get("owner"),
            )
            cards.append(card)
            for binding in entry.get("accounts", []):
                bindings.append(
                    CardBinding(
                        card_number=card.card_number,
                        account_number=binding["account"],
                        valid_from=_parse_iso(binding.get("from")),
                        valid_to=_parse_iso(binding.get("to")),
                    )
                )

        return cls(cards=cards, accounts=accounts, bindings=bindings)

    def find_cards_by_mask(self, mask: str) -> list[Card]:
        return [card for card in self._cards if card.matches_mask(mask)]

    def find_accounts_by_institution_and_currency(
        self, institution: str, currency: str
    ) -> list[Account]:
        return [
            acc
            for acc in self._accounts.values()
            if acc.institution == institution and acc.currency.upper() == currency.upper()
        ]

    def find_account_of_card(self, card_number: str, day: date) -> Account | None:
        for binding in self._bindings:
            if binding.card_number == card_number and binding.active_on(day):
                return self._accounts.get(binding.account_number)
        return None

    def find_account_by_identifier(self, number: str) -> Account | None:
        return self._accounts.get(number)
