"""Bookkeeping ledger interface, HTTP client and dedup key generation."""

import hashlib
from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import requests

from tinkoff_sync.exceptions import AccountNotFoundError
from tinkoff_sync.logging_setup import get_logger
from tinkoff_sync.models import Money, Operation, OperationType

logger = get_logger(__name__)


def format_timestamp(moment: datetime) -> str:
    """Format a naive timestamp as ISO-8601, omitting zero seconds.

    Fractions are printed as milliseconds when they fit, e.g.
    ``2020-02-21T20:00``, ``2020-02-21T20:00:31``, ``2020-02-21T20:00:31.500``.
    """
    if moment.microsecond:
        if moment.microsecond % 1000 == 0:
            return moment.isoformat(timespec="milliseconds")
        return moment.isoformat(timespec="microseconds")
    if moment.second:
        return moment.isoformat(timespec="seconds")
    return moment.isoformat(timespec="minutes")


def format_amount(amount: Decimal) -> str:
    """Format an amount as the shortest text of its double value.

    Magnitudes in ``[1e-3, 1e7)`` and zero use plain decimals (``2000.0``),
    others use scientific notation with a bare exponent (``-1.2E7``,
    ``1.0E-4``). Keys already stored by the ledger were built from this text.
    """
    number = float(amount)
    if number == 0 or 1e-3 <= abs(number) < 1e7:
        return repr(number)

    sign, digits, exponent = Decimal(repr(number)).normalize().as_tuple()
    text = "".join(str(d) for d in digits)
    mantissa = text[0] + "." + (text[1:] or "0")
    return f"{'-' if sign else ''}{mantissa}E{len(digits) - 1 + exponent}"


def generate_dedup_key(operation: Operation) -> str:
    """Generate the deterministic ledger key of a settled operation.

    MD5 of timestamp, card mask and amount text joined with ``_``.
    """
    data = "_".join(
        (
            format_timestamp(operation.operation_timestamp),
            operation.card_mask or "",
            format_amount(operation.operation_amount),
        )
    )
    return hashlib.md5(data.encode("utf-8")).hexdigest()


class Ledger(ABC):
    """Bookkeeping system that records account operations."""

    @abstractmethod
    def register_operation(
        self,
        account: str,
        day: date,
        dedup_key: str,
        operation_type: OperationType,
        amount: Money,
        description: str,
    ) -> str:
        """Record a settled operation and return its ledger id."""

    @abstractmethod
    def register_hold_operation(
        self,
        account: str,
        day: date,
        operation_type: OperationType,
        amount: Money,
        description: str,
    ) -> None:
        """Record an authorization hold."""

    @abstractmethod
    def register_card_operation(
        self,
        operation_id: str,
        card_number: str,
        day: date,
        operation_date: date,
        amount: Money,
        mcc: str | None,
    ) -> None:
        """Attach card details to a recorded operation."""

    @abstractmethod
    def remove_matching_hold_operations(self, operation_id: str) -> None:
        """Drop open holds settled by the given operation."""


def _money_payload(amount: Money) -> dict[str, str]:
    return {"amount": str(amount.amount), "currency": amount.currency}


class LedgerClient(Ledger):
    """Client for the ledger's HTTP API."""

    DEFAULT_TIMEOUT = 30

    def __init__(self, base_url: str, api_key: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize client with API location and key."""
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    def _request(
        self,
        method: str,
        endpoint: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an API request."""
        url = f"{self.base_url}/{endpoint}"
        response = self._session.request(method, url, json=json, timeout=self.timeout)
        if response.status_code == 404 and endpoint.startswith("accounts/"):
            raise AccountNotFoundError(f"Ledger has no account for {endpoint}")
        response.raise_for_status()
        if not response.content:
            return {}
        return response.json()  # type: ignore[no-any-return]

    def register_operation(
        self,
        account: str,
        day: date,
        dedup_key: str,
        operation_type: OperationType,
        amount: Money,
        description: str,
    ) -> str:
        result = self._request(
            "POST",
            f"accounts/{account}/operations",
            json={
                "date": day.isoformat(),
                "transaction_id": dedup_key,
                "type": operation_type.value,
                **_money_payload(amount),
                "description": description,
            },
        )
        return str(result["id"])

    def register_hold_operation(
        self,
        account: str,
        day: date,
        operation_type: OperationType,
        amount: Money,
        description: str,
    ) -> None:
        self._request(
            "POST",
            f"accounts/{account}/holds",
            json={
                "date": day.isoformat(),
                "type": operation_type.value,
                **_money_payload(amount),
                "description": description,
            },
        )

    def register_card_operation(
        self,
        operation_id: str,
        card_number: str,
        day: date,
        operation_date: date,
        amount: Money,
        mcc: str | None,
    ) -> None:
        self._request(
            "POST",
            f"operations/{operation_id}/card",
            json={
                "card_number": card_number,
                "date": day.isoformat(),
                "operation_date": operation_date.isoformat(),
                **_money_payload(amount),
                "mcc": mcc,
            },
        )

    def remove_matching_hold_operations(self, operation_id: str) -> None:
        self._request("POST", f"operations/{operation_id}/holds/remove")


class DryRunLedger(Ledger):
    """Ledger that only logs and records the calls it receives."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        logger.info("[dry-run] %s%s", name, args)

    def register_operation(
        self,
        account: str,
        day: date,
        dedup_key: str,
        operation_type: OperationType,
        amount: Money,
        description: str,
    ) -> str:
        self._record(
            "register_operation", account, day, dedup_key, operation_type, amount, description
        )
        return f"dry-run-{len(self.calls)}"

    def register_hold_operation(
        self,
        account: str,
        day: date,
        operation_type: OperationType,
        amount: Money,
        description: str,
    ) -> None:
        self._record("register_hold_operation", account, day, operation_type, amount, description)

    def register_card_operation(
        self,
        operation_id: str,
        card_number: str,
        day: date,
        operation_date: date,
        amount: Money,
        mcc: str | None,
    ) -> None:
        self._record(
            "register_card_operation", operation_id, card_number, day, operation_date, amount, mcc
        )

    def remove_matching_hold_operations(self, operation_id: str) -> None:
        self._record("remove_matching_hold_operations", operation_id)
