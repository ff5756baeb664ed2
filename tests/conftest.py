"""Pytest configuration and fixtures."""

import shutil
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

from tinkoff_sync.models import Account, Card, Operation

# Fake account and card numbers used across tests
ACCOUNT_NUMBER = "40817810000016123456"
USD_ACCOUNT_NUMBER = "40817840000016000001"
CARD_NUMBER = "5536913837701234"

CSV_HEADER = [
    "Дата операции",
    "Дата платежа",
    "Номер карты",
    "Статус",
    "Сумма операции",
    "Валюта операции",
    "Сумма платежа",
    "Валюта платежа",
    "Кэшбэк",
    "Категория",
    "MCC",
    "Описание",
    "Бонусы (включая кэшбэк)",
]


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def csv_file(fixtures_dir: Path) -> Path:
    """Return path to the CSV statement fixture."""
    return fixtures_dir / "statement.csv"


@pytest.fixture
def ofx_file(fixtures_dir: Path) -> Path:
    """Return path to the OFX statement fixture (same operations as the CSV)."""
    return fixtures_dir / "statement.ofx"


@pytest.fixture
def reports_dir(tmp_path: Path, csv_file: Path, ofx_file: Path) -> Path:
    """Return a writable reports directory with both fixtures copied in."""
    directory = tmp_path / "reports"
    directory.mkdir()
    shutil.copy(csv_file, directory / "2023-03_statement.csv")
    shutil.copy(ofx_file, directory / "2023-03_statement.ofx")
    return directory


@pytest.fixture
def make_csv() -> Callable[[list[list[str]]], bytes]:
    """Return a builder of cp1251 CSV report content from data rows."""

    def build(rows: list[list[str]]) -> bytes:
        lines = [CSV_HEADER, *rows]
        text = "\r\n".join(";".join(f'"{value}"' for value in line) for line in lines)
        return (text + "\r\n").encode("cp1251")

    return build


@pytest.fixture
def account() -> Account:
    """Return the rouble account cards are bound to."""
    return Account(number=ACCOUNT_NUMBER, currency="RUR")


@pytest.fixture
def card() -> Card:
    """Return the card matching mask *1234."""
    return Card(card_number=CARD_NUMBER)


@pytest.fixture
def make_operation() -> Callable[..., Operation]:
    """Return a builder of settled card operations with overridable fields."""

    def build(**overrides: Any) -> Operation:
        fields: dict[str, Any] = {
            "operation_timestamp": datetime(2020, 2, 21, 20, 0, 31),
            "payment_date": date(2020, 2, 21),
            "card_mask": "*1234",
            "operation_amount": Decimal("2000"),
            "operation_currency": "RUR",
            "payment_amount": Decimal("2000"),
            "payment_currency": "RUR",
            "cashback": None,
            "category": "Финан. услуги",
            "mcc_code": "6012",
            "description": "Перевод с карты",
            "bonus": Decimal("0"),
        }
        fields.update(overrides)
        return Operation(**fields)

    return build
