"""Parsing utilities for Tinkoff report files."""

import re
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfo

# All local timestamps in reports are expressed in this zone
INSTITUTION_TZ = ZoneInfo("Europe/Moscow")

DATE_FORMAT = "%d.%m.%Y"
TIMESTAMP_FORMAT = "%d.%m.%Y %H:%M:%S"

# Local currency code -> legacy code used by the ledger
LEGACY_CURRENCIES = {"RUB": "RUR"}

_DECIMAL_RE = re.compile(r"^([+-]?\d+)(?:[.,](\d{1,2}))?$")
_OFX_TIMESTAMP_RE = re.compile(
    r"^(\d{14})(?:\.(\d{3}))?\[([+-]\d{1,2})(\d{0,2}):(\w+)\]$"
)


def map_currency(code: str | None) -> str | None:
    """
    Map a currency code to the one the ledger expects.

    The modern code of the local currency is replaced with its legacy
    code, every other code passes through unchanged.
    """
    if code is None:
        return None
    code = code.strip()
    return LEGACY_CURRENCIES.get(code.upper(), code)


def parse_decimal(text: str | None) -> Decimal | None:
    """
    Parse a locale-formatted decimal.

    Handles:
    - Comma or dot as decimal separator
    - Up to two fractional digits
    - Spaces (including no-break spaces) used as grouping separators

    Args:
        text: Amount string to parse

    Returns:
        Decimal if successful, None otherwise
    """
    if text is None:
        return None

    text = re.sub(r"\s", "", text)
    match = _DECIMAL_RE.match(text)
    if not match:
        return None

    integer, fraction = match.groups()
    try:
        return Decimal(f"{integer}.{fraction}" if fraction else integer)
    except InvalidOperation:
        return None


def parse_date(text: str | None) -> date | None:
    """Parse a DD.MM.YYYY date, returning None when absent or malformed."""
    if not text or not text.strip():
        return None
    try:
        return datetime.strptime(text.strip(), DATE_FORMAT).date()
    except ValueError:
        return None


def parse_timestamp(text: str | None) -> datetime | None:
    """Parse a DD.MM.YYYY HH:MM:SS timestamp, returning None when malformed."""
    if not text or not text.strip():
        return None
    try:
        return datetime.strptime(text.strip(), TIMESTAMP_FORMAT)
    except ValueError:
        return None


def normalize_mcc(value: str | None) -> str | None:
    """
    Left-pad a merchant category code to four digits.

    Raises:
        ValueError: If value is an empty string
    """
    if value is None:
        return None
    if value == "":
        raise ValueError("MCC code must not be empty")
    return value.rjust(4, "0")


def parse_ofx_timestamp(text: str) -> datetime:
    """
    Parse the bank's OFX timestamp into an aware datetime.

    Format: ``YYYYMMDDHHMMSS[.mmm][+H[H][MM]:ZONE]`` where the square
    brackets around the offset are part of the value, e.g.
    ``20230324231010.000[+3:MSK]``.

    Raises:
        ValueError: If text does not match the format
    """
    match = _OFX_TIMESTAMP_RE.match(text.strip())
    if not match:
        raise ValueError(f"Invalid OFX timestamp: {text!r}")

    stamp, millis, hours, minutes, _zone = match.groups()
    local = datetime.strptime(stamp, "%Y%m%d%H%M%S")
    if millis:
        local = local.replace(microsecond=int(millis) * 1000)

    offset_hours = int(hours)
    offset_minutes = int(minutes) if minutes else 0
    if hours.startswith("-"):
        offset_minutes = -offset_minutes

    offset = timedelta(hours=offset_hours, minutes=offset_minutes)
    return local.replace(tzinfo=timezone(offset))


def to_institution_time(moment: datetime) -> datetime:
    """Convert an aware datetime to naive local time of the institution."""
    return moment.astimezone(INSTITUTION_TZ).replace(tzinfo=None)
