"""Utility functions for tinkoff-sync."""

from tinkoff_sync.utils.parsing import (
    INSTITUTION_TZ,
    map_currency,
    normalize_mcc,
    parse_date,
    parse_decimal,
    parse_ofx_timestamp,
    parse_timestamp,
    to_institution_time,
)

__all__ = [
    "INSTITUTION_TZ",
    "map_currency",
    "normalize_mcc",
    "parse_date",
    "parse_decimal",
    "parse_ofx_timestamp",
    "parse_timestamp",
    "to_institution_time",
]
