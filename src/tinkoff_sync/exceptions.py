"""Exceptions raised while importing reports."""


class TinkoffSyncError(Exception):
    """Base class for all tinkoff-sync errors."""


class ReportNotFoundError(TinkoffSyncError):
    """The report file is missing or cannot be read."""


class ReportFormatError(TinkoffSyncError):
    """The report content cannot be decoded into operations."""


class ReportStoreError(TinkoffSyncError):
    """A report cannot be saved or renamed in the report directory."""


class AccountNotFoundError(TinkoffSyncError):
    """The ledger does not know the account an operation is booked to."""
