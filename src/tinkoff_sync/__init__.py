"""tinkoff-sync - Forward Tinkoff statement exports to a bookkeeping ledger."""

from tinkoff_sync.ledger import LedgerClient
from tinkoff_sync.models import Operation
from tinkoff_sync.reconciler import ReportReconciler
from tinkoff_sync.store import ReportStore

__version__ = "0.1.0"
__all__ = ["LedgerClient", "Operation", "ReportReconciler", "ReportStore"]
