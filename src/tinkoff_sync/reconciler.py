"""Reconciliation of report operations with the ledger."""

from dataclasses import dataclass
from datetime import date
from typing import BinaryIO

from tinkoff_sync.directory import Directory
from tinkoff_sync.exceptions import (
    AccountNotFoundError,
    ReportFormatError,
    ReportNotFoundError,
    ReportStoreError,
)
from tinkoff_sync.ledger import Ledger, generate_dedup_key
from tinkoff_sync.logging_setup import get_logger
from tinkoff_sync.models import INSTITUTION, Account, Card, Money, Operation, OperationType, ReportId
from tinkoff_sync.resolver import CardContext, CardResolver, FailureKind
from tinkoff_sync.store import ReportStore

logger = get_logger(__name__)


@dataclass
class ProcessingResult:
    """Result of processing one report."""

    report_id: ReportId
    failure: FailureKind | None = None
    detail: str = ""
    holds: int = 0
    settlements: int = 0

    @property
    def ok(self) -> bool:
        """Return True if the report was fully forwarded and marked processed."""
        return self.failure is None

    @property
    def total(self) -> int:
        """Total operations forwarded to the ledger."""
        return self.holds + self.settlements


@dataclass(frozen=True)
class PlannedOperation:
    """An operation with the card and account it resolved to."""

    operation: Operation
    account: Account
    card: Card | None


class ReportReconciler:
    """
    Forwards report operations to the ledger exactly once per report.

    Usage:
        reconciler = ReportReconciler(store, ledger, directory)
        results = reconciler.process_new_reports()
    """

    def __init__(
        self,
        store: ReportStore,
        ledger: Ledger,
        directory: Directory,
        institution: str = INSTITUTION,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.resolver = CardResolver(directory, institution)

    def save(self, name: str, content: BinaryIO | bytes) -> ReportId:
        """Store a new report for later processing."""
        return self.store.save(name, content)

    def process_report(self, report_id: ReportId) -> ProcessingResult:
        """
        Process a single report.

        The report must be renameable to its processed name and every
        operation must resolve before the first ledger call, so either
        failure leaves no trace in the ledger. The report is marked
        processed only after all operations were forwarded.

        Args:
            report_id: Report identifier

        Returns:
            ProcessingResult describing success or the failure kind

        Raises:
            ReportNotFoundError: If the report file is missing
        """
        try:
            self.store.check_processable(report_id)
        except ReportStoreError as e:
            logger.error("Report %s cannot be processed: %s", report_id, e)
            return ProcessingResult(report_id, FailureKind.REPORT_NOT_PROCESSABLE, str(e))

        try:
            report = self.store.find(report_id)
        except ReportFormatError as e:
            logger.error("Unable to parse report %s: %s", report_id, e)
            return ProcessingResult(report_id, FailureKind.MALFORMED_REPORT, str(e))

        # Fresh for every report, cards are never shared between reports
        context: CardContext = {}
        plan: list[PlannedOperation] = []

        for operation in report.operations:
            card = self.resolver.resolve_card(context, operation.card_mask)
            if not card.ok:
                return ProcessingResult(report_id, card.failure, card.detail)

            account = self.resolver.resolve_account(operation, card.value)
            if not account.ok:
                return ProcessingResult(report_id, account.failure, account.detail)

            plan.append(PlannedOperation(operation, account.value, card.value))  # type: ignore[arg-type]

        result = ProcessingResult(report_id)
        for planned in plan:
            payment_date = planned.operation.payment_date
            if payment_date is None:
                self._register_hold(planned)
                result.holds += 1
            else:
                self._register_settlement(planned, payment_date)
                result.settlements += 1

        self.store.mark_processed(report_id)
        return result

    def _register_hold(self, planned: PlannedOperation) -> None:
        op = planned.operation
        self.ledger.register_hold_operation(
            planned.account.number,
            op.operation_date,
            OperationType.of(op.operation_amount),
            Money.of(op.operation_amount, op.operation_currency),
            op.description,
        )

    def _register_settlement(self, planned: PlannedOperation, payment_date: date) -> None:
        op = planned.operation
        amount = Money.of(op.operation_amount, op.operation_currency)

        operation_id = self.ledger.register_operation(
            planned.account.number,
            payment_date,
            generate_dedup_key(op),
            OperationType.of(op.operation_amount),
            amount,
            op.description,
        )

        if op.is_card_operation and planned.card is not None:
            self.ledger.register_card_operation(
                operation_id,
                planned.card.card_number,
                payment_date,
                op.operation_date,
                amount,
                op.mcc_code,
            )

        self.ledger.remove_matching_hold_operations(operation_id)

    def process_new_reports(self) -> list[ProcessingResult]:
        """
        Process every unprocessed report in name order.

        A report that disappeared or names an account unknown to the ledger
        is skipped; other errors stop the batch.

        Returns:
            One ProcessingResult per report attempted
        """
        reports = self.store.list_unprocessed()
        logger.info("Found %d unprocessed reports", len(reports))

        results: list[ProcessingResult] = []
        for report_id in reports:
            logger.info("Start processing of report %s", report_id)
            try:
                result = self.process_report(report_id)
            except ReportNotFoundError as e:
                logger.warning("Processing failed for report %s: %s", report_id, e)
                result = ProcessingResult(report_id, FailureKind.REPORT_NOT_FOUND, str(e))
            except AccountNotFoundError as e:
                logger.warning("Processing failed for report %s: %s", report_id, e)
                result = ProcessingResult(report_id, FailureKind.ACCOUNT_NOT_FOUND, str(e))

            if result.ok:
                logger.info(
                    "Processing of report %s finished: %d settlements, %d holds",
                    report_id,
                    result.settlements,
                    result.holds,
                )
            results.append(result)

        return results
