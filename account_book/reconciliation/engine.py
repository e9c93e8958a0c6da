"""
Reconciliation Engine

For one ``(card_id, billing_month)`` decide which credit-card charges are
backed by a real bank debit, mark those charges reconciled and persist an
immutable report.

Flow:
1. Resolve the billing cycle (fails fast with ``ConfigurationError``) and
   refuse cycles whose payment date is still ahead
2. Lock the partitions of the charge window
3. Fetch candidate charges and candidate withdrawals
4. Match in memory
5. Mark matched charges reconciled (``update_many``)
6. Persist the report; on failure restore the rewritten partitions

A run either fully succeeds (charges updated and report saved) or leaves
the ledger exactly as it found it. The engine never retries.
"""

from collections.abc import Callable
from datetime import date
from decimal import Decimal
from typing import Optional

from account_book.audit import AuditLogger, create_correlation_id
from account_book.logging_setup import get_logger
from account_book.models.reconciliation import (
    ReconciliationReport,
    ReconciliationSummary,
    parse_billing_month,
)
from account_book.models.transaction import utcnow
from account_book.queries.ledger import TransactionLedger
from account_book.reconciliation.billing_cycle import BillingCycleResolver
from account_book.reconciliation.errors import InvalidPaymentDateError
from account_book.reconciliation.matching import (
    MatchResult,
    chronological,
    is_withdrawal_candidate,
    match_charges,
)
from account_book.services.storage.interface import (
    ReconciliationReportStorageInterface,
    StorageError,
)
from account_book.services.storage.partitioning import partitions_between

logger = get_logger(__name__)

DEFAULT_AMOUNT_TOLERANCE = Decimal("100")


class ReconciliationEngine:
    """
    Matches card charges against bank withdrawals for one billing month.

    Args:
        ledger: Transaction ledger to read from and mark charges in
        report_store: Where finished reports are appended
        cycle_resolver: Supplies the charge and payment windows per card
        amount_tolerance: Largest absolute amount difference still counted
            as a PARTIAL match
        today: Returns the current UTC date; runs for cycles paid after it
            are refused
    """

    def __init__(
        self,
        ledger: TransactionLedger,
        report_store: ReconciliationReportStorageInterface,
        cycle_resolver: BillingCycleResolver,
        amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
        audit_logger: Optional[AuditLogger] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        amount_tolerance = Decimal(amount_tolerance)
        if amount_tolerance < 0:
            raise ValueError("amount_tolerance cannot be negative")
        self._ledger = ledger
        self._report_store = report_store
        self._cycle_resolver = cycle_resolver
        self._amount_tolerance = amount_tolerance
        self._audit = audit_logger or AuditLogger()
        self._today = today or (lambda: utcnow().date())

    @property
    def amount_tolerance(self) -> Decimal:
        return self._amount_tolerance

    def reconcile(self, card_id: str, billing_month: str) -> ReconciliationReport:
        """
        Run one reconciliation.

        Raises:
            ValueError: If ``billing_month`` is not ``YYYY-MM``
            ConfigurationError: If the card's billing cycle cannot be resolved
            InvalidPaymentDateError: If the cycle's payment date is after today
            StorageError: If reading or writing the ledger or report fails
        """
        parse_billing_month(billing_month)

        correlation_id = create_correlation_id()
        log = logger.bind(
            card_id=card_id,
            billing_month=billing_month,
            correlation_id=str(correlation_id),
        )
        self._audit.log_reconciliation_started(card_id, billing_month, correlation_id)
        log.info("reconciliation_started")

        try:
            report = self._run(card_id, billing_month, correlation_id, log)
        except Exception as e:
            log.error("reconciliation_failed", error_type=type(e).__name__, error=str(e))
            if isinstance(e, StorageError):
                self._audit.log_storage_error("reconcile", str(e), correlation_id)
            self._audit.log_reconciliation_failed(card_id, billing_month, e, correlation_id)
            raise

        log.info(
            "reconciliation_completed",
            reconciliation_id=report.reconciliation_id,
            status=report.status.value,
            **report.summary.model_dump(),
        )
        self._audit.log_reconciliation_completed(
            reconciliation_id=report.reconciliation_id,
            card_id=card_id,
            billing_month=billing_month,
            status=report.status.value,
            summary=report.summary.model_dump(),
            correlation_id=correlation_id,
        )
        return report

    def _run(self, card_id, billing_month, correlation_id, log) -> ReconciliationReport:
        cycle = self._cycle_resolver.resolve_cycle(card_id, billing_month)
        today = self._today()
        if cycle.expected_payment_date > today:
            raise InvalidPaymentDateError(cycle.expected_payment_date, today)

        charge_window = cycle.charge_window
        payment_window = cycle.payment_window

        # Charges can only be rewritten inside the charge window's partitions
        charge_partitions = list(partitions_between(charge_window.start, charge_window.end))

        with self._ledger.lock_partitions(charge_partitions):
            charges = chronological(
                self._ledger.find_by_institution_ids_and_date_range(
                    [card_id], charge_window.start, charge_window.end
                )
            )
            withdrawals = self._ledger.find_where(
                lambda tx: is_withdrawal_candidate(tx, cycle.bank_account_id, payment_window),
                payment_window.start,
                payment_window.end,
            )
            log.debug(
                "reconciliation_candidates",
                charges=len(charges),
                withdrawals=len(withdrawals),
            )

            results = match_charges(
                charges,
                withdrawals,
                cycle.expected_payment_date,
                self._amount_tolerance,
            )
            report = self._build_report(card_id, billing_month, results)

            updates = [
                result.charge.mark_reconciled(result.withdrawal.id)
                for result in results
                if result.withdrawal is not None
            ]
            snapshots = self._ledger.update_many(updates, correlation_id) if updates else {}

            try:
                self._report_store.save_report(report)
            except Exception:
                if snapshots:
                    self._ledger.restore_partitions(snapshots)
                    labels = [key.label for key in snapshots]
                    log.warning("reconciliation_rolled_back", partitions=labels)
                    self._audit.log_reconciliation_rolled_back(card_id, labels, correlation_id)
                raise

        return report

    @staticmethod
    def _build_report(
        card_id: str,
        billing_month: str,
        results: list[MatchResult],
    ) -> ReconciliationReport:
        records = [result.to_record() for result in results]
        summary = ReconciliationSummary.from_records(records)
        return ReconciliationReport(
            card_id=card_id,
            billing_month=billing_month,
            status=summary.status,
            summary=summary,
            records=records,
        )
