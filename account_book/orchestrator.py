"""
Main Orchestrator for Account Book

Ties the components together and exposes the public reconciliation flow:
1. Reconcile (card + billing month → matched charges → persisted report)
2. List reports (optionally per card / billing month)
3. Show one report

The orchestrator is the only place that reads settings. Every component
below it receives its paths and thresholds explicitly.
"""

from typing import Optional

from account_book.audit import AuditLogger
from account_book.config import Settings, get_settings
from account_book.logging_setup import get_logger
from account_book.models.reconciliation import (
    ReconciliationReport,
    ReconciliationReportSummary,
    parse_billing_month,
)
from account_book.queries import QueryExecutor, TransactionLedger
from account_book.reconciliation import (
    ConfigurationError,
    ReconciliationEngine,
    StaticBillingCycleResolver,
)
from account_book.services.storage import (
    JsonPartitionStore,
    JsonReconciliationReportStore,
    NotFoundError,
    ReconciliationReportStorageInterface,
)

logger = get_logger(__name__)


class ReconciliationFlow:
    """
    Public reconciliation surface.

    Flow:
    1. reconcile → engine run → report persisted
    2. list_reconciliations → report summaries, oldest first
    3. get_reconciliation → full report with per-charge records
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        report_store: ReconciliationReportStorageInterface,
    ):
        self._engine = engine
        self._report_store = report_store

    def reconcile(self, card_id: str, billing_month: str) -> ReconciliationReport:
        return self._engine.reconcile(card_id, billing_month)

    def list_reconciliations(
        self,
        card_id: Optional[str] = None,
        billing_month: Optional[str] = None,
        start_month: Optional[str] = None,
        end_month: Optional[str] = None,
    ) -> list[ReconciliationReportSummary]:
        """
        Summaries of stored reports ordered by execution time.

        Raises:
            ValueError: If a month is not ``YYYY-MM`` or the range is reversed
        """
        for month in (billing_month, start_month, end_month):
            if month is not None:
                parse_billing_month(month)
        if start_month is not None and end_month is not None and start_month > end_month:
            raise ValueError(f"start_month {start_month} is after end_month {end_month}")
        reports = self._report_store.list_reports(
            card_id=card_id,
            billing_month=billing_month,
            start_month=start_month,
            end_month=end_month,
        )
        return [report.to_summary() for report in reports]

    def get_reconciliation(self, reconciliation_id: str) -> ReconciliationReport:
        """
        Raises:
            NotFoundError: If no report has this id
        """
        report = self._report_store.get_report(reconciliation_id)
        if report is None:
            raise NotFoundError(f"Reconciliation not found: {reconciliation_id}")
        return report


def _build_cycle_resolver(settings: Settings) -> StaticBillingCycleResolver:
    window = settings.reconciliation.payment_window_business_days
    path = settings.reconciliation.card_config_path
    if not path:
        logger.warning("card_config_not_configured")
        return StaticBillingCycleResolver({}, window)

    try:
        return StaticBillingCycleResolver.from_file(path, window)
    except ConfigurationError as e:
        # Listing and showing reports still work without card configuration
        logger.warning("card_config_unavailable", path=path, error=str(e))
        return StaticBillingCycleResolver({}, window)


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[ReconciliationFlow, TransactionLedger, QueryExecutor]:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from; defaults to ``get_settings()``

    Returns:
        (reconciliation_flow, ledger, query_executor)
    """
    settings = settings or get_settings()
    ledger_settings = settings.ledger
    audit_logger = AuditLogger()

    partition_store = JsonPartitionStore(
        ledger_settings.transactions_path,
        retry_attempts=ledger_settings.io_retry_attempts,
    )
    report_store = JsonReconciliationReportStore(
        ledger_settings.reports_path,
        retry_attempts=ledger_settings.io_retry_attempts,
    )

    ledger = TransactionLedger(partition_store, audit_logger=audit_logger)
    engine = ReconciliationEngine(
        ledger=ledger,
        report_store=report_store,
        cycle_resolver=_build_cycle_resolver(settings),
        amount_tolerance=settings.reconciliation.amount_tolerance,
        audit_logger=audit_logger,
    )

    reconciliation_flow = ReconciliationFlow(
        engine=engine,
        report_store=report_store,
    )
    query_executor = QueryExecutor(ledger, audit_logger=audit_logger)

    return reconciliation_flow, ledger, query_executor
