"""
Audit Logger

Every ledger mutation and reconciliation run is logged as a structured
audit event. The audit logger:
- Never raises into the main flow (a failing log call is swallowed and
  reported through the regular logger)
- Supports correlation IDs to trace all events of one reconciliation run
"""

from typing import Optional
from uuid import UUID, uuid4

from account_book.logging_setup import get_logger
from account_book.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


class AuditLogger:
    """
    Central audit logging service.

    Emits every event as one structured ``audit_event`` log record on the
    ``account_book.audit`` logger.
    """

    def __init__(self, logger=None):
        self._logger = logger or get_logger("account_book.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was emitted.
        """
        log_dict = event.to_log_dict()
        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            # An audit failure must not abort a ledger write
            get_logger(__name__).exception(
                "audit_log_failed", event_id=str(event.event_id)
            )
            return False
        return True

    def log_transaction_saved(self, transaction_id: str, partition: str) -> None:
        self.log(AuditEventBuilder.transaction_saved(transaction_id, partition))

    def log_transactions_saved(self, count: int, partitions: list[str]) -> None:
        self.log(AuditEventBuilder.transactions_saved(count, partitions))

    def log_transaction_updated(
        self,
        transaction_id: str,
        partition: str,
        found: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(
            AuditEventBuilder.transaction_updated(
                transaction_id, partition, found, correlation_id
            )
        )

    def log_transaction_deleted(self, transaction_id: str, partition: str) -> None:
        self.log(AuditEventBuilder.transaction_deleted(transaction_id, partition))

    def log_transaction_moved(self, transaction_id: str, source: str, target: str) -> None:
        self.log(AuditEventBuilder.transaction_moved(transaction_id, source, target))

    def log_ledger_reset(self, partition_count: int) -> None:
        self.log(AuditEventBuilder.ledger_reset(partition_count))

    def log_reconciliation_started(
        self,
        card_id: str,
        billing_month: str,
        correlation_id: UUID,
    ) -> None:
        self.log(
            AuditEventBuilder.reconciliation_started(card_id, billing_month, correlation_id)
        )

    def log_reconciliation_completed(
        self,
        reconciliation_id: str,
        card_id: str,
        billing_month: str,
        status: str,
        summary: dict,
        correlation_id: UUID,
    ) -> None:
        """Log a persisted report."""
        self.log(
            AuditEventBuilder.reconciliation_completed(
                reconciliation_id=reconciliation_id,
                card_id=card_id,
                billing_month=billing_month,
                status=status,
                summary=summary,
                correlation_id=correlation_id,
            )
        )

    def log_reconciliation_failed(
        self,
        card_id: str,
        billing_month: str,
        error: Exception,
        correlation_id: UUID,
    ) -> None:
        """Log an aborted run."""
        self.log(
            AuditEventBuilder.reconciliation_failed(
                card_id=card_id,
                billing_month=billing_month,
                error_type=type(error).__name__,
                error_message=str(error),
                correlation_id=correlation_id,
            )
        )

    def log_reconciliation_rolled_back(
        self,
        card_id: str,
        partitions: list[str],
        correlation_id: UUID,
    ) -> None:
        self.log(
            AuditEventBuilder.reconciliation_rolled_back(card_id, partitions, correlation_id)
        )

    def log_query_executed(self, query_id: UUID, query_type: str, result_count: int) -> None:
        self.log(AuditEventBuilder.query_executed(query_id, query_type, result_count))

    def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.storage_error(operation, error_message, correlation_id))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a reconciliation run and pass it through all
    subsequent operations.
    """
    return uuid4()
