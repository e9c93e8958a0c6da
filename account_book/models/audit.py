"""
Audit Models for Account Book

Every ledger mutation and every reconciliation run is logged for audit
purposes. This provides:
1. Traceability of which run marked which charge as reconciled
2. Debugging information when a run fails
3. Ability to reconstruct history

Audit events are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from account_book.models.transaction import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger mutations
    TRANSACTION_SAVED = "transaction_saved"
    TRANSACTIONS_SAVED = "transactions_saved"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_MOVED = "transaction_moved"
    LEDGER_RESET = "ledger_reset"

    # Reconciliation
    RECONCILIATION_STARTED = "reconciliation_started"
    RECONCILIATION_COMPLETED = "reconciliation_completed"
    RECONCILIATION_FAILED = "reconciliation_failed"
    RECONCILIATION_ROLLED_BACK = "reconciliation_rolled_back"

    # Query operations
    QUERY_EXECUTED = "query_executed"

    # System events
    CONFIGURATION_ERROR = "configuration_error"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = Field(default=AuditSeverity.INFO)

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'reconciliation')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by all events of one reconciliation run"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_saved(tx_id, "2024-01")
        event = AuditEventBuilder.reconciliation_completed(report, correlation_id)
    """

    @staticmethod
    def transaction_saved(transaction_id: str, partition: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction saved to partition {partition}",
            details={"partition": partition},
        )

    @staticmethod
    def transactions_saved(count: int, partitions: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_SAVED,
            entity_type="transaction",
            description=f"{count} transactions saved across {len(partitions)} partitions",
            details={"count": count, "partitions": partitions},
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        partition: str,
        found: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            severity=AuditSeverity.INFO if found else AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=(
                f"Transaction updated in partition {partition}"
                if found
                else f"Update matched no transaction in partition {partition}"
            ),
            details={"partition": partition, "found": found},
        )

    @staticmethod
    def transaction_deleted(transaction_id: str, partition: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction deleted from partition {partition}",
            details={"partition": partition},
        )

    @staticmethod
    def transaction_moved(transaction_id: str, source: str, target: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_MOVED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction moved from {source} to {target}",
            details={"source_partition": source, "target_partition": target},
        )

    @staticmethod
    def ledger_reset(partition_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            description=f"All {partition_count} ledger partitions deleted",
            details={"partition_count": partition_count},
        )

    @staticmethod
    def reconciliation_started(
        card_id: str,
        billing_month: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_STARTED,
            entity_type="card",
            entity_id=card_id,
            correlation_id=correlation_id,
            description=f"Reconciliation started for {card_id} {billing_month}",
            details={"billing_month": billing_month},
        )

    @staticmethod
    def reconciliation_completed(
        reconciliation_id: str,
        card_id: str,
        billing_month: str,
        status: str,
        summary: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_COMPLETED,
            entity_type="reconciliation",
            entity_id=reconciliation_id,
            correlation_id=correlation_id,
            description=f"Reconciliation {status} for {card_id} {billing_month}",
            details={
                "card_id": card_id,
                "billing_month": billing_month,
                "status": status,
                "summary": summary,
            },
        )

    @staticmethod
    def reconciliation_failed(
        card_id: str,
        billing_month: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.CONFIGURATION_ERROR
            if error_type == "ConfigurationError"
            else AuditEventType.RECONCILIATION_FAILED
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.ERROR,
            entity_type="card",
            entity_id=card_id,
            correlation_id=correlation_id,
            description=f"Reconciliation failed for {card_id} {billing_month}: {error_type}",
            error_message=error_message,
            details={"billing_month": billing_month, "error_type": error_type},
        )

    @staticmethod
    def reconciliation_rolled_back(
        card_id: str,
        partitions: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_ROLLED_BACK,
            severity=AuditSeverity.WARNING,
            entity_type="card",
            entity_id=card_id,
            correlation_id=correlation_id,
            description=f"Restored {len(partitions)} partitions after a failed run",
            details={"partitions": partitions},
        )

    @staticmethod
    def query_executed(
        query_id: UUID,
        query_type: str,
        result_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_EXECUTED,
            entity_type="query",
            entity_id=str(query_id),
            description=f"Query executed: {query_type} returned {result_count} results",
            details={
                "query_type": query_type,
                "result_count": result_count,
            },
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
