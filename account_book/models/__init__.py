"""
Data Models Package

This package contains all Pydantic models used in Account Book.
All data flowing through the ledger and the reconciliation engine must
conform to these schemas.
"""

from account_book.models.transaction import (
    CategorySnapshot,
    CategoryType,
    Transaction,
    TransactionStatus,
)
from account_book.models.reconciliation import (
    BillingCycle,
    DateWindow,
    MatchOutcome,
    ReconciliationRecord,
    ReconciliationReport,
    ReconciliationReportSummary,
    ReconciliationStatus,
    ReconciliationSummary,
    format_billing_month,
    parse_billing_month,
)
from account_book.models.query import QueryResult, TransactionQuery
from account_book.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "CategorySnapshot",
    "CategoryType",
    "Transaction",
    "TransactionStatus",
    # Reconciliation models
    "BillingCycle",
    "DateWindow",
    "MatchOutcome",
    "ReconciliationRecord",
    "ReconciliationReport",
    "ReconciliationReportSummary",
    "ReconciliationStatus",
    "ReconciliationSummary",
    "format_billing_month",
    "parse_billing_month",
    # Query models
    "QueryResult",
    "TransactionQuery",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
