"""Ledger queries: partition-aware lookups and structured query execution."""

from account_book.queries.executor import QueryExecutionError, QueryExecutor
from account_book.queries.ledger import PartitionSnapshots, TransactionLedger

__all__ = [
    "PartitionSnapshots",
    "QueryExecutionError",
    "QueryExecutor",
    "TransactionLedger",
]
