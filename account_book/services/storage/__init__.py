"""Storage backends for the ledger and reconciliation reports."""

from account_book.services.storage.interface import (
    DuplicateError,
    NotFoundError,
    PartitionStorageInterface,
    ReconciliationReportStorageInterface,
    StorageError,
    StorageIOError,
)
from account_book.services.storage.json_files import (
    JsonPartitionStore,
    JsonReconciliationReportStore,
    validate_card_id,
)
from account_book.services.storage.partitioning import (
    PartitionKey,
    partition_for,
    partitions_between,
)

__all__ = [
    "PartitionStorageInterface",
    "ReconciliationReportStorageInterface",
    "JsonPartitionStore",
    "JsonReconciliationReportStore",
    "PartitionKey",
    "partition_for",
    "partitions_between",
    "validate_card_id",
    "StorageError",
    "NotFoundError",
    "DuplicateError",
    "StorageIOError",
]
