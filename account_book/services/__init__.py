"""Services package."""

from account_book.services.storage import (
    DuplicateError,
    JsonPartitionStore,
    JsonReconciliationReportStore,
    NotFoundError,
    PartitionStorageInterface,
    ReconciliationReportStorageInterface,
    StorageError,
    StorageIOError,
)

__all__ = [
    # Storage services
    "DuplicateError",
    "JsonPartitionStore",
    "JsonReconciliationReportStore",
    "NotFoundError",
    "PartitionStorageInterface",
    "ReconciliationReportStorageInterface",
    "StorageError",
    "StorageIOError",
]
