"""
Abstract Storage Interface

The ledger and the report store are defined against these interfaces so the
JSON-file backend can be swapped (for an object store, a database, or an
in-memory fake in tests) without touching query or reconciliation logic.

The interface is intentionally small: whole-document reads and writes per
partition. Appending, updating and deleting single records are expressed by
callers as "read, mutate in memory, write back".
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional

from account_book.models.reconciliation import ReconciliationReport
from account_book.models.transaction import Transaction
from account_book.services.storage.partitioning import PartitionKey


class PartitionStorageInterface(ABC):
    """
    Durable storage of monthly transaction partitions.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    def read_partition(self, year: int, month: int) -> list[Transaction]:
        """
        Read one partition's full transaction list.

        Returns:
            The stored transactions in stored order, or [] if the partition
            does not exist (not an error)

        Raises:
            StorageIOError: If the partition exists but cannot be read or parsed
        """
        pass

    @abstractmethod
    def write_partition(
        self,
        year: int,
        month: int,
        transactions: list[Transaction],
    ) -> None:
        """
        Replace a partition's entire contents.

        The caller supplies the complete desired list. A successful write is
        visible to every subsequent read once this call returns; a failed
        write leaves the previous contents intact.

        Raises:
            StorageIOError: If the write fails
        """
        pass

    @abstractmethod
    def list_partitions(self) -> list[PartitionKey]:
        """Enumerate existing partitions in ascending order."""
        pass

    @abstractmethod
    def delete_partition(self, year: int, month: int) -> None:
        """Delete a partition. Deleting a missing partition is a no-op."""
        pass

    @abstractmethod
    def lock(self, year: int, month: int) -> AbstractContextManager:
        """
        Return the re-entrant lock guarding one partition.

        Hold it around any read-modify-write sequence on that partition.
        """
        pass


class ReconciliationReportStorageInterface(ABC):
    """
    Append-only storage of reconciliation reports, partitioned by card.

    Reports are never updated or deleted.
    """

    @abstractmethod
    def save_report(self, report: ReconciliationReport) -> ReconciliationReport:
        """
        Append a report.

        Raises:
            DuplicateError: If a report with the same id already exists
            StorageIOError: If the write fails
        """
        pass

    @abstractmethod
    def get_report(self, reconciliation_id: str) -> Optional[ReconciliationReport]:
        """Return a report by id, or None if it does not exist."""
        pass

    @abstractmethod
    def list_reports(
        self,
        card_id: Optional[str] = None,
        billing_month: Optional[str] = None,
        start_month: Optional[str] = None,
        end_month: Optional[str] = None,
    ) -> list[ReconciliationReport]:
        """
        List reports, optionally for one card and/or one billing month.

        ``start_month`` and ``end_month`` bound the billing month inclusively;
        either may be omitted.

        Returns:
            Reports ordered by execution time (oldest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageIOError(StorageError):
    """Underlying read or write failed (disk, permissions, corruption)."""
    pass
