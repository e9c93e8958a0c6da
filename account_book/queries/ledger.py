"""
Transaction Ledger (query engine)

Translates domain queries into one or more partition reads plus in-memory
filtering, and expresses every mutation as "read partition, mutate in
memory, write partition back".

Each read-modify-write runs while holding the partition's lock, so two
in-process callers appending to the same month cannot lose each other's
update. Reads take no lock: partition writes are atomic replacements, so a
reader sees either the old or the new document.
"""

import contextlib
from collections import defaultdict
from collections.abc import Iterable, Iterator
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from account_book.audit import AuditLogger
from account_book.logging_setup import get_logger
from account_book.models.transaction import CategoryType, Transaction, to_naive_utc, utcnow
from account_book.services.storage.interface import (
    DuplicateError,
    NotFoundError,
    PartitionStorageInterface,
    StorageError,
)
from account_book.services.storage.partitioning import (
    PartitionKey,
    partition_for,
    partitions_between,
    partitions_of_year,
)

logger = get_logger(__name__)

PartitionSnapshots = dict[PartitionKey, list[Transaction]]


class TransactionLedger:
    """
    Query and mutation surface over the monthly partitions.

    Example:
        ledger = TransactionLedger(JsonPartitionStore(root))
        ledger.save(tx)
        ledger.find_by_month(2024, 1)
    """

    def __init__(
        self,
        store: PartitionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()

    # =========================================================================
    # LOCKING
    # =========================================================================

    @contextlib.contextmanager
    def lock_partitions(self, keys: Iterable[PartitionKey]) -> Iterator[None]:
        """
        Hold the locks of several partitions at once.

        Locks are taken in ascending key order so that two callers locking
        overlapping sets cannot deadlock. The locks are re-entrant; ledger
        mutations made while holding them proceed normally.
        """
        with contextlib.ExitStack() as stack:
            for key in sorted(set(keys)):
                stack.enter_context(self._store.lock(key.year, key.month))
            yield

    # =========================================================================
    # QUERIES
    # =========================================================================

    def _scan(self, keys: Iterable[PartitionKey]) -> Iterator[Transaction]:
        for key in keys:
            yield from self._store.read_partition(key.year, key.month)

    def _scan_all(self) -> Iterator[Transaction]:
        return self._scan(self._store.list_partitions())

    def _scan_range(self, start: datetime, end: datetime) -> Iterator[Transaction]:
        existing = set(self._store.list_partitions())
        keys = [key for key in partitions_between(start, end) if key in existing]
        return self._scan(keys)

    def find_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """Linear scan of every partition; first match wins."""
        located = self._locate(transaction_id)
        return located[1] if located else None

    def find_all(self) -> list[Transaction]:
        return list(self._scan_all())

    def find_by_institution_id(self, institution_id: str) -> list[Transaction]:
        return [tx for tx in self._scan_all() if tx.institution_id == institution_id]

    def find_by_account_id(self, account_id: str) -> list[Transaction]:
        return [tx for tx in self._scan_all() if tx.account_id == account_id]

    def find_by_date_range(self, start: datetime, end: datetime) -> list[Transaction]:
        """
        Transactions with ``start <= date <= end`` (both bounds inclusive).

        Only partitions overlapping the range are read. Results come in
        partition order, then stored order.
        """
        start, end = to_naive_utc(start), to_naive_utc(end)
        if end < start:
            return []
        return [tx for tx in self._scan_range(start, end) if start <= tx.date <= end]

    def find_by_institution_ids_and_date_range(
        self,
        institution_ids: Iterable[str],
        start: datetime,
        end: datetime,
    ) -> list[Transaction]:
        ids = set(institution_ids)
        if not ids:
            return []
        return [
            tx for tx in self.find_by_date_range(start, end)
            if tx.institution_id in ids
        ]

    def find_by_month(self, year: int, month: int) -> list[Transaction]:
        return self._store.read_partition(year, month)

    def find_by_year(self, year: int) -> list[Transaction]:
        """Concatenation of months 1..12 of ``year``, in month order."""
        return list(self._scan(partitions_of_year(year)))

    def find_unreconciled_transfers(self) -> list[Transaction]:
        return [
            tx for tx in self._scan_all()
            if tx.category.type == CategoryType.TRANSFER and not tx.is_reconciled
        ]

    def find_where(
        self,
        predicate: Callable[[Transaction], bool],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Transaction]:
        """Generic filtered scan, pruned to ``[start, end]`` when both are given."""
        if start is not None and end is not None:
            candidates = self.find_by_date_range(start, end)
        else:
            candidates = self._scan_all()
        return [tx for tx in candidates if predicate(tx)]

    def _locate(self, transaction_id: str) -> Optional[tuple[PartitionKey, Transaction]]:
        for key in self._store.list_partitions():
            for tx in self._store.read_partition(key.year, key.month):
                if tx.id == transaction_id:
                    return key, tx
        return None

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def save(self, transaction: Transaction) -> Transaction:
        """
        Append a transaction to the partition of its date.

        Raises:
            DuplicateError: If the partition already holds the same id
        """
        key = partition_for(transaction.date)
        with self._store.lock(key.year, key.month):
            current = self._store.read_partition(key.year, key.month)
            if any(tx.id == transaction.id for tx in current):
                raise DuplicateError(
                    f"Transaction {transaction.id} already exists in partition {key.label}"
                )
            self._store.write_partition(key.year, key.month, current + [transaction])

        logger.info("transaction_saved", transaction_id=transaction.id, partition=key.label)
        self._audit.log_transaction_saved(transaction.id, key.label)
        return transaction

    def save_many(self, transactions: list[Transaction]) -> list[Transaction]:
        """
        Append many transactions with one read and one write per partition.

        Every partition is checked for duplicate ids before any is written,
        and a failed write restores the partitions this call already wrote,
        so the batch is stored whole or not at all.

        Raises:
            DuplicateError: If an id already exists in its target partition
                or appears twice in the batch
        """
        grouped = self._group_by_partition(transactions)

        with self.lock_partitions(grouped):
            existing: PartitionSnapshots = {}
            for key, batch in grouped.items():
                current = self._store.read_partition(key.year, key.month)
                seen = {tx.id for tx in current}
                for tx in batch:
                    if tx.id in seen:
                        raise DuplicateError(
                            f"Transaction {tx.id} already exists in partition {key.label}"
                        )
                    seen.add(tx.id)
                existing[key] = current

            written: PartitionSnapshots = {}
            try:
                for key, batch in grouped.items():
                    self._store.write_partition(key.year, key.month, existing[key] + batch)
                    written[key] = existing[key]
            except StorageError:
                if written:
                    self.restore_partitions(written)
                raise

        labels = [key.label for key in grouped]
        logger.info("transactions_saved", count=len(transactions), partitions=labels)
        if transactions:
            self._audit.log_transactions_saved(len(transactions), labels)
        return transactions

    def update(self, transaction: Transaction) -> bool:
        """
        Replace the stored entry with the same id, in the partition of ``date``.

        A missing entry is a silent no-op; the return value tells the caller
        whether anything was replaced.
        """
        key = partition_for(transaction.date)
        with self._store.lock(key.year, key.month):
            current = self._store.read_partition(key.year, key.month)
            replaced = False
            updated = []
            for tx in current:
                if tx.id == transaction.id:
                    updated.append(transaction)
                    replaced = True
                else:
                    updated.append(tx)
            if replaced:
                self._store.write_partition(key.year, key.month, updated)

        if replaced:
            logger.info("transaction_updated", transaction_id=transaction.id, partition=key.label)
        else:
            logger.warning(
                "transaction_update_missed",
                transaction_id=transaction.id,
                partition=key.label,
            )
        self._audit.log_transaction_updated(transaction.id, key.label, found=replaced)
        return replaced

    def update_strict(self, transaction: Transaction) -> Transaction:
        """
        Like ``update`` but rejects a missing entry.

        Raises:
            NotFoundError: If the partition of ``date`` has no entry with this id
        """
        if not self.update(transaction):
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        return transaction

    def update_many(
        self,
        transactions: list[Transaction],
        correlation_id: Optional[UUID] = None,
    ) -> PartitionSnapshots:
        """
        Replace many entries, one read and one write per partition.

        Returns:
            The previous contents of every partition that was rewritten, for
            use with ``restore_partitions``. Ids not present are skipped.

        If a partition write fails, partitions already rewritten by this call
        are restored before the error propagates.
        """
        grouped = self._group_by_partition(transactions)
        snapshots: PartitionSnapshots = {}

        with self.lock_partitions(grouped):
            try:
                for key, batch in grouped.items():
                    replacements = {tx.id: tx for tx in batch}
                    current = self._store.read_partition(key.year, key.month)
                    if not any(tx.id in replacements for tx in current):
                        continue
                    updated = [replacements.get(tx.id, tx) for tx in current]
                    self._store.write_partition(key.year, key.month, updated)
                    snapshots[key] = current
            except StorageError:
                if snapshots:
                    self.restore_partitions(snapshots)
                raise

        for key, batch in grouped.items():
            previous_ids = {tx.id for tx in snapshots.get(key, [])}
            for tx in batch:
                self._audit.log_transaction_updated(
                    tx.id, key.label, tx.id in previous_ids, correlation_id
                )
        logger.info(
            "transactions_updated",
            count=len(transactions),
            partitions=[key.label for key in snapshots],
        )
        return snapshots

    def restore_partitions(self, snapshots: PartitionSnapshots) -> None:
        """Write previously captured partition contents back verbatim."""
        with self.lock_partitions(snapshots):
            for key, contents in snapshots.items():
                self._store.write_partition(key.year, key.month, contents)
        logger.warning("partitions_restored", partitions=[key.label for key in snapshots])

    def delete(self, transaction_id: str) -> None:
        """
        Remove a transaction from whichever partition holds it.

        Raises:
            NotFoundError: If no partition holds ``transaction_id``
        """
        located = self._locate(transaction_id)
        if located is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        key = located[0]

        with self._store.lock(key.year, key.month):
            current = self._store.read_partition(key.year, key.month)
            remaining = [tx for tx in current if tx.id != transaction_id]
            if len(remaining) == len(current):
                # Removed by another caller between lookup and lock
                raise NotFoundError(f"Transaction not found: {transaction_id}")
            self._store.write_partition(key.year, key.month, remaining)

        logger.info("transaction_deleted", transaction_id=transaction_id, partition=key.label)
        self._audit.log_transaction_deleted(transaction_id, key.label)

    def delete_all(self) -> int:
        """Remove every partition. Test and reset paths only."""
        keys = self._store.list_partitions()
        for key in keys:
            with self._store.lock(key.year, key.month):
                self._store.delete_partition(key.year, key.month)

        logger.warning("ledger_reset", partitions=len(keys))
        self._audit.log_ledger_reset(len(keys))
        return len(keys)

    def move(self, transaction_id: str, new_date: datetime) -> Transaction:
        """
        Change a transaction's date, relocating it to the matching partition.

        Both partitions stay locked for the whole operation.

        Raises:
            NotFoundError: If no partition holds ``transaction_id``
            DuplicateError: If the target partition already holds the id
        """
        located = self._locate(transaction_id)
        if located is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        source, _ = located

        new_date = to_naive_utc(new_date)
        target = partition_for(new_date)

        with self.lock_partitions([source, target]):
            source_rows = self._store.read_partition(source.year, source.month)
            existing = next((tx for tx in source_rows if tx.id == transaction_id), None)
            if existing is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")

            moved = existing.model_copy(update={"date": new_date, "updated_at": utcnow()})
            remaining = [tx for tx in source_rows if tx.id != transaction_id]

            if target == source:
                self._store.write_partition(
                    source.year,
                    source.month,
                    [moved if tx.id == transaction_id else tx for tx in source_rows],
                )
            else:
                target_rows = self._store.read_partition(target.year, target.month)
                if any(tx.id == transaction_id for tx in target_rows):
                    raise DuplicateError(
                        f"Transaction {transaction_id} already exists in partition {target.label}"
                    )
                self._store.write_partition(target.year, target.month, target_rows + [moved])
                try:
                    self._store.write_partition(source.year, source.month, remaining)
                except StorageError:
                    self._store.write_partition(target.year, target.month, target_rows)
                    raise

        logger.info(
            "transaction_moved",
            transaction_id=transaction_id,
            source=source.label,
            target=target.label,
        )
        self._audit.log_transaction_moved(transaction_id, source.label, target.label)
        return moved

    @staticmethod
    def _group_by_partition(
        transactions: Iterable[Transaction],
    ) -> dict[PartitionKey, list[Transaction]]:
        grouped: dict[PartitionKey, list[Transaction]] = defaultdict(list)
        for tx in transactions:
            grouped[partition_for(tx.date)].append(tx)
        return dict(grouped)
