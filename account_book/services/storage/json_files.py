"""
JSON File Storage Implementation

Transactions are stored as one JSON array per calendar month
(``<root>/YYYY-MM.json``); reconciliation reports as one JSON array per card
(``<root>/<card_id>.json``).

Every write goes to a temporary file in the same directory and is then
renamed over the target with ``os.replace``. Readers therefore see either
the previous document or the new one, never a torn write. Transient OS
errors are retried with exponential backoff before surfacing as
``StorageIOError``.

Read-modify-write sequences are serialized per file through re-entrant
locks shared by every store instance in the process.
"""

import contextlib
import json
import os
import re
import threading
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar
from uuid import uuid4

from pydantic import ValidationError
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from account_book.logging_setup import get_logger
from account_book.models.reconciliation import ReconciliationReport, parse_billing_month
from account_book.models.transaction import Transaction
from account_book.services.storage.interface import (
    DuplicateError,
    PartitionStorageInterface,
    ReconciliationReportStorageInterface,
    StorageIOError,
)
from account_book.services.storage.partitioning import (
    PartitionKey,
    make_key,
    parse_file_name,
)

logger = get_logger(__name__)

T = TypeVar("T")

CARD_ID_PATTERN = r"^[A-Za-z0-9_.-]+$"
_CARD_ID_RE = re.compile(CARD_ID_PATTERN)


def _is_transient(error: BaseException) -> bool:
    # A missing file is an answer, not a failure
    return isinstance(error, OSError) and not isinstance(error, FileNotFoundError)


class _FileLocks:
    """Process-wide registry of re-entrant locks keyed by absolute file path."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def get(self, path: Path) -> threading.RLock:
        key = str(path.resolve())
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock


_FILE_LOCKS = _FileLocks()


class JsonDocumentClient:
    """
    Low-level JSON document client.

    Reads and writes whole JSON arrays under one root directory and provides
    retry logic for filesystem calls.
    """

    def __init__(self, root: Path, retry_attempts: int = 3):
        self.root = Path(root)
        self._retry_attempts = retry_attempts

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=0.05, max=1),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )

    def _call(self, operation: str, path: Path, fn: Callable[..., T], *args) -> T:
        try:
            return self._retrying()(fn, *args)
        except FileNotFoundError:
            raise
        except OSError as e:
            logger.error("storage_io_failed", operation=operation, path=str(path), error=str(e))
            raise StorageIOError(f"Failed to {operation} {path}: {e}") from e

    def path_for(self, name: str) -> Path:
        return self.root / name

    def lock_for(self, name: str) -> threading.RLock:
        return _FILE_LOCKS.get(self.path_for(name))

    def read_array(self, name: str) -> Optional[list[Any]]:
        """
        Read a JSON array.

        Returns:
            The parsed list, or None if the file does not exist

        Raises:
            StorageIOError: If the file cannot be read or is not a JSON array
        """
        path = self.path_for(name)
        try:
            text = self._call("read", path, path.read_text, "utf-8")
        except FileNotFoundError:
            return None

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error("storage_document_corrupt", path=str(path), error=str(e))
            raise StorageIOError(f"Corrupt JSON document {path}: {e}") from e

        if not isinstance(data, list):
            logger.error("storage_document_corrupt", path=str(path), error="not an array")
            raise StorageIOError(f"Document {path} does not contain a JSON array")
        return data

    def write_array(self, name: str, items: list[Any]) -> None:
        """Atomically replace a document with a JSON array."""
        path = self.path_for(name)
        payload = json.dumps(items, ensure_ascii=False, indent=2)
        self._call("write", path, self._write_atomic, path, payload)

    @staticmethod
    def _write_atomic(path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            raise

    def delete(self, name: str) -> None:
        """Delete a document; a missing document is a no-op."""
        path = self.path_for(name)
        try:
            self._call("delete", path, path.unlink)
        except FileNotFoundError:
            pass

    def list_names(self) -> list[str]:
        """File names of the documents currently under the root."""
        if not self.root.exists():
            return []
        try:
            entries = self._call("list", self.root, lambda: list(self.root.iterdir()))
        except FileNotFoundError:
            return []
        return sorted(
            entry.name
            for entry in entries
            if entry.is_file() and not entry.name.startswith(".")
        )


class JsonPartitionStore(PartitionStorageInterface):
    """
    Monthly transaction partitions stored as JSON files.

    Example:
        store = JsonPartitionStore(Path("./data/transactions"))
        store.write_partition(2024, 1, [tx])
        store.read_partition(2024, 1)  # -> [tx]
    """

    def __init__(self, root: Path, retry_attempts: int = 3):
        self._client = JsonDocumentClient(root, retry_attempts)

    @property
    def root(self) -> Path:
        return self._client.root

    def read_partition(self, year: int, month: int) -> list[Transaction]:
        key = make_key(year, month)
        documents = self._client.read_array(key.file_name)
        if documents is None:
            return []

        transactions = []
        for index, document in enumerate(documents):
            try:
                transactions.append(Transaction.from_document(document))
            except (ValidationError, TypeError) as e:
                logger.error(
                    "partition_record_invalid",
                    partition=key.label,
                    index=index,
                    error=str(e),
                )
                raise StorageIOError(
                    f"Invalid transaction at index {index} of partition {key.label}: {e}"
                ) from e
        return transactions

    def write_partition(
        self,
        year: int,
        month: int,
        transactions: list[Transaction],
    ) -> None:
        key = make_key(year, month)
        self._client.write_array(
            key.file_name,
            [tx.to_document() for tx in transactions],
        )
        logger.debug("partition_written", partition=key.label, count=len(transactions))

    def list_partitions(self) -> list[PartitionKey]:
        keys = (parse_file_name(name) for name in self._client.list_names())
        return sorted(key for key in keys if key is not None)

    def delete_partition(self, year: int, month: int) -> None:
        key = make_key(year, month)
        self._client.delete(key.file_name)
        logger.debug("partition_deleted", partition=key.label)

    def lock(self, year: int, month: int) -> threading.RLock:
        return self._client.lock_for(make_key(year, month).file_name)


def validate_card_id(card_id: str) -> str:
    """Reject card ids that are not safe to use as a file name."""
    if not isinstance(card_id, str) or not _CARD_ID_RE.fullmatch(card_id) or card_id in (".", ".."):
        raise ValueError(f"Invalid card id: {card_id!r}")
    return card_id


class JsonReconciliationReportStore(ReconciliationReportStorageInterface):
    """Append-only report log, one JSON array per card."""

    def __init__(self, root: Path, retry_attempts: int = 3):
        self._client = JsonDocumentClient(root, retry_attempts)

    @property
    def root(self) -> Path:
        return self._client.root

    def _file_name(self, card_id: str) -> str:
        return f"{validate_card_id(card_id)}.json"

    def _read_card(self, name: str) -> list[ReconciliationReport]:
        documents = self._client.read_array(name) or []
        reports = []
        for index, document in enumerate(documents):
            try:
                reports.append(ReconciliationReport.from_document(document))
            except (ValidationError, TypeError) as e:
                raise StorageIOError(
                    f"Invalid reconciliation report at index {index} of {name}: {e}"
                ) from e
        return reports

    def save_report(self, report: ReconciliationReport) -> ReconciliationReport:
        name = self._file_name(report.card_id)

        with self._client.lock_for(name):
            if self.get_report(report.reconciliation_id) is not None:
                raise DuplicateError(
                    f"Reconciliation report already exists: {report.reconciliation_id}"
                )
            reports = self._read_card(name)
            reports.append(report)
            self._client.write_array(name, [r.to_document() for r in reports])

        logger.info(
            "reconciliation_report_saved",
            reconciliation_id=report.reconciliation_id,
            card_id=report.card_id,
            billing_month=report.billing_month,
        )
        return report

    def get_report(self, reconciliation_id: str) -> Optional[ReconciliationReport]:
        for name in self._client.list_names():
            if not name.endswith(".json"):
                continue
            for report in self._read_card(name):
                if report.reconciliation_id == reconciliation_id:
                    return report
        return None

    def list_reports(
        self,
        card_id: Optional[str] = None,
        billing_month: Optional[str] = None,
        start_month: Optional[str] = None,
        end_month: Optional[str] = None,
    ) -> list[ReconciliationReport]:
        if card_id is not None:
            names = [self._file_name(card_id)]
        else:
            names = [n for n in self._client.list_names() if n.endswith(".json")]

        reports = []
        for name in names:
            reports.extend(self._read_card(name))

        if billing_month is not None:
            reports = [r for r in reports if r.billing_month == billing_month]
        # YYYY-MM labels order the same as the months they name
        if start_month is not None:
            parse_billing_month(start_month)
            reports = [r for r in reports if r.billing_month >= start_month]
        if end_month is not None:
            parse_billing_month(end_month)
            reports = [r for r in reports if r.billing_month <= end_month]

        reports.sort(key=lambda r: (r.executed_at, r.reconciliation_id))
        return reports
