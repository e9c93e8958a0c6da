"""Monthly partition scheme for the ledger.

A transaction lives in exactly one partition, chosen from its ``date``:
``(year, month)``, rendered as ``YYYY-MM`` and stored as ``YYYY-MM.json``.
Everything in this module is pure.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from datetime import datetime
from typing import NamedTuple, Optional

PARTITION_SUFFIX = ".json"

_PARTITION_FILE_RE = re.compile(r"^(\d{4})-(\d{2})\.json$")


class PartitionKey(NamedTuple):
    """Identifier of one monthly partition."""

    year: int
    month: int

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def file_name(self) -> str:
        return f"{self.label}{PARTITION_SUFFIX}"

    def next(self) -> PartitionKey:
        if self.month == 12:
            return PartitionKey(self.year + 1, 1)
        return PartitionKey(self.year, self.month + 1)

    def previous(self) -> PartitionKey:
        if self.month == 1:
            return PartitionKey(self.year - 1, 12)
        return PartitionKey(self.year, self.month - 1)


def make_key(year: int, month: int) -> PartitionKey:
    """Build a key, rejecting months outside 1..12."""
    if isinstance(year, bool) or not isinstance(year, int) or year < 1:
        raise ValueError(f"Invalid partition year: {year!r}")
    if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
        raise ValueError(f"Invalid partition month: {month!r}")
    return PartitionKey(year, month)


def partition_for(moment: datetime) -> PartitionKey:
    """Return the partition holding a transaction dated ``moment``."""
    return PartitionKey(moment.year, moment.month)


def parse_file_name(name: str) -> Optional[PartitionKey]:
    """Return the key encoded in a partition file name, or None for other files."""
    match = _PARTITION_FILE_RE.fullmatch(name)
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return PartitionKey(year, month)


def partitions_between(start: datetime, end: datetime) -> Iterator[PartitionKey]:
    """Yield every partition overlapping ``[start, end]`` in ascending order."""
    if end < start:
        return
    key = partition_for(start)
    last = partition_for(end)
    while key <= last:
        yield key
        key = key.next()


def partitions_of_year(year: int) -> list[PartitionKey]:
    return [PartitionKey(year, month) for month in range(1, 13)]
