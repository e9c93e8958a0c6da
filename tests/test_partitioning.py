"""Tests for the monthly partition scheme."""

from datetime import datetime

import pytest

from account_book.services.storage.partitioning import (
    PartitionKey,
    make_key,
    parse_file_name,
    partition_for,
    partitions_between,
    partitions_of_year,
)


class TestPartitionKey:
    """Tests for key derivation and naming."""

    def test_partition_for_uses_year_and_month(self):
        assert partition_for(datetime(2024, 1, 31, 23, 59)) == PartitionKey(2024, 1)
        assert partition_for(datetime(2024, 2, 1)) == PartitionKey(2024, 2)

    def test_label_and_file_name_are_zero_padded(self):
        key = PartitionKey(2024, 3)
        assert key.label == "2024-03"
        assert key.file_name == "2024-03.json"

    def test_next_and_previous_cross_year_boundaries(self):
        assert PartitionKey(2023, 12).next() == PartitionKey(2024, 1)
        assert PartitionKey(2024, 1).previous() == PartitionKey(2023, 12)

    def test_keys_sort_chronologically(self):
        keys = [PartitionKey(2024, 2), PartitionKey(2023, 12), PartitionKey(2024, 1)]
        assert sorted(keys) == [PartitionKey(2023, 12), PartitionKey(2024, 1), PartitionKey(2024, 2)]

    @pytest.mark.parametrize("year, month", [(2024, 0), (2024, 13), (0, 5), (2024, True)])
    def test_make_key_rejects_invalid(self, year, month):
        with pytest.raises(ValueError):
            make_key(year, month)


class TestFileNames:
    """Tests for recognizing partition files."""

    def test_parse_valid_name(self):
        assert parse_file_name("2024-01.json") == PartitionKey(2024, 1)

    @pytest.mark.parametrize(
        "name",
        ["2024-13.json", "2024-1.json", "notes.txt", ".2024-01.json.abc.tmp", "2024-01.json.bak"],
    )
    def test_unrelated_names_ignored(self, name):
        assert parse_file_name(name) is None


class TestRanges:
    """Tests for multi-partition ranges."""

    def test_partitions_between_spans_year_end(self):
        keys = list(partitions_between(datetime(2023, 11, 20), datetime(2024, 2, 3)))
        assert [k.label for k in keys] == ["2023-11", "2023-12", "2024-01", "2024-02"]

    def test_partitions_between_single_month(self):
        keys = list(partitions_between(datetime(2024, 5, 1), datetime(2024, 5, 31)))
        assert keys == [PartitionKey(2024, 5)]

    def test_partitions_between_reversed_is_empty(self):
        assert list(partitions_between(datetime(2024, 5, 1), datetime(2024, 4, 1))) == []

    def test_partitions_of_year(self):
        keys = partitions_of_year(2024)
        assert len(keys) == 12
        assert keys[0] == PartitionKey(2024, 1)
        assert keys[-1] == PartitionKey(2024, 12)
