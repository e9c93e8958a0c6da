"""Tests for the pure matching algorithm."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from account_book.models.reconciliation import DateWindow, MatchOutcome
from account_book.models.transaction import CategoryType
from account_book.reconciliation.matching import (
    is_withdrawal_candidate,
    match_charges,
)

EXPECTED_PAYMENT = date(2024, 2, 5)
TOLERANCE = Decimal("100")


class TestMatchCharges:
    """Tests for outcome classification and consumption."""

    def test_exact_match(self, make_tx, make_withdrawal):
        charge = make_tx("2024-01-10T12:00:00", -5000)
        withdrawal = make_withdrawal("2024-02-05T09:00:00", -5000)

        [result] = match_charges([charge], [withdrawal], EXPECTED_PAYMENT, TOLERANCE)

        assert result.outcome == MatchOutcome.MATCHED
        assert result.withdrawal == withdrawal
        assert result.amount_difference == Decimal("0")
        assert result.date_difference == 0

    def test_partial_within_tolerance(self, make_tx, make_withdrawal):
        charge = make_tx("2024-01-10T12:00:00", -5000)
        withdrawal = make_withdrawal("2024-02-06T09:00:00", -5010)

        [result] = match_charges([charge], [withdrawal], EXPECTED_PAYMENT, TOLERANCE)

        assert result.outcome == MatchOutcome.PARTIAL
        assert result.amount_difference == Decimal("10")
        assert result.date_difference == 1

    @pytest.mark.parametrize(
        "tolerance, expected",
        [
            (Decimal("10"), MatchOutcome.PARTIAL),
            (Decimal("9.99"), MatchOutcome.UNMATCHED),
            (Decimal("0"), MatchOutcome.UNMATCHED),
        ],
    )
    def test_tolerance_boundary(self, make_tx, make_withdrawal, tolerance, expected):
        """Test the tolerance bound is inclusive."""
        charge = make_tx("2024-01-10T12:00:00", -5000)
        withdrawal = make_withdrawal("2024-02-05T09:00:00", -5010)

        [result] = match_charges([charge], [withdrawal], EXPECTED_PAYMENT, tolerance)
        assert result.outcome == expected

    def test_no_withdrawals(self, make_tx):
        [result] = match_charges(
            [make_tx("2024-01-10T12:00:00", -5000)], [], EXPECTED_PAYMENT, TOLERANCE
        )
        assert result.outcome == MatchOutcome.UNMATCHED
        assert result.withdrawal is None
        assert result.to_record().bank_transaction_id is None

    def test_withdrawal_consumed_once(self, make_tx, make_withdrawal):
        """Test two identical charges cannot share one withdrawal."""
        first = make_tx("2024-01-10T12:00:00", -5000)
        second = make_tx("2024-01-11T12:00:00", -5000)
        withdrawal = make_withdrawal("2024-02-05T09:00:00", -5000)

        results = match_charges([second, first], [withdrawal], EXPECTED_PAYMENT, TOLERANCE)

        assert [r.charge.id for r in results] == [first.id, second.id]
        assert [r.outcome for r in results] == [MatchOutcome.MATCHED, MatchOutcome.UNMATCHED]

    def test_exact_beats_closer_partial(self, make_tx, make_withdrawal):
        """Test an exact amount wins even when a partial is dated closer."""
        charge = make_tx("2024-01-10T12:00:00", -5000)
        partial = make_withdrawal("2024-02-05T09:00:00", -5001)
        exact = make_withdrawal("2024-02-08T09:00:00", -5000)

        [result] = match_charges([charge], [partial, exact], EXPECTED_PAYMENT, TOLERANCE)

        assert result.outcome == MatchOutcome.MATCHED
        assert result.withdrawal == exact

    def test_tie_break_closest_to_expected_payment(self, make_tx, make_withdrawal):
        charge = make_tx("2024-01-10T12:00:00", -5000)
        far = make_withdrawal("2024-02-01T09:00:00", -5000)
        near = make_withdrawal("2024-02-06T09:00:00", -5000)

        [result] = match_charges([charge], [far, near], EXPECTED_PAYMENT, TOLERANCE)
        assert result.withdrawal == near

    def test_tie_break_smallest_difference(self, make_tx, make_withdrawal):
        charge = make_tx("2024-01-10T12:00:00", -5000)
        rough = make_withdrawal("2024-02-06T09:00:00", -5050)
        close = make_withdrawal("2024-02-04T09:00:00", -5020)

        [result] = match_charges([charge], [rough, close], EXPECTED_PAYMENT, TOLERANCE)
        assert result.withdrawal == close
        assert result.amount_difference == Decimal("20")

    def test_tie_break_earliest_then_id(self, make_tx, make_withdrawal):
        charge = make_tx("2024-01-10T12:00:00", -5000)
        later = make_withdrawal("2024-02-06T09:00:00", -5000, tx_id="w-a")
        earlier = make_withdrawal("2024-02-04T09:00:00", -5000, tx_id="w-b")
        same_time = make_withdrawal("2024-02-04T09:00:00", -5000, tx_id="w-0")

        [result] = match_charges(
            [charge], [later, earlier, same_time], EXPECTED_PAYMENT, TOLERANCE
        )
        assert result.withdrawal.id == "w-0"

    def test_input_order_does_not_matter(self, make_tx, make_withdrawal):
        """Test results are reproducible regardless of input order."""
        charges = [
            make_tx("2024-01-10T12:00:00", -5000),
            make_tx("2024-01-03T12:00:00", -300),
            make_tx("2024-01-12T12:00:00", -5000),
        ]
        withdrawals = [
            make_withdrawal("2024-02-05T09:00:00", -5000),
            make_withdrawal("2024-02-06T09:00:00", -320),
        ]

        forward = match_charges(charges, withdrawals, EXPECTED_PAYMENT, TOLERANCE)
        backward = match_charges(
            list(reversed(charges)), list(reversed(withdrawals)), EXPECTED_PAYMENT, TOLERANCE
        )

        assert [r.to_record() for r in forward] == [r.to_record() for r in backward]

    def test_negative_tolerance_rejected(self, make_tx):
        with pytest.raises(ValueError):
            match_charges([make_tx("2024-01-10T12:00:00", -1)], [], EXPECTED_PAYMENT, Decimal("-1"))


class TestWithdrawalCandidates:
    """Tests for the withdrawal filter."""

    WINDOW = DateWindow(start=datetime(2024, 1, 31), end=datetime(2024, 2, 8, 23, 59, 59))

    def test_repayment_and_transfer_qualify(self, make_withdrawal):
        assert is_withdrawal_candidate(make_withdrawal("2024-02-05T09:00:00", -1), "bank-main", self.WINDOW)
        assert is_withdrawal_candidate(
            make_withdrawal("2024-02-05T09:00:00", -1, category_type=CategoryType.TRANSFER),
            "bank-main",
            self.WINDOW,
        )

    def test_other_category_rejected(self, make_withdrawal):
        tx = make_withdrawal("2024-02-05T09:00:00", -1, category_type=CategoryType.EXPENSE)
        assert not is_withdrawal_candidate(tx, "bank-main", self.WINDOW)

    def test_other_account_rejected(self, make_withdrawal):
        tx = make_withdrawal("2024-02-05T09:00:00", -1, account_id="savings")
        assert not is_withdrawal_candidate(tx, "bank-main", self.WINDOW)

    def test_outside_window_rejected(self, make_withdrawal):
        tx = make_withdrawal("2024-02-12T09:00:00", -1)
        assert not is_withdrawal_candidate(tx, "bank-main", self.WINDOW)
