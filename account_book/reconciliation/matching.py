"""
Charge / withdrawal matching.

Pure functions: no storage, no clock. Given the same inputs the result is
always the same, which is what makes reconciliation runs reproducible.

Greedy algorithm:
1. Charges are processed in ascending ``(date, id)`` order.
2. For each charge, an unconsumed withdrawal with exactly the same absolute
   amount wins (MATCHED). Otherwise one within ``amount_tolerance`` wins
   (PARTIAL). Otherwise the charge is UNMATCHED.
3. A withdrawal that matched is consumed and cannot match another charge.

Among several qualifying withdrawals the winner is the one dated closest to
the expected payment date, then the one with the smallest amount
difference, then the earliest, then the smallest id.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from account_book.models.reconciliation import (
    DateWindow,
    MatchOutcome,
    ReconciliationRecord,
)
from account_book.models.transaction import CategoryType, Transaction

WITHDRAWAL_CATEGORY_TYPES = frozenset({CategoryType.TRANSFER, CategoryType.REPAYMENT})


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching one charge."""
    charge: Transaction
    outcome: MatchOutcome
    withdrawal: Optional[Transaction] = None
    amount_difference: Optional[Decimal] = None
    date_difference: Optional[int] = None

    def to_record(self) -> ReconciliationRecord:
        return ReconciliationRecord(
            credit_card_transaction_id=self.charge.id,
            bank_transaction_id=self.withdrawal.id if self.withdrawal else None,
            outcome=self.outcome,
            amount_difference=self.amount_difference,
            date_difference=self.date_difference,
        )


def chronological(transactions: Iterable[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda tx: (tx.date, tx.id))


def is_withdrawal_candidate(
    tx: Transaction,
    bank_account_id: str,
    payment_window: Optional[DateWindow] = None,
) -> bool:
    """Bank-side transaction that may pay a card statement."""
    if tx.account_id != bank_account_id:
        return False
    if tx.category.type not in WITHDRAWAL_CATEGORY_TYPES:
        return False
    return payment_window is None or payment_window.contains(tx.date)


def match_charges(
    charges: Iterable[Transaction],
    withdrawals: Iterable[Transaction],
    expected_payment_date: date,
    amount_tolerance: Decimal,
) -> list[MatchResult]:
    """
    Match every charge against the withdrawals.

    Returns:
        One ``MatchResult`` per charge, in processing order
    """
    if amount_tolerance < 0:
        raise ValueError("amount_tolerance cannot be negative")

    available = chronological(withdrawals)
    consumed: set[str] = set()
    results = []

    for charge in chronological(charges):
        target = charge.absolute_amount
        best = None
        best_rank = None
        best_difference = None

        for withdrawal in available:
            if withdrawal.id in consumed:
                continue
            difference = abs(target - withdrawal.absolute_amount)
            if difference > amount_tolerance:
                continue
            # Exact matches always outrank tolerance matches
            rank = (
                difference != 0,
                abs((withdrawal.date.date() - expected_payment_date).days),
                difference,
                withdrawal.date,
                withdrawal.id,
            )
            if best_rank is None or rank < best_rank:
                best, best_rank, best_difference = withdrawal, rank, difference

        if best is None:
            results.append(MatchResult(charge=charge, outcome=MatchOutcome.UNMATCHED))
            continue

        consumed.add(best.id)
        results.append(
            MatchResult(
                charge=charge,
                outcome=MatchOutcome.MATCHED if best_difference == 0 else MatchOutcome.PARTIAL,
                withdrawal=best,
                amount_difference=best_difference,
                date_difference=(best.date.date() - expected_payment_date).days,
            )
        )

    return results
