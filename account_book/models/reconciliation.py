"""
Reconciliation Models for Account Book

A reconciliation report answers one question for one card and one billing
month: which credit-card charges are backed by a real bank debit?

Reports are immutable once created. Re-running reconciliation produces a new
report; it never edits an old one.
"""

import datetime as dt
import re
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from account_book.models.transaction import to_naive_utc, utcnow


BILLING_MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"
_BILLING_MONTH_RE = re.compile(BILLING_MONTH_PATTERN)


def parse_billing_month(billing_month: str) -> tuple[int, int]:
    """Split a ``YYYY-MM`` string into ``(year, month)``."""
    if not isinstance(billing_month, str) or not _BILLING_MONTH_RE.fullmatch(billing_month):
        raise ValueError(
            f"Billing month must be in YYYY-MM format, got {billing_month!r}"
        )
    year, month = billing_month.split("-")
    return int(year), int(month)


def format_billing_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


# =============================================================================
# ENUMS
# =============================================================================

class MatchOutcome(str, Enum):
    """Per-charge classification produced by the matching algorithm."""
    MATCHED = "MATCHED"      # Exact amount match
    PARTIAL = "PARTIAL"      # Within the configured tolerance
    UNMATCHED = "UNMATCHED"  # No withdrawal qualified


class ReconciliationStatus(str, Enum):
    """Aggregate classification of a whole report."""
    MATCHED = "MATCHED"
    UNMATCHED = "UNMATCHED"
    PARTIAL = "PARTIAL"


# =============================================================================
# BILLING CYCLE
# =============================================================================

class DateWindow(BaseModel):
    """Closed datetime interval ``[start, end]``."""
    model_config = ConfigDict(frozen=True)

    start: dt.datetime
    end: dt.datetime

    @field_validator('start', 'end')
    @classmethod
    def normalize_timezone(cls, v: dt.datetime) -> dt.datetime:
        return to_naive_utc(v)

    @model_validator(mode='after')
    def validate_order(self) -> 'DateWindow':
        if self.end < self.start:
            raise ValueError("Window end cannot be before start")
        return self

    def contains(self, moment: dt.datetime) -> bool:
        return self.start <= moment <= self.end


class BillingCycle(BaseModel):
    """
    A card's billing cycle resolved into concrete windows.

    Supplied by the billing-cycle resolver; the engine only consumes it.
    """
    model_config = ConfigDict(frozen=True)

    card_id: str
    billing_month: str = Field(..., pattern=BILLING_MONTH_PATTERN)
    charge_window: DateWindow
    payment_window: DateWindow
    expected_payment_date: dt.date
    bank_account_id: str = Field(
        ...,
        min_length=1,
        description="Bank account the card statement is debited from"
    )


# =============================================================================
# REPORT
# =============================================================================

class ReconciliationRecord(BaseModel):
    """Outcome for one credit-card charge."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    credit_card_transaction_id: str = Field(..., alias="creditCardTransactionId")
    bank_transaction_id: Optional[str] = Field(default=None, alias="bankTransactionId")
    outcome: MatchOutcome

    # Diagnostics for matched and partial outcomes
    amount_difference: Optional[Decimal] = Field(
        default=None,
        alias="amountDifference",
        ge=0,
        description="Absolute difference between charge and withdrawal amounts"
    )
    date_difference: Optional[int] = Field(
        default=None,
        alias="dateDifference",
        description="Days from the expected payment date to the withdrawal"
    )

    @model_validator(mode='after')
    def validate_bank_reference(self) -> 'ReconciliationRecord':
        if self.outcome == MatchOutcome.UNMATCHED and self.bank_transaction_id:
            raise ValueError("Unmatched records cannot reference a bank transaction")
        if self.outcome != MatchOutcome.UNMATCHED and not self.bank_transaction_id:
            raise ValueError(f"{self.outcome.value} records require a bank transaction")
        return self


class ReconciliationSummary(BaseModel):
    """Outcome counts of a single run."""
    model_config = ConfigDict(frozen=True)

    total: int = Field(..., ge=0)
    matched: int = Field(..., ge=0)
    unmatched: int = Field(..., ge=0)
    partial: int = Field(..., ge=0)

    @model_validator(mode='after')
    def validate_total(self) -> 'ReconciliationSummary':
        if self.total != self.matched + self.unmatched + self.partial:
            raise ValueError("Summary total must equal matched + unmatched + partial")
        return self

    @classmethod
    def from_records(cls, records: list[ReconciliationRecord]) -> 'ReconciliationSummary':
        counts = {outcome: 0 for outcome in MatchOutcome}
        for record in records:
            counts[record.outcome] += 1
        return cls(
            total=len(records),
            matched=counts[MatchOutcome.MATCHED],
            unmatched=counts[MatchOutcome.UNMATCHED],
            partial=counts[MatchOutcome.PARTIAL],
        )

    @property
    def status(self) -> ReconciliationStatus:
        """
        Aggregate status.

        MATCHED when nothing is unmatched or partial, UNMATCHED when nothing
        matched at all, PARTIAL otherwise. An empty run is MATCHED.
        """
        if self.unmatched == 0 and self.partial == 0:
            return ReconciliationStatus.MATCHED
        if self.matched == 0 and self.partial == 0:
            return ReconciliationStatus.UNMATCHED
        return ReconciliationStatus.PARTIAL


class ReconciliationReportSummary(BaseModel):
    """Listing projection of a report (no per-charge records)."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    reconciliation_id: str = Field(..., alias="reconciliationId")
    card_id: str = Field(..., alias="cardId")
    billing_month: str = Field(..., alias="billingMonth")
    executed_at: dt.datetime = Field(..., alias="executedAt")
    status: ReconciliationStatus
    summary: ReconciliationSummary


class ReconciliationReport(BaseModel):
    """
    Result of one reconciliation run.

    ``records`` is ordered by charge date (then id), the order in which the
    matching algorithm evaluated the charges.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    reconciliation_id: str = Field(
        default_factory=lambda: str(uuid4()),
        alias="reconciliationId",
        min_length=1,
    )
    card_id: str = Field(..., alias="cardId", min_length=1)
    billing_month: str = Field(..., alias="billingMonth", pattern=BILLING_MONTH_PATTERN)
    executed_at: dt.datetime = Field(default_factory=utcnow, alias="executedAt")
    status: ReconciliationStatus
    summary: ReconciliationSummary
    records: list[ReconciliationRecord] = Field(default_factory=list)

    @field_validator('executed_at')
    @classmethod
    def normalize_timezone(cls, v: dt.datetime) -> dt.datetime:
        return to_naive_utc(v)

    @model_validator(mode='after')
    def validate_summary_matches_records(self) -> 'ReconciliationReport':
        if self.summary != ReconciliationSummary.from_records(self.records):
            raise ValueError("Summary counts do not match the report records")
        if self.status != self.summary.status:
            raise ValueError(
                f"Status {self.status.value} does not follow from the summary "
                f"({self.summary.status.value})"
            )
        return self

    def to_summary(self) -> ReconciliationReportSummary:
        return ReconciliationReportSummary(
            reconciliation_id=self.reconciliation_id,
            card_id=self.card_id,
            billing_month=self.billing_month,
            executed_at=self.executed_at,
            status=self.status,
            summary=self.summary,
        )

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, data: dict) -> 'ReconciliationReport':
        return cls.model_validate(data)
