"""
Transaction Models for Account Book

These models define the schema of every ledger record. They are designed to:
1. Enforce type safety at runtime
2. Round-trip losslessly through the JSON partition files
3. Keep the camelCase field names of the on-disk documents

Amounts are Decimals and are written to disk as strings so that a value read
back compares equal to the value that was saved.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every stored datetime takes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# =============================================================================
# ENUMS
# =============================================================================

class CategoryType(str, Enum):
    """
    Classification of a category.

    The sign convention of an amount follows the category type: income is
    positive, expenses and withdrawals are negative. The store itself does
    not enforce it.
    """
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"
    REPAYMENT = "REPAYMENT"
    INVESTMENT = "INVESTMENT"


class TransactionStatus(str, Enum):
    """Settlement status reported by the institution."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


# =============================================================================
# CORE TRANSACTION MODEL
# =============================================================================

class CategorySnapshot(BaseModel):
    """
    Denormalized copy of a category at classification time.

    A historical transaction keeps the label it had when it was classified,
    even if the category is renamed later.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    type: CategoryType


class Transaction(BaseModel):
    """
    A single bank or credit-card transaction.

    The ``date`` decides which monthly partition holds the record; it is
    fixed at creation. Moving a transaction to another month is a delete
    followed by a save (see ``TransactionLedger.move``).
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    # Identity
    id: str = Field(
        ...,
        min_length=1,
        description="Globally unique, immutable identifier"
    )

    # Core fields
    date: datetime = Field(
        ...,
        description="When the transaction happened; selects the partition"
    )
    amount: Decimal = Field(
        ...,
        description="Signed amount; income positive, expense/withdrawal negative"
    )
    category: CategorySnapshot
    description: str = Field(default="", max_length=1000)

    # Ownership
    institution_id: str = Field(..., alias="institutionId", min_length=1)
    account_id: str = Field(..., alias="accountId", min_length=1)

    # Status tracking
    status: TransactionStatus = Field(default=TransactionStatus.COMPLETED)
    is_reconciled: bool = Field(default=False, alias="isReconciled")
    related_transaction_id: Optional[str] = Field(
        default=None,
        alias="relatedTransactionId",
        description="Back-reference to the transaction this one was reconciled with"
    )

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")

    @field_validator('date', 'created_at', 'updated_at')
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        """Store every datetime as naive UTC so comparisons never mix kinds."""
        return to_naive_utc(v)

    @field_validator('status', mode='before')
    @classmethod
    def default_missing_status(cls, v: Any) -> Any:
        return TransactionStatus.COMPLETED if v in (None, "") else v

    @field_validator('is_reconciled', mode='before')
    @classmethod
    def default_missing_flag(cls, v: Any) -> Any:
        return False if v is None else v

    @property
    def absolute_amount(self) -> Decimal:
        return abs(self.amount)

    def mark_reconciled(self, related_transaction_id: str) -> "Transaction":
        """Return a copy flagged as reconciled against another transaction."""
        return self.model_copy(
            update={
                "is_reconciled": True,
                "related_transaction_id": related_transaction_id,
                "updated_at": utcnow(),
            }
        )

    def to_document(self) -> dict[str, Any]:
        """Serialize to the JSON shape stored in a partition file."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "Transaction":
        return cls.model_validate(data)
