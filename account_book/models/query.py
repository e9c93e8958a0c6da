"""
Query Models for Account Book

A ``TransactionQuery`` describes what to read from the ledger; the
``QueryExecutor`` runs it deterministically against stored data and returns
a ``QueryResult``. Results only ever contain real stored records and totals
computed from them.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from account_book.models.transaction import CategoryType, to_naive_utc, utcnow


class TransactionQuery(BaseModel):
    """A structured ledger query."""

    query_id: UUID = Field(
        default_factory=uuid4
    )
    created_at: datetime = Field(
        default_factory=utcnow
    )

    query_type: str = Field(
        ...,
        pattern="^(list|aggregate|exists)$",
        description="Type of query to execute"
    )

    # Filters
    institution_ids: Optional[list[str]] = Field(
        default=None,
        description="Restrict to these institutions; an empty list matches nothing"
    )
    account_id: Optional[str] = None
    category_type: Optional[CategoryType] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    year: Optional[int] = Field(default=None, ge=1, le=9999)
    month: Optional[int] = Field(default=None, ge=1, le=12)
    is_reconciled: Optional[bool] = None

    # For aggregations
    group_by: Optional[str] = Field(
        default=None,
        pattern="^(category|month|institution)$"
    )

    # Limit results
    limit: int = Field(
        default=100,
        ge=1,
        le=1000
    )

    @field_validator('date_from', 'date_to')
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v) if v is not None else None

    @model_validator(mode='after')
    def validate_ranges(self) -> 'TransactionQuery':
        if self.month is not None and self.year is None:
            raise ValueError("month filter requires a year")
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("date_to cannot be before date_from")
        return self


class QueryResult(BaseModel):
    """Result of executing a ``TransactionQuery``."""

    query_id: UUID
    executed_at: datetime = Field(
        default_factory=utcnow
    )

    # Success/failure
    success: bool
    error_message: Optional[str] = None

    # Results
    data_found: bool = Field(
        ...,
        description="Was any data found?"
    )
    result_count: int = Field(
        ge=0,
        description="Number of results"
    )
    results: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Matching transactions as stored documents"
    )

    # Aggregation result if applicable
    aggregation_result: Optional[dict[str, Any]] = None

    query_description: str = Field(
        ...,
        description="Human-readable description of what was queried"
    )
