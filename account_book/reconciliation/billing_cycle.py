"""
Billing Cycle Resolution

Turns a card's closing-day / payment-day configuration into the concrete
windows the reconciliation engine consumes.

Rules:
- A closing day of 0 or 31 means "last day of the month".
- A closing or payment day past the end of a short month is clamped to that
  month's last day (closing day 30 in February closes on the 28th or 29th).
- The charge window of billing month M runs from the day after M-1's closing
  date (00:00) to M's closing date (23:59:59.999999).
- The expected payment date is the payment day of the month after the
  closing month.
- The payment window spans N business days (weekends skipped) on each side
  of the expected payment date.
"""

import calendar
import json
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Any, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from account_book.logging_setup import get_logger
from account_book.models.reconciliation import (
    BillingCycle,
    DateWindow,
    format_billing_month,
    parse_billing_month,
)
from account_book.reconciliation.errors import ConfigurationError

logger = get_logger(__name__)

END_OF_MONTH_CLOSING_DAYS = (0, 31)
DEFAULT_PAYMENT_WINDOW_BUSINESS_DAYS = 3


class CardBillingConfig(BaseModel):
    """Closing/payment schedule of one credit card."""
    model_config = ConfigDict(populate_by_name=True, frozen=True, str_strip_whitespace=True)

    card_id: str = Field(..., alias="cardId", min_length=1)
    closing_day: int = Field(
        ...,
        alias="closingDay",
        ge=0,
        le=31,
        description="Day of month the statement closes; 0 or 31 = month end"
    )
    payment_day: int = Field(
        ...,
        alias="paymentDay",
        ge=1,
        le=31,
        description="Day of the following month the statement is debited"
    )
    bank_account_id: str = Field(
        ...,
        alias="bankAccountId",
        min_length=1,
        description="Bank account the statement is paid from"
    )


class BillingCycleResolver(Protocol):
    """Anything that can resolve ``(card_id, billing_month)`` into a cycle."""

    def resolve_cycle(self, card_id: str, billing_month: str) -> BillingCycle:
        ...


# =============================================================================
# CALENDAR HELPERS
# =============================================================================

def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def closing_date(year: int, month: int, closing_day: int) -> date:
    """Closing date of the statement for ``(year, month)``."""
    last = last_day_of_month(year, month)
    if closing_day in END_OF_MONTH_CLOSING_DAYS:
        return date(year, month, last)
    return date(year, month, min(closing_day, last))


def payment_date(closing: date, payment_day: int) -> date:
    """Payment day of the month after ``closing``, clamped to that month."""
    year, month = _shift_month(closing.year, closing.month, 1)
    return date(year, month, min(payment_day, last_day_of_month(year, month)))


def shift_business_days(day: date, business_days: int) -> date:
    """
    Move ``business_days`` Monday-Friday days forward (or back if negative).

    Zero returns ``day`` unchanged, even on a weekend.
    """
    step = 1 if business_days >= 0 else -1
    remaining = abs(business_days)
    current = day
    while remaining:
        current += timedelta(days=step)
        if current.weekday() < 5:
            remaining -= 1
    return current


def determine_billing_month(moment: Union[date, datetime], closing_day: int) -> str:
    """Billing month a charge made on ``moment`` is statemented in."""
    year, month = moment.year, moment.month
    if closing_day in END_OF_MONTH_CLOSING_DAYS:
        return format_billing_month(year, month)
    if moment.day <= min(closing_day, last_day_of_month(year, month)):
        return format_billing_month(year, month)
    return format_billing_month(*_shift_month(year, month, 1))


def build_billing_cycle(
    config: CardBillingConfig,
    billing_month: str,
    payment_window_business_days: int = DEFAULT_PAYMENT_WINDOW_BUSINESS_DAYS,
) -> BillingCycle:
    """Resolve one card's windows for one billing month."""
    year, month = parse_billing_month(billing_month)

    closing = closing_date(year, month, config.closing_day)
    previous_closing = closing_date(*_shift_month(year, month, -1), config.closing_day)
    expected_payment = payment_date(closing, config.payment_day)

    payment_start = shift_business_days(expected_payment, -payment_window_business_days)
    payment_end = shift_business_days(expected_payment, payment_window_business_days)

    return BillingCycle(
        card_id=config.card_id,
        billing_month=billing_month,
        charge_window=DateWindow(
            start=datetime.combine(previous_closing + timedelta(days=1), time.min),
            end=datetime.combine(closing, time.max),
        ),
        payment_window=DateWindow(
            start=datetime.combine(payment_start, time.min),
            end=datetime.combine(payment_end, time.max),
        ),
        expected_payment_date=expected_payment,
        bank_account_id=config.bank_account_id,
    )


# =============================================================================
# RESOLVER
# =============================================================================

class StaticBillingCycleResolver:
    """
    Resolves billing cycles from a fixed set of card configurations.

    Entries are validated when a card is resolved, so one broken card entry
    does not prevent reconciling the others.
    """

    def __init__(
        self,
        cards: Union[Mapping[str, Any], Iterable[Any]],
        payment_window_business_days: int = DEFAULT_PAYMENT_WINDOW_BUSINESS_DAYS,
    ):
        if payment_window_business_days < 0:
            raise ValueError("payment_window_business_days cannot be negative")
        self._payment_window_business_days = payment_window_business_days
        self._cards: dict[str, Any] = {}

        if isinstance(cards, Mapping):
            for card_id, entry in cards.items():
                self._cards[card_id] = entry
        else:
            for entry in cards:
                if isinstance(entry, CardBillingConfig):
                    card_id = entry.card_id
                elif isinstance(entry, Mapping):
                    card_id = entry.get("cardId", entry.get("card_id"))
                else:
                    raise ConfigurationError(f"Invalid card configuration entry: {entry!r}")
                if not card_id:
                    raise ConfigurationError(f"Card configuration without a card id: {entry!r}")
                self._cards[card_id] = entry

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        payment_window_business_days: int = DEFAULT_PAYMENT_WINDOW_BUSINESS_DAYS,
    ) -> "StaticBillingCycleResolver":
        """
        Load card configurations from a JSON file.

        The file holds either an object keyed by card id or a list of
        objects each carrying ``cardId``.

        Raises:
            ConfigurationError: If the file is missing or not valid JSON
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ConfigurationError(f"Card configuration file not found: {path}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read card configuration {path}: {e}") from e

        if not isinstance(data, (dict, list)):
            raise ConfigurationError(f"Card configuration {path} must be an object or a list")
        return cls(data, payment_window_business_days)

    @property
    def card_ids(self) -> list[str]:
        return sorted(self._cards)

    def get_config(self, card_id: str) -> CardBillingConfig:
        """
        Raises:
            ConfigurationError: If the card is unknown or its entry is invalid
        """
        entry = self._cards.get(card_id)
        if entry is None:
            raise ConfigurationError(f"No billing configuration for card {card_id}")
        if isinstance(entry, CardBillingConfig):
            declared = entry.card_id
        elif isinstance(entry, Mapping):
            declared = entry.get("cardId", entry.get("card_id", card_id))
        else:
            raise ConfigurationError(f"Invalid billing configuration for card {card_id}")
        if declared != card_id:
            raise ConfigurationError(
                f"Billing configuration under {card_id} declares card {declared}"
            )
        if isinstance(entry, CardBillingConfig):
            return entry

        try:
            fields = {k: v for k, v in entry.items() if k not in ("cardId", "card_id")}
            return CardBillingConfig.model_validate({**fields, "cardId": card_id})
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid billing configuration for card {card_id}: {e}"
            ) from e

    def resolve_cycle(self, card_id: str, billing_month: str) -> BillingCycle:
        config = self.get_config(card_id)
        cycle = build_billing_cycle(config, billing_month, self._payment_window_business_days)
        logger.debug(
            "billing_cycle_resolved",
            card_id=card_id,
            billing_month=billing_month,
            charge_start=cycle.charge_window.start.isoformat(),
            charge_end=cycle.charge_window.end.isoformat(),
            expected_payment_date=cycle.expected_payment_date.isoformat(),
        )
        return cycle
