"""Reconciliation errors."""

from datetime import date


class ConfigurationError(Exception):
    """A card's billing configuration is missing or invalid."""
    pass


class InvalidPaymentDateError(Exception):
    """The cycle's expected payment date has not been reached yet."""

    def __init__(self, payment_date: date, today: date):
        self.payment_date = payment_date
        self.today = today
        super().__init__(
            f"Expected payment date {payment_date.isoformat()} is after "
            f"{today.isoformat()}; the cycle cannot be reconciled yet"
        )
