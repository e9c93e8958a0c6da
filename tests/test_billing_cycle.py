"""Tests for billing cycle resolution."""

import json
from datetime import date, datetime

import pytest

from account_book.reconciliation import (
    CardBillingConfig,
    ConfigurationError,
    StaticBillingCycleResolver,
    build_billing_cycle,
    determine_billing_month,
)
from account_book.reconciliation.billing_cycle import (
    closing_date,
    payment_date,
    shift_business_days,
)


def _config(closing_day=15, payment_day=5, card_id="card-C"):
    return CardBillingConfig(
        card_id=card_id,
        closing_day=closing_day,
        payment_day=payment_day,
        bank_account_id="bank-main",
    )


class TestCalendarHelpers:
    """Tests for closing/payment date arithmetic."""

    @pytest.mark.parametrize(
        "year, month, closing_day, expected",
        [
            (2024, 1, 15, date(2024, 1, 15)),
            (2024, 2, 0, date(2024, 2, 29)),
            (2024, 2, 31, date(2024, 2, 29)),
            (2023, 2, 30, date(2023, 2, 28)),
            (2024, 4, 31, date(2024, 4, 30)),
        ],
    )
    def test_closing_date(self, year, month, closing_day, expected):
        assert closing_date(year, month, closing_day) == expected

    def test_payment_date_is_next_month(self):
        assert payment_date(date(2024, 1, 15), 5) == date(2024, 2, 5)

    def test_payment_date_crosses_year(self):
        assert payment_date(date(2023, 12, 15), 10) == date(2024, 1, 10)

    def test_payment_date_clamped(self):
        assert payment_date(date(2024, 1, 31), 31) == date(2024, 2, 29)

    @pytest.mark.parametrize(
        "start, days, expected",
        [
            (date(2024, 2, 5), -3, date(2024, 1, 31)),   # Monday back over a weekend
            (date(2024, 2, 5), 3, date(2024, 2, 8)),
            (date(2024, 2, 2), 1, date(2024, 2, 5)),     # Friday -> Monday
            (date(2024, 2, 3), -1, date(2024, 2, 2)),    # Saturday -> Friday
            (date(2024, 2, 3), 0, date(2024, 2, 3)),
        ],
    )
    def test_shift_business_days(self, start, days, expected):
        assert shift_business_days(start, days) == expected


class TestDetermineBillingMonth:
    """Tests for assigning a charge to its statement."""

    @pytest.mark.parametrize(
        "moment, closing_day, expected",
        [
            (datetime(2024, 1, 15, 23, 0), 15, "2024-01"),
            (datetime(2024, 1, 16, 0, 0), 15, "2024-02"),
            (datetime(2023, 12, 20), 15, "2024-01"),
            (datetime(2024, 2, 29), 30, "2024-02"),
            (datetime(2024, 1, 31), 31, "2024-01"),
            (date(2024, 3, 1), 0, "2024-03"),
        ],
    )
    def test_billing_month(self, moment, closing_day, expected):
        assert determine_billing_month(moment, closing_day) == expected


class TestBuildBillingCycle:
    """Tests for the resolved windows."""

    def test_mid_month_closing(self):
        cycle = build_billing_cycle(_config(), "2024-01", payment_window_business_days=3)

        assert cycle.charge_window.start == datetime(2023, 12, 16, 0, 0)
        assert cycle.charge_window.end == datetime(2024, 1, 15, 23, 59, 59, 999999)
        assert cycle.expected_payment_date == date(2024, 2, 5)
        assert cycle.payment_window.start == datetime(2024, 1, 31, 0, 0)
        assert cycle.payment_window.end == datetime(2024, 2, 8, 23, 59, 59, 999999)
        assert cycle.bank_account_id == "bank-main"

    def test_month_end_closing(self):
        cycle = build_billing_cycle(_config(closing_day=31, payment_day=27), "2024-02")

        assert cycle.charge_window.start == datetime(2024, 2, 1)
        assert cycle.charge_window.end.date() == date(2024, 2, 29)
        assert cycle.expected_payment_date == date(2024, 3, 27)

    def test_short_previous_month(self):
        """Test a clamped closing day in February starts March's window on the 1st."""
        cycle = build_billing_cycle(_config(closing_day=30), "2023-03")

        assert cycle.charge_window.start == datetime(2023, 3, 1)
        assert cycle.charge_window.end.date() == date(2023, 3, 30)

    def test_consecutive_cycles_do_not_overlap(self):
        january = build_billing_cycle(_config(), "2024-01")
        february = build_billing_cycle(_config(), "2024-02")

        assert february.charge_window.start > january.charge_window.end

    def test_zero_window_is_the_payment_day(self):
        cycle = build_billing_cycle(_config(), "2024-01", payment_window_business_days=0)

        assert cycle.payment_window.start == datetime(2024, 2, 5)
        assert cycle.payment_window.end.date() == date(2024, 2, 5)

    def test_invalid_billing_month(self):
        with pytest.raises(ValueError):
            build_billing_cycle(_config(), "2024-13")


class TestStaticBillingCycleResolver:
    """Tests for resolving configured cards."""

    def test_resolves_configured_card(self):
        resolver = StaticBillingCycleResolver([_config()])
        cycle = resolver.resolve_cycle("card-C", "2024-01")
        assert cycle.card_id == "card-C"
        assert cycle.billing_month == "2024-01"

    def test_unknown_card(self):
        resolver = StaticBillingCycleResolver([_config()])
        with pytest.raises(ConfigurationError):
            resolver.resolve_cycle("card-X", "2024-01")

    @pytest.mark.parametrize(
        "entry",
        [
            {"closingDay": 40, "paymentDay": 5, "bankAccountId": "bank-main"},
            {"closingDay": 15, "bankAccountId": "bank-main"},
            {"closingDay": 15, "paymentDay": 5},
            {"closingDay": 15, "paymentDay": 0, "bankAccountId": "bank-main"},
            {"cardId": "card-D", "closingDay": 15, "paymentDay": 5, "bankAccountId": "bank-main"},
        ],
    )
    def test_invalid_entry(self, entry):
        """Test broken card entries surface as configuration errors."""
        resolver = StaticBillingCycleResolver({"card-C": entry})
        with pytest.raises(ConfigurationError):
            resolver.resolve_cycle("card-C", "2024-01")

    def test_entry_repeating_its_own_key_accepted(self):
        resolver = StaticBillingCycleResolver({
            "card-C": {"cardId": "card-C", "closingDay": 15, "paymentDay": 5, "bankAccountId": "bank-main"},
        })
        assert resolver.resolve_cycle("card-C", "2024-01").card_id == "card-C"

    def test_mismatched_config_object_rejected(self):
        """Test a config filed under another card id is never used for it."""
        resolver = StaticBillingCycleResolver({"card-X": _config()})
        with pytest.raises(ConfigurationError):
            resolver.get_config("card-X")

    def test_from_file_mapping(self, tmp_path):
        path = tmp_path / "cards.json"
        path.write_text(json.dumps({
            "card-C": {"closingDay": 15, "paymentDay": 5, "bankAccountId": "bank-main"},
        }))

        resolver = StaticBillingCycleResolver.from_file(path, payment_window_business_days=2)
        cycle = resolver.resolve_cycle("card-C", "2024-01")
        assert cycle.payment_window.start == datetime(2024, 2, 1)
        assert resolver.card_ids == ["card-C"]

    def test_from_file_list(self, tmp_path):
        path = tmp_path / "cards.json"
        path.write_text(json.dumps([
            {"cardId": "card-C", "closingDay": 0, "paymentDay": 10, "bankAccountId": "bank-main"},
        ]))

        resolver = StaticBillingCycleResolver.from_file(path)
        assert resolver.get_config("card-C").closing_day == 0

    def test_from_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            StaticBillingCycleResolver.from_file(tmp_path / "missing.json")

    def test_from_corrupt_file(self, tmp_path):
        path = tmp_path / "cards.json"
        path.write_text("{oops")
        with pytest.raises(ConfigurationError):
            StaticBillingCycleResolver.from_file(path)
