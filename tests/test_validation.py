"""Tests for form validation and date helpers."""

from datetime import date, datetime, timezone

import pytest

from expenseflow.models import INCOME_CATEGORY
from expenseflow.utils.dates import (
    effective_timezone,
    end_of_day,
    format_date_for_input,
    format_datetime_for_input,
    format_display_date,
    parse_input_date,
    start_of_day,
)
from expenseflow.validation import (
    ValidationError,
    build_budget,
    build_transaction,
    validate_budget_form,
    validate_category_name,
    validate_invitation_email,
    validate_transaction_form,
)


NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class TestTransactionForm:
    """Tests for the transaction form."""

    def test_valid_form(self):
        result = validate_transaction_form("Coffee", "4.50", "expense", "2026-03-10", "UTC")
        assert result.is_valid
        assert result.issues == []

    def test_reports_every_problem(self):
        """Test that all issues are reported, not just the first."""
        result = validate_transaction_form("  ", "abc", "transfer", "not-a-date", "UTC")
        assert not result.is_valid
        assert {issue.field for issue in result.issues} == {"text", "amount", "type", "date"}
        assert result.error_for("amount") == "Amount must be a number"

    def test_zero_amount(self):
        result = validate_transaction_form("Coffee", "0", "expense")
        assert result.error_for("amount") == "Amount cannot be zero"

    def test_description_length(self):
        result = validate_transaction_form("x" * 201, "1", "expense")
        assert result.error_for("text") is not None

    def test_build_expense_is_negative(self):
        t = build_transaction(
            " Coffee ",
            "4.5",
            "expense",
            category="Restaurants",
            date_text="2026-03-10",
            timezone="UTC",
            now=NOW,
        )
        assert t.text == "Coffee"
        assert t.amount == -4.5
        assert t.category == "Restaurants"
        assert t.date == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

    def test_build_income_is_positive_and_categorized(self):
        t = build_transaction("Salary", "-1000", "income", category="Groceries", timezone="UTC", now=NOW)
        assert t.amount == 1000
        assert t.category == INCOME_CATEGORY
        assert t.date == NOW

    def test_build_rejects_invalid_form(self):
        with pytest.raises(ValidationError) as exc_info:
            build_transaction("", "1", "expense")
        assert exc_info.value.result.error_for("text") == "Description is required"


class TestOtherForms:
    """Tests for budget, category and invitation forms."""

    def test_budget_limit_must_be_positive(self):
        assert validate_budget_form("Groceries", "-5").error_for("limit") == (
            "Limit must be greater than zero"
        )
        assert not validate_budget_form("", "10").is_valid

    def test_build_budget(self):
        budget = build_budget("Groceries", "250", 3, 2026, family_id="family_1")
        assert budget.limit == 250
        assert budget.month == 3
        assert budget.family_id is None

    def test_build_family_budget(self):
        budget = build_budget("Bills", 100, 3, 2026, is_family=True, family_id="family_1")
        assert budget.family_id == "family_1"

    def test_build_budget_rejects_invalid(self):
        with pytest.raises(ValidationError):
            build_budget("Groceries", "lots", 3, 2026)

    def test_category_name(self):
        existing = ["Groceries", "Bills"]
        assert validate_category_name("Pets", existing).is_valid
        assert validate_category_name("   ", existing).error_for("category") == (
            "Category name cannot be empty"
        )
        assert validate_category_name(" Bills ", existing).error_for("category") == (
            "Category already exists"
        )

    def test_invitation_email(self):
        assert validate_invitation_email(" bob@example.com ").is_valid
        assert not validate_invitation_email("bob@").is_valid
        assert not validate_invitation_email(None).is_valid


class TestDates:
    """Tests for timezone-aware date helpers."""

    def test_bare_date_keeps_local_time_of_day(self):
        parsed = parse_input_date("2026-03-10", "Asia/Kolkata", now=NOW)
        assert parsed == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

    def test_datetime_input_is_local(self):
        parsed = parse_input_date("2026-03-10T08:15", "America/New_York")
        assert parsed == datetime(2026, 3, 10, 12, 15, tzinfo=timezone.utc)

    def test_empty_input_is_now(self):
        assert parse_input_date("", "UTC", now=NOW) == NOW

    def test_unparseable_input(self):
        with pytest.raises(ValueError):
            parse_input_date("yesterday", "UTC")

    def test_format_for_input_uses_timezone(self):
        value = datetime(2026, 3, 1, 2, 0, tzinfo=timezone.utc)
        assert format_date_for_input(value, "America/New_York") == "2026-02-28"
        assert format_date_for_input(value, "UTC") == "2026-03-01"
        assert format_date_for_input(None) == ""

    def test_format_datetime_for_input(self):
        value = datetime(2026, 3, 10, 12, 15, tzinfo=timezone.utc)
        assert format_datetime_for_input(value, "America/New_York") == "2026-03-10T08:15"
        assert format_datetime_for_input(None) == ""

    def test_day_bounds(self):
        assert start_of_day(NOW, "Asia/Kolkata") == datetime(2026, 3, 14, 18, 30, tzinfo=timezone.utc)
        assert end_of_day(NOW, "Asia/Kolkata") == datetime(2026, 3, 15, 18, 29, 59, tzinfo=timezone.utc)

    def test_display_date(self):
        assert format_display_date(date(2026, 1, 5), "UTC") == "Mon, Jan 5, 2026"

    def test_unknown_timezone(self):
        with pytest.raises(ValueError):
            effective_timezone("Mars/Olympus_Mons")

    def test_auto_timezone(self):
        assert effective_timezone("auto") is not None
