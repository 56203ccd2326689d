"""
Report Aggregations

DESIGN DECISION: Aggregation is DETERMINISTIC and works only on the
transactions it is given; nothing is estimated. Amounts are stored as
floats, so every sum is done in Decimal and rounded to cents at the end
(``-50.1 + -30.2`` must report ``80.30``, not ``80.30000000000001``).
"""

import calendar
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Sequence

from pydantic import BaseModel, ConfigDict

from expenseflow.models import DEFAULT_CATEGORY, Budget, FamilyMember, Transaction
from expenseflow.utils.dates import effective_timezone


CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_money(value: float) -> Decimal:
    return Decimal(str(value))


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def local_date(value: datetime, tz: str = "auto") -> date:
    """Calendar date of a stored timestamp in the user's timezone."""
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(effective_timezone(tz)).date()


class _Report(BaseModel):
    model_config = ConfigDict(frozen=True)


# =============================================================================
# TOTALS
# =============================================================================

class Totals(_Report):
    balance: Decimal
    income: Decimal
    expense: Decimal


def totals(transactions: Iterable[Transaction]) -> Totals:
    """Balance, income and expense (expense as a positive number)."""
    income = ZERO
    expense = ZERO
    for t in transactions:
        amount = to_money(t.amount)
        if amount > 0:
            income += amount
        elif amount < 0:
            expense -= amount
    return Totals(
        balance=round_money(income - expense),
        income=round_money(income),
        expense=round_money(expense),
    )


class CategoryTotal(_Report):
    category: str
    amount: Decimal


def category_breakdown(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    """Expense totals per category, largest first."""
    by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for t in transactions:
        if t.amount < 0:
            by_category[t.category or DEFAULT_CATEGORY] += -to_money(t.amount)
    return sorted(
        (CategoryTotal(category=c, amount=round_money(v)) for c, v in by_category.items()),
        key=lambda row: row.amount,
        reverse=True,
    )


class PeriodSummary(_Report):
    month_income: Decimal
    month_expense: Decimal
    year_income: Decimal
    year_expense: Decimal


def period_summary(
    transactions: Sequence[Transaction],
    today: date,
    tz: str = "auto",
) -> PeriodSummary:
    """Income and expense for the month and the year containing ``today``."""
    year = [t for t in transactions if local_date(t.date, tz).year == today.year]
    month = [t for t in year if local_date(t.date, tz).month == today.month]
    month_totals = totals(month)
    year_totals = totals(year)
    return PeriodSummary(
        month_income=month_totals.income,
        month_expense=month_totals.expense,
        year_income=year_totals.income,
        year_expense=year_totals.expense,
    )


# =============================================================================
# DATE RANGES
# =============================================================================

class RangePreset(str, Enum):
    THIS_MONTH = "thisMonth"
    LAST_MONTH = "lastMonth"
    LAST_3_MONTHS = "last3Months"
    THIS_YEAR = "thisYear"


class DateRange(_Report):
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def date_range(preset: str, today: date) -> DateRange:
    """Inclusive date range for a report preset; unknown presets mean this month."""
    try:
        preset = RangePreset(preset)
    except ValueError:
        preset = RangePreset.THIS_MONTH

    if preset == RangePreset.LAST_MONTH:
        year, month = _shift_month(today.year, today.month, -1)
        last = calendar.monthrange(year, month)[1]
        return DateRange(start=date(year, month, 1), end=date(year, month, last))
    if preset == RangePreset.LAST_3_MONTHS:
        year, month = _shift_month(today.year, today.month, -3)
        return DateRange(start=date(year, month, 1), end=today)
    if preset == RangePreset.THIS_YEAR:
        return DateRange(start=date(today.year, 1, 1), end=today)

    last = calendar.monthrange(today.year, today.month)[1]
    return DateRange(
        start=date(today.year, today.month, 1),
        end=date(today.year, today.month, last),
    )


def filter_by_date_range(
    transactions: Iterable[Transaction],
    period: DateRange,
    tz: str = "auto",
) -> list[Transaction]:
    return [t for t in transactions if period.contains(local_date(t.date, tz))]


class ReportStats(_Report):
    income: Decimal
    expenses: Decimal
    net: Decimal
    average_daily_spend: Decimal


def report_stats(transactions: Sequence[Transaction], period: DateRange) -> ReportStats:
    """Totals for already-filtered transactions plus average spend per day of ``period``."""
    result = totals(transactions)
    return ReportStats(
        income=result.income,
        expenses=result.expense,
        net=result.balance,
        average_daily_spend=round_money(result.expense / max(1, period.days)),
    )


# =============================================================================
# TRENDS
# =============================================================================

class TrendView(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class TrendPoint(_Report):
    label: str
    start: date
    income: Decimal
    expenses: Decimal


def _bucket_start(day: date, view: TrendView) -> date:
    if view == TrendView.WEEKLY:
        # Weeks start on Sunday
        return day - timedelta(days=(day.weekday() + 1) % 7)
    if view == TrendView.MONTHLY:
        return day.replace(day=1)
    return day


def _bucket_label(start: date, view: TrendView) -> str:
    if view == TrendView.MONTHLY:
        return f"{start:%b} {start.year}"
    return f"{start:%b} {start.day}"


def trend_data(
    transactions: Iterable[Transaction],
    view: str = TrendView.DAILY.value,
    tz: str = "auto",
    limit: int = 30,
) -> list[TrendPoint]:
    """Income and expenses per day, week or month; the latest ``limit`` buckets."""
    view = TrendView(view)
    income: dict[date, Decimal] = defaultdict(lambda: ZERO)
    expenses: dict[date, Decimal] = defaultdict(lambda: ZERO)

    for t in transactions:
        start = _bucket_start(local_date(t.date, tz), view)
        amount = to_money(t.amount)
        if amount > 0:
            income[start] += amount
        else:
            expenses[start] -= amount

    buckets = sorted(set(income) | set(expenses))[-limit:]
    return [
        TrendPoint(
            label=_bucket_label(start, view),
            start=start,
            income=round_money(income[start]),
            expenses=round_money(expenses[start]),
        )
        for start in buckets
    ]


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetHealth(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    OVER = "over"


class BudgetStatus(_Report):
    budget: Budget
    spent: Decimal
    remaining: Decimal
    percentage: Decimal
    status: BudgetHealth


def budget_status(
    budget: Budget,
    transactions: Iterable[Transaction],
    warning_threshold: int = 80,
    tz: str = "auto",
) -> BudgetStatus:
    """
    How much of a budget is used.

    Counts expenses of the budget's category in the budget's month/year.
    """
    spent = ZERO
    for t in transactions:
        if t.amount >= 0 or (t.category or DEFAULT_CATEGORY) != budget.category:
            continue
        day = local_date(t.date, tz)
        if day.year == budget.year and day.month == budget.month:
            spent -= to_money(t.amount)

    limit = to_money(budget.limit)
    percentage = spent / limit * 100
    if percentage >= 100:
        health = BudgetHealth.OVER
    elif percentage >= warning_threshold:
        health = BudgetHealth.WARNING
    else:
        health = BudgetHealth.GOOD

    return BudgetStatus(
        budget=budget,
        spent=round_money(spent),
        remaining=round_money(limit - spent),
        percentage=percentage.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP),
        status=health,
    )


# =============================================================================
# FAMILY
# =============================================================================

class MemberContribution(_Report):
    uid: str
    name: str
    amount: Decimal
    count: int
    percentage: Decimal


def member_contributions(
    family_transactions: Iterable[Transaction],
    members: Sequence[FamilyMember] = (),
) -> list[MemberContribution]:
    """
    Expense totals per member (by ``added_by``), largest first.

    Members with no expenses are left out.
    """
    names = {m.uid: m.name for m in members}
    amounts: dict[str, Decimal] = defaultdict(lambda: ZERO)
    counts: dict[str, int] = defaultdict(int)
    fallback_names: dict[str, str] = {}

    for t in family_transactions:
        if t.amount >= 0 or not t.added_by:
            continue
        amounts[t.added_by] -= to_money(t.amount)
        counts[t.added_by] += 1
        if t.added_by_name:
            fallback_names.setdefault(t.added_by, t.added_by_name)

    total = sum(amounts.values(), ZERO)
    rows = [
        MemberContribution(
            uid=uid,
            name=names.get(uid) or fallback_names.get(uid) or "Unknown",
            amount=round_money(amount),
            count=counts[uid],
            percentage=(amount / total * 100).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP),
        )
        for uid, amount in amounts.items()
        if amount > 0
    ]
    return sorted(rows, key=lambda row: row.amount, reverse=True)


def current_month_budgets(budgets: Iterable[Budget], today: date) -> list[Budget]:
    return [b for b in budgets if b.month == today.month and b.year == today.year]


def budget_statuses(
    budgets: Iterable[Budget],
    transactions: Sequence[Transaction],
    family_transactions: Sequence[Transaction] = (),
    warning_threshold: int = 80,
    tz: str = "auto",
) -> list[BudgetStatus]:
    """Status of every budget; family budgets are measured against family transactions."""
    return [
        budget_status(
            b,
            family_transactions if b.is_family else transactions,
            warning_threshold,
            tz,
        )
        for b in budgets
    ]

