"""
Exports

Two snapshot dumps, both synchronous:
- CSV of a (usually filtered) transaction list
- JSON backup of transactions, budgets, goals and settings
"""

from datetime import datetime
from typing import Iterable, Optional, Sequence, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from expenseflow.models import (
    DEFAULT_CATEGORY,
    Budget,
    Goal,
    Transaction,
    UserSettings,
)
from expenseflow.reports.aggregations import round_money, to_money
from expenseflow.utils.dates import format_date_for_input, utcnow


CSV_COLUMNS = ["Date", "Description", "Category", "Amount", "Type"]


def transactions_to_csv(transactions: Iterable[Transaction], tz: str = "auto") -> str:
    """
    CSV with one row per transaction.

    Amount is the absolute value with two decimals; Type says whether it
    was income or an expense.
    """
    rows = [
        {
            "Date": format_date_for_input(t.date, tz),
            "Description": t.text,
            "Category": t.category or DEFAULT_CATEGORY,
            "Amount": f"{abs(round_money(to_money(t.amount))):.2f}",
            "Type": "Income" if t.amount > 0 else "Expense",
        }
        for t in transactions
    ]
    frame = pd.DataFrame(rows, columns=CSV_COLUMNS)
    return frame.to_csv(index=False, lineterminator="\n")


class Backup(BaseModel):
    """Full JSON backup as written by ``export_backup``."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    transactions: tuple[Transaction, ...] = ()
    budgets: tuple[Budget, ...] = ()
    goals: tuple[Goal, ...] = ()
    settings: UserSettings = Field(default_factory=UserSettings)
    export_date: datetime = Field(default_factory=utcnow)


def export_backup(
    transactions: Sequence[Transaction],
    budgets: Sequence[Budget] = (),
    goals: Sequence[Goal] = (),
    settings: Optional[UserSettings] = None,
    export_date: Optional[datetime] = None,
) -> str:
    """Serialize a backup to JSON (camelCase keys, ids included)."""
    backup = Backup(
        transactions=tuple(transactions),
        budgets=tuple(budgets),
        goals=tuple(goals),
        settings=settings or UserSettings(),
        export_date=export_date or utcnow(),
    )
    return backup.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def import_backup(data: Union[str, bytes, dict]) -> Backup:
    """
    Parse a backup produced by ``export_backup``.

    Raises:
        pydantic.ValidationError: not a valid backup
    """
    if isinstance(data, dict):
        return Backup.model_validate(data)
    return Backup.model_validate_json(data)
